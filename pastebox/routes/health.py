"""
Health check route.
"""
from fastapi import APIRouter, Depends
from pastebox.models import HealthCheck
from pastebox.service import PasteService, get_service

router = APIRouter()


@router.get("/api/healthz", response_model=HealthCheck)
async def health_check(service: PasteService = Depends(get_service)) -> HealthCheck:
    """
    Health check endpoint.
    Returns 200 with ok=true if the application and its store are healthy.
    """
    return HealthCheck(ok=service.is_healthy())
