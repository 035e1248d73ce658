"""
pastebox - Main FastAPI application.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from pastebox.config import settings
from pastebox.routes import health, pastes
from pastebox.service import get_service
from pastebox.sweeper import ExpirySweeper

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="pastebox",
    description="A minimal pastebin for text, files and short links",
    version="1.0.0",
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sweeper: Optional[ExpirySweeper] = None

USAGE = """pastebox

Pastes expire after 7 days unless a sunset (in seconds) is given.
Maximum size is 2MB.

Create a paste:
    echo "Hello, World!" | curl -F c=@- {addr}/
    url: {addr}/xyz789
    id: abcd123456789
    sunset: 2024-04-01T00:00:00.000Z

Custom expiry (30 minutes):
    echo "Custom expiry" | curl -F c=@- -F sunset=1800 {addr}/

Only print the url:
    echo "short" | curl -F c=@- '{addr}/?u=1'

Pick your own slug (must start with @ or ~):
    echo "labelled" | curl -F c=@- {addr}/@notes

Shorten a url:
    curl -F c=https://example.com/some/long/path {addr}/u

Read, with optional highlighting:
    curl {addr}/xyz789
    open {addr}/xyz789/python

Update:
    echo "Updated content" | curl -X PUT -F c=@- {addr}/abcd123456789

Delete:
    curl -X DELETE {addr}/abcd123456789
"""

# Health comes first so /api/healthz is not taken for a slug
app.include_router(health.router)
app.include_router(pastes.router)


@app.on_event("startup")
async def startup_event():
    """Startup event handler."""
    logger.info("pastebox application starting...")
    service = get_service()

    if service.store.backend == "memory":
        logger.warning("DATABASE: Using IN-MEMORY storage (Redis not available)")
        logger.warning("   Data will NOT persist across server restarts!")
    else:
        logger.info("DATABASE: Connected to Redis")

    global sweeper
    if settings.SWEEP_INTERVAL_SECONDS > 0:
        sweeper = ExpirySweeper(service, settings.SWEEP_INTERVAL_SECONDS)
        sweeper.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown event handler."""
    logger.info("pastebox application shutting down...")
    if sweeper is not None:
        sweeper.stop()


@app.get("/", response_class=PlainTextResponse)
async def root(request: Request):
    """Usage guide."""
    return USAGE.format(addr=pastes._addr(request))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pastebox.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
