"""
Paste routes.
Plain-text protocol for create, read, update and delete, friendly to curl.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from starlette.datastructures import FormData
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from pastebox.config import settings
from pastebox.content import classify
from pastebox.errors import (
    InvalidContentError,
    InvalidTTLError,
    LabelTakenError,
    PasteValidationError,
)
from pastebox.highlight import render_highlighted
from pastebox.models import PasteCreated, format_sunset
from pastebox.service import PasteService, get_service

router = APIRouter()
logger = logging.getLogger(__name__)

SECRET_HEADER = "x-paste-secret"


def _get_current_time(x_test_now_ms: Optional[str] = None) -> Optional[datetime]:
    """
    Current time override, honoured only in TEST_MODE.

    Args:
        x_test_now_ms: Test timestamp header (milliseconds since epoch)

    Returns:
        The overridden time, or None to let the service use its own clock
    """
    if settings.TEST_MODE and x_test_now_ms:
        try:
            return datetime.fromtimestamp(int(x_test_now_ms) / 1000, tz=timezone.utc)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(f"Invalid x-test-now-ms header: {e}")
    return None


def _addr(request: Request) -> str:
    if settings.APP_DOMAIN:
        return settings.APP_DOMAIN.rstrip("/")
    return f"{request.url.scheme}://{request.url.netloc}"


def _not_found() -> PlainTextResponse:
    return PlainTextResponse("404 Not Found\n", status_code=404)


def _client_error(error: PasteValidationError) -> PlainTextResponse:
    return PlainTextResponse(f"{error}\n", status_code=error.status_code)


def _internal_error(error: Exception) -> PlainTextResponse:
    logger.error(f"Internal error: {type(error).__name__}: {error}", exc_info=error)
    return PlainTextResponse("Internal Server Error\n", status_code=500)


async def _read_form(request: Request, service: PasteService) -> FormData:
    """
    Parse the multipart body.

    Raises:
        ContentTooLargeError: a text field is past the per-part limit
        InvalidContentError: the body is not a parseable form
    """
    # Text fields may legitimately exceed Starlette's 1 MiB per-part default
    try:
        return await request.form(max_part_size=max(2 * service.max_content_bytes, 1024 * 1024))
    except (HTTPException, MultiPartException) as e:
        detail = getattr(e, "detail", None) or getattr(e, "message", "")
        logger.warning(f"Rejected form body: {detail}")
        if "exceeded maximum size" in str(detail):
            raise service.too_large()
        raise InvalidContentError("Invalid request format.")


def _parse_ttl(form: FormData) -> Optional[float]:
    raw = form.get("sunset") or form.get("ttl")
    if raw is None:
        return None
    try:
        ttl = float(raw) if isinstance(raw, str) else math.nan
    except ValueError:
        ttl = math.nan
    if not math.isfinite(ttl):
        raise InvalidTTLError("Invalid sunset: must be a number of seconds")
    return ttl


def _secret(request: Request, form: Optional[FormData] = None) -> Optional[str]:
    secret = request.headers.get(SECRET_HEADER)
    if secret is None and form is not None and isinstance(form.get("secret"), str):
        secret = form.get("secret")
    if secret is None:
        secret = request.query_params.get("secret")
    return secret or None


def _created_body(addr: str, created: PasteCreated, url_only: bool = False) -> str:
    url = f"{addr}/{created.slug}"
    if url_only:
        return f"url: {url}"
    lines = [f"url: {url}"]
    if created.secret is None:
        lines.append(f"id: {created.id}")
    else:
        lines.append(f"secret: {created.secret}")
    lines.append(f"sunset: {format_sunset(created.sunset)}")
    return "\n".join(lines) + "\n"


@router.post("/u", response_class=PlainTextResponse)
async def create_url_paste(
    request: Request,
    service: PasteService = Depends(get_service),
    x_test_now_ms: Optional[str] = Header(None),
):
    """Create a paste that redirects to the URL given in ``c``."""
    try:
        form = await _read_form(request, service)
    except PasteValidationError as e:
        return _client_error(e)
    try:
        value = form.get("c")
        if value is None:
            raise InvalidContentError("Invalid request format.")
        if not isinstance(value, str):
            raise InvalidContentError("Invalid content format: must be a string")
        created = service.create_url(value, ttl=_parse_ttl(form), now=_get_current_time(x_test_now_ms))
    except PasteValidationError as e:
        return _client_error(e)
    except Exception as e:
        return _internal_error(e)
    finally:
        await form.close()

    return PlainTextResponse(_created_body(_addr(request), created))


@router.post("/", response_class=PlainTextResponse)
@router.post("/{label}", response_class=PlainTextResponse)
async def create_paste(
    request: Request,
    label: Optional[str] = None,
    u: Optional[str] = None,
    service: PasteService = Depends(get_service),
    x_test_now_ms: Optional[str] = Header(None),
):
    """
    Create a new paste from the ``c`` form field.

    A label (``@name`` or ``~name``) in the path requests a fixed slug. A
    taken label answers 200 with an explanation rather than an error status.
    """
    addr = _addr(request)
    try:
        form = await _read_form(request, service)
    except PasteValidationError as e:
        return _client_error(e)
    try:
        if "c" not in form:
            raise InvalidContentError("Invalid request format.")
        classified = await classify(form.get("c"))
        created = service.create(
            classified.content,
            classified.content_type,
            ttl=_parse_ttl(form),
            label=label,
            secret=_secret(request, form),
            now=_get_current_time(x_test_now_ms),
        )
    except PasteValidationError as e:
        return _client_error(e)
    except LabelTakenError:
        return PlainTextResponse(f"'{label}' already exists at {addr}/{label}\n")
    except Exception as e:
        return _internal_error(e)
    finally:
        await form.close()

    return PlainTextResponse(_created_body(addr, created, url_only=u == "1"))


@router.get("/{slug}")
@router.get("/{slug}/{language}")
async def read_paste(
    slug: str,
    language: Optional[str] = None,
    service: PasteService = Depends(get_service),
    x_test_now_ms: Optional[str] = Header(None),
):
    """
    Serve a paste.

    Redirect pastes answer 302; text with a language segment is rendered as
    highlighted HTML; everything else is served raw with its stored type.
    Missing and expired pastes are both a plain 404.
    """
    try:
        paste = service.read(slug, now=_get_current_time(x_test_now_ms))
    except Exception as e:
        return _internal_error(e)

    if paste is None:
        return _not_found()
    if paste.is_redirect:
        return RedirectResponse(paste.text(), status_code=302)
    if paste.is_text and language:
        return HTMLResponse(render_highlighted(paste.text(), language))
    return Response(content=paste.content, media_type=paste.content_type)


@router.put("/{handle}", response_class=PlainTextResponse)
async def update_paste(
    handle: str,
    request: Request,
    service: PasteService = Depends(get_service),
    x_test_now_ms: Optional[str] = Header(None),
):
    """Replace the content of a paste identified by its id (or slug + secret)."""
    try:
        form = await _read_form(request, service)
    except PasteValidationError as e:
        return _client_error(e)
    try:
        if "c" not in form:
            raise InvalidContentError("Invalid request format.")
        classified = await classify(form.get("c"))
        paste = service.update(
            handle,
            classified.content,
            classified.content_type,
            secret=_secret(request, form),
            now=_get_current_time(x_test_now_ms),
        )
    except PasteValidationError as e:
        return _client_error(e)
    except Exception as e:
        return _internal_error(e)
    finally:
        await form.close()

    if paste is None:
        return _not_found()
    return PlainTextResponse(f"{_addr(request)}/{paste.slug} updated\n")


@router.delete("/{handle}", response_class=PlainTextResponse)
async def delete_paste(
    handle: str,
    request: Request,
    service: PasteService = Depends(get_service),
    x_test_now_ms: Optional[str] = Header(None),
):
    """Delete a paste identified by its id (or slug + secret)."""
    try:
        deleted = service.delete(handle, secret=_secret(request), now=_get_current_time(x_test_now_ms))
    except Exception as e:
        return _internal_error(e)

    if not deleted:
        return _not_found()
    return PlainTextResponse("deleted\n")
