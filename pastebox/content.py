"""
Content classification for inbound payloads.
Decides whether the ``c`` field is text or bytes and which MIME type to store.
"""
import logging
from typing import Optional, Union

import filetype
from starlette.datastructures import UploadFile

from pastebox.errors import InvalidContentError
from pastebox.models import ClassifiedContent

logger = logging.getLogger(__name__)

TEXT_TYPE = "text/plain"
BINARY_TYPE = "application/octet-stream"


def sniff(data: bytes) -> str:
    """MIME type from the byte signature, or the generic binary type."""
    kind = filetype.guess(data)
    return kind.mime if kind is not None else BINARY_TYPE


def is_text(data: bytes) -> bool:
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def classify_bytes(data: bytes, declared_type: Optional[str] = None) -> ClassifiedContent:
    """
    Classify an uploaded file.

    The declared type wins when present; otherwise the signature is sniffed.
    Generic binary that decodes as strict UTF-8 is relabelled as plain text so
    it renders inline instead of downloading.
    """
    content_type = declared_type or sniff(data)
    if content_type == BINARY_TYPE and is_text(data):
        logger.debug("Upgrading octet-stream upload to text/plain")
        return ClassifiedContent(content=data.decode("utf-8"), content_type=TEXT_TYPE)
    return ClassifiedContent(content=data, content_type=content_type)


async def classify(value: Union[UploadFile, str, None]) -> ClassifiedContent:
    """Classify the raw ``c`` form value."""
    if isinstance(value, UploadFile):
        data = await value.read()
        return classify_bytes(data, value.content_type)
    if isinstance(value, str):
        return ClassifiedContent(content=value, content_type=TEXT_TYPE)
    raise InvalidContentError("Invalid content format.")
