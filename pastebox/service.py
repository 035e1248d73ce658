"""
Paste lifecycle: create, read, update, delete and the expiry sweep.
"""
import hashlib
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from pydantic import HttpUrl, TypeAdapter, ValidationError

from pastebox.config import settings
from pastebox.database import open_store
from pastebox.errors import (
    ContentTooLargeError,
    EmptyContentError,
    InvalidTTLError,
    InvalidUrlError,
)
from pastebox.identifiers import IdentifierAllocator, random_token, validate_label
from pastebox.models import URL_CONTENT_TYPE, Paste, PasteCreated

logger = logging.getLogger(__name__)

CAPABILITY_ID = "id"
CAPABILITY_SECRET = "secret"

_url_adapter = TypeAdapter(HttpUrl)


def is_expired(paste: Paste, now: datetime) -> bool:
    """Expiry is a pure function of ``expires_at``; nothing else is stored."""
    return paste.expires_at <= now


def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def content_size(content: Union[str, bytes]) -> int:
    """Size in bytes; text is measured as UTF-8."""
    if isinstance(content, str):
        return len(content.encode("utf-8"))
    return len(content)


class PasteService:
    """Orchestrates paste operations against a store."""

    def __init__(
        self,
        store,
        allocator: Optional[IdentifierAllocator] = None,
        default_ttl: int = 60 * 60 * 24 * 7,
        max_content_bytes: int = 2 * 1024 * 1024,
        label_min_length: int = 2,
        capability_mode: str = CAPABILITY_ID,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if capability_mode not in (CAPABILITY_ID, CAPABILITY_SECRET):
            raise ValueError(f"Unknown capability mode: {capability_mode}")
        self.store = store
        self.allocator = allocator or IdentifierAllocator()
        self.default_ttl = default_ttl
        self.max_content_bytes = max_content_bytes
        self.label_min_length = label_min_length
        self.capability_mode = capability_mode
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def uses_secret(self) -> bool:
        return self.capability_mode == CAPABILITY_SECRET

    def _get_current_time(self, now: Optional[datetime] = None) -> datetime:
        return now if now is not None else self._clock()

    def validate_content(self, content: Union[str, bytes]) -> None:
        """
        Reject empty or oversized content.

        Raises:
            EmptyContentError: content has zero length
            ContentTooLargeError: content exceeds ``max_content_bytes``
        """
        size = content_size(content)
        if size == 0:
            raise EmptyContentError("Content is empty.")
        if size > self.max_content_bytes:
            raise self.too_large()

    def too_large(self) -> ContentTooLargeError:
        return ContentTooLargeError(
            f"Content too large. Maximum size is {self.max_content_bytes // (1024 * 1024)}MB."
        )

    def _expiry(self, ttl: Optional[float], now: datetime) -> datetime:
        if ttl is None:
            ttl = self.default_ttl
        if not ttl > 0:
            raise InvalidTTLError("Invalid sunset: must be a positive number of seconds")
        try:
            return now + timedelta(seconds=ttl)
        except (OverflowError, ValueError):
            raise InvalidTTLError("Invalid sunset: too far in the future")

    def create(
        self,
        content: Union[str, bytes],
        content_type: str,
        ttl: Optional[float] = None,
        label: Optional[str] = None,
        secret: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PasteCreated:
        """
        Create a paste and return its identifiers.

        Args:
            content: Text or bytes, non-empty and within the size limit
            content_type: MIME type from the classifier
            ttl: Seconds until sunset, defaults to ``default_ttl``
            label: Client-chosen slug (``@name`` / ``~name``)
            secret: Shared secret for secret mode; generated when omitted
            now: Override of the current time

        Raises:
            PasteValidationError subclasses for bad input
            LabelTakenError: the label is already held by an active paste
            SlugExhaustedError: random slug allocation ran out of attempts
        """
        self.validate_content(content)
        if label is not None:
            validate_label(label, self.label_min_length)
        return self._insert(content, content_type, ttl, label, secret, now)

    def create_url(
        self,
        url: str,
        ttl: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> PasteCreated:
        """Create a redirect paste; ``url`` must be an absolute http(s) URL."""
        try:
            target = str(_url_adapter.validate_python(url.strip()))
        except ValidationError:
            raise InvalidUrlError("Invalid content format: must be a url")
        return self._insert(target, URL_CONTENT_TYPE, ttl, None, None, now)

    def _insert(self, content, content_type, ttl, label, secret, now) -> PasteCreated:
        now = self._get_current_time(now)
        expires_at = self._expiry(ttl, now)
        if self.uses_secret and secret is None:
            secret = random_token(self.allocator.id_length)
        secret_hash = hash_secret(secret) if self.uses_secret else None

        if label is not None:
            self._reclaim_expired(label, now)

        def insert(paste_id: str, slug: str) -> Paste:
            paste = Paste(
                id=paste_id,
                slug=slug,
                content=content,
                content_type=content_type,
                expires_at=expires_at,
                secret_hash=secret_hash,
            )
            self.store.insert(paste)
            return paste

        paste = self.allocator.allocate(insert, label)
        logger.info(f"Paste {paste.slug} created ({content_type}, {content_size(content)} bytes)")
        return PasteCreated(
            id=paste.id,
            slug=paste.slug,
            sunset=paste.expires_at,
            secret=secret if self.uses_secret else None,
        )

    def _reclaim_expired(self, slug: str, now: datetime) -> None:
        # Uniqueness only covers active pastes; an expired holder gives way
        holder = self.store.get_by_slug(slug)
        if holder is not None and is_expired(holder, now):
            logger.info(f"Reclaiming label {slug} from expired paste")
            self.store.delete(holder.id)

    def _active(self, paste: Optional[Paste], now: datetime) -> Optional[Paste]:
        if paste is None:
            return None
        if is_expired(paste, now):
            logger.warning(f"Paste {paste.slug} has expired, deleting")
            self.store.delete(paste.id)
            return None
        return paste

    def read(self, slug: str, now: Optional[datetime] = None) -> Optional[Paste]:
        """
        Fetch an active paste by slug.

        Returns:
            The paste, or None when it never existed or has expired. An
            expired paste is deleted as a side effect.
        """
        return self._active(self.store.get_by_slug(slug), self._get_current_time(now))

    def _authorize(self, handle: str, secret: Optional[str], now: datetime) -> Optional[Paste]:
        if not self.uses_secret:
            return self._active(self.store.get_by_id(handle), now)

        paste = self._active(self.store.get_by_slug(handle), now)
        if paste is None or secret is None or paste.secret_hash is None:
            return None
        if not hmac.compare_digest(paste.secret_hash, hash_secret(secret)):
            return None
        return paste

    def update(
        self,
        handle: str,
        content: Union[str, bytes],
        content_type: str,
        secret: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Paste]:
        """
        Replace content and content type of an active paste.

        Args:
            handle: Paste id, or the slug in secret mode
            secret: Shared secret (secret mode only)

        Returns:
            The updated paste, or None if the handle or secret is invalid
        """
        self.validate_content(content)
        paste = self._authorize(handle, secret, self._get_current_time(now))
        if paste is None:
            return None
        if not self.store.update(paste.id, content, content_type):
            return None
        logger.info(f"Paste {paste.slug} updated")
        return paste.model_copy(update={"content": content, "content_type": content_type})

    def delete(self, handle: str, secret: Optional[str] = None, now: Optional[datetime] = None) -> bool:
        """Delete a paste. Returns False when nothing matched."""
        paste = self._authorize(handle, secret, self._get_current_time(now))
        if paste is None:
            return False
        deleted = self.store.delete(paste.id)
        if deleted:
            logger.info(f"Paste {paste.slug} deleted")
        return deleted

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Delete every paste whose sunset has passed."""
        count = self.store.delete_expired(self._get_current_time(now))
        if count:
            logger.info(f"Sweep removed {count} expired pastes")
        return count

    def is_healthy(self) -> bool:
        """Check if the store connection is alive."""
        try:
            return bool(self.store.ping())
        except Exception as e:
            logger.error(f"Health check failed: {e}")
        return False


def build_service(store=None) -> PasteService:
    """Service wired from settings."""
    return PasteService(
        store if store is not None else open_store(),
        allocator=IdentifierAllocator(
            slug_length=settings.SLUG_LENGTH,
            id_length=settings.ID_LENGTH,
            max_attempts=settings.SLUG_ATTEMPTS,
        ),
        default_ttl=settings.DEFAULT_TTL_SECONDS,
        max_content_bytes=settings.MAX_CONTENT_BYTES,
        label_min_length=settings.LABEL_MIN_LENGTH,
        capability_mode=settings.CAPABILITY_MODE,
    )


_service: Optional[PasteService] = None


def get_service() -> PasteService:
    """FastAPI dependency returning the process-wide service."""
    global _service
    if _service is None:
        _service = build_service()
    return _service
