"""
Durable store for pastes: Redis, with an in-memory fallback for development.
Handles insert-with-uniqueness, lookups by id and slug, update, delete and
the bulk expiry sweep.
"""
import logging
import math
import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from redis import Redis
from redis.exceptions import ConnectionError, WatchError

from pastebox.config import settings
from pastebox.errors import IdCollisionError, SlugConflictError
from pastebox.models import Paste

logger = logging.getLogger(__name__)

SUNSET_INDEX = "pastes:sunsets"


def _paste_key(paste_id: str) -> str:
    return f"paste:{paste_id}"


def _slug_key(slug: str) -> str:
    return f"slug:{slug}"


class InMemoryStore:
    """Simple in-memory store for development/testing (when Redis unavailable)."""

    backend = "memory"

    def __init__(self):
        self.pastes: Dict[str, Paste] = {}
        self.slugs: Dict[str, str] = {}
        self._lock = threading.Lock()

    def insert(self, paste: Paste) -> None:
        """Store a new paste, refusing a taken slug or id."""
        with self._lock:
            if paste.slug in self.slugs:
                raise SlugConflictError(paste.slug)
            if paste.id in self.pastes:
                raise IdCollisionError(f"paste id {paste.id} already exists")
            self.pastes[paste.id] = paste
            self.slugs[paste.slug] = paste.id

    def get_by_id(self, paste_id: str) -> Optional[Paste]:
        with self._lock:
            return self.pastes.get(paste_id)

    def get_by_slug(self, slug: str) -> Optional[Paste]:
        with self._lock:
            paste_id = self.slugs.get(slug)
            return self.pastes.get(paste_id) if paste_id else None

    def update(self, paste_id: str, content: Union[str, bytes], content_type: str) -> bool:
        with self._lock:
            paste = self.pastes.get(paste_id)
            if paste is None:
                return False
            self.pastes[paste_id] = paste.model_copy(
                update={"content": content, "content_type": content_type}
            )
            return True

    def delete(self, paste_id: str) -> bool:
        with self._lock:
            paste = self.pastes.pop(paste_id, None)
            if paste is None:
                return False
            if self.slugs.get(paste.slug) == paste_id:
                del self.slugs[paste.slug]
            return True

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [p for p in self.pastes.values() if p.expires_at <= now]
            for paste in expired:
                del self.pastes[paste.id]
                if self.slugs.get(paste.slug) == paste.id:
                    del self.slugs[paste.slug]
            return len(expired)

    def ping(self):
        """Health check."""
        return True


class RedisStore:
    """Paste store on Redis.

    Layout:
        paste:<id>      hash of the record fields
        slug:<slug>     string holding the owning id, written with SET NX
        pastes:sunsets  sorted set of ids scored by expiry (epoch seconds)

    Both keys also carry a native EXPIREAT so Redis reclaims them on its own;
    the sweep covers whatever is left behind.
    """

    backend = "redis"

    def __init__(self, redis: Redis):
        self.redis = redis

    def insert(self, paste: Paste) -> None:
        """
        Store a new paste.

        Args:
            paste: Fully populated record

        Raises:
            SlugConflictError: if the slug key is already held
            IdCollisionError: if a paste with this id already exists
        """
        expire_at = math.ceil(paste.expires_at.timestamp())
        slug_key = _slug_key(paste.slug)
        if not self.redis.set(slug_key, paste.id, nx=True, exat=expire_at):
            raise SlugConflictError(paste.slug)

        key = _paste_key(paste.id)
        if not self.redis.hsetnx(key, "slug", paste.slug):
            # Release the slug we just reserved; never overwrite the other row
            self.redis.delete(slug_key)
            raise IdCollisionError(f"paste id {paste.id} already exists")

        pipe = self.redis.pipeline()
        pipe.hset(key, mapping=self._serialize(paste))
        pipe.expireat(key, expire_at)
        pipe.zadd(SUNSET_INDEX, {paste.id: paste.expires_at.timestamp()})
        pipe.execute()

    def get_by_id(self, paste_id: str) -> Optional[Paste]:
        data = self.redis.hgetall(_paste_key(paste_id))
        if not data or b"content" not in data:
            return None
        return self._deserialize(paste_id, data)

    def get_by_slug(self, slug: str) -> Optional[Paste]:
        owner = self.redis.get(_slug_key(slug))
        if owner is None:
            return None
        paste = self.get_by_id(owner.decode())
        if paste is None or paste.slug != slug:
            return None
        return paste

    def update(self, paste_id: str, content: Union[str, bytes], content_type: str) -> bool:
        key = _paste_key(paste_id)
        fields = {
            "content": self._encode_content(content),
            "kind": "text" if isinstance(content, str) else "bytes",
            "content_type": content_type,
        }
        with self.redis.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    if not pipe.exists(key):
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.hset(key, mapping=fields)
                    pipe.execute()
                    return True
                except WatchError:
                    logger.info(f"Paste {paste_id} changed during update, retrying")

    def delete(self, paste_id: str) -> bool:
        key = _paste_key(paste_id)
        slug = self.redis.hget(key, "slug")
        if slug is None:
            return False
        slug_key = _slug_key(slug.decode())
        with self.redis.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(slug_key)
                    owner = pipe.get(slug_key)
                    pipe.multi()
                    pipe.delete(key)
                    pipe.zrem(SUNSET_INDEX, paste_id)
                    if owner is not None and owner.decode() == paste_id:
                        pipe.delete(slug_key)
                    results = pipe.execute()
                    return bool(results[0])
                except WatchError:
                    logger.info(f"Slug of paste {paste_id} changed during delete, retrying")

    def delete_expired(self, now: datetime) -> int:
        cutoff = now.timestamp()
        expired = [raw.decode() for raw in self.redis.zrangebyscore(SUNSET_INDEX, "-inf", cutoff)]
        if not expired:
            return 0

        pipe = self.redis.pipeline()
        for paste_id in expired:
            pipe.hget(_paste_key(paste_id), "slug")
        slugs = [slug.decode() for slug in pipe.execute() if slug is not None]

        pipe = self.redis.pipeline()
        for slug in slugs:
            pipe.get(_slug_key(slug))
        owners = dict(zip(slugs, pipe.execute()))

        pipe = self.redis.pipeline()
        for paste_id in expired:
            pipe.delete(_paste_key(paste_id))
        for slug, owner in owners.items():
            # Leave the slug alone once it has been handed to another paste
            if owner is not None and owner.decode() in expired:
                pipe.delete(_slug_key(slug))
        pipe.zremrangebyscore(SUNSET_INDEX, "-inf", cutoff)
        results = pipe.execute()
        return sum(results[:len(expired)])

    def ping(self):
        return self.redis.ping()

    @staticmethod
    def _encode_content(content: Union[str, bytes]) -> bytes:
        return content.encode("utf-8") if isinstance(content, str) else content

    def _serialize(self, paste: Paste) -> Dict[str, Union[str, bytes]]:
        fields = {
            "slug": paste.slug,
            "content": self._encode_content(paste.content),
            "kind": "text" if isinstance(paste.content, str) else "bytes",
            "content_type": paste.content_type,
            "expires_at": paste.expires_at.isoformat(),
        }
        if paste.secret_hash:
            fields["secret_hash"] = paste.secret_hash
        return fields

    @staticmethod
    def _deserialize(paste_id: str, data: Dict[bytes, bytes]) -> Paste:
        content = data[b"content"]
        if data.get(b"kind") == b"text":
            content = content.decode("utf-8")
        expires_at = datetime.fromisoformat(data[b"expires_at"].decode())
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        secret_hash = data.get(b"secret_hash")
        return Paste(
            id=paste_id,
            slug=data[b"slug"].decode(),
            content=content,
            content_type=data[b"content_type"].decode(),
            expires_at=expires_at,
            secret_hash=secret_hash.decode() if secret_hash else None,
        )


def open_store() -> Union[RedisStore, InMemoryStore]:
    """Connect to Redis, falling back to the in-memory store."""
    if settings.STORE_BACKEND == "memory":
        logger.info("STORE_BACKEND=memory, using in-memory store")
        return InMemoryStore()

    try:
        logger.info(f"Attempting to connect to Redis: {settings.REDIS_URL[:30]}...")
        redis = Redis.from_url(settings.REDIS_URL, decode_responses=False)
        redis.ping()
        logger.info("Redis connected successfully")
        return RedisStore(redis)
    except ConnectionError as e:
        logger.error(f"ConnectionError connecting to Redis: {type(e).__name__}: {str(e)}")
    except Exception as e:
        logger.error(f"Unexpected error connecting to Redis: {type(e).__name__}: {str(e)}")
    logger.warning("Using in-memory fallback for development. Data will NOT persist across restarts.")
    return InMemoryStore()
