from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from pastebox.database import InMemoryStore, RedisStore
from pastebox.errors import IdCollisionError, SlugConflictError
from pastebox.models import Paste


@pytest.fixture(params=["memory", "redis"])
def store(request):
    if request.param == "memory":
        return InMemoryStore()
    return RedisStore(fakeredis.FakeRedis())


def make_paste(paste_id="id00000000001", slug="abc123", content="hello", ttl=3600, **kwargs):
    return Paste(
        id=paste_id,
        slug=slug,
        content=content,
        content_type=kwargs.pop("content_type", "text/plain"),
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl),
        **kwargs,
    )


def test_insert_and_lookup(store):
    paste = make_paste()
    store.insert(paste)
    assert store.get_by_id(paste.id) == paste
    assert store.get_by_slug(paste.slug) == paste


def test_binary_content_is_preserved(store):
    data = bytes(range(256))
    store.insert(make_paste(content=data, content_type="application/octet-stream"))
    loaded = store.get_by_slug("abc123")
    assert loaded.content == data
    assert isinstance(loaded.content, bytes)


def test_text_content_stays_text(store):
    store.insert(make_paste(content="ünïcode"))
    assert store.get_by_slug("abc123").content == "ünïcode"


def test_secret_hash_round_trips(store):
    store.insert(make_paste(secret_hash="f" * 64))
    assert store.get_by_id("id00000000001").secret_hash == "f" * 64


def test_slug_conflict(store):
    store.insert(make_paste())
    with pytest.raises(SlugConflictError):
        store.insert(make_paste(paste_id="id00000000002", content="other"))
    assert store.get_by_slug("abc123").content == "hello"
    assert store.get_by_id("id00000000002") is None


def test_id_collision_does_not_overwrite(store):
    store.insert(make_paste())
    with pytest.raises(IdCollisionError):
        store.insert(make_paste(slug="zzz999", content="other"))
    assert store.get_by_id("id00000000001").content == "hello"
    assert store.get_by_slug("zzz999") is None


def test_missing_lookups(store):
    assert store.get_by_id("missing") is None
    assert store.get_by_slug("missing") is None


def test_update(store):
    store.insert(make_paste())
    assert store.update("id00000000001", b"\x00\x01", "application/x-bin") is True
    loaded = store.get_by_id("id00000000001")
    assert loaded.content == b"\x00\x01"
    assert loaded.content_type == "application/x-bin"
    assert loaded.slug == "abc123"


def test_update_missing(store):
    assert store.update("missing", "x", "text/plain") is False
    assert store.get_by_id("missing") is None


def test_delete_frees_slug(store):
    store.insert(make_paste())
    assert store.delete("id00000000001") is True
    assert store.delete("id00000000001") is False
    assert store.get_by_slug("abc123") is None
    store.insert(make_paste(paste_id="id00000000002"))
    assert store.get_by_slug("abc123").id == "id00000000002"


def test_delete_expired(store):
    store.insert(make_paste(paste_id="short00000001", slug="short1", ttl=60))
    store.insert(make_paste(paste_id="long000000001", slug="long01", ttl=3600))

    later = datetime.now(timezone.utc) + timedelta(seconds=120)
    assert store.delete_expired(later) == 1
    assert store.get_by_id("short00000001") is None
    assert store.get_by_slug("short1") is None
    assert store.get_by_id("long000000001") is not None
    assert store.delete_expired(later) == 0


def test_ping(store):
    assert store.ping()
