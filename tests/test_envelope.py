import pytest

from pastebox.envelope import CHUNK_SIZE, INTRO, open_envelope, seal
from pastebox.errors import DecryptionError

# Keep scrypt cheap in tests
WF = 10


@pytest.mark.parametrize(
    "plain",
    [
        b"",
        b"Hello, World!",
        bytes(range(256)),
        b"x" * CHUNK_SIZE,
        b"y" * (2 * CHUNK_SIZE + 5),
    ],
    ids=["empty", "short", "all-bytes", "one-full-chunk", "multi-chunk"],
)
def test_round_trip(plain):
    assert open_envelope(seal(plain, "correct horse", WF), "correct horse") == plain


def test_text_is_sealed_as_utf8():
    assert open_envelope(seal("héllo", "pw", WF), "pw") == "héllo".encode("utf-8")


def test_envelope_is_age_formatted():
    sealed = seal(b"data", "pw", WF)
    assert sealed.startswith(INTRO + b"-> scrypt ")
    assert b"\n--- " in sealed
    assert b"data" not in sealed


def test_same_input_seals_differently():
    assert seal(b"data", "pw", WF) != seal(b"data", "pw", WF)


def test_wrong_passphrase():
    sealed = seal(b"secret", "right", WF)
    with pytest.raises(DecryptionError, match="incorrect passphrase"):
        open_envelope(sealed, "wrong")


def test_tampered_payload():
    sealed = bytearray(seal(b"secret payload", "pw", WF))
    sealed[-1] ^= 0x01
    with pytest.raises(DecryptionError):
        open_envelope(bytes(sealed), "pw")


def test_truncated_payload():
    sealed = seal(b"z" * (CHUNK_SIZE + 10), "pw", WF)
    with pytest.raises(DecryptionError):
        open_envelope(sealed[:-20], "pw")


def test_dropped_final_chunk():
    sealed = seal(b"z" * (CHUNK_SIZE + 10), "pw", WF)
    header_and_first = len(sealed) - (10 + 16)
    with pytest.raises(DecryptionError):
        open_envelope(sealed[:header_and_first], "pw")


def test_not_an_envelope():
    with pytest.raises(DecryptionError, match="not an age envelope"):
        open_envelope(b"plain text, not sealed", "pw")


def test_work_factor_limit():
    sealed = seal(b"data", "pw", 12)
    with pytest.raises(DecryptionError, match="work factor"):
        open_envelope(sealed, "pw", max_work_factor=11)


def test_empty_passphrase_refused():
    with pytest.raises(ValueError):
        seal(b"data", "", WF)
