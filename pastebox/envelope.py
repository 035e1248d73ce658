"""
Client-side passphrase envelope in the age v1 format (scrypt recipient).

The server only ever stores the sealed bytes. Layout::

    age-encryption.org/v1
    -> scrypt <salt> <log2 N>
    <wrapped file key>
    --- <header mac>
    <16-byte nonce><ChaCha20-Poly1305 STREAM chunks of 64 KiB>

Base64 is unpadded standard alphabet, stanza bodies wrap at 64 columns.
"""
import base64
import binascii
import hmac
import os
from typing import List, Optional, Tuple, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from pastebox.errors import DecryptionError

INTRO = b"age-encryption.org/v1\n"
SCRYPT_LABEL = b"age-encryption.org/v1/scrypt"
MAC_PREFIX = b"---"

FILE_KEY_SIZE = 16
NONCE_SIZE = 16
CHUNK_SIZE = 64 * 1024
TAG_SIZE = 16
COLUMNS = 64

DEFAULT_WORK_FACTOR = 18
MAX_WORK_FACTOR = 22


def _b64encode(data: bytes) -> bytes:
    return base64.b64encode(data).rstrip(b"=")


def _b64decode(text: bytes) -> bytes:
    if b"=" in text:
        raise DecryptionError("Decryption failed: padded base64 in header")
    try:
        return base64.b64decode(text + b"=" * (-len(text) % 4), validate=True)
    except binascii.Error:
        raise DecryptionError("Decryption failed: malformed base64 in header")


def _wrap(encoded: bytes) -> bytes:
    lines = [encoded[i:i + COLUMNS] for i in range(0, len(encoded), COLUMNS)]
    # A full last line must be followed by an empty one
    if len(encoded) % COLUMNS == 0:
        lines.append(b"")
    return b"".join(line + b"\n" for line in lines)


def _hkdf(key: bytes, salt: Optional[bytes], info: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=salt, info=info).derive(key)


def _scrypt(passphrase: str, salt: bytes, work_factor: int) -> bytes:
    kdf = Scrypt(salt=SCRYPT_LABEL + salt, length=32, n=2 ** work_factor, r=8, p=1)
    return kdf.derive(passphrase.encode("utf-8"))


def _header_mac(file_key: bytes, header: bytes) -> bytes:
    return hmac.new(_hkdf(file_key, None, b"header"), header, "sha256").digest()


def _stream_nonce(counter: int, last: bool) -> bytes:
    return counter.to_bytes(11, "big") + (b"\x01" if last else b"\x00")


def seal(plain: Union[str, bytes], passphrase: str, work_factor: int = DEFAULT_WORK_FACTOR) -> bytes:
    """Encrypt ``plain`` under ``passphrase``."""
    if isinstance(plain, str):
        plain = plain.encode("utf-8")
    if not passphrase:
        raise ValueError("passphrase must not be empty")

    file_key = os.urandom(FILE_KEY_SIZE)
    salt = os.urandom(16)
    wrapped = ChaCha20Poly1305(_scrypt(passphrase, salt, work_factor)).encrypt(
        b"\x00" * 12, file_key, None
    )
    header = (
        INTRO
        + b"-> scrypt " + _b64encode(salt) + b" " + str(work_factor).encode() + b"\n"
        + _wrap(_b64encode(wrapped))
        + MAC_PREFIX
    )
    mac = _header_mac(file_key, header)

    nonce = os.urandom(NONCE_SIZE)
    aead = ChaCha20Poly1305(_hkdf(file_key, nonce, b"payload"))
    chunks = [plain[i:i + CHUNK_SIZE] for i in range(0, len(plain), CHUNK_SIZE)] or [b""]
    body = b"".join(
        aead.encrypt(_stream_nonce(counter, counter == len(chunks) - 1), chunk, None)
        for counter, chunk in enumerate(chunks)
    )
    return header + b" " + _b64encode(mac) + b"\n" + nonce + body


def _read_line(data: bytes, pos: int) -> Tuple[bytes, int]:
    end = data.find(b"\n", pos)
    if end == -1:
        raise DecryptionError("Decryption failed: truncated header")
    return data[pos:end], end + 1


def _parse_header(data: bytes) -> Tuple[List[Tuple[List[bytes], bytes]], bytes, bytes, int]:
    """Split an envelope into stanzas, MAC'd header bytes, MAC and payload offset."""
    if not data.startswith(INTRO):
        raise DecryptionError("Decryption failed: not an age envelope")
    stanzas = []
    pos = len(INTRO)
    while True:
        line_start = pos
        line, pos = _read_line(data, pos)
        if line.startswith(MAC_PREFIX + b" "):
            return stanzas, data[:line_start + len(MAC_PREFIX)], _b64decode(line[4:]), pos
        if not line.startswith(b"-> "):
            raise DecryptionError("Decryption failed: malformed header")
        args = line[3:].split(b" ")
        body = b""
        while True:
            body_line, pos = _read_line(data, pos)
            if len(body_line) > COLUMNS:
                raise DecryptionError("Decryption failed: malformed stanza body")
            body += body_line
            if len(body_line) < COLUMNS:
                break
        stanzas.append((args, _b64decode(body)))


def _unwrap_file_key(stanzas, passphrase: str, max_work_factor: int) -> bytes:
    # An scrypt stanza must be the only one in the header
    if len(stanzas) != 1 or not stanzas[0][0] or stanzas[0][0][0] != b"scrypt":
        raise DecryptionError("Decryption failed: not a passphrase envelope")
    args, body = stanzas[0]
    if len(args) != 3:
        raise DecryptionError("Decryption failed: malformed scrypt stanza")
    salt = _b64decode(args[1])
    if len(salt) != 16 or not args[2].isdigit():
        raise DecryptionError("Decryption failed: malformed scrypt stanza")
    work_factor = int(args[2])
    if not 0 < work_factor <= max_work_factor:
        raise DecryptionError(f"Decryption failed: work factor {work_factor} out of range")
    if len(body) != FILE_KEY_SIZE + TAG_SIZE:
        raise DecryptionError("Decryption failed: malformed scrypt stanza")
    try:
        return ChaCha20Poly1305(_scrypt(passphrase, salt, work_factor)).decrypt(
            b"\x00" * 12, body, None
        )
    except InvalidTag:
        raise DecryptionError("Decryption failed: incorrect passphrase")


def open_envelope(sealed: bytes, passphrase: str, max_work_factor: int = MAX_WORK_FACTOR) -> bytes:
    """
    Decrypt an envelope produced by :func:`seal` (or any age passphrase file).

    Raises:
        DecryptionError: wrong passphrase, tampering or a malformed envelope
    """
    sealed = bytes(sealed)
    stanzas, header, mac, pos = _parse_header(sealed)
    file_key = _unwrap_file_key(stanzas, passphrase, max_work_factor)
    if not hmac.compare_digest(_header_mac(file_key, header), mac):
        raise DecryptionError("Decryption failed: header has been modified")

    nonce = sealed[pos:pos + NONCE_SIZE]
    if len(nonce) != NONCE_SIZE:
        raise DecryptionError("Decryption failed: missing payload nonce")
    aead = ChaCha20Poly1305(_hkdf(file_key, nonce, b"payload"))

    plain = []
    pos += NONCE_SIZE
    counter = 0
    while True:
        chunk = sealed[pos:pos + CHUNK_SIZE + TAG_SIZE]
        pos += len(chunk)
        last = pos >= len(sealed)
        if len(chunk) < TAG_SIZE:
            raise DecryptionError("Decryption failed: truncated payload")
        try:
            piece = aead.decrypt(_stream_nonce(counter, last), chunk, None)
        except InvalidTag:
            raise DecryptionError("Decryption failed: payload has been modified")
        if last and counter > 0 and not piece:
            raise DecryptionError("Decryption failed: empty final chunk")
        plain.append(piece)
        if last:
            return b"".join(plain)
        counter += 1
