import io

import pytest
from starlette.datastructures import Headers, UploadFile

from pastebox.content import BINARY_TYPE, TEXT_TYPE, classify, classify_bytes, is_text, sniff
from pastebox.errors import InvalidContentError

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _upload(data: bytes, content_type=None, filename="upload"):
    headers = Headers({"content-type": content_type}) if content_type else Headers({})
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=headers)


class TestClassifyBytes:
    def test_declared_type_wins(self):
        result = classify_bytes(b"just text", "application/json")
        assert result.content_type == "application/json"
        assert result.content == b"just text"

    def test_sniffs_when_undeclared(self):
        result = classify_bytes(PNG)
        assert result.content_type == "image/png"
        assert result.content == PNG

    def test_octet_stream_utf8_is_upgraded_to_text(self):
        result = classify_bytes("naïve text\n".encode("utf-8"), BINARY_TYPE)
        assert result.content_type == TEXT_TYPE
        assert result.content == "naïve text\n"

    def test_undeclared_text_is_upgraded(self):
        result = classify_bytes(b"print('hi')\n")
        assert result.content_type == TEXT_TYPE
        assert isinstance(result.content, str)

    def test_invalid_utf8_stays_binary(self):
        data = b"\xff\xfe\xfd\x00\x80"
        result = classify_bytes(data, BINARY_TYPE)
        assert result.content_type == BINARY_TYPE
        assert result.content == data


def test_helpers():
    assert sniff(PNG) == "image/png"
    assert is_text(b"ok")
    assert not is_text(b"\xc3\x28")


@pytest.mark.asyncio
async def test_form_field_is_text():
    result = await classify("Hello")
    assert result.content == "Hello"
    assert result.content_type == TEXT_TYPE


@pytest.mark.asyncio
async def test_upload_with_declared_type():
    result = await classify(_upload(PNG, "image/png", "pic.png"))
    assert result.content_type == "image/png"
    assert result.content == PNG


@pytest.mark.asyncio
async def test_upload_without_type_is_sniffed_then_upgraded():
    result = await classify(_upload(b"notes\n", filename="notes.txt"))
    assert result.content_type == TEXT_TYPE
    assert result.content == "notes\n"


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [None, 42, [b"x"]])
async def test_other_values_are_rejected(value):
    with pytest.raises(InvalidContentError, match="Invalid content format"):
        await classify(value)
