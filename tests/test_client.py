import pytest
from fastapi.testclient import TestClient

from pastebox.client import PasteClient, PasteClientError, PasteNotFound, build_parser, main, parse_response
from pastebox.envelope import INTRO
from pastebox.errors import DecryptionError

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def paste_client(app):
    return PasteClient("http://testserver", http=TestClient(app), work_factor=10)


def slug_of(fields):
    return fields["url"].rsplit("/", 1)[1]


def test_parse_response():
    fields = parse_response("url: http://x/abc\nid: 123\nsunset: 2026-01-01T00:00:00.000Z\n")
    assert fields == {"url": "http://x/abc", "id": "123", "sunset": "2026-01-01T00:00:00.000Z"}


def test_parse_response_rejects_garbage():
    with pytest.raises(PasteClientError):
        parse_response("Internal Server Error")


def test_plain_round_trip(paste_client):
    fields = paste_client.create("hello from the client", ttl=120)
    paste = paste_client.read(slug_of(fields))
    assert paste.content == b"hello from the client"
    assert paste.content_type == "text/plain"


def test_binary_round_trip(paste_client):
    data = bytes(range(256))
    fields = paste_client.create(data, content_type="application/x-raw")
    paste = paste_client.read(slug_of(fields))
    assert paste.content == data
    assert paste.content_type == "application/x-raw"


def test_encrypted_round_trip(paste_client, service):
    fields = paste_client.create("top secret", passphrase="open sesame")
    slug = slug_of(fields)

    stored = service.read(slug)
    assert stored.content.startswith(INTRO)
    assert stored.content_type == "text/plain"

    paste = paste_client.read(slug, passphrase="open sesame")
    assert paste.content == b"top secret"


def test_wrong_passphrase_is_a_decryption_error(paste_client):
    fields = paste_client.create(b"\x00binary\xff", content_type="application/x-raw", passphrase="right")
    with pytest.raises(DecryptionError):
        paste_client.read(slug_of(fields), passphrase="wrong")


def test_encrypted_update(paste_client):
    fields = paste_client.create("v1", passphrase="pw")
    assert paste_client.update(fields["id"], "v2", passphrase="pw").endswith("updated")
    assert paste_client.read(slug_of(fields), passphrase="pw").content == b"v2"


def test_delete_then_not_found(paste_client):
    fields = paste_client.create("short lived")
    assert paste_client.delete(fields["id"]) == "deleted"
    with pytest.raises(PasteNotFound):
        paste_client.read(slug_of(fields))
    with pytest.raises(PasteNotFound):
        paste_client.delete(fields["id"])


def test_label_conflict(paste_client):
    paste_client.create("first", label="~taken")
    with pytest.raises(PasteClientError, match="already exists"):
        paste_client.create("second", label="~taken")


def test_shortened_url(paste_client):
    fields = paste_client.create_url("https://example.com/a/b")
    paste = paste_client.read(slug_of(fields))
    assert paste.content_type == "url"
    assert paste.content == b"https://example.com/a/b"


def test_validation_error_surfaces_status(paste_client):
    with pytest.raises(PasteClientError) as exc:
        paste_client.create_url("nope")
    assert exc.value.status_code == 400


def test_cli_parser():
    args = build_parser().parse_args(["-p", "pw", "create", "notes.txt", "--sunset", "60", "--label", "@n"])
    assert (args.command, args.path, args.sunset, args.label, args.passphrase) == (
        "create", "notes.txt", 60, "@n", "pw"
    )


def test_undeclared_bytes_are_typed_from_content(paste_client, service):
    fields = paste_client.create(PNG, filename="pic.png")
    assert service.read(slug_of(fields)).content_type == "image/png"


def test_sealed_upload_keeps_plaintext_type(paste_client, service):
    fields = paste_client.create(PNG, passphrase="pw", filename="pic.png")
    stored = service.read(slug_of(fields))
    assert stored.content.startswith(INTRO)
    assert stored.content_type == "image/png"
    assert paste_client.read(slug_of(fields), passphrase="pw").content == PNG


def test_cli_create_sniffs_file_type(app, service, tmp_path, capsys):
    path = tmp_path / "pic.png"
    path.write_bytes(PNG)

    code = main(["--server", "http://testserver", "create", str(path)], http=TestClient(app))
    assert code == 0
    fields = parse_response(capsys.readouterr().out)
    assert service.read(slug_of(fields)).content_type == "image/png"


def test_cli_not_found_exit_code(app, capsys):
    code = main(["--server", "http://testserver", "get", "zzzzzz"], http=TestClient(app))
    assert code == 1
    assert "not found" in capsys.readouterr().err
