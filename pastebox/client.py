"""
HTTP client and command line for pastebox.

With a passphrase, content is sealed before it leaves the machine and opened
after it comes back; the server only ever handles ciphertext.
"""
import argparse
import os
import sys
from typing import Dict, Optional, Union

import httpx
from pydantic import BaseModel

from pastebox.content import classify_bytes
from pastebox.envelope import DEFAULT_WORK_FACTOR, open_envelope, seal
from pastebox.errors import DecryptionError, PasteError
from pastebox.models import URL_CONTENT_TYPE

DEFAULT_SERVER = os.getenv("PASTEBOX_SERVER", "http://localhost:8000")


class PasteClientError(PasteError):
    """The server answered with an unexpected status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"server answered {status_code}: {body.strip()}")
        self.status_code = status_code


class PasteNotFound(PasteClientError):
    pass


class FetchedPaste(BaseModel):
    content: bytes
    content_type: str


def parse_response(text: str) -> Dict[str, str]:
    """Parse ``key: value`` lines from a create response."""
    fields = {}
    for line in text.splitlines():
        key, sep, value = line.partition(": ")
        if sep:
            fields[key.strip()] = value.strip()
    if "url" not in fields:
        raise PasteClientError(200, f"Unexpected response: {text}")
    return fields


class PasteClient:
    """Thin wrapper over the plain-text protocol."""

    def __init__(
        self,
        server: str = DEFAULT_SERVER,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
        work_factor: int = DEFAULT_WORK_FACTOR,
    ):
        self.server = server.rstrip("/")
        self.http = http or httpx.Client(timeout=timeout)
        self.work_factor = work_factor

    def _url(self, path: str) -> str:
        return f"{self.server}/{path.lstrip('/')}"

    @staticmethod
    def _check(response: httpx.Response) -> httpx.Response:
        if response.status_code == 404:
            raise PasteNotFound(404, response.text)
        if response.status_code >= 400:
            raise PasteClientError(response.status_code, response.text)
        return response

    def _payload(
        self,
        content: Union[str, bytes],
        content_type: Optional[str],
        passphrase: Optional[str],
        filename: str,
    ):
        """
        Build (data, files) for a form post.

        Without a declared type, bytes are typed from the plaintext the same
        way the server would, so sealing does not hide the original type.
        """
        if isinstance(content, str) and content_type is None and not passphrase:
            return {"c": content}, None
        if content_type is None:
            content_type = "text/plain" if isinstance(content, str) else classify_bytes(content).content_type
        if passphrase:
            content = seal(content, passphrase, self.work_factor)
        elif isinstance(content, str):
            content = content.encode("utf-8")
        return {}, {"c": (filename, content, content_type)}

    def create(
        self,
        content: Union[str, bytes],
        content_type: Optional[str] = None,
        ttl: Optional[int] = None,
        label: Optional[str] = None,
        passphrase: Optional[str] = None,
        filename: str = "paste",
    ) -> Dict[str, str]:
        """Create a paste; returns the parsed ``url``/``id``/``sunset`` fields."""
        data, files = self._payload(content, content_type, passphrase, filename)
        if ttl is not None:
            data["sunset"] = str(ttl)
        response = self._check(self.http.post(self._url(label or "/"), data=data, files=files))
        if "already exists" in response.text:
            raise PasteClientError(response.status_code, response.text)
        return parse_response(response.text)

    def create_url(self, url: str, ttl: Optional[int] = None) -> Dict[str, str]:
        data = {"c": url}
        if ttl is not None:
            data["sunset"] = str(ttl)
        response = self._check(self.http.post(self._url("u"), data=data))
        return parse_response(response.text)

    def read(self, slug: str, passphrase: Optional[str] = None) -> FetchedPaste:
        """
        Fetch a paste.

        Raises:
            PasteNotFound: missing or expired
            DecryptionError: passphrase given but the content does not open
        """
        response = self._check(self.http.get(self._url(slug), follow_redirects=False))
        if response.is_redirect:
            location = response.headers["location"]
            return FetchedPaste(content=location.encode("utf-8"), content_type=URL_CONTENT_TYPE)

        content_type = response.headers.get("content-type", "application/octet-stream")
        content_type = content_type.split(";")[0].strip()
        content = response.content
        if passphrase:
            content = open_envelope(content, passphrase)
        return FetchedPaste(content=content, content_type=content_type)

    def update(
        self,
        handle: str,
        content: Union[str, bytes],
        content_type: Optional[str] = None,
        passphrase: Optional[str] = None,
        secret: Optional[str] = None,
        filename: str = "paste",
    ) -> str:
        data, files = self._payload(content, content_type, passphrase, filename)
        headers = {"x-paste-secret": secret} if secret else None
        response = self._check(self.http.put(self._url(handle), data=data, files=files, headers=headers))
        return response.text.strip()

    def delete(self, handle: str, secret: Optional[str] = None) -> str:
        headers = {"x-paste-secret": secret} if secret else None
        response = self._check(self.http.delete(self._url(handle), headers=headers))
        return response.text.strip()


def _filename(path: str) -> str:
    return "paste" if path == "-" else os.path.basename(path)


def _read_input(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    with open(path, "rb") as f:
        return f.read()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pastebox", description="pastebox command line client")
    parser.add_argument("--server", default=DEFAULT_SERVER, help="Server base URL")
    parser.add_argument("-p", "--passphrase", help="Seal/open content with this passphrase")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a paste from a file or stdin")
    create.add_argument("path", nargs="?", default="-")
    create.add_argument("--sunset", type=int, help="Seconds until the paste expires")
    create.add_argument("--label", help="Requested slug, starting with @ or ~")
    create.add_argument("--type", dest="content_type", help="MIME type to declare")

    shorten = sub.add_parser("shorten", help="Create a redirect to a URL")
    shorten.add_argument("url")
    shorten.add_argument("--sunset", type=int)

    get = sub.add_parser("get", help="Print a paste to stdout")
    get.add_argument("slug")

    update = sub.add_parser("update", help="Replace the content of a paste")
    update.add_argument("handle", help="Paste id (or slug with --secret)")
    update.add_argument("path", nargs="?", default="-")
    update.add_argument("--type", dest="content_type")
    update.add_argument("--secret")

    delete = sub.add_parser("delete", help="Delete a paste")
    delete.add_argument("handle")
    delete.add_argument("--secret")
    return parser


def main(argv=None, http: Optional[httpx.Client] = None) -> int:
    args = build_parser().parse_args(argv)
    client = PasteClient(args.server, http=http)

    try:
        if args.command == "create":
            fields = client.create(
                _read_input(args.path),
                content_type=args.content_type,
                ttl=args.sunset,
                label=args.label,
                passphrase=args.passphrase,
                filename=_filename(args.path),
            )
            for key, value in fields.items():
                print(f"{key}: {value}")
        elif args.command == "shorten":
            for key, value in client.create_url(args.url, ttl=args.sunset).items():
                print(f"{key}: {value}")
        elif args.command == "get":
            paste = client.read(args.slug, passphrase=args.passphrase)
            sys.stdout.buffer.write(paste.content)
        elif args.command == "update":
            print(client.update(
                args.handle,
                _read_input(args.path),
                content_type=args.content_type,
                passphrase=args.passphrase,
                secret=args.secret,
                filename=_filename(args.path),
            ))
        elif args.command == "delete":
            print(client.delete(args.handle, secret=args.secret))
    except DecryptionError:
        print("decryption failed: wrong passphrase or corrupt paste", file=sys.stderr)
        return 2
    except PasteNotFound:
        print("not found", file=sys.stderr)
        return 1
    except PasteError as e:
        print(str(e), file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        print(f"request failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
