"""In-memory zip archives and fake HTTP responses for remote acquisition tests."""

from __future__ import annotations

import io
import zipfile
from typing import Dict, List, Mapping, Optional
from urllib.request import Request


def zip_bytes(files: Mapping[str, str], *, prefix: str = "repo-main/") -> bytes:
    """Build a zip whose entries live under ``prefix``, the way code hosts wrap archives."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        if prefix:
            archive.writestr(zipfile.ZipInfo(prefix, date_time=(2024, 1, 1, 0, 0, 0)), b"")
        for name, content in files.items():
            info = zipfile.ZipInfo(f"{prefix}{name}", date_time=(2024, 1, 1, 0, 0, 0))
            archive.writestr(info, content)
    return buffer.getvalue()


class FakeResponse:
    """Minimal stand-in for the object returned by ``urlopen``."""

    def __init__(
        self,
        payload: bytes,
        *,
        status: int = 200,
        content_length: Optional[int] = None,
        send_length: bool = True,
    ) -> None:
        self._buffer = io.BytesIO(payload)
        self.status = status
        self.headers: Dict[str, str] = {}
        if send_length:
            length = len(payload) if content_length is None else content_length
            self.headers["Content-Length"] = str(length)

    def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None


class FakeOpener:
    """Records requests and answers each one with the same payload."""

    def __init__(self, payload: bytes, **response_kwargs: object) -> None:
        self.payload = payload
        self.response_kwargs = response_kwargs
        self.requests: List[Request] = []

    def __call__(self, request: Request, timeout: float) -> FakeResponse:
        self.requests.append(request)
        return FakeResponse(self.payload, **self.response_kwargs)  # type: ignore[arg-type]


__all__ = ["FakeOpener", "FakeResponse", "zip_bytes"]
