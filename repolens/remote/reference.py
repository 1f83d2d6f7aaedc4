"""Parsing of remote repository references such as ``owner/repo/tree/main/apps/web``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import UsageError

DEFAULT_REF = "HEAD"
DEFAULT_HOST = "github.com"


@dataclass(frozen=True)
class RemoteReference:
    """A repository on a code host, pinned to a revision and optional subdirectory."""

    host: str
    owner: str
    repo: str
    ref: str = DEFAULT_REF
    subdir: Optional[str] = None

    @property
    def display(self) -> str:
        """Identity string recorded as the report's ``repoRoot``."""
        identity = f"{self.owner}/{self.repo}@{self.ref}"
        if self.host != DEFAULT_HOST:
            identity = f"{self.host}/{identity}"
        if self.subdir:
            identity = f"{identity}/{self.subdir}"
        return identity

    def archive_url(self, template: str) -> str:
        return template.format(owner=self.owner, repo=self.repo, ref=self.ref, host=self.host)


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix) :] if value.startswith(prefix) else value


def parse_remote_reference(text: str, *, default_host: str = DEFAULT_HOST) -> RemoteReference:
    """Parse ``owner/repo``, ``host/owner/repo`` or a full URL, with optional ``/tree/<ref>/<subdir>``."""
    value = (text or "").strip()
    if not value:
        raise UsageError("Remote reference must not be empty")

    for scheme in ("https://", "http://"):
        value = _strip_prefix(value, scheme)
    value = _strip_prefix(value, "www.").rstrip("/")

    host = default_host
    parts = [part for part in value.split("/") if part]
    # A leading segment containing a dot is a host name, since owners cannot contain one.
    if parts and "." in parts[0] and len(parts) >= 3:
        host = parts[0].lower()
        parts = parts[1:]

    if len(parts) < 2:
        raise UsageError(f"Remote reference must look like owner/repo: {text!r}")

    owner = parts[0]
    repo = parts[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo or owner in {".", ".."} or repo in {".", ".."}:
        raise UsageError(f"Remote reference must look like owner/repo: {text!r}")

    ref = DEFAULT_REF
    subdir: Optional[str] = None
    rest = parts[2:]
    if rest:
        if rest[0] != "tree" or len(rest) < 2:
            raise UsageError(f"Unsupported remote reference path: {text!r}")
        ref = rest[1].strip() or DEFAULT_REF
        if len(rest) > 2:
            segments = rest[2:]
            if any(segment in {".", ".."} for segment in segments):
                raise UsageError(f"Remote subdirectory must not traverse upwards: {text!r}")
            subdir = "/".join(segments)

    return RemoteReference(host=host, owner=owner, repo=repo, ref=ref, subdir=subdir)


__all__ = ["DEFAULT_HOST", "DEFAULT_REF", "RemoteReference", "parse_remote_reference"]
