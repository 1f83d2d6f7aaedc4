"""Exception hierarchy shared by the scanning pipeline."""

from __future__ import annotations


class RepoLensError(RuntimeError):
    """Base class for every error raised by repolens."""


class UsageError(RepoLensError):
    """Invalid input rejected before any traversal begins."""


class ScanError(RepoLensError):
    """Raised when a scan fails after its input was validated."""


class NetworkError(RepoLensError):
    """Raised when downloading a remote archive fails."""


class ArchiveTooLargeError(NetworkError):
    """Raised when a download exceeds the configured byte limit."""


class ArchiveError(RepoLensError):
    """Raised when a downloaded archive cannot be extracted."""


class ArchiveSafetyError(ArchiveError):
    """Raised when an archive entry would escape the extraction directory."""


class DetectError(RepoLensError):
    """Recoverable detector failure, recorded as a module warning."""


class DetectIOError(DetectError):
    """A manifest could not be read."""


class DetectParseError(DetectError):
    """A manifest was malformed or exceeded the read budget."""


__all__ = [
    "ArchiveError",
    "ArchiveSafetyError",
    "ArchiveTooLargeError",
    "DetectError",
    "DetectIOError",
    "DetectParseError",
    "NetworkError",
    "RepoLensError",
    "ScanError",
    "UsageError",
]
