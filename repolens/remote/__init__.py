"""Remote repository acquisition."""

from .archive import ArchiveFetcher, extract_archive, materialize_remote, safe_entry_parts
from .reference import DEFAULT_REF, RemoteReference, parse_remote_reference

__all__ = [
    "ArchiveFetcher",
    "DEFAULT_REF",
    "RemoteReference",
    "extract_archive",
    "materialize_remote",
    "parse_remote_reference",
    "safe_entry_parts",
]
