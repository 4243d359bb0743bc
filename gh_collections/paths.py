"""Mapping from collection names to blob paths and contents API URLs."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from .exceptions import ValidationError

if TYPE_CHECKING:
    from .config import StoreConfig

COLLECTION_SUFFIX = ".json"


def collection_path(name: str) -> str:
    """Return the blob path for a collection name.

    Nested names ("team/tasks") map to nested paths. The configured
    path prefix is not included; backends apply it.

    Raises:
        ValidationError: If the name is empty or not a safe relative path.
    """
    if not name or not name.strip():
        raise ValidationError("name", "collection name must not be empty")
    if name.startswith("/") or name.endswith("/"):
        raise ValidationError("name", "must not start or end with '/'", name)
    if any(segment in ("", ".", "..") for segment in name.split("/")):
        raise ValidationError("name", "must not contain empty, '.' or '..' segments", name)
    if any(ord(ch) < 32 or ch == "\x7f" for ch in name):
        raise ValidationError("name", "must not contain control characters", name)
    return f"{name}{COLLECTION_SUFFIX}"


def contents_url(config: StoreConfig, path: str) -> str:
    """Build the contents API URL for a blob path.

    Example:
        >>> contents_url(config, "tasks.json")
        'https://api.github.com/repos/octocat/notes-db/contents/db/tasks.json'
    """
    full_path = quote(f"{config.path_prefix}{path}", safe="/")
    return f"{config.base_url}/repos/{config.owner}/{config.repo}/contents/{full_path}"
