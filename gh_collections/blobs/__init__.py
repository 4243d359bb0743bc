"""
Versioned blob storage backends.

All backends implement :class:`VersionedBlobStore`: whole-blob get/put
with compare-and-swap on an opaque version token.

Example:
    >>> from gh_collections.blobs import GitHubBlobStore, InMemoryBlobStore
    >>> blobs = GitHubBlobStore(config)  # remote repository
    >>> blobs = InMemoryBlobStore()      # tests and offline use
"""

from .base import BlobSnapshot, VersionedBlobStore
from .github import GitHubBlobStore
from .local import LocalBlobStore
from .memory import InMemoryBlobStore

__all__ = [
    "BlobSnapshot",
    "VersionedBlobStore",
    "GitHubBlobStore",
    "InMemoryBlobStore",
    "LocalBlobStore",
]
