"""
Document Blob Storage

Uploaded admission documents (birth certificates, reports, photos) are
stored outside the database and referenced by storage key. The admissions
lifecycle only needs to know whether a key exists; uploading is handled
by the storage service the front-ends talk to directly.

Storage keys are scoped per tenant and per application:
    admissions/<school_id>/<admission_id>/<name>
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Protocol

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Read-side view of the blob store used by the admissions lifecycle."""

    async def exists(self, key: str) -> bool: ...


class LocalBlobStore:
    """
    Filesystem-backed blob store.

    Keys map to paths under `root`. Keys that would escape the root
    (absolute paths or `..` segments) never exist.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _path_for(self, key: str) -> Path | None:
        candidate = (self.root / key).resolve()
        if not candidate.is_relative_to(self.root):
            return None
        return candidate

    async def exists(self, key: str) -> bool:
        path = self._path_for(key)
        if path is None:
            logger.warning("Rejected blob key outside storage root")
            return False
        return await asyncio.to_thread(path.is_file)


def admission_key_prefix(school_id: str, admission_id: str) -> str:
    """Storage prefix every document of an application must live under."""
    return f"admissions/{school_id}/{admission_id}/"


def file_extension(filename: str) -> str:
    """Lower-case extension without the dot ('' when there is none)."""
    suffix = PurePosixPath(filename).suffix
    return suffix.lower().lstrip(".")


def is_key_within_admission(key: str, school_id: str, admission_id: str) -> bool:
    """True when the key sits under the application's prefix and has no traversal."""
    if ".." in PurePosixPath(key).parts:
        return False
    prefix = admission_key_prefix(school_id, admission_id)
    return key.startswith(prefix) and len(key) > len(prefix)
