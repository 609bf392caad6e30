"""BlobStore protocol — the byte-storage capabilities Folia consumes.

Folia never moves bytes itself.  It asks the blob store for time-limited
URLs and for idempotent deletes, addressed by storage key.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStore(Protocol):
    """Async interface every blob store must implement.

    Implementations wrap SDK failures in ``folia.fs.exceptions.StorageError``.
    """

    async def presign_upload(
        self, key: str, content_type: str, *, expires_in: int = 3600
    ) -> str:
        """Return a URL the client can PUT the object's bytes to."""
        ...

    async def presign_download(
        self, key: str, filename: str, *, expires_in: int = 3600
    ) -> str:
        """Return a URL that downloads the object as *filename*."""
        ...

    async def delete(self, key: str) -> None:
        """Delete the object. Deleting an absent key is not an error."""
        ...
