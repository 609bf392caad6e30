"""MemoryBlobStore — dict-backed blob store for tests and local development."""

from __future__ import annotations

from urllib.parse import quote

from folia.fs.exceptions import StorageError


class MemoryBlobStore:
    """In-process ``BlobStore`` that records every call.

    URLs are deterministic (``memory://<bucket>/<key>?...``).  ``put`` stands
    in for the client uploading bytes to a presigned URL.  Keys listed in
    ``failing_keys`` raise ``StorageError`` on delete.
    """

    def __init__(self, bucket: str = "folia") -> None:
        self.bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.failing_keys: set[str] = set()

    def put(self, key: str, data: bytes) -> None:
        self.objects[key] = data

    async def presign_upload(
        self, key: str, content_type: str, *, expires_in: int = 3600
    ) -> str:
        return (
            f"memory://{self.bucket}/{quote(key)}"
            f"?method=PUT&content_type={quote(content_type, safe='')}&expires_in={expires_in}"
        )

    async def presign_download(
        self, key: str, filename: str, *, expires_in: int = 3600
    ) -> str:
        return (
            f"memory://{self.bucket}/{quote(key)}"
            f"?method=GET&filename={quote(filename, safe='')}&expires_in={expires_in}"
        )

    async def delete(self, key: str) -> None:
        if key in self.failing_keys:
            raise StorageError(f"Simulated delete failure for {key}")
        self.objects.pop(key, None)
        self.deleted.append(key)
