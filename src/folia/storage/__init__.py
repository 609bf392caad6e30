"""Blob storage collaborators — protocol and implementations."""

from folia.storage.memory import MemoryBlobStore
from folia.storage.protocol import BlobStore
from folia.storage.s3 import S3BlobStore

__all__ = [
    "BlobStore",
    "MemoryBlobStore",
    "S3BlobStore",
]
