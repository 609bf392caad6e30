"""S3BlobStore — presigned URLs and deletes against S3 or S3-compatible stores."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from folia.fs.exceptions import StorageError

try:
    import boto3
    from botocore.exceptions import BotoCoreError, ClientError

    _HAS_BOTO3 = True
except ImportError:  # pragma: no cover
    boto3 = None  # type: ignore[assignment]
    _HAS_BOTO3 = False

if TYPE_CHECKING:
    from folia.config import FoliaConfig

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class S3BlobStore:
    """Blob store backed by a boto3 S3 client.

    Works with AWS S3 and with S3-compatible endpoints (Cloudflare R2,
    MinIO) via *endpoint_url*.  All SDK calls are wrapped in
    ``asyncio.to_thread`` because boto3 is synchronous.

    Requires the ``boto3`` package::

        pip install folia[s3]
    """

    def __init__(
        self,
        bucket: str,
        *,
        client: Any = None,
        region_name: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("bucket is required for S3BlobStore")
        if client is None:
            if not _HAS_BOTO3:
                msg = (
                    "boto3 is required for S3BlobStore. "
                    "Install it with: pip install folia[s3]"
                )
                raise ImportError(msg)
            client = boto3.client(
                "s3",
                region_name=region_name,
                endpoint_url=endpoint_url,
            )
        self.bucket = bucket
        self._client = client

    @classmethod
    def from_config(cls, config: FoliaConfig, *, client: Any = None) -> S3BlobStore:
        """Build a store from ``FoliaConfig`` S3 settings."""
        if not config.s3_bucket:
            raise ValueError("FoliaConfig.s3_bucket is not set")
        return cls(
            config.s3_bucket,
            client=client,
            region_name=config.s3_region,
            endpoint_url=config.s3_endpoint_url,
        )

    # ------------------------------------------------------------------
    # BlobStore protocol
    # ------------------------------------------------------------------

    async def presign_upload(
        self, key: str, content_type: str, *, expires_in: int = 3600
    ) -> str:
        params = {"Bucket": self.bucket, "Key": key, "ContentType": content_type}
        return await self._presign("put_object", params, expires_in)

    async def presign_download(
        self, key: str, filename: str, *, expires_in: int = 3600
    ) -> str:
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "ResponseContentDisposition": f'attachment; filename="{quote(filename)}"',
        }
        return await self._presign("get_object", params, expires_in)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_KEY_CODES:
                logger.debug("Object %s already absent", key)
                return
            raise StorageError(f"Failed to delete object {key}: {code or 'unknown error'}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to delete object {key}") from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _presign(self, operation: str, params: dict[str, str], expires_in: int) -> str:
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                operation,
                Params=params,
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to presign {operation} for {params['Key']}") from e
