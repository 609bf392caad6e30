"""FoliaConfig — tunables for the facade, resolvable from the environment."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass
class FoliaConfig:
    """Runtime settings.

    Attributes:
        presign_expiry_seconds: Lifetime of upload/download URLs.
        max_path_depth: Bound on ancestor walks; deeper chains fail closed.
        cascade_batch_size: Folders whose children are fetched per query
            during soft-delete and purge.
        default_page_size: ``limit`` used when a listing call passes none.
        max_page_size: Largest accepted ``limit``.
        create_retries: Attempts for a file upload intent when a concurrent
            writer takes the same name or storage key.
        password_hash_rounds: bcrypt cost factor for share passwords (4-31).
        share_base_url: Prefix for share URLs (``{base}/shared/{token}``).
        s3_bucket, s3_region, s3_endpoint_url: ``S3BlobStore`` settings.
    """

    presign_expiry_seconds: int = 3600
    max_path_depth: int = 256
    cascade_batch_size: int = 500
    default_page_size: int = 50
    max_page_size: int = 1000
    create_retries: int = 3
    password_hash_rounds: int = 12
    share_base_url: str = "http://localhost:3000"
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_endpoint_url: str | None = None

    def __post_init__(self) -> None:
        for name in (
            "presign_expiry_seconds",
            "max_path_depth",
            "cascade_batch_size",
            "default_page_size",
            "max_page_size",
            "create_retries",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if not 4 <= self.password_hash_rounds <= 31:
            raise ValueError("password_hash_rounds must be between 4 and 31")
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")

    @classmethod
    def from_env(
        cls,
        prefix: str = "FOLIA_",
        environ: Mapping[str, str] | None = None,
    ) -> FoliaConfig:
        """Build a config from ``{prefix}{FIELD_NAME}`` environment variables.

        Unset variables keep their defaults.  Integer fields that do not
        parse raise ``ValueError`` naming the variable.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for f in dataclasses.fields(cls):
            var = f"{prefix}{f.name.upper()}"
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            if f.type in ("int", int):
                try:
                    values[f.name] = int(raw)
                except ValueError:
                    raise ValueError(f"{var} must be an integer, got {raw!r}") from None
            else:
                values[f.name] = raw
        return cls(**values)  # type: ignore[arg-type]
