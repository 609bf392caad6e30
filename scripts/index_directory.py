"""Mirror a local directory into a Folia namespace and share it.

Creates one folder node per directory and one upload intent per file for
the given owner, then prints the resulting tree and a share link for the
top folder.  Bytes are not uploaded; the presigned URLs are printed so a
client could PUT them.

Storage is in-memory unless ``FOLIA_S3_BUCKET`` is set, in which case
``S3BlobStore`` is built from ``FOLIA_*`` environment variables.

Usage:
    uv run python scripts/index_directory.py ./some/dir --owner u1
    uv run python scripts/index_directory.py ./some/dir --db folia.db --password s3cret
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
from pathlib import Path

from sqlalchemy.ext.asyncio import create_async_engine

from folia import Folia, FoliaConfig, MemoryBlobStore
from folia.fs.exceptions import FoliaError

SKIP_DIRS = {
    ".git", ".venv", "__pycache__", ".pytest_cache", ".mypy_cache",
    ".ruff_cache", "node_modules", ".idea",
}
SKIP_SUFFIXES = {".pyc", ".pyo", ".db", ".sqlite", ".sqlite3", ".DS_Store"}


def should_skip(path: Path) -> bool:
    """Return True if the entry should not be mirrored."""
    if path.name in SKIP_DIRS or path.name.startswith("."):
        return True
    return path.is_file() and path.suffix in SKIP_SUFFIXES


async def mirror(folia: Folia, owner_id: str, root: Path) -> str:
    """Create the tree under *root* and return the id of the top folder."""
    top = await folia.create_folder(owner_id, root.name or "root")
    pending: list[tuple[Path, str]] = [(root, top.id)]
    stats = {"folders": 1, "files": 0, "failed": 0}

    while pending:
        directory, parent_id = pending.pop()
        for entry in sorted(directory.iterdir()):
            if should_skip(entry):
                continue
            try:
                if entry.is_dir():
                    folder = await folia.create_folder(owner_id, entry.name, parent_id)
                    pending.append((entry, folder.id))
                    stats["folders"] += 1
                    continue
                mime, _ = mimetypes.guess_type(entry.name)
                intent = await folia.create_file(
                    owner_id,
                    entry.name,
                    mime or "application/octet-stream",
                    entry.stat().st_size,
                    parent_id,
                )
                stats["files"] += 1
                print(f"  PUT {intent.node.storage_key}  <- {intent.upload_url}")
            except (FoliaError, OSError) as e:
                print(f"  SKIP {entry} ({e.__class__.__name__}: {e})")
                stats["failed"] += 1

    print(
        f"\nMirrored {stats['folders']} folders, {stats['files']} files "
        f"({stats['failed']} skipped)"
    )
    return top.id


async def print_tree(folia: Folia, owner_id: str, folder_id: str, indent: int = 0) -> None:
    page_no = 1
    while True:
        page = await folia.list_nodes(owner_id, folder_id, page=page_no)
        for node in page.items:
            marker = "/" if node.node_type == "folder" else f"  ({node.size} bytes)"
            print(f"{'  ' * indent}{node.name}{marker}")
            if node.node_type == "folder":
                await print_tree(folia, owner_id, node.id, indent + 1)
        if page_no >= page.total_pages:
            break
        page_no += 1


async def run(args: argparse.Namespace) -> None:
    config = FoliaConfig.from_env()
    url = f"sqlite+aiosqlite:///{args.db}" if args.db else "sqlite+aiosqlite://"
    engine = create_async_engine(url, echo=False)
    storage = None if config.s3_bucket else MemoryBlobStore()
    folia = Folia(engine, storage=storage, config=config)

    try:
        await folia.create_tables()

        print("=" * 60)
        print(f"MIRROR: {args.directory} -> owner {args.owner}")
        print("=" * 60)
        top_id = await mirror(folia, args.owner, args.directory)

        print("\n" + "=" * 60)
        print("TREE")
        print("=" * 60)
        await print_tree(folia, args.owner, top_id)

        created = await folia.create_share(args.owner, top_id, password=args.password)
        print("\n" + "=" * 60)
        print("SHARE")
        print("=" * 60)
        print(f"  {created.share_url}")
        if created.share.has_password:
            print("  (password protected)")
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("directory", type=Path)
    parser.add_argument("--owner", default="demo-user")
    parser.add_argument("--db", help="SQLite file path (in-memory when omitted)")
    parser.add_argument("--password", help="Protect the share link with a password")
    args = parser.parse_args()

    if not args.directory.is_dir():
        parser.error(f"not a directory: {args.directory}")
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
