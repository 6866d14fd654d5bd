"""Phase 2: files on disk that never made it into the registry."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Sequence

from ...config import settings
from ...database.models import SourceType
from ...exceptions import MalformedReferenceError
from ..path_resolver import PRIVATE_SCHEME, PUBLIC_SCHEME, SYSTEM_DIRECTORIES, SYSTEM_DIRECTORY_PREFIXES
from .base import BaseScanner, Sighting

logger = logging.getLogger("asset_inventory.scanners.filesystem")


class DiskFile(NamedTuple):
    path: Path
    private: bool


def _is_denied(directory: str) -> bool:
    lowered = directory.lower()
    return lowered in SYSTEM_DIRECTORIES or lowered.startswith(SYSTEM_DIRECTORY_PREFIXES)


class FilesystemScanner(BaseScanner):
    """
    Walks the public and private file roots for files with a known extension.

    System-generated directories are pruned during the walk. A "private"
    directory directly under the public root is skipped; it is the private
    root on some layouts and would be counted twice. Every file becomes a
    loose_file candidate; the builder drops the ones already registered.
    """

    phase = "filesystem"

    def __init__(
        self,
        public_root: Optional[Path] = None,
        private_root: Optional[Path] = None,
        batch_size: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(batch_size or settings.filesystem_batch_size, **kwargs)
        self.public_root = Path(public_root) if public_root else self.resolver.public_root
        self.private_root = Path(private_root) if private_root else self.resolver.private_root
        self._files: Optional[List[DiskFile]] = None

    def _walk(self, root: Path, private: bool) -> List[DiskFile]:
        found: List[DiskFile] = []
        if not root.is_dir():
            logger.info(f"File root {root} does not exist, skipping")
            return found

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            at_top = current == root
            dirnames[:] = sorted(
                d for d in dirnames
                if not _is_denied(d) and not (at_top and not private and d == "private")
            )
            for name in sorted(filenames):
                if self.catalog.is_known_extension(name):
                    found.append(DiskFile(current / name, private))
        return found

    def _collect(self) -> List[DiskFile]:
        files = self._walk(self.public_root, private=False)
        if self.private_root.resolve() != self.public_root.resolve():
            files.extend(self._walk(self.private_root, private=True))
        return files

    async def count(self) -> int:
        self._files = await asyncio.to_thread(self._collect)
        logger.info(f"Found {len(self._files)} candidate files on disk")
        return len(self._files)

    async def fetch_chunk(self, offset: int, limit: int) -> Sequence[DiskFile]:
        if self._files is None:
            await self.count()
        return self._files[offset:offset + limit]

    def sightings_for(self, record: DiskFile) -> Iterable[Sighting]:
        try:
            root = self.private_root if record.private else self.public_root
            relative = record.path.relative_to(root).as_posix()
            uri = (PRIVATE_SCHEME if record.private else PUBLIC_SCHEME) + relative
            size = record.path.stat().st_size
        except (OSError, ValueError) as e:
            raise MalformedReferenceError(f"{record.path}: {e}") from e

        candidate = self.file_candidate(
            uri,
            SourceType.LOOSE_FILE.value,
            file_name=record.path.name,
            filesize=size,
        )
        return [Sighting(candidate)]
