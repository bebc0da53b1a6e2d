"""
Chunk Storage

Design Decision: Storage Strategy
==================================

Options Considered:
1. Split files into hash-named chunk files
   - Needs a manifest to reassemble
   - Doubles disk usage for shared files

2. Serve byte ranges straight out of the original file
   - No copies, no manifest
   - Chunk boundaries are implied by the chunk size

Decision: Byte ranges of the original file
- Chunk i is bytes [i * chunk_size, (i + 1) * chunk_size)
- Chunks are read from disk on every request, never cached
- Downloads are written sequentially, chunk after chunk

Storage Layout:
```
shared/               # Files this peer advertises and serves
├── report.txt
└── ...
downloads/            # Files fetched from other peers
```
"""

import os
import random
from pathlib import Path
from typing import Optional, List, AsyncIterator
from contextlib import asynccontextmanager
import aiofiles
import aiofiles.os

from .chunker import CHUNK_SIZE


class ChunkWriter:
    """Appends received chunks to an open output file."""

    def __init__(self, handle, path: Path):
        self._handle = handle
        self.path = path
        self.bytes_written = 0

    async def append(self, data: bytes) -> int:
        """Write data at the current cursor."""
        await self._handle.write(data)
        self.bytes_written += len(data)
        return len(data)


class ChunkStore:
    """
    Local storage for served and downloaded files.

    Provides:
    - Chunk reads by (file name, index)
    - Sequential writers for downloads
    - Listing of shareable files
    """

    def __init__(self, root: Path, chunk_size: int = CHUNK_SIZE):
        """
        Initialize chunk storage.

        Args:
            root: Directory holding the files to serve
            chunk_size: Bytes per chunk
        """
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive: {chunk_size}")
        self.root = Path(root)
        self.chunk_size = chunk_size

    def resolve(self, file_name: str, directory: Path = None) -> Path:
        """
        Map a file name to a path inside the storage directory.

        Raises:
            FileNotFoundError: if the name points outside the directory
        """
        base = Path(directory) if directory is not None else self.root
        base = base.resolve()
        path = (base / file_name).resolve()
        if not file_name or base not in path.parents:
            raise FileNotFoundError(f"File outside storage directory: {file_name!r}")
        return path

    # === Chunk Operations ===

    async def read_chunk(self, file_name: str, index: int) -> bytes:
        """
        Read one chunk of a file.

        A read at or past the end of the file returns b''.

        Raises:
            OSError: if the file can't be opened or seeked
        """
        if index < 0:
            raise ValueError(f"Chunk index must be non-negative: {index}")

        path = self.resolve(file_name)
        async with aiofiles.open(path, 'rb') as f:
            await f.seek(index * self.chunk_size)
            return await f.read(self.chunk_size)

    async def file_size(self, file_name: str) -> int:
        """Size of a stored file in bytes."""
        path = self.resolve(file_name)
        stat = await aiofiles.os.stat(path)
        return stat.st_size

    @asynccontextmanager
    async def open_writer(self, file_name: str,
                          directory: Path = None) -> AsyncIterator[ChunkWriter]:
        """
        Open a file for a download, truncating any previous content.

        Partial output is left in place if the body raises.
        """
        path = self.resolve(file_name, directory)
        path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(path, 'wb') as f:
            writer = ChunkWriter(f, path)
            yield writer
            await f.flush()

    # === Listing ===

    def list_files(self) -> List[str]:
        """Names of regular files directly in the storage directory."""
        if not self.root.is_dir():
            return []
        return sorted(
            entry.name for entry in os.scandir(self.root)
            if entry.is_file()
        )

    def pick_random_file(self) -> Optional[str]:
        """Pick one shareable file at random, or None if there are none."""
        files = self.list_files()
        if not files:
            return None
        return random.choice(files)
