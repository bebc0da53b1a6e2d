"""
Chunk Downloader

Design Decision: Download Strategy
===================================

Options Considered:
1. Sequential download from a single peer
   - Simple, output can be appended in order
   - One slow peer slows the whole file

2. Parallel download from many peers
   - Faster, but needs a manifest and out-of-order writes

Decision: Sequential download from the peer the tracker picked
- Request chunk 0, 1, 2, ... one connection per chunk
- Append each chunk to the output file as it arrives
- Abort the whole download on the first connection or disk error

Chunk Count:
The number of chunks is either supplied by the caller or derived from
the remote file size (STAT). A caller-supplied count must be exact:
too low truncates the file, too high produces empty trailing chunks.

Download Flow:
1. Resolve the chunk count (caller or STAT)
2. For each index: connect, GET_CHUNK, read until close
3. Append non-empty chunks, skip empty ones
4. Flush and report
"""

import asyncio
import logging
import time
from typing import Optional, Callable
from dataclasses import dataclass, field
from pathlib import Path

from .protocol import (
    PeerIdentity, RESPONSE_NO_FILE,
    chunk_request, stat_request, request,
)
from ..file.chunker import chunk_count
from ..file.storage import ChunkStore

logger = logging.getLogger(__name__)


@dataclass
class DownloadProgress:
    """Track download progress."""
    total_chunks: int
    received_chunks: int = 0
    empty_chunks: int = 0
    bytes_downloaded: int = 0
    start_time: float = field(default_factory=time.time)
    phase: str = 'initializing'  # 'initializing', 'downloading', 'complete', 'failed'
    file_name: str = ''
    peer: str = ''

    @property
    def processed_chunks(self) -> int:
        return self.received_chunks + self.empty_chunks

    @property
    def progress(self) -> float:
        """Progress as 0.0 to 1.0."""
        if self.total_chunks == 0:
            return 1.0
        return self.processed_chunks / self.total_chunks

    @property
    def progress_percent(self) -> float:
        """Progress as percentage."""
        return self.progress * 100

    @property
    def elapsed_seconds(self) -> float:
        """Time elapsed since start."""
        return time.time() - self.start_time

    @property
    def speed_bytes_per_sec(self) -> float:
        """Download speed in bytes/second."""
        elapsed = self.elapsed_seconds
        if elapsed == 0:
            return 0
        return self.bytes_downloaded / elapsed

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'total_chunks': self.total_chunks,
            'received_chunks': self.received_chunks,
            'empty_chunks': self.empty_chunks,
            'bytes_downloaded': self.bytes_downloaded,
            'progress_percent': self.progress_percent,
            'speed_bytes_per_sec': self.speed_bytes_per_sec,
            'elapsed_seconds': self.elapsed_seconds,
            'phase': self.phase,
            'file_name': self.file_name,
            'peer': self.peer,
        }


# Progress callback type
ProgressCallback = Callable[[DownloadProgress], None]


class FileDownloader:
    """
    Downloads a file from one peer, chunk by chunk.
    """

    def __init__(self, store: ChunkStore, connect_timeout: float = 10.0,
                 io_timeout: float = 30.0):
        """
        Initialize file downloader.

        Args:
            store: Chunk size and sequential writer for output files
            connect_timeout: Seconds allowed to open each connection
            io_timeout: Seconds allowed for each read or write
        """
        self.store = store
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.last_progress: Optional[DownloadProgress] = None

        # Statistics
        self.files_downloaded = 0
        self.total_bytes = 0

    async def fetch_chunk(self, peer: PeerIdentity, file_name: str,
                          index: int) -> Optional[bytes]:
        """
        Fetch a single chunk over its own connection.

        Returns:
            Chunk data (b'' past the end of the file), or None if failed
        """
        return await request(
            peer.host, peer.port,
            chunk_request(file_name, index),
            limit=self.store.chunk_size,
            timeout=self.connect_timeout,
            io_timeout=self.io_timeout,
        )

    async def fetch_size(self, peer: PeerIdentity, file_name: str) -> Optional[int]:
        """
        Ask a peer for the size of a file.

        Returns:
            Size in bytes, or None if the peer doesn't have it or is unreachable
        """
        reply = await request(
            peer.host, peer.port,
            stat_request(file_name),
            timeout=self.connect_timeout,
            io_timeout=self.io_timeout,
        )
        if reply is None or reply == RESPONSE_NO_FILE:
            return None
        try:
            return int(reply.decode('ascii'))
        except (UnicodeDecodeError, ValueError):
            logger.error(f"Unexpected size reply from {peer}: {reply[:32]!r}")
            return None

    async def download_file(self, peer: PeerIdentity, file_name: str,
                            total_chunks: Optional[int] = None,
                            output_dir: Path = None,
                            progress_callback: ProgressCallback = None) -> Optional[Path]:
        """
        Download a complete file from a peer.

        Args:
            peer: Address of the peer's transfer server
            file_name: Name of the file on the peer
            total_chunks: Exact number of chunks to request. Must match the
                remote file; None asks the peer for the file size first.
            output_dir: Directory for the output file (default: store root)
            progress_callback: Optional callback for progress updates

        Returns:
            Path to the downloaded file, or None if the download was aborted.
            An aborted download leaves its partial output on disk.
        """
        if total_chunks is None:
            size = await self.fetch_size(peer, file_name)
            if size is None:
                logger.error(f"Could not get size of {file_name} from {peer}")
                self.last_progress = DownloadProgress(
                    total_chunks=0,
                    phase='failed',
                    file_name=file_name,
                    peer=str(peer),
                )
                if progress_callback:
                    progress_callback(self.last_progress)
                return None
            total_chunks = chunk_count(size, self.store.chunk_size)
            logger.debug(f"{file_name} is {size:,} bytes, {total_chunks} chunks")
        elif total_chunks < 0:
            raise ValueError(f"Chunk count must be non-negative: {total_chunks}")

        progress = DownloadProgress(
            total_chunks=total_chunks,
            file_name=file_name,
            peer=str(peer),
        )
        self.last_progress = progress

        try:
            async with self.store.open_writer(file_name, output_dir) as writer:
                progress.phase = 'downloading'
                logger.info(f"Downloading {file_name} from {peer}: {total_chunks} chunks")

                for index in range(total_chunks):
                    data = await self.fetch_chunk(peer, file_name, index)
                    if data is None:
                        logger.error(f"Download of {file_name} aborted at chunk {index}")
                        progress.phase = 'failed'
                        if progress_callback:
                            progress_callback(progress)
                        return None

                    if not data:
                        logger.warning(f"Received empty chunk {index} of {file_name}")
                        progress.empty_chunks += 1
                    else:
                        if len(data) < self.store.chunk_size and index < total_chunks - 1:
                            logger.warning(
                                f"Short chunk {index} of {file_name} ({len(data)} bytes) "
                                f"before the last chunk; expected chunk count may be wrong"
                            )
                        await writer.append(data)
                        progress.received_chunks += 1
                        progress.bytes_downloaded += len(data)
                        logger.debug(f"Chunk {index} written, {len(data)} bytes")

                    if progress_callback:
                        progress_callback(progress)

        except OSError as e:
            logger.error(f"Error writing {file_name}: {e}")
            progress.phase = 'failed'
            if progress_callback:
                progress_callback(progress)
            return None

        progress.phase = 'complete'
        if progress_callback:
            progress_callback(progress)

        self.files_downloaded += 1
        self.total_bytes += progress.bytes_downloaded
        logger.info(f"Download complete for {file_name}: {writer.path} "
                    f"({progress.bytes_downloaded:,} bytes)")

        return writer.path

    def get_stats(self) -> dict:
        """Get downloader statistics."""
        return {
            'files_downloaded': self.files_downloaded,
            'total_bytes': self.total_bytes,
        }
