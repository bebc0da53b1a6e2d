"""
Peer Node - Main Controller

Wires a peer's pieces together behind the entry points a front end needs:
- serve: answer GET_CHUNK requests for files in the shared directory
- register / request_file / leave: talk to the tracker
- download / fetch: pull a file from another peer
"""

import logging
from pathlib import Path
from typing import Optional, List

from .config import Config
from .file import ChunkStore
from .tracker import TrackerClient
from .transfer import ChunkUploader, FileDownloader, PeerIdentity
from .transfer.downloader import ProgressCallback

logger = logging.getLogger(__name__)


class PeerNode:
    """
    One peer: a chunk server plus a tracker client and a downloader.

    Tracker and download calls run one at a time from the caller's point
    of view; only the chunk server handles connections concurrently.
    """

    def __init__(self, config: Config = None):
        """
        Initialize a peer.

        Args:
            config: Peer configuration (uses defaults if not provided)
        """
        self.config = config or Config()

        self.store = ChunkStore(self.config.shared_dir)

        self.uploader = ChunkUploader(
            store=self.store,
            host=self.config.host,
            port=self.config.transfer_port,
            io_timeout=self.config.io_timeout,
        )

        self.downloader = FileDownloader(
            store=self.store,
            connect_timeout=self.config.connect_timeout,
            io_timeout=self.config.io_timeout,
        )

        self.tracker = TrackerClient(
            host=self.config.tracker_host,
            port=self.config.tracker_port,
            timeout=self.config.connect_timeout,
            io_timeout=self.config.io_timeout,
        )

        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def server_port(self) -> int:
        """Port other peers reach our chunk server on."""
        if self._running:
            return self.uploader.address[1]
        return self.config.transfer_port

    # === Lifecycle ===

    async def start(self):
        """Start serving chunk requests."""
        if self._running:
            return
        self.store.root.mkdir(parents=True, exist_ok=True)
        await self.uploader.start()
        self._running = True

    async def stop(self):
        """Stop serving chunk requests."""
        if not self._running:
            return
        await self.uploader.stop()
        self._running = False

    async def serve(self):
        """Serve chunk requests until cancelled."""
        await self.start()
        await self.uploader.serve_forever()

    # === Tracker ===

    async def register(self, file_name: str) -> bool:
        """Advertise one file to the tracker."""
        return await self.tracker.register(file_name, self.server_port)

    async def advertise_all(self) -> List[str]:
        """
        Advertise every file in the shared directory.

        Returns:
            Names the tracker acknowledged
        """
        registered = []
        for file_name in self.store.list_files():
            if await self.register(file_name):
                registered.append(file_name)
        return registered

    async def advertise_random(self) -> Optional[str]:
        """Advertise one randomly chosen shared file."""
        file_name = self.store.pick_random_file()
        if file_name is None:
            logger.warning(f"No files found in {self.store.root}")
            return None
        if not await self.register(file_name):
            return None
        return file_name

    async def request_file(self, file_name: str) -> Optional[PeerIdentity]:
        """Ask the tracker for a peer holding the file."""
        return await self.tracker.request_file(file_name)

    async def leave(self) -> bool:
        """Withdraw all our advertisements."""
        return await self.tracker.exit(self.server_port)

    # === Transfer ===

    async def download(self, peer: PeerIdentity, file_name: str,
                       total_chunks: Optional[int] = None,
                       progress_callback: ProgressCallback = None) -> Optional[Path]:
        """
        Download a file from a specific peer into the download directory.

        total_chunks must be the exact chunk count of the remote file; when
        omitted the peer is asked for the file size.
        """
        return await self.downloader.download_file(
            peer, file_name,
            total_chunks=total_chunks,
            output_dir=self.config.download_dir,
            progress_callback=progress_callback,
        )

    async def fetch(self, file_name: str, total_chunks: Optional[int] = None,
                    progress_callback: ProgressCallback = None) -> Optional[Path]:
        """Find a holder through the tracker and download from it."""
        peer = await self.request_file(file_name)
        if peer is None:
            return None
        logger.info(f"Tracker sent {peer} for {file_name}")
        return await self.download(peer, file_name, total_chunks, progress_callback)

    # === Status ===

    def get_stats(self) -> dict:
        """Get statistics from all components."""
        return {
            'running': self._running,
            'tracker': self.tracker.address,
            'shared_files': len(self.store.list_files()),
            'upload': self.uploader.get_stats(),
            'download': self.downloader.get_stats(),
        }
