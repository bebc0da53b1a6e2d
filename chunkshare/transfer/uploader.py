"""
Chunk Uploader

Serves chunks of local files to requesting peers.
"""

import asyncio
import logging
from typing import Optional, Tuple

from .protocol import (
    Connection, Message, MessageType, RESPONSE_NO_FILE,
)
from ..file.storage import ChunkStore

logger = logging.getLogger(__name__)


class ChunkUploader:
    """
    TCP server answering GET_CHUNK and STAT requests.

    One connection carries exactly one request: the reply is written and
    the connection closed, which is how the requester knows the reply ended.
    """

    def __init__(self, store: ChunkStore, host: str = '0.0.0.0',
                 port: int = 6001, io_timeout: float = 30.0):
        self.store = store
        self.host = host
        self.port = port
        self.io_timeout = io_timeout
        self.server: Optional[asyncio.AbstractServer] = None

        # Statistics
        self.chunks_served = 0
        self.bytes_uploaded = 0
        self.requests_dropped = 0

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when started on port 0."""
        if self.server is None or not self.server.sockets:
            return self.host, self.port
        sockname = self.server.sockets[0].getsockname()
        return sockname[0], sockname[1]

    async def start(self):
        """Start the uploader server."""
        self.server = await asyncio.start_server(
            self._handle_connection,
            self.host,
            self.port
        )
        logger.info(f"Chunk uploader listening on {self.address[0]}:{self.address[1]}")

    async def stop(self):
        """Stop the uploader server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info(f"Chunk uploader stopped. Served {self.chunks_served} chunks, "
                        f"{self.bytes_uploaded:,} bytes")

    async def serve_forever(self):
        if self.server is None:
            await self.start()
        await self.server.serve_forever()

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter):
        """Handle an incoming connection."""
        conn = Connection(reader, writer, timeout=self.io_timeout)
        peer = conn.remote_address

        try:
            frame = await conn.read_frame()
            message = Message.from_bytes(frame)

            if message is None:
                self.requests_dropped += 1
                logger.debug(f"Ignoring malformed request from {peer}: {frame[:64]!r}")
            elif message.type == MessageType.GET_CHUNK:
                await self._handle_chunk_request(message, conn)
            elif message.type == MessageType.STAT:
                await self._handle_stat_request(message, conn)
            else:
                self.requests_dropped += 1
                logger.debug(f"Ignoring {message.type.value} from {peer}")

        except asyncio.TimeoutError:
            logger.warning(f"Timed out serving {peer}")
        except Exception as e:
            logger.error(f"Error handling connection from {peer}: {e!r}")
        finally:
            await conn.close()

    async def _handle_chunk_request(self, message: Message, conn: Connection):
        """Handle a chunk request."""
        file_name, index = message.file_name, message.chunk_index

        try:
            data = await self.store.read_chunk(file_name, index)
        except OSError as e:
            logger.warning(f"Cannot serve chunk {index} of {file_name}: {e}")
            return

        await conn.send(data)
        self.chunks_served += 1
        self.bytes_uploaded += len(data)
        logger.debug(f"Served chunk {index} of {file_name} ({len(data)} bytes)")

    async def _handle_stat_request(self, message: Message, conn: Connection):
        """Handle a file size request."""
        try:
            size = await self.store.file_size(message.file_name)
        except OSError as e:
            logger.warning(f"Cannot stat {message.file_name}: {e}")
            await conn.send(RESPONSE_NO_FILE)
            return

        await conn.send(str(size).encode('ascii'))

    def get_stats(self) -> dict:
        """Get uploader statistics."""
        return {
            'chunks_served': self.chunks_served,
            'bytes_uploaded': self.bytes_uploaded,
            'requests_dropped': self.requests_dropped,
            'port': self.address[1],
        }
