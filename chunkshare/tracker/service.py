"""
Tracker Service

Rendezvous server: peers advertise files with REGISTER, ask who holds a
file with REQUEST_FILE and withdraw with EXIT. Each connection carries
one request; the tracker answers (or not) and closes it.
"""

import asyncio
import logging
import random
from typing import Optional, Tuple

from .registry import TrackerRegistry
from ..transfer.protocol import (
    Connection, Message, MessageType, PeerIdentity,
    RESPONSE_OK, RESPONSE_NO_PEER,
)

logger = logging.getLogger(__name__)


class TrackerService:
    """
    TCP front end for a TrackerRegistry.

    Peer identity is built from the connection's host plus the port the
    peer declares. A bare EXIT has no declared port and falls back to the
    connection's source port, which only matches a registration if the
    peer happened to register from its server port.
    """

    def __init__(self, registry: TrackerRegistry = None,
                 host: str = '0.0.0.0', port: int = 29392,
                 io_timeout: float = 30.0,
                 rng: random.Random = None):
        self.registry = registry if registry is not None else TrackerRegistry()
        self.host = host
        self.port = port
        self.io_timeout = io_timeout
        self.rng = rng or random.Random()
        self.server: Optional[asyncio.AbstractServer] = None

        # Statistics
        self.registrations = 0
        self.file_requests = 0
        self.exits = 0
        self.frames_dropped = 0

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when started on port 0."""
        if self.server is None or not self.server.sockets:
            return self.host, self.port
        sockname = self.server.sockets[0].getsockname()
        return sockname[0], sockname[1]

    @property
    def is_running(self) -> bool:
        return self.server is not None

    async def start(self):
        """Start the tracker server."""
        self.server = await asyncio.start_server(
            self._handle_connection,
            self.host,
            self.port
        )
        logger.info(f"Tracker running on {self.address[0]}:{self.address[1]}")

    async def stop(self):
        """Stop the tracker server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Tracker stopped")

    async def serve_forever(self):
        if self.server is None:
            await self.start()
        await self.server.serve_forever()

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter):
        """Handle one request."""
        conn = Connection(reader, writer, timeout=self.io_timeout)
        peername = conn.remote_address

        try:
            frame = await conn.read_frame()
            message = Message.from_bytes(frame)

            if message is None:
                self.frames_dropped += 1
                logger.debug(f"Ignoring malformed frame from {peername}: {frame[:64]!r}")
            elif message.type == MessageType.REGISTER:
                await self._handle_register(message, conn)
            elif message.type == MessageType.REQUEST_FILE:
                await self._handle_request_file(message, conn)
            elif message.type == MessageType.EXIT:
                self._handle_exit(message, conn)
            else:
                self.frames_dropped += 1
                logger.debug(f"Ignoring {message.type.value} from {peername}")

        except asyncio.TimeoutError:
            logger.warning(f"Timed out waiting on {peername}")
        except Exception as e:
            logger.error(f"Error handling connection from {peername}: {e!r}")
        finally:
            await conn.close()

    async def _handle_register(self, message: Message, conn: Connection):
        identity = PeerIdentity.from_connection(conn.remote_address, message.port)
        self.registry.register(identity, message.file_name)
        self.registrations += 1
        logger.info(f"Peer {identity} has file: {message.file_name}")
        await conn.send(RESPONSE_OK)

    async def _handle_request_file(self, message: Message, conn: Connection):
        self.file_requests += 1
        holders = self.registry.find_holders(message.file_name)
        if not holders:
            logger.debug(f"No peer has {message.file_name}")
            await conn.send(RESPONSE_NO_PEER)
            return

        chosen = self.rng.choice(holders)
        logger.debug(f"Sending {chosen} for {message.file_name} "
                     f"({len(holders)} holder(s))")
        await conn.send(str(chosen).encode('utf-8'))

    def _handle_exit(self, message: Message, conn: Connection):
        identity = PeerIdentity.from_connection(conn.remote_address, message.port)
        self.exits += 1
        if self.registry.remove(identity):
            logger.info(f"Peer {identity} has exited")
        else:
            logger.info(f"EXIT from unregistered peer {identity}")

    def get_stats(self) -> dict:
        """Get tracker statistics."""
        return {
            'peers': len(self.registry),
            'registrations': self.registrations,
            'file_requests': self.file_requests,
            'exits': self.exits,
            'frames_dropped': self.frames_dropped,
        }
