"""
Tracker Client

Peer-side calls to the tracker. Every call opens its own connection,
sends one frame and waits for the tracker to answer and close.
"""

import asyncio
import logging
from typing import Optional

from ..transfer.protocol import (
    PeerIdentity, RESPONSE_OK, RESPONSE_NO_PEER,
    register_request, file_request, exit_request,
    open_connection, request,
)

logger = logging.getLogger(__name__)


class TrackerClient:
    """
    Talks to one tracker.

    Connection failures are logged and reported as False/None; nothing
    here raises for network errors and nothing is retried.
    """

    def __init__(self, host: str = 'localhost', port: int = 29392,
                 timeout: float = 10.0, io_timeout: float = 30.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.io_timeout = io_timeout

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    async def register(self, file_name: str, peer_port: int) -> bool:
        """
        Advertise a file served on peer_port.

        Returns:
            True if the tracker acknowledged with OK
        """
        reply = await request(
            self.host, self.port,
            register_request(file_name, peer_port),
            timeout=self.timeout,
            io_timeout=self.io_timeout,
        )
        if reply is None:
            return False

        if reply != RESPONSE_OK:
            logger.warning(f"Unexpected reply to REGISTER from {self.address}: {reply[:64]!r}")
            return False

        logger.info(f"Registered {file_name} on port {peer_port} with tracker {self.address}")
        return True

    async def request_file(self, file_name: str) -> Optional[PeerIdentity]:
        """
        Ask the tracker for a peer holding the file.

        Returns:
            A holder's address, or None if no peer has it (or on error)
        """
        reply = await request(
            self.host, self.port,
            file_request(file_name),
            timeout=self.timeout,
            io_timeout=self.io_timeout,
        )
        if reply is None:
            return None

        if reply == RESPONSE_NO_PEER:
            logger.info(f"No peer has the requested file: {file_name}")
            return None

        try:
            return PeerIdentity.parse(reply.decode('utf-8'))
        except (UnicodeDecodeError, ValueError):
            logger.error(f"Unexpected reply to REQUEST_FILE from {self.address}: {reply[:64]!r}")
            return None

    async def exit(self, peer_port: Optional[int] = None) -> bool:
        """
        Withdraw all advertisements.

        With peer_port the tracker removes (our host, peer_port), the same
        identity REGISTER created. Without it, the tracker can only use
        this connection's ephemeral source port.

        Returns:
            True if the EXIT frame was sent
        """
        conn = await open_connection(self.host, self.port,
                                     timeout=self.timeout, io_timeout=self.io_timeout)
        if conn is None:
            return False

        try:
            await conn.send_message(exit_request(peer_port))
        except (OSError, asyncio.TimeoutError) as e:
            logger.error(f"EXIT to {self.address} failed: {e!r}")
            return False
        finally:
            await conn.close()

        logger.info(f"Sent EXIT to tracker {self.address}")
        return True
