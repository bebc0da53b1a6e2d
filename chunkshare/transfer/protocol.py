"""
Wire Protocol

Design Decision: Framing
========================

Options Considered:
1. Length-prefixed binary header + payload
   - Robust, supports many messages per connection
   - Not what existing peers and trackers speak

2. Delimited ASCII text, one message per connection
   - Trivial to debug with netcat
   - End of response is signalled by the server closing the connection

Decision: Delimited ASCII, one request per connection
- Fields separated by ':'
- Requests carry a type tag, responses do not
- Malformed requests are dropped without a reply

Message Format:
```
REGISTER:<fileName>:<peerPort>     -> OK
REQUEST_FILE:<fileName>            -> <host>:<port> | NO_PEER
EXIT[:<peerPort>]                  -> (nothing)
GET_CHUNK:<fileName>:<chunkIndex>  -> raw bytes (0..chunk size)
STAT:<fileName>                    -> <size> | NO_FILE
```

File names and ports must not contain ':', and a request frame must be
shorter than MAX_FRAME_SIZE bytes.
"""

import asyncio
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

SEPARATOR = ':'

# A request frame is read with a single read of at most this many bytes.
# A read that fills the buffer may have been cut short, so encoded frames
# must be strictly shorter.
MAX_FRAME_SIZE = 1024

# Untagged responses
RESPONSE_OK = b'OK'
RESPONSE_NO_PEER = b'NO_PEER'
RESPONSE_NO_FILE = b'NO_FILE'


class MessageType(Enum):
    """Request message types."""
    # Tracker operations
    REGISTER = "REGISTER"
    REQUEST_FILE = "REQUEST_FILE"
    EXIT = "EXIT"

    # Peer operations
    GET_CHUNK = "GET_CHUNK"
    STAT = "STAT"


# Accepted field counts (tag included) after splitting on ':'
_FIELD_COUNTS = {
    MessageType.REGISTER: (3,),
    MessageType.REQUEST_FILE: (2,),
    MessageType.EXIT: (1, 2),
    MessageType.GET_CHUNK: (3,),
    MessageType.STAT: (2,),
}


def _is_decimal(value: str) -> bool:
    return value.isascii() and value.isdigit()


def _parse_port(value: str) -> Optional[int]:
    if not _is_decimal(value):
        return None
    port = int(value)
    if not 0 < port < 65536:
        return None
    return port


def _check_field(value: str, what: str):
    if SEPARATOR in value:
        raise ValueError(f"{what} must not contain '{SEPARATOR}': {value!r}")


@dataclass(frozen=True)
class PeerIdentity:
    """
    The reachable address of a peer's transfer server.

    The host always comes from the connection, the port from whatever the
    peer declared (or the connection itself when nothing was declared).
    """
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}{SEPARATOR}{self.port}"

    @classmethod
    def parse(cls, value: str) -> 'PeerIdentity':
        """Parse a "host:port" string."""
        host, sep, port = value.strip().rpartition(SEPARATOR)
        parsed_port = _parse_port(port)
        if not sep or not host or parsed_port is None:
            raise ValueError(f"Invalid peer address: {value!r}")
        return cls(host=host, port=parsed_port)

    @classmethod
    def from_connection(cls, peername: Tuple, port: Optional[int] = None) -> 'PeerIdentity':
        """
        Build an identity from a socket's remote address.

        Args:
            peername: Result of getpeername() ((host, port, ...) tuple)
            port: Declared port overriding the connection's source port
        """
        host, conn_port = peername[0], peername[1]
        return cls(host=host, port=conn_port if port is None else port)


@dataclass(frozen=True)
class Message:
    """A decoded request frame."""
    type: MessageType
    fields: Tuple[str, ...] = ()

    # === Accessors ===

    @property
    def file_name(self) -> str:
        return self.fields[0]

    @property
    def port(self) -> Optional[int]:
        """Declared peer port (REGISTER, EXIT:<port>)."""
        if self.type == MessageType.REGISTER:
            return int(self.fields[1])
        if self.type == MessageType.EXIT and self.fields:
            return int(self.fields[0])
        return None

    @property
    def chunk_index(self) -> int:
        return int(self.fields[1])

    # === Encoding ===

    def to_bytes(self) -> bytes:
        """
        Serialize message to a single ASCII frame.

        Raises:
            ValueError: if the frame would not fit in one server read
        """
        data = SEPARATOR.join((self.type.value,) + self.fields).encode('utf-8')
        if len(data) >= MAX_FRAME_SIZE:
            raise ValueError(
                f"{self.type.value} frame is {len(data)} bytes, "
                f"limit is {MAX_FRAME_SIZE - 1}"
            )
        return data

    @classmethod
    def from_bytes(cls, data: bytes) -> Optional['Message']:
        """
        Decode a frame.

        Returns:
            The message, or None if the frame has the wrong shape or fills
            a whole read
        """
        if len(data) >= MAX_FRAME_SIZE:
            return None

        try:
            text = data.decode('utf-8').strip()
        except UnicodeDecodeError:
            return None

        parts = text.split(SEPARATOR)
        try:
            msg_type = MessageType(parts[0])
        except ValueError:
            return None

        if len(parts) not in _FIELD_COUNTS[msg_type]:
            return None

        fields = tuple(parts[1:])

        if msg_type == MessageType.REGISTER:
            if _parse_port(fields[1]) is None:
                return None
        elif msg_type == MessageType.EXIT and fields:
            if _parse_port(fields[0]) is None:
                return None
        elif msg_type == MessageType.GET_CHUNK:
            if not _is_decimal(fields[1]):
                return None

        return cls(type=msg_type, fields=fields)


# === Constructors ===

def _checked(message: Message) -> Message:
    message.to_bytes()
    return message


def register_request(file_name: str, port: int) -> Message:
    _check_field(file_name, "file name")
    return _checked(Message(MessageType.REGISTER, (file_name, str(int(port)))))


def file_request(file_name: str) -> Message:
    _check_field(file_name, "file name")
    return _checked(Message(MessageType.REQUEST_FILE, (file_name,)))


def exit_request(port: Optional[int] = None) -> Message:
    if port is None:
        return Message(MessageType.EXIT)
    return Message(MessageType.EXIT, (str(int(port)),))


def chunk_request(file_name: str, index: int) -> Message:
    _check_field(file_name, "file name")
    if index < 0:
        raise ValueError(f"Chunk index must be non-negative: {index}")
    return _checked(Message(MessageType.GET_CHUNK, (file_name, str(index))))


def stat_request(file_name: str) -> Message:
    _check_field(file_name, "file name")
    return _checked(Message(MessageType.STAT, (file_name,)))


class Connection:
    """
    One TCP connection carrying a single request/response exchange.

    Every read, write and close is bounded by the timeout so a stalled
    remote cannot pin a handler forever.
    """

    def __init__(self, reader: asyncio.StreamReader,
                 writer: asyncio.StreamWriter, timeout: float = 30.0):
        self.reader = reader
        self.writer = writer
        self.timeout = timeout
        self._closed = False

    @property
    def remote_address(self) -> Tuple[str, int]:
        """Get remote peer address."""
        return self.writer.get_extra_info('peername')

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, data: bytes):
        """Write raw bytes."""
        if self._closed:
            raise ConnectionError("Connection closed")
        self.writer.write(data)
        await asyncio.wait_for(self.writer.drain(), timeout=self.timeout)

    async def send_message(self, message: Message):
        await self.send(message.to_bytes())

    async def read_frame(self) -> bytes:
        """Read one request frame (a single read, at most MAX_FRAME_SIZE)."""
        return await asyncio.wait_for(
            self.reader.read(MAX_FRAME_SIZE),
            timeout=self.timeout
        )

    async def read_until_eof(self, limit: int) -> bytes:
        """
        Read a response until the remote closes.

        At most `limit` bytes are kept; anything beyond is left unread.
        """
        buffer = bytearray()
        while len(buffer) < limit:
            data = await asyncio.wait_for(
                self.reader.read(limit - len(buffer)),
                timeout=self.timeout
            )
            if not data:
                break
            buffer.extend(data)
        return bytes(buffer)

    async def close(self):
        """Close the connection."""
        if self._closed:
            return
        self._closed = True
        self.writer.close()
        try:
            await asyncio.wait_for(self.writer.wait_closed(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Error while closing connection: {e}")


async def open_connection(host: str, port: int,
                          timeout: float = 10.0,
                          io_timeout: float = 30.0) -> Optional[Connection]:
    """
    Connect to a tracker or peer.

    Returns:
        Connection, or None if connection failed
    """
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout
        )
        return Connection(reader, writer, timeout=io_timeout)
    except (OSError, asyncio.TimeoutError) as e:
        logger.error(f"Failed to connect to {host}:{port}: {e!r}")
        return None


async def request(host: str, port: int, message: Message,
                  limit: int = MAX_FRAME_SIZE,
                  timeout: float = 10.0,
                  io_timeout: float = 30.0) -> Optional[bytes]:
    """
    Send one request and read the reply until the remote closes.

    Returns:
        The raw reply (possibly empty), or None on any connection error
    """
    conn = await open_connection(host, port, timeout=timeout, io_timeout=io_timeout)
    if conn is None:
        return None

    try:
        await conn.send_message(message)
        return await conn.read_until_eof(limit)
    except (OSError, asyncio.TimeoutError) as e:
        logger.error(f"{message.type.value} to {host}:{port} failed: {e!r}")
        return None
    finally:
        await conn.close()
