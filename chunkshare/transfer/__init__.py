"""
Transfer Module - Wire Protocol, Chunk Upload/Download

Handles TCP-based chunk transfers between peers.
"""

from .protocol import (
    Message, MessageType, PeerIdentity, Connection,
    open_connection, request,
)
from .uploader import ChunkUploader
from .downloader import FileDownloader, DownloadProgress

__all__ = [
    'Message',
    'MessageType',
    'PeerIdentity',
    'Connection',
    'open_connection',
    'request',
    'ChunkUploader',
    'FileDownloader',
    'DownloadProgress',
]
