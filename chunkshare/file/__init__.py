"""
File Module - Chunk Arithmetic and Storage

This module handles local file operations for chunk transfers.
"""

from .chunker import CHUNK_SIZE, chunk_count
from .storage import ChunkStore, ChunkWriter

__all__ = [
    'CHUNK_SIZE',
    'chunk_count',
    'ChunkStore',
    'ChunkWriter',
]
