"""
Chunk Arithmetic

Design Decision: Chunk Size
===========================

Decision: 1KB (1,024 bytes), fixed-size
- Every peer already on the network requests chunks of this size
- A chunk fits in a single request buffer on both sides
- Chunk i always starts at byte i * CHUNK_SIZE, so no manifest is needed
"""

# Chunk size: 1KB
CHUNK_SIZE = 1024


def chunk_count(file_size: int, chunk_size: int = CHUNK_SIZE) -> int:
    """Calculate number of chunks for a file of given size."""
    if file_size < 0:
        raise ValueError(f"File size must be non-negative: {file_size}")
    return (file_size + chunk_size - 1) // chunk_size

