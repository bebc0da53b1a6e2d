"""
chunkshare - tracker-coordinated peer-to-peer file sharing.

Peers advertise files to a tracker, ask it who holds a file, and fetch
that file from the holder in fixed-size chunks.
"""

__version__ = "0.1.0"
