"""
Tracker Module - Peer/File Rendezvous

Registry of who advertises what, the TCP service in front of it, and
the peer-side client.
"""

from .registry import TrackerRegistry
from .service import TrackerService
from .client import TrackerClient

__all__ = [
    'TrackerRegistry',
    'TrackerService',
    'TrackerClient',
]
