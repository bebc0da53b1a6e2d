"""
Tracker Registry

Maps each peer identity to the files it advertises. The mapping never
leaves this class: callers get the three atomic operations plus copies
for inspection.
"""

import copy
import threading
from typing import Dict, List

from ..transfer.protocol import PeerIdentity


class TrackerRegistry:
    """
    In-memory peer/file registry guarded by a single lock.

    Every operation holds the lock for its whole duration, so no caller
    sees a half-applied update. Nothing spans more than one operation.
    """

    def __init__(self):
        self._peers: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def register(self, identity: PeerIdentity, file_name: str):
        """Append a file to a peer's advertisements, creating the entry."""
        with self._lock:
            self._peers.setdefault(str(identity), []).append(file_name)

    def find_holders(self, file_name: str) -> List[PeerIdentity]:
        """Every peer advertising the file, in registry iteration order."""
        with self._lock:
            return [
                PeerIdentity.parse(key)
                for key, files in self._peers.items()
                if file_name in files
            ]

    def remove(self, identity: PeerIdentity) -> bool:
        """
        Drop a peer and all its advertisements.

        Returns:
            True if the peer was registered
        """
        with self._lock:
            return self._peers.pop(str(identity), None) is not None

    # === Inspection ===

    def snapshot(self) -> Dict[str, List[str]]:
        """Deep copy of the current mapping."""
        with self._lock:
            return copy.deepcopy(self._peers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._peers)

    def __contains__(self, identity: PeerIdentity) -> bool:
        with self._lock:
            return str(identity) in self._peers
