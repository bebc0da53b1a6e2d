import threading
import unittest

from chunkshare.tracker import TrackerRegistry
from chunkshare.transfer import PeerIdentity


class TrackerRegistryTest(unittest.TestCase):

    def setUp(self):
        self.registry = TrackerRegistry()
        self.peer_a = PeerIdentity("10.0.0.1", 6001)
        self.peer_b = PeerIdentity("10.0.0.2", 6001)

    def test_register_then_find(self):
        self.registry.register(self.peer_a, "report.txt")
        self.assertEqual(self.registry.find_holders("report.txt"), [self.peer_a])

    def test_find_unknown_file(self):
        self.registry.register(self.peer_a, "report.txt")
        self.assertEqual(self.registry.find_holders("other.txt"), [])

    def test_registrations_accumulate(self):
        self.registry.register(self.peer_a, "a.txt")
        self.registry.register(self.peer_a, "b.txt")
        self.assertEqual(self.registry.snapshot(), {"10.0.0.1:6001": ["a.txt", "b.txt"]})

    def test_duplicates_are_kept(self):
        self.registry.register(self.peer_a, "a.txt")
        self.registry.register(self.peer_a, "a.txt")
        self.assertEqual(self.registry.snapshot()["10.0.0.1:6001"], ["a.txt", "a.txt"])
        self.assertEqual(self.registry.find_holders("a.txt"), [self.peer_a])

    def test_same_host_different_ports_are_distinct(self):
        self.registry.register(PeerIdentity("10.0.0.1", 6001), "a.txt")
        self.registry.register(PeerIdentity("10.0.0.1", 6002), "a.txt")
        self.assertEqual(len(self.registry), 2)

    def test_multiple_holders(self):
        self.registry.register(self.peer_a, "a.txt")
        self.registry.register(self.peer_b, "a.txt")
        self.assertCountEqual(self.registry.find_holders("a.txt"), [self.peer_a, self.peer_b])

    def test_remove_drops_every_advertisement(self):
        self.registry.register(self.peer_a, "a.txt")
        self.registry.register(self.peer_a, "b.txt")
        self.registry.register(self.peer_b, "b.txt")

        self.assertTrue(self.registry.remove(self.peer_a))

        self.assertNotIn(self.peer_a, self.registry)
        self.assertEqual(self.registry.find_holders("a.txt"), [])
        self.assertEqual(self.registry.find_holders("b.txt"), [self.peer_b])

    def test_remove_unknown_peer(self):
        self.assertFalse(self.registry.remove(self.peer_a))

    def test_snapshot_is_a_copy(self):
        self.registry.register(self.peer_a, "a.txt")
        snapshot = self.registry.snapshot()
        snapshot["10.0.0.1:6001"].append("injected.txt")
        snapshot["10.0.0.9:1"] = ["x"]
        self.assertEqual(self.registry.snapshot(), {"10.0.0.1:6001": ["a.txt"]})

    def test_concurrent_registrations_are_not_lost(self):
        peers = [PeerIdentity("10.0.1.1", 7000 + i) for i in range(50)]
        files_per_peer = 20
        start = threading.Barrier(len(peers))

        def advertise(peer):
            start.wait()
            for n in range(files_per_peer):
                self.registry.register(peer, f"file-{n}.bin")

        threads = [threading.Thread(target=advertise, args=(peer,)) for peer in peers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = self.registry.snapshot()
        self.assertEqual(len(snapshot), len(peers))
        expected = [f"file-{n}.bin" for n in range(files_per_peer)]
        for peer in peers:
            self.assertEqual(snapshot[str(peer)], expected)


if __name__ == '__main__':
    unittest.main()
