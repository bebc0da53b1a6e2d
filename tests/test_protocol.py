import unittest

from chunkshare.transfer.protocol import (
    MAX_FRAME_SIZE, Message, MessageType, PeerIdentity,
    register_request, file_request, exit_request, chunk_request, stat_request,
)


class MessageDecodeTest(unittest.TestCase):

    def test_register(self):
        message = Message.from_bytes(b"REGISTER:report.txt:6001")
        self.assertEqual(message.type, MessageType.REGISTER)
        self.assertEqual(message.file_name, "report.txt")
        self.assertEqual(message.port, 6001)

    def test_request_file(self):
        message = Message.from_bytes(b"REQUEST_FILE:report.txt")
        self.assertEqual(message.type, MessageType.REQUEST_FILE)
        self.assertEqual(message.file_name, "report.txt")

    def test_get_chunk(self):
        message = Message.from_bytes(b"GET_CHUNK:report.txt:12")
        self.assertEqual(message.type, MessageType.GET_CHUNK)
        self.assertEqual(message.file_name, "report.txt")
        self.assertEqual(message.chunk_index, 12)

    def test_exit_without_port(self):
        message = Message.from_bytes(b"EXIT")
        self.assertEqual(message.type, MessageType.EXIT)
        self.assertIsNone(message.port)

    def test_exit_with_port(self):
        message = Message.from_bytes(b"EXIT:6001")
        self.assertEqual(message.type, MessageType.EXIT)
        self.assertEqual(message.port, 6001)

    def test_stat(self):
        message = Message.from_bytes(b"STAT:report.txt")
        self.assertEqual(message.type, MessageType.STAT)
        self.assertEqual(message.file_name, "report.txt")

    def test_trailing_newline_is_ignored(self):
        message = Message.from_bytes(b"REQUEST_FILE:report.txt\r\n")
        self.assertEqual(message.file_name, "report.txt")

    def test_frame_filling_a_whole_read_is_rejected(self):
        prefix = b"GET_CHUNK:"
        suffix = b":1"
        name = b"n" * (MAX_FRAME_SIZE - len(prefix) - len(suffix))
        self.assertIsNone(Message.from_bytes(prefix + name + suffix))
        self.assertIsNotNone(Message.from_bytes(prefix + name[1:] + suffix))

    def test_malformed_frames_are_rejected(self):
        frames = [
            b"",
            b"REGISTER:onlyonefield",
            b"REGISTER:a:6001:extra",
            b"REGISTER:a:notaport",
            b"REGISTER:a:0",
            b"REGISTER:a:70000",
            b"REQUEST_FILE",
            b"REQUEST_FILE:a:b",
            b"GET_CHUNK:a",
            b"GET_CHUNK:a:-1",
            b"GET_CHUNK:a:x",
            b"EXIT:",
            b"EXIT:abc",
            b"EXIT:1:2",
            b"HELLO:world",
            b"register:a:6001",
            b"\xff\xfe\x00",
        ]
        for frame in frames:
            with self.subTest(frame=frame):
                self.assertIsNone(Message.from_bytes(frame))


class MessageEncodeTest(unittest.TestCase):

    def test_constructors(self):
        self.assertEqual(register_request("a.txt", 6001).to_bytes(), b"REGISTER:a.txt:6001")
        self.assertEqual(file_request("a.txt").to_bytes(), b"REQUEST_FILE:a.txt")
        self.assertEqual(exit_request().to_bytes(), b"EXIT")
        self.assertEqual(exit_request(6001).to_bytes(), b"EXIT:6001")
        self.assertEqual(chunk_request("a.txt", 3).to_bytes(), b"GET_CHUNK:a.txt:3")
        self.assertEqual(stat_request("a.txt").to_bytes(), b"STAT:a.txt")

    def test_decode_of_encoded_register(self):
        message = Message.from_bytes(register_request("a.txt", 6001).to_bytes())
        self.assertEqual(message, register_request("a.txt", 6001))

    def test_separator_in_file_name_is_refused(self):
        with self.assertRaises(ValueError):
            register_request("bad:name", 6001)
        with self.assertRaises(ValueError):
            chunk_request("bad:name", 0)

    def test_longest_frame_fits_in_one_read(self):
        name = "n" * (MAX_FRAME_SIZE - 1 - len("GET_CHUNK::0"))
        self.assertEqual(len(chunk_request(name, 0).to_bytes()), MAX_FRAME_SIZE - 1)

    def test_oversized_frames_are_refused(self):
        name = "n" * MAX_FRAME_SIZE
        for build in [
            lambda: chunk_request(name, 12),
            lambda: register_request(name, 6001),
            lambda: file_request(name),
            lambda: stat_request(name),
        ]:
            with self.assertRaises(ValueError):
                build()
        with self.assertRaises(ValueError):
            Message(MessageType.GET_CHUNK, (name, "12")).to_bytes()

    def test_negative_chunk_index_is_refused(self):
        with self.assertRaises(ValueError):
            chunk_request("a.txt", -1)


class PeerIdentityTest(unittest.TestCase):

    def test_str(self):
        self.assertEqual(str(PeerIdentity("10.0.0.5", 6001)), "10.0.0.5:6001")

    def test_parse(self):
        self.assertEqual(PeerIdentity.parse("10.0.0.5:6001"), PeerIdentity("10.0.0.5", 6001))

    def test_parse_ipv6_host(self):
        self.assertEqual(PeerIdentity.parse("::1:6001"), PeerIdentity("::1", 6001))

    def test_parse_rejects_bad_input(self):
        for value in ["", "host", "host:", ":6001", "host:port", "host:99999"]:
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    PeerIdentity.parse(value)

    def test_from_connection_uses_declared_port(self):
        identity = PeerIdentity.from_connection(("10.0.0.5", 53122), 6001)
        self.assertEqual(identity, PeerIdentity("10.0.0.5", 6001))

    def test_from_connection_falls_back_to_source_port(self):
        identity = PeerIdentity.from_connection(("10.0.0.5", 53122))
        self.assertEqual(identity, PeerIdentity("10.0.0.5", 53122))

    def test_identities_are_hashable(self):
        self.assertEqual(len({PeerIdentity("a", 1), PeerIdentity("a", 1)}), 1)


if __name__ == '__main__':
    unittest.main()
