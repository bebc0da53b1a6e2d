import unittest

from fastapi.testclient import TestClient

from chunkshare.api import create_app
from chunkshare.tracker import TrackerService
from chunkshare.transfer import PeerIdentity


class AdminApiTest(unittest.TestCase):

    def setUp(self):
        self.service = TrackerService(host='127.0.0.1', port=29392)
        self.service.registry.register(PeerIdentity('10.0.0.1', 6001), 'report.txt')
        self.service.registry.register(PeerIdentity('10.0.0.1', 6001), 'notes.md')
        self.service.registry.register(PeerIdentity('10.0.0.2', 6001), 'report.txt')
        self.client = TestClient(create_app(self.service))

    def test_root(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['name'], 'chunkshare tracker')

    def test_status(self):
        body = self.client.get('/status').json()
        self.assertFalse(body['running'])
        self.assertEqual(body['port'], 29392)
        self.assertEqual(body['peers'], 2)
        self.assertEqual(body['stats']['registrations'], 0)

    def test_peers(self):
        body = self.client.get('/peers').json()
        self.assertCountEqual(body, [
            {'peer': '10.0.0.1:6001', 'files': ['report.txt', 'notes.md']},
            {'peer': '10.0.0.2:6001', 'files': ['report.txt']},
        ])

    def test_holders(self):
        response = self.client.get('/files/report.txt/holders')
        self.assertEqual(response.status_code, 200)
        self.assertCountEqual(response.json(), ['10.0.0.1:6001', '10.0.0.2:6001'])

    def test_holders_not_found(self):
        response = self.client.get('/files/missing.txt/holders')
        self.assertEqual(response.status_code, 404)


if __name__ == '__main__':
    unittest.main()
