import tempfile
import unittest
from pathlib import Path

from click.testing import CliRunner

from chunkshare.cli import cli, format_size


class CliTest(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.shared = Path(self._tmp.name)
        self.runner = CliRunner()

    def tearDown(self):
        self._tmp.cleanup()

    def test_help_lists_commands(self):
        result = self.runner.invoke(cli, ['--help'])
        self.assertEqual(result.exit_code, 0)
        for command in ['tracker', 'serve', 'register', 'request', 'download', 'fetch', 'exit', 'files']:
            self.assertIn(command, result.output)

    def test_files(self):
        (self.shared / 'a.txt').write_bytes(b'x' * 2048)
        result = self.runner.invoke(cli, ['--shared-dir', str(self.shared), 'files'], obj={})
        self.assertEqual(result.exit_code, 0)
        self.assertIn('a.txt', result.output)
        self.assertIn('2.0 KB', result.output)

    def test_files_empty(self):
        result = self.runner.invoke(cli, ['--shared-dir', str(self.shared), 'files'], obj={})
        self.assertEqual(result.exit_code, 0)
        self.assertIn('No files', result.output)

    def test_download_rejects_bad_peer_address(self):
        result = self.runner.invoke(cli, ['download', 'not-an-address', 'a.txt'], obj={})
        self.assertEqual(result.exit_code, 2)

    def test_file_name_with_separator_is_a_usage_error(self):
        for args in [
            ['register', 'bad:name'],
            ['request', 'bad:name'],
            ['fetch', 'bad:name'],
            ['download', '127.0.0.1:6001', 'bad:name'],
        ]:
            with self.subTest(command=args[0]):
                result = self.runner.invoke(cli, ['--tracker', '127.0.0.1:1'] + args, obj={})
                self.assertEqual(result.exit_code, 2)
                self.assertIn('FILE_NAME', result.output)

    def test_bad_tracker_address(self):
        result = self.runner.invoke(cli, ['--tracker', 'nope', 'files'], obj={})
        self.assertEqual(result.exit_code, 2)

    def test_format_size(self):
        self.assertEqual(format_size(512), '512.0 B')
        self.assertEqual(format_size(1536), '1.5 KB')


if __name__ == '__main__':
    unittest.main()
