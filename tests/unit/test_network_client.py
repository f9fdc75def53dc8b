"""
Airdrop Prover - Tree Data Client Unit Tests

Tests the cache-first HTTP source and the local directory source without
touching the network.
"""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

import requests

from crypto.hashing import sha256
from network.client import (
    ClientConfig,
    FetchError,
    LocalDirectorySource,
    PayloadTooLargeError,
    TreeDataClient,
)


def make_response(body=b'', status_code=200, reason='OK', headers=None, chunk_size=4):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.headers = headers or {}
    response.iter_content.return_value = [
        body[i:i + chunk_size] for i in range(0, len(body), chunk_size)
    ]
    return response


class TestClientConfig(unittest.TestCase):
    """Test client configuration validation."""

    def test_defaults(self):
        config = ClientConfig()
        self.assertEqual(config.timeout, 600)
        self.assertEqual(config.max_size, 100 << 20)
        self.assertTrue(config.base_url.startswith('https://'))

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            ClientConfig(timeout=0)

        with self.assertRaises(ValueError):
            ClientConfig(max_size=-1)


class TestTreeDataClient(unittest.TestCase):
    """Test downloading and caching."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.cache_dir = Path(self.temp_dir.name)
        self.client = TreeDataClient(
            base_url='https://example.invalid/data/',
            cache_dir=self.cache_dir,
            timeout=5,
            max_size=64,
        )

    def tearDown(self):
        self.client.close()
        self.temp_dir.cleanup()

    def test_url_for(self):
        self.assertEqual(self.client.url_for('nonces/001.bin'),
                         'https://example.invalid/data/nonces/001.bin')

    def test_cache_hit(self):
        (self.cache_dir / 'tree.bin').write_bytes(b'cached')

        with patch.object(self.client.session, 'get') as mock_get:
            self.assertEqual(self.client.get('tree.bin'), b'cached')
            mock_get.assert_not_called()

    def test_download_populates_cache(self):
        response = make_response(b'nonce bucket data')

        with patch.object(self.client.session, 'get', return_value=response) as mock_get:
            data = self.client.get('nonces/007.bin')

        self.assertEqual(data, b'nonce bucket data')
        self.assertEqual((self.cache_dir / 'nonces' / '007.bin').read_bytes(), data)
        mock_get.assert_called_once_with('https://example.invalid/data/nonces/007.bin',
                                         stream=True, timeout=5)
        response.close.assert_called_once()

        # No temporary files left behind
        self.assertEqual(sorted(p.name for p in (self.cache_dir / 'nonces').iterdir()), ['007.bin'])

    def test_second_get_uses_cache(self):
        response = make_response(b'faucet')

        with patch.object(self.client.session, 'get', return_value=response) as mock_get:
            self.client.get('faucet.bin')
            self.client.get('faucet.bin')

        self.assertEqual(mock_get.call_count, 1)

    def test_checksum_mismatch_is_not_cached(self):
        response = make_response(b'corrupted')

        with patch.object(self.client.session, 'get', return_value=response):
            data = self.client.get('faucet.bin', checksum=sha256(b'faucet'))

        self.assertEqual(data, b'corrupted')
        self.assertFalse((self.cache_dir / 'faucet.bin').exists())

    def test_checksum_match_is_cached(self):
        with patch.object(self.client.session, 'get', return_value=make_response(b'faucet')):
            self.client.get('faucet.bin', checksum=sha256(b'faucet'))

        self.assertEqual((self.cache_dir / 'faucet.bin').read_bytes(), b'faucet')

    def test_stale_cache_is_downloaded_again(self):
        (self.cache_dir / 'faucet.bin').write_bytes(b'stale')

        with patch.object(self.client.session, 'get', return_value=make_response(b'faucet')) as mock_get:
            data = self.client.get('faucet.bin', checksum=sha256(b'faucet'))

        self.assertEqual(data, b'faucet')
        mock_get.assert_called_once()
        self.assertEqual((self.cache_dir / 'faucet.bin').read_bytes(), b'faucet')

    def test_download_does_not_cache(self):
        with patch.object(self.client.session, 'get', return_value=make_response(b'x')):
            self.client.download('tree.bin')

        self.assertFalse((self.cache_dir / 'tree.bin').exists())

    def test_http_error(self):
        response = make_response(status_code=404, reason='Not Found')

        with patch.object(self.client.session, 'get', return_value=response):
            with self.assertRaises(FetchError) as context:
                self.client.get('tree.bin')

        self.assertIn('HTTP 404: Not Found', str(context.exception))
        self.assertEqual(context.exception.path, 'tree.bin')
        self.assertFalse((self.cache_dir / 'tree.bin').exists())
        response.close.assert_called_once()

    def test_content_length_too_large(self):
        response = make_response(b'small', headers={'Content-Length': '65'})

        with patch.object(self.client.session, 'get', return_value=response):
            with self.assertRaises(PayloadTooLargeError):
                self.client.get('tree.bin')

        response.iter_content.assert_not_called()

    def test_body_too_large(self):
        response = make_response(b'a' * 65)

        with patch.object(self.client.session, 'get', return_value=response):
            with self.assertRaises(PayloadTooLargeError):
                self.client.get('tree.bin')

        self.assertFalse((self.cache_dir / 'tree.bin').exists())

    def test_body_at_limit(self):
        with patch.object(self.client.session, 'get', return_value=make_response(b'a' * 64)):
            self.assertEqual(len(self.client.get('tree.bin')), 64)

    def test_timeout(self):
        with patch.object(self.client.session, 'get', side_effect=requests.exceptions.Timeout()):
            with self.assertRaises(FetchError) as context:
                self.client.get('tree.bin')

        self.assertIn('timed out', str(context.exception))

    def test_connection_error(self):
        error = requests.exceptions.ConnectionError('refused')

        with patch.object(self.client.session, 'get', side_effect=error):
            with self.assertRaises(FetchError) as context:
                self.client.get('tree.bin')

        self.assertIn('Connection error', str(context.exception))

    def test_interrupted_body(self):
        response = make_response()
        response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError('reset')

        with patch.object(self.client.session, 'get', return_value=response):
            with self.assertRaises(FetchError):
                self.client.get('tree.bin')

        response.close.assert_called_once()

    def test_path_escape(self):
        with self.assertRaises(FetchError):
            self.client.get('../outside.bin')

    def test_from_config(self):
        config = ClientConfig(base_url='http://localhost:8080', cache_dir=str(self.cache_dir))
        client = TreeDataClient.from_config(config)

        self.assertIs(client.config, config)
        self.assertEqual(client.url_for('tree.bin'), 'http://localhost:8080/tree.bin')
        client.close()


class TestLocalDirectorySource(unittest.TestCase):
    """Test the offline source."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        (self.root / 'nonces').mkdir()
        (self.root / 'nonces' / '000.bin').write_bytes(b'bucket')

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_get(self):
        source = LocalDirectorySource(self.root)
        self.assertEqual(source.get('nonces/000.bin'), b'bucket')

    def test_missing_file(self):
        with self.assertRaises(FetchError) as context:
            LocalDirectorySource(self.root).get('tree.bin')

        self.assertEqual(context.exception.path, 'tree.bin')

    def test_path_escape(self):
        with self.assertRaises(FetchError):
            LocalDirectorySource(self.root / 'nonces').get('../nonces/../../etc/passwd')


if __name__ == '__main__':
    unittest.main()
