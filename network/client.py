"""
Airdrop Prover - Tree Data Client

Retrieves the published allocation artifacts over HTTP and keeps a local
copy under the data directory. Given the pinned checksum, only matching
files are cached and a stale cache file is replaced by a fresh download.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from crypto.hashing import sha256


DEFAULT_BASE_URL = 'https://github.com/handshake-org/hs-tree-data/raw/master'
DEFAULT_DATA_DIR = '~/.hs-tree-data'

# 100 MiB, 10 minutes
DEFAULT_MAX_SIZE = 100 << 20
DEFAULT_TIMEOUT = 10 * 60

CHUNK_SIZE = 64 * 1024


class FetchError(Exception):
    """Base exception for artifact retrieval failures."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Failed to fetch {path}: {message}")


class PayloadTooLargeError(FetchError):
    """A download exceeded the size limit."""
    pass


@dataclass
class ClientConfig:
    """Configuration for tree data retrieval."""
    base_url: str = DEFAULT_BASE_URL
    cache_dir: str = DEFAULT_DATA_DIR
    timeout: int = DEFAULT_TIMEOUT
    max_size: int = DEFAULT_MAX_SIZE
    max_retries: int = 3
    backoff_factor: float = 1.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")
        if self.max_size <= 0:
            raise ValueError("Maximum size must be positive")


def _resolve(root: Path, path: str) -> Path:
    """Join a relative artifact path onto a root, refusing escapes."""
    target = (root / path).resolve()
    if root.resolve() not in target.parents:
        raise FetchError(path, "Path escapes the data directory")
    return target


class LocalDirectorySource:
    """Serves artifacts from a pre-populated directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()
        self.logger = logging.getLogger(__name__)

    def get(self, path: str, checksum: Optional[bytes] = None) -> bytes:
        """
        Read an artifact from disk. The checksum is left to the caller.

        Raises:
            FetchError: If the file does not exist
        """
        file = _resolve(self.directory, path)

        try:
            with open(file, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            raise FetchError(path, f"Not found in {self.directory}")


class TreeDataClient:
    """
    Cache-first HTTP source for the allocation artifacts.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL,
                 cache_dir: Union[str, Path] = DEFAULT_DATA_DIR,
                 timeout: int = DEFAULT_TIMEOUT,
                 max_size: int = DEFAULT_MAX_SIZE,
                 config: Optional[ClientConfig] = None):
        """
        Initialize client.

        Args:
            base_url: URL the artifact paths are appended to
            cache_dir: Local cache directory
            timeout: Per-request timeout in seconds
            max_size: Largest accepted download in bytes
            config: Full configuration (overrides the other arguments)
        """
        self.config = config or ClientConfig(
            base_url=base_url,
            cache_dir=str(cache_dir),
            timeout=timeout,
            max_size=max_size,
        )
        self.base_url = self.config.base_url.rstrip('/')
        self.cache_dir = Path(self.config.cache_dir).expanduser()
        self.logger = logging.getLogger(__name__)

        self.session = requests.Session()

        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=self.config.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"]
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @classmethod
    def from_config(cls, config: ClientConfig) -> 'TreeDataClient':
        return cls(config=config)

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def get(self, path: str, checksum: Optional[bytes] = None) -> bytes:
        """
        Return an artifact, downloading it on a cache miss.

        With a checksum, a cached file that does not match is discarded and
        downloaded again, and a download is only cached once it matches.

        Args:
            path: Artifact path relative to the data root
            checksum: Expected SHA-256 of the file

        Returns:
            Raw file bytes (unverified if they fail the checksum)

        Raises:
            FetchError: On HTTP or connection failure
            PayloadTooLargeError: If the download exceeds max_size
        """
        file = _resolve(self.cache_dir, path)

        if file.exists():
            with open(file, 'rb') as f:
                cached = f.read()

            if checksum is None or sha256(cached) == checksum:
                self.logger.debug(f"Cache hit: {file}")
                return cached

            self.logger.warning(f"Discarding stale cache file: {file}")
            file.unlink()

        raw = self.download(path)

        if checksum is not None and sha256(raw) != checksum:
            self.logger.error(f"Downloaded {path} does not match its checksum, not caching")
            return raw

        self._store(file, raw)
        return raw

    def download(self, path: str) -> bytes:
        """Fetch an artifact over HTTP without touching the cache."""
        url = self.url_for(path)
        self.logger.info(f"Downloading: {url}...")

        try:
            response = self.session.get(url, stream=True, timeout=self.config.timeout)
        except requests.exceptions.Timeout:
            raise FetchError(path, f"Request timed out after {self.config.timeout}s")
        except requests.exceptions.ConnectionError as e:
            raise FetchError(path, f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise FetchError(path, f"Request failed: {e}")

        try:
            if response.status_code != 200:
                raise FetchError(path, f"HTTP {response.status_code}: {response.reason}")

            length = response.headers.get('Content-Length')
            if length is not None and length.isdigit() and int(length) > self.config.max_size:
                raise PayloadTooLargeError(path, f"Content-Length {length} exceeds {self.config.max_size}")

            body = bytearray()
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    body += chunk
                    if len(body) > self.config.max_size:
                        raise PayloadTooLargeError(path, f"Body exceeds {self.config.max_size} bytes")
            except requests.exceptions.RequestException as e:
                raise FetchError(path, f"Download interrupted: {e}")

            self.logger.debug(f"Downloaded {len(body)} bytes from {url}")
            return bytes(body)
        finally:
            response.close()

    def _store(self, file: Path, raw: bytes) -> None:
        """Write a cache file via rename so readers never see a partial file."""
        file.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(dir=file.parent, prefix='.download-')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(raw)
            os.replace(tmp, file)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def close(self):
        """Close the HTTP session."""
        if self.session:
            self.session.close()
