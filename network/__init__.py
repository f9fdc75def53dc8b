"""
Airdrop Prover - Network Module

Retrieval of the published allocation artifacts, over HTTP with a local
cache or from a pre-downloaded directory.
"""

from .client import (
    TreeDataClient,
    LocalDirectorySource,
    ClientConfig,
    FetchError,
    PayloadTooLargeError,
    DEFAULT_BASE_URL,
    DEFAULT_DATA_DIR,
)

__all__ = [
    "TreeDataClient",
    "LocalDirectorySource",
    "ClientConfig",
    "FetchError",
    "PayloadTooLargeError",
    "DEFAULT_BASE_URL",
    "DEFAULT_DATA_DIR",
]
