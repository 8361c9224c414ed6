"""
Infrastructure layer for cratetags.

Contains abstractions for external systems:
- CtagsClient: tag extractor execution
- CargoClient: dependency fetching and graph reading
- StampStore: JSON persistence of artifact stamps

These provide clean interfaces that can be mocked for testing.
"""

from .ctags_client import CtagsClient
from .cargo_client import CargoClient, parse_metadata
from .stamp_store import StampStore

__all__ = [
    'CtagsClient',
    'CargoClient',
    'parse_metadata',
    'StampStore',
]
