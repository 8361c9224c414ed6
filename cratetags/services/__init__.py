"""
Service layer for cratetags.

Contains the logic that orchestrates domain objects and infrastructure:
- TagsService: per-root artifact production and merging
- ReexportResolver: dependency-set expansion through public re-exports

Services are the primary API for commands to use.
"""

from .reexport_service import ReexportResolver
from .tags_service import TagsService

__all__ = [
    'ReexportResolver',
    'TagsService',
]
