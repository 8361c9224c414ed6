"""
Domain layer for cratetags.

Contains pure domain objects with no I/O or side effects:
- SourceIdentity: RegistryPackage, GitPackage, LocalPackage
- DependencyRoot: ProjectRoot, LibraryRoot
- DependencyGraph: roots plus the source locations of every package
- TagArtifact / TagsKind: tag files and their format
- RunReport: what happened during an update
"""

from .source import (
    RegistryPackage,
    GitPackage,
    LocalPackage,
    SourceIdentity,
    ProjectRoot,
    LibraryRoot,
    DependencyRoot,
    DependencyGraph,
)
from .artifact import TagArtifact, TagsKind
from .report import MissingSourceRecord, RootResult, RootStatus, RunReport

__all__ = [
    'RegistryPackage',
    'GitPackage',
    'LocalPackage',
    'SourceIdentity',
    'ProjectRoot',
    'LibraryRoot',
    'DependencyRoot',
    'DependencyGraph',
    'TagArtifact',
    'TagsKind',
    'MissingSourceRecord',
    'RootResult',
    'RootStatus',
    'RunReport',
]
