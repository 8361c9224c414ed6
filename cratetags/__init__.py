"""
cratetags - ctags/etags for a Cargo project and all of its dependencies.

cratetags keeps one tag file per crate: the project's workspace members and
every dependency get a merged tag file in their source directory covering
their own symbols, those of their direct dependencies, those of crates they
publicly re-export, and the Rust standard library.

Quick Start:
    from pathlib import Path
    from cratetags import TagsService, TagsKind, load_config, resolve_settings

    settings = resolve_settings(load_config())
    report = TagsService(settings).update_project(Path.cwd(), TagsKind.VI)
    for record in report.missing_sources:
        print("missing:", record)

Domain Objects:
    RegistryPackage, GitPackage, LocalPackage - package identities
    ProjectRoot, LibraryRoot - units that get one merged tag file
    TagArtifact, TagsKind - tag files and their format
    RunReport - outcome of an update

Services:
    TagsService - extraction, caching and merging
    ReexportResolver - re-export driven dependency expansion
"""

__version__ = "0.1.0"

# Domain objects
from .domain import (
    RegistryPackage,
    GitPackage,
    LocalPackage,
    ProjectRoot,
    LibraryRoot,
    DependencyGraph,
    TagArtifact,
    TagsKind,
    MissingSourceRecord,
    RunReport,
)

# Building blocks
from .cache import CacheLayout
from .freshness import Freshness
from .manifest import find_manifest_dir
from .merge import merge_tags

# Services
from .services import TagsService, ReexportResolver

# Configuration
from .config import Settings, load_config, resolve_settings

__all__ = [
    # Version
    "__version__",
    # Domain objects
    "RegistryPackage",
    "GitPackage",
    "LocalPackage",
    "ProjectRoot",
    "LibraryRoot",
    "DependencyGraph",
    "TagArtifact",
    "TagsKind",
    "MissingSourceRecord",
    "RunReport",
    # Building blocks
    "CacheLayout",
    "Freshness",
    "find_manifest_dir",
    "merge_tags",
    # Services
    "TagsService",
    "ReexportResolver",
    # Configuration
    "Settings",
    "load_config",
    "resolve_settings",
]
