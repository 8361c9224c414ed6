"""
Source identity and dependency root domain objects for cratetags.

A SourceIdentity names one package the way Cargo resolved it:
- RegistryPackage: a crate downloaded from a registry (name + version)
- GitPackage: a crate checked out from a git repository (name + repo + revision)
- LocalPackage: a crate living in a local directory (name + path)

A DependencyRoot is a unit that gets one merged tag file:
- ProjectRoot: a workspace member of the project being indexed
- LibraryRoot: a dependency acting as its own root

These objects are immutable, except for LibraryRoot.dependencies which the
re-export resolver may extend.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..exit_codes import MissingSourceError


def crate_name(name: str) -> str:
    """Name of a package as it appears in `use` paths."""
    return name.replace('-', '_')


@dataclass(frozen=True)
class RegistryPackage:
    """Crate fetched from a package registry."""
    name: str
    version: str

    @property
    def crate_name(self) -> str:
        return crate_name(self.name)

    def to_dict(self) -> Dict[str, str]:
        return {'kind': 'registry', 'name': self.name, 'version': self.version}

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


@dataclass(frozen=True)
class GitPackage:
    """Crate checked out from a git repository at a fixed revision."""
    name: str
    repository: str
    revision: str

    @property
    def crate_name(self) -> str:
        return crate_name(self.name)

    def to_dict(self) -> Dict[str, str]:
        return {
            'kind': 'git',
            'name': self.name,
            'repository': self.repository,
            'revision': self.revision,
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.repository}#{self.revision})"


@dataclass(frozen=True)
class LocalPackage:
    """Crate living in a local directory (path dependency or workspace member)."""
    name: str
    path: str

    @property
    def crate_name(self) -> str:
        return crate_name(self.name)

    def to_dict(self) -> Dict[str, str]:
        return {'kind': 'path', 'name': self.name, 'path': self.path}

    def __str__(self) -> str:
        return f"{self.name} ({self.path})"


SourceIdentity = Union[RegistryPackage, GitPackage, LocalPackage]


@dataclass
class ProjectRoot:
    """A workspace member of the project whose tags are being built."""
    name: str
    source_dir: Path
    dependencies: Tuple[SourceIdentity, ...] = ()

    @property
    def identity(self) -> LocalPackage:
        return LocalPackage(self.name, str(self.source_dir))


@dataclass
class LibraryRoot:
    """
    A dependency indexed as a root of its own.

    The library's source directory is not stored here; it is looked up
    through the DependencyGraph when needed and may be absent.
    """
    package: SourceIdentity
    dependencies: List[SourceIdentity] = field(default_factory=list)

    @property
    def identity(self) -> SourceIdentity:
        return self.package


DependencyRoot = Union[ProjectRoot, LibraryRoot]


@dataclass
class DependencyGraph:
    """
    Flattened dependency graph of a project.

    Attributes:
        roots: Dependency roots in processing order (projects first)
        sources: Source directory of every known package (may not exist on disk)
        dependencies: Direct dependencies of every known package
        extern_names: Per package, the crate names its code uses for each
            direct dependency (renamed dependencies, lib targets named
            differently from their package)
        lib_names: Library target name of packages whose crate name differs
            from their package name
    """
    roots: List[DependencyRoot] = field(default_factory=list)
    sources: Dict[SourceIdentity, Path] = field(default_factory=dict)
    dependencies: Dict[SourceIdentity, Tuple[SourceIdentity, ...]] = field(default_factory=dict)
    extern_names: Dict[SourceIdentity, Dict[str, SourceIdentity]] = field(default_factory=dict)
    lib_names: Dict[SourceIdentity, str] = field(default_factory=dict)

    def locate(self, identity: SourceIdentity) -> Path:
        """
        Get the source directory of a package.

        Raises:
            MissingSourceError: If the package is unknown or its directory is absent
        """
        if isinstance(identity, LocalPackage):
            source_dir = self.sources.get(identity, Path(identity.path))
        else:
            source_dir = self.sources.get(identity)

        if source_dir is None or not source_dir.is_dir():
            raise MissingSourceError(identity)
        return source_dir

    def dependencies_of(self, identity: SourceIdentity) -> Tuple[SourceIdentity, ...]:
        return self.dependencies.get(identity, ())

    def lib_name_of(self, identity: SourceIdentity) -> str:
        """Crate name under which other packages import `identity`'s library."""
        return self.lib_names.get(identity, identity.crate_name)

    def extern_crate(self, owner: SourceIdentity, name: str) -> Optional[SourceIdentity]:
        """Direct dependency of `owner` that its code imports as `name`."""
        return self.extern_names.get(owner, {}).get(crate_name(name))

    def find_by_crate_name(self, name: str) -> List[SourceIdentity]:
        """All known packages whose library crate is named `name`."""
        name = crate_name(name)
        return [identity for identity in self.sources if self.lib_name_of(identity) == name]


def root_label(root: DependencyRoot) -> str:
    """Human-readable name of a dependency root for logs and reports."""
    if isinstance(root, ProjectRoot):
        return root.name
    if isinstance(root, LibraryRoot):
        return str(root.package)
    raise TypeError(f"Unknown dependency root: {root!r}")


def identity_sort_key(identity: SourceIdentity) -> Tuple[str, ...]:
    """Stable ordering key across identity kinds."""
    if isinstance(identity, RegistryPackage):
        return ('registry', identity.name, identity.version)
    if isinstance(identity, GitPackage):
        return ('git', identity.name, identity.repository, identity.revision)
    if isinstance(identity, LocalPackage):
        return ('path', identity.name, identity.path)
    raise TypeError(f"Unknown source identity: {identity!r}")


def first_identity(candidates: List[SourceIdentity]) -> Optional[SourceIdentity]:
    if not candidates:
        return None
    return min(candidates, key=identity_sort_key)
