"""
Cache layout for cratetags.

Every package gets one tag artifact inside the shared cache root. The path
is derived from the package identity only, so two projects depending on
the same crate version share the artifact:

    <cache_dir>/cache/registry/<name>/<version>.<ext>
    <cache_dir>/cache/git/<repository>/<revision>/<name>.<ext>
    <cache_dir>/cache/path/<path>/<name>.<ext>
    <cache_dir>/rust-std-lib.<ext>

Path components are percent-encoded with no safe characters, which keeps
the mapping injective (a `/` inside a component can never be confused with
a directory separator) while staying readable for plain crate names.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple
from urllib.parse import quote

from .domain.artifact import TagsKind
from .domain.source import GitPackage, LocalPackage, RegistryPackage, SourceIdentity

# Longest encoded component kept as is; most filesystems allow 255 bytes
MAX_COMPONENT_LENGTH = 200

# Percent-encoding never produces "%%", so hashed components cannot collide
# with encoded ones
HASHED_PREFIX = "%%"

# Lone "%" is never produced by percent-encoding either
EMPTY_COMPONENT = "%"


def encode_component(value: str) -> str:
    """Encode one identity field as a single path component."""
    encoded = quote(value, safe='')
    if not encoded:
        # An empty component would vanish from the joined path
        return EMPTY_COMPONENT
    if encoded in ('.', '..'):
        encoded = encoded.replace('.', '%2E')
    if len(encoded) > MAX_COMPONENT_LENGTH:
        digest = hashlib.sha256(value.encode('utf-8', 'surrogateescape')).hexdigest()
        return HASHED_PREFIX + digest
    return encoded


def identity_components(identity: SourceIdentity) -> Tuple[str, ...]:
    """Unencoded path components identifying a package in the cache."""
    if isinstance(identity, RegistryPackage):
        return ('registry', identity.name, identity.version)
    if isinstance(identity, GitPackage):
        return ('git', identity.repository, identity.revision, identity.name)
    if isinstance(identity, LocalPackage):
        return ('path', identity.path, identity.name)
    raise TypeError(f"Unknown source identity: {identity!r}")


@dataclass(frozen=True)
class CacheLayout:
    """
    Maps packages to artifact paths inside a cache root.

    Example:
        layout = CacheLayout(Path("~/.cratetags").expanduser())
        layout.resolve(RegistryPackage("serde", "1.0.197"), TagsKind.VI)
        # ~/.cratetags/cache/registry/serde/1.0.197.vi
    """
    root: Path
    tags_file_stem: str = "cratetags"
    std_lib_name: str = "rust-std-lib"

    @property
    def cache_dir(self) -> Path:
        return self.root / 'cache'

    @property
    def state_file(self) -> Path:
        return self.root / 'state.json'

    def resolve(self, identity: SourceIdentity, kind: TagsKind) -> Path:
        """Artifact path of a package's own tags. Pure and deterministic."""
        kind_dir, *fields = identity_components(identity)
        encoded = [encode_component(field) for field in fields]
        encoded[-1] = f"{encoded[-1]}.{kind.extension}"
        return self.cache_dir.joinpath(kind_dir, *encoded)

    def std_lib_artifact(self, kind: TagsKind) -> Path:
        """Shared standard library tags, included in every merge if present."""
        return self.root / kind.file_name(self.std_lib_name)

    def output_name(self, kind: TagsKind) -> str:
        """File name of the merged tags written into each root's source directory."""
        return kind.file_name(self.tags_file_stem)

    def output_names(self) -> Tuple[str, ...]:
        """Merged tag file names of every kind."""
        return tuple(self.output_name(kind) for kind in TagsKind)
