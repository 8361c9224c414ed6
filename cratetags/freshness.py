"""
Freshness checks for cached tag artifacts.

An artifact is only reused when it can be shown to match its source tree.
Anything uncertain counts as stale: a wrong "fresh" answer leaves the user
with outdated tags, a wrong "stale" answer only costs one extractor run.
"""

import hashlib
import os
from pathlib import Path
from typing import Iterable, Iterator, Optional, Set, Tuple
import logging

from .infra.stamp_store import StampStore

logger = logging.getLogger(__name__)


def walk_sources(
    source_dir: Path,
    exclude_dirs: Iterable[str] = (),
    ignore_files: Iterable[str] = ()
) -> Iterator[Tuple[str, int]]:
    """
    Yield (relative path, mtime in ns) for every file below `source_dir`.

    Directories named in `exclude_dirs` are not entered and files named in
    `ignore_files` are skipped, at any depth. Symlinks to directories are
    followed like `ctags -R` does, each directory entered at most once.
    """
    exclude = set(exclude_dirs)
    ignore = set(ignore_files)
    # Temp files of an in-flight atomic write of an ignored file
    temp_prefixes = tuple(f".{name}." for name in ignore)
    root = Path(source_dir)
    root_stat = root.stat()
    visited: Set[Tuple[int, int]] = {(root_stat.st_dev, root_stat.st_ino)}
    stack = [(root, '')]

    while stack:
        directory, prefix = stack.pop()
        with os.scandir(directory) as entries:
            for entry in entries:
                relative = f"{prefix}{entry.name}"
                if entry.is_dir():
                    if entry.name in exclude:
                        continue
                    stat = entry.stat()
                    key = (stat.st_dev, stat.st_ino)
                    if key not in visited:
                        visited.add(key)
                        stack.append((Path(entry.path), relative + '/'))
                    continue
                if entry.name in ignore:
                    continue
                if temp_prefixes and entry.name.startswith(temp_prefixes) and entry.name.endswith('.tmp'):
                    continue
                try:
                    stat = entry.stat()
                except OSError:
                    # Dangling symlink
                    stat = entry.stat(follow_symlinks=False)
                yield relative, stat.st_mtime_ns


class Freshness:
    """
    Decides whether a tag artifact is still valid for its source directory.

    A stale verdict is returned when:
    - the artifact does not exist
    - the source directory does not exist
    - a source file is newer than the artifact
    - the source files or their mtimes differ from the snapshot taken before
      the artifact was built (deletions, renames and edits made during
      extraction)

    Example:
        freshness = Freshness(StampStore(state_path), exclude_dirs=['target'])
        digest = freshness.snapshot(src)
        ...extract...
        freshness.stamp(artifact_path, digest)
        freshness.is_up_to_date(artifact_path, src)  # True until src changes
    """

    def __init__(
        self,
        stamps: StampStore,
        exclude_dirs: Iterable[str] = (),
        ignore_files: Iterable[str] = ()
    ):
        self.stamps = stamps
        self.exclude_dirs = tuple(exclude_dirs)
        self.ignore_files = tuple(ignore_files)

    def _walk(self, source_dir: Path) -> Iterator[Tuple[str, int]]:
        return walk_sources(source_dir, self.exclude_dirs, self.ignore_files)

    @staticmethod
    def _digest(files: Iterable[Tuple[str, int]]) -> str:
        hasher = hashlib.sha256()
        for path, mtime in sorted(files):
            hasher.update(path.encode('utf-8', 'surrogateescape'))
            hasher.update(b'\0')
            hasher.update(str(mtime).encode('ascii'))
            hasher.update(b'\0')
        return hasher.hexdigest()

    def snapshot(self, source_dir: Path) -> str:
        """Digest of the files of `source_dir` and their mtimes, taken before extraction."""
        return self._digest(self._walk(source_dir))

    def stamp(self, artifact: Path, digest: str) -> None:
        """Record the source digest an artifact was built from."""
        self.stamps.record_sources(artifact, digest)

    def forget(self, artifact: Path) -> None:
        self.stamps.forget(artifact)

    def is_up_to_date(self, artifact: Path, source_dir: Optional[Path]) -> bool:
        """True only if `artifact` provably reflects the current `source_dir`."""
        artifact = Path(artifact)
        if not artifact.is_file():
            return False
        if source_dir is None or not Path(source_dir).is_dir():
            return False

        recorded = self.stamps.source_digest(artifact)
        if recorded is None:
            logger.debug(f"No source stamp for {artifact}")
            return False

        artifact_mtime = artifact.stat().st_mtime_ns
        files = []
        try:
            for path, mtime in self._walk(Path(source_dir)):
                if mtime > artifact_mtime:
                    logger.debug(f"{artifact} is older than {path}")
                    return False
                files.append((path, mtime))
        except OSError as e:
            logger.debug(f"Cannot scan {source_dir}: {e}")
            return False

        if self._digest(files) != recorded:
            logger.debug(f"Sources of {source_dir} changed since {artifact} was built")
            return False
        return True
