"""
Run report domain objects for cratetags.

Collects what happened during a tags update so it can be shown at the end:
which roots were merged, skipped or failed, and which dependencies had no
source code on disk.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .source import SourceIdentity


class RootStatus(Enum):
    """Outcome of processing one dependency root."""
    MERGED = "merged"
    SKIPPED = "skipped"
    FAILED = "failed"
    MISSING = "missing_source"


@dataclass(frozen=True)
class MissingSourceRecord:
    """A package whose source directory could not be used."""
    identity: SourceIdentity
    reason: str = "source directory not found"

    def to_dict(self) -> Dict[str, Any]:
        result = {'type': 'missing_source', 'reason': self.reason}
        result.update(self.identity.to_dict())
        return result

    def __str__(self) -> str:
        return str(self.identity)


@dataclass
class RootResult:
    """Result of processing one dependency root."""
    name: str
    status: RootStatus
    tags_file: Optional[str] = None
    inputs: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'type': 'root',
            'name': self.name,
            'status': self.status.value,
            'inputs': self.inputs,
        }
        if self.tags_file:
            result['tags_file'] = self.tags_file
        if self.error:
            result['error'] = self.error
        return result


@dataclass
class RunReport:
    """
    Summary of a tags update across all dependency roots.

    Safe to update from several worker threads.
    """
    kind: str = "vi"
    extracted: int = 0
    reused: int = 0
    roots: List[RootResult] = field(default_factory=list)
    _missing: Dict[SourceIdentity, MissingSourceRecord] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def missing_sources(self) -> List[MissingSourceRecord]:
        with self._lock:
            return list(self._missing.values())

    @property
    def failed_roots(self) -> List[RootResult]:
        return [r for r in self.roots if r.status == RootStatus.FAILED]

    @property
    def merged(self) -> int:
        return sum(1 for r in self.roots if r.status == RootStatus.MERGED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.roots if r.status == RootStatus.SKIPPED)

    @property
    def success(self) -> bool:
        """True if no root failed. Missing sources do not count as failures."""
        return not self.failed_roots

    def add_missing(self, identity: SourceIdentity, reason: str) -> None:
        """Record a missing source; the first reason for an identity wins."""
        with self._lock:
            if identity not in self._missing:
                self._missing[identity] = MissingSourceRecord(identity, reason)

    def add_root(self, result: RootResult) -> None:
        with self._lock:
            self.roots.append(result)

    def count_extracted(self) -> None:
        with self._lock:
            self.extracted += 1

    def count_reused(self) -> None:
        with self._lock:
            self.reused += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'kind': self.kind,
            'roots': len(self.roots),
            'merged': self.merged,
            'skipped': self.skipped,
            'failed': len(self.failed_roots),
            'extracted': self.extracted,
            'reused': self.reused,
            'missing_sources': len(self._missing),
        }
