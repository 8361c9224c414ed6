"""
Stamp store infrastructure for cratetags.

Persists the bookkeeping that makes cached tag artifacts trustworthy:
- the digest of the source listing each artifact was built from
- the ordered input list of each merged tag file

Writes are atomic (write to temp, then rename) and thread-safe, so worker
threads may record stamps concurrently. Losing a stamp only causes extra
work on the next run, never a stale artifact being reused.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class StampStore:
    """
    JSON file of artifact stamps with atomic writes.

    Example:
        store = StampStore(Path("~/.cratetags/state.json"))
        store.record_sources(artifact_path, digest)
        store.source_digest(artifact_path) == digest
    """

    def __init__(self, path: Path):
        """
        Initialize StampStore.

        Args:
            path: Path to the JSON state file (created on first write)
        """
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._cache: Optional[Dict[str, Any]] = None

    def _write_atomic(self, data: Dict[str, Any]) -> None:
        """Write data atomically using temp file and rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp"
        )

        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2, sort_keys=True, ensure_ascii=False)
                f.write('\n')

            os.replace(temp_path, self.path)

        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def _load(self) -> Dict[str, Any]:
        """Read the state file; caller holds the lock."""
        if self._cache is None:
            data: Dict[str, Any] = {}
            try:
                if self.path.exists():
                    with open(self.path, 'r') as f:
                        data = json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Ignoring unreadable state file {self.path}: {e}")
                data = {}
            data.setdefault('sources', {})
            data.setdefault('merges', {})
            self._cache = data
        return self._cache

    def _update(self, section: str, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[section][key] = value
            self._write_atomic(data)

    def source_digest(self, artifact: Path) -> Optional[str]:
        """Digest of the source listing `artifact` was built from, if recorded."""
        with self._lock:
            return self._load()['sources'].get(str(artifact))

    def record_sources(self, artifact: Path, digest: str) -> None:
        self._update('sources', str(artifact), digest)

    def merge_inputs(self, output: Path) -> Optional[List[str]]:
        """Ordered input paths of the last merge written to `output`, if recorded."""
        with self._lock:
            inputs = self._load()['merges'].get(str(output))
            return list(inputs) if inputs is not None else None

    def record_merge(self, output: Path, inputs: List[Path]) -> None:
        self._update('merges', str(output), [str(p) for p in inputs])

    def forget(self, artifact: Path) -> None:
        """Drop every stamp of `artifact`."""
        with self._lock:
            data = self._load()
            key = str(artifact)
            if key in data['sources'] or key in data['merges']:
                data['sources'].pop(key, None)
                data['merges'].pop(key, None)
                self._write_atomic(data)
