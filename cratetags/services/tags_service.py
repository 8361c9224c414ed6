"""
Tags service for cratetags.

Builds the tag file of every dependency root of a Cargo project:

1. every package gets its own tag artifact in the shared cache, regenerated
   only when its sources changed
2. libraries get their dependency set extended with re-exported crates
3. the root's own artifact, its dependencies' artifacts and the standard
   library tags are merged into `<root source dir>/cratetags.<kind>`

Extraction runs on a bounded thread pool. Each package is extracted at most
once per run no matter how many roots depend on it.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Union
import logging

from ..cache import CacheLayout
from ..config import Settings
from ..domain.artifact import TagsKind
from ..domain.report import RootResult, RootStatus, RunReport
from ..domain.source import (
    DependencyGraph,
    DependencyRoot,
    LibraryRoot,
    ProjectRoot,
    SourceIdentity,
    root_label,
)
from ..exit_codes import ExtractorError, MergeError, MissingSourceError
from ..freshness import Freshness
from ..infra.cargo_client import CargoClient
from ..infra.ctags_client import CtagsClient
from ..infra.stamp_store import StampStore
from ..manifest import find_manifest_dir
from ..merge import merge_tags
from .reexport_service import ReexportResolver

logger = logging.getLogger(__name__)


class TagsService:
    """
    Service for keeping the tag files of a project and its dependencies up to date.

    Example:
        service = TagsService(settings)
        report = service.update_project(Path.cwd(), TagsKind.VI)
        for record in report.missing_sources:
            print(record)
    """

    def __init__(
        self,
        settings: Settings,
        extractor=None,
        cargo: Optional[CargoClient] = None,
        stamps: Optional[StampStore] = None,
    ):
        """
        Initialize TagsService.

        Args:
            settings: Resolved configuration
            extractor: Object with an `extract(source_dir, kind, destination)`
                method (creates a CtagsClient if None)
            cargo: Cargo client (creates default if None)
            stamps: Stamp store (uses `<cache_dir>/state.json` if None)
        """
        self.settings = settings
        self.layout = CacheLayout(settings.cache_dir, settings.tags_file_stem, settings.std_lib_name)
        self.extractor = extractor or CtagsClient(
            command=settings.ctags_command,
            timeout=settings.extractor_timeout,
            exclude=settings.exclude,
            extra_args=settings.extra_args,
        )
        self.cargo = cargo or CargoClient(command=settings.cargo_command)
        self.stamps = stamps or StampStore(self.layout.state_file)
        self.freshness = Freshness(
            self.stamps,
            exclude_dirs=settings.exclude,
            ignore_files=self.layout.output_names(),
        )

    def update_project(self, start_dir: Union[str, Path], kind: TagsKind) -> RunReport:
        """
        Update the tags of the Cargo project containing `start_dir`.

        Raises:
            ManifestNotFoundError: If no manifest is found above `start_dir`
            CommandError: If the dependency graph cannot be read
        """
        project_dir = find_manifest_dir(start_dir, self.settings.manifest)
        logger.debug(f"Project directory: {project_dir}")

        if self.settings.fetch_sources:
            self.cargo.fetch(project_dir)

        graph = self.cargo.dependency_graph(project_dir)
        return self.update_all(graph, kind)

    def update_all(self, graph: DependencyGraph, kind: TagsKind) -> RunReport:
        """
        Update the tag file of every root of `graph`.

        Missing sources and merge failures are collected in the report.
        A failure on a project root's own sources aborts the run.
        """
        report = RunReport(kind=kind.value)
        results: List[Optional[RootResult]] = [None] * len(graph.roots)
        jobs = self.settings.jobs

        with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix='extract') as extract_pool, \
                ThreadPoolExecutor(max_workers=jobs, thread_name_prefix='root') as root_pool:
            run = _TagsRun(self, graph, kind, report, extract_pool)
            futures = {
                root_pool.submit(run.update_root, root): index
                for index, root in enumerate(graph.roots)
            }
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except BaseException:
                root_pool.shutdown(wait=False, cancel_futures=True)
                extract_pool.shutdown(wait=False, cancel_futures=True)
                raise

        for result in results:
            if result is not None:
                report.add_root(result)

        logger.debug(f"Extracted {report.extracted} tag files, reused {report.reused}")
        return report


class _TagsRun:
    """State of one update: the shared pool and the per-package futures."""

    def __init__(
        self,
        service: TagsService,
        graph: DependencyGraph,
        kind: TagsKind,
        report: RunReport,
        pool: ThreadPoolExecutor
    ):
        self.service = service
        self.graph = graph
        self.kind = kind
        self.report = report
        self.pool = pool
        self.resolver = ReexportResolver(graph, kind)
        self._futures: Dict[SourceIdentity, Future] = {}
        self._regenerated: Set[Path] = set()
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Package artifacts
    # -------------------------------------------------------------------------

    def _produce(self, identity: SourceIdentity) -> Path:
        """Return the artifact of a package, extracting it if stale."""
        service = self.service
        source_dir = self.graph.locate(identity)
        path = service.layout.resolve(identity, self.kind)

        if service.freshness.is_up_to_date(path, source_dir):
            self.report.count_reused()
            return path

        logger.info(f"Creating tags for {identity.name} ...")
        try:
            digest = service.freshness.snapshot(source_dir)
            service.freshness.forget(path)
            service.extractor.extract(source_dir, self.kind, path)
            service.freshness.stamp(path, digest)
        except OSError as e:
            raise ExtractorError(f"Cannot create tags for {identity}: {e}", source_dir)

        with self._lock:
            self._regenerated.add(path)
        self.report.count_extracted()
        return path

    def _future(self, identity: SourceIdentity) -> Future:
        with self._lock:
            future = self._futures.get(identity)
            if future is None:
                future = self.pool.submit(self._produce, identity)
                self._futures[identity] = future
            return future

    def artifact(self, identity: SourceIdentity) -> Path:
        """
        Tag artifact of a package, waiting for its extraction.

        Raises:
            MissingSourceError: If the package's sources are not on disk
            ExtractorError: If the extractor failed
        """
        return self._future(identity).result()

    def dependency_artifacts(self, dependencies: Sequence[SourceIdentity]) -> List[Path]:
        """
        Artifacts of all dependencies, in order; waits for all of them.

        Dependencies that cannot be tagged are recorded as missing sources.
        """
        futures = [(dep, self._future(dep)) for dep in dependencies]
        paths = []
        for dep, future in futures:
            try:
                paths.append(future.result())
            except MissingSourceError as e:
                self.report.add_missing(dep, e.reason)
            except ExtractorError as e:
                logger.warning(str(e))
                self.report.add_missing(dep, str(e))
        return paths

    # -------------------------------------------------------------------------
    # Roots
    # -------------------------------------------------------------------------

    def update_root(self, root: DependencyRoot) -> RootResult:
        if isinstance(root, ProjectRoot):
            return self.update_project_root(root)
        if isinstance(root, LibraryRoot):
            return self.update_library_root(root)
        raise TypeError(f"Unknown dependency root: {root!r}")

    def update_project_root(self, root: ProjectRoot) -> RootResult:
        # Failures on the project's own sources propagate and abort the run
        own = self.artifact(root.identity)
        inputs = [own] + self.dependency_artifacts(root.dependencies)
        output = root.source_dir / self.service.layout.output_name(self.kind)
        return self.merge(root_label(root), self.with_std_lib(inputs), output, root.source_dir)

    def update_library_root(self, root: LibraryRoot) -> RootResult:
        label = root_label(root)
        try:
            own = self.artifact(root.package)
        except MissingSourceError as e:
            self.report.add_missing(root.package, e.reason)
            return RootResult(label, RootStatus.MISSING, error=e.reason)
        except ExtractorError as e:
            logger.warning(str(e))
            self.report.add_missing(root.package, str(e))
            return RootResult(label, RootStatus.MISSING, error=str(e))

        source_dir = self.graph.locate(root.package)
        self.resolver.expand(root, self.artifact, self.report)

        inputs = self.with_std_lib([own] + self.dependency_artifacts(root.dependencies))
        output = source_dir / self.service.layout.output_name(self.kind)
        if self.merge_is_current(output, inputs):
            logger.debug(f"Tags of {label} are up to date")
            return RootResult(label, RootStatus.SKIPPED, str(output), len(inputs))

        return self.merge(label, inputs, output, source_dir)

    # -------------------------------------------------------------------------
    # Merging
    # -------------------------------------------------------------------------

    def with_std_lib(self, inputs: List[Path]) -> List[Path]:
        std_lib = self.service.layout.std_lib_artifact(self.kind)
        if std_lib.is_file():
            return inputs + [std_lib]
        return inputs

    def merge_is_current(self, output: Path, inputs: List[Path]) -> bool:
        """True if `output` was merged from exactly `inputs` and none changed since."""
        if not output.is_file():
            return False
        with self._lock:
            if any(p in self._regenerated for p in inputs):
                return False
        if self.service.stamps.merge_inputs(output) != [str(p) for p in inputs]:
            return False
        try:
            output_mtime = output.stat().st_mtime_ns
            return all(p.stat().st_mtime_ns <= output_mtime for p in inputs)
        except OSError:
            return False

    def merge(self, label: str, inputs: List[Path], output: Path, source_dir: Path) -> RootResult:
        try:
            merge_tags(self.kind, inputs, output, source_dir)
        except MergeError as e:
            logger.error(f"Cannot write tags of {label}: {e}")
            return RootResult(label, RootStatus.FAILED, str(output), len(inputs), error=str(e))

        try:
            self.service.stamps.record_merge(output, inputs)
        except OSError as e:
            logger.warning(f"Cannot record merge of {output}: {e}")

        return RootResult(label, RootStatus.MERGED, str(output), len(inputs))
