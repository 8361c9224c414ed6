"""
Re-export resolution for cratetags.

A library may publicly re-export items of another crate (`pub use
other::Thing;`). Jumping to `Thing` from the library's own tags only works
if the tags of `other` are merged into the library's tag file, even when
`other` is not a direct dependency (it may be re-exported through a chain of
crates). The resolver finds those crates and adds them to the library's
dependency set.
"""

import re
from collections import deque
from pathlib import Path
from typing import Callable, List, Optional
import logging

from ..domain.artifact import TagsKind
from ..domain.report import RunReport
from ..domain.source import (
    DependencyGraph,
    LibraryRoot,
    SourceIdentity,
    crate_name,
    first_identity,
)
from ..exit_codes import ExtractorError, MissingSourceError
from ..tagfile import TagFormatError, iter_entries

logger = logging.getLogger(__name__)

# `pub use foo::Bar;`, `pub use ::foo::*;`, `pub use foo as bar;`,
# `pub use foo;` and `pub extern crate foo;`
REEXPORT_PATTERN = re.compile(
    r'^\s*pub\s+(?:use\s+(?:::)?|extern\s+crate\s+)([A-Za-z_][A-Za-z0-9_]*)\s*(?:::|as\b|;|$)'
)

# Path roots that never name another crate
IGNORED_CRATES = frozenset({'self', 'super', 'crate', 'std', 'core', 'alloc'})


def reexported_crates(artifact: Path, kind: TagsKind) -> List[str]:
    """
    Names of the crates a tag file re-exports from, in order of appearance.

    Raises:
        OSError: If the tag file cannot be read
        TagFormatError: If the tag file is not of the given kind
    """
    names: List[str] = []
    for entry in iter_entries(artifact, kind):
        match = REEXPORT_PATTERN.match(entry.text)
        if not match:
            continue
        name = match.group(1)
        if name not in IGNORED_CRATES and name not in names:
            names.append(name)
    return names


class ReexportResolver:
    """
    Expands the dependency set of a LibraryRoot with re-exported crates.

    Example:
        resolver = ReexportResolver(graph, TagsKind.VI)
        added = resolver.expand(root, artifact_for=service.artifact_path, report=report)
    """

    def __init__(self, graph: DependencyGraph, kind: TagsKind):
        self.graph = graph
        self.kind = kind

    def resolve_crate(self, name: str, owner: SourceIdentity) -> Optional[SourceIdentity]:
        """
        Package behind a crate name used in `owner`'s source.

        The names `owner` imports its direct dependencies under are searched
        first, then the library names of its direct dependencies, then every
        package of the graph.
        """
        name = crate_name(name)
        extern = self.graph.extern_crate(owner, name)
        if extern is not None:
            return extern

        direct = [
            dep for dep in self.graph.dependencies_of(owner)
            if self.graph.lib_name_of(dep) == name
        ]
        if direct:
            return first_identity(direct)

        candidates = self.graph.find_by_crate_name(name)
        if len(candidates) > 1:
            logger.debug(f"Crate name '{name}' re-exported by {owner} is ambiguous: "
                         f"{', '.join(str(c) for c in candidates)}")
        return first_identity(candidates)

    def expand(
        self,
        root: LibraryRoot,
        artifact_for: Callable[[SourceIdentity], Path],
        report: RunReport
    ) -> List[SourceIdentity]:
        """
        Add every crate re-exported by `root`, directly or through other
        re-exports, to `root.dependencies`.

        Each package is scanned at most once, so re-export cycles terminate.
        Packages whose tags cannot be produced are recorded as missing and
        skipped.

        Args:
            root: Library whose dependency set is extended in place
            artifact_for: Returns the tag file of a package, producing it if
                needed; raises MissingSourceError or ExtractorError
            report: Receives missing source records

        Returns:
            The identities that were added
        """
        added: List[SourceIdentity] = []
        seen = {root.package}
        frontier = deque([root.package])

        while frontier:
            current = frontier.popleft()
            try:
                artifact = artifact_for(current)
            except MissingSourceError as e:
                report.add_missing(current, e.reason)
                continue
            except ExtractorError as e:
                report.add_missing(current, str(e))
                continue

            try:
                names = reexported_crates(artifact, self.kind)
            except (OSError, TagFormatError) as e:
                logger.warning(f"Cannot scan {artifact} for re-exports: {e}")
                continue

            for name in names:
                if crate_name(name) == self.graph.lib_name_of(current):
                    continue
                target = self.resolve_crate(name, current)
                if target is None:
                    logger.debug(f"{current} re-exports unknown crate '{name}'")
                    continue
                if target in seen:
                    continue

                seen.add(target)
                frontier.append(target)
                if target not in root.dependencies:
                    logger.debug(f"{root.package} re-exports {target} through {current}")
                    root.dependencies.append(target)
                    added.append(target)

        return added
