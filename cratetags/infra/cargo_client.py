"""
Cargo client infrastructure for cratetags.

Wraps the two cargo commands cratetags needs:
- `cargo fetch` downloads the sources of all dependencies
- `cargo metadata` describes the resolved dependency graph

The metadata is turned into a DependencyGraph: every workspace member
becomes a ProjectRoot, every other package a LibraryRoot.
"""

import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging

from ..domain.source import (
    DependencyGraph,
    GitPackage,
    LibraryRoot,
    LocalPackage,
    ProjectRoot,
    RegistryPackage,
    SourceIdentity,
    crate_name,
    identity_sort_key,
)
from ..exit_codes import CommandError

logger = logging.getLogger(__name__)


def package_identity(package: Dict[str, Any]) -> SourceIdentity:
    """
    Identity of a package entry of `cargo metadata`.

    Args:
        package: One element of the metadata's "packages" list

    Returns:
        RegistryPackage, GitPackage or LocalPackage
    """
    name = package['name']
    version = package.get('version', '')
    source = package.get('source')

    if source is None:
        return LocalPackage(name, str(Path(package['manifest_path']).parent))

    if source.startswith('git+'):
        url, _, revision = source[len('git+'):].partition('#')
        repository = url.split('?', 1)[0]
        return GitPackage(name, repository, revision or version)

    return RegistryPackage(name, version)


# Target kinds that produce a crate other packages can `use`
LIBRARY_KINDS = frozenset({'lib', 'rlib', 'dylib', 'proc-macro'})


def lib_target_name(package: Dict[str, Any]) -> Optional[str]:
    """Crate name of a package's library target, if it has one."""
    for target in package.get('targets', []):
        if LIBRARY_KINDS.intersection(target.get('kind', [])):
            return crate_name(target['name'])
    return None


def parse_metadata(metadata: Dict[str, Any]) -> DependencyGraph:
    """
    Build a DependencyGraph from parsed `cargo metadata --format-version 1` output.

    Workspace members come first, in workspace order; libraries follow in a
    stable order. The extern crate names of resolved dependencies (renames
    and library target names) are kept for re-export resolution.
    """
    identities: Dict[str, SourceIdentity] = {}
    graph = DependencyGraph()

    for package in metadata.get('packages', []):
        identity = package_identity(package)
        identities[package['id']] = identity
        graph.sources[identity] = Path(package['manifest_path']).parent
        lib_name = lib_target_name(package)
        if lib_name is not None and lib_name != identity.crate_name:
            graph.lib_names[identity] = lib_name

    resolve = metadata.get('resolve') or {}
    for node in resolve.get('nodes', []):
        identity = identities.get(node['id'])
        if identity is None:
            continue
        deps: List[SourceIdentity] = []
        externs: Dict[str, SourceIdentity] = {}
        for entry in node.get('deps', []):
            dep = identities.get(entry['pkg'])
            if dep is None:
                continue
            if dep not in deps:
                deps.append(dep)
            if entry.get('name'):
                externs.setdefault(crate_name(entry['name']), dep)
        if not node.get('deps'):
            for dep_id in node.get('dependencies', []):
                dep = identities.get(dep_id)
                if dep is not None and dep not in deps:
                    deps.append(dep)
        graph.dependencies[identity] = tuple(deps)
        if externs:
            graph.extern_names[identity] = externs


    members = metadata.get('workspace_members', [])
    member_identities = set()
    for member_id in members:
        identity = identities.get(member_id)
        if identity is None:
            continue
        member_identities.add(identity)
        graph.roots.append(ProjectRoot(
            name=identity.name,
            source_dir=graph.sources[identity],
            dependencies=graph.dependencies_of(identity),
        ))

    libraries = sorted(
        (identity for identity in identities.values() if identity not in member_identities),
        key=identity_sort_key,
    )
    for identity in libraries:
        graph.roots.append(LibraryRoot(
            package=identity,
            dependencies=list(graph.dependencies_of(identity)),
        ))

    return graph


class CargoClient:
    """
    Abstraction over cargo commands.

    Example:
        client = CargoClient()
        client.fetch(project_dir)
        graph = client.dependency_graph(project_dir)
    """

    def __init__(self, command: str = "cargo", timeout: int = 600):
        self.command = command
        self.timeout = timeout

    def _run(self, args: List[str], cwd: Path) -> Tuple[Optional[str], int, str]:
        """
        Run a cargo command.

        Returns:
            Tuple of (stdout, returncode, stderr); returncode -1 if cargo could not run
        """
        cmd = [self.command] + args
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
            return result.stdout, result.returncode, result.stderr.strip()
        except subprocess.TimeoutExpired:
            logger.warning(f"Cargo command timed out: {' '.join(cmd)}")
            return None, -1, "timed out"
        except OSError as e:
            logger.error(f"Cargo command failed: {' '.join(cmd)} - {e}")
            return None, -1, str(e)

    def fetch(self, project_dir: Path) -> bool:
        """
        Download the sources of all dependencies.

        Failures are only logged: sources already on disk remain usable and
        the missing ones show up in the final report.
        """
        logger.info("Fetching sources of dependencies ...")
        _, code, stderr = self._run(['fetch'], project_dir)
        if code != 0:
            logger.warning(f"'{self.command} fetch' failed: {stderr}")
            return False
        return True

    def metadata(self, project_dir: Path) -> Dict[str, Any]:
        """
        Raw `cargo metadata` output.

        Raises:
            CommandError: If cargo fails or prints something that is not JSON
        """
        output, code, stderr = self._run(['metadata', '--format-version', '1'], project_dir)
        if code != 0 or output is None:
            raise CommandError(f"'{self.command} metadata' failed in '{project_dir}': {stderr}")
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise CommandError(f"Cannot parse '{self.command} metadata' output: {e}")

    def dependency_graph(self, project_dir: Path) -> DependencyGraph:
        return parse_metadata(self.metadata(project_dir))
