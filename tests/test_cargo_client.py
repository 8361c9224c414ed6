"""Tests for CargoClient and `cargo metadata` parsing."""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from cratetags.domain import GitPackage, LibraryRoot, LocalPackage, ProjectRoot, RegistryPackage
from cratetags.exit_codes import CommandError
from cratetags.infra.cargo_client import CargoClient, package_identity, parse_metadata

APP_ID = 'path+file:///work/app#0.1.0'
SERDE_ID = 'registry+https://github.com/rust-lang/crates.io-index#serde@1.0.197'
TOOL_ID = 'git+https://github.com/org/tool?branch=main#abc123'
HELPER_ID = 'path+file:///work/helper#0.1.0'

REGISTRY_SRC = '/home/user/.cargo/registry/src/index.crates.io-6f17d22bba15001f'

METADATA = {
    'packages': [
        {
            'name': 'app',
            'version': '0.1.0',
            'id': APP_ID,
            'source': None,
            'manifest_path': '/work/app/Cargo.toml',
        },
        {
            'name': 'serde',
            'version': '1.0.197',
            'id': SERDE_ID,
            'source': 'registry+https://github.com/rust-lang/crates.io-index',
            'manifest_path': f'{REGISTRY_SRC}/serde-1.0.197/Cargo.toml',
        },
        {
            'name': 'tool',
            'version': '0.3.0',
            'id': TOOL_ID,
            'source': 'git+https://github.com/org/tool?branch=main#abc123',
            'manifest_path': '/home/user/.cargo/git/checkouts/tool-1a2b/abc123/Cargo.toml',
        },
        {
            'name': 'helper',
            'version': '0.1.0',
            'id': HELPER_ID,
            'source': None,
            'manifest_path': '/work/helper/Cargo.toml',
        },
    ],
    'workspace_members': [APP_ID],
    'resolve': {
        'root': APP_ID,
        'nodes': [
            {'id': APP_ID, 'deps': [
                {'name': 'serde', 'pkg': SERDE_ID},
                {'name': 'tool', 'pkg': TOOL_ID},
                {'name': 'helper', 'pkg': HELPER_ID},
            ]},
            {'id': SERDE_ID, 'deps': []},
            {'id': TOOL_ID, 'dependencies': [SERDE_ID]},
            {'id': HELPER_ID, 'deps': []},
        ],
    },
}

SERDE = RegistryPackage('serde', '1.0.197')
TOOL = GitPackage('tool', 'https://github.com/org/tool', 'abc123')
HELPER = LocalPackage('helper', '/work/helper')


class TestPackageIdentity:

    def test_registry(self):
        assert package_identity(METADATA['packages'][1]) == SERDE

    def test_git(self):
        assert package_identity(METADATA['packages'][2]) == TOOL

    def test_path(self):
        assert package_identity(METADATA['packages'][3]) == HELPER

    def test_git_without_revision_uses_version(self):
        package = {'name': 'x', 'version': '1.2.0', 'source': 'git+https://g/x', 'manifest_path': '/x/Cargo.toml'}
        assert package_identity(package) == GitPackage('x', 'https://g/x', '1.2.0')


class TestParseMetadata:

    def test_workspace_members_are_project_roots(self):
        graph = parse_metadata(METADATA)

        project = graph.roots[0]
        assert isinstance(project, ProjectRoot)
        assert project.name == 'app'
        assert project.source_dir == Path('/work/app')
        assert project.dependencies == (SERDE, TOOL, HELPER)

    def test_other_packages_are_library_roots(self):
        graph = parse_metadata(METADATA)

        libraries = graph.roots[1:]
        assert all(isinstance(root, LibraryRoot) for root in libraries)
        # git < path < registry
        assert [root.package for root in libraries] == [TOOL, HELPER, SERDE]
        assert libraries[0].dependencies == [SERDE]

    def test_sources(self):
        graph = parse_metadata(METADATA)
        assert graph.sources[SERDE] == Path(f'{REGISTRY_SRC}/serde-1.0.197')
        assert graph.sources[HELPER] == Path('/work/helper')

    def test_without_resolve(self):
        metadata = dict(METADATA, resolve=None)
        graph = parse_metadata(metadata)
        assert graph.roots[0].dependencies == ()
        assert len(graph.roots) == 4

    def test_empty(self):
        assert parse_metadata({}).roots == []

    def test_extern_names_and_lib_targets(self):
        lib_id = 'registry+https://github.com/rust-lang/crates.io-index#hashing@0.1.0'
        md5_id = 'registry+https://github.com/rust-lang/crates.io-index#md-5@0.10.0'
        json_id = 'registry+https://github.com/rust-lang/crates.io-index#serde_json@1.0.0'
        registry = 'registry+https://github.com/rust-lang/crates.io-index'
        metadata = {
            'packages': [
                {'name': 'hashing', 'version': '0.1.0', 'id': lib_id, 'source': registry,
                 'manifest_path': f'{REGISTRY_SRC}/hashing-0.1.0/Cargo.toml',
                 'targets': [{'name': 'hashing', 'kind': ['lib']}]},
                {'name': 'md-5', 'version': '0.10.0', 'id': md5_id, 'source': registry,
                 'manifest_path': f'{REGISTRY_SRC}/md-5-0.10.0/Cargo.toml',
                 'targets': [{'name': 'md5', 'kind': ['lib']}]},
                {'name': 'serde_json', 'version': '1.0.0', 'id': json_id, 'source': registry,
                 'manifest_path': f'{REGISTRY_SRC}/serde_json-1.0.0/Cargo.toml',
                 'targets': [{'name': 'serde_json', 'kind': ['lib']}]},
            ],
            'workspace_members': [],
            'resolve': {'nodes': [
                {'id': lib_id, 'deps': [
                    {'name': 'md5', 'pkg': md5_id},
                    {'name': 'json', 'pkg': json_id},
                ]},
                {'id': md5_id, 'deps': []},
                {'id': json_id, 'deps': []},
            ]},
        }
        lib = RegistryPackage('hashing', '0.1.0')
        md5 = RegistryPackage('md-5', '0.10.0')
        json_package = RegistryPackage('serde_json', '1.0.0')

        graph = parse_metadata(metadata)

        assert graph.extern_names[lib] == {'md5': md5, 'json': json_package}
        assert graph.lib_names == {md5: 'md5'}
        assert graph.dependencies_of(lib) == (md5, json_package)
        assert graph.extern_crate(lib, 'json') == json_package
        assert graph.find_by_crate_name('md5') == [md5]
        assert graph.find_by_crate_name('md_5') == []



def completed(returncode=0, stdout='', stderr=''):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestCargoClient:

    @patch('cratetags.infra.cargo_client.subprocess.run')
    def test_fetch(self, mock_run):
        mock_run.return_value = completed()
        assert CargoClient().fetch(Path('/work/app'))

        args, kwargs = mock_run.call_args
        assert args[0] == ['cargo', 'fetch']
        assert kwargs['cwd'] == '/work/app'

    @patch('cratetags.infra.cargo_client.subprocess.run')
    def test_fetch_failure_is_not_fatal(self, mock_run):
        mock_run.return_value = completed(returncode=101, stderr='network down')
        assert not CargoClient().fetch(Path('/work/app'))

    @patch('cratetags.infra.cargo_client.subprocess.run')
    def test_metadata(self, mock_run):
        mock_run.return_value = completed(stdout=json.dumps(METADATA))
        client = CargoClient(command='/opt/cargo')

        graph = client.dependency_graph(Path('/work/app'))

        assert mock_run.call_args[0][0] == ['/opt/cargo', 'metadata', '--format-version', '1']
        assert graph.roots[0].name == 'app'

    @patch('cratetags.infra.cargo_client.subprocess.run')
    def test_metadata_failure(self, mock_run):
        mock_run.return_value = completed(returncode=101, stderr='could not find Cargo.toml')
        with pytest.raises(CommandError, match='could not find Cargo.toml'):
            CargoClient().metadata(Path('/work/app'))

    @patch('cratetags.infra.cargo_client.subprocess.run')
    def test_metadata_not_json(self, mock_run):
        mock_run.return_value = completed(stdout='warning: something\n')
        with pytest.raises(CommandError, match='Cannot parse'):
            CargoClient().metadata(Path('/work/app'))

    @patch('cratetags.infra.cargo_client.subprocess.run')
    def test_cargo_not_installed(self, mock_run):
        mock_run.side_effect = FileNotFoundError('cargo')
        with pytest.raises(CommandError):
            CargoClient().metadata(Path('/work/app'))

    @patch('cratetags.infra.cargo_client.subprocess.run')
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(['cargo', 'fetch'], 1)
        assert not CargoClient(timeout=1).fetch(Path('/work/app'))
