"""Tests for re-export resolution."""

from pathlib import Path

import pytest

from cratetags.domain import (
    DependencyGraph,
    LibraryRoot,
    RegistryPackage,
    RunReport,
    TagsKind,
)
from cratetags.exit_codes import ExtractorError, MissingSourceError
from cratetags.infra.cargo_client import parse_metadata
from cratetags.services.reexport_service import (
    REEXPORT_PATTERN,
    ReexportResolver,
    reexported_crates,
)


def vi_tags(*lines):
    return ''.join(f'{line.split()[-1].strip(";")}\t/src/lib.rs\t/^{line}$/;"\tE\n' for line in lines)


class TestReexportPattern:

    @pytest.mark.parametrize('text, crate', [
        ('pub use serde::Serialize;', 'serde'),
        ('    pub use ::serde::de;', 'serde'),
        ('pub use serde_json as json;', 'serde_json'),
        ('pub use serde;', 'serde'),
        ('pub use futures::{Stream, Sink};', 'futures'),
        ('pub extern crate log;', 'log'),
    ])
    def test_matches(self, text, crate):
        assert REEXPORT_PATTERN.match(text).group(1) == crate

    @pytest.mark.parametrize('text', [
        'use serde::Serialize;',
        'pub(crate) use serde::Serialize;',
        'pub fn use_serde() {}',
        '// pub use serde::Serialize;',
    ])
    def test_ignores(self, text):
        assert REEXPORT_PATTERN.match(text) is None


class TestReexportedCrates:

    def test_crate_names_in_order(self, tmp_path):
        path = tmp_path / 'a.vi'
        path.write_text(vi_tags(
            'pub use tokio::net;',
            'pub use self::inner::Thing;',
            'pub use crate::Other;',
            'pub use std::io;',
            'pub use bytes::Bytes;',
            'pub use tokio::io;',
        ))
        assert reexported_crates(path, TagsKind.VI) == ['tokio', 'bytes']

    def test_emacs(self, tmp_path):
        path = tmp_path / 'a.emacs'
        body = 'pub use bytes::Bytes;\x7fbytes\x011,0\n'
        path.write_text(f'\x0c\n/src/lib.rs,{len(body)}\n{body}')
        assert reexported_crates(path, TagsKind.EMACS) == ['bytes']


class ReexportFixture:
    """Tag files for packages, keyed by identity."""

    def __init__(self, tmp_path):
        self.tmp_path = tmp_path
        self.artifacts = {}
        self.requested = []

    def add(self, identity, *lines):
        path = self.tmp_path / f'{identity.name}-{identity.version}.vi'
        path.write_text(vi_tags(*lines))
        self.artifacts[identity] = path

    def artifact_for(self, identity):
        self.requested.append(identity)
        if identity not in self.artifacts:
            raise MissingSourceError(identity)
        return self.artifacts[identity]


class TestReexportResolver:

    def test_direct_reexport(self, tmp_path):
        lib = RegistryPackage('lib', '1.0.0')
        dep = RegistryPackage('dep', '1.0.0')
        graph = DependencyGraph(sources={lib: Path('/l'), dep: Path('/d')}, dependencies={lib: (dep,)})
        fixture = ReexportFixture(tmp_path)
        fixture.add(lib, 'pub use dep::Thing;')
        fixture.add(dep)
        root = LibraryRoot(lib, [])

        added = ReexportResolver(graph, TagsKind.VI).expand(root, fixture.artifact_for, RunReport())

        assert added == [dep]
        assert root.dependencies == [dep]

    def test_existing_dependency_not_duplicated(self, tmp_path):
        lib = RegistryPackage('lib', '1.0.0')
        dep = RegistryPackage('dep', '1.0.0')
        graph = DependencyGraph(sources={lib: Path('/l'), dep: Path('/d')}, dependencies={lib: (dep,)})
        fixture = ReexportFixture(tmp_path)
        fixture.add(lib, 'pub use dep::Thing;')
        fixture.add(dep)
        root = LibraryRoot(lib, [dep])

        added = ReexportResolver(graph, TagsKind.VI).expand(root, fixture.artifact_for, RunReport())

        assert added == []
        assert root.dependencies == [dep]

    def test_transitive_reexport(self, tmp_path):
        a = RegistryPackage('a', '1.0.0')
        b = RegistryPackage('b', '1.0.0')
        c = RegistryPackage('c', '1.0.0')
        graph = DependencyGraph(sources={a: Path('/a'), b: Path('/b'), c: Path('/c')})
        fixture = ReexportFixture(tmp_path)
        fixture.add(a, 'pub use b::B;')
        fixture.add(b, 'pub use c::C;')
        fixture.add(c)
        root = LibraryRoot(a, [])

        ReexportResolver(graph, TagsKind.VI).expand(root, fixture.artifact_for, RunReport())

        assert root.dependencies == [b, c]

    def test_cycle_terminates(self, tmp_path):
        a = RegistryPackage('a', '1.0.0')
        b = RegistryPackage('b', '1.0.0')
        graph = DependencyGraph(sources={a: Path('/a'), b: Path('/b')})
        fixture = ReexportFixture(tmp_path)
        fixture.add(a, 'pub use b::B;')
        fixture.add(b, 'pub use a::A;')
        resolver = ReexportResolver(graph, TagsKind.VI)

        root_a = LibraryRoot(a, [])
        root_b = LibraryRoot(b, [])
        resolver.expand(root_a, fixture.artifact_for, RunReport())
        resolver.expand(root_b, fixture.artifact_for, RunReport())

        assert root_a.dependencies == [b]
        assert root_b.dependencies == [a]
        assert fixture.requested.count(a) == 2

    def test_prefers_direct_dependency_version(self, tmp_path):
        lib = RegistryPackage('lib', '1.0.0')
        old = RegistryPackage('serde', '0.9.0')
        new = RegistryPackage('serde', '1.0.0')
        graph = DependencyGraph(
            sources={lib: Path('/l'), old: Path('/o'), new: Path('/n')},
            dependencies={lib: (new,)},
        )
        resolver = ReexportResolver(graph, TagsKind.VI)

        assert resolver.resolve_crate('serde', lib) == new
        assert resolver.resolve_crate('serde', old) == old

    def test_hyphenated_package_name(self, tmp_path):
        lib = RegistryPackage('lib', '1.0.0')
        util = RegistryPackage('my-util', '1.0.0')
        graph = DependencyGraph(sources={lib: Path('/l'), util: Path('/u')})
        assert ReexportResolver(graph, TagsKind.VI).resolve_crate('my_util', lib) == util

    def test_unknown_crate_skipped(self, tmp_path):
        lib = RegistryPackage('lib', '1.0.0')
        graph = DependencyGraph(sources={lib: Path('/l')})
        fixture = ReexportFixture(tmp_path)
        fixture.add(lib, 'pub use nowhere::Thing;')
        root = LibraryRoot(lib, [])

        assert ReexportResolver(graph, TagsKind.VI).expand(root, fixture.artifact_for, RunReport()) == []

    def test_missing_reexported_source_recorded(self, tmp_path):
        lib = RegistryPackage('lib', '1.0.0')
        dep = RegistryPackage('dep', '1.0.0')
        graph = DependencyGraph(sources={lib: Path('/l'), dep: Path('/d')})
        fixture = ReexportFixture(tmp_path)
        fixture.add(lib, 'pub use dep::Thing;')
        report = RunReport()
        root = LibraryRoot(lib, [])

        ReexportResolver(graph, TagsKind.VI).expand(root, fixture.artifact_for, report)

        assert [record.identity for record in report.missing_sources] == [dep]

    def test_extractor_failure_recorded(self, tmp_path):
        lib = RegistryPackage('lib', '1.0.0')
        report = RunReport()

        def failing(identity):
            raise ExtractorError("'ctags' failed")

        ReexportResolver(DependencyGraph(), TagsKind.VI).expand(LibraryRoot(lib, []), failing, report)

        assert report.missing_sources[0].reason == "'ctags' failed"

    def test_own_crate_name_skipped(self, tmp_path):
        lib = RegistryPackage('serde', '1.0.0')
        old = RegistryPackage('serde', '0.9.0')
        graph = DependencyGraph(sources={lib: Path('/n'), old: Path('/o')})
        fixture = ReexportFixture(tmp_path)
        fixture.add(lib, 'pub use serde::de;')
        root = LibraryRoot(lib, [])

        assert ReexportResolver(graph, TagsKind.VI).expand(root, fixture.artifact_for, RunReport()) == []
        assert root.dependencies == []

    def test_renamed_dependency(self, tmp_path):
        lib = RegistryPackage('lib', '1.0.0')
        digest = RegistryPackage('md-5', '0.10.0')
        graph = DependencyGraph(
            sources={lib: Path('/l'), digest: Path('/d')},
            dependencies={lib: (digest,)},
            extern_names={lib: {'hash': digest}},
            lib_names={digest: 'md5'},
        )
        fixture = ReexportFixture(tmp_path)
        fixture.add(lib, 'pub use hash::Md5;')
        fixture.add(digest)
        root = LibraryRoot(lib, [])

        added = ReexportResolver(graph, TagsKind.VI).expand(root, fixture.artifact_for, RunReport())

        assert added == [digest]

    def test_lib_target_name_from_metadata(self):
        registry = 'registry+https://github.com/rust-lang/crates.io-index'
        lib_id = f'{registry}#lib@1.0.0'
        md5_id = f'{registry}#md-5@0.10.0'
        metadata = {
            'packages': [
                {'name': 'lib', 'version': '1.0.0', 'id': lib_id, 'source': registry,
                 'manifest_path': '/reg/lib-1.0.0/Cargo.toml',
                 'targets': [{'name': 'lib', 'kind': ['lib']}]},
                {'name': 'md-5', 'version': '0.10.0', 'id': md5_id, 'source': registry,
                 'manifest_path': '/reg/md-5-0.10.0/Cargo.toml',
                 'targets': [{'name': 'md5', 'kind': ['lib']}]},
            ],
            'workspace_members': [],
            'resolve': {'nodes': [
                {'id': lib_id, 'deps': [{'name': 'md5', 'pkg': md5_id}]},
                {'id': md5_id, 'deps': []},
            ]},
        }
        lib = RegistryPackage('lib', '1.0.0')
        md5 = RegistryPackage('md-5', '0.10.0')
        other = RegistryPackage('other', '1.0.0')
        resolver = ReexportResolver(parse_metadata(metadata), TagsKind.VI)

        assert resolver.resolve_crate('md5', lib) == md5
        assert resolver.resolve_crate('md5', other) == md5
        assert resolver.resolve_crate('md_5', other) is None
