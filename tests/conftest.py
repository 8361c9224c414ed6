"""Shared fixtures for cratetags tests."""

import os
import re
import threading
from pathlib import Path

import pytest

from cratetags.config import Settings
from cratetags.domain import (
    DependencyGraph,
    LibraryRoot,
    ProjectRoot,
    RegistryPackage,
    TagArtifact,
    TagsKind,
)
from cratetags.exit_codes import ExtractorError

DEFINITION = re.compile(r'^\s*pub\s+(?:fn|struct|enum|trait)\s+([A-Za-z_]\w*)')
REEXPORT = re.compile(r'^\s*pub\s+use\s+(?:::)?([A-Za-z_]\w*)')


class FakeExtractor:
    """
    Stands in for ctags: tags `pub fn/struct/enum/trait` definitions and
    `pub use` lines of every .rs file below the source directory.
    """

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)
        self._lock = threading.Lock()

    def calls_for(self, source_dir):
        return [call for call in self.calls if call == Path(source_dir)]

    def extract(self, source_dir, kind, destination):
        source_dir = Path(source_dir)
        destination = Path(destination)
        with self._lock:
            self.calls.append(source_dir)
        if source_dir.name in self.fail_on:
            raise ExtractorError(f"'ctags' failed on '{source_dir}' (exit code 1): boom", source_dir)

        tags = []
        for path in sorted(source_dir.rglob('*.rs')):
            offset = 0
            for number, line in enumerate(path.read_text().splitlines(), start=1):
                for pattern, letter in ((DEFINITION, 'f'), (REEXPORT, 'E')):
                    match = pattern.match(line)
                    if match:
                        tags.append((match.group(1), str(path), number, offset, line, letter))
                offset += len(line.encode()) + 1

        if kind is TagsKind.VI:
            content = ''.join(
                f'{name}\t{file}\t/^{text}$/;"\t{letter}\n'
                for name, file, _, _, text, letter in tags
            )
        else:
            bodies = {}
            for name, file, number, offset, text, _ in tags:
                bodies.setdefault(file, []).append(f'{text}\x7f{name}\x01{number},{offset}\n')
            content = ''
            for file, entries in bodies.items():
                body = ''.join(entries)
                content += f'\x0c\n{file},{len(body.encode())}\n{body}'

        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(content)
        return TagArtifact(destination, source_dir, kind)


def write_crate(directory: Path, source: str, name: str = 'lib.rs') -> Path:
    """Create a crate directory with a manifest and one source file."""
    (directory / 'src').mkdir(parents=True, exist_ok=True)
    (directory / 'Cargo.toml').write_text(f'[package]\nname = "{directory.name}"\n')
    (directory / 'src' / name).write_text(source)
    return directory


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def make_extractor():
    return FakeExtractor


@pytest.fixture
def settings(tmp_path):
    return Settings(cache_dir=tmp_path / 'cache', jobs=2, fetch_sources=False)


class SampleProject:
    """
    A project `app` depending on `a`, `b` and `c`:

        app -> a, b, c
        a   -> b      (a also re-exports d_util)
        b   -> d-util
        c             (no sources on disk)
    """

    def __init__(self, root: Path):
        self.root = root
        self.project_dir = write_crate(
            root / 'project',
            'pub fn main_entry() {}\npub struct AppConfig;\n',
            name='main.rs',
        )
        registry = root / 'registry'
        self.a = RegistryPackage('a', '1.0.0')
        self.b = RegistryPackage('b', '1.0.0')
        self.c = RegistryPackage('c', '1.0.0')
        self.d = RegistryPackage('d-util', '0.2.0')

        self.a_dir = write_crate(
            registry / 'a-1.0.0',
            'pub use d_util::Helper;\npub fn alpha() {}\n',
        )
        self.b_dir = write_crate(registry / 'b-1.0.0', 'pub struct Beta;\n')
        self.c_dir = registry / 'c-1.0.0'
        self.d_dir = write_crate(registry / 'd-util-0.2.0', 'pub struct Helper;\n')

    def graph(self) -> DependencyGraph:
        """A fresh graph, as `cargo metadata` would produce on every run."""
        return DependencyGraph(
            roots=[
                ProjectRoot('app', self.project_dir, (self.a, self.b, self.c)),
                LibraryRoot(self.a, [self.b]),
                LibraryRoot(self.b, [self.d]),
                LibraryRoot(self.c, []),
                LibraryRoot(self.d, []),
            ],
            sources={
                self.a: self.a_dir,
                self.b: self.b_dir,
                self.c: self.c_dir,
                self.d: self.d_dir,
            },
            dependencies={
                self.a: (self.b,),
                self.b: (self.d,),
                self.c: (),
                self.d: (),
            },
        )


@pytest.fixture
def sample_project(tmp_path):
    return SampleProject(tmp_path)


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """Isolated HOME without cratetags environment overrides."""
    home = tmp_path / 'home'
    home.mkdir()
    monkeypatch.setenv('HOME', str(home))
    for key in list(os.environ):
        if key.startswith('CRATETAGS_'):
            monkeypatch.delenv(key)
    return home
