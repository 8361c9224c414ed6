"""
Reading and writing the two tag file formats.

vi (ctags):
    !_TAG_FILE_FORMAT\t2\t/.../        pseudo tags
    name\tfile\taddress;"\tkind...      one tag per line

emacs (etags):
    \\f\\n<file>,<size>\\n               section header, size in bytes of the body
    <text>\\x7f<name>\\x01<line>,<offset>\\n
    \\f\\n<file>,include\\n              include another tags file

Files are decoded as UTF-8 with surrogateescape so arbitrary bytes survive
a read/write cycle unchanged.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Set, Tuple

from .domain.artifact import TagsKind

ENCODING = 'utf-8'
ERRORS = 'surrogateescape'

PSEUDO_TAG_PREFIX = '!_TAG_'
VI_HEADER = (
    '!_TAG_FILE_FORMAT\t2\t/extended format; --format=1 will not append ;" to lines/',
    '!_TAG_FILE_SORTED\t1\t/0=unsorted, 1=sorted, 2=foldcase/',
    '!_TAG_PROGRAM_NAME\tcratetags\t//',
)

SECTION_MARK = '\x0c\n'
INCLUDE = 'include'
_EMACS_POSITION = re.compile(r'\x7f(?:[^\x01]*\x01)?(\d*),(\d*)$')


class TagFormatError(ValueError):
    """Content is not a valid tag file of the expected kind."""


@dataclass(frozen=True)
class TagEntry:
    """One tag: the symbol, the file defining it and the source text located."""
    name: str
    file: str
    text: str


@dataclass
class EmacsSections:
    """Parsed etags content: entries per file plus included tag files."""
    entries: Dict[str, Set[str]]
    includes: Set[str]


def read_text(path: Path) -> str:
    return Path(path).read_bytes().decode(ENCODING, ERRORS)


def write_bytes(text: str) -> bytes:
    return text.encode(ENCODING, ERRORS)


# =============================================================================
# vi / ctags
# =============================================================================

def parse_vi(content: str) -> List[str]:
    """
    Tag lines of a ctags file, pseudo tags removed.

    Raises:
        TagFormatError: If the content is an etags file or a line is malformed
    """
    if content.startswith('\x0c'):
        raise TagFormatError("etags content where ctags was expected")

    lines = []
    for number, line in enumerate(content.split('\n'), start=1):
        if not line or line.startswith(PSEUDO_TAG_PREFIX):
            continue
        if line.count('\t') < 2:
            raise TagFormatError(f"line {number}: expected 'name<TAB>file<TAB>address'")
        lines.append(line)
    return lines


def render_vi(lines: Iterable[str]) -> str:
    """Sorted ctags file with standard pseudo tags."""
    body = sorted(set(lines))
    return '\n'.join(list(VI_HEADER) + body) + '\n'


def _vi_text(address: str) -> str:
    """Source text of a ctags search address like `/^  pub use foo::Bar;$/;"`."""
    address = address.split(';"', 1)[0]
    if len(address) >= 2 and address[0] in '/?':
        delimiter = address[0]
        address = address[1:]
        if address.endswith(delimiter):
            address = address[:-1]
        address = address.removeprefix('^').removesuffix('$')
        address = address.replace('\\' + delimiter, delimiter).replace('\\\\', '\\')
    return address


def vi_entry(line: str) -> TagEntry:
    name, file, address = line.split('\t', 2)
    return TagEntry(name=name, file=file, text=_vi_text(address))


# =============================================================================
# emacs / etags
# =============================================================================

def parse_emacs(content: str) -> EmacsSections:
    """
    Sections of an etags file.

    Raises:
        TagFormatError: If the content is not etags or a section header is malformed
    """
    sections = EmacsSections(entries={}, includes=set())
    if not content:
        return sections
    if not content.startswith(SECTION_MARK):
        raise TagFormatError("content does not start with an etags section")

    for section in content.split(SECTION_MARK)[1:]:
        header, newline, body = section.partition('\n')
        filename, comma, size = header.rpartition(',')
        if not newline or not comma or not filename:
            raise TagFormatError(f"malformed section header {header!r}")

        if size == INCLUDE:
            sections.includes.add(filename)
            continue
        if not size.isdigit():
            raise TagFormatError(f"malformed section size in {header!r}")

        entries = sections.entries.setdefault(filename, set())
        entries.update(line for line in body.split('\n') if line)
    return sections


def _emacs_order(entry: str) -> Tuple[int, int, str]:
    match = _EMACS_POSITION.search(entry)
    if not match:
        return (0, 0, entry)
    line, offset = match.groups()
    return (int(line or 0), int(offset or 0), entry)


def render_emacs(sections: EmacsSections) -> str:
    """etags file with files in sorted order and entries in position order."""
    parts = []
    for filename in sorted(sections.entries):
        body = ''.join(
            entry + '\n'
            for entry in sorted(sections.entries[filename], key=_emacs_order)
        )
        size = len(write_bytes(body))
        parts.append(f"{SECTION_MARK}{filename},{size}\n{body}")
    for filename in sorted(sections.includes):
        parts.append(f"{SECTION_MARK}{filename},{INCLUDE}\n")
    return ''.join(parts)


def emacs_entry(filename: str, entry: str) -> TagEntry:
    text, _, rest = entry.partition('\x7f')
    name = rest.split('\x01', 1)[0] if '\x01' in rest else ''
    return TagEntry(name=name, file=filename, text=text)


# =============================================================================
# Both formats
# =============================================================================

def iter_entries(path: Path, kind: TagsKind) -> Iterator[TagEntry]:
    """
    Every tag of a tag file.

    Raises:
        OSError: If the file cannot be read
        TagFormatError: If the file is not of the given kind
    """
    content = read_text(path)
    if kind is TagsKind.VI:
        for line in parse_vi(content):
            yield vi_entry(line)
    else:
        sections = parse_emacs(content)
        for filename in sorted(sections.entries):
            for entry in sorted(sections.entries[filename], key=_emacs_order):
                yield emacs_entry(filename, entry)
