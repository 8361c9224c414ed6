"""
Merging tag files.

The merged file is the union of the entries of all inputs with exact
duplicates removed, written in a fixed order so that merging the same
inputs, in any order, always produces the same bytes.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Sequence
import logging

from .domain.artifact import TagArtifact, TagsKind
from .exit_codes import MergeError
from .tagfile import (
    EmacsSections,
    TagFormatError,
    parse_emacs,
    parse_vi,
    read_text,
    render_emacs,
    render_vi,
    write_bytes,
)

logger = logging.getLogger(__name__)


def write_atomic(destination: Path, data: bytes) -> None:
    """
    Replace `destination` with `data` so readers never see a partial file.

    Writes to a temp file in the same directory, then renames it into place.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(
        dir=destination.parent,
        prefix=f".{destination.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(temp_path, destination)

    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def merge_contents(
    kind: TagsKind,
    contents: Sequence[str],
    labels: Optional[Sequence[str]] = None
) -> str:
    """
    Merge the text of several tag files of the same kind.

    Raises:
        TagFormatError: If one of the contents is not of the given kind
    """
    labels = labels or [f"input {i}" for i in range(1, len(contents) + 1)]

    def parse(parser, label, content):
        try:
            return parser(content)
        except TagFormatError as e:
            raise TagFormatError(f"{label}: {e}")

    if kind is TagsKind.VI:
        lines = []
        for label, content in zip(labels, contents):
            lines.extend(parse(parse_vi, label, content))
        return render_vi(lines)

    merged = EmacsSections(entries={}, includes=set())
    for label, content in zip(labels, contents):
        sections = parse(parse_emacs, label, content)
        for filename, entries in sections.entries.items():
            merged.entries.setdefault(filename, set()).update(entries)
        merged.includes.update(sections.includes)
    return render_emacs(merged)


def merge_tags(
    kind: TagsKind,
    inputs: Sequence[Path],
    destination: Path,
    source_dir: Optional[Path] = None
) -> TagArtifact:
    """
    Merge tag files into `destination`.

    Args:
        kind: Format of the inputs and of the result
        inputs: Tag files to merge, in any order
        destination: Where the merged file is written (replaced atomically)
        source_dir: Source directory owning the merged file (defaults to its parent)

    Returns:
        The merged TagArtifact

    Raises:
        MergeError: If an input cannot be read or has another format,
            or the destination cannot be written
    """
    destination = Path(destination)
    contents = []
    for path in inputs:
        try:
            contents.append(read_text(path))
        except OSError as e:
            raise MergeError(f"Cannot read tags file '{path}': {e}", path)

    try:
        merged = merge_contents(kind, contents, [str(p) for p in inputs])
    except TagFormatError as e:
        raise MergeError(f"Cannot merge {kind.value} tags into '{destination}': {e}", destination)

    try:
        write_atomic(destination, write_bytes(merged))
    except OSError as e:
        raise MergeError(f"Cannot write tags file '{destination}': {e}", destination)

    logger.debug(f"Merged {len(inputs)} tag files into {destination}")
    return TagArtifact(
        path=destination,
        source_dir=Path(source_dir) if source_dir else destination.parent,
        kind=kind,
    )
