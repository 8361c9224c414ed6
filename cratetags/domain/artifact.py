"""
Tag artifact domain objects for cratetags.

A tag artifact is a file produced by the tag extractor (or by merging
several such files) in one of two formats:
- vi: ctags format, one tag per line
- emacs: etags format, entries grouped in per-file sections
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List


class TagsKind(Enum):
    """Format family of a tag file."""
    VI = "vi"
    EMACS = "emacs"

    @property
    def extension(self) -> str:
        return self.value

    def file_name(self, stem: str) -> str:
        """File name for a tag file of this kind, e.g. `cratetags.vi`."""
        return f"{stem}.{self.extension}"

    def extractor_args(self) -> List[str]:
        """Extra ctags arguments selecting this format."""
        if self is TagsKind.EMACS:
            return ['-e']
        return []

    @classmethod
    def parse(cls, value: str) -> 'TagsKind':
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ', '.join(kind.value for kind in cls)
            raise ValueError(f"Unknown tags kind '{value}' (expected one of: {choices})")


@dataclass(frozen=True)
class TagArtifact:
    """
    A tag file on disk.

    Attributes:
        path: Location of the tag file
        source_dir: Directory the tags were generated from
        kind: Format of the file
    """
    path: Path
    source_dir: Path
    kind: TagsKind
