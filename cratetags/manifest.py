"""
Locate the Cargo manifest of the project being indexed.
"""

from pathlib import Path
from typing import Union

from .exit_codes import ManifestNotFoundError


def find_manifest_dir(start_dir: Union[str, Path], manifest: str = "Cargo.toml") -> Path:
    """
    Search for a directory containing `manifest`, starting at `start_dir`
    and continuing upwards until the filesystem root.

    Args:
        start_dir: Directory to start the search in
        manifest: Manifest file name to look for

    Returns:
        The first directory containing the manifest as a regular file

    Raises:
        ManifestNotFoundError: If the filesystem root is reached without a match
    """
    start = Path(start_dir).expanduser().absolute()
    directory = start
    while True:
        if (directory / manifest).is_file():
            return directory

        parent = directory.parent
        if parent == directory:
            raise ManifestNotFoundError(start, manifest)
        directory = parent
