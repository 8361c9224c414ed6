"""
Tag extractor infrastructure for cratetags.

Runs `ctags` over one source directory and places the result at a given
path. Anything with the same `extract(source_dir, kind, destination)`
method can stand in for CtagsClient (tests use a fake that never shells
out).
"""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable, List
import logging

from ..domain.artifact import TagArtifact, TagsKind
from ..exit_codes import ExtractorError

logger = logging.getLogger(__name__)

# Emit a tag named after the crate for every public re-export, so the
# re-export resolver can find them in the generated tags.
REEXPORT_REGEXES = (
    r'--regex-Rust=/^[ \t]*pub[ \t]+use[ \t]+(::)?([A-Za-z_][A-Za-z0-9_]*)[ \t]*(::|as[ \t]|;)/\2/E,reexport,public re-exports/',
    r'--regex-Rust=/^[ \t]*pub[ \t]+extern[ \t]+crate[ \t]+([A-Za-z_][A-Za-z0-9_]*)/\1/E,reexport,public re-exports/',
)


class CtagsClient:
    """
    Abstraction over the ctags executable.

    Example:
        client = CtagsClient(exclude=["target"])
        artifact = client.extract(Path("/src/serde-1.0.197"), TagsKind.VI,
                                  Path("/cache/registry/serde/1.0.197.vi"))
    """

    def __init__(
        self,
        command: str = "ctags",
        timeout: int = 300,
        exclude: Iterable[str] = (),
        extra_args: Iterable[str] = ()
    ):
        """
        Initialize CtagsClient.

        Args:
            command: ctags executable (name on PATH or absolute path)
            timeout: Seconds before an invocation is abandoned
            exclude: Directory names not descended into
            extra_args: Additional ctags arguments
        """
        self.command = command
        self.timeout = timeout
        self.exclude = tuple(exclude)
        self.extra_args = tuple(extra_args)

    def is_available(self) -> bool:
        return shutil.which(self.command) is not None

    def build_command(self, source_dir: Path, kind: TagsKind, output: Path) -> List[str]:
        cmd = [
            self.command,
            '-R',
            '--tag-relative=no',
            '--languages=Rust',
        ]
        cmd.extend(f'--exclude={name}' for name in self.exclude)
        cmd.extend(REEXPORT_REGEXES)
        cmd.extend(kind.extractor_args())
        cmd.extend(self.extra_args)
        cmd.extend(['-f', str(output), str(source_dir)])
        return cmd

    def extract(self, source_dir: Path, kind: TagsKind, destination: Path) -> TagArtifact:
        """
        Generate tags for `source_dir` into `destination`.

        The tags are written to a temp file next to `destination` and moved
        into place once ctags succeeded.

        Raises:
            ExtractorError: If ctags is missing, times out or exits non-zero
        """
        source_dir = Path(source_dir)
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        temp_dir = tempfile.mkdtemp(dir=destination.parent, prefix=f".{destination.name}.")
        output = Path(temp_dir) / destination.name
        cmd = self.build_command(source_dir, kind, output)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout
                )
            except FileNotFoundError:
                raise ExtractorError(
                    f"Tag extractor '{self.command}' not found. Is ctags installed?",
                    source_dir,
                )
            except subprocess.TimeoutExpired:
                raise ExtractorError(
                    f"'{self.command}' timed out after {self.timeout}s on '{source_dir}'",
                    source_dir,
                )

            if result.returncode != 0:
                message = (result.stderr or result.stdout or '').strip()
                raise ExtractorError(
                    f"'{self.command}' failed on '{source_dir}' "
                    f"(exit code {result.returncode}): {message}",
                    source_dir,
                )

            if not output.exists():
                # Nothing to tag, ctags may not create the file
                output.write_bytes(b'')
            os.replace(output, destination)

        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        return TagArtifact(path=destination, source_dir=source_dir, kind=kind)
