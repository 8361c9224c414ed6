"""
Standard exit codes and error types for cratetags.

Following Unix/POSIX conventions for command-line tools.
"""
from typing import Any, Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
MANIFEST_NOT_FOUND = 64  # No Cargo.toml above the working directory
EXTRACTOR_ERROR = 65     # The tag extractor is missing or failed
CONFIG_ERROR = 66        # Configuration file error
PERMISSION_ERROR = 67    # Insufficient permissions
MISSING_SOURCE = 68      # Source code of a dependency is not on disk
MERGE_ERROR = 70         # Tag files could not be merged
PARTIAL_SUCCESS = 71     # Some roots were written, some failed
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': PERMISSION_ERROR,
    'TimeoutError': EXTRACTOR_ERROR,
    'ValueError': GENERAL_ERROR,
    'JSONDecodeError': CONFIG_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that carries the exit code the command should end with.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class ManifestNotFoundError(CommandError):
    """Raised when no Cargo.toml is found above the start directory."""
    def __init__(self, start_dir: Any, manifest: str = "Cargo.toml"):
        super().__init__(
            f"Couldn't find '{manifest}' starting at directory '{start_dir}'!",
            MANIFEST_NOT_FOUND,
        )
        self.start_dir = start_dir
        self.manifest = manifest


class MissingSourceError(CommandError):
    """Raised when the source directory of a package is not on disk."""
    def __init__(self, identity: Any, reason: Optional[str] = None):
        super().__init__(
            reason or f"Missing source of {identity}",
            MISSING_SOURCE,
        )
        self.identity = identity
        self.reason = reason or "source directory not found"


class ExtractorError(CommandError):
    """Raised when the tag extractor cannot be run or exits with an error."""
    def __init__(self, message: str, source_dir: Any = None):
        super().__init__(message, EXTRACTOR_ERROR)
        self.source_dir = source_dir


class MergeError(CommandError):
    """Raised when tag files cannot be merged or the result cannot be written."""
    def __init__(self, message: str, path: Any = None):
        super().__init__(message, MERGE_ERROR)
        self.path = path


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class PartialSuccessError(CommandError):
    """Raised when some roots were written and some failed."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed
