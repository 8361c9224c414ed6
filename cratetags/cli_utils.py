"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import logging
import sys
import click
from functools import wraps
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)

logger = logging.getLogger(__name__)


def standard_command(func):
    """
    Decorator that provides standard CLI behavior:
    - Errors reported on stderr as `Error: <message>`
    - Errors also emitted as a JSON object on stdout with --json
    - Exit code taken from CommandError, or derived from the exception type
      (GENERAL_ERROR for anything unexpected, traceback logged at debug)
    - Exit code 0 when the command returns normally
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        json_output = kwargs.get('json_output', False)

        try:
            func(*args, **kwargs)
            sys.exit(SUCCESS)

        except KeyboardInterrupt:
            click.echo("Interrupted by user", err=True)
            sys.exit(INTERRUPTED)
        except (click.ClickException, click.Abort, click.exceptions.Exit):
            # Click exceptions already have their exit code
            raise
        except Exception as e:
            if not isinstance(e, (CommandError, OSError)):
                logger.debug("Unexpected error", exc_info=True)
            exit_code = get_exit_code_for_exception(e)
            click.echo(f"Error: {e}", err=True)
            if json_output:
                error_obj = {
                    "error": str(e),
                    "type": type(e).__name__,
                    "exit_code": exit_code
                }
                # Add extra fields for PartialSuccessError
                if hasattr(e, 'succeeded'):
                    error_obj['succeeded'] = e.succeeded
                    error_obj['failed'] = e.failed
                print(json.dumps(error_obj, ensure_ascii=False), flush=True)
            sys.exit(exit_code)

    return wrapper


def configure_logging(config, verbose: bool = False, quiet: bool = False) -> None:
    """Apply the logging section of the config, overridden by -v/-q."""
    log_config = config.get('logging') or {}
    level_name = str(log_config.get('level', 'INFO')).upper()
    if verbose:
        level_name = 'DEBUG'
    elif quiet:
        level_name = 'WARNING'

    logger = logging.getLogger('cratetags')
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    log_format = log_config.get('format')
    if log_format:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(log_format))


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                           help='Show debug output'),
    'quiet': click.option('-q', '--quiet', is_flag=True,
                         help='Only show warnings and errors'),
    'json': click.option('--json', 'json_output', is_flag=True,
                        help='Emit the run report as JSONL on stdout'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'quiet')
        def my_command(verbose, quiet):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
