"""
Handles the tags update, the only command of cratetags.

This command follows our design principles:
- Progress and the final report go to stderr
- --json streams the report as JSONL on stdout
- Thin CLI layer that connects TagsService to output
"""

from pathlib import Path
from typing import Optional

import click

from .. import __version__
from ..cli_utils import add_common_options, configure_logging, standard_command
from ..config import load_config, merge_configs, resolve_settings
from ..domain.artifact import TagsKind
from ..exit_codes import ExtractorError, PartialSuccessError
from ..output import emit
from ..render import render_report
from ..services.tags_service import TagsService


@click.command(name='cratetags')
@click.argument('tags_kind', metavar='TAGS_KIND',
                type=click.Choice([kind.value for kind in TagsKind], case_sensitive=False))
@click.option('-j', '--jobs', type=click.IntRange(min=1), default=None,
              help='Number of concurrent ctags runs (default: general.jobs from config)')
@click.option('--no-fetch', is_flag=True, help="Don't run 'cargo fetch' before indexing")
@click.option('-d', '--dir', 'directory', type=click.Path(exists=True, file_okay=False),
              default=None, help='Start the Cargo.toml search here instead of the current directory')
@add_common_options('verbose', 'quiet', 'json')
@click.version_option(version=__version__, prog_name='cratetags')
@standard_command
def update_handler(
    tags_kind: str,
    jobs: Optional[int],
    no_fetch: bool,
    directory: Optional[str],
    verbose: bool,
    quiet: bool,
    json_output: bool,
):
    """Create ctags/etags for a cargo project and all of its dependencies.

    TAGS_KIND is the kind of the created tags: 'vi' (ctags) or 'emacs' (etags).

    \b
    Every dependency gets its own tags in the shared cache (~/.cratetags by
    default), regenerated only when its sources change. Each crate's source
    directory then receives a merged 'cratetags.vi' or 'cratetags.emacs'
    holding its own tags, those of its dependencies and of crates it
    re-exports, plus 'rust-std-lib.<kind>' from the cache root if present.

    \b
    Examples:
        cratetags vi                 # Tags for vim
        cratetags emacs              # Tags for emacs
        cratetags vi --no-fetch -j 8 # Skip 'cargo fetch', 8 parallel ctags runs
        cratetags vi --json          # Report as JSONL
    """
    config = load_config()
    configure_logging(config, verbose=verbose, quiet=quiet)

    overrides = {}
    if jobs is not None:
        overrides['jobs'] = jobs
    if no_fetch:
        overrides['fetch_sources'] = False
    if overrides:
        config = merge_configs(config, {'general': overrides})

    settings = resolve_settings(config)
    kind = TagsKind.parse(tags_kind)

    service = TagsService(settings)
    if not service.extractor.is_available():
        raise ExtractorError(
            f"Tag extractor '{settings.ctags_command}' not found. Is ctags installed?"
        )

    report = service.update_project(Path(directory) if directory else Path.cwd(), kind)

    if json_output:
        emit(report.roots)
        emit(report.missing_sources)
        emit([report])
    elif not quiet:
        render_report(report, verbose=verbose)

    if not report.success:
        failed = len(report.failed_roots)
        raise PartialSuccessError(
            f"Couldn't write {failed} of {len(report.roots)} tag files",
            succeeded=len(report.roots) - failed,
            failed=failed,
        )
