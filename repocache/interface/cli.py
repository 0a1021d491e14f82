import functools
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import typer

from repocache import APP_NAME
from repocache.core.config import set_config
from repocache.core.constants import Mode
from repocache.core.errors import BaseError, FetchError
from repocache.core.populate import populate_cache
from repocache.interface.logging import LogLevel, setup_logging

app = typer.Typer(no_args_is_help=True, pretty_exceptions_enable=False)
log = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path("cache")


def _print_error(msg: str) -> None:
    typer.echo(f"Error: {msg}", err=True)


def handle_errors(cmd: Callable[..., None]) -> Callable[..., None]:
    """Decorate a CLI command function with an error handler.

    Expected errors are printed in a user-friendly form, and the process exits with the
    exit code of the error class.
    """

    @functools.wraps(cmd)
    def cmd_with_error_handling(*args: Any, **kwargs: Any) -> None:
        try:
            cmd(*args, **kwargs)
        except BaseError as e:
            log.error("%s: %s", type(e).__name__, str(e).replace("\n", r"\n"))
            _print_error(e.friendly_msg())
            raise typer.Exit(e.exit_code)

    return cmd_with_error_handling


@app.callback()
@handle_errors
def main(
    log_level: LogLevel = typer.Option(
        LogLevel.INFO.value,
        case_sensitive=False,
        help="Set log level.",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        exists=True,
        dir_okay=False,
        resolve_path=True,
        help="Read configuration from this YAML file.",
    ),
) -> None:
    """Maintain a local cache of package archives for a package repository."""
    setup_logging(log_level)
    if config_file:
        set_config(config_file)


@app.command()
@handle_errors
def cache(
    cache_dir: Path = typer.Argument(
        DEFAULT_CACHE_DIR,
        metavar="DIR",
        help="Name of the cache directory to use.",
    ),
    repo: Path = typer.Option(
        Path("."),
        file_okay=False,
        resolve_path=True,
        help="Root of the package repository.",
    ),
    no_repo_update: bool = typer.Option(
        False,
        "--no-repo-update",
        "-n",
        help=(
            "Don't check, create or update the repo.yaml file to point to the generated "
            "cache ('archive-mirrors' field)."
        ),
    ),
    link: Optional[Path] = typer.Option(
        None,
        file_okay=False,
        resolve_path=True,
        metavar="DIR",
        help=(
            "Create reverse symbolic links to the archives within DIR, in the form "
            "DIR/PKG.VERSION/FILENAME."
        ),
    ),
    jobs: Optional[int] = typer.Option(
        None,
        "--jobs",
        "-j",
        min=1,
        help="Number of parallel downloads (default: concurrency_limit from the config).",
    ),
    mode: Mode = typer.Option(
        Mode.PERMISSIVE.value,
        help=(
            "In strict mode, exit with an error if any archive could not be cached. "
            "In permissive mode, only report such failures."
        ),
    ),
) -> None:
    """Download the archives of all packages to fill a local cache.

    The cache can then be served along with the repository.
    """
    if not cache_dir.is_absolute():
        cache_dir = repo / cache_dir

    errors = populate_cache(
        repo_root=repo,
        cache_dir=cache_dir,
        concurrency=jobs,
        link_dir=link,
        update_repo=not no_repo_update,
    )

    if errors and mode == Mode.STRICT:
        raise FetchError(
            f"Could not cache the archives of {len(errors)} package(s)",
            solution=f"Run {APP_NAME} again with --mode permissive to only report them.",
        )
