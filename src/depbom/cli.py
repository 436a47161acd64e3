from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from .collector import collect_dependencies
from .errors import from_os_error
from .reporting import build_bom, write_report
from .resolver import ResolverConfig, resolve

LEVEL_COLORS = {
    logging.DEBUG: "blue",
    logging.INFO: "green",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class _ClickHandler(logging.Handler):
    """Send log records to stderr through click so ``--color`` applies."""

    def __init__(self, color: Optional[bool]) -> None:
        super().__init__()
        self.color = color

    def emit(self, record: logging.LogRecord) -> None:
        try:
            label = click.style(f"{record.levelname.lower():>7}", fg=LEVEL_COLORS.get(record.levelno), bold=True)
            click.echo(f"{label} {self.format(record)}", err=True, color=self.color)
        except Exception:  # pragma: no cover - mirrors logging.Handler.emit
            self.handleError(record)


def _configure_logging(verbose: int, quiet: bool, color: Optional[bool]) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, _ClickHandler):
            root.removeHandler(handler)
    root.addHandler(_ClickHandler(color))
    root.setLevel(level)


def _color_choice(color: Optional[str]) -> Optional[bool]:
    return {"always": True, "never": False}.get(color or "auto")


@click.group()
def main() -> None:
    """Bill-of-Materials CLI."""


@main.command()
@click.option("--all", "-a", "all_packages", is_flag=True, help="List all dependencies instead of only top level ones.")
@click.option(
    "--target-dir",
    type=click.Path(file_okay=False, path_type=Path),
    metavar="DIRECTORY",
    help="Extra directory of installed distributions (defaults to DEPBOM_TARGET_DIR).",
)
@click.option(
    "--manifest-path",
    type=click.Path(dir_okay=False, path_type=Path),
    metavar="PATH",
    help="Path to pyproject.toml.",
)
@click.option("--verbose", "-v", count=True, help="Use verbose output (-vv very verbose output).")
@click.option("--quiet", "-q", is_flag=True, help="No output printed to stderr other than errors.")
@click.option(
    "--color",
    type=click.Choice(["auto", "always", "never"], case_sensitive=False),
    metavar="WHEN",
    help="Coloring: auto, always, never.",
)
@click.option("--frozen", is_flag=True, help="Require the environment to be up to date without changes.")
@click.option("--locked", is_flag=True, help="Require installed distributions to satisfy the manifest.")
@click.option("--offline", is_flag=True, help="Run without accessing the network.")
@click.option("-Z", "unstable_flags", multiple=True, metavar="FLAG", help="Unstable (nightly-only) resolver flags.")
@click.pass_context
def bom(
    ctx: click.Context,
    all_packages: bool,
    target_dir: Optional[Path],
    manifest_path: Optional[Path],
    verbose: int,
    quiet: bool,
    color: Optional[str],
    frozen: bool,
    locked: bool,
    offline: bool,
    unstable_flags: tuple[str, ...],
) -> None:
    """Display a Bill-of-Materials for a Python project."""
    ctx.color = _color_choice(color)
    _configure_logging(verbose, quiet, ctx.color)

    config = ResolverConfig(
        manifest_path=manifest_path,
        target_dir=target_dir,
        verbose=verbose,
        quiet=quiet,
        color=color,
        frozen=frozen,
        locked=locked,
        offline=offline,
        unstable_flags=list(unstable_flags),
    )

    try:
        workspace, graph = resolve(config)
        dependencies = collect_dependencies(workspace, graph, all_packages=all_packages)
        report = build_bom(dependencies)
        write_report(report, sys.stdout.buffer)
    except OSError as exc:
        raise from_os_error(exc) from exc


if __name__ == "__main__":
    main()
