"""compatscan CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from compatscan import __version__
from compatscan.rules.models import SEVERITIES

if TYPE_CHECKING:
    from compatscan.analysis.runner import AnalysisRun
    from compatscan.infrastructure.config import AnalyzerConfig


class _EchoHandler(logging.Handler):
    """Write log records through click so they follow the current stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    package_logger = logging.getLogger("compatscan")
    for handler in list(package_logger.handlers):
        if isinstance(handler, _EchoHandler):
            package_logger.removeHandler(handler)
    handler = _EchoHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)


@click.group()
@click.version_option(version=__version__, prog_name="compatscan")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """compatscan - PHP and platform upgrade compatibility scanner."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.yml (default: <path>/config.yml if present).",
)
_database_option = click.option(
    "--database",
    "database_path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Rule database directory (default: bundled rules).",
)


def _load_settings(
    config_path: Path | None, project_root: Path | None, database_path: Path | None
) -> AnalyzerConfig:
    from compatscan.infrastructure.config import ConfigError, load_config

    try:
        settings = load_config(config_path, project_root=project_root)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    return settings.with_overrides(database_path=database_path)


def _print_summary_table(run: AnalysisRun) -> None:
    from rich.console import Console
    from rich.table import Table

    from compatscan.formatters import severity_rows

    table = Table(title="Summary", show_header=False, box=None, padding=(0, 1))
    table.add_column("severity", style="cyan")
    table.add_column("count", justify="right")
    for severity, count in severity_rows(run):
        table.add_row(severity, str(count))
    table.add_row("effort (h)", f"{run.effort_hours:.1f}")

    console = Console()
    console.print()
    console.print(table)


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, path_type=Path),
)
@click.option("--from", "from_version", default=None, help="Current PHP version (e.g. 7.4).")
@click.option("--to", "to_version", default=None, help="Target PHP version (e.g. 8.2).")
@click.option("--platform", default=None, help="Platform rules to apply (e.g. moodle).")
@click.option(
    "--platform-from",
    "platform_from",
    default=None,
    help="Current platform version; rules removed before it are ignored.",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Worker threads.")
@click.option("--timeout", type=float, default=None, help="Run deadline in seconds.")
@click.option(
    "--strict",
    is_flag=True,
    help="Exit with code 1 when issues at or above --fail-on are found.",
)
@click.option(
    "--fail-on",
    "fail_on",
    type=click.Choice(list(SEVERITIES)),
    default="high",
    show_default=True,
    help="Lowest severity that fails a --strict run.",
)
@_config_option
@_database_option
def analyze(
    *,
    path: Path,
    from_version: str | None,
    to_version: str | None,
    platform: str | None,
    platform_from: str | None,
    fmt: str | None,
    workers: int | None,
    timeout: float | None,
    strict: bool,
    fail_on: str,
    config_path: Path | None,
    database_path: Path | None,
) -> None:
    """Scan PATH for code that breaks when upgrading PHP or a platform.

    Exit codes: 0 = done (or issues without --strict), 1 = issues at or above
    --fail-on with --strict, 2 = configuration error.
    """
    from compatscan.analysis.runner import run_analysis
    from compatscan.formatters import format_json, format_porcelain, format_rich
    from compatscan.infrastructure.scanner import collect_source_files
    from compatscan.rules.database import RuleDatabase

    if not (from_version and to_version) and not platform:
        click.echo("Error: give --from and --to, --platform, or both.", err=True)
        sys.exit(2)
    if bool(from_version) != bool(to_version):
        click.echo("Error: --from and --to must be used together.", err=True)
        sys.exit(2)

    project_root = path if path.is_dir() else path.parent
    settings = _load_settings(config_path, project_root, database_path)
    settings = settings.with_overrides(workers=workers, timeout=timeout)

    try:
        database = RuleDatabase(settings.database_path, settings.known_versions)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if from_version and to_version and not database.is_valid_range(from_version, to_version):
        click.echo(
            f"Warning: {from_version} -> {to_version} is not a known upgrade range "
            f"(known: {', '.join(database.known_versions)})",
            err=True,
        )

    files = collect_source_files(
        path,
        extensions=settings.file_extensions,
        exclude_patterns=settings.exclude_patterns,
        max_file_size=settings.max_file_size,
    )
    run = run_analysis(
        files,
        database,
        from_version=from_version,
        to_version=to_version,
        platform=platform,
        platform_from_version=platform_from,
        rates=settings.effort_rates,
        workers=settings.workers,
        timeout=settings.timeout,
        context_lines=settings.context_lines,
    )

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    formatters = {
        "rich": format_rich,
        "json": format_json,
        "porcelain": format_porcelain,
    }
    output = formatters[fmt](run)
    if output:
        click.echo(output)
    if fmt == "rich" and run.issues:
        _print_summary_table(run)

    if strict:
        threshold = SEVERITIES.index(fail_on)
        failing = [i for i in run.issues if SEVERITIES.index(i.severity) <= threshold]
        if failing:
            sys.exit(1)


@main.command()
@_config_option
@_database_option
def versions(*, config_path: Path | None, database_path: Path | None) -> None:
    """List known versions, transitions with rule files, and platforms."""
    from compatscan.rules.database import RuleDatabase

    settings = _load_settings(config_path, Path.cwd(), database_path)
    database = RuleDatabase(settings.database_path, settings.known_versions)

    click.echo(f"Known versions: {', '.join(database.known_versions)}")
    for hop_from, hop_to, present in database.available_transitions():
        mark = "✓" if present else "✗"
        click.echo(f"  {mark} {hop_from} -> {hop_to}")
    platforms = database.available_platforms()
    click.echo(f"Platforms: {', '.join(platforms) if platforms else 'none'}")


@main.command()
@click.option("--from", "from_version", required=True, help="Current PHP version.")
@click.option("--to", "to_version", required=True, help="Target PHP version.")
@_config_option
@_database_option
def rules(
    *,
    from_version: str,
    to_version: str,
    config_path: Path | None,
    database_path: Path | None,
) -> None:
    """Show the composed rules for an upgrade range."""
    from compatscan.rules.database import RuleDatabase

    settings = _load_settings(config_path, Path.cwd(), database_path)
    database = RuleDatabase(settings.database_path, settings.known_versions)

    if not database.is_valid_range(from_version, to_version):
        click.echo(f"No rules: {from_version} -> {to_version} is not a known upgrade range")
        return

    composed = database.compose_version_rules(from_version, to_version)
    for category, count in composed.counts().items():
        click.echo(f"{category}: {count}")
    for rule in composed.removed_functions:
        click.echo(f"  [{rule.severity}] {rule.identifier}")
