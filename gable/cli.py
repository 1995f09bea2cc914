"""Typer based command line entry points for Gable."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from gable.config import DEFAULT_SETTINGS_NAME, BuildSettings, load_build_settings
from gable.core.errors import ConfigError, GableError
from gable.core.logger import add_file_handler, default_log_dir, get_logger
from gable.core.pipeline import BuildOrchestrator, BuildReport
from gable.services.compiler import EnumTable, SheetKind, parser_for
from gable.services.export import LANGUAGES
from gable_io import discover_sheets, read_sheet_grids

app = typer.Typer(help="Gable design-data compiler.")


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING).",
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    level_value = getattr(logging, log_level.upper(), None)
    if not isinstance(level_value, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")
    logger = get_logger()
    logger.setLevel(level_value)


def _load_settings(
    config: Optional[Path],
    workspace: Optional[Path],
    targets: Optional[List[str]],
    max_workers: Optional[int],
) -> BuildSettings:
    cfg_path = config or (workspace or Path.cwd()) / DEFAULT_SETTINGS_NAME
    settings = load_build_settings(cfg_path, workspace=workspace)
    selected = settings.enabled_targets(targets or None)
    update: dict[str, object] = {"targets": selected}
    if max_workers is not None:
        update["max_workers"] = max_workers
    return settings.model_copy(update=update)


def _print_report(report: BuildReport) -> None:
    for result in report.target_results:
        if result.ok:
            names = ", ".join(path.name for path in result.artifacts)
            typer.echo(f"OK   {result.table} -> {result.target}: {names}")
    for diagnostic in report.diagnostics:
        typer.secho(diagnostic.format(), fg=typer.colors.RED, err=True)
    typer.echo(
        f"{report.state.value}: {len(report.tables)} table(s), "
        f"{len(report.artifacts)} artifact(s), {len(report.diagnostics)} error(s)"
    )


@app.command("build")
def build(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", dir_okay=False, help=f"Settings YAML (default: <workspace>/{DEFAULT_SETTINGS_NAME})."
    ),
    workspace: Optional[Path] = typer.Option(
        None, "--workspace", "-w", file_okay=False, help="Workspace root; overrides the settings file."
    ),
    target: Optional[List[str]] = typer.Option(
        None, "--target", "-t", help="Only build these target names (repeatable)."
    ),
    max_workers: Optional[int] = typer.Option(
        None, "--max-workers", min=1, help="Override the worker thread count."
    ),
) -> None:
    """Compile every sheet in the workspace and export all enabled targets."""

    logger = get_logger()
    try:
        settings = _load_settings(config, workspace, target, max_workers)
    except ConfigError as exc:
        logger.error("build config_error: %s", exc)
        typer.secho(f"Unable to load build settings: {exc.message}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    log_path = add_file_handler(default_log_dir(settings.workspace))
    logger.debug("logging to %s", log_path)

    try:
        grids = discover_sheets(settings.workspace)
    except FileNotFoundError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    report = BuildOrchestrator(logger=logger.getChild("build")).run(grids, settings)
    _print_report(report)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("inspect")
def inspect_workbook(
    workbook: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True, help="Workbook to parse"),
    kind: SheetKind = typer.Option(SheetKind.DATA, "--kind", "-k", help="Sheet kind: data, kv or enum."),
) -> None:
    """Parse a workbook's sheets and print their schemas without exporting."""

    failed = False
    for grid in read_sheet_grids(workbook, kind):
        try:
            parsed = parser_for(grid.kind).parse(grid)
        except GableError as exc:
            typer.secho(str(exc), fg=typer.colors.RED)
            failed = True
            continue
        if isinstance(parsed, EnumTable):
            typer.echo(f"enum {parsed.name}")
            for member in parsed.members:
                typer.echo(f"  {member.name} = {member.value}  {member.description}".rstrip())
            continue
        keys = ", ".join(parsed.key_fields) or "-"
        typer.echo(f"{parsed.kind.value} {parsed.name} (key: {keys})")
        for item in parsed.fields:
            platforms = ",".join(sorted(item.platforms)) or "all"
            link = f" -> {item.link}" if item.link else ""
            typer.echo(f"  {item.index:>3} {item.name}: {item.field_type} [{platforms}]{link}")
    if failed:
        raise typer.Exit(code=1)


@app.command("languages")
def languages() -> None:
    """List supported code-generation languages."""

    for tag, spec in LANGUAGES.items():
        typer.echo(f"{tag:<12} .{spec.extension:<6} keyword={spec.keyword}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
