"""Command line interface for linkshelf."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, NoReturn, Optional

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from linkshelf.classification import ClassificationError, DSPyCategorizer
from linkshelf.config import ConfigError, ConfigManager, LinkshelfConfig
from linkshelf.ingestion.discovery import RootLister
from linkshelf.logging_setup import configure_logging
from linkshelf.organization.cleaner import TreeCleaner
from linkshelf.organization.models import PassResult
from linkshelf.state import (
    DEFAULT_STATE_DIRNAME,
    LedgerError,
    LedgerStore,
    MemoryLedger,
    SQLiteLedger,
    default_ledger_path,
)
from linkshelf.sync import ReconcileService, RunScheduler

console = Console()
log_console = Console(stderr=True)
LOGGER = logging.getLogger(__name__)


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool) -> None:
    """Print CLI output unless quiet mode suppresses it.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
    """
    if quiet and mode != "error":
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {escape(str(root))}: {parts}.[/green]"


def _load_config(overrides: dict[str, Any], *, json_output: bool) -> LinkshelfConfig:
    """Load configuration with CLI overrides, exiting on failure."""
    cli_overrides = {key: value for key, value in overrides.items() if value is not None}
    try:
        return ConfigManager().load(cli_overrides=cli_overrides)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)


def _require_directory(value: Optional[Path], label: str, *, json_output: bool) -> Path:
    """Return ``value`` resolved, exiting when it is unset or not a directory."""
    if value is None:
        _handle_cli_error(
            f"{label} is not set. Pass it as an option or configure paths.{label.lower()}.",
            code="missing_path",
            json_output=json_output,
        )
    path = Path(value).expanduser().resolve()
    if not path.is_dir():
        _handle_cli_error(
            f"{label} {path} does not exist or is not a directory.",
            code="invalid_path",
            json_output=json_output,
        )
    return path


def _open_ledger(config: LinkshelfConfig, target_root: Path, *, dry_run: bool) -> LedgerStore:
    """Open the ledger; dry runs never create or write the database."""
    path = config.paths.ledger_path or default_ledger_path(target_root)
    path = Path(path).expanduser()
    if dry_run:
        if path.exists():
            return SQLiteLedger(path, read_only=True)
        return MemoryLedger()
    return SQLiteLedger(path)


def _count_links(root: Path) -> int:
    """Return the number of symlinks under ``root`` without following any."""
    total = 0
    for directory, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            if os.path.islink(os.path.join(directory, name)):
                total += 1
    return total


def _emit_pass(result: PassResult, target_root: Path, *, json_output: bool, quiet: bool) -> None:
    """Render the outcome of a reconciliation pass."""
    counts = result.counts()
    if json_output:
        payload = result.model_dump(mode="json")
        payload["counts"] = counts
        console.print_json(data=payload)
        return

    if result.skipped:
        _emit_message("[yellow]No new items to process.[/yellow]", mode="warning", quiet=quiet)
        return

    for action in result.links:
        _emit_message(
            f"  {action.outcome.value:<9} {escape(action.target)}", mode="detail", quiet=quiet
        )
    for error in result.errors:
        _emit_message(f"[red]  - {escape(error)}[/red]", mode="error", quiet=quiet)

    label = "Run (dry-run)" if result.dry_run else "Run"
    _emit_message(_format_summary_line(label, target_root, counts), mode="summary", quiet=quiet)


def _prepare_service(
    *,
    source: Optional[Path],
    target: Optional[Path],
    dry_run: Optional[bool],
    reclassify: Optional[str],
    prompt: Optional[str],
    log_level: Optional[str],
    json_output: bool,
    extra_overrides: Optional[dict[str, Any]] = None,
) -> tuple[LinkshelfConfig, ReconcileService, Path]:
    """Load configuration, validate roots, and assemble the reconcile service."""
    overrides: dict[str, Any] = {
        "paths.source_dir": str(source) if source is not None else None,
        "paths.target_dir": str(target) if target is not None else None,
        "sync.dry_run": dry_run,
        "sync.reclassify": reclassify,
        "llm.prompt": prompt,
    }
    overrides.update(extra_overrides or {})
    config = _load_config(overrides, json_output=json_output)

    source_root = _require_directory(config.paths.source_dir, "SOURCE_DIR", json_output=json_output)
    target_root = _require_directory(config.paths.target_dir, "TARGET_DIR", json_output=json_output)
    if source_root == target_root:
        _handle_cli_error(
            "SOURCE_DIR and TARGET_DIR must be different directories.",
            code="invalid_path",
            json_output=json_output,
        )

    dry_run_enabled = config.sync.dry_run
    log_dir = None if dry_run_enabled else target_root / DEFAULT_STATE_DIRNAME
    configure_logging(
        config.logging, console=log_console, log_dir=log_dir, level_override=log_level
    )

    try:
        categorizer = DSPyCategorizer(config.llm, config.organization.allowed_roots)
        ledger = _open_ledger(config, target_root, dry_run=dry_run_enabled)
    except (ClassificationError, LedgerError) as exc:
        code = "ledger_error" if isinstance(exc, LedgerError) else "config_error"
        _handle_cli_error(str(exc), code=code, json_output=json_output, original=exc)

    service = ReconcileService(
        source_root=source_root,
        target_root=target_root,
        categorizer=categorizer,
        ledger=ledger,
        allowed_roots=config.organization.allowed_roots,
        dry_run=dry_run_enabled,
        reclassify=config.sync.reclassify,
        lister=RootLister(include_hidden=config.processing.include_hidden),
    )
    return config, service, target_root


def _quiet_enabled(ctx: click.Context, quiet: bool, config: LinkshelfConfig) -> bool:
    if ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE:
        return quiet
    return config.cli.quiet_default


_source_option = click.option(
    "--source",
    type=click.Path(file_okay=False, path_type=Path),
    help="Flat source directory to categorize (overrides paths.source_dir).",
)
_target_option = click.option(
    "--target",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory that receives the symlink tree (overrides paths.target_dir).",
)
_dry_run_option = click.option(
    "--dry-run/--apply",
    "dry_run",
    default=None,
    help="Log intended symlink operations instead of performing them.",
)
_reclassify_option = click.option(
    "--reclassify",
    type=click.Choice(["all", "new"]),
    help="Reclassify every entry when something is new, or only the new entries.",
)
_prompt_option = click.option("--prompt", type=str, help="Extra instructions for categorization.")
_log_level_option = click.option("--log-level", type=str, help="Override logging.level.")
_quiet_option = click.option("--quiet", is_flag=True, help="Suppress non-error output.")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="linkshelf")
def cli() -> None:
    """Keep a categorized symlink view of a flat source directory."""


@cli.command()
@_source_option
@_target_option
@_dry_run_option
@_reclassify_option
@_prompt_option
@_log_level_option
@click.option("--json", "json_output", is_flag=True, help="Emit the pass result as JSON.")
@_quiet_option
@click.pass_context
def run(
    ctx: click.Context,
    source: Optional[Path],
    target: Optional[Path],
    dry_run: Optional[bool],
    reclassify: Optional[str],
    prompt: Optional[str],
    log_level: Optional[str],
    json_output: bool,
    quiet: bool,
) -> None:
    """Run a single reconciliation pass and exit."""
    config, service, target_root = _prepare_service(
        source=source,
        target=target,
        dry_run=dry_run,
        reclassify=reclassify,
        prompt=prompt,
        log_level=log_level if log_level or not json_output else "ERROR",
        json_output=json_output,
    )
    quiet_enabled = _quiet_enabled(ctx, quiet, config)

    try:
        result = service.run_pass()
    except ClassificationError as exc:
        _handle_cli_error(
            str(exc), code="classification_error", json_output=json_output, original=exc
        )
    except OSError as exc:
        _handle_cli_error(
            f"Unable to list source directory: {exc}",
            code="listing_error",
            json_output=json_output,
            original=exc,
        )

    _emit_pass(result, target_root, json_output=json_output, quiet=quiet_enabled)


@cli.command()
@_source_option
@_target_option
@_dry_run_option
@_reclassify_option
@_prompt_option
@_log_level_option
@click.option(
    "--interval",
    type=float,
    help="Minutes between passes (overrides sync.interval_minutes).",
)
@_quiet_option
@click.pass_context
def watch(
    ctx: click.Context,
    source: Optional[Path],
    target: Optional[Path],
    dry_run: Optional[bool],
    reclassify: Optional[str],
    prompt: Optional[str],
    log_level: Optional[str],
    interval: Optional[float],
    quiet: bool,
) -> None:
    """Run a pass now, then keep reconciling on a fixed interval until Ctrl+C."""
    if interval is not None and interval <= 0:
        raise click.ClickException("--interval must be greater than zero.")

    config, service, target_root = _prepare_service(
        source=source,
        target=target,
        dry_run=dry_run,
        reclassify=reclassify,
        prompt=prompt,
        log_level=log_level,
        json_output=False,
        extra_overrides={"sync.interval_minutes": interval},
    )
    quiet_enabled = _quiet_enabled(ctx, quiet, config)

    def job() -> None:
        result = service.run_pass()
        _emit_pass(result, target_root, json_output=False, quiet=quiet_enabled)

    scheduler = RunScheduler(job, config.sync.interval_minutes * 60)
    _emit_message(
        f"[cyan]Organizer is running every {config.sync.interval_minutes:g} minutes. "
        "Press Ctrl+C to exit.[/cyan]",
        mode="detail",
        quiet=quiet_enabled,
    )
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()
        _emit_message(
            "[yellow]Watch stopped by user request.[/yellow]", mode="summary", quiet=quiet_enabled
        )


@cli.command()
@_target_option
@_dry_run_option
@_log_level_option
@_quiet_option
@click.pass_context
def clean(
    ctx: click.Context,
    target: Optional[Path],
    dry_run: Optional[bool],
    log_level: Optional[str],
    quiet: bool,
) -> None:
    """Remove every symlink under the target root and prune empty directories."""
    config = _load_config(
        {
            "paths.target_dir": str(target) if target is not None else None,
            "sync.dry_run": dry_run,
        },
        json_output=False,
    )
    target_root = _require_directory(config.paths.target_dir, "TARGET_DIR", json_output=False)
    configure_logging(config.logging, console=log_console, level_override=log_level)
    quiet_enabled = _quiet_enabled(ctx, quiet, config)

    report = TreeCleaner(dry_run=config.sync.dry_run).clean(target_root)
    for error in report.errors:
        _emit_message(f"[red]  - {escape(error)}[/red]", mode="error", quiet=quiet_enabled)
    label = "Clean (dry-run)" if config.sync.dry_run else "Clean"
    _emit_message(
        _format_summary_line(
            label,
            target_root,
            {
                "links_removed": len(report.removed_links),
                "dirs_removed": len(report.removed_dirs),
                "errors": len(report.errors),
            },
        ),
        mode="summary",
        quiet=quiet_enabled,
    )


@cli.command()
@_target_option
@click.option("--json", "json_output", is_flag=True, help="Emit status information as JSON.")
def status(target: Optional[Path], json_output: bool) -> None:
    """Show how many entries are recorded and how many symlinks exist."""
    config = _load_config(
        {"paths.target_dir": str(target) if target is not None else None},
        json_output=json_output,
    )
    target_root = _require_directory(config.paths.target_dir, "TARGET_DIR", json_output=json_output)
    ledger_path = Path(config.paths.ledger_path or default_ledger_path(target_root)).expanduser()

    processed = 0
    if ledger_path.exists():
        try:
            processed = SQLiteLedger(ledger_path, read_only=True).count()
        except LedgerError as exc:
            _handle_cli_error(str(exc), code="ledger_error", json_output=json_output, original=exc)

    payload = {
        "target_root": str(target_root),
        "ledger_path": str(ledger_path),
        "processed": processed,
        "symlinks": _count_links(target_root),
    }
    if json_output:
        console.print_json(data=payload)
        return
    console.print(
        _format_summary_line(
            "Status",
            target_root,
            {"processed": payload["processed"], "symlinks": payload["symlinks"]},
        )
    )


@cli.group()
def config() -> None:
    """Manage linkshelf configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    try:
        diff = ConfigManager().set_value(key, value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {escape(key.strip())}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
