"""Main CLI entry point for op-monitor."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from op_monitor import __version__
from op_monitor.config import MonitorConfig, load_config
from op_monitor.constants import DEFAULT_REPORT_TIMEFRAME
from op_monitor.context import ContextAggregator, top_actions
from op_monitor.exceptions import MonitorError
from op_monitor.logging_config import configure_logging
from op_monitor.models import parse_instant
from op_monitor.monitor import ActivityMonitor
from op_monitor.persistence import FilePersistenceBridge
from op_monitor.providers.chain import create_query_layer
from op_monitor.providers.openai_compat import OpenAICompatProvider
from op_monitor.settings import RuntimeSettings

# Load .env file from current directory if it exists
load_dotenv(Path.cwd() / ".env", verbose=False)

app = typer.Typer(
    name="opmon",
    help="Activity monitoring with LLM-backed analysis, context learning and reporting.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def print_error(message: str) -> None:
    console.print(f"[bold red]✗[/bold red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_info(message: str) -> None:
    console.print(f"[cyan]{message}[/cyan]")


def _load_runtime() -> MonitorConfig:
    """Load the config file and apply OPMON_* environment overrides."""
    settings = RuntimeSettings()
    config = load_config(Path(settings.config_file))

    if settings.data_dir:
        config.data_dir = settings.data_dir
    if settings.log_level:
        config.log_level = settings.log_level
    if settings.ollama_host:
        config.providers.local.base_url = settings.ollama_host

    configure_logging(
        config.log_level,
        log_file=Path(settings.log_file) if settings.log_file else None,
        log_rotation=config.log_rotation,
    )
    return config


def _read_events(path: Path) -> list[dict[str, Any]]:
    """Read JSON-lines events, skipping blank lines.

    Raises:
        typer.Exit: If the file is missing or a line is not a JSON object
            with ``source`` and ``action``.
    """
    if not path.exists():
        print_error(f"Events file not found: {path}")
        raise typer.Exit(code=1)

    records: list[dict[str, Any]] = []
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                print_error(f"{path}:{lineno}: invalid JSON ({e.msg})")
                raise typer.Exit(code=1) from None
            if not isinstance(record, dict) or not (record.get("source") and record.get("action")):
                print_error(f"{path}:{lineno}: events need 'source' and 'action'")
                raise typer.Exit(code=1)
            records.append(record)
    return records


def _format_instant(instant: datetime | None) -> str:
    return instant.strftime("%Y-%m-%d %H:%M") if instant else "-"


@app.command("providers")
def providers() -> None:
    """Probe every configured model provider and show which are reachable."""
    config = _load_runtime()
    query_layer = create_query_layer(config)
    try:
        availability = query_layer.probe()

        table = Table(title="Model Providers")
        table.add_column("Provider", style="cyan", no_wrap=True)
        table.add_column("Type")
        table.add_column("Model")
        table.add_column("Status")

        for provider in query_layer.providers:
            if isinstance(provider, OpenAICompatProvider):
                model = provider.model
            else:
                model = ", ".join(sorted(set(query_layer.models.values())))
            status = (
                "[green]✓ Available[/green]"
                if availability.get(provider.name)
                else "[dim]Unavailable[/dim]"
            )
            table.add_row(
                provider.name,
                "local" if provider.is_local else "remote",
                model,
                status,
            )

        console.print(table)
        available = sum(1 for ok in availability.values() if ok)
        print_info(f"\nAvailable: {available}/{len(availability)}")
    finally:
        query_layer.close()


@app.command("replay")
def replay(
    events_file: Path = typer.Argument(..., help="JSON-lines file of events to feed"),
    report: str | None = typer.Option(
        None,
        "--report",
        "-r",
        help="Generate a report of this type after the replay",
    ),
    timeframe: str = typer.Option(
        DEFAULT_REPORT_TIMEFRAME,
        "--timeframe",
        "-t",
        help="Report lookback window (e.g. 30m, 1h, 24h, 7d)",
    ),
) -> None:
    """Feed recorded events through a monitor session.

    Each line holds ``source``, ``action`` and optionally ``data``,
    ``context`` and an ISO-8601 ``timestamp``. Context is persisted when the
    session stops.
    """
    config = _load_runtime()
    records = _read_events(events_file)

    monitor = ActivityMonitor(config, persistence=FilePersistenceBridge(config.data_dir))
    try:
        monitor.start()
        for record in records:
            monitor.log_activity(
                record["source"],
                record["action"],
                payload=record.get("data") or {},
                context=record.get("context") or {},
                timestamp=parse_instant(record.get("timestamp")),
            )
        print_success(f"Replayed {len(records)} event(s)")

        if report:
            result = monitor.generate_report(report, timeframe)
            print_success(
                f"{result.report_type} report over {result.timeframe}: "
                f"{result.total_events} event(s)"
            )
            if result.location:
                print_info(f"Saved to {result.location}")
            summary = result.content.get("summary")
            if summary:
                console.print(summary)

        monitor.update_learning()
        status = monitor.get_status()
        print_info(
            f"Sources: {status.active_sources}  Events: {status.total_events}  "
            f"Analyzed: {sum(1 for e in monitor.store if e.analyzed)}"
        )
    except (TypeError, ValueError) as e:
        # Bad timestamp in the events file
        print_error(f"Invalid event data: {e}")
        raise typer.Exit(code=1) from None
    except MonitorError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None
    finally:
        monitor.close()


@app.command("context")
def context(
    source: str | None = typer.Argument(None, help="Only show this source"),
) -> None:
    """Show persisted per-source context and learning snapshots."""
    config = _load_runtime()
    bridge = FilePersistenceBridge(config.data_dir)
    try:
        data = bridge.load_context()
    except MonitorError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None

    aggregator = ContextAggregator()
    if data:
        try:
            aggregator.import_state(data)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            print_error(f"Stored contexts in {bridge.contexts_path} are corrupt: {e}")
            raise typer.Exit(code=1) from None

    contexts = aggregator.contexts
    if not contexts:
        print_info(f"No stored contexts in {bridge.contexts_path}")
        return

    if source is not None:
        if source not in contexts:
            print_error(f"Unknown source: {source}")
            raise typer.Exit(code=1)
        contexts = {source: contexts[source]}

    table = Table(title="Source Context")
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Events", justify="right")
    table.add_column("Last Event")
    table.add_column("Risk Trend")
    table.add_column("Top Actions")

    for source_id, ctx in contexts.items():
        snapshot = aggregator.learning_data.get(source_id)
        ranked = snapshot.top_actions if snapshot else top_actions(ctx.action_counts)
        table.add_row(
            source_id,
            str(ctx.total_events),
            _format_instant(ctx.last_event_at),
            ctx.risk_trend.value,
            ", ".join(f"{action} ({count})" for action, count in ranked) or "-",
        )

    console.print(table)


@app.command("version")
def version() -> None:
    """Show version information."""
    console.print(f"[bold cyan]op-monitor[/bold cyan] version [green]{__version__}[/green]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
