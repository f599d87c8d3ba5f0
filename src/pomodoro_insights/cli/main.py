"""Main CLI interface for Pomodoro Insights."""

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.table import Table

from pomodoro_insights.core.aggregator import format_duration, pressure_message
from pomodoro_insights.core.backend import AnalyticsBackend
from pomodoro_insights.core.config import HOME_ENV, load_config
from pomodoro_insights.core.errors import InsightsError
from pomodoro_insights.core.log import configure_logging
from pomodoro_insights.models.session import SessionMode, SessionReason, SessionRecord
from pomodoro_insights.models.summary import AnalyticsSummary, WindowSummary

console = Console()

MODE_CHOICES = [mode.value for mode in SessionMode]
REASON_CHOICES = [reason.value for reason in SessionReason]


def get_backend(ctx: click.Context) -> AnalyticsBackend:
    return ctx.obj["backend"]


def _format_percent(rate: float) -> str:
    return f"{rate * 100:.0f}%"


def _window_label(summary: WindowSummary) -> str:
    if summary.window_days is None:
        return "All time"
    return f"Last {summary.window_days} days"


def _print_record(record: SessionRecord) -> None:
    status = "completed" if record.completed else "unfinished"
    console.print(
        f"[green]✅ Recorded {record.mode.value} session[/green] "
        f"[cyan]{record.session_id}[/cyan] "
        f"({format_duration(record.actual_seconds)} of "
        f"{format_duration(record.planned_seconds)}, {status}, {record.reason.value})"
    )


def _summary_table(summary: AnalyticsSummary) -> Table:
    windows = [summary.seven_day, summary.thirty_day, summary.all_time]

    table = Table(title="Session Insights")
    table.add_column("Metric", style="bold")
    for window in windows:
        table.add_column(_window_label(window), style="cyan", justify="right")

    rows = [
        ("Finish pressure", lambda w: str(w.finish_pressure_score)),
        ("Sessions", lambda w: str(w.total_sessions)),
        ("Completed", lambda w: str(w.completed_sessions)),
        ("Unfinished", lambda w: str(w.unfinished_sessions)),
        ("Completion rate", lambda w: _format_percent(w.completion_rate)),
        ("Average completion", lambda w: _format_percent(w.average_completion)),
        ("Focus time", lambda w: format_duration(w.focus_actual_seconds)),
        ("Deep focus sessions", lambda w: str(w.deep_focus_sessions)),
        ("Unfinished time", lambda w: format_duration(w.unfinished_seconds)),
        ("Active days", lambda w: str(w.active_days)),
        ("Streak (days)", lambda w: str(w.streak_days)),
    ]
    for label, render in rows:
        table.add_row(label, *(render(window) for window in windows))
    return table


@click.group()
@click.version_option(package_name="pomodoro-insights")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    envvar=HOME_ENV,
    help="Directory holding the analytics data",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, data_dir: Optional[str], verbose: bool):
    """Pomodoro Insights - session telemetry for your focus timer."""
    config = load_config(data_dir)
    configure_logging("DEBUG" if verbose else config.log_level, config.log_file)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["backend"] = AnalyticsBackend.from_config(config)


@main.command()
@click.pass_context
def init(ctx: click.Context):
    """Create the session log if it doesn't exist yet."""
    store = get_backend(ctx).store
    try:
        store.initialize()
    except InsightsError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort() from e
    console.print(f"[green]✅ Session log ready at {store.records_path}[/green]")


@main.command()
@click.option(
    "--mode",
    type=click.Choice(MODE_CHOICES),
    default=SessionMode.FOCUS.value,
    help="Timer stage",
)
@click.option("--planned", type=int, help="Planned duration in seconds")
@click.option("--actual", type=int, help="Elapsed seconds before the stage ended")
@click.option(
    "--reason",
    type=click.Choice(REASON_CHOICES),
    default=SessionReason.COMPLETED.value,
    help="Why the stage ended",
)
@click.option("--cycle", type=int, default=1, help="Round within the cycle")
@click.option("--skipped", is_flag=True, help="Stage was skipped explicitly")
@click.option("--started-at", help="ISO-8601 start time (defaults to now)")
@click.option("--ended-at", help="ISO-8601 end time (defaults to now)")
@click.option("--session-id", help="Session identifier (generated if omitted)")
@click.option("--stdin", "from_stdin", is_flag=True, help="Read a JSON payload from stdin")
@click.pass_context
def record(
    ctx: click.Context,
    mode: str,
    planned: Optional[int],
    actual: Optional[int],
    reason: str,
    cycle: int,
    skipped: bool,
    started_at: Optional[str],
    ended_at: Optional[str],
    session_id: Optional[str],
    from_stdin: bool,
):
    """Record one finalized timer stage."""
    if from_stdin:
        try:
            payload: Dict[str, Any] = json.loads(sys.stdin.read() or "{}")
        except json.JSONDecodeError as e:
            console.print(f"[red]Error: invalid JSON payload: {e}[/red]")
            raise click.Abort() from e
        if not isinstance(payload, dict):
            console.print("[red]Error: payload must be a JSON object[/red]")
            raise click.Abort()
    else:
        if planned is None:
            console.print("[red]Error: --planned is required without --stdin[/red]")
            raise click.Abort()
        payload = {
            "sessionId": session_id,
            "startedAt": started_at,
            "endedAt": ended_at,
            "mode": mode,
            "plannedSeconds": planned,
            "actualSeconds": planned if actual is None else actual,
            "wasSkipped": skipped,
            "cycleIndex": cycle,
            "reason": reason,
        }

    try:
        session = get_backend(ctx).record_session(payload)
    except InsightsError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort() from e

    if session is None:
        console.print("[yellow]Nothing recorded: no time elapsed in that stage[/yellow]")
        return
    _print_record(session)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
@click.pass_context
def summary(ctx: click.Context, as_json: bool):
    """Show completion, streak and finish pressure metrics."""
    try:
        result = get_backend(ctx).get_summary()
    except InsightsError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort() from e

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
        return

    console.print(_summary_table(result))
    console.print(f"[bold]{pressure_message(result.seven_day)}[/bold]")
    console.print(f"[dim]Updated {result.last_updated_at} from {result.storage_path}[/dim]")


@main.command()
@click.option("--limit", default=10, help="Number of recent sessions to show")
@click.pass_context
def history(ctx: click.Context, limit: int):
    """List the most recent recorded sessions."""
    try:
        records = get_backend(ctx).store.read_all_records()
    except InsightsError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort() from e

    if not records:
        console.print("[yellow]No sessions recorded yet[/yellow]")
        return

    table = Table(title="Recent Sessions")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Ended", style="magenta")
    table.add_column("Mode", style="green")
    table.add_column("Duration", style="blue")
    table.add_column("Cycle", justify="right")
    table.add_column("Reason", style="yellow")
    table.add_column("Status")

    recent = records[-limit:] if limit > 0 else records
    for session in reversed(recent):
        ended = session.ended
        table.add_row(
            session.session_id[:20],
            ended.strftime("%Y-%m-%d %H:%M") if ended else session.ended_at,
            session.mode.value,
            f"{format_duration(session.actual_seconds)} / "
            f"{format_duration(session.planned_seconds)}",
            str(session.cycle_index),
            session.reason.value,
            "🟢 Done" if session.completed else "⚫ Unfinished",
        )

    console.print(table)


@main.command()
@click.pass_context
def path(ctx: click.Context):
    """Print the location of the session log."""
    click.echo(str(Path(get_backend(ctx).store.records_path)))


if __name__ == "__main__":
    main()
