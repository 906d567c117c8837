"""CLI for the healthscore engine."""

import asyncio
import json
import logging
from datetime import date, datetime

import click


def _parse_when(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"not an ISO-8601 timestamp: {value!r}")


def _load(file: str, strict: bool):
    from healthscore.exceptions import ExportFormatError
    from healthscore.loader import load_export

    try:
        return load_export(file, strict=strict)
    except ExportFormatError as exc:
        raise click.ClickException(str(exc))


def _latest_timestamp(source) -> datetime | None:
    """Newest timestamp anywhere in the export, used as the default "now"."""
    stamps = [s.end for s in source.intervals]
    for points in source.quantities.values():
        stamps.extend(ts for ts, _ in points)
    return max(stamps, default=None)


def _state_dict(state) -> dict:
    out = {"state": state.kind}
    if state.kind == "computed":
        out.update(value=state.value, status=state.status.value)
    elif state.kind == "unavailable":
        out["reason"] = state.reason
    return out


def _state_text(state) -> str:
    if state.kind == "computed":
        return f"{state.value:.0f}/100 ({state.status.value})"
    if state.kind == "unavailable":
        return f"unavailable ({state.reason})"
    return "pending"


@click.group()
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug).")
def main(verbose: int) -> None:
    """healthscore — sleep sessions, baselines and daily health scores."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@main.command("analyze")
@click.argument("file", type=click.Path(exists=True))
@click.option("--day", "-d", default=None, help="Day to score (YYYY-MM-DD; default: day of --now).")
@click.option("--now", "now_str", default=None, help="Reference time (ISO-8601; default: newest sample).")
@click.option("--output", "-o", default=None, help="Write scores JSON to file.")
@click.option("--strict", is_flag=True, help="Fail on malformed export lines instead of skipping.")
def analyze_cmd(file: str, day: str | None, now_str: str | None, output: str | None, strict: bool) -> None:
    """Score one day from a JSONL sample export."""
    from healthscore.config import EngineConfig
    from healthscore.orchestrator import ScoreOrchestrator

    source = _load(file, strict)
    now = _parse_when(now_str) or _latest_timestamp(source) or datetime.now()
    target = date.fromisoformat(day) if day else now.date()

    orchestrator = ScoreOrchestrator(
        source,
        config=EngineConfig.from_env().replace(debounce_seconds=0.0),
        clock=lambda: now,
    )

    async def _run() -> None:
        await orchestrator.refresh(target)
        orchestrator.flush()
        orchestrator.close()

    asyncio.run(_run())

    summary = orchestrator.daily_summary
    scores = orchestrator.score_states()
    availability = orchestrator.data_availability()

    click.echo(f"\n{'=' * 60}")
    click.echo(f"  Daily Summary: {target.isoformat()}")
    click.echo(f"{'=' * 60}")
    if summary is not None and summary.has_data:
        click.echo(f"  Asleep:     {summary.duration_hours:.1f} h "
                   f"(eff {summary.average_efficiency:.0%}, "
                   f"{summary.total_wake_events} wake events)")
        click.echo(f"  Bedtime:    {summary.bedtime:%H:%M} -> {summary.wake_time:%H:%M}")
    else:
        click.echo("  Asleep:     no session")
    for category, state in scores.items():
        label = category.value.capitalize() + ":"
        click.echo(f"  {label:<11} {_state_text(state)}")
    if not availability.is_complete:
        missing = ", ".join(m.label for m in availability.missing) or "-"
        stale = ", ".join(m.label for m in availability.stale) or "-"
        click.echo(f"  Missing:    {missing}")
        click.echo(f"  Stale:      {stale}")
    click.echo(f"{'=' * 60}")

    if output:
        report = {
            "date": target.isoformat(),
            "now": now.isoformat(),
            "sleep": summary.to_dict() if summary is not None else None,
            "scores": {c.value: _state_dict(s) for c, s in scores.items()},
            "metrics": {m.value: s.kind for m, s in orchestrator.metric_states().items()},
            "missing": [m.value for m in availability.missing],
            "stale": [m.value for m in availability.stale],
        }
        with open(output, "w") as f:
            json.dump(report, f, indent=2)
        click.echo(f"\nScores written to {output}")


@main.command("sessions")
@click.argument("file", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Print sessions as JSON.")
@click.option("--strict", is_flag=True, help="Fail on malformed export lines instead of skipping.")
def sessions_cmd(file: str, as_json: bool, strict: bool) -> None:
    """List the sleep sessions reconstructed from a JSONL export."""
    from healthscore.analytics.sessions import build_sessions
    from healthscore.config import EngineConfig

    source = _load(file, strict)
    if not source.intervals:
        click.echo("No sleep samples.")
        return

    config = EngineConfig.from_env()
    start = min(s.start for s in source.intervals)
    end = max(s.end for s in source.intervals)
    sessions = build_sessions(
        source.intervals,
        start,
        end,
        now=end,
        max_gap=config.max_gap,
        min_duration=config.min_session,
    )

    if as_json:
        click.echo(json.dumps([
            {
                "start": s.start.isoformat(),
                "end": s.end.isoformat(),
                "duration_hours": round(s.duration_hours, 2),
                "efficiency": round(s.efficiency, 3),
                "wake_events": s.wake_events,
                "source": s.source.value,
            }
            for s in sessions
        ], indent=2))
        return

    if not sessions:
        click.echo("No sleep sessions found.")
        return
    click.echo(f"{len(sessions)} session(s):")
    for s in sessions:
        click.echo(f"  {s.start:%Y-%m-%d %H:%M} -> {s.end:%Y-%m-%d %H:%M}  "
                   f"{s.duration_hours:4.1f} h  eff {s.efficiency:.0%}  "
                   f"wakes {s.wake_events}  [{s.source.value}]")


if __name__ == "__main__":
    main()
