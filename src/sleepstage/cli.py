"""CLI for the sleepstage prediction toolkit."""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path

import click


def _write_rows(rows, output: str) -> None:
    with open(output, "w") as f:
        for row in rows:
            f.write(row + "\n")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool) -> None:
    """sleepstage — scheduled sleep-stage prediction from wearable samples."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


@main.group()
def prefs() -> None:
    """Show or change the saved alarm preferences."""


@prefs.command("show")
@click.option("--file", "path", default=None, help="Preferences file path.")
def prefs_show(path: str | None) -> None:
    """Print the saved alarm preferences."""
    from sleepstage.config import default_path, load_preferences

    try:
        p = load_preferences(path)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"Preferences: {path or default_path()}")
    click.echo(f"  Alarm:         {p.alarm_time}")
    click.echo(f"  Bedtime:       {p.bed_time}")
    click.echo(f"  Wake-up span:  {p.wake_up_buffer_min} min")
    click.echo(f"  Re-alarm:      {f'{p.realarm_min} min' if p.realarm_min else 'off'}")
    click.echo(f"  Smart alarm:   {'on' if p.smart_alarm else 'off'}")
    click.echo(f"  Bedtime alert: {'on' if p.bedtime_reminder else 'off'}")
    click.echo(f"  Recheck every: {p.recheck_interval_sec:.0f} s")


@prefs.command("set")
@click.option("--file", "path", default=None, help="Preferences file path.")
@click.option("--alarm", default=None, help="Wake deadline, HH:MM.")
@click.option("--bedtime", default=None, help="Bedtime, HH:MM.")
@click.option("--buffer", "buffer_min", type=click.Choice(["30", "45", "60"]), default=None,
              help="Minutes before the alarm to start predicting.")
@click.option("--realarm", type=click.Choice(["0", "5", "10", "15", "30"]), default=None,
              help="Re-alarm delay in minutes (0 = off).")
@click.option("--smart/--no-smart", default=None, help="Enable smart alarm prediction.")
@click.option("--recheck", type=float, default=None, help="Recheck interval in seconds.")
def prefs_set(
    path: str | None,
    alarm: str | None,
    bedtime: str | None,
    buffer_min: str | None,
    realarm: str | None,
    smart: bool | None,
    recheck: float | None,
) -> None:
    """Update and save alarm preferences."""
    from sleepstage.config import load_preferences, save_preferences

    try:
        p = load_preferences(path)
        if alarm is not None:
            p.alarm_time = alarm
        if bedtime is not None:
            p.bed_time = bedtime
        if buffer_min is not None:
            p.wake_up_buffer_min = int(buffer_min)
        if realarm is not None:
            p.realarm_min = int(realarm)
        if smart is not None:
            p.smart_alarm = smart
        if recheck is not None:
            p.recheck_interval_sec = recheck
        written = save_preferences(p, path)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"Saved preferences to {written}")


# ---------------------------------------------------------------------------
# Prediction
# ---------------------------------------------------------------------------


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--model", "-m", default=None, type=click.Path(exists=True),
              help="joblib-persisted estimator (default: heuristic classifier).")
@click.option("--alarm", default=None, help="Wake deadline HH:MM (default: saved preference).")
@click.option("--buffer", "buffer_min", type=int, default=None,
              help="Lead minutes before the alarm (default: saved preference).")
@click.option("--resting-hr", default=60.0, help="Resting HR for the heuristic classifier.")
@click.option("--output", "-o", default=None, help="CSV output path.")
def predict(
    file: str,
    model: str | None,
    alarm: str | None,
    buffer_min: int | None,
    resting_hr: float,
    output: str | None,
) -> None:
    """Replay a sample capture through the scheduled stage predictor."""
    from sleepstage.analytics.classifier import EstimatorClassifier, HeuristicStageClassifier
    from sleepstage.config import load_preferences, parse_clock_time
    from sleepstage.replay import load_batches, replay_batches
    from sleepstage.results import export_filename

    try:
        p = load_preferences()
        at = parse_clock_time(alarm or p.alarm_time)
    except ValueError as e:
        raise click.ClickException(str(e))
    lead = buffer_min if buffer_min is not None else p.wake_up_buffer_min

    batches = load_batches(file)
    if not batches:
        raise click.ClickException(f"No sample batches in {file}")
    first = batches[0].time or datetime.now()
    deadline = datetime.combine(first.date(), at)
    if deadline < first:
        deadline += timedelta(days=1)

    classifier = (EstimatorClassifier.from_path(model) if model
                  else HeuristicStageClassifier(resting_hr=resting_hr))

    click.echo(f"Replaying {len(batches)} batches, alarm {deadline:%Y-%m-%d %H:%M}, "
               f"lead {lead} min...")
    manager = replay_batches(batches, classifier, deadline, lead)

    if len(manager.results) == 0:
        click.echo("No predictions were made.")
    for result in manager.results:
        click.echo(f"  [{result.timestamp}] level {result.predicted_label} "
                   f"({result.probability:.0%})")

    out = output or export_filename(deadline.date())
    _write_rows(manager.export_rows(), out)
    click.echo(f"\n{len(manager.results)} prediction(s) written to {out}")

    snooze = p.snooze_deadline(deadline)
    if snooze is not None:
        click.echo(f"Re-alarm at {snooze:%H:%M} if dismissed")


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--user", "-u", default="user", help="User name for the output file name.")
@click.option("--output", "-o", default=None, help="CSV output path.")
def samples(file: str, user: str, output: str | None) -> None:
    """Export the samples in a capture as CSV."""
    from sleepstage.replay import load_batches
    from sleepstage.samples import sample_rows, samples_filename

    batches = load_batches(file)
    all_samples = [s for b in batches for s in b.samples]
    out = output or samples_filename(user, date.today())
    _write_rows(sample_rows(all_samples), out)
    click.echo(f"{len(all_samples)} samples written to {out}")


# ---------------------------------------------------------------------------
# Health export reports
# ---------------------------------------------------------------------------


@main.command()
@click.argument("export", type=click.Path(exists=True))
@click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="First day to include.")
@click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Day after the last day to include.")
@click.option("--mode", type=click.Choice(["all", "time", "level"]), default="all",
              help="all records, time-sorted without In Bed, or per-level totals.")
@click.option("--recent", is_flag=True, help="Only the last 7 days, without In Bed.")
@click.option("--output", "-o", default=None, help="Write the report as CSV.")
def report(export: str, start: datetime | None, end: datetime | None,
           mode: str, recent: bool, output: str | None) -> None:
    """Report sleep-analysis records from an Apple Health export.xml."""
    from sleepstage.records import ReportMode, load_sleep_records, recent_records, report_rows

    records = load_sleep_records(export, start, end)
    if recent:
        records = recent_records(records, datetime.now())
    rows = list(report_rows(records, ReportMode(mode)))

    if output:
        _write_rows(rows, output)
        click.echo(f"{len(records)} records reported to {output}")
    else:
        for row in rows:
            click.echo(row)


@main.command("heart-rate")
@click.argument("export", type=click.Path(exists=True))
def heart_rate_cmd(export: str) -> None:
    """Print the latest heart rate in an Apple Health export.xml."""
    from sleepstage.records import latest_heart_rate

    click.echo(f"Heart Rate: {latest_heart_rate(Path(export)):.0f} bpm")


if __name__ == "__main__":
    main()
