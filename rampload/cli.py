"""CLI entry point for the staircase HTTP load tester."""

import sys

import click

from rampload.attack import Attacker
from rampload.config import ConfigValidationError, load_config, validate_config
from rampload.exporter import SnapshotExporter
from rampload.metrics import MetricsAggregator
from rampload.models import RampConfig
from rampload.ramp import compute_plan, plan_to_json, run_ramp
from rampload.report import format_report
from rampload.targets import StaticTargeter, TargetParseError, load_targets, parse_header


def ramp_options(f):
    """Options shared by every command that computes a ramp."""
    options = [
        click.option(
            "--config",
            "config_path",
            default=None,
            type=click.Path(),
            help="Optional ramp config file (YAML or JSON). Flags override it.",
        ),
        click.option("--start", type=int, default=None, help="Start frequency per second. [default: 1]"),
        click.option("--slope-pm", type=int, default=None, help="Per-second rate increase every minute. [default: 1]"),
        click.option("--dur-in-min", type=int, default=None, help="Ramp duration in minutes. [default: 2]"),
        click.option("--plat-dur", type=int, default=None, help="Plateau duration in minutes. [default: 1]"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _resolve_config(config_path, **overrides) -> RampConfig:
    config = load_config(config_path) if config_path else RampConfig()
    config = config.with_overrides(**overrides)
    errors = validate_config(config)
    if errors:
        raise ConfigValidationError(
            "config validation failed:\n  - " + "\n  - ".join(errors)
        )
    return config


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
def main():
    """Staircase HTTP load tester -- ramp the request rate and export live metrics."""


@main.command()
@click.option(
    "--targets",
    "-tf",
    "targets_path",
    required=True,
    type=click.Path(),
    help="Path to the targets file (one JSON target per line).",
)
@click.option(
    "--metrics-file",
    "-mf",
    "metrics_path",
    default=None,
    type=click.Path(),
    help="Optional metrics output (JSONL). Truncated if it already exists.",
)
@ramp_options
@click.option("--metrics-period", type=int, default=None, help="Seconds between metrics snapshots. [default: 2]")
@click.option("--max-workers", type=int, default=None, help="Maximum concurrent requests. [default: 10]")
@click.option("--timeout", type=float, default=None, help="Per-request timeout in seconds. [default: 30]")
@click.option("--name", default=None, help="Attack name attached to every result.")
@click.option(
    "--body",
    "body_path",
    default=None,
    type=click.Path(),
    help="File whose contents are the default request body.",
)
@click.option(
    "--header",
    "headers",
    multiple=True,
    help="Extra 'Name: value' header appended to every target. Repeatable.",
)
def attack(
    targets_path,
    metrics_path,
    config_path,
    start,
    slope_pm,
    dur_in_min,
    plat_dur,
    metrics_period,
    max_workers,
    timeout,
    name,
    body_path,
    headers,
):
    """Ramp up the request rate against every target and report the results."""
    try:
        config = _resolve_config(
            config_path,
            start_freq=start,
            slope_per_minute=slope_pm,
            duration_minutes=dur_in_min,
            plateau_minutes=plat_dur,
            metrics_period_seconds=metrics_period,
            max_workers=max_workers,
            timeout_seconds=timeout,
            attack_name=name,
        )
    except ConfigValidationError as exc:
        _fail(str(exc))

    header = {}
    try:
        for value in headers:
            key, val = parse_header(value)
            header.setdefault(key, []).append(val)
    except TargetParseError as exc:
        _fail(str(exc))

    body = b""
    if body_path:
        try:
            with open(body_path, "rb") as f:
                body = f.read()
        except OSError as exc:
            _fail(f"unable to read body file {body_path}: {exc}")

    try:
        targets, target_errors = load_targets(targets_path, body=body, header=header)
    except OSError as exc:
        _fail(f"unable to open targets file {targets_path}: {exc}")

    sink = None
    if metrics_path:
        try:
            sink = open(metrics_path, "w")
        except OSError as exc:
            _fail(f"unable to open metrics file {metrics_path}: {exc}")

    if target_errors:
        for err in target_errors:
            click.echo(f"Warning: {err}", err=True)
    click.echo(f"Loaded {len(targets)} target(s) from {targets_path}", err=True)

    plan = compute_plan(
        config.start_freq,
        config.slope_per_minute,
        config.duration_minutes,
        config.plateau_minutes,
    )
    aggregator = MetricsAggregator()
    exporter = None
    if sink is not None:
        exporter = SnapshotExporter(aggregator, sink, config.metrics_period_seconds).start()

    attacker = Attacker(max_workers=config.max_workers, timeout=config.timeout_seconds)
    try:
        run_ramp(
            StaticTargeter(targets),
            plan,
            attacker,
            aggregator,
            name=config.attack_name,
            on_phase=_echo_phase,
        )
    except KeyboardInterrupt:
        click.echo("Interrupted, stopping attack.", err=True)
    finally:
        attacker.close()
        if exporter is not None:
            exporter.stop()
        if sink is not None:
            sink.close()

    aggregator.close()
    click.echo(format_report(aggregator.summary()))
    if metrics_path:
        click.echo(f"Metrics written to {metrics_path}")


def _echo_phase(index, phase):
    click.echo(
        f"phase {index + 1}: rate - {phase.frequency}/1s for {phase.duration_seconds}s",
        err=True,
    )


@main.command()
@ramp_options
@click.option(
    "--out",
    default=None,
    type=click.Path(),
    help="Optional output path for the plan (JSON). Prints to stdout if omitted.",
)
def plan(config_path, start, slope_pm, dur_in_min, plat_dur, out):
    """Print the ramp plan without attacking anything."""
    try:
        config = _resolve_config(
            config_path,
            start_freq=start,
            slope_per_minute=slope_pm,
            duration_minutes=dur_in_min,
            plateau_minutes=plat_dur,
        )
    except ConfigValidationError as exc:
        _fail(str(exc))

    rate_plan = compute_plan(
        config.start_freq,
        config.slope_per_minute,
        config.duration_minutes,
        config.plateau_minutes,
    )
    plan_json = plan_to_json(rate_plan)

    if out:
        with open(out, "w") as f:
            f.write(plan_json + "\n")
        click.echo(f"Plan written to {out}")
    else:
        click.echo(plan_json)


if __name__ == "__main__":
    main()
