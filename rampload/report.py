"""Render an end-of-run text report from a metrics summary."""

from typing import List

from rampload.models import MetricsSummary


def _fmt_duration(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:.3f}s"
    if seconds >= 0.001:
        return f"{seconds * 1000:.3f}ms"
    return f"{seconds * 1_000_000:.3f}µs"


def format_report(summary: MetricsSummary) -> str:
    """Build a multi-line report similar to vegeta's text reporter."""
    lines: List[str] = []
    lines.append(
        f"Requests      [total, rate, throughput]  "
        f"{summary.requests}, {summary.rate:.2f}, {summary.throughput:.2f}"
    )
    lines.append(
        f"Duration      [total, attack, wait]      "
        f"{_fmt_duration(summary.duration + summary.wait)}, "
        f"{_fmt_duration(summary.duration)}, {_fmt_duration(summary.wait)}"
    )
    latencies = [
        summary.latency_min,
        summary.latency_mean,
        summary.latency_p50,
        summary.latency_p90,
        summary.latency_p95,
        summary.latency_p99,
        summary.latency_max,
    ]
    lines.append(
        "Latencies     [min, mean, 50, 90, 95, 99, max]  "
        + ", ".join(_fmt_duration(v) for v in latencies)
    )
    lines.append(
        f"Bytes In      [total, mean]              "
        f"{summary.bytes_in_total}, {summary.bytes_in_mean:.2f}"
    )
    lines.append(
        f"Bytes Out     [total, mean]              "
        f"{summary.bytes_out_total}, {summary.bytes_out_mean:.2f}"
    )
    lines.append(f"Success       [ratio]                    {summary.success * 100:.2f}%")

    codes = "  ".join(
        f"{code}:{count}" for code, count in sorted(summary.status_codes.items())
    )
    lines.append(f"Status Codes  [code:count]               {codes}")

    lines.append("Error Set:")
    for err in summary.errors:
        lines.append(err)

    return "\n".join(lines)
