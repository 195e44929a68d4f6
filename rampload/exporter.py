"""Periodic export of metrics snapshots to a line-delimited JSON sink."""

import os
import threading
from typing import Callable, List, Optional, TextIO

import click

from rampload.metrics import MetricsAggregator, snapshot_from_json, snapshot_to_json
from rampload.models import Snapshot


def _report_error(exc: Exception) -> None:
    click.echo(f"error occurred while writing metrics: {exc}", err=True)


class SnapshotExporter:
    """Write an aggregator snapshot to ``sink`` every ``period_seconds``.

    The timer runs on a daemon thread and is independent of attack phases.
    A failed write is reported through ``on_error`` and the loop carries on
    with the next period. ``stop`` ends the loop and, by default, flushes
    one last snapshot so the sink reflects the finished run.
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        sink: TextIO,
        period_seconds: float,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        if period_seconds <= 0:
            raise ValueError(f"period_seconds must be > 0, got {period_seconds}")
        self.aggregator = aggregator
        self.sink = sink
        self.period_seconds = period_seconds
        self.on_error = on_error or _report_error
        self.exported = 0
        self._stopped = threading.Event()
        self._stop_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "SnapshotExporter":
        if self._thread is not None:
            raise RuntimeError("exporter already started")
        self._thread = threading.Thread(
            target=self._run, name="snapshot-exporter", daemon=True
        )
        self._thread.start()
        return self

    def stop(self, flush: bool = True) -> None:
        """Stop the timer loop. Idempotent; only the first call flushes."""
        with self._stop_lock:
            if self._stopped.is_set():
                return
            self._stopped.set()
        if self._thread is not None:
            self._thread.join()
        if flush:
            self.export_once()

    def export_once(self) -> bool:
        """Take and write a single snapshot. Returns False if the write failed."""
        snapshot = self.aggregator.snapshot()
        try:
            line = snapshot_to_json(snapshot)
            with self._write_lock:
                self.sink.write(line + "\n")
                self.sink.flush()
        except (OSError, ValueError, TypeError) as exc:
            self.on_error(exc)
            return False
        self.exported += 1
        return True

    def _run(self) -> None:
        while not self._stopped.wait(self.period_seconds):
            self.export_once()

    def __enter__(self) -> "SnapshotExporter":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def read_snapshots(path: str) -> List[Snapshot]:
    """Read all snapshots from a metrics file.

    Args:
        path: Path to the metrics file.

    Returns:
        List of Snapshot instances. Blank and malformed lines are skipped.
    """
    if not os.path.isfile(path):
        return []

    snapshots = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                snapshots.append(snapshot_from_json(line))
            except (ValueError, TypeError):
                continue
    return snapshots
