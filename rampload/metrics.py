"""Thread-safe accumulation of attack results into exportable snapshots."""

import json
import math
import threading
from typing import Dict, List

from rampload.models import MetricsSummary, Result, Snapshot

# Exported histograms always carry this key so plotting tools that bind to
# status_codes.200 never see it go missing.
BASELINE_STATUS = "200"


class Metrics:
    """Running aggregate of results. Not thread-safe on its own.

    Counters are updated by ``add``; the derived fields (ratios, rates and
    latency percentiles) are only valid after ``close``.
    """

    def __init__(self):
        self.requests = 0
        self.status_codes: Dict[str, int] = {}
        self.errors: List[str] = []
        self.success = 0.0
        self.rate = 0.0
        self.throughput = 0.0
        self.duration = 0.0
        self.wait = 0.0
        self.bytes_in_total = 0
        self.bytes_out_total = 0

        self._success_count = 0
        self._seen_errors = set()
        self._latencies: List[float] = []
        self._earliest = 0.0
        self._latest = 0.0
        self._end = 0.0

    def add(self, result: Result) -> None:
        self.requests += 1
        code = str(result.status_code)
        self.status_codes[code] = self.status_codes.get(code, 0) + 1

        if 200 <= result.status_code < 400:
            self._success_count += 1

        if result.error and result.error not in self._seen_errors:
            self._seen_errors.add(result.error)
            self.errors.append(result.error)

        self.bytes_in_total += result.bytes_in
        self.bytes_out_total += result.bytes_out
        self._latencies.append(result.latency)

        if self._earliest == 0.0 or result.timestamp < self._earliest:
            self._earliest = result.timestamp
        if result.timestamp > self._latest:
            self._latest = result.timestamp
        end = result.timestamp + result.latency
        if end > self._end:
            self._end = end

    def close(self) -> None:
        """Compute the derived fields. Safe to call repeatedly."""
        if self.requests == 0:
            return
        self.success = self._success_count / self.requests
        self.duration = self._latest - self._earliest
        self.wait = self._end - self._latest
        if self.duration > 0:
            self.rate = self.requests / self.duration
        elapsed = self.duration + self.wait
        if elapsed > 0:
            self.throughput = self._success_count / elapsed

    def summary(self) -> MetricsSummary:
        self.close()
        ordered = sorted(self._latencies)
        total = sum(ordered)
        n = self.requests
        return MetricsSummary(
            requests=n,
            rate=self.rate,
            throughput=self.throughput,
            success=self.success,
            duration=self.duration,
            wait=self.wait,
            latency_total=total,
            latency_mean=total / n if n else 0.0,
            latency_min=ordered[0] if ordered else 0.0,
            latency_p50=_quantile(ordered, 0.50),
            latency_p90=_quantile(ordered, 0.90),
            latency_p95=_quantile(ordered, 0.95),
            latency_p99=_quantile(ordered, 0.99),
            latency_max=ordered[-1] if ordered else 0.0,
            bytes_in_total=self.bytes_in_total,
            bytes_in_mean=self.bytes_in_total / n if n else 0.0,
            bytes_out_total=self.bytes_out_total,
            bytes_out_mean=self.bytes_out_total / n if n else 0.0,
            status_codes=dict(self.status_codes),
            errors=list(self.errors),
        )


class MetricsAggregator:
    """Single shared sink for results arriving from concurrent workers.

    Every operation takes the same lock, so concurrent ``add`` calls never
    lose increments and ``snapshot``/``errors`` never observe a half-applied
    result. The lock is never held across I/O.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics = Metrics()
        self._exported_codes: Dict[str, int] = {}

    def add(self, result: Result) -> None:
        with self._lock:
            self._metrics.add(result)

    def errors(self) -> List[str]:
        with self._lock:
            return list(self._metrics.errors)

    def close(self) -> None:
        with self._lock:
            self._metrics.close()

    def snapshot(self) -> Snapshot:
        """Return a point-in-time, schema-normalized copy of the aggregate."""
        with self._lock:
            self._metrics.close()
            self._exported_codes.update(self._metrics.status_codes)
            self._exported_codes.setdefault(BASELINE_STATUS, 0)
            return Snapshot(
                status_codes=dict(self._exported_codes),
                requests=self._metrics.requests,
                success=self._metrics.success,
            )

    def summary(self) -> MetricsSummary:
        with self._lock:
            return self._metrics.summary()


def snapshot_to_dict(snapshot: Snapshot) -> dict:
    return {
        "status_codes": dict(snapshot.status_codes),
        "requests": snapshot.requests,
        "success": snapshot.success,
    }


def snapshot_to_json(snapshot: Snapshot) -> str:
    return json.dumps(snapshot_to_dict(snapshot))


def snapshot_from_json(text: str) -> Snapshot:
    """Parse one exported metrics line back into a Snapshot.

    Raises:
        ValueError: If the text is not a snapshot object.
    """
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("snapshot must be a JSON object")
    codes = raw.get("status_codes") or {}
    if not isinstance(codes, dict):
        raise ValueError("'status_codes' must be an object")
    codes = {str(k): int(v) for k, v in codes.items()}
    codes.setdefault(BASELINE_STATUS, 0)
    return Snapshot(
        status_codes=codes,
        requests=int(raw.get("requests", 0)),
        success=float(raw.get("success", 0.0)),
    )


def _quantile(ordered: List[float], q: float) -> float:
    """Nearest-rank quantile of an already sorted list."""
    if not ordered:
        return 0.0
    rank = max(1, math.ceil(q * len(ordered)))
    return ordered[rank - 1]
