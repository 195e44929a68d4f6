"""Data models for attack targets, ramp plans, results, and metrics snapshots."""

from dataclasses import dataclass, field, fields, replace
from typing import Dict, List, Optional, Tuple


@dataclass
class Target:
    method: str
    url: str
    body: bytes = b""
    header: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class Phase:
    frequency: int  # requests per second
    duration_seconds: int


@dataclass(frozen=True)
class RatePlan:
    start_freq: int
    slope_per_minute: int
    duration_minutes: int
    plateau_minutes: int
    phases: Tuple[Phase, ...] = ()

    @property
    def total_seconds(self) -> int:
        return sum(p.duration_seconds for p in self.phases)

    @property
    def peak_frequency(self) -> int:
        return max(p.frequency for p in self.phases)


@dataclass
class Result:
    attack: str = ""
    seq: int = 0
    timestamp: float = 0.0  # wall-clock start of the request
    latency: float = 0.0  # seconds
    status_code: int = 0
    error: str = ""
    bytes_in: int = 0
    bytes_out: int = 0
    method: str = ""
    url: str = ""


@dataclass(frozen=True)
class Snapshot:
    status_codes: Dict[str, int]
    requests: int
    success: float


@dataclass(frozen=True)
class MetricsSummary:
    requests: int = 0
    rate: float = 0.0
    throughput: float = 0.0
    success: float = 0.0
    duration: float = 0.0
    wait: float = 0.0
    latency_total: float = 0.0
    latency_mean: float = 0.0
    latency_min: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    latency_max: float = 0.0
    bytes_in_total: int = 0
    bytes_in_mean: float = 0.0
    bytes_out_total: int = 0
    bytes_out_mean: float = 0.0
    status_codes: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)


@dataclass
class RampConfig:
    start_freq: int = 1
    slope_per_minute: int = 1
    duration_minutes: int = 2
    plateau_minutes: int = 1
    max_workers: int = 10
    metrics_period_seconds: int = 2
    timeout_seconds: float = 30.0
    attack_name: str = "Big Bang!"

    def with_overrides(self, **values: Optional[object]) -> "RampConfig":
        """Return a copy with every non-None value applied."""
        known = {f.name for f in fields(self)}
        unknown = set(values) - known
        if unknown:
            raise TypeError(f"unknown config fields: {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in values.items() if v is not None})
