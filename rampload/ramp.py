"""Staircase ramp planning and the sequential phase driver."""

import json
from dataclasses import asdict
from typing import Callable, Optional

from rampload.models import Phase, RatePlan

SECONDS_PER_MINUTE = 60


def compute_plan(
    start_freq: int,
    slope_per_minute: int,
    duration_minutes: int,
    plateau_minutes: int,
) -> RatePlan:
    """Compute the ordered attack phases for a ramp-up-then-plateau profile.

    One phase is produced per ramp minute. Phase ``i`` runs at
    ``start_freq + i * slope_per_minute`` requests per second for one
    minute, except the last phase, which is held for
    ``plateau_minutes + 1`` minutes.

    Frequencies are not clamped: a negative slope steeper than the start
    yields zero or negative rates, which the attacker treats as idle time.

    Args:
        start_freq: Requests per second in the first phase.
        slope_per_minute: Increase in requests per second at every minute.
        duration_minutes: Number of ramp minutes (phases). Must be >= 1.
        plateau_minutes: Extra minutes to hold the final rate. Must be >= 0.

    Returns:
        An immutable RatePlan.

    Raises:
        ValueError: If duration_minutes or plateau_minutes is out of range.
    """
    if duration_minutes < 1:
        raise ValueError(f"duration_minutes must be >= 1, got {duration_minutes}")
    if plateau_minutes < 0:
        raise ValueError(f"plateau_minutes must be >= 0, got {plateau_minutes}")

    phases = []
    for i in range(duration_minutes):
        minutes = plateau_minutes + 1 if i == duration_minutes - 1 else 1
        phases.append(Phase(
            frequency=start_freq + i * slope_per_minute,
            duration_seconds=minutes * SECONDS_PER_MINUTE,
        ))

    return RatePlan(
        start_freq=start_freq,
        slope_per_minute=slope_per_minute,
        duration_minutes=duration_minutes,
        plateau_minutes=plateau_minutes,
        phases=tuple(phases),
    )


def plan_to_dict(plan: RatePlan) -> dict:
    """Convert a RatePlan to a JSON-serializable dict."""
    d = asdict(plan)
    d["phases"] = [asdict(p) for p in plan.phases]
    d["total_seconds"] = plan.total_seconds
    return d


def plan_to_json(plan: RatePlan) -> str:
    """Serialize a RatePlan to a deterministic JSON string."""
    return json.dumps(plan_to_dict(plan), indent=2, sort_keys=True)


def run_ramp(
    targeter,
    plan: RatePlan,
    attacker,
    aggregator,
    name: str = "Big Bang!",
    on_phase: Optional[Callable[[int, Phase], None]] = None,
) -> int:
    """Run every phase of a plan in order, feeding results to the aggregator.

    Each phase is fully drained before the next starts, so phase ``i + 1``
    never overlaps phase ``i``. Concurrency lives inside the attacker; this
    loop is strictly sequential.

    Args:
        targeter: Callable returning the next Target to hit.
        plan: The RatePlan to execute.
        attacker: Object with ``attack(targeter, frequency, duration, name)``
            returning an iterator of Results.
        aggregator: Object with an ``add(result)`` method.
        name: Attack label attached to every result.
        on_phase: Optional callback invoked before each phase starts.

    Returns:
        The total number of results consumed.
    """
    consumed = 0
    for index, phase in enumerate(plan.phases):
        if on_phase is not None:
            on_phase(index, phase)
        for result in attacker.attack(
            targeter, phase.frequency, phase.duration_seconds, name
        ):
            aggregator.add(result)
            consumed += 1
    return consumed
