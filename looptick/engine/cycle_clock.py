"""Drift-resistant cycle clock.

Position in the cycle is always derived from the wall-clock delta since a
fixed start instant, never from counting ticks, so missed or throttled
wake-ups cannot accumulate error.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Snapshot:
    elapsed_s: float
    position_s: float
    progress: float     # 0..1 (exclusive)
    remaining_s: float


def compute_snapshot(start_instant: float, now_instant: float, cycle_length_s: float) -> Snapshot:
    """Derive the cycle position for ``now_instant``.

    ``cycle_length_s`` must already be validated (see ``config.validate_cycle_length``).
    Changing it between calls re-interprets the same elapsed time against the
    new modulus.
    """
    elapsed = now_instant - start_instant
    position = elapsed % cycle_length_s
    # float modulo of a tiny negative value can round up to the modulus itself
    if position >= cycle_length_s:
        position = 0.0
    return Snapshot(
        elapsed_s=elapsed,
        position_s=position,
        progress=position / cycle_length_s,
        remaining_s=cycle_length_s - position,
    )


@dataclass(frozen=True)
class CycleClockState:
    start_instant: float
    cycle_length_s: float

    def snapshot(self, now_instant: float) -> Snapshot:
        return compute_snapshot(self.start_instant, now_instant, self.cycle_length_s)

    def with_cycle_length(self, cycle_length_s: float) -> "CycleClockState":
        # start_instant never changes; only the modulus does
        return replace(self, cycle_length_s=float(cycle_length_s))
