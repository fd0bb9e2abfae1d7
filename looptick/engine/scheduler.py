"""Redundant scheduler that keeps the cycle clock's "now" fresh.

Several independent wake-up sources (see ``wake_sources``) all call the same
idempotent refresh: read the clock, recompute the snapshot, hand it to the
``on_refresh`` consumer. Sources may fire in any order and at any rate; the
refresh is last-write-wins, so redundant wake-ups only cost a recomputation.
Losing some sources (unsupported by the host, throttled while hidden) only
lowers the refresh rate.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Iterable, Optional

from ..logging_utils import SCHED_TRACE_TAG, BurstSampler
from .cycle_clock import CycleClockState, Snapshot

WakeCallback = Callable[[str], None]


class SchedulerError(RuntimeError):
    """Raised for scheduler misuse (restart after stop, nothing armable)."""


class SchedulerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class WakeSource:
    """Base class for one wake-up mechanism.

    Subclasses arm their mechanism in :meth:`_arm` and release it in
    :meth:`_disarm`; every firing must go through :meth:`_fire`, which drops
    wake-ups arriving after :meth:`stop`.
    """

    name = "source"
    #: Only armed while the host surface is foreground-visible.
    foreground_only = False

    def __init__(self) -> None:
        self._wake: Optional[WakeCallback] = None

    @property
    def is_live(self) -> bool:
        return self._wake is not None

    def start(self, wake: WakeCallback) -> None:
        if self._wake is not None:
            return
        self._arm()
        self._wake = wake

    def stop(self) -> None:
        if self._wake is None:
            return
        self._wake = None
        self._disarm()

    def _fire(self) -> None:
        wake = self._wake
        if wake is not None:
            wake(self.name)

    def _arm(self) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def _disarm(self) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} live={self.is_live}>"


class ManualSource(WakeSource):
    """Wake source fired explicitly through :meth:`tick` (simulations, tests)."""

    name = "manual"

    def __init__(self, name: Optional[str] = None, *, foreground_only: bool = False) -> None:
        super().__init__()
        if name is not None:
            self.name = name
        self.foreground_only = foreground_only

    def tick(self) -> None:
        self._fire()

    def _arm(self) -> None:
        pass

    def _disarm(self) -> None:
        pass


class RedundantScheduler:
    """Owns the cycle clock state and the set of live wake-up sources.

    Lifecycle is a single Stopped -> Running -> Stopped pass. Visibility
    changes only affect foreground-only sources and never stop the scheduler.
    """

    def __init__(
        self,
        clock: CycleClockState,
        sources: Iterable[WakeSource],
        *,
        on_refresh: Optional[Callable[[Snapshot], None]] = None,
        time_provider: Callable[[], float] = time.time,
        summary_interval_s: float = 5.0,
    ) -> None:
        self._clock = clock
        self._sources = list(sources)
        self._on_refresh = on_refresh
        self._time_provider = time_provider
        self._state = SchedulerState.STOPPED
        self._used = False
        self._visible = True
        self._now = clock.start_instant
        self._snapshot = clock.snapshot(self._now)
        self._refresh_counts: dict[str, int] = {}
        self._sampler = BurstSampler(summary_interval_s)
        self._log = logging.getLogger(__name__)

    # ---------------- properties -----------------
    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def clock(self) -> CycleClockState:
        return self._clock

    @property
    def now(self) -> float:
        return self._now

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def sources(self) -> list[WakeSource]:
        return list(self._sources)

    @property
    def live_sources(self) -> list[str]:
        return [s.name for s in self._sources if s.is_live]

    @property
    def refresh_counts(self) -> dict[str, int]:
        return dict(self._refresh_counts)

    # ---------------- lifecycle -----------------
    def start(self) -> None:
        if self._state is SchedulerState.RUNNING:
            return
        if self._used:
            raise SchedulerError("scheduler cannot be restarted after stop(); create a new one")
        self._used = True
        self._state = SchedulerState.RUNNING
        for source in self._sources:
            if source.foreground_only and not self._visible:
                continue
            self._arm(source)
        if not any(s.is_live for s in self._sources):
            self._state = SchedulerState.STOPPED
            raise SchedulerError("no wake-up source could be armed")
        self._log.info("scheduler started sources=%s", ",".join(self.live_sources))
        self.refresh("start")

    def stop(self) -> None:
        if self._state is SchedulerState.STOPPED:
            return
        # Flip state first so wake-ups racing the teardown become no-ops.
        self._state = SchedulerState.STOPPED
        for source in self._sources:
            self._disarm(source)
        self._log.info("scheduler stopped refreshes=%s", self._refresh_counts)

    def _arm(self, source: WakeSource) -> bool:
        try:
            source.start(self._wake)
        except Exception as exc:
            self._log.warning("wake source %s unavailable, continuing without it: %s", source.name, exc)
            return False
        self._log.debug("wake source %s armed", source.name)
        return True

    def _disarm(self, source: WakeSource) -> None:
        if not source.is_live:
            return
        try:
            source.stop()
        except Exception as exc:
            self._log.error("failed to release wake source %s: %s", source.name, exc)

    # ---------------- refresh -----------------
    def _wake(self, source_name: str) -> None:
        if self._state is not SchedulerState.RUNNING:
            return
        self._log.debug("%s wake from %s", SCHED_TRACE_TAG, source_name)
        self.refresh(source_name)

    def refresh(self, source: str = "manual") -> Snapshot:
        """Read the clock and publish a fresh snapshot (no-op when stopped)."""
        if self._state is not SchedulerState.RUNNING:
            return self._snapshot
        self._now = self._time_provider()
        self._snapshot = self._clock.snapshot(self._now)
        self._refresh_counts[source] = self._refresh_counts.get(source, 0) + 1
        total = self._sampler.record()
        if total is not None:
            self._log.debug("refreshed %d times in last %.1fs live=%s", total, self._sampler.interval_s, self.live_sources)
        if self._on_refresh is not None:
            self._on_refresh(self._snapshot)
        return self._snapshot

    # ---------------- host integration -----------------
    def set_visible(self, visible: bool) -> None:
        visible = bool(visible)
        changed = visible != self._visible
        self._visible = visible
        if self._state is not SchedulerState.RUNNING:
            return
        if changed:
            for source in self._sources:
                if not source.foreground_only:
                    continue
                if visible:
                    self._arm(source)
                elif len(self.live_sources) > 1:
                    self._disarm(source)
                else:
                    self._log.warning("keeping %s armed while hidden: it is the only live source", source.name)
        if visible and changed:
            self.refresh("visibility")

    def set_cycle_length(self, cycle_length_s: float) -> Snapshot:
        """Swap the modulus; elapsed time is re-read against it."""
        self._clock = self._clock.with_cycle_length(cycle_length_s)
        if self._state is SchedulerState.RUNNING:
            return self.refresh("reconfigure")
        self._snapshot = self._clock.snapshot(self._now)
        return self._snapshot
