"""Composition of clock, scheduler, feedback and visibility gate.

One refresh step runs to completion before the next: the scheduler reads
the clock, the dispatcher sees the new remaining time in the same call, then
renderers receive the snapshot. Playback never blocks this chain.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from ..config import TimerConfig, validate_cycle_length
from .cycle_clock import CycleClockState, Snapshot
from .events import TimerEvent, TimerEventEmitter, TimerEventType
from .feedback import FeedbackDispatcher, FeedbackOutput
from .scheduler import RedundantScheduler, WakeSource
from .visibility import CapabilityState, VisibilityGate

_log = logging.getLogger(__name__)


class LoopingTimer:
    def __init__(
        self,
        config: TimerConfig,
        *,
        sources: Iterable[WakeSource],
        output: FeedbackOutput,
        gate: Optional[VisibilityGate] = None,
        emitter: Optional[TimerEventEmitter] = None,
        time_provider: Callable[[], float] = time.time,
    ) -> None:
        self._config = config.validate()
        self._sources = list(sources)
        self._time_provider = time_provider
        self.gate = gate
        self.events = emitter or TimerEventEmitter()
        self.dispatcher = FeedbackDispatcher(self._config.feedback(), output)
        self.scheduler: Optional[RedundantScheduler] = None

    @property
    def config(self) -> TimerConfig:
        return self._config

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self.scheduler.snapshot if self.scheduler is not None else None

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.is_running

    def start(self) -> None:
        if self.scheduler is not None:
            return
        clock = CycleClockState(self._time_provider(), float(self._config.loop_length_s))
        self.scheduler = RedundantScheduler(
            clock,
            self._sources,
            on_refresh=self._on_refresh,
            time_provider=self._time_provider,
        )
        self.dispatcher.reset()
        if self.gate is not None:
            self.scheduler.set_visible(self.gate.state.is_foreground_visible)
            self.gate.add_visibility_listener(self._on_visibility)
            self.gate.add_capability_listener(self._on_capability)
        self.scheduler.start()
        _log.info(
            "looping timer started loop=%ss stride=%ss muted=%s speech=%s",
            self._config.loop_length_s, self._config.stride_s, self._config.muted, self._config.use_speech,
        )

    def stop(self) -> None:
        if self.gate is not None:
            self.gate.remove_visibility_listener(self._on_visibility)
            self.gate.remove_capability_listener(self._on_capability)
        if self.scheduler is not None:
            self.scheduler.stop()
        self.dispatcher.close()

    def apply_config(self, config: TimerConfig) -> None:
        """Apply new parameters without restarting the cycle."""
        config = config.validate()
        previous, self._config = self._config, config
        self.dispatcher.update_config(config.feedback())
        if self.scheduler is not None and config.loop_length_s != previous.loop_length_s:
            self.scheduler.set_cycle_length(validate_cycle_length(config.loop_length_s))

    def _on_refresh(self, snapshot: Snapshot) -> None:
        kind = self.dispatcher.observe(snapshot.remaining_s)
        if kind is not None:
            self.events.emit(TimerEvent(
                TimerEventType.FEEDBACK,
                data={"kind": kind.value, "second": self.dispatcher.previous_rounded_second},
            ))
        self.events.emit(TimerEvent(
            TimerEventType.SNAPSHOT,
            data={
                "progress": snapshot.progress,
                "position_s": snapshot.position_s,
                "remaining_s": snapshot.remaining_s,
                "loop_length_s": self._config.loop_length_s,
            },
        ))

    def _on_visibility(self, visible: bool) -> None:
        if self.scheduler is not None:
            self.scheduler.set_visible(visible)
        self.events.emit(TimerEvent(TimerEventType.VISIBILITY, data={"visible": visible}))

    def _on_capability(self, capability: CapabilityState) -> None:
        self.events.emit(TimerEvent(TimerEventType.CAPABILITY, data={"state": capability.value}))
        if capability is CapabilityState.DEGRADED:
            self.events.emit(TimerEvent(TimerEventType.ERROR, data={"message": "audio feedback unavailable"}))
