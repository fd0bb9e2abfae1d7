"""Edge-triggered tick/speech feedback.

The clock produces a continuous position on every refresh; the dispatcher
turns that into discrete "a second boundary was crossed" events. Because the
decision depends only on the previous rounded second, any number of redundant
refreshes within the same second produce at most one event.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Optional, Protocol

from ..config import FeedbackConfig
from .audio import AudioContext, TickCue
from .speech import Speaker

_log = logging.getLogger(__name__)


class FeedbackKind(str, Enum):
    CUE = "cue"
    SPEECH = "speech"


class FeedbackOutput(Protocol):
    def play_cue(self) -> None: ...
    def speak_number(self, number: int) -> None: ...
    def cancel(self) -> None: ...


def stride_allows(rounded_second: int, stride_s: int) -> bool:
    """Whether a boundary crossing at ``rounded_second`` is announced.

    The zero boundary is never announced for strides above one: it coincides
    with the wrap-around crossing of the next cycle.
    """
    if stride_s == 1:
        return True
    return rounded_second > 0 and rounded_second % stride_s == 0


class EdgeDetector:
    """Tracks the previous rounded-up second between observations."""

    def __init__(self) -> None:
        self.previous: Optional[int] = None

    def reset(self) -> None:
        self.previous = None

    def observe(self, seconds: float) -> Optional[int]:
        """Record ``ceil(seconds)``; return it when it differs from the previous one.

        The first observation after a reset never reports a crossing.
        """
        rounded = math.ceil(seconds)
        previous, self.previous = self.previous, rounded
        if previous is None or rounded == previous:
            return None
        return rounded


class FeedbackDispatcher:
    """Routes boundary crossings to exactly one feedback channel.

    Must be called synchronously from the refresh that produced ``seconds``.
    Playback is fire-and-forget: failures are logged and never touch the
    edge state.
    """

    def __init__(self, config: FeedbackConfig, output: FeedbackOutput) -> None:
        self._config = config
        self._output = output
        self._edges = EdgeDetector()
        self.fired = 0
        self.failures = 0

    @property
    def config(self) -> FeedbackConfig:
        return self._config

    @property
    def previous_rounded_second(self) -> Optional[int]:
        return self._edges.previous

    def update_config(self, config: FeedbackConfig) -> None:
        self._config = config

    def reset(self) -> None:
        self._edges.reset()

    def observe(self, seconds: float) -> Optional[FeedbackKind]:
        rounded = self._edges.observe(seconds)
        if rounded is None:
            return None
        config = self._config
        if config.muted or not stride_allows(rounded, config.stride_s):
            return None
        kind = FeedbackKind.SPEECH if config.use_speech else FeedbackKind.CUE
        try:
            if kind is FeedbackKind.SPEECH:
                self._output.speak_number(rounded)
            else:
                self._output.play_cue()
        except Exception as exc:
            self.failures += 1
            _log.error("feedback %s for %ds failed: %s", kind.value, rounded, exc)
            return None
        self.fired += 1
        return kind

    def close(self) -> None:
        try:
            self._output.cancel()
        except Exception as exc:
            _log.warning("failed to cancel feedback output: %s", exc)


class AudioFeedbackOutput:
    """pygame tick cue plus Qt speech, gated on the audio context being unlocked."""

    def __init__(self, context: AudioContext, cue: Optional[TickCue] = None, speaker: Optional[Speaker] = None) -> None:
        self.context = context
        self.cue = cue or TickCue()
        self.speaker = speaker or Speaker()

    def play_cue(self) -> None:
        if not self.context.is_running:
            _log.debug("tick dropped: audio context %s", self.context.state)
            return
        self.cue.play()

    def speak_number(self, number: int) -> None:
        self.speaker.speak(str(number))

    def cancel(self) -> None:
        self.speaker.cancel()
        if self.context.is_running:
            self.cue.stop()
