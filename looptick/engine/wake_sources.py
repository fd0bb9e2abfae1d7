"""Qt-backed wake-up sources for :class:`RedundantScheduler`.

Four mechanisms, each able to keep the clock moving on its own:

- ``IntervalSource``: repeating precise QTimer, the primary driver.
- ``TimeoutChainSource``: single-shot QTimer re-armed from its own timeout;
  survives some throttling policies that target repeating timers.
- ``FrameSource``: paced at the display refresh period, foreground only.
- ``HeartbeatSource``: a worker thread with its own interval that posts
  beats back to the GUI thread through a queued signal. The GUI event loop's
  timer coalescing does not apply to it, which bounds staleness while the
  window is hidden.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

from PyQt6.QtCore import QObject, Qt, QTimer, pyqtSignal

from .scheduler import WakeSource

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from PyQt6.QtGui import QScreen
    from ..config import TimerConfig

_log = logging.getLogger(__name__)

DEFAULT_FRAME_MS = 16


def _precise_timer(parent: Optional[QObject] = None) -> QTimer:
    timer = QTimer(parent)
    timer.setTimerType(Qt.TimerType.PreciseTimer)
    return timer


class IntervalSource(WakeSource):
    name = "interval"

    def __init__(self, interval_ms: int = 50) -> None:
        super().__init__()
        self.interval_ms = int(interval_ms)
        self._timer: Optional[QTimer] = None

    def _arm(self) -> None:
        timer = _precise_timer()
        timer.setInterval(self.interval_ms)
        timer.timeout.connect(self._fire)
        timer.start()
        self._timer = timer

    def _disarm(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.stop()
            timer.timeout.disconnect()
            timer.deleteLater()


class TimeoutChainSource(WakeSource):
    name = "timeout-chain"

    def __init__(self, delay_ms: int = 100) -> None:
        super().__init__()
        self.delay_ms = int(delay_ms)
        self._timer: Optional[QTimer] = None

    def _arm(self) -> None:
        timer = _precise_timer()
        timer.setSingleShot(True)
        timer.setInterval(self.delay_ms)
        timer.timeout.connect(self._link)
        timer.start()
        self._timer = timer

    def _link(self) -> None:
        self._fire()
        # Re-arm only if still live; stop() may have run inside _fire.
        if self._timer is not None and self.is_live:
            self._timer.start()

    def _disarm(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.stop()
            timer.timeout.disconnect()
            timer.deleteLater()


class FrameSource(IntervalSource):
    """Refresh loop paced at the screen's refresh period.

    Redraw-synchronized updates are pointless while nothing is on screen, so
    the scheduler only arms this source while the window is visible.
    """

    name = "frame"
    foreground_only = True

    def __init__(self, frame_ms: Optional[int] = None, screen: Optional["QScreen"] = None) -> None:
        super().__init__(frame_ms or frame_interval_ms(screen))


def frame_interval_ms(screen: Optional["QScreen"] = None) -> int:
    if screen is None:
        return DEFAULT_FRAME_MS
    try:
        rate = float(screen.refreshRate())
    except Exception as exc:
        _log.debug("screen refresh rate unavailable: %s", exc)
        return DEFAULT_FRAME_MS
    if rate <= 1.0:
        return DEFAULT_FRAME_MS
    return max(1, int(round(1000.0 / rate)))


class _HeartbeatBridge(QObject):
    """Lives in the GUI thread; emitting from the worker queues the slot call."""

    beat = pyqtSignal()


class HeartbeatSource(WakeSource):
    name = "heartbeat"

    def __init__(self, interval_ms: int = 50, *, thread_name: str = "looptick-heartbeat") -> None:
        super().__init__()
        self.interval_s = max(0.001, int(interval_ms) / 1000.0)
        self.thread_name = thread_name
        self._bridge: Optional[_HeartbeatBridge] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def _arm(self) -> None:
        bridge = _HeartbeatBridge()
        bridge.beat.connect(self._fire, Qt.ConnectionType.QueuedConnection)
        self._stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(self._stop_event, bridge),
            name=self.thread_name,
            daemon=True,
        )
        thread.start()  # raises RuntimeError when the host cannot spawn threads
        self._bridge = bridge
        self._thread = thread

    def _run(self, stop_event: threading.Event, bridge: _HeartbeatBridge) -> None:
        # Event.wait doubles as the interval and the cancellation point.
        while not stop_event.wait(self.interval_s):
            bridge.beat.emit()

    def _disarm(self) -> None:
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout=max(1.0, self.interval_s * 4))
            if thread.is_alive():
                _log.warning("heartbeat thread %s did not exit in time", thread.name)
        bridge, self._bridge = self._bridge, None
        if bridge is not None:
            bridge.beat.disconnect()
            bridge.deleteLater()


def default_sources(config: "TimerConfig", screen: Optional["QScreen"] = None) -> list[WakeSource]:
    return [
        IntervalSource(config.interval_ms),
        TimeoutChainSource(config.chain_ms),
        FrameSource(config.frame_ms, screen),
        HeartbeatSource(config.heartbeat_ms),
    ]
