"""Visibility & interaction gate.

Mirrors whether the timer window is on screen and negotiates the feedback
channel. Audio may only be unlocked after the user has interacted with the
app, so negotiation is an explicit state machine::

    LOCKED --first interaction--> PROBING --> GRANTED
                                          \\-> DEGRADED

Every acquisition failure is caught and only downgrades
``feedback_channel_ready``; nothing here raises to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from PyQt6.QtCore import QEvent, QObject, Qt, pyqtSignal
from PyQt6.QtGui import QGuiApplication, QWindow

from .audio import AudioContext
from .permissions import PermissionRequest

_log = logging.getLogger(__name__)

QUALIFYING_EVENTS = frozenset({
    QEvent.Type.MouseButtonPress,
    QEvent.Type.KeyPress,
    QEvent.Type.TouchBegin,
})

_HIDDEN_VISIBILITY = frozenset({QWindow.Visibility.Hidden, QWindow.Visibility.Minimized})
_BACKGROUND_APP_STATES = frozenset({
    Qt.ApplicationState.ApplicationHidden,
    Qt.ApplicationState.ApplicationSuspended,
})


class CapabilityState(str, Enum):
    LOCKED = "locked"
    PROBING = "probing"
    GRANTED = "granted"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class VisibilityState:
    is_foreground_visible: bool = True
    has_qualifying_interaction_occurred: bool = False
    feedback_channel_ready: bool = False


class VisibilityGate:
    def __init__(
        self,
        audio_context: AudioContext,
        *,
        permissions: Iterable[PermissionRequest] = (),
        initially_visible: bool = True,
    ) -> None:
        self.audio_context = audio_context
        self.permissions = list(permissions)
        self._visible = bool(initially_visible)
        self._interacted = False
        self._channel_ready = False
        self._capability = CapabilityState.LOCKED
        self._visibility_listeners: list[Callable[[bool], None]] = []
        self._capability_listeners: list[Callable[[CapabilityState], None]] = []
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    # ---------------- state -----------------
    @property
    def state(self) -> VisibilityState:
        return VisibilityState(
            is_foreground_visible=self._visible,
            has_qualifying_interaction_occurred=self._interacted,
            feedback_channel_ready=self._channel_ready,
        )

    @property
    def capability(self) -> CapabilityState:
        return self._capability

    def add_visibility_listener(self, callback: Callable[[bool], None]) -> None:
        self._visibility_listeners.append(callback)

    def remove_visibility_listener(self, callback: Callable[[bool], None]) -> None:
        if callback in self._visibility_listeners:
            self._visibility_listeners.remove(callback)

    def add_capability_listener(self, callback: Callable[[CapabilityState], None]) -> None:
        self._capability_listeners.append(callback)

    def remove_capability_listener(self, callback: Callable[[CapabilityState], None]) -> None:
        if callback in self._capability_listeners:
            self._capability_listeners.remove(callback)

    def _set_capability(self, capability: CapabilityState) -> None:
        if capability is self._capability:
            return
        _log.info("feedback capability %s -> %s", self._capability.value, capability.value)
        self._capability = capability
        for callback in list(self._capability_listeners):
            callback(capability)

    # ---------------- host events -----------------
    def handle_visibility(self, visible: bool) -> None:
        visible = bool(visible)
        if self._closed or visible == self._visible:
            return
        self._visible = visible
        _log.debug("foreground visible=%s", visible)
        for callback in list(self._visibility_listeners):
            callback(visible)
        # hosts commonly suspend audio while backgrounded
        if visible and self._interacted:
            self._spawn(self.resume_feedback_channel())

    def handle_interaction(self, kind: str = "input") -> bool:
        """Record a qualifying interaction; returns True only for the first one."""
        if self._closed or self._interacted:
            return False
        self._interacted = True
        _log.info("first user interaction (%s); unlocking feedback channel", kind)
        self._spawn(self.unlock())
        return True

    # ---------------- negotiation -----------------
    async def unlock(self) -> CapabilityState:
        self._set_capability(CapabilityState.PROBING)
        ready = await self.resume_feedback_channel()
        await self.request_permissions()
        self._set_capability(CapabilityState.GRANTED if ready else CapabilityState.DEGRADED)
        return self._capability

    async def request_permissions(self) -> bool:
        """Best-effort request of every ancillary permission; never raises."""
        all_granted = True
        for permission in self.permissions:
            try:
                granted = bool(permission.request())
            except Exception as exc:
                _log.info("permission %s unavailable: %s", permission.name, exc)
                granted = False
            all_granted = all_granted and granted
        return all_granted

    async def resume_feedback_channel(self) -> bool:
        """Acquire or resume the audio context; idempotent."""
        if self._closed:
            return False
        try:
            ready = bool(self.audio_context.resume())
        except Exception as exc:
            _log.warning("could not resume audio context: %s", exc)
            ready = False
        self._channel_ready = ready
        if self._capability is CapabilityState.DEGRADED and ready:
            self._set_capability(CapabilityState.GRANTED)
        elif self._capability is CapabilityState.GRANTED and not ready:
            self._set_capability(CapabilityState.DEGRADED)
        return ready

    def _spawn(self, coro) -> Optional[asyncio.Task]:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError as exc:
            coro.close()
            _log.error("no event loop to run feedback negotiation: %s", exc)
            return None
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _log.error("feedback negotiation failed: %s", exc, exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait for pending negotiation tasks (tests and orderly shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        for permission in self.permissions:
            try:
                permission.release()
            except Exception as exc:
                _log.warning("failed to release %s: %s", permission.name, exc)
        self.audio_context.close()
        self._channel_ready = False
        self._visibility_listeners.clear()
        self._capability_listeners.clear()


class HostSignals(QObject):
    """Translates Qt window/application state into gate events.

    The interaction filter is installed on the application and removes
    itself after the first qualifying event.
    """

    visibility_changed = pyqtSignal(bool)
    first_interaction = pyqtSignal(str)

    def __init__(self, window: Optional[QWindow] = None, app: Optional[QGuiApplication] = None, parent=None) -> None:
        super().__init__(parent)
        self._app = app or QGuiApplication.instance()
        self._window = window
        self._window_visible = window.isVisible() if window is not None else True
        self._app_foreground = True
        self._filter_installed = False
        if self._app is not None:
            self._app.installEventFilter(self)
            self._filter_installed = True
            self._app.applicationStateChanged.connect(self._on_app_state)
        if window is not None:
            window.visibilityChanged.connect(self._on_window_visibility)

    @property
    def is_visible(self) -> bool:
        return self._window_visible and self._app_foreground

    def bind(self, gate: VisibilityGate) -> None:
        self.visibility_changed.connect(gate.handle_visibility)
        self.first_interaction.connect(gate.handle_interaction)

    def _update(self) -> None:
        self.visibility_changed.emit(self.is_visible)

    def _on_window_visibility(self, visibility) -> None:
        self._window_visible = visibility not in _HIDDEN_VISIBILITY
        self._update()

    def _on_app_state(self, state) -> None:
        self._app_foreground = state not in _BACKGROUND_APP_STATES
        self._update()

    def eventFilter(self, obj, event) -> bool:  # type: ignore[override]
        if self._filter_installed and event.type() in QUALIFYING_EVENTS:
            self._remove_filter()
            self.first_interaction.emit(event.type().name)
        return False

    def _remove_filter(self) -> None:
        if self._filter_installed and self._app is not None:
            self._app.removeEventFilter(self)
        self._filter_installed = False

    def detach(self) -> None:
        self._remove_filter()
        if self._app is not None:
            try:
                self._app.applicationStateChanged.disconnect(self._on_app_state)
            except TypeError:
                pass
        if self._window is not None:
            try:
                self._window.visibilityChanged.disconnect(self._on_window_visibility)
            except TypeError:
                pass
