"""Ancillary, best-effort host permissions requested after the first interaction.

Neither is required for the timer to work; each only improves how well
feedback survives while the window is in the background.
"""

from __future__ import annotations

import logging
from typing import Optional

_log = logging.getLogger(__name__)

_SCREENSAVER_SERVICE = "org.freedesktop.ScreenSaver"
_SCREENSAVER_PATH = "/org/freedesktop/ScreenSaver"


class PermissionRequest:
    name = "permission"

    def __init__(self) -> None:
        self.granted = False

    def request(self) -> bool:  # pragma: no cover - abstract
        raise NotImplementedError

    def release(self) -> None:
        self.granted = False


class WakeLockRequest(PermissionRequest):
    """Inhibits the screensaver over D-Bus (freedesktop hosts only)."""

    name = "wake-lock"

    def __init__(self, app_name: str = "LoopTick", reason: str = "Looping timer running") -> None:
        super().__init__()
        self.app_name = app_name
        self.reason = reason
        self._cookie: Optional[int] = None
        self._iface = None

    def request(self) -> bool:
        if self.granted:
            return True
        from PyQt6.QtDBus import QDBusConnection, QDBusInterface, QDBusMessage

        bus = QDBusConnection.sessionBus()
        if not bus.isConnected():
            raise RuntimeError("no D-Bus session bus")
        iface = QDBusInterface(_SCREENSAVER_SERVICE, _SCREENSAVER_PATH, _SCREENSAVER_SERVICE, bus)
        if not iface.isValid():
            raise RuntimeError(f"{_SCREENSAVER_SERVICE} not available")
        reply = iface.call("Inhibit", self.app_name, self.reason)
        if reply.type() != QDBusMessage.MessageType.ReplyMessage:
            raise RuntimeError(f"Inhibit failed: {reply.errorMessage()}")
        self._cookie = int(reply.arguments()[0])
        self._iface = iface
        self.granted = True
        _log.info("wake lock acquired cookie=%s", self._cookie)
        return True

    def release(self) -> None:
        iface, cookie = self._iface, self._cookie
        self._iface = None
        self._cookie = None
        if self.granted and iface is not None and cookie is not None:
            try:
                iface.call("UnInhibit", cookie)
            except Exception as exc:
                _log.warning("wake lock release failed: %s", exc)
        super().release()


class NotificationRequest(PermissionRequest):
    """Desktop notifications are available when a system tray exists."""

    name = "notifications"

    def request(self) -> bool:
        from PyQt6.QtWidgets import QSystemTrayIcon

        self.granted = bool(QSystemTrayIcon.isSystemTrayAvailable())
        return self.granted


def default_permissions(app_name: str = "LoopTick") -> list[PermissionRequest]:
    return [NotificationRequest(), WakeLockRequest(app_name)]
