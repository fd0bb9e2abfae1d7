import sys, threading, traceback, os
import asyncio
import logging
import qasync
from typing import Optional
from PyQt6.QtWidgets import QApplication
from PyQt6.QtCore import qInstallMessageHandler
from . import __app_name__, __version__
from .config import TimerConfig
from .logging_utils import setup_logging
from .engine.audio import AudioContext, TickCue
from .engine.events import TimerEventType
from .engine.feedback import AudioFeedbackOutput
from .engine.looping_timer import LoopingTimer
from .engine.permissions import default_permissions
from .engine.speech import Speaker
from .engine.visibility import HostSignals, VisibilityGate
from .engine.wake_sources import default_sources
from .ui.timer_window import TimerWindow

_DIAG_INSTALLED = False


def _install_diagnostics():
    global _DIAG_INSTALLED
    if _DIAG_INSTALLED:
        return
    if os.environ.get("LOOPTICK_NO_DIAG", "0") in ("1", "true", "True", "yes"):
        return
    _DIAG_INSTALLED = True
    log = logging.getLogger("diag")

    def _excepthook(t, v, tb):
        log.error("UNCAUGHT %s: %s", t.__name__, v)
        for line in traceback.format_tb(tb):
            log.error(line.rstrip())
    sys.excepthook = _excepthook

    def _thread_excepthook(args):
        log.error("THREAD EXC in %s: %s", getattr(args, 'thread', None), args.exc_value)
        for line in traceback.format_tb(args.exc_traceback):
            log.error(line.rstrip())
    threading.excepthook = _thread_excepthook

    def _qt_msg_handler(mode, ctx, msg):  # type: ignore[unused-argument]
        log.warning("QT: %s", msg)
    qInstallMessageHandler(_qt_msg_handler)
    log.info("DIAG Qt message handler installed")


def build_timer(config: TimerConfig, window: TimerWindow) -> tuple[LoopingTimer, VisibilityGate, HostSignals]:
    """Wire the engine to a shown window."""
    context = AudioContext()
    gate = VisibilityGate(context, permissions=default_permissions(__app_name__))
    output = AudioFeedbackOutput(context, TickCue(config.tick_sound), Speaker())
    handle = window.windowHandle()
    host = HostSignals(handle)
    host.bind(gate)
    gate.handle_visibility(host.is_visible)
    timer = LoopingTimer(
        config,
        sources=default_sources(config, handle.screen() if handle is not None else None),
        output=output,
        gate=gate,
    )
    timer.events.subscribe(TimerEventType.SNAPSHOT, window.on_snapshot)
    timer.events.subscribe(TimerEventType.CAPABILITY, window.on_capability)
    window.config_changed.connect(timer.apply_config)
    return timer, gate, host


def run(config: Optional[TimerConfig] = None):
    # Ensure logging is configured when launching GUI directly
    debug_mode = os.environ.get("LOOPTICK_DEBUG", "0") in ("1", "true", "True", "yes")
    if not logging.getLogger().handlers:
        setup_logging(level="DEBUG" if debug_mode else "WARNING", add_console=True,
                      log_mode=os.environ.get("LOOPTICK_LOG_MODE"))
    _install_diagnostics()
    config = (config or TimerConfig.from_env()).validate()

    app = QApplication(sys.argv)
    app.setApplicationName(__app_name__)
    app.setApplicationVersion(__version__)

    # qasync lets the gate's permission negotiation run as asyncio tasks on the Qt loop
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)

    win = TimerWindow(config)
    win.show()
    timer, gate, host = build_timer(config, win)

    def _teardown():
        logging.getLogger("diag").info("DIAG aboutToQuit")
        timer.stop()
        host.detach()
        gate.close()
    app.aboutToQuit.connect(_teardown)

    timer.start()
    with loop:
        loop.run_forever()


if __name__ == "__main__":
    run()
