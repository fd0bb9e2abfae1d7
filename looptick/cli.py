"""LoopTick command-line interface.

Argparse-based CLI that initializes structured logging early. Exposed via
``python -m looptick`` and the ``looptick`` console script.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

# Suppress pygame support prompt so JSON outputs remain clean.
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

from .config import ConfigError, TimerConfig
from .logging_utils import LogMode, get_default_log_path, setup_logging


def _build_logging_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set log level (default: INFO)",
    )
    parent.add_argument(
        "--log-mode",
        choices=[mode.value for mode in LogMode],
        default=LogMode.NORMAL.value,
        help="Logging preset: quiet suppresses console info, perf forces DEBUG",
    )
    parent.add_argument(
        "--log-file",
        default=str(get_default_log_path()),
        help="Path to log file (default: per-user LoopTick directory)",
    )
    parent.add_argument(
        "--log-format",
        choices=["plain", "json"],
        default="plain",
        help="Log format (plain or json)",
    )
    return parent


def _build_timer_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--loop-length", type=int, default=None, help="Cycle length in seconds (1-3600)")
    parent.add_argument("--stride", type=int, default=None, help="Announce every N seconds (default 5)")
    parent.add_argument("--mute", dest="muted", action="store_const", const=True, default=None, help="Disable tick/speech feedback")
    parent.add_argument("--speech", dest="use_speech", action="store_const", const=True, default=None, help="Speak the remaining seconds instead of ticking")
    parent.add_argument("--tick-sound", type=Path, default=None, help="Audio file used for the tick (default: synthesized click)")
    return parent


def build_parser() -> argparse.ArgumentParser:
    logging_parent = _build_logging_parent()
    timer_parent = _build_timer_parent()
    parser = argparse.ArgumentParser(
        prog="looptick",
        description="LoopTick CLI",
        parents=[logging_parent],
    )
    sub = parser.add_subparsers(dest="command", required=False)

    def add_subparser(name: str, **kwargs: object) -> argparse.ArgumentParser:
        parents = list(kwargs.pop("parents", []))
        parents.insert(0, logging_parent)
        return sub.add_parser(name, parents=parents, **kwargs)

    add_subparser("run", parents=[timer_parent], help="Start the timer window (default)")

    p_self = add_subparser("selftest", parents=[timer_parent], help="Run the redundant scheduler headless and report refreshes per source")
    p_self.add_argument("--duration", type=float, default=1.0, help="Seconds to run (default 1.0)")

    p_sim = add_subparser("simulate", parents=[timer_parent], help="Print the feedback a simulated run would produce (no audio)")
    p_sim.add_argument("--duration", type=float, default=None, help="Simulated seconds (default: two cycles)")
    p_sim.add_argument("--step-ms", type=int, default=50, help="Simulated refresh period in ms (default 50)")
    p_sim.add_argument("--redundancy", type=int, default=2, help="Wake sources firing on each simulated step (default 2)")
    return parser


def resolve_config(args: argparse.Namespace, environ=None) -> TimerConfig:
    """Environment first, then command-line overrides."""
    return TimerConfig.from_env(environ).with_overrides(
        loop_length_s=getattr(args, "loop_length", None),
        stride_s=getattr(args, "stride", None),
        muted=getattr(args, "muted", None),
        use_speech=getattr(args, "use_speech", None),
        tick_sound=getattr(args, "tick_sound", None),
    )


class _RecordingOutput:
    """Feedback output that records instead of playing (used by ``simulate``)."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Optional[int]]] = []

    def play_cue(self) -> None:
        self.calls.append(("cue", None))

    def speak_number(self, number: int) -> None:
        self.calls.append(("speech", number))

    def cancel(self) -> None:
        pass


def cmd_simulate(args: argparse.Namespace, config: TimerConfig) -> int:
    from .engine.events import TimerEventType
    from .engine.looping_timer import LoopingTimer
    from .engine.scheduler import ManualSource

    if args.step_ms <= 0 or args.redundancy < 1:
        print("simulate: --step-ms and --redundancy must be positive", file=sys.stderr)
        return 2
    duration = args.duration if args.duration is not None else 2.0 * config.loop_length_s
    clock = {"t": 0.0}
    sources = [ManualSource(f"sim-{i}") for i in range(args.redundancy)]
    timer = LoopingTimer(
        config,
        sources=sources,
        output=_RecordingOutput(),
        time_provider=lambda: clock["t"],
    )

    def _print_feedback(event) -> None:
        record = {"t": round(clock["t"], 3), **(event.data or {})}
        print(json.dumps(record))

    timer.events.subscribe(TimerEventType.FEEDBACK, _print_feedback)
    timer.start()
    steps = int(round(duration * 1000.0 / args.step_ms))
    for i in range(1, steps + 1):
        clock["t"] = i * args.step_ms / 1000.0
        for source in sources:
            source.tick()
    timer.stop()
    print(json.dumps({
        "summary": True,
        "fired": timer.dispatcher.fired,
        "refreshes": sum(timer.scheduler.refresh_counts.values()),
    }))
    return 0


def cmd_selftest(args: argparse.Namespace, config: TimerConfig) -> int:
    from PyQt6.QtCore import QCoreApplication, QTimer

    from .engine.cycle_clock import CycleClockState
    from .engine.scheduler import RedundantScheduler
    from .engine.wake_sources import default_sources
    import time

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    scheduler = RedundantScheduler(
        CycleClockState(time.time(), float(config.loop_length_s)),
        default_sources(config),
    )
    scheduler.start()
    live = scheduler.live_sources
    QTimer.singleShot(int(max(0.05, args.duration) * 1000), app.quit)
    app.exec()
    scheduler.stop()
    counts = scheduler.refresh_counts
    wake_counts = {k: v for k, v in counts.items() if k != "start"}
    report = {
        "live_sources": live,
        "refresh_counts": counts,
        "released": scheduler.live_sources == [],
        "ok": bool(wake_counts) and scheduler.live_sources == [],
    }
    print(json.dumps(report))
    return 0 if report["ok"] else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging before doing any work
    if getattr(args, "log_mode", None):
        os.environ["LOOPTICK_LOG_MODE"] = args.log_mode
    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        json_format=(args.log_format == "json"),
        log_mode=args.log_mode,
        add_console=True,
    )

    try:
        config = resolve_config(args)
    except ConfigError as exc:
        print(f"looptick: {exc}", file=sys.stderr)
        return 2
    logging.getLogger(__name__).debug("resolved config %s", config)

    cmd = args.command or "run"
    if cmd == "simulate":
        return cmd_simulate(args, config)
    if cmd == "selftest":
        return cmd_selftest(args, config)
    if cmd == "run":
        # Import app lazily so headless commands never load QtWidgets or pygame
        from .app import run as run_gui
        run_gui(config)
        return 0
    parser.error(f"unknown command {cmd!r}")
    return 2
