"""Engine module for LoopTick.

Qt-backed pieces (``wake_sources``, ``visibility``, ``speech``) are imported
from their modules directly so headless commands never load a Qt plugin.
"""

from .cycle_clock import CycleClockState, Snapshot, compute_snapshot
from .events import TimerEvent, TimerEventEmitter, TimerEventType
from .scheduler import RedundantScheduler, SchedulerError, SchedulerState, WakeSource

__all__ = [
    'CycleClockState', 'Snapshot', 'compute_snapshot',
    'TimerEvent', 'TimerEventEmitter', 'TimerEventType',
    'RedundantScheduler', 'SchedulerError', 'SchedulerState', 'WakeSource',
]
