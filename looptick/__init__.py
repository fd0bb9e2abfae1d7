"""LoopTick: a looping countdown timer that keeps ticking in the background."""

__app_name__ = "LoopTick"
__version__ = "0.3.0"
