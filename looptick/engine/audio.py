# looptick/engine/audio.py
import logging
from pathlib import Path

import numpy as np
import pygame

_log = logging.getLogger(__name__)

MIXER_FREQUENCY = 44100
TICK_VOLUME = 0.5


def clamp(x, a, b): return max(a, min(b, x))


class AudioContext:
    """
    pygame mixer lifecycle, tracked the way a host audio context would be:
    - "closed": never acquired (or closed again)
    - "suspended": acquired but paused
    - "running": ready to play
    Every method is safe to call in any state; mixer failures propagate.
    """
    CLOSED = "closed"
    SUSPENDED = "suspended"
    RUNNING = "running"

    def __init__(self):
        self.state = self.CLOSED

    @property
    def is_running(self) -> bool:
        return self.state == self.RUNNING

    def acquire(self) -> str:
        if self.state != self.CLOSED and pygame.mixer.get_init():
            return self.state
        pygame.mixer.pre_init(MIXER_FREQUENCY, -16, 2, 512)
        pygame.mixer.init()
        self.state = self.RUNNING
        _log.info("pygame mixer initialized")
        return self.state

    def resume(self) -> bool:
        # the mixer may have been torn down underneath us (device change)
        if self.state == self.CLOSED or not pygame.mixer.get_init():
            self.state = self.CLOSED
            self.acquire()
        elif self.state == self.SUSPENDED:
            pygame.mixer.unpause()
            self.state = self.RUNNING
            _log.debug("pygame mixer resumed")
        return self.is_running

    def suspend(self) -> None:
        if self.state == self.RUNNING:
            pygame.mixer.pause()
            self.state = self.SUSPENDED

    def close(self) -> None:
        if self.state == self.CLOSED:
            return
        self.state = self.CLOSED
        try:
            pygame.mixer.quit()
        except Exception as e:
            _log.warning("mixer shutdown error: %s", e)


def generate_tick_int16(*, sample_rate=MIXER_FREQUENCY, channels=2, duration_s=0.03,
                        freq_hz=1800.0, peak=0.6) -> np.ndarray:
    """Short decaying sine click, int16, shaped (n,) for mono or (n, channels)."""
    n = max(1, int(round(duration_s * sample_rate)))
    t = np.arange(n, dtype=np.float32) / float(sample_rate)
    env = np.exp(-t * (6.0 / duration_s)).astype(np.float32)
    sig = np.sin(2.0 * np.pi * freq_hz * t) * env * peak
    pcm = np.clip(sig * 32767.0, -32768, 32767).astype(np.int16)
    if channels <= 1:
        return pcm
    return np.ascontiguousarray(np.repeat(pcm[:, None], channels, axis=1))


class TickCue:
    """
    Short tick played on a dedicated channel.
    - loads `path` when given; a decode failure falls back to the synthesized click
    - play() restarts from the beginning, so rapid ticks are never truncated by
      an overlapping earlier playback
    """
    def __init__(self, path=None, volume=TICK_VOLUME):
        self.path = Path(path) if path else None
        self.volume = clamp(volume, 0, 1)
        self.sound = None
        self.chan = None

    def load(self):
        if self.sound is not None:
            return self.sound
        if self.path is not None:
            try:
                self.sound = pygame.mixer.Sound(str(self.path))
            except Exception as e:
                _log.warning("tick load error: %s; using synthesized click", e)
        if self.sound is None:
            freq, _size, channels = pygame.mixer.get_init() or (MIXER_FREQUENCY, -16, 2)
            self.sound = pygame.sndarray.make_sound(generate_tick_int16(sample_rate=freq, channels=channels))
        self.sound.set_volume(self.volume)
        return self.sound

    def play(self):
        sound = self.load()
        if self.chan is not None:
            self.chan.stop()
        self.chan = sound.play()

    def stop(self):
        if self.chan is not None:
            self.chan.stop(); self.chan = None
