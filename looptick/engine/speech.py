"""Spoken-number output through Qt's text-to-speech module.

The QTextToSpeech engine is created lazily on first use, since constructing
it loads a platform plugin. Hosts without any speech engine get a Speaker
that logs once and otherwise does nothing.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

_log = logging.getLogger(__name__)

SPEECH_VOLUME = 0.8
SPEECH_RATE = 0.2   # Qt range is -1..1; 0 is the engine's normal rate
SPEECH_PITCH = 0.0


class Speaker:
    def __init__(self, *, volume: float = SPEECH_VOLUME, rate: float = SPEECH_RATE, pitch: float = SPEECH_PITCH) -> None:
        self.volume = volume
        self.rate = rate
        self.pitch = pitch
        self._tts: Optional[Any] = None
        self._probed = False

    @property
    def available(self) -> bool:
        return self._engine() is not None

    def _engine(self) -> Optional[Any]:
        if self._probed:
            return self._tts
        self._probed = True
        try:
            from PyQt6.QtTextToSpeech import QTextToSpeech
        except ImportError as exc:
            _log.info("speech unavailable (QtTextToSpeech missing): %s", exc)
            return None
        if not QTextToSpeech.availableEngines():
            _log.info("speech unavailable: no text-to-speech engine installed")
            return None
        tts = QTextToSpeech()
        tts.setVolume(self.volume)
        tts.setRate(self.rate)
        tts.setPitch(self.pitch)
        self._tts = tts
        _log.info("speech engine ready engine=%s", tts.engine())
        return tts

    def speak(self, text: str) -> None:
        """Speak ``text``, dropping any utterance still in flight."""
        tts = self._engine()
        if tts is None:
            return
        tts.stop()
        tts.say(text)

    def cancel(self) -> None:
        if self._tts is not None:
            self._tts.stop()

    def close(self) -> None:
        tts, self._tts = self._tts, None
        if tts is not None:
            tts.stop()
            tts.deleteLater()
