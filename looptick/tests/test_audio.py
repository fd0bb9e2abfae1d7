"""Unit tests for the audio layer (pygame-based)."""

import numpy as np
import pytest
from unittest.mock import MagicMock, patch

from looptick.engine.audio import AudioContext, TickCue, clamp, generate_tick_int16
from looptick.engine.feedback import AudioFeedbackOutput


def test_clamp_basic():
    assert clamp(0.5, 0, 1) == 0.5
    assert clamp(-1, 0, 1) == 0
    assert clamp(2, 0, 1) == 1


def test_generate_tick_shapes():
    stereo = generate_tick_int16(sample_rate=8000, channels=2, duration_s=0.01)
    assert stereo.dtype == np.int16
    assert stereo.shape == (80, 2)
    mono = generate_tick_int16(sample_rate=8000, channels=1, duration_s=0.01)
    assert mono.shape == (80,)
    assert np.abs(mono).max() > 0


@patch("pygame.mixer")
def test_context_acquire_and_resume(mock_mixer):
    mock_mixer.get_init.return_value = (44100, -16, 2)
    ctx = AudioContext()
    assert ctx.state == AudioContext.CLOSED
    assert ctx.resume() is True
    assert ctx.state == AudioContext.RUNNING
    mock_mixer.init.assert_called_once()
    # idempotent
    assert ctx.resume() is True
    mock_mixer.init.assert_called_once()


@patch("pygame.mixer")
def test_context_acquire_failure_propagates(mock_mixer):
    mock_mixer.init = MagicMock(side_effect=RuntimeError("no audio device"))
    ctx = AudioContext()
    with pytest.raises(RuntimeError):
        ctx.acquire()
    assert ctx.state == AudioContext.CLOSED


@patch("pygame.mixer")
def test_context_suspend_and_resume(mock_mixer):
    mock_mixer.get_init.return_value = (44100, -16, 2)
    ctx = AudioContext()
    ctx.acquire()
    ctx.suspend()
    assert ctx.state == AudioContext.SUSPENDED
    assert ctx.resume() is True
    mock_mixer.unpause.assert_called_once()


@patch("pygame.mixer")
def test_context_reacquires_when_mixer_was_torn_down(mock_mixer):
    ctx = AudioContext()
    mock_mixer.get_init.return_value = (44100, -16, 2)
    ctx.acquire()
    mock_mixer.get_init.return_value = None
    ctx.resume()
    assert mock_mixer.init.call_count == 2


@patch("pygame.mixer")
def test_context_close(mock_mixer):
    mock_mixer.get_init.return_value = (44100, -16, 2)
    ctx = AudioContext()
    ctx.acquire()
    ctx.close()
    assert ctx.state == AudioContext.CLOSED
    mock_mixer.quit.assert_called_once()


class FakeChan:
    def __init__(self):
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeSound:
    def __init__(self, *a, **k):
        self.volume = None
        self.plays = 0

    def set_volume(self, v):
        self.volume = v

    def play(self, loops=0):
        self.plays += 1
        return FakeChan()


@patch("pygame.mixer")
def test_tick_restarts_from_beginning(mock_mixer):
    mock_mixer.Sound = FakeSound
    cue = TickCue("tick.wav")
    cue.play()
    first = cue.chan
    cue.play()
    assert first.stopped is True
    assert cue.sound.plays == 2
    assert cue.sound.volume == 0.5


@patch("pygame.sndarray")
@patch("pygame.mixer")
def test_tick_falls_back_to_synthesized_click(mock_mixer, mock_sndarray):
    def boom(*a, **k):
        raise RuntimeError("no decode")

    mock_mixer.Sound = boom
    mock_mixer.get_init.return_value = (22050, -16, 1)
    mock_sndarray.make_sound.return_value = FakeSound()
    cue = TickCue("missing.mp3")
    cue.play()
    (buffer,), _ = mock_sndarray.make_sound.call_args
    assert buffer.ndim == 1
    assert cue.sound.plays == 1


class FakeSpeaker:
    def __init__(self):
        self.said = []
        self.cancelled = 0

    def speak(self, text):
        self.said.append(text)

    def cancel(self):
        self.cancelled += 1


def test_output_drops_cue_while_context_locked():
    ctx = AudioContext()
    cue = MagicMock()
    out = AudioFeedbackOutput(ctx, cue, FakeSpeaker())
    out.play_cue()
    cue.play.assert_not_called()


def test_output_routes_speech_and_cancel():
    ctx = AudioContext()
    ctx.state = AudioContext.RUNNING
    cue = MagicMock()
    speaker = FakeSpeaker()
    out = AudioFeedbackOutput(ctx, cue, speaker)
    out.play_cue()
    cue.play.assert_called_once()
    out.speak_number(25)
    assert speaker.said == ["25"]
    out.cancel()
    assert speaker.cancelled == 1
    cue.stop.assert_called_once()
