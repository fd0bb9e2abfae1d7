"""Tests for configuration validation and environment loading."""

from pathlib import Path

import pytest

from looptick.config import (
    ConfigError,
    FeedbackConfig,
    TimerConfig,
    validate_cycle_length,
    validate_stride,
)


def test_defaults_are_valid():
    config = TimerConfig().validate()
    assert config.loop_length_s == 30
    assert config.stride_s == 5
    assert config.feedback() == FeedbackConfig(muted=False, use_speech=False, stride_s=5)


@pytest.mark.parametrize("value", [0, -1, 3601, "abc", None])
def test_invalid_cycle_length(value):
    with pytest.raises(ConfigError):
        validate_cycle_length(value)


@pytest.mark.parametrize("value", [1, 2.5, 3600])
def test_valid_cycle_length(value):
    assert validate_cycle_length(value) == float(value)


@pytest.mark.parametrize("value", [0, -5, 1.5, True, "5"])
def test_invalid_stride(value):
    with pytest.raises(ConfigError):
        validate_stride(value)


def test_cadence_must_be_positive():
    with pytest.raises(ConfigError, match="interval_ms"):
        TimerConfig(interval_ms=0).validate()
    with pytest.raises(ConfigError, match="frame_ms"):
        TimerConfig(frame_ms=-1).validate()


def test_with_overrides_skips_none_and_validates():
    base = TimerConfig()
    changed = base.with_overrides(loop_length_s=60, stride_s=None, muted=True)
    assert changed.loop_length_s == 60
    assert changed.stride_s == base.stride_s
    assert changed.muted is True
    with pytest.raises(ConfigError):
        base.with_overrides(stride_s=0)


def test_from_env_reads_prefixed_variables():
    env = {
        "LOOPTICK_LOOP_LENGTH": "60",
        "LOOPTICK_STRIDE": "10",
        "LOOPTICK_MUTED": "true",
        "LOOPTICK_SPEECH": "1",
        "LOOPTICK_TICK_SOUND": "/tmp/tick.wav",
    }
    config = TimerConfig.from_env(env)
    assert config.loop_length_s == 60
    assert config.stride_s == 10
    assert config.muted is True
    assert config.use_speech is True
    assert config.tick_sound == Path("/tmp/tick.wav")


def test_from_env_empty_keeps_defaults():
    assert TimerConfig.from_env({}) == TimerConfig()


@pytest.mark.parametrize(
    "env",
    [
        {"LOOPTICK_LOOP_LENGTH": "ten"},
        {"LOOPTICK_LOOP_LENGTH": "0"},
        {"LOOPTICK_STRIDE": "-2"},
        {"LOOPTICK_MUTED": "maybe"},
    ],
)
def test_from_env_rejects_malformed(env):
    with pytest.raises(ConfigError):
        TimerConfig.from_env(env)
