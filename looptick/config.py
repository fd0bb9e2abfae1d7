"""Timer configuration and its validation boundary.

Everything the core consumes (cycle length, stride, mute, speech and the
scheduler cadences) is validated here, before any clock, scheduler or
dispatcher is created. The engine trusts the values it receives.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

MIN_LOOP_LENGTH_S = 1
MAX_LOOP_LENGTH_S = 3600

_ENV_PREFIX = "LOOPTICK_"
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    """Raised when a timer parameter is outside its accepted range."""


def validate_cycle_length(value: float) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"loop length must be a number, got {value!r}") from exc
    if not (MIN_LOOP_LENGTH_S <= seconds <= MAX_LOOP_LENGTH_S):
        raise ConfigError(
            f"loop length must be between {MIN_LOOP_LENGTH_S} and {MAX_LOOP_LENGTH_S} seconds, got {value!r}"
        )
    return seconds


def validate_stride(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"stride must be a positive integer, got {value!r}")
    if value < 1:
        raise ConfigError(f"stride must be a positive integer, got {value!r}")
    return value


@dataclass(frozen=True)
class FeedbackConfig:
    """What the feedback dispatcher announces and how.

    Supplied by the caller; the dispatcher only ever reads it.
    """

    muted: bool = False
    use_speech: bool = False
    stride_s: int = 1

    def __post_init__(self) -> None:
        validate_stride(self.stride_s)


@dataclass(frozen=True)
class TimerConfig:
    loop_length_s: int = 30
    stride_s: int = 5
    muted: bool = False
    use_speech: bool = False
    tick_sound: Optional[Path] = None
    # Scheduler cadences (milliseconds)
    interval_ms: int = 50
    chain_ms: int = 100
    heartbeat_ms: int = 50
    frame_ms: Optional[int] = None  # None -> derived from the screen refresh rate

    def validate(self) -> "TimerConfig":
        validate_cycle_length(self.loop_length_s)
        validate_stride(self.stride_s)
        for name in ("interval_ms", "chain_ms", "heartbeat_ms"):
            value = getattr(self, name)
            if int(value) <= 0:
                raise ConfigError(f"{name} must be positive, got {value!r}")
        if self.frame_ms is not None and int(self.frame_ms) <= 0:
            raise ConfigError(f"frame_ms must be positive, got {self.frame_ms!r}")
        return self

    def feedback(self) -> FeedbackConfig:
        return FeedbackConfig(muted=self.muted, use_speech=self.use_speech, stride_s=self.stride_s)

    def with_overrides(self, **changes) -> "TimerConfig":
        """Return a validated copy with every non-None override applied."""
        applied = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **applied).validate()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TimerConfig":
        """Build a config from ``LOOPTICK_*`` environment variables.

        Unset variables keep their defaults; malformed values raise ConfigError.
        """
        env = os.environ if environ is None else environ
        changes: dict[str, object] = {}
        if (raw := env.get(_ENV_PREFIX + "LOOP_LENGTH")) is not None:
            changes["loop_length_s"] = _parse_int(raw, "LOOP_LENGTH")
        if (raw := env.get(_ENV_PREFIX + "STRIDE")) is not None:
            changes["stride_s"] = _parse_int(raw, "STRIDE")
        if (raw := env.get(_ENV_PREFIX + "MUTED")) is not None:
            changes["muted"] = _parse_bool(raw, "MUTED")
        if (raw := env.get(_ENV_PREFIX + "SPEECH")) is not None:
            changes["use_speech"] = _parse_bool(raw, "SPEECH")
        if raw := env.get(_ENV_PREFIX + "TICK_SOUND"):
            changes["tick_sound"] = Path(raw).expanduser()
        return replace(cls(), **changes).validate()


def _parse_int(raw: str, name: str) -> int:
    try:
        return int(raw.strip(), 10)
    except ValueError as exc:
        raise ConfigError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _parse_bool(raw: str, name: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"{_ENV_PREFIX}{name} must be a boolean, got {raw!r}")
