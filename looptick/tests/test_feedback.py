"""Tests for edge detection, stride filtering and feedback routing."""

import pytest

from looptick.config import ConfigError, FeedbackConfig
from looptick.engine.feedback import (
    EdgeDetector,
    FeedbackDispatcher,
    FeedbackKind,
    stride_allows,
)


class ExplodingOutput:
    def __init__(self) -> None:
        self.attempts = 0

    def play_cue(self) -> None:
        self.attempts += 1
        raise RuntimeError("device busy")

    def speak_number(self, number: int) -> None:
        self.attempts += 1
        raise RuntimeError("no voice")

    def cancel(self) -> None:
        pass


def _feed(dispatcher, values):
    return [dispatcher.observe(v) for v in values]


class TestEdgeDetector:
    def test_first_observation_never_reports(self):
        for value in (0.0, 0.4, 29.9, 3600.0):
            assert EdgeDetector().observe(value) is None

    def test_same_rounded_second_is_not_a_crossing(self):
        edges = EdgeDetector()
        edges.observe(29.9)
        assert edges.observe(29.1) is None
        assert edges.previous == 30

    def test_crossing_reports_new_rounded_second(self):
        edges = EdgeDetector()
        edges.observe(29.8)
        assert edges.observe(28.9) == 29

    def test_wrap_around_is_a_crossing(self):
        edges = EdgeDetector()
        edges.observe(0.05)       # rounds to 1
        assert edges.observe(9.97) == 10

    def test_reset_forgets_previous(self):
        edges = EdgeDetector()
        edges.observe(5.5)
        edges.reset()
        assert edges.previous is None
        assert edges.observe(3.2) is None


class TestStrideFilter:
    def test_stride_one_allows_everything(self):
        assert all(stride_allows(n, 1) for n in range(0, 40))

    def test_stride_five(self):
        assert not stride_allows(28, 5)
        assert stride_allows(25, 5)
        assert stride_allows(20, 5)
        assert not stride_allows(0, 5)


class TestDispatcher:
    def test_first_observation_is_silent(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(stride_s=1), recording_output)
        assert d.observe(12.3) is None
        assert recording_output.cues == 0
        assert d.previous_rounded_second == 13

    def test_stride_one_boundary_fires_one_cue(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(stride_s=1), recording_output)
        assert _feed(d, [29.8, 28.9]) == [None, FeedbackKind.CUE]
        assert recording_output.cues == 1

    def test_same_second_fires_nothing(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(stride_s=1), recording_output)
        _feed(d, [29.9, 29.1])
        assert recording_output.cues == 0

    def test_redundant_refreshes_within_a_second_fire_once(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(stride_s=1), recording_output)
        # several sources observing the same nominal seconds: 10 -> 9 -> 8
        values = [9.95, 9.9, 9.9, 9.5, 9.01, 8.99, 8.99, 8.5, 8.01, 7.99, 7.99]
        _feed(d, values)
        assert recording_output.cues == 2

    def test_stride_five_sequence(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(stride_s=5), recording_output)
        assert _feed(d, [29.5, 28.5]) == [None, None]          # 30 -> 29 ... first is silent
        assert d.observe(27.5) is None                          # 28
        assert d.observe(25.5) is None                          # 26
        assert d.observe(24.5) is FeedbackKind.CUE              # 25
        assert _feed(d, [20.5, 19.5]) == [None, FeedbackKind.CUE]  # 21, 20
        assert recording_output.cues == 2

    def test_zero_boundary_is_never_announced(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(stride_s=5), recording_output)
        _feed(d, [0.5, 0.0])  # 1 -> 0
        assert recording_output.cues == 0

    def test_wrap_announces_cycle_length_when_multiple_of_stride(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(stride_s=5), recording_output)
        assert _feed(d, [0.2, 9.9]) == [None, FeedbackKind.CUE]  # 1 -> 10

    @pytest.mark.parametrize("stride", [1, 2, 5, 7])
    def test_muted_never_reaches_output(self, recording_output, stride):
        d = FeedbackDispatcher(FeedbackConfig(muted=True, use_speech=True, stride_s=stride), recording_output)
        remaining = 30.0
        while remaining > 0:
            d.observe(remaining)
            remaining -= 0.1
        assert recording_output.cues == 0
        assert recording_output.spoken == []

    def test_speech_routes_number(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(use_speech=True, stride_s=5), recording_output)
        _feed(d, [15.4, 14.6, 10.2, 9.8])
        assert recording_output.spoken == [15, 10]
        assert recording_output.cues == 0

    def test_edge_state_updates_while_muted(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(muted=True, stride_s=1), recording_output)
        _feed(d, [5.5, 4.5])
        d.update_config(FeedbackConfig(muted=False, stride_s=1))
        assert d.observe(4.2) is None  # still 5 -> no crossing
        assert d.observe(3.9) is FeedbackKind.CUE

    def test_update_config_does_not_mutate_caller_config(self, recording_output):
        original = FeedbackConfig(stride_s=2)
        d = FeedbackDispatcher(original, recording_output)
        _feed(d, [4.5, 3.5, 2.5])
        assert d.config is original
        assert original == FeedbackConfig(stride_s=2)

    def test_playback_failure_is_contained(self, caplog):
        out = ExplodingOutput()
        d = FeedbackDispatcher(FeedbackConfig(stride_s=1), out)
        assert _feed(d, [3.5, 2.5, 1.5]) == [None, None, None]
        assert out.attempts == 2
        assert d.failures == 2
        assert d.previous_rounded_second == 2
        assert "failed" in caplog.text

    def test_close_cancels_output(self, recording_output):
        d = FeedbackDispatcher(FeedbackConfig(), recording_output)
        d.close()
        assert recording_output.cancels == 1


def test_invalid_stride_rejected_at_config_boundary():
    with pytest.raises(ConfigError):
        FeedbackConfig(stride_s=0)
    with pytest.raises(ConfigError):
        FeedbackConfig(stride_s=-3)
