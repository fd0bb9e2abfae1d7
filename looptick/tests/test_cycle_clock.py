"""Tests for the drift-resistant cycle clock."""

import math

import pytest

from looptick.engine.cycle_clock import CycleClockState, compute_snapshot


@pytest.mark.parametrize("length", [1.0, 5.0, 7.5, 30.0, 3600.0])
@pytest.mark.parametrize("elapsed", [0.0, 0.001, 0.999, 4.2, 29.999, 123.456, 7200.25])
def test_snapshot_ranges(length, elapsed):
    snap = compute_snapshot(100.0, 100.0 + elapsed, length)
    assert 0.0 <= snap.position_s < length
    assert snap.progress == pytest.approx(snap.position_s / length)
    assert snap.remaining_s == pytest.approx(length - snap.position_s)
    assert 0.0 <= snap.progress < 1.0


def test_elapsed_keeps_subsecond_precision():
    snap = compute_snapshot(10.0, 12.345, 30.0)
    assert snap.elapsed_s == pytest.approx(2.345)
    assert snap.position_s == pytest.approx(2.345)


def test_cycle_wraps_to_start_instead_of_completing():
    snap = compute_snapshot(0.0, 5.0, 5.0)
    assert snap.position_s == pytest.approx(0.0)
    assert snap.progress == pytest.approx(0.0)
    assert snap.remaining_s == pytest.approx(5.0)


def test_negative_elapsed_still_in_range():
    # wall clock stepped backwards
    snap = compute_snapshot(0.0, -1e-17, 5.0)
    assert 0.0 <= snap.position_s < 5.0
    snap = compute_snapshot(100.0, 98.5, 5.0)
    assert snap.position_s == pytest.approx(3.5)


def test_changing_length_reinterprets_elapsed():
    state = CycleClockState(start_instant=50.0, cycle_length_s=10.0)
    now = 50.0 + 23.5
    assert state.snapshot(now).position_s == pytest.approx(3.5)

    longer = state.with_cycle_length(30.0)
    assert longer.start_instant == state.start_instant
    assert longer.snapshot(now).position_s == pytest.approx(23.5)

    shorter = state.with_cycle_length(7.0)
    assert shorter.snapshot(now).position_s == pytest.approx(math.fmod(23.5, 7.0))


def test_pure_function_is_repeatable():
    a = compute_snapshot(1.0, 17.3, 6.0)
    b = compute_snapshot(1.0, 17.3, 6.0)
    assert a == b
