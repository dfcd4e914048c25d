# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests for the receding horizon window and its timing table."""

import numpy as np
import pinocchio
import pytest

from conftest import biped_sequence, make_schedule
from whole_body_mpc.exceptions import (
    HorizonExhausted,
    IndexOutOfRange,
    InvalidLength,
    SettingsMismatch,
    UnknownEndEffector,
)
from whole_body_mpc.gait.contact_schedule import contact_trace
from whole_body_mpc.gait.horizon import ExhaustionPolicy, HorizonWindow, TimingTable


def _cyclic_pattern():
    """Left foot swings on phases 2 and 3 of a period of 6, right always in contact."""
    left = [True, True, False, False, True, True]
    return [make_schedule({"left": c, "right": True}) for c in left]


def _fresh_timings(window, ee):
    """Events derivable from the window trace alone, i.e. at indices >= 1."""
    table = TimingTable(len(window.factory.ee_names))
    table.reset(contact_trace(window.schedules, window.factory.ee_names))
    i = window.factory.resolve(ee)
    return tuple(table.takeoff[i]), tuple(table.landing[i])


# =============================================================================
# Generation
# =============================================================================

def test_full_horizon_needs_at_least_T_schedules(biped_factory):
    window = HorizonWindow(biped_factory, 10)
    with pytest.raises(InvalidLength):
        window.generate_full_horizon(biped_sequence(9, []))
    assert window.mode is None


def test_cycle_horizon_rejects_empty_pattern(biped_factory):
    window = HorizonWindow(biped_factory, 10)
    with pytest.raises(InvalidLength):
        window.generate_cycle_horizon([])


def test_generation_validates_every_schedule(biped_factory):
    window = HorizonWindow(biped_factory, 3)
    schedules = biped_sequence(5, [])
    schedules[4] = make_schedule({"left": True, "right": True}, force_size=3)
    with pytest.raises(SettingsMismatch):
        window.generate_full_horizon(schedules)


def test_full_horizon_window_and_tail(biped_factory):
    window = HorizonWindow(biped_factory, 100)
    window.generate_full_horizon(biped_sequence(130, []))
    assert len(window.stages) == 100
    assert window.terminal_stage is not None
    assert window.reference_tail_length == 30
    assert len(window.full_horizon) == 130
    assert biped_factory.created == 100
    assert biped_factory.created_terminal == 1


def test_cycle_horizon_tiles_pattern(biped_factory):
    window = HorizonWindow(biped_factory, 8)
    pattern = _cyclic_pattern()
    window.generate_cycle_horizon(pattern)
    for k in range(8):
        assert window.schedules[k].contact_states(["left", "right"]) == pattern[k % 6].contact_states(
            ["left", "right"]
        )
    assert window.reference_tail_length == 0


# =============================================================================
# Recession
# =============================================================================

def test_cycle_slot_identity_after_recessions(biped_factory):
    T, P = 8, 6
    window = HorizonWindow(biped_factory, T)
    pattern = _cyclic_pattern()
    window.generate_cycle_horizon(pattern)
    for n in range(1, 20):
        window.recede()
        assert window.phase == n % P
        for k in range(T):
            expected = pattern[(k + n) % P]
            assert window.stages[k].contact_states == expected.contact_states(["left", "right"])
            np.testing.assert_allclose(window.get_reference_force(k, "left"), expected.force("left"))


def test_timing_table_shift_drop_append(biped_factory):
    window = HorizonWindow(biped_factory, 4)
    window.generate_cycle_horizon(_cyclic_pattern())
    assert window.get_foot_takeoff_timings("left") == (2,)
    assert window.get_foot_land_timings("left") == ()

    window.recede()
    assert window.get_foot_takeoff_timings("left") == (1,)
    assert window.get_foot_land_timings("left") == (3,)

    window.recede()
    assert window.get_foot_takeoff_timings("left") == (0,)
    assert window.get_foot_land_timings("left") == (2,)

    window.recede()
    assert window.get_foot_takeoff_timings("left") == ()
    assert window.get_foot_land_timings("left") == (1,)

    window.recede()
    window.recede()
    assert window.get_foot_takeoff_timings("left") == (3,)
    assert window.get_foot_land_timings("left") == ()
    assert window.get_foot_takeoff_timings("right") == ()


def test_timing_table_matches_window_trace(biped_factory):
    window = HorizonWindow(biped_factory, 20)
    window.generate_full_horizon(biped_sequence(80, [range(5, 12), range(30, 41), range(60, 75)]))
    for _ in range(60):
        window.recede()
        for ee in ("left", "right"):
            takeoff, landing = _fresh_timings(window, ee)
            assert tuple(k for k in window.get_foot_takeoff_timings(ee) if k >= 1) == takeoff
            assert tuple(k for k in window.get_foot_land_timings(ee) if k >= 1) == landing
            assert all(0 <= k < 20 for k in window.get_foot_takeoff_timings(ee))


def test_full_horizon_consumes_tail_then_raises(biped_factory):
    window = HorizonWindow(biped_factory, 100)
    sequence = biped_sequence(130, [range(0, 10)])
    window.generate_full_horizon(sequence)
    for n in range(1, 31):
        window.recede()
        assert len(window.full_horizon) == 130 - n
        assert window.stages[-1].contact_states == sequence[99 + n].contact_states(["left", "right"])

    before = window.schedules
    with pytest.raises(HorizonExhausted):
        window.recede()
    assert window.recession_count == 30
    assert all(a is b for a, b in zip(window.schedules, before))


def test_recede_without_generation_raises(biped_factory):
    window = HorizonWindow(biped_factory, 5)
    with pytest.raises(HorizonExhausted):
        window.recede()


def test_hold_policy_repeats_last_schedule(biped_factory):
    window = HorizonWindow(biped_factory, 5, ExhaustionPolicy.HOLD)
    sequence = biped_sequence(6, [range(5, 6)])
    window.generate_full_horizon(sequence)
    for _ in range(4):
        window.recede()
    assert all(not stage.contact_states[1] for stage in window.stages[-4:])


def test_wrap_policy_biped_end_to_end(biped_factory):
    window = HorizonWindow(biped_factory, 100, ExhaustionPolicy.WRAP)
    sequence = biped_sequence(130, [range(0, 10), range(60, 70)])
    window.generate_full_horizon(sequence)
    for _ in range(50):
        window.recede()

    assert len(window.stages) == 100
    # slot 80 holds absolute step 130, which wraps to the first schedule
    np.testing.assert_allclose(window.get_reference_force(80, "right"), np.zeros(6))
    assert window.contact_states(80) == {"left": True, "right": False}
    assert window.contact_states(79) == {"left": True, "right": True}
    assert window.get_reference_force(79, "right")[2] == 100.0


# =============================================================================
# Accessors
# =============================================================================

def test_step_and_end_effector_checks(biped_factory):
    window = HorizonWindow(biped_factory, 5)
    window.generate_full_horizon(biped_sequence(5, []))
    pose = pinocchio.SE3.Identity()
    with pytest.raises(IndexOutOfRange):
        window.set_reference_pose(5, "left", pose)
    with pytest.raises(IndexOutOfRange):
        window.get_reference_force(-1, "left")
    with pytest.raises(UnknownEndEffector):
        window.set_reference_pose(0, "hand", pose)
    with pytest.raises(UnknownEndEffector):
        window.get_foot_takeoff_timings("hand")
    with pytest.raises(SettingsMismatch):
        window.set_reference_force(0, "left", np.zeros(3))


def test_batch_setters_are_all_or_nothing(biped_factory):
    window = HorizonWindow(biped_factory, 5)
    window.generate_full_horizon(biped_sequence(5, []))
    moved = pinocchio.SE3(np.eye(3), np.array([1.0, 0.0, 0.0]))
    with pytest.raises(UnknownEndEffector):
        window.set_reference_poses(2, {"left": moved, "hand": moved})
    np.testing.assert_allclose(window.get_reference_pose(2, "left").translation, np.zeros(3))

    with pytest.raises(SettingsMismatch):
        window.set_reference_forces(2, {"left": np.ones(6), "right": np.ones(3)})
    assert window.get_reference_force(2, "left")[0] == 0.0


def test_reference_setters_round_trip(biped_factory):
    window = HorizonWindow(biped_factory, 5)
    window.generate_full_horizon(biped_sequence(5, []))
    moved = pinocchio.SE3(np.eye(3), np.array([0.3, -0.1, 0.0]))
    window.set_reference_pose(3, "right", moved)
    assert window.get_reference_pose(3, "right").isApprox(moved)
    assert window.schedules[3].pose("right").isApprox(moved)

    window.set_reference_forces(1, {"left": np.arange(6.0)})
    np.testing.assert_allclose(window.get_reference_force(1, "left"), np.arange(6.0))

    window.set_terminal_reference_pose("left", moved)
    assert window.get_terminal_reference_pose("left").isApprox(moved)
    assert window.contact_support(0) == 2
