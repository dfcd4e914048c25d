# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests for gait schedule generation and swing-foot references."""

import numpy as np
import pinocchio
import pytest

from conftest import BIPED_FEET, QUADRUPED_FEET, biped_sequence
from whole_body_mpc.exceptions import SettingsMismatch, UnknownEndEffector
from whole_body_mpc.gait.foot_trajectory import SwingFootTrajectory
from whole_body_mpc.gait.gait_scheduler import GaitScheduler
from whole_body_mpc.gait.horizon import HorizonWindow
from whole_body_mpc.utils.math_utils import apex_control_points, bezier_curve


def _poses(names):
    return {
        name: pinocchio.SE3(np.eye(3), np.array([0.1 * i, 0.0, 0.0]))
        for i, name in enumerate(names)
    }


# =============================================================================
# GaitScheduler
# =============================================================================

def test_walk_cycle_swings_each_foot_in_turn():
    scheduler = GaitScheduler(QUADRUPED_FEET, force_size=3, support_force=120.0, T_contact=2, T_fly=3)
    cycle = scheduler.generate_cycle(_poses(QUADRUPED_FEET), "walk")
    assert len(cycle) == 4 * (2 + 3)

    for i, name in enumerate(QUADRUPED_FEET):
        block = cycle[i * 5:(i + 1) * 5]
        assert all(s.num_contacts == 4 for s in block[:2])
        assert all(not s.is_in_contact(name) for s in block[2:])
        assert all(s.num_contacts == 3 for s in block[2:])

    np.testing.assert_allclose(cycle[0].force("FL"), [0.0, 0.0, 30.0])
    np.testing.assert_allclose(cycle[2].force("FR"), [0.0, 0.0, 40.0])
    np.testing.assert_allclose(cycle[2].force("FL"), np.zeros(3))


def test_trot_swings_diagonal_pairs():
    scheduler = GaitScheduler(QUADRUPED_FEET, force_size=3, T_contact=1, T_fly=2)
    cycle = scheduler.generate_cycle(_poses(QUADRUPED_FEET), "trot")
    assert len(cycle) == 6
    assert cycle[1].contact_states(QUADRUPED_FEET) == (True, False, False, True)
    assert cycle[4].contact_states(QUADRUPED_FEET) == (False, True, True, False)


def test_gait_errors():
    with pytest.raises(ValueError):
        GaitScheduler(QUADRUPED_FEET).swing_groups("gallop")
    with pytest.raises(ValueError):
        GaitScheduler(BIPED_FEET).swing_groups("trot")
    with pytest.raises(UnknownEndEffector):
        GaitScheduler(BIPED_FEET).make_schedule(_poses(BIPED_FEET), ["hand"])
    with pytest.raises(SettingsMismatch):
        GaitScheduler(BIPED_FEET, T_contact=0, T_fly=0)
    assert "walk" in GaitScheduler.get_available_gaits()


def test_generate_translates_feet_after_their_swing():
    scheduler = GaitScheduler(BIPED_FEET, force_size=6, T_contact=2, T_fly=3)
    poses = _poses(BIPED_FEET)
    sequence = scheduler.generate(poses, "walk", num_cycles=1, step_translation=np.array([0.2, 0.0, 0.0]))
    assert len(sequence) == 2 * 5 + 2

    np.testing.assert_allclose(sequence[4].pose("left").translation, [0.0, 0.0, 0.0])
    np.testing.assert_allclose(sequence[5].pose("left").translation, [0.2, 0.0, 0.0])
    np.testing.assert_allclose(sequence[5].pose("right").translation, [0.1, 0.0, 0.0])
    np.testing.assert_allclose(sequence[-1].pose("right").translation, [0.3, 0.0, 0.0])
    # input poses are left untouched
    np.testing.assert_allclose(poses["left"].translation, [0.0, 0.0, 0.0])


def test_generate_standing():
    scheduler = GaitScheduler(BIPED_FEET, force_size=6, support_force=500.0)
    standing = scheduler.generate_standing(_poses(BIPED_FEET), num_steps=3)
    assert len(standing) == 3
    assert all(s.num_contacts == 2 for s in standing)
    assert standing[0].force("left")[2] == 250.0


# =============================================================================
# Bezier swing references
# =============================================================================

def test_apex_arc_peaks_at_requested_height():
    points = apex_control_points(np.zeros(3), np.array([0.2, 0.0, 0.0]), 0.1)
    np.testing.assert_allclose(bezier_curve(points, 0.5), [0.1, 0.0, 0.1])
    np.testing.assert_allclose(bezier_curve(points, np.array([0.0, 1.0])), [[0, 0, 0], [0.2, 0, 0]])


def _expected_swing(s, dx=0.2, apex=0.1):
    return np.array([dx * s, 0.0, 4.0 * apex * s * (1.0 - s)])


def test_swing_references_follow_apex_arc(biped_factory):
    window = HorizonWindow(biped_factory, 20)
    window.generate_full_horizon(biped_sequence(40, [range(5, 15)]))
    swing = SwingFootTrajectory(swing_apex=0.1, x_translation=0.2, T_fly=10)

    swing.update(window)

    assert swing.swing_phases(window, "right") == [(5, 15)]
    for k in range(5, 15):
        s = (k - 5 + 1) / 11
        np.testing.assert_allclose(window.get_reference_pose(k, "right").translation, _expected_swing(s))
    np.testing.assert_allclose(window.get_reference_pose(4, "right").translation, np.zeros(3))
    np.testing.assert_allclose(window.get_reference_pose(15, "right").translation, np.zeros(3))
    np.testing.assert_allclose(window.get_reference_pose(10, "left").translation, np.zeros(3))


def test_swing_origin_is_kept_while_the_window_slides(biped_factory):
    window = HorizonWindow(biped_factory, 20)
    window.generate_full_horizon(biped_sequence(40, [range(5, 15)]))
    swing = SwingFootTrajectory(swing_apex=0.1, x_translation=0.2, T_fly=10)
    swing.update(window)

    for _ in range(7):
        window.recede()
    swing.update(window)

    assert swing.swing_phases(window, "right") == [(0, 8)]
    for k in range(0, 8):
        s = (7 + k - 5 + 1) / 11
        np.testing.assert_allclose(window.get_reference_pose(k, "right").translation, _expected_swing(s))
