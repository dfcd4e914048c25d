# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests for contact schedules and the stage factory base."""

import numpy as np
import pinocchio
import pytest

from conftest import PlainStageFactory, make_schedule
from whole_body_mpc.exceptions import SettingsMismatch, UnknownEndEffector
from whole_body_mpc.gait.contact_schedule import ContactSchedule, contact_trace, normal_force


def test_build_requires_matching_keys():
    with pytest.raises(SettingsMismatch):
        ContactSchedule.build(
            {"left": True, "right": True},
            {"left": pinocchio.SE3.Identity()},
            {"left": np.zeros(6), "right": np.zeros(6)},
        )


def test_accessors_and_copy_are_independent():
    schedule = make_schedule({"left": True, "right": False}, force_size=6, fz=50.0)
    assert schedule.is_in_contact("left")
    assert not schedule.is_in_contact("right")
    assert schedule.num_contacts == 1
    np.testing.assert_allclose(schedule.force("left"), [0, 0, 50, 0, 0, 0])
    np.testing.assert_allclose(schedule.force("right"), np.zeros(6))

    clone = schedule.copy()
    clone["left"].force[2] = 1.0
    clone["left"].pose.translation = np.ones(3)
    assert schedule.force("left")[2] == 50.0
    np.testing.assert_allclose(schedule.pose("left").translation, np.zeros(3))


def test_unknown_end_effector_lookup():
    schedule = make_schedule({"left": True})
    with pytest.raises(UnknownEndEffector):
        schedule.pose("hand")
    with pytest.raises(KeyError):
        schedule["hand"]


def test_validate_rejects_unknown_missing_and_wrong_force_size():
    schedule = make_schedule({"left": True, "right": True}, force_size=3)
    schedule.validate(["left", "right"], 3)
    with pytest.raises(SettingsMismatch):
        schedule.validate(["left", "right"], 6)
    with pytest.raises(UnknownEndEffector):
        schedule.validate(["left"], 3)
    with pytest.raises(SettingsMismatch):
        schedule.validate(["left", "right", "hand"], 3)


def test_contact_trace_follows_requested_order():
    schedules = [
        make_schedule({"left": True, "right": False}),
        make_schedule({"left": False, "right": True}),
    ]
    assert contact_trace(schedules, ["right", "left"]) == [(False, True), (True, False)]


def test_normal_force():
    np.testing.assert_allclose(normal_force(3, 9.0), [0.0, 0.0, 9.0])
    assert normal_force(6).shape == (6,)


def test_factory_rejects_bad_configuration():
    with pytest.raises(SettingsMismatch):
        PlainStageFactory(["left", "right"], force_size=4)
    with pytest.raises(SettingsMismatch):
        PlainStageFactory(["left", "left"])
    with pytest.raises(SettingsMismatch):
        PlainStageFactory([])


def test_factory_resolves_names_once(biped_factory):
    assert biped_factory.resolve("left") == 0
    assert biped_factory.resolve("right") == 1
    with pytest.raises(UnknownEndEffector):
        biped_factory.resolve("hand")


def test_unpack_schedule_uses_factory_order(biped_factory):
    schedule = make_schedule({"right": False, "left": True}, fz=20.0)
    states, poses, forces = biped_factory.unpack_schedule(schedule)
    assert states == (True, False)
    assert len(poses) == 2
    assert forces.shape == (2, 6)
    assert forces[0, 2] == 20.0 and forces[1, 2] == 0.0


def test_stage_references_are_copies(biped_factory):
    stage = biped_factory.create_stage(make_schedule({"left": True, "right": False}))
    assert stage.num_active_contacts == 1

    force = np.arange(6, dtype=float)
    stage.set_reference_force(1, force)
    force[:] = 0.0
    np.testing.assert_allclose(stage.get_reference_force(1), np.arange(6))

    pose = pinocchio.SE3(np.eye(3), np.array([0.1, 0.2, 0.3]))
    stage.set_reference_pose(0, pose)
    returned = stage.get_reference_pose(0)
    returned.translation = np.zeros(3)
    np.testing.assert_allclose(stage.get_reference_pose(0).translation, [0.1, 0.2, 0.3])
