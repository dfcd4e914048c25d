# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests for the Crocoddyl stage factory and the FDDP optimizer adapter."""

import numpy as np
import pytest

crocoddyl = pytest.importorskip("crocoddyl")
example_robot_data = pytest.importorskip("example_robot_data")

from whole_body_mpc.controllers.mpc import MPC, MPCSettings  # noqa: E402
from whole_body_mpc.controllers.optimizer import FDDPOptimizer  # noqa: E402
from whole_body_mpc.exceptions import SettingsMismatch, UnknownEndEffector  # noqa: E402
from whole_body_mpc.gait.gait_scheduler import GaitScheduler  # noqa: E402
from whole_body_mpc.gait.stage_factory import (  # noqa: E402
    FullDynamicsSettings,
    FullDynamicsStageFactory,
)

FEET = ["left_sole_link", "right_sole_link"]


@pytest.fixture(scope="module")
def talos_model():
    robot = example_robot_data.load("talos_legs")
    return robot.model, np.concatenate([robot.q0, np.zeros(robot.model.nv)])


@pytest.fixture
def factory(talos_model):
    model, x0 = talos_model
    return FullDynamicsStageFactory(model, FEET, FullDynamicsSettings(x0=x0, force_size=6))


def test_dimensions_follow_model(factory, talos_model):
    model, _ = talos_model
    assert factory.nx == model.nq + model.nv
    assert factory.ndx == 2 * model.nv
    assert factory.nu == model.nv - 6
    assert len(factory.default_poses) == 2


def test_factory_rejects_bad_settings(talos_model):
    model, x0 = talos_model
    with pytest.raises(UnknownEndEffector):
        FullDynamicsStageFactory(model, ["no_such_frame"], FullDynamicsSettings(x0=x0))
    with pytest.raises(SettingsMismatch):
        FullDynamicsStageFactory(model, FEET, FullDynamicsSettings(x0=x0[:-1]))
    with pytest.raises(SettingsMismatch):
        FullDynamicsStageFactory(model, FEET, FullDynamicsSettings(x0=x0, w_x=np.ones(3)))


def _poses(factory):
    return {name: pose for name, pose in zip(FEET, factory.default_poses)}


def test_stage_handles_follow_contact_state(factory):
    scheduler_poses = _poses(factory)
    schedule = GaitScheduler(FEET, force_size=6).make_schedule(scheduler_poses, ["right_sole_link"])
    stage = factory.create_stage(schedule)

    assert stage.contact_states == (True, False)
    assert set(stage.contact_handles) == {0}
    assert set(stage.force_handles) == {0}
    assert set(stage.placement_handles) == {1}
    assert stage.model.dt == pytest.approx(0.01)

    lifted = scheduler_poses["right_sole_link"].copy()
    lifted.translation = lifted.translation + np.array([0.0, 0.0, 0.05])
    stage.set_reference_pose(1, lifted)
    assert stage.placement_handles[1].reference.isApprox(lifted)

    stage.set_reference_force(0, np.array([0.0, 0.0, 400.0, 0.0, 0.0, 0.0]))
    np.testing.assert_allclose(stage.force_handles[0].reference.linear, [0.0, 0.0, 400.0])


def test_terminal_stage_has_zero_timestep(factory):
    terminal = factory.create_terminal_stage()
    assert terminal.model.dt == 0.0
    assert terminal.num_active_contacts == 2


def test_mpc_ticks_with_fddp(factory):
    mpc = MPC()
    mpc.initialize(MPCSettings(T=5, max_iters=2, T_contact=2, T_fly=3), factory, FDDPOptimizer())
    mpc.generate_walking_horizon(_poses(factory), "walk")
    mpc.update_swing_references()

    x0 = factory.x0
    nq = factory.rmodel.nq
    first = mpc.iterate(x0[:nq], x0[nq:])
    problem = mpc.optimizer.problem
    second = mpc.iterate(x0[:nq], x0[nq:])

    assert mpc.optimizer.problem is problem
    assert mpc.horizon_iteration == 2
    assert first.predicted_states.shape == (6, factory.nx)
    assert second.control.shape == (factory.nu,)
    assert mpc.K0.shape == (factory.nu, factory.ndx)
    assert np.all(np.isfinite(mpc.xs))
