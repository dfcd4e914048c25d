# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Shared fixtures: a model-free stage factory and a scripted optimizer.

The horizon and MPC loop only need stages carrying contact states and
references, so these fixtures run without Crocoddyl.
"""

from typing import Dict, List, Sequence

import numpy as np
import pinocchio
import pytest

from whole_body_mpc.controllers.optimizer import OptimizerResult, TrajectoryOptimizer
from whole_body_mpc.gait.contact_schedule import ContactSchedule, normal_force
from whole_body_mpc.gait.stage import Stage, StageFactory

BIPED_FEET = ("left", "right")
QUADRUPED_FEET = ("FL", "FR", "HL", "HR")


class PlainStageFactory(StageFactory):
    """Stage factory without action models, for bookkeeping tests."""

    def __init__(self, ee_names: Sequence[str], force_size: int = 6, nq: int = 3, nv: int = 2, nu: int = 2):
        super().__init__(ee_names, force_size)
        self._nq = nq
        self._nv = nv
        self._nu = nu
        self.created = 0
        self.created_terminal = 0

    @property
    def nx(self) -> int:
        return self._nq + self._nv

    @property
    def ndx(self) -> int:
        return 2 * self._nv

    @property
    def nu(self) -> int:
        return self._nu

    @property
    def x0(self) -> np.ndarray:
        return np.arange(self.nx, dtype=float)

    def create_stage(self, schedule: ContactSchedule) -> Stage:
        self.validate_schedule(schedule)
        states, poses, forces = self.unpack_schedule(schedule)
        self.created += 1
        return Stage(object(), None, states, poses, forces)

    def create_terminal_stage(self) -> Stage:
        self.created_terminal += 1
        poses = [pinocchio.SE3.Identity() for _ in self.ee_names]
        forces = np.zeros((len(self.ee_names), self.force_size))
        return Stage(object(), None, [True] * len(self.ee_names), poses, forces)


class ScriptedOptimizer(TrajectoryOptimizer):
    """Optimizer returning row-indexed trajectories and recording its inputs."""

    def __init__(self, ndx: int = 4, converged: bool = True):
        self.ndx = ndx
        self.converged = converged
        self.calls: List[Dict] = []

    def solve(self, x0, stages, terminal, xs, us, max_iterations, num_threads=1):
        self.calls.append(
            {
                "x0": np.array(x0),
                "xs": np.array(xs),
                "us": np.array(us),
                "num_stages": len(stages),
                "max_iterations": max_iterations,
                "num_threads": num_threads,
            }
        )
        n = len(self.calls)
        xs_out = np.array(xs, dtype=float)
        xs_out[1:] = np.arange(1, xs_out.shape[0])[:, None] + 1000.0 * n
        us_out = np.full(np.shape(us), float(n))
        K0 = np.full((np.shape(us)[1], self.ndx), float(n))
        return OptimizerResult(
            xs=xs_out,
            us=us_out,
            K0=K0,
            converged=self.converged,
            iterations=max_iterations,
            cost=float(n),
        )


def make_schedule(contacts: Dict[str, bool], force_size: int = 6, fz: float = 100.0) -> ContactSchedule:
    """Schedule with identity poses and a normal force on every foot in contact."""
    return ContactSchedule.build(
        contacts,
        {name: pinocchio.SE3.Identity() for name in contacts},
        {name: normal_force(force_size, fz if in_contact else 0.0) for name, in_contact in contacts.items()},
    )


def biped_sequence(length: int, swing_right: Sequence[range], force_size: int = 6) -> List[ContactSchedule]:
    """Biped schedules where the right foot swings on the given step ranges."""
    swinging = set()
    for steps in swing_right:
        swinging.update(steps)
    return [
        make_schedule({"left": True, "right": k not in swinging}, force_size)
        for k in range(length)
    ]


@pytest.fixture
def biped_factory():
    return PlainStageFactory(BIPED_FEET, force_size=6)


@pytest.fixture
def quadruped_factory():
    return PlainStageFactory(QUADRUPED_FEET, force_size=3)


@pytest.fixture
def scripted_optimizer():
    return ScriptedOptimizer()
