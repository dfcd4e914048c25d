# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Rigid-body dynamics evaluation for the low-level allocators.

RobotHandler wraps a Pinocchio model and its data. Foot frame names are
resolved to frame IDs once; every tick, update_state() refreshes the mass
matrix, bias forces, frame placements, Jacobians and their time variation,
and the centroidal momentum matrix with its time variation.
"""

from typing import Dict, Optional, Sequence

import numpy as np
import pinocchio

from .exceptions import SettingsMismatch, UnknownEndEffector
from .utils.math_utils import symmetrize_upper


class RobotHandler:
    """Pinocchio model, data and foot frames of a floating-base robot.

    Attributes:
        model: Pinocchio robot model.
        data: Pinocchio data refreshed by update_state().
        foot_names: End-effector frame names.
        foot_ids: Frame ID of every foot, in foot_names order.
        x0: Reference state (q0, zero velocity).
        M: Symmetric mass matrix of the last update_state() call.
    """

    def __init__(
        self,
        model: "pinocchio.Model",
        foot_names: Sequence[str],
        q0: Optional[np.ndarray] = None,
    ):
        """Initialize handler.

        Args:
            model: Pinocchio model with a free-flyer root joint.
            foot_names: Frame names of the feet.
            q0: Reference configuration. Neutral configuration if None.

        Raises:
            UnknownEndEffector: If a foot frame does not exist.
            SettingsMismatch: If q0 has the wrong size.
        """
        self.model = model
        self.data = model.createData()
        self.foot_names = list(foot_names)
        self.foot_ids = []
        for name in self.foot_names:
            if not model.existFrame(name):
                raise UnknownEndEffector(f"Frame '{name}' does not exist in model '{model.name}'")
            self.foot_ids.append(model.getFrameId(name))
        self.ee_index: Dict[str, int] = {name: i for i, name in enumerate(self.foot_names)}

        q0 = pinocchio.neutral(model) if q0 is None else np.asarray(q0, dtype=float)
        if q0.shape != (model.nq,):
            raise SettingsMismatch(f"q0 has shape {q0.shape}, expected ({model.nq},)")
        self.x0 = np.concatenate([q0, np.zeros(model.nv)])

        self.q = q0.copy()
        self.v = np.zeros(model.nv)
        self.M = np.zeros((model.nv, model.nv))
        self.update_state(self.q, self.v)

    @property
    def nq(self) -> int:
        return self.model.nq

    @property
    def nv(self) -> int:
        return self.model.nv

    @property
    def nu(self) -> int:
        return self.model.nv - 6

    @property
    def nle(self) -> np.ndarray:
        return self.data.nle

    def update_state(self, q: np.ndarray, v: np.ndarray):
        """Evaluate dynamics quantities at (q, v)."""
        self.q[:] = q
        self.v[:] = v
        pinocchio.computeAllTerms(self.model, self.data, self.q, self.v)
        pinocchio.computeJointJacobiansTimeVariation(self.model, self.data, self.q, self.v)
        pinocchio.computeCentroidalMapTimeVariation(self.model, self.data, self.q, self.v)
        pinocchio.updateFramePlacements(self.model, self.data)
        # crba only fills the upper triangle
        self.M[:] = self.data.M
        symmetrize_upper(self.M)

    def foot_index(self, name: str) -> int:
        try:
            return self.ee_index[name]
        except KeyError:
            raise UnknownEndEffector(f"Unknown foot '{name}'. Known: {self.foot_names}") from None

    def foot_pose(self, name: str) -> "pinocchio.SE3":
        return self.data.oMf[self.foot_ids[self.foot_index(name)]].copy()

    def foot_poses(self) -> Dict[str, "pinocchio.SE3"]:
        return {name: self.data.oMf[fid].copy() for name, fid in zip(self.foot_names, self.foot_ids)}

    def frame_id(self, name: str) -> int:
        if not self.model.existFrame(name):
            raise UnknownEndEffector(f"Frame '{name}' does not exist in model '{self.model.name}'")
        return self.model.getFrameId(name)

    def contact_jacobian(self, contact_states: Sequence[bool], force_size: int) -> np.ndarray:
        """Stacked world-aligned Jacobians of the active feet, (nk * force_size, nv).

        Inactive feet contribute zero rows.
        """
        Jc = np.zeros((len(self.foot_ids) * force_size, self.nv))
        for i, fid in enumerate(self.foot_ids):
            if contact_states[i]:
                J = pinocchio.getFrameJacobian(self.model, self.data, fid, pinocchio.LOCAL_WORLD_ALIGNED)
                Jc[i * force_size:(i + 1) * force_size] = J[:force_size]
        return Jc
