# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Crocoddyl stage builder for full-dynamics whole-body locomotion.

This module builds one Crocoddyl action model per ContactSchedule. Every
model integrates contact forward dynamics with an explicit Euler step and
carries the following costs:
    - stateReg: weighted state regularization around x0
    - ctrlReg: control regularization around u0
    - centroidalReg: centroidal momentum regularization (if w_cent > 0)
    - <ee>_pose: placement tracking for every swinging end effector
    - <ee>_force: contact force tracking for every end effector in contact
    - <ee>_cone: friction cone (3D) or wrench cone (6D) barrier

Reference Crocoddyl API classes used:
    - crocoddyl.StateMultibody(pinocchio_model)
    - crocoddyl.ActuationModelFloatingBase(state)
    - crocoddyl.ContactModelMultiple / ContactModel3D / ContactModel6D
    - crocoddyl.CostModelSum / CostModelResidual
    - crocoddyl.ResidualModelState / ResidualModelControl
    - crocoddyl.ResidualModelCentroidalMomentum
    - crocoddyl.ResidualModelFramePlacement
    - crocoddyl.ResidualModelContactForce
    - crocoddyl.ResidualModelContactFrictionCone / ResidualModelContactWrenchCone
    - crocoddyl.ActivationModelWeightedQuad / ActivationModelQuadraticBarrier
    - crocoddyl.DifferentialActionModelContactFwdDynamics
    - crocoddyl.IntegratedActionModelEuler
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import numpy as np
import pinocchio

from ..exceptions import SettingsMismatch, UnknownEndEffector
from .contact_schedule import ContactSchedule
from .stage import Stage, StageFactory

# Try to import Crocoddyl
try:
    import crocoddyl

    CROCODDYL_AVAILABLE = True
except ImportError:
    CROCODDYL_AVAILABLE = False
    crocoddyl = None


@dataclass
class FullDynamicsSettings:
    """Settings of the full-dynamics stage builder.

    Attributes:
        x0: Reference state, shape (nq + nv,). Also used to initialize
            trajectories and to place the terminal foot references.
        u0: Reference control, shape (nv - 6,). Zero if None.
        DT: Integration time step in seconds.
        force_size: 3 for point contacts, 6 for flat-foot wrench contacts.
        mu: Friction coefficient.
        Lfoot: Half length of the foot sole (wrench cone only).
        Wfoot: Half width of the foot sole (wrench cone only).
        w_x: State regularization weights, shape (2 * nv,).
        w_u: Control regularization weight.
        w_frame: Swing foot placement tracking weight.
        w_forces: Contact force tracking weight.
        w_cone: Friction or wrench cone barrier weight.
        w_cent: Centroidal momentum regularization weight, disabled if 0.
        gravity: Gravity vector, shape (3,).
    """

    x0: np.ndarray
    u0: Optional[np.ndarray] = None
    DT: float = 0.01
    force_size: int = 6
    mu: float = 0.8
    Lfoot: float = 0.1
    Wfoot: float = 0.075
    w_x: Optional[np.ndarray] = None
    w_u: float = 1e-4
    w_frame: float = 2000.0
    w_forces: float = 1e-4
    w_cone: float = 1e-3
    w_cent: float = 0.0
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, -9.81]))


class CrocoddylStage(Stage):
    """Stage whose references live inside Crocoddyl residual and contact models.

    Attributes:
        contact_handles: End-effector index to its contact model.
        placement_handles: End-effector index to its placement residual.
        force_handles: End-effector index to its contact force residual.
    """

    def __init__(self, model, data, contact_states, poses, forces, force_size: int):
        super().__init__(model, data, contact_states, poses, forces)
        self.force_size = force_size
        self.contact_handles: Dict[int, object] = {}
        self.placement_handles: Dict[int, object] = {}
        self.force_handles: Dict[int, object] = {}

    def _apply_pose(self, ee_index: int, pose: pinocchio.SE3):
        if ee_index in self.placement_handles:
            self.placement_handles[ee_index].reference = pose
        if ee_index in self.contact_handles:
            contact = self.contact_handles[ee_index]
            if self.force_size == 6:
                contact.reference = pose
            else:
                contact.reference = pose.translation

    def _apply_force(self, ee_index: int, force: np.ndarray):
        if ee_index in self.force_handles:
            self.force_handles[ee_index].reference = _as_pinocchio_force(force)


def _as_pinocchio_force(force: np.ndarray) -> "pinocchio.Force":
    wrench = np.zeros(6)
    wrench[: force.shape[0]] = force
    return pinocchio.Force(wrench)


class FullDynamicsStageFactory(StageFactory):
    """Build Crocoddyl full-dynamics stages for a floating-base robot.

    Attributes:
        rmodel: Pinocchio robot model.
        state: Crocoddyl StateMultibody.
        actuation: Crocoddyl ActuationModelFloatingBase.
        frame_ids: End-effector index to Pinocchio frame ID.
    """

    def __init__(
        self,
        rmodel: "pinocchio.Model",
        ee_names: Sequence[str],
        settings: FullDynamicsSettings,
    ):
        """Initialize factory with robot model and settings.

        Args:
            rmodel: Pinocchio robot model with a free-flyer root joint.
            ee_names: Frame names of the end effectors.
            settings: FullDynamicsSettings.

        Raises:
            ImportError: If Crocoddyl is not installed.
            UnknownEndEffector: If a frame name does not exist in the model.
            SettingsMismatch: If x0, u0 or w_x have the wrong size.
        """
        if not CROCODDYL_AVAILABLE:
            raise ImportError(
                "Crocoddyl is not available. Please install crocoddyl to use FullDynamicsStageFactory."
            )
        super().__init__(ee_names, settings.force_size)

        self.rmodel = rmodel.copy()
        self.rmodel.gravity = pinocchio.Motion(np.asarray(settings.gravity, dtype=float), np.zeros(3))
        self.rdata = self.rmodel.createData()
        self.settings = settings

        self.frame_ids = []
        for name in self.ee_names:
            if not self.rmodel.existFrame(name):
                raise UnknownEndEffector(f"Frame '{name}' does not exist in model '{self.rmodel.name}'")
            self.frame_ids.append(self.rmodel.getFrameId(name))

        # Create Crocoddyl state and actuation models
        self.state = crocoddyl.StateMultibody(self.rmodel)
        self.actuation = crocoddyl.ActuationModelFloatingBase(self.state)

        self._x0 = np.asarray(settings.x0, dtype=float).copy()
        if self._x0.shape != (self.state.nx,):
            raise SettingsMismatch(f"x0 has shape {self._x0.shape}, expected ({self.state.nx},)")
        if settings.u0 is None:
            self._u0 = np.zeros(self.actuation.nu)
        else:
            self._u0 = np.asarray(settings.u0, dtype=float).copy()
        if self._u0.shape != (self.actuation.nu,):
            raise SettingsMismatch(f"u0 has shape {self._u0.shape}, expected ({self.actuation.nu},)")
        if settings.w_x is None:
            self.state_weights = self._default_state_weights()
        else:
            self.state_weights = np.asarray(settings.w_x, dtype=float)
        if self.state_weights.shape != (self.state.ndx,):
            raise SettingsMismatch(
                f"w_x has shape {self.state_weights.shape}, expected ({self.state.ndx},)"
            )

        # Foot placements at x0, used by the terminal stage
        q0 = self._x0[: self.rmodel.nq]
        pinocchio.framesForwardKinematics(self.rmodel, self.rdata, q0)
        self.default_poses = [self.rdata.oMf[fid].copy() for fid in self.frame_ids]

    def _default_state_weights(self) -> np.ndarray:
        """State regularization weights.

        - Base position (x,y,z): 0.0 (free)
        - Base orientation: 500.0 (keep upright)
        - Joint positions: 0.01
        - Base velocity: 10.0
        - Joint velocities: 1.0
        """
        nv = self.state.nv
        return np.array(
            [0.0] * 3 + [500.0] * 3 + [0.01] * (nv - 6)
            + [10.0] * 6 + [1.0] * (nv - 6)
        )

    @property
    def nx(self) -> int:
        return self.state.nx

    @property
    def ndx(self) -> int:
        return self.state.ndx

    @property
    def nu(self) -> int:
        return self.actuation.nu

    @property
    def x0(self) -> np.ndarray:
        return self._x0.copy()

    @property
    def u0(self) -> np.ndarray:
        return self._u0.copy()

    def _contact_model(self, frame_id: int, pose: pinocchio.SE3):
        if self.force_size == 6:
            return crocoddyl.ContactModel6D(
                self.state,
                frame_id,
                pose,
                pinocchio.LOCAL,
                self.nu,
                np.array([0.0, 0.0]),  # gains
            )
        return crocoddyl.ContactModel3D(
            self.state,
            frame_id,
            pose.translation,
            pinocchio.LOCAL_WORLD_ALIGNED,
            self.nu,
            np.array([0.0, 0.0]),
        )

    def _cone_cost(self, frame_id: int):
        # np.eye(3): cone normal aligned with world z-axis
        if self.force_size == 6:
            cone = crocoddyl.WrenchCone(
                np.eye(3),
                self.settings.mu,
                np.array([self.settings.Lfoot, self.settings.Wfoot]),
                4,
                False,
            )
            residual = crocoddyl.ResidualModelContactWrenchCone(self.state, frame_id, cone, self.nu)
        else:
            cone = crocoddyl.FrictionCone(np.eye(3), self.settings.mu, 4, False)
            residual = crocoddyl.ResidualModelContactFrictionCone(self.state, frame_id, cone, self.nu)
        activation = crocoddyl.ActivationModelQuadraticBarrier(
            crocoddyl.ActivationBounds(cone.lb, cone.ub)
        )
        return crocoddyl.CostModelResidual(self.state, activation, residual)

    def _regularization_costs(self, cost_model):
        state_activation = crocoddyl.ActivationModelWeightedQuad(self.state_weights)
        state_residual = crocoddyl.ResidualModelState(self.state, self._x0, self.nu)
        cost_model.addCost(
            "stateReg",
            crocoddyl.CostModelResidual(self.state, state_activation, state_residual),
            1.0,
        )
        ctrl_residual = crocoddyl.ResidualModelControl(self.state, self._u0)
        cost_model.addCost(
            "ctrlReg", crocoddyl.CostModelResidual(self.state, ctrl_residual), self.settings.w_u
        )
        if self.settings.w_cent > 0:
            cent_residual = crocoddyl.ResidualModelCentroidalMomentum(self.state, np.zeros(6), self.nu)
            cost_model.addCost(
                "centroidalReg",
                crocoddyl.CostModelResidual(self.state, cent_residual),
                self.settings.w_cent,
            )

    def _integrate(self, contact_model, cost_model, dt: float):
        dmodel = crocoddyl.DifferentialActionModelContactFwdDynamics(
            self.state, self.actuation, contact_model, cost_model, 0.0, True
        )
        return crocoddyl.IntegratedActionModelEuler(dmodel, dt)

    def create_stage(self, schedule: ContactSchedule) -> CrocoddylStage:
        """Build the stage realizing one contact schedule.

        Args:
            schedule: ContactSchedule covering every end effector.

        Returns:
            CrocoddylStage with handles on its pose and force references.
        """
        self.validate_schedule(schedule)
        states, poses, forces = self.unpack_schedule(schedule)

        contact_model = crocoddyl.ContactModelMultiple(self.state, self.nu)
        cost_model = crocoddyl.CostModelSum(self.state, self.nu)
        self._regularization_costs(cost_model)

        contacts, placements, force_residuals = {}, {}, {}
        for i, name in enumerate(self.ee_names):
            frame_id = self.frame_ids[i]
            if states[i]:
                contact = self._contact_model(frame_id, poses[i])
                contact_model.addContact(f"{name}_contact", contact)
                contacts[i] = contact

                force_residual = crocoddyl.ResidualModelContactForce(
                    self.state, frame_id, _as_pinocchio_force(forces[i]), self.force_size, self.nu
                )
                cost_model.addCost(
                    f"{name}_force",
                    crocoddyl.CostModelResidual(self.state, force_residual),
                    self.settings.w_forces,
                )
                force_residuals[i] = force_residual
                cost_model.addCost(f"{name}_cone", self._cone_cost(frame_id), self.settings.w_cone)
            else:
                placement = crocoddyl.ResidualModelFramePlacement(self.state, frame_id, poses[i], self.nu)
                cost_model.addCost(
                    f"{name}_pose",
                    crocoddyl.CostModelResidual(self.state, placement),
                    self.settings.w_frame,
                )
                placements[i] = placement

        model = self._integrate(contact_model, cost_model, self.settings.DT)
        stage = CrocoddylStage(model, model.createData(), states, poses, forces, self.force_size)
        stage.contact_handles = contacts
        stage.placement_handles = placements
        stage.force_handles = force_residuals
        return stage

    def create_terminal_stage(self) -> CrocoddylStage:
        """Build the terminal stage: all feet in contact, state and placement costs."""
        contact_model = crocoddyl.ContactModelMultiple(self.state, self.nu)
        cost_model = crocoddyl.CostModelSum(self.state, self.nu)

        state_activation = crocoddyl.ActivationModelWeightedQuad(self.state_weights)
        state_residual = crocoddyl.ResidualModelState(self.state, self._x0, self.nu)
        cost_model.addCost(
            "stateReg",
            crocoddyl.CostModelResidual(self.state, state_activation, state_residual),
            1.0,
        )

        contacts, placements = {}, {}
        for i, name in enumerate(self.ee_names):
            frame_id = self.frame_ids[i]
            contact = self._contact_model(frame_id, self.default_poses[i])
            contact_model.addContact(f"{name}_contact", contact)
            contacts[i] = contact

            placement = crocoddyl.ResidualModelFramePlacement(
                self.state, frame_id, self.default_poses[i], self.nu
            )
            cost_model.addCost(
                f"{name}_pose",
                crocoddyl.CostModelResidual(self.state, placement),
                self.settings.w_frame,
            )
            placements[i] = placement

        # Zero timestep for terminal
        model = self._integrate(contact_model, cost_model, 0.0)
        forces = np.zeros((len(self.ee_names), self.force_size))
        stage = CrocoddylStage(
            model, model.createData(), [True] * len(self.ee_names), self.default_poses, forces, self.force_size
        )
        stage.contact_handles = contacts
        stage.placement_handles = placements
        return stage
