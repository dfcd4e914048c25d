# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Per-tick QP allocators turning reference motions into consistent torques.

Both allocators solve a dense QP over the decision vector
    x = [acceleration (nv), force correction (nk * fs), torque (nv - 6)]
subject to floating-base dynamics consistency, zero acceleration of the
active contacts and a linearized friction (fs = 3) or wrench (fs = 6) cone.

- IDSolver: x[:nv] is an acceleration correction around a reference
  acceleration; cost w_acc |da|^2 + w_force |df|^2.
- IKIDSolver: x[:nv] is the absolute acceleration; the cost folds posture,
  centroidal momentum, foot placement and fixed-frame orientation tracking
  into weighted least squares, and torques are bounded by the effort limits.

The QP dimensions and sparsity pattern are fixed at initialize(); every
solve only refreshes values in place.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pinocchio

from ..exceptions import SettingsMismatch
from ..utils.math_utils import orientation_error, placement_error
from .qp import DenseQP, QPResult

logger = logging.getLogger(__name__)

CONE_ROWS = 9


def friction_cone_block(force_size: int, mu: float, Lfoot: float = 0.0, Wfoot: float = 0.0) -> np.ndarray:
    """Linearized cone coefficients of one contact, shape (9, force_size).

    A force f is feasible iff ``block @ f >= 0``.

    fs = 3, pyramid on (fx, fy, fz):
        mu fz -/+ fx >= 0, mu fz -/+ fy >= 0, then fz >= 0 on the 5 last rows.
    fs = 6, wrench on (fx, fy, fz, mx, my, mz):
        the same 4 friction rows, fz >= 0,
        W fz -/+ mx >= 0, L fz -/+ my >= 0.
    """
    if force_size == 3:
        return np.array([
            [-1.0, 0.0, mu],
            [1.0, 0.0, mu],
            [0.0, -1.0, mu],
            [0.0, 1.0, mu],
            [0.0, 0.0, 1.0],
            [0.0, 0.0, 1.0],
            [0.0, 0.0, 1.0],
            [0.0, 0.0, 1.0],
            [0.0, 0.0, 1.0],
        ])
    if force_size == 6:
        return np.array([
            [-1.0, 0.0, mu, 0.0, 0.0, 0.0],
            [1.0, 0.0, mu, 0.0, 0.0, 0.0],
            [0.0, -1.0, mu, 0.0, 0.0, 0.0],
            [0.0, 1.0, mu, 0.0, 0.0, 0.0],
            [0.0, 0.0, 1.0, 0.0, 0.0, 0.0],
            [0.0, 0.0, Wfoot, -1.0, 0.0, 0.0],
            [0.0, 0.0, Wfoot, 1.0, 0.0, 0.0],
            [0.0, 0.0, Lfoot, 0.0, -1.0, 0.0],
            [0.0, 0.0, Lfoot, 0.0, 1.0, 0.0],
        ])
    raise SettingsMismatch(f"force_size must be 3 or 6, got {force_size}")


def friction_cone_lower_bound(block: np.ndarray, force: np.ndarray) -> np.ndarray:
    """Lower bound on ``block @ df`` so that ``force + df`` stays in the cone."""
    return -block @ force


@dataclass
class IDSettings:
    """Settings of the inverse-dynamics allocator.

    Attributes:
        contact_ids: Pinocchio frame IDs of the contacts.
        force_size: 3 for point contacts, 6 for wrench contacts.
        mu: Friction coefficient.
        Lfoot: Half length of the foot sole.
        Wfoot: Half width of the foot sole.
        kd: Constraint stabilization gain on the contact velocity.
        w_acc: Weight of the acceleration correction.
        w_force: Weight of the force correction.
        max_iter: QP iteration budget per solve.
        eps_abs: QP absolute tolerance.
        verbose: Print QP solver output.
    """

    contact_ids: List[int] = field(default_factory=list)
    force_size: int = 6
    mu: float = 0.8
    Lfoot: float = 0.1
    Wfoot: float = 0.075
    kd: float = 0.0
    w_acc: float = 1.0
    w_force: float = 1.0
    max_iter: int = 50
    eps_abs: float = 1e-3
    verbose: bool = False


@dataclass
class IKIDSettings:
    """Settings of the inverse-kinematics inverse-dynamics allocator.

    Attributes:
        x0: Posture reference state, shape (nq + nv,).
        dt: Time step of the foot reference sequence.
        contact_ids: Pinocchio frame IDs of the contacts.
        fixed_frame_ids: Frame IDs whose orientation is kept level.
        Kp_gains: Proportional gains [posture (nv,), foot (6,), frame (3,)].
        Kd_gains: Derivative gains, same layout as Kp_gains.
        force_size: 3 for point contacts, 6 for wrench contacts.
        mu: Friction coefficient.
        Lfoot: Half length of the foot sole.
        Wfoot: Half width of the foot sole.
        w_qref: Posture tracking weight.
        w_footpose: Foot placement tracking weight.
        w_centroidal: Centroidal momentum rate tracking weight.
        w_baserot: Fixed-frame orientation tracking weight.
        w_force: Force correction weight.
        max_iter: QP iteration budget per solve.
        eps_abs: QP absolute tolerance.
        verbose: Print QP solver output.
    """

    x0: np.ndarray
    dt: float = 0.01
    contact_ids: List[int] = field(default_factory=list)
    fixed_frame_ids: List[int] = field(default_factory=list)
    Kp_gains: List[np.ndarray] = field(default_factory=list)
    Kd_gains: List[np.ndarray] = field(default_factory=list)
    force_size: int = 6
    mu: float = 0.8
    Lfoot: float = 0.1
    Wfoot: float = 0.075
    w_qref: float = 500.0
    w_footpose: float = 50000.0
    w_centroidal: float = 10.0
    w_baserot: float = 1000.0
    w_force: float = 100.0
    max_iter: int = 200
    eps_abs: float = 1e-3
    verbose: bool = False


class _ContactAllocator:
    """QP layout shared by IDSolver and IKIDSolver.

    Attributes:
        nv: Velocity dimension of the model.
        nk: Number of contacts.
        fs: Per-contact force dimension.
        nf: Total force dimension nk * fs.
        n: Decision vector dimension 2 nv - 6 + nf.
        solved_acc: Joint acceleration of the last solve, shape (nv,).
        solved_forces: Contact forces of the last solve, shape (nf,).
        solved_torque: Actuated joint torques of the last solve, shape (nv - 6,).
        result: QPResult of the last solve.
    """

    def __init__(self):
        self.model = None
        self.qp: Optional[DenseQP] = None
        self.result: Optional[QPResult] = None

    def _allocate(self, model, contact_ids: Sequence[int], force_size: int, mu: float, Lfoot: float, Wfoot: float):
        if force_size not in (3, 6):
            raise SettingsMismatch(f"force_size must be 3 or 6, got {force_size}")
        for fid in contact_ids:
            if not 0 <= fid < model.nframes:
                raise SettingsMismatch(f"Contact frame id {fid} outside [0, {model.nframes})")

        self.model = model
        self.contact_ids = list(contact_ids)
        self.nv = model.nv
        self.nk = len(self.contact_ids)
        self.fs = force_size
        self.nf = self.nk * self.fs
        self.n = 2 * self.nv - 6 + self.nf
        self.n_eq = self.nv + self.nf
        self.n_in = CONE_ROWS * self.nk

        self.cone = friction_cone_block(force_size, mu, Lfoot, Wfoot)
        self.S = np.zeros((self.nv, self.nv - 6))
        self.S[6:] = np.eye(self.nv - 6)

        self.H = np.zeros((self.n, self.n))
        self.g = np.zeros(self.n)
        self.A = np.zeros((self.n_eq, self.n))
        self.b = np.zeros(self.n_eq)
        self.C = np.zeros((self.n_in, self.n))
        self.l = np.zeros(self.n_in)
        self.u = np.full(self.n_in, np.inf)
        self.Jc = np.zeros((self.nf, self.nv))
        self.x_init = np.zeros(self.n)
        self.gamma = np.zeros(self.nf)
        self.H_acc = np.zeros((self.nv, self.nv))
        self.g_acc = np.zeros(self.nv)

        self.solved_acc = np.zeros(self.nv)
        self.solved_forces = np.zeros(self.nf)
        self.solved_torque = np.zeros(self.nv - 6)

    def _equality_pattern(self) -> np.ndarray:
        nv, nf = self.nv, self.nf
        pattern = np.zeros((self.n_eq, self.n), dtype=bool)
        pattern[:nv, :nv] = True
        pattern[:nv, nv:nv + nf] = True
        pattern[6:nv, nv + nf:] = np.eye(nv - 6, dtype=bool)
        pattern[nv:, :nv] = True
        return pattern

    def _inequality_pattern(self) -> np.ndarray:
        pattern = np.zeros((self.n_in, self.n), dtype=bool)
        for i in range(self.nk):
            pattern[
                i * CONE_ROWS:(i + 1) * CONE_ROWS,
                self.nv + i * self.fs:self.nv + (i + 1) * self.fs,
            ] = True
        return pattern

    def _check_inputs(self, contact_states: Sequence[bool], forces: np.ndarray):
        if len(contact_states) != self.nk:
            raise SettingsMismatch(f"Got {len(contact_states)} contact states, expected {self.nk}")
        if np.shape(forces) != (self.nf,):
            raise SettingsMismatch(f"Forces have shape {np.shape(forces)}, expected ({self.nf},)")

    def _contact_rows(self, i: int) -> slice:
        return slice(i * self.fs, (i + 1) * self.fs)

    def _set_cone(self, i: int, force: np.ndarray):
        rows = slice(i * CONE_ROWS, (i + 1) * CONE_ROWS)
        self.C[rows, self.nv + i * self.fs:self.nv + (i + 1) * self.fs] = self.cone
        self.l[rows] = friction_cone_lower_bound(self.cone, force)

    def _run_qp(self) -> QPResult:
        self.qp.warm_start(self.x_init)
        self.result = self.qp.solve()
        if not self.result.converged:
            logger.debug(
                f"{type(self).__name__} QP status '{self.result.status}' "
                f"after {self.result.iterations} iterations"
            )
        return self.result

    @property
    def status(self) -> Optional[str]:
        return None if self.result is None else self.result.status


class IDSolver(_ContactAllocator):
    """Inverse-dynamics allocator correcting reference accelerations and forces.

    Equality rows:
        M da - Jc^T df - S tau = -nle - M a + Jc^T f
        Jc da                  = -gamma - Jc a
    with gamma = dJc v + kd * (contact velocity).

    Inequality rows, 9 per contact: C df >= -C f.
    """

    def __init__(self, settings: Optional[IDSettings] = None, model=None):
        super().__init__()
        self.settings: Optional[IDSettings] = None
        if settings is not None and model is not None:
            self.initialize(settings, model)

    def initialize(self, settings: IDSettings, model: "pinocchio.Model"):
        """Size the QP from the contact count, force size and nv.

        Raises:
            SettingsMismatch: If the force size or a contact id is invalid.
        """
        self._allocate(model, settings.contact_ids, settings.force_size, settings.mu, settings.Lfoot, settings.Wfoot)
        self.settings = settings

        nv, nf = self.nv, self.nf
        self.H[:nv, :nv] = settings.w_acc * np.eye(nv)
        self.H[nv:nv + nf, nv:nv + nf] = settings.w_force * np.eye(nf)
        for i in range(self.nk):
            self._set_cone(i, np.zeros(self.fs))
        self.A[:nv, nv + nf:] = -self.S

        hessian_pattern = np.zeros((self.n, self.n), dtype=bool)
        hessian_pattern[:nv + nf, :nv + nf] = np.eye(nv + nf, dtype=bool)
        self.qp = DenseQP(
            self.n,
            self.n_eq,
            self.n_in,
            box=False,
            hessian_pattern=hessian_pattern,
            eq_pattern=self._equality_pattern(),
            in_pattern=self._inequality_pattern(),
            eps_abs=settings.eps_abs,
            eps_rel=0.0,
            max_iter=settings.max_iter,
            verbose=settings.verbose,
        )
        self.qp.init(self.H, self.g, self.A, self.b, self.C, self.l, self.u)
        logger.info(f"IDSolver initialized | n={self.n} | n_eq={self.n_eq} | n_in={self.n_in}")

    def compute_matrice(
        self,
        data: "pinocchio.Data",
        contact_states: Sequence[bool],
        v: np.ndarray,
        a: np.ndarray,
        forces: np.ndarray,
        M: np.ndarray,
    ):
        """Refresh equality and cone rows for the active contacts.

        Args:
            data: Pinocchio data after RobotHandler.update_state().
            contact_states: Contact flag per contact.
            v: Joint velocity, shape (nv,).
            a: Reference acceleration, shape (nv,).
            forces: Reference contact forces, shape (nk * fs,).
            M: Symmetric mass matrix, shape (nv, nv).
        """
        self._check_inputs(contact_states, forces)
        nv, nf, fs = self.nv, self.nf, self.fs
        kd = self.settings.kd
        gamma = self.gamma
        gamma[:] = 0.0

        self.Jc[:] = 0.0
        self.C[:] = 0.0
        self.l[:] = 0.0
        for i, fid in enumerate(self.contact_ids):
            if not contact_states[i]:
                continue
            rows = self._contact_rows(i)
            J = pinocchio.getFrameJacobian(self.model, data, fid, pinocchio.LOCAL_WORLD_ALIGNED)
            dJ = pinocchio.getFrameJacobianTimeVariation(self.model, data, fid, pinocchio.LOCAL_WORLD_ALIGNED)
            velocity = pinocchio.getFrameVelocity(self.model, data, fid, pinocchio.LOCAL_WORLD_ALIGNED)

            self.Jc[rows] = J[:fs]
            gamma[rows] = dJ[:fs] @ v
            gamma[i * fs:i * fs + 3] += kd * velocity.linear
            if fs == 6:
                gamma[i * fs + 3:i * fs + 6] += kd * velocity.angular
            self._set_cone(i, forces[rows])

        self.A[:nv, :nv] = M
        self.A[:nv, nv:nv + nf] = -self.Jc.T
        self.A[nv:, :nv] = self.Jc

        self.b[:nv] = -data.nle - M @ a + self.Jc.T @ forces
        self.b[nv:] = -gamma - self.Jc @ a

        # Zero correction with the torque implied by the references
        self.x_init[:] = 0.0
        self.x_init[nv + nf:] = (M @ a + data.nle - self.Jc.T @ forces)[6:]

    def solve_qp(
        self,
        data: "pinocchio.Data",
        contact_states: Sequence[bool],
        v: np.ndarray,
        a: np.ndarray,
        forces: np.ndarray,
        M: np.ndarray,
    ) -> QPResult:
        """Allocate torques and forces around the references.

        Writes solved_acc = a + da, solved_forces = forces + df and
        solved_torque = tau. Non-convergence is reported in the returned
        QPResult, never raised.
        """
        self.compute_matrice(data, contact_states, v, a, forces, M)
        self.qp.update(H=self.H, g=self.g, A=self.A, b=self.b, C=self.C, l=self.l, u=self.u)
        result = self._run_qp()

        nv, nf = self.nv, self.nf
        self.solved_acc[:] = a + result.x[:nv]
        self.solved_forces[:] = forces + result.x[nv:nv + nf]
        self.solved_torque[:] = result.x[nv + nf:]
        return result


class IKIDSolver(_ContactAllocator):
    """Inverse-kinematics inverse-dynamics allocator.

    Solves for the absolute acceleration a, a force correction df and the
    torques tau. Tracking objectives live in the cost:
        - posture: a = Kp (q0 - q) + Kd (v0 - v)
        - centroidal momentum rate: Ag a + dAg v = dH
        - foot placement: J a + dJ v = Kp e + Kd de for every foot
        - fixed-frame orientation: Jr a + dJr v = Kp e + Kd de
    Torques are bounded by the model effort limits.
    """

    def __init__(self, settings: Optional[IKIDSettings] = None, model=None):
        super().__init__()
        self.settings: Optional[IKIDSettings] = None
        if settings is not None and model is not None:
            self.initialize(settings, model)

    def initialize(self, settings: IKIDSettings, model: "pinocchio.Model"):
        """Size the QP, the tracking error buffers and the torque bounds.

        Raises:
            SettingsMismatch: If x0, the gains, the force size or a frame id
                is inconsistent with the model.
        """
        self._allocate(model, settings.contact_ids, settings.force_size, settings.mu, settings.Lfoot, settings.Wfoot)
        nv = self.nv

        x0 = np.asarray(settings.x0, dtype=float)
        if x0.shape != (model.nq + nv,):
            raise SettingsMismatch(f"x0 has shape {x0.shape}, expected ({model.nq + nv},)")
        expected = [nv, 6, 3]
        for name, gains in (("Kp_gains", settings.Kp_gains), ("Kd_gains", settings.Kd_gains)):
            if len(gains) != 3 or any(np.shape(k) != (size,) for k, size in zip(gains, expected)):
                raise SettingsMismatch(f"{name} must hold arrays of sizes {expected}")
        for fid in settings.fixed_frame_ids:
            if not 0 <= fid < model.nframes:
                raise SettingsMismatch(f"Fixed frame id {fid} outside [0, {model.nframes})")
        self.settings = settings

        self.q_diff = np.zeros(nv)
        self.dq_diff = np.zeros(nv)
        self.foot_diffs = [np.zeros(6) for _ in self.contact_ids]
        self.dfoot_diffs = [np.zeros(6) for _ in self.contact_ids]
        self.frame_diffs = [np.zeros(3) for _ in settings.fixed_frame_ids]
        self.dframe_diffs = [np.zeros(3) for _ in settings.fixed_frame_ids]

        nf = self.nf
        self.H[nv:nv + nf, nv:nv + nf] = settings.w_force * np.eye(nf)
        for i in range(self.nk):
            self._set_cone(i, np.zeros(self.fs))
        self.A[:nv, nv + nf:] = -self.S

        effort = np.asarray(model.effortLimit, dtype=float)[-(nv - 6):]
        self.l_box = np.full(self.n, -np.inf)
        self.u_box = np.full(self.n, np.inf)
        self.l_box[nv + nf:] = -effort
        self.u_box[nv + nf:] = effort

        hessian_pattern = np.zeros((self.n, self.n), dtype=bool)
        hessian_pattern[:nv, :nv] = True
        hessian_pattern[nv:nv + nf, nv:nv + nf] = np.eye(nf, dtype=bool)
        self.qp = DenseQP(
            self.n,
            self.n_eq,
            self.n_in,
            box=True,
            hessian_pattern=hessian_pattern,
            eq_pattern=self._equality_pattern(),
            in_pattern=self._inequality_pattern(),
            eps_abs=settings.eps_abs,
            eps_rel=0.0,
            max_iter=settings.max_iter,
            verbose=settings.verbose,
        )
        self.qp.init(self.H, self.g, self.A, self.b, self.C, self.l, self.u, self.l_box, self.u_box)
        self._has_solution = False
        logger.info(f"IKIDSolver initialized | n={self.n} | n_eq={self.n_eq} | n_in={self.n_in}")

    def compute_differences(
        self,
        data: "pinocchio.Data",
        x_measured: np.ndarray,
        foot_refs: Sequence["pinocchio.SE3"],
        foot_refs_next: Sequence["pinocchio.SE3"],
    ):
        """Compute posture, foot and fixed-frame tracking errors.

        Args:
            data: Pinocchio data after RobotHandler.update_state().
            x_measured: Measured state, shape (nq + nv,).
            foot_refs: Reference placement of every contact frame.
            foot_refs_next: Reference placements one dt later.
        """
        if len(foot_refs) != self.nk or len(foot_refs_next) != self.nk:
            raise SettingsMismatch(f"Expected {self.nk} foot references")
        model, nq, dt = self.model, self.model.nq, self.settings.dt
        x0 = np.asarray(self.settings.x0)

        self.q_diff[:] = pinocchio.difference(model, x_measured[:nq], x0[:nq])
        self.dq_diff[:] = x0[nq:] - x_measured[nq:]

        for i, fid in enumerate(self.contact_ids):
            velocity = pinocchio.getFrameVelocity(model, data, fid, pinocchio.LOCAL)
            self.foot_diffs[i][:] = placement_error(foot_refs[i], data.oMf[fid])
            self.dfoot_diffs[i][:3] = (
                (foot_refs_next[i].translation - foot_refs[i].translation) / dt - velocity.linear
            )
            self.dfoot_diffs[i][3:] = (
                pinocchio.log3(foot_refs[i].rotation.T @ foot_refs_next[i].rotation) / dt - velocity.angular
            )

        for i, fid in enumerate(self.settings.fixed_frame_ids):
            self.frame_diffs[i][:] = orientation_error(data.oMf[fid].rotation)
            self.dframe_diffs[i][:] = -pinocchio.getFrameVelocity(model, data, fid, pinocchio.LOCAL).angular

    def compute_matrice(
        self,
        data: "pinocchio.Data",
        contact_states: Sequence[bool],
        v: np.ndarray,
        forces: np.ndarray,
        dH: np.ndarray,
        M: np.ndarray,
    ):
        """Assemble the tracking cost, dynamics rows and cone rows.

        Args:
            data: Pinocchio data after RobotHandler.update_state().
            contact_states: Contact flag per contact.
            v: Joint velocity, shape (nv,).
            forces: Reference contact forces, shape (nk * fs,).
            dH: Reference centroidal momentum rate, shape (6,).
            M: Symmetric mass matrix, shape (nv, nv).
        """
        self._check_inputs(contact_states, forces)
        s = self.settings
        model, nv, nf, fs = self.model, self.nv, self.nf, self.fs
        Kp, Kd = s.Kp_gains, s.Kd_gains

        H_acc, g_acc = self.H_acc, self.g_acc
        np.matmul(data.Ag.T, data.Ag, out=H_acc)
        H_acc *= s.w_centroidal
        H_acc[np.diag_indices(nv)] += s.w_qref
        np.multiply(-Kp[0], self.q_diff, out=g_acc)
        g_acc -= Kd[0] * self.dq_diff
        g_acc *= s.w_qref
        g_acc -= s.w_centroidal * data.Ag.T @ (dH - data.dAg @ v)

        self.b[:nv] = -data.nle
        self.b[nv:] = 0.0
        self.Jc[:] = 0.0
        self.C[:] = 0.0
        self.l[:] = 0.0

        for i, fid in enumerate(self.contact_ids):
            J = pinocchio.getFrameJacobian(model, data, fid, pinocchio.LOCAL)
            dJ = pinocchio.getFrameJacobianTimeVariation(model, data, fid, pinocchio.LOCAL)
            H_acc += s.w_footpose * J.T @ J
            g_acc += s.w_footpose * J.T @ (dJ @ v - Kp[1] * self.foot_diffs[i] - Kd[1] * self.dfoot_diffs[i])

            if contact_states[i]:
                rows = self._contact_rows(i)
                Jw = pinocchio.getFrameJacobian(model, data, fid, pinocchio.LOCAL_WORLD_ALIGNED)
                dJw = pinocchio.getFrameJacobianTimeVariation(model, data, fid, pinocchio.LOCAL_WORLD_ALIGNED)
                self.Jc[rows] = Jw[:fs]
                self.b[:nv] += Jw[:fs].T @ forces[rows]
                self.b[nv + i * fs:nv + (i + 1) * fs] = -dJw[:fs] @ v
                self._set_cone(i, forces[rows])

        for i, fid in enumerate(s.fixed_frame_ids):
            Jr = pinocchio.getFrameJacobian(model, data, fid, pinocchio.LOCAL)[3:]
            dJr = pinocchio.getFrameJacobianTimeVariation(model, data, fid, pinocchio.LOCAL)[3:]
            H_acc += s.w_baserot * Jr.T @ Jr
            g_acc += s.w_baserot * Jr.T @ (dJr @ v - Kp[2] * self.frame_diffs[i] - Kd[2] * self.dframe_diffs[i])

        self.H[:nv, :nv] = H_acc
        self.g[:nv] = g_acc

        # Inactive contacts keep explicit zero blocks
        self.A[:nv, :nv] = M
        self.A[:nv, nv:nv + nf] = -self.Jc.T
        self.A[nv:, :nv] = self.Jc

        a_prev = self.solved_acc if self._has_solution else np.zeros(nv)
        self.x_init[:nv] = a_prev
        self.x_init[nv:nv + nf] = 0.0
        self.x_init[nv + nf:] = (M @ a_prev + data.nle - self.Jc.T @ forces)[6:]

    def solve_qp(
        self,
        data: "pinocchio.Data",
        contact_states: Sequence[bool],
        v: np.ndarray,
        forces: np.ndarray,
        dH: np.ndarray,
        M: np.ndarray,
    ) -> QPResult:
        """Allocate accelerations, forces and torques for the tracking cost.

        compute_differences() must have been called for this tick. Writes
        solved_acc = a, solved_forces = forces + df and solved_torque = tau.
        """
        self.compute_matrice(data, contact_states, v, forces, dH, M)
        self.qp.update(
            H=self.H, g=self.g, A=self.A, b=self.b, C=self.C, l=self.l, u=self.u,
            l_box=self.l_box, u_box=self.u_box,
        )
        result = self._run_qp()

        nv, nf = self.nv, self.nf
        self.solved_acc[:] = result.x[:nv]
        self.solved_forces[:] = forces + result.x[nv:nv + nf]
        self.solved_torque[:] = result.x[nv + nf:]
        self._has_solution = True
        return result
