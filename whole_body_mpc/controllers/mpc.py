# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Receding horizon MPC loop for whole-body locomotion.

This controller integrates:
- HorizonWindow → stages and contact event timings
- GaitScheduler → walking and standing contact schedules
- SwingFootTrajectory → Bezier swing-foot references
- TrajectoryOptimizer → one bounded solve per control tick

State representation: (nq + nv) dimensional
    For a floating-base robot:
        q = [x, y, z, qx, qy, qz, qw, joints...]
        v = [vx, vy, vz, ωx, ωy, ωz, dq...]

Control: (nv - 6) joint torques (floating base is unactuated)
"""

import logging
import time
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pinocchio

from ..exceptions import SettingsMismatch
from ..gait.contact_schedule import ContactSchedule
from ..gait.foot_trajectory import SwingFootTrajectory
from ..gait.gait_scheduler import GaitScheduler
from ..gait.horizon import ExhaustionPolicy, HorizonWindow
from ..gait.stage import StageFactory
from .optimizer import FDDPOptimizer, TrajectoryOptimizer

logger = logging.getLogger(__name__)


@dataclass
class MPCSettings:
    """Settings of the MPC loop.

    Attributes:
        T: Number of running stages of the horizon.
        nq: Configuration dimension. Taken from the stage factory if None.
        nv: Velocity dimension. Taken from the stage factory if None.
        nu: Control dimension. Taken from the stage factory if None.
        max_iters: Optimizer iteration budget per control tick.
        TOL: Optimizer convergence threshold.
        mu_init: Optimizer initial regularization.
        num_threads: Threads the optimizer may use.
        support_force: Total vertical force shared by the feet in contact.
        swing_apex: Peak height of swing-foot arcs.
        x_translation: Forward foot displacement per step.
        y_translation: Lateral foot displacement per step.
        T_fly: Steps of each swing phase.
        T_contact: Steps of full support before each swing.
        exhaustion_policy: What recede() does once a full horizon's
            reference tail is consumed.
    """

    T: int = 100
    nq: Optional[int] = None
    nv: Optional[int] = None
    nu: Optional[int] = None
    max_iters: int = 1
    TOL: float = 1e-4
    mu_init: float = 1e-8
    num_threads: int = 1
    support_force: float = 1000.0
    swing_apex: float = 0.1
    x_translation: float = 0.0
    y_translation: float = 0.0
    T_fly: int = 50
    T_contact: int = 10
    exhaustion_policy: ExhaustionPolicy = ExhaustionPolicy.RAISE

    # Keys accepted by from_dict in place of the field name
    ALIASES = {"ddpIteration": "max_iters"}

    @classmethod
    def from_dict(cls, settings: Mapping[str, Any]) -> "MPCSettings":
        """Build settings from a plain dict.

        Raises:
            SettingsMismatch: If a key is not a known setting.
        """
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in settings.items():
            name = cls.ALIASES.get(key, key)
            if name not in names:
                raise SettingsMismatch(f"Unknown MPC setting '{key}'")
            kwargs[name] = value
        if "exhaustion_policy" in kwargs:
            kwargs["exhaustion_policy"] = ExhaustionPolicy(kwargs["exhaustion_policy"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        settings = asdict(self)
        settings["exhaustion_policy"] = ExhaustionPolicy(self.exhaustion_policy).value
        return settings


@dataclass
class MPCSolution:
    """Snapshot of one control tick.

    ``control`` and ``feedback_gain`` are the feedforward and the Riccati
    gain of the first step, valid until the next tick. The timings are
    window indices of the horizon that was solved, taken before the window
    receded.

    Attributes:
        control: First control us[0], shape (nu,).
        feedback_gain: Riccati gain K0, shape (nu, ndx).
        predicted_states: Solved xs, shape (T + 1, nx).
        predicted_controls: Solved us, shape (T, nu).
        horizon_iteration: Value of MPC.horizon_iteration after this tick.
        takeoff_timings: Per end effector, window indices where contact breaks.
        land_timings: Per end effector, window indices where contact is made.
        converged: Whether the optimizer reached its stopping threshold.
        iterations: Optimizer iterations used.
        cost: Total cost of the returned trajectory.
        solve_time: Wall-clock optimizer time in seconds.
    """

    control: np.ndarray
    feedback_gain: np.ndarray
    predicted_states: np.ndarray
    predicted_controls: np.ndarray
    horizon_iteration: int
    takeoff_timings: Dict[str, Tuple[int, ...]]
    land_timings: Dict[str, Tuple[int, ...]]
    converged: bool
    iterations: int
    cost: float
    solve_time: float


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


class MPC:
    """Receding horizon controller over a HorizonWindow.

    The typical workflow:
        1. initialize() with settings and a stage factory
        2. generate_full_horizon() or generate_cycle_horizon()
        3. iterate() once per control tick: solve, copy back, recede

    Attributes:
        settings: MPCSettings in use.
        factory: StageFactory building the stages.
        optimizer: TrajectoryOptimizer called once per tick.
        window: HorizonWindow owned by this controller.
        gait_scheduler: GaitScheduler for walking and standing schedules.
        swing_trajectory: SwingFootTrajectory writing swing references.
        horizon_iteration: Number of completed iterate() calls.
        solution: MPCSolution of the last iterate() call.
    """

    def __init__(self):
        self.settings: Optional[MPCSettings] = None
        self.factory: Optional[StageFactory] = None
        self.optimizer: Optional[TrajectoryOptimizer] = None
        self.window: Optional[HorizonWindow] = None
        self.gait_scheduler: Optional[GaitScheduler] = None
        self.swing_trajectory: Optional[SwingFootTrajectory] = None
        self.horizon_iteration = 0
        self.solution: Optional[MPCSolution] = None
        self._xs = np.zeros((0, 0))
        self._us = np.zeros((0, 0))
        self._K0 = np.zeros((0, 0))
        self._xs_guess = np.zeros((0, 0))
        self._us_guess = np.zeros((0, 0))

    def initialize(
        self,
        settings: MPCSettings,
        factory: StageFactory,
        optimizer: Optional[TrajectoryOptimizer] = None,
    ):
        """Validate settings against the factory and allocate the trajectories.

        Args:
            settings: MPCSettings.
            factory: StageFactory whose dimensions the settings must match.
            optimizer: Trajectory optimizer. Defaults to FDDPOptimizer.

        Raises:
            SettingsMismatch: If the dimensions disagree or a budget is invalid.
        """
        settings = replace(settings)
        if settings.nq is None:
            settings.nq = factory.nx - factory.ndx // 2
        if settings.nv is None:
            settings.nv = factory.ndx // 2
        if settings.nu is None:
            settings.nu = factory.nu
        self._validate(settings, factory)

        if optimizer is None:
            optimizer = FDDPOptimizer(th_stop=settings.TOL, mu_init=settings.mu_init)

        self.settings = settings
        self.factory = factory
        self.optimizer = optimizer
        self.window = HorizonWindow(factory, settings.T, settings.exhaustion_policy)
        self.gait_scheduler = GaitScheduler(
            factory.ee_names,
            force_size=factory.force_size,
            support_force=settings.support_force,
            T_contact=settings.T_contact,
            T_fly=settings.T_fly,
        )
        self.swing_trajectory = SwingFootTrajectory(
            swing_apex=settings.swing_apex,
            x_translation=settings.x_translation,
            y_translation=settings.y_translation,
            T_fly=settings.T_fly,
        )

        self._xs = np.tile(factory.x0, (settings.T + 1, 1))
        self._us = np.tile(factory.u0, (settings.T, 1))
        self._K0 = np.zeros((factory.nu, factory.ndx))
        self._xs_guess = np.empty_like(self._xs)
        self._us_guess = np.empty_like(self._us)
        self.horizon_iteration = 0
        self.solution = None

        logger.info(
            f"MPC initialized | T={settings.T} | nx={factory.nx} | nu={factory.nu} | "
            f"end effectors={list(factory.ee_names)}"
        )

    @staticmethod
    def _validate(settings: MPCSettings, factory: StageFactory):
        if settings.T < 1:
            raise SettingsMismatch(f"T must be positive, got {settings.T}")
        if settings.nq + settings.nv != factory.nx:
            raise SettingsMismatch(
                f"nq + nv = {settings.nq + settings.nv} does not match the state dimension {factory.nx}"
            )
        if 2 * settings.nv != factory.ndx:
            raise SettingsMismatch(
                f"2 * nv = {2 * settings.nv} does not match the state tangent dimension {factory.ndx}"
            )
        if settings.nu != factory.nu:
            raise SettingsMismatch(f"nu = {settings.nu} does not match the control dimension {factory.nu}")
        if settings.max_iters < 1:
            raise SettingsMismatch(f"max_iters must be positive, got {settings.max_iters}")
        if settings.num_threads < 1:
            raise SettingsMismatch(f"num_threads must be positive, got {settings.num_threads}")

    def _require_initialized(self):
        if self.window is None:
            raise SettingsMismatch("MPC is not initialized, call initialize() first")

    def get_settings(self) -> Dict[str, Any]:
        self._require_initialized()
        return self.settings.to_dict()

    # -------------------------------------------------------------------------
    # Trajectories
    # -------------------------------------------------------------------------

    @property
    def xs(self) -> np.ndarray:
        return _read_only(self._xs)

    @property
    def us(self) -> np.ndarray:
        return _read_only(self._us)

    @property
    def K0(self) -> np.ndarray:
        return _read_only(self._K0)

    # -------------------------------------------------------------------------
    # Horizon generation
    # -------------------------------------------------------------------------

    def generate_full_horizon(self, schedules: Sequence[ContactSchedule]):
        self._require_initialized()
        self.window.generate_full_horizon(schedules)
        self.swing_trajectory.reset()

    def generate_cycle_horizon(self, pattern: Sequence[ContactSchedule]):
        self._require_initialized()
        self.window.generate_cycle_horizon(pattern)
        self.swing_trajectory.reset()

    def generate_walking_horizon(
        self,
        poses: Mapping[str, pinocchio.SE3],
        gait_type: str = "walk",
    ):
        """Fill the window with a cyclic walking pattern built from ``poses``."""
        self._require_initialized()
        self.generate_cycle_horizon(self.gait_scheduler.generate_cycle(poses, gait_type))

    def generate_standing_horizon(self, poses: Mapping[str, pinocchio.SE3]):
        self._require_initialized()
        self.generate_cycle_horizon(self.gait_scheduler.generate_standing(poses))

    def recede(self):
        self._require_initialized()
        self.window.recede()

    def update_swing_references(self):
        """Rewrite the pose references of every swinging step with Bezier arcs."""
        self._require_initialized()
        self.swing_trajectory.update(self.window)

    # -------------------------------------------------------------------------
    # Control tick
    # -------------------------------------------------------------------------

    def iterate(self, q_current: np.ndarray, v_current: np.ndarray) -> MPCSolution:
        """Run one control tick.

        1. Shift the previous solution by one step into the warm start buffers
        2. Set the initial state from (q_current, v_current)
        3. Solve with the configured iteration budget and thread count
        4. Copy back xs, us and K0
        5. Recede the window

        An exception raised by the optimizer propagates and leaves xs, us,
        K0 and the window untouched.

        Args:
            q_current: Measured configuration. Shape: (nq,)
            v_current: Measured velocity. Shape: (nv,)

        Returns:
            MPCSolution of this tick. Non-convergence is reported in it.

        Raises:
            SettingsMismatch: If the state has the wrong size.
            HorizonExhausted: If the window cannot recede. Nothing is mutated.
        """
        self._require_initialized()
        x0 = np.concatenate([np.asarray(q_current, dtype=float), np.asarray(v_current, dtype=float)])
        if x0.shape[0] != self.factory.nx:
            raise SettingsMismatch(f"State has size {x0.shape[0]}, expected {self.factory.nx}")
        self.window.check_recede()

        xs_guess, us_guess = self._xs_guess, self._us_guess
        if self.horizon_iteration > 0:
            xs_guess[:-1] = self._xs[1:]
            xs_guess[-1] = self._xs[-1]
            us_guess[:-1] = self._us[1:]
            us_guess[-1] = self._us[-1]
        else:
            xs_guess[:] = self._xs
            us_guess[:] = self._us
        xs_guess[0] = x0

        start_time = time.time()
        result = self.optimizer.solve(
            x0,
            self.window.stages,
            self.window.terminal_stage,
            xs_guess,
            us_guess,
            self.settings.max_iters,
            self.settings.num_threads,
        )
        solve_time = time.time() - start_time

        self._xs[:] = result.xs
        self._us[:] = result.us
        self._K0[:] = result.K0

        ee_names = self.factory.ee_names
        takeoff_timings = {name: self.window.get_foot_takeoff_timings(name) for name in ee_names}
        land_timings = {name: self.window.get_foot_land_timings(name) for name in ee_names}
        self.window.recede()
        self.horizon_iteration += 1

        if not result.converged:
            logger.debug(
                f"Optimizer did not converge at iteration {self.horizon_iteration} "
                f"after {result.iterations} iterations (cost {result.cost:.4g})"
            )
        else:
            logger.debug(
                f"Iteration {self.horizon_iteration} | iterations={result.iterations} | "
                f"cost={result.cost:.4g} | time={solve_time * 1e3:.1f} ms"
            )

        self.solution = MPCSolution(
            control=self._us[0].copy(),
            feedback_gain=self._K0.copy(),
            predicted_states=self._xs.copy(),
            predicted_controls=self._us.copy(),
            horizon_iteration=self.horizon_iteration,
            takeoff_timings=takeoff_timings,
            land_timings=land_timings,
            converged=bool(result.converged),
            iterations=int(result.iterations),
            cost=float(result.cost),
            solve_time=solve_time,
        )
        return self.solution

    # -------------------------------------------------------------------------
    # Reference and timing pass-through
    # -------------------------------------------------------------------------

    def set_reference_pose(self, step: int, ee_name: str, pose: pinocchio.SE3):
        self._require_initialized()
        self.window.set_reference_pose(step, ee_name, pose)

    def set_reference_poses(self, step: int, poses: Mapping[str, pinocchio.SE3]):
        self._require_initialized()
        self.window.set_reference_poses(step, poses)

    def get_reference_pose(self, step: int, ee_name: str) -> pinocchio.SE3:
        self._require_initialized()
        return self.window.get_reference_pose(step, ee_name)

    def set_terminal_reference_pose(self, ee_name: str, pose: pinocchio.SE3):
        self._require_initialized()
        self.window.set_terminal_reference_pose(ee_name, pose)

    def set_reference_force(self, step: int, ee_name: str, force: np.ndarray):
        self._require_initialized()
        self.window.set_reference_force(step, ee_name, force)

    def set_reference_forces(self, step: int, forces: Mapping[str, np.ndarray]):
        self._require_initialized()
        self.window.set_reference_forces(step, forces)

    def get_reference_force(self, step: int, ee_name: str) -> np.ndarray:
        self._require_initialized()
        return self.window.get_reference_force(step, ee_name)

    def get_foot_takeoff_timings(self, ee_name: str) -> Tuple[int, ...]:
        self._require_initialized()
        return self.window.get_foot_takeoff_timings(ee_name)

    def get_foot_land_timings(self, ee_name: str) -> Tuple[int, ...]:
        self._require_initialized()
        return self.window.get_foot_land_timings(ee_name)

    def get_full_horizon(self) -> List[ContactSchedule]:
        self._require_initialized()
        return self.window.full_horizon
