# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""
Whole-Body MPC Module for legged locomotion.

This module implements whole-body control of legged robots using:
1. Contact schedules describing, per horizon step, feet in contact, poses and forces
2. A receding horizon window with takeoff/landing timing bookkeeping
3. Crocoddyl FDDP for the nonlinear trajectory optimization
4. Per-tick QP allocators (ID, IK-ID) turning references into torques

Dependencies:
- numpy, scipy (core math, sparse matrices)
- pinocchio (rigid-body dynamics)
- crocoddyl (stage models and FDDP, optional for the pure-Python parts)
- osqp (QP allocators)

Usage:
    # Build a horizon and run the MPC loop
    from whole_body_mpc import MPC, MPCSettings, FullDynamicsStageFactory

    # Allocate torques from references
    from whole_body_mpc import RobotHandler, IDSolver, IDSettings
"""

__version__ = "0.1.0"
__author__ = "Isaac Lab Project Developers"

# Import core modules
from . import utils
from . import gait
from . import controllers

from .exceptions import (
    HorizonExhausted,
    IndexOutOfRange,
    InvalidLength,
    MPCError,
    SettingsMismatch,
    UnknownEndEffector,
)
from .robot import RobotHandler

# Convenience imports from gait
from .gait import (
    CROCODDYL_AVAILABLE,
    ContactSchedule,
    EndEffectorTarget,
    ExhaustionPolicy,
    FullDynamicsSettings,
    FullDynamicsStageFactory,
    GaitScheduler,
    HorizonWindow,
    Stage,
    StageFactory,
    SwingFootTrajectory,
)

# Convenience imports from controllers
from .controllers import (
    MPC,
    DenseQP,
    FDDPOptimizer,
    IDSettings,
    IDSolver,
    IKIDSettings,
    IKIDSolver,
    MPCSettings,
    MPCSolution,
    OptimizerResult,
    TrajectoryOptimizer,
)

__all__ = [
    # Modules
    "utils",
    "gait",
    "controllers",
    # Errors
    "MPCError",
    "InvalidLength",
    "IndexOutOfRange",
    "UnknownEndEffector",
    "SettingsMismatch",
    "HorizonExhausted",
    # Dynamics
    "RobotHandler",
    # Gait classes
    "ContactSchedule",
    "EndEffectorTarget",
    "ExhaustionPolicy",
    "GaitScheduler",
    "HorizonWindow",
    "Stage",
    "StageFactory",
    "SwingFootTrajectory",
    "FullDynamicsSettings",
    "FullDynamicsStageFactory",
    # Controller classes
    "MPC",
    "MPCSettings",
    "MPCSolution",
    "TrajectoryOptimizer",
    "OptimizerResult",
    "FDDPOptimizer",
    "DenseQP",
    "IDSettings",
    "IDSolver",
    "IKIDSettings",
    "IKIDSolver",
    # Availability flags
    "CROCODDYL_AVAILABLE",
]
