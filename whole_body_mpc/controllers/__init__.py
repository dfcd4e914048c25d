# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""MPC loop, trajectory optimizers and QP allocators for whole-body control."""

from .lowlevel import (
    IDSettings,
    IDSolver,
    IKIDSettings,
    IKIDSolver,
    friction_cone_block,
    friction_cone_lower_bound,
)
from .mpc import MPC, MPCSettings, MPCSolution
from .optimizer import FDDPOptimizer, OptimizerResult, TrajectoryOptimizer
from .qp import DenseQP, QPResult

__all__ = [
    "IDSettings",
    "IDSolver",
    "IKIDSettings",
    "IKIDSolver",
    "friction_cone_block",
    "friction_cone_lower_bound",
    "MPC",
    "MPCSettings",
    "MPCSolution",
    "FDDPOptimizer",
    "OptimizerResult",
    "TrajectoryOptimizer",
    "DenseQP",
    "QPResult",
]
