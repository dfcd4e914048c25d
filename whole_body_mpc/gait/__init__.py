# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Gait management module for whole-body locomotion.

This module provides:
- Contact schedule data structures (contact flag, pose and force per foot)
- Stage abstraction and the StageFactory interface
- Receding horizon window with takeoff/landing bookkeeping
- Gait scheduler for generating walking and standing schedules
- Bezier swing-foot references
- Crocoddyl full-dynamics stage factory
"""

from .contact_schedule import ContactSchedule, EndEffectorTarget, contact_trace, normal_force
from .foot_trajectory import SwingFootTrajectory
from .gait_scheduler import GaitScheduler
from .horizon import ExhaustionPolicy, HorizonWindow, TimingTable
from .stage import Stage, StageFactory
from .stage_factory import (
    CROCODDYL_AVAILABLE,
    CrocoddylStage,
    FullDynamicsSettings,
    FullDynamicsStageFactory,
)

__all__ = [
    "ContactSchedule",
    "EndEffectorTarget",
    "contact_trace",
    "normal_force",
    "SwingFootTrajectory",
    "GaitScheduler",
    "ExhaustionPolicy",
    "HorizonWindow",
    "TimingTable",
    "Stage",
    "StageFactory",
    "CROCODDYL_AVAILABLE",
    "CrocoddylStage",
    "FullDynamicsSettings",
    "FullDynamicsStageFactory",
]
