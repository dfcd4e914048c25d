# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Gait scheduler for generating contact schedules of legged robots.

This module generates ContactSchedule lists, one per horizon step, for
standard gaits. It is pure logic with NO Crocoddyl dependency; the lists it
returns feed either HorizonWindow.generate_cycle_horizon (one gait cycle)
or HorizonWindow.generate_full_horizon (several cycles end to end).

Supported gaits (swing groups are indices into the end-effector list):
- walk: One foot at a time, in end-effector order
- trot: Diagonal pairs alternate (feet 1+2, then 0+3), four feet only
- pace: Lateral pairs alternate (feet 1+3, then 0+2), four feet only
- bound: Front/hind pairs alternate (feet 0+1, then 2+3), four feet only
"""

from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pinocchio

from ..exceptions import SettingsMismatch, UnknownEndEffector
from .contact_schedule import ContactSchedule, EndEffectorTarget, normal_force


class GaitScheduler:
    """Generate contact schedules for standard gaits.

    Each cycle alternates ``T_contact`` steps of full support with
    ``T_fly`` steps where one swing group is off the ground. The vertical
    support force is shared equally among the feet in contact; swinging
    feet get a zero force.

    Attributes:
        GAIT_PATTERNS: Swing groups of the four-footed gaits.
    """

    GAIT_PATTERNS: Dict[str, Dict] = {
        "trot": {
            "swing_groups": [[1, 2], [0, 3]],
            "description": "Diagonal pairs alternate",
        },
        "pace": {
            "swing_groups": [[1, 3], [0, 2]],
            "description": "Lateral pairs alternate",
        },
        "bound": {
            "swing_groups": [[0, 1], [2, 3]],
            "description": "Front/hind pairs alternate",
        },
    }

    def __init__(
        self,
        ee_names: Sequence[str],
        force_size: int = 6,
        support_force: float = 1000.0,
        T_contact: int = 10,
        T_fly: int = 50,
    ):
        """Initialize the gait scheduler.

        Args:
            ee_names: End-effector names, in the order used by the swing groups.
            force_size: Per-contact force dimension (3 or 6).
            support_force: Total vertical force shared by the feet in contact.
            T_contact: Number of full-support steps before each swing.
            T_fly: Number of steps of each swing.
        """
        if T_contact < 0 or T_fly < 0 or T_contact + T_fly == 0:
            raise SettingsMismatch(
                f"T_contact and T_fly must be non-negative and not both zero, got {T_contact}, {T_fly}"
            )
        self.ee_names = list(ee_names)
        self.force_size = force_size
        self.support_force = support_force
        self.T_contact = T_contact
        self.T_fly = T_fly

    @classmethod
    def get_available_gaits(cls) -> List[str]:
        return ["walk"] + list(cls.GAIT_PATTERNS.keys())

    def swing_groups(self, gait_type: str) -> List[List[str]]:
        """Return the swing groups of a gait as end-effector names.

        Raises:
            ValueError: If gait_type is not recognized or needs another foot count.
        """
        if gait_type == "walk":
            return [[name] for name in self.ee_names]
        if gait_type not in self.GAIT_PATTERNS:
            raise ValueError(f"Unknown gait type: {gait_type}. Available: {self.get_available_gaits()}")
        if len(self.ee_names) != 4:
            raise ValueError(f"Gait '{gait_type}' needs four end effectors, got {len(self.ee_names)}")
        return [[self.ee_names[i] for i in group] for group in self.GAIT_PATTERNS[gait_type]["swing_groups"]]

    def make_schedule(
        self,
        poses: Mapping[str, pinocchio.SE3],
        swing_feet: Sequence[str] = (),
    ) -> ContactSchedule:
        """Build one schedule with ``swing_feet`` off the ground.

        Args:
            poses: Target placement of every end effector.
            swing_feet: End effectors not in contact.

        Returns:
            ContactSchedule with the support force split over the stance feet.
        """
        unknown = set(swing_feet) - set(self.ee_names)
        if unknown:
            raise UnknownEndEffector(f"Unknown end effectors {sorted(unknown)}. Known: {self.ee_names}")
        num_contacts = len(self.ee_names) - len(set(swing_feet))
        fz = self.support_force / num_contacts if num_contacts > 0 else 0.0

        targets = {}
        for name in self.ee_names:
            in_contact = name not in swing_feet
            targets[name] = EndEffectorTarget(
                in_contact=in_contact,
                pose=poses[name].copy(),
                force=normal_force(self.force_size, fz if in_contact else 0.0),
            )
        return ContactSchedule(targets=targets)

    def generate_cycle(
        self,
        poses: Mapping[str, pinocchio.SE3],
        gait_type: str = "walk",
    ) -> List[ContactSchedule]:
        """Generate one gait cycle, suitable as a cyclic pattern.

        Structure per swing group:
            [T_contact full support] -> [T_fly swing of the group]

        Args:
            poses: Target placement of every end effector.
            gait_type: Type of gait (see get_available_gaits).

        Returns:
            List of len(groups) * (T_contact + T_fly) schedules.
        """
        pattern: List[ContactSchedule] = []
        for group in self.swing_groups(gait_type):
            support = self.make_schedule(poses)
            swing = self.make_schedule(poses, group)
            pattern.extend(support.copy() for _ in range(self.T_contact))
            pattern.extend(swing.copy() for _ in range(self.T_fly))
        return pattern

    def generate(
        self,
        poses: Mapping[str, pinocchio.SE3],
        gait_type: str = "walk",
        num_cycles: int = 1,
        step_translation: Optional[np.ndarray] = None,
        include_final_support: bool = True,
    ) -> List[ContactSchedule]:
        """Generate a walking sequence for a full horizon.

        Each swinging foot lands ``step_translation`` away from where it took
        off; its target pose changes from the first step after landing.

        Args:
            poses: Initial placement of every end effector.
            gait_type: Type of gait.
            num_cycles: Number of complete gait cycles.
            step_translation: Displacement of a foot per step, shape (3,).
                Defaults to zero (stepping in place).
            include_final_support: End with T_contact steps of full support.

        Returns:
            List of ContactSchedule, one per horizon step.
        """
        translation = np.zeros(3) if step_translation is None else np.asarray(step_translation, dtype=float)
        current = {name: pose.copy() for name, pose in poses.items()}

        sequence: List[ContactSchedule] = []
        for _ in range(num_cycles):
            for group in self.swing_groups(gait_type):
                support = self.make_schedule(current)
                sequence.extend(support.copy() for _ in range(self.T_contact))
                swing = self.make_schedule(current, group)
                sequence.extend(swing.copy() for _ in range(self.T_fly))
                for name in group:
                    current[name].translation = current[name].translation + translation

        if include_final_support:
            support = self.make_schedule(current)
            sequence.extend(support.copy() for _ in range(self.T_contact))
        return sequence

    def generate_standing(
        self,
        poses: Mapping[str, pinocchio.SE3],
        num_steps: int = 1,
    ) -> List[ContactSchedule]:
        """Generate a standing (all feet in contact) sequence of num_steps schedules."""
        support = self.make_schedule(poses)
        return [support.copy() for _ in range(num_steps)]
