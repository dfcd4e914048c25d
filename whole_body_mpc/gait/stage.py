# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Stage abstraction shared by the horizon window and the stage builders.

A Stage is one slot of the receding horizon: the action model of the
trajectory optimizer, its data, and the pose/force references of every end
effector. References are set through explicit setters; builders that embed
the references in their cost or contact models override the ``_apply_*``
hooks so the horizon never has to know how a model is laid out.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

import numpy as np
import pinocchio

from ..exceptions import SettingsMismatch, UnknownEndEffector
from .contact_schedule import ContactSchedule

FORCE_SIZES = (3, 6)


class Stage:
    """One optimization stage of the horizon.

    Attributes:
        model: Action model handed to the trajectory optimizer.
        data: Evaluation data created from ``model``.
        contact_states: Contact flag per end effector, in factory order.
    """

    def __init__(
        self,
        model: Any,
        data: Any,
        contact_states: Sequence[bool],
        poses: Sequence[pinocchio.SE3],
        forces: np.ndarray,
    ):
        self.model = model
        self.data = data
        self.contact_states = tuple(bool(c) for c in contact_states)
        self._poses: List[pinocchio.SE3] = [pose.copy() for pose in poses]
        self._forces = np.array(forces, dtype=float)

    @property
    def num_active_contacts(self) -> int:
        return sum(self.contact_states)

    def set_reference_pose(self, ee_index: int, pose: pinocchio.SE3):
        self._poses[ee_index] = pose.copy()
        self._apply_pose(ee_index, self._poses[ee_index])

    def get_reference_pose(self, ee_index: int) -> pinocchio.SE3:
        return self._poses[ee_index].copy()

    def set_reference_force(self, ee_index: int, force: np.ndarray):
        self._forces[ee_index, :] = force
        self._apply_force(ee_index, self._forces[ee_index])

    def get_reference_force(self, ee_index: int) -> np.ndarray:
        return self._forces[ee_index].copy()

    def _apply_pose(self, ee_index: int, pose: pinocchio.SE3):
        """Push a pose reference into the model. No-op by default."""

    def _apply_force(self, ee_index: int, force: np.ndarray):
        """Push a force reference into the model. No-op by default."""


class StageFactory(ABC):
    """Builder of horizon stages from contact schedules.

    End-effector names are resolved once to integer indices; every other
    component addresses end effectors through ``ee_index``.

    Subclasses must implement:
        - create_stage: Build the Stage of one ContactSchedule
        - create_terminal_stage: Build the terminal Stage
        - nx, ndx, nu: State, state tangent and control dimensions
        - x0: Reference state used to initialize trajectories
    """

    def __init__(self, ee_names: Sequence[str], force_size: int):
        if force_size not in FORCE_SIZES:
            raise SettingsMismatch(
                f"force_size must be one of {FORCE_SIZES}, got {force_size}"
            )
        if len(set(ee_names)) != len(ee_names) or not ee_names:
            raise SettingsMismatch(f"End-effector names must be unique and non-empty: {ee_names}")
        self.ee_names = tuple(ee_names)
        self.force_size = int(force_size)
        self.ee_index: Dict[str, int] = {name: i for i, name in enumerate(self.ee_names)}

    def resolve(self, ee_name: str) -> int:
        """Return the index of an end effector.

        Raises:
            UnknownEndEffector: If the name is not configured.
        """
        try:
            return self.ee_index[ee_name]
        except KeyError:
            raise UnknownEndEffector(
                f"Unknown end effector '{ee_name}'. Known: {list(self.ee_names)}"
            ) from None

    def validate_schedule(self, schedule: ContactSchedule):
        schedule.validate(self.ee_names, self.force_size)

    def unpack_schedule(self, schedule: ContactSchedule):
        """Split a schedule into factory-ordered states, poses and forces."""
        states = schedule.contact_states(self.ee_names)
        poses = [schedule.pose(name) for name in self.ee_names]
        forces = np.array([schedule.force(name) for name in self.ee_names], dtype=float)
        return states, poses, forces

    @property
    def u0(self) -> np.ndarray:
        """Control used to initialize trajectories."""
        return np.zeros(self.nu)

    @property
    @abstractmethod
    def nx(self) -> int:
        pass

    @property
    @abstractmethod
    def ndx(self) -> int:
        pass

    @property
    @abstractmethod
    def nu(self) -> int:
        pass

    @property
    @abstractmethod
    def x0(self) -> np.ndarray:
        pass

    @abstractmethod
    def create_stage(self, schedule: ContactSchedule) -> Stage:
        """Build the stage realizing one contact schedule."""
        pass

    @abstractmethod
    def create_terminal_stage(self) -> Stage:
        """Build the terminal stage of the horizon."""
        pass
