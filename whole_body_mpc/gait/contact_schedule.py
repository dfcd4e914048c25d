# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Contact schedule data structures for whole-body locomotion.

This module defines pure data structures describing, for a single horizon
step, which end effectors are in contact together with their target pose
and target contact force. It has no dependency on Crocoddyl, making it easy
to test and use standalone.

The key data structures are:
- EndEffectorTarget: contact flag, pose and force of one end effector
- ContactSchedule: one EndEffectorTarget per end effector for one step
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np
import pinocchio

from ..exceptions import SettingsMismatch, UnknownEndEffector


@dataclass
class EndEffectorTarget:
    """Target of a single end effector at one horizon step.

    Attributes:
        in_contact: True if the end effector touches the environment.
        pose: Target placement of the end-effector frame.
        force: Target contact force, shape (3,) for point contacts or
            (6,) for wrench contacts. Zero while swinging.
    """

    in_contact: bool
    pose: pinocchio.SE3
    force: np.ndarray

    def __post_init__(self):
        self.in_contact = bool(self.in_contact)
        self.force = np.array(self.force, dtype=float).reshape(-1)

    def copy(self) -> "EndEffectorTarget":
        return EndEffectorTarget(
            in_contact=self.in_contact,
            pose=self.pose.copy(),
            force=self.force.copy(),
        )


@dataclass
class ContactSchedule:
    """Contact state, poses and forces of every end effector at one step.

    Attributes:
        targets: Mapping from end-effector name to its EndEffectorTarget.
    """

    targets: Dict[str, EndEffectorTarget] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        contact_states: Mapping[str, bool],
        poses: Mapping[str, pinocchio.SE3],
        forces: Mapping[str, np.ndarray],
    ) -> "ContactSchedule":
        """Assemble a schedule from three name-keyed mappings.

        Args:
            contact_states: End-effector name to contact flag.
            poses: End-effector name to target placement.
            forces: End-effector name to target force.

        Returns:
            ContactSchedule holding one target per end effector.

        Raises:
            SettingsMismatch: If the three mappings do not share the same keys.
        """
        names = set(contact_states)
        if set(poses) != names or set(forces) != names:
            raise SettingsMismatch(
                "contact_states, poses and forces must cover the same end effectors, "
                f"got {sorted(contact_states)}, {sorted(poses)}, {sorted(forces)}"
            )
        return cls(
            targets={
                name: EndEffectorTarget(contact_states[name], poses[name], forces[name])
                for name in contact_states
            }
        )

    @property
    def ee_names(self) -> List[str]:
        return list(self.targets.keys())

    def _target(self, ee_name: str) -> EndEffectorTarget:
        try:
            return self.targets[ee_name]
        except KeyError:
            raise UnknownEndEffector(
                f"Unknown end effector '{ee_name}'. Known: {self.ee_names}"
            ) from None

    def is_in_contact(self, ee_name: str) -> bool:
        return self._target(ee_name).in_contact

    def pose(self, ee_name: str) -> pinocchio.SE3:
        return self._target(ee_name).pose

    def force(self, ee_name: str) -> np.ndarray:
        return self._target(ee_name).force

    def contact_states(self, ee_names: Sequence[str]) -> tuple:
        """Return contact flags ordered as ``ee_names``."""
        return tuple(self._target(name).in_contact for name in ee_names)

    @property
    def num_contacts(self) -> int:
        return sum(1 for t in self.targets.values() if t.in_contact)

    def validate(self, ee_names: Iterable[str], force_size: int):
        """Check the schedule against the configured end effectors.

        Args:
            ee_names: Configured end-effector names.
            force_size: Configured per-contact force dimension (3 or 6).

        Raises:
            UnknownEndEffector: If the schedule names an unconfigured end effector.
            SettingsMismatch: If an end effector is missing or a force has the
                wrong dimension.
        """
        ee_names = list(ee_names)
        unknown = set(self.targets) - set(ee_names)
        if unknown:
            raise UnknownEndEffector(
                f"Unknown end effectors {sorted(unknown)}. Known: {ee_names}"
            )
        missing = set(ee_names) - set(self.targets)
        if missing:
            raise SettingsMismatch(f"Schedule has no entry for {sorted(missing)}")
        for name, target in self.targets.items():
            if target.force.shape[0] != force_size:
                raise SettingsMismatch(
                    f"Force of '{name}' has size {target.force.shape[0]}, "
                    f"expected {force_size}"
                )

    def copy(self) -> "ContactSchedule":
        return ContactSchedule(
            targets={name: target.copy() for name, target in self.targets.items()}
        )

    def __iter__(self):
        return iter(self.targets.items())

    def __len__(self):
        return len(self.targets)

    def __getitem__(self, ee_name: str) -> EndEffectorTarget:
        return self._target(ee_name)


def contact_trace(
    schedules: Sequence[ContactSchedule], ee_names: Sequence[str]
) -> List[tuple]:
    """Return the per-step contact flags of a schedule sequence.

    Args:
        schedules: Schedules in temporal order.
        ee_names: End-effector ordering of the returned tuples.

    Returns:
        One tuple of booleans per schedule.
    """
    return [schedule.contact_states(ee_names) for schedule in schedules]


def normal_force(force_size: int, fz: float = 0.0) -> np.ndarray:
    """Build a contact force whose only non-zero component is the normal one."""
    force = np.zeros(force_size)
    force[2] = fz
    return force
