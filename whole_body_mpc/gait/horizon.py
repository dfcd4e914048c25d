# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Receding horizon window and contact event bookkeeping.

The window holds exactly T stages built by a StageFactory. It is filled
either from an explicit contact schedule sequence (full horizon mode, the
schedules beyond the first T forming the reference tail) or from a cyclic
gait pattern (cycle mode). Every recession drops stage 0, shifts the others
down and appends one stage built from the next schedule.

Takeoff and landing indices are expressed relative to the current window
origin and are updated incrementally on every recession:
    - shift every index by -1
    - drop indices that became negative
    - append T-1 when the new final stage changes an end effector's contact
"""

import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pinocchio

from ..exceptions import (
    HorizonExhausted,
    IndexOutOfRange,
    InvalidLength,
    SettingsMismatch,
)
from .contact_schedule import ContactSchedule, contact_trace
from .stage import Stage, StageFactory

logger = logging.getLogger(__name__)


class ExhaustionPolicy(str, Enum):
    """What recede() does once a full-horizon reference tail is empty.

    RAISE: raise HorizonExhausted and leave the window untouched.
    HOLD: keep appending the last schedule of the sequence.
    WRAP: restart from the first schedule of the sequence.
    """

    RAISE = "raise"
    HOLD = "hold"
    WRAP = "wrap"


class TimingTable:
    """Takeoff and landing indices of every end effector.

    Indices are window-relative, always in [0, T), and kept in ascending
    order. End effectors are addressed by their integer index.
    """

    def __init__(self, num_end_effectors: int):
        self.num_end_effectors = num_end_effectors
        self.takeoff: List[List[int]] = [[] for _ in range(num_end_effectors)]
        self.landing: List[List[int]] = [[] for _ in range(num_end_effectors)]

    def reset(self, trace: Sequence[Sequence[bool]]):
        """Rebuild the table from the contact trace of a whole window.

        A takeoff at k means slot k-1 is in contact and slot k is not. A
        landing at k means the opposite transition.
        """
        for i in range(self.num_end_effectors):
            self.takeoff[i] = []
            self.landing[i] = []
            for k in range(1, len(trace)):
                previous, current = trace[k - 1][i], trace[k][i]
                if previous and not current:
                    self.takeoff[i].append(k)
                elif current and not previous:
                    self.landing[i].append(k)

    def shift(self, previous_last: Sequence[bool], new_last: Sequence[bool], horizon_length: int):
        """Account for one recession of the window.

        Args:
            previous_last: Contact flags of the final stage before recession,
                now held by slot T-2.
            new_last: Contact flags of the appended final stage.
            horizon_length: Window length T.
        """
        last = horizon_length - 1
        for i in range(self.num_end_effectors):
            self.takeoff[i] = [k - 1 for k in self.takeoff[i] if k - 1 >= 0]
            self.landing[i] = [k - 1 for k in self.landing[i] if k - 1 >= 0]
            if previous_last[i] and not new_last[i]:
                self.takeoff[i].append(last)
            elif new_last[i] and not previous_last[i]:
                self.landing[i].append(last)


class HorizonWindow:
    """Fixed-length sliding window of optimization stages.

    Attributes:
        factory: Builder of the stages, also the owner of the end-effector
            name to index table.
        horizon_length: Number of stages T.
        exhaustion_policy: Behaviour of recede() once the reference tail of
            a full horizon is consumed.
        recession_count: Number of recessions since the last generation.
    """

    FULL = "full"
    CYCLE = "cycle"

    def __init__(
        self,
        factory: StageFactory,
        horizon_length: int,
        exhaustion_policy: ExhaustionPolicy = ExhaustionPolicy.RAISE,
    ):
        if horizon_length < 1:
            raise SettingsMismatch(f"Horizon length must be positive, got {horizon_length}")
        self.factory = factory
        self.horizon_length = int(horizon_length)
        self.exhaustion_policy = ExhaustionPolicy(exhaustion_policy)

        self._stages: List[Stage] = []
        self._schedules: List[ContactSchedule] = []
        self._terminal: Optional[Stage] = None
        self._sequence: List[ContactSchedule] = []
        self._mode: Optional[str] = None
        self._cursor = 0
        self.recession_count = 0
        self.timings = TimingTable(len(factory.ee_names))

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate_full_horizon(self, schedules: Sequence[ContactSchedule]):
        """Fill the window from an explicit schedule sequence.

        The first T schedules become stages, the rest form the reference tail
        consumed one per recession.

        Raises:
            InvalidLength: If fewer than T schedules are given.
        """
        if len(schedules) < self.horizon_length:
            raise InvalidLength(
                f"Full horizon needs at least {self.horizon_length} schedules, got {len(schedules)}"
            )
        self._generate(self.FULL, schedules)
        self._cursor = self.horizon_length
        logger.info(
            f"Full horizon generated | T={self.horizon_length} | "
            f"tail={self.reference_tail_length} | policy={self.exhaustion_policy.value}"
        )

    def generate_cycle_horizon(self, pattern: Sequence[ContactSchedule]):
        """Fill the window by tiling a periodic pattern from phase 0.

        Raises:
            InvalidLength: If the pattern is empty.
        """
        if len(pattern) == 0:
            raise InvalidLength("Cyclic pattern must contain at least one schedule")
        self._generate(self.CYCLE, pattern)
        logger.info(f"Cycle horizon generated | T={self.horizon_length} | period={len(pattern)}")

    def _generate(self, mode: str, schedules: Sequence[ContactSchedule]):
        for schedule in schedules:
            self.factory.validate_schedule(schedule)

        sequence = [schedule.copy() for schedule in schedules]
        window = [sequence[k % len(sequence)].copy() for k in range(self.horizon_length)]

        self._stages = [self.factory.create_stage(schedule) for schedule in window]
        self._schedules = window
        self._terminal = self.factory.create_terminal_stage()
        self._sequence = sequence
        self._mode = mode
        self._cursor = 0
        self.recession_count = 0
        self.timings.reset(contact_trace(self._schedules, self.factory.ee_names))

    # -------------------------------------------------------------------------
    # Recession
    # -------------------------------------------------------------------------

    def _next_schedule_index(self) -> int:
        """Index into the stored sequence of the schedule to append next."""
        if self._mode is None:
            raise HorizonExhausted("No horizon generated, nothing to recede")
        if self._mode == self.CYCLE:
            return (self.recession_count + self.horizon_length) % len(self._sequence)
        if self._cursor < len(self._sequence):
            return self._cursor
        if self.exhaustion_policy == ExhaustionPolicy.HOLD:
            return len(self._sequence) - 1
        if self.exhaustion_policy == ExhaustionPolicy.WRAP:
            return self._cursor % len(self._sequence)
        raise HorizonExhausted(
            f"Reference tail exhausted after {self.recession_count} recessions "
            f"({len(self._sequence)} schedules)"
        )

    def check_recede(self):
        """Raise the error recede() would raise, without mutating anything."""
        self._next_schedule_index()

    def recede(self):
        """Drop stage 0, shift the window and append the next schedule's stage.

        Raises:
            HorizonExhausted: If no horizon was generated, or the reference
                tail is empty under ExhaustionPolicy.RAISE. Nothing is mutated.
        """
        index = self._next_schedule_index()
        schedule = self._sequence[index].copy()
        stage = self.factory.create_stage(schedule)

        previous_last = self._schedules[-1].contact_states(self.factory.ee_names)
        self._stages.pop(0)
        self._schedules.pop(0)
        self._stages.append(stage)
        self._schedules.append(schedule)

        self.timings.shift(
            previous_last,
            schedule.contact_states(self.factory.ee_names),
            self.horizon_length,
        )
        if self._mode == self.FULL:
            self._cursor += 1
        self.recession_count += 1

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> Optional[str]:
        return self._mode

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return tuple(self._stages)

    @property
    def terminal_stage(self) -> Optional[Stage]:
        return self._terminal

    @property
    def phase(self) -> int:
        """Phase of the first slot within the cyclic pattern."""
        if self._mode == self.CYCLE:
            return self.recession_count % len(self._sequence)
        return self.recession_count

    @property
    def reference_tail(self) -> List[ContactSchedule]:
        if self._mode != self.FULL:
            return []
        return self._sequence[self._cursor:]

    @property
    def reference_tail_length(self) -> int:
        return len(self.reference_tail)

    @property
    def full_horizon(self) -> List[ContactSchedule]:
        """Schedules of the window followed by the unconsumed reference tail."""
        return list(self._schedules) + list(self.reference_tail)

    @property
    def schedules(self) -> Tuple[ContactSchedule, ...]:
        return tuple(self._schedules)

    def _check_step(self, step: int) -> Stage:
        if not 0 <= step < len(self._stages):
            raise IndexOutOfRange(
                f"Step {step} outside the horizon [0, {len(self._stages)})"
            )
        return self._stages[step]

    def contact_states(self, step: int) -> Dict[str, bool]:
        self._check_step(step)
        return dict(zip(self.factory.ee_names, self._schedules[step].contact_states(self.factory.ee_names)))

    def contact_support(self, step: int) -> int:
        """Number of end effectors in contact at a step."""
        return self._check_step(step).num_active_contacts

    def set_reference_pose(self, step: int, ee_name: str, pose: pinocchio.SE3):
        stage = self._check_step(step)
        ee = self.factory.resolve(ee_name)
        stage.set_reference_pose(ee, pose)
        self._schedules[step][ee_name].pose = pose.copy()

    def set_reference_poses(self, step: int, poses: Mapping[str, pinocchio.SE3]):
        self._check_step(step)
        for ee_name in poses:
            self.factory.resolve(ee_name)
        for ee_name, pose in poses.items():
            self.set_reference_pose(step, ee_name, pose)

    def get_reference_pose(self, step: int, ee_name: str) -> pinocchio.SE3:
        stage = self._check_step(step)
        return stage.get_reference_pose(self.factory.resolve(ee_name))

    def set_terminal_reference_pose(self, ee_name: str, pose: pinocchio.SE3):
        ee = self.factory.resolve(ee_name)
        if self._terminal is None:
            raise IndexOutOfRange("No horizon generated, terminal stage does not exist")
        self._terminal.set_reference_pose(ee, pose)

    def get_terminal_reference_pose(self, ee_name: str) -> pinocchio.SE3:
        ee = self.factory.resolve(ee_name)
        if self._terminal is None:
            raise IndexOutOfRange("No horizon generated, terminal stage does not exist")
        return self._terminal.get_reference_pose(ee)

    def _check_force(self, force) -> np.ndarray:
        force = np.asarray(force, dtype=float).reshape(-1)
        if force.shape[0] != self.factory.force_size:
            raise SettingsMismatch(
                f"Force has size {force.shape[0]}, expected {self.factory.force_size}"
            )
        return force

    def set_reference_force(self, step: int, ee_name: str, force: np.ndarray):
        stage = self._check_step(step)
        ee = self.factory.resolve(ee_name)
        force = self._check_force(force)
        stage.set_reference_force(ee, force)
        self._schedules[step][ee_name].force = force.copy()

    def set_reference_forces(self, step: int, forces: Mapping[str, np.ndarray]):
        self._check_step(step)
        checked = {name: self._check_force(force) for name, force in forces.items()}
        for ee_name in checked:
            self.factory.resolve(ee_name)
        for ee_name, force in checked.items():
            self.set_reference_force(step, ee_name, force)

    def get_reference_force(self, step: int, ee_name: str) -> np.ndarray:
        stage = self._check_step(step)
        return stage.get_reference_force(self.factory.resolve(ee_name))

    def get_foot_takeoff_timings(self, ee_name: str) -> Tuple[int, ...]:
        return tuple(self.timings.takeoff[self.factory.resolve(ee_name)])

    def get_foot_land_timings(self, ee_name: str) -> Tuple[int, ...]:
        return tuple(self.timings.landing[self.factory.resolve(ee_name)])
