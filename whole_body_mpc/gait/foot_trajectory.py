# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Bezier swing-foot references for the receding horizon.

The swing references are rule-based: each swing phase found in the window
gets a cubic Bezier arc from the lift-off placement to the lift-off
placement translated by (x_translation, y_translation), peaking at
swing_apex. The lift-off placement is cached by absolute step so a swing
keeps the same origin while it slides through the window.

Default control points layout (side view):
              P1────P2
             /        \\
            /          \\
    P0 ──/              \\── P3
"""

from typing import Dict, List, Tuple

import numpy as np
import pinocchio

from ..utils.math_utils import apex_control_points, bezier_curve
from .horizon import HorizonWindow


class SwingFootTrajectory:
    """Write swing-foot pose references into a horizon window.

    Attributes:
        swing_apex: Peak height of the swing arc in meters.
        x_translation: Forward displacement of the foot per step.
        y_translation: Lateral displacement of the foot per step.
        T_fly: Assumed swing length, in steps, while the landing is beyond
            the end of the window.
    """

    def __init__(
        self,
        swing_apex: float = 0.1,
        x_translation: float = 0.0,
        y_translation: float = 0.0,
        T_fly: int = 50,
    ):
        self.swing_apex = swing_apex
        self.x_translation = x_translation
        self.y_translation = y_translation
        self.T_fly = T_fly
        # per end effector: absolute lift-off step -> lift-off placement
        self._origins: Dict[str, Dict[int, pinocchio.SE3]] = {}

    def reset(self):
        self._origins.clear()

    @property
    def step_translation(self) -> np.ndarray:
        return np.array([self.x_translation, self.y_translation, 0.0])

    def swing_phases(self, window: HorizonWindow, ee_name: str) -> List[Tuple[int, int]]:
        """Window-relative [start, stop) ranges where the end effector swings."""
        phases = []
        start = None
        for k, schedule in enumerate(window.schedules):
            if not schedule.is_in_contact(ee_name):
                if start is None:
                    start = k
            elif start is not None:
                phases.append((start, k))
                start = None
        if start is not None:
            phases.append((start, len(window.schedules)))
        return phases

    def update(self, window: HorizonWindow):
        """Rewrite the pose reference of every swinging step of the window."""
        base = window.recession_count
        horizon_length = window.horizon_length

        for ee_name in window.factory.ee_names:
            origins = self._origins.setdefault(ee_name, {})
            used = set()

            for start, stop in self.swing_phases(window, ee_name):
                if start > 0:
                    abs_start = base + start
                    if abs_start not in origins:
                        origins[abs_start] = window.get_reference_pose(start - 1, ee_name)
                else:
                    # swing began before the window origin
                    earlier = [k for k in origins if k <= base]
                    if earlier:
                        abs_start = max(earlier)
                    else:
                        abs_start = base
                        origins[abs_start] = window.get_reference_pose(0, ee_name)
                used.add(abs_start)

                if stop < horizon_length:
                    abs_stop = base + stop
                else:
                    abs_stop = max(abs_start + self.T_fly, base + stop)

                origin = origins[abs_start]
                target = origin.translation + self.step_translation
                control_points = apex_control_points(origin.translation, target, self.swing_apex)
                duration = abs_stop - abs_start + 1

                for k in range(start, stop):
                    s = (base + k - abs_start + 1) / duration
                    pose = pinocchio.SE3(origin.rotation, bezier_curve(control_points, s))
                    window.set_reference_pose(k, ee_name, pose)

            for abs_start in [k for k in origins if k not in used and k < base]:
                del origins[abs_start]
