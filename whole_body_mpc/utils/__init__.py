# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Utility functions for whole-body MPC."""

from .math_utils import (
    apex_control_points,
    bezier_curve,
    orientation_error,
    placement_error,
    symmetrize_upper,
)

__all__ = [
    "apex_control_points",
    "bezier_curve",
    "orientation_error",
    "placement_error",
    "symmetrize_upper",
]
