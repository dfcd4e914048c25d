# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Mathematical utility functions for whole-body MPC.

This module provides common mathematical operations for:
- Cubic Bezier evaluation (swing foot profiles)
- Placement and orientation errors on SE(3)
- Symmetrization of upper-triangular matrices
"""

from typing import Union

import numpy as np
import pinocchio


# =============================================================================
# Bezier Curves
# =============================================================================

def bezier_curve(control_points: np.ndarray, t: Union[float, np.ndarray]) -> np.ndarray:
    """Evaluate a cubic Bezier curve at parameter values.

    Args:
        control_points: Control points with shape (4, D) for cubic Bezier.
        t: Parameter value(s) in [0, 1], scalar or shape (N,).

    Returns:
        Curve point with shape (D,) for scalar t, else (N, D).
    """
    control_points = np.asarray(control_points)
    single = np.isscalar(t)
    t = np.clip(np.atleast_1d(np.asarray(t, dtype=float)), 0.0, 1.0)

    # Cubic Bezier: B(t) = (1-t)³P₀ + 3(1-t)²tP₁ + 3(1-t)t²P₂ + t³P₃
    one_minus_t = 1 - t

    b0 = one_minus_t ** 3
    b1 = 3 * (one_minus_t ** 2) * t
    b2 = 3 * one_minus_t * (t ** 2)
    b3 = t ** 3

    result = (
        np.outer(b0, control_points[0])
        + np.outer(b1, control_points[1])
        + np.outer(b2, control_points[2])
        + np.outer(b3, control_points[3])
    )

    if single:
        return result[0]
    return result


def apex_control_points(start: np.ndarray, end: np.ndarray, apex_height: float) -> np.ndarray:
    """Control points of a swing arc peaking at apex_height above the segment.

    P1 and P2 share the height h; the curve then peaks at t=0.5 with
    height 3/4 h, hence h = 4/3 apex_height.

    Args:
        start: Lift-off position, shape (3,).
        end: Landing position, shape (3,).
        apex_height: Height of the peak above the start/end segment.

    Returns:
        Control points with shape (4, 3).
    """
    start = np.asarray(start, dtype=float)
    end = np.asarray(end, dtype=float)
    step_vector = end - start
    height_offset = np.array([0.0, 0.0, apex_height * 4.0 / 3.0])

    return np.array([
        start,
        start + step_vector / 3.0 + height_offset,
        start + 2.0 * step_vector / 3.0 + height_offset,
        end,
    ])


# =============================================================================
# SE(3) Errors
# =============================================================================

def placement_error(reference: pinocchio.SE3, current: pinocchio.SE3) -> np.ndarray:
    """Translation and rotation error of a frame placement.

    Returns:
        Shape (6,): ``reference.t - current.t`` then ``-log3(R_ref^T R)``.
    """
    error = np.zeros(6)
    error[:3] = reference.translation - current.translation
    error[3:] = -pinocchio.log3(reference.rotation.T @ current.rotation)
    return error


def orientation_error(rotation: np.ndarray) -> np.ndarray:
    """Error of a frame orientation with respect to the identity, -log3(R)."""
    return -pinocchio.log3(rotation)


def symmetrize_upper(matrix: np.ndarray) -> np.ndarray:
    """Fill the strict lower triangle of a matrix from its upper triangle, in place."""
    lower = np.tril_indices_from(matrix, k=-1)
    matrix[lower] = matrix.T[lower]
    return matrix
