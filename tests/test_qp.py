# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests for the persistent dense QP wrapper."""

import logging

import numpy as np
import pytest

from whole_body_mpc.controllers.qp import DenseQP
from whole_body_mpc.exceptions import SettingsMismatch


def _qp(**kwargs):
    return DenseQP(3, 1, 1, box=True, eps_abs=1e-8, eps_rel=0.0, max_iter=10000, **kwargs)


def test_solves_equality_inequality_and_box():
    qp = _qp()
    H = np.eye(3)
    g = np.array([-1.0, -2.0, 0.0])
    A = np.array([[1.0, 1.0, 0.0]])
    C = np.array([[0.0, 0.0, 1.0]])
    qp.init(H, g, A, np.array([1.0]), C, np.array([0.5]), np.array([np.inf]),
            np.full(3, -10.0), np.full(3, 10.0))

    result = qp.solve()

    assert result.converged
    np.testing.assert_allclose(result.x, [0.0, 1.0, 0.5], atol=1e-5)
    assert not result.degraded


def test_update_refreshes_values_in_place():
    qp = _qp()
    qp.init(np.eye(3), np.zeros(3), np.array([[1.0, 1.0, 0.0]]), np.array([1.0]),
            np.array([[0.0, 0.0, 1.0]]), np.array([-np.inf]), np.array([np.inf]),
            np.full(3, -10.0), np.full(3, 10.0))
    np.testing.assert_allclose(qp.solve().x, [0.5, 0.5, 0.0], atol=1e-5)

    qp.update(b=np.array([2.0]), u_box=np.array([0.5, 10.0, 10.0]))
    np.testing.assert_allclose(qp.solve().x, [0.5, 1.5, 0.0], atol=1e-5)


def test_infeasible_problem_falls_back_to_warm_start(caplog):
    qp = _qp()
    A = np.array([[1.0, 1.0, 0.0]])
    qp.init(np.eye(3), np.zeros(3), A, np.array([0.0]), A, np.array([1.0]), np.array([np.inf]),
            np.full(3, -10.0), np.full(3, 10.0))
    qp.warm_start(np.array([0.25, -0.25, 0.0]))

    with caplog.at_level(logging.WARNING, logger="whole_body_mpc.controllers.qp"):
        result = qp.solve()

    assert result.degraded
    assert not result.converged
    assert result.status not in ("solved", "solved inaccurate")
    np.testing.assert_array_equal(result.x, [0.25, -0.25, 0.0])
    assert "falling back to the warm start" in caplog.text


def test_sparsity_pattern_is_fixed():
    eq_pattern = np.array([[True, True, False]])
    in_pattern = np.array([[False, False, True]])
    qp = _qp(hessian_pattern=np.eye(3, dtype=bool), eq_pattern=eq_pattern, in_pattern=in_pattern)
    assert qp._P.nnz == 3
    assert qp._A.nnz == 2 + 1 + 3


def test_update_before_init_raises():
    with pytest.raises(SettingsMismatch):
        _qp().update(g=np.zeros(3))


def test_pattern_shape_mismatch_raises():
    with pytest.raises(SettingsMismatch):
        DenseQP(3, 1, 1, eq_pattern=np.ones((2, 3), dtype=bool))
