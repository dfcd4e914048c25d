# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Persistent dense QP on top of OSQP with a fixed sparsity pattern.

Problem form:
    min  1/2 x^T H x + g^T x
    s.t. A x = b
         l <= C x <= u
         l_box <= x <= u_box      (optional)

OSQP works on a single stacked constraint matrix [A; C; I] with bounds
[b, l, l_box] and [b, u, u_box]. The non-zero pattern of H (upper triangle)
and of the stacked matrix is fixed at construction; every update only
refreshes numeric values, gathered in place from the dense matrices into
the CSC data arrays.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import osqp
from scipy import sparse

from ..exceptions import SettingsMismatch

logger = logging.getLogger(__name__)

# Statuses whose iterate is returned as is
ACCEPTED_STATUSES = ("solved", "solved inaccurate")


@dataclass
class QPResult:
    """Container for QP solver output.

    Attributes:
        x: Primal solution, shape (n,). The warm start when degraded. The
            array is the solver's buffer, overwritten by the next solve.
        status: OSQP status string.
        iterations: Number of ADMM iterations.
        converged: True if the status is "solved".
        degraded: True if the solver iterate was discarded.
    """

    x: np.ndarray
    status: str
    iterations: int
    converged: bool
    degraded: bool = False


def _csc_pattern(mask: np.ndarray):
    """CSC matrix of ones on ``mask`` plus the flat (row-major) index of each entry."""
    pattern = sparse.csc_matrix(np.asarray(mask, dtype=bool).astype(float))
    pattern.sort_indices()
    cols = np.repeat(np.arange(pattern.shape[1]), np.diff(pattern.indptr))
    flat = pattern.indices * pattern.shape[1] + cols
    return pattern, flat


class DenseQP:
    """Dense QP with fixed dimensions, updated in place and solved by OSQP.

    Attributes:
        n: Number of decision variables.
        n_eq: Number of equality rows.
        n_in: Number of inequality rows.
        box: True if box bounds on x are enforced.
    """

    def __init__(
        self,
        n: int,
        n_eq: int,
        n_in: int,
        box: bool = False,
        hessian_pattern: Optional[np.ndarray] = None,
        eq_pattern: Optional[np.ndarray] = None,
        in_pattern: Optional[np.ndarray] = None,
        eps_abs: float = 1e-3,
        eps_rel: float = 0.0,
        max_iter: int = 50,
        verbose: bool = False,
    ):
        """Build the fixed sparsity pattern and the value buffers.

        Args:
            n: Number of decision variables.
            n_eq: Number of equality rows.
            n_in: Number of inequality rows.
            box: Enforce l_box <= x <= u_box.
            hessian_pattern: Boolean (n, n) mask of structural non-zeros of H.
                Dense if None. The diagonal is always included.
            eq_pattern: Boolean (n_eq, n) mask of A. Dense if None.
            in_pattern: Boolean (n_in, n) mask of C. Dense if None.
            eps_abs: Absolute tolerance.
            eps_rel: Relative tolerance.
            max_iter: Iteration budget per solve.
            verbose: Print solver output.
        """
        self.n = n
        self.n_eq = n_eq
        self.n_in = n_in
        self.box = box
        self.n_box = n if box else 0
        self.m = n_eq + n_in + self.n_box
        self.eps_abs = eps_abs
        self.eps_rel = eps_rel
        self.max_iter = max_iter
        self.verbose = verbose

        h_mask = np.ones((n, n), dtype=bool) if hessian_pattern is None else np.asarray(hessian_pattern, dtype=bool)
        eq_mask = np.ones((n_eq, n), dtype=bool) if eq_pattern is None else np.asarray(eq_pattern, dtype=bool)
        in_mask = np.ones((n_in, n), dtype=bool) if in_pattern is None else np.asarray(in_pattern, dtype=bool)
        if h_mask.shape != (n, n) or eq_mask.shape != (n_eq, n) or in_mask.shape != (n_in, n):
            raise SettingsMismatch(
                f"QP patterns have shapes {h_mask.shape}, {eq_mask.shape}, {in_mask.shape}; "
                f"expected {(n, n)}, {(n_eq, n)}, {(n_in, n)}"
            )

        # Upper triangle of H, diagonal always present
        p_mask = np.triu(h_mask | h_mask.T) | np.eye(n, dtype=bool)
        self._P, self._P_flat = _csc_pattern(p_mask)
        a_mask = np.vstack([eq_mask, in_mask, np.eye(self.n_box, n, dtype=bool)])
        self._A, self._A_flat = _csc_pattern(a_mask)

        self._Px = np.zeros(self._P.nnz)
        self._Ax = np.zeros(self._A.nnz)
        self._A_dense = np.zeros((self.m, n))
        self._A_dense[n_eq + n_in:] = np.eye(self.n_box, n)
        self._q = np.zeros(n)
        self._l = np.full(self.m, -np.inf)
        self._u = np.full(self.m, np.inf)
        self._x = np.zeros(n)
        self._x_warm = np.zeros(n)

        self._solver = None

    @property
    def is_initialized(self) -> bool:
        return self._solver is not None

    def init(
        self,
        H: np.ndarray,
        g: np.ndarray,
        A: np.ndarray,
        b: np.ndarray,
        C: np.ndarray,
        l: np.ndarray,
        u: np.ndarray,
        l_box: Optional[np.ndarray] = None,
        u_box: Optional[np.ndarray] = None,
    ):
        """Set up the OSQP workspace and load the first problem values."""
        # Setup on a diagonally dominant H with the final pattern, values follow
        P = self._P.copy()
        P.data[:] = np.where(self._P_flat % (self.n + 1) == 0, float(self.n), 1.0)
        self._solver = osqp.OSQP()
        self._solver.setup(
            P=P,
            q=self._q,
            A=self._A.copy(),
            l=self._l,
            u=self._u,
            verbose=self.verbose,
            eps_abs=self.eps_abs,
            eps_rel=self.eps_rel,
            max_iter=self.max_iter,
        )
        self.update(H, g, A, b, C, l, u, l_box, u_box)

    def update(
        self,
        H: Optional[np.ndarray] = None,
        g: Optional[np.ndarray] = None,
        A: Optional[np.ndarray] = None,
        b: Optional[np.ndarray] = None,
        C: Optional[np.ndarray] = None,
        l: Optional[np.ndarray] = None,
        u: Optional[np.ndarray] = None,
        l_box: Optional[np.ndarray] = None,
        u_box: Optional[np.ndarray] = None,
    ):
        """Refresh the given problem values in place. Patterns are unchanged."""
        if self._solver is None:
            raise SettingsMismatch("DenseQP.update() called before init()")
        n_eq, n_in = self.n_eq, self.n_in
        kwargs = {}

        if H is not None:
            np.take(H, self._P_flat, out=self._Px)
            kwargs["Px"] = self._Px
        if g is not None:
            self._q[:] = g
            kwargs["q"] = self._q
        if A is not None or C is not None:
            if A is not None:
                self._A_dense[:n_eq] = A
            if C is not None:
                self._A_dense[n_eq:n_eq + n_in] = C
            np.take(self._A_dense, self._A_flat, out=self._Ax)
            kwargs["Ax"] = self._Ax
        if b is not None or l is not None or u is not None or l_box is not None or u_box is not None:
            if b is not None:
                self._l[:n_eq] = b
                self._u[:n_eq] = b
            if l is not None:
                self._l[n_eq:n_eq + n_in] = l
            if u is not None:
                self._u[n_eq:n_eq + n_in] = u
            if self.box and l_box is not None:
                self._l[n_eq + n_in:] = l_box
            if self.box and u_box is not None:
                self._u[n_eq + n_in:] = u_box
            kwargs["l"] = self._l
            kwargs["u"] = self._u

        if kwargs:
            self._solver.update(**kwargs)

    def warm_start(self, x: np.ndarray):
        """Set the initial iterate, also used as the fallback of a degraded solve."""
        self._x_warm[:] = x
        self._solver.warm_start(x=self._x_warm)

    def solve(self) -> QPResult:
        """Solve with the configured iteration budget.

        Never raises on non-convergence. An infeasible, unsolved or
        non-finite outcome returns the last warm start instead of the solver
        iterate, which diverges on infeasible problems.
        """
        result = self._solver.solve(raise_error=False)
        status = str(result.info.status)
        x = result.x
        degraded = (
            status not in ACCEPTED_STATUSES
            or x is None
            or not np.all(np.isfinite(x))
        )
        if degraded:
            logger.warning(f"QP status '{status}', falling back to the warm start")
            self._x[:] = self._x_warm
        else:
            self._x[:] = x
        return QPResult(
            x=self._x,
            status=status,
            iterations=int(result.info.iter),
            converged=status == "solved",
            degraded=degraded,
        )
