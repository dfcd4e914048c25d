# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Trajectory optimizer interface and its Crocoddyl FDDP adapter.

The MPC loop treats the nonlinear trajectory optimizer as an opaque blocking
call with a bounded iteration budget. Non-convergence is reported through
OptimizerResult.converged, never raised.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import numpy as np

from ..gait.stage import Stage

# Try to import Crocoddyl
try:
    import crocoddyl

    CROCODDYL_AVAILABLE = True
except ImportError:
    CROCODDYL_AVAILABLE = False
    crocoddyl = None


@dataclass
class OptimizerResult:
    """Container for trajectory optimizer output.

    Attributes:
        xs: State trajectory. Shape: (T + 1, nx)
        us: Control trajectory. Shape: (T, nu)
        K0: Feedback gain of the first step. Shape: (nu, ndx)
        converged: Whether the optimizer reached its stopping criterion.
        iterations: Number of optimizer iterations.
        cost: Total cost of the returned trajectory.
    """

    xs: np.ndarray
    us: np.ndarray
    K0: np.ndarray
    converged: bool
    iterations: int = 0
    cost: float = 0.0


class TrajectoryOptimizer(ABC):
    """Abstract base class for nonlinear trajectory optimizers.

    Subclasses must implement:
        - solve: Optimize the trajectory over the given stages
    """

    @abstractmethod
    def solve(
        self,
        x0: np.ndarray,
        stages: Sequence[Stage],
        terminal: Stage,
        xs: np.ndarray,
        us: np.ndarray,
        max_iterations: int,
        num_threads: int = 1,
    ) -> OptimizerResult:
        """Optimize the trajectory starting from x0.

        Args:
            x0: Initial state. Shape: (nx,)
            stages: Running stages of the horizon, len T.
            terminal: Terminal stage.
            xs: Warm-start state trajectory. Shape: (T + 1, nx)
            us: Warm-start control trajectory. Shape: (T, nu)
            max_iterations: Iteration budget.
            num_threads: Threads the optimizer may use internally.

        Returns:
            OptimizerResult holding the best iterate found.
        """
        pass

    def reset(self):
        """Drop any cached problem. Default implementation does nothing."""
        pass


class FDDPOptimizer(TrajectoryOptimizer):
    """Feasibility-driven DDP from Crocoddyl.

    One ShootingProblem is kept across calls. When the window receded by one
    slot since the previous call, the new final stage is pushed with
    ``circularAppend``; any other change of the stage list rebuilds the
    problem.

    Attributes:
        th_stop: Convergence threshold of the solver.
        mu_init: Initial regularization passed to solve().
    """

    def __init__(self, th_stop: float = 1e-4, mu_init: float = 1e-8):
        if not CROCODDYL_AVAILABLE:
            raise ImportError(
                "Crocoddyl is not available. Please install crocoddyl to use FDDPOptimizer."
            )
        self.th_stop = th_stop
        self.mu_init = mu_init
        self.problem: Optional[Any] = None
        self.solver: Optional[Any] = None
        self._models: List[Any] = []
        self._terminal: Optional[Any] = None

    def reset(self):
        self.problem = None
        self.solver = None
        self._models = []
        self._terminal = None

    def _sync_problem(self, x0: np.ndarray, stages: Sequence[Stage], terminal: Stage):
        models = [stage.model for stage in stages]
        shifted = (
            self.problem is not None
            and terminal.model is self._terminal
            and len(models) == len(self._models)
            and all(a is b for a, b in zip(models[:-1], self._models[1:]))
        )
        unchanged = (
            self.problem is not None
            and terminal.model is self._terminal
            and len(models) == len(self._models)
            and all(a is b for a, b in zip(models, self._models))
        )

        if unchanged:
            pass
        elif shifted:
            self.problem.circularAppend(stages[-1].model, stages[-1].data)
        else:
            self.problem = crocoddyl.ShootingProblem(
                x0,
                models,
                terminal.model,
                [stage.data for stage in stages],
                terminal.data,
            )
            self.solver = crocoddyl.SolverFDDP(self.problem)
            self.solver.th_stop = self.th_stop

        self._models = models
        self._terminal = terminal.model

    def solve(
        self,
        x0: np.ndarray,
        stages: Sequence[Stage],
        terminal: Stage,
        xs: np.ndarray,
        us: np.ndarray,
        max_iterations: int,
        num_threads: int = 1,
    ) -> OptimizerResult:
        self._sync_problem(x0, stages, terminal)
        self.problem.x0 = x0
        self.problem.nthreads = num_threads

        converged = self.solver.solve(
            list(xs),
            list(us),
            max_iterations,
            False,  # isFeasible
            self.mu_init,
        )

        return OptimizerResult(
            xs=np.array(self.solver.xs),
            us=np.array(self.solver.us),
            K0=np.array(self.solver.K[0]),
            converged=bool(converged),
            iterations=int(self.solver.iter),
            cost=float(self.solver.cost),
        )
