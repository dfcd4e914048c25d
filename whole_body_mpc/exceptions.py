# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Errors raised by the horizon, MPC loop and allocators.

All of them are precondition failures detected synchronously, before any
state is mutated. Solver non-convergence is never reported through these.
"""


class MPCError(Exception):
    """Base class for every error raised by whole_body_mpc."""


class InvalidLength(MPCError, ValueError):
    """A sequence is shorter than required (e.g. fewer schedules than T)."""


class IndexOutOfRange(MPCError, IndexError):
    """A horizon step index falls outside [0, T)."""


class UnknownEndEffector(MPCError, KeyError):
    """An end-effector name is not among the configured contacts."""

    def __str__(self):
        # KeyError quotes its argument, keep the plain message instead
        return str(self.args[0]) if self.args else ""


class SettingsMismatch(MPCError, ValueError):
    """Dimension or size inconsistency detected at initialization."""


class HorizonExhausted(MPCError, RuntimeError):
    """No further schedule is available to append on recession."""
