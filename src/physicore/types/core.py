# Copyright (C) 2025 Gil Benezer
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Core Types - Fundamental Building Blocks

Defines the basic array aliases used throughout the controller:
- Semantic vector types (state, control, residual)
- Batched variants used by the sampling-based optimizer
- Function signatures for dynamics

The point-mass state is always laid out as::

    [x, y, vx, vy, theta, omega]

and the control input as::

    [fx, fy]

Arrays are float64 NumPy arrays. Batched arrays carry the batch on the
leading axis, e.g. ``(S, 6)`` for ``S`` rolled-out samples.

Usage
-----
>>> from physicore.types.core import StateVector, ControlVector
>>>
>>> def accel(x: StateVector, u: ControlVector, mass: float) -> ControlVector:
...     return u / mass
"""

from typing import TYPE_CHECKING, Callable, Tuple, Union

import numpy as np

if TYPE_CHECKING:
    import torch


# ============================================================================
# Dimensions
# ============================================================================

STATE_DIM = 6
"""Number of state components: position (2), velocity (2), angle, angular rate."""

CONTROL_DIM = 2
"""Number of control components: force along x and y."""


# ============================================================================
# Basic Array Types
# ============================================================================

ArrayLike = Union[np.ndarray, "torch.Tensor"]
"""
Array-like type accepted at module boundaries.

NumPy is the working representation; torch tensors only appear inside the
learned residual model.
"""

ScalarLike = Union[float, int, np.number]
"""Scalar value (time step, learning rate, cost)."""


# ============================================================================
# Vector Types - Semantic Naming by Role
# ============================================================================

StateVector = np.ndarray
"""
State vector x = [x, y, vx, vy, theta, omega], shape (6,).

Examples
--------
>>> x: StateVector = np.array([0.0, 0.0, 1.0, 0.0, 0.0, 0.0])
"""

ControlVector = np.ndarray
"""
Control vector u = [fx, fy], shape (2,).

Examples
--------
>>> u: ControlVector = np.array([1.0, -0.5])
"""

ResidualVector = np.ndarray
"""
Residual between an observed transition and the physics prediction, shape (6,).

    r = x_actual[k+1] - x_physics[k+1]
"""

StateBatch = np.ndarray
"""Batch of states, shape (S, 6)."""

ControlBatch = np.ndarray
"""Batch of controls, shape (S, 2)."""

ControlSequence = np.ndarray
"""
Sequence of controls over a horizon, shape (H, 2).

A batch of candidate sequences has shape (S, H, 2).
"""

TargetPosition = Tuple[float, float]
"""Target position (x, y) the controller drives toward."""


# ============================================================================
# Function Signatures
# ============================================================================

DynamicsFunction = Callable[[StateVector, ControlVector], StateVector]
"""
Continuous-time dynamics dx/dt = f(x, u) with parameters already bound.

Examples
--------
>>> from functools import partial
>>> f: DynamicsFunction = partial(derivative, params=PhysicalParams())
>>> dxdt = f(x, u)
"""


def as_state(x, batched: bool = False) -> StateVector:
    """
    Convert input to a float64 state array and check its trailing dimension.

    Raises
    ------
    ValueError
        If the last axis does not hold STATE_DIM values
    """
    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim == 0 or arr.shape[-1] != STATE_DIM or (not batched and arr.ndim != 1):
        raise ValueError(f"Expected state with {STATE_DIM} components, got shape {arr.shape}")
    return arr


def as_control(u, batched: bool = False) -> ControlVector:
    """
    Convert input to a float64 control array and check its trailing dimension.

    Raises
    ------
    ValueError
        If the last axis does not hold CONTROL_DIM values
    """
    arr = np.asarray(u, dtype=np.float64)
    if arr.ndim == 0 or arr.shape[-1] != CONTROL_DIM or (not batched and arr.ndim != 1):
        raise ValueError(f"Expected control with {CONTROL_DIM} components, got shape {arr.shape}")
    return arr


__all__ = [
    "STATE_DIM",
    "CONTROL_DIM",
    "ArrayLike",
    "ScalarLike",
    "StateVector",
    "ControlVector",
    "ResidualVector",
    "StateBatch",
    "ControlBatch",
    "ControlSequence",
    "TargetPosition",
    "DynamicsFunction",
    "as_state",
    "as_control",
]
