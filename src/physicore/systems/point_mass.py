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
Point-Mass Dynamics

Analytical model of an actuated planar point mass with linear velocity
damping and constant gravity.

Equations of Motion
-------------------
State  x = [px, py, vx, vy, θ, ω]
Input  u = [fx, fy]

    dpx/dt = vx
    dpy/dt = vy
    dvx/dt = fx/m - μ·vx
    dvy/dt = fy/m - μ·vy + g
    dθ/dt  = ω
    dω/dt  = 0

Every function here is pure: no internal state, no in-place mutation, and
repeated calls with the same inputs return bit-identical arrays. Inputs may
carry a leading batch axis.

The mass is never guarded here. Non-positive mass is excluded upstream by
the identifier's bound projection.
"""

from functools import partial

import numpy as np

from physicore.config import DEFAULT_DT
from physicore.systems.numerical_integration.fixed_step_integrators import rk4_step
from physicore.types.core import ControlVector, DynamicsFunction, ScalarLike, StateVector
from physicore.types.parameters import PhysicalParams


def derivative(x: StateVector, u: ControlVector, params: PhysicalParams) -> StateVector:
    """
    Evaluate the state derivative dx/dt = f(x, u; params).

    Parameters
    ----------
    x : StateVector
        State (6,) or batch (S, 6)
    u : ControlVector
        Force (2,) or batch (S, 2)
    params : PhysicalParams
        Model parameters

    Returns
    -------
    StateVector
        [vx, vy, ax, ay, ω, 0], broadcast over any batch axis

    Examples
    --------
    >>> derivative(np.zeros(6), np.array([2.0, 0.0]), PhysicalParams(mass=2.0))
    array([0. , 0. , 1. , 0.5, 0. , 0. ])
    """
    x = np.asarray(x, dtype=np.float64)
    u = np.asarray(u, dtype=np.float64)

    vx = x[..., 2]
    vy = x[..., 3]
    omega = x[..., 5]

    ax = u[..., 0] / params.mass - params.friction * vx
    ay = u[..., 1] / params.mass - params.friction * vy + params.gravity

    vx, vy, ax, ay, omega = np.broadcast_arrays(vx, vy, ax, ay, omega)
    return np.stack([vx, vy, ax, ay, omega, np.zeros_like(omega)], axis=-1)


def dynamics_for(params: PhysicalParams) -> DynamicsFunction:
    """Bind parameters, returning f(x, u) for use with generic integrators."""
    return partial(derivative, params=params)


def step_rk4(
    x: StateVector, u: ControlVector, params: PhysicalParams, dt: ScalarLike = DEFAULT_DT
) -> StateVector:
    """
    Advance the point mass by one RK4 step with constant force.

    Parameters
    ----------
    x : StateVector
        Current state (6,) or batch (S, 6)
    u : ControlVector
        Force held over the step (2,) or (S, 2)
    params : PhysicalParams
        Model parameters
    dt : float
        Step size (default 1/60 s)

    Returns
    -------
    StateVector
        Next state, a new array
    """
    return rk4_step(dynamics_for(params), np.asarray(x, dtype=np.float64), u, dt)


def control_jacobian(
    x: StateVector,
    u: ControlVector,
    params: PhysicalParams,
    dt: ScalarLike = DEFAULT_DT,
    eps: float = 1e-4,
) -> np.ndarray:
    """
    Sensitivity of one RK4 step to the control, ∂x[k+1]/∂u[k].

    Central differences around ``u``.

    Returns
    -------
    np.ndarray
        Input matrix B_d of shape (6, 2)

    Examples
    --------
    >>> B = control_jacobian(np.zeros(6), np.zeros(2), PhysicalParams(friction=0.0))
    >>> np.isclose(B[2, 0], (1 / 60) / 1.0)
    True
    """
    u = np.asarray(u, dtype=np.float64)
    columns = []
    for i in range(u.shape[-1]):
        delta = np.zeros_like(u)
        delta[..., i] = eps
        x_plus = step_rk4(x, u + delta, params, dt)
        x_minus = step_rk4(x, u - delta, params, dt)
        columns.append((x_plus - x_minus) / (2 * eps))
    return np.stack(columns, axis=-1)


__all__ = ["derivative", "dynamics_for", "step_rk4", "control_jacobian"]
