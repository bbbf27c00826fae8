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
Fixed-Step Integrators

Classic fixed time-step Runge-Kutta integration for dynamics of the form
dx/dt = f(x, u), with the control held constant over each step.

The functions are stateless and work on single states (nx,) as well as on
batches (S, nx), which is what the sampling optimizer relies on to roll out
every candidate sequence at once.
"""

import time
from typing import Callable, Optional

import numpy as np

from physicore.types.core import ControlVector, DynamicsFunction, ScalarLike, StateVector
from physicore.types.trajectories import IntegrationResult, TimePoints, TimeSpan


def rk4_step(
    f: DynamicsFunction, x: StateVector, u: ControlVector, dt: ScalarLike
) -> StateVector:
    """
    Take one classic 4th-order Runge-Kutta step.

    Algorithm:
        k1 = f(x_k, u_k)
        k2 = f(x_k + 0.5*dt*k1, u_k)
        k3 = f(x_k + 0.5*dt*k2, u_k)
        k4 = f(x_k + dt*k3, u_k)
        x_{k+1} = x_k + (dt/6) * (k1 + 2*k2 + 2*k3 + k4)

    Parameters
    ----------
    f : DynamicsFunction
        Dynamics (x, u) → dx/dt
    x : StateVector
        Current state (nx,) or batch (S, nx)
    u : ControlVector
        Control, constant over the step
    dt : float
        Step size

    Returns
    -------
    StateVector
        New array holding the state after one step; ``x`` is left untouched
    """
    k1 = f(x, u)
    k2 = f(x + 0.5 * dt * k1, u)
    k3 = f(x + 0.5 * dt * k2, u)
    k4 = f(x + dt * k3, u)

    return x + (dt / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)


def integrate_rk4(
    f: DynamicsFunction,
    x0: StateVector,
    u_func: Callable[[float, StateVector], ControlVector],
    t_span: TimeSpan,
    dt: ScalarLike,
    t_eval: Optional[TimePoints] = None,
) -> IntegrationResult:
    """
    Integrate over an interval using fixed RK4 steps.

    Parameters
    ----------
    f : DynamicsFunction
        Dynamics (x, u) → dx/dt
    x0 : StateVector
        Initial state (nx,)
    u_func : Callable
        Control policy (t, x) → u, evaluated once per step
    t_span : Tuple[float, float]
        Integration interval (t_start, t_end)
    dt : float
        Nominal step size
    t_eval : Optional[ArrayLike]
        Time grid (if None, uses a uniform grid with spacing ≤ dt)

    Returns
    -------
    IntegrationResult
        TypedDict containing trajectory and diagnostics

    Examples
    --------
    >>> result = integrate_rk4(
    ...     f, x0=np.zeros(6), u_func=lambda t, x: np.array([1.0, 0.0]),
    ...     t_span=(0.0, 1.0), dt=1 / 60,
    ... )
    >>> print(f"Final: {result['x'][-1]}")
    """
    start_time = time.time()

    t0, tf = t_span
    if tf < t0:
        raise ValueError(f"t_span must be increasing, got {t_span}")

    if t_eval is None:
        num_steps = max(1, int(np.ceil((tf - t0) / dt)))
        t_eval = np.linspace(t0, tf, num_steps + 1)
    t_points = np.asarray(t_eval, dtype=np.float64)

    trajectory = [np.asarray(x0, dtype=np.float64)]
    x = trajectory[0]

    for i in range(len(t_points) - 1):
        t = float(t_points[i])
        dt_step = float(t_points[i + 1] - t_points[i])
        u = u_func(t, x)
        x = rk4_step(f, x, u, dt_step)
        trajectory.append(x)

    x_traj = np.stack(trajectory)
    success = bool(np.all(np.isfinite(x_traj)))
    nsteps = len(t_points) - 1

    result: IntegrationResult = {
        "t": t_points,
        "x": x_traj,
        "success": success,
        "message": "RK4 integration completed" if success else "Non-finite state encountered",
        "nfev": 4 * nsteps,
        "nsteps": nsteps,
        "integration_time": time.time() - start_time,
        "solver": "RK4 (Classic)",
    }

    return result


__all__ = ["rk4_step", "integrate_rk4"]
