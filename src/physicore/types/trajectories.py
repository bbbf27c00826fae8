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
Trajectory and Simulation Result Types

Result types for fixed-step integration and closed-loop simulation.

Following the project design principle "Result types are TypedDict",
results are plain dictionaries with documented keys.
"""

from typing import List, Tuple

from typing_extensions import TypedDict

from .core import ArrayLike

TimeSpan = Tuple[float, float]
"""Integration interval (t_start, t_end)."""

TimePoints = ArrayLike
"""Time grid, shape (T,)."""

StateTrajectory = ArrayLike
"""State trajectory, shape (T, 6)."""


class IntegrationResult(TypedDict, total=False):
    """
    Fixed-step integration result.

    Fields
    ------
    t : TimePoints
        Time points (T,)
    x : StateTrajectory
        State trajectory (T, 6)
    success : bool
        Integration finished with finite states
    message : str
        Status message
    nfev : int
        Number of dynamics evaluations
    nsteps : int
        Number of steps taken
    integration_time : float
        Wall-clock time in seconds
    solver : str
        Integrator name

    Examples
    --------
    >>> result: IntegrationResult = integrate_rk4(f, x0, u_func, (0.0, 1.0), dt=0.01)
    >>> x_final = result["x"][-1]
    """

    t: TimePoints
    x: StateTrajectory
    success: bool
    message: str
    nfev: int
    nsteps: int
    integration_time: float
    solver: str


class ClosedLoopResult(TypedDict, total=False):
    """
    Closed-loop simulation result (plant driven by the hybrid controller).

    Fields
    ------
    t : TimePoints
        Tick times (N+1,)
    x : StateTrajectory
        Plant states (N+1, 6)
    u : ArrayLike
        Actions applied at each tick (N, 2)
    prediction_error : ArrayLike
        Controller one-step prediction error per tick (N,)
    uncertainty : ArrayLike
        Ensemble uncertainty reported per tick (N,)
    mass_estimate : ArrayLike
        Identified mass after each tick (N,)
    friction_estimate : ArrayLike
        Identified friction after each tick (N,)
    residual_patterns : List[str]
        Residual pattern label per tick
    success : bool
        All plant states stayed finite
    message : str
        Status message
    """

    t: TimePoints
    x: StateTrajectory
    u: ArrayLike
    prediction_error: ArrayLike
    uncertainty: ArrayLike
    mass_estimate: ArrayLike
    friction_estimate: ArrayLike
    residual_patterns: List[str]
    success: bool
    message: str


__all__ = [
    "TimeSpan",
    "TimePoints",
    "StateTrajectory",
    "IntegrationResult",
    "ClosedLoopResult",
]
