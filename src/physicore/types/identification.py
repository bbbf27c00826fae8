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
System Identification Types

Result types for online physical-parameter identification and residual
diagnostics.
"""

from typing import Dict

from typing_extensions import TypedDict

from .parameters import PhysicalParams


class ParameterUpdateResult(TypedDict):
    """
    Result of one online identification update.

    Fields
    ------
    params : PhysicalParams
        Parameters after the projected gradient step
    prediction_error : float
        ||x_curr - step_rk4(x_prev, u, params_before)||₂
    gradient : Dict[str, float]
        Finite-difference gradient of the error w.r.t. 'mass' and 'friction'
    learning_rate : float
        Learning rate used for this update
    regression_count : int
        Consecutive ticks whose error exceeded the previous one
    clamped : bool
        Whether the projection moved a parameter back inside its bounds

    Examples
    --------
    >>> params, result = identifier.update(x_prev, u, x_curr, params)
    >>> if result["clamped"]:
    ...     print("parameter hit its physical bound")
    """

    params: PhysicalParams
    prediction_error: float
    gradient: Dict[str, float]
    learning_rate: float
    regression_count: int
    clamped: bool


class ResidualReport(TypedDict):
    """
    Split of a one-step prediction residual.

    Fields
    ------
    position_error : float
        Euclidean error of the (x, y) prediction
    velocity_error : float
        Euclidean error of the (vx, vy) prediction
    """

    position_error: float
    velocity_error: float


__all__ = ["ParameterUpdateResult", "ResidualReport"]
