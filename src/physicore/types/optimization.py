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
Optimization and Control Types

Result types for the Cross-Entropy Method trajectory optimizer and for the
per-tick output of the hybrid controller.

Cross-Entropy Method
--------------------
    for i in 1..I:
        U_s ~ Uniform(μ - σ, μ + σ),         s = 1..S
        J_s = Σ_h q·||p_h - p*||² + r·||u_h||² + λ·σ²_h
        E   = argsort(J)[:K]
        μ, σ ← mean(U_E), std(U_E) + floor
    u* = μ[0]
"""

from typing import List

from typing_extensions import TypedDict

from .core import ControlSequence, ControlVector
from .parameters import PhysicalParams


class CEMResult(TypedDict):
    """
    Result of one receding-horizon optimization.

    Fields
    ------
    action : ControlVector
        Action to apply now, equal to sequence[0] (2,)
    sequence : ControlSequence
        Refined mean sequence, the new warm-start buffer (H, 2)
    std : ControlSequence
        Final per-step sampling spread (H, 2)
    uncertainty : float
        Mean ensemble variance at horizon step 0 over all samples of the
        final iteration
    best_costs : List[float]
        Lowest sampled cost in each iteration
    degenerate : bool
        True when every sample of the final iteration had a non-finite cost

    Examples
    --------
    >>> result = optimizer.compute_action(x0, target, params, weights)
    >>> u = result["action"]
    >>> assert result["best_costs"][-1] <= result["best_costs"][0]
    """

    action: ControlVector
    sequence: ControlSequence
    std: ControlSequence
    uncertainty: float
    best_costs: List[float]
    degenerate: bool


class ControlStepResult(TypedDict):
    """
    Output of one control tick.

    Fields
    ------
    action : ControlVector
        Action chosen for the next tick (2,)
    estimated_params : PhysicalParams
        Parameters after this tick's identification update
    prediction_error : float
        Physics-only one-step prediction error of the previous tick (0 on the
        first tick)
    uncertainty : float
        Epistemic uncertainty reported by the optimizer
    position_error : float
        Position part of the prediction residual
    velocity_error : float
        Velocity part of the prediction residual
    residual_pattern : str
        Pattern label from the residual diagnostics

    Examples
    --------
    >>> result = controller.step(measured_state)
    >>> apply(result["action"])
    """

    action: ControlVector
    estimated_params: PhysicalParams
    prediction_error: float
    uncertainty: float
    position_error: float
    velocity_error: float
    residual_pattern: str


__all__ = ["CEMResult", "ControlStepResult"]
