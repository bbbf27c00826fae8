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
Online System Identification

Keeps the analytical model's mass and friction tracking the real plant by
single-step, first-order gradient descent on the one-step prediction error.

Algorithm (one call per control tick)
-------------------------------------
    x̂      = RK4(x_prev, u; p)
    e      = ||x_curr - x̂||₂

    Adaptive learning rate:
        e > e_last : count += 1; if count > patience: lr *= decay
        otherwise  : count  = 0; lr = min(lr0, lr * growth)

    Forward differences (ε = 1e-3):
        ∂e/∂m ≈ (e(m + ε) - e) / ε
        ∂e/∂μ ≈ (e(μ + ε) - e) / ε

    Projected step:
        m ← clip(m - lr·∂e/∂m, [0.1, 5.0])
        μ ← clip(μ - lr·∂e/∂μ, [0.0, 1.0])

    e_last ← e

Each update costs three RK4 steps, independent of history length. This
trades the statistical efficiency of a Kalman filter or batch least squares
for a fixed, tiny per-tick cost. Projection is unconditional: it is what
keeps the dynamics well posed (mass stays positive).
"""

import math
from typing import Optional, Tuple

import numpy as np

from physicore.config import DEFAULT_DT, IdentifierConfig
from physicore.systems.point_mass import step_rk4
from physicore.types.core import ControlVector, StateVector
from physicore.types.identification import ParameterUpdateResult
from physicore.types.parameters import PhysicalParams, project


class OnlineSystemIdentifier:
    """
    Projected finite-difference gradient descent on mass and friction.

    Attributes
    ----------
    config : IdentifierConfig
        Learning-rate schedule, perturbation size and bounds
    dt : float
        Step used for the one-step prediction
    learning_rate : float
        Current adaptive learning rate
    regression_count : int
        Consecutive updates whose error exceeded the previous one
    last_error : float
        Prediction error of the previous update (inf before the first one)

    Examples
    --------
    >>> identifier = OnlineSystemIdentifier()
    >>> params = PhysicalParams()
    >>> for x_prev, u, x_curr in transitions:
    ...     params, info = identifier.update(x_prev, u, x_curr, params)
    >>> print(f"mass ≈ {params.mass:.3f}, friction ≈ {params.friction:.3f}")
    """

    def __init__(self, config: Optional[IdentifierConfig] = None, dt: float = DEFAULT_DT):
        self.config = config or IdentifierConfig()
        self.dt = dt
        self.reset()

    def reset(self) -> None:
        """Restore the initial learning rate and forget the error history."""
        self.learning_rate = self.config.initial_learning_rate
        self.regression_count = 0
        self.last_error = math.inf

    def prediction_error(
        self, x_prev: StateVector, u: ControlVector, x_curr: StateVector, params: PhysicalParams
    ) -> float:
        """||x_curr - step_rk4(x_prev, u, params)||₂"""
        x_pred = step_rk4(x_prev, u, params, self.dt)
        return float(np.linalg.norm(np.asarray(x_curr, dtype=np.float64) - x_pred))

    def _adapt_learning_rate(self, error: float) -> None:
        cfg = self.config
        if error > self.last_error:
            self.regression_count += 1
            if self.regression_count > cfg.patience:
                self.learning_rate *= cfg.decay
        else:
            self.regression_count = 0
            self.learning_rate = min(cfg.initial_learning_rate, self.learning_rate * cfg.growth)

    def update(
        self,
        x_prev: StateVector,
        u: ControlVector,
        x_curr: StateVector,
        params: PhysicalParams,
    ) -> Tuple[PhysicalParams, ParameterUpdateResult]:
        """
        Run one identification step.

        Parameters
        ----------
        x_prev : StateVector
            State measured at the previous tick
        u : ControlVector
            Action applied between the two measurements
        x_curr : StateVector
            State measured now
        params : PhysicalParams
            Current parameter estimate (not modified)

        Returns
        -------
        params : PhysicalParams
            New estimate with mass and friction inside their bounds
        result : ParameterUpdateResult
            Error, gradient and learning-rate diagnostics

        Notes
        -----
        Non-finite gradients (e.g. from a non-finite measurement) are treated
        as zero so the estimate holds still instead of failing the tick.
        """
        cfg = self.config
        eps = cfg.epsilon

        error = self.prediction_error(x_prev, u, x_curr, params)
        self._adapt_learning_rate(error)
        lr = self.learning_rate

        err_mass = self.prediction_error(x_prev, u, x_curr, params.replace(mass=params.mass + eps))
        err_friction = self.prediction_error(
            x_prev, u, x_curr, params.replace(friction=params.friction + eps)
        )
        grad_mass = (err_mass - error) / eps
        grad_friction = (err_friction - error) / eps
        if not math.isfinite(grad_mass):
            grad_mass = 0.0
        if not math.isfinite(grad_friction):
            grad_friction = 0.0

        raw_mass = params.mass - lr * grad_mass
        raw_friction = params.friction - lr * grad_friction
        new_mass = project(raw_mass, cfg.mass_bounds)
        new_friction = project(raw_friction, cfg.friction_bounds)

        self.last_error = error

        new_params = params.replace(mass=new_mass, friction=new_friction)
        result: ParameterUpdateResult = {
            "params": new_params,
            "prediction_error": error,
            "gradient": {"mass": grad_mass, "friction": grad_friction},
            "learning_rate": lr,
            "regression_count": self.regression_count,
            "clamped": new_mass != raw_mass or new_friction != raw_friction,
        }
        return new_params, result


__all__ = ["OnlineSystemIdentifier"]
