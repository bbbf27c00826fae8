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
Cross-Entropy Method Model Predictive Control

Receding-horizon action selection by sampling control sequences, rolling
them out through the hybrid model (analytical RK4 step + learned residual
mean) and refitting the sampling distribution to the lowest-cost
candidates.

Cost of one candidate sequence u_0..u_{H-1}
-------------------------------------------
    x_{h+1} = RK4(x_h, u_h; p) + μ_ens(x_h, u_h)

    J = Σ_h  q·||pos(x_{h+1}) - target||²  +  r·||u_h||²  +  λ·σ²_ens(x_h, u_h)

The variance term steers the optimizer away from regions the residual
ensemble has not seen.

Why CEM
-------
The learned residual is piecewise linear (ReLU), so the cost is not reliably
differentiable online. CEM only needs cost evaluations, tolerates
non-convexity, and its rollouts are independent of each other. Here they are
evaluated as one vectorized batch over samples (map) followed by a sort and
elite selection (reduce).

Warm start
----------
The refined mean sequence is kept between ticks. At the next tick it is
shifted left by one step and padded with a zero action before being used as
the initial sampling mean, which damps chattering between ticks.
"""

import math
import warnings
from typing import Optional, Tuple

import numpy as np

from physicore.config import DEFAULT_DT, OptimizerConfig
from physicore.exceptions import NumericDegeneracyWarning
from physicore.learning.ensemble import EnsembleResidualModel
from physicore.systems.point_mass import step_rk4
from physicore.types.core import CONTROL_DIM, STATE_DIM, ControlSequence, StateVector, TargetPosition
from physicore.types.optimization import CEMResult
from physicore.types.parameters import CostWeights, PhysicalParams


class CEMTrajectoryOptimizer:
    """
    Sampling-based trajectory optimizer with a warm-start buffer.

    The warm-start buffer is the only state kept between calls. It always
    holds exactly ``horizon`` actions.

    Attributes
    ----------
    config : OptimizerConfig
        Horizon, sample and elite counts, sampling spread, uncertainty penalty
    learner : Optional[EnsembleResidualModel]
        Residual model queried during rollouts (physics only if None)
    dt : float
        Rollout step size

    Examples
    --------
    >>> optimizer = CEMTrajectoryOptimizer(OptimizerConfig(), learner=ensemble, seed=0)
    >>> result = optimizer.compute_action(x0, (400.0, 300.0), params, CostWeights())
    >>> u = result["action"]
    >>> np.array_equal(optimizer.warm_start[0], u)
    True
    """

    def __init__(
        self,
        config: Optional[OptimizerConfig] = None,
        learner: Optional[EnsembleResidualModel] = None,
        dt: float = DEFAULT_DT,
        seed: int = 0,
    ):
        self.config = config or OptimizerConfig()
        self.learner = learner
        self.dt = dt
        self.seed = seed
        self.reset()

    # ========================================================================
    # Warm-start buffer
    # ========================================================================

    def reset(self) -> None:
        """Clear the warm-start buffer to zero actions and re-seed sampling."""
        self._warm_start = np.zeros((self.config.horizon, CONTROL_DIM))
        self._rng = np.random.default_rng(self.seed)

    @property
    def warm_start(self) -> ControlSequence:
        """Copy of the warm-start buffer (H, 2)."""
        return self._warm_start.copy()

    def load_warm_start(self, sequence: ControlSequence) -> None:
        """
        Replace the warm-start buffer.

        Raises
        ------
        ValueError
            If the sequence is not shaped (horizon, 2)
        """
        sequence = np.asarray(sequence, dtype=np.float64)
        expected = (self.config.horizon, CONTROL_DIM)
        if sequence.shape != expected:
            raise ValueError(f"Warm start must have shape {expected}, got {sequence.shape}")
        self._warm_start = sequence.copy()

    def shifted_warm_start(self) -> ControlSequence:
        """Buffer shifted left by one step with a zero action appended."""
        return np.vstack([self._warm_start[1:], np.zeros((1, CONTROL_DIM))])

    # ========================================================================
    # Rollout
    # ========================================================================

    def rollout_costs(
        self,
        x0: StateVector,
        sequences: np.ndarray,
        target: TargetPosition,
        params: PhysicalParams,
        weights: CostWeights,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Roll every candidate sequence out through the hybrid model.

        Parameters
        ----------
        x0 : StateVector
            Measured start state (6,)
        sequences : np.ndarray
            Candidate control sequences (S, H, 2)
        target : Tuple[float, float]
            Target position
        params : PhysicalParams
            Analytical model parameters
        weights : CostWeights
            Tracking and effort weights

        Returns
        -------
        costs : np.ndarray
            Total cost per candidate (S,); non-finite costs are replaced by +inf
        first_step_variance : np.ndarray
            Ensemble variance at horizon step 0 per candidate (S,)
        """
        n_samples, horizon = sequences.shape[:2]
        target = np.asarray(target, dtype=np.float64)
        lam = self.config.uncertainty_penalty

        states = np.tile(np.asarray(x0, dtype=np.float64), (n_samples, 1))
        costs = np.zeros(n_samples)
        first_step_variance = np.zeros(n_samples)

        with np.errstate(over="ignore", invalid="ignore"):
            for h in range(horizon):
                actions = sequences[:, h, :]
                x_physics = step_rk4(states, actions, params, self.dt)

                if self.learner is not None:
                    residual, variance = self.learner.predict_batch(states, actions)
                else:
                    residual = np.zeros((n_samples, STATE_DIM))
                    variance = np.zeros(n_samples)

                states = x_physics + residual

                dist_sq = np.sum((states[:, :2] - target) ** 2, axis=1)
                effort_sq = np.sum(actions**2, axis=1)
                costs = costs + weights.q * dist_sq + weights.r * effort_sq + lam * variance

                if h == 0:
                    first_step_variance = variance

        costs = np.where(np.isfinite(costs), costs, np.inf)
        return costs, first_step_variance

    # ========================================================================
    # Optimization
    # ========================================================================

    def compute_action(
        self,
        x0: StateVector,
        target: TargetPosition,
        params: PhysicalParams,
        weights: CostWeights,
    ) -> CEMResult:
        """
        Choose the action to apply now.

        Parameters
        ----------
        x0 : StateVector
            Measured state (6,)
        target : Tuple[float, float]
            Target position
        params : PhysicalParams
            Current analytical model parameters
        weights : CostWeights
            Cost weights for this tick

        Returns
        -------
        CEMResult
            Action, refined sequence, uncertainty and per-iteration best costs

        Notes
        -----
        From the second iteration on, the best sequence found so far replaces
        the first sample, so the best sampled cost never increases from one
        iteration to the next.

        If every sample of the final iteration is degenerate, a
        NumericDegeneracyWarning is issued and the zero action is returned
        with a cleared warm-start buffer.
        """
        cfg = self.config
        shape = (cfg.samples, cfg.horizon, CONTROL_DIM)

        mean = self.shifted_warm_start()
        std = np.full((cfg.horizon, CONTROL_DIM), cfg.init_std)

        best_sequence = None
        best_cost = math.inf
        best_costs = []
        costs = np.full(cfg.samples, np.inf)
        first_step_variance = np.zeros(cfg.samples)

        for _ in range(cfg.iterations):
            candidates = mean + self._rng.uniform(-1.0, 1.0, size=shape) * std
            if best_sequence is not None:
                candidates[0] = best_sequence

            costs, first_step_variance = self.rollout_costs(x0, candidates, target, params, weights)
            if best_sequence is not None:
                # the carried sequence keeps its known cost
                costs[0] = best_cost

            order = np.argsort(costs, kind="stable")
            if costs[order[0]] <= best_cost:
                best_cost = float(costs[order[0]])
                best_sequence = candidates[order[0]].copy()
            best_costs.append(float(costs[order[0]]))

            elites = candidates[order[: cfg.elites]]
            mean = elites.mean(axis=0)
            std = elites.std(axis=0) + cfg.std_floor

        degenerate = not np.any(np.isfinite(costs))
        if degenerate:
            warnings.warn(
                "Every sampled rollout produced a non-finite cost; "
                "falling back to the zero action.",
                NumericDegeneracyWarning,
            )
            mean = np.zeros((cfg.horizon, CONTROL_DIM))

        finite_variance = first_step_variance[np.isfinite(first_step_variance)]
        uncertainty = float(finite_variance.mean()) if finite_variance.size else math.inf

        self._warm_start = mean.copy()

        result: CEMResult = {
            "action": mean[0].copy(),
            "sequence": mean.copy(),
            "std": std,
            "uncertainty": uncertainty,
            "best_costs": best_costs,
            "degenerate": degenerate,
        }
        return result


__all__ = ["CEMTrajectoryOptimizer"]
