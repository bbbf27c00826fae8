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
Hybrid Model-Based Controller

Per-tick closed loop tying the four numerical components together::

    measured x_k ──► identification ──► residual learning ──► CEM-MPC ──► u_k
                      (mass, friction)    (ensemble SGD)      (hybrid rollouts)

Each tick, in order:

1. Predict the previous transition with physics only,
   x̂_k = RK4(x_{k-1}, u_{k-1}; p), and measure the error ||x_k - x̂_k||.
2. Update mass and friction by projected gradient descent on that error.
3. Train the residual ensemble on (x_{k-1}, u_{k-1}, x_k, x̂_k).
4. Optimize the next action with the updated parameters and ensemble.

All mutable state (physical parameters, ensemble weights, identifier
learning-rate schedule, warm-start buffer, residual history) lives on the
controller instance, so independent controllers never interfere. None of
it may be written from outside while a tick is running.
"""

import json
import math
from collections import deque
from typing import Any, Deque, Dict, Mapping, Optional

import numpy as np

from physicore.config import ControllerConfig
from physicore.control.cem_mpc import CEMTrajectoryOptimizer
from physicore.exceptions import ConfigurationError
from physicore.identification.online_system_id import OnlineSystemIdentifier
from physicore.identification.residual_diagnostics import calculate_residuals, classify_pattern
from physicore.learning.ensemble import EnsembleResidualModel
from physicore.systems.point_mass import step_rk4
from physicore.types.core import CONTROL_DIM, ControlVector, StateVector, TargetPosition, as_control, as_state
from physicore.types.optimization import ControlStepResult
from physicore.types.parameters import CostWeights, PhysicalParams

SNAPSHOT_FORMAT = "physicore-weights"
SNAPSHOT_VERSION = 1
RESIDUAL_HISTORY_LENGTH = 120


class HybridController:
    """
    Adaptive controller combining physics, online identification, a learned
    residual ensemble and CEM trajectory optimization.

    Parameters
    ----------
    config : Optional[ControllerConfig]
        Complete configuration; defaults reproduce the reference setup
        (dt = 1/60, target (400, 300), mass 1.0, friction 0.1, gravity 0.5,
        q = 1.5, r = 0.05)

    Attributes
    ----------
    params : PhysicalParams
        Current parameter estimate
    weights : CostWeights
        Cost weights used by the next optimization
    target : Tuple[float, float]
        Target position
    ensemble : EnsembleResidualModel
    identifier : OnlineSystemIdentifier
    optimizer : CEMTrajectoryOptimizer

    Examples
    --------
    >>> controller = HybridController()
    >>> u = np.zeros(2)
    >>> for x_measured in sensor_stream():
    ...     result = controller.step(x_measured, u)
    ...     u = result["action"]
    ...     display(result["prediction_error"], result["uncertainty"])
    >>>
    >>> # Advisory service proposes new weights
    >>> controller.set_cost_weights(q=2.0, r=0.1)
    >>>
    >>> # Ship calibrated model
    >>> blob = controller.export_weights()
    """

    def __init__(self, config: Optional[ControllerConfig] = None):
        self.config = config or ControllerConfig()
        cfg = self.config

        self.ensemble = EnsembleResidualModel(cfg.learner, seed=cfg.seed)
        self.identifier = OnlineSystemIdentifier(cfg.identifier, dt=cfg.dt)
        self.optimizer = CEMTrajectoryOptimizer(
            cfg.optimizer, learner=self.ensemble, dt=cfg.dt, seed=cfg.seed
        )

        self.weights = cfg.default_weights
        self.target: TargetPosition = (float(cfg.target[0]), float(cfg.target[1]))
        self._reset_state()

    def _reset_state(self) -> None:
        self.params = self.config.default_params
        self._previous_state: Optional[StateVector] = None
        self._last_action: ControlVector = np.zeros(CONTROL_DIM)
        self._residual_history: Deque[float] = deque(maxlen=RESIDUAL_HISTORY_LENGTH)

    # ========================================================================
    # External inputs
    # ========================================================================

    def set_cost_weights(self, q: float, r: float) -> None:
        """
        Replace the cost weights used from the next optimization on.

        Raises
        ------
        ConfigurationError
            If either weight is not positive and finite
        """
        self.weights = CostWeights(q=q, r=r)

    def apply_advisory(self, suggestion: Mapping[str, Any]) -> CostWeights:
        """
        Accept cost-weight tweaks from the advisory service.

        Parameters
        ----------
        suggestion : Mapping
            ``{"q_weight": float, "r_weight": float}``

        Returns
        -------
        CostWeights
            The weights now in effect
        """
        self.weights = CostWeights.from_advisory(suggestion)
        return self.weights

    def set_target(self, x: float, y: float) -> None:
        """Move the target position."""
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(f"Target must be finite, got ({x}, {y})")
        self.target = (float(x), float(y))

    @property
    def last_action(self) -> ControlVector:
        """Action returned by the most recent tick (zeros before the first)."""
        return self._last_action.copy()

    # ========================================================================
    # Control tick
    # ========================================================================

    def step(
        self,
        measured_state: StateVector,
        applied_previous_action: Optional[ControlVector] = None,
    ) -> ControlStepResult:
        """
        Run one control tick: identify, learn, optimize.

        Parameters
        ----------
        measured_state : StateVector
            Latest measured state (6,)
        applied_previous_action : Optional[ControlVector]
            Action actually applied since the previous tick. Defaults to the
            action this controller returned last time.

        Returns
        -------
        ControlStepResult
            Next action and diagnostics

        Raises
        ------
        ValueError
            If the state or action has the wrong number of components
        """
        x = as_state(measured_state).copy()
        if applied_previous_action is None:
            u_prev = self._last_action
        else:
            u_prev = as_control(applied_previous_action).copy()

        prediction_error = 0.0
        residuals = {"position_error": 0.0, "velocity_error": 0.0}

        if self._previous_state is not None:
            x_prev = self._previous_state
            x_physics = step_rk4(x_prev, u_prev, self.params, self.config.dt)

            self.params, update = self.identifier.update(x_prev, u_prev, x, self.params)
            prediction_error = update["prediction_error"]

            self.ensemble.train(x_prev, u_prev, x, x_physics)

            residuals = calculate_residuals(x_physics, x)
            speed_residual = float(np.hypot(*x_physics[2:4]) - np.hypot(*x[2:4]))
            if math.isfinite(speed_residual):
                self._residual_history.append(speed_residual)

        plan = self.optimizer.compute_action(x, self.target, self.params, self.weights)

        self._previous_state = x
        self._last_action = plan["action"].copy()

        result: ControlStepResult = {
            "action": plan["action"],
            "estimated_params": self.params,
            "prediction_error": prediction_error,
            "uncertainty": plan["uncertainty"],
            "position_error": residuals["position_error"],
            "velocity_error": residuals["velocity_error"],
            "residual_pattern": classify_pattern(self._residual_history),
        }
        return result

    # ========================================================================
    # Beliefs
    # ========================================================================

    def reset_beliefs(self) -> None:
        """
        Forget everything learned online.

        Restores the default parameters, clears the warm-start buffer,
        re-initializes the ensemble from its seed, resets the identifier's
        learning-rate schedule and drops the previous-state memory. Calling it
        repeatedly yields the same state every time.
        """
        self.ensemble.reset()
        self.identifier.reset()
        self.optimizer.reset()
        self._reset_state()

    def export_weights(self) -> bytes:
        """
        Serialize the calibrated model for deployment.

        Returns
        -------
        bytes
            UTF-8 JSON holding the physical parameters, every ensemble
            tensor and the warm-start buffer. Values are written as Python
            floats, so a load/export round trip is exact.
        """
        snapshot: Dict[str, Any] = {
            "format": SNAPSHOT_FORMAT,
            "version": SNAPSHOT_VERSION,
            "params": self.params.to_dict(),
            "ensemble": self.ensemble.state_dict(),
            "warm_start": self.optimizer.warm_start.tolist(),
        }
        return json.dumps(snapshot).encode("utf-8")

    def load_weights(self, blob: bytes) -> None:
        """
        Restore a snapshot produced by ``export_weights``.

        Raises
        ------
        ConfigurationError
            If the blob is not a compatible snapshot
        """
        try:
            snapshot = json.loads(blob.decode("utf-8") if isinstance(blob, bytes) else blob)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Weights blob is not valid JSON: {e}") from e

        if not isinstance(snapshot, dict) or snapshot.get("format") != SNAPSHOT_FORMAT:
            raise ConfigurationError("Weights blob is not a physicore snapshot")
        if snapshot.get("version") != SNAPSHOT_VERSION:
            raise ConfigurationError(
                f"Unsupported snapshot version {snapshot.get('version')!r}, expected {SNAPSHOT_VERSION}"
            )
        missing = {"params", "ensemble", "warm_start"} - set(snapshot)
        if missing:
            raise ConfigurationError(f"Snapshot is missing {sorted(missing)}")

        if not isinstance(snapshot["params"], dict):
            raise ConfigurationError("Snapshot params must be a mapping")
        params = PhysicalParams.from_dict(snapshot["params"])
        cfg = self.config.identifier
        if not params.within(cfg.mass_bounds, cfg.friction_bounds):
            raise ConfigurationError(f"Snapshot parameters {params} lie outside the bounds")

        try:
            warm_start = np.asarray(snapshot["warm_start"], dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Snapshot warm start is not numeric: {e}") from e
        expected = (self.config.optimizer.horizon, CONTROL_DIM)
        if warm_start.shape != expected:
            raise ConfigurationError(
                f"Snapshot warm start has shape {warm_start.shape}, expected {expected}"
            )

        self.ensemble.load_state_dict(snapshot["ensemble"])
        self.optimizer.load_warm_start(warm_start)
        self.params = params


__all__ = ["HybridController"]
