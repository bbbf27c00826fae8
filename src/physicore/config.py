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
Controller Configuration

Frozen dataclasses holding every tunable constant of the hybrid controller.
All consistency checks run in ``__post_init__`` so that a bad configuration
fails at construction time, never in the middle of a control tick.

Deadlines are enforced here as well: the per-tick cost is proportional to
``iterations * samples * horizon`` rollout steps, so bounding these three
bounds the tick latency.

Examples
--------
>>> config = ControllerConfig(
...     optimizer=OptimizerConfig(horizon=20, samples=128, elites=16),
...     seed=7,
... )
>>> controller = HybridController(config)
"""

import math
import numbers
from dataclasses import dataclass, field
from typing import Tuple

from physicore.exceptions import ConfigurationError
from physicore.types.parameters import (
    FRICTION_BOUNDS,
    MASS_BOUNDS,
    CostWeights,
    ParameterBounds,
    PhysicalParams,
    validate_bounds,
)

DEFAULT_DT = 1.0 / 60.0


def _is_real(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _require_positive_int(config, name: str) -> None:
    """Check a positive integer field and store it as a Python int."""
    value = getattr(config, name)
    if not isinstance(value, numbers.Integral) or isinstance(value, bool) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    object.__setattr__(config, name, int(value))


def _require_positive(config, name: str, allow_zero: bool = False) -> None:
    """Check a positive finite real field and store it as a Python float."""
    value = getattr(config, name)
    ok = _is_real(value) and math.isfinite(value)
    ok = ok and (value >= 0 if allow_zero else value > 0)
    if not ok:
        bound = "non-negative" if allow_zero else "positive"
        raise ConfigurationError(f"{name} must be {bound} and finite, got {value!r}")
    object.__setattr__(config, name, float(value))


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Cross-Entropy Method settings.

    Attributes
    ----------
    horizon : int
        Number of control steps per candidate sequence (H)
    samples : int
        Candidate sequences drawn per iteration (S)
    elites : int
        Lowest-cost candidates kept for refitting (K ≤ S)
    iterations : int
        Refinement rounds per tick
    init_std : float
        Half-width of the uniform sampling window at the start of a tick
    std_floor : float
        Added to the elite spread to prevent distribution collapse
    uncertainty_penalty : float
        Weight λ on ensemble variance in the rollout cost
    """

    horizon: int = 12
    samples: int = 64
    elites: int = 8
    iterations: int = 2
    init_std: float = 0.15
    std_floor: float = 0.05
    uncertainty_penalty: float = 3.0

    def __post_init__(self):
        _require_positive_int(self, "horizon")
        _require_positive_int(self, "samples")
        _require_positive_int(self, "elites")
        _require_positive_int(self, "iterations")
        if self.elites > self.samples:
            raise ConfigurationError(
                f"elites ({self.elites}) cannot exceed samples ({self.samples})"
            )
        _require_positive(self, "init_std")
        _require_positive(self, "std_floor", allow_zero=True)
        _require_positive(self, "uncertainty_penalty", allow_zero=True)


@dataclass(frozen=True)
class LearnerConfig:
    """
    Ensemble residual model settings.

    Attributes
    ----------
    n_members : int
        Ensemble size
    n_inputs : int
        Network input width, state (6) plus control (2)
    hidden_size : int
        Width of both hidden layers
    n_outputs : int
        Network output width, one residual per state component
    learning_rate : float
        SGD step size
    grad_clip : float
        Per-weight gradient clip value
    init_scale : float
        Weights start uniform in [-init_scale, init_scale]
    full_backprop : bool
        Update every layer instead of the output layer only
    """

    n_members: int = 3
    n_inputs: int = 8
    hidden_size: int = 32
    n_outputs: int = 6
    learning_rate: float = 0.005
    grad_clip: float = 1.0
    init_scale: float = 0.05
    full_backprop: bool = False

    def __post_init__(self):
        _require_positive_int(self, "n_members")
        _require_positive_int(self, "hidden_size")
        if self.n_inputs != 8 or self.n_outputs != 6:
            raise ConfigurationError(
                f"Residual networks map 8 inputs to 6 outputs, got {self.n_inputs} -> {self.n_outputs}"
            )
        _require_positive(self, "learning_rate")
        _require_positive(self, "grad_clip")
        _require_positive(self, "init_scale")


@dataclass(frozen=True)
class IdentifierConfig:
    """
    Online system identification settings.

    Attributes
    ----------
    initial_learning_rate : float
        Starting and maximum learning rate
    epsilon : float
        Forward finite-difference perturbation
    patience : int
        Consecutive error increases tolerated before the rate is decayed
    decay : float
        Learning-rate factor applied after patience is exhausted
    growth : float
        Learning-rate factor applied after a non-increasing error
    mass_bounds : ParameterBounds
        Projection interval for mass
    friction_bounds : ParameterBounds
        Projection interval for friction
    """

    initial_learning_rate: float = 0.008
    epsilon: float = 1e-3
    patience: int = 3
    decay: float = 0.5
    growth: float = 1.05
    mass_bounds: ParameterBounds = MASS_BOUNDS
    friction_bounds: ParameterBounds = FRICTION_BOUNDS

    def __post_init__(self):
        _require_positive(self, "initial_learning_rate")
        _require_positive(self, "epsilon")
        _require_positive_int(self, "patience")
        _require_positive(self, "decay")
        _require_positive(self, "growth")
        if not self.decay < 1.0:
            raise ConfigurationError(f"decay must lie in (0, 1), got {self.decay!r}")
        if not self.growth >= 1.0:
            raise ConfigurationError(f"growth must be at least 1, got {self.growth!r}")
        object.__setattr__(self, "mass_bounds", validate_bounds(self.mass_bounds, "mass"))
        object.__setattr__(
            self, "friction_bounds", validate_bounds(self.friction_bounds, "friction")
        )
        if self.mass_bounds[0] <= 0.0:
            raise ConfigurationError(
                f"mass lower bound must be positive, got {self.mass_bounds[0]}"
            )


@dataclass(frozen=True)
class ControllerConfig:
    """
    Top-level configuration of a HybridController.

    Attributes
    ----------
    dt : float
        Control tick and integration step (default 1/60 s)
    seed : int
        Seed for ensemble initialization and CEM sampling
    target : Tuple[float, float]
        Initial target position
    optimizer, learner, identifier
        Component settings
    default_params : PhysicalParams
        Parameters restored by ``reset_beliefs``
    default_weights : CostWeights
        Initial cost weights
    """

    dt: float = DEFAULT_DT
    seed: int = 0
    target: Tuple[float, float] = (400.0, 300.0)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    learner: LearnerConfig = field(default_factory=LearnerConfig)
    identifier: IdentifierConfig = field(default_factory=IdentifierConfig)
    default_params: PhysicalParams = field(default_factory=PhysicalParams)
    default_weights: CostWeights = field(default_factory=CostWeights)

    def __post_init__(self):
        _require_positive(self, "dt")
        if not self.default_params.within(
            self.identifier.mass_bounds, self.identifier.friction_bounds
        ):
            raise ConfigurationError(
                f"default_params {self.default_params} lie outside the identification bounds"
            )
        if len(self.target) != 2 or not all(math.isfinite(float(v)) for v in self.target):
            raise ConfigurationError(f"target must be a finite (x, y) pair, got {self.target!r}")


__all__ = [
    "DEFAULT_DT",
    "OptimizerConfig",
    "LearnerConfig",
    "IdentifierConfig",
    "ControllerConfig",
]
