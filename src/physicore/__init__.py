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
PhysiCore - Hybrid Model-Based Control

Drives an actuated point mass toward a target while reconciling an
analytical physics model with observed transitions.

Main Components:
    - derivative / step_rk4: Analytical point-mass dynamics and RK4 step
    - EnsembleResidualModel: Online-trained MLP ensemble for residual dynamics
      with epistemic uncertainty
    - OnlineSystemIdentifier: Projected finite-difference identification of
      mass and friction
    - CEMTrajectoryOptimizer: Cross-Entropy Method MPC over the hybrid model
    - HybridController: Per-tick entry point tying them together

Quick Start:
    >>> import numpy as np
    >>> from physicore import HybridController
    >>>
    >>> controller = HybridController()
    >>> result = controller.step(np.zeros(6))
    >>> result["action"], result["uncertainty"]
"""

from .config import ControllerConfig, IdentifierConfig, LearnerConfig, OptimizerConfig
from .control import CEMTrajectoryOptimizer, HybridController
from .exceptions import ConfigurationError, NumericDegeneracyWarning
from .identification import OnlineSystemIdentifier, calculate_residuals, classify_pattern
from .learning import EnsembleResidualModel
from .simulation import ClosedLoopSimulator, friction_shift
from .systems import control_jacobian, derivative, step_rk4
from .types import CostWeights, PhysicalParams

__version__ = "1.0.0"

__all__ = [
    "ControllerConfig",
    "IdentifierConfig",
    "LearnerConfig",
    "OptimizerConfig",
    "CEMTrajectoryOptimizer",
    "HybridController",
    "ConfigurationError",
    "NumericDegeneracyWarning",
    "OnlineSystemIdentifier",
    "calculate_residuals",
    "classify_pattern",
    "EnsembleResidualModel",
    "ClosedLoopSimulator",
    "friction_shift",
    "control_jacobian",
    "derivative",
    "step_rk4",
    "CostWeights",
    "PhysicalParams",
]
