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
Type system for the hybrid controller.

Import types from here rather than from the individual modules::

    from physicore.types import StateVector, PhysicalParams, CEMResult
"""

from .core import (
    CONTROL_DIM,
    STATE_DIM,
    ArrayLike,
    ControlBatch,
    ControlSequence,
    ControlVector,
    DynamicsFunction,
    ResidualVector,
    ScalarLike,
    StateBatch,
    StateVector,
    TargetPosition,
    as_control,
    as_state,
)
from .identification import ParameterUpdateResult, ResidualReport
from .learning import EnsemblePrediction, EnsembleTrainingResult, LearningRate, LossValue
from .optimization import CEMResult, ControlStepResult
from .parameters import (
    FRICTION_BOUNDS,
    MASS_BOUNDS,
    CostWeights,
    ParameterBounds,
    PhysicalParams,
    project,
    validate_bounds,
)
from .trajectories import (
    ClosedLoopResult,
    IntegrationResult,
    StateTrajectory,
    TimePoints,
    TimeSpan,
)

__all__ = [
    # core
    "STATE_DIM",
    "CONTROL_DIM",
    "ArrayLike",
    "ScalarLike",
    "StateVector",
    "ControlVector",
    "ResidualVector",
    "StateBatch",
    "ControlBatch",
    "ControlSequence",
    "TargetPosition",
    "DynamicsFunction",
    "as_state",
    "as_control",
    # parameters
    "ParameterBounds",
    "MASS_BOUNDS",
    "FRICTION_BOUNDS",
    "validate_bounds",
    "project",
    "PhysicalParams",
    "CostWeights",
    # results
    "IntegrationResult",
    "ClosedLoopResult",
    "TimeSpan",
    "TimePoints",
    "StateTrajectory",
    "EnsemblePrediction",
    "EnsembleTrainingResult",
    "LearningRate",
    "LossValue",
    "ParameterUpdateResult",
    "ResidualReport",
    "CEMResult",
    "ControlStepResult",
]
