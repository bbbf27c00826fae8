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
Learning Types

Result types for the ensemble residual model.

Mathematical Background
----------------------
Residual learning:
    Given transitions (x[k], u[k], x[k+1]) and the physics prediction
    x_phys[k+1], learn r̂ such that

        x[k+1] ≈ x_phys[k+1] + r̂(x[k], u[k])

Ensemble uncertainty:
    With M members predicting r̂_m, the ensemble mean and the summed
    population variance are

        μ   = (1/M) Σ_m r̂_m
        σ²  = (1/M) Σ_m ||r̂_m - μ||²

    σ² is the epistemic uncertainty signal: members agree where data was
    seen and drift apart elsewhere.
"""

from typing import List

from typing_extensions import TypedDict

from .core import ResidualVector

LearningRate = float
"""Learning rate for gradient-based updates."""

LossValue = float
"""Loss value."""


class EnsemblePrediction(TypedDict):
    """
    Ensemble residual prediction for a single (x, u) pair.

    Fields
    ------
    mean : ResidualVector
        Member-averaged residual (6,)
    variance : float
        Population variance across members, summed over the 6 components

    Examples
    --------
    >>> pred: EnsemblePrediction = ensemble.predict(x, u)
    >>> x_next = x_phys + pred["mean"]
    >>> print(f"Epistemic uncertainty: {pred['variance']:.3e}")
    """

    mean: ResidualVector
    variance: float


class EnsembleTrainingResult(TypedDict, total=False):
    """
    Outcome of one online training step.

    Fields
    ------
    losses : List[LossValue]
        Per-member loss before the update (empty when skipped)
    skipped : bool
        True when the sample was non-finite and no member was updated
    """

    losses: List[LossValue]
    skipped: bool


__all__ = [
    "LearningRate",
    "LossValue",
    "EnsemblePrediction",
    "EnsembleTrainingResult",
]
