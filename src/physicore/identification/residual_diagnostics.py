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
Residual diagnostics: split prediction residuals into position and velocity
parts and label recurring patterns in a residual history.
"""

from typing import Sequence

import numpy as np

from physicore.types.core import StateVector
from physicore.types.identification import ResidualReport

NOMINAL = "nominal"
SYSTEMATIC_OVERPREDICTION = "systematic_overprediction"
SYSTEMATIC_UNDERPREDICTION = "systematic_underprediction"
OSCILLATION = "oscillation"

MIN_HISTORY = 5
WINDOW = 10
BIAS_THRESHOLD = 2.0
MAX_SIGN_CHANGES = 4


def calculate_residuals(predicted: StateVector, actual: StateVector) -> ResidualReport:
    """Euclidean position and velocity errors of a one-step prediction."""
    diff = np.asarray(actual, dtype=np.float64) - np.asarray(predicted, dtype=np.float64)
    return {
        "position_error": float(np.hypot(diff[0], diff[1])),
        "velocity_error": float(np.hypot(diff[2], diff[3])),
    }


def classify_pattern(history: Sequence[float]) -> str:
    """
    Label the recent behaviour of a signed residual history.

    Only the last ``WINDOW`` entries are considered. A mean above
    ``BIAS_THRESHOLD`` means the model keeps predicting too much, below its
    negative too little; frequent sign flips are reported as oscillation.

    Examples
    --------
    >>> classify_pattern([3.0] * 10)
    'systematic_overprediction'
    >>> classify_pattern([1.0, -1.0] * 5)
    'oscillation'
    """
    if len(history) < MIN_HISTORY:
        return NOMINAL

    recent = np.asarray(list(history)[-WINDOW:], dtype=np.float64)
    mean = recent.mean()

    if mean > BIAS_THRESHOLD:
        return SYSTEMATIC_OVERPREDICTION
    if mean < -BIAS_THRESHOLD:
        return SYSTEMATIC_UNDERPREDICTION

    negative = recent < 0
    sign_changes = int(np.count_nonzero(negative[1:] != negative[:-1]))
    if sign_changes > MAX_SIGN_CHANGES:
        return OSCILLATION

    return NOMINAL


__all__ = [
    "NOMINAL",
    "SYSTEMATIC_OVERPREDICTION",
    "SYSTEMATIC_UNDERPREDICTION",
    "OSCILLATION",
    "calculate_residuals",
    "classify_pattern",
]
