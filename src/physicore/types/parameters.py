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
Physical Parameter and Cost Weight Types

Small immutable records describing the analytical model and the MPC cost.

PhysicalParams
--------------
Named scalar parameters of the point-mass model::

    mass      ∈ [0.1, 5.0]   (identified online)
    friction  ∈ [0.0, 1.0]   (identified online)
    gravity                  (fixed)
    stiffness, damping       (rendering only, never touched by the controller)

The online identifier never mutates an instance; it produces a new one with
``dataclasses.replace`` and the controller swaps it in once per tick.

CostWeights
-----------
The quadratic cost weights (Q on target tracking, R on control effort).
An external advisory process may propose new weights at a slow cadence;
they are accepted as ordinary input through ``CostWeights.from_advisory``.

Examples
--------
>>> params = PhysicalParams(mass=1.2)
>>> heavier = params.replace(mass=2.0)
>>> weights = CostWeights.from_advisory({"q_weight": 2.0, "r_weight": 0.1})
"""

import dataclasses
import math
import numbers
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from physicore.exceptions import ConfigurationError

ParameterBounds = Tuple[float, float]
"""Closed interval (lower, upper) a physical parameter is projected onto."""

MASS_BOUNDS: ParameterBounds = (0.1, 5.0)
FRICTION_BOUNDS: ParameterBounds = (0.0, 1.0)


def validate_bounds(bounds: ParameterBounds, name: str) -> ParameterBounds:
    """
    Check that a bound interval is well formed.

    Raises
    ------
    ConfigurationError
        If the interval is not two finite numbers with lower < upper
    """
    try:
        lower, upper = (float(b) for b in bounds)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} bounds must be a (lower, upper) pair, got {bounds!r}") from e
    if not (math.isfinite(lower) and math.isfinite(upper)):
        raise ConfigurationError(f"{name} bounds must be finite, got ({lower}, {upper})")
    if lower >= upper:
        raise ConfigurationError(
            f"{name} bounds are malformed: lower ({lower}) must be below upper ({upper})"
        )
    return (lower, upper)


def project(value: float, bounds: ParameterBounds) -> float:
    """Clamp ``value`` onto the closed interval ``bounds``."""
    lower, upper = bounds
    return min(upper, max(lower, value))


@dataclass(frozen=True)
class PhysicalParams:
    """
    Parameters of the analytical point-mass model.

    Attributes
    ----------
    mass : float
        Body mass. Identified online, kept inside [0.1, 5.0].
    friction : float
        Linear velocity damping coefficient. Identified online, kept inside [0.0, 1.0].
    gravity : float
        Constant acceleration along +y (screen coordinates point down).
    stiffness : float
        Soft-body spring constant used by the rendering layer only.
    damping : float
        Soft-body damping used by the rendering layer only.
    """

    mass: float = 1.0
    friction: float = 0.1
    gravity: float = 0.5
    stiffness: float = 400.0
    damping: float = 0.15

    def replace(self, **changes: float) -> "PhysicalParams":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, float]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PhysicalParams":
        """
        Build params from a mapping, ignoring unknown keys.

        Raises
        ------
        ConfigurationError
            If a known field is not numeric
        """
        fields = {f.name for f in dataclasses.fields(cls)}
        try:
            values = {k: float(v) for k, v in data.items() if k in fields}
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid physical parameter value: {e}") from e
        return cls(**values)

    def within(self, mass_bounds: ParameterBounds, friction_bounds: ParameterBounds) -> bool:
        """Check that mass and friction lie inside the given bounds."""
        return (
            mass_bounds[0] <= self.mass <= mass_bounds[1]
            and friction_bounds[0] <= self.friction <= friction_bounds[1]
        )


@dataclass(frozen=True)
class CostWeights:
    """
    Quadratic cost weights of the MPC objective.

    Attributes
    ----------
    q : float
        Weight on squared distance between rolled-out position and target.
    r : float
        Weight on squared control effort.

    Raises
    ------
    ConfigurationError
        If either weight is not a positive finite number
    """

    q: float = 1.5
    r: float = 0.05

    def __post_init__(self):
        for name in ("q", "r"):
            value = getattr(self, name)
            is_real = isinstance(value, numbers.Real) and not isinstance(value, bool)
            if not is_real or not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"Cost weight {name} must be positive and finite, got {value!r}")
            object.__setattr__(self, name, float(value))

    @classmethod
    def from_advisory(cls, suggestion: Mapping[str, Any]) -> "CostWeights":
        """
        Build weights from an advisory payload.

        The advisory service suggests cost tweaks as
        ``{"q_weight": float, "r_weight": float}``.

        Examples
        --------
        >>> CostWeights.from_advisory({"q_weight": 3.0, "r_weight": 0.2})
        CostWeights(q=3.0, r=0.2)
        """
        try:
            return cls(q=float(suggestion["q_weight"]), r=float(suggestion["r_weight"]))
        except KeyError as e:
            raise ConfigurationError(f"Advisory suggestion is missing {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Advisory suggestion is not numeric: {e}") from e


__all__ = [
    "ParameterBounds",
    "MASS_BOUNDS",
    "FRICTION_BOUNDS",
    "validate_bounds",
    "project",
    "PhysicalParams",
    "CostWeights",
]
