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
Exceptions and Warnings

Configuration problems are fatal and raised at construction time.
Numerical anomalies met while a control tick is running are recovered
locally and reported through the ``warnings`` module instead.
"""


class ConfigurationError(ValueError):
    """Raised when controller, optimizer, learner or bound settings are inconsistent"""

    pass


class NumericDegeneracyWarning(RuntimeWarning):
    """Issued when every sampled rollout produced a non-finite cost"""

    pass


__all__ = ["ConfigurationError", "NumericDegeneracyWarning"]
