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
Unit Tests for Controller Configuration

Every inconsistent configuration must fail at construction time with a
ConfigurationError.
"""

import numpy as np
import pytest

from physicore.config import (
    DEFAULT_DT,
    ControllerConfig,
    IdentifierConfig,
    LearnerConfig,
    OptimizerConfig,
)
from physicore.exceptions import ConfigurationError
from physicore.types.parameters import PhysicalParams


class TestDefaults:
    def test_optimizer_defaults(self):
        config = OptimizerConfig()

        assert config.horizon == 12
        assert config.elites <= config.samples
        assert config.std_floor > 0.0

    def test_learner_defaults(self):
        config = LearnerConfig()

        assert (config.n_members, config.n_inputs, config.hidden_size, config.n_outputs) == (
            3,
            8,
            32,
            6,
        )
        assert config.learning_rate == 0.005
        assert config.grad_clip == 1.0

    def test_identifier_defaults(self):
        config = IdentifierConfig()

        assert config.initial_learning_rate == 0.008
        assert config.epsilon == 1e-3
        assert config.mass_bounds == (0.1, 5.0)
        assert config.friction_bounds == (0.0, 1.0)

    def test_controller_defaults(self):
        config = ControllerConfig()

        assert config.dt == DEFAULT_DT == pytest.approx(1 / 60)
        assert config.target == (400.0, 300.0)
        assert config.default_params == PhysicalParams()


class TestOptimizerConfigValidation:
    def test_elites_cannot_exceed_samples(self):
        with pytest.raises(ConfigurationError, match="elites"):
            OptimizerConfig(samples=4, elites=8)

    @pytest.mark.parametrize("field", ["horizon", "samples", "elites", "iterations"])
    @pytest.mark.parametrize("value", [0, -1, 2.5, True])
    def test_counts_must_be_positive_integers(self, field, value):
        with pytest.raises(ConfigurationError, match=field):
            OptimizerConfig(**{field: value})

    def test_zero_std_rejected(self):
        with pytest.raises(ConfigurationError):
            OptimizerConfig(init_std=0.0)

    def test_negative_penalty_rejected(self):
        with pytest.raises(ConfigurationError):
            OptimizerConfig(uncertainty_penalty=-1.0)

    def test_zero_penalty_allowed(self):
        assert OptimizerConfig(uncertainty_penalty=0.0).uncertainty_penalty == 0.0


class TestLearnerConfigValidation:
    def test_wrong_input_width(self):
        with pytest.raises(ConfigurationError, match="8 inputs"):
            LearnerConfig(n_inputs=7)

    def test_wrong_output_width(self):
        with pytest.raises(ConfigurationError):
            LearnerConfig(n_outputs=4)

    def test_empty_ensemble(self):
        with pytest.raises(ConfigurationError, match="n_members"):
            LearnerConfig(n_members=0)

    @pytest.mark.parametrize("field", ["learning_rate", "grad_clip", "init_scale"])
    def test_rates_must_be_positive(self, field):
        with pytest.raises(ConfigurationError, match=field):
            LearnerConfig(**{field: 0.0})


class TestIdentifierConfigValidation:
    def test_malformed_mass_bounds(self):
        with pytest.raises(ConfigurationError, match="mass"):
            IdentifierConfig(mass_bounds=(5.0, 0.1))

    def test_non_positive_mass_floor(self):
        with pytest.raises(ConfigurationError, match="positive"):
            IdentifierConfig(mass_bounds=(0.0, 5.0))

    def test_malformed_friction_bounds(self):
        with pytest.raises(ConfigurationError, match="friction"):
            IdentifierConfig(friction_bounds=(1.0, 1.0))

    @pytest.mark.parametrize("decay", [0.0, 1.0, 1.5])
    def test_decay_range(self, decay):
        with pytest.raises(ConfigurationError, match="decay"):
            IdentifierConfig(decay=decay)

    def test_growth_below_one(self):
        with pytest.raises(ConfigurationError, match="growth"):
            IdentifierConfig(growth=0.9)

    def test_patience_positive(self):
        with pytest.raises(ConfigurationError, match="patience"):
            IdentifierConfig(patience=0)


class TestControllerConfigValidation:
    def test_default_params_outside_bounds(self):
        with pytest.raises(ConfigurationError, match="default_params"):
            ControllerConfig(default_params=PhysicalParams(mass=10.0))

    def test_default_params_checked_against_custom_bounds(self):
        identifier = IdentifierConfig(mass_bounds=(2.0, 3.0))

        with pytest.raises(ConfigurationError):
            ControllerConfig(identifier=identifier)

    def test_non_finite_target(self):
        with pytest.raises(ConfigurationError, match="target"):
            ControllerConfig(target=(float("nan"), 0.0))

    def test_non_positive_dt(self):
        with pytest.raises(ConfigurationError, match="dt"):
            ControllerConfig(dt=0.0)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            OptimizerConfig(horizon=0)


class TestNumpyScalars:
    def test_numpy_counts_accepted(self):
        config = OptimizerConfig(horizon=np.int64(12), samples=np.int32(32), elites=np.int64(4))

        assert config.horizon == 12
        assert type(config.horizon) is int
        assert type(config.samples) is int

    def test_numpy_reals_accepted(self):
        config = LearnerConfig(learning_rate=np.float32(0.01), n_members=np.int64(2))

        assert type(config.learning_rate) is float
        assert config.learning_rate == pytest.approx(0.01)
        assert config.n_members == 2

    def test_numpy_dt_accepted(self):
        config = ControllerConfig(dt=np.float64(0.02))

        assert type(config.dt) is float

    def test_float_count_rejected(self):
        with pytest.raises(ConfigurationError, match="horizon"):
            OptimizerConfig(horizon=np.float64(12.0))

    @pytest.mark.parametrize("field", ["init_std", "std_floor", "uncertainty_penalty"])
    def test_boolean_real_rejected(self, field):
        with pytest.raises(ConfigurationError, match=field):
            OptimizerConfig(**{field: True})

    def test_boolean_growth_rejected(self):
        with pytest.raises(ConfigurationError, match="growth"):
            IdentifierConfig(growth=True)
