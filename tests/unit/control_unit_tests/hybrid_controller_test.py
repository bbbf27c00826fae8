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
Unit Tests for the Hybrid Controller

Tests cover:
- Per-tick result contents and ordering (identify, learn, optimize)
- First-tick behaviour and the implicit previous action
- External inputs: cost weights, advisory payloads, target
- Belief reset
- Weight export/import
- Instance isolation and input validation
"""

import json
import math

import numpy as np
import pytest

from physicore.config import ControllerConfig, OptimizerConfig
from physicore.control.hybrid_controller import (
    RESIDUAL_HISTORY_LENGTH,
    SNAPSHOT_FORMAT,
    SNAPSHOT_VERSION,
    HybridController,
)
from physicore.exceptions import ConfigurationError
from physicore.identification.residual_diagnostics import NOMINAL
from physicore.systems.point_mass import step_rk4
from physicore.types.parameters import CostWeights, PhysicalParams

PLANT = PhysicalParams(mass=2.0, friction=0.3)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def controller():
    return HybridController()


def drive(controller, n_ticks, plant=PLANT, x0=None):
    """Run the controller against an RK4 plant, returning the last result and state"""
    x = np.zeros(6) if x0 is None else x0
    result = None
    for _ in range(n_ticks):
        result = controller.step(x)
        x = step_rk4(x, result["action"], plant)
    return result, x


# ============================================================================
# Control Tick
# ============================================================================


class TestStep:
    def test_result_contents(self, controller):
        result = controller.step(np.zeros(6))

        assert set(result) == {
            "action",
            "estimated_params",
            "prediction_error",
            "uncertainty",
            "position_error",
            "velocity_error",
            "residual_pattern",
        }
        assert result["action"].shape == (2,)
        assert isinstance(result["estimated_params"], PhysicalParams)

    def test_first_tick_from_rest(self, controller):
        """Starting at rest at the origin, the controller pushes toward the target"""
        result = controller.step(np.zeros(6))

        assert result["action"][0] > 0.0
        assert result["action"][1] > 0.0
        assert math.isfinite(result["uncertainty"])
        assert result["uncertainty"] >= 0.0

    def test_first_tick_skips_identification(self, controller):
        result = controller.step(np.zeros(6))

        assert result["prediction_error"] == 0.0
        assert result["position_error"] == 0.0
        assert result["estimated_params"] == PhysicalParams()
        assert result["residual_pattern"] == NOMINAL

    def test_second_tick_reports_physics_error(self, controller):
        x0 = np.zeros(6)
        u0 = controller.step(x0)["action"]
        x1 = step_rk4(x0, u0, PLANT)

        result = controller.step(x1)

        expected = np.linalg.norm(x1 - step_rk4(x0, u0, PhysicalParams()))
        assert result["prediction_error"] == pytest.approx(expected, rel=1e-12)

    def test_default_previous_action_is_last_action(self):
        implicit = HybridController()
        explicit = HybridController()
        x0 = np.zeros(6)
        u0 = implicit.step(x0)["action"]
        explicit.step(x0)
        x1 = step_rk4(x0, u0 + 1.0, PLANT)

        a = implicit.step(x1)
        b = explicit.step(x1, explicit.last_action)

        assert np.array_equal(a["action"], b["action"])
        assert a["estimated_params"] == b["estimated_params"]

    def test_applied_action_overrides_last_action(self):
        x0 = np.zeros(6)
        u_applied = np.array([30.0, -10.0])
        x1 = step_rk4(x0, u_applied, PhysicalParams())
        controller = HybridController()
        controller.step(x0)

        result = controller.step(x1, u_applied)

        assert result["prediction_error"] == pytest.approx(0.0, abs=1e-12)

    def test_params_stay_in_bounds_over_many_ticks(self, controller):
        rng = np.random.default_rng(0)
        x = np.zeros(6)
        for _ in range(30):
            result = controller.step(x)
            x = step_rk4(x, result["action"] + rng.normal(size=2) * 50.0, PLANT)
            params = result["estimated_params"]
            assert 0.1 <= params.mass <= 5.0
            assert 0.0 <= params.friction <= 1.0

    def test_residual_history_is_bounded(self, controller):
        drive(controller, RESIDUAL_HISTORY_LENGTH + 10)

        assert len(controller._residual_history) == RESIDUAL_HISTORY_LENGTH

    def test_rejects_wrong_state_shape(self, controller):
        with pytest.raises(ValueError, match="6 components"):
            controller.step(np.zeros(5))

    def test_rejects_wrong_action_shape(self, controller):
        controller.step(np.zeros(6))

        with pytest.raises(ValueError, match="2 components"):
            controller.step(np.zeros(6), np.zeros(3))

    def test_non_finite_measurement_does_not_raise(self, controller):
        controller.step(np.zeros(6))

        with pytest.warns(RuntimeWarning):
            result = controller.step(np.full(6, np.nan))

        assert np.array_equal(result["action"], [0.0, 0.0])
        assert 0.1 <= result["estimated_params"].mass <= 5.0


# ============================================================================
# External Inputs
# ============================================================================


class TestExternalInputs:
    def test_set_cost_weights(self, controller):
        controller.set_cost_weights(q=2.0, r=0.1)

        assert controller.weights == CostWeights(q=2.0, r=0.1)

    def test_set_cost_weights_accepts_numpy_scalars(self, controller):
        controller.set_cost_weights(np.float32(2.0), np.int64(1))

        assert controller.weights == CostWeights(q=2.0, r=1.0)
        assert controller.step(np.zeros(6))["action"].shape == (2,)

    @pytest.mark.parametrize("q, r", [(0.0, 0.1), (1.0, -0.1), (float("nan"), 0.1), (1.0, float("inf"))])
    def test_invalid_cost_weights_rejected(self, controller, q, r):
        with pytest.raises(ConfigurationError):
            controller.set_cost_weights(q=q, r=r)

        assert controller.weights == CostWeights()

    def test_apply_advisory(self, controller):
        weights = controller.apply_advisory({"q_weight": 3.0, "r_weight": 0.2})

        assert weights == CostWeights(q=3.0, r=0.2)
        assert controller.weights == weights

    def test_advisory_missing_key(self, controller):
        with pytest.raises(ConfigurationError, match="r_weight"):
            controller.apply_advisory({"q_weight": 3.0})

    def test_heavier_effort_weight_shrinks_action(self):
        cheap = HybridController()
        costly = HybridController()
        costly.set_cost_weights(q=1.5, r=1e6)

        u_cheap = cheap.step(np.zeros(6))["action"]
        u_costly = costly.step(np.zeros(6))["action"]

        assert np.linalg.norm(u_costly) < np.linalg.norm(u_cheap)

    def test_set_target(self, controller):
        controller.set_target(-100.0, -50.0)
        result = controller.step(np.zeros(6))

        assert controller.target == (-100.0, -50.0)
        assert result["action"][0] < 0.0

    def test_set_target_rejects_non_finite(self, controller):
        with pytest.raises(ValueError):
            controller.set_target(float("nan"), 0.0)


# ============================================================================
# Beliefs
# ============================================================================


class TestResetBeliefs:
    def test_reset_matches_fresh_controller(self, controller):
        drive(controller, 10)

        controller.reset_beliefs()

        assert controller.export_weights() == HybridController().export_weights()
        assert controller.params == PhysicalParams()
        assert np.array_equal(controller.last_action, [0.0, 0.0])

    def test_reset_is_idempotent(self, controller):
        drive(controller, 10)

        controller.reset_beliefs()
        once = controller.export_weights()
        controller.reset_beliefs()
        twice = controller.export_weights()

        assert once == twice

    def test_reset_restarts_tick_sequence(self, controller):
        first = controller.step(np.zeros(6))
        drive(controller, 5)

        controller.reset_beliefs()
        again = controller.step(np.zeros(6))

        assert np.array_equal(first["action"], again["action"])
        assert again["prediction_error"] == 0.0

    def test_reset_keeps_cost_weights_and_target(self, controller):
        controller.set_cost_weights(q=2.0, r=0.2)
        controller.set_target(10.0, 20.0)

        controller.reset_beliefs()

        assert controller.weights == CostWeights(q=2.0, r=0.2)
        assert controller.target == (10.0, 20.0)


# ============================================================================
# Export / Import
# ============================================================================


class TestWeights:
    def test_export_is_json_snapshot(self, controller):
        snapshot = json.loads(controller.export_weights())

        assert snapshot["format"] == SNAPSHOT_FORMAT
        assert snapshot["version"] == SNAPSHOT_VERSION
        assert snapshot["params"]["mass"] == 1.0
        assert len(snapshot["ensemble"]) == 3
        assert np.asarray(snapshot["warm_start"]).shape == (12, 2)

    def test_round_trip(self, controller):
        drive(controller, 15)
        blob = controller.export_weights()

        restored = HybridController()
        restored.load_weights(blob)

        assert restored.params == controller.params
        assert restored.export_weights() == blob
        x, u = np.full(6, 0.3), np.array([1.0, -1.0])
        assert np.array_equal(
            restored.ensemble.member_predictions(x, u),
            controller.ensemble.member_predictions(x, u),
        )
        assert np.array_equal(restored.optimizer.warm_start, controller.optimizer.warm_start)

    def test_load_accepts_text(self, controller):
        blob = controller.export_weights()

        HybridController().load_weights(blob.decode("utf-8"))

    def test_rejects_invalid_json(self, controller):
        with pytest.raises(ConfigurationError, match="JSON"):
            controller.load_weights(b"\x00not json")

    def test_rejects_foreign_format(self, controller):
        with pytest.raises(ConfigurationError, match="snapshot"):
            controller.load_weights(json.dumps({"format": "other"}).encode())

    def test_rejects_unknown_version(self, controller):
        snapshot = json.loads(controller.export_weights())
        snapshot["version"] = SNAPSHOT_VERSION + 1

        with pytest.raises(ConfigurationError, match="version"):
            controller.load_weights(json.dumps(snapshot).encode())

    def test_rejects_missing_section(self, controller):
        snapshot = json.loads(controller.export_weights())
        del snapshot["warm_start"]

        with pytest.raises(ConfigurationError, match="warm_start"):
            controller.load_weights(json.dumps(snapshot).encode())

    def test_rejects_out_of_bounds_params(self, controller):
        snapshot = json.loads(controller.export_weights())
        snapshot["params"]["mass"] = 50.0

        with pytest.raises(ConfigurationError, match="bounds"):
            controller.load_weights(json.dumps(snapshot).encode())

    def test_rejects_wrong_horizon(self, controller):
        snapshot = json.loads(controller.export_weights())
        snapshot["warm_start"] = [[0.0, 0.0]] * 5

        with pytest.raises(ConfigurationError, match="warm start"):
            controller.load_weights(json.dumps(snapshot).encode())

    def test_failed_load_leaves_state_untouched(self):
        source = HybridController()
        drive(source, 10)
        snapshot = json.loads(source.export_weights())
        snapshot["ensemble"] = snapshot["ensemble"][:2]

        target = HybridController()
        before = target.export_weights()
        with pytest.raises(ConfigurationError):
            target.load_weights(json.dumps(snapshot).encode())

        assert target.export_weights() == before

    def test_horizon_mismatch_between_configs(self):
        short = HybridController(ControllerConfig(optimizer=OptimizerConfig(horizon=5)))

        with pytest.raises(ConfigurationError):
            short.load_weights(HybridController().export_weights())


# ============================================================================
# Isolation
# ============================================================================


class TestIsolation:
    def test_instances_do_not_share_state(self):
        busy = HybridController()
        idle = HybridController()
        before = idle.export_weights()

        drive(busy, 10)

        assert idle.export_weights() == before
        assert idle.params == PhysicalParams()

    def test_identical_controllers_agree(self):
        a = HybridController(ControllerConfig(seed=7))
        b = HybridController(ControllerConfig(seed=7))

        ra, _ = drive(a, 5)
        rb, _ = drive(b, 5)

        assert np.array_equal(ra["action"], rb["action"])
        assert ra["estimated_params"] == rb["estimated_params"]
