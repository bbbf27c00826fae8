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
Ensemble Residual Model

Learns the part of each state transition the analytical model misses,

    r(x, u) ≈ x_actual[k+1] - x_physics[k+1],

with a small ensemble of independently initialized MLPs trained online on
the same targets. Disagreement between members is the epistemic-uncertainty
signal consumed by the optimizer.

Architecture (per member)
-------------------------
    [x ++ u] (8) → Linear → ReLU (32) → Linear → ReLU (32) → Linear (6)

Training
--------
One SGD step per observed transition on L = ½||r̂ - r||², with every
gradient entry clipped to ±grad_clip. The clip covers bias gradients as
well as weights, so no single step moves any parameter by more than
learning_rate * grad_clip. By default only the output layer is stepped: the hidden layers keep their random features, which is cheaper
per tick and keeps the members' feature maps distinct. Set
``LearnerConfig.full_backprop`` to train every layer.

Members run in float64 so that exported weights round-trip exactly through
Python floats.
"""

from typing import Dict, List, Optional, Tuple

import numpy as np
import torch
import torch.nn as nn

from physicore.config import LearnerConfig
from physicore.exceptions import ConfigurationError
from physicore.types.core import ControlBatch, ControlVector, StateBatch, StateVector
from physicore.types.learning import EnsemblePrediction, EnsembleTrainingResult


class ResidualMLP(nn.Module):
    """
    Three-layer ReLU network mapping (x, u) to a residual.

    Parameters
    ----------
    n_inputs : int
        Input width (state + control)
    hidden_size : int
        Width of both hidden layers
    n_outputs : int
        Output width (state dimension)
    """

    def __init__(self, n_inputs: int = 8, hidden_size: int = 32, n_outputs: int = 6) -> None:
        super().__init__()
        self.hidden = nn.Sequential(
            nn.Linear(n_inputs, hidden_size),
            nn.ReLU(),
            nn.Linear(hidden_size, hidden_size),
            nn.ReLU(),
        )
        self.output = nn.Linear(hidden_size, n_outputs)
        self.double()

    @torch.no_grad()
    def init_weights(self, generator: torch.Generator, scale: float) -> None:
        """Uniform weights in [-scale, scale], zero biases."""
        for module in self.modules():
            if isinstance(module, nn.Linear):
                noise = torch.rand(
                    module.weight.shape, generator=generator, dtype=module.weight.dtype
                )
                module.weight.copy_((noise - 0.5) * 2 * scale)
                module.bias.zero_()

    def forward(self, z: torch.Tensor) -> torch.Tensor:
        return self.output(self.hidden(z))


class EnsembleResidualModel:
    """
    Ensemble of residual MLPs with mean/variance prediction and online training.

    Attributes
    ----------
    config : LearnerConfig
        Architecture and training settings
    members : List[ResidualMLP]
        Ensemble members (fixed count)

    Examples
    --------
    >>> ensemble = EnsembleResidualModel(LearnerConfig(), seed=0)
    >>> pred = ensemble.predict(x, u)
    >>> x_next = step_rk4(x, u, params) + pred["mean"]
    >>>
    >>> # After the plant moved
    >>> ensemble.train(x, u, x_measured, x_physics)
    """

    def __init__(self, config: Optional[LearnerConfig] = None, seed: int = 0):
        self.config = config or LearnerConfig()
        self.seed = seed
        self.members: List[ResidualMLP] = [
            ResidualMLP(self.config.n_inputs, self.config.hidden_size, self.config.n_outputs)
            for _ in range(self.config.n_members)
        ]
        self._optimizers: List[torch.optim.Optimizer] = []
        self.reset()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def reset(self) -> None:
        """
        Re-initialize every member from the configured seed.

        Member i draws its weights from a generator seeded with ``seed + i``,
        so members differ from each other while two resets produce identical
        ensembles.
        """
        self._optimizers = []
        for i, member in enumerate(self.members):
            generator = torch.Generator().manual_seed(self.seed + i)
            member.init_weights(generator, self.config.init_scale)
            member.hidden.requires_grad_(self.config.full_backprop)
            trainable = [p for p in member.parameters() if p.requires_grad]
            self._optimizers.append(torch.optim.SGD(trainable, lr=self.config.learning_rate))

    @property
    def n_members(self) -> int:
        return len(self.members)

    # ========================================================================
    # Prediction
    # ========================================================================

    @staticmethod
    def _inputs(x: np.ndarray, u: np.ndarray) -> torch.Tensor:
        z = np.concatenate([np.asarray(x, dtype=np.float64), np.asarray(u, dtype=np.float64)], axis=-1)
        return torch.from_numpy(z)

    @torch.no_grad()
    def member_predictions(self, x: StateBatch, u: ControlBatch) -> np.ndarray:
        """
        Raw member outputs.

        Returns
        -------
        np.ndarray
            Shape (M, ..., 6) where ``...`` is the batch shape of the inputs
        """
        z = self._inputs(x, u)
        return torch.stack([member(z) for member in self.members]).numpy()

    def predict_batch(self, x: StateBatch, u: ControlBatch) -> Tuple[np.ndarray, np.ndarray]:
        """
        Ensemble mean and summed variance for a batch of (x, u) pairs.

        Parameters
        ----------
        x : StateBatch
            States (S, 6)
        u : ControlBatch
            Controls (S, 2)

        Returns
        -------
        means : np.ndarray
            Mean residual per sample (S, 6)
        variances : np.ndarray
            Population variance across members summed over components (S,)
        """
        preds = self.member_predictions(x, u)
        means = preds.mean(axis=0)
        variances = ((preds - means) ** 2).mean(axis=0).sum(axis=-1)
        return means, variances

    def predict(self, x: StateVector, u: ControlVector) -> EnsemblePrediction:
        """
        Ensemble prediction for a single (x, u) pair.

        Returns
        -------
        EnsemblePrediction
            ``mean`` (6,) and scalar ``variance``
        """
        means, variances = self.predict_batch(np.asarray(x)[None, :], np.asarray(u)[None, :])
        return {"mean": means[0], "variance": float(variances[0])}

    # ========================================================================
    # Training
    # ========================================================================

    def train(
        self,
        x: StateVector,
        u: ControlVector,
        x_next: StateVector,
        x_physics: StateVector,
    ) -> EnsembleTrainingResult:
        """
        One online SGD step per member toward ``x_next - x_physics``.

        Every member is trained on the same target; they differ only through
        their initialization. Non-finite samples are skipped.

        Parameters
        ----------
        x : StateVector
            State at the start of the transition
        u : ControlVector
            Applied control
        x_next : StateVector
            Measured state at the end of the transition
        x_physics : StateVector
            Physics-only prediction of x_next

        Returns
        -------
        EnsembleTrainingResult
            Per-member losses before the update
        """
        target = np.asarray(x_next, dtype=np.float64) - np.asarray(x_physics, dtype=np.float64)
        z_np = np.concatenate([np.asarray(x, dtype=np.float64), np.asarray(u, dtype=np.float64)])
        if not (np.all(np.isfinite(z_np)) and np.all(np.isfinite(target))):
            return {"losses": [], "skipped": True}

        z = torch.from_numpy(z_np)
        target_t = torch.from_numpy(target)

        losses = []
        for member, optimizer in zip(self.members, self._optimizers):
            member.zero_grad(set_to_none=True)
            loss = 0.5 * torch.sum((member(z) - target_t) ** 2)
            loss.backward()
            nn.utils.clip_grad_value_(member.parameters(), self.config.grad_clip)
            optimizer.step()
            losses.append(float(loss.detach()))

        return {"losses": losses, "skipped": False}

    # ========================================================================
    # Serialization
    # ========================================================================

    def state_dict(self) -> List[Dict[str, list]]:
        """Member weights as nested Python float lists."""
        return [
            {name: tensor.detach().cpu().tolist() for name, tensor in member.state_dict().items()}
            for member in self.members
        ]

    def load_state_dict(self, state: List[Dict[str, list]]) -> None:
        """
        Restore member weights produced by ``state_dict``.

        Raises
        ------
        ConfigurationError
            If the member count or any tensor shape does not match
        """
        if not isinstance(state, list) or len(state) != len(self.members):
            raise ConfigurationError(
                f"Snapshot must hold {len(self.members)} member entries"
            )

        # validate every member before touching any weights
        loaded_members = []
        for member, member_state in zip(self.members, state):
            current = member.state_dict()
            if not isinstance(member_state, dict) or set(member_state) != set(current):
                raise ConfigurationError(f"Snapshot member tensors do not match {sorted(current)}")
            loaded = {}
            for name, values in member_state.items():
                try:
                    tensor = torch.tensor(values, dtype=torch.float64)
                except (TypeError, ValueError, RuntimeError) as e:
                    raise ConfigurationError(f"Tensor {name} is not numeric: {e}") from e
                if tensor.shape != current[name].shape:
                    raise ConfigurationError(
                        f"Tensor {name} has shape {tuple(tensor.shape)}, "
                        f"expected {tuple(current[name].shape)}"
                    )
                loaded[name] = tensor
            loaded_members.append(loaded)

        for member, loaded in zip(self.members, loaded_members):
            member.load_state_dict(loaded)


__all__ = ["ResidualMLP", "EnsembleResidualModel"]
