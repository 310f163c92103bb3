"""Stochastic Gradient Boosting over a base regressor (squared loss)."""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import Executor
from dataclasses import dataclass
from time import perf_counter
from typing import Callable, FrozenSet, Sequence, Tuple

import numpy as np
import torch

from .config import BoostingConfig
from .core import DataPoint, DataSet, RegressionDataSet
from .learners import REGRESS, BaseLearner, require_capability


@dataclass(frozen=True)
class _BoostingState:
    initial_prediction: float
    initial_model: BaseLearner | None
    stages: Tuple[Tuple[BaseLearner, float], ...]


class StochasticGradientBoosting(BaseLearner):
    """Stage-wise additive regressor.

    Each stage fits a clone of the base regressor to the pseudo-residuals
    ``y - F(x)`` of the current model, optionally on a random subsample, and
    adds ``learning_rate * h(x)`` to ``F``. ``F`` starts as the weighted mean
    target, or as the output of ``initial_learner`` when one is given.
    """

    def __init__(
        self,
        learner: BaseLearner,
        config: BoostingConfig | None = None,
        *,
        initial_learner: BaseLearner | None = None,
    ) -> None:
        require_capability(learner, REGRESS)
        if initial_learner is not None:
            require_capability(initial_learner, REGRESS)
        self.config = config if config is not None else BoostingConfig()
        self._learner = learner
        self._initial_learner = initial_learner
        self._rng = torch.Generator(device="cpu")
        if self.config.random_state is not None:
            self._rng.manual_seed(int(self.config.random_state))
        else:
            self._rng.seed()
        self._logger = logging.getLogger(__name__)
        self._force_sequential = os.getenv("WAGBOOST_FORCE_SEQUENTIAL") == "1"

        # Runtime state
        self._state: _BoostingState | None = None
        self._stage_metrics: list[dict[str, float]] = []

    # Public -------------------------------------------------------------

    @property
    def capabilities(self) -> FrozenSet[str]:
        return frozenset({REGRESS})

    @property
    def trained(self) -> bool:
        return self._state is not None

    @property
    def stages(self) -> Sequence[Tuple[BaseLearner, float]]:
        """``(model, weight)`` pairs in the order they were fitted."""
        return () if self._state is None else self._state.stages

    @property
    def initial_prediction(self) -> float:
        if self._state is None:
            raise RuntimeError("Model must be trained first")
        return self._state.initial_prediction

    @property
    def stage_metrics(self) -> Sequence[dict[str, float]]:
        """Per-stage metrics recorded during the most recent ``train`` call."""

        return self._stage_metrics

    def train(
        self,
        dataset: DataSet,
        pool: Executor | None = None,
        *,
        stage_callback: Callable[[int, dict[str, float]], None] | None = None,
    ) -> None:
        """Fit ``config.num_stages`` stages on ``dataset``.

        Stages run sequentially; ``pool`` is only forwarded to the base
        learner. A failing stage aborts training and keeps the previous model.
        """
        if not isinstance(dataset, RegressionDataSet):
            raise ValueError("StochasticGradientBoosting trains on a RegressionDataSet")
        n = dataset.size()
        if n == 0:
            raise ValueError("cannot train on an empty data set")
        dataset.finish_adding()
        if pool is not None and self._force_sequential:
            self._logger.warning("WAGBOOST_FORCE_SEQUENTIAL=1; ignoring the supplied pool")
            pool = None

        lr = float(self.config.learning_rate)
        sample_size = n if self.config.subsample >= 1.0 else max(1, int(self.config.subsample * n))
        y = torch.from_numpy(dataset.targets)
        w = torch.from_numpy(dataset.weights)
        w_total = float(w.sum().item())

        with torch.no_grad():
            if self._initial_learner is not None:
                initial_model: BaseLearner | None = self._initial_learner.clone()
                initial_model.train(dataset, pool)
                initial_prediction = 0.0
                preds = torch.from_numpy(initial_model.regress_all(dataset)).clone()
            else:
                initial_model = None
                initial_prediction = dataset.weighted_mean_target()
                preds = torch.full((n,), initial_prediction, dtype=torch.float64)

            stages: list[Tuple[BaseLearner, float]] = []
            stage_metrics: list[dict[str, float]] = []

            # ===== boosting stages =====
            for stage_idx in range(int(self.config.num_stages)):
                stage_start = perf_counter()
                if sample_size < n:
                    rows = torch.randperm(n, generator=self._rng)[:sample_size]
                    residual = y.index_select(0, rows) - preds.index_select(0, rows)
                    sample = dataset.subset(rows.numpy())
                else:
                    residual = y - preds
                    sample = dataset
                residual_set = sample.with_targets(residual.numpy())  # type: ignore[union-attr]

                member = self._learner.clone()
                member.train(residual_set, pool)
                contribution = torch.from_numpy(member.regress_all(dataset))
                preds.add_(contribution, alpha=lr)
                stages.append((member, lr))

                err = y - preds
                metrics: dict[str, float] = {
                    "stage": stage_idx + 1,
                    "sample_size": sample_size,
                    "residual_sq_sum": float((residual * residual).sum().item()),
                    "train_mse": float((w * err * err).sum().item() / w_total) if w_total > 0 else float("nan"),
                    "stage_seconds": perf_counter() - stage_start,
                }
                stage_metrics.append(metrics)
                if self._logger.isEnabledFor(logging.INFO):
                    self._logger.info(json.dumps(metrics))
                if stage_callback is not None:
                    stage_callback(stage_idx + 1, metrics)

        self._state = _BoostingState(
            initial_prediction=initial_prediction,
            initial_model=initial_model,
            stages=tuple(stages),
        )
        self._stage_metrics = stage_metrics

    def regress(self, point: DataPoint, num_stages: int | None = None) -> float:
        """Prediction using the first ``num_stages`` stages (all by default)."""
        state = self._require_state()
        if state.initial_model is not None:
            value = state.initial_model.regress(point)
        else:
            value = state.initial_prediction
        for model, weight in state.stages[: self._resolve_stages(state, num_stages)]:
            value += weight * model.regress(point)
        return float(value)

    def regress_all(self, dataset: DataSet, num_stages: int | None = None) -> np.ndarray:
        state = self._require_state()
        if state.initial_model is not None:
            out = np.asarray(state.initial_model.regress_all(dataset), dtype=np.float64).copy()
        else:
            out = np.full(dataset.size(), state.initial_prediction, dtype=np.float64)
        for model, weight in state.stages[: self._resolve_stages(state, num_stages)]:
            out += weight * model.regress_all(dataset)
        return out

    def clone(self) -> "StochasticGradientBoosting":
        """Independent copy; every stage model is cloned individually."""
        out = StochasticGradientBoosting(
            self._learner.clone(),
            self.config,
            initial_learner=None if self._initial_learner is None else self._initial_learner.clone(),
        )
        out._rng.set_state(self._rng.get_state())
        out._force_sequential = self._force_sequential
        if self._state is not None:
            out._state = _BoostingState(
                initial_prediction=self._state.initial_prediction,
                initial_model=None if self._state.initial_model is None else self._state.initial_model.clone(),
                stages=tuple((model.clone(), weight) for model, weight in self._state.stages),
            )
        out._stage_metrics = [dict(m) for m in self._stage_metrics]
        return out

    # Internals ----------------------------------------------------------

    def _require_state(self) -> _BoostingState:
        if self._state is None:
            raise RuntimeError("Model must be trained before prediction")
        return self._state

    @staticmethod
    def _resolve_stages(state: _BoostingState, num_stages: int | None) -> int:
        if num_stages is None:
            return len(state.stages)
        if not 0 <= num_stages <= len(state.stages):
            raise ValueError(f"num_stages must lie in [0, {len(state.stages)}], got {num_stages}")
        return int(num_stages)
