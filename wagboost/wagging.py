"""Wagging: an ensemble of base learners trained on noise-reweighted data."""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import Executor, wait
from dataclasses import dataclass
from time import perf_counter
from typing import FrozenSet, Sequence, Tuple

import numpy as np
import torch

from .config import WaggingConfig
from .core import DataPoint, DataSet
from .learners import CLASSIFY, REGRESS, BaseLearner, require_capability, task_capability

_MAX_WEIGHT_DRAWS = 100


@dataclass(frozen=True)
class _WaggingState:
    members: Tuple[BaseLearner, ...]
    task: str
    num_classes: int | None


class Wagging(BaseLearner):
    """Weight-aggregation ensemble.

    Every member is a clone of the base learner trained on the full data set,
    with each row's weight replaced by an independent draw from
    ``config.noise``. Regression output is the mean of member predictions;
    classification output is the normalised sum of member distributions.
    """

    def __init__(self, learner: BaseLearner, config: WaggingConfig | None = None) -> None:
        if not learner.capabilities:
            raise ValueError("base learner must support classification or regression")
        self.config = config if config is not None else WaggingConfig()
        self._learner = learner
        self._rng = torch.Generator(device="cpu")
        if self.config.random_state is not None:
            self._rng.manual_seed(int(self.config.random_state))
        else:
            self._rng.seed()
        self._logger = logging.getLogger(__name__)
        self._force_sequential = os.getenv("WAGBOOST_FORCE_SEQUENTIAL") == "1"

        # Runtime state
        self._state: _WaggingState | None = None
        self._member_metrics: list[dict[str, float]] = []

    # Public -------------------------------------------------------------

    @property
    def capabilities(self) -> FrozenSet[str]:
        return self._learner.capabilities

    @property
    def trained(self) -> bool:
        return self._state is not None

    @property
    def base_learner(self) -> BaseLearner:
        return self._learner

    @property
    def members(self) -> Sequence[BaseLearner]:
        return () if self._state is None else self._state.members

    @property
    def member_metrics(self) -> Sequence[dict[str, float]]:
        """Per-member metrics recorded during the most recent ``train`` call."""

        return self._member_metrics

    def train(self, dataset: DataSet, pool: Executor | None = None) -> None:
        """Train ``config.num_members`` reweighted clones of the base learner.

        Members run on ``pool`` when given, otherwise on the calling thread.
        The first member failure is re-raised and leaves the previous model
        in place.
        """
        task = task_capability(dataset)
        require_capability(self._learner, task)
        n = dataset.size()
        if n == 0:
            raise ValueError("cannot train on an empty data set")
        dataset.finish_adding()

        num_members = int(self.config.num_members)
        # Seeds are drawn up front so results do not depend on scheduling.
        seeds = torch.randint(0, 2**62, (num_members,), generator=self._rng, dtype=torch.int64).tolist()

        if pool is not None and self._force_sequential:
            self._logger.warning("WAGBOOST_FORCE_SEQUENTIAL=1; ignoring the supplied pool")
            pool = None

        if pool is None:
            results = [self._train_member(i, seed, dataset) for i, seed in enumerate(seeds)]
        else:
            futures = [pool.submit(self._train_member, i, seed, dataset) for i, seed in enumerate(seeds)]
            try:
                results = [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                wait(futures)
                raise

        num_classes = dataset.num_classes if task == CLASSIFY else None  # type: ignore[attr-defined]
        self._state = _WaggingState(
            members=tuple(member for member, _ in results),
            task=task,
            num_classes=num_classes,
        )
        self._member_metrics = [metrics for _, metrics in results]

    def draw_member_weights(self, seed: int, n: int) -> np.ndarray:
        """Row weights for the member seeded with ``seed``.

        A draw whose weights are all zero is redrawn from the same generator.
        """
        generator = torch.Generator(device="cpu")
        generator.manual_seed(int(seed))
        for _ in range(_MAX_WEIGHT_DRAWS):
            weights = torch.as_tensor(self.config.noise(generator, n), dtype=torch.float64)
            if weights.shape != (n,):
                raise ValueError(f"noise returned shape {tuple(weights.shape)}, expected ({n},)")
            if n == 0 or bool((weights > 0).any()):
                return weights.numpy().copy()
        raise ValueError(f"noise produced all-zero weights in {_MAX_WEIGHT_DRAWS} draws")

    def classify(self, point: DataPoint) -> np.ndarray:
        state = self._require_state(CLASSIFY)
        votes = np.zeros(int(state.num_classes or 0), dtype=np.float64)
        for member in state.members:
            votes += member.classify(point)
        total = votes.sum()
        return votes / total if total > 0 else votes

    def classify_all(self, dataset: DataSet) -> np.ndarray:
        state = self._require_state(CLASSIFY)
        votes = np.zeros((dataset.size(), int(state.num_classes or 0)), dtype=np.float64)
        for member in state.members:
            votes += member.classify_all(dataset)
        totals = votes.sum(axis=1, keepdims=True)
        np.divide(votes, totals, out=votes, where=totals > 0)
        return votes

    def regress(self, point: DataPoint) -> float:
        state = self._require_state(REGRESS)
        return float(np.mean([member.regress(point) for member in state.members]))

    def regress_all(self, dataset: DataSet) -> np.ndarray:
        state = self._require_state(REGRESS)
        out = np.zeros(dataset.size(), dtype=np.float64)
        for member in state.members:
            out += member.regress_all(dataset)
        return out / len(state.members)

    def clone(self) -> "Wagging":
        """Independent copy; every trained member is cloned individually."""
        out = Wagging(self._learner.clone(), self.config)
        out._rng.set_state(self._rng.get_state())
        out._force_sequential = self._force_sequential
        if self._state is not None:
            out._state = _WaggingState(
                members=tuple(member.clone() for member in self._state.members),
                task=self._state.task,
                num_classes=self._state.num_classes,
            )
        out._member_metrics = [dict(m) for m in self._member_metrics]
        return out

    # Internals ----------------------------------------------------------

    def _train_member(self, index: int, seed: int, dataset: DataSet) -> tuple[BaseLearner, dict[str, float]]:
        start = perf_counter()
        weights = self.draw_member_weights(seed, dataset.size())
        weighted = dataset.weight_clone()
        weighted.set_weights(weights)
        member = self._learner.clone()
        member.train(weighted)
        metrics: dict[str, float] = {
            "member": index + 1,
            "weight_sum": float(weights.sum()),
            "zero_weight_rows": int(np.count_nonzero(weights == 0.0)),
            "member_seconds": perf_counter() - start,
        }
        if self._logger.isEnabledFor(logging.INFO):
            self._logger.info(json.dumps(metrics))
        return member, metrics

    def _require_state(self, task: str) -> _WaggingState:
        if self._state is None:
            raise RuntimeError("Model must be trained before prediction")
        if self._state.task != task:
            raise RuntimeError(f"model was trained for {self._state.task}, not {task}")
        return self._state
