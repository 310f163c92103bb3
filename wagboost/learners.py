"""Base learner contract and the scikit-learn adapter.

Ensembles treat a base learner as a capability-tagged object: it may
classify, regress, or both. Trainers check the tags up front instead of
probing types at prediction time.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from typing import FrozenSet, Iterable

import numpy as np
from sklearn.base import clone as sk_clone
from sklearn.base import is_classifier, is_regressor

from .core import ClassificationDataSet, DataPoint, DataSet, RegressionDataSet

CLASSIFY = "classify"
REGRESS = "regress"
_ALL_CAPABILITIES = frozenset({CLASSIFY, REGRESS})


class BaseLearner(ABC):
    """Something that can be trained on a labeled data set and cloned.

    ``clone()`` must return a deep copy: training the copy must never change
    the original. Ensembles rely on this for member isolation.
    """

    @property
    @abstractmethod
    def capabilities(self) -> FrozenSet[str]:
        """Subset of ``{CLASSIFY, REGRESS}`` this learner supports."""

    @property
    @abstractmethod
    def trained(self) -> bool: ...

    @abstractmethod
    def train(self, dataset: DataSet, pool: Executor | None = None) -> None: ...

    @abstractmethod
    def clone(self) -> "BaseLearner": ...

    # Optional capabilities; the defaults refuse.

    def classify(self, point: DataPoint) -> np.ndarray:
        raise NotImplementedError(f"{type(self).__name__} does not support classification")

    def regress(self, point: DataPoint) -> float:
        raise NotImplementedError(f"{type(self).__name__} does not support regression")

    def classify_all(self, dataset: DataSet) -> np.ndarray:
        """Class distributions for every row, shape ``(size, num_classes)``."""
        rows = [self.classify(point) for point in dataset]
        if not rows:
            return np.empty((0, 0), dtype=np.float64)
        return np.vstack(rows)

    def regress_all(self, dataset: DataSet) -> np.ndarray:
        """Predictions for every row, shape ``(size,)``."""
        return np.fromiter((self.regress(point) for point in dataset), dtype=np.float64, count=dataset.size())


def supports(learner: BaseLearner, capability: str) -> bool:
    return capability in learner.capabilities


def require_capability(learner: BaseLearner, capability: str) -> None:
    if not supports(learner, capability):
        raise ValueError(f"{type(learner).__name__} cannot {capability}; capabilities={sorted(learner.capabilities)}")


def task_capability(dataset: DataSet) -> str:
    """Capability a learner needs to train on ``dataset``."""
    if isinstance(dataset, ClassificationDataSet):
        return CLASSIFY
    if isinstance(dataset, RegressionDataSet):
        return REGRESS
    raise ValueError(f"cannot train on unlabeled data set {type(dataset).__name__}")


def _validate_capabilities(capabilities: Iterable[str]) -> FrozenSet[str]:
    caps = frozenset(capabilities)
    unknown = caps - _ALL_CAPABILITIES
    if unknown:
        raise ValueError(f"unknown capabilities: {sorted(unknown)}")
    if not caps:
        raise ValueError("a base learner needs at least one capability")
    return caps


class SklearnLearner(BaseLearner):
    """Adapter exposing a scikit-learn estimator as a base learner.

    Features are handed to the estimator as ``DataSet.feature_matrix()``
    (numeric columns followed by categorical codes) and row weights as
    ``sample_weight``.
    """

    def __init__(self, estimator, capabilities: Iterable[str] | None = None) -> None:
        if capabilities is None:
            inferred = set()
            if is_classifier(estimator):
                inferred.add(CLASSIFY)
            if is_regressor(estimator):
                inferred.add(REGRESS)
            capabilities = inferred
        self._capabilities = _validate_capabilities(capabilities)
        self.estimator = estimator
        self._num_classes: int | None = None
        self._trained = False

    @property
    def capabilities(self) -> FrozenSet[str]:
        return self._capabilities

    @property
    def trained(self) -> bool:
        return self._trained

    def train(self, dataset: DataSet, pool: Executor | None = None) -> None:
        capability = task_capability(dataset)
        require_capability(self, capability)
        if dataset.size() == 0:
            raise ValueError("cannot train on an empty data set")
        X = dataset.feature_matrix()
        y = dataset.targets  # type: ignore[attr-defined]
        self.estimator.fit(X, y, sample_weight=dataset.weights)
        self._num_classes = dataset.num_classes if capability == CLASSIFY else None  # type: ignore[attr-defined]
        self._trained = True

    def _check_trained(self) -> None:
        if not self._trained:
            raise RuntimeError("Learner must be trained before prediction")

    def _expand_proba(self, proba: np.ndarray) -> np.ndarray:
        out = np.zeros((proba.shape[0], int(self._num_classes or 0)), dtype=np.float64)
        classes = np.asarray(self.estimator.classes_, dtype=np.int64)
        out[:, classes] = proba
        return out

    def classify(self, point: DataPoint) -> np.ndarray:
        self._check_trained()
        require_capability(self, CLASSIFY)
        row = np.concatenate([point.numerical, point.categorical.astype(np.float64)]).reshape(1, -1)
        return self._expand_proba(self.estimator.predict_proba(row))[0]

    def regress(self, point: DataPoint) -> float:
        self._check_trained()
        require_capability(self, REGRESS)
        row = np.concatenate([point.numerical, point.categorical.astype(np.float64)]).reshape(1, -1)
        return float(self.estimator.predict(row)[0])

    def classify_all(self, dataset: DataSet) -> np.ndarray:
        self._check_trained()
        require_capability(self, CLASSIFY)
        if dataset.size() == 0:
            return np.empty((0, int(self._num_classes or 0)), dtype=np.float64)
        return self._expand_proba(self.estimator.predict_proba(dataset.feature_matrix()))

    def regress_all(self, dataset: DataSet) -> np.ndarray:
        self._check_trained()
        require_capability(self, REGRESS)
        if dataset.size() == 0:
            return np.empty(0, dtype=np.float64)
        return np.asarray(self.estimator.predict(dataset.feature_matrix()), dtype=np.float64)

    def clone(self) -> "SklearnLearner":
        """Deep copy, trained state included."""
        return copy.deepcopy(self)

    def untrained_clone(self) -> "SklearnLearner":
        """Fresh adapter around an unfitted copy of the estimator."""
        return SklearnLearner(sk_clone(self.estimator), self._capabilities)

    def __repr__(self) -> str:
        return f"SklearnLearner({self.estimator!r})"
