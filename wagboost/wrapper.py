"""scikit-learn wrappers for the wagboost ensembles."""

from __future__ import annotations

from typing import Optional

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor

from .booster import StochasticGradientBoosting
from .config import BoostingConfig, WaggingConfig
from .data import classification_from_arrays, regression_from_arrays, simple_from_arrays
from .learners import SklearnLearner
from .noise import normal_noise
from .wagging import Wagging


class BoostingRegressor(RegressorMixin, BaseEstimator):
    """scikit-learn compatible estimator wrapping :class:`StochasticGradientBoosting`."""

    def __init__(
        self,
        *,
        estimator=None,
        num_stages: int = 50,
        learning_rate: float = 0.1,
        subsample: float = 1.0,
        random_state: Optional[int] = None,
    ) -> None:
        self.estimator = estimator
        self.num_stages = num_stages
        self.learning_rate = learning_rate
        self.subsample = subsample
        self.random_state = random_state
        self._model: Optional[StochasticGradientBoosting] = None

    def fit(self, X: np.ndarray, y: np.ndarray, sample_weight: Optional[np.ndarray] = None) -> "BoostingRegressor":
        """Fit the estimator.

        Parameters
        ----------
        X: np.ndarray
            Feature matrix of shape (n_samples, n_features).
        y: np.ndarray
            Targets of shape (n_samples,).
        sample_weight: np.ndarray | None
            Optional non-negative row weights.
        """
        estimator = self.estimator if self.estimator is not None else DecisionTreeRegressor(max_depth=3)
        config = BoostingConfig(
            num_stages=self.num_stages,
            learning_rate=self.learning_rate,
            subsample=self.subsample,
            random_state=self.random_state,
        )
        model = StochasticGradientBoosting(SklearnLearner(estimator), config)
        model.train(regression_from_arrays(X, y, weights=sample_weight))
        self._model = model
        self.initial_prediction_ = model.initial_prediction
        self.n_features_in_ = np.asarray(X).reshape(len(y), -1).shape[1]
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        if self._model is None:
            raise RuntimeError("Estimator has not been fitted")
        return self._model.regress_all(simple_from_arrays(X))

    def get_model(self) -> StochasticGradientBoosting:
        if self._model is None:
            raise RuntimeError("Estimator has not been fitted")
        return self._model


class _WaggingEstimator(BaseEstimator):
    def __init__(
        self,
        *,
        estimator=None,
        num_members: int = 50,
        noise_mean: float = 1.0,
        noise_std: float = 2.0,
        random_state: Optional[int] = None,
    ) -> None:
        self.estimator = estimator
        self.num_members = num_members
        self.noise_mean = noise_mean
        self.noise_std = noise_std
        self.random_state = random_state
        self._model: Optional[Wagging] = None

    def _build(self, default_estimator) -> Wagging:
        estimator = self.estimator if self.estimator is not None else default_estimator
        config = WaggingConfig(
            num_members=self.num_members,
            noise=normal_noise(self.noise_mean, self.noise_std),
            random_state=self.random_state,
        )
        return Wagging(SklearnLearner(estimator), config)

    def get_model(self) -> Wagging:
        if self._model is None:
            raise RuntimeError("Estimator has not been fitted")
        return self._model


class WaggingRegressor(RegressorMixin, _WaggingEstimator):
    """scikit-learn compatible regressor wrapping :class:`Wagging`."""

    def fit(self, X: np.ndarray, y: np.ndarray, sample_weight: Optional[np.ndarray] = None) -> "WaggingRegressor":
        model = self._build(DecisionTreeRegressor())
        # Wagging replaces row weights, so ``sample_weight`` only validates input shape.
        model.train(regression_from_arrays(X, y, weights=sample_weight))
        self._model = model
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.get_model().regress_all(simple_from_arrays(X))


class WaggingClassifier(ClassifierMixin, _WaggingEstimator):
    """scikit-learn compatible classifier wrapping :class:`Wagging`.

    Arbitrary labels are encoded to ``0..k-1``; ``classes_`` maps them back.
    """

    def fit(self, X: np.ndarray, y: np.ndarray, sample_weight: Optional[np.ndarray] = None) -> "WaggingClassifier":
        classes, encoded = np.unique(np.asarray(y), return_inverse=True)
        model = self._build(DecisionTreeClassifier())
        model.train(
            classification_from_arrays(
                X,
                encoded.astype(np.int64),
                num_classes=len(classes),
                class_labels=[str(c) for c in classes],
                weights=sample_weight,
            )
        )
        self._model = model
        self.classes_ = classes
        return self

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        return self.get_model().classify_all(simple_from_arrays(X))

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.classes_[np.argmax(self.predict_proba(X), axis=1)]
