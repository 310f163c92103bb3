"""Logical data set views over a :class:`~wagboost.core.store.DataStore`."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Sequence, Tuple

import numpy as np

from .points import CategoricalData, DataPoint, fit_categorical
from .store import ColumnMajorStore, DataStore, RowMajorStore, convert_store


def _new_store(row_major: bool, num_numerical: int, categories: Sequence[CategoricalData]) -> DataStore:
    if row_major:
        return RowMajorStore(num_numerical, categories)
    return ColumnMajorStore(num_numerical, categories)


def _check_weight(weight: float) -> float:
    w = float(weight)
    if not math.isfinite(w) or w < 0.0:
        raise ValueError(f"weights must be finite and non-negative, got {weight}")
    return w


class DataSet(ABC):
    """A data store plus the schema and per-row weights of its rows.

    Weights are kept here, index-aligned with the store's row order, so that
    re-weighting never touches feature data. Derived sets (subsets, layout
    conversions, clones) rebuild weights and targets in lock-step with the
    selected rows.
    """

    def __init__(self, store: DataStore, weights: Sequence[float] | np.ndarray | None = None) -> None:
        store.finish_adding()
        n = store.size()
        if weights is None:
            w = np.ones(n, dtype=np.float64)
        else:
            w = np.array(weights, dtype=np.float64).reshape(-1)
            if w.shape[0] != n:
                raise ValueError(f"got {w.shape[0]} weights for {n} rows")
            if w.size and (not np.all(np.isfinite(w)) or w.min() < 0.0):
                raise ValueError("weights must be finite and non-negative")
        self._store = store
        self._weights = w
        # Set while another data set holds the same store; appends copy it first.
        self._store_shared = False

    # Schema -------------------------------------------------------------

    @property
    def store(self) -> DataStore:
        return self._store

    @property
    def num_numerical(self) -> int:
        return self._store.num_numerical

    @property
    def num_categorical(self) -> int:
        return self._store.num_categorical

    @property
    def categories(self) -> Tuple[CategoricalData, ...]:
        return self._store.categories

    @property
    def row_major(self) -> bool:
        return self._store.row_major

    def size(self) -> int:
        return self._store.size()

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[DataPoint]:
        return self._store.iter_rows()

    # Rows and weights ---------------------------------------------------

    def get_point(self, index: int) -> DataPoint:
        return self._store.get(index)

    def get_weight(self, index: int) -> float:
        return float(self._weights[self._check_index(index)])

    def set_weight(self, index: int, weight: float) -> None:
        self._weights[self._check_index(index)] = _check_weight(weight)

    @property
    def weights(self) -> np.ndarray:
        """Copy of the per-row weights."""
        return self._weights.copy()

    def set_weights(self, weights: Sequence[float] | np.ndarray) -> None:
        w = np.array(weights, dtype=np.float64).reshape(-1)
        if w.shape[0] != self.size():
            raise ValueError(f"got {w.shape[0]} weights for {self.size()} rows")
        if w.size and (not np.all(np.isfinite(w)) or w.min() < 0.0):
            raise ValueError("weights must be finite and non-negative")
        self._weights = w

    def finish_adding(self) -> None:
        self._store.finish_adding()

    def feature_matrix(self) -> np.ndarray:
        """Numeric features followed by categorical codes as one float matrix."""
        numeric = self._store.numeric_matrix()
        if self.num_categorical == 0:
            return numeric
        return np.hstack([numeric, self._store.categorical_matrix().astype(np.float64)])

    # Derivation ---------------------------------------------------------

    def subset(self, indices: Iterable[int]) -> "DataSet":
        """Return a new data set holding rows ``indices`` in the given order.

        Indices may repeat and appear in any order. Row-major stores fetch each
        row directly. Column-major stores map every requested original
        position to its new position(s) and collect all rows in a single pass
        over the store, which avoids one column gather per requested row.
        """
        rows = self._check_indices(indices)
        if self._store.row_major:
            new_store = self._store.empty_clone()
            for i in rows:
                new_store.add(self._store.get(int(i)))
            new_store.finish_adding()
        else:
            new_store = self._gather_single_pass(rows)
        return self._derive(new_store, rows)

    def _gather_single_pass(self, rows: np.ndarray) -> DataStore:
        old_to_new: dict[int, list[int]] = {}
        for new_pos, old_pos in enumerate(rows.tolist()):
            old_to_new.setdefault(old_pos, []).append(new_pos)

        width = self.num_categorical
        gathered: list[DataPoint | None] = [None] * rows.shape[0]
        remaining = len(old_to_new)
        for orig_pos, dp in enumerate(self._store.iter_rows()):
            if remaining == 0:
                break
            targets = old_to_new.get(orig_pos)
            if targets is None:
                continue
            remaining -= 1
            for new_pos in targets:
                gathered[new_pos] = DataPoint(dp.numerical, fit_categorical(dp.categorical, width))

        new_store = self._store.empty_clone()
        for point in gathered:
            new_store.add(point)  # type: ignore[arg-type]
        new_store.finish_adding()
        return new_store

    def as_row_major(self) -> "DataSet":
        return self._derive(convert_store(self._store, row_major=True), None)

    def as_column_major(self) -> "DataSet":
        return self._derive(convert_store(self._store, row_major=False), None)

    def shallow_clone(self) -> "DataSet":
        """New row container reusing point data where the layout allows it."""
        if isinstance(self._store, RowMajorStore):
            store: DataStore = self._store.shallow_copy()
        else:
            store = self._store.clone()
        return self._derive(store, None)

    def weight_clone(self) -> "DataSet":
        """Share the store, copy only weights (and targets).

        The returned set may be re-weighted freely. Adding rows to either set
        first gives that set a private copy of the store.
        """
        return self._share_store(self._derive(self._store, None))

    def empty_clone(self) -> "DataSet":
        return self._derive(self._store.empty_clone(), np.empty(0, dtype=np.int64))

    def clone(self) -> "DataSet":
        """Deep copy sharing no mutable state with ``self``."""
        return self._derive(self._store.clone(), None)

    @abstractmethod
    def _derive(self, store: DataStore, rows: np.ndarray | None) -> "DataSet":
        """Build a set of the same kind over ``store`` keeping ``rows`` of the per-row arrays."""

    def _share_store(self, view: "DataSet") -> "DataSet":
        self._store_shared = True
        view._store_shared = True
        return view

    def _append_store(self) -> DataStore:
        if self._store_shared:
            self._store = self._store.clone()
            self._store_shared = False
        return self._store

    def _take_weights(self, rows: np.ndarray | None) -> np.ndarray:
        if rows is None:
            return self._weights.copy()
        return self._weights[rows]

    # Validation ---------------------------------------------------------

    def _check_index(self, index: int) -> int:
        n = self.size()
        idx = int(index)
        if not 0 <= idx < n:
            raise IndexError(f"row {index} out of range [0, {n})")
        return idx

    def _check_indices(self, indices: Iterable[int]) -> np.ndarray:
        rows = np.asarray(list(indices) if not isinstance(indices, np.ndarray) else indices)
        if rows.size == 0:
            return np.empty(0, dtype=np.int64)
        if rows.ndim != 1:
            raise ValueError("indices must be 1D")
        if not np.issubdtype(rows.dtype, np.integer):
            raise ValueError("indices must be integers")
        rows = rows.astype(np.int64, copy=False)
        n = self.size()
        bad = (rows < 0) | (rows >= n)
        if bad.any():
            raise IndexError(f"row {int(rows[bad][0])} out of range [0, {n})")
        return rows


class SimpleDataSet(DataSet):
    """Unlabeled data set."""

    @classmethod
    def empty(
        cls,
        num_numerical: int,
        categories: Sequence[CategoricalData] = (),
        *,
        row_major: bool = True,
    ) -> "SimpleDataSet":
        return cls(_new_store(row_major, num_numerical, categories))

    @classmethod
    def from_points(cls, points: Sequence[DataPoint], *, row_major: bool = True,
                    categories: Sequence[CategoricalData] | None = None) -> "SimpleDataSet":
        if not points:
            raise ValueError("from_points needs at least one point to infer the schema")
        first = points[0]
        if categories is None:
            categories = _infer_categories(points)
        store = _new_store(row_major, first.num_numerical, categories)
        for point in points:
            store.add(point)
        return cls(store)

    def add(self, point: DataPoint, weight: float = 1.0) -> None:
        w = _check_weight(weight)
        self._append_store().add(point)
        self._weights = np.append(self._weights, w)

    def as_classification_dataset(self, index: int) -> "ClassificationDataSet":
        """Turn categorical feature ``index`` into the class target."""
        if index < 0:
            raise ValueError("index must be non-negative")
        if self.num_categorical == 0:
            raise ValueError("data set has no categorical features to predict")
        if index >= self.num_categorical:
            raise ValueError(
                f"index {index} exceeds number of categorical features {self.num_categorical}"
            )
        categories = list(self.categories)
        predicting = categories.pop(index)
        store = _new_store(self.row_major, self.num_numerical, categories)
        targets = np.empty(self.size(), dtype=np.int64)
        for i, dp in enumerate(self._store.iter_rows()):
            targets[i] = dp.categorical[index]
            store.add(DataPoint(dp.numerical, np.delete(dp.categorical, index)))
        return ClassificationDataSet(store, predicting, targets, self._weights.copy())

    def as_regression_dataset(self, index: int) -> "RegressionDataSet":
        """Turn numeric feature ``index`` into the regression target."""
        if index < 0:
            raise ValueError("index must be non-negative")
        if self.num_numerical == 0:
            raise ValueError("data set has no numeric features to predict")
        if index >= self.num_numerical:
            raise ValueError(
                f"index {index} exceeds number of numeric features {self.num_numerical}"
            )
        store = _new_store(self.row_major, self.num_numerical - 1, self.categories)
        targets = np.empty(self.size(), dtype=np.float64)
        for i, dp in enumerate(self._store.iter_rows()):
            targets[i] = dp.numerical[index]
            store.add(DataPoint(np.delete(dp.numerical, index), dp.categorical))
        return RegressionDataSet(store, targets, self._weights.copy())

    def _derive(self, store: DataStore, rows: np.ndarray | None) -> "SimpleDataSet":
        return SimpleDataSet(store, self._take_weights(rows))


class ClassificationDataSet(DataSet):
    """Data set whose rows carry a class label from ``predicting``."""

    def __init__(
        self,
        store: DataStore,
        predicting: CategoricalData,
        targets: Sequence[int] | np.ndarray,
        weights: Sequence[float] | np.ndarray | None = None,
    ) -> None:
        super().__init__(store, weights)
        if not isinstance(predicting, CategoricalData):
            raise ValueError("predicting must be a CategoricalData")
        y = np.array(targets, dtype=np.int64).reshape(-1)
        if y.shape[0] != self.size():
            raise ValueError(f"got {y.shape[0]} targets for {self.size()} rows")
        if y.size and (y.min() < 0 or y.max() >= predicting.num_categories):
            raise ValueError(f"class labels must lie in [0, {predicting.num_categories})")
        self._predicting = predicting
        self._targets = y

    @classmethod
    def from_points(
        cls,
        points: Sequence[DataPoint],
        targets: Sequence[int] | np.ndarray,
        predicting: CategoricalData,
        *,
        categories: Sequence[CategoricalData] = (),
        row_major: bool = True,
        weights: Sequence[float] | np.ndarray | None = None,
    ) -> "ClassificationDataSet":
        num_numerical = points[0].num_numerical if points else 0
        store = _new_store(row_major, num_numerical, categories)
        for point in points:
            store.add(point)
        return cls(store, predicting, targets, weights)

    @property
    def predicting(self) -> CategoricalData:
        return self._predicting

    @property
    def num_classes(self) -> int:
        return self._predicting.num_categories

    @property
    def targets(self) -> np.ndarray:
        return self._targets.copy()

    def get_category(self, index: int) -> int:
        return int(self._targets[self._check_index(index)])

    def add(self, point: DataPoint, category: int, weight: float = 1.0) -> None:
        if not 0 <= int(category) < self.num_classes:
            raise ValueError(f"class label {category} outside [0, {self.num_classes})")
        w = _check_weight(weight)
        self._append_store().add(point)
        self._targets = np.append(self._targets, int(category))
        self._weights = np.append(self._weights, w)

    def class_priors(self) -> np.ndarray:
        """Weighted class frequencies, normalised to sum to one."""
        priors = np.bincount(self._targets, weights=self._weights, minlength=self.num_classes)
        total = priors.sum()
        if total <= 0.0:
            return np.full(self.num_classes, 1.0 / self.num_classes)
        return priors / total

    def _derive(self, store: DataStore, rows: np.ndarray | None) -> "ClassificationDataSet":
        targets = self._targets.copy() if rows is None else self._targets[rows]
        return ClassificationDataSet(store, self._predicting, targets, self._take_weights(rows))


class RegressionDataSet(DataSet):
    """Data set whose rows carry a continuous target."""

    def __init__(
        self,
        store: DataStore,
        targets: Sequence[float] | np.ndarray,
        weights: Sequence[float] | np.ndarray | None = None,
    ) -> None:
        super().__init__(store, weights)
        y = np.array(targets, dtype=np.float64).reshape(-1)
        if y.shape[0] != self.size():
            raise ValueError(f"got {y.shape[0]} targets for {self.size()} rows")
        self._targets = y

    @classmethod
    def from_points(
        cls,
        points: Sequence[DataPoint],
        targets: Sequence[float] | np.ndarray,
        *,
        categories: Sequence[CategoricalData] = (),
        row_major: bool = True,
        weights: Sequence[float] | np.ndarray | None = None,
    ) -> "RegressionDataSet":
        num_numerical = points[0].num_numerical if points else 0
        store = _new_store(row_major, num_numerical, categories)
        for point in points:
            store.add(point)
        return cls(store, targets, weights)

    @property
    def targets(self) -> np.ndarray:
        return self._targets.copy()

    def get_target(self, index: int) -> float:
        return float(self._targets[self._check_index(index)])

    def set_target(self, index: int, value: float) -> None:
        self._targets[self._check_index(index)] = float(value)

    def add(self, point: DataPoint, target: float, weight: float = 1.0) -> None:
        w = _check_weight(weight)
        self._append_store().add(point)
        self._targets = np.append(self._targets, float(target))
        self._weights = np.append(self._weights, w)

    def weighted_mean_target(self) -> float:
        total = float(self._weights.sum())
        if total <= 0.0:
            raise ValueError("weighted mean needs a positive total weight")
        return float(np.dot(self._weights, self._targets) / total)

    def with_targets(self, targets: Sequence[float] | np.ndarray) -> "RegressionDataSet":
        """Same rows and weights, new targets. The store is shared read-only."""
        return self._share_store(RegressionDataSet(self._store, targets, self._weights.copy()))  # type: ignore[return-value]

    def _derive(self, store: DataStore, rows: np.ndarray | None) -> "RegressionDataSet":
        targets = self._targets.copy() if rows is None else self._targets[rows]
        return RegressionDataSet(store, targets, self._take_weights(rows))


def _infer_categories(points: Sequence[DataPoint]) -> list[CategoricalData]:
    width = points[0].num_categorical
    if width == 0:
        return []
    cat = np.vstack([p.categorical for p in points])
    return [CategoricalData(int(cat[:, j].max()) + 1) for j in range(width)]
