"""Physical storage for collections of data points."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, List, Sequence, Tuple

import numpy as np

from .points import CategoricalData, DataPoint, validate_point


class DataStore(ABC):
    """Container for the rows of a data set in one physical layout."""

    def __init__(self, num_numerical: int, categories: Sequence[CategoricalData]) -> None:
        if num_numerical < 0:
            raise ValueError("num_numerical must be non-negative")
        self._num_numerical = int(num_numerical)
        self._categories: Tuple[CategoricalData, ...] = tuple(categories)

    @property
    def num_numerical(self) -> int:
        return self._num_numerical

    @property
    def num_categorical(self) -> int:
        return len(self._categories)

    @property
    def categories(self) -> Tuple[CategoricalData, ...]:
        return self._categories

    @property
    @abstractmethod
    def row_major(self) -> bool:
        """``True`` when rows are stored as individual points."""

    @abstractmethod
    def size(self) -> int: ...

    @abstractmethod
    def add(self, point: DataPoint) -> None: ...

    def finish_adding(self) -> None:
        """Signal that a batch of :meth:`add` calls is complete."""

    @abstractmethod
    def get(self, index: int) -> DataPoint: ...

    @abstractmethod
    def set(self, index: int, point: DataPoint) -> None: ...

    @abstractmethod
    def iter_rows(self) -> Iterator[DataPoint]:
        """Iterate over all rows in stable storage order."""

    @abstractmethod
    def numeric_matrix(self) -> np.ndarray:
        """Dense ``(size, num_numerical)`` copy of the numeric features."""

    @abstractmethod
    def categorical_matrix(self) -> np.ndarray:
        """Dense ``(size, num_categorical)`` copy of the categorical features."""

    @abstractmethod
    def empty_clone(self) -> "DataStore":
        """Return an empty store with the same layout and schema."""

    def clone(self) -> "DataStore":
        """Return a deep copy sharing no mutable state with ``self``."""
        out = self.empty_clone()
        for point in self.iter_rows():
            out.add(point.copy())
        out.finish_adding()
        return out

    def to_list(self) -> List[DataPoint]:
        return list(self.iter_rows())

    def __len__(self) -> int:
        return self.size()

    def _check_index(self, index: int) -> int:
        n = self.size()
        idx = int(index)
        if not 0 <= idx < n:
            raise IndexError(f"row {index} out of range [0, {n})")
        return idx


class RowMajorStore(DataStore):
    """Array-of-points layout."""

    def __init__(
        self,
        num_numerical: int,
        categories: Sequence[CategoricalData],
        points: Sequence[DataPoint] | None = None,
    ) -> None:
        super().__init__(num_numerical, categories)
        self._points: list[DataPoint] = []
        if points is not None:
            for point in points:
                self.add(point)

    @property
    def row_major(self) -> bool:
        return True

    def size(self) -> int:
        return len(self._points)

    def add(self, point: DataPoint) -> None:
        validate_point(point, self._num_numerical, self._categories)
        self._points.append(point)

    def get(self, index: int) -> DataPoint:
        return self._points[self._check_index(index)]

    def set(self, index: int, point: DataPoint) -> None:
        validate_point(point, self._num_numerical, self._categories)
        self._points[self._check_index(index)] = point

    def iter_rows(self) -> Iterator[DataPoint]:
        return iter(self._points)

    def numeric_matrix(self) -> np.ndarray:
        if not self._points:
            return np.empty((0, self._num_numerical), dtype=np.float64)
        return np.vstack([p.numerical for p in self._points]).reshape(len(self._points), self._num_numerical)

    def categorical_matrix(self) -> np.ndarray:
        if not self._points:
            return np.empty((0, self.num_categorical), dtype=np.int64)
        return np.vstack([p.categorical for p in self._points]).reshape(len(self._points), self.num_categorical)

    def empty_clone(self) -> "RowMajorStore":
        return RowMajorStore(self._num_numerical, self._categories)

    def shallow_copy(self) -> "RowMajorStore":
        """New row list holding the same point objects."""
        out = self.empty_clone()
        out._points = list(self._points)
        return out


class ColumnMajorStore(DataStore):
    """Array-of-columns layout.

    Numeric features live in a ``(num_numerical, size)`` array and categorical
    features in a ``(num_categorical, size)`` array, one row per feature.
    Appended points are buffered until :meth:`finish_adding` (or the next read)
    compacts them into the column arrays.
    """

    def __init__(
        self,
        num_numerical: int,
        categories: Sequence[CategoricalData],
        points: Sequence[DataPoint] | None = None,
    ) -> None:
        super().__init__(num_numerical, categories)
        self._num = np.empty((self._num_numerical, 0), dtype=np.float64)
        self._cat = np.empty((self.num_categorical, 0), dtype=np.int64)
        self._pending: list[DataPoint] = []
        if points is not None:
            for point in points:
                self.add(point)
            self.finish_adding()

    @classmethod
    def from_columns(
        cls,
        numeric: np.ndarray,
        categorical: np.ndarray,
        categories: Sequence[CategoricalData],
    ) -> "ColumnMajorStore":
        """Build a store from ``(n, m)`` feature matrices without per-row copies."""
        num = np.asarray(numeric, dtype=np.float64)
        cat = np.asarray(categorical, dtype=np.int64)
        if num.ndim != 2 or cat.ndim != 2:
            raise ValueError("numeric and categorical matrices must be 2D")
        if num.shape[0] != cat.shape[0]:
            raise ValueError("numeric and categorical matrices must have the same row count")
        if cat.shape[1] != len(categories):
            raise ValueError(
                f"categorical matrix has {cat.shape[1]} columns, expected {len(categories)}"
            )
        for j, c in enumerate(categories):
            col = cat[:, j]
            if col.size and (col.min() < 0 or col.max() >= c.num_categories):
                raise ValueError(f"categorical feature {j} has values outside [0, {c.num_categories})")
        store = cls(num.shape[1], categories)
        store._num = np.ascontiguousarray(num.T).copy()
        store._cat = np.ascontiguousarray(cat.T).copy()
        return store

    @property
    def row_major(self) -> bool:
        return False

    def _compact(self) -> None:
        if not self._pending:
            return
        new_num = np.array([p.numerical for p in self._pending], dtype=np.float64).reshape(
            len(self._pending), self._num_numerical
        )
        new_cat = np.array([p.categorical for p in self._pending], dtype=np.int64).reshape(
            len(self._pending), self.num_categorical
        )
        self._num = np.concatenate([self._num, new_num.T], axis=1)
        self._cat = np.concatenate([self._cat, new_cat.T], axis=1)
        self._pending = []

    def size(self) -> int:
        return int(self._num.shape[1]) + len(self._pending)

    def add(self, point: DataPoint) -> None:
        validate_point(point, self._num_numerical, self._categories)
        self._pending.append(point)

    def finish_adding(self) -> None:
        self._compact()

    def get(self, index: int) -> DataPoint:
        idx = self._check_index(index)
        self._compact()
        return DataPoint(self._num[:, idx], self._cat[:, idx])

    def set(self, index: int, point: DataPoint) -> None:
        validate_point(point, self._num_numerical, self._categories)
        idx = self._check_index(index)
        self._compact()
        self._num[:, idx] = point.numerical
        self._cat[:, idx] = point.categorical

    def iter_rows(self) -> Iterator[DataPoint]:
        self._compact()
        num, cat = self._num, self._cat
        for i in range(num.shape[1]):
            yield DataPoint(num[:, i], cat[:, i])

    def numeric_matrix(self) -> np.ndarray:
        self._compact()
        return self._num.T.copy()

    def categorical_matrix(self) -> np.ndarray:
        self._compact()
        return self._cat.T.copy()

    def empty_clone(self) -> "ColumnMajorStore":
        return ColumnMajorStore(self._num_numerical, self._categories)

    def clone(self) -> "ColumnMajorStore":
        self._compact()
        out = self.empty_clone()
        out._num = self._num.copy()
        out._cat = self._cat.copy()
        return out


def convert_store(store: DataStore, row_major: bool) -> DataStore:
    """Copy ``store`` into the requested layout."""
    if row_major:
        out: DataStore = RowMajorStore(store.num_numerical, store.categories)
    else:
        out = ColumnMajorStore(store.num_numerical, store.categories)
    for point in store.iter_rows():
        out.add(point.copy())
    out.finish_adding()
    return out
