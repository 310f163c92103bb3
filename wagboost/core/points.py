"""Feature schema and single-observation structures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

_EMPTY_NUM = np.empty(0, dtype=np.float64)
_EMPTY_CAT = np.empty(0, dtype=np.int64)


@dataclass(frozen=True)
class CategoricalData:
    """Value domain of one categorical feature."""

    num_categories: int
    name: str | None = None
    labels: Tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if int(self.num_categories) < 1:
            raise ValueError("num_categories must be >= 1")
        if self.labels is not None:
            labels = tuple(str(label) for label in self.labels)
            if len(labels) != self.num_categories:
                raise ValueError(
                    f"expected {self.num_categories} labels, got {len(labels)}"
                )
            object.__setattr__(self, "labels", labels)

    def label(self, value: int) -> str:
        if not 0 <= value < self.num_categories:
            raise IndexError(f"category {value} out of range [0, {self.num_categories})")
        if self.labels is None:
            return str(value)
        return self.labels[value]


class DataPoint:
    """One observation: a numeric vector and a categorical vector.

    Both arrays are copied on construction and frozen, so points can be
    shared between stores without aliasing writable memory. Weights live on
    the owning data set, not on the point.
    """

    __slots__ = ("numerical", "categorical")
    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        numerical: Sequence[float] | np.ndarray | None = None,
        categorical: Sequence[int] | np.ndarray | None = None,
    ) -> None:
        if numerical is None:
            num = _EMPTY_NUM.copy()
        else:
            num = np.array(numerical, dtype=np.float64).reshape(-1)
        if categorical is None:
            cat = _EMPTY_CAT.copy()
        else:
            cat = np.array(categorical, dtype=np.int64).reshape(-1)
        num.flags.writeable = False
        cat.flags.writeable = False
        self.numerical = num
        self.categorical = cat

    @property
    def num_numerical(self) -> int:
        return int(self.numerical.shape[0])

    @property
    def num_categorical(self) -> int:
        return int(self.categorical.shape[0])

    def copy(self) -> "DataPoint":
        return DataPoint(self.numerical, self.categorical)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DataPoint):
            return NotImplemented
        return np.array_equal(self.numerical, other.numerical) and np.array_equal(
            self.categorical, other.categorical
        )

    def __repr__(self) -> str:
        return f"DataPoint(numerical={self.numerical.tolist()}, categorical={self.categorical.tolist()})"


def validate_point(point: DataPoint, num_numerical: int, categories: Sequence[CategoricalData]) -> None:
    """Raise ``ValueError`` unless ``point`` matches the given schema."""
    if point.num_numerical != num_numerical:
        raise ValueError(
            f"point has {point.num_numerical} numeric values, schema expects {num_numerical}"
        )
    if point.num_categorical != len(categories):
        raise ValueError(
            f"point has {point.num_categorical} categorical values, schema expects {len(categories)}"
        )
    for j, (value, cat) in enumerate(zip(point.categorical, categories)):
        if not 0 <= int(value) < cat.num_categories:
            raise ValueError(
                f"categorical feature {j} value {int(value)} outside [0, {cat.num_categories})"
            )


def fit_categorical(values: np.ndarray, width: int) -> np.ndarray:
    """Return a copy of ``values`` padded with zeros or truncated to ``width``."""
    out = np.zeros(width, dtype=np.int64)
    k = min(width, int(values.shape[0]))
    out[:k] = values[:k]
    return out
