"""Builders turning array-like inputs into wagboost data sets."""

from __future__ import annotations

from typing import Literal, Sequence

import numpy as np
import torch

from .core import (
    CategoricalData,
    ClassificationDataSet,
    ColumnMajorStore,
    DataPoint,
    DataStore,
    RegressionDataSet,
    RowMajorStore,
    SimpleDataSet,
)

Layout = Literal["row", "column"]


def ensure_numpy(array: np.ndarray | torch.Tensor | Sequence[float]) -> np.ndarray:
    """Convert ``array`` (numpy, torch, pandas or a sequence) to an ``np.ndarray``."""

    if isinstance(array, np.ndarray):
        return np.asarray(array)
    if isinstance(array, torch.Tensor):  # pragma: no cover - convenience path
        return array.detach().cpu().numpy()
    return np.asarray(array)


def _as_matrix(X, name: str) -> np.ndarray:
    X_np = ensure_numpy(X)
    if X_np.ndim == 1:
        X_np = X_np.reshape(-1, 1)
    if X_np.ndim != 2:
        raise ValueError(f"{name} must be 2D")
    return X_np


def build_store(
    X,
    categorical=None,
    categories: Sequence[CategoricalData] | None = None,
    *,
    layout: Layout = "row",
) -> DataStore:
    """Build a store from a numeric matrix and an optional categorical code matrix."""

    X_np = _as_matrix(X, "X").astype(np.float64, copy=False)
    n = X_np.shape[0]
    if categorical is None:
        cat_np = np.empty((n, 0), dtype=np.int64)
    else:
        cat_np = _as_matrix(categorical, "categorical")
        if not np.issubdtype(cat_np.dtype, np.integer):
            rounded = np.rint(cat_np)
            if not np.allclose(cat_np, rounded, atol=0.0):
                raise ValueError("categorical codes must be integer-valued")
            cat_np = rounded
        cat_np = cat_np.astype(np.int64, copy=False)
        if cat_np.shape[0] != n:
            raise ValueError("X and categorical row mismatch")
    if categories is None:
        categories = [
            CategoricalData(int(cat_np[:, j].max(initial=0)) + 1) for j in range(cat_np.shape[1])
        ]
    if layout == "column":
        return ColumnMajorStore.from_columns(X_np, cat_np, categories)
    if layout != "row":
        raise ValueError(f"Unsupported layout: {layout}")
    store = RowMajorStore(X_np.shape[1], categories)
    for i in range(n):
        store.add(DataPoint(X_np[i], cat_np[i]))
    return store


def simple_from_arrays(
    X,
    *,
    categorical=None,
    categories: Sequence[CategoricalData] | None = None,
    weights=None,
    layout: Layout = "row",
) -> SimpleDataSet:
    store = build_store(X, categorical, categories, layout=layout)
    return SimpleDataSet(store, None if weights is None else ensure_numpy(weights))


def regression_from_arrays(
    X,
    y,
    *,
    categorical=None,
    categories: Sequence[CategoricalData] | None = None,
    weights=None,
    layout: Layout = "row",
) -> RegressionDataSet:
    """Return a :class:`RegressionDataSet` with targets ``y``."""

    y_np = ensure_numpy(y).astype(np.float64, copy=False)
    if y_np.ndim != 1:
        raise ValueError("y must be 1-D")
    store = build_store(X, categorical, categories, layout=layout)
    if store.size() != y_np.shape[0]:
        raise ValueError("X and y row mismatch")
    return RegressionDataSet(store, y_np, None if weights is None else ensure_numpy(weights))


def classification_from_arrays(
    X,
    y,
    *,
    num_classes: int | None = None,
    class_labels: Sequence[str] | None = None,
    categorical=None,
    categories: Sequence[CategoricalData] | None = None,
    weights=None,
    layout: Layout = "row",
) -> ClassificationDataSet:
    """Return a :class:`ClassificationDataSet` with integer labels ``y``.

    ``y`` must already be encoded as ``0..num_classes-1``. When
    ``num_classes`` is ``None`` it is inferred from ``class_labels`` or from
    the largest label present.
    """

    y_np = ensure_numpy(y)
    if y_np.ndim != 1:
        raise ValueError("y must be 1-D")
    if not np.issubdtype(y_np.dtype, np.integer):
        rounded = np.rint(y_np.astype(np.float64))
        if not np.allclose(y_np.astype(np.float64), rounded, atol=0.0):
            raise ValueError("class labels must be integer-encoded")
        y_np = rounded
    y_np = y_np.astype(np.int64, copy=False)
    if num_classes is None:
        num_classes = len(class_labels) if class_labels is not None else int(y_np.max(initial=0)) + 1
    predicting = CategoricalData(
        int(num_classes),
        name="class",
        labels=tuple(class_labels) if class_labels is not None else None,
    )
    store = build_store(X, categorical, categories, layout=layout)
    if store.size() != y_np.shape[0]:
        raise ValueError("X and y row mismatch")
    return ClassificationDataSet(store, predicting, y_np, None if weights is None else ensure_numpy(weights))
