"""Data store and data set behaviour across both physical layouts."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from wagboost.core import (
    CategoricalData,
    ClassificationDataSet,
    ColumnMajorStore,
    DataPoint,
    DataSet,
    RegressionDataSet,
    RowMajorStore,
    SimpleDataSet,
)
from wagboost.data import classification_from_arrays, regression_from_arrays, simple_from_arrays

LAYOUTS = ["row", "column"]


def make_classification(n_rows: int = 12, layout: str = "row", seed: int = 0) -> ClassificationDataSet:
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n_rows, 3))
    cat = np.column_stack([rng.integers(0, 3, n_rows), rng.integers(0, 4, n_rows)])
    y = rng.integers(0, 2, n_rows)
    w = rng.uniform(0.5, 2.0, n_rows)
    return classification_from_arrays(
        X,
        y,
        categorical=cat,
        categories=[CategoricalData(3), CategoricalData(4)],
        weights=w,
        layout=layout,
    )


def make_regression(n_rows: int = 12, layout: str = "row", seed: int = 0) -> RegressionDataSet:
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n_rows, 2))
    y = X @ np.array([1.5, -2.0]) + 0.5
    return regression_from_arrays(X, y, weights=rng.uniform(0.5, 2.0, n_rows), layout=layout)


def assert_same_rows(a, b):
    assert a.size() == b.size()
    for i in range(a.size()):
        assert a.get_point(i) == b.get_point(i)
    np.testing.assert_array_equal(a.weights, b.weights)


@pytest.mark.parametrize("layout", LAYOUTS)
def test_subset_selects_rows_in_order_with_repeats(layout):
    data = make_classification(layout=layout)
    indices = [4, 0, 4, 11, 7, 2, 4]
    sub = data.subset(indices)

    assert isinstance(sub, ClassificationDataSet)
    assert sub.size() == len(indices)
    assert sub.row_major == data.row_major
    for pos, idx in enumerate(indices):
        assert sub.get_point(pos) == data.get_point(idx)
        assert sub.get_weight(pos) == data.get_weight(idx)
        assert sub.get_category(pos) == data.get_category(idx)


@pytest.mark.parametrize("layout", LAYOUTS)
def test_subset_carries_regression_targets(layout):
    data = make_regression(layout=layout)
    indices = np.array([9, 3, 3, 0])
    sub = data.subset(indices)
    np.testing.assert_array_equal(sub.targets, data.targets[indices])
    np.testing.assert_array_equal(sub.weights, data.weights[indices])


def test_column_and_row_subsets_agree():
    row = make_classification(layout="row")
    col = make_classification(layout="column")
    indices = [5, 1, 1, 10]
    assert_same_rows(row.subset(indices), col.subset(indices))


@pytest.mark.parametrize("layout", LAYOUTS)
def test_empty_subset_keeps_schema(layout):
    data = make_classification(layout=layout)
    sub = data.subset([])
    assert sub.size() == 0
    assert sub.num_numerical == data.num_numerical
    assert sub.categories == data.categories
    assert sub.predicting == data.predicting
    assert sub.targets.shape == (0,)


@pytest.mark.parametrize("layout", LAYOUTS)
@pytest.mark.parametrize("bad", [[12], [-1], [0, 99]])
def test_subset_index_out_of_range(layout, bad):
    data = make_classification(layout=layout)
    with pytest.raises(IndexError):
        data.subset(bad)


@pytest.mark.parametrize("layout", LAYOUTS)
def test_subset_never_mutates_source(layout):
    data = make_regression(layout=layout)
    before = [data.get_point(i) for i in range(data.size())]
    weights = data.weights
    targets = data.targets

    sub = data.subset([0, 1, 2])
    sub.set_weight(0, 42.0)
    sub.set_target(1, -7.0)

    assert [data.get_point(i) for i in range(data.size())] == before
    np.testing.assert_array_equal(data.weights, weights)
    np.testing.assert_array_equal(data.targets, targets)


def test_column_subset_pads_categorical_to_schema():
    cats = [CategoricalData(2), CategoricalData(5)]
    store = ColumnMajorStore(1, cats, [DataPoint([1.0], [1, 4]), DataPoint([2.0], [0, 3])])
    data = SimpleDataSet(store)
    sub = data.subset([1, 0])
    np.testing.assert_array_equal(sub.get_point(0).categorical, [0, 3])
    np.testing.assert_array_equal(sub.get_point(1).numerical, [1.0])


@pytest.mark.parametrize("dataset_fn", [make_classification, make_regression])
def test_layout_round_trip_is_identity(dataset_fn):
    data = dataset_fn(layout="row")
    col = data.as_column_major()
    back = col.as_row_major()

    assert not col.row_major
    assert back.row_major
    assert_same_rows(data, col)
    assert_same_rows(data, back)
    np.testing.assert_array_equal(back.targets, data.targets)


def test_weight_clone_shares_store_but_not_weights():
    data = make_regression()
    copy = data.weight_clone()
    assert copy.store is data.store
    copy.set_weights(np.zeros(data.size()))
    assert data.weights.min() > 0
    np.testing.assert_array_equal(copy.targets, data.targets)


@pytest.mark.parametrize("layout", LAYOUTS)
def test_clone_is_deep(layout):
    data = make_regression(layout=layout)
    copy = data.clone()
    assert copy.store is not data.store
    copy.store.set(0, DataPoint([100.0, 100.0]))
    copy.set_weight(0, 0.0)
    assert data.get_point(0) != copy.get_point(0)
    assert data.get_weight(0) > 0


def test_shallow_clone_reuses_points_for_row_major():
    data = make_regression(layout="row")
    copy = data.shallow_clone()
    assert copy.store is not data.store
    assert copy.get_point(3) is data.get_point(3)
    copy.store.set(3, DataPoint([0.0, 0.0]))
    assert data.get_point(3) != copy.get_point(3)


def test_empty_clone():
    data = make_classification(layout="column")
    empty = data.empty_clone()
    assert empty.size() == 0
    assert not empty.row_major
    assert empty.num_classes == data.num_classes


def test_as_classification_dataset_moves_feature_to_target():
    cats = [CategoricalData(3, name="colour"), CategoricalData(2, name="label")]
    points = [DataPoint([0.5, 1.0], [2, 1]), DataPoint([1.5, 2.0], [0, 0]), DataPoint([2.5, 3.0], [1, 1])]
    simple = SimpleDataSet.from_points(points, categories=cats)
    simple.set_weight(1, 3.0)

    cls = simple.as_classification_dataset(1)

    assert cls.num_categorical == 1
    assert cls.categories == (cats[0],)
    assert cls.predicting == cats[1]
    np.testing.assert_array_equal(cls.targets, [1, 0, 1])
    np.testing.assert_array_equal(cls.get_point(0).categorical, [2])
    assert cls.get_weight(1) == 3.0


def test_as_regression_dataset_moves_feature_to_target():
    simple = simple_from_arrays(np.array([[1.0, 10.0], [2.0, 20.0]]), weights=[1.0, 0.5])
    reg = simple.as_regression_dataset(1)
    assert reg.num_numerical == 1
    np.testing.assert_array_equal(reg.targets, [10.0, 20.0])
    np.testing.assert_array_equal(reg.get_point(1).numerical, [2.0])
    np.testing.assert_array_equal(reg.weights, [1.0, 0.5])


@pytest.mark.parametrize("index", [-1, 2])
def test_conversion_index_validated(index):
    simple = simple_from_arrays(np.ones((3, 2)))
    with pytest.raises(ValueError):
        simple.as_regression_dataset(index)
    with pytest.raises(ValueError):
        simple.as_classification_dataset(0)


def test_schema_mismatch_rejected():
    store = RowMajorStore(2, [CategoricalData(3)])
    with pytest.raises(ValueError):
        store.add(DataPoint([1.0], [0]))
    with pytest.raises(ValueError):
        store.add(DataPoint([1.0, 2.0], [3]))
    with pytest.raises(ValueError):
        store.add(DataPoint([1.0, 2.0], [0, 1]))

    store.add(DataPoint([1.0, 2.0], [1]))
    with pytest.raises(ValueError):
        ClassificationDataSet(store, CategoricalData(2), [2])
    with pytest.raises(ValueError):
        ClassificationDataSet(store, CategoricalData(2), [0, 1])
    with pytest.raises(ValueError):
        RegressionDataSet(store, [1.0, 2.0])


def test_weights_validated():
    data = make_regression()
    with pytest.raises(ValueError):
        data.set_weight(0, -1.0)
    with pytest.raises(ValueError):
        data.set_weight(0, float("nan"))
    with pytest.raises(ValueError):
        data.set_weights(np.ones(data.size() + 1))
    with pytest.raises(IndexError):
        data.get_weight(data.size())


def test_add_keeps_weights_and_targets_aligned():
    data = RegressionDataSet.from_points([DataPoint([1.0])], [2.0], row_major=False)
    data.add(DataPoint([3.0]), 4.0, weight=0.25)
    data.finish_adding()
    assert data.size() == 2
    assert len(data.weights) == len(data.targets) == 2
    assert data.get_target(1) == 4.0
    assert data.get_weight(1) == 0.25
    assert data.weighted_mean_target() == pytest.approx((2.0 + 0.25 * 4.0) / 1.25)


def test_class_priors_are_weighted():
    data = classification_from_arrays(np.zeros((4, 1)), [0, 0, 1, 1], weights=[1.0, 1.0, 3.0, 3.0])
    np.testing.assert_allclose(data.class_priors(), [0.25, 0.75])


def test_builders_accept_dataframes():
    rng = np.random.default_rng(3)
    df = pd.DataFrame(rng.normal(size=(20, 3)), columns=["a", "b", "c"])
    y = pd.Series(rng.normal(size=20))
    data = regression_from_arrays(df, y, layout="column")
    assert data.size() == 20
    np.testing.assert_allclose(data.feature_matrix(), df.to_numpy())


def test_feature_matrix_appends_categorical_codes():
    data = make_classification(n_rows=5)
    mat = data.feature_matrix()
    assert mat.shape == (5, 5)
    np.testing.assert_array_equal(mat[:, 3:], data.store.categorical_matrix())


def test_categorical_data_validation():
    with pytest.raises(ValueError):
        CategoricalData(0)
    with pytest.raises(ValueError):
        CategoricalData(2, labels=("a",))
    cat = CategoricalData(2, labels=("no", "yes"))
    assert cat.label(1) == "yes"
    assert CategoricalData(3).label(2) == "2"


def test_points_are_frozen():
    data = make_regression(layout="row")
    with pytest.raises(ValueError):
        data.subset([0]).get_point(0).numerical[0] = 99.0
    with pytest.raises(ValueError):
        make_classification(layout="row").get_point(1).categorical[0] = 1
    assert data.get_point(0) == make_regression(layout="row").get_point(0)


@pytest.mark.parametrize("layout", LAYOUTS)
def test_adding_to_weight_clone_keeps_source_aligned(layout):
    data = RegressionDataSet.from_points([DataPoint([1.0]), DataPoint([2.0])], [1.0, 2.0], row_major=layout == "row")
    view = data.weight_clone()
    view.add(DataPoint([5.0]), 5.0)

    assert view.size() == 3
    assert view.store is not data.store
    assert data.size() == len(data.weights) == len(data.targets) == 2
    assert data.weighted_mean_target() == pytest.approx(1.5)

    data.add(DataPoint([7.0]), 7.0, weight=2.0)
    assert data.size() == len(data.weights) == 3
    assert view.get_point(2) == DataPoint([5.0])


def test_adding_to_source_leaves_residual_view_intact():
    data = RegressionDataSet.from_points([DataPoint([1.0]), DataPoint([2.0])], [1.0, 2.0])
    residuals = data.with_targets([0.5, -0.5])
    assert residuals.store is data.store

    data.add(DataPoint([3.0]), 3.0)
    assert residuals.size() == len(residuals.targets) == 2
    assert data.size() == len(data.targets) == 3
    np.testing.assert_array_equal(residuals.feature_matrix(), [[1.0], [2.0]])


def test_base_data_set_is_abstract():
    store = RowMajorStore(1, [], [DataPoint([1.0])])
    with pytest.raises(TypeError):
        DataSet(store)
