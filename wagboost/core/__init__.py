"""Data points, physical stores and data set views."""

from .dataset import ClassificationDataSet, DataSet, RegressionDataSet, SimpleDataSet
from .points import CategoricalData, DataPoint, validate_point
from .store import ColumnMajorStore, DataStore, RowMajorStore, convert_store

__all__ = [
    "CategoricalData",
    "ClassificationDataSet",
    "ColumnMajorStore",
    "DataPoint",
    "DataSet",
    "DataStore",
    "RegressionDataSet",
    "RowMajorStore",
    "SimpleDataSet",
    "convert_store",
    "validate_point",
]
