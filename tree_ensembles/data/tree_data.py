#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tree Data Module for Tree Ensembles
Immutable learning dataset and its construction from pandas DataFrames
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from tree_ensembles.data.columns import (
    ColumnType, TreeAttributeColumn, TreeNumericColumn, TreeNominalColumn,
    TreeBitVectorColumn, TreeTargetNominalColumn, TreeTargetNumericColumn,
    MISSING_CODE, as_bit_cell, bit_at, encode_nominal, is_missing
)

logger = logging.getLogger(__name__)

# Placeholder for a missing position in a reassembled bit string
MISSING_BIT = '?'

TargetColumn = Union[TreeTargetNominalColumn, TreeTargetNumericColumn]


class TreeType(Enum):
    """Kind of attributes a dataset is made of"""
    ORDINARY = "ordinary"
    BIT_VECTOR = "bit_vector"


class TreeData:
    """
    Attribute columns plus one target column.

    Read-only after construction and shared by all trees of an ensemble.
    """

    def __init__(self, columns: List[TreeAttributeColumn], target_column: TargetColumn,
                 tree_type: Optional[TreeType] = None):
        if not columns:
            raise ValueError("At least one attribute column is required")

        nr_rows = target_column.nr_rows
        for index, column in enumerate(columns):
            if column.attribute_index != index:
                raise ValueError(f"Column '{column.name}' has attribute index {column.attribute_index}, "
                                 f"expected {index}")
            if column.nr_rows != nr_rows:
                raise ValueError(f"Column '{column.name}' has {column.nr_rows} rows, expected {nr_rows}")

        self._columns = tuple(columns)
        self._columns_by_name = {column.name: column for column in columns}
        self.target_column = target_column
        if tree_type is None:
            all_bits = all(c.column_type == ColumnType.BIT_VECTOR for c in columns)
            tree_type = TreeType.BIT_VECTOR if all_bits else TreeType.ORDINARY
        self.tree_type = tree_type

    @property
    def columns(self) -> tuple:
        return self._columns

    @property
    def nr_rows(self) -> int:
        return self.target_column.nr_rows

    @property
    def nr_attributes(self) -> int:
        return len(self._columns)

    @property
    def is_regression(self) -> bool:
        return self.target_column.column_type == ColumnType.NUMERIC

    def get_column(self, attribute_index: int) -> TreeAttributeColumn:
        return self._columns[attribute_index]

    def get_column_by_name(self, name: str) -> Optional[TreeAttributeColumn]:
        return self._columns_by_name.get(name)

    def get_record(self, row: int) -> Dict[str, Any]:
        """
        Raw values of one row keyed by input column name.

        Bit-vector positions are reassembled into a bit string per source column,
        with '?' at missing positions. A source missing in every position is None.

        Args:
            row: Row index

        Returns:
            Mapping usable by model prediction
        """
        record: Dict[str, Any] = {}
        bit_sources: Dict[str, List[str]] = {}
        for column in self._columns:
            if column.column_type == ColumnType.BIT_VECTOR:
                bits = bit_sources.setdefault(column.source_name, [])
                bit = column.get_raw_value(row)
                bits.append(MISSING_BIT if bit is None else str(bit))
            else:
                record[column.name] = column.get_raw_value(row)
        for source, bits in bit_sources.items():
            record[source] = None if set(bits) == {MISSING_BIT} else ''.join(bits)
        return record

    def with_target_values(self, values) -> 'TreeData':
        """
        Same attribute columns with replaced numeric target values

        Args:
            values: New target values, one per row

        Returns:
            TreeData sharing this dataset's attribute columns
        """
        if not self.is_regression:
            raise TypeError("Target values can only be replaced on a numeric target")
        return TreeData(list(self._columns), self.target_column.with_values(values), self.tree_type)

    def iter_records(self) -> Iterable[Dict[str, Any]]:
        for row in range(self.nr_rows):
            yield self.get_record(row)

    def summary(self) -> Dict[str, Any]:
        counts = {column_type.value: 0 for column_type in ColumnType}
        for column in self._columns:
            counts[column.column_type.value] += 1
        return {
            'nr_rows': self.nr_rows,
            'nr_attributes': self.nr_attributes,
            'column_types': counts,
            'target': self.target_column.name,
            'regression': self.is_regression,
            'tree_type': self.tree_type.value
        }


class TreeDataCreator:
    """Builds TreeData from a pandas DataFrame"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the creator

        Args:
            config: Optional settings; 'bit_vector_columns' lists columns to
                expand into bit positions, 'ignore_columns' lists columns to skip
        """
        config = config or {}
        self.bit_vector_columns = set(config.get('bit_vector_columns', []))
        self.ignore_columns = set(config.get('ignore_columns', []))

    def read_data(self, df: pd.DataFrame, target_column: str,
                  regression: Optional[bool] = None) -> TreeData:
        """
        Convert a DataFrame into TreeData

        Args:
            df: Input data
            target_column: Name of the target column
            regression: Force a numeric (True) or nominal (False) target;
                None infers it from the target dtype

        Returns:
            TreeData with one column per attribute (bit vectors expanded)
        """
        if target_column not in df.columns:
            raise ValueError(f"Target column '{target_column}' not found in data")

        target = self._create_target(df[target_column], regression)

        feature_frame = df.drop(columns=[target_column] + [c for c in self.ignore_columns if c in df.columns])
        numerical, nominal, bit_vectors = self._detect_feature_types(feature_frame)

        columns: List[TreeAttributeColumn] = []
        for name in feature_frame.columns:
            series = feature_frame[name]
            if name in bit_vectors:
                for bits_column in self._create_bit_vector_columns(len(columns), str(name), series):
                    columns.append(bits_column)
            elif name in nominal:
                columns.append(TreeNominalColumn.from_values(len(columns), str(name), series.tolist()))
            else:
                values = pd.to_numeric(series, errors='coerce').to_numpy(dtype=np.float64)
                columns.append(TreeNumericColumn(len(columns), str(name), values))

        data = TreeData(columns, target)
        logger.info(f"Created tree data: {data.nr_rows} rows, {len(numerical)} numeric, "
                    f"{len(nominal)} nominal, {len(bit_vectors)} bit-vector input columns")
        return data

    def _create_target(self, series: pd.Series, regression: Optional[bool]):
        if series.isna().any():
            raise ValueError(f"Target column '{series.name}' contains {int(series.isna().sum())} missing values")

        is_numeric = pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series)
        if regression is None:
            regression = is_numeric
        if regression:
            if not is_numeric:
                raise ValueError(f"Regression target '{series.name}' must be numeric")
            return TreeTargetNumericColumn(str(series.name), series.to_numpy(dtype=np.float64))

        codes, representations = encode_nominal(series.tolist())
        return TreeTargetNominalColumn(str(series.name), codes, representations)

    def _detect_feature_types(self, X: pd.DataFrame):
        """
        Split input columns into numeric, nominal and bit-vector columns

        Args:
            X: Feature DataFrame

        Returns:
            Tuple of (numerical, nominal, bit_vectors) name sets
        """
        numerical, nominal, bit_vectors = set(), set(), set()

        for col in X.columns:
            series = X[col]
            if col in self.bit_vector_columns or self._looks_like_bit_vector(series):
                bit_vectors.add(col)
            elif (isinstance(series.dtype, pd.CategoricalDtype) or pd.api.types.is_object_dtype(series)
                  or pd.api.types.is_bool_dtype(series) or pd.api.types.is_string_dtype(series)):
                nominal.add(col)
            else:
                numerical.add(col)

        logger.debug(f"Detected {len(numerical)} numerical, {len(nominal)} nominal and "
                     f"{len(bit_vectors)} bit-vector features")
        return numerical, nominal, bit_vectors

    @staticmethod
    def _looks_like_bit_vector(series: pd.Series) -> bool:
        """Only columns holding 0/1 sequences are detected; bit strings must be configured"""
        if not pd.api.types.is_object_dtype(series):
            return False
        present = [v for v in series.tolist() if not is_missing(v)]
        if not present or not isinstance(present[0], (list, tuple, np.ndarray)):
            return False
        length = len(present[0])
        return length > 0 and all(
            isinstance(v, (list, tuple, np.ndarray)) and len(v) == length
            and all(not is_missing(b) and int(b) in (0, 1) for b in v) for v in present)

    @staticmethod
    def _create_bit_vector_columns(first_index: int, name: str, series: pd.Series) -> List[TreeBitVectorColumn]:
        cells = [as_bit_cell(v) for v in series.tolist()]
        length = max((len(v) for v in cells if v is not None), default=0)
        columns = []
        for position in range(length):
            bits = np.full(len(cells), MISSING_CODE, dtype=np.int8)
            for row, cell in enumerate(cells):
                bit = bit_at(cell, position)
                if bit is not None:
                    bits[row] = bit
            columns.append(TreeBitVectorColumn(first_index + position, name, position, bits))
        return columns
