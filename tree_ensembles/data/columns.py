#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Columns Module for Tree Ensembles
Immutable typed attribute and target columns shared by all tree learners
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

MISSING_CODE = -1


class ColumnType(Enum):
    """Enumeration of attribute column families"""
    NUMERIC = "numeric"
    NOMINAL = "nominal"
    BIT_VECTOR = "bit_vector"


@dataclass(frozen=True)
class NominalValueRepresentation:
    """A nominal value, its integer code and its number of occurrences"""
    name: Any
    assigned_integer: int
    count: int


def is_missing(value: Any) -> bool:
    """True for None and NaN-like scalars"""
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, np.ndarray)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def as_bit_cell(value: Any) -> Any:
    """
    Normalize a raw bit-vector cell to a bit string or a sequence

    Integer cells, as produced by CSV parsing of values like 1011, become
    their decimal string. Leading zeros lost by such parsing are not restored.

    Args:
        value: Raw cell value

    Returns:
        The cell as a string or sequence, or None if missing
    """
    if is_missing(value):
        return None
    if isinstance(value, (str, list, tuple, np.ndarray)):
        return value
    if isinstance(value, (bool, np.bool_)):
        return '1' if value else '0'
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def bit_at(value: Any, position: int) -> Optional[int]:
    """
    Extract one bit from a raw bit-vector cell

    Args:
        value: Bit string like '0110', an integer like 110, or a sequence of 0/1 values
        position: Bit position

    Returns:
        0 or 1, or None if the cell is missing, too short or holds
        something other than 0/1 at that position
    """
    value = as_bit_cell(value)
    if value is None:
        return None
    if isinstance(value, str):
        if position >= len(value) or value[position] not in '01':
            return None
        return 1 if value[position] == '1' else 0
    if position >= len(value):
        return None
    bit = value[position]
    if is_missing(bit):
        return None
    return 1 if int(bit) else 0


def _readonly(values: np.ndarray) -> np.ndarray:
    values = np.array(values, copy=True)
    values.setflags(write=False)
    return values


class TreeAttributeColumn:
    """
    Base class of attribute columns.

    Every column precomputes a stable row order by value with missing
    values last, so the rows of any tree node can be sorted by looking up
    ranks instead of re-sorting values.
    """

    column_type: ColumnType = None

    def __init__(self, attribute_index: int, name: str, values: np.ndarray):
        self.attribute_index = attribute_index
        self.name = name
        self._values = _readonly(values)
        self._missing = _readonly(self._compute_missing_mask(self._values))

        order = np.argsort(self._sort_keys(), kind='mergesort')
        rank = np.empty(len(order), dtype=np.int64)
        rank[order] = np.arange(len(order))
        self._sorted_rows = _readonly(order)
        self._rank = _readonly(rank)
        self._length_non_missing = int(len(self._values) - self._missing.sum())

    def _compute_missing_mask(self, values: np.ndarray) -> np.ndarray:
        return values == MISSING_CODE

    def _sort_keys(self) -> np.ndarray:
        keys = self._values.astype(np.float64)
        keys[self._missing] = np.inf
        return keys

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def missing_mask(self) -> np.ndarray:
        return self._missing

    @property
    def nr_rows(self) -> int:
        return len(self._values)

    @property
    def length_non_missing(self) -> int:
        """Number of rows with a non-missing value"""
        return self._length_non_missing

    @property
    def sorted_rows(self) -> np.ndarray:
        """All row indices ordered by value, missing rows last"""
        return self._sorted_rows

    def sorted_positions(self, original_indices: np.ndarray) -> np.ndarray:
        """
        Order a subset of rows by this column's value

        Args:
            original_indices: Row indices of a tree node

        Returns:
            Positions into original_indices, sorted by value with missing last
        """
        return np.argsort(self._rank[original_indices], kind='mergesort')

    def get_raw_value(self, row: int) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.attribute_index}, '{self.name}')"


class TreeNumericColumn(TreeAttributeColumn):
    """Numeric column, NaN marks missing values"""

    column_type = ColumnType.NUMERIC

    def __init__(self, attribute_index: int, name: str, values: Sequence[float]):
        super().__init__(attribute_index, name, np.asarray(values, dtype=np.float64))

    def _compute_missing_mask(self, values: np.ndarray) -> np.ndarray:
        return np.isnan(values)

    def get_raw_value(self, row: int) -> Optional[float]:
        value = self._values[row]
        return None if np.isnan(value) else float(value)


class TreeNominalColumn(TreeAttributeColumn):
    """Nominal column holding integer codes into a value table"""

    column_type = ColumnType.NOMINAL

    def __init__(self, attribute_index: int, name: str, codes: Sequence[int],
                 value_representations: List[NominalValueRepresentation]):
        super().__init__(attribute_index, name, np.asarray(codes, dtype=np.int32))
        self.value_representations = list(value_representations)
        self._code_by_name = {rep.name: rep.assigned_integer for rep in self.value_representations}

    @classmethod
    def from_values(cls, attribute_index: int, name: str, raw_values: Sequence[Any]) -> 'TreeNominalColumn':
        """
        Build a nominal column from raw values, coding values in order of appearance

        Args:
            attribute_index: Index of the attribute
            name: Column name
            raw_values: Raw cell values, None/NaN for missing

        Returns:
            Nominal column
        """
        codes, representations = encode_nominal(raw_values)
        return cls(attribute_index, name, codes, representations)

    @property
    def nr_values(self) -> int:
        return len(self.value_representations)

    def value_name(self, code: int) -> Any:
        return self.value_representations[code].name

    def code_for(self, value: Any) -> Optional[int]:
        """Integer code of a raw value, None for missing or unknown values"""
        if is_missing(value):
            return None
        return self._code_by_name.get(value)

    def get_raw_value(self, row: int) -> Any:
        code = self._values[row]
        return None if code == MISSING_CODE else self.value_representations[code].name


class TreeBitVectorColumn(TreeAttributeColumn):
    """One bit position of a bit-vector source column (0, 1 or missing)"""

    column_type = ColumnType.BIT_VECTOR

    def __init__(self, attribute_index: int, source_name: str, bit_position: int, bits: Sequence[int]):
        self.source_name = source_name
        self.bit_position = bit_position
        super().__init__(attribute_index, f"{source_name}[{bit_position}]", np.asarray(bits, dtype=np.int8))

    def get_raw_value(self, row: int) -> Optional[int]:
        bit = self._values[row]
        return None if bit == MISSING_CODE else int(bit)


class TreeTargetNominalColumn:
    """Nominal target column for classification"""

    column_type = ColumnType.NOMINAL

    def __init__(self, name: str, codes: Sequence[int], value_representations: List[NominalValueRepresentation]):
        self.name = name
        self._values = _readonly(np.asarray(codes, dtype=np.int32))
        if (self._values == MISSING_CODE).any():
            raise ValueError(f"Target column '{name}' contains missing values")
        self.value_representations = list(value_representations)

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def nr_rows(self) -> int:
        return len(self._values)

    @property
    def nr_classes(self) -> int:
        return len(self.value_representations)

    @property
    def class_names(self) -> List[Any]:
        return [rep.name for rep in self.value_representations]

    def class_weights(self, original_indices: np.ndarray, weights: np.ndarray) -> np.ndarray:
        """Weighted class distribution of a subset of rows"""
        return np.bincount(self._values[original_indices], weights=weights,
                           minlength=self.nr_classes).astype(np.float64)


class TreeTargetNumericColumn:
    """Numeric target column for regression"""

    column_type = ColumnType.NUMERIC

    def __init__(self, name: str, values: Sequence[float]):
        self.name = name
        self._values = _readonly(np.asarray(values, dtype=np.float64))
        if np.isnan(self._values).any():
            raise ValueError(f"Target column '{name}' contains missing values")

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def nr_rows(self) -> int:
        return len(self._values)

    def with_values(self, values: Sequence[float]) -> 'TreeTargetNumericColumn':
        """Copy of this target with new values, used for boosting pseudo-targets"""
        return TreeTargetNumericColumn(self.name, values)


def encode_nominal(raw_values: Sequence[Any]):
    """
    Encode raw nominal values as integer codes

    Args:
        raw_values: Raw cell values, None/NaN for missing

    Returns:
        Tuple of (codes array, list of NominalValueRepresentation)
    """
    codes = np.full(len(raw_values), MISSING_CODE, dtype=np.int32)
    code_by_name: Dict[Any, int] = {}
    counts: List[int] = []
    names: List[Any] = []

    for row, value in enumerate(raw_values):
        if is_missing(value):
            continue
        code = code_by_name.get(value)
        if code is None:
            code = len(names)
            code_by_name[value] = code
            names.append(value)
            counts.append(0)
        codes[row] = code
        counts[code] += 1

    representations = [NominalValueRepresentation(name, i, counts[i]) for i, name in enumerate(names)]
    return codes, representations
