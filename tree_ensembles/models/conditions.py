#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Conditions Module for Tree Ensembles
Conditions routing records into tree nodes
"""

import logging
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

import numpy as np

from tree_ensembles.data.columns import MISSING_CODE, bit_at, is_missing

logger = logging.getLogger(__name__)


class NodeCondition:
    """
    Condition a record must satisfy to enter a node.

    evaluate() is three-valued and returns None when the tested value is
    missing or unknown. test() resolves a missing value with
    accepts_missing, which is True on the child receiving missing values.
    """

    accepts_missing = False

    def evaluate(self, record: Dict[str, Any]) -> Optional[bool]:
        raise NotImplementedError

    def test(self, record: Dict[str, Any]) -> bool:
        result = self.evaluate(record)
        return self.accepts_missing if result is None else result

    def evaluate_rows(self, data, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Vectorized evaluation on dataset rows

        Args:
            data: TreeData
            rows: Original row indices

        Returns:
            Tuple of (result mask, missing mask)
        """
        raise NotImplementedError

    def test_rows(self, data, rows: np.ndarray) -> np.ndarray:
        result, missing = self.evaluate_rows(data, rows)
        return np.where(missing, self.accepts_missing, result)

    def negate(self) -> 'NodeCondition':
        raise NotImplementedError

    @property
    def column_name(self) -> Optional[str]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


class TrueCondition(NodeCondition):
    """Condition of the root node"""

    accepts_missing = True

    def evaluate(self, record: Dict[str, Any]) -> Optional[bool]:
        return True

    def evaluate_rows(self, data, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return np.ones(len(rows), dtype=bool), np.zeros(len(rows), dtype=bool)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'true'}

    def __str__(self) -> str:
        return "TRUE"


class ColumnCondition(NodeCondition):
    """Condition on a single attribute column"""

    def __init__(self, attribute_index: int, name: str, accepts_missing: bool = False):
        self.attribute_index = attribute_index
        self.name = name
        self.accepts_missing = accepts_missing

    @property
    def column_name(self) -> str:
        return self.name

    def _column(self, data):
        return data.get_column(self.attribute_index)

    def _suffix(self) -> str:
        return " (or missing)" if self.accepts_missing else ""


class NumericCondition(ColumnCondition):
    """value <= threshold, or value > threshold"""

    def __init__(self, attribute_index: int, name: str, threshold: float,
                 less_or_equal: bool, accepts_missing: bool = False):
        super().__init__(attribute_index, name, accepts_missing)
        self.threshold = float(threshold)
        self.less_or_equal = less_or_equal

    def evaluate(self, record: Dict[str, Any]) -> Optional[bool]:
        value = record.get(self.name)
        if is_missing(value):
            return None
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None
        return value <= self.threshold if self.less_or_equal else value > self.threshold

    def evaluate_rows(self, data, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        values = self._column(data).values[rows]
        missing = np.isnan(values)
        with np.errstate(invalid='ignore'):
            result = values <= self.threshold if self.less_or_equal else values > self.threshold
        return result & ~missing, missing

    def negate(self) -> 'NumericCondition':
        return NumericCondition(self.attribute_index, self.name, self.threshold,
                                not self.less_or_equal, not self.accepts_missing)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'numeric',
            'column': self.name,
            'operator': '<=' if self.less_or_equal else '>',
            'threshold': self.threshold,
            'accepts_missing': self.accepts_missing
        }

    def __str__(self) -> str:
        operator = '<=' if self.less_or_equal else '>'
        return f"{self.name} {operator} {self.threshold:.6g}{self._suffix()}"


class NominalBinaryCondition(ColumnCondition):
    """value in a subset of nominal values (or not in it)"""

    def __init__(self, attribute_index: int, name: str, values: FrozenSet[Any], codes: FrozenSet[int],
                 in_set: bool = True, accepts_missing: bool = False):
        super().__init__(attribute_index, name, accepts_missing)
        self.values = frozenset(values)
        self.codes = frozenset(codes)
        self.in_set = in_set
        self._code_array = np.array(sorted(self.codes), dtype=np.int32)

    def evaluate(self, record: Dict[str, Any]) -> Optional[bool]:
        value = record.get(self.name)
        if is_missing(value):
            return None
        return (value in self.values) == self.in_set

    def evaluate_rows(self, data, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        codes = self._column(data).values[rows]
        missing = codes == MISSING_CODE
        result = np.isin(codes, self._code_array) == self.in_set
        return result & ~missing, missing

    def negate(self) -> 'NominalBinaryCondition':
        return NominalBinaryCondition(self.attribute_index, self.name, self.values, self.codes,
                                      not self.in_set, not self.accepts_missing)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'nominal_binary',
            'column': self.name,
            'operator': 'in' if self.in_set else 'not in',
            'values': sorted(self.values, key=str),
            'accepts_missing': self.accepts_missing
        }

    def __str__(self) -> str:
        operator = 'in' if self.in_set else 'not in'
        values = ', '.join(str(v) for v in sorted(self.values, key=str))
        return f"{self.name} {operator} {{{values}}}{self._suffix()}"


class NominalValueCondition(ColumnCondition):
    """value == one nominal value, one child per value of a multiway split"""

    def __init__(self, attribute_index: int, name: str, value: Any, code: int, accepts_missing: bool = False):
        super().__init__(attribute_index, name, accepts_missing)
        self.value = value
        self.code = code

    def evaluate(self, record: Dict[str, Any]) -> Optional[bool]:
        value = record.get(self.name)
        if is_missing(value):
            return None
        return value == self.value

    def evaluate_rows(self, data, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        codes = self._column(data).values[rows]
        missing = codes == MISSING_CODE
        return codes == self.code, missing

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'nominal_value', 'column': self.name, 'value': self.value,
                'accepts_missing': self.accepts_missing}

    def __str__(self) -> str:
        return f"{self.name} = {self.value}{self._suffix()}"


class BitVectorCondition(ColumnCondition):
    """bit at a position of a bit-vector column is set (or unset)"""

    def __init__(self, attribute_index: int, source_name: str, bit_position: int,
                 bit_set: bool, accepts_missing: bool = False):
        super().__init__(attribute_index, f"{source_name}[{bit_position}]", accepts_missing)
        self.source_name = source_name
        self.bit_position = bit_position
        self.bit_set = bit_set

    @property
    def column_name(self) -> str:
        return self.source_name

    def evaluate(self, record: Dict[str, Any]) -> Optional[bool]:
        bit = bit_at(record.get(self.source_name), self.bit_position)
        if bit is None:
            return None
        return (bit == 1) == self.bit_set

    def evaluate_rows(self, data, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        bits = self._column(data).values[rows]
        missing = bits == MISSING_CODE
        result = (bits == 1) == self.bit_set
        return result & ~missing, missing

    def negate(self) -> 'BitVectorCondition':
        return BitVectorCondition(self.attribute_index, self.source_name, self.bit_position,
                                  not self.bit_set, not self.accepts_missing)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'bit_vector', 'column': self.source_name, 'bit': self.bit_position,
                'set': self.bit_set, 'accepts_missing': self.accepts_missing}

    def __str__(self) -> str:
        return f"{self.name} = {1 if self.bit_set else 0}{self._suffix()}"


class SurrogateCondition(NodeCondition):
    """
    Primary condition followed by ordered surrogate conditions.

    The first condition with a non-missing value decides. If every value is
    missing the default direction (majority rule) decides.
    """

    def __init__(self, conditions: List[ColumnCondition], default_response: bool):
        if not conditions:
            raise ValueError("A surrogate condition needs at least the primary condition")
        self.conditions = list(conditions)
        self.default_response = default_response

    @property
    def primary(self) -> ColumnCondition:
        return self.conditions[0]

    @property
    def surrogates(self) -> List[ColumnCondition]:
        return self.conditions[1:]

    @property
    def accepts_missing(self) -> bool:
        return self.default_response

    @property
    def column_name(self) -> str:
        return self.primary.column_name

    def evaluate(self, record: Dict[str, Any]) -> Optional[bool]:
        for condition in self.conditions:
            result = condition.evaluate(record)
            if result is not None:
                return result
        return None

    def test(self, record: Dict[str, Any]) -> bool:
        result = self.evaluate(record)
        return self.default_response if result is None else result

    def evaluate_rows(self, data, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        result, missing = self.primary.evaluate_rows(data, rows)
        result = result.copy()
        missing = missing.copy()
        for condition in self.surrogates:
            if not missing.any():
                break
            surrogate_result, surrogate_missing = condition.evaluate_rows(data, rows)
            resolved = missing & ~surrogate_missing
            result[resolved] = surrogate_result[resolved]
            missing &= surrogate_missing
        return result, missing

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'surrogate',
            'conditions': [condition.to_dict() for condition in self.conditions],
            'default_response': self.default_response
        }

    def __str__(self) -> str:
        text = str(self.primary)
        if self.surrogates:
            text += ' [surrogates: ' + '; '.join(str(c) for c in self.surrogates) + ']'
        if self.default_response:
            text += ' (default)'
        return text
