#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Split Candidates Module for Tree Ensembles
The best split found on one column, and how it partitions a node
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

import numpy as np

from tree_ensembles.models.conditions import (
    ColumnCondition, NumericCondition, NominalBinaryCondition, NominalValueCondition, BitVectorCondition
)

logger = logging.getLogger(__name__)


class SplitType(Enum):
    """Enumeration of split candidate variants"""
    NUMERIC = "numeric"
    NUMERIC_WITH_MISSING = "numeric_with_missing"  # learned direction for missing values
    NOMINAL_BINARY = "nominal_binary"
    NOMINAL_MULTIWAY = "nominal_multiway"
    BIT_VECTOR = "bit_vector"


@dataclass(frozen=True, eq=False)
class SplitCandidate:
    """
    Proposed split of a node on one column.

    Only the fields of the variant named by split_type are set:
    threshold for numeric splits, left_codes for binary nominal splits,
    value_codes (one child each) for multiway nominal splits. missing_rows
    holds the original indices of node rows missing in the column.
    missing_go_left is the learned direction of missing values, or None
    when missing values are routed later (majority rule or surrogates).
    """

    split_type: SplitType
    column: object
    gain: float
    missing_rows: np.ndarray
    threshold: Optional[float] = None
    left_codes: Optional[FrozenSet[int]] = None
    value_codes: Optional[Tuple[int, ...]] = None
    missing_go_left: Optional[bool] = None

    @property
    def attribute_index(self) -> int:
        return self.column.attribute_index

    @property
    def nr_children(self) -> int:
        if self.split_type == SplitType.NOMINAL_MULTIWAY:
            return len(self.value_codes)
        return 2

    @property
    def is_binary(self) -> bool:
        return self.split_type != SplitType.NOMINAL_MULTIWAY

    @property
    def has_missing(self) -> bool:
        return len(self.missing_rows) > 0

    @property
    def exhausts_column(self) -> bool:
        """Whether the column cannot split any descendant node again"""
        return self.split_type in (SplitType.NOMINAL_MULTIWAY, SplitType.BIT_VECTOR)

    def __repr__(self) -> str:
        return (f"SplitCandidate({self.split_type.value}, column={self.column.name}, "
                f"gain={self.gain:.6g}, missing={len(self.missing_rows)})")


def child_masks(candidate: SplitCandidate, memberships) -> Tuple[List[np.ndarray], np.ndarray]:
    """
    Partition the non-missing rows of a node by a candidate

    Args:
        candidate: Split candidate
        memberships: DataMemberships of the node

    Returns:
        Tuple of (one boolean mask per child, missing mask), all aligned
        with the membership positions. Missing rows are in no child mask.
    """
    values = candidate.column.values[memberships.original_indices]
    missing = candidate.column.missing_mask[memberships.original_indices]
    present = ~missing
    split_type = candidate.split_type

    if split_type in (SplitType.NUMERIC, SplitType.NUMERIC_WITH_MISSING):
        with np.errstate(invalid='ignore'):
            left = (values <= candidate.threshold) & present
        masks = [left, present & ~left]
    elif split_type == SplitType.NOMINAL_BINARY:
        left = np.isin(values, np.array(sorted(candidate.left_codes), dtype=np.int32)) & present
        masks = [left, present & ~left]
    elif split_type == SplitType.NOMINAL_MULTIWAY:
        masks = [values == code for code in candidate.value_codes]
    elif split_type == SplitType.BIT_VECTOR:
        masks = [values == 0, values == 1]
    else:
        raise ValueError(f"Unknown split type: {split_type}")

    return masks, missing


def child_conditions(candidate: SplitCandidate, missing_child: Optional[int] = None) -> List[ColumnCondition]:
    """
    Conditions of the children created by a candidate

    Args:
        candidate: Split candidate
        missing_child: Index of the child accepting missing values, if any

    Returns:
        One condition per child, in child order
    """
    column = candidate.column
    index = column.attribute_index
    split_type = candidate.split_type

    if split_type in (SplitType.NUMERIC, SplitType.NUMERIC_WITH_MISSING):
        conditions = [
            NumericCondition(index, column.name, candidate.threshold, True),
            NumericCondition(index, column.name, candidate.threshold, False)
        ]
    elif split_type == SplitType.NOMINAL_BINARY:
        codes = frozenset(candidate.left_codes)
        values = frozenset(column.value_name(code) for code in codes)
        conditions = [
            NominalBinaryCondition(index, column.name, values, codes, True),
            NominalBinaryCondition(index, column.name, values, codes, False)
        ]
    elif split_type == SplitType.NOMINAL_MULTIWAY:
        conditions = [NominalValueCondition(index, column.name, column.value_name(code), code)
                      for code in candidate.value_codes]
    elif split_type == SplitType.BIT_VECTOR:
        conditions = [
            BitVectorCondition(index, column.source_name, column.bit_position, False),
            BitVectorCondition(index, column.source_name, column.bit_position, True)
        ]
    else:
        raise ValueError(f"Unknown split type: {split_type}")

    if missing_child is not None:
        conditions[missing_child].accepts_missing = True
    return conditions


def majority_child(masks: List[np.ndarray], weights: np.ndarray) -> int:
    """Index of the child with the largest weight, first one on ties"""
    child_weights = [float(weights[mask].sum()) for mask in masks]
    return int(np.argmax(child_weights))


def learned_missing_child(candidate: SplitCandidate) -> Optional[int]:
    if candidate.missing_go_left is None:
        return None
    return 0 if candidate.missing_go_left else 1
