#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Memberships Module for Tree Ensembles
Tracks which dataset rows, with which weights, reach a tree node
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)


class DataMemberships:
    """
    Rows reaching a tree node, as original dataset indices plus weights.

    Indices are kept in ascending order. Children are derived with a boolean
    mask aligned to this membership's positions; column data is never copied.
    A membership belongs to one tree learning task and is not shared.
    """

    def __init__(self, original_indices: np.ndarray, weights: np.ndarray, root_row_count: int):
        if len(original_indices) != len(weights):
            raise ValueError("original_indices and weights must have equal length")
        self.original_indices = np.asarray(original_indices, dtype=np.int64)
        self.weights = np.asarray(weights, dtype=np.float64)
        self.root_row_count = root_row_count

    @classmethod
    def root(cls, row_counts: np.ndarray) -> 'DataMemberships':
        """
        Membership of the whole row sample

        Args:
            row_counts: Per-row sample counts over the full dataset

        Returns:
            Root membership with every row whose count is positive
        """
        row_counts = np.asarray(row_counts, dtype=np.float64)
        included = np.flatnonzero(row_counts > 0)
        return cls(included, row_counts[included], len(included))

    def create_child(self, mask: np.ndarray) -> 'DataMemberships':
        """
        Restrict this membership to the flagged positions

        Args:
            mask: Boolean array aligned with original_indices

        Returns:
            Child membership sharing the root row count
        """
        mask = np.asarray(mask, dtype=bool)
        if len(mask) != len(self.original_indices):
            raise ValueError(f"Mask length {len(mask)} does not match membership size "
                             f"{len(self.original_indices)}")
        return DataMemberships(self.original_indices[mask], self.weights[mask], self.root_row_count)

    def get_row_count(self) -> int:
        return len(self.original_indices)

    def get_row_count_in_root(self) -> int:
        return self.root_row_count

    @property
    def total_weight(self) -> float:
        return float(self.weights.sum())

    def get_original_indices(self) -> np.ndarray:
        return self.original_indices

    def positions_of(self, rows: np.ndarray) -> np.ndarray:
        """Positions of the given original rows within this membership"""
        return np.searchsorted(self.original_indices, rows)

    def missing_mask(self, column) -> np.ndarray:
        """Boolean mask over positions of rows missing in column"""
        return column.missing_mask[self.original_indices]

    def column_view(self, column, sort: bool = True) -> 'ColumnMemberships':
        """
        View of this membership ordered by a column's values

        Args:
            column: Attribute column
            sort: Whether positions should be sorted by value

        Returns:
            ColumnMemberships for the column
        """
        if sort:
            positions = column.sorted_positions(self.original_indices)
        else:
            positions = np.arange(len(self.original_indices))
        return ColumnMemberships(self, column, positions)

    def __len__(self) -> int:
        return len(self.original_indices)

    def __repr__(self) -> str:
        return f"DataMemberships(rows={len(self)}, weight={self.total_weight:.1f}, root={self.root_row_count})"


class ColumnMemberships:
    """Node rows seen through one column, sorted by value with missing last"""

    def __init__(self, memberships: DataMemberships, column, positions: np.ndarray):
        self.memberships = memberships
        self.column = column
        self.positions = positions
        self.rows = memberships.original_indices[positions]
        self.weights = memberships.weights[positions]
        self.values = column.values[self.rows]
        missing = column.missing_mask[self.rows]
        self.nr_non_missing = int(len(missing) - missing.sum()) if len(missing) else 0
        self._missing = missing

    @property
    def missing(self) -> np.ndarray:
        return self._missing

    def __len__(self) -> int:
        return len(self.rows)
