#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Row Sample Module for Tree Ensembles
Per-tree row sampling with or without replacement
"""

import logging
import math

import numpy as np

from tree_ensembles.utils.random_data import RandomData

logger = logging.getLogger(__name__)


class RowSample:
    """Integer inclusion count per dataset row"""

    def __init__(self, counts: np.ndarray):
        self.counts = np.asarray(counts, dtype=np.int32)
        self.counts.setflags(write=False)

    @property
    def nr_rows(self) -> int:
        return len(self.counts)

    def count_for(self, row: int) -> int:
        return int(self.counts[row])

    def included_rows(self) -> np.ndarray:
        return np.flatnonzero(self.counts > 0)

    def out_of_bag_rows(self) -> np.ndarray:
        return np.flatnonzero(self.counts == 0)

    @property
    def sample_size(self) -> int:
        return int(self.counts.sum())

    def __repr__(self) -> str:
        return f"RowSample(rows={self.nr_rows}, drawn={self.sample_size}, distinct={len(self.included_rows())})"


class RowSampler:
    """Draws RowSamples of a fixed fraction of the dataset"""

    def __init__(self, fraction: float = 1.0, with_replacement: bool = True):
        if not 0.0 < fraction <= 1.0:
            raise ValueError(f"Row sample fraction must be in (0, 1], got {fraction}")
        self.fraction = fraction
        self.with_replacement = with_replacement

    @classmethod
    def from_configuration(cls, config) -> 'RowSampler':
        return cls(config.data_fraction, config.data_selection_with_replacement)

    def sample_size(self, nr_rows: int) -> int:
        return max(1, int(round(self.fraction * nr_rows)))

    def create_row_sample(self, nr_rows: int, random_data: RandomData) -> RowSample:
        """
        Draw a row sample

        Args:
            nr_rows: Number of dataset rows
            random_data: Random stream of the tree

        Returns:
            RowSample with bootstrap counts (with replacement) or 0/1 counts
        """
        if not self.with_replacement and math.isclose(self.fraction, 1.0):
            return RowSample(np.ones(nr_rows, dtype=np.int32))

        size = self.sample_size(nr_rows)
        drawn = random_data.choice(nr_rows, size, replace=self.with_replacement)
        counts = np.bincount(drawn, minlength=nr_rows)
        return RowSample(counts)
