#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Variable Importance Module for Tree Ensembles
Split usage and gain-based importance of attributes across an ensemble
"""

import logging
from typing import Dict, List

import numpy as np
import pandas as pd

from tree_ensembles.models.ensemble import TreeEnsembleModel

logger = logging.getLogger(__name__)


class AttributeStatistics:
    """
    Per-attribute split statistics of an ensemble.

    For each tree level below max_level counts how often an attribute was
    chosen as split and how often it was a candidate at a node whose split
    was searched. Gain importance sums split gains weighted by node weight
    and is normalized to sum 1.
    """

    def __init__(self, model: TreeEnsembleModel, data, max_level: int = 3):
        """
        Initialize and compute the statistics

        Args:
            model: Learned ensemble
            data: TreeData the ensemble was learned on
            max_level: Number of tree levels reported
        """
        if max_level < 1:
            raise ValueError(f"max_level must be positive, got {max_level}")
        self.model = model
        self.data = data
        self.max_level = max_level

        nr_attributes = data.nr_attributes
        self.split_counts = np.zeros((nr_attributes, max_level), dtype=np.int64)
        self.candidate_counts = np.zeros((nr_attributes, max_level), dtype=np.int64)
        self._gain = np.zeros(nr_attributes)
        self._compute()

    def _compute(self) -> None:
        for tree in self.model:
            for node in tree.iter_nodes():
                if node.split_attribute_index is not None:
                    self._gain[node.split_attribute_index] += node.split_gain * node.priors.total_weight
                if node.depth >= self.max_level:
                    continue
                if node.split_attribute_index is not None:
                    self.split_counts[node.split_attribute_index, node.depth] += 1
                for attribute_index in node.candidate_attributes:
                    self.candidate_counts[attribute_index, node.depth] += 1

    @property
    def attribute_names(self) -> List[str]:
        return [column.name for column in self.data.columns]

    def get_gain_importance(self) -> Dict[str, float]:
        """
        Normalized gain importance

        Returns:
            Mapping of attribute name to importance, sorted descending
        """
        total = self._gain.sum()
        importance = self._gain / total if total > 0 else np.zeros_like(self._gain)
        pairs = sorted(zip(self.attribute_names, importance), key=lambda x: x[1], reverse=True)
        return {name: float(value) for name, value in pairs}

    def to_dataframe(self) -> pd.DataFrame:
        """Table with one row per attribute and split/candidate counts per level"""
        table = {}
        for level in range(self.max_level):
            table[f"#splits (level {level})"] = self.split_counts[:, level]
            table[f"#candidates (level {level})"] = self.candidate_counts[:, level]
        df = pd.DataFrame(table, index=pd.Index(self.attribute_names, name='attribute'))
        importance = self.get_gain_importance()
        df['gain importance'] = [importance[name] for name in self.attribute_names]
        return df
