#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Priors Module for Tree Ensembles
Target statistics of the rows reaching a tree node
"""

import logging
from typing import Any, Dict, List

import numpy as np

from tree_ensembles.data.impurity import ImpurityCriterion, EPSILON, sum_squared_deviation

logger = logging.getLogger(__name__)


class ClassificationPriors:
    """Weighted class distribution of a node"""

    def __init__(self, distribution: np.ndarray, class_names: List[Any], criterion: ImpurityCriterion):
        self.distribution = np.asarray(distribution, dtype=np.float64)
        self.class_names = list(class_names)
        self.criterion = criterion
        self.total_weight = float(self.distribution.sum())
        self.prior_impurity = float(criterion.partition_impurity(self.distribution, self.total_weight))

    @classmethod
    def from_memberships(cls, target_column, memberships, criterion: ImpurityCriterion) -> 'ClassificationPriors':
        distribution = target_column.class_weights(memberships.original_indices, memberships.weights)
        return cls(distribution, target_column.class_names, criterion)

    @property
    def nr_classes(self) -> int:
        return len(self.distribution)

    @property
    def majority_index(self) -> int:
        return int(np.argmax(self.distribution))

    @property
    def majority_class(self) -> Any:
        return self.class_names[self.majority_index]

    @property
    def probabilities(self) -> np.ndarray:
        if self.total_weight < EPSILON:
            return np.zeros_like(self.distribution)
        return self.distribution / self.total_weight

    def to_dict(self) -> Dict[str, Any]:
        return {
            'distribution': {name: float(w) for name, w in zip(self.class_names, self.distribution)},
            'total_weight': self.total_weight,
            'impurity': self.prior_impurity,
            'majority_class': self.majority_class
        }

    def __repr__(self) -> str:
        return f"ClassificationPriors(majority={self.majority_class}, weight={self.total_weight:.1f})"


class RegressionPriors:
    """Weighted sums of a numeric target at a node"""

    def __init__(self, sum_weights: float, sum_y: float, sum_y_squared: float):
        self.total_weight = float(sum_weights)
        self.sum_y = float(sum_y)
        self.sum_y_squared = float(sum_y_squared)
        self.sum_squared_deviation = sum_squared_deviation(self.total_weight, self.sum_y, self.sum_y_squared)

    @classmethod
    def from_memberships(cls, target_column, memberships) -> 'RegressionPriors':
        y = target_column.values[memberships.original_indices]
        w = memberships.weights
        return cls(w.sum(), np.dot(w, y), np.dot(w, y * y))

    @property
    def mean(self) -> float:
        if self.total_weight < EPSILON:
            return 0.0
        return self.sum_y / self.total_weight

    @property
    def prior_impurity(self) -> float:
        return self.sum_squared_deviation

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_weight': self.total_weight,
            'mean': self.mean,
            'sum_squared_deviation': self.sum_squared_deviation
        }

    def __repr__(self) -> str:
        return f"RegressionPriors(mean={self.mean:.4f}, weight={self.total_weight:.1f})"
