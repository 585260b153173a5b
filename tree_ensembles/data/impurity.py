#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Impurity Module for Tree Ensembles
Impurity criteria for class distributions and the regression split criterion
"""

import logging
from typing import Union

import numpy as np

logger = logging.getLogger(__name__)

# Weights and impurities below this are treated as zero
EPSILON = 1e-10

ArrayLike = Union[float, np.ndarray]


class ImpurityCriterion:
    """
    Base class of classification impurity criteria.

    All methods accept a single distribution of shape (k,) or a batch of
    shape (m, k) with matching totals.
    """

    name = None

    def partition_impurity(self, distribution: np.ndarray, total: ArrayLike) -> ArrayLike:
        raise NotImplementedError

    def post_split_impurity(self, partition_impurities: np.ndarray, partition_weights: np.ndarray,
                            total: ArrayLike) -> ArrayLike:
        """
        Weighted average of the children's impurities

        Args:
            partition_impurities: Impurities per child, last axis indexes children
            partition_weights: Weights per child, same shape
            total: Weight of the parent

        Returns:
            Post-split impurity
        """
        total = np.asarray(total, dtype=np.float64)
        weighted = np.sum(np.asarray(partition_impurities) * np.asarray(partition_weights), axis=-1)
        return np.where(total < EPSILON, 0.0, weighted / np.where(total < EPSILON, 1.0, total))

    def gain(self, prior_impurity: ArrayLike, post_split_impurity: ArrayLike,
             partition_weights: np.ndarray, total: ArrayLike) -> ArrayLike:
        """Impurity reduction of a split"""
        return np.asarray(prior_impurity) - np.asarray(post_split_impurity)

    @staticmethod
    def _probabilities(distribution: np.ndarray, total: ArrayLike):
        distribution = np.asarray(distribution, dtype=np.float64)
        total = np.asarray(total, dtype=np.float64)
        degenerate = total < EPSILON
        safe_total = np.where(degenerate, 1.0, total)
        return distribution / np.expand_dims(safe_total, -1), degenerate

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class GiniImpurity(ImpurityCriterion):
    """Gini index 1 - sum(p_i^2)"""

    name = "gini"

    def partition_impurity(self, distribution: np.ndarray, total: ArrayLike) -> ArrayLike:
        p, degenerate = self._probabilities(distribution, total)
        impurity = 1.0 - np.sum(p * p, axis=-1)
        return np.where(degenerate, 0.0, np.maximum(impurity, 0.0))


class EntropyImpurity(ImpurityCriterion):
    """Shannon entropy in bits, gain is information gain"""

    name = "information_gain"

    def partition_impurity(self, distribution: np.ndarray, total: ArrayLike) -> ArrayLike:
        p, degenerate = self._probabilities(distribution, total)
        with np.errstate(divide='ignore', invalid='ignore'):
            terms = np.where(p > 0.0, p * np.log2(np.where(p > 0.0, p, 1.0)), 0.0)
        impurity = -np.sum(terms, axis=-1)
        return np.where(degenerate, 0.0, np.maximum(impurity, 0.0))


class GainRatioImpurity(EntropyImpurity):
    """Information gain divided by the split information of the partition"""

    name = "information_gain_ratio"

    def gain(self, prior_impurity: ArrayLike, post_split_impurity: ArrayLike,
             partition_weights: np.ndarray, total: ArrayLike) -> ArrayLike:
        information_gain = super().gain(prior_impurity, post_split_impurity, partition_weights, total)
        split_info = self.partition_impurity(partition_weights, total)
        safe_info = np.where(split_info < EPSILON, 1.0, split_info)
        return np.where(split_info < EPSILON, 0.0, information_gain / safe_info)


_CRITERIA = {
    GiniImpurity.name: GiniImpurity,
    EntropyImpurity.name: EntropyImpurity,
    GainRatioImpurity.name: GainRatioImpurity
}


def get_impurity_criterion(name: str) -> ImpurityCriterion:
    """
    Create an impurity criterion by name

    Args:
        name: 'gini', 'information_gain' or 'information_gain_ratio'

    Returns:
        Criterion instance
    """
    try:
        return _CRITERIA[name]()
    except KeyError:
        raise ValueError(f"Unknown split criterion: {name}") from None


def regression_split_criterion(sum_left: ArrayLike, weight_left: ArrayLike,
                               sum_right: ArrayLike, weight_right: ArrayLike,
                               sum_total: float, weight_total: float) -> ArrayLike:
    """
    Reduction of the sum of squared deviations achieved by a binary split

    Equals yl^2/nl + yr^2/nr - y^2/n, where y are weighted target sums and
    n are weights.
    """
    weight_left = np.asarray(weight_left, dtype=np.float64)
    weight_right = np.asarray(weight_right, dtype=np.float64)
    safe_left = np.where(weight_left < EPSILON, 1.0, weight_left)
    safe_right = np.where(weight_right < EPSILON, 1.0, weight_right)
    left_term = np.where(weight_left < EPSILON, 0.0, np.square(sum_left) / safe_left)
    right_term = np.where(weight_right < EPSILON, 0.0, np.square(sum_right) / safe_right)
    total_term = sum_total * sum_total / weight_total if weight_total >= EPSILON else 0.0
    return left_term + right_term - total_term


def sum_squared_deviation(sum_weights: float, sum_y: float, sum_y_squared: float) -> float:
    """Weighted sum of squared deviations from the weighted mean"""
    if sum_weights < EPSILON:
        return 0.0
    return max(0.0, sum_y_squared - sum_y * sum_y / sum_weights)
