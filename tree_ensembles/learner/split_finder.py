#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Split Finder Module for Tree Ensembles
Finds the best split of a tree node on a single column
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from tree_ensembles.data.columns import ColumnType, MISSING_CODE
from tree_ensembles.data.impurity import (
    ImpurityCriterion, EPSILON, get_impurity_criterion, regression_split_criterion
)
from tree_ensembles.learner.configuration import MissingValueHandling
from tree_ensembles.learner.split_candidates import SplitCandidate, SplitType
from tree_ensembles.utils.random_data import RandomData

logger = logging.getLogger(__name__)

# Relative tolerance under which two split scores count as tied
TIE_TOLERANCE = 1e-12


@dataclass(frozen=True)
class SplitSearchContext:
    """Settings and random stream used while searching splits at one node"""

    criterion: Optional[ImpurityCriterion]
    missing_value_handling: MissingValueHandling
    min_child_size: float
    use_average_split_points: bool
    use_binary_nominal_splits: bool
    max_nominal_values_exhaustive: int
    max_random_binary_partitions: int
    random_data: Optional[RandomData] = None

    @classmethod
    def from_configuration(cls, config, random_data: Optional[RandomData] = None) -> 'SplitSearchContext':
        criterion = None if config.regression else get_impurity_criterion(config.impurity_name)
        return cls(
            criterion=criterion,
            missing_value_handling=config.missing_value_handling,
            min_child_size=config.effective_min_child_size,
            use_average_split_points=config.use_average_split_points,
            use_binary_nominal_splits=config.use_binary_nominal_splits,
            max_nominal_values_exhaustive=config.max_nominal_values_exhaustive,
            max_random_binary_partitions=config.max_random_binary_partitions,
            random_data=random_data
        )

    def with_random_data(self, random_data: RandomData) -> 'SplitSearchContext':
        return replace(self, random_data=random_data)

    def with_criterion(self, criterion: ImpurityCriterion) -> 'SplitSearchContext':
        return replace(self, criterion=criterion)

    @property
    def learns_missing_direction(self) -> bool:
        return self.missing_value_handling == MissingValueHandling.XGBOOST


def pick_best(scores: np.ndarray, valid: np.ndarray, random_data: Optional[RandomData]) -> Optional[int]:
    """
    Index of the best valid score, ties broken uniformly at random

    Args:
        scores: Score per option
        valid: Boolean mask of admissible options
        random_data: Stream used for tie-breaking (first index if None)

    Returns:
        Chosen index or None if no option is valid
    """
    if not valid.any():
        return None
    masked = np.where(valid, scores, -np.inf)
    best = masked.max()
    ties = np.flatnonzero(masked >= best - TIE_TOLERANCE * max(1.0, abs(best)))
    if len(ties) == 1 or random_data is None:
        return int(ties[0])
    return int(ties[random_data.next_int(0, len(ties) - 1)])


def _best_classification_partition(left_dist: np.ndarray, present_dist: np.ndarray, missing_dist: np.ndarray,
                                   priors, context: SplitSearchContext
                                   ) -> Optional[Tuple[int, float, Optional[bool]]]:
    """
    Evaluate binary partitions of a class distribution

    Args:
        left_dist: (P, k) class weights of the left child per partition
        present_dist: (k,) class weights of the rows with a value
        missing_dist: (k,) class weights of the rows missing the value
        priors: ClassificationPriors of the node
        context: Search context

    Returns:
        Tuple of (partition index, gain, missing_go_left) or None
    """
    criterion = context.criterion
    left_w = left_dist.sum(axis=1)
    present_w = float(present_dist.sum())
    right_dist = present_dist[np.newaxis, :] - left_dist
    right_w = present_w - left_w
    missing_w = float(missing_dist.sum())
    has_missing = missing_w > EPSILON

    valid = (left_w > EPSILON) & (right_w > EPSILON)
    valid &= (left_w >= context.min_child_size) & (right_w >= context.min_child_size)

    if has_missing and context.learns_missing_direction:
        total = priors.total_weight
        prior = priors.prior_impurity
        options = [
            (left_dist + missing_dist, left_w + missing_w, right_dist, right_w),
            (left_dist, left_w, right_dist + missing_dist, right_w + missing_w)
        ]
        posts, partition_weights = [], []
        for l_dist, l_w, r_dist, r_w in options:
            impurities = np.stack([criterion.partition_impurity(l_dist, l_w),
                                   criterion.partition_impurity(r_dist, r_w)], axis=-1)
            weights = np.stack([l_w, r_w], axis=-1)
            posts.append(criterion.post_split_impurity(impurities, weights, total))
            partition_weights.append(weights)
        go_left = posts[0] <= posts[1]
        post = np.where(go_left, posts[0], posts[1])
        weights = np.where(go_left[:, np.newaxis], partition_weights[0], partition_weights[1])
    else:
        total = present_w
        if has_missing:
            prior = float(criterion.partition_impurity(present_dist, present_w))
        else:
            prior = priors.prior_impurity
        impurities = np.stack([criterion.partition_impurity(left_dist, left_w),
                               criterion.partition_impurity(right_dist, right_w)], axis=-1)
        weights = np.stack([left_w, right_w], axis=-1)
        post = criterion.post_split_impurity(impurities, weights, total)
        go_left = None

    improvement = prior - post
    valid &= improvement > EPSILON
    best = pick_best(improvement, valid, context.random_data)
    if best is None:
        return None

    gain = float(criterion.gain(prior, post[best], weights[best], total))
    if gain < 0.0:
        return None
    return best, gain, None if go_left is None else bool(go_left[best])


def _best_regression_partition(left_w: np.ndarray, left_y: np.ndarray, present_w: float, present_y: float,
                               missing_w: float, missing_y: float, context: SplitSearchContext
                               ) -> Optional[Tuple[int, float, Optional[bool]]]:
    """
    Evaluate binary partitions of a numeric target

    Args:
        left_w: (P,) weight of the left child per partition
        left_y: (P,) weighted target sum of the left child per partition
        present_w, present_y: Weight and target sum of the rows with a value
        missing_w, missing_y: Weight and target sum of the rows missing the value
        context: Search context

    Returns:
        Tuple of (partition index, gain, missing_go_left) or None
    """
    right_w = present_w - left_w
    right_y = present_y - left_y
    has_missing = missing_w > EPSILON

    valid = (left_w > EPSILON) & (right_w > EPSILON)
    valid &= (left_w >= context.min_child_size) & (right_w >= context.min_child_size)

    if has_missing and context.learns_missing_direction:
        total_w = present_w + missing_w
        total_y = present_y + missing_y
        score_left = regression_split_criterion(left_y + missing_y, left_w + missing_w, right_y, right_w,
                                                total_y, total_w)
        score_right = regression_split_criterion(left_y, left_w, right_y + missing_y, right_w + missing_w,
                                                 total_y, total_w)
        go_left = score_left >= score_right
        score = np.where(go_left, score_left, score_right)
    else:
        score = regression_split_criterion(left_y, left_w, right_y, right_w, present_y, present_w)
        go_left = None

    valid &= score > EPSILON
    best = pick_best(score, valid, context.random_data)
    if best is None:
        return None
    return best, float(score[best]), None if go_left is None else bool(go_left[best])


def _split_point(values: np.ndarray, boundary: int, use_average: bool) -> float:
    lower = float(values[boundary])
    if not use_average:
        return lower
    upper = float(values[boundary + 1])
    center = lower + (upper - lower) / 2.0
    # guard against rounding onto the upper value
    return center if center < upper else lower


def _binary_partitions(nr_values: int, context: SplitSearchContext) -> np.ndarray:
    """
    Subsets of nominal values forming the left child of a binary split.

    The last value is always kept on the right, so a partition and its
    complement are not both enumerated.

    Args:
        nr_values: Number of distinct values present at the node
        context: Search context with enumeration limits

    Returns:
        Boolean matrix (P, nr_values)
    """
    if nr_values <= context.max_nominal_values_exhaustive:
        ids = np.arange(1, 2 ** (nr_values - 1), dtype=np.int64)
        shifts = np.arange(nr_values - 1, dtype=np.int64)
        bits = ((ids[:, np.newaxis] >> shifts[np.newaxis, :]) & 1).astype(bool)
        return np.hstack([bits, np.zeros((len(ids), 1), dtype=bool)])

    rng = context.random_data.rng if context.random_data is not None else np.random.default_rng(0)
    bits = rng.integers(0, 2, size=(context.max_random_binary_partitions, nr_values)).astype(bool)
    bits[:, -1] = False
    bits = bits[bits.any(axis=1)]
    return np.unique(bits, axis=0)


def _nominal_statistics_classification(column, memberships, labels: np.ndarray, nr_classes: int):
    codes = column.values[memberships.original_indices]
    missing = codes == MISSING_CODE
    present = ~missing
    weights = memberships.weights
    dist = np.zeros((column.nr_values if column.column_type == ColumnType.NOMINAL else 2, nr_classes))
    np.add.at(dist, (codes[present], labels[present]), weights[present])
    missing_dist = np.bincount(labels[missing], weights=weights[missing], minlength=nr_classes).astype(np.float64)
    return dist, missing_dist, memberships.original_indices[missing]


def _nominal_statistics_regression(column, memberships, y: np.ndarray):
    codes = column.values[memberships.original_indices]
    missing = codes == MISSING_CODE
    present = ~missing
    weights = memberships.weights
    nr_values = column.nr_values if column.column_type == ColumnType.NOMINAL else 2
    value_w = np.bincount(codes[present], weights=weights[present], minlength=nr_values).astype(np.float64)
    value_y = np.bincount(codes[present], weights=weights[present] * y[present],
                          minlength=nr_values).astype(np.float64)
    missing_w = float(weights[missing].sum())
    missing_y = float(np.dot(weights[missing], y[missing]))
    return value_w, value_y, missing_w, missing_y, memberships.original_indices[missing]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def find_best_split_classification(column, memberships, labels: np.ndarray, nr_classes: int,
                                   priors, context: SplitSearchContext) -> Optional[SplitCandidate]:
    """
    Best split of a node on one column for a nominal target

    Args:
        column: Attribute column
        memberships: DataMemberships of the node
        labels: Class codes aligned with the membership positions
        nr_classes: Number of classes
        priors: ClassificationPriors of the node
        context: Search context

    Returns:
        SplitCandidate or None if no split improves impurity
    """
    column_type = column.column_type
    if column_type == ColumnType.NUMERIC:
        return _numeric_classification(column, memberships, labels, nr_classes, priors, context)
    elif column_type == ColumnType.NOMINAL:
        if context.use_binary_nominal_splits:
            return _nominal_binary_classification(column, memberships, labels, nr_classes, priors, context)
        return _nominal_multiway_classification(column, memberships, labels, nr_classes, priors, context)
    elif column_type == ColumnType.BIT_VECTOR:
        return _bit_vector_classification(column, memberships, labels, nr_classes, priors, context)
    raise ValueError(f"Unsupported column type: {column_type}")


def _numeric_classification(column, memberships, labels, nr_classes, priors, context):
    view = memberships.column_view(column)
    n = view.nr_non_missing
    if n < 2:
        return None

    sorted_labels = labels[view.positions]
    values = view.values[:n]
    boundaries = np.flatnonzero(values[:-1] < values[1:])
    if len(boundaries) == 0:
        return None

    onehot = np.zeros((n, nr_classes))
    onehot[np.arange(n), sorted_labels[:n]] = view.weights[:n]
    cumulative = np.cumsum(onehot, axis=0)
    missing_dist = np.bincount(sorted_labels[n:], weights=view.weights[n:],
                               minlength=nr_classes).astype(np.float64)

    result = _best_classification_partition(cumulative[boundaries], cumulative[-1], missing_dist,
                                            priors, context)
    if result is None:
        return None
    best, gain, missing_go_left = result

    return SplitCandidate(
        split_type=SplitType.NUMERIC if missing_go_left is None else SplitType.NUMERIC_WITH_MISSING,
        column=column,
        gain=gain,
        missing_rows=view.rows[n:],
        threshold=_split_point(values, boundaries[best], context.use_average_split_points),
        missing_go_left=missing_go_left
    )


def _nominal_binary_classification(column, memberships, labels, nr_classes, priors, context):
    dist, missing_dist, missing_rows = _nominal_statistics_classification(column, memberships, labels, nr_classes)
    present_values = np.flatnonzero(dist.sum(axis=1) > EPSILON)
    if len(present_values) < 2:
        return None

    value_dist = dist[present_values]
    present_dist = value_dist.sum(axis=0)

    if nr_classes == 2:
        # two classes: ordering values by class probability makes prefixes optimal
        value_w = value_dist.sum(axis=1)
        order = np.argsort(value_dist[:, 0] / value_w, kind='mergesort')
        left_dist = np.cumsum(value_dist[order], axis=0)[:-1]
        partitions = np.zeros((len(order) - 1, len(order)), dtype=bool)
        for j in range(len(order) - 1):
            partitions[j, order[:j + 1]] = True
    else:
        partitions = _binary_partitions(len(present_values), context)
        left_dist = partitions.astype(np.float64) @ value_dist

    result = _best_classification_partition(left_dist, present_dist, missing_dist, priors, context)
    if result is None:
        return None
    best, gain, missing_go_left = result

    return SplitCandidate(
        split_type=SplitType.NOMINAL_BINARY,
        column=column,
        gain=gain,
        missing_rows=missing_rows,
        left_codes=frozenset(int(c) for c in present_values[partitions[best]]),
        missing_go_left=missing_go_left
    )


def _nominal_multiway_classification(column, memberships, labels, nr_classes, priors, context):
    dist, missing_dist, missing_rows = _nominal_statistics_classification(column, memberships, labels, nr_classes)
    value_w = dist.sum(axis=1)
    present_values = np.flatnonzero(value_w > EPSILON)
    if len(present_values) < 2:
        return None
    if (value_w[present_values] < context.min_child_size).any():
        return None

    criterion = context.criterion
    value_dist = dist[present_values]
    weights = value_w[present_values]
    total = float(weights.sum())
    if missing_dist.sum() > EPSILON:
        prior = float(criterion.partition_impurity(value_dist.sum(axis=0), total))
    else:
        prior = priors.prior_impurity
    post = float(criterion.post_split_impurity(criterion.partition_impurity(value_dist, weights), weights, total))
    if prior - post <= EPSILON:
        return None
    gain = float(criterion.gain(prior, post, weights, total))

    return SplitCandidate(
        split_type=SplitType.NOMINAL_MULTIWAY,
        column=column,
        gain=gain,
        missing_rows=missing_rows,
        value_codes=tuple(int(c) for c in present_values)
    )


def _bit_vector_classification(column, memberships, labels, nr_classes, priors, context):
    dist, missing_dist, missing_rows = _nominal_statistics_classification(column, memberships, labels, nr_classes)
    result = _best_classification_partition(dist[0:1], dist.sum(axis=0), missing_dist, priors, context)
    if result is None:
        return None
    _, gain, missing_go_left = result
    return SplitCandidate(
        split_type=SplitType.BIT_VECTOR,
        column=column,
        gain=gain,
        missing_rows=missing_rows,
        missing_go_left=missing_go_left
    )


# ---------------------------------------------------------------------------
# Regression
# ---------------------------------------------------------------------------

def find_best_split_regression(column, memberships, y: np.ndarray, priors,
                               context: SplitSearchContext) -> Optional[SplitCandidate]:
    """
    Best split of a node on one column for a numeric target

    Args:
        column: Attribute column
        memberships: DataMemberships of the node
        y: Target values aligned with the membership positions
        priors: RegressionPriors of the node
        context: Search context

    Returns:
        SplitCandidate or None if no split reduces the squared error
    """
    column_type = column.column_type
    if column_type == ColumnType.NUMERIC:
        return _numeric_regression(column, memberships, y, context)
    elif column_type == ColumnType.NOMINAL:
        if context.use_binary_nominal_splits:
            return _nominal_binary_regression(column, memberships, y, context)
        return _nominal_multiway_regression(column, memberships, y, context)
    elif column_type == ColumnType.BIT_VECTOR:
        return _bit_vector_regression(column, memberships, y, context)
    raise ValueError(f"Unsupported column type: {column_type}")


def _numeric_regression(column, memberships, y, context):
    view = memberships.column_view(column)
    n = view.nr_non_missing
    if n < 2:
        return None

    values = view.values[:n]
    boundaries = np.flatnonzero(values[:-1] < values[1:])
    if len(boundaries) == 0:
        return None

    weights = view.weights
    weighted_y = weights * y[view.positions]
    cumulative_w = np.cumsum(weights[:n])
    cumulative_y = np.cumsum(weighted_y[:n])

    result = _best_regression_partition(cumulative_w[boundaries], cumulative_y[boundaries],
                                        float(cumulative_w[-1]), float(cumulative_y[-1]),
                                        float(weights[n:].sum()), float(weighted_y[n:].sum()), context)
    if result is None:
        return None
    best, gain, missing_go_left = result

    return SplitCandidate(
        split_type=SplitType.NUMERIC if missing_go_left is None else SplitType.NUMERIC_WITH_MISSING,
        column=column,
        gain=gain,
        missing_rows=view.rows[n:],
        threshold=_split_point(values, boundaries[best], context.use_average_split_points),
        missing_go_left=missing_go_left
    )


def _nominal_binary_regression(column, memberships, y, context):
    value_w, value_y, missing_w, missing_y, missing_rows = _nominal_statistics_regression(column, memberships, y)
    present_values = np.flatnonzero(value_w > EPSILON)
    if len(present_values) < 2:
        return None

    w = value_w[present_values]
    s = value_y[present_values]
    # ordering values by mean target makes prefixes optimal
    order = np.argsort(s / w, kind='mergesort')
    left_w = np.cumsum(w[order])[:-1]
    left_y = np.cumsum(s[order])[:-1]

    result = _best_regression_partition(left_w, left_y, float(w.sum()), float(s.sum()),
                                        missing_w, missing_y, context)
    if result is None:
        return None
    best, gain, missing_go_left = result

    return SplitCandidate(
        split_type=SplitType.NOMINAL_BINARY,
        column=column,
        gain=gain,
        missing_rows=missing_rows,
        left_codes=frozenset(int(c) for c in present_values[order[:best + 1]]),
        missing_go_left=missing_go_left
    )


def _nominal_multiway_regression(column, memberships, y, context):
    value_w, value_y, _, _, missing_rows = _nominal_statistics_regression(column, memberships, y)
    present_values = np.flatnonzero(value_w > EPSILON)
    if len(present_values) < 2:
        return None

    w = value_w[present_values]
    s = value_y[present_values]
    if (w < context.min_child_size).any():
        return None
    gain = float(np.sum(s * s / w) - s.sum() ** 2 / w.sum())
    if gain <= EPSILON:
        return None

    return SplitCandidate(
        split_type=SplitType.NOMINAL_MULTIWAY,
        column=column,
        gain=gain,
        missing_rows=missing_rows,
        value_codes=tuple(int(c) for c in present_values)
    )


def _bit_vector_regression(column, memberships, y, context):
    value_w, value_y, missing_w, missing_y, missing_rows = _nominal_statistics_regression(column, memberships, y)
    result = _best_regression_partition(value_w[0:1], value_y[0:1], float(value_w.sum()), float(value_y.sum()),
                                        missing_w, missing_y, context)
    if result is None:
        return None
    _, gain, missing_go_left = result
    return SplitCandidate(
        split_type=SplitType.BIT_VECTOR,
        column=column,
        gain=gain,
        missing_rows=missing_rows,
        missing_go_left=missing_go_left
    )
