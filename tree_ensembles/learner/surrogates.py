#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Surrogates Module for Tree Ensembles
Backup splits routing rows whose primary split value is missing
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from tree_ensembles.data.impurity import GiniImpurity
from tree_ensembles.data.priors import ClassificationPriors
from tree_ensembles.learner.split_candidates import SplitCandidate, child_conditions, child_masks
from tree_ensembles.learner.split_finder import SplitSearchContext, find_best_split_classification
from tree_ensembles.models.conditions import SurrogateCondition

logger = logging.getLogger(__name__)

SYNTHETIC_CLASSES = ['left', 'right']


@dataclass
class SurrogateCandidate:
    """A ranked backup split"""
    candidate: SplitCandidate
    association: float
    use_complement: bool


@dataclass
class SurrogateSplit:
    """
    Children conditions of a binary split resolved with surrogates.

    conditions holds one SurrogateCondition per child. child_masks partition
    every row of the node (aligned with membership positions), missing rows
    included.
    """
    conditions: List[SurrogateCondition]
    child_masks: List[np.ndarray]
    surrogates: List[SurrogateCandidate]
    majority_goes_left: bool

    @property
    def nr_surrogates(self) -> int:
        return len(self.surrogates)


def calculate_association_measure(error_majority_rule: float, predict_prob: float) -> float:
    """
    Improvement of a surrogate over the majority rule

    Args:
        error_majority_rule: Probability that the majority direction disagrees with the primary split
        predict_prob: Probability that the surrogate agrees with the primary split

    Returns:
        Association; positive when the surrogate beats the majority rule
    """
    return (error_majority_rule - (1.0 - predict_prob)) / error_majority_rule


def _primary_partition(candidate: SplitCandidate, memberships) -> Tuple[np.ndarray, np.ndarray, np.ndarray, bool]:
    if not candidate.is_binary:
        raise ValueError("Surrogate splits require a binary primary split")
    (left, right), missing = child_masks(candidate, memberships)
    # majority rule on row counts, missing rows included
    majority_goes_left = int(left.sum()) >= int(right.sum())
    return left, right, missing, majority_goes_left


def create_surrogate_split_with_default_direction(data, memberships, candidate: SplitCandidate) -> SurrogateSplit:
    """
    Surrogate split without backup conditions; missing rows follow the majority

    Args:
        data: TreeData
        memberships: DataMemberships of the node
        candidate: Binary primary split

    Returns:
        SurrogateSplit with empty surrogate list
    """
    left, right, missing, majority_goes_left = _primary_partition(candidate, memberships)
    left_condition, right_condition = child_conditions(candidate)
    conditions = [SurrogateCondition([left_condition], majority_goes_left),
                  SurrogateCondition([right_condition], not majority_goes_left)]
    left_mask = left | (missing & majority_goes_left)
    return SurrogateSplit(conditions, [left_mask, ~left_mask], [], majority_goes_left)


def find_surrogates(memberships, candidate: SplitCandidate, column_sample,
                    context: SplitSearchContext) -> Tuple[List[SurrogateCandidate], bool]:
    """
    Rank backup splits for a primary split

    A synthetic two-class target records the child each non-missing row was
    sent to by the primary split. Every other sampled column is searched for
    its best split on that target, in direct and complemented orientation.

    Args:
        memberships: DataMemberships of the node
        candidate: Binary primary split
        column_sample: Columns eligible at the node
        context: Search context of the node

    Returns:
        Tuple of (surrogates sorted by descending association, majority_goes_left)
    """
    left, right, missing, majority_goes_left = _primary_partition(candidate, memberships)
    nr_rows = float(memberships.get_row_count())
    error_majority_rule = (right.sum() if majority_goes_left else left.sum()) / nr_rows
    if error_majority_rule <= 0.0:
        return [], majority_goes_left

    present = ~missing
    observed = memberships.create_child(present)
    labels = right[present].astype(np.int64)
    criterion = context.criterion if context.criterion is not None else GiniImpurity()
    surrogate_context = context.with_criterion(criterion)
    distribution = np.bincount(labels, weights=observed.weights, minlength=2)
    priors = ClassificationPriors(distribution, SYNTHETIC_CLASSES, criterion)

    ranked: List[SurrogateCandidate] = []
    for column in column_sample:
        if column.attribute_index == candidate.attribute_index:
            continue
        surrogate = find_best_split_classification(column, observed, labels, 2, priors, surrogate_context)
        if surrogate is None or not surrogate.is_binary:
            continue

        (surrogate_left, surrogate_right), _ = child_masks(surrogate, memberships)
        predict_prob = ((left & surrogate_left).sum() + (right & surrogate_right).sum()) / nr_rows
        complement_prob = ((left & surrogate_right).sum() + (right & surrogate_left).sum()) / nr_rows
        association = calculate_association_measure(error_majority_rule, predict_prob)
        complement_association = calculate_association_measure(error_majority_rule, complement_prob)

        use_complement = complement_association > association
        best_association = max(association, complement_association)
        if best_association > 0.0:
            ranked.append(SurrogateCandidate(surrogate, float(best_association), use_complement))

    ranked.sort(key=lambda s: (-s.association, s.candidate.attribute_index))
    logger.debug(f"Found {len(ranked)} surrogates for split on {candidate.column.name}")
    return ranked, majority_goes_left


def calculate_surrogates(data, memberships, candidate: SplitCandidate, column_sample,
                         context: SplitSearchContext) -> SurrogateSplit:
    """
    Resolve a binary split with surrogates

    Args:
        data: TreeData
        memberships: DataMemberships of the node
        candidate: Binary primary split
        column_sample: Columns eligible at the node
        context: Search context of the node

    Returns:
        SurrogateSplit whose child masks route every row of the node
    """
    if not candidate.has_missing:
        return create_surrogate_split_with_default_direction(data, memberships, candidate)

    surrogates, majority_goes_left = find_surrogates(memberships, candidate, column_sample, context)

    left_conditions, right_conditions = [], []
    primary_left, primary_right = child_conditions(candidate)
    left_conditions.append(primary_left)
    right_conditions.append(primary_right)
    for surrogate in surrogates:
        surrogate_left, surrogate_right = child_conditions(surrogate.candidate)
        if surrogate.use_complement:
            surrogate_left, surrogate_right = surrogate_right, surrogate_left
        left_conditions.append(surrogate_left)
        right_conditions.append(surrogate_right)

    left_condition = SurrogateCondition(left_conditions, majority_goes_left)
    right_condition = SurrogateCondition(right_conditions, not majority_goes_left)

    result, unresolved = left_condition.evaluate_rows(data, memberships.original_indices)
    left_mask = np.where(unresolved, majority_goes_left, result)
    return SurrogateSplit([left_condition, right_condition], [left_mask, ~left_mask],
                          surrogates, majority_goes_left)

