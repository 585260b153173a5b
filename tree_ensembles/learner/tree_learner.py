#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tree Learner Module for Tree Ensembles
Recursive growing of a single classification or regression tree
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, List, Optional, Tuple

import numpy as np

from tree_ensembles.data.impurity import EPSILON, get_impurity_criterion
from tree_ensembles.data.memberships import DataMemberships
from tree_ensembles.data.priors import ClassificationPriors, RegressionPriors
from tree_ensembles.learner.configuration import MissingValueHandling, TreeEnsembleLearnerConfiguration
from tree_ensembles.learner.split_candidates import (
    SplitCandidate, child_conditions, child_masks, learned_missing_child, majority_child
)
from tree_ensembles.learner.split_finder import (
    SplitSearchContext, TIE_TOLERANCE, find_best_split_classification, find_best_split_regression
)
from tree_ensembles.learner.surrogates import calculate_surrogates
from tree_ensembles.models.conditions import NodeCondition, TrueCondition
from tree_ensembles.models.node import Subtree, TreeModel, TreeNode, TreeNodeClassification, TreeNodeRegression
from tree_ensembles.models.signature import TreeNodeSignature, TreeNodeSignatureFactory
from tree_ensembles.sample.column_sample import ColumnSample, create_column_sample_strategy
from tree_ensembles.sample.row_sample import RowSample
from tree_ensembles.utils.execution_monitor import ExecutionMonitor
from tree_ensembles.utils.memory_management import get_max_concurrent_trees
from tree_ensembles.utils.random_data import RandomData

logger = logging.getLogger(__name__)

# Sub-stream tag of split search tie-breaking draws
SPLIT_SEARCH_STREAM = 2


class TreeLearnerError(RuntimeError):
    """Unexpected fault while building a single tree"""
    pass


class AbstractTreeLearner:
    """
    Grows one tree top-down on a row sample.

    A learner instance builds a single tree. Random draws of a node come from
    streams derived from the tree's random stream and the node signature, so
    the result does not depend on the order in which nodes are built.
    """

    def __init__(self, config: TreeEnsembleLearnerConfiguration, data, row_sample: RowSample,
                 random_data: RandomData, signature_factory: Optional[TreeNodeSignatureFactory] = None,
                 column_sample_strategy=None, executor: Optional[ThreadPoolExecutor] = None):
        """
        Initialize the learner

        Args:
            config: Learner configuration
            data: TreeData shared by all trees
            row_sample: Row sample of this tree
            random_data: Random stream of this tree
            signature_factory: Ensemble-wide signature factory (a private one if None)
            column_sample_strategy: Column sampling of this tree (created from config if None)
            executor: Pool for parallel node building (a private one is created when
                parallel node building is enabled and no pool is given)

        Raises:
            InvalidSettingsError: If the configuration does not fit the data
        """
        config.check_against(data)
        if row_sample.nr_rows != data.nr_rows:
            raise ValueError(f"Row sample covers {row_sample.nr_rows} rows, data has {data.nr_rows}")

        self.config = config
        self.data = data
        self.row_sample = row_sample
        self.random_data = random_data
        self.signature_factory = signature_factory or TreeNodeSignatureFactory()
        self.column_sample_strategy = (column_sample_strategy if column_sample_strategy is not None
                                       else create_column_sample_strategy(config, data, random_data))
        self.context = SplitSearchContext.from_configuration(config)
        self._root_column = None
        if config.hardcoded_root_column is not None:
            self._root_column = data.get_column_by_name(config.hardcoded_root_column)
        self._executor = executor
        self._monitor: Optional[ExecutionMonitor] = None

    # -- hooks of the target-specific learners ---------------------------

    def create_priors(self, memberships: DataMemberships):
        raise NotImplementedError

    def create_node(self, signature: TreeNodeSignature, condition: NodeCondition,
                    priors, memberships: DataMemberships) -> TreeNode:
        raise NotImplementedError

    def node_target(self, memberships: DataMemberships) -> np.ndarray:
        """Target values aligned with the membership positions"""
        return self.data.target_column.values[memberships.original_indices]

    def find_best_split_in_column(self, column, memberships: DataMemberships, target: np.ndarray,
                                  priors, context: SplitSearchContext) -> Optional[SplitCandidate]:
        raise NotImplementedError

    def finish_leaf(self, node: TreeNode, memberships: DataMemberships) -> None:
        pass

    def class_names(self) -> Optional[List[Any]]:
        return None

    # -- tree building ----------------------------------------------------

    def learn_single_tree(self, monitor: Optional[ExecutionMonitor] = None) -> TreeModel:
        """
        Learn the tree

        Args:
            monitor: Cancellation and progress collaborator

        Returns:
            Learned TreeModel

        Raises:
            CanceledExecutionError: If the monitor was canceled
            TreeLearnerError: If the tree cannot be built
        """
        self._monitor = monitor
        memberships = DataMemberships.root(self.row_sample.counts)
        root_signature = self.signature_factory.get_root_signature()
        forbidden = np.zeros(self.data.nr_attributes, dtype=bool)

        if self.config.parallel_node_building and self._executor is None:
            with ThreadPoolExecutor(max_workers=get_max_concurrent_trees(self.config.n_jobs),
                                    thread_name_prefix='tree-node') as executor:
                self._executor = executor
                try:
                    subtree = self._build_node(memberships, root_signature, TrueCondition(), forbidden)
                finally:
                    self._executor = None
        else:
            subtree = self._build_node(memberships, root_signature, TrueCondition(), forbidden)

        model = TreeModel.from_subtree(subtree, self.data.target_column.name, self.class_names())
        logger.debug(f"Learned tree with {model.nr_nodes} nodes, depth {model.depth}")
        return model

    def _is_terminal(self, depth: int, priors, memberships: DataMemberships) -> bool:
        if self.config.max_depth is not None and depth >= self.config.max_depth:
            return True
        if memberships.total_weight < self.config.effective_min_node_size:
            return True
        if memberships.get_row_count() < 2:
            return True
        return priors.prior_impurity < EPSILON

    def _build_node(self, memberships: DataMemberships, signature: TreeNodeSignature,
                    condition: NodeCondition, forbidden: np.ndarray) -> Subtree:
        if self._monitor is not None:
            self._monitor.check_canceled()

        priors = self.create_priors(memberships)
        node = self.create_node(signature, condition, priors, memberships)
        if self._is_terminal(signature.depth, priors, memberships):
            self.finish_leaf(node, memberships)
            return node, []

        column_sample = self.column_sample_strategy.get_column_sample_for_tree_node(signature)
        node.candidate_attributes = tuple(i for i in column_sample.attribute_indices if not forbidden[i])
        context = self.context.with_random_data(
            self.random_data.derive((SPLIT_SEARCH_STREAM,) + signature.path))
        target = self.node_target(memberships)

        candidate = self.find_best_split(memberships, signature, target, priors, column_sample,
                                         forbidden, context)
        if candidate is None:
            self.finish_leaf(node, memberships)
            return node, []

        masks, conditions = self.split_node(candidate, memberships, column_sample, context)
        node.set_split(candidate.attribute_index, candidate.column.name, candidate.gain)
        logger.debug(f"Node {signature}: split on {candidate.column.name} "
                     f"({candidate.split_type.value}, gain={candidate.gain:.6g})")

        children = [(memberships.create_child(mask), self.signature_factory.get_child_signature(signature, i),
                     child_condition)
                    for i, (mask, child_condition) in enumerate(zip(masks, conditions))]

        exhausted = candidate.exhausts_column
        if exhausted:
            forbidden[candidate.attribute_index] = True
        try:
            child_subtrees = self._build_children(children, signature.depth, forbidden)
        finally:
            if exhausted:
                forbidden[candidate.attribute_index] = False
        return node, child_subtrees

    def _build_children(self, children: List[Tuple[DataMemberships, TreeNodeSignature, NodeCondition]],
                        depth: int, forbidden: np.ndarray) -> List[Subtree]:
        if self._executor is None or depth >= self.config.max_parallel_depth or len(children) < 2:
            return [self._build_node(m, s, c, forbidden) for m, s, c in children]

        # fork all but the first child, build the first one in this thread
        futures = [self._executor.submit(self._build_node, m, s, c, forbidden.copy())
                   for m, s, c in children[1:]]
        try:
            first = children[0]
            subtrees = [self._build_node(first[0], first[1], first[2], forbidden)]
            for (m, s, c), future in zip(children[1:], futures):
                if future.cancel():
                    subtrees.append(self._build_node(m, s, c, forbidden))
                else:
                    subtrees.append(future.result())
            return subtrees
        except BaseException:
            for future in futures:
                future.cancel()
            wait(futures)
            raise

    def find_best_split(self, memberships: DataMemberships, signature: TreeNodeSignature, target: np.ndarray,
                        priors, column_sample: ColumnSample, forbidden: np.ndarray,
                        context: SplitSearchContext) -> Optional[SplitCandidate]:
        """
        Best split over the eligible columns of a node

        Ties between columns are broken uniformly at random.

        Args:
            memberships: Rows of the node
            signature: Signature of the node
            target: Target values aligned with the membership positions
            priors: Target statistics of the node
            column_sample: Columns sampled for the node
            forbidden: Flags of columns exhausted on the path to the node
            context: Search context with the node's random stream

        Returns:
            Best SplitCandidate or None

        Raises:
            TreeLearnerError: If the hard-coded root column cannot split the root
        """
        if signature.is_root and self._root_column is not None:
            candidate = self.find_best_split_in_column(self._root_column, memberships, target, priors, context)
            if candidate is None:
                raise TreeLearnerError(
                    f"Hard-coded root column '{self._root_column.name}' cannot split the root node")
            return candidate

        best = None
        nr_ties = 0
        for column in column_sample:
            if forbidden[column.attribute_index]:
                continue
            candidate = self.find_best_split_in_column(column, memberships, target, priors, context)
            if candidate is None:
                continue
            tolerance = TIE_TOLERANCE * max(1.0, abs(candidate.gain))
            if best is None or candidate.gain > best.gain + tolerance:
                best = candidate
                nr_ties = 1
            elif candidate.gain >= best.gain - tolerance:
                nr_ties += 1
                if context.random_data.next_int(1, nr_ties) == 1:
                    best = candidate
        return best

    def split_node(self, candidate: SplitCandidate, memberships: DataMemberships,
                   column_sample: ColumnSample, context: SplitSearchContext
                   ) -> Tuple[List[np.ndarray], List[NodeCondition]]:
        """
        Child masks and conditions of an applied split; every row lands in exactly one child

        Args:
            candidate: Chosen split
            memberships: Rows of the node
            column_sample: Columns sampled for the node (surrogate search space)
            context: Search context of the node

        Returns:
            Tuple of (child masks aligned with membership positions, child conditions)
        """
        if self.config.missing_value_handling == MissingValueHandling.SURROGATE and candidate.is_binary:
            surrogate_split = calculate_surrogates(self.data, memberships, candidate, column_sample, context)
            return surrogate_split.child_masks, surrogate_split.conditions

        masks, missing = child_masks(candidate, memberships)
        missing_child = learned_missing_child(candidate)
        if missing_child is None:
            missing_child = majority_child(masks, memberships.weights)
        masks[missing_child] = masks[missing_child] | missing
        return masks, child_conditions(candidate, missing_child)


class TreeLearnerClassification(AbstractTreeLearner):
    """Tree learner for nominal targets"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.criterion = get_impurity_criterion(self.config.impurity_name)

    def create_priors(self, memberships: DataMemberships) -> ClassificationPriors:
        return ClassificationPriors.from_memberships(self.data.target_column, memberships, self.criterion)

    def create_node(self, signature, condition, priors, memberships) -> TreeNodeClassification:
        return TreeNodeClassification(signature, condition, signature.depth, priors, memberships.get_row_count())

    def find_best_split_in_column(self, column, memberships, target, priors, context):
        return find_best_split_classification(column, memberships, target, priors.nr_classes, priors, context)

    def class_names(self) -> List[Any]:
        return list(self.data.target_column.class_names)


class TreeLearnerRegression(AbstractTreeLearner):
    """
    Tree learner for numeric targets.

    Leaves keep the original row indices that reached them; the learner also
    collects its leaves, guarded by a lock since sibling subtrees may be
    built concurrently.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._leaves: List[TreeNodeRegression] = []
        self._leaves_lock = threading.Lock()

    def create_priors(self, memberships: DataMemberships) -> RegressionPriors:
        return RegressionPriors.from_memberships(self.data.target_column, memberships)

    def create_node(self, signature, condition, priors, memberships) -> TreeNodeRegression:
        return TreeNodeRegression(signature, condition, signature.depth, priors, memberships.get_row_count())

    def find_best_split_in_column(self, column, memberships, target, priors, context):
        return find_best_split_regression(column, memberships, target, priors, context)

    def finish_leaf(self, node: TreeNodeRegression, memberships: DataMemberships) -> None:
        node.row_indices = memberships.get_original_indices()
        with self._leaves_lock:
            self._leaves.append(node)

    def get_leaves(self) -> List[TreeNodeRegression]:
        """Leaves collected during learning, in completion order"""
        with self._leaves_lock:
            return list(self._leaves)


def create_tree_learner(config: TreeEnsembleLearnerConfiguration, data, row_sample: RowSample,
                        random_data: RandomData, **kwargs) -> AbstractTreeLearner:
    """Learner matching the target type of the configuration"""
    learner_class = TreeLearnerRegression if config.regression else TreeLearnerClassification
    return learner_class(config, data, row_sample, random_data, **kwargs)
