#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Node Module for Tree Ensembles
Tree nodes and the arena-based tree model
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from tree_ensembles.data.priors import ClassificationPriors, RegressionPriors
from tree_ensembles.models.conditions import NodeCondition
from tree_ensembles.models.signature import TreeNodeSignature
from tree_ensembles.utils.serialization_utils import make_json_serializable

logger = logging.getLogger(__name__)


class TreeNode:
    """Node of a learned tree; children are indices into the owning TreeModel"""

    def __init__(self, signature: TreeNodeSignature, condition: NodeCondition, depth: int,
                 nr_rows: int = 0):
        """
        Initialize a tree node

        Args:
            signature: Path signature of the node
            condition: Condition routing a record into this node
            depth: Depth level in the tree (0 for root)
            nr_rows: Number of distinct training rows reaching the node
        """
        self.index = -1
        self.parent: Optional[int] = None
        self.children: List[int] = []
        self.signature = signature
        self.condition = condition
        self.depth = depth
        self.nr_rows = nr_rows

        self.split_column: Optional[str] = None  # Attribute used for the split
        self.split_attribute_index: Optional[int] = None
        self.split_gain: Optional[float] = None
        self.candidate_attributes: Tuple[int, ...] = ()  # Attributes searched at this node

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def set_split(self, attribute_index: int, column_name: str, gain: float):
        self.split_attribute_index = attribute_index
        self.split_column = column_name
        self.split_gain = float(gain)

    def prediction(self) -> Any:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert node to dictionary for serialization

        Returns:
            Dictionary representation of the node
        """
        node_dict = {
            'index': self.index,
            'signature': str(self.signature),
            'depth': self.depth,
            'is_leaf': self.is_leaf,
            'condition': self.condition.to_dict(),
            'nr_rows': self.nr_rows,
            'split_column': self.split_column,
            'split_gain': self.split_gain,
            'children': list(self.children)
        }
        return make_json_serializable(node_dict)

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(index={self.index}, signature={self.signature}, "
                f"leaf={self.is_leaf}, split_column={self.split_column}, children={len(self.children)})")


class TreeNodeClassification(TreeNode):
    """Node holding the class distribution of its rows"""

    def __init__(self, signature: TreeNodeSignature, condition: NodeCondition, depth: int,
                 priors: ClassificationPriors, nr_rows: int = 0):
        super().__init__(signature, condition, depth, nr_rows)
        self.priors = priors

    @property
    def majority_class(self) -> Any:
        return self.priors.majority_class

    @property
    def class_probabilities(self) -> np.ndarray:
        return self.priors.probabilities

    def prediction(self) -> Any:
        return self.majority_class

    def to_dict(self) -> Dict[str, Any]:
        node_dict = super().to_dict()
        node_dict.update(make_json_serializable(self.priors.to_dict()))
        return node_dict

    def __str__(self) -> str:
        probability = float(self.class_probabilities[self.priors.majority_index]) if self.priors.total_weight else 0.0
        return f"{self.condition} -> {self.majority_class} ({probability:.2f}, n={self.priors.total_weight:g})"


class TreeNodeRegression(TreeNode):
    """Node holding target sums; leaves keep the original rows that reached them"""

    def __init__(self, signature: TreeNodeSignature, condition: NodeCondition, depth: int,
                 priors: RegressionPriors, nr_rows: int = 0):
        super().__init__(signature, condition, depth, nr_rows)
        self.priors = priors
        self.row_indices: Optional[np.ndarray] = None

    @property
    def mean(self) -> float:
        return self.priors.mean

    def prediction(self) -> float:
        return self.mean

    def to_dict(self) -> Dict[str, Any]:
        node_dict = super().to_dict()
        node_dict.update(make_json_serializable(self.priors.to_dict()))
        return node_dict

    def __str__(self) -> str:
        return f"{self.condition} -> {self.mean:.6g} (n={self.priors.total_weight:g})"


# A learned subtree before flattening: the node and its child subtrees
Subtree = Tuple[TreeNode, List['Subtree']]


class TreeModel:
    """
    One learned tree stored as an arena of nodes.

    Node 0 is the root, nodes are laid out in pre-order and refer to their
    parent and children by index.
    """

    def __init__(self, nodes: List[TreeNode], target_name: str, class_names: Optional[List[Any]] = None):
        if not nodes:
            raise ValueError("A tree needs at least a root node")
        self.nodes = nodes
        self.target_name = target_name
        self.class_names = class_names
        self._by_signature = {node.signature: node for node in nodes}

    @classmethod
    def from_subtree(cls, subtree: Subtree, target_name: str,
                     class_names: Optional[List[Any]] = None) -> 'TreeModel':
        """
        Flatten a nested learning result into an arena

        Args:
            subtree: Root node with its child subtrees
            target_name: Name of the target column
            class_names: Class names for classification trees

        Returns:
            TreeModel with nodes in pre-order
        """
        nodes: List[TreeNode] = []
        stack = [(subtree, None)]
        while stack:
            (node, child_subtrees), parent_index = stack.pop()
            node.index = len(nodes)
            node.parent = parent_index
            node.children = []
            nodes.append(node)
            if parent_index is not None:
                nodes[parent_index].children.append(node.index)
            for child in reversed(child_subtrees):
                stack.append((child, node.index))
        return cls(nodes, target_name, class_names)

    @property
    def root(self) -> TreeNode:
        return self.nodes[0]

    @property
    def is_regression(self) -> bool:
        return isinstance(self.root, TreeNodeRegression)

    @property
    def nr_nodes(self) -> int:
        return len(self.nodes)

    @property
    def depth(self) -> int:
        return max(node.depth for node in self.nodes)

    def iter_nodes(self) -> Iterator[TreeNode]:
        return iter(self.nodes)

    def leaves(self) -> List[TreeNode]:
        return [node for node in self.nodes if node.is_leaf]

    def internal_nodes(self) -> List[TreeNode]:
        return [node for node in self.nodes if not node.is_leaf]

    def get_node(self, index: int) -> TreeNode:
        return self.nodes[index]

    def get_node_by_signature(self, signature: TreeNodeSignature) -> Optional[TreeNode]:
        return self._by_signature.get(signature)

    def get_children(self, node: TreeNode) -> List[TreeNode]:
        return [self.nodes[i] for i in node.children]

    def find_matching_leaf(self, record: Dict[str, Any]) -> TreeNode:
        """
        Route a record from the root down the tree.

        The record stops at an internal node if none of the child conditions
        accepts it.

        Args:
            record: Mapping of column name to raw value

        Returns:
            The deepest node reached
        """
        node = self.root
        while node.children:
            for child_index in node.children:
                child = self.nodes[child_index]
                if child.condition.test(record):
                    node = child
                    break
            else:
                return node
        return node

    def assign_rows(self, data, rows: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Vectorized routing of dataset rows, same rules as find_matching_leaf

        Args:
            data: TreeData the tree was learned on
            rows: Original row indices (all rows if None)

        Returns:
            Index of the deepest node reached, per row
        """
        rows = np.arange(data.nr_rows) if rows is None else np.asarray(rows, dtype=np.int64)
        assignment = np.zeros(len(rows), dtype=np.int64)
        stack = [(0, np.arange(len(rows)))]
        while stack:
            node_index, positions = stack.pop()
            node = self.nodes[node_index]
            remaining = positions
            for child_index in node.children:
                if len(remaining) == 0:
                    break
                accepted = self.nodes[child_index].condition.test_rows(data, rows[remaining])
                stack.append((child_index, remaining[accepted]))
                remaining = remaining[~accepted]
            assignment[remaining] = node_index
        return assignment

    def predict_rows(self, data, rows: Optional[np.ndarray] = None) -> np.ndarray:
        """Predictions of dataset rows routed with assign_rows"""
        predictions = np.array([node.prediction() for node in self.nodes])
        return predictions[self.assign_rows(data, rows)]

    def predict_record(self, record: Dict[str, Any]) -> Any:
        return self.find_matching_leaf(record).prediction()

    def predict_proba_record(self, record: Dict[str, Any]) -> np.ndarray:
        if self.is_regression:
            raise TypeError("Class probabilities are only available for classification trees")
        return self.find_matching_leaf(record).class_probabilities

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Predict every row of a DataFrame

        Args:
            X: Features DataFrame with the training column names

        Returns:
            Numpy array of predictions
        """
        return np.array([self.predict_record(record) for record in X.to_dict('records')])

    def get_node_rules(self, node: TreeNode) -> List[str]:
        """
        Conditions on the path from the root to a node

        Args:
            node: Node of this tree

        Returns:
            Conditions as strings, root first
        """
        rules = []
        while node.parent is not None:
            rules.append(str(node.condition))
            node = self.nodes[node.parent]
        return list(reversed(rules))

    def print_tree(self) -> str:
        lines = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            lines.append('  ' * node.depth + str(node))
            stack.extend(self.nodes[i] for i in reversed(node.children))
        return '\n'.join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'target': self.target_name,
            'class_names': make_json_serializable(self.class_names),
            'nodes': [node.to_dict() for node in self.nodes]
        }

    def __repr__(self) -> str:
        return f"TreeModel(nodes={self.nr_nodes}, depth={self.depth}, leaves={len(self.leaves())})"