#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Ensemble Module for Tree Ensembles
Bagged ensembles and gradient boosted tree models
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
import pandas as pd

from tree_ensembles.models.node import TreeModel
from tree_ensembles.models.signature import TreeNodeSignature
from tree_ensembles.utils.serialization_utils import make_json_serializable

logger = logging.getLogger(__name__)


class TreeEnsembleModel:
    """Ordered list of trees combined by majority vote or by their mean"""

    def __init__(self, models: List[TreeModel], target_name: str,
                 class_names: Optional[List[Any]] = None, regression: bool = False):
        if not models:
            raise ValueError("An ensemble needs at least one tree")
        self.models = list(models)
        self.target_name = target_name
        self.class_names = list(class_names) if class_names is not None else None
        self.regression = regression
        self.metadata: Dict[str, Any] = {}

    @property
    def nr_models(self) -> int:
        return len(self.models)

    def get_tree_model(self, index: int) -> TreeModel:
        return self.models[index]

    def __iter__(self) -> Iterator[TreeModel]:
        return iter(self.models)

    def __len__(self) -> int:
        return len(self.models)

    def predict_record(self, record: Dict[str, Any], models: Optional[List[int]] = None) -> Any:
        """
        Combined prediction of one record

        Args:
            record: Mapping of column name to raw value
            models: Indices of the trees to use (all if None)

        Returns:
            Mean prediction (regression) or majority vote (classification),
            the first class in class order winning ties
        """
        trees = self.models if models is None else [self.models[i] for i in models]
        if not trees:
            return None
        if self.regression:
            return float(np.mean([tree.predict_record(record) for tree in trees]))

        votes = np.zeros(len(self.class_names))
        for tree in trees:
            leaf = tree.find_matching_leaf(record)
            votes[leaf.priors.majority_index] += 1
        return self.class_names[int(np.argmax(votes))]

    def predict_proba_record(self, record: Dict[str, Any], models: Optional[List[int]] = None) -> np.ndarray:
        """Class probabilities averaged over the trees"""
        if self.regression:
            raise TypeError("Class probabilities are only available for classification ensembles")
        trees = self.models if models is None else [self.models[i] for i in models]
        probabilities = np.zeros(len(self.class_names))
        for tree in trees:
            probabilities += tree.find_matching_leaf(record).class_probabilities
        return probabilities / max(len(trees), 1)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Predict every row of a DataFrame

        Args:
            X: Features DataFrame with the training column names

        Returns:
            Numpy array of predictions
        """
        return np.array([self.predict_record(record) for record in X.to_dict('records')])

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        return np.vstack([self.predict_proba_record(record) for record in X.to_dict('records')])

    def predict_per_tree(self, X: pd.DataFrame) -> np.ndarray:
        """Predictions of every tree, shape (nr_models, nr_rows)"""
        return np.vstack([tree.predict(X) for tree in self.models])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'tree_ensemble',
            'target': self.target_name,
            'regression': self.regression,
            'class_names': make_json_serializable(self.class_names),
            'metadata': make_json_serializable(self.metadata),
            'models': [tree.to_dict() for tree in self.models]
        }

    def __repr__(self) -> str:
        kind = 'regression' if self.regression else 'classification'
        return f"TreeEnsembleModel({kind}, trees={self.nr_models}, target={self.target_name})"


class GradientBoostedTreesModel:
    """
    Initial value plus a shrunken sum of regression trees, one scalar
    coefficient per tree
    """

    def __init__(self, models: List[TreeModel], initial_value: float, coefficients: List[float],
                 learning_rate: float, target_name: str):
        if len(models) != len(coefficients):
            raise ValueError("One coefficient per tree is required")
        self.models = list(models)
        self.initial_value = float(initial_value)
        self.coefficients = [float(c) for c in coefficients]
        self.learning_rate = learning_rate
        self.target_name = target_name
        self.training_losses: List[float] = []

    @property
    def nr_models(self) -> int:
        return len(self.models)

    def predict_record(self, record: Dict[str, Any]) -> float:
        prediction = self.initial_value
        for tree, coefficient in zip(self.models, self.coefficients):
            prediction += self.learning_rate * coefficient * tree.predict_record(record)
        return prediction

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        prediction = np.full(len(X), self.initial_value)
        for tree, coefficient in zip(self.models, self.coefficients):
            prediction += self.learning_rate * coefficient * tree.predict(X).astype(np.float64)
        return prediction

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'gradient_boosted_trees',
            'target': self.target_name,
            'initial_value': self.initial_value,
            'learning_rate': self.learning_rate,
            'coefficients': self.coefficients,
            'training_losses': make_json_serializable(self.training_losses),
            'models': [tree.to_dict() for tree in self.models]
        }

    def __repr__(self) -> str:
        return f"GradientBoostedTreesModel(trees={self.nr_models}, learning_rate={self.learning_rate})"


class QuantileBoostedTreesModel:
    """
    Initial value plus a shrunken sum of per-leaf coefficients.

    Each tree has a map from leaf signature to coefficient. A record that
    stops at an internal node (unknown nominal value of a multiway split)
    contributes nothing for that tree.
    """

    def __init__(self, models: List[TreeModel], initial_value: float,
                 leaf_coefficients: List[Dict[TreeNodeSignature, float]], learning_rate: float,
                 target_name: str):
        if len(models) != len(leaf_coefficients):
            raise ValueError("One coefficient map per tree is required")
        self.models = list(models)
        self.initial_value = float(initial_value)
        self.leaf_coefficients = leaf_coefficients
        self.learning_rate = learning_rate
        self.target_name = target_name
        self.training_losses: List[float] = []

    @property
    def nr_models(self) -> int:
        return len(self.models)

    def tree_contribution(self, index: int, record: Dict[str, Any]) -> float:
        leaf = self.models[index].find_matching_leaf(record)
        return self.leaf_coefficients[index].get(leaf.signature, 0.0)

    def predict_record(self, record: Dict[str, Any]) -> float:
        prediction = self.initial_value
        for index in range(self.nr_models):
            prediction += self.learning_rate * self.tree_contribution(index, record)
        return prediction

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return np.array([self.predict_record(record) for record in X.to_dict('records')])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'quantile_boosted_trees',
            'target': self.target_name,
            'initial_value': self.initial_value,
            'learning_rate': self.learning_rate,
            'leaf_coefficients': [{str(sig): float(c) for sig, c in coefficients.items()}
                                  for coefficients in self.leaf_coefficients],
            'training_losses': make_json_serializable(self.training_losses),
            'models': [tree.to_dict() for tree in self.models]
        }

    def __repr__(self) -> str:
        return f"QuantileBoostedTreesModel(trees={self.nr_models}, learning_rate={self.learning_rate})"
