#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Performance Metrics Module for Tree Ensembles
Training and out-of-bag quality of learned ensembles
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
from sklearn.metrics import (
    accuracy_score, confusion_matrix, mean_absolute_error, mean_squared_error, r2_score
)

from tree_ensembles.models.ensemble import TreeEnsembleModel
from tree_ensembles.sample.row_sample import RowSample

logger = logging.getLogger(__name__)


def sum_squared_error(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Sum of squared differences between targets and predictions"""
    residuals = np.asarray(y_true, dtype=np.float64) - np.asarray(y_pred, dtype=np.float64)
    return float(np.dot(residuals, residuals))


def calculate_classification_metrics(y_true: np.ndarray, y_pred: np.ndarray,
                                     classes: Optional[List[Any]] = None) -> Dict[str, Any]:
    """
    Accuracy, error rate and confusion matrix

    Args:
        y_true: True class labels
        y_pred: Predicted class labels
        classes: Class order of the confusion matrix (sorted labels if None)

    Returns:
        Dictionary of metrics
    """
    if len(y_true) == 0:
        return {'accuracy': None, 'error_rate': None, 'nr_rows': 0}
    accuracy = float(accuracy_score(y_true, y_pred))
    labels = classes if classes is not None else sorted(set(y_true) | set(y_pred), key=str)
    cm = confusion_matrix(y_true, y_pred, labels=labels)
    return {
        'accuracy': accuracy,
        'error_rate': 1.0 - accuracy,
        'nr_rows': int(len(y_true)),
        'classes': list(labels),
        'confusion_matrix': cm.tolist()
    }


def calculate_regression_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, Any]:
    """
    Squared and absolute errors plus R²

    Args:
        y_true: True target values
        y_pred: Predicted values

    Returns:
        Dictionary of metrics
    """
    if len(y_true) == 0:
        return {'mse': None, 'rmse': None, 'mae': None, 'r2': None, 'sse': None, 'nr_rows': 0}
    mse = float(mean_squared_error(y_true, y_pred))
    return {
        'mse': mse,
        'rmse': float(np.sqrt(mse)),
        'mae': float(mean_absolute_error(y_true, y_pred)),
        'r2': float(r2_score(y_true, y_pred)) if len(y_true) > 1 else None,
        'sse': sum_squared_error(y_true, y_pred),
        'nr_rows': int(len(y_true))
    }


class OutOfBagEvaluator:
    """
    Predicts every training row with the trees that did not see it.

    Rows that were in the sample of every tree have no out-of-bag prediction
    and are excluded from the metrics.
    """

    def __init__(self, model: TreeEnsembleModel, data, row_samples: List[RowSample]):
        if len(row_samples) != model.nr_models:
            raise ValueError(f"Expected {model.nr_models} row samples, got {len(row_samples)}")
        self.model = model
        self.data = data
        self.row_samples = row_samples

    def _aggregate(self):
        nr_rows = self.data.nr_rows
        if self.model.regression:
            totals = np.zeros(nr_rows)
        else:
            totals = np.zeros((nr_rows, len(self.model.class_names)))
        counts = np.zeros(nr_rows, dtype=np.int64)

        for tree, row_sample in zip(self.model.models, self.row_samples):
            rows = row_sample.out_of_bag_rows()
            if len(rows) == 0:
                continue
            assignment = tree.assign_rows(self.data, rows)
            if self.model.regression:
                node_values = np.array([node.mean for node in tree.nodes])
                totals[rows] += node_values[assignment]
            else:
                node_votes = np.array([node.priors.majority_index for node in tree.nodes])
                totals[rows, node_votes[assignment]] += 1
            counts[rows] += 1
        return totals, counts

    def predict(self) -> np.ndarray:
        """
        Out-of-bag prediction per training row

        Returns:
            Mean (regression, NaN when never out-of-bag) or majority class
            (classification, None when never out-of-bag)
        """
        totals, counts = self._aggregate()
        covered = counts > 0
        if self.model.regression:
            predictions = np.full(len(counts), np.nan)
            predictions[covered] = totals[covered] / counts[covered]
            return predictions

        predictions = np.empty(len(counts), dtype=object)
        class_names = self.model.class_names
        for row in np.flatnonzero(covered):
            predictions[row] = class_names[int(np.argmax(totals[row]))]
        return predictions

    def evaluate(self) -> Dict[str, Any]:
        """
        Out-of-bag metrics

        Returns:
            Dictionary of metrics plus the number of rows never out-of-bag
        """
        _, counts = self._aggregate()
        covered = np.flatnonzero(counts > 0)
        predictions = self.predict()
        target = self.data.target_column

        if self.model.regression:
            metrics = calculate_regression_metrics(target.values[covered], predictions[covered])
        else:
            class_names = target.class_names
            y_true = [class_names[code] for code in target.values[covered]]
            metrics = calculate_classification_metrics(y_true, list(predictions[covered]), class_names)

        metrics['nr_rows_without_prediction'] = int(len(counts) - len(covered))
        logger.info(f"Out-of-bag evaluation on {len(covered)} of {len(counts)} rows")
        return metrics
