#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Analytics Module for Tree Ensembles
Attribute statistics and performance metrics of learned ensembles
"""

from .variable_importance import AttributeStatistics
from .performance_metrics import (
    OutOfBagEvaluator, calculate_classification_metrics, calculate_regression_metrics, sum_squared_error
)

__all__ = [
    'AttributeStatistics',
    'OutOfBagEvaluator',
    'calculate_classification_metrics',
    'calculate_regression_metrics',
    'sum_squared_error'
]
