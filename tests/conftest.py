#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Shared fixtures for the Tree Ensembles tests
"""

import numpy as np
import pandas as pd
import pytest

from tree_ensembles.data.tree_data import TreeDataCreator
from tree_ensembles.learner.configuration import (
    GradientBoostingLearnerConfiguration, TreeEnsembleLearnerConfiguration
)


@pytest.fixture
def separable_frame():
    """100 rows, one numeric column that separates a binary target at 50"""
    x = np.arange(100, dtype=float)
    return pd.DataFrame({'x': x, 'target': np.where(x < 50, 'neg', 'pos')})


@pytest.fixture
def separable_data(separable_frame):
    return TreeDataCreator().read_data(separable_frame, 'target')


@pytest.fixture
def mixed_frame():
    """Numeric, nominal and bit-vector inputs with missing values and a three-class target"""
    rng = np.random.default_rng(42)
    n = 200
    x1 = rng.normal(size=n)
    x2 = rng.uniform(0.0, 10.0, size=n)
    color = rng.choice(['red', 'green', 'blue', 'yellow'], size=n).astype(object)
    bits = [''.join(rng.choice(['0', '1'], size=4)) for _ in range(n)]
    target = np.where(x1 + (color == 'red') > 0.5, 'yes', np.where(x2 > 5.0, 'maybe', 'no'))

    x1[rng.choice(n, size=20, replace=False)] = np.nan
    color[rng.choice(n, size=15, replace=False)] = None
    return pd.DataFrame({'x1': x1, 'x2': x2, 'color': color, 'bits': bits, 'target': target})


@pytest.fixture
def mixed_data(mixed_frame):
    return TreeDataCreator({'bit_vector_columns': ['bits']}).read_data(mixed_frame, 'target')


@pytest.fixture
def surrogate_frame():
    """Primary column with 10% missing values and a fully observed correlated column"""
    rng = np.random.default_rng(3)
    n = 200
    primary = rng.normal(size=n)
    backup = primary + rng.normal(scale=0.05, size=n)
    noise = rng.normal(size=n)
    target = np.where(primary > 0.0, 'up', 'down')
    primary[rng.choice(n, size=20, replace=False)] = np.nan
    return pd.DataFrame({'primary': primary, 'backup': backup, 'noise': noise, 'target': target})


@pytest.fixture
def regression_frame():
    """Linear target of two numeric inputs plus small noise"""
    rng = np.random.default_rng(7)
    n = 150
    x1 = rng.uniform(-1.0, 1.0, size=n)
    x2 = rng.uniform(-1.0, 1.0, size=n)
    y = 3.0 * x1 - 2.0 * x2 + 0.1 * rng.normal(size=n)
    return pd.DataFrame({'x1': x1, 'x2': x2, 'y': y})


@pytest.fixture
def regression_data(regression_frame):
    return TreeDataCreator().read_data(regression_frame, 'y')


@pytest.fixture
def make_config():
    """Factory for classification or regression learner configurations"""
    def factory(target='target', **kwargs):
        return TreeEnsembleLearnerConfiguration(target_column=target, **kwargs)
    return factory


@pytest.fixture
def make_boosting_config():
    def factory(target='y', **kwargs):
        return GradientBoostingLearnerConfiguration(target_column=target, **kwargs)
    return factory
