#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Sample Module for Tree Ensembles
Row and column sampling of individual trees
"""

from .row_sample import RowSample, RowSampler
from .column_sample import ColumnSample, ColumnSampleStrategy, create_column_sample_strategy, get_sample_size

__all__ = [
    'RowSample',
    'RowSampler',
    'ColumnSample',
    'ColumnSampleStrategy',
    'create_column_sample_strategy',
    'get_sample_size'
]
