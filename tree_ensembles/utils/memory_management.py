#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Memory Management Utilities for Tree Ensembles
Provides system memory information and sizing of concurrent tree building
"""

import logging
import math
from typing import Dict, Optional

import pandas as pd
import psutil

logger = logging.getLogger(__name__)

# In-flight trees per available core during bagging
THREADS_PER_CORE = 1.5


def get_system_memory_info() -> Dict[str, float]:
    """
    Get system memory information

    Returns:
        Dictionary with memory information in GB:
            - total: Total physical memory
            - available: Available memory
            - used: Used memory
            - percent: Percentage of memory used
    """
    memory = psutil.virtual_memory()

    return {
        'total': memory.total / (1024 ** 3),
        'available': memory.available / (1024 ** 3),
        'used': memory.used / (1024 ** 3),
        'percent': memory.percent
    }


def get_dataframe_memory_usage(df: pd.DataFrame) -> float:
    """
    Calculate memory usage of a DataFrame in MB

    Args:
        df: DataFrame to measure

    Returns:
        Memory usage in megabytes
    """
    return df.memory_usage(deep=True).sum() / (1024 * 1024)


def get_available_parallelism() -> int:
    """Number of logical cores, at least 1"""
    return psutil.cpu_count(logical=True) or 1


def get_max_concurrent_trees(n_jobs: Optional[int] = None) -> int:
    """
    Admission limit for trees built at the same time

    Args:
        n_jobs: Explicit limit; None derives it from the core count

    Returns:
        Positive number of trees allowed in flight
    """
    if n_jobs is not None and n_jobs > 0:
        return n_jobs

    limit = max(1, int(math.ceil(THREADS_PER_CORE * get_available_parallelism())))
    logger.debug(f"Concurrent tree limit derived from core count: {limit}")
    return limit


def monitor_memory_usage(threshold_percent: float = 80.0) -> bool:
    """
    Monitor memory usage and log a warning if it exceeds the threshold

    Args:
        threshold_percent: Percentage threshold to trigger warning

    Returns:
        True if memory usage is below threshold, False otherwise
    """
    memory_info = get_system_memory_info()

    if memory_info['percent'] > threshold_percent:
        logger.warning(f"High memory usage: {memory_info['percent']:.1f}% "
                       f"({memory_info['used']:.1f} GB / {memory_info['total']:.1f} GB)")
        return False

    return True
