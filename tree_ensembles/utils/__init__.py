#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Utils Module for Tree Ensembles
Configuration, logging, cancellation, random streams and system helpers
"""

from .config import load_configuration, save_configuration, get_config_value, set_config_value
from .logging_utils import setup_logging, setup_logging_from_config
from .execution_monitor import ExecutionMonitor, CanceledExecutionError
from .random_data import RandomData
from .memory_management import get_system_memory_info, get_max_concurrent_trees

__all__ = [
    'load_configuration',
    'save_configuration',
    'get_config_value',
    'set_config_value',
    'setup_logging',
    'setup_logging_from_config',
    'ExecutionMonitor',
    'CanceledExecutionError',
    'RandomData',
    'get_system_memory_info',
    'get_max_concurrent_trees'
]
