#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Configuration Module for Tree Ensembles
Handles loading, validating, and saving learner configuration
"""

import os
import copy
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "application": {
        "name": "Tree Ensembles",
        "version": "1.0.0",
        "log_dir": None
    },

    "logging": {
        "level": "INFO",
        "enable_console": True,
        "max_log_size": 10485760,
        "backup_count": 5,
        "node_details": False  # per-node DEBUG records of the learners
    },

    "data": {
        "bit_vector_columns": [],
        "ignore_columns": []
    },

    "parallelism": {
        "n_jobs": None,  # None = 1.5 x available cores
        "parallel_node_building": False,
        "max_parallel_depth": 4
    },

    "tree_ensemble": {
        "regression": False,
        "max_depth": None,  # None = unbounded
        "min_node_size": None,  # None = undefined
        "min_child_size": None,
        "split_criterion": "information_gain_ratio",
        "missing_value_handling": "xgboost",  # Options: "none", "xgboost", "surrogate"
        "use_average_split_points": True,
        "use_binary_nominal_splits": True,
        "max_nominal_values_exhaustive": 10,
        "max_random_binary_partitions": 1000,
        "data_fraction": 1.0,
        "data_selection_with_replacement": True,
        "column_sampling_mode": "square_root",  # Options: "none", "linear", "square_root", "absolute"
        "column_fraction_linear": 0.6,
        "column_absolute": 10,
        "use_different_attributes_at_each_node": False,
        "nr_models": 100,
        "seed": None,
        "hardcoded_root_column": None
    },

    "gradient_boosting": {
        "max_depth": 4,
        "nr_iterations": 100,
        "learning_rate": 0.1,
        "loss_function": "squared_error",  # Options: "squared_error", "absolute_error", "huber"
        "alpha": 0.95,
        "data_fraction": 1.0,
        "data_selection_with_replacement": False,
        "column_sampling_mode": "none"
    }
}

VALID_SPLIT_CRITERIA = ['gini', 'information_gain', 'information_gain_ratio']
VALID_MISSING_VALUE_HANDLING = ['none', 'xgboost', 'surrogate']
VALID_COLUMN_SAMPLING_MODES = ['none', 'linear', 'square_root', 'absolute']
VALID_LOSS_FUNCTIONS = ['squared_error', 'absolute_error', 'huber']
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def get_config_path() -> Path:
    """
    Get the path to the default configuration file

    Returns:
        Path to config.json at the repository root
    """
    script_dir = Path(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
    return script_dir / "config.json"


def load_configuration(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from file, falling back to defaults if not found

    Args:
        config_path: Optional path to a JSON configuration file

    Returns:
        Configuration dictionary
    """
    config_path = Path(config_path) if config_path is not None else get_config_path()

    try:
        if config_path.exists():
            logger.info(f"Loading configuration from {config_path}")

            with open(config_path, 'r') as f:
                user_config = json.load(f)

            config = merge_configs(DEFAULT_CONFIG, user_config)

            logger.info("Configuration loaded successfully")
        else:
            logger.info("No configuration file found, using defaults")
            config = copy.deepcopy(DEFAULT_CONFIG)

        validate_configuration(config)

        return config

    except (OSError, ValueError) as e:
        logger.error(f"Error loading configuration: {str(e)}", exc_info=True)
        logger.warning("Falling back to default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)


def save_configuration(config: Dict[str, Any], config_path: Optional[Union[str, Path]] = None) -> bool:
    """
    Save configuration to file

    Args:
        config: Configuration dictionary
        config_path: Target path (defaults to config.json at the repository root)

    Returns:
        True if saved successfully, False otherwise
    """
    config_path = Path(config_path) if config_path is not None else get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w') as f:
            json.dump(config, f, indent=4)

        logger.info(f"Configuration saved to {config_path}")
        return True

    except (OSError, TypeError) as e:
        logger.error(f"Error saving configuration: {str(e)}", exc_info=True)
        return False


def merge_configs(default_config: Dict[str, Any], user_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge user configuration with defaults

    Args:
        default_config: Default configuration dictionary
        user_config: User configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    merged = copy.deepcopy(default_config)

    for key, value in user_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def validate_configuration(config: Dict[str, Any]) -> bool:
    """
    Validate configuration values and log warnings for invalid settings.
    Invalid values are replaced by their defaults.

    Args:
        config: Configuration dictionary

    Returns:
        True if all values are valid, False otherwise
    """
    valid = True

    te_config = config.setdefault('tree_ensemble', {})
    te_defaults = DEFAULT_CONFIG['tree_ensemble']

    for param, choices in [
        ('split_criterion', VALID_SPLIT_CRITERIA),
        ('missing_value_handling', VALID_MISSING_VALUE_HANDLING),
        ('column_sampling_mode', VALID_COLUMN_SAMPLING_MODES)
    ]:
        value = te_config.get(param)
        if value not in choices:
            logger.warning(f"Invalid {param}: {value}, using '{te_defaults[param]}' instead")
            te_config[param] = te_defaults[param]
            valid = False

    for param in ['data_fraction', 'column_fraction_linear']:
        value = te_config.get(param)
        if not isinstance(value, (int, float)) or not 0.0 < value <= 1.0:
            logger.warning(f"Invalid {param}: {value}, using {te_defaults[param]} instead")
            te_config[param] = te_defaults[param]
            valid = False

    for param, min_val, max_val in [
        ('nr_models', 1, None),
        ('column_absolute', 1, None),
        ('max_nominal_values_exhaustive', 1, 20),
        ('max_random_binary_partitions', 1, None)
    ]:
        value = te_config.get(param)
        if (not isinstance(value, int) or value < min_val
                or (max_val is not None and value > max_val)):
            logger.warning(f"Invalid {param}: {value}, using {te_defaults[param]} instead")
            te_config[param] = te_defaults[param]
            valid = False

    for param, min_val in [('max_depth', 1), ('min_node_size', 1), ('min_child_size', 1)]:
        value = te_config.get(param)
        if value is not None and (not isinstance(value, int) or value < min_val):
            logger.warning(f"Invalid {param}: {value}, using {te_defaults[param]} instead")
            te_config[param] = te_defaults[param]
            valid = False

    gb_config = config.setdefault('gradient_boosting', {})
    gb_defaults = DEFAULT_CONFIG['gradient_boosting']

    if gb_config.get('loss_function') not in VALID_LOSS_FUNCTIONS:
        logger.warning(f"Invalid loss_function: {gb_config.get('loss_function')}, "
                       f"using '{gb_defaults['loss_function']}' instead")
        gb_config['loss_function'] = gb_defaults['loss_function']
        valid = False

    learning_rate = gb_config.get('learning_rate')
    if not isinstance(learning_rate, (int, float)) or learning_rate <= 0.0:
        logger.warning(f"Invalid learning_rate: {learning_rate}, using {gb_defaults['learning_rate']} instead")
        gb_config['learning_rate'] = gb_defaults['learning_rate']
        valid = False

    alpha = gb_config.get('alpha')
    if not isinstance(alpha, (int, float)) or not 0.0 < alpha < 1.0:
        logger.warning(f"Invalid alpha: {alpha}, using {gb_defaults['alpha']} instead")
        gb_config['alpha'] = gb_defaults['alpha']
        valid = False

    nr_iterations = gb_config.get('nr_iterations')
    if not isinstance(nr_iterations, int) or nr_iterations < 1:
        logger.warning(f"Invalid nr_iterations: {nr_iterations}, using {gb_defaults['nr_iterations']} instead")
        gb_config['nr_iterations'] = gb_defaults['nr_iterations']
        valid = False

    log_config = config.setdefault('logging', {})
    if str(log_config.get('level', '')).upper() not in VALID_LOG_LEVELS:
        logger.warning(f"Invalid log level: {log_config.get('level')}, using 'INFO' instead")
        log_config['level'] = 'INFO'
        valid = False

    return valid


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get a configuration value using dot notation for nested dictionaries

    Args:
        config: Configuration dictionary
        key_path: Key path using dot notation (e.g., 'tree_ensemble.max_depth')
        default: Default value if key not found

    Returns:
        Configuration value or default if not found
    """
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def set_config_value(config: Dict[str, Any], key_path: str, value: Any) -> bool:
    """
    Set a configuration value using dot notation for nested dictionaries

    Args:
        config: Configuration dictionary
        key_path: Key path using dot notation (e.g., 'tree_ensemble.max_depth')
        value: Value to set

    Returns:
        True if successful, False otherwise
    """
    keys = key_path.split('.')
    target = config

    try:
        for key in keys[:-1]:
            if key not in target or not isinstance(target[key], dict):
                target[key] = {}
            target = target[key]

        target[keys[-1]] = value
        return True
    except TypeError as e:
        logger.error(f"Error setting config value {key_path}: {str(e)}")
        return False
