#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Serialization Utilities for Tree Ensembles

Converts model summaries holding numpy and pandas values into plain
JSON-compatible structures.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def make_json_serializable(obj: Any) -> Any:
    """
    Convert objects to JSON-serializable formats.

    Recursively converts numpy scalars and arrays, pandas objects, enums,
    sets and tuples to their JSON-compatible equivalents.

    Args:
        obj: Object to make JSON serializable

    Returns:
        JSON-serializable version of the object
    """
    if obj is None:
        return None

    if isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        value = float(obj)
        return None if np.isnan(value) else value
    elif isinstance(obj, np.ndarray):
        return [make_json_serializable(item) for item in obj.tolist()]

    elif isinstance(obj, (bool, int, float, str)):
        return obj

    elif isinstance(obj, Enum):
        return obj.value

    elif isinstance(obj, Path):
        return str(obj)

    elif isinstance(obj, pd.Series):
        return make_json_serializable(obj.to_dict())

    elif isinstance(obj, pd.DataFrame):
        return make_json_serializable(obj.to_dict('records'))

    elif isinstance(obj, dict):
        return {str(make_json_serializable(k)): make_json_serializable(v)
                for k, v in obj.items()}

    elif isinstance(obj, (list, tuple)):
        return [make_json_serializable(item) for item in obj]

    elif isinstance(obj, (set, frozenset)):
        return sorted((make_json_serializable(item) for item in obj), key=str)

    logger.warning(f"Serializing object of type {type(obj).__name__} as string")
    return str(obj)


def safe_json_dumps(obj: Any, indent: int = 2) -> str:
    """
    Serialize an object to a JSON string after conversion

    Args:
        obj: Object to serialize
        indent: JSON indentation

    Returns:
        JSON string
    """
    return json.dumps(make_json_serializable(obj), indent=indent)


def safe_json_dump(obj: Any, file_path: Union[str, Path], indent: int = 2) -> bool:
    """
    Serialize an object to a JSON file

    Args:
        obj: Object to serialize
        file_path: Target file
        indent: JSON indentation

    Returns:
        True if the file was written, False otherwise
    """
    try:
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(make_json_serializable(obj), f, indent=indent)
        return True
    except OSError as e:
        logger.error(f"Error writing JSON to {file_path}: {e}", exc_info=True)
        return False
