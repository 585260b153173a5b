#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Learner Configuration Module for Tree Ensembles
Typed, validated parameters for the ensemble and boosting learners
"""

import logging
from dataclasses import dataclass, fields, asdict
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Exhaustive nominal search enumerates 2^(k-1)-1 partitions
MAX_EXHAUSTIVE_NOMINAL_VALUES = 20


class InvalidSettingsError(ValueError):
    """Raised for invalid parameter values or combinations"""
    pass


class SplitCriterion(Enum):
    """Enumeration of classification split criteria"""
    GINI = "gini"
    INFORMATION_GAIN = "information_gain"
    INFORMATION_GAIN_RATIO = "information_gain_ratio"


class MissingValueHandling(Enum):
    """Enumeration of missing value strategies during split search"""
    NONE = "none"          # missing rows follow the majority child
    XGBOOST = "xgboost"    # best direction for missing rows is learned per split
    SURROGATE = "surrogate"


class ColumnSamplingMode(Enum):
    """Enumeration of column sampling strategies"""
    NONE = "none"
    LINEAR = "linear"
    SQUARE_ROOT = "square_root"
    ABSOLUTE = "absolute"


class LossFunction(Enum):
    """Enumeration of gradient boosting loss functions"""
    SQUARED_ERROR = "squared_error"
    ABSOLUTE_ERROR = "absolute_error"
    HUBER = "huber"


_ENUM_FIELDS = {
    'split_criterion': SplitCriterion,
    'missing_value_handling': MissingValueHandling,
    'column_sampling_mode': ColumnSamplingMode,
    'loss_function': LossFunction
}


@dataclass
class TreeEnsembleLearnerConfiguration:
    """
    Parameters of the tree and random-forest style ensemble learners.

    None for max_depth means unbounded depth, None for min_node_size and
    min_child_size means no minimum. If only min_child_size is given the
    effective minimum node size is twice the child size.
    """

    target_column: Optional[str] = None
    regression: bool = False
    max_depth: Optional[int] = None
    min_node_size: Optional[int] = None
    min_child_size: Optional[int] = None
    split_criterion: SplitCriterion = SplitCriterion.INFORMATION_GAIN_RATIO
    missing_value_handling: MissingValueHandling = MissingValueHandling.XGBOOST
    use_average_split_points: bool = True
    use_binary_nominal_splits: bool = True
    max_nominal_values_exhaustive: int = 10
    max_random_binary_partitions: int = 1000
    data_fraction: float = 1.0
    data_selection_with_replacement: bool = True
    column_sampling_mode: ColumnSamplingMode = ColumnSamplingMode.SQUARE_ROOT
    column_fraction_linear: float = 0.6
    column_absolute: int = 10
    use_different_attributes_at_each_node: bool = False
    nr_models: int = 100
    seed: Optional[int] = None
    hardcoded_root_column: Optional[str] = None
    parallel_node_building: bool = False
    max_parallel_depth: int = 4
    n_jobs: Optional[int] = None

    def __post_init__(self):
        for name, enum_type in _ENUM_FIELDS.items():
            if not hasattr(self, name):
                continue
            value = getattr(self, name)
            if not isinstance(value, enum_type):
                try:
                    setattr(self, name, enum_type(value))
                except ValueError:
                    raise InvalidSettingsError(f"Invalid {name}: {value}") from None
        self.validate()

    @property
    def effective_min_node_size(self) -> int:
        if self.min_node_size is not None:
            return self.min_node_size
        if self.min_child_size is not None:
            return 2 * self.min_child_size
        return 0

    @property
    def effective_min_child_size(self) -> int:
        return self.min_child_size if self.min_child_size is not None else 0

    @property
    def impurity_name(self) -> str:
        return self.split_criterion.value

    def validate(self) -> None:
        """
        Check parameter values and combinations

        Raises:
            InvalidSettingsError: If a value or combination is invalid
        """
        if self.max_depth is not None and self.max_depth < 1:
            raise InvalidSettingsError(f"max_depth must be positive or None, got {self.max_depth}")
        if self.min_node_size is not None and self.min_node_size < 1:
            raise InvalidSettingsError(f"min_node_size must be positive or None, got {self.min_node_size}")
        if self.min_child_size is not None and self.min_child_size < 1:
            raise InvalidSettingsError(f"min_child_size must be positive or None, got {self.min_child_size}")
        if (self.min_node_size is not None and self.min_child_size is not None
                and self.min_child_size > self.min_node_size / 2):
            raise InvalidSettingsError(
                f"min_child_size ({self.min_child_size}) must be at most half of "
                f"min_node_size ({self.min_node_size})")
        if not 0.0 < self.data_fraction <= 1.0:
            raise InvalidSettingsError(f"data_fraction must be in (0, 1], got {self.data_fraction}")
        if not 0.0 < self.column_fraction_linear <= 1.0:
            raise InvalidSettingsError(
                f"column_fraction_linear must be in (0, 1], got {self.column_fraction_linear}")
        if self.column_absolute < 1:
            raise InvalidSettingsError(f"column_absolute must be positive, got {self.column_absolute}")
        if self.nr_models < 1:
            raise InvalidSettingsError(f"nr_models must be positive, got {self.nr_models}")
        if self.max_nominal_values_exhaustive < 1 or self.max_random_binary_partitions < 1:
            raise InvalidSettingsError("Nominal partition limits must be positive")
        if self.max_nominal_values_exhaustive > MAX_EXHAUSTIVE_NOMINAL_VALUES:
            raise InvalidSettingsError(
                f"max_nominal_values_exhaustive must be at most {MAX_EXHAUSTIVE_NOMINAL_VALUES}, "
                f"got {self.max_nominal_values_exhaustive}")
        if self.max_parallel_depth < 0:
            raise InvalidSettingsError(f"max_parallel_depth must not be negative, got {self.max_parallel_depth}")
        if self.n_jobs is not None and self.n_jobs < 1:
            raise InvalidSettingsError(f"n_jobs must be positive or None, got {self.n_jobs}")
        if (self.missing_value_handling == MissingValueHandling.SURROGATE
                and not self.use_binary_nominal_splits):
            raise InvalidSettingsError("Surrogate missing value handling requires binary nominal splits")

    def check_against(self, data) -> None:
        """
        Check the configuration against a dataset

        Args:
            data: TreeData the learner will run on

        Raises:
            InvalidSettingsError: If the target type does not match the
                learner type or the hard-coded root column is unknown
        """
        if self.regression and not data.is_regression:
            raise InvalidSettingsError(
                f"Regression configuration cannot be applied to nominal target '{data.target_column.name}'")
        if not self.regression and data.is_regression:
            raise InvalidSettingsError(
                f"Classification configuration cannot be applied to numeric target '{data.target_column.name}'")
        if self.hardcoded_root_column is not None and data.get_column_by_name(self.hardcoded_root_column) is None:
            raise InvalidSettingsError(f"Hard-coded root column '{self.hardcoded_root_column}' not found")

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        for name in _ENUM_FIELDS:
            if name in result:
                result[name] = result[name].value
        return result

    @classmethod
    def _field_names(cls):
        return {f.name for f in fields(cls)}

    @classmethod
    def _collect(cls, *sections: Dict[str, Any]) -> Dict[str, Any]:
        names = cls._field_names()
        values: Dict[str, Any] = {}
        for section in sections:
            for key, value in section.items():
                if key in names:
                    values[key] = value
                else:
                    logger.warning(f"Ignoring unknown configuration key: {key}")
        return values

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides) -> 'TreeEnsembleLearnerConfiguration':
        """
        Build a configuration from the 'tree_ensemble' and 'parallelism' sections

        Args:
            config: Application configuration dictionary
            **overrides: Values taking precedence over the configuration

        Returns:
            Validated configuration
        """
        values = cls._collect(config.get('tree_ensemble', {}), config.get('parallelism', {}))
        values.update(overrides)
        return cls(**values)


@dataclass
class GradientBoostingLearnerConfiguration(TreeEnsembleLearnerConfiguration):
    """Parameters of the gradient boosting learners"""

    regression: bool = True
    max_depth: Optional[int] = 4
    data_selection_with_replacement: bool = False
    column_sampling_mode: ColumnSamplingMode = ColumnSamplingMode.NONE
    nr_iterations: int = 100
    learning_rate: float = 0.1
    loss_function: LossFunction = LossFunction.SQUARED_ERROR
    alpha: float = 0.95

    def validate(self) -> None:
        super().validate()
        if not self.regression:
            raise InvalidSettingsError("Gradient boosting fits regression trees, regression must be True")
        if self.nr_iterations < 1:
            raise InvalidSettingsError(f"nr_iterations must be positive, got {self.nr_iterations}")
        if self.learning_rate <= 0.0:
            raise InvalidSettingsError(f"learning_rate must be positive, got {self.learning_rate}")
        if not 0.0 < self.alpha < 1.0:
            raise InvalidSettingsError(f"alpha must be in (0, 1), got {self.alpha}")

    def check_against(self, data) -> None:
        if not data.is_regression:
            raise InvalidSettingsError(
                f"Gradient boosting requires a numeric target, '{data.target_column.name}' is nominal")
        super().check_against(data)

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides) -> 'GradientBoostingLearnerConfiguration':
        """
        Build a configuration from the 'gradient_boosting' section, falling
        back to the shared keys of the 'tree_ensemble' section
        """
        shared = {k: v for k, v in config.get('tree_ensemble', {}).items()
                  if k not in ('regression', 'nr_models')}
        values = cls._collect(shared, config.get('gradient_boosting', {}), config.get('parallelism', {}))
        values['regression'] = True
        values.update(overrides)
        return cls(**values)
