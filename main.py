#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Main entry point for Tree Ensembles
Learns a tree ensemble or a boosted model from a CSV file and prints a summary.

[main -> Parses arguments and runs learning -> dependent functions are setup_logging_from_config,
load_configuration, TreeDataCreator, TreeEnsembleLearner, create_boosting_learner]
"""

import os
import sys
import logging
import argparse
from pathlib import Path

import pandas as pd

script_dir = Path(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, str(script_dir))

from tree_ensembles.utils.logging_utils import (
    setup_logging_from_config, log_system_info, log_exception, flush_logs
)
from tree_ensembles.utils.config import load_configuration, set_config_value
from tree_ensembles.utils.execution_monitor import CanceledExecutionError, ExecutionMonitor
from tree_ensembles.utils.serialization_utils import safe_json_dump, safe_json_dumps
from tree_ensembles.utils.memory_management import get_dataframe_memory_usage
from tree_ensembles.data.tree_data import TreeDataCreator
from tree_ensembles.learner.configuration import (
    GradientBoostingLearnerConfiguration, InvalidSettingsError, TreeEnsembleLearnerConfiguration
)
from tree_ensembles.learner.ensemble_learner import TreeEnsembleLearner
from tree_ensembles.learner.gradient_boosting import create_boosting_learner
from tree_ensembles.analytics.performance_metrics import (
    OutOfBagEvaluator, calculate_regression_metrics
)
from tree_ensembles.analytics.variable_importance import AttributeStatistics


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="Learn decision tree ensembles from a CSV file")
    parser.add_argument('data', help="CSV file with the learning data")
    parser.add_argument('--target', required=True, help="Name of the target column")
    parser.add_argument('--mode', choices=['forest', 'boosting'], default='forest',
                        help="Bagged ensemble or gradient boosting")
    parser.add_argument('--regression', action='store_true', help="Treat the target as numeric")
    parser.add_argument('--config', help="JSON configuration file")
    parser.add_argument('--nr-models', type=int, help="Number of trees (forest mode)")
    parser.add_argument('--nr-iterations', type=int, help="Number of iterations (boosting mode)")
    parser.add_argument('--seed', type=int, help="Random seed")
    parser.add_argument('--output', help="Write the learned model as JSON to this file")
    parser.add_argument('--log-level', help="Override the configured log level")
    return parser.parse_args(argv)


def apply_overrides(config: dict, args: argparse.Namespace) -> dict:
    """Copy command line values into the configuration"""
    if args.log_level:
        set_config_value(config, 'logging.level', args.log_level.upper())
    if args.nr_models is not None:
        set_config_value(config, 'tree_ensemble.nr_models', args.nr_models)
    if args.nr_iterations is not None:
        set_config_value(config, 'gradient_boosting.nr_iterations', args.nr_iterations)
    if args.seed is not None:
        set_config_value(config, 'tree_ensemble.seed', args.seed)
    return config


def run_forest(config: dict, data, args, logger: logging.Logger):
    learner_config = TreeEnsembleLearnerConfiguration.from_config(
        config, target_column=args.target, regression=data.is_regression)
    learner = TreeEnsembleLearner(learner_config, data)
    model = learner.learn_ensemble(ExecutionMonitor())

    logger.debug("First tree:\n" + model.get_tree_model(0).print_tree())
    statistics = AttributeStatistics(model, data)
    logger.info("Attribute statistics:\n" + statistics.to_dataframe().to_string())
    oob_metrics = OutOfBagEvaluator(model, data, learner.row_samples).evaluate()
    return model, {'out_of_bag': oob_metrics, 'gain_importance': statistics.get_gain_importance()}


def run_boosting(config: dict, data, args, logger: logging.Logger):
    learner_config = GradientBoostingLearnerConfiguration.from_config(config, target_column=args.target)
    model = create_boosting_learner(learner_config, data).learn(ExecutionMonitor())

    records = list(data.iter_records())
    predictions = [model.predict_record(record) for record in records]
    metrics = calculate_regression_metrics(data.target_column.values, predictions)
    logger.info(f"Training losses: {[round(loss, 6) for loss in model.training_losses]}")
    return model, {'training': metrics}


def main(argv=None):
    """Main function to run learning from the command line"""
    args = parse_arguments(argv)
    config = apply_overrides(load_configuration(args.config), args)
    setup_logging_from_config(config)
    logger = logging.getLogger(__name__)
    logger.info("Starting Tree Ensembles")
    log_system_info(config.get('parallelism', {}).get('n_jobs'))

    try:
        df = pd.read_csv(args.data)
        logger.info(f"Loaded {len(df)} rows and {len(df.columns)} columns from {args.data} "
                    f"({get_dataframe_memory_usage(df):.2f} MB)")

        regression = True if args.mode == 'boosting' or args.regression else None
        data = TreeDataCreator(config.get('data', {})).read_data(df, args.target, regression=regression)

        if args.mode == 'boosting':
            model, metrics = run_boosting(config, data, args, logger)
        else:
            model, metrics = run_forest(config, data, args, logger)

        print(repr(model))
        print(safe_json_dumps(metrics))

        if args.output:
            safe_json_dump(model.to_dict(), args.output)
            logger.info(f"Model written to {args.output}")
        return 0

    except CanceledExecutionError:
        logger.warning("Learning canceled")
        return 2
    except (InvalidSettingsError, ValueError) as e:
        logger.error(f"Invalid input: {str(e)}")
        return 1
    except Exception as e:
        log_exception(e, logger, context=f"Learning ({args.mode})")
        return 1
    finally:
        flush_logs()


if __name__ == "__main__":
    sys.exit(main())
