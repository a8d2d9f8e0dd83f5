"""
================================================================================
EXERCISE QUALITY REPORT - END-TO-END WORKFLOW
================================================================================

Purpose: Load the labeled weight-lifting sensor data, clean it, remove
         redundant predictors, fit a Random Forest and report validation
         accuracy plus predictions for the unlabeled test rows.

Input:  pml-training.csv (predictors + 'classe')
        pml-testing.csv  (predictors + 'problem_id')
Output: Printed summaries, confusion_matrix.png, correlation_matrix.png,
        predictions.csv, problem_id_<n>.txt answer files

Usage:
    activity-report --training pml-training.csv --testing pml-testing.csv \
                    --output-dir report/
================================================================================
"""

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from model.evaluation import ConfusionMatrixReport
from model.random_forest import ActivityRandomForest
from pre_processing.cleaning import SensorDataCleaner
from pre_processing.constants import (
    CORRELATION_CUTOFF,
    CV_FOLDS,
    CV_REPEATS,
    FREQ_CUT,
    ID_COLUMN,
    METADATA_COLUMN_COUNT,
    MTRY,
    N_ESTIMATORS,
    N_JOBS,
    RANDOM_SEED,
    TARGET_COLUMN,
    UNIQUE_CUT,
    VALIDATION_SIZE,
)
from pre_processing.data_analysis import (
    class_distribution,
    plot_correlation_matrix,
    summarize_dimensions,
)
from pre_processing.feature_filtering import RedundantFeatureFilter

_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
_PACKAGE_LOGGERS = ('pre_processing', 'model')

logger = logging.getLogger(__name__)


def setup_logging(log_path: Optional[str] = None, level: int = logging.INFO):
    """
    Stream log records from both packages to the console and, optionally, a file.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        handlers.append(logging.FileHandler(log_path, mode='w'))
    for handler in handlers:
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    for name in _PACKAGE_LOGGERS:
        package_logger = logging.getLogger(name)
        package_logger.setLevel(level)
        for old in list(package_logger.handlers):
            package_logger.removeHandler(old)
            old.close()
        for handler in handlers:
            package_logger.addHandler(handler)


def _banner(title: str):
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)


@dataclass
class ReportResult:
    dimensions: pd.DataFrame
    feature_columns: List[str]
    removed_near_zero_variance: List[str]
    removed_correlated: List[str]
    cv_results: pd.DataFrame
    validation: ConfusionMatrixReport
    test_predictions: pd.Series
    partition_index: Dict[str, pd.Index]
    outputs: Dict[str, str] = field(default_factory=dict)


# ============================================================================
# INPUT / OUTPUT
# ============================================================================

def load_dataset(filepath: str) -> pd.DataFrame:
    """
    Read a comma-separated table with a header row.

    'NA' and empty fields are read as missing; anything else that is not a
    number (e.g. '#DIV/0!') is left as text for the cleaning stage.
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"File not found: {filepath}")

    data = pd.read_csv(filepath, sep=',', decimal='.', na_values=['NA', ''], low_memory=False)
    logger.info(f"Loaded {filepath}: {len(data):,} rows x {len(data.columns)} columns")
    return data


def write_predictions(predictions: pd.Series, output_dir: str,
                      answer_files: bool = True) -> str:
    """
    Write test predictions as predictions.csv and one problem_id_<n>.txt per row.

    Args:
        predictions (pd.Series): Predicted class indexed by problem id
        output_dir (str): Destination directory
        answer_files (bool): Also write the per-problem answer files

    Returns:
        str: Path of predictions.csv
    """
    os.makedirs(output_dir, exist_ok=True)

    csv_path = os.path.join(output_dir, 'predictions.csv')
    frame = predictions.rename(TARGET_COLUMN).rename_axis(ID_COLUMN).reset_index()
    frame.to_csv(csv_path, index=False)

    if answer_files:
        for problem_id, label in predictions.items():
            with open(os.path.join(output_dir, f'problem_id_{problem_id}.txt'), 'w') as f:
                f.write(str(label))

    logger.info(f"Wrote {len(predictions)} predictions to: {csv_path}")
    return csv_path


# ============================================================================
# WORKFLOW
# ============================================================================

def run_report(training_path: str,
               testing_path: str,
               output_dir: str = 'report',
               freq_cut: float = FREQ_CUT,
               unique_cut: float = UNIQUE_CUT,
               correlation_cutoff: float = CORRELATION_CUTOFF,
               nzv_rule: str = 'both',
               validation_size: float = VALIDATION_SIZE,
               n_estimators: int = N_ESTIMATORS,
               mtry: int = MTRY,
               cv_folds: int = CV_FOLDS,
               cv_repeats: int = CV_REPEATS,
               random_state: int = RANDOM_SEED,
               n_jobs: int = N_JOBS,
               show_plots: bool = False,
               model_output: Optional[str] = None,
               answer_files: bool = True,
               importance_csv: bool = True) -> ReportResult:
    """
    Run the full analysis and print the report.

    Returns:
        ReportResult: Everything that was printed, for programmatic use
    """
    os.makedirs(output_dir, exist_ok=True)

    # ========================================================================
    # STEP 1: Load data
    # ========================================================================

    _banner("DATA LOADING")
    training_raw = load_dataset(training_path)
    testing_raw = load_dataset(testing_path)

    # ========================================================================
    # STEP 2-3: Drop metadata, coerce to numeric, zero-fill
    # ========================================================================

    cleaner = SensorDataCleaner(target=TARGET_COLUMN, n_metadata_columns=METADATA_COLUMN_COUNT)
    training = cleaner.fit_transform(training_raw)
    testing = cleaner.transform(testing_raw)

    # ========================================================================
    # STEP 4: Remove near-zero-variance and highly correlated predictors
    # ========================================================================

    feature_filter = RedundantFeatureFilter(
        freq_cut=freq_cut,
        unique_cut=unique_cut,
        correlation_cutoff=correlation_cutoff,
        nzv_rule=nzv_rule,
    )
    training = feature_filter.fit_transform(training)
    testing = feature_filter.transform(testing)

    dimensions = summarize_dimensions({
        'training (raw)': training_raw,
        'testing (raw)': testing_raw,
        'training (filtered)': training,
        'testing (filtered)': testing,
    })
    print(dimensions.to_string())
    print(f"\nPredictors kept: {len(feature_filter.feature_columns_)} "
          f"(near-zero variance removed: {len(feature_filter.nzv_columns_)}, "
          f"correlated removed: {len(feature_filter.correlated_columns_)})")

    # ========================================================================
    # STEP 5: Partition
    # ========================================================================

    _banner("PARTITIONING")
    rf_model = ActivityRandomForest(
        n_estimators=n_estimators,
        mtry=mtry,
        cv_folds=cv_folds,
        cv_repeats=cv_repeats,
        random_state=random_state,
        n_jobs=n_jobs,
    )
    X_train, X_val, y_train, y_val = rf_model.partition(
        training, target=TARGET_COLUMN, validation_size=validation_size
    )
    print(f"Train: {len(X_train):,} rows   Validation: {len(X_val):,} rows")
    print(pd.concat(
        {'train': class_distribution(y_train)['count'], 'validation': class_distribution(y_val)['count']},
        axis=1,
    ).to_string())

    # ========================================================================
    # STEP 6: Fit with repeated cross-validation
    # ========================================================================

    _banner("MODEL TRAINING")
    rf_model.train(X_train, y_train)
    print(rf_model.describe_cv())

    # ========================================================================
    # STEP 7: Evaluate on the validation split
    # ========================================================================

    _banner("MODEL EVALUATION - Validation Set")
    validation = rf_model.evaluate(X_val, y_val, dataset_name="Validation")
    print(validation.format())

    # ========================================================================
    # STEP 8: Predict the test rows
    # ========================================================================

    _banner("TEST SET PREDICTIONS")
    if ID_COLUMN in testing.columns:
        index = pd.Index(testing[ID_COLUMN], name=ID_COLUMN)
    else:
        index = pd.RangeIndex(1, len(testing) + 1, name=ID_COLUMN)
    test_predictions = pd.Series(rf_model.predict_new_data(testing), index=index, name=TARGET_COLUMN)
    print(" ".join(str(label) for label in test_predictions))

    outputs = {'predictions': write_predictions(test_predictions, output_dir, answer_files=answer_files)}

    # ========================================================================
    # STEP 9: Diagnostic plots
    # ========================================================================

    _banner("GENERATING VISUALIZATIONS")
    outputs['confusion_matrix'] = os.path.join(output_dir, 'confusion_matrix.png')
    rf_model.plot_confusion_matrix(validation, save_path=outputs['confusion_matrix'],
                                   show=show_plots, title='Validation Confusion Matrix')

    outputs['correlation_matrix'] = os.path.join(output_dir, 'correlation_matrix.png')
    plot_correlation_matrix(feature_filter.correlation_matrix_,
                            save_path=outputs['correlation_matrix'], show=show_plots)

    if importance_csv:
        outputs['feature_importance'] = os.path.join(output_dir, 'feature_importance.csv')
        rf_model.analyze_feature_importance().to_csv(outputs['feature_importance'], index=False)

    if model_output:
        rf_model.save_model(model_output)
        outputs['model'] = model_output

    _banner("OUTPUTS")
    for name, path in outputs.items():
        print(f"  - {name}: {path}")

    return ReportResult(
        dimensions=dimensions,
        feature_columns=list(feature_filter.feature_columns_),
        removed_near_zero_variance=list(feature_filter.nzv_columns_),
        removed_correlated=list(feature_filter.correlated_columns_),
        cv_results=rf_model.cv_results_,
        validation=validation,
        test_predictions=test_predictions,
        partition_index={'train': X_train.index, 'validation': X_val.index},
        outputs=outputs,
    )


# ============================================================================
# COMMAND LINE
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Weight-lifting exercise quality report (Random Forest)")
    parser.add_argument("--training", required=True, help="Labeled training CSV (with 'classe')")
    parser.add_argument("--testing", required=True, help="Unlabeled testing CSV (with 'problem_id')")
    parser.add_argument("--output-dir", default="report", help="Directory for plots and predictions")

    parser.add_argument("--freq-cut", type=float, default=FREQ_CUT)
    parser.add_argument("--unique-cut", type=float, default=UNIQUE_CUT)
    parser.add_argument("--correlation-cutoff", type=float, default=CORRELATION_CUTOFF)
    parser.add_argument("--nzv-rule", choices=["both", "either"], default="both",
                        help="Flag near-zero variance when both cutoffs fail (default) or either does")
    parser.add_argument("--validation-size", type=float, default=VALIDATION_SIZE)

    parser.add_argument("--n-estimators", type=int, default=N_ESTIMATORS)
    parser.add_argument("--mtry", type=int, default=MTRY)
    parser.add_argument("--cv-folds", type=int, default=CV_FOLDS)
    parser.add_argument("--cv-repeats", type=int, default=CV_REPEATS)
    parser.add_argument("--seed", type=int, default=RANDOM_SEED)
    parser.add_argument("--n-jobs", type=int, default=N_JOBS)

    parser.add_argument("--show-plots", action="store_true")
    parser.add_argument("--no-answer-files", action="store_true",
                        help="Only write predictions.csv")
    parser.add_argument("--no-importance-csv", action="store_true",
                        help="Skip writing feature_importance.csv")
    parser.add_argument("--model-output", default="", help="Save the fitted model to this path (optional)")
    parser.add_argument("--log-file", default="", help="Also write log records to this file")
    return parser


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    setup_logging(args.log_file or None)

    _banner("EXERCISE QUALITY PREDICTION - RANDOM FOREST")
    run_report(
        training_path=args.training,
        testing_path=args.testing,
        output_dir=args.output_dir,
        freq_cut=args.freq_cut,
        unique_cut=args.unique_cut,
        correlation_cutoff=args.correlation_cutoff,
        nzv_rule=args.nzv_rule,
        validation_size=args.validation_size,
        n_estimators=args.n_estimators,
        mtry=args.mtry,
        cv_folds=args.cv_folds,
        cv_repeats=args.cv_repeats,
        random_state=args.seed,
        n_jobs=args.n_jobs,
        show_plots=args.show_plots,
        model_output=args.model_output or None,
        answer_files=not args.no_answer_files,
        importance_csv=not args.no_importance_csv,
    )


if __name__ == "__main__":
    main()
