"""
================================================================================
RANDOM FOREST CLASSIFIER FOR EXERCISE QUALITY (classe A-E)
================================================================================

Purpose: Partition, train and evaluate a Random Forest on the filtered
         weight-lifting sensor predictors
Input:  Cleaned and filtered training table (predictors + 'classe')
Output: Fitted model, cross-validation summary, confusion-matrix statistics

Features:
- Stratified 80/20 train/validation split
- Fixed candidate-predictor count per split (mtry) validated with
  repeated k-fold cross-validation on the training partition only
- Confusion matrix heatmap and feature importance analysis
- Optional model persistence (save/load)
================================================================================
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

import joblib
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import cohen_kappa_score, make_scorer
from sklearn.model_selection import GridSearchCV, RepeatedStratifiedKFold, train_test_split

from model.evaluation import ConfusionMatrixReport, confusion_matrix_report
from pre_processing.constants import (
    CV_FOLDS,
    CV_REPEATS,
    ID_COLUMN,
    MTRY,
    N_ESTIMATORS,
    N_JOBS,
    RANDOM_SEED,
    TARGET_COLUMN,
    VALIDATION_SIZE,
)

logger = logging.getLogger(__name__)


class ActivityRandomForest:
    """
    Random Forest pipeline for classifying how an exercise was performed.

    Attributes:
        model: Final RandomForestClassifier refit on the whole training partition
        feature_names: List of predictor column names used for fitting
        classes: Class labels seen during training
        cv_results_: Cross-validation summary per candidate mtry value
        performance_metrics: ConfusionMatrixReport per evaluated dataset
    """

    def __init__(self, n_estimators: int = N_ESTIMATORS, mtry: int = MTRY,
                 cv_folds: int = CV_FOLDS, cv_repeats: int = CV_REPEATS,
                 random_state: int = RANDOM_SEED, n_jobs: int = N_JOBS):
        """
        Args:
            n_estimators (int): Number of trees in the forest
            mtry (int): Number of candidate predictors considered at each split
            cv_folds (int): Folds per cross-validation repeat
            cv_repeats (int): Number of cross-validation repeats
            random_state (int): Random seed for reproducibility
            n_jobs (int): Parallel workers for tree building and CV (-1 = all cores)
        """
        self.n_estimators = n_estimators
        self.mtry = mtry
        self.cv_folds = cv_folds
        self.cv_repeats = cv_repeats
        self.random_state = random_state
        self.n_jobs = n_jobs

        self.model: Optional[RandomForestClassifier] = None
        self.feature_names: Optional[List[str]] = None
        self.classes: Optional[List[str]] = None
        self.cv_results_: Optional[pd.DataFrame] = None
        self.performance_metrics: Dict[str, ConfusionMatrixReport] = {}
        self.importance_df: Optional[pd.DataFrame] = None

    # ========================================================================
    # PARTITIONING
    # ========================================================================

    def partition(self, data: pd.DataFrame, target: str = TARGET_COLUMN,
                  validation_size: float = VALIDATION_SIZE) -> Tuple:
        """
        Stratified split of the cleaned training rows.

        Args:
            data (pd.DataFrame): Filtered predictors plus the label column
            target (str): Label column
            validation_size (float): Fraction of rows held out for validation

        Returns:
            Tuple: (X_train, X_val, y_train, y_val)
        """
        if target not in data.columns:
            raise ValueError(f"Missing '{target}' column")

        X = data.drop(columns=[c for c in (target, ID_COLUMN) if c in data.columns])
        y = data[target]

        X_train, X_val, y_train, y_val = train_test_split(
            X, y,
            test_size=validation_size,
            random_state=self.random_state,
            stratify=y  # Maintain class distribution
        )

        logger.info(
            f"Partitioned {len(X):,} rows: train {len(X_train):,} ({len(X_train) / len(X):.1%}), "
            f"validation {len(X_val):,} ({len(X_val) / len(X):.1%})"
        )
        return X_train, X_val, y_train, y_val

    # ========================================================================
    # MODEL TRAINING
    # ========================================================================

    def train(self, X_train: pd.DataFrame, y_train: pd.Series) -> 'ActivityRandomForest':
        """
        Validate the fixed mtry with repeated CV, then refit on all training rows.

        Args:
            X_train (pd.DataFrame): Training predictors
            y_train (pd.Series): Training labels

        Returns:
            self: Fitted model instance
        """
        n_features = X_train.shape[1]
        if n_features == 0:
            raise ValueError("Cannot train model: no predictors left after filtering")

        mtry = self.mtry
        if mtry > n_features:
            logger.warning(f"mtry={mtry} exceeds the {n_features} available predictors; using {n_features}")
            mtry = n_features

        self.feature_names = X_train.columns.tolist()

        cv = RepeatedStratifiedKFold(
            n_splits=self.cv_folds,
            n_repeats=self.cv_repeats,
            random_state=self.random_state,
        )
        grid_search = GridSearchCV(
            estimator=RandomForestClassifier(
                n_estimators=self.n_estimators,
                random_state=self.random_state,
                n_jobs=self.n_jobs,
            ),
            param_grid={'max_features': [mtry]},
            cv=cv,
            scoring={'Accuracy': 'accuracy', 'Kappa': make_scorer(cohen_kappa_score)},
            refit='Accuracy',
            n_jobs=1  # the forest itself parallelizes over trees
        )

        logger.info(
            f"Training Random Forest ({self.n_estimators} trees, mtry={mtry}) on {len(X_train):,} samples "
            f"with {self.cv_folds}-fold CV repeated {self.cv_repeats} times..."
        )
        start_time = time.time()
        grid_search.fit(X_train, y_train)
        training_time = time.time() - start_time
        logger.info(f"Training completed in {training_time:.2f} seconds ({training_time / 60:.2f} minutes)")

        self.model = grid_search.best_estimator_
        self.classes = [str(c) for c in self.model.classes_]
        self.cv_results_ = self._summarize_cv(grid_search.cv_results_)
        return self

    @staticmethod
    def _summarize_cv(cv_results: dict) -> pd.DataFrame:
        return pd.DataFrame({
            'mtry': [params['max_features'] for params in cv_results['params']],
            'Accuracy': cv_results['mean_test_Accuracy'],
            'Kappa': cv_results['mean_test_Kappa'],
            'AccuracySD': cv_results['std_test_Accuracy'],
            'KappaSD': cv_results['std_test_Kappa'],
        })

    def describe_cv(self) -> str:
        """Text block summarising the resampling results."""
        self._require_fitted()
        lines = [
            "Random Forest",
            "",
            f"{len(self.feature_names)} predictors",
            f"{len(self.classes)} classes: {', '.join(repr(c) for c in self.classes)}",
            "",
            f"Resampling: Cross-Validated ({self.cv_folds} fold, repeated {self.cv_repeats} times)",
            "Resampling results:",
            "",
            self.cv_results_.to_string(index=False, float_format=lambda v: f"{v:.4f}"),
            "",
            f"Tuning parameter 'mtry' was held constant at a value of {self.cv_results_['mtry'].iloc[0]}",
        ]
        return "\n".join(lines)

    # ========================================================================
    # MODEL EVALUATION
    # ========================================================================

    def evaluate(self, X: pd.DataFrame, y: pd.Series,
                 dataset_name: str = "Validation") -> ConfusionMatrixReport:
        """
        Confusion matrix statistics for a labeled dataset.

        Args:
            X (pd.DataFrame): Predictors
            y (pd.Series): Actual labels
            dataset_name (str): Name of dataset for reporting

        Returns:
            ConfusionMatrixReport
        """
        self._require_fitted()
        unseen = sorted(set(y.astype(str)) - set(self.classes))
        if unseen:
            raise ValueError(f"Labels not seen during training: {unseen}")

        y_pred = self.predict_new_data(X)
        report = confusion_matrix_report(y.astype(str), y_pred, labels=self.classes)

        logger.info(
            f"{dataset_name}: accuracy {report.accuracy:.4f} "
            f"(95% CI {report.accuracy_ci[0]:.4f}-{report.accuracy_ci[1]:.4f}), kappa {report.kappa:.4f}"
        )
        self.performance_metrics[dataset_name] = report
        return report

    # ========================================================================
    # VISUALIZATION
    # ========================================================================

    def plot_confusion_matrix(self, report: ConfusionMatrixReport,
                              save_path: Optional[str] = None,
                              show: bool = False,
                              title: str = 'Confusion Matrix'):
        """
        Plot confusion matrix heatmap.

        Args:
            report (ConfusionMatrixReport): Evaluation result to plot
            save_path (str): Path to save plot (optional)
            show (bool): Display the figure interactively
            title (str): Figure title
        """
        logger.info("Generating confusion matrix heatmap...")

        # Actual on the rows, predicted on the columns
        cm = report.table.T
        labels = list(cm.index)

        fig, ax = plt.subplots(figsize=(10, 8))
        sns.heatmap(cm, annot=True, fmt='d', cmap='Blues',
                    xticklabels=labels, yticklabels=labels,
                    cbar_kws={'label': 'Count'}, ax=ax)
        ax.set_xlabel('Predicted', fontsize=12)
        ax.set_ylabel('Actual', fontsize=12)
        ax.set_title(f"{title} (accuracy = {report.accuracy:.4f})", fontsize=14, fontweight='bold')

        # Add percentages
        total = cm.to_numpy().sum()
        for i in range(len(labels)):
            for j in range(len(labels)):
                pct = cm.iat[i, j] / total * 100
                ax.text(j + 0.5, i + 0.7, f'({pct:.1f}%)',
                        ha='center', va='center', fontsize=9, color='gray')

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
            logger.info(f"Confusion matrix saved to: {save_path}")

        if show:
            plt.show()
        plt.close(fig)

    # ========================================================================
    # FEATURE IMPORTANCE ANALYSIS
    # ========================================================================

    def analyze_feature_importance(self, top_n: int = 20,
                                   save_path: Optional[str] = None,
                                   show: bool = False) -> pd.DataFrame:
        """
        Rank predictors by mean impurity decrease.

        Args:
            top_n (int): Number of top features to plot
            save_path (str): Path to save plot (optional); no plot when omitted
            show (bool): Display the figure interactively

        Returns:
            pd.DataFrame: Columns 'feature' and 'importance', most important first
        """
        self._require_fitted()

        importance_df = pd.DataFrame({
            'feature': self.feature_names,
            'importance': self.model.feature_importances_
        }).sort_values('importance', ascending=False).reset_index(drop=True)
        self.importance_df = importance_df

        top_features = importance_df.head(top_n)
        logger.info("Top features: " + ", ".join(
            f"{row.feature} ({row.importance:.4f})" for row in top_features.head(5).itertuples()
        ))

        if save_path or show:
            fig, ax = plt.subplots(figsize=(10, max(4, 0.35 * len(top_features))))
            ax.barh(range(len(top_features)), top_features['importance'], color='steelblue')
            ax.set_yticks(range(len(top_features)))
            ax.set_yticklabels(top_features['feature'], fontsize=9)
            ax.invert_yaxis()
            ax.set_xlabel('Importance', fontsize=12)
            ax.set_title(f'Top {len(top_features)} Most Important Features', fontsize=14, fontweight='bold')
            ax.grid(axis='x', alpha=0.3)
            plt.tight_layout()

            if save_path:
                fig.savefig(save_path, dpi=150, bbox_inches='tight')
                logger.info(f"Feature importance plot saved to: {save_path}")
            if show:
                plt.show()
            plt.close(fig)

        return importance_df

    # ========================================================================
    # MODEL PERSISTENCE
    # ========================================================================

    def save_model(self, filepath: str = 'random_forest_model.pkl'):
        """
        Save trained model to disk.

        Args:
            filepath (str): Path to save model
        """
        self._require_fitted()

        model_data = {
            'model': self.model,
            'feature_names': self.feature_names,
            'classes': self.classes,
            'cv_results': self.cv_results_,
            'params': {
                'n_estimators': self.n_estimators,
                'mtry': self.mtry,
                'cv_folds': self.cv_folds,
                'cv_repeats': self.cv_repeats,
                'random_state': self.random_state,
                'n_jobs': self.n_jobs,
            },
        }

        joblib.dump(model_data, filepath)
        logger.info(f"Model saved to: {filepath}")

    @classmethod
    def load_model(cls, filepath: str = 'random_forest_model.pkl') -> 'ActivityRandomForest':
        """
        Load trained model from disk.

        Args:
            filepath (str): Path to saved model

        Returns:
            ActivityRandomForest: Loaded model instance
        """
        model_data = joblib.load(filepath)

        instance = cls(**model_data['params'])
        instance.model = model_data['model']
        instance.feature_names = model_data['feature_names']
        instance.classes = model_data['classes']
        instance.cv_results_ = model_data['cv_results']

        logger.info(f"Model loaded from: {filepath}")
        return instance

    # ========================================================================
    # PREDICTION ON NEW DATA
    # ========================================================================

    def predict_new_data(self, X_new: pd.DataFrame) -> np.ndarray:
        """
        Predict class labels for new rows.

        Args:
            X_new (pd.DataFrame): Rows carrying (at least) the training predictors

        Returns:
            np.ndarray: Predicted class labels
        """
        self._require_fitted()

        missing = [col for col in self.feature_names if col not in X_new.columns]
        if missing:
            raise ValueError(f"Missing features: {missing}")

        extra = [col for col in X_new.columns
                 if col not in self.feature_names and col not in (TARGET_COLUMN, ID_COLUMN)]
        if extra:
            logger.warning(f"Extra features will be ignored: {extra}")

        # Reorder columns to match training
        return self.model.predict(X_new[self.feature_names])

    def _require_fitted(self):
        if self.model is None:
            raise RuntimeError("No model is fitted. Train the model first.")
