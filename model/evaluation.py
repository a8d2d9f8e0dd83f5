"""
Confusion-matrix statistics for multi-class predictions.

Overall: accuracy with an exact 95% binomial confidence interval, the
no-information rate (largest reference class share), a one-sided binomial
test of accuracy > NIR, and Cohen's kappa.

Per class (one-vs-rest): sensitivity, specificity, positive/negative
predictive value, prevalence, detection rate, detection prevalence and
balanced accuracy.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.metrics import cohen_kappa_score, confusion_matrix


@dataclass
class ConfusionMatrixReport:
    table: pd.DataFrame             # rows: Prediction, columns: Reference
    accuracy: float
    accuracy_ci: Tuple[float, float]
    no_information_rate: float
    p_value_acc_gt_nir: float
    kappa: float
    by_class: pd.DataFrame
    n_samples: int

    @property
    def out_of_sample_error(self) -> float:
        return 1.0 - self.accuracy

    def format(self) -> str:
        lines = [
            "Confusion Matrix and Statistics",
            "",
            self.table.to_string(),
            "",
            f"               Accuracy : {self.accuracy:.4f}",
            f"                 95% CI : ({self.accuracy_ci[0]:.4f}, {self.accuracy_ci[1]:.4f})",
            f"    No Information Rate : {self.no_information_rate:.4f}",
            f"    P-Value [Acc > NIR] : {self.p_value_acc_gt_nir:.4g}",
            "",
            f"                  Kappa : {self.kappa:.4f}",
            f"    Out-of-sample error : {self.out_of_sample_error:.4f}",
            "",
            "Statistics by Class:",
            "",
            self.by_class.T.to_string(float_format=lambda v: f"{v:.4f}"),
        ]
        return "\n".join(lines)


def _safe_ratio(num, den):
    num = np.asarray(num, dtype=float)
    den = np.asarray(den, dtype=float)
    out = np.full(num.shape, np.nan)
    np.divide(num, den, out=out, where=den != 0)
    return out


def accuracy_interval(correct: int, total: int, level: float = 0.95) -> Tuple[float, float]:
    """Clopper-Pearson interval for `correct` successes out of `total`."""
    alpha = 1 - level
    lower = 0.0 if correct == 0 else stats.beta.ppf(alpha / 2, correct, total - correct + 1)
    upper = 1.0 if correct == total else stats.beta.ppf(1 - alpha / 2, correct + 1, total - correct)
    return float(lower), float(upper)


def confusion_matrix_report(y_true: Sequence,
                            y_pred: Sequence,
                            labels: Optional[Sequence] = None) -> ConfusionMatrixReport:
    """
    Cross-tabulate predictions against reference labels and summarise them.

    Args:
        y_true: Reference (actual) labels
        y_pred: Predicted labels
        labels: Class order; defaults to the sorted union of both inputs

    Returns:
        ConfusionMatrixReport
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if y_true.shape != y_pred.shape:
        raise ValueError(f"y_true and y_pred differ in length: {len(y_true)} != {len(y_pred)}")
    if len(y_true) == 0:
        raise ValueError("Cannot evaluate an empty set of predictions")

    if labels is None:
        labels = sorted(set(y_true.tolist()) | set(y_pred.tolist()))
    labels = list(labels)

    # sklearn: rows are actual, columns are predicted
    cm = confusion_matrix(y_true, y_pred, labels=labels)
    n = int(cm.sum())
    correct = int(np.trace(cm))
    accuracy = correct / n

    table = pd.DataFrame(
        cm.T,
        index=pd.Index(labels, name='Prediction'),
        columns=pd.Index(labels, name='Reference'),
    )

    reference_counts = cm.sum(axis=1)
    nir = float(reference_counts.max() / n)
    p_value = float(stats.binomtest(correct, n, nir, alternative='greater').pvalue)

    kappa = float(cohen_kappa_score(y_true, y_pred, labels=labels))

    tp = np.diag(cm)
    fn = reference_counts - tp
    fp = cm.sum(axis=0) - tp
    tn = n - tp - fn - fp

    sensitivity = _safe_ratio(tp, tp + fn)
    specificity = _safe_ratio(tn, tn + fp)
    by_class = pd.DataFrame({
        'Sensitivity': sensitivity,
        'Specificity': specificity,
        'Pos Pred Value': _safe_ratio(tp, tp + fp),
        'Neg Pred Value': _safe_ratio(tn, tn + fn),
        'Prevalence': reference_counts / n,
        'Detection Rate': tp / n,
        'Detection Prevalence': (tp + fp) / n,
        'Balanced Accuracy': (sensitivity + specificity) / 2,
    }, index=pd.Index([f"Class: {label}" for label in labels]))

    return ConfusionMatrixReport(
        table=table,
        accuracy=float(accuracy),
        accuracy_ci=accuracy_interval(correct, n),
        no_information_rate=nir,
        p_value_acc_gt_nir=p_value,
        kappa=kappa,
        by_class=by_class,
        n_samples=n,
    )
