import numpy as np
import pytest

from model.evaluation import accuracy_interval, confusion_matrix_report


def test_report_on_small_example():
    report = confusion_matrix_report(['A', 'A', 'B', 'B'], ['A', 'B', 'B', 'B'])

    # rows are predictions, columns are reference labels
    assert report.table.index.name == 'Prediction'
    assert report.table.columns.name == 'Reference'
    assert report.table.loc['B', 'A'] == 1
    assert report.table.loc['A', 'B'] == 0
    assert report.table.to_numpy().sum() == 4

    assert report.accuracy == pytest.approx(0.75)
    assert report.out_of_sample_error == pytest.approx(0.25)
    assert report.no_information_rate == pytest.approx(0.5)
    assert report.kappa == pytest.approx(0.5)
    assert 0.0 <= report.p_value_acc_gt_nir <= 1.0

    assert report.by_class.loc['Class: A', 'Sensitivity'] == pytest.approx(0.5)
    assert report.by_class.loc['Class: A', 'Specificity'] == pytest.approx(1.0)
    assert report.by_class.loc['Class: B', 'Sensitivity'] == pytest.approx(1.0)
    assert report.by_class.loc['Class: B', 'Specificity'] == pytest.approx(0.5)
    assert report.by_class.loc['Class: B', 'Pos Pred Value'] == pytest.approx(2 / 3)
    assert report.by_class.loc['Class: A', 'Detection Rate'] == pytest.approx(0.25)


def test_perfect_predictions():
    labels = list('ABCDE') * 4
    report = confusion_matrix_report(labels, labels)

    assert report.accuracy == 1.0
    assert report.kappa == pytest.approx(1.0)
    assert report.accuracy_ci[1] == 1.0
    assert report.accuracy_ci[0] < 1.0
    assert (np.diag(report.table.to_numpy()) == 4).all()


def test_labels_without_observations_are_kept():
    report = confusion_matrix_report(['A', 'B'], ['A', 'B'], labels=['A', 'B', 'C'])

    assert list(report.table.index) == ['A', 'B', 'C']
    assert report.table.loc['C'].sum() == 0
    assert np.isnan(report.by_class.loc['Class: C', 'Sensitivity'])
    assert report.by_class.loc['Class: C', 'Specificity'] == pytest.approx(1.0)


def test_accuracy_interval_bounds():
    assert accuracy_interval(0, 10)[0] == 0.0
    assert accuracy_interval(10, 10)[1] == 1.0

    lower, upper = accuracy_interval(90, 100)
    assert lower < 0.9 < upper
    assert lower == pytest.approx(0.8238, abs=1e-3)
    assert upper == pytest.approx(0.9510, abs=1e-3)


def test_report_rejects_mismatched_lengths():
    with pytest.raises(ValueError):
        confusion_matrix_report(['A', 'B'], ['A'])


def test_format_mentions_headline_statistics():
    text = confusion_matrix_report(['A', 'B', 'B'], ['A', 'B', 'A']).format()

    assert 'Accuracy' in text
    assert 'Kappa' in text
    assert 'Statistics by Class' in text
