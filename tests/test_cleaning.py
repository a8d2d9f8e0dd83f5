import logging

import numpy as np
import pandas as pd
import pytest

from pre_processing.cleaning import (
    SensorDataCleaner,
    coerce_numeric,
    drop_metadata_columns,
    fill_missing,
)
from pre_processing.constants import METADATA_COLUMNS


def test_drop_metadata_columns_removes_first_seven(raw_frames):
    training, _ = raw_frames
    out = drop_metadata_columns(training)

    assert out.shape[1] == training.shape[1] - 7
    assert list(out.columns) == list(training.columns[7:])
    assert len(out) == len(training)


def test_drop_metadata_columns_rejects_narrow_table():
    with pytest.raises(ValueError):
        drop_metadata_columns(pd.DataFrame({'a': [1], 'b': [2]}))


def test_coerce_numeric_parses_text_and_marks_failures_missing():
    df = pd.DataFrame({
        'kurtosis': ['1.5', '-2', '#DIV/0!', None, '3e2'],
        'roll': [1.0, 2.0, 3.0, 4.0, 5.0],
    })
    out = coerce_numeric(df, ['kurtosis', 'roll'])

    assert out['kurtosis'].iloc[0] == 1.5
    assert out['kurtosis'].iloc[1] == -2.0
    assert out['kurtosis'].iloc[4] == 300.0
    assert out['kurtosis'].iloc[2:4].isna().all()
    pd.testing.assert_series_equal(out['roll'], df['roll'])
    # input is left untouched
    assert df['kurtosis'].iloc[2] == '#DIV/0!'


def test_fill_missing_only_touches_listed_columns():
    df = pd.DataFrame({'a': [np.nan, 1.0], 'b': [np.nan, 2.0]})
    out = fill_missing(df, ['a'])

    assert out['a'].tolist() == [0.0, 1.0]
    assert out['b'].isna().iloc[0]


def test_cleaner_coerces_then_zero_fills(metadata_frame):
    raw = metadata_frame(4)
    raw['kurtosis_roll_belt'] = ['1.5', '#DIV/0!', np.nan, '-0.25']
    raw['roll_belt'] = [1.0, np.nan, 3.0, 4.0]
    raw['classe'] = ['A', 'B', 'A', 'B']

    cleaner = SensorDataCleaner()
    cleaned = cleaner.fit_transform(raw)

    assert cleaner.metadata_columns == METADATA_COLUMNS
    assert cleaner.predictor_columns == ['kurtosis_roll_belt', 'roll_belt']
    assert cleaner.coerced_columns == ['kurtosis_roll_belt']
    assert cleaned['kurtosis_roll_belt'].tolist() == [1.5, 0.0, 0.0, -0.25]
    assert cleaned['roll_belt'].tolist() == [1.0, 0.0, 3.0, 4.0]
    assert cleaned['classe'].tolist() == ['A', 'B', 'A', 'B']


def test_cleaner_output_has_no_missing_values(raw_frames):
    training, _ = raw_frames
    cleaner = SensorDataCleaner()
    cleaned = cleaner.fit_transform(training)

    predictors = cleaned[cleaner.predictor_columns]
    assert not predictors.isna().any().any()
    assert all(pd.api.types.is_float_dtype(dtype) for dtype in predictors.dtypes)
    assert 'kurtosis_roll_belt' in cleaner.coerced_columns
    # four parsable values survive, everything else is zero
    assert (cleaned['kurtosis_roll_belt'] != 0).sum() == 4


def test_cleaner_applies_same_layout_to_testing(raw_frames):
    training, testing = raw_frames
    cleaner = SensorDataCleaner()
    cleaner.fit_transform(training)
    cleaned = cleaner.transform(testing)

    assert set(cleaned.columns) == set(cleaner.predictor_columns) | {'problem_id'}
    assert not cleaned[cleaner.predictor_columns].isna().any().any()
    assert cleaned['problem_id'].tolist() == list(range(1, 21))


def test_cleaner_rejects_mismatched_metadata(raw_frames):
    training, testing = raw_frames
    cleaner = SensorDataCleaner()
    cleaner.fit_transform(training)

    with pytest.raises(ValueError, match="Metadata columns"):
        cleaner.transform(testing.rename(columns={'user_name': 'subject'}))


def test_cleaner_rejects_missing_predictor(raw_frames):
    training, testing = raw_frames
    cleaner = SensorDataCleaner()
    cleaner.fit_transform(training)

    with pytest.raises(ValueError, match="Missing predictor columns"):
        cleaner.transform(testing.drop(columns=['yaw_belt']))


def test_cleaner_requires_label(raw_frames):
    training, _ = raw_frames

    with pytest.raises(ValueError):
        SensorDataCleaner().fit_transform(training.drop(columns=['classe']))

    unlabeled = training.copy()
    unlabeled.loc[0, 'classe'] = np.nan
    with pytest.raises(ValueError):
        SensorDataCleaner().fit_transform(unlabeled)


def test_transform_before_fit_raises(raw_frames):
    _, testing = raw_frames
    with pytest.raises(ValueError, match="Must call fit_transform"):
        SensorDataCleaner().transform(testing)


def test_cleaner_warns_on_unexpected_metadata_names(raw_frames, caplog):
    training, _ = raw_frames
    renamed = training.rename(columns={'user_name': 'subject'})

    with caplog.at_level(logging.WARNING, logger='pre_processing.cleaning'):
        cleaned = SensorDataCleaner().fit_transform(renamed)

    assert 'subject' not in cleaned.columns
    assert 'differ from the expected metadata' in caplog.text


def test_cleaner_is_quiet_on_expected_metadata_names(raw_frames, caplog):
    training, _ = raw_frames

    with caplog.at_level(logging.WARNING, logger='pre_processing.cleaning'):
        SensorDataCleaner().fit_transform(training)

    assert 'differ from the expected metadata' not in caplog.text
