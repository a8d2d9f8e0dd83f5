import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from pre_processing.constants import METADATA_COLUMNS

CLASSES = ['A', 'B', 'C', 'D', 'E']
INFORMATIVE = [
    'roll_belt', 'pitch_belt', 'yaw_belt', 'gyros_belt_x',
    'accel_arm_x', 'magnet_arm_y', 'roll_dumbbell', 'pitch_dumbbell',
    'gyros_dumbbell_z', 'accel_forearm_x', 'magnet_forearm_z', 'yaw_forearm',
]
# Small knobs so a full report runs in seconds
FAST_MODEL = dict(n_estimators=30, cv_folds=3, cv_repeats=2, n_jobs=1)


def _metadata(n, rng, start=1):
    new_window = np.array(['no'] * n, dtype=object)
    return {
        'X': np.arange(start, start + n),
        'user_name': rng.choice(['adelmo', 'carlitos', 'charles', 'eurico', 'jeremy', 'pedro'], size=n),
        'raw_timestamp_part_1': rng.integers(1322489600, 1323095000, size=n),
        'raw_timestamp_part_2': rng.integers(0, 999999, size=n),
        'cvtd_timestamp': rng.choice(['05/12/2011 11:23', '28/11/2011 14:14', '02/12/2011 13:33'], size=n),
        'new_window': new_window,
        'num_window': rng.integers(1, 864, size=n),
    }


def _sensors(class_idx, effects, rng):
    n = len(class_idx)
    columns = {}
    for name in INFORMATIVE:
        columns[name] = effects[name][class_idx] + rng.normal(0, 1, size=n)
    # Near duplicate of roll_belt
    columns['total_accel_belt'] = 2 * columns['roll_belt'] + rng.normal(0, 0.01, size=n)
    # Balanced two-valued signal: low cardinality, but not near-constant
    columns['binary_flag'] = np.tile([0, 1], n // 2 + 1)[:n]
    columns['amplitude_yaw_belt'] = np.zeros(n)
    return columns


@pytest.fixture
def raw_frames():
    """Synthetic (training, testing) tables in the layout of the real CSV files."""
    rng = np.random.default_rng(7)
    effects = {name: rng.normal(0, 1.5, size=len(CLASSES)) for name in INFORMATIVE}

    n_per_class = 60
    class_idx = rng.permutation(np.repeat(np.arange(len(CLASSES)), n_per_class))
    n = len(class_idx)

    train = _metadata(n, rng)
    train.update(_sensors(class_idx, effects, rng))

    # Summary column: empty except on window boundaries, with spreadsheet errors
    kurtosis = np.full(n, np.nan, dtype=object)
    boundary_rows = rng.choice(n, size=8, replace=False)
    kurtosis[boundary_rows] = ['-1.5', '0.25', '3.75', '12.5', '#DIV/0!', '#DIV/0!', '#DIV/0!', '#DIV/0!']
    train['new_window'][boundary_rows] = 'yes'
    train['kurtosis_roll_belt'] = kurtosis
    train['classe'] = np.array(CLASSES)[class_idx]
    training = pd.DataFrame(train)

    n_test = 20
    test_idx = rng.integers(0, len(CLASSES), size=n_test)
    test = _metadata(n_test, rng, start=1)
    test.update(_sensors(test_idx, effects, rng))
    test['kurtosis_roll_belt'] = np.full(n_test, np.nan)
    test['problem_id'] = np.arange(1, n_test + 1)
    testing = pd.DataFrame(test)

    return training, testing


@pytest.fixture
def csv_paths(tmp_path, raw_frames):
    training, testing = raw_frames
    training_path = tmp_path / 'pml-training.csv'
    testing_path = tmp_path / 'pml-testing.csv'
    training.to_csv(training_path, index=False)
    testing.to_csv(testing_path, index=False)
    return str(training_path), str(testing_path)


@pytest.fixture
def metadata_frame():
    """Factory for the seven leading metadata columns with `n` rows."""
    def _make(n):
        rng = np.random.default_rng(0)
        frame = pd.DataFrame(_metadata(n, rng))
        assert list(frame.columns) == METADATA_COLUMNS
        return frame
    return _make


@pytest.fixture
def fast_model_params():
    return dict(FAST_MODEL)
