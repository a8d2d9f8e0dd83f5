"""
Column schema and analysis settings for the weight-lifting sensor dataset.

Columns in the training CSV:
X, user_name, raw_timestamp_part_1, raw_timestamp_part_2, cvtd_timestamp,
new_window, num_window, <152 sensor readings>, classe

The testing CSV has the same layout with problem_id in place of classe.
"""

# Leading identifier / timestamp columns (not sensor signal)
METADATA_COLUMNS = [
    'X',
    'user_name',
    'raw_timestamp_part_1',
    'raw_timestamp_part_2',
    'cvtd_timestamp',
    'new_window',
    'num_window',
]
METADATA_COLUMN_COUNT = len(METADATA_COLUMNS)

# Target column name (five classes A-E) and the test-set row identifier
TARGET_COLUMN = 'classe'
ID_COLUMN = 'problem_id'

# Near-zero-variance cutoffs (most common / second most common, percent distinct)
FREQ_CUT = 95 / 5
UNIQUE_CUT = 10

# Absolute pairwise correlation above which one of the pair is removed
CORRELATION_CUTOFF = 0.90

# Partitioning and model fitting
VALIDATION_SIZE = 0.2
CV_FOLDS = 5
CV_REPEATS = 5
MTRY = 10
N_ESTIMATORS = 500
N_JOBS = -1

# Set random seed for reproducibility
RANDOM_SEED = 42
