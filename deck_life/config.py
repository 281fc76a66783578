"""
PURPOSE: Simulation constants and environment overrides for the deck service-life engine.

RESPONSIBILITIES:
- Define simulation hyperparameters (number of runs, random seed, chunk size)
- Calibration constants (pilot sample size, rejection attempt cap)
- Aggregation constants (percentile levels, histogram bins, checkpoint years)
- Headline reporting thresholds
- Single responsibility: configuration only, no simulation logic
"""

import os

# Simulation Parameters
NUM_RUNS = 10000  # Standard Monte Carlo sample size
RANDOM_SEED = None  # Set to int for reproducibility, None for random
TRIAL_CHUNK_SIZE = 2000  # Trials per accumulator chunk

# Bayesian conditioning
PILOT_SAMPLE_SIZE = 2000  # Draws used to estimate the modeled incidence at the observation year
MAX_REJECTION_ATTEMPTS = 200  # After this many attempts the last draw is accepted as-is
DEFAULT_OBSERVED_CORROSION_RATE = 0.01  # Used when no (or a zero) observed incidence is given

# Deterioration models
FROST_LINEAR_TOLERANCE = 1e-6  # |a - 1| below this uses the linear frost model
DEFAULT_EDGE_FACTOR = 1.5  # Outer edge fully exposed, inner edge at half rate

# Percentile Outputs (nearest-rank: sorted[floor(n * q)])
PERCENTILE_LEVELS = {
    "p5": 0.05,
    "p25": 0.25,
    "median": 0.5,
    "p75": 0.75,
    "p95": 0.95,
}

# Histograms
HISTOGRAM_BINS = 50

# Summary checkpoints
CHECKPOINT_YEARS = [2030, 2035, 2040, 2050, 2075, 2100]

# Headline thresholds: share of trials that must experience an event
# before its median year is reported as a headline number
COLLAPSE_MEDIAN_MIN_FRACTION = 0.5
EVENT_MEDIAN_MIN_FRACTION = 0.1

# Output Configuration
ROUND_PROBABILITY = 4  # Decimal places for probabilities
ROUND_DEPTH = 2  # Decimal places for depths and lengths (mm)
ROUND_YEAR = 1  # Decimal places for event years


def get_default_num_runs():
    """Return the iteration count, honouring DECK_LIFE_NUM_RUNS when set."""
    value = os.environ.get("DECK_LIFE_NUM_RUNS")
    if not value:
        return NUM_RUNS
    return int(value)


def get_default_random_seed():
    """Return the random seed, honouring DECK_LIFE_RANDOM_SEED when set."""
    value = os.environ.get("DECK_LIFE_RANDOM_SEED")
    if not value:
        return RANDOM_SEED
    return int(value)


def get_headline_thresholds():
    """Return thresholds for reporting event medians as headline years."""
    return {
        "collapse": COLLAPSE_MEDIAN_MIN_FRACTION,
        "event": EVENT_MEDIAN_MIN_FRACTION,
    }
