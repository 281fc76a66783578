"""
Probabilistic service-life simulation for a concrete deck structure.

PURPOSE:
    Estimate when carbonation-induced corrosion, frost deterioration and
    bearing-edge loss cross their safety thresholds under four strategies
    (passive, light repair, two full-repair variants), with Monte Carlo
    sampling and Bayesian conditioning on a field observation.

RESPONSIBILITIES:
    - distributions.py: Box-Muller normal and mean/CoV lognormal variates only
    - deterioration.py: Closed-form carbonation, frost and bearing models only
    - calibration.py: Bayesian rejection sampling of (k, cover) only
    - scenarios.py: Per-scenario trial simulation and accumulation only
    - elements.py: Per-element corrosion-initiation analysis only
    - outputs.py: Percentiles, histograms, summary and headlines only
    - simulation.py: Orchestration of one complete run only
"""

from .distributions import RandomVariate, lognormal_distribution, lognormal_params
from .outputs import SimulationResult, format_headlines, histogram, percentile_summary
from .parameters import DEFAULT_PARAMETERS, SimulationParameters
from .simulation import SimulationEngine, baseline_snapshot, run_simulation

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_PARAMETERS",
    "SimulationParameters",
    "SimulationEngine",
    "SimulationResult",
    "RandomVariate",
    "lognormal_params",
    "lognormal_distribution",
    "run_simulation",
    "baseline_snapshot",
    "format_headlines",
    "histogram",
    "percentile_summary",
]
