"""
PURPOSE: Top-level entry point of the deck service-life engine.

Runs every repair scenario, the per-element corrosion analysis and the
cross-scenario summary, and returns one SimulationResult.

SINGLE RESPONSIBILITY:
- Sequence ScenarioSimulator over scenarios A-D and ElementAnalyzer once
- Assemble the complete result object
- Does NOT handle file I/O or rendering
- Does NOT modify the input parameters; works on a deep copy
"""

import logging
from typing import Any, Dict, Optional

import numpy as np

from deck_life.config import CHECKPOINT_YEARS, ROUND_DEPTH, ROUND_PROBABILITY, ROUND_YEAR, get_default_random_seed
from deck_life.distributions import RandomVariate
from deck_life.elements import ElementAnalyzer
from deck_life.outputs import SimulationResult, build_summary
from deck_life.parameters import DEFAULT_PARAMETERS, SimulationParameters
from deck_life.scenarios import SCENARIOS, ScenarioSimulator, simulation_years

logger = logging.getLogger(__name__)


class SimulationEngine:
    """
    Monte Carlo engine for the deck service-life analysis.

    Holds a private deep copy of the parameters and the last result.
    All randomness comes from one RandomVariate, so a fixed seed (or an
    injected generator) reproduces the full result.
    """

    def __init__(self, parameters: Optional[SimulationParameters] = None, random_seed=None, rng=None):
        """
        Initialize simulation engine.

        Args:
            parameters: SimulationParameters (defaults to the calibrated defaults)
            random_seed: Random seed for reproducibility (None = random)
            rng: numpy Generator to draw from; overrides random_seed
        """
        if parameters is None:
            parameters = DEFAULT_PARAMETERS
        self.parameters = parameters.model_copy(deep=True)
        self.random_seed = random_seed if rng is None else None
        self.random_variate = RandomVariate(rng=rng, random_seed=random_seed)
        self.results = None

    def run_simulation(self) -> SimulationResult:
        """Run all scenarios and the element analysis."""
        p = self.parameters
        years = simulation_years(p)
        logger.info(
            "Running simulation: %s iterations, years %s-%s, repair year %s",
            p.monte_carlo_iterations,
            p.start_year,
            p.end_year,
            p.current_year,
        )

        scenarios = {
            scenario_id: ScenarioSimulator(p, scenario_id, self.random_variate).run()
            for scenario_id in SCENARIOS
        }
        element_analysis = ElementAnalyzer(p, self.random_variate).run()
        year_list = [int(y) for y in years]

        self.results = SimulationResult(
            years=year_list,
            scenarios=scenarios,
            element_analysis=element_analysis,
            summary=build_summary(year_list, scenarios),
            parameters=p,
            random_seed=self.random_seed,
        )
        logger.info("Simulation complete")
        return self.results


def run_simulation(parameters: Optional[SimulationParameters] = None, random_seed=None, rng=None) -> SimulationResult:
    """Run a complete simulation. Module-level convenience wrapper around SimulationEngine."""
    if random_seed is None and rng is None:
        random_seed = get_default_random_seed()
    return SimulationEngine(parameters, random_seed=random_seed, rng=rng).run_simulation()


def _rounded(value, digits):
    if value is None or not np.isfinite(value):
        return None
    return round(float(value), digits)


def baseline_snapshot(result: SimulationResult, scenario_ids=("A", "B", "C")) -> Dict[str, Any]:
    """
    Checkpoint extract of a result for regression comparison between runs.

    Per scenario: collapse/corrosion probability and frost/bearing medians at
    each checkpoint year inside the horizon, plus the event-year medians.
    """
    output = {}
    for scenario_id in scenario_ids:
        scenario = result.scenarios[scenario_id]
        snapshot = {}
        for year in CHECKPOINT_YEARS:
            if year not in result.years:
                continue
            st = scenario.stats[result.years.index(year)]
            snapshot[str(year)] = {
                "collapse_prob": _rounded(st.collapse_probability, ROUND_PROBABILITY),
                "corrosion_prob": _rounded(st.corrosion_probability, ROUND_PROBABILITY),
                "frost_median": _rounded(st.frost.median, ROUND_DEPTH),
                "bearing_median": _rounded(st.bearing.median, ROUND_DEPTH),
            }
        distributions = scenario.distributions
        snapshot["distributions"] = {
            "corrosion_year_median": _rounded(distributions.corrosion_year.median, ROUND_YEAR),
            "collapse_year_median": _rounded(distributions.collapse_year.median, ROUND_YEAR),
            "critical_frost_year_median": _rounded(distributions.critical_frost_year.median, ROUND_YEAR),
        }
        output[scenario_id] = snapshot
    return output
