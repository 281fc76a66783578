"""
PURPOSE: Monte Carlo simulation of one repair strategy over the time horizon.

Runs N independent trials for a scenario. Each trial samples a carbonation
coefficient and cover (through the calibrator), a frost rate and a bearing
edge-loss rate, then evaluates carbonation depth, frost damage and effective
bearing length for every simulated year.

SINGLE RESPONSIBILITY:
- Sample trial parameters for a scenario
- Apply the scenario's repair modifiers from the repair year onward
- Accumulate per-year sample pools, indicator counts and first-event years
- Return a ScenarioResult (no I/O, no formatting)

Trials are evaluated in chunks. Every chunk produces a ScenarioAccumulator and
chunks combine with ``merge`` (row concatenation and count sums), so the final
statistics do not depend on the order in which chunks are produced.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import numpy as np

from deck_life.calibration import CalibrationTarget, Calibrator
from deck_life.config import DEFAULT_EDGE_FACTOR, TRIAL_CHUNK_SIZE
from deck_life.deterioration import (
    carbonation_depth,
    carbonation_inverse_age,
    effective_bearing,
    frost_damage,
)
from deck_life.distributions import RandomVariate
from deck_life.outputs import (
    ScenarioDistributions,
    ScenarioResult,
    build_year_statistics,
    histogram,
    percentile_summary,
)
from deck_life.parameters import SimulationParameters

logger = logging.getLogger(__name__)


class RepairKind(str, Enum):
    NONE = "none"
    LIGHT = "light"
    FULL = "full"


@dataclass(frozen=True)
class Scenario:
    scenario_id: str
    name: str
    repair: RepairKind


# C and D share structural modifiers; they differ only in cost and tree handling.
SCENARIOS: Dict[str, Scenario] = {
    "A": Scenario("A", "Passive (no repairs)", RepairKind.NONE),
    "B": Scenario("B", "Light repair", RepairKind.LIGHT),
    "C": Scenario("C", "Full repair", RepairKind.FULL),
    "D": Scenario("D", "Full repair (trees retained)", RepairKind.FULL),
}


def get_scenario(scenario_id: str) -> Scenario:
    try:
        return SCENARIOS[scenario_id]
    except KeyError:
        raise ValueError(f"Unknown scenario: {scenario_id!r}. Must be one of {sorted(SCENARIOS)}") from None


def simulation_years(parameters: SimulationParameters) -> np.ndarray:
    """Start year to end year inclusive; empty when end_year < start_year."""
    return np.arange(parameters.start_year, parameters.end_year + 1)


def edge_factor(parameters: SimulationParameters) -> float:
    factor = parameters.bearing.edge_factor
    if not factor or math.isnan(factor):
        return DEFAULT_EDGE_FACTOR
    return factor


def scenario_calibration_target(parameters: SimulationParameters) -> CalibrationTarget:
    """Prior for scenario trials: TT-slab coefficient with the TT-rib underside cover."""
    observed = parameters.bayesian_conditioning.observed_corrosion
    cover = parameters.concrete_cover
    return CalibrationTarget(
        k_mean=parameters.carbonation.k_tt_slabs,
        k_cov=parameters.carbonation.k_cov,
        cover_mean=cover.tt_rib_underside.mean,
        cover_std=cover.tt_rib_underside.std,
        surface_rebar_fraction=cover.surface_rebar_fraction or 0.0,
        observation_age=parameters.observation_age(),
        observed_rate=observed.scenario if observed is not None else None,
        dampening_age=parameters.carbonation.dampening_age,
        dampening_factor=parameters.carbonation.dampening_factor,
    )


@dataclass
class ScenarioAccumulator:
    """Raw per-year samples of a set of trials.

    Attributes:
        carbonation, frost, bearing: (trials x years) sample matrices.
        corrosion_counts, collapse_counts: per-year indicator counts.
        corrosion_years, collapse_years, critical_frost_years: first-event
            year of every trial that experienced the event.
    """
    carbonation: np.ndarray
    frost: np.ndarray
    bearing: np.ndarray
    corrosion_counts: np.ndarray
    collapse_counts: np.ndarray
    corrosion_years: np.ndarray
    collapse_years: np.ndarray
    critical_frost_years: np.ndarray

    @classmethod
    def empty(cls, num_years: int) -> "ScenarioAccumulator":
        return cls(
            carbonation=np.empty((0, num_years)),
            frost=np.empty((0, num_years)),
            bearing=np.empty((0, num_years)),
            corrosion_counts=np.zeros(num_years, dtype=int),
            collapse_counts=np.zeros(num_years, dtype=int),
            corrosion_years=np.empty(0),
            collapse_years=np.empty(0),
            critical_frost_years=np.empty(0),
        )

    @property
    def num_trials(self) -> int:
        return self.carbonation.shape[0]

    def merge(self, other: "ScenarioAccumulator") -> "ScenarioAccumulator":
        return ScenarioAccumulator(
            carbonation=np.vstack([self.carbonation, other.carbonation]),
            frost=np.vstack([self.frost, other.frost]),
            bearing=np.vstack([self.bearing, other.bearing]),
            corrosion_counts=self.corrosion_counts + other.corrosion_counts,
            collapse_counts=self.collapse_counts + other.collapse_counts,
            corrosion_years=np.concatenate([self.corrosion_years, other.corrosion_years]),
            collapse_years=np.concatenate([self.collapse_years, other.collapse_years]),
            critical_frost_years=np.concatenate([self.critical_frost_years, other.critical_frost_years]),
        )


def _first_event_years(indicator: np.ndarray, years: np.ndarray) -> np.ndarray:
    """Year of the first True per row, for rows with any True."""
    if indicator.size == 0:
        return np.empty(0)
    hit = indicator.any(axis=1)
    first = indicator.argmax(axis=1)
    return years[first[hit]].astype(float)


class ScenarioSimulator:
    """
    Monte Carlo simulation of one scenario.

    Per trial:
    - Sample (k, cover) through the calibrator, then frost and bearing rates
    - Passive: no modifiers
    - Light repair: reduced frost and bearing rates after the repair year;
      carbonation frozen for the pause period, then resumed with time shifted
      by the pause
    - Full repair: reduced frost (linear thereafter), bearing and carbonation
      rates after the repair year; carbonation continues from the equivalent
      age under the reduced coefficient
    """

    def __init__(
        self,
        parameters: SimulationParameters,
        scenario_id: str,
        random_variate: Optional[RandomVariate] = None,
        chunk_size: int = TRIAL_CHUNK_SIZE,
    ):
        self.parameters = parameters
        self.scenario = get_scenario(scenario_id)
        self.random_variate = random_variate or RandomVariate()
        self.chunk_size = max(1, chunk_size)
        self.years = simulation_years(parameters)

    @property
    def repair_year(self) -> float:
        if self.scenario.repair is RepairKind.NONE:
            return math.inf
        return self.parameters.current_year

    def _rate_reduction(self) -> float:
        if self.scenario.repair is RepairKind.LIGHT:
            return self.parameters.light_repair.frost_rate_reduction
        return self.parameters.full_repair.frost_rate_reduction

    def sample_trials(self, calibrator: Calibrator, size: int):
        """Draw trial parameters: arrays of k, cover, frost rate and bearing rate."""
        p = self.parameters
        k = np.empty(size)
        cover = np.empty(size)
        frost_rate = np.empty(size)
        bearing_rate = np.empty(size)
        for i in range(size):
            k[i], cover[i] = calibrator.draw()
            frost_rate[i] = self.random_variate.lognormal(p.frost.base_rate_mm_per_year, p.frost.rate_cov)
            bearing_rate[i] = self.random_variate.lognormal(
                p.bearing.deterioration_rate_mm_per_year, p.bearing.rate_cov
            )
        return k, cover, frost_rate, bearing_rate

    def frost_series(self, frost_rate: np.ndarray) -> np.ndarray:
        p = self.parameters
        accel = p.frost.acceleration_factor
        sat_year = p.frost.critical_saturation_year
        t_frost = np.maximum(0, self.years - sat_year).astype(float)
        unrepaired = frost_damage(t_frost[None, :], frost_rate[:, None], accel)
        if self.scenario.repair is RepairKind.NONE:
            return unrepaired

        repair = self.repair_year
        reduced_rate = frost_rate * (1 - self._rate_reduction())
        # The repaired surface no longer compounds after a full repair.
        accel_after = 1.0 if self.scenario.repair is RepairKind.FULL else accel
        before = frost_damage(repair - sat_year, frost_rate, accel)
        after = frost_damage((self.years - repair)[None, :], reduced_rate[:, None], accel_after)
        return np.where((self.years > repair)[None, :], before[:, None] + after, unrepaired)

    def carbonation_series(self, k: np.ndarray) -> np.ndarray:
        p = self.parameters
        damp_age = p.carbonation.dampening_age
        damp_factor = p.carbonation.dampening_factor
        t_total = (self.years - p.start_year).astype(float)
        unrepaired = carbonation_depth(k[:, None], t_total[None, :], damp_age, damp_factor)
        if self.scenario.repair is RepairKind.NONE:
            return unrepaired

        repair = self.repair_year
        depth_at_repair = carbonation_depth(k, repair - p.start_year, damp_age, damp_factor)

        if self.scenario.repair is RepairKind.LIGHT:
            pause = p.light_repair.carbonation_pause_years
            resumed = carbonation_depth(k[:, None], (t_total - pause)[None, :], damp_age, damp_factor)
            in_pause = (self.years > repair) & (self.years < repair + pause)
            after_pause = self.years >= repair + pause
            series = np.where(after_pause[None, :], resumed, unrepaired)
            return np.where(in_pause[None, :], depth_at_repair[:, None], series)

        reduced_k = k * (1 - p.full_repair.carbonation_k_reduction)
        equivalent_age = np.where(
            reduced_k > 0,
            carbonation_inverse_age(reduced_k, depth_at_repair, damp_age, damp_factor),
            np.inf,
        )
        continued = carbonation_depth(
            reduced_k[:, None],
            equivalent_age[:, None] + (self.years - repair)[None, :],
            damp_age,
            damp_factor,
        )
        return np.where((self.years > repair)[None, :], continued, unrepaired)

    def bearing_series(self, bearing_rate: np.ndarray) -> np.ndarray:
        p = self.parameters
        sat_year = p.frost.critical_saturation_year
        factor = edge_factor(p)
        t_frost = np.maximum(0, self.years - sat_year).astype(float)
        unrepaired = effective_bearing(p.bearing.original_depth_mm, bearing_rate[:, None], t_frost[None, :], factor)
        if self.scenario.repair is RepairKind.NONE:
            return unrepaired

        repair = self.repair_year
        loss_before = factor * bearing_rate * (repair - sat_year)
        loss_after = factor * (bearing_rate * (1 - self._rate_reduction()))[:, None] * (self.years - repair)[None, :]
        repaired = np.maximum(0.0, p.bearing.original_depth_mm - loss_before[:, None] - loss_after)
        return np.where((self.years > repair)[None, :], repaired, unrepaired)

    def evaluate_trials(self, k, cover, frost_rate, bearing_rate) -> ScenarioAccumulator:
        """Evaluate a batch of sampled trials over every simulated year."""
        p = self.parameters
        k = np.asarray(k, dtype=float)
        cover = np.asarray(cover, dtype=float)
        frost_rate = np.asarray(frost_rate, dtype=float)
        bearing_rate = np.asarray(bearing_rate, dtype=float)

        with np.errstate(invalid="ignore"):
            frost = self.frost_series(frost_rate)
            carbonation = self.carbonation_series(k)
            bearing = self.bearing_series(bearing_rate)

            # Cover can be 0 for surface rebars
            corroded = carbonation >= np.maximum(0.0, cover)[:, None]
            collapsed = bearing < p.bearing.critical_min_mm
            critical_frost = frost > p.frost.critical_damage_depth_mm

        return ScenarioAccumulator(
            carbonation=carbonation,
            frost=frost,
            bearing=bearing,
            corrosion_counts=corroded.sum(axis=0),
            collapse_counts=collapsed.sum(axis=0),
            corrosion_years=_first_event_years(corroded, self.years),
            collapse_years=_first_event_years(collapsed, self.years),
            critical_frost_years=_first_event_years(critical_frost, self.years),
        )

    def simulate(self, num_trials: int, calibrator: Calibrator) -> ScenarioAccumulator:
        accumulator = ScenarioAccumulator.empty(len(self.years))
        for start in range(0, num_trials, self.chunk_size):
            size = min(self.chunk_size, num_trials - start)
            chunk = self.evaluate_trials(*self.sample_trials(calibrator, size))
            accumulator = accumulator.merge(chunk)
        return accumulator

    def run(self, num_trials: Optional[int] = None) -> ScenarioResult:
        """
        Run the scenario.

        Args:
            num_trials: Number of trials, defaults to parameters.monte_carlo_iterations

        Returns:
            ScenarioResult with per-year statistics, event distributions and
            calibration diagnostics.
        """
        p = self.parameters
        if num_trials is None:
            num_trials = p.monte_carlo_iterations
        num_trials = max(0, int(num_trials))

        logger.info(
            "Scenario %s (%s): %s trials over %s years",
            self.scenario.scenario_id,
            self.scenario.name,
            num_trials,
            len(self.years),
        )
        calibrator = Calibrator(scenario_calibration_target(p), self.random_variate)
        accumulator = self.simulate(num_trials, calibrator)
        calibrator.log_exhaustion(f"Scenario {self.scenario.scenario_id}")
        return self.aggregate(accumulator, calibrator)

    def aggregate(self, accumulator: ScenarioAccumulator, calibrator: Optional[Calibrator] = None) -> ScenarioResult:
        p = self.parameters
        stats = build_year_statistics(
            self.years,
            accumulator.carbonation,
            accumulator.frost,
            accumulator.bearing,
            accumulator.corrosion_counts,
            accumulator.collapse_counts,
            accumulator.num_trials,
        )
        distributions = ScenarioDistributions(
            corrosion_year=percentile_summary(accumulator.corrosion_years),
            collapse_year=percentile_summary(accumulator.collapse_years),
            critical_frost_year=percentile_summary(accumulator.critical_frost_years),
            corrosion_year_histogram=histogram(accumulator.corrosion_years, p.start_year, p.end_year),
            collapse_year_histogram=histogram(accumulator.collapse_years, p.start_year, p.end_year),
            critical_frost_year_histogram=histogram(accumulator.critical_frost_years, p.start_year, p.end_year),
        )
        return ScenarioResult(
            scenario_id=self.scenario.scenario_id,
            name=self.scenario.name,
            stats=stats,
            distributions=distributions,
            calibration=calibrator.diagnostics() if calibrator is not None else None,
        )
