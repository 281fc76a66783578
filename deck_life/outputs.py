"""
PURPOSE: Aggregate raw Monte Carlo samples into the simulation result set.

This module turns per-year sample pools and first-event year lists into
percentile summaries, histograms, per-year statistics, the cross-scenario
summary and plain-text headlines.

SRP/DRY: Single responsibility = aggregation and result formatting.
         No sampling, no deterioration physics.

Percentiles use nearest-rank indexing, sorted[floor(n * q)], not linear
interpolation. Downstream reports compare against numbers produced this way.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from deck_life.config import (
    CHECKPOINT_YEARS,
    COLLAPSE_MEDIAN_MIN_FRACTION,
    EVENT_MEDIAN_MIN_FRACTION,
    HISTOGRAM_BINS,
    PERCENTILE_LEVELS,
    get_headline_thresholds,
)


def json_number(value):
    """NaN and infinities are not valid JSON; serialize them as None."""
    if value is None:
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


@dataclass
class PercentileSummary:
    """Distributional summary of one sample set.

    Attributes:
        mean (float): Arithmetic mean.
        median (float): sorted[floor(n * 0.5)].
        p5, p25, p75, p95 (float): Nearest-rank percentiles.
        std (float): Population standard deviation.
        min, max (float): Extremes.
        n (int): Sample count. All other fields are NaN when n == 0.
    """
    mean: float
    median: float
    p5: float
    p25: float
    p75: float
    p95: float
    std: float
    min: float
    max: float
    n: int

    @classmethod
    def empty(cls) -> "PercentileSummary":
        nan = float("nan")
        return cls(mean=nan, median=nan, p5=nan, p25=nan, p75=nan, p95=nan, std=nan, min=nan, max=nan, n=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean": json_number(self.mean),
            "median": json_number(self.median),
            "p5": json_number(self.p5),
            "p25": json_number(self.p25),
            "p75": json_number(self.p75),
            "p95": json_number(self.p95),
            "std": json_number(self.std),
            "min": json_number(self.min),
            "max": json_number(self.max),
            "n": self.n,
        }


@dataclass
class Histogram:
    bins: List[float] = field(default_factory=list)
    counts: List[int] = field(default_factory=list)
    probs: List[float] = field(default_factory=list)
    edges: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bins": list(self.bins),
            "counts": list(self.counts),
            "probs": list(self.probs),
            "edges": list(self.edges),
        }


@dataclass
class YearStatistics:
    year: int
    carbonation: PercentileSummary
    frost: PercentileSummary
    bearing: PercentileSummary
    corrosion_probability: float
    collapse_probability: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "carbonation": self.carbonation.to_dict(),
            "frost": self.frost.to_dict(),
            "bearing": self.bearing.to_dict(),
            "corrosion_probability": json_number(self.corrosion_probability),
            "collapse_probability": json_number(self.collapse_probability),
        }


@dataclass
class ScenarioDistributions:
    """First-event year distributions of one scenario."""
    corrosion_year: PercentileSummary
    collapse_year: PercentileSummary
    critical_frost_year: PercentileSummary
    corrosion_year_histogram: Histogram
    collapse_year_histogram: Histogram
    critical_frost_year_histogram: Histogram

    def to_dict(self) -> Dict[str, Any]:
        return {
            "corrosion_year": self.corrosion_year.to_dict(),
            "collapse_year": self.collapse_year.to_dict(),
            "critical_frost_year": self.critical_frost_year.to_dict(),
            "corrosion_year_histogram": self.corrosion_year_histogram.to_dict(),
            "collapse_year_histogram": self.collapse_year_histogram.to_dict(),
            "critical_frost_year_histogram": self.critical_frost_year_histogram.to_dict(),
        }


@dataclass
class ScenarioResult:
    scenario_id: str
    name: str
    stats: List[YearStatistics]
    distributions: ScenarioDistributions
    calibration: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "stats": [s.to_dict() for s in self.stats],
            "distributions": self.distributions.to_dict(),
            "calibration": self.calibration.to_dict() if self.calibration is not None else None,
        }


@dataclass
class ElementResult:
    element_id: str
    corrosion_year: PercentileSummary
    histogram: Histogram
    calibration: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "corrosion_year": self.corrosion_year.to_dict(),
            "histogram": self.histogram.to_dict(),
            "calibration": self.calibration.to_dict() if self.calibration is not None else None,
        }


@dataclass
class ScenarioSummary:
    """Headline figures of one scenario for the report layer.

    Checkpoint probabilities are keyed by year; a year outside the simulated
    horizon maps to None.
    """
    name: str
    corrosion_initiation_year: PercentileSummary
    collapse_risk_year: PercentileSummary
    critical_frost_year: PercentileSummary
    collapse_probability: Dict[int, Optional[float]]
    corrosion_probability: Dict[int, Optional[float]]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "corrosion_initiation_year": self.corrosion_initiation_year.to_dict(),
            "collapse_risk_year": self.collapse_risk_year.to_dict(),
            "critical_frost_year": self.critical_frost_year.to_dict(),
        }
        for year, value in self.collapse_probability.items():
            data[f"collapse_prob_{year}"] = json_number(value)
        for year, value in self.corrosion_probability.items():
            data[f"corrosion_prob_{year}"] = json_number(value)
        return data


@dataclass
class SimulationResult:
    years: List[int]
    scenarios: Dict[str, ScenarioResult]
    element_analysis: Dict[str, ElementResult]
    summary: Dict[str, ScenarioSummary]
    parameters: Any = None
    random_seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert results to dictionary for JSON serialization."""
        return {
            "random_seed": self.random_seed,
            "years": list(self.years),
            "scenarios": {k: v.to_dict() for k, v in self.scenarios.items()},
            "element_analysis": {k: v.to_dict() for k, v in self.element_analysis.items()},
            "summary": {k: v.to_dict() for k, v in self.summary.items()},
            "parameters": self.parameters.model_dump(mode="json") if self.parameters is not None else None,
        }


def percentile_summary(samples: Sequence[float]) -> PercentileSummary:
    """
    Summarize a sample set with nearest-rank percentiles.

    Args:
        samples: Any sequence or numpy array of floats.

    Returns:
        PercentileSummary; the empty summary for an empty input.
    """
    values = np.sort(np.asarray(samples, dtype=float).ravel())
    n = values.size
    if n == 0:
        return PercentileSummary.empty()

    with np.errstate(invalid="ignore", over="ignore"):
        mean = float(np.sum(values) / n)
        std = float(np.sqrt(np.sum((values - mean) ** 2) / n))

    picks = {name: float(values[math.floor(n * q)]) for name, q in PERCENTILE_LEVELS.items()}
    return PercentileSummary(
        mean=mean,
        median=picks["median"],
        p5=picks["p5"],
        p25=picks["p25"],
        p75=picks["p75"],
        p95=picks["p95"],
        std=std,
        min=float(values[0]),
        max=float(values[-1]),
        n=int(n),
    )


def histogram(samples: Sequence[float], min_value: float, max_value: float, bins: int = HISTOGRAM_BINS) -> Histogram:
    """
    Fixed-width histogram over [min_value, max_value].

    Values outside the range (including infinities) are counted in the
    boundary bins. Probabilities are counts divided by the sample count.
    A degenerate range (max_value <= min_value) puts every sample in the
    first bin.
    """
    values = np.asarray(samples, dtype=float).ravel()
    total = values.size
    if total == 0:
        return Histogram()

    bin_width = (max_value - min_value) / bins
    edges = [min_value + i * bin_width for i in range(bins + 1)]
    centers = [(edges[i] + edges[i + 1]) / 2 for i in range(bins)]

    values = values[~np.isnan(values)]
    if bin_width > 0:
        with np.errstate(invalid="ignore"):
            idx = np.clip(np.floor((values - min_value) / bin_width), 0, bins - 1).astype(int)
    else:
        idx = np.zeros(values.size, dtype=int)
    counts = np.bincount(idx, minlength=bins)[:bins]

    return Histogram(
        bins=centers,
        counts=[int(c) for c in counts],
        probs=[float(c) / total for c in counts],
        edges=edges,
    )


def build_year_statistics(
    years: Sequence[int],
    carbonation: np.ndarray,
    frost: np.ndarray,
    bearing: np.ndarray,
    corrosion_counts: np.ndarray,
    collapse_counts: np.ndarray,
    num_trials: int,
) -> List[YearStatistics]:
    """
    Per-year statistics from (trials x years) sample matrices and per-year indicator counts.

    Probabilities are NaN when num_trials is 0.
    """
    stats = []
    for yi, year in enumerate(years):
        if num_trials > 0:
            corrosion_probability = float(corrosion_counts[yi]) / num_trials
            collapse_probability = float(collapse_counts[yi]) / num_trials
        else:
            corrosion_probability = float("nan")
            collapse_probability = float("nan")
        stats.append(
            YearStatistics(
                year=int(year),
                carbonation=percentile_summary(carbonation[:, yi]),
                frost=percentile_summary(frost[:, yi]),
                bearing=percentile_summary(bearing[:, yi]),
                corrosion_probability=corrosion_probability,
                collapse_probability=collapse_probability,
            )
        )
    return stats


def probability_at_year(
    years: Sequence[int], stats: Sequence[YearStatistics], target_year: int, field_name: str
) -> Optional[float]:
    """Direct year-index lookup; None when the year is outside the horizon."""
    try:
        idx = list(years).index(target_year)
    except ValueError:
        return None
    return getattr(stats[idx], field_name)


def build_summary(
    years: Sequence[int],
    scenarios: Dict[str, ScenarioResult],
    checkpoint_years: Sequence[int] = CHECKPOINT_YEARS,
) -> Dict[str, ScenarioSummary]:
    """Cross-scenario summary: event distributions plus checkpoint probabilities."""
    summary = {}
    for scenario_id, result in scenarios.items():
        summary[scenario_id] = ScenarioSummary(
            name=result.name,
            corrosion_initiation_year=result.distributions.corrosion_year,
            collapse_risk_year=result.distributions.collapse_year,
            critical_frost_year=result.distributions.critical_frost_year,
            collapse_probability={
                year: probability_at_year(years, result.stats, year, "collapse_probability")
                for year in checkpoint_years
            },
            corrosion_probability={
                year: probability_at_year(years, result.stats, year, "corrosion_probability")
                for year in checkpoint_years
            },
        )
    return summary


@dataclass
class ScenarioHeadline:
    """Plain-text headline figures for one scenario."""
    scenario_id: str
    name: str
    collapse_year: str
    corrosion_year: str
    critical_frost_year: str
    collapse_interval: str
    narrative: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario_id": self.scenario_id,
            "name": self.name,
            "collapse_year": self.collapse_year,
            "corrosion_year": self.corrosion_year,
            "critical_frost_year": self.critical_frost_year,
            "collapse_interval": self.collapse_interval,
            "narrative": self.narrative,
        }


class HeadlineFormatter:
    """
    Formats the cross-scenario summary into headline strings.

    A median event year is only meaningful when enough trials experienced the
    event:
    - collapse (bearing threshold): at least 50% of trials
    - corrosion initiation, critical frost: at least 10% of trials
    Below the threshold the headline reads "> end_year", or "no risk" when
    no trial experienced the event at all.
    """

    def __init__(
        self,
        num_trials: int,
        end_year: int,
        collapse_min_fraction: float = COLLAPSE_MEDIAN_MIN_FRACTION,
        event_min_fraction: float = EVENT_MEDIAN_MIN_FRACTION,
    ):
        self.num_trials = num_trials
        self.end_year = end_year
        self.collapse_min_fraction = collapse_min_fraction
        self.event_min_fraction = event_min_fraction

    def event_year(self, summary: PercentileSummary, min_fraction: float) -> str:
        if math.isnan(summary.median) or summary.n < self.num_trials * min_fraction:
            return f"> {self.end_year}" if summary.n > 0 else "no risk"
        return str(round(summary.median))

    def collapse_interval(self, summary: PercentileSummary) -> str:
        if summary.n < self.num_trials * self.event_min_fraction:
            share = summary.n / self.num_trials * 100 if self.num_trials else 0.0
            return f"{share:.1f}% of iterations"
        if not math.isnan(summary.p5):
            return f"{round(summary.p5)} - {round(summary.p95)}"
        return "N/A"

    def format(self, scenario_id: str, summary: ScenarioSummary) -> ScenarioHeadline:
        collapse_year = self.event_year(summary.collapse_risk_year, self.collapse_min_fraction)
        corrosion_year = self.event_year(summary.corrosion_initiation_year, self.event_min_fraction)
        frost_year = self.event_year(summary.critical_frost_year, self.event_min_fraction)
        interval = self.collapse_interval(summary.collapse_risk_year)

        narrative = f"Scenario {scenario_id} ({summary.name}). "
        narrative += f"Bearing threshold crossed: {collapse_year} ({interval}). "
        narrative += f"Corrosion initiation: {corrosion_year}. "
        narrative += f"Critical frost damage: {frost_year}."
        checkpoints = [
            f"{year}: {value * 100:.1f}%"
            for year, value in summary.collapse_probability.items()
            if value is not None and not math.isnan(value)
        ]
        if checkpoints:
            narrative += " Collapse probability by " + ", ".join(checkpoints) + "."

        return ScenarioHeadline(
            scenario_id=scenario_id,
            name=summary.name,
            collapse_year=collapse_year,
            corrosion_year=corrosion_year,
            critical_frost_year=frost_year,
            collapse_interval=interval,
            narrative=narrative,
        )


def format_headlines(summary: Dict[str, ScenarioSummary], num_trials: int, end_year: int) -> Dict[str, ScenarioHeadline]:
    thresholds = get_headline_thresholds()
    formatter = HeadlineFormatter(
        num_trials=num_trials,
        end_year=end_year,
        collapse_min_fraction=thresholds["collapse"],
        event_min_fraction=thresholds["event"],
    )
    return {scenario_id: formatter.format(scenario_id, s) for scenario_id, s in summary.items()}
