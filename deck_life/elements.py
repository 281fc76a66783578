"""
PURPOSE: Corrosion-initiation year distributions per structural element.

Independent of the repair scenarios: every element is modeled without repair
effects. Each element gets its own calibrator (its own prior and observed
incidence) and N trials, each producing one corrosion-initiation year from
the inverse carbonation model rather than a year-by-year walk.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from deck_life.calibration import CalibrationTarget, Calibrator
from deck_life.deterioration import carbonation_reaches_rebar
from deck_life.distributions import RandomVariate
from deck_life.outputs import ElementResult, histogram, percentile_summary
from deck_life.parameters import CoverDistribution, SimulationParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructuralElement:
    element_id: str
    name: str
    k: float
    cover: CoverDistribution
    surface_rebar_fraction: float
    observed_rate: Optional[float]


def structural_elements(parameters: SimulationParameters) -> List[StructuralElement]:
    """Columns, ledger beams, TT-slab flange and TT-slab rib underside."""
    carbonation = parameters.carbonation
    cover = parameters.concrete_cover
    observed = parameters.bayesian_conditioning.observed_corrosion

    def observed_rate(element_id):
        return getattr(observed, element_id) if observed is not None else None

    return [
        StructuralElement("columns", "Columns", carbonation.k_columns, cover.columns, 0.0,
                          observed_rate("columns")),
        StructuralElement("ledger_beams", "Ledger beams", carbonation.k_ledger_beams, cover.ledger_beams, 0.0,
                          observed_rate("ledger_beams")),
        StructuralElement("tt_slab_flange", "TT-slab (flange)", carbonation.k_tt_slabs, cover.tt_slab_flange, 0.0,
                          observed_rate("tt_slab_flange")),
        # Only the rib underside has zero-cover surface rebars
        StructuralElement("tt_rib_underside", "TT-slab (rib)", carbonation.k_tt_slabs, cover.tt_rib_underside,
                          cover.surface_rebar_fraction or 0.0, observed_rate("tt_rib_underside")),
    ]


class ElementAnalyzer:
    """Monte Carlo estimate of the corrosion-initiation year of each structural element."""

    def __init__(self, parameters: SimulationParameters, random_variate: Optional[RandomVariate] = None):
        self.parameters = parameters
        self.random_variate = random_variate or RandomVariate()

    def calibration_target(self, element: StructuralElement) -> CalibrationTarget:
        """
        Prior and field observation for one element.

        Elements are conditioned only when an observed-incidence table is
        given; without one the observation age is 0 and draws follow the prior.
        """
        p = self.parameters
        if p.bayesian_conditioning.observed_corrosion is None:
            observation_age = 0
        else:
            observation_age = p.observation_age()
        return CalibrationTarget(
            k_mean=element.k,
            k_cov=p.carbonation.k_cov,
            cover_mean=element.cover.mean,
            cover_std=element.cover.std,
            surface_rebar_fraction=element.surface_rebar_fraction,
            observation_age=observation_age,
            observed_rate=element.observed_rate,
            dampening_age=p.carbonation.dampening_age,
            dampening_factor=p.carbonation.dampening_factor,
        )

    def analyze_element(self, element: StructuralElement, num_trials: int) -> ElementResult:
        p = self.parameters
        calibrator = Calibrator(self.calibration_target(element), self.random_variate)

        corrosion_years = []
        for _ in range(num_trials):
            k, cover = calibrator.draw()
            # Draws with a negative cover are dropped
            if cover >= 0 and k > 0:
                years_to_corrosion = carbonation_reaches_rebar(
                    k, max(0.0, cover), p.carbonation.dampening_age, p.carbonation.dampening_factor
                )
                corrosion_years.append(p.start_year + years_to_corrosion)

        calibrator.log_exhaustion(f"Element {element.element_id}")
        logger.debug("Element %s: %s of %s trials produced an initiation year",
                     element.element_id, len(corrosion_years), num_trials)
        return ElementResult(
            element_id=element.element_id,
            corrosion_year=percentile_summary(corrosion_years),
            histogram=histogram(corrosion_years, p.start_year, p.end_year),
            calibration=calibrator.diagnostics(),
        )

    def run(self, num_trials: Optional[int] = None) -> Dict[str, ElementResult]:
        if num_trials is None:
            num_trials = self.parameters.monte_carlo_iterations
        num_trials = max(0, int(num_trials))
        logger.info("Element analysis: %s trials per element", num_trials)
        return {
            element.element_id: self.analyze_element(element, num_trials)
            for element in structural_elements(self.parameters)
        }
