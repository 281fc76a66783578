"""
Bayesian rejection sampling of (carbonation coefficient, concrete cover) pairs.

PURPOSE:
    The priors on k and cover can predict more depassivated rebars at the
    field observation year than the condition survey actually found. The
    calibrator estimates an acceptance probability q such that accepting an
    "already corroded at observation" draw only with probability q reproduces
    the observed incidence.

RESPONSIBILITIES:
    - Pilot-estimate the modeled incidence p_model at the observation age
    - Derive q from the odds ratio of observed vs. modeled incidence
    - Draw conditioned (k, cover) pairs with a bounded retry loop
    - Count draws where the retry cap was exhausted

    q is fixed once at construction and is read-only afterwards, so any
    number of trials can be drawn from one calibrator.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from deck_life.config import (
    DEFAULT_OBSERVED_CORROSION_RATE,
    MAX_REJECTION_ATTEMPTS,
    PILOT_SAMPLE_SIZE,
)
from deck_life.deterioration import carbonation_depth
from deck_life.distributions import RandomVariate
from deck_life.outputs import json_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationTarget:
    """Prior on (k, cover) for one structural element and the field observation to match."""

    k_mean: float
    k_cov: float
    cover_mean: float
    cover_std: float
    surface_rebar_fraction: float
    observation_age: float
    observed_rate: Optional[float]
    dampening_age: Optional[float] = None
    dampening_factor: Optional[float] = None

    @property
    def target_rate(self) -> float:
        """Observed incidence, falling back to the default for a missing or zero value."""
        return self.observed_rate or DEFAULT_OBSERVED_CORROSION_RATE


@dataclass
class CalibrationDiagnostics:
    model_rate: Optional[float]
    observed_rate: Optional[float]
    acceptance_probability: float
    observation_age: float
    exhausted_draws: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_rate": json_number(self.model_rate),
            "observed_rate": json_number(self.observed_rate),
            "acceptance_probability": json_number(self.acceptance_probability),
            "observation_age": self.observation_age,
            "exhausted_draws": self.exhausted_draws,
        }


def draw_prior(target: CalibrationTarget, random_variate: RandomVariate) -> Tuple[float, float]:
    """Draw an unconditioned (k, cover) pair; cover is 0 for a surface rebar."""
    k = random_variate.lognormal(target.k_mean, target.k_cov)
    if target.surface_rebar_fraction > 0 and random_variate.bernoulli(target.surface_rebar_fraction):
        cover = 0.0
    else:
        cover = random_variate.normal(target.cover_mean, target.cover_std)
    return k, cover


def corroded_at_observation(k: float, cover: float, target: CalibrationTarget) -> bool:
    depth = carbonation_depth(k, target.observation_age, target.dampening_age, target.dampening_factor)
    return depth >= max(0.0, cover)


def acceptance_probability(model_rate: float, observed_rate: float) -> float:
    """
    Odds-ratio correction q = p_obs (1 - p_model) / (p_model (1 - p_obs)), capped at 1.

    Returns 1.0 when the model does not over-predict the observation.
    """
    if model_rate > observed_rate and model_rate > 0:
        q = observed_rate * (1 - model_rate) / (model_rate * (1 - observed_rate))
        return min(q, 1.0)
    return 1.0


def estimate_model_rate(
    target: CalibrationTarget,
    random_variate: RandomVariate,
    pilot_size: int = PILOT_SAMPLE_SIZE,
) -> float:
    """Fraction of prior draws whose carbonation front has reached the rebar at the observation age."""
    corroded = 0
    for _ in range(pilot_size):
        k, cover = draw_prior(target, random_variate)
        if corroded_at_observation(k, cover, target):
            corroded += 1
    return corroded / pilot_size


class Calibrator:
    """
    Draws (k, cover) pairs conditioned on the observed corrosion incidence.

    When conditioning is inactive (observation age <= 0) the pilot step is
    skipped and every draw is accepted, i.e. draws follow the prior.
    """

    def __init__(
        self,
        target: CalibrationTarget,
        random_variate: RandomVariate,
        pilot_size: int = PILOT_SAMPLE_SIZE,
        max_attempts: int = MAX_REJECTION_ATTEMPTS,
    ):
        self.target = target
        self.random_variate = random_variate
        self.max_attempts = max_attempts
        self.exhausted_draws = 0
        self.model_rate = None
        self.q = 1.0

        if target.observation_age > 0:
            self.model_rate = estimate_model_rate(target, random_variate, pilot_size)
            self.q = acceptance_probability(self.model_rate, target.target_rate)
            logger.debug(
                "Calibration at age %s: p_model=%.4f p_obs=%.4f q=%.4f",
                target.observation_age,
                self.model_rate,
                target.target_rate,
                self.q,
            )

    @property
    def active(self) -> bool:
        return self.q < 1.0 and self.target.observation_age > 0

    def draw(self) -> Tuple[float, float]:
        """
        Draw a conditioned (k, cover) pair.

        A draw that is already corroded at the observation age is kept with
        probability q and re-drawn otherwise. After ``max_attempts`` attempts
        the last draw is returned as-is and counted in ``exhausted_draws``.
        """
        k, cover = draw_prior(self.target, self.random_variate)
        if not self.active:
            return k, cover
        for attempt in range(self.max_attempts):
            if attempt > 0:
                k, cover = draw_prior(self.target, self.random_variate)
            if corroded_at_observation(k, cover, self.target) and self.random_variate.uniform() > self.q:
                continue
            return k, cover
        self.exhausted_draws += 1
        return k, cover

    def diagnostics(self) -> CalibrationDiagnostics:
        return CalibrationDiagnostics(
            model_rate=self.model_rate,
            observed_rate=self.target.target_rate if self.target.observation_age > 0 else None,
            acceptance_probability=self.q,
            observation_age=self.target.observation_age,
            exhausted_draws=self.exhausted_draws,
        )

    def log_exhaustion(self, label: str) -> None:
        if self.exhausted_draws:
            logger.warning(
                "%s: rejection cap of %s attempts reached in %s draws; last draws accepted uncorrected",
                label,
                self.max_attempts,
                self.exhausted_draws,
            )
