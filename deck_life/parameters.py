"""
PURPOSE: Immutable simulation parameters for the deck service-life engine.

The defaults are the calibrated values for a 1974 TT-slab courtyard deck:
carbonation coefficients fitted to the 2024 thin-section measurements with the
two-phase dampened model, frost and bearing rates fitted to the 2006 and 2024
condition surveys.

All models are frozen. The engine deep-copies the object it receives and
never mutates it; use ``model_copy(update=...)`` or ``with_overrides`` to
derive a variant.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from deck_life.config import get_default_num_runs


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CoverDistribution(_FrozenModel):
    mean: float = Field(..., description="Mean concrete cover (mm).")
    std: float = Field(..., description="Standard deviation of the concrete cover (mm).")


class CarbonationParameters(_FrozenModel):
    k_columns: float = Field(default=1.88, description="Carbonation coefficient for columns (mm/sqrt(year)).")
    k_ledger_beams: float = Field(default=1.78, description="Carbonation coefficient for ledger beams (mm/sqrt(year)).")
    k_tt_slabs: float = Field(default=1.88, description="Carbonation coefficient for TT-slabs (mm/sqrt(year)).")
    k_cov: float = Field(default=0.20, description="Coefficient of variation of every k.")
    dampening_age: Optional[float] = Field(
        default=30.0,
        description="Age (years) after which the carbonation rate drops. None disables dampening.",
    )
    dampening_factor: Optional[float] = Field(
        default=0.2,
        description="Fraction of the rate kept after the dampening age. None or >= 1 disables dampening.",
    )


class ConcreteCoverParameters(_FrozenModel):
    columns: CoverDistribution = CoverDistribution(mean=36.5, std=8.0)
    ledger_beams: CoverDistribution = CoverDistribution(mean=41.0, std=10.0)
    tt_slab_flange: CoverDistribution = CoverDistribution(mean=30.0, std=8.0)
    tt_rib_underside: CoverDistribution = CoverDistribution(mean=20.0, std=5.5)
    surface_rebar_fraction: float = Field(
        default=0.02,
        description="Probability that a TT-rib rebar was cast at zero cover (manufacturing defect).",
    )


class FrostParameters(_FrozenModel):
    base_rate_mm_per_year: float = 0.20
    acceleration_factor: float = Field(default=1.00, description="1.0 = linear accumulation.")
    critical_saturation_year: int = Field(default=1975, description="Year the waterproofing started leaking.")
    rate_cov: float = 0.45
    critical_damage_depth_mm: float = 30.0


class BearingParameters(_FrozenModel):
    original_depth_mm: float = Field(default=100.0, description="TT-slab bearing length on the ledger beam.")
    critical_min_mm: float = Field(default=75.0, description="Minimum admissible bearing length.")
    edge_factor: float = Field(default=1.5, description="Edge loss multiplier (1 = one edge, 2 = both edges).")
    deterioration_rate_mm_per_year: float = 0.10
    rate_cov: float = 0.25


class LightRepairParameters(_FrozenModel):
    frost_rate_reduction: float = 0.50
    carbonation_pause_years: float = 5.0
    cost_total_min_eur: float = 200000.0
    cost_total_max_eur: float = 350000.0


class FullRepairParameters(_FrozenModel):
    frost_rate_reduction: float = 0.95
    carbonation_k_reduction: float = 0.30
    extended_life_years: float = 50.0
    cost_eur_per_m2: float = 800.0


class ObservedCorrosion(_FrozenModel):
    scenario: Optional[float] = Field(default=0.01, description="Observed incidence for the scenario runs (TT-rib).")
    columns: Optional[float] = 0.01
    ledger_beams: Optional[float] = 0.01
    tt_slab_flange: Optional[float] = 0.005
    tt_rib_underside: Optional[float] = 0.01


class BayesianConditioningParameters(_FrozenModel):
    enabled: bool = True
    observation_year: Optional[int] = 2024
    observed_corrosion: Optional[ObservedCorrosion] = ObservedCorrosion()


class SimulationParameters(_FrozenModel):
    """Complete input of one simulation run."""

    monte_carlo_iterations: int = Field(default_factory=get_default_num_runs, ge=0)
    carbonation: CarbonationParameters = CarbonationParameters()
    concrete_cover: ConcreteCoverParameters = ConcreteCoverParameters()
    frost: FrostParameters = FrostParameters()
    bearing: BearingParameters = BearingParameters()
    light_repair: LightRepairParameters = LightRepairParameters()
    full_repair: FullRepairParameters = FullRepairParameters()
    bayesian_conditioning: BayesianConditioningParameters = BayesianConditioningParameters()
    start_year: int = 1974
    end_year: int = 2126
    current_year: int = Field(default=2026, description="Repair year for scenarios B, C and D.")

    def observation_age(self) -> float:
        """Years from construction to the field observation, 0 when conditioning is off."""
        bc = self.bayesian_conditioning
        if not bc.enabled or not bc.observation_year:
            return 0
        return bc.observation_year - self.start_year

    def with_overrides(self, overrides: dict[str, Any]) -> "SimulationParameters":
        """Return a new instance with nested overrides applied, e.g. {"frost": {"rate_cov": 0.3}}."""
        data = self.model_dump()
        _deep_update(data, overrides)
        return SimulationParameters.model_validate(data)


def _deep_update(target: dict, updates: dict) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_update(target[key], value)
        else:
            target[key] = value


DEFAULT_PARAMETERS = SimulationParameters()
