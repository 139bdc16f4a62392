"""Engine configuration and its validation rules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Optional

from allocator.domain.errors import ConfigurationError
from allocator.domain.models import Category
from allocator.utils.config import Settings


@dataclass(frozen=True)
class ScoreWeights:
    skill: float = 0.40
    location: float = 0.25
    sector: float = 0.25
    qualification: float = 0.10

    def as_dict(self) -> dict[str, float]:
        return {
            "skill": self.skill,
            "location": self.location,
            "sector": self.sector,
            "qualification": self.qualification,
        }


@dataclass(frozen=True)
class FairnessPolicy:
    """Boost magnitudes in score points. The penalty is stored as a positive magnitude."""

    enabled: bool = True
    sc_boost: int = 8
    st_boost: int = 8
    obc_boost: int = 5
    ews_boost: int = 3
    general_boost: int = 0
    rural_boost: int = 4
    past_participation_penalty: int = 5
    gender_balance_boost: int = 0

    def category_boost(self, category: Category) -> int:
        return {
            Category.SC: self.sc_boost,
            Category.ST: self.st_boost,
            Category.OBC: self.obc_boost,
            Category.EWS: self.ews_boost,
            Category.GENERAL: self.general_boost,
        }[category]

    @property
    def gender_balance_enabled(self) -> bool:
        return self.enabled and self.gender_balance_boost > 0


@dataclass(frozen=True)
class EngineConfig:
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    fairness: FairnessPolicy = field(default_factory=FairnessPolicy)
    eligibility_floor: int = 0
    scoring_workers: int = 1
    scoring_shard_size: int = 250
    cancellation_check_interval: int = 512
    high_score_threshold: int = 80
    histogram_bin_width: int = 10


def build_engine_config(
    settings: Settings,
    *,
    eligibility_floor: Optional[int] = None,
    gender_balance_boost: Optional[int] = None,
    fairness_enabled: bool = True,
) -> EngineConfig:
    """Resolve settings plus per-run overrides into an engine config."""
    fairness = FairnessPolicy(
        enabled=fairness_enabled,
        sc_boost=settings.fairness_boost_sc,
        st_boost=settings.fairness_boost_st,
        obc_boost=settings.fairness_boost_obc,
        ews_boost=settings.fairness_boost_ews,
        general_boost=settings.fairness_boost_general,
        rural_boost=settings.fairness_boost_rural,
        past_participation_penalty=settings.fairness_past_participation_penalty,
        gender_balance_boost=(
            gender_balance_boost
            if gender_balance_boost is not None
            else settings.fairness_gender_balance_boost
        ),
    )
    return EngineConfig(
        weights=ScoreWeights(
            skill=settings.score_weight_skill,
            location=settings.score_weight_location,
            sector=settings.score_weight_sector,
            qualification=settings.score_weight_qualification,
        ),
        fairness=fairness,
        eligibility_floor=(
            eligibility_floor
            if eligibility_floor is not None
            else settings.allocation_eligibility_floor
        ),
        scoring_workers=settings.scoring_workers,
        scoring_shard_size=settings.scoring_shard_size,
        cancellation_check_interval=settings.cancellation_check_interval,
        high_score_threshold=settings.statistics_high_score_threshold,
        histogram_bin_width=settings.statistics_histogram_bin_width,
    )


def without_fairness(config: EngineConfig) -> EngineConfig:
    return replace(config, fairness=replace(config.fairness, enabled=False))


def validate_engine_config(config: EngineConfig) -> None:
    weights = config.weights.as_dict()
    for name, value in weights.items():
        if value < 0.0:
            raise ConfigurationError(f"score weight '{name}' must be >= 0")
    if not math.isclose(sum(weights.values()), 1.0, abs_tol=1e-6):
        raise ConfigurationError("score weights must sum to 1.0")

    fairness = config.fairness
    boosts = {
        "sc_boost": fairness.sc_boost,
        "st_boost": fairness.st_boost,
        "obc_boost": fairness.obc_boost,
        "ews_boost": fairness.ews_boost,
        "general_boost": fairness.general_boost,
        "rural_boost": fairness.rural_boost,
        "past_participation_penalty": fairness.past_participation_penalty,
        "gender_balance_boost": fairness.gender_balance_boost,
    }
    for name, value in boosts.items():
        if value < 0:
            raise ConfigurationError(f"{name} must be >= 0")
        if value > 100:
            raise ConfigurationError(f"{name} must be <= 100")

    if not 0 <= config.eligibility_floor <= 100:
        raise ConfigurationError("eligibility_floor must be between 0 and 100")
    if config.scoring_workers <= 0:
        raise ConfigurationError("scoring_workers must be > 0")
    if config.scoring_shard_size <= 0:
        raise ConfigurationError("scoring_shard_size must be > 0")
    if config.cancellation_check_interval <= 0:
        raise ConfigurationError("cancellation_check_interval must be > 0")
    if not 0 <= config.high_score_threshold <= 100:
        raise ConfigurationError("high_score_threshold must be between 0 and 100")
    if not 1 <= config.histogram_bin_width <= 100:
        raise ConfigurationError("histogram_bin_width must be between 1 and 100")
