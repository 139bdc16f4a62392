"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_ENV_PREFIX = "ALLOCATOR_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{_ENV_PREFIX}{name}", default)


def _env_int(name: str, default: int) -> int:
    return int(_env(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(_env(name, str(default)))


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str

    score_weight_skill: float
    score_weight_location: float
    score_weight_sector: float
    score_weight_qualification: float

    fairness_boost_sc: int
    fairness_boost_st: int
    fairness_boost_obc: int
    fairness_boost_ews: int
    fairness_boost_general: int
    fairness_boost_rural: int
    fairness_past_participation_penalty: int
    fairness_gender_balance_boost: int

    allocation_eligibility_floor: int
    scoring_workers: int
    scoring_shard_size: int
    cancellation_check_interval: int

    statistics_high_score_threshold: int
    statistics_histogram_bin_width: int

    benchmark_solver_max_time_seconds: int
    benchmark_solver_workers: int
    benchmark_solver_random_seed: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests call ``get_settings.cache_clear()``."""
    return Settings(
        app_name=_env("APP_NAME", "Fair Internship Allocation Engine"),
        app_version=_env("APP_VERSION", "1.0.0"),
        log_level=_env("LOG_LEVEL", "INFO"),
        score_weight_skill=_env_float("SCORE_WEIGHT_SKILL", 0.40),
        score_weight_location=_env_float("SCORE_WEIGHT_LOCATION", 0.25),
        score_weight_sector=_env_float("SCORE_WEIGHT_SECTOR", 0.25),
        score_weight_qualification=_env_float("SCORE_WEIGHT_QUALIFICATION", 0.10),
        fairness_boost_sc=_env_int("FAIRNESS_BOOST_SC", 8),
        fairness_boost_st=_env_int("FAIRNESS_BOOST_ST", 8),
        fairness_boost_obc=_env_int("FAIRNESS_BOOST_OBC", 5),
        fairness_boost_ews=_env_int("FAIRNESS_BOOST_EWS", 3),
        fairness_boost_general=_env_int("FAIRNESS_BOOST_GENERAL", 0),
        fairness_boost_rural=_env_int("FAIRNESS_BOOST_RURAL", 4),
        fairness_past_participation_penalty=_env_int("FAIRNESS_PAST_PARTICIPATION_PENALTY", 5),
        fairness_gender_balance_boost=_env_int("FAIRNESS_GENDER_BALANCE_BOOST", 0),
        allocation_eligibility_floor=_env_int("ELIGIBILITY_FLOOR", 0),
        scoring_workers=_env_int("SCORING_WORKERS", 4),
        scoring_shard_size=_env_int("SCORING_SHARD_SIZE", 250),
        cancellation_check_interval=_env_int("CANCELLATION_CHECK_INTERVAL", 512),
        statistics_high_score_threshold=_env_int("HIGH_SCORE_THRESHOLD", 80),
        statistics_histogram_bin_width=_env_int("HISTOGRAM_BIN_WIDTH", 10),
        benchmark_solver_max_time_seconds=_env_int("BENCHMARK_SOLVER_MAX_TIME_SECONDS", 10),
        benchmark_solver_workers=_env_int("BENCHMARK_SOLVER_WORKERS", 2),
        benchmark_solver_random_seed=_env_int("BENCHMARK_SOLVER_RANDOM_SEED", 42),
    )
