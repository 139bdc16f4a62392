"""Baseline vs fairness-adjusted comparison runs.

Both runs are computed in memory from the same normalized snapshot; the only
difference is whether fairness boosts participate in ranking. The output feeds
the dashboard's fairness-boost comparison view.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Event
from typing import Optional, Sequence
from uuid import uuid4

import numpy as np

from allocator.domain.constraints import without_fairness
from allocator.domain.models import Candidate, Category, Internship
from allocator.services.matching_service import AllocationEngineService, AllocationReport
from allocator.utils.config import Settings, get_settings
from allocator.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ComparisonMetrics:
    allocated: int
    objective_value: int
    average_base_score: float
    average_final_score: float
    fairness_index: float
    category_allocations: dict[str, int]
    category_average_final_score: dict[str, float]

    def to_api_dict(self) -> dict[str, object]:
        return {
            "allocated": self.allocated,
            "objective_value": self.objective_value,
            "average_base_score": self.average_base_score,
            "average_final_score": self.average_final_score,
            "fairness_index": self.fairness_index,
            "category_allocations": dict(self.category_allocations),
            "category_average_final_score": dict(self.category_average_final_score),
        }


def _mean(values: Sequence[int]) -> float:
    return round(float(np.mean(values)), 2) if values else 0.0


class FairnessComparisonService:
    """Runs the engine with and without fairness boosts on the same snapshot."""

    def __init__(
        self,
        engine: Optional[AllocationEngineService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._engine = engine or AllocationEngineService(settings=self._settings)

    def compute_metrics(self, report: AllocationReport) -> ComparisonMetrics:
        assignments = report.result.assignments
        category_average_final_score: dict[str, float] = {}
        for category in Category:
            scores = [item.final_score for item in assignments if item.category is category]
            if scores:
                category_average_final_score[category.value] = _mean(scores)
        return ComparisonMetrics(
            allocated=len(assignments),
            objective_value=report.result.objective_value,
            average_base_score=_mean([item.base_score for item in assignments]),
            average_final_score=_mean([item.final_score for item in assignments]),
            fairness_index=report.statistics.fairness_index,
            category_allocations=dict(report.statistics.category_distribution),
            category_average_final_score=category_average_final_score,
        )

    def compare_results(
        self,
        baseline: ComparisonMetrics,
        adjusted: ComparisonMetrics,
    ) -> dict[str, object]:
        return {
            "allocated_change": adjusted.allocated - baseline.allocated,
            "average_base_score_change": round(
                adjusted.average_base_score - baseline.average_base_score, 2
            ),
            "fairness_change": adjusted.fairness_index - baseline.fairness_index,
            "category_allocation_change": {
                category.value: (
                    adjusted.category_allocations.get(category.value, 0)
                    - baseline.category_allocations.get(category.value, 0)
                )
                for category in Category
            },
        }

    def compare(
        self,
        candidates: Sequence[Candidate],
        internships: Sequence[Internship],
        *,
        eligibility_floor: Optional[int] = None,
        gender_balance_boost: Optional[int] = None,
        cancel_event: Optional[Event] = None,
    ) -> dict[str, dict[str, object]]:
        run_id = str(uuid4())
        adjusted_config = self._engine.build_config(
            eligibility_floor=eligibility_floor,
            gender_balance_boost=gender_balance_boost,
        )
        baseline_config = without_fairness(adjusted_config)

        baseline_report = self._engine.run_entities(
            candidates,
            internships,
            config=baseline_config,
            cancel_event=cancel_event,
        )
        adjusted_report = self._engine.run_entities(
            candidates,
            internships,
            config=adjusted_config,
            cancel_event=cancel_event,
        )
        baseline_metrics = self.compute_metrics(baseline_report)
        adjusted_metrics = self.compute_metrics(adjusted_report)
        delta = self.compare_results(baseline_metrics, adjusted_metrics)

        logger.info(
            (
                "Fairness comparison completed | run_id=%s | baseline_allocated=%s | "
                "adjusted_allocated=%s | fairness_change=%.6f"
            ),
            run_id,
            baseline_metrics.allocated,
            adjusted_metrics.allocated,
            float(delta["fairness_change"]),
        )
        return {
            "baseline": baseline_metrics.to_api_dict(),
            "adjusted": adjusted_metrics.to_api_dict(),
            "delta": delta,
        }
