"""Reason strings for placements and run-level statistics."""

from __future__ import annotations

from collections import Counter
from fractions import Fraction
from typing import Iterable, Sequence

import numpy as np

from allocator.domain.constraints import EngineConfig
from allocator.domain.models import (
    Area,
    Candidate,
    Category,
    Gender,
    MATCH_COMPONENTS,
    RunResult,
    RunStatistics,
    ScoreContribution,
)


FALLBACK_REASON = "Assigned from remaining capacity as a low-compatibility fallback"
UNSPECIFIED_GENDER = "Unspecified"

_COMPONENT_ORDER = ("skill", "location", "sector", "qualification", "category", "area", "gender")
_MATCH_NOUNS = {
    "skill": "skill",
    "location": "location",
    "sector": "sector interest",
    "qualification": "qualification",
}
_BOOST_NOUNS = {
    "category": "category-based",
    "area": "rural-area",
    "gender": "gender-balance",
}


def _capitalize(sentence: str) -> str:
    return sentence[:1].upper() + sentence[1:]


def dominant_contributions(
    contributions: Iterable[ScoreContribution],
    limit: int = 2,
) -> list[ScoreContribution]:
    """Largest positive contributions, ties broken by a fixed component order."""
    positive = [
        contribution
        for contribution in contributions
        if contribution.component in _COMPONENT_ORDER and round(contribution.points, 6) > 0
    ]
    positive.sort(
        key=lambda contribution: (
            -contribution.points,
            _COMPONENT_ORDER.index(contribution.component),
        )
    )
    return positive[:limit]


def build_reason(contributions: Iterable[ScoreContribution]) -> str:
    top = dominant_contributions(contributions)
    if not top:
        return FALLBACK_REASON

    first = top[0].component
    second = top[1].component if len(top) > 1 else None

    if first in MATCH_COMPONENTS:
        if second is None:
            return f"Strong {_MATCH_NOUNS[first]} match"
        if second in MATCH_COMPONENTS:
            return f"Strong {_MATCH_NOUNS[first]} and {_MATCH_NOUNS[second]} match"
        return f"Strong {_MATCH_NOUNS[first]} match with {_BOOST_NOUNS[second]} priority boost applied"

    boost_sentence = f"{_BOOST_NOUNS[first]} priority boost applied"
    if second is None:
        return _capitalize(boost_sentence)
    if second in MATCH_COMPONENTS:
        return _capitalize(f"{boost_sentence} with {_MATCH_NOUNS[second]} match")
    return _capitalize(
        f"{_BOOST_NOUNS[first]} and {_BOOST_NOUNS[second]} priority boosts applied"
    )


def compute_fairness_metric(rates: Sequence[float]) -> float:
    """Jain's index over per-group allocation rates; 1.0 means perfectly even.

    Computed on exact fractions so equal rates give exactly 1.0.
    """
    values = [Fraction(rate) for rate in rates]
    if not values:
        return 0.0
    numerator = sum(values) ** 2
    denominator = len(values) * sum(value**2 for value in values)
    if denominator == 0:
        return 0.0
    return min(1.0, float(numerator / denominator))


def score_histogram(scores: Sequence[int], bin_width: int) -> dict[str, int]:
    edges = list(range(0, 100, bin_width)) + [100]
    counts, _ = np.histogram(np.asarray(scores, dtype=float), bins=edges)
    histogram: dict[str, int] = {}
    for index, count in enumerate(counts):
        low, high = edges[index], edges[index + 1]
        label = f"{low}-{high}" if high == 100 else f"{low}-{high - 1}"
        histogram[label] = int(count)
    return histogram


def aggregate_statistics(
    result: RunResult,
    candidates: Sequence[Candidate],
    config: EngineConfig,
) -> RunStatistics:
    """Summarize a run for dashboards; reads the result and mutates nothing."""
    assignments = result.assignments
    scores = [assignment.final_score for assignment in assignments]

    allocated_by_category = Counter(assignment.category for assignment in assignments)
    candidates_by_category = Counter(candidate.category for candidate in candidates)
    allocated_by_area = Counter(assignment.area for assignment in assignments)
    allocated_by_gender = Counter(
        assignment.gender.value if assignment.gender is not None else UNSPECIFIED_GENDER
        for assignment in assignments
    )
    allocated_by_past = Counter(
        "Yes" if assignment.past_internship else "No" for assignment in assignments
    )

    category_allocation_rate = {
        category.value: float(allocated_by_category.get(category, 0) / candidates_by_category[category])
        for category in Category
        if candidates_by_category.get(category, 0) > 0
    }

    total_capacity = sum(item.capacity for item in result.utilization)
    total_filled = sum(item.filled for item in result.utilization)

    return RunStatistics(
        total_candidates=len(candidates),
        allocated=len(assignments),
        unallocated=len(result.unallocated_candidate_ids),
        average_score=round(float(np.mean(scores)), 2) if scores else 0.0,
        high_score_count=sum(1 for score in scores if score >= config.high_score_threshold),
        score_histogram=score_histogram(scores, config.histogram_bin_width),
        category_distribution={
            category.value: allocated_by_category.get(category, 0) for category in Category
        },
        area_distribution={area.value: allocated_by_area.get(area, 0) for area in Area},
        gender_distribution={
            label: allocated_by_gender.get(label, 0)
            for label in [gender.value for gender in Gender] + [UNSPECIFIED_GENDER]
        },
        past_participation_distribution={
            label: allocated_by_past.get(label, 0) for label in ("Yes", "No")
        },
        category_allocation_rate=category_allocation_rate,
        utilization=result.utilization,
        overall_utilization=float(total_filled / total_capacity) if total_capacity else 0.0,
        fairness_index=compute_fairness_metric(list(category_allocation_rate.values())),
    )
