from __future__ import annotations

import pytest

from allocator.domain.constraints import EngineConfig
from allocator.domain.models import Area, Candidate, Category, Gender, Internship, ScoreContribution
from allocator.services.explanation_service import (
    FALLBACK_REASON,
    aggregate_statistics,
    build_reason,
    compute_fairness_metric,
    dominant_contributions,
    score_histogram,
)
from allocator.services.matching_service import run_pipeline


def _contribution(component: str, points: float, label: str = "") -> ScoreContribution:
    return ScoreContribution(component=component, points=points, label=label)


def _candidate(candidate_id: str, category: Category, skills: tuple[str, ...] = ()) -> Candidate:
    return Candidate(
        candidate_id=candidate_id,
        name=f"Candidate {candidate_id}",
        skills=frozenset(skills),
        qualifications=frozenset(),
        location_preferences=(),
        sector_interests=(),
        category=category,
        area=Area.URBAN,
        gender=Gender.FEMALE if candidate_id == "B" else None,
    )


def _example_run():
    candidates = [
        _candidate("A", Category.GENERAL, ("python",)),
        _candidate("B", Category.SC, ("python",)),
        _candidate("C", Category.GENERAL),
    ]
    internships = [
        Internship(
            internship_id="I1",
            title="Backend Intern",
            required_skills=frozenset({"python"}),
            qualifications=frozenset(),
            location="delhi",
            sector="it",
            capacity=1,
        )
    ]
    config = EngineConfig()
    return run_pipeline(candidates, internships, config), candidates, config


def test_two_match_components_form_a_combined_reason() -> None:
    reason = build_reason([_contribution("skill", 40), _contribution("location", 25), _contribution("sector", 10)])
    assert reason == "Strong skill and location match"


def test_match_with_boost_reason() -> None:
    reason = build_reason([_contribution("skill", 40), _contribution("category", 8, "SC")])
    assert reason == "Strong skill match with category-based priority boost applied"


def test_single_component_reason() -> None:
    assert build_reason([_contribution("sector", 25), _contribution("skill", 0)]) == "Strong sector interest match"


def test_boost_led_reasons() -> None:
    assert build_reason([_contribution("category", 8, "SC")]) == "Category-based priority boost applied"
    assert (
        build_reason([_contribution("area", 4, "Rural"), _contribution("qualification", 2)])
        == "Rural-area priority boost applied with qualification match"
    )
    assert (
        build_reason([_contribution("category", 8, "ST"), _contribution("area", 4, "Rural")])
        == "Category-based and rural-area priority boosts applied"
    )


def test_negative_and_zero_contributions_are_not_reasons() -> None:
    reason = build_reason(
        [_contribution("skill", 0), _contribution("past_participation", -5)]
    )
    assert reason == FALLBACK_REASON
    assert build_reason([]) == FALLBACK_REASON


def test_ties_follow_component_order() -> None:
    top = dominant_contributions(
        [_contribution("qualification", 10), _contribution("sector", 10), _contribution("skill", 10)]
    )
    assert [contribution.component for contribution in top] == ["skill", "sector"]


def test_fairness_metric_bounds() -> None:
    assert compute_fairness_metric([0.5, 0.5, 0.5]) == pytest.approx(1.0)
    assert compute_fairness_metric([1.0, 0.0]) == pytest.approx(0.5)
    assert compute_fairness_metric([0.0, 0.0]) == 0.0
    assert compute_fairness_metric([]) == 0.0


def test_score_histogram_labels_and_last_bin_includes_hundred() -> None:
    histogram = score_histogram([0, 9, 10, 95, 100], 10)
    assert list(histogram)[0] == "0-9"
    assert list(histogram)[-1] == "90-100"
    assert len(histogram) == 10
    assert histogram["0-9"] == 2
    assert histogram["10-19"] == 1
    assert histogram["90-100"] == 2
    assert sum(histogram.values()) == 5


def test_score_histogram_with_uneven_width() -> None:
    histogram = score_histogram([24, 25, 100], 25)
    assert histogram == {"0-24": 1, "25-49": 1, "50-74": 0, "75-100": 1}


def test_run_statistics_for_example_allocation() -> None:
    result, candidates, config = _example_run()

    statistics = aggregate_statistics(result, candidates, config)

    assert statistics.total_candidates == 3
    assert statistics.allocated == 1
    assert statistics.unallocated == 2
    assert statistics.average_score == 48.0
    assert statistics.high_score_count == 0
    assert statistics.category_distribution["SC"] == 1
    assert statistics.category_distribution["General"] == 0
    assert statistics.gender_distribution == {"Male": 0, "Female": 1, "Other": 0, "Unspecified": 0}
    assert statistics.past_participation_distribution == {"Yes": 0, "No": 1}
    assert statistics.category_allocation_rate == {"General": 0.0, "SC": 1.0}
    assert statistics.fairness_index == pytest.approx(0.5)
    assert statistics.overall_utilization == 1.0
    assert statistics.score_histogram["40-49"] == 1


def test_statistics_do_not_mutate_result() -> None:
    result, candidates, config = _example_run()
    snapshot = result.to_records()
    aggregate_statistics(result, candidates, config)
    assert result.to_records() == snapshot


def test_empty_run_statistics() -> None:
    result = run_pipeline([], [], EngineConfig())
    statistics = aggregate_statistics(result, [], EngineConfig())
    assert statistics.allocated == 0
    assert statistics.average_score == 0.0
    assert statistics.fairness_index == 0.0
    assert statistics.overall_utilization == 0.0
    assert sum(statistics.score_histogram.values()) == 0
    assert statistics.to_api_dict()["utilization"] == []


def test_fairness_metric_is_exact_for_equal_rates() -> None:
    assert compute_fairness_metric([7 / 9, 7 / 9, 7 / 9]) == 1.0
    assert compute_fairness_metric([0.1, 0.1, 0.1, 0.1, 0.1]) <= 1.0
