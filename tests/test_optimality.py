from __future__ import annotations

from dataclasses import replace

import pytest

from allocator.domain.constraints import EngineConfig
from allocator.domain.models import Area, Candidate, Category, Internship
from allocator.services import optimality_service
from allocator.services.optimality_service import (
    OptimalityBenchmarkService,
    SolverDependencyError,
)
from allocator.utils.config import get_settings


def _candidate(candidate_id: str, *, skills=(), locations=(), sectors=()) -> Candidate:
    return Candidate(
        candidate_id=candidate_id,
        name=candidate_id,
        skills=frozenset(skills),
        qualifications=frozenset(),
        location_preferences=tuple(locations),
        sector_interests=tuple(sectors),
        category=Category.GENERAL,
        area=Area.URBAN,
    )


def _internship(internship_id: str, *, location: str, sector: str, capacity: int = 1) -> Internship:
    return Internship(
        internship_id=internship_id,
        title=internship_id,
        required_skills=frozenset({"x"}),
        qualifications=frozenset(),
        location=location,
        sector=sector,
        capacity=capacity,
    )


def _build_service() -> OptimalityBenchmarkService:
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        benchmark_solver_max_time_seconds=5,
        benchmark_solver_workers=1,
        benchmark_solver_random_seed=123,
    )
    return OptimalityBenchmarkService(settings=settings)


def _greedy_trap() -> tuple[list[Candidate], list[Internship]]:
    # A scores 65 on I1 and 40 on I2; B scores 50 on I1 and nothing on I2.
    candidates = [
        _candidate("A", skills=("x",), locations=("delhi",)),
        _candidate("B", locations=("delhi",), sectors=("it",)),
    ]
    internships = [
        _internship("I1", location="delhi", sector="it"),
        _internship("I2", location="pune", sector="finance"),
    ]
    return candidates, internships


def test_benchmark_reports_gap_against_cp_sat_optimum() -> None:
    pytest.importorskip("ortools")
    candidates, internships = _greedy_trap()

    result = _build_service().benchmark(candidates, internships, EngineConfig())

    assert result.greedy_objective == 65
    assert result.optimal_objective == 90
    assert result.optimality_gap == pytest.approx(25 / 90)
    assert result.solver_status == "OPTIMAL"
    assert result.eligible_pairs == 4


def test_benchmark_gap_is_zero_when_greedy_is_optimal() -> None:
    pytest.importorskip("ortools")
    candidates = [_candidate("A", skills=("x",), locations=("delhi",)), _candidate("B")]
    internships = [_internship("I1", location="delhi", sector="it", capacity=2)]

    result = _build_service().benchmark(candidates, internships, EngineConfig())

    assert result.greedy_objective == result.optimal_objective == 65
    assert result.optimality_gap == 0.0


def test_eligibility_floor_limits_model_variables() -> None:
    pytest.importorskip("ortools")
    candidates, internships = _greedy_trap()

    result = _build_service().benchmark(candidates, internships, EngineConfig(eligibility_floor=1))

    assert result.eligible_pairs == 3
    assert result.optimal_objective == 90


def test_empty_model_solves_trivially() -> None:
    pytest.importorskip("ortools")
    result = _build_service().benchmark([], [], EngineConfig())
    assert result.optimal_objective == 0
    assert result.optimality_gap == 0.0
    assert result.eligible_pairs == 0


def test_missing_ortools_raises_dependency_error(monkeypatch) -> None:
    monkeypatch.setattr(optimality_service, "cp_model", None)
    candidates, internships = _greedy_trap()
    with pytest.raises(SolverDependencyError):
        _build_service().benchmark(candidates, internships, EngineConfig())
