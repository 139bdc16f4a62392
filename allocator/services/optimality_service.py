"""Exact CP-SAT b-matching used to measure how far the greedy assigner is from optimal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

try:
    from ortools.sat.python import cp_model
except ModuleNotFoundError:  # pragma: no cover - runtime dependency guard
    cp_model = None  # type: ignore[assignment]

from allocator.domain.constraints import EngineConfig, validate_engine_config
from allocator.domain.models import Candidate, Internship, ScoredPair
from allocator.services.matching_service import assign, score_and_adjust
from allocator.utils.config import Settings, get_settings
from allocator.utils.logger import get_logger


logger = get_logger(__name__)


class SolverDependencyError(Exception):
    """Raised when OR-Tools is unavailable in the runtime."""


class SolverFailedError(Exception):
    """Raised when CP-SAT returns neither an optimal nor a feasible solution."""


@dataclass(frozen=True)
class BuildArtifacts:
    model: Any
    variables: dict[tuple[str, str], Any]
    objective_coefficients: dict[tuple[str, str], int]


@dataclass(frozen=True)
class BenchmarkResult:
    greedy_objective: int
    optimal_objective: int
    optimality_gap: float
    solver_status: str
    eligible_pairs: int

    def to_api_dict(self) -> dict[str, object]:
        return {
            "greedy_objective": self.greedy_objective,
            "optimal_objective": self.optimal_objective,
            "optimality_gap": self.optimality_gap,
            "solver_status": self.solver_status,
            "eligible_pairs": self.eligible_pairs,
        }


def _ensure_solver_dependency() -> None:
    if cp_model is None:
        raise SolverDependencyError(
            "OR-Tools is not installed. Install 'ortools' to enable optimality benchmarking."
        )


def build_model(
    *,
    pairs: Sequence[ScoredPair],
    internships: Sequence[Internship],
    config: EngineConfig,
) -> BuildArtifacts:
    """One boolean per eligible pair; at most one per candidate, capacity per internship."""
    _ensure_solver_dependency()
    model = cp_model.CpModel()
    capacity_by_internship = {
        internship.internship_id: internship.capacity for internship in internships
    }
    variables: dict[tuple[str, str], cp_model.IntVar] = {}
    objective_coefficients: dict[tuple[str, str], int] = {}

    for pair in pairs:
        if pair.base_score < config.eligibility_floor:
            continue
        if capacity_by_internship.get(pair.internship_id, 0) <= 0:
            continue
        key = (pair.candidate_id, pair.internship_id)
        variables[key] = model.NewBoolVar(f"x_{pair.candidate_id}_{pair.internship_id}")
        objective_coefficients[key] = pair.adjusted_score

    candidate_vars: dict[str, list[Any]] = {}
    internship_vars: dict[str, list[Any]] = {}
    for (candidate_id, internship_id), var in variables.items():
        candidate_vars.setdefault(candidate_id, []).append(var)
        internship_vars.setdefault(internship_id, []).append(var)

    for candidate_id in sorted(candidate_vars):
        model.Add(sum(candidate_vars[candidate_id]) <= 1)
    for internship_id in sorted(internship_vars):
        model.Add(sum(internship_vars[internship_id]) <= capacity_by_internship[internship_id])

    if variables:
        model.Maximize(
            sum(objective_coefficients[key] * var for key, var in variables.items())
        )
    else:
        model.Maximize(0)

    return BuildArtifacts(
        model=model,
        variables=variables,
        objective_coefficients=objective_coefficients,
    )


class OptimalityBenchmarkService:
    """Compares the greedy objective with the CP-SAT optimum on the same pairs."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    def solve_optimal(self, artifacts: BuildArtifacts) -> tuple[int, str]:
        _ensure_solver_dependency()
        if not artifacts.variables:
            return 0, "OPTIMAL"

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = float(
            self._settings.benchmark_solver_max_time_seconds
        )
        solver.parameters.num_workers = self._settings.benchmark_solver_workers
        solver.parameters.random_seed = self._settings.benchmark_solver_random_seed

        status = solver.Solve(artifacts.model)
        status_name = solver.StatusName(status)
        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            logger.warning("Benchmark solve failed | status=%s", status_name)
            raise SolverFailedError(f"CP-SAT solve failed with status {status_name}")
        return int(round(solver.ObjectiveValue())), status_name

    def benchmark(
        self,
        candidates: Sequence[Candidate],
        internships: Sequence[Internship],
        config: EngineConfig,
    ) -> BenchmarkResult:
        """Gap is measured on static adjusted scores; live gender boosts are excluded."""
        _ensure_solver_dependency()
        validate_engine_config(config)

        pairs = score_and_adjust(candidates, internships, config)
        outcome = assign(pairs, candidates, internships, config)
        adjusted_by_key = {
            (pair.candidate_id, pair.internship_id): pair.adjusted_score for pair in pairs
        }
        greedy_objective = sum(
            adjusted_by_key[(pair.candidate_id, pair.internship_id)]
            for pair in outcome.committed
        )

        artifacts = build_model(pairs=pairs, internships=internships, config=config)
        optimal_objective, status_name = self.solve_optimal(artifacts)
        gap = (
            float((optimal_objective - greedy_objective) / optimal_objective)
            if optimal_objective > 0
            else 0.0
        )

        logger.info(
            (
                "Optimality benchmark completed | status=%s | greedy_objective=%s | "
                "optimal_objective=%s | gap=%.6f | eligible_pairs=%s"
            ),
            status_name,
            greedy_objective,
            optimal_objective,
            gap,
            len(artifacts.variables),
        )
        return BenchmarkResult(
            greedy_objective=greedy_objective,
            optimal_objective=optimal_objective,
            optimality_gap=gap,
            solver_status=status_name,
            eligible_pairs=len(artifacts.variables),
        )
