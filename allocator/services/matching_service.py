"""Capacity-constrained, fairness-adjusted candidate-to-internship assignment."""

from __future__ import annotations

import heapq
from collections import Counter, defaultdict
from dataclasses import dataclass, field, replace
from threading import Event
from typing import Any, Iterable, Mapping, Optional, Sequence
from uuid import uuid4

from allocator.domain.constraints import EngineConfig, build_engine_config, validate_engine_config
from allocator.domain.errors import CancellationError, ConfigurationError, InvariantViolation
from allocator.domain.models import (
    Assignment,
    Candidate,
    Gender,
    Internship,
    InternshipUtilization,
    RowValidationError,
    RunResult,
    RunStatistics,
    ScoreContribution,
    ScoredPair,
)
from allocator.services.explanation_service import aggregate_statistics, build_reason
from allocator.services.fairness_service import adjust_all_pairs
from allocator.services.normalizer_service import normalize_candidates, normalize_internships
from allocator.services.scoring_service import clamp_score, score_all_pairs
from allocator.utils.config import Settings, get_settings
from allocator.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class AssignmentContext:
    """Mutable capacity and placement state for one assignment walk."""

    remaining_capacity: dict[str, int]
    assigned: dict[str, str] = field(default_factory=dict)
    gender_counts: dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))
    commits: list[ScoredPair] = field(default_factory=list)

    @classmethod
    def from_internships(cls, internships: Iterable[Internship]) -> "AssignmentContext":
        return cls(
            remaining_capacity={
                internship.internship_id: internship.capacity for internship in internships
            }
        )

    @property
    def total_remaining(self) -> int:
        return sum(self.remaining_capacity.values())

    def is_assigned(self, candidate_id: str) -> bool:
        return candidate_id in self.assigned

    def has_capacity(self, internship_id: str) -> bool:
        return self.remaining_capacity[internship_id] > 0

    def commit(self, pair: ScoredPair, gender: Optional[Gender]) -> None:
        if pair.candidate_id in self.assigned:
            raise InvariantViolation(
                f"candidate '{pair.candidate_id}' is already assigned to "
                f"'{self.assigned[pair.candidate_id]}'"
            )
        remaining = self.remaining_capacity[pair.internship_id]
        if remaining <= 0:
            raise InvariantViolation(
                f"internship '{pair.internship_id}' has no remaining capacity ({remaining})"
            )
        self.remaining_capacity[pair.internship_id] = remaining - 1
        self.assigned[pair.candidate_id] = pair.internship_id
        if gender is not None:
            self.gender_counts[pair.internship_id][gender] += 1
        self.commits.append(pair)


@dataclass(frozen=True)
class AssignmentOutcome:
    committed: tuple[ScoredPair, ...]
    unallocated_candidate_ids: tuple[str, ...]
    context: AssignmentContext


@dataclass(frozen=True)
class AllocationReport:
    result: RunResult
    statistics: RunStatistics
    candidate_errors: tuple[RowValidationError, ...] = ()
    internship_errors: tuple[RowValidationError, ...] = ()


def _priority_key(pair: ScoredPair, live_score: int) -> tuple[int, int, str, str]:
    return (-live_score, -pair.base_score, pair.candidate_id, pair.internship_id)


def gender_balance_boost(
    gender: Optional[Gender],
    committed_counts: Counter,
    boost: int,
) -> int:
    """Boost for a gender strictly under-represented among an internship's placements."""
    if gender is None or boost <= 0 or not committed_counts:
        return 0
    if committed_counts.get(gender, 0) < max(committed_counts.values()):
        return boost
    return 0


def _check_cancelled(cancel_event: Optional[Event], phase: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.warning("Allocation run cancelled | phase=%s", phase)
        raise CancellationError(f"allocation run cancelled during {phase}")


def assign(
    pairs: Sequence[ScoredPair],
    candidates: Sequence[Candidate],
    internships: Sequence[Internship],
    config: EngineConfig,
    cancel_event: Optional[Event] = None,
) -> AssignmentOutcome:
    """Greedy walk over pairs in global priority order.

    Order is adjusted score desc, base score desc, candidate id asc,
    internship id asc. Pairs live in a heap so gender-balance re-scoring can
    re-insert the pending pairs of one internship without a full re-sort;
    without re-scoring the pop order equals a single sorted pass.
    """
    context = AssignmentContext.from_internships(internships)
    gender_by_candidate = {candidate.candidate_id: candidate.gender for candidate in candidates}
    policy = config.fairness
    rebalance = policy.gender_balance_enabled

    eligible = [
        pair
        for pair in pairs
        if pair.base_score >= config.eligibility_floor
        and context.remaining_capacity.get(pair.internship_id, 0) > 0
    ]
    live_boost: dict[tuple[str, str], int] = {}
    versions: dict[tuple[str, str], int] = {}
    pending_by_internship: dict[str, list[ScoredPair]] = defaultdict(list)
    heap: list[tuple[tuple[int, int, str, str], int, ScoredPair]] = []
    for pair in eligible:
        key = (pair.candidate_id, pair.internship_id)
        versions[key] = 0
        live_boost[key] = 0
        heap.append((_priority_key(pair, pair.adjusted_score), 0, pair))
        if rebalance:
            pending_by_internship[pair.internship_id].append(pair)
    heapq.heapify(heap)

    total_candidates = len(candidates)
    pops = 0
    while heap:
        if len(context.assigned) == total_candidates or context.total_remaining == 0:
            break
        pops += 1
        if pops % config.cancellation_check_interval == 0:
            _check_cancelled(cancel_event, "assignment")

        _, version, pair = heapq.heappop(heap)
        key = (pair.candidate_id, pair.internship_id)
        if version != versions[key]:
            continue
        if context.is_assigned(pair.candidate_id) or not context.has_capacity(pair.internship_id):
            continue

        boost = live_boost[key]
        committed = pair
        if boost:
            gender = gender_by_candidate[pair.candidate_id]
            committed = replace(
                pair,
                adjusted_score=clamp_score(pair.adjusted_score + boost),
                contributions=pair.contributions
                + (
                    ScoreContribution(
                        component="gender",
                        points=float(boost),
                        label=gender.value if gender is not None else "",
                    ),
                ),
            )
        context.commit(committed, gender_by_candidate[pair.candidate_id])

        if rebalance and context.has_capacity(pair.internship_id):
            counts = context.gender_counts[pair.internship_id]
            for pending in pending_by_internship[pair.internship_id]:
                if context.is_assigned(pending.candidate_id):
                    continue
                pending_key = (pending.candidate_id, pending.internship_id)
                new_boost = gender_balance_boost(
                    gender_by_candidate[pending.candidate_id],
                    counts,
                    policy.gender_balance_boost,
                )
                if new_boost == live_boost[pending_key]:
                    continue
                live_boost[pending_key] = new_boost
                versions[pending_key] += 1
                live_score = clamp_score(pending.adjusted_score + new_boost)
                heapq.heappush(
                    heap,
                    (_priority_key(pending, live_score), versions[pending_key], pending),
                )

    _verify_context(context, internships)
    unallocated = tuple(
        sorted(
            candidate.candidate_id
            for candidate in candidates
            if not context.is_assigned(candidate.candidate_id)
        )
    )
    return AssignmentOutcome(
        committed=tuple(context.commits),
        unallocated_candidate_ids=unallocated,
        context=context,
    )


def _verify_context(context: AssignmentContext, internships: Sequence[Internship]) -> None:
    filled = Counter(context.assigned.values())
    for internship in internships:
        remaining = context.remaining_capacity[internship.internship_id]
        if remaining < 0:
            raise InvariantViolation(
                f"internship '{internship.internship_id}' capacity went negative ({remaining})"
            )
        if filled.get(internship.internship_id, 0) != internship.capacity - remaining:
            raise InvariantViolation(
                f"internship '{internship.internship_id}' placement count does not match capacity usage"
            )
    if len(context.commits) != len(context.assigned):
        raise InvariantViolation("a candidate was committed more than once")


def build_run_result(
    outcome: AssignmentOutcome,
    candidates: Sequence[Candidate],
    internships: Sequence[Internship],
) -> RunResult:
    candidate_by_id = {candidate.candidate_id: candidate for candidate in candidates}
    internship_by_id = {internship.internship_id: internship for internship in internships}

    assignments: list[Assignment] = []
    for pair in outcome.committed:
        candidate = candidate_by_id[pair.candidate_id]
        internship = internship_by_id[pair.internship_id]
        assignments.append(
            Assignment(
                candidate_id=candidate.candidate_id,
                candidate_name=candidate.name,
                internship_id=internship.internship_id,
                internship_title=internship.title,
                base_score=pair.base_score,
                final_score=pair.adjusted_score,
                reason=build_reason(pair.contributions),
                category=candidate.category,
                area=candidate.area,
                gender=candidate.gender,
                past_internship=candidate.past_internship,
                factor_tags=pair.factor_tags,
            )
        )
    assignments.sort(key=lambda item: (-item.final_score, item.candidate_id))

    filled = Counter(assignment.internship_id for assignment in assignments)
    utilization = tuple(
        InternshipUtilization(
            internship_id=internship.internship_id,
            title=internship.title,
            capacity=internship.capacity,
            filled=filled.get(internship.internship_id, 0),
        )
        for internship in internships
    )
    return RunResult(
        assignments=tuple(assignments),
        unallocated_candidate_ids=outcome.unallocated_candidate_ids,
        utilization=utilization,
        objective_value=sum(assignment.final_score for assignment in assignments),
    )


def _validate_entities(
    candidates: Sequence[Candidate],
    internships: Sequence[Internship],
) -> None:
    candidate_ids = Counter(candidate.candidate_id for candidate in candidates)
    duplicates = sorted(candidate_id for candidate_id, count in candidate_ids.items() if count > 1)
    if duplicates:
        raise ConfigurationError(f"duplicate candidate ids: {duplicates}")
    internship_ids = Counter(internship.internship_id for internship in internships)
    duplicates = sorted(internship_id for internship_id, count in internship_ids.items() if count > 1)
    if duplicates:
        raise ConfigurationError(f"duplicate internship ids: {duplicates}")
    for internship in internships:
        if internship.capacity < 0:
            raise ConfigurationError(
                f"internship '{internship.internship_id}' has negative capacity"
            )


def score_and_adjust(
    candidates: Sequence[Candidate],
    internships: Sequence[Internship],
    config: EngineConfig,
    cancel_event: Optional[Event] = None,
) -> list[ScoredPair]:
    pairs = score_all_pairs(
        candidates,
        internships,
        config.weights,
        workers=config.scoring_workers,
        shard_size=config.scoring_shard_size,
    )
    _check_cancelled(cancel_event, "scoring")
    adjusted = adjust_all_pairs(
        pairs,
        {candidate.candidate_id: candidate for candidate in candidates},
        config.fairness,
    )
    _check_cancelled(cancel_event, "fairness adjustment")
    return adjusted


def run_pipeline(
    candidates: Sequence[Candidate],
    internships: Sequence[Internship],
    config: EngineConfig,
    cancel_event: Optional[Event] = None,
) -> RunResult:
    """Score, adjust and assign already normalized entities."""
    validate_engine_config(config)
    _validate_entities(candidates, internships)
    # Empty inputs fall through: no pairs, every candidate (if any) unallocated.
    pairs = score_and_adjust(candidates, internships, config, cancel_event)
    outcome = assign(pairs, candidates, internships, config, cancel_event)
    return build_run_result(outcome, candidates, internships)


class AllocationEngineService:
    """Normalize -> score -> adjust -> assign -> explain, one snapshot per call."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    def build_config(
        self,
        *,
        eligibility_floor: Optional[int] = None,
        gender_balance_boost: Optional[int] = None,
        fairness_enabled: bool = True,
    ) -> EngineConfig:
        return build_engine_config(
            self._settings,
            eligibility_floor=eligibility_floor,
            gender_balance_boost=gender_balance_boost,
            fairness_enabled=fairness_enabled,
        )

    def run_entities(
        self,
        candidates: Sequence[Candidate],
        internships: Sequence[Internship],
        *,
        config: Optional[EngineConfig] = None,
        cancel_event: Optional[Event] = None,
    ) -> AllocationReport:
        resolved_config = config or self.build_config()
        run_id = str(uuid4())
        logger.info(
            "Allocation run started | run_id=%s | candidates=%s | internships=%s | total_capacity=%s",
            run_id,
            len(candidates),
            len(internships),
            sum(internship.capacity for internship in internships),
        )
        result = run_pipeline(candidates, internships, resolved_config, cancel_event)
        statistics = aggregate_statistics(result, candidates, resolved_config)
        logger.info(
            (
                "Allocation run completed | run_id=%s | allocated=%s | unallocated=%s | "
                "objective_value=%s | fairness_index=%.6f"
            ),
            run_id,
            statistics.allocated,
            statistics.unallocated,
            result.objective_value,
            statistics.fairness_index,
        )
        return AllocationReport(result=result, statistics=statistics)

    def run_allocation(
        self,
        candidate_rows: Iterable[Mapping[str, Any]],
        internship_rows: Iterable[Mapping[str, Any]],
        *,
        eligibility_floor: Optional[int] = None,
        gender_balance_boost: Optional[int] = None,
        cancel_event: Optional[Event] = None,
    ) -> AllocationReport:
        config = self.build_config(
            eligibility_floor=eligibility_floor,
            gender_balance_boost=gender_balance_boost,
        )
        validate_engine_config(config)

        candidate_batch = normalize_candidates(candidate_rows)
        internship_batch = normalize_internships(internship_rows)
        _check_cancelled(cancel_event, "normalization")

        report = self.run_entities(
            candidate_batch.entities,
            internship_batch.entities,
            config=config,
            cancel_event=cancel_event,
        )
        return replace(
            report,
            candidate_errors=candidate_batch.errors,
            internship_errors=internship_batch.errors,
        )
