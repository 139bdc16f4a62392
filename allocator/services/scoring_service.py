"""Base compatibility scoring for (candidate, internship) pairs."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from fractions import Fraction
from typing import Sequence

from allocator.domain.constraints import ScoreWeights
from allocator.domain.models import Candidate, Internship, ScoreContribution, ScoredPair
from allocator.utils.logger import get_logger


logger = get_logger(__name__)


def round_half_up(value: float | Fraction) -> int:
    return int(math.floor(Fraction(value) + Fraction(1, 2)))


def clamp_score(value: float | Fraction) -> int:
    return max(0, min(100, round_half_up(value)))


def overlap_ratio(offered: frozenset[str], required: frozenset[str]) -> Fraction:
    return Fraction(len(offered & required), max(1, len(required)))


def rank_credit(target: str, ranked_preferences: Sequence[str]) -> Fraction:
    """1/k when ``target`` is the k-th preference, 0 when absent."""
    if not target:
        return Fraction(0)
    for position, preference in enumerate(ranked_preferences, start=1):
        if preference == target:
            return Fraction(1, position)
    return Fraction(0)


def compute_base_score(
    candidate: Candidate,
    internship: Internship,
    weights: ScoreWeights,
) -> ScoredPair:
    """Base score from exact component points so x.5 sums round up."""
    components = {
        "skill": overlap_ratio(candidate.skills, internship.required_skills),
        "location": rank_credit(internship.location, candidate.location_preferences),
        "sector": rank_credit(internship.sector, candidate.sector_interests),
        "qualification": overlap_ratio(candidate.qualifications, internship.qualifications),
    }
    points_by_component = {
        component: 100 * Fraction(str(weight)) * components[component]
        for component, weight in weights.as_dict().items()
    }
    contributions = tuple(
        ScoreContribution(component=component, points=float(points))
        for component, points in points_by_component.items()
    )
    base_score = clamp_score(sum(points_by_component.values()))
    return ScoredPair(
        candidate_id=candidate.candidate_id,
        internship_id=internship.internship_id,
        base_score=base_score,
        adjusted_score=base_score,
        contributions=contributions,
    )


def _score_shard(
    candidates: Sequence[Candidate],
    internships: Sequence[Internship],
    weights: ScoreWeights,
) -> list[ScoredPair]:
    return [
        compute_base_score(candidate, internship, weights)
        for candidate in candidates
        for internship in internships
    ]


def score_all_pairs(
    candidates: Sequence[Candidate],
    internships: Sequence[Internship],
    weights: ScoreWeights,
    *,
    workers: int = 1,
    shard_size: int = 250,
) -> list[ScoredPair]:
    """Score the full cross product, candidate-major.

    Candidates are split into shards scored independently; shard outputs are
    concatenated in shard order so the result does not depend on ``workers``.
    """
    if not candidates or not internships:
        return []

    shards = [
        candidates[start:start + shard_size]
        for start in range(0, len(candidates), shard_size)
    ]
    if workers <= 1 or len(shards) == 1:
        shard_results = [_score_shard(shard, internships, weights) for shard in shards]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(shards))) as executor:
            shard_results = list(
                executor.map(lambda shard: _score_shard(shard, internships, weights), shards)
            )

    pairs = [pair for shard_pairs in shard_results for pair in shard_pairs]
    logger.debug(
        "Pair scoring completed | candidates=%s | internships=%s | pairs=%s | shards=%s",
        len(candidates),
        len(internships),
        len(pairs),
        len(shards),
    )
    return pairs
