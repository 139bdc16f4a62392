"""Fairness adjustment of base scores into assignment priorities."""

from __future__ import annotations

from dataclasses import replace
from typing import Mapping, Sequence

from allocator.domain.constraints import FairnessPolicy
from allocator.domain.models import Area, Candidate, ScoreContribution, ScoredPair
from allocator.services.scoring_service import clamp_score


def fairness_contributions(
    candidate: Candidate,
    policy: FairnessPolicy,
) -> tuple[ScoreContribution, ...]:
    """Per-candidate boosts; gender balance is applied live by the assigner."""
    if not policy.enabled:
        return ()

    contributions: list[ScoreContribution] = []
    category_boost = policy.category_boost(candidate.category)
    if category_boost:
        contributions.append(
            ScoreContribution(
                component="category",
                points=float(category_boost),
                label=candidate.category.value,
            )
        )
    if candidate.area is Area.RURAL and policy.rural_boost:
        contributions.append(
            ScoreContribution(
                component="area",
                points=float(policy.rural_boost),
                label=candidate.area.value,
            )
        )
    if candidate.past_internship and policy.past_participation_penalty:
        contributions.append(
            ScoreContribution(
                component="past_participation",
                points=-float(policy.past_participation_penalty),
            )
        )
    return tuple(contributions)


def adjust_pair(
    pair: ScoredPair,
    candidate: Candidate,
    policy: FairnessPolicy,
) -> ScoredPair:
    """Return a new pair whose adjusted score reflects the policy.

    Previously applied fairness contributions are dropped first, so adjusting
    an already adjusted pair gives the same result.
    """
    match_contributions = tuple(
        contribution for contribution in pair.contributions if not contribution.is_fairness
    )
    boosts = fairness_contributions(candidate, policy)
    adjusted_score = clamp_score(pair.base_score + sum(boost.points for boost in boosts))
    return replace(
        pair,
        adjusted_score=adjusted_score,
        contributions=match_contributions + boosts,
    )


def adjust_all_pairs(
    pairs: Sequence[ScoredPair],
    candidates_by_id: Mapping[str, Candidate],
    policy: FairnessPolicy,
) -> list[ScoredPair]:
    return [
        adjust_pair(pair, candidates_by_id[pair.candidate_id], policy)
        for pair in pairs
    ]
