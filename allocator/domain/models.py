"""Domain models for candidate-to-internship allocation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Category(str, Enum):
    GENERAL = "General"
    OBC = "OBC"
    EWS = "EWS"
    SC = "SC"
    ST = "ST"


class Area(str, Enum):
    RURAL = "Rural"
    URBAN = "Urban"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


MATCH_COMPONENTS = ("skill", "location", "sector", "qualification")
FAIRNESS_COMPONENTS = ("category", "area", "past_participation", "gender")


@dataclass(frozen=True)
class Candidate:
    candidate_id: str
    name: str
    skills: frozenset[str]
    qualifications: frozenset[str]
    location_preferences: tuple[str, ...]
    sector_interests: tuple[str, ...]
    category: Category
    area: Area
    gender: Optional[Gender] = None
    past_internship: bool = False


@dataclass(frozen=True)
class Internship:
    internship_id: str
    title: str
    required_skills: frozenset[str]
    qualifications: frozenset[str]
    location: str
    sector: str
    capacity: int


@dataclass(frozen=True)
class ScoreContribution:
    """Points one component added to (or removed from) a pair's score."""

    component: str
    points: float
    label: str = ""

    @property
    def is_fairness(self) -> bool:
        return self.component in FAIRNESS_COMPONENTS

    def to_tag(self) -> str:
        rounded = int(round(self.points))
        return f"{self.component}:{self.label}{rounded:+d}"


@dataclass(frozen=True)
class ScoredPair:
    candidate_id: str
    internship_id: str
    base_score: int
    adjusted_score: int
    contributions: tuple[ScoreContribution, ...] = ()

    @property
    def factor_tags(self) -> tuple[str, ...]:
        return tuple(
            contribution.to_tag()
            for contribution in self.contributions
            if round(contribution.points) != 0
        )


@dataclass(frozen=True)
class Assignment:
    candidate_id: str
    candidate_name: str
    internship_id: str
    internship_title: str
    base_score: int
    final_score: int
    reason: str
    category: Category
    area: Area
    gender: Optional[Gender]
    past_internship: bool
    factor_tags: tuple[str, ...] = ()

    def to_record(self) -> dict[str, str | int]:
        """Results-table row; key names are consumed verbatim downstream."""
        return {
            "Candidate": self.candidate_name,
            "Internship": self.internship_title,
            "Score": self.final_score,
            "Reason": self.reason,
            "Category": self.category.value,
            "Gender": self.gender.value if self.gender is not None else "Unspecified",
            "Area": self.area.value,
            "Past Participation": "Yes" if self.past_internship else "No",
        }


@dataclass(frozen=True)
class InternshipUtilization:
    internship_id: str
    title: str
    capacity: int
    filled: int

    @property
    def utilization(self) -> float:
        if self.capacity <= 0:
            return 0.0
        return float(self.filled / self.capacity)

    def to_api_dict(self) -> dict[str, str | int | float]:
        return {
            "internship_id": self.internship_id,
            "title": self.title,
            "capacity": self.capacity,
            "filled": self.filled,
            "utilization": self.utilization,
        }


@dataclass(frozen=True)
class RunResult:
    assignments: tuple[Assignment, ...]
    unallocated_candidate_ids: tuple[str, ...]
    utilization: tuple[InternshipUtilization, ...]
    objective_value: int = 0

    def to_records(self) -> list[dict[str, str | int]]:
        return [assignment.to_record() for assignment in self.assignments]


@dataclass(frozen=True)
class RowValidationError:
    """A rejected input row; ``row`` is the 1-based position among data rows."""

    row: int
    field: str
    reason: str

    def to_api_dict(self) -> dict[str, str | int]:
        return {"row": self.row, "field": self.field, "reason": self.reason}


@dataclass(frozen=True)
class RunStatistics:
    total_candidates: int
    allocated: int
    unallocated: int
    average_score: float
    high_score_count: int
    score_histogram: dict[str, int]
    category_distribution: dict[str, int]
    area_distribution: dict[str, int]
    gender_distribution: dict[str, int]
    past_participation_distribution: dict[str, int]
    category_allocation_rate: dict[str, float]
    utilization: tuple[InternshipUtilization, ...]
    overall_utilization: float
    fairness_index: float

    def to_api_dict(self) -> dict[str, object]:
        return {
            "total_candidates": self.total_candidates,
            "allocated": self.allocated,
            "unallocated": self.unallocated,
            "average_score": self.average_score,
            "high_score_count": self.high_score_count,
            "score_histogram": dict(self.score_histogram),
            "category_distribution": dict(self.category_distribution),
            "area_distribution": dict(self.area_distribution),
            "gender_distribution": dict(self.gender_distribution),
            "past_participation_distribution": dict(self.past_participation_distribution),
            "category_allocation_rate": dict(self.category_allocation_rate),
            "utilization": [item.to_api_dict() for item in self.utilization],
            "overall_utilization": self.overall_utilization,
            "fairness_index": self.fairness_index,
        }
