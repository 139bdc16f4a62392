"""Row validation and canonicalization for candidate and internship uploads."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Mapping, Optional, TypeVar

from allocator.domain.models import (
    Area,
    Candidate,
    Category,
    Gender,
    Internship,
    RowValidationError,
)
from allocator.utils.logger import get_logger


logger = get_logger(__name__)

EntityT = TypeVar("EntityT")

CANDIDATE_REQUIRED_COLUMNS = (
    "id",
    "name",
    "skills",
    "qualifications",
    "location_preferences",
    "sector_interests",
    "category",
    "area",
    "past_internship",
)
INTERNSHIP_REQUIRED_COLUMNS = (
    "id",
    "title",
    "required_skills",
    "qualifications",
    "location",
    "sector",
    "capacity",
)

# Upload-widget column names accepted in place of the canonical ones.
CANDIDATE_COLUMN_ALIASES = {
    "location": "location_preferences",
    "past": "past_internship",
}
INTERNSHIP_COLUMN_ALIASES = {
    "skills": "required_skills",
}

_CATEGORY_ALIASES = {
    "general": Category.GENERAL,
    "gen": Category.GENERAL,
    "obc": Category.OBC,
    "ews": Category.EWS,
    "sc": Category.SC,
    "st": Category.ST,
}
_AREA_ALIASES = {
    "rural": Area.RURAL,
    "urban": Area.URBAN,
}
_GENDER_ALIASES = {
    "male": Gender.MALE,
    "m": Gender.MALE,
    "female": Gender.FEMALE,
    "f": Gender.FEMALE,
    "other": Gender.OTHER,
}
_TRUE_VALUES = {"true", "yes", "y", "1"}
_FALSE_VALUES = {"false", "no", "n", "0", ""}
_CAPACITY_PATTERN = re.compile(r"^[+]?\d+(\.0+)?$")


@dataclass(frozen=True)
class NormalizationResult(Generic[EntityT]):
    entities: tuple[EntityT, ...]
    errors: tuple[RowValidationError, ...]


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def split_list(value: Any) -> tuple[str, ...]:
    """Split a comma list into trimmed, lower-cased, de-duplicated items in first-seen order."""
    seen: set[str] = set()
    items: list[str] = []
    for raw_item in _clean(value).split(","):
        item = raw_item.strip().lower()
        if not item or item in seen:
            continue
        seen.add(item)
        items.append(item)
    return tuple(items)


def _with_column_aliases(row: Mapping[str, Any], aliases: Mapping[str, str]) -> Mapping[str, Any]:
    """Copy aliased columns onto their canonical names unless already present."""
    renamed = {
        canonical: row[alias]
        for alias, canonical in aliases.items()
        if alias in row and canonical not in row
    }
    if not renamed:
        return row
    return {**row, **renamed}


def _missing_columns(row: Mapping[str, Any], required: Iterable[str]) -> list[str]:
    return [column for column in required if column not in row]


def _parse_category(value: str) -> Optional[Category]:
    return _CATEGORY_ALIASES.get(value.lower())


def _parse_area(value: str) -> Optional[Area]:
    return _AREA_ALIASES.get(value.lower())


def _parse_capacity(value: str) -> Optional[int]:
    if not _CAPACITY_PATTERN.match(value):
        return None
    return int(float(value))


class _RowErrors:
    """Collects the errors of a single row."""

    def __init__(self, row_number: int) -> None:
        self.row_number = row_number
        self.items: list[RowValidationError] = []

    def add(self, field_name: str, reason: str) -> None:
        self.items.append(RowValidationError(row=self.row_number, field=field_name, reason=reason))


def _normalize_candidate_row(
    row: Mapping[str, Any],
    errors: _RowErrors,
    seen_ids: set[str],
) -> Optional[Candidate]:
    row = _with_column_aliases(row, CANDIDATE_COLUMN_ALIASES)
    for column in _missing_columns(row, CANDIDATE_REQUIRED_COLUMNS):
        errors.add(column, "required column is missing")
    if errors.items:
        return None

    candidate_id = _clean(row["id"])
    if not candidate_id:
        errors.add("id", "id must not be empty")
    elif candidate_id in seen_ids:
        errors.add("id", f"duplicate candidate id '{candidate_id}'")

    raw_category = _clean(row["category"])
    category = _parse_category(raw_category)
    if category is None:
        errors.add(
            "category",
            f"unknown reservation category '{raw_category}'" if raw_category else "category must not be empty",
        )

    raw_area = _clean(row["area"])
    area = _parse_area(raw_area)
    if area is None:
        errors.add("area", f"unknown area '{raw_area}'" if raw_area else "area must not be empty")

    raw_gender = _clean(row.get("gender"))
    gender: Optional[Gender] = None
    if raw_gender:
        gender = _GENDER_ALIASES.get(raw_gender.lower())
        if gender is None:
            errors.add("gender", f"unknown gender '{raw_gender}'")

    raw_past = _clean(row["past_internship"]).lower()
    if raw_past not in _TRUE_VALUES and raw_past not in _FALSE_VALUES:
        errors.add("past_internship", f"expected a yes/no value, got '{raw_past}'")

    if errors.items:
        return None

    return Candidate(
        candidate_id=candidate_id,
        name=_clean(row["name"]) or candidate_id,
        skills=frozenset(split_list(row["skills"])),
        qualifications=frozenset(split_list(row["qualifications"])),
        location_preferences=split_list(row["location_preferences"]),
        sector_interests=split_list(row["sector_interests"]),
        category=category,
        area=area,
        gender=gender,
        past_internship=raw_past in _TRUE_VALUES,
    )


def _normalize_internship_row(
    row: Mapping[str, Any],
    errors: _RowErrors,
    seen_ids: set[str],
) -> Optional[Internship]:
    row = _with_column_aliases(row, INTERNSHIP_COLUMN_ALIASES)
    for column in _missing_columns(row, INTERNSHIP_REQUIRED_COLUMNS):
        errors.add(column, "required column is missing")
    if errors.items:
        return None

    internship_id = _clean(row["id"])
    if not internship_id:
        errors.add("id", "id must not be empty")
    elif internship_id in seen_ids:
        errors.add("id", f"duplicate internship id '{internship_id}'")

    raw_capacity = _clean(row["capacity"])
    capacity = _parse_capacity(raw_capacity)
    if capacity is None:
        errors.add("capacity", f"capacity must be a non-negative integer, got '{raw_capacity}'")

    if errors.items:
        return None

    return Internship(
        internship_id=internship_id,
        title=_clean(row["title"]) or internship_id,
        required_skills=frozenset(split_list(row["required_skills"])),
        qualifications=frozenset(split_list(row["qualifications"])),
        location=_clean(row["location"]).lower(),
        sector=_clean(row["sector"]).lower(),
        capacity=capacity,
    )


def normalize_candidates(rows: Iterable[Mapping[str, Any]]) -> NormalizationResult[Candidate]:
    """Canonicalize candidate rows; invalid rows are excluded and reported."""
    candidates: list[Candidate] = []
    all_errors: list[RowValidationError] = []
    seen_ids: set[str] = set()
    for index, row in enumerate(rows, start=1):
        row_errors = _RowErrors(index)
        candidate = _normalize_candidate_row(row, row_errors, seen_ids)
        if candidate is None:
            all_errors.extend(row_errors.items)
            continue
        seen_ids.add(candidate.candidate_id)
        candidates.append(candidate)

    if all_errors:
        logger.warning(
            "Candidate rows rejected | rejected_rows=%s | accepted=%s",
            len({error.row for error in all_errors}),
            len(candidates),
        )
    return NormalizationResult(entities=tuple(candidates), errors=tuple(all_errors))


def normalize_internships(rows: Iterable[Mapping[str, Any]]) -> NormalizationResult[Internship]:
    """Canonicalize internship rows; invalid rows are excluded and reported."""
    internships: list[Internship] = []
    all_errors: list[RowValidationError] = []
    seen_ids: set[str] = set()
    for index, row in enumerate(rows, start=1):
        row_errors = _RowErrors(index)
        internship = _normalize_internship_row(row, row_errors, seen_ids)
        if internship is None:
            all_errors.extend(row_errors.items)
            continue
        seen_ids.add(internship.internship_id)
        internships.append(internship)

    if all_errors:
        logger.warning(
            "Internship rows rejected | rejected_rows=%s | accepted=%s",
            len({error.row for error in all_errors}),
            len(internships),
        )
    return NormalizationResult(entities=tuple(internships), errors=tuple(all_errors))


def normalize_records(
    candidate_rows: Iterable[Mapping[str, Any]],
    internship_rows: Iterable[Mapping[str, Any]],
) -> tuple[NormalizationResult[Candidate], NormalizationResult[Internship]]:
    return normalize_candidates(candidate_rows), normalize_internships(internship_rows)
