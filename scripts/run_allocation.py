#!/usr/bin/env python3
"""Run one allocation pass over a candidates CSV and an internships CSV."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from allocator.domain.errors import AllocationError
from allocator.repository.record_loader import RecordLoadError, load_rows_from_csv
from allocator.services.matching_service import AllocationEngineService
from allocator.utils.config import get_settings

SEPARATOR_LINE = "=" * 72


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("candidates", type=Path, help="candidates CSV file")
    parser.add_argument("internships", type=Path, help="internships CSV file")
    parser.add_argument("--eligibility-floor", type=int, default=None)
    parser.add_argument("--gender-balance-boost", type=int, default=None)
    parser.add_argument(
        "--json",
        action="store_true",
        help="print the full result as JSON instead of a table",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    try:
        candidate_rows = load_rows_from_csv(args.candidates)
        internship_rows = load_rows_from_csv(args.internships)
    except (OSError, RecordLoadError) as exc:
        print(f"[FAIL] could not read input: {exc}", file=sys.stderr)
        return 2

    service = AllocationEngineService(settings=get_settings())
    try:
        report = service.run_allocation(
            candidate_rows,
            internship_rows,
            eligibility_floor=args.eligibility_floor,
            gender_balance_boost=args.gender_balance_boost,
        )
    except AllocationError as exc:
        print(f"[FAIL] allocation aborted: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(
            json.dumps(
                {
                    "allocations": report.result.to_records(),
                    "unallocated": list(report.result.unallocated_candidate_ids),
                    "statistics": report.statistics.to_api_dict(),
                    "validation_errors": {
                        "candidates": [e.to_api_dict() for e in report.candidate_errors],
                        "internships": [e.to_api_dict() for e in report.internship_errors],
                    },
                },
                indent=2,
            )
        )
        return 0

    print(SEPARATOR_LINE)
    print(" Allocation results")
    print(SEPARATOR_LINE)
    for record in report.result.to_records():
        print(
            f" {record['Candidate']:<20} -> {record['Internship']:<24} "
            f"{record['Score']:>3}  {record['Reason']}"
        )
    print(SEPARATOR_LINE)
    statistics = report.statistics
    print(f" Allocated   : {statistics.allocated}")
    print(f" Unallocated : {statistics.unallocated}")
    if report.result.unallocated_candidate_ids:
        print(f"   ids       : {', '.join(report.result.unallocated_candidate_ids)}")
    for item in report.result.utilization:
        print(f" {item.title:<24} {item.filled}/{item.capacity} ({item.utilization:.0%})")
    for error in report.candidate_errors:
        print(f" [candidates row {error.row}] {error.field}: {error.reason}")
    for error in report.internship_errors:
        print(f" [internships row {error.row}] {error.field}: {error.reason}")
    print(SEPARATOR_LINE)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
