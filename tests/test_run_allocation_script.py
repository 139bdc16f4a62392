from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest


SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "run_allocation.py"

CANDIDATES_CSV = (
    "id,name,skills,qualifications,location_preferences,sector_interests,category,area,past_internship\n"
    "A,Anil,python,,,,General,Urban,no\n"
    "B,Bina,python,,,,SC,Urban,no\n"
    "C,Chetan,,,,,General,Urban,no\n"
)
INTERNSHIPS_CSV = (
    "id,title,required_skills,qualifications,location,sector,capacity\n"
    "I1,Backend Intern,python,,Delhi,IT,1\n"
)


@pytest.fixture()
def script_module():
    spec = importlib.util.spec_from_file_location("run_allocation", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture()
def csv_paths(tmp_path) -> tuple[str, str]:
    candidates = tmp_path / "candidates.csv"
    internships = tmp_path / "internships.csv"
    candidates.write_text(CANDIDATES_CSV, encoding="utf-8")
    internships.write_text(INTERNSHIPS_CSV, encoding="utf-8")
    return str(candidates), str(internships)


def test_table_output(script_module, csv_paths, capsys) -> None:
    exit_code = script_module.main(list(csv_paths))

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Bina" in output
    assert "Backend Intern" in output
    assert "Allocated   : 1" in output
    assert "A, C" in output


def test_json_output(script_module, csv_paths, capsys) -> None:
    exit_code = script_module.main([*csv_paths, "--json"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert '"Candidate": "Bina"' in output
    assert '"Score": 48' in output
    assert '"unallocated"' in output


def test_missing_file_exits_with_read_failure(script_module, tmp_path, capsys) -> None:
    exit_code = script_module.main([str(tmp_path / "nope.csv"), str(tmp_path / "nope2.csv")])
    assert exit_code == 2
    assert "[FAIL]" in capsys.readouterr().err


def test_invalid_override_exits_with_allocation_failure(script_module, csv_paths, capsys) -> None:
    exit_code = script_module.main([*csv_paths, "--eligibility-floor", "150"])
    assert exit_code == 1
    assert "eligibility_floor" in capsys.readouterr().err
