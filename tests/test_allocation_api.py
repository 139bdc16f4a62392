from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from allocator.services import optimality_service
from allocator.utils.config import get_settings
from app import create_app


RECORD_KEYS = {
    "Candidate",
    "Internship",
    "Score",
    "Reason",
    "Category",
    "Gender",
    "Area",
    "Past Participation",
}


def _candidate_row(candidate_id: str, category: str, skills: str) -> dict[str, str]:
    return {
        "id": candidate_id,
        "name": f"Candidate {candidate_id}",
        "skills": skills,
        "qualifications": "",
        "location_preferences": "",
        "sector_interests": "",
        "category": category,
        "area": "Urban",
        "past_internship": "false",
    }


def _payload(**options) -> dict[str, object]:
    return {
        "candidates": [
            _candidate_row("A", "General", "python"),
            _candidate_row("B", "SC", "python"),
            _candidate_row("C", "General", ""),
        ],
        "internships": [
            {
                "id": "I1",
                "title": "Backend Intern",
                "required_skills": "python",
                "qualifications": "",
                "location": "Delhi",
                "sector": "IT",
                "capacity": "1",
            }
        ],
        "options": options,
    }


@pytest.fixture()
def client() -> TestClient:
    get_settings.cache_clear()
    return TestClient(create_app(get_settings()))


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_allocate_returns_table_records(client: TestClient) -> None:
    response = client.post("/allocate", json=_payload())

    assert response.status_code == 200
    body = response.json()
    assert len(body["allocations"]) == 1
    record = body["allocations"][0]
    assert set(record) == RECORD_KEYS
    assert record["Candidate"] == "Candidate B"
    assert record["Score"] == 48
    assert record["Category"] == "SC"
    assert record["Gender"] == "Unspecified"
    assert record["Past Participation"] == "No"
    assert body["unallocated"] == ["A", "C"]
    assert body["utilization"][0]["utilization"] == 1.0
    assert body["statistics"]["fairness_index"] == pytest.approx(0.5)
    assert body["validation_errors"] == {"candidates": [], "internships": []}


def test_allocate_reports_rejected_rows(client: TestClient) -> None:
    payload = _payload()
    payload["candidates"].append(_candidate_row("D", "Unknown", "python"))
    payload["internships"].append(
        {
            "id": "I2",
            "title": "Broken",
            "required_skills": "",
            "qualifications": "",
            "location": "Pune",
            "sector": "IT",
            "capacity": "-2",
        }
    )

    response = client.post("/allocate", json=payload)

    assert response.status_code == 200
    errors = response.json()["validation_errors"]
    assert [(error["row"], error["field"]) for error in errors["candidates"]] == [(4, "category")]
    assert errors["internships"][0]["row"] == 2
    assert errors["internships"][0]["field"] == "capacity"


def test_allocate_options_are_range_checked(client: TestClient) -> None:
    response = client.post("/allocate", json=_payload(eligibility_floor=101))
    assert response.status_code == 422


def test_allocate_eligibility_floor_option(client: TestClient) -> None:
    payload = _payload(eligibility_floor=1)
    payload["internships"][0]["capacity"] = "3"

    response = client.post("/allocate", json=payload)

    assert response.status_code == 200
    assert response.json()["unallocated"] == ["C"]


def test_invalid_weights_are_a_bad_request() -> None:
    get_settings.cache_clear()
    settings = replace(get_settings(), score_weight_skill=0.9)
    client = TestClient(create_app(settings))

    response = client.post("/allocate", json=_payload())

    assert response.status_code == 400
    assert "weights" in response.json()["detail"]


def test_fairness_comparison_endpoint(client: TestClient) -> None:
    response = client.post("/fairness_comparison", json=_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["delta"]["category_allocation_change"]["SC"] == 1
    assert body["delta"]["category_allocation_change"]["General"] == -1
    assert body["baseline"]["objective_value"] == 40
    assert body["adjusted"]["objective_value"] == 48


def test_benchmark_endpoint(client: TestClient) -> None:
    pytest.importorskip("ortools")
    response = client.post("/benchmark", json=_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["greedy_objective"] == 48
    assert body["optimal_objective"] == 48
    assert body["optimality_gap"] == 0.0


def test_benchmark_without_ortools_is_unavailable(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(optimality_service, "cp_model", None)
    response = client.post("/benchmark", json=_payload())
    assert response.status_code == 503


def test_missing_service_returns_503() -> None:
    from allocator.controllers.allocation_controller import router

    app = FastAPI()
    app.include_router(router)
    response = TestClient(app).post("/allocate", json=_payload())
    assert response.status_code == 503


def _even_payload() -> dict[str, object]:
    candidates = [
        _candidate_row(f"{category}{index}", category, "python" if index < 7 else "")
        for category in ("General", "SC", "OBC")
        for index in range(9)
    ]
    return {
        "candidates": candidates,
        "internships": [
            {
                "id": "I1",
                "title": "Backend Intern",
                "required_skills": "python",
                "qualifications": "",
                "location": "Delhi",
                "sector": "IT",
                "capacity": "21",
            }
        ],
    }


def test_even_allocation_reports_fairness_index_of_one(client: TestClient) -> None:
    allocate = client.post("/allocate", json=_even_payload())
    assert allocate.status_code == 200
    statistics = allocate.json()["statistics"]
    assert statistics["category_allocation_rate"] == {
        "General": pytest.approx(7 / 9),
        "OBC": pytest.approx(7 / 9),
        "SC": pytest.approx(7 / 9),
    }
    assert statistics["fairness_index"] == 1.0

    comparison = client.post("/fairness_comparison", json=_even_payload())
    assert comparison.status_code == 200
    assert comparison.json()["baseline"]["fairness_index"] == 1.0
    assert comparison.json()["adjusted"]["fairness_index"] == 1.0


def test_health_reports_version_of_wired_settings() -> None:
    get_settings.cache_clear()
    settings = replace(get_settings(), app_version="9.9.9")
    response = TestClient(create_app(settings)).get("/health")
    assert response.json() == {"status": "ok", "version": "9.9.9"}
