"""HTTP controller layer for allocation runs."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field

from allocator.controllers.dependencies import (
    get_benchmark_service,
    get_comparison_service,
    get_engine_service,
)
from allocator.domain.errors import ConfigurationError, InvariantViolation
from allocator.domain.models import RowValidationError
from allocator.services.matching_service import AllocationEngineService
from allocator.services.normalizer_service import normalize_candidates, normalize_internships
from allocator.services.optimality_service import (
    OptimalityBenchmarkService,
    SolverDependencyError,
    SolverFailedError,
)
from allocator.services.simulation_service import FairnessComparisonService
from allocator.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["allocation"])


class AllocationOptions(BaseModel):
    eligibility_floor: int | None = Field(default=None, ge=0, le=100)
    gender_balance_boost: int | None = Field(default=None, ge=0, le=100)


class AllocationRequest(BaseModel):
    """Rows as produced by the upload parser: column name -> cell text."""

    candidates: list[dict[str, Any]] = Field(default_factory=list)
    internships: list[dict[str, Any]] = Field(default_factory=list)
    options: AllocationOptions = Field(default_factory=AllocationOptions)


class AllocationRecordResponse(BaseModel):
    """Results-table row. Field aliases are the exact keys the table reads."""

    model_config = ConfigDict(populate_by_name=True)

    candidate: str = Field(alias="Candidate")
    internship: str = Field(alias="Internship")
    score: int = Field(alias="Score", ge=0, le=100)
    reason: str = Field(alias="Reason")
    category: str = Field(alias="Category")
    gender: str = Field(alias="Gender")
    area: str = Field(alias="Area")
    past_participation: str = Field(alias="Past Participation")


class UtilizationResponse(BaseModel):
    internship_id: str
    title: str
    capacity: int = Field(ge=0)
    filled: int = Field(ge=0)
    utilization: float = Field(ge=0.0, le=1.0)


class RowErrorResponse(BaseModel):
    row: int = Field(ge=1)
    field: str
    reason: str


class ValidationErrorsResponse(BaseModel):
    candidates: list[RowErrorResponse] = Field(default_factory=list)
    internships: list[RowErrorResponse] = Field(default_factory=list)


class AllocationResponse(BaseModel):
    allocations: list[AllocationRecordResponse]
    unallocated: list[str]
    utilization: list[UtilizationResponse]
    statistics: dict[str, Any]
    validation_errors: ValidationErrorsResponse


class ComparisonMetricsResponse(BaseModel):
    allocated: int = Field(ge=0)
    objective_value: int = Field(ge=0)
    average_base_score: float = Field(ge=0.0, le=100.0)
    average_final_score: float = Field(ge=0.0, le=100.0)
    fairness_index: float = Field(ge=0.0, le=1.0)
    category_allocations: dict[str, int]
    category_average_final_score: dict[str, float]


class FairnessComparisonResponse(BaseModel):
    baseline: ComparisonMetricsResponse
    adjusted: ComparisonMetricsResponse
    delta: dict[str, Any]
    validation_errors: ValidationErrorsResponse


class BenchmarkResponse(BaseModel):
    greedy_objective: int = Field(ge=0)
    optimal_objective: int = Field(ge=0)
    optimality_gap: float
    solver_status: str
    eligible_pairs: int = Field(ge=0)


class HealthResponse(BaseModel):
    status: str
    version: str


def _to_error_rows(errors: tuple[RowValidationError, ...]) -> list[RowErrorResponse]:
    return [RowErrorResponse(**error.to_api_dict()) for error in errors]


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    return HealthResponse(status="ok", version=request.app.version)


@router.post(
    "/allocate",
    response_model=AllocationResponse,
    status_code=status.HTTP_200_OK,
)
async def allocate(
    payload: AllocationRequest,
    service: AllocationEngineService = Depends(get_engine_service),
) -> AllocationResponse:
    """Normalize uploaded rows and run one allocation pass."""
    try:
        report = service.run_allocation(
            payload.candidates,
            payload.internships,
            eligibility_floor=payload.options.eligibility_floor,
            gender_balance_boost=payload.options.gender_balance_boost,
        )
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except InvariantViolation as exc:
        logger.exception("Allocation invariant violated")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Allocation invariant violated: {exc}",
        ) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Unexpected allocation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run allocation",
        ) from exc

    return AllocationResponse(
        allocations=[
            AllocationRecordResponse.model_validate(record)
            for record in report.result.to_records()
        ],
        unallocated=list(report.result.unallocated_candidate_ids),
        utilization=[
            UtilizationResponse(**item.to_api_dict()) for item in report.result.utilization
        ],
        statistics=report.statistics.to_api_dict(),
        validation_errors=ValidationErrorsResponse(
            candidates=_to_error_rows(report.candidate_errors),
            internships=_to_error_rows(report.internship_errors),
        ),
    )


@router.post(
    "/fairness_comparison",
    response_model=FairnessComparisonResponse,
    status_code=status.HTTP_200_OK,
)
async def fairness_comparison(
    payload: AllocationRequest,
    service: FairnessComparisonService = Depends(get_comparison_service),
) -> FairnessComparisonResponse:
    """Compare a boost-free baseline run with the fairness-adjusted run."""
    candidate_batch = normalize_candidates(payload.candidates)
    internship_batch = normalize_internships(payload.internships)
    try:
        result = service.compare(
            candidate_batch.entities,
            internship_batch.entities,
            eligibility_floor=payload.options.eligibility_floor,
            gender_balance_boost=payload.options.gender_balance_boost,
        )
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Unexpected fairness comparison failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run fairness comparison",
        ) from exc

    return FairnessComparisonResponse(
        **result,
        validation_errors=ValidationErrorsResponse(
            candidates=_to_error_rows(candidate_batch.errors),
            internships=_to_error_rows(internship_batch.errors),
        ),
    )


@router.post(
    "/benchmark",
    response_model=BenchmarkResponse,
    status_code=status.HTTP_200_OK,
)
async def benchmark(
    payload: AllocationRequest,
    engine: AllocationEngineService = Depends(get_engine_service),
    service: OptimalityBenchmarkService = Depends(get_benchmark_service),
) -> BenchmarkResponse:
    """Measure the greedy assignment against the exact CP-SAT optimum."""
    candidate_batch = normalize_candidates(payload.candidates)
    internship_batch = normalize_internships(payload.internships)
    try:
        config = engine.build_config(
            eligibility_floor=payload.options.eligibility_floor,
            gender_balance_boost=payload.options.gender_balance_boost,
        )
        result = service.benchmark(
            candidate_batch.entities,
            internship_batch.entities,
            config,
        )
        return BenchmarkResponse(**result.to_api_dict())
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except SolverDependencyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except SolverFailedError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Unexpected benchmark failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run optimality benchmark",
        ) from exc
