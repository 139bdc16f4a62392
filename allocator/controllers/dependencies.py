"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from allocator.services.matching_service import AllocationEngineService
from allocator.services.optimality_service import OptimalityBenchmarkService
from allocator.services.simulation_service import FairnessComparisonService


def _require_state(request: Request, attribute: str, label: str):
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_engine_service(request: Request) -> AllocationEngineService:
    return _require_state(request, "engine_service", "Allocation engine")


def get_comparison_service(request: Request) -> FairnessComparisonService:
    service = getattr(request.app.state, "comparison_service", None)
    if service is None:
        engine = getattr(request.app.state, "engine_service", None)
        if engine is not None:
            service = FairnessComparisonService(engine=engine)
            request.app.state.comparison_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Fairness comparison service is not initialized",
        )
    return service


def get_benchmark_service(request: Request) -> OptimalityBenchmarkService:
    return _require_state(request, "benchmark_service", "Optimality benchmark service")
