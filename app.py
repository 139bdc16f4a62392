"""
app.py: FastAPI application factory.

This is the ASGI application object imported by uvicorn. It wires the
allocation services and registers the routers. The engine is stateless, so
there is no startup work beyond wiring.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from allocator.controllers.allocation_controller import router as allocation_router
from allocator.services.matching_service import AllocationEngineService
from allocator.services.optimality_service import OptimalityBenchmarkService
from allocator.services.simulation_service import FairnessComparisonService
from allocator.utils.config import Settings, get_settings
from allocator.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Services are created once and injected via app.state; no global
    singletons beyond the cached settings object.
    """
    resolved_settings = settings or get_settings()

    engine_service = AllocationEngineService(settings=resolved_settings)
    comparison_service = FairnessComparisonService(
        engine=engine_service,
        settings=resolved_settings,
    )
    benchmark_service = OptimalityBenchmarkService(settings=resolved_settings)

    app = FastAPI(
        title=resolved_settings.app_name,
        version=resolved_settings.app_version,
    )
    app.include_router(allocation_router)

    app.state.engine_service = engine_service
    app.state.comparison_service = comparison_service
    app.state.benchmark_service = benchmark_service

    logger.info(
        "Application wired | name=%s | version=%s",
        resolved_settings.app_name,
        resolved_settings.app_version,
    )
    return app


# Module-level app object for uvicorn
app = create_app()
