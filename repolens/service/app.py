"""FastAPI application entrypoint for repolens service mode."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..config import RepoLensConfig
from ..errors import NetworkError, RepoLensError, UsageError
from ..logging import get_logger
from ..report import SemanticReport, schema_as_json
from ..scanner import Scanner

logger = get_logger("service")


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScanRequest(_RequestModel):
    path: str
    use_cache: bool = True


class RemoteScanRequest(_RequestModel):
    reference: str
    use_cache: bool = True
    timeout: Optional[float] = None


class HealthResponse(BaseModel):
    status: str


def _default_scanner() -> Scanner:
    return Scanner()


def create_app(
    scanner_factory: Callable[[], Scanner] = _default_scanner,
) -> FastAPI:
    """Create the FastAPI application exposing repolens scans."""

    app = FastAPI(title="RepoLens Service", version="1.0.0")

    async def get_scanner() -> Scanner:
        return scanner_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/schema")
    async def report_schema() -> Dict[str, Any]:
        return json.loads(schema_as_json())

    @app.post("/scan")
    async def scan_local(
        payload: ScanRequest,
        scanner: Scanner = Depends(get_scanner),
    ) -> JSONResponse:
        def _run_scan() -> SemanticReport:
            return scanner.scan(payload.path, use_cache=payload.use_cache)

        loop = asyncio.get_running_loop()
        report = await loop.run_in_executor(None, _run_scan)
        return JSONResponse(content=report.to_dict())

    @app.post("/scan/remote")
    async def scan_remote(
        payload: RemoteScanRequest,
        scanner: Scanner = Depends(get_scanner),
    ) -> JSONResponse:
        report = await scanner.scan_remote_async(
            payload.reference, timeout=payload.timeout, use_cache=payload.use_cache
        )
        return JSONResponse(content=report.to_dict())

    @app.exception_handler(UsageError)
    async def usage_error_handler(_: Any, exc: UsageError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(NetworkError)
    async def network_error_handler(_: Any, exc: NetworkError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(RepoLensError)
    async def scan_error_handler(_: Any, exc: RepoLensError) -> JSONResponse:
        logger.warning("Scan request failed: %s", exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1",
    port: int = 8000,
    *,
    config: RepoLensConfig | None = None,
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(lambda: Scanner(config))
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
