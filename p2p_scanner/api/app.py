"""FastAPI application serving normalized quotes and summaries."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from p2p_scanner.models.config import ScannerConfig
from p2p_scanner.models.data_models import Side
from p2p_scanner.pipeline.orchestrator import QuoteService
from p2p_scanner.pipeline.output import JSONOutputFormatter
from p2p_scanner.pipeline.snapshot import SnapshotStore


CACHE_CONTROL = "s-maxage=10, stale-while-revalidate=20"


def create_app(
    config: Optional[ScannerConfig] = None,
    service: Optional[QuoteService] = None,
    snapshots: Optional[SnapshotStore] = None
) -> FastAPI:
    """
    Create the scanner API.

    Args:
        config: Scanner configuration (read from the environment when omitted)
        service: Pre-built QuoteService (tests inject one with a mock transport)
        snapshots: Snapshot store shared with other components

    Returns:
        FastAPI application
    """
    config = config or (service.config if service else ScannerConfig.from_env())
    service = service or QuoteService(config)
    snapshots = snapshots or SnapshotStore()
    formatter = JSONOutputFormatter()
    logger = service.logger

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with service:
            yield

    app = FastAPI(title="P2P Quote Scanner", lifespan=lifespan)
    app.state.service = service
    app.state.snapshots = snapshots

    def _no_data(error: str) -> JSONResponse:
        return JSONResponse(
            formatter.format_error(error, service.fallback_hint()),
            status_code=503
        )

    def _internal_error(route: str, exc: Exception) -> JSONResponse:
        logger.log("request_error", level=logging.ERROR, route=route, error=f"{type(exc).__name__}: {exc}")
        logger.logger.exception("unexpected error in %s", route)
        return JSONResponse(formatter.format_error("Internal server error"), status_code=500)

    def _cached(body: dict, status_code: int = 200) -> JSONResponse:
        response = JSONResponse(body, status_code=status_code)
        response.headers["Cache-Control"] = CACHE_CONTROL
        return response

    @app.get("/quotes")
    async def get_quotes(
        side: Side = Side.BUY,
        fiat: str = config.default_fiat,
        crypto: str = config.default_crypto,
        limit: int = Query(default=config.default_limit, ge=1, le=config.max_limit)
    ):
        """Normalized quotes for one side."""
        try:
            data, report = await service.fetch_quotes(side, fiat.upper(), crypto.upper(), limit)
        except Exception as e:
            return _internal_error("/quotes", e)

        if data is None:
            logger.log("no_data", route="/quotes", **formatter.format_report(report))
            return _no_data("Failed to fetch data from OKX")

        return _cached(formatter.format_quote_set(data))

    @app.get("/summary")
    async def get_summary(
        fiat: str = config.default_fiat,
        crypto: str = config.default_crypto,
        limit: int = Query(default=config.default_limit, ge=1, le=config.max_limit)
    ):
        """Best prices, midpoint and spread for both sides."""
        try:
            summary = await service.fetch_summary(fiat.upper(), crypto.upper(), limit)
        except Exception as e:
            return _internal_error("/summary", e)

        if summary is None:
            return _no_data("Failed to fetch summary from OKX")

        return _cached(formatter.format_summary(summary))

    @app.post("/snapshots", status_code=201)
    async def capture_snapshot(
        fiat: str = config.default_fiat,
        crypto: str = config.default_crypto,
        limit: int = Query(default=config.default_limit, ge=1, le=config.max_limit)
    ):
        """Capture the current summary as the latest snapshot for the pair."""
        try:
            summary = await service.fetch_summary(fiat.upper(), crypto.upper(), limit)
        except Exception as e:
            return _internal_error("/snapshots", e)

        if summary is None:
            return _no_data("Failed to fetch summary from OKX")

        snapshot = snapshots.capture(summary, captured_at=service.clock.now())
        logger.log("snapshot_captured", id=snapshot.id, fiat=summary.fiat, crypto=summary.crypto)
        return JSONResponse(formatter.format_snapshot(snapshot), status_code=201)

    @app.get("/snapshots/latest")
    async def latest_snapshot(
        fiat: str = config.default_fiat,
        crypto: str = config.default_crypto
    ):
        """Latest manually captured snapshot for the pair."""
        snapshot = snapshots.latest(fiat.upper(), crypto.upper())
        if snapshot is None:
            return JSONResponse(formatter.format_error("No snapshot captured"), status_code=404)
        return formatter.format_snapshot(snapshot)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "sources": [
                {"name": source.name, "available": source.available}
                for source in service.sources
            ],
        }

    return app
