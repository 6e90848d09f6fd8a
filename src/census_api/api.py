"""FastAPI REST API for wildlife census records."""
import json
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy import exc as sa_exc
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from . import db_utils
from .config import Settings
from .db import Database, get_db
from .errors import CensusError
from .routes import router

VERSION = "0.1.0"


def configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(
        sys.stdout,
        level=settings.log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
    )


class JSONLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response: Response = await call_next(request)
        process_time = time.time() - start_time
        # Parse query params into a dict (support multi-values)
        qp = {}
        for key, value in request.query_params.multi_items():
            if key in qp:
                existing = qp[key]
                if isinstance(existing, list):
                    existing.append(value)
                else:
                    qp[key] = [existing, value]
            else:
                qp[key] = value

        log_data = {
            "method": request.method,
            "path": request.url.path,
            "query_params": qp,
            "status_code": response.status_code,
            "duration_ms": int(process_time * 1000),
            "client_ip": request.client.host if request.client else None,
        }
        logger.info(json.dumps(log_data))
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database = Database(settings)
    if settings.create_schema:
        await db_utils.create_schema(database)
    app.state.db = database
    logger.info(f"Connected to {database.engine.url.render_as_string(hide_password=True)}")
    try:
        yield
    finally:
        await database.dispose()


# ============================================================================
# Error Mapping
# ============================================================================

async def census_error_handler(request: Request, exc: CensusError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": "; ".join(problems)},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def database_unavailable_handler(request: Request, exc: sa_exc.SQLAlchemyError) -> JSONResponse:
    logger.opt(exception=exc).error(f"{request.method} {request.url.path}: database unavailable")
    return JSONResponse(status_code=503, content={"error": "Database unavailable"})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ============================================================================
# Application
# ============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    app = FastAPI(
        title="Wildlife Census API",
        description="""
REST API for wildlife census records.

Features:
- Species, locations and observers
- Census counts that keep each species' current population in sync
- Conservation status history
- Population density and growth rate reports
        """,
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(JSONLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CensusError, census_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(sa_exc.TimeoutError, database_unavailable_handler)
    app.add_exception_handler(sa_exc.OperationalError, database_unavailable_handler)
    app.add_exception_handler(sa_exc.InterfaceError, database_unavailable_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.get("/", tags=["meta"])
    async def root():
        """Root endpoint with API information."""
        return {
            "message": "Wildlife Census API",
            "version": VERSION,
            "documentation": "/docs",
            "openapi": "/openapi.json",
            "endpoints": {
                "species": "/species",
                "locations": "/locations",
                "observers": "/observers",
                "census": "/census",
                "reports": "/reports/census",
                "conservation_history": "/conservation-history/{species_id}",
                "health": "/health",
            },
        }

    @app.get("/health", tags=["meta"])
    async def health_check(db: AsyncSession = Depends(get_db)):
        """Health check endpoint - verifies database connectivity."""
        try:
            await db.execute(select(1))
            return {"status": "healthy", "database": "connected"}
        except Exception as e:
            raise HTTPException(status_code=503, detail=f"Database error: {str(e)}")

    app.include_router(router)
    return app


app = create_app()
