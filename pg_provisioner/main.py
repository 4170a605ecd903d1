import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pg8000.native import Error as DriverError

from .config import get_settings
from .routers import database, query
from .service import error_message

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("pg_provisioner")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("PostgreSQL Provisioning Service starting")
    for route in app.routes:
        if hasattr(route, "methods") and hasattr(route, "path"):
            for method in route.methods:
                if method != "HEAD":
                    logger.info("Route: %s %s", method, route.path)
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="PostgreSQL Provisioning Service", version="1.0.0", lifespan=lifespan)

    @app.exception_handler(DriverError)
    async def driver_exception_handler(request: Request, exc: DriverError) -> JSONResponse:
        logger.error(
            "Database error on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": error_message(exc)},
        )

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    app.include_router(database.router)
    app.include_router(query.router)
    return app


app = create_app()
