from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from emp_accounts.db.init_db import init_db
from emp_accounts.errors import AppError
from emp_accounts.logging_config import configure_app_logging
from emp_accounts.routers import accounts, auth, departments, health
from emp_accounts.security.config import load_security_config
from emp_accounts.settings import get_settings

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"error": exc.message})


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Storage failures surface as 500, never as a permission denial.
    logger.exception("Storage error path=%s method=%s", request.url.path, request.method)
    return JSONResponse(status_code=500, content={"error": "Internal storage error"})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        config = load_security_config(settings.resolved_security_config_path())
        app.state.security_config = config
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())

        init_db(config, settings)
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    app = FastAPI(title="Employee Accounts", lifespan=lifespan)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(accounts.router)
    app.include_router(departments.router)

    return app


app = create_app()
