"""FastAPI application factory for the survey response service."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from survey_app.config import AppConfig, load_config
from survey_app.db.base import create_schema, get_engine
from survey_app.http.problem import (
    handle_http_exception,
    handle_not_found,
    handle_request_validation_error,
    handle_response_validation_error,
    handle_store_error,
    handle_unexpected_error,
)
from survey_app.http.request_id import RequestIdMiddleware
from survey_app.logging_setup import configure_logging
from survey_app.logic.errors import NotFoundError, ResponseStoreError, ResponseValidationError
from survey_app.routes import api_router

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    configure_logging()
    config = config or load_config()
    engine = get_engine(config.database.dsn)
    engine.echo = config.database.echo

    app = FastAPI(title="Survey Response Service")
    app.state.config = config
    app.state.engine = engine

    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(ResponseValidationError, handle_response_validation_error)
    app.add_exception_handler(NotFoundError, handle_not_found)
    app.add_exception_handler(ResponseStoreError, handle_store_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api/v1")

    @app.on_event("startup")
    def _bootstrap_schema() -> None:
        create_schema(engine)

    @app.get("/health", include_in_schema=False)
    def health() -> dict:
        try:
            with engine.connect() as conn:
                conn.execute(sql_text("SELECT 1"))
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}

    logger.info("app_created dialect=%s max_page_size=%s", engine.dialect.name, config.responses.max_page_size)
    return app
