import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from mangum import Mangum
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from consultapi import containers
from consultapi.config import settings
from consultapi.core.exception_handlers import (
    handle_base_api_exception,
    handle_database_error,
    handle_http_exception,
    handle_unexpected_error,
    handle_validation_error,
)
from consultapi.core.exceptions import BaseAPIException
from consultapi.core.logging_middleware import LoggingMiddleware
from consultapi.logging_config import setup_logging
from consultapi.routers import (
    admin_router,
    consultation_router,
    health_router,
    usage_router,
    withdrawal_router,
)

load_dotenv("consultapi/.env")
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON, sql_echo=settings.DEBUG)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(health_router.router)
    app.include_router(consultation_router.router)
    app.include_router(consultation_router.assignment_router)
    app.include_router(usage_router.router)
    app.include_router(withdrawal_router.router)
    app.include_router(admin_router.router)

    @app.on_event("shutdown")
    def close_cache() -> None:
        app.container.infra.tier_limit_cache().close()  # type: ignore

    return app


app = create_app()

handler = Mangum(app)
