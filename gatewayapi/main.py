import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from mangum import Mangum
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from gatewayapi import containers
from gatewayapi.config import settings
from gatewayapi.core.exception_handlers import (
    handle_base_api_exception,
    handle_http_exception,
    handle_unexpected_error,
    handle_validation_error,
)
from gatewayapi.core.exceptions import BaseAPIException
from gatewayapi.core.logging_middleware import LoggingMiddleware
from gatewayapi.logging_config import setup_logging
from gatewayapi.routers import (
    checkout_router,
    gamification_router,
    health_router,
    statement_router,
    transaction_router,
)

load_dotenv("gatewayapi/.env")

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
    )
    app.container = containers.Container()  # type: ignore

    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router.router)
    app.include_router(statement_router.router, prefix=settings.API_V1_STR)
    app.include_router(transaction_router.router, prefix=settings.API_V1_STR)
    app.include_router(checkout_router.router, prefix=settings.API_V1_STR)
    app.include_router(gamification_router.router, prefix=settings.API_V1_STR)

    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
