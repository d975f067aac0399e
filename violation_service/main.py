import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from violation_service.api.v1.api import router as api_router
from violation_service.core.config import settings
from violation_service.core.database import init_models
from violation_service.core.exceptions import ServiceError
from violation_service.core.logging import setup_logging

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    401: "unauthenticated",
    403: "permission_denied",
    404: "not_found",
    405: "method_not_allowed",
}


def _error_response(status_code: int, message: str, code: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "code": code}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid input"
    first = errors[0]
    message = first.get("msg", "invalid value")
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    if not location:
        return message
    return f"{location}: {message}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    settings.validate_for_startup()
    if settings.AUTO_CREATE_TABLES:
        await init_models()
        logger.info("Database tables ensured")
    logger.info("Violation service started (%s)", settings.ENVIRONMENT)
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Trip Violations API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return _error_response(exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # malformed bodies, path ids and query values are plain invalid input
        return _error_response(400, _validation_message(exc), "invalid_input")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(
            exc.status_code,
            str(exc.detail),
            HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "internal error", "internal_error")

    # Health check route
    @app.get("/healthz")
    async def health_check():
        return {"status": "ok"}

    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("violation_service.main:app", host=settings.API_HOST, port=settings.API_PORT)
