import time
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rumori.api.routes import auth, coins, favorites, feedback, notifications, projects, stats
from rumori.config import get_settings
from rumori.container import Services
from rumori.exceptions import ErrorKind, RumoriError
from rumori.logger import get_logger

logger = get_logger("main")

STATUS_BY_KIND = {
    ErrorKind.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.EMAIL_NOT_VERIFIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.EMAIL_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INSUFFICIENT_BALANCE: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.DECODING: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STORAGE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.MEDIA: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.OPERATION_IN_PROGRESS: status.HTTP_409_CONFLICT,
    ErrorKind.CONFIGURATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.BACKEND: status.HTTP_502_BAD_GATEWAY,
}

# Kinds whose message may carry backend internals
GENERIC_MESSAGES = {
    ErrorKind.DECODING: "Unexpected response from the server",
    ErrorKind.CONFIGURATION: "Service is not configured correctly",
    ErrorKind.BACKEND: "Backend request failed",
}


def error_response(exc: RumoriError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    message = GENERIC_MESSAGES.get(exc.kind, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "error_type": exc.kind.value},
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the HTTP facade; ``services`` is built lazily when omitted."""
    settings = services.settings if services else get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Local API over the Rumori client services",
        version="1.0.0",
        debug=settings.debug,
    )
    app.state.services = services

    for module in (auth, projects, feedback, coins, favorites, notifications, stats):
        app.include_router(module.router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time to response headers."""
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = f"{time.time() - start_time:.4f}"
        return response

    @app.exception_handler(RumoriError)
    async def rumori_exception_handler(request: Request, exc: RumoriError):
        status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
        if status_code >= 500:
            logger.error(f"{exc.kind.value} error on {request.url.path}: {exc.message} {exc.details or ''}")
        else:
            logger.warning(f"{exc.kind.value} on {request.url.path}: {exc.message}")
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle FastAPI validation errors."""
        logger.warning(f"Request validation error: {exc}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": "Request validation failed", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors."""
        logger.error(f"Unexpected error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "error_type": "unexpected"},
        )

    @app.get("/")
    async def root():
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": settings.app_name,
            "timestamp": time.time(),
        }

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting {settings.app_name}")
        logger.info(f"Debug mode: {settings.debug}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(f"Shutting down {settings.app_name}")

    return app


# Services are built on the first request that needs them
app = create_app()


if __name__ == "__main__":
    import uvicorn

    debug = get_settings().debug
    uvicorn.run(
        "rumori.api.main:app",
        host="127.0.0.1",
        port=8000,
        reload=debug,
        log_level="debug" if debug else "info",
    )
