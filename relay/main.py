"""Entry point for the relay service."""

import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from relay.auth import AuthStore
from relay.config import RelayConfig
from relay.exceptions import (
    AdmissionRejectedError,
    AllocationError,
    ChunkNotFoundError,
    InvalidAPIKeyError,
    InvalidSessionError,
    RelayException,
    StorageError,
)
from relay.protocol import RelayProtocolHandler
from relay.reaper import SessionReaper
from relay.routes import auth_router, relay_router
from relay.schemas import ErrorResponse

logger = setup_logging('relay')


def _error_response(exc: RelayException, **extra) -> JSONResponse:
    content = ErrorResponse(error=str(exc), code=exc.code).model_dump()
    content.update(extra)
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    """
    Build the relay application around one immutable configuration.

    Args:
        config: Relay configuration; read from the environment when omitted

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = RelayConfig.from_env()

    app = FastAPI(
        title="chunkrelay",
        description="Relays large files between two parties in fixed-size chunks",
        version="1.0.0"
    )

    handler = RelayProtocolHandler.from_config(config)
    app.state.config = config
    app.state.handler = handler
    app.state.auth_store = AuthStore(config)
    app.state.reaper = SessionReaper(config, handler.registry, auth_store=app.state.auth_store)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        action = request.query_params.get("action", "-")

        logger.info(
            f"Request started: {request.method} {request.url.path} action={action} [request_id={request_id}]"
        )

        response = await call_next(request)

        duration = time.time() - start_time

        logger.info(
            f"Request completed: {request.method} {request.url.path} action={action} "
            f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
        )

        response.headers["X-Request-ID"] = request_id

        return response

    @app.on_event("startup")
    async def startup_event():
        """
        Prepare the storage root and start the session reaper.
        """
        logger.info(f"Relay starting up (storage_root={config.storage_root})...")
        handler.registry.ensure_root()
        await app.state.reaper.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Relay shutting down...")
        await app.state.reaper.stop()

    @app.exception_handler(InvalidSessionError)
    async def invalid_session_handler(request: Request, exc: InvalidSessionError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Invalid session: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return _error_response(exc, reason=exc.reason)

    @app.exception_handler(ChunkNotFoundError)
    async def chunk_not_found_handler(request: Request, exc: ChunkNotFoundError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.debug(
            f"Chunk not found: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return _error_response(exc)

    @app.exception_handler(AdmissionRejectedError)
    async def admission_rejected_handler(request: Request, exc: AdmissionRejectedError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Admission rejected: {exc.reason} [request_id={request_id}] path={request.url.path}"
        )
        return _error_response(exc, reason=exc.reason)

    @app.exception_handler(InvalidAPIKeyError)
    async def invalid_api_key_handler(request: Request, exc: InvalidAPIKeyError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Invalid API key error: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return _error_response(exc)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Storage error: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
        return _error_response(exc)

    @app.exception_handler(AllocationError)
    async def allocation_error_handler(request: Request, exc: AllocationError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Allocation error: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
        return _error_response(exc)

    @app.exception_handler(RelayException)
    async def relay_exception_handler(request: Request, exc: RelayException):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Relay error {exc.code}: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return _error_response(exc)

    app.include_router(auth_router)
    app.include_router(relay_router)

    @app.get("/")
    async def root():
        """
        Root endpoint for health check.
        """
        return {"message": "chunkrelay API", "status": "running"}

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for container healthchecks.
        Returns 200 if service is alive and the storage root is present.
        """
        healthy = config.storage_root.is_dir()
        return JSONResponse(
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "healthy" if healthy else "degraded", "service": "relay"}
        )

    return app


def main() -> None:
    """
    Start the relay with uvicorn.
    """
    config = RelayConfig.from_env()
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
