"""Entry point for the Polygraf server."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.constants import ROLE_ADMIN
from common.logging_config import setup_logging
from polygraf.config import BOOTSTRAP_ADMIN_TOKEN, SERVER_HOST, SERVER_PORT
from polygraf.database import init_database
from polygraf.exceptions import (
    PolygrafException,
    AccessTokenNotFoundError,
    AccessTokenAlreadyUsedError,
    AccessTokenExpiredError,
    IdentityIssuanceFailedError,
    GuestAccessDisabledError,
    StorageFailureError,
    TransactionAbortedError,
    ObjectTooLargeError,
    ObjectNotFoundError,
    CorruptObjectError,
    InvalidSessionError,
    UnauthorizedAccessError
)
from polygraf.routes.auth_routes import router as auth_router
from polygraf.routes.object_routes import router as object_router
from polygraf.routes.token_routes import router as token_router
from polygraf.services.token_service import TokenService

logger = setup_logging('polygraf')

app = FastAPI(
    title="Polygraf API",
    description="Single-use access token redemption and chunked object storage",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time
    user_id = getattr(request.state, 'user_id', None)

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s "
        f"[request_id={request_id}] [user_id={user_id or 'anonymous'}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database and the bootstrap admin token on application startup.
    """
    logger.info("Polygraf server starting up...")

    init_database()
    logger.info("Database initialized")

    if BOOTSTRAP_ADMIN_TOKEN:
        TokenService().ensure_token(BOOTSTRAP_ADMIN_TOKEN, ROLE_ADMIN)
        logger.info("Bootstrap admin token ensured")


def _error_response(request: Request, exc: PolygrafException, status_code: int) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=exc
        )
    else:
        logger.warning(
            f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}"
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code, "retryable": exc.retryable}
    )


@app.exception_handler(AccessTokenNotFoundError)
async def token_not_found_handler(request: Request, exc: AccessTokenNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND)


@app.exception_handler(AccessTokenAlreadyUsedError)
async def token_already_used_handler(request: Request, exc: AccessTokenAlreadyUsedError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT)


@app.exception_handler(AccessTokenExpiredError)
async def token_expired_handler(request: Request, exc: AccessTokenExpiredError):
    return _error_response(request, exc, status.HTTP_410_GONE)


@app.exception_handler(IdentityIssuanceFailedError)
async def identity_issuance_failed_handler(request: Request, exc: IdentityIssuanceFailedError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY)


@app.exception_handler(GuestAccessDisabledError)
async def guest_access_disabled_handler(request: Request, exc: GuestAccessDisabledError):
    return _error_response(request, exc, status.HTTP_403_FORBIDDEN)


@app.exception_handler(TransactionAbortedError)
async def transaction_aborted_handler(request: Request, exc: TransactionAbortedError):
    return _error_response(request, exc, status.HTTP_503_SERVICE_UNAVAILABLE)


@app.exception_handler(ObjectTooLargeError)
async def object_too_large_handler(request: Request, exc: ObjectTooLargeError):
    return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)


@app.exception_handler(StorageFailureError)
async def storage_failure_handler(request: Request, exc: StorageFailureError):
    return _error_response(request, exc, status.HTTP_503_SERVICE_UNAVAILABLE)


@app.exception_handler(ObjectNotFoundError)
async def object_not_found_handler(request: Request, exc: ObjectNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND)


@app.exception_handler(CorruptObjectError)
async def corrupt_object_handler(request: Request, exc: CorruptObjectError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.exception_handler(InvalidSessionError)
async def invalid_session_handler(request: Request, exc: InvalidSessionError):
    return _error_response(request, exc, status.HTTP_401_UNAUTHORIZED)


@app.exception_handler(UnauthorizedAccessError)
async def unauthorized_access_handler(request: Request, exc: UnauthorizedAccessError):
    return _error_response(request, exc, status.HTTP_403_FORBIDDEN)


@app.exception_handler(PolygrafException)
async def polygraf_exception_handler(request: Request, exc: PolygrafException):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR)


app.include_router(auth_router)
app.include_router(token_router)
app.include_router(object_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Polygraf API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "polygraf"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "polygraf.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT
    )


if __name__ == "__main__":
    main()
