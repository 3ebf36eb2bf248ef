"""
ASGI entry point for the scholarship portal.

Builds the FastAPI app: JSON logging, CORS, per-request ids, the mapping
from portal errors to HTTP status codes, the auth/applications/admin
routers, and (for the local blob backend) the /files static mount.
Run with ``portal-serve`` or ``uvicorn portal.main:app``.
"""

import time
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import uvicorn

from portal.config import DATABASE_URL, BLOB_BACKEND, UPLOAD_DIR, CORS_ORIGINS, HOST, PORT
from portal.errors import (
    PortalError, AuthError, AuthorizationError, SubmitError,
    UploadError, UpdateError, StoreLookupError
)
from portal.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from portal.routes import auth, applications, admin
from portal.database import create_tables

from portal import models  # noqa: F401  registers every table before create_tables

setup_logging()
logger = get_logger("http")

if DATABASE_URL.startswith("sqlite"):
    log_with_context(logger, "INFO", "SQLite database: creating missing tables from the models",
                     extra_data={"database_url": DATABASE_URL})
    create_tables()

app = FastAPI(
    title="Scholarship Portal",
    description=(
        "Students register, submit a scholarship application with their passport, "
        "transcripts and motivation letter, and track its status. Administrators "
        "review every application and move it through Pending, Reviewed, Accepted "
        "or Rejected."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"]
)


def _incoming_request_id(request: Request) -> str:
    """Reuse a caller-supplied X-Request-ID when it looks sane, else mint one."""
    supplied = request.headers.get("x-request-id", "").strip()
    if supplied and len(supplied) <= 64 and supplied.replace("-", "").isalnum():
        return supplied
    return generate_request_id()


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """
    Bind a request id for the duration of the request and echo it back in
    X-Request-ID. One access-log entry is written per request.
    """
    req_id = _incoming_request_id(request)
    token = request_id_var.set(req_id)
    started = time.perf_counter()
    access = {
        "method": request.method,
        "path": request.url.path,
        "client": request.client.host if request.client else None,
    }
    try:
        response = await call_next(request)
    except Exception:
        access["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        logger.exception("Unhandled error serving %s %s", request.method, request.url.path,
                         extra={"context": {}, "extra_data": access})
        raise
    else:
        access["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        access["status_code"] = response.status_code
        level = "WARNING" if response.status_code >= 500 else "INFO"
        log_with_context(logger, level, "{} {} {}".format(request.method, request.url.path, response.status_code),
                         extra_data=access)
        response.headers["X-Request-ID"] = req_id
        return response
    finally:
        request_id_var.reset(token)


# ──────────────────────────────────────────────────────────────
# Error mapping
# ──────────────────────────────────────────────────────────────
# AuthError kinds that are not "who are you?" problems
AUTH_ERROR_STATUS = {
    "duplicate": 409,
    "profile_failed": 500,
    "provider_unreachable": 503,
}


def status_code_for(error: PortalError) -> int:
    if isinstance(error, AuthError):
        return AUTH_ERROR_STATUS.get(error.kind, 401)
    if isinstance(error, AuthorizationError):
        return 403
    if isinstance(error, SubmitError):
        return 422
    if isinstance(error, UploadError):
        return 502 if error.kind == "store_failure" else 400
    if isinstance(error, UpdateError):
        if error.kind == "not_found":
            return 404
        return 500 if error.kind == "store_failure" else 400
    if isinstance(error, StoreLookupError):
        return 503
    return 500


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, error: PortalError):
    status_code = status_code_for(error)
    log_with_context(logger, "WARNING",
        f"{request.method} {request.url.path} failed: {error.message}",
        extra_data={"error": error.kind, "status_code": status_code})
    body = {"detail": error.message, "error": error.kind}
    if isinstance(error, SubmitError):
        body["field"] = error.field
    return JSONResponse(status_code=status_code, content=body)


app.include_router(auth.router, tags=["Auth"])
app.include_router(applications.router, tags=["Applications"])
app.include_router(admin.router, tags=["Admin"])

# Locally stored documents are served by the app itself
if BLOB_BACKEND == "local":
    Path(UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    app.mount("/files", StaticFiles(directory=UPLOAD_DIR), name="files")


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint for container health checks and monitoring."""
    return {"status": "healthy", "service": "scholarship-portal-backend", "version": "1.0.0"}


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "service": "Scholarship Portal",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "register": "POST /api/auth/register",
            "login": "POST /api/auth/login",
            "refresh": "POST /api/auth/refresh",
            "logout": "POST /api/auth/logout",
            "me": "GET /api/auth/me",
            "submit": "POST /api/applications",
            "my_applications": "GET /api/applications/mine",
            "all_applications": "GET /api/admin/applications",
            "update_status": "PATCH /api/admin/applications/{id}/status"
        }
    }


def run():
    """Serve the app with uvicorn (installed as the ``portal-serve`` script)."""
    uvicorn.run("portal.main:app", host=HOST, port=PORT, log_config=None)


if __name__ == "__main__":
    run()
