"""FastAPI application for AuthorityPilot."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from authority_pilot.errors import (
    APIError,
    AuthorityPilotError,
    InvalidRequestError,
    NotFoundError,
    TokenExpiredError,
)
from authority_pilot.scheduler import scheduler
from authority_pilot.web.agents import agents_router
from authority_pilot.web.content import content_router
from authority_pilot.web.debug import debug_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    await scheduler.initialize()
    logger.info("AuthorityPilot API started")
    yield
    await scheduler.stop()
    logger.info("AuthorityPilot API stopped")


# Setup
app = FastAPI(title="AuthorityPilot", lifespan=lifespan)

app.include_router(agents_router)
app.include_router(content_router)
app.include_router(debug_router)


def error_response(status_code: int, error: str, details=None) -> JSONResponse:
    body = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


# ==================== ERROR HANDLERS ====================

@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    return error_response(exc.status_code, exc.error, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(400, "Invalid request data", exc.errors())


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return error_response(404, str(exc))


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return error_response(400, str(exc))


@app.exception_handler(TokenExpiredError)
async def token_expired_handler(request: Request, exc: TokenExpiredError):
    return error_response(401, str(exc))


@app.exception_handler(AuthorityPilotError)
async def service_error_handler(request: Request, exc: AuthorityPilotError):
    logger.error(f"Service error on {request.method} {request.url.path}: {exc}")
    return error_response(500, str(exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return error_response(500, "Internal server error")


# ==================== HEALTH ====================

@app.get("/health")
async def health():
    status = scheduler.get_status()
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc),
        "scheduler": {
            "initialized": status["initialized"],
            "overall": status["systemHealth"]["overall"],
        },
    }
