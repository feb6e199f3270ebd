import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class NotFoundError(HTTPException):
    def __init__(self, message: str = "Not found"):
        super().__init__(
            status_code=404, detail={"code": "not_found", "message": message}
        )


class ForbiddenError(HTTPException):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            status_code=403, detail={"code": "forbidden", "message": message}
        )


class QuotaExceededError(HTTPException):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=402,
            detail={"code": "quota_exceeded", "message": message, "details": details},
        )


class InvalidStateError(HTTPException):
    def __init__(self, message: str):
        super().__init__(
            status_code=409, detail={"code": "invalid_state", "message": message}
        )


class ConflictError(HTTPException):
    def __init__(self, message: str):
        super().__init__(
            status_code=409, detail={"code": "version_conflict", "message": message}
        )


class ValidationFailedError(HTTPException):
    def __init__(self, message: str):
        super().__init__(
            status_code=400, detail={"code": "invalid_request", "message": message}
        )


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
