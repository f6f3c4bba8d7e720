"""Global error handlers."""
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from marketlens.core.result import Error, ErrorCode

STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.BAD_EXCHANGE_CODE: 404,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.PROVIDER_RATE_LIMIT: 429,
    ErrorCode.PROVIDER_UNAVAILABLE: 503,
}


class ErrorResponseException(Exception):
    """Carries a core Error out of a route to the JSON error envelope."""

    def __init__(self, error: Error):
        super().__init__(error.message)
        self.error = error

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE.get(self.error.code, 500)


def unwrap(result):
    """Value of an Ok result; raises ErrorResponseException for an Err."""
    if not result.is_ok:
        raise ErrorResponseException(result.error)
    return result.value


async def error_response_handler(request: Request, exc: ErrorResponseException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error.message, "code": exc.error.code.value, "details": exc.error.details},
    )


async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=422,
        content={"error": str(exc), "code": ErrorCode.VALIDATION_ERROR.value, "details": {}},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": "Request validation failed",
            "code": ErrorCode.VALIDATION_ERROR.value,
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )
