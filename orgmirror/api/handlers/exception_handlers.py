from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from orgmirror.utils.logger import logger


def _field_errors(exc: RequestValidationError):
    for error in exc.errors():
        loc = error.get("loc") or ()
        yield {
            "field": ".".join(str(part) for part in loc) if loc else "general",
            "message": error.get("msg"),
        }


async def unprocessable_entity_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Field-level 422 response for malformed request data."""
    errors = list(_field_errors(exc))
    logger.info(f"Rejected {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "The request data is invalid. See the errors below.",
            "errors": errors,
        },
    )
