from fastapi.responses import JSONResponse
from typing import Any

from orgmirror.utils.logger import logger


class BaseController:
    def success(
        self, data: Any, message: str = "Request was successful", status_code: int = 200
    ) -> JSONResponse:
        """Return a success envelope with the given data."""
        response = {"status": "success", "message": message, "data": data}
        return JSONResponse(content=response, status_code=status_code)

    def failure(
        self, error: str, message: str = "An error occurred", status_code: int = 400
    ) -> JSONResponse:
        """Return an error envelope with the given error."""
        response = {"status": "error", "message": message, "error": error}
        return JSONResponse(content=response, status_code=status_code)

    def handle_error(self, exception: Exception, message: str = "An error occurred") -> JSONResponse:
        logger.exception(f"{message}: {exception}")
        return self.failure(str(exception), message=message, status_code=500)
