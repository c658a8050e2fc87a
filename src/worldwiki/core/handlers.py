"""Error handlers for the HTTP host."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from worldwiki.core.logging import get_logger

from .base import ApplicationError, ErrorCode, ErrorLevel
from .error_context import ErrorContext, ErrorContextManager

logger = get_logger(__name__)


class ErrorHandler:
    """Turns exceptions into the client-facing JSON error body."""

    def _format_response(self, error_context: ErrorContext) -> dict[str, Any]:
        error = error_context.error
        if isinstance(error, ApplicationError):
            body = error.to_payload()
        else:
            body = {
                "error": "Internal Server Error",
                "message": "An unexpected error occurred",
                "code": ErrorCode.INTERNAL_ERROR.value,
            }
        body["traceId"] = error_context.trace_id
        return body

    def _log(self, error_context: ErrorContext, level: ErrorLevel) -> None:
        logger.log(
            level.to_logging_level(),
            "Request failed",
            exc_info=not isinstance(error_context.error, ApplicationError),
            **error_context.to_dict(),
        )

    async def handle_async(self, error: Exception, **context: Any) -> dict[str, Any]:
        level = error.level if isinstance(error, ApplicationError) else ErrorLevel.ERROR
        async with ErrorContextManager(error, **context) as error_context:
            self._log(error_context, level)
            return self._format_response(error_context)


class GlobalErrorHandler(ErrorHandler):
    """Global error handler for FastAPI application"""

    async def application_error(self, request: Request, error: Exception) -> JSONResponse:
        assert isinstance(error, ApplicationError)
        body = await self.handle_async(error, path=request.url.path)
        return JSONResponse(status_code=error.status_code, content=body)

    async def request_validation_error(self, request: Request, error: Exception) -> JSONResponse:
        assert isinstance(error, RequestValidationError)
        first = error.errors()[0] if error.errors() else {}
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        body = {
            "error": "Validation Error",
            "message": first.get("msg", "Invalid request"),
            "code": ErrorCode.VALIDATION_ERROR.value,
        }
        if loc:
            body["field"] = ".".join(loc)
        logger.info("Request validation failed", path=request.url.path, field=body.get("field"))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)

    async def http_exception(self, request: Request, error: Exception) -> JSONResponse:
        assert isinstance(error, HTTPException)
        code = {
            status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
            status.HTTP_405_METHOD_NOT_ALLOWED: ErrorCode.METHOD_NOT_ALLOWED,
        }.get(error.status_code, ErrorCode.INTERNAL_ERROR)
        body = {"error": str(error.detail), "message": str(error.detail), "code": code.value}
        return JSONResponse(status_code=error.status_code, content=body, headers=error.headers)

    async def unhandled(self, request: Request, error: Exception) -> JSONResponse:
        body = await self.handle_async(error, path=request.url.path)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def install_error_handlers(app: FastAPI) -> None:
    handler = GlobalErrorHandler()
    app.add_exception_handler(ApplicationError, handler.application_error)
    app.add_exception_handler(RequestValidationError, handler.request_validation_error)
    app.add_exception_handler(HTTPException, handler.http_exception)
    app.add_exception_handler(Exception, handler.unhandled)
