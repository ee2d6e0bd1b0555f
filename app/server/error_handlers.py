"""Global error handlers: every failure inside a request becomes a JSON response.

Nothing raised by a route is allowed to escape as an unhandled error; the
catch-all handler owns whatever the more specific ones do not.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import AppError
from .models import ErrorResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went very wrong!"


def not_found_message(request: Request) -> str:
	url = request.url.path
	if request.url.query:
		url = f"{url}?{request.url.query}"
	return f"{url} was not found on the server. Please check the Url"


def _respond(status_code: int, body: ErrorResponse, headers: dict[str, str] | None = None) -> JSONResponse:
	return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


def register_error_handlers(app: FastAPI, development: bool = False) -> None:
	"""Register the not-found, operational, validation and catch-all handlers."""

	@app.exception_handler(AppError)
	async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
		logger.info("AppError %d on %s: %s", exc.status_code, request.url.path, exc.message)
		return _respond(exc.status_code, ErrorResponse(status=exc.status, message=exc.message))

	@app.exception_handler(StarletteHTTPException)
	async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
		if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail in (None, "Not Found"):
			message = not_found_message(request)
		else:
			message = str(exc.detail)
		state = "fail" if exc.status_code < 500 else "error"
		return _respond(exc.status_code, ErrorResponse(status=state, message=message), getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
		logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
		details = [
			{"field": ".".join(str(loc) for loc in e["loc"]), "message": e["msg"]}
			for e in exc.errors()
		]
		return _respond(
			status.HTTP_400_BAD_REQUEST,
			ErrorResponse(status="fail", message="Invalid input data", details=details),
		)

	@app.exception_handler(Exception)
	async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
		# the server logs the traceback itself once this response is sent
		logger.error("Unhandled exception on %s: %s: %s", request.url.path, type(exc).__name__, exc)
		if development:
			body = ErrorResponse(status="error", message=str(exc), error=type(exc).__name__)
		else:
			body = ErrorResponse(status="error", message=GENERIC_ERROR_MESSAGE)
		return _respond(status.HTTP_500_INTERNAL_SERVER_ERROR, body)
