from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import AuthenticationError, TaskhubError, ValidationError, errors_from_pydantic


def _error_body(request: Request, status_code: int, error: str, **extra) -> dict:
    return {"error": error, "status": status_code, "path": request.url.path, **extra}


def register_exception_handlers(app: FastAPI) -> None:
    """Attach simple, consistent JSON error handlers."""

    @app.exception_handler(ValidationError)
    async def domain_validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body(request, 422, "ValidationError", message=exc.message, errors=exc.errors),
        )

    @app.exception_handler(TaskhubError)
    async def domain_error_handler(request: Request, exc: TaskhubError):
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.message),
            headers=headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                request,
                exc.status_code,
                exc.detail if isinstance(exc.detail, str) else "HTTPError",
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body(
                request,
                422,
                "ValidationError",
                message=ValidationError.default_message,
                errors=errors_from_pydantic(exc.errors()),
                details=jsonable_encoder(exc.errors()),
            ),
        )
