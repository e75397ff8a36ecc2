from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class PermitWorkflowError(Exception):
    """Base class for errors raised by the permit workflow services."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PermitWorkflowError):
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(PermitWorkflowError):
    status_code = 404


class EditNotAllowedError(PermitWorkflowError):
    status_code = 409


class InvalidStatusTransitionError(PermitWorkflowError):
    status_code = 409


class StoreError(PermitWorkflowError):
    """A single row-level store call failed and was rolled back."""

    def __init__(self, table: str, operation: str, reason: str) -> None:
        super().__init__(f"{operation} on {table} failed: {reason}")
        self.table = table
        self.operation = operation


class PartialWriteError(PermitWorkflowError):
    """Some parts of a subtype aggregate were written and others were not.

    Rows that were written stay committed; ``result`` holds the ids that did land.
    """

    def __init__(self, permit_id: int, kind: str, failed_parts: List[str], result: Any = None) -> None:
        super().__init__(
            f"Permit {permit_id} was saved but its {kind} details are incomplete "
            f"({', '.join(failed_parts)}). Please edit the application and save it again."
        )
        self.permit_id = permit_id
        self.kind = kind
        self.failed_parts = failed_parts
        self.result = result
        self.permit = None


class TransientReadLagError(PermitWorkflowError):
    """Read-after-write did not yet reflect the status that was just written."""

    def __init__(self, permit_id: int, expected: str, observed: Optional[str]) -> None:
        super().__init__(f"Permit {permit_id} read back as {observed!r}, expected {expected!r}")
        self.permit_id = permit_id
        self.expected = expected
        self.observed = observed


class NotificationDispatchError(PermitWorkflowError):
    pass


class NotificationPermissionDenied(NotificationDispatchError):
    status_code = 403


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore[override]
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Validation failed.",
                "errors": exc.errors(),
                "path": str(request.url),
            },
        )

    @app.exception_handler(PartialWriteError)
    async def partial_write_handler(request: Request, exc: PartialWriteError) -> JSONResponse:  # type: ignore[override]
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.message,
                "permit_id": exc.permit_id,
                "failed_parts": exc.failed_parts,
                "path": str(request.url),
            },
        )

    @app.exception_handler(PermitWorkflowError)
    async def workflow_exception_handler(request: Request, exc: PermitWorkflowError) -> JSONResponse:  # type: ignore[override]
        payload: Dict[str, Any] = {"detail": exc.message, "path": str(request.url)}
        if isinstance(exc, ValidationError) and exc.field:
            payload["field"] = exc.field
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore[override]
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error.",
                "path": str(request.url),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # type: ignore[override]
        payload: Dict[str, Any] = {"detail": exc.detail or "HTTP error.", "path": str(request.url)}
        if exc.headers:
            payload["headers"] = exc.headers
        return JSONResponse(status_code=exc.status_code, content=payload)
