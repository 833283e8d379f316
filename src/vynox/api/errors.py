"""Error responses for the admin API.

Every error body has the shape ``{"success": false, "code", "message"}``.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorBody(BaseModel):
    model_config = {"extra": "forbid"}

    success: bool = False
    code: str
    message: str


class ApiError(HTTPException):
    """Base exception for admin API errors."""

    def __init__(self, status_code: int, code: str, text: str):
        self.code = code
        self.text = text
        super().__init__(status_code=status_code, detail=text)

    def to_body(self) -> ErrorBody:
        return ErrorBody(code=self.code, message=self.text)


class NotFoundError(ApiError):
    """Resource not found (404)."""

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(
            status_code=404,
            code="NotFound",
            text=f"{resource_type} with identifier '{identifier}' not found",
        )


class ConflictError(ApiError):
    """Resource already exists (409)."""

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(
            status_code=409,
            code="Conflict",
            text=f"{resource_type} with identifier '{identifier}' already exists",
        )


class BadRequestError(ApiError):
    """Invalid request (400)."""

    def __init__(self, text: str):
        super().__init__(status_code=400, code="BadRequest", text=text)


class InternalServerError(ApiError):
    """Internal server error (500)."""

    def __init__(self, text: str = "An unexpected error occurred"):
        super().__init__(status_code=500, code="InternalServerError", text=text)


async def api_exception_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Exception handler for admin API errors."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body().model_dump())


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for unexpected errors."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=InternalServerError().to_body().model_dump(),
    )
