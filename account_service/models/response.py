"""Uniform JSON envelope for every API response."""

from typing import Any, List

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Success envelope.

    Attributes:
        statusCode: HTTP status mirrored in the body
        data: Operation payload
        message: Human-readable summary
        success: True for status codes below 400
    """

    statusCode: int
    data: Any = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def of(cls, status_code: int, data: Any, message: str = "Success") -> "ApiResponse":
        return cls(
            statusCode=status_code,
            data=data,
            message=message,
            success=status_code < 400,
        )


class ErrorResponse(BaseModel):
    """Error envelope; ``data`` is always null."""

    statusCode: int
    data: None = None
    message: str
    success: bool = False
    errors: List[Any] = Field(default_factory=list)
