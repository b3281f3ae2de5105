"""Common schemas used across multiple endpoints."""

from pydantic import BaseModel


class OkResponse(BaseModel):
    """Response model for actions that return no data."""
    ok: bool = True


class ErrorResponse(BaseModel):
    """Response model for errors."""
    ok: bool = False
    error: str
    code: str
