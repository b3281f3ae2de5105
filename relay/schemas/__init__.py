"""Pydantic schemas for API requests and responses."""

from relay.schemas.auth import AuthStatusResponse, LoginResponse, PasswordRequest
from relay.schemas.common import ErrorResponse, OkResponse
from relay.schemas.relay import (
    CreateSessionResponse,
    MetaResponse,
    ReadyResponse,
    StatusResponse,
)

__all__ = [
    "AuthStatusResponse",
    "LoginResponse",
    "PasswordRequest",
    "ErrorResponse",
    "OkResponse",
    "CreateSessionResponse",
    "MetaResponse",
    "ReadyResponse",
    "StatusResponse",
]
