"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel


class PasswordRequest(BaseModel):
    """Request model for initial password setup and login."""
    password: str


class LoginResponse(BaseModel):
    """Response model for login."""
    ok: bool = True
    api_key: str


class AuthStatusResponse(BaseModel):
    """Response model for auth status."""
    password_set: bool
