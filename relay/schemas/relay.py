"""Pydantic schemas for the relay action endpoint."""

from typing import Optional

from pydantic import BaseModel


class CreateSessionResponse(BaseModel):
    """Response model for create_session."""
    ok: bool = True
    session_id: str
    chunk_size: int


class ReadyResponse(BaseModel):
    """Response model for the ready check; reason is set only on rejection."""
    ok: bool
    reason: Optional[str] = None


class MetaResponse(BaseModel):
    """Response model for get_meta."""
    ok: bool = True
    file_name: str
    total_chunks: int
    chunk_size: int


class StatusResponse(BaseModel):
    """Response model for the session status action."""
    ok: bool = True
    state: str
    usage_bytes: int
