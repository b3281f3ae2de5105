"""Shared data type definitions (ChunkMetadata, SessionState, AdmissionResult)."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    """
    Lifecycle of a relay session, derived from what is on disk.
    """
    CREATED = "created"
    TRANSFERRING = "transferring"
    DRAINED = "drained"


@dataclass(frozen=True)
class ChunkMetadata:
    """
    Per-session record written together with chunk 0.
    """
    file_name: str
    total_chunks: int
    chunk_size: int

    def to_dict(self) -> dict:
        return {
            "file_name": self.file_name,
            "total_chunks": self.total_chunks,
            "chunk_size": self.chunk_size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChunkMetadata":
        return cls(
            file_name=str(data["file_name"]),
            total_chunks=int(data["total_chunks"]),
            chunk_size=int(data["chunk_size"]),
        )


@dataclass(frozen=True)
class AdmissionResult:
    """
    Outcome of an admission check. reason is None when admitted.
    """
    admitted: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "AdmissionResult":
        return cls(admitted=True)

    @classmethod
    def reject(cls, reason: str) -> "AdmissionResult":
        return cls(admitted=False, reason=reason)
