"""Relay protocol state machine.

One handler instance serves every request and holds no per-session state;
the session lifecycle (CREATED -> TRANSFERRING -> DRAINED) is read back from
the chunk store on each call.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from common.constants import MAX_INDEX_DIGITS
from common.logging_config import get_logger
from common.types import AdmissionResult, ChunkMetadata, SessionState
from relay.chunk_store import ChunkStore
from relay.config import RelayConfig
from relay.exceptions import AdmissionRejectedError, InvalidChunkError, MissingParametersError
from relay.session_registry import SessionRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class CreateSessionResult:
    session_id: str
    chunk_size: int


@dataclass(frozen=True)
class SessionStatus:
    state: SessionState
    usage_bytes: int


def _require(name: str, value) -> None:
    if value is None or value == "":
        raise MissingParametersError(f"Missing parameter: {name}")


def parse_index(name: str, value) -> int:
    """
    Parse a chunk index or count received as text.

    Only plain ASCII digits are accepted, at most MAX_INDEX_DIGITS of them.

    Raises:
        MissingParametersError: If the value is absent
        InvalidChunkError: If the value is not a small non-negative base-10 integer
    """
    _require(name, value)
    if isinstance(value, int):
        text = str(abs(value))
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidChunkError(f"{name} must be a non-negative integer")
    if len(text) > MAX_INDEX_DIGITS:
        raise InvalidChunkError(f"{name} must have at most {MAX_INDEX_DIGITS} digits")
    return value if isinstance(value, int) else int(text)


class RelayProtocolHandler:
    """Implements the relay actions on top of the session registry and chunk store."""

    def __init__(self, config: RelayConfig, registry: SessionRegistry, store: ChunkStore):
        self.config = config
        self.registry = registry
        self.store = store

    @classmethod
    def from_config(cls, config: RelayConfig) -> "RelayProtocolHandler":
        registry = SessionRegistry(config)
        return cls(config, registry, ChunkStore(config, registry))

    def create_session(self) -> CreateSessionResult:
        """
        Allocate a new session.

        Raises:
            AllocationError: If the session directory cannot be created
        """
        session_id = self.registry.create_session()
        return CreateSessionResult(session_id=session_id, chunk_size=self.config.chunk_size)

    def ready(self, session_id: Optional[str]) -> AdmissionResult:
        """
        Admission check the sender calls before every upload.

        Never blocks and never queues; backing off is the caller's job.
        """
        return self.store.check_admission(session_id)

    def upload_chunk(
        self,
        session_id: Optional[str],
        chunk_index,
        total_chunks,
        file_name: Optional[str],
        data: Optional[bytes]
    ) -> None:
        """
        Store one chunk.

        Admission is advisory unless strict_admission is configured, in which
        case it is re-checked here and the upload refused with the same reason
        ready would have given.

        Raises:
            MissingParametersError: If any field is absent
            InvalidChunkError: If index or total is malformed or out of bounds
            InvalidSessionError: If the session is malformed or unknown
            AdmissionRejectedError: Under strict admission only
        """
        _require("session_id", session_id)
        index = parse_index("chunk_index", chunk_index)
        total = parse_index("total_chunks", total_chunks)
        _require("file_name", file_name)
        if data is None:
            raise MissingParametersError("Missing parameter: chunk")

        if index < 0 or total < 1:
            raise InvalidChunkError("chunk_index must be >= 0 and total_chunks >= 1")

        self.registry.resolve(session_id)

        if self.config.strict_admission:
            admission = self.store.check_admission(session_id)
            if not admission.admitted:
                raise AdmissionRejectedError(admission.reason)

        self.store.write_chunk(session_id, index, total, file_name, data)

    def get_meta(self, session_id: Optional[str]) -> ChunkMetadata:
        """
        Raises:
            InvalidSessionError: If the session is malformed or unknown
            MetadataNotFoundError: If chunk 0 has not been uploaded yet
        """
        _require("session_id", session_id)
        return self.store.read_metadata(session_id)

    def get_chunk(self, session_id: Optional[str], chunk_index) -> Tuple[int, Iterator[bytes]]:
        """
        Open a chunk for streaming.

        Returns:
            Tuple of (size in bytes, iterator over data pieces)

        Raises:
            ChunkNotFoundError: If the session or chunk is absent; receivers
                treat this as "not yet available"
        """
        _require("session_id", session_id)
        index = parse_index("chunk_index", chunk_index)
        size = self.store.get_chunk_size(session_id, index)
        return size, self.store.read_chunk(session_id, index)

    def confirm_chunk(self, session_id: Optional[str], chunk_index) -> None:
        """
        Delete a chunk after the receiver has safely stored it. Irreversible.

        Raises:
            ChunkNotFoundError: If the session or chunk is absent
        """
        _require("session_id", session_id)
        index = parse_index("chunk_index", chunk_index)
        self.store.delete_chunk(session_id, index)

        if self.registry.state_of(session_id) is SessionState.DRAINED:
            logger.info(f"Session {session_id} drained")

    def session_status(self, session_id: Optional[str]) -> SessionStatus:
        _require("session_id", session_id)
        state = self.registry.state_of(session_id)
        return SessionStatus(state=state, usage_bytes=self.store.session_usage(session_id))
