"""Creates, validates and resolves session identifiers to storage locations.

The registry keeps no index of its own: a session exists exactly when its
directory exists under the storage root.
"""

import json
import re
import secrets
import shutil
from pathlib import Path
from typing import List

from common.constants import SESSION_ID_BYTES
from common.logging_config import get_logger
from common.types import ChunkMetadata, SessionState
from relay.config import RelayConfig
from relay.exceptions import AllocationError, InvalidSessionError, SessionNotFoundError

logger = get_logger(__name__)

SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_]+")
META_FILE_NAME = "meta.json"
CHUNK_PREFIX = "chunk_"
RECEIPT_PREFIX = "ack_"

_MAX_ALLOCATION_ATTEMPTS = 5


def generate_session_id() -> str:
    """
    Generate a new unguessable session identifier.

    Returns:
        32 lowercase hex characters (128 bits of entropy)
    """
    return secrets.token_hex(SESSION_ID_BYTES)


def load_metadata(meta_path: Path) -> ChunkMetadata:
    """Read a session's metadata record."""
    with open(meta_path, "r") as f:
        return ChunkMetadata.from_dict(json.load(f))


def validate_session_id(raw) -> str:
    """
    Check that an untrusted identifier is safe to use as a directory name.

    Unsafe identifiers are rejected outright rather than stripped, so two
    different inputs can never collapse onto the same session.

    Raises:
        InvalidSessionError: If the identifier is empty or has unsafe characters
    """
    if not isinstance(raw, str) or not SESSION_ID_PATTERN.fullmatch(raw):
        raise InvalidSessionError("Invalid session")
    return raw


class SessionRegistry:
    """Maps session identifiers to private directories under the storage root."""

    def __init__(self, config: RelayConfig):
        self.config = config
        self.root = config.storage_root

    def ensure_root(self) -> None:
        """Create the storage root with owner-only permissions if missing."""
        self.root.mkdir(mode=0o700, parents=True, exist_ok=True)

    def location_of(self, session_id: str) -> Path:
        """Derive the storage location for a validated identifier without touching disk."""
        return self.root / validate_session_id(session_id)

    def create_session(self) -> str:
        """
        Allocate a fresh, empty, private storage location.

        Returns:
            The new session identifier

        Raises:
            AllocationError: If the directory cannot be created
        """
        try:
            self.ensure_root()
        except OSError as e:
            logger.error(f"Cannot create storage root {self.root}: {e}", exc_info=True)
            raise AllocationError("Failed to create session directory") from e

        for _ in range(_MAX_ALLOCATION_ATTEMPTS):
            session_id = generate_session_id()
            try:
                # exist_ok stays False: an existing location is never reused
                (self.root / session_id).mkdir(mode=0o700)
            except FileExistsError:
                logger.warning("Session id collision, drawing a new one")
                continue
            except OSError as e:
                logger.error(f"Failed to create session directory: {e}", exc_info=True)
                raise AllocationError("Failed to create session directory") from e

            logger.info(f"Created session {session_id}")
            return session_id

        raise AllocationError("Failed to allocate a unique session id")

    def resolve(self, session_id) -> Path:
        """
        Resolve an untrusted identifier to an existing storage location.

        Raises:
            InvalidSessionError: If the identifier is malformed
            SessionNotFoundError: If no such session exists
        """
        location = self.location_of(session_id)
        if not location.is_dir():
            raise SessionNotFoundError("Invalid session")
        return location

    def exists(self, session_id) -> bool:
        try:
            self.resolve(session_id)
        except InvalidSessionError:
            return False
        return True

    def state_of(self, session_id) -> SessionState:
        """
        Derive the lifecycle state of a session from its directory contents.

        DRAINED requires a receipt for every index, so the gap between the
        receiver confirming one chunk and the sender uploading the next is
        still TRANSFERRING.
        """
        location = self.resolve(session_id)
        meta_path = location / META_FILE_NAME
        if not meta_path.is_file():
            return SessionState.CREATED

        metadata = load_metadata(meta_path)
        receipts = sum(1 for _ in location.glob(f"{RECEIPT_PREFIX}*"))
        if receipts >= metadata.total_chunks:
            return SessionState.DRAINED
        return SessionState.TRANSFERRING

    def list_sessions(self) -> List[str]:
        """
        List identifiers of all sessions under the storage root.

        Dot-entries (password file, key store) never match the id pattern.
        """
        if not self.root.is_dir():
            return []
        return sorted(
            entry.name for entry in self.root.iterdir()
            if entry.is_dir() and SESSION_ID_PATTERN.fullmatch(entry.name)
        )

    def last_activity(self, session_id) -> float:
        """Newest modification time among the session directory and its files."""
        location = self.resolve(session_id)
        newest = location.stat().st_mtime
        for entry in location.iterdir():
            try:
                newest = max(newest, entry.stat().st_mtime)
            except FileNotFoundError:
                continue
        return newest

    def remove_session(self, session_id) -> bool:
        """
        Delete a session directory and everything in it.

        Returns:
            True if the session was removed, False if it did not exist
        """
        try:
            location = self.resolve(session_id)
        except SessionNotFoundError:
            return False
        shutil.rmtree(location)
        logger.info(f"Removed session {session_id}")
        return True
