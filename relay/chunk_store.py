"""Manages one session's chunk files and metadata on disk, plus admission control."""

import json
import os
import shutil
from pathlib import Path
from typing import Iterator

from common.constants import REASON_DISK_FULL, REASON_TMP_FULL, STREAM_PIECE_SIZE
from common.logging_config import get_logger
from common.types import AdmissionResult, ChunkMetadata
from relay.config import RelayConfig
from relay.exceptions import (
    ChunkAlreadyConfirmedError,
    ChunkNotFoundError,
    InvalidChunkError,
    InvalidSessionError,
    MetadataNotFoundError,
    StorageError,
    TotalChunksMismatchError,
)
from relay.session_registry import (
    CHUNK_PREFIX,
    META_FILE_NAME,
    RECEIPT_PREFIX,
    SessionRegistry,
    load_metadata,
)

logger = get_logger(__name__)


def _atomic_write(target: Path, data: bytes) -> None:
    """Write data to a sibling temp file and rename it over target."""
    tmp_path = target.with_name(f".{target.name}.part")
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except OSError:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise


class ChunkStore:
    """Filesystem-backed chunk storage keyed by (session id, chunk index)."""

    def __init__(self, config: RelayConfig, registry: SessionRegistry):
        self.config = config
        self.registry = registry

    def get_chunk_path(self, session_id: str, index: int) -> Path:
        """
        Get file path for a chunk.

        Args:
            session_id: Validated session identifier
            index: Chunk index

        Returns:
            Path object for chunk file
        """
        return self.registry.location_of(session_id) / f"{CHUNK_PREFIX}{index}"

    def _receipt_path(self, session_id: str, index: int) -> Path:
        return self.registry.location_of(session_id) / f"{RECEIPT_PREFIX}{index}"

    def session_usage(self, session_id: str) -> int:
        """
        Chunk bytes stored by a session.

        Metadata and receipts are bookkeeping and do not count against the
        quota, so a fully drained session always reads 0.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        location = self.registry.resolve(session_id)
        total = 0
        for entry in location.glob(f"{CHUNK_PREFIX}*"):
            try:
                if entry.is_file():
                    total += entry.stat().st_size
            except FileNotFoundError:
                # confirmed concurrently
                continue
        return total

    def free_space(self) -> int:
        """Free bytes on the filesystem holding the storage root."""
        return shutil.disk_usage(self.config.storage_root).free

    def check_admission(self, session_id) -> AdmissionResult:
        """
        Decide whether the session may accept one more chunk right now.

        This is a point-in-time gate, not a reservation. It is rejected with
        tmp_full when the next full chunk would take the session past its quota,
        and with disk_full when free space is below the configured floor.

        Args:
            session_id: Untrusted session identifier

        Returns:
            AdmissionResult, never raises for unknown or malformed sessions
        """
        try:
            usage = self.session_usage(session_id)
        except InvalidSessionError as e:
            return AdmissionResult.reject(e.reason)

        if usage + self.config.chunk_size > self.config.session_quota:
            logger.info(
                f"Admission rejected for {session_id}: usage={usage} quota={self.config.session_quota}"
            )
            return AdmissionResult.reject(REASON_TMP_FULL)

        free = self.free_space()
        if free < self.config.min_free_bytes:
            logger.warning(
                f"Admission rejected for {session_id}: free={free} floor={self.config.min_free_bytes}"
            )
            return AdmissionResult.reject(REASON_DISK_FULL)

        return AdmissionResult.accept()

    def _validate_chunk(self, index: int, total_chunks: int, data: bytes) -> None:
        if total_chunks < 1:
            raise InvalidChunkError("total_chunks must be at least 1")
        if index < 0 or index >= total_chunks:
            raise InvalidChunkError(f"chunk_index {index} outside [0, {total_chunks})")
        if len(data) > self.config.chunk_size:
            raise InvalidChunkError(
                f"Chunk of {len(data)} bytes exceeds chunk size {self.config.chunk_size}"
            )

    def write_chunk(
        self,
        session_id: str,
        index: int,
        total_chunks: int,
        file_name: str,
        data: bytes
    ) -> None:
        """
        Persist a chunk, overwriting any earlier upload of the same index.

        Metadata is written together with chunk 0 and never rewritten. Uploads
        declaring a different total than the stored metadata are refused.

        Raises:
            SessionNotFoundError: If the session does not exist
            InvalidChunkError: If index, total or payload size is out of bounds
            TotalChunksMismatchError: If total_chunks disagrees with metadata
            ChunkAlreadyConfirmedError: If the receiver already confirmed this index
            StorageError: If the write fails
        """
        location = self.registry.resolve(session_id)
        self._validate_chunk(index, total_chunks, data)

        meta_path = location / META_FILE_NAME
        if meta_path.is_file():
            stored = load_metadata(meta_path)
            if stored.total_chunks != total_chunks:
                raise TotalChunksMismatchError(
                    f"Session declares {stored.total_chunks} chunks, upload says {total_chunks}"
                )

        if self._receipt_path(session_id, index).exists():
            raise ChunkAlreadyConfirmedError(f"Chunk {index} was already confirmed")

        try:
            _atomic_write(self.get_chunk_path(session_id, index), data)
            if index == 0 and not meta_path.is_file():
                metadata = ChunkMetadata(
                    file_name=file_name,
                    total_chunks=total_chunks,
                    chunk_size=self.config.chunk_size,
                )
                _atomic_write(meta_path, json.dumps(metadata.to_dict()).encode("utf-8"))
                logger.info(f"Session {session_id} metadata written: total_chunks={total_chunks}")
        except OSError as e:
            logger.error(f"Failed to save chunk {index} of {session_id}: {e}", exc_info=True)
            raise StorageError("Failed to save chunk") from e

        logger.debug(f"Stored chunk {index}/{total_chunks} of {session_id} ({len(data)} bytes)")

    def get_chunk_size(self, session_id: str, index: int) -> int:
        """
        Get size of chunk file in bytes.

        Raises:
            ChunkNotFoundError: If the session or the chunk does not exist
        """
        try:
            self.registry.resolve(session_id)
            return self.get_chunk_path(session_id, index).stat().st_size
        except (InvalidSessionError, FileNotFoundError):
            raise ChunkNotFoundError("Chunk not found") from None

    def read_chunk(self, session_id: str, index: int) -> Iterator[bytes]:
        """
        Stream chunk data in pieces.

        The file is opened before the first piece is requested, so a missing
        chunk is reported here rather than halfway through a response.

        Args:
            session_id: Untrusted session identifier
            index: Chunk index

        Returns:
            Iterator over chunk data pieces

        Raises:
            ChunkNotFoundError: If the session or the chunk does not exist
        """
        try:
            self.registry.resolve(session_id)
            f = open(self.get_chunk_path(session_id, index), "rb")
        except (InvalidSessionError, FileNotFoundError):
            raise ChunkNotFoundError("Chunk not found") from None

        def pieces() -> Iterator[bytes]:
            with f:
                while True:
                    piece = f.read(STREAM_PIECE_SIZE)
                    if not piece:
                        break
                    yield piece

        return pieces()

    def delete_chunk(self, session_id: str, index: int) -> None:
        """
        Delete a chunk file and record that the receiver confirmed it.

        Raises:
            ChunkNotFoundError: If the session or the chunk does not exist,
                including a second confirmation of the same index
            StorageError: If the receipt cannot be written or the chunk removed
        """
        try:
            self.registry.resolve(session_id)
            chunk_path = self.get_chunk_path(session_id, index)
            if not chunk_path.is_file():
                raise FileNotFoundError(chunk_path)
        except (InvalidSessionError, FileNotFoundError):
            raise ChunkNotFoundError("Chunk not found") from None

        # receipt before unlink: a chunk is never gone without its receipt
        try:
            self._receipt_path(session_id, index).touch()
        except OSError as e:
            logger.error(f"Failed to record receipt for chunk {index} of {session_id}: {e}", exc_info=True)
            raise StorageError("Failed to record chunk confirmation") from e

        try:
            chunk_path.unlink()
        except FileNotFoundError:
            raise ChunkNotFoundError("Chunk not found") from None
        except OSError as e:
            logger.error(f"Failed to delete chunk {index} of {session_id}: {e}", exc_info=True)
            raise StorageError("Failed to delete chunk") from e

        logger.debug(f"Confirmed chunk {index} of {session_id}")

    def read_metadata(self, session_id: str) -> ChunkMetadata:
        """
        Read the metadata written with chunk 0.

        Raises:
            SessionNotFoundError: If the session does not exist
            MetadataNotFoundError: If chunk 0 has not been uploaded yet
        """
        location = self.registry.resolve(session_id)
        try:
            return load_metadata(location / META_FILE_NAME)
        except FileNotFoundError:
            raise MetadataNotFoundError("Session not found") from None
        except (ValueError, KeyError) as e:
            logger.error(f"Corrupt metadata in {session_id}: {e}", exc_info=True)
            raise StorageError("Corrupt session metadata") from e

    def list_chunks(self, session_id: str) -> list[int]:
        """
        List chunk indices currently stored for a session.
        """
        location = self.registry.resolve(session_id)
        indices = []
        for path in location.glob(f"{CHUNK_PREFIX}*"):
            suffix = path.name[len(CHUNK_PREFIX):]
            if suffix.isdigit():
                indices.append(int(suffix))
        return sorted(indices)
