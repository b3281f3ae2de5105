"""Receiver driver: pulls chunks in order, stores them, confirms each one."""

import os
from pathlib import Path
from typing import Callable, Optional

from cli.relay_client import RelayClient, RelayClientError
from cli.retry import RetryPolicy, TransferAbortedError
from common.logging_config import get_logger
from common.types import ChunkMetadata

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


def safe_file_name(untrusted: str, fallback: str) -> str:
    """
    Reduce a sender-supplied file name to a plain basename.
    """
    name = untrusted.replace("\\", "/").split("/")[-1].strip()
    if name in ("", ".", ".."):
        return fallback
    return name


class ReceiverDriver:
    """Drives the fetch/confirm loop for one session."""

    def __init__(
        self,
        client: RelayClient,
        policy: Optional[RetryPolicy] = None,
        on_progress: Optional[ProgressCallback] = None
    ):
        self.client = client
        self.policy = policy or RetryPolicy()
        self.on_progress = on_progress

    def wait_for_meta(self, session_id: str) -> ChunkMetadata:
        """
        Poll until the sender has uploaded chunk 0.

        Raises:
            TransferAbortedError: If the session does not exist
            TransferStalledError, RetryExhaustedError: When waiting gives up
        """
        wait = self.policy.start()
        while True:
            try:
                metadata = self.client.get_meta(session_id)
            except RelayClientError as e:
                raise TransferAbortedError(f"Cannot read session: {e}", reason=e.code) from e
            if metadata is not None:
                return metadata
            logger.info(f"No metadata yet for session {session_id}, retrying")
            wait.backoff(f"metadata of session {session_id}")

    def _fetch(self, session_id: str, index: int, total: int) -> bytes:
        wait = self.policy.start()
        while True:
            try:
                data = self.client.get_chunk(session_id, index)
            except RelayClientError as e:
                raise TransferAbortedError(f"Download of chunk {index} failed: {e}", reason=e.code) from e
            if data is not None:
                return data
            logger.debug(f"Chunk {index + 1} of {total} not available yet, retrying")
            wait.backoff(f"chunk {index + 1} of {total}")

    def receive(
        self,
        session_id: str,
        output_path: Optional[Path] = None,
        download_dir: Optional[Path] = None
    ) -> Path:
        """
        Download every chunk of a session in order and reassemble the file.

        Each chunk is written and fsynced to `<output>.part` before it is
        confirmed, because confirmation deletes it from the relay for good.

        Args:
            session_id: Session to drain
            output_path: Target file; defaults to the sender's file name
                inside download_dir
            download_dir: Directory for the default target (cwd if omitted)

        Returns:
            Path of the reassembled file

        Raises:
            TransferAbortedError: On a terminal relay answer
            TransferStalledError: When a chunk does not arrive within the stall timeout
        """
        metadata = self.wait_for_meta(session_id)
        total = metadata.total_chunks

        if output_path is None:
            base_dir = Path(download_dir) if download_dir else Path.cwd()
            output_path = base_dir / safe_file_name(metadata.file_name, f"{session_id}.bin")
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        part_path = output_path.with_name(output_path.name + ".part")

        logger.info(f"Receiving {metadata.file_name} ({total} chunks) into {output_path} [session_id={session_id}]")

        with open(part_path, 'wb') as out:
            for index in range(total):
                data = self._fetch(session_id, index, total)
                if len(data) > metadata.chunk_size:
                    raise TransferAbortedError(
                        f"Chunk {index} is {len(data)} bytes, larger than chunk size {metadata.chunk_size}"
                    )
                out.write(data)
                out.flush()
                os.fsync(out.fileno())

                try:
                    self.client.confirm_chunk(session_id, index)
                except RelayClientError as e:
                    raise TransferAbortedError(f"Failed to confirm chunk {index}: {e}", reason=e.code) from e

                if self.on_progress:
                    self.on_progress(index + 1, total)

        os.replace(part_path, output_path)
        logger.info(f"Received {output_path} [session_id={session_id}]")
        return output_path
