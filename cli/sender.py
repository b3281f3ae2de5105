"""Sender driver: splits a local file and pushes it through the relay."""

import os
from pathlib import Path
from typing import Callable, Iterator, Optional

from cli.relay_client import RelayClient, RelayClientError
from cli.retry import RetryPolicy, TransferAbortedError
from common.logging_config import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


def count_chunks(file_size: int, chunk_size: int) -> int:
    """
    Number of chunks needed for a file of the given size.

    An empty file still takes one (empty) chunk, so the receiver learns its name.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    return max(1, (file_size + chunk_size - 1) // chunk_size)


def iter_chunks(file_path: Path, chunk_size: int) -> Iterator[bytes]:
    """
    Yield consecutive chunk_size slices of a file; the last may be shorter.
    """
    with open(file_path, 'rb') as f:
        first = True
        while True:
            data = f.read(chunk_size)
            if not data and not first:
                break
            yield data
            first = False
            if len(data) < chunk_size:
                break


class SenderDriver:
    """Drives the ready/upload loop for one file."""

    def __init__(
        self,
        client: RelayClient,
        policy: Optional[RetryPolicy] = None,
        on_progress: Optional[ProgressCallback] = None
    ):
        self.client = client
        self.policy = policy or RetryPolicy()
        self.on_progress = on_progress

    def _wait_until_ready(self, session_id: str, index: int) -> None:
        """
        Poll `ready` until the relay accepts chunk `index`.

        Raises:
            TransferAbortedError: On a terminal rejection reason
            TransferStalledError, RetryExhaustedError: When the policy gives up
        """
        wait = self.policy.start()
        while True:
            admission = self.client.ready(session_id)
            if admission.admitted:
                return
            if not self.policy.is_retryable(admission.reason):
                raise TransferAbortedError(
                    f"Relay not ready: {admission.reason}", reason=admission.reason
                )
            logger.info(f"Relay not ready for chunk {index}: {admission.reason}, retrying")
            wait.backoff(f"relay capacity for chunk {index}")

    def _upload(self, session_id: str, index: int, total: int, file_name: str, data: bytes) -> None:
        """
        Upload one chunk, going back to `ready` if the relay
        refuses it for a retryable reason (strict admission).
        """
        wait = self.policy.start()
        while True:
            self._wait_until_ready(session_id, index)
            try:
                self.client.upload_chunk(session_id, index, total, file_name, data)
                return
            except RelayClientError as e:
                if e.reason is not None and self.policy.is_retryable(e.reason):
                    logger.info(f"Upload of chunk {index} refused: {e.reason}, retrying")
                    wait.backoff(f"upload of chunk {index}")
                    continue
                raise TransferAbortedError(f"Upload failed: {e}", reason=e.reason or e.code) from e

    def send(
        self,
        file_path: Path,
        on_session: Optional[Callable[[str], None]] = None
    ) -> str:
        """
        Create a session and upload every chunk of a file in order.

        Args:
            file_path: Local file to send
            on_session: Called with the session id as soon as it exists, so it
                can be handed to the receiver while the upload runs

        Returns:
            The session id

        Raises:
            FileNotFoundError: If file_path is not a file
            TransferAbortedError: On a terminal relay answer
            TransferStalledError, RetryExhaustedError: When waiting gives up
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise FileNotFoundError(f"Not a file: {file_path}")

        try:
            session_id, chunk_size = self.client.create_session()
        except RelayClientError as e:
            raise TransferAbortedError(f"Could not create session: {e}", reason=e.code) from e

        if on_session:
            on_session(session_id)

        file_name = file_path.name
        total = count_chunks(os.path.getsize(file_path), chunk_size)
        logger.info(f"Sending {file_name} as {total} chunks [session_id={session_id}]")

        for index, data in enumerate(iter_chunks(file_path, chunk_size)):
            self._upload(session_id, index, total, file_name, data)
            if self.on_progress:
                self.on_progress(index + 1, total)

        logger.info(f"All {total} chunks of {file_name} uploaded [session_id={session_id}]")
        return session_id
