"""Background task that removes drained and abandoned sessions and expired API keys."""

import asyncio
import time
from typing import Callable, List, Optional

from common.logging_config import get_logger
from common.types import SessionState
from relay.auth import AuthStore
from relay.config import RelayConfig
from relay.exceptions import InvalidSessionError
from relay.session_registry import SessionRegistry

logger = get_logger(__name__)


class SessionReaper:
    """
    Background task that periodically deletes session directories that are
    fully drained or have seen no activity for longer than the session TTL,
    and purges expired API key records.
    """

    def __init__(
        self,
        config: RelayConfig,
        registry: SessionRegistry,
        clock: Callable[[], float] = time.time,
        auth_store: Optional[AuthStore] = None
    ):
        """
        Initialize reaper task.

        Args:
            config: Relay configuration (reap interval and session TTL)
            registry: Session registry used to list and remove sessions
            clock: Wall-clock source, compared against file mtimes
            auth_store: Key records to purge each cycle, if any
        """
        self.interval_seconds = config.reap_interval_seconds
        self.session_ttl_seconds = config.session_ttl_seconds
        self.registry = registry
        self.clock = clock
        self.auth_store = auth_store
        self._running = False
        self._task = None

    async def start(self) -> None:
        """Start the background reaper task."""
        if self._running:
            logger.warning("Session reaper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Started session reaper (interval: {self.interval_seconds}s, ttl: {self.session_ttl_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the background reaper task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped session reaper")

    async def _run(self) -> None:
        """Main loop for reaper task."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await asyncio.to_thread(self.reap_once)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session reaper: {e}", exc_info=True)

    def _is_expired(self, session_id: str, now: float) -> bool:
        if self.session_ttl_seconds == 0:
            return False
        return now - self.registry.last_activity(session_id) > self.session_ttl_seconds

    def reap_once(self) -> List[str]:
        """
        Execute one reap cycle.

        Returns:
            Identifiers of the sessions that were removed
        """
        now = self.clock()
        removed = []

        for session_id in self.registry.list_sessions():
            try:
                state = self.registry.state_of(session_id)
                if state is SessionState.DRAINED:
                    why = "drained"
                elif self._is_expired(session_id, now):
                    why = f"idle longer than {self.session_ttl_seconds}s ({state.value})"
                else:
                    continue

                if self.registry.remove_session(session_id):
                    logger.info(f"Reaped session {session_id}: {why}")
                    removed.append(session_id)
            except InvalidSessionError:
                # removed between listing and inspection
                continue
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Error reaping session {session_id}: {e}")

        if self.auth_store is not None:
            try:
                self.auth_store.purge_expired_keys()
            except OSError as e:
                logger.warning(f"Error purging expired API keys: {e}")

        if removed:
            logger.info(f"Reap cycle complete: {len(removed)} sessions removed")
        else:
            logger.debug("Reap cycle complete: nothing to remove")

        return removed
