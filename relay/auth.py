"""Password setup, login and API key validation for the relay.

The password hash and the issued API keys live in the storage root next to
the sessions, so the relay process itself stays stateless.
"""

import hashlib
import secrets
import time
from typing import Callable, Optional

import bcrypt
from fastapi import Header, Request

from common.constants import API_KEY_PREFIX
from common.logging_config import get_logger
from relay.config import RelayConfig
from relay.exceptions import (
    InvalidAPIKeyError,
    InvalidCredentialsError,
    MissingParametersError,
    PasswordAlreadySetError,
    PasswordNotSetError,
)

logger = get_logger(__name__)


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Bcrypt hash of the password
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    Args:
        password: Plain text password to verify
        password_hash: Bcrypt hash to verify against

    Returns:
        True if password matches hash, False otherwise
    """
    password_bytes = password.encode('utf-8')
    hash_bytes = password_hash.encode('utf-8')
    return bcrypt.checkpw(password_bytes, hash_bytes)


def generate_api_key() -> str:
    """
    Generate a new API Key with the configured prefix.

    Returns:
        API Key string in format: {prefix}{64 hex chars}
    """
    return f"{API_KEY_PREFIX}{secrets.token_hex(32)}"


def _key_digest(api_key: str) -> str:
    return hashlib.sha256(api_key.encode('utf-8')).hexdigest()


class AuthStore:
    """
    File-backed password hash and API key records.

    A key file's mtime is its issue time; keys older than
    config.api_key_ttl_seconds are refused and purged (0 keeps them forever).
    """

    def __init__(self, config: RelayConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self.clock = clock

    def password_is_set(self) -> bool:
        return self.config.password_file.is_file()

    def set_initial_password(self, password: Optional[str]) -> None:
        """
        Store the first password. Only allowed once.

        Raises:
            MissingParametersError: If the password is empty
            PasswordAlreadySetError: If a password already exists
        """
        password = (password or "").strip()
        if not password:
            raise MissingParametersError("Password cannot be empty.")
        if self.password_is_set():
            raise PasswordAlreadySetError("Password is already set.")

        self.config.storage_root.mkdir(mode=0o700, parents=True, exist_ok=True)
        self.config.password_file.write_text(hash_password(password))
        self.config.password_file.chmod(0o600)
        logger.info("Initial password set")

    def login(self, password: Optional[str]) -> str:
        """
        Check the password and issue a new API key.

        Raises:
            PasswordNotSetError: If setup has not happened yet
            InvalidCredentialsError: If the password is wrong
        """
        if not self.password_is_set():
            raise PasswordNotSetError("No password has been set yet.")

        stored_hash = self.config.password_file.read_text().strip()
        if not verify_password((password or "").strip(), stored_hash):
            logger.warning("Login failed: incorrect password")
            raise InvalidCredentialsError("Incorrect password.")

        api_key = generate_api_key()
        self.config.keys_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        (self.config.keys_dir / _key_digest(api_key)).touch(mode=0o600)
        logger.info("Login successful, API key issued")
        return api_key

    def _is_expired(self, issued_at: float, now: float) -> bool:
        ttl = self.config.api_key_ttl_seconds
        return ttl > 0 and now - issued_at > ttl

    def is_valid_key(self, api_key: str) -> bool:
        if not api_key.startswith(API_KEY_PREFIX):
            return False
        try:
            issued_at = (self.config.keys_dir / _key_digest(api_key)).stat().st_mtime
        except FileNotFoundError:
            return False
        return not self._is_expired(issued_at, self.clock())

    def purge_expired_keys(self) -> int:
        """
        Delete the records of every expired API key.

        Returns:
            Number of key records removed
        """
        if self.config.api_key_ttl_seconds == 0 or not self.config.keys_dir.is_dir():
            return 0

        now = self.clock()
        removed = 0
        for key_file in self.config.keys_dir.iterdir():
            try:
                if self._is_expired(key_file.stat().st_mtime, now):
                    key_file.unlink()
                    removed += 1
            except FileNotFoundError:
                continue

        if removed:
            logger.info(f"Purged {removed} expired API keys")
        return removed


async def require_api_key(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """
    FastAPI dependency guarding the relay API.

    Args:
        request: Incoming request, used to reach the app's AuthStore
        authorization: Authorization header value (format: "Bearer <api_key>")

    Raises:
        InvalidAPIKeyError: If the header is missing, malformed or the key unknown
    """
    config: RelayConfig = request.app.state.config
    if not config.auth_enabled:
        return

    if not authorization or not authorization.startswith("Bearer "):
        raise InvalidAPIKeyError("Missing or invalid authorization header")

    api_key = authorization[len("Bearer "):].strip()
    auth_store: AuthStore = request.app.state.auth_store
    if not auth_store.is_valid_key(api_key):
        raise InvalidAPIKeyError("Invalid API key")
