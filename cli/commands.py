"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from cli.config import Config
from cli.models import (
    LoginCommand,
    ReceiveCommand,
    SendCommand,
    SetupCommand,
    StatusCommand,
)
from cli.receiver import ReceiverDriver
from cli.relay_client import RelayClient, RelayClientError
from cli.retry import RetryPolicy, TransferError
from cli.sender import SenderDriver
from cli.utils import ChunkProgress, format_file_size
from common.logging_config import get_logger

logger = get_logger(__name__)

CONFIG_PATH = Path.home() / '.chunkrelay' / 'config.json'

_client: Optional[RelayClient] = None


def get_client() -> RelayClient:
    """
    Get or create global RelayClient instance.

    Returns:
        RelayClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new RelayClient instance")
        _client = RelayClient(Config(CONFIG_PATH))
    return _client


def build_send_policy(config: Config) -> RetryPolicy:
    """
    Flow-control policy for the sender.

    Waiting for relay capacity has no time limit: a full session only drains
    as fast as the receiver shows up, and only a terminal reason ends a send.
    """
    poll = config.get_poll_config()
    return RetryPolicy(interval=poll['poll_interval'], stall_timeout=None)


def build_receive_policy(config: Config) -> RetryPolicy:
    """Flow-control policy for the receiver, bounded by the configured stall timeout."""
    poll = config.get_poll_config()
    return RetryPolicy(interval=poll['poll_interval'], stall_timeout=poll['stall_timeout'])


def handle_setup(cmd: SetupCommand, client: Optional[RelayClient] = None) -> str:
    """
    Handle 'setup' command.

    Args:
        cmd: SetupCommand with the initial password
        client: Optional RelayClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    try:
        client.setup_password(cmd.password)
        client.login(cmd.password)
    except (RelayClientError, ConnectionError) as e:
        return f"Setup failed: {e}"
    return "Password set. Logged in and API key saved to config."


def handle_login(cmd: LoginCommand, client: Optional[RelayClient] = None) -> str:
    """
    Handle 'login' command.

    Args:
        cmd: LoginCommand with the relay password
        client: Optional RelayClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    try:
        client.login(cmd.password)
    except (RelayClientError, ConnectionError) as e:
        return f"Login failed: {e}"
    return "Login successful!\nAPI key saved to config."


def handle_send(
    cmd: SendCommand,
    client: Optional[RelayClient] = None,
    sender: Optional[SenderDriver] = None
) -> str:
    """
    Handle 'send' command.

    The session id is printed as soon as it exists so it can be passed to the
    receiver while the upload is still running.

    Args:
        cmd: SendCommand with the local file path
        client: Optional RelayClient for dependency injection (testing)
        sender: Optional SenderDriver for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()

    path = Path(cmd.file_path).expanduser()
    if not path.is_file():
        return f"Error: File not found: {cmd.file_path}"

    if sender is None:
        sender = SenderDriver(client, build_send_policy(client.config), on_progress=ChunkProgress("Uploading"))

    def announce(session_id: str) -> None:
        print(f"Session ID: {session_id}\nReceiver command: receive {session_id}")

    try:
        session_id = sender.send(path, on_session=announce)
    except (TransferError, RelayClientError, ConnectionError) as e:
        logger.error(f"Send of {path} failed: {e}")
        return f"Send failed: {e}"

    size = format_file_size(path.stat().st_size)
    return f"File sent! {path.name} ({size}) is waiting in session {session_id}"


def handle_receive(
    cmd: ReceiveCommand,
    client: Optional[RelayClient] = None,
    receiver: Optional[ReceiverDriver] = None
) -> str:
    """
    Handle 'receive' command.

    Args:
        cmd: ReceiveCommand with session id and optional output path
        client: Optional RelayClient for dependency injection (testing)
        receiver: Optional ReceiverDriver for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    if receiver is None:
        receiver = ReceiverDriver(client, build_receive_policy(client.config), on_progress=ChunkProgress("Downloading"))

    output_path = Path(cmd.output_path).expanduser() if cmd.output_path else None

    try:
        result = receiver.receive(
            cmd.session_id,
            output_path=output_path,
            download_dir=client.config.get_download_dir()
        )
    except (TransferError, RelayClientError, ConnectionError) as e:
        logger.error(f"Receive of session {cmd.session_id} failed: {e}")
        return f"Receive failed: {e}"

    return f"File received! Saved to {result}"


def handle_status(cmd: StatusCommand, client: Optional[RelayClient] = None) -> str:
    """
    Handle 'status' command.

    Args:
        cmd: StatusCommand with the session id
        client: Optional RelayClient for dependency injection (testing)

    Returns:
        Session state or error message
    """
    if client is None:
        client = get_client()
    try:
        info = client.status(cmd.session_id)
    except (RelayClientError, ConnectionError) as e:
        return f"Status failed: {e}"
    return f"Session {cmd.session_id}: {info['state']} ({format_file_size(info['usage_bytes'])} on relay)"
