"""Command request data types for the CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class SetupCommand:
    """Set the relay's initial password."""

    password: str
    command: Literal["setup"] = "setup"


@dataclass(frozen=True)
class LoginCommand:
    """Log in with the relay password."""

    password: str
    command: Literal["login"] = "login"


@dataclass(frozen=True)
class SendCommand:
    """Send a local file through the relay."""

    file_path: str
    command: Literal["send"] = "send"


@dataclass(frozen=True)
class ReceiveCommand:
    """Receive the file of a session."""

    session_id: str
    output_path: str | None = None
    command: Literal["receive"] = "receive"


@dataclass(frozen=True)
class StatusCommand:
    """Show the state of a session."""

    session_id: str
    command: Literal["status"] = "status"


CommandRequest = (
    SetupCommand
    | LoginCommand
    | SendCommand
    | ReceiveCommand
    | StatusCommand
)
