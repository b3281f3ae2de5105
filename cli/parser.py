"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    LoginCommand,
    ReceiveCommand,
    SendCommand,
    SetupCommand,
    StatusCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Setup/Login/Send/Receive/Status)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "setup":
        return _parse_setup(tokens[1:])
    elif command_name == "login":
        return _parse_login(tokens[1:])
    elif command_name == "send":
        return _parse_send(tokens[1:])
    elif command_name == "receive":
        return _parse_receive(tokens[1:])
    elif command_name == "status":
        return _parse_status(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_setup(args: list[str]) -> SetupCommand:
    """Parse 'setup <password>' command."""
    if len(args) != 1:
        raise ParseError("setup requires exactly 1 argument: <password>")

    return SetupCommand(password=args[0])


def _parse_login(args: list[str]) -> LoginCommand:
    """Parse 'login <password>' command."""
    if len(args) != 1:
        raise ParseError("login requires exactly 1 argument: <password>")

    return LoginCommand(password=args[0])


def _parse_send(args: list[str]) -> SendCommand:
    """Parse 'send <file_path>' command."""
    if len(args) != 1:
        raise ParseError("send requires exactly 1 argument: <file_path>")

    return SendCommand(file_path=args[0])


def _parse_receive(args: list[str]) -> ReceiveCommand:
    """Parse 'receive <session_id> [output_path]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("receive requires 1 or 2 arguments: <session_id> [output_path]")

    session_id = args[0]
    output_path = args[1] if len(args) > 1 else None

    return ReceiveCommand(session_id=session_id, output_path=output_path)


def _parse_status(args: list[str]) -> StatusCommand:
    """Parse 'status <session_id>' command."""
    if len(args) != 1:
        raise ParseError("status requires exactly 1 argument: <session_id>")

    return StatusCommand(session_id=args[0])
