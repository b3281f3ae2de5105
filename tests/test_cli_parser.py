"""Tests for CLI command parsing."""

import pytest

from cli.models import LoginCommand, ReceiveCommand, SendCommand, SetupCommand, StatusCommand
from cli.parser import ParseError, parse_command


def test_parse_setup():
    assert parse_command('setup s3cret') == SetupCommand(password='s3cret')


def test_parse_login():
    assert parse_command('login s3cret') == LoginCommand(password='s3cret')


def test_parse_send():
    assert parse_command('send ./disk.img') == SendCommand(file_path='./disk.img')


def test_parse_send_quoted_path():
    assert parse_command('send "my movie.mkv"') == SendCommand(file_path='my movie.mkv')


def test_parse_receive():
    assert parse_command('receive abc123') == ReceiveCommand(session_id='abc123')


def test_parse_receive_with_output():
    cmd = parse_command('receive abc123 /tmp/out.bin')
    assert cmd == ReceiveCommand(session_id='abc123', output_path='/tmp/out.bin')


def test_parse_status():
    assert parse_command('status abc123') == StatusCommand(session_id='abc123')


@pytest.mark.parametrize('line', [
    '',
    '   ',
    'upload file.txt',
    'setup',
    'login a b',
    'send',
    'send a b',
    'receive',
    'receive a b c',
    'status',
    'send "unterminated',
])
def test_parse_errors(line):
    with pytest.raises(ParseError):
        parse_command(line)


def test_unknown_command_message():
    with pytest.raises(ParseError) as exc_info:
        parse_command('frobnicate')
    assert str(exc_info.value) == 'Unknown command: frobnicate'
