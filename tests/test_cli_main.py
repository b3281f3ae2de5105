"""Tests for the CLI entry point."""

from unittest.mock import patch

import pytest

from cli import main as cli_main
from cli.models import SendCommand


def test_one_shot_command(monkeypatch, capsys):
    monkeypatch.setattr('sys.argv', ['chunkrelay', 'send', 'my file.bin'])

    with patch('cli.main.dispatch_command', return_value='File sent!') as dispatch, \
            patch('cli.main.repl_loop') as repl:
        cli_main.main()

    dispatch.assert_called_once_with(SendCommand(file_path='my file.bin'))
    repl.assert_not_called()
    assert 'File sent!' in capsys.readouterr().out


def test_one_shot_parse_error_exits(monkeypatch, capsys):
    monkeypatch.setattr('sys.argv', ['chunkrelay', 'frobnicate'])

    with pytest.raises(SystemExit) as exc_info:
        cli_main.main()

    assert exc_info.value.code == 2
    assert 'Unknown command' in capsys.readouterr().out


def test_no_arguments_starts_repl(monkeypatch):
    monkeypatch.setattr('sys.argv', ['chunkrelay', '--debug'])

    with patch('cli.main.repl_loop') as repl:
        cli_main.main()

    repl.assert_called_once()
