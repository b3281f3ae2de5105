"""Custom completer for the chunkrelay CLI with file path autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS


class RelayCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local file path completion for the 'send' command
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For the single 'send' argument, completes paths relative to the cwd.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command != "send":
            return

        args_so_far = len(tokens) - 1 if not is_typing_new_token else len(tokens)
        if args_so_far > 1:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_paths(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str) -> Iterable[Completion]:
        """
        Complete file and directory names under the directory part of `partial`.

        Directories are offered with a trailing '/', hidden entries only when
        the partial name itself starts with '.'.
        """
        if "/" in partial:
            dir_part, name_prefix = partial.rsplit("/", 1)
            base_dir = Path(dir_part or "/")
            shown_prefix = dir_part + "/"
        else:
            base_dir = Path.cwd()
            name_prefix = partial
            shown_prefix = ""

        if not base_dir.is_absolute():
            base_dir = Path.cwd() / base_dir

        if not base_dir.is_dir():
            return

        try:
            entries = sorted(base_dir.iterdir(), key=lambda p: p.name)
        except OSError:
            return

        for entry in entries:
            if not entry.name.startswith(name_prefix):
                continue
            if entry.name.startswith(".") and not name_prefix.startswith("."):
                continue
            suffix = "/" if entry.is_dir() else ""
            yield Completion(
                f"{shown_prefix}{entry.name}{suffix}",
                start_position=-len(partial),
                display=f"{entry.name}{suffix}",
            )
