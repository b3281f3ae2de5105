"""Utility functions for CLI operations."""

import sys

from cli.constants import GREEN, RESET


class ChunkProgress:
    """Progress callback that draws a one-line chunk counter on stdout."""

    def __init__(self, label: str, stream=None):
        """
        Args:
            label: Verb shown before the counter (e.g. "Uploading")
            stream: Output stream (defaults to stdout)
        """
        self.label = label
        self.stream = stream or sys.stdout

    def __call__(self, done: int, total: int) -> None:
        progress = (done / total) * 100 if total else 100.0
        self.stream.write(f"\r{self.label} chunk {done} of {total} ({GREEN}{progress:.1f}%{RESET})")
        if done >= total:
            self.stream.write('\n')
        self.stream.flush()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"
