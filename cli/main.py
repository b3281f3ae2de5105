"""CLI entry point.

Without arguments an interactive REPL starts. A single command can also be
run directly, e.g. `chunkrelay send ./disk.img`.
"""

import os
import shlex
import sys

from common.logging_config import setup_logging
from cli.parser import ParseError, parse_command
from cli.repl import dispatch_command, repl_loop


def main() -> None:
    """Entry point for CLI."""
    log_level = 'DEBUG' if '--debug' in sys.argv else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)

    if '--debug' in sys.argv:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    args = sys.argv[1:]
    if args:
        try:
            cmd_obj = parse_command(" ".join(shlex.quote(a) for a in args))
        except ParseError as e:
            print(f"Error: {e}")
            sys.exit(2)
        print(dispatch_command(cmd_obj))
        return

    logger.info("CLI starting...")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
