"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["setup", "login", "send", "receive", "status", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2E9BD6 bold",
        "command": "#0088ff bold",
    }
)

BLUE = "\033[38;2;46;155;214m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{BLUE}
  ┌─┐┬ ┬┬ ┬┌┐┌┬┌─  ┬─┐┌─┐┬  ┌─┐┬ ┬
  │  ├─┤│ ││││├┴┐  ├┬┘├┤ │  ├─┤└┬┘
  └─┘┴ ┴└─┘┘└┘┴ ┴  ┴└─└─┘┴─┘┴ ┴ ┴
{RESET}"""

WELCOME_TITLE = "chunkrelay CLI - large file transfer through a relay"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "chunkrelay> "

HELP_TEXT = """Available commands:
  setup <password>                    Set the relay's initial password (first run only)
  login <password>                    Login and store an API key
  send <file_path>                    Send a file; prints the session id for the receiver
  receive <session_id> [output_path]  Receive a file (defaults to the download directory)
  status <session_id>                 Show session state and bytes held on the relay
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

The sender waits while the relay is full; the receiver waits for chunks that
have not arrived yet. Run the receiver while the sender is still uploading.
Examples:
  setup s3cret
  login s3cret
  send ./backups/disk.img
  receive 9f86d081884c7d659a2feaa0c55ad015
  receive 9f86d081884c7d659a2feaa0c55ad015 restored/disk.img"""
