"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = [
    "redeem", "guest", "whoami", "upload", "download", "list", "rename", "link", "delete",
    "keys", "gen-key", "revoke-key", "clear", "exit", "help",
]

STYLE = Style.from_dict(
    {
        "prompt": "#3BA99C bold",
        "command": "#0088ff bold",
    }
)

TEAL = "\033[38;2;59;169;156m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{TEAL}
 ██████╗  ██████╗ ██╗  ██╗   ██╗ ██████╗ ██████╗  █████╗ ███████╗
 ██╔══██╗██╔═══██╗██║  ╚██╗ ██╔╝██╔════╝ ██╔══██╗██╔══██╗██╔════╝
 ██████╔╝██║   ██║██║   ╚████╔╝ ██║  ███╗██████╔╝███████║█████╗
 ██╔═══╝ ██║   ██║██║    ╚██╔╝  ██║   ██║██╔══██╗██╔══██║██╔══╝
 ██║     ╚██████╔╝███████╗██║   ╚██████╔╝██║  ██║██║  ██║██║
 ╚═╝      ╚═════╝ ╚══════╝╚═╝    ╚═════╝ ╚═╝  ╚═╝╚═╝  ╚═╝╚═╝
{RESET}"""

WELCOME_TITLE = "Polygraf CLI - Access keys and object storage"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "polygraf> "

HELP_TEXT = """Available commands:
  redeem <access-key>                 Redeem a single-use access key and start a session
  guest                               Start a guest session (if enabled on the server)
  whoami                              Show the current session's role
  upload <path> [name]                Upload a local file
  download <object-id> [output_path]  Download an object (defaults to its stored name)
  list [--mine] [--linked <entity>] [limit]
                                      List stored objects, newest first
  list --more                         Fetch the next page of the previous list
  rename <object-id> <name>           Change an object's display name
  link <object-id> [entity ...]       Replace the entities an object is linked to
  delete <object-id>                  Delete an object
  keys [--unused]                     List access keys (admin)
  gen-key [role] [days]               Generate an access key, optionally expiring (admin)
  revoke-key <key-id>                 Revoke an unused access key (admin)
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  redeem KEY-ABCD-EFGH-JKMN
  upload reports/march.pdf "March report"
  list --mine 10
  link 3f2a9c1e-6b1d-4f5e-9a7b-2c8d0e4f1a2b order-1042
  download 3f2a9c1e-6b1d-4f5e-9a7b-2c8d0e4f1a2b downloads/march.pdf
  gen-key user 7"""
