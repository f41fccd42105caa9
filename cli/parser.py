"""Command parser for CLI input."""

import shlex

from common.constants import ROLES
from cli.models import (
    CommandRequest,
    DeleteCommand,
    DownloadCommand,
    GenKeyCommand,
    GuestCommand,
    KeysCommand,
    LinkCommand,
    ListCommand,
    RedeemCommand,
    RenameCommand,
    RevokeKeyCommand,
    UploadCommand,
    WhoamiCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

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
    args = tokens[1:]

    if command_name == "redeem":
        return _parse_redeem(args)
    elif command_name == "guest":
        _expect_no_args("guest", args)
        return GuestCommand()
    elif command_name == "whoami":
        _expect_no_args("whoami", args)
        return WhoamiCommand()
    elif command_name == "upload":
        return _parse_upload(args)
    elif command_name == "download":
        return _parse_download(args)
    elif command_name == "list":
        return _parse_list(args)
    elif command_name == "rename":
        return _parse_rename(args)
    elif command_name == "link":
        return _parse_link(args)
    elif command_name == "delete":
        return _parse_delete(args)
    elif command_name == "keys":
        return _parse_keys(args)
    elif command_name == "gen-key":
        return _parse_gen_key(args)
    elif command_name == "revoke-key":
        return _parse_revoke_key(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _parse_positive_int(value: str, what: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise ParseError(f"{what} must be a number, got '{value}'")
    if number <= 0:
        raise ParseError(f"{what} must be positive")
    return number


def _parse_redeem(args: list[str]) -> RedeemCommand:
    """Parse 'redeem <access-key>' command."""
    if len(args) != 1:
        raise ParseError("redeem requires exactly 1 argument: <access-key>")
    return RedeemCommand(token=args[0].strip().upper())


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path> [name]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("upload requires <path> and an optional [name]")
    return UploadCommand(path=args[0], display_name=args[1] if len(args) > 1 else None)


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <object-id> [output_path]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("download requires <object-id> and an optional [output_path]")
    return DownloadCommand(object_id=args[0], output_path=args[1] if len(args) > 1 else None)


def _parse_list(args: list[str]) -> ListCommand:
    """Parse 'list [--mine] [--linked <entity>] [--more] [limit]' command."""
    mine = False
    more = False
    linked_entity = None
    rest = []
    remaining = iter(args)
    for arg in remaining:
        if arg == "--mine":
            mine = True
        elif arg == "--more":
            more = True
        elif arg == "--linked":
            linked_entity = next(remaining, None)
            if linked_entity is None:
                raise ParseError("--linked requires an <entity> id")
        else:
            rest.append(arg)
    if len(rest) > 1:
        raise ParseError("list accepts at most one [limit]")
    limit = _parse_positive_int(rest[0], "limit") if rest else None
    return ListCommand(limit=limit, mine=mine, linked_entity=linked_entity, more=more)


def _parse_rename(args: list[str]) -> RenameCommand:
    """Parse 'rename <object-id> <name>' command."""
    if len(args) != 2:
        raise ParseError("rename requires exactly 2 arguments: <object-id> <name>")
    object_id, display_name = args
    return RenameCommand(object_id=object_id, display_name=display_name)


def _parse_link(args: list[str]) -> LinkCommand:
    """Parse 'link <object-id> [entity ...]' command. No entities clears the links."""
    if not args:
        raise ParseError("link requires <object-id> and zero or more [entity] ids")
    return LinkCommand(object_id=args[0], entities=tuple(args[1:]))


def _parse_delete(args: list[str]) -> DeleteCommand:
    """Parse 'delete <object-id>' command."""
    if len(args) != 1:
        raise ParseError("delete requires exactly 1 argument: <object-id>")
    return DeleteCommand(object_id=args[0])


def _parse_keys(args: list[str]) -> KeysCommand:
    """Parse 'keys [--unused]' command."""
    if args and args != ["--unused"]:
        raise ParseError("keys accepts only the --unused flag")
    return KeysCommand(unused_only=bool(args))


def _parse_gen_key(args: list[str]) -> GenKeyCommand:
    """Parse 'gen-key [role] [days]' command."""
    if len(args) > 2:
        raise ParseError("gen-key accepts at most [role] [days]")
    role = args[0] if args else "user"
    if role not in ROLES:
        raise ParseError(f"Unknown role '{role}', expected one of: {', '.join(ROLES)}")
    expires_in_days = _parse_positive_int(args[1], "days") if len(args) > 1 else None
    return GenKeyCommand(role=role, expires_in_days=expires_in_days)


def _parse_revoke_key(args: list[str]) -> RevokeKeyCommand:
    """Parse 'revoke-key <key-id>' command."""
    if len(args) != 1:
        raise ParseError("revoke-key requires exactly 1 argument: <key-id>")
    return RevokeKeyCommand(token_id=args[0])
