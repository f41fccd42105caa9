"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class RedeemCommand:
    """Redeem a single-use access key."""

    token: str
    command: Literal["redeem"] = "redeem"


@dataclass(frozen=True)
class GuestCommand:
    """Start a guest session."""

    command: Literal["guest"] = "guest"


@dataclass(frozen=True)
class WhoamiCommand:
    """Show the current session."""

    command: Literal["whoami"] = "whoami"


@dataclass(frozen=True)
class UploadCommand:
    """Upload a local file."""

    path: str
    display_name: str | None = None
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DownloadCommand:
    """Download an object by id."""

    object_id: str
    output_path: str | None = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class ListCommand:
    """List stored objects."""

    limit: int | None = None
    mine: bool = False
    linked_entity: str | None = None
    more: bool = False
    command: Literal["list"] = "list"


@dataclass(frozen=True)
class RenameCommand:
    """Rename an object."""

    object_id: str
    display_name: str
    command: Literal["rename"] = "rename"


@dataclass(frozen=True)
class LinkCommand:
    """Replace the entities an object is linked to."""

    object_id: str
    entities: tuple[str, ...] = ()
    command: Literal["link"] = "link"


@dataclass(frozen=True)
class DeleteCommand:
    """Delete an object."""

    object_id: str
    command: Literal["delete"] = "delete"


@dataclass(frozen=True)
class KeysCommand:
    """List access keys."""

    unused_only: bool = False
    command: Literal["keys"] = "keys"


@dataclass(frozen=True)
class GenKeyCommand:
    """Generate an access key."""

    role: str = "user"
    expires_in_days: int | None = None
    command: Literal["gen-key"] = "gen-key"


@dataclass(frozen=True)
class RevokeKeyCommand:
    """Revoke an unused access key."""

    token_id: str
    command: Literal["revoke-key"] = "revoke-key"


CommandRequest = (
    RedeemCommand
    | GuestCommand
    | WhoamiCommand
    | UploadCommand
    | DownloadCommand
    | ListCommand
    | RenameCommand
    | LinkCommand
    | DeleteCommand
    | KeysCommand
    | GenKeyCommand
    | RevokeKeyCommand
)
