"""Command handler functions for CLI operations."""

from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.models import (
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
from cli.polygraf_client import PolygrafClient

logger = get_logger(__name__)


_client: Optional[PolygrafClient] = None


def get_client() -> PolygrafClient:
    """
    Get or create global PolygrafClient instance.

    Returns:
        PolygrafClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new PolygrafClient instance")
        _client = PolygrafClient(Config())
    return _client


def handle_redeem(cmd: RedeemCommand, client: Optional[PolygrafClient] = None) -> str:
    """
    Handle 'redeem' command.

    Args:
        cmd: RedeemCommand with the access key
        client: Optional PolygrafClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    return client.redeem(cmd.token)


def handle_guest(cmd: GuestCommand, client: Optional[PolygrafClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.guest()


def handle_whoami(cmd: WhoamiCommand, client: Optional[PolygrafClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.whoami()


def handle_upload(cmd: UploadCommand, client: Optional[PolygrafClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with local path and optional display name
        client: Optional PolygrafClient for dependency injection (testing)

    Returns:
        Success or error message with the new object id
    """
    logger.info(f"Executing upload command: path={cmd.path}")
    if client is None:
        client = get_client()
    result = client.upload(cmd.path, cmd.display_name)
    logger.debug("Upload command completed")
    return result


def handle_download(cmd: DownloadCommand, client: Optional[PolygrafClient] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with object id and optional output_path
        client: Optional PolygrafClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing download command: object_id={cmd.object_id} output_path={cmd.output_path}")
    if client is None:
        client = get_client()
    result = client.download(cmd.object_id, cmd.output_path)
    logger.debug("Download command completed")
    return result


def handle_list(cmd: ListCommand, client: Optional[PolygrafClient] = None) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand with optional limit, owner and linked-entity filters
        client: Optional PolygrafClient for dependency injection (testing)

    Returns:
        Formatted list of objects
    """
    if client is None:
        client = get_client()
    if cmd.more:
        return client.list_more_objects()
    return client.list_objects(limit=cmd.limit, mine=cmd.mine, linked_entity=cmd.linked_entity)


def handle_rename(cmd: RenameCommand, client: Optional[PolygrafClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.rename(cmd.object_id, cmd.display_name)


def handle_link(cmd: LinkCommand, client: Optional[PolygrafClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.link(cmd.object_id, list(cmd.entities))


def handle_delete(cmd: DeleteCommand, client: Optional[PolygrafClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.delete(cmd.object_id)


def handle_keys(cmd: KeysCommand, client: Optional[PolygrafClient] = None) -> str:
    """
    Handle 'keys' command (admin only).

    Args:
        cmd: KeysCommand, optionally restricted to unused keys
        client: Optional PolygrafClient for dependency injection (testing)

    Returns:
        Formatted table of access keys
    """
    if client is None:
        client = get_client()
    return client.list_keys(unused_only=cmd.unused_only)


def handle_gen_key(cmd: GenKeyCommand, client: Optional[PolygrafClient] = None) -> str:
    logger.info(f"Executing gen-key command: role={cmd.role} expires_in_days={cmd.expires_in_days}")
    if client is None:
        client = get_client()
    return client.generate_key(cmd.role, cmd.expires_in_days)


def handle_revoke_key(cmd: RevokeKeyCommand, client: Optional[PolygrafClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.revoke_key(cmd.token_id)


HANDLERS = {
    RedeemCommand: handle_redeem,
    GuestCommand: handle_guest,
    WhoamiCommand: handle_whoami,
    UploadCommand: handle_upload,
    DownloadCommand: handle_download,
    ListCommand: handle_list,
    RenameCommand: handle_rename,
    LinkCommand: handle_link,
    DeleteCommand: handle_delete,
    KeysCommand: handle_keys,
    GenKeyCommand: handle_gen_key,
    RevokeKeyCommand: handle_revoke_key,
}
