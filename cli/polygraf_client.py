"""HTTP client for communicating with the Polygraf server."""

import mimetypes
import time
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import httpx

from common.encoding import decode_payload, encode_bytes
from common.logging_config import get_logger
from cli.config import Config
from cli.constants import GREEN, RESET
from cli.utils import format_file_size, format_timestamp

logger = get_logger(__name__)


class PolygrafClient:
    """HTTP client for the Polygraf API with retry logic and error handling."""

    def __init__(self, config: Config):
        """
        Initialize Polygraf client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        self._list_params: Optional[dict] = None
        self._list_cursor: Optional[Tuple[str, str]] = None
        logger.info(f"Initialized PolygrafClient [base_url={config.get_base_url()}]")

    def _is_retryable(self, response: httpx.Response) -> bool:
        try:
            return bool(response.json().get('retryable', True))
        except ValueError:
            return True

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on retryable 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})
        kwargs['headers']['X-Request-ID'] = self.request_id

        logger.debug(
            f"Making request: {method} {endpoint} [request_id={self.request_id}]"
        )

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if (
                    response.status_code >= 500
                    and attempt < max_retries
                    and self._is_retryable(response)
                ):
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        if isinstance(last_exception, httpx.ConnectError):
            raise ConnectionError("Cannot connect to Polygraf server. Is it running?")
        raise ConnectionError("Max retries exceeded")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'TOKEN_NOT_FOUND': 'Access key not recognized. Check it and try again.',
            'TOKEN_ALREADY_USED': 'This access key has already been used. Ask for a new one.',
            'TOKEN_EXPIRED': 'This access key has expired. Ask for a new one.',
            'IDENTITY_ISSUANCE_FAILED': 'Could not create a session. Please try again.',
            'GUEST_ACCESS_DISABLED': 'Guest access is disabled on this server.',
            'TRANSACTION_ABORTED': 'The server was busy with a conflicting request. Please try again.',
            'STORAGE_FAILURE': 'Storage is temporarily unavailable. Please try again.',
            'OBJECT_TOO_LARGE': 'File is too large to store.',
            'OBJECT_NOT_FOUND': 'Object not found on server.',
            'CORRUPT_OBJECT': 'Stored object is corrupt and cannot be downloaded.',
            'INVALID_SESSION': 'Not signed in. Please run: redeem <access-key>',
            'UNAUTHORIZED_ACCESS': 'This command requires an administrator session.',
        }

        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            401: 'Not authenticated',
            403: 'Access forbidden',
            404: 'Not found',
            413: 'File too large',
            422: 'Invalid request',
            500: 'Server error',
            503: 'Service unavailable',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def _get_auth_header(self) -> dict:
        """
        Get Authorization header with session key.

        Raises:
            ValueError: If no session is active
        """
        session_key = self.config.get_session_key()
        if not session_key:
            raise ValueError("Not signed in. Please run: redeem <access-key>")
        return {'Authorization': f'Bearer {session_key}'}

    def _start_session(self, endpoint: str, action: str, **kwargs) -> str:
        try:
            response = self._request_with_retry('POST', endpoint, **kwargs)

            if response.status_code == 200:
                data = response.json()
                self.config.set_session_key(data['session_key'])
                logger.info(f"{action} successful [user_id={data['user_id']}] role={data['role']}")
                return (
                    f"{action} successful!\nUser ID: {data['user_id']}\n"
                    f"Role: {data['role']}\nSession saved to config."
                )

            logger.warning(f"{action} failed status={response.status_code}")
            return f"{action} failed: {self._format_error(response)}"

        except ConnectionError as e:
            logger.error(f"Connection error during {action.lower()}: {e}")
            return f"Error: {e}"

    def redeem(self, token: str) -> str:
        """
        Redeem an access key and store the resulting session key.
        """
        logger.info("Attempting to redeem access key")
        return self._start_session('/auth/redeem', 'Redeem', json={'token': token})

    def guest(self) -> str:
        logger.info("Attempting guest login")
        return self._start_session('/auth/guest', 'Guest login')

    def whoami(self) -> str:
        try:
            response = self._request_with_retry('GET', '/auth/me', headers=self._get_auth_header())
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        data = response.json()
        lines = [
            f"User ID:    {data['user_id']}",
            f"Role:       {data['role']}",
            f"Guest:      {'yes' if data['is_guest'] else 'no'}",
            f"Since:      {format_timestamp(data['created_at'])}",
            f"Last login: {format_timestamp(data['last_login_at'])}",
        ]
        return "\n".join(lines)

    def upload(self, file_path: str, display_name: Optional[str] = None) -> str:
        """
        Upload a local file as a data URL.

        Args:
            file_path: Path of the local file
            display_name: Name to store; defaults to the file's base name

        Returns:
            Result message with the new object id
        """
        path = Path(file_path).expanduser()
        if not path.is_file():
            return f"Error: File not found: {file_path}"

        try:
            headers = self._get_auth_header()
        except ValueError as e:
            return f"Error: {e}"

        data = path.read_bytes()
        mime_type = mimetypes.guess_type(path.name)[0] or 'application/octet-stream'
        name = display_name or path.name

        try:
            response = self._request_with_retry(
                'POST',
                '/objects',
                headers=headers,
                json={
                    'display_name': name,
                    'mime_type': mime_type,
                    'payload': encode_bytes(data, mime_type),
                    'byte_size': len(data),
                }
            )
        except ConnectionError as e:
            logger.error(f"Connection error during upload: {e}")
            return f"Error: {e}"

        if response.status_code != 201:
            logger.warning(f"Upload failed for {name} status={response.status_code}")
            return f"Upload failed: {self._format_error(response)}"

        result = response.json()
        logger.info(f"Uploaded {name} [object_id={result['object_id']}]")
        chunks = result.get('chunk_count')
        layout = f"{chunks} chunks" if chunks else "inline"
        return (
            f"{GREEN}Uploaded{RESET} {name} ({format_file_size(result['byte_size'])}, {layout})\n"
            f"Object ID: {result['object_id']}"
        )

    def download(self, object_id: str, output_path: Optional[str] = None) -> str:
        """
        Download an object and write its decoded bytes to disk.

        Args:
            object_id: Object to fetch
            output_path: Destination file or directory; defaults to the stored name in the current directory
        """
        try:
            response = self._request_with_retry(
                'GET', f'/objects/{object_id}', headers=self._get_auth_header()
            )
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Download failed: {self._format_error(response)}"

        data = response.json()
        try:
            content = decode_payload(data['payload'])
        except ValueError as e:
            logger.error(f"Undecodable payload [object_id={object_id}]: {e}")
            return f"Download failed: {e}"

        target = Path(output_path).expanduser() if output_path else Path(Path(data['display_name']).name)
        if target.is_dir():
            target = target / Path(data['display_name']).name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

        logger.info(f"Downloaded [object_id={object_id}] to {target}")
        return f"{GREEN}Downloaded{RESET} {data['display_name']} ({format_file_size(len(content))}) to {target}"

    def list_objects(
        self,
        limit: Optional[int] = None,
        mine: bool = False,
        linked_entity: Optional[str] = None,
    ) -> str:
        params = {'mine': str(mine).lower()}
        if limit is not None:
            params['limit'] = limit
        if linked_entity is not None:
            params['linked_entity'] = linked_entity
        self._list_params = params
        self._list_cursor = None
        return self._fetch_object_page(params)

    def list_more_objects(self) -> str:
        """Fetch the page after the one the last list returned."""
        if self._list_params is None or self._list_cursor is None:
            return "No more objects. Run 'list' first."
        before, before_id = self._list_cursor
        return self._fetch_object_page({**self._list_params, 'before': before, 'before_id': before_id})

    def _fetch_object_page(self, params: dict) -> str:
        try:
            response = self._request_with_retry(
                'GET', '/objects', headers=self._get_auth_header(), params=params
            )
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        data = response.json()
        objects = data['objects']
        if data.get('next_before') and data.get('next_before_id'):
            self._list_cursor = (data['next_before'], data['next_before_id'])
        else:
            self._list_cursor = None
        if not objects:
            return "No objects found."

        lines = [f"{'ID':<38}{'NAME':<32}{'SIZE':>12}  CREATED"]
        for obj in objects:
            lines.append(
                f"{obj['object_id']:<38}{obj['display_name'][:30]:<32}"
                f"{format_file_size(obj['byte_size']):>12}  {format_timestamp(obj['created_at'])}"
            )
        if self._list_cursor is not None:
            lines.append("More objects available: run 'list --more'")
        return "\n".join(lines)

    def rename(self, object_id: str, display_name: str) -> str:
        try:
            response = self._request_with_retry(
                'PATCH',
                f'/objects/{object_id}',
                headers=self._get_auth_header(),
                json={'display_name': display_name}
            )
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Rename failed: {self._format_error(response)}"
        return f"Renamed {object_id} to '{display_name}'"

    def link(self, object_id: str, entities: List[str]) -> str:
        try:
            response = self._request_with_retry(
                'PATCH',
                f'/objects/{object_id}',
                headers=self._get_auth_header(),
                json={'linked_entities': entities}
            )
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Link failed: {self._format_error(response)}"
        if not entities:
            return f"Cleared links of {object_id}"
        return f"Linked {object_id} to {', '.join(entities)}"

    def delete(self, object_id: str) -> str:
        try:
            response = self._request_with_retry(
                'DELETE', f'/objects/{object_id}', headers=self._get_auth_header()
            )
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Delete failed: {self._format_error(response)}"
        if response.json()['deleted']:
            return f"Deleted {object_id}"
        return f"Nothing to delete: {object_id} does not exist"

    def list_keys(self, unused_only: bool = False) -> str:
        try:
            response = self._request_with_retry(
                'GET',
                '/tokens',
                headers=self._get_auth_header(),
                params={'include_used': str(not unused_only).lower()}
            )
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        tokens = response.json()['tokens']
        if not tokens:
            return "No access keys found."

        lines = [f"{'KEY':<21}{'ROLE':<8}{'STATUS':<10}{'EXPIRES':<19}ID"]
        for token in tokens:
            state = "used" if token['used'] else "unused"
            expires = format_timestamp(token['expires_at']) if token['expires_at'] else "never"
            lines.append(f"{token['token']:<21}{token['role']:<8}{state:<10}{expires:<19}{token['token_id']}")
        return "\n".join(lines)

    def generate_key(self, role: str = 'user', expires_in_days: Optional[int] = None) -> str:
        try:
            response = self._request_with_retry(
                'POST',
                '/tokens',
                headers=self._get_auth_header(),
                json={'role': role, 'expires_in_days': expires_in_days}
            )
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 201:
            return f"Error: {self._format_error(response)}"

        token = response.json()
        expiry = f", expires {format_timestamp(token['expires_at'])}" if token['expires_at'] else ""
        return f"Generated {role} key: {token['token']}{expiry}\nKey ID: {token['token_id']}"

    def revoke_key(self, token_id: str) -> str:
        try:
            response = self._request_with_retry(
                'DELETE', f'/tokens/{token_id}', headers=self._get_auth_header()
            )
        except (ValueError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Revoke failed: {self._format_error(response)}"
        return f"Revoked key {token_id}"

    def close(self) -> None:
        self.session.close()
