"""Helpers for the text encoding of binary payloads (base64 and data URLs)."""

import base64
import binascii
import re
from typing import Optional

_DATA_URL_RE = re.compile(r'^data:(?P<mime>[^;,]*)(?:;[^,]*)?,', re.IGNORECASE)


def split_data_url(encoded: str) -> tuple[Optional[str], str]:
    """
    Split a data URL into its mime type and base64 body.

    Args:
        encoded: Either a data URL ("data:<mime>;base64,<body>") or a bare base64 string

    Returns:
        Tuple of (mime_type or None, base64 body)
    """
    match = _DATA_URL_RE.match(encoded)
    if match is None:
        return None, encoded
    return (match.group('mime') or None), encoded[match.end():]


def encode_bytes(data: bytes, mime_type: Optional[str] = None) -> str:
    """
    Encode raw bytes as base64 text, optionally wrapped as a data URL.

    Args:
        data: Raw bytes
        mime_type: If given, the result is a data URL for this mime type

    Returns:
        Encoded text payload
    """
    body = base64.b64encode(data).decode('ascii')
    if mime_type:
        return f"data:{mime_type};base64,{body}"
    return body


def decode_payload(encoded: str) -> bytes:
    """
    Decode a base64 payload or data URL back to raw bytes.

    Raises:
        ValueError: If the body is not valid base64
    """
    _, body = split_data_url(encoded)
    try:
        return base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Payload is not valid base64: {e}") from e


def decoded_size(encoded: str) -> int:
    """
    Compute the raw byte size represented by an encoded payload.

    Falls back to the UTF-8 length of the text when the payload is not
    base64, so arbitrary text payloads still get a meaningful size.
    """
    _, body = split_data_url(encoded)
    if len(body) % 4 == 0 and re.fullmatch(r'[A-Za-z0-9+/]*={0,2}', body):
        padding = len(body) - len(body.rstrip('='))
        return len(body) // 4 * 3 - padding
    return len(encoded.encode('utf-8'))
