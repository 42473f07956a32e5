# webbridge/core/addressing.py
"""
Capability addressing.

Turns media metadata into a short, stable token that forms the unguessable
segment of a streaming URL:

    {base_url}/{message_id}/{token}

Nothing is stored. The HTTP layer verifies a request by resolving the
message's media again and recomputing the token (see verify_token).
"""
import hashlib
import hmac

from webbridge.schemas.media import MediaDescriptor


def _field(value: str) -> bytes:
    """Length-prefixed UTF-8 field: b"<len>:<bytes>"."""
    raw = value.encode("utf-8")
    return str(len(raw)).encode("ascii") + b":" + raw


def pack(file_name: str, file_size: int, mime_type: str, file_id: str | int) -> bytes:
    """
    Canonical encoding of the fields that identify one media item.

    Each field is length-prefixed so that ("ab", "cd") and ("a", "bcd") can
    never pack to the same bytes. Field order is fixed.
    """
    return b"".join(
        (
            _field(file_name),
            _field(str(int(file_size))),
            _field(mime_type),
            _field(str(file_id)),
        )
    )


def short_hash(data: bytes, length: int) -> str:
    """
    Hex SHA-256 digest of data truncated to length characters.

    Hex output is URL-safe as is; length is a deployment security parameter
    (each character carries 4 bits).
    """
    if length < 1:
        raise ValueError("length must be positive")
    return hashlib.sha256(data).hexdigest()[:length]


def token_for(media: MediaDescriptor, length: int) -> str:
    return short_hash(pack(media.file_name, media.file_size, media.mime_type, media.file_id), length)


def verify_token(media: MediaDescriptor, token: str, length: int) -> bool:
    """Recompute the token for media and compare it in constant time."""
    return hmac.compare_digest(token_for(media, length), token)


def build_url(base_url: str, message_id: int, token: str) -> str:
    return f"{base_url.rstrip('/')}/{message_id}/{token}"


def entry_url(base_url: str, chat_id: int) -> str:
    """Per-user web entry point."""
    return f"{base_url.rstrip('/')}/{chat_id}"
