# webbridge/core/errors.py
"""
Error taxonomy shared by the authorization state machine, the store adapter
and the bridge orchestrator.

Only StorageError and UnsupportedMedia describe real failures; the others are
normal outcomes that the orchestrator turns into reply text.
"""


class BridgeError(Exception):
    """Base class for every error raised by the bridge core."""


class PermissionDenied(BridgeError):
    """The acting user is not allowed to perform the operation."""


class NotFound(BridgeError):
    """The target user (or other entity) does not exist."""


class StorageError(BridgeError):
    """The persistence layer is unavailable or rejected the operation."""


class UnsupportedMedia(BridgeError):
    """No media descriptor could be extracted and no link fallback applied."""


class NotificationFailure(BridgeError):
    """A best-effort outbound message could not be delivered."""
