"""
Services Module

Bridge services and chat-platform adapters:
- Bridge orchestrator: inbound events -> authorization -> addressing -> fan-out
- Chat client interface and its Telegram implementation
- Media descriptor extraction from Telegram messages
"""

from webbridge.core.chat_client import ChatClient
from .bridge import BridgeOrchestrator, is_loopback_url, wrap_if_needed
from .media import (
    descriptor_from_link,
    descriptor_from_message,
    detect_mime_from_url,
    extract_link,
)

__all__ = [
    "ChatClient",
    "BridgeOrchestrator",
    "is_loopback_url",
    "wrap_if_needed",
    "descriptor_from_link",
    "descriptor_from_message",
    "detect_mime_from_url",
    "extract_link",
]
