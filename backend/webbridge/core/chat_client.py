"""
Chat client interface

The bridge core talks to the chat platform only through this class.
The production implementation is TelegramChatClient
(webbridge.services.telegram_bot); tests use a recording fake.
"""
from abc import ABC, abstractmethod
from typing import Optional, Union

# Numeric chat ID, or a public channel handle such as "@mychannel"
ChatTarget = Union[int, str]


class ChatClient(ABC):
    """Outbound side of the chat-protocol collaborator."""

    @abstractmethod
    async def send_message(
        self,
        chat_id: ChatTarget,
        text: str,
        button_url: Optional[str] = None,
        reply_to: Optional[int] = None,
    ) -> Optional[int]:
        """
        Send a text message.

        Parameters:
        - chat_id: Destination chat
        - text: Message body
        - button_url: When set, attach a single actionable link button
        - reply_to: Message ID to reply to

        Returns:
        - ID of the sent message, when the platform reports one
        """

    @abstractmethod
    async def forward_to_channel(self, from_chat_id: int, channel_id: ChatTarget, message_id: int) -> int:
        """
        Forward a message to a channel.

        Returns:
        - ID of the forwarded copy inside the channel
        """
