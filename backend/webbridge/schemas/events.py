# webbridge/schemas/events.py
"""
Platform-neutral inbound events.
The chat client adapter builds these from raw updates; the bridge
orchestrator consumes them without knowing which chat platform sent them.
"""
from typing import Optional
from pydantic import BaseModel, Field

from webbridge.schemas.media import MediaDescriptor


class Profile(BaseModel):
    """Sender identity as reported by the chat platform."""
    user_id: int
    chat_id: int
    first_name: str = ""
    last_name: str = ""
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or str(self.user_id)


class StartEvent(BaseModel):
    """First contact (/start) from a user."""
    profile: Profile


class MediaEvent(BaseModel):
    """
    A message carrying media, or a link standing in for it.

    media is None when the adapter could not resolve a descriptor; link holds
    the first URL embedded in the message text, if any.
    """
    profile: Profile
    message_id: int
    media: Optional[MediaDescriptor] = None
    link: Optional[str] = None
    is_forwarded: bool = False
    is_private: bool = True


class CommandEvent(BaseModel):
    """A text command such as /authorize 42 admin."""
    profile: Profile
    command: str
    args: list[str] = Field(default_factory=list)
