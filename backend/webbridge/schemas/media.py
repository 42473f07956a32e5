# webbridge/schemas/media.py
"""
Pydantic schemas for media flowing through the bridge.
MediaDescriptor is extracted per inbound event and never persisted;
PushPayload is what live web sessions receive over the WebSocket.
"""
from typing import Optional
from pydantic import BaseModel


class MediaDescriptor(BaseModel):
    """
    Metadata of one inbound media item.

    file_id together with (file_name, file_size, mime_type) is enough to
    regenerate the capability token for this item.
    """
    file_name: str
    mime_type: str
    file_size: int = 0
    file_id: str = ""  # Platform identifier; stable across bots and restarts
    duration: Optional[int] = None  # Seconds
    width: Optional[int] = None  # Pixels
    height: Optional[int] = None  # Pixels
    title: Optional[str] = None
    performer: Optional[str] = None
    is_voice: bool = False
    is_animation: bool = False


class PushPayload(BaseModel):
    """
    Message delivered to a live web session.

    Field names are the wire names expected by the web player; every field is
    transmitted as a string.
    """
    url: str
    fileName: str
    fileId: str
    mimeType: str
    duration: str = "0"
    width: str = "0"
    height: str = "0"
    title: str = ""
    performer: str = ""
    isVoice: str = "false"
    isAnimation: str = "false"

    @classmethod
    def from_descriptor(cls, url: str, media: MediaDescriptor) -> "PushPayload":
        return cls(
            url=url,
            fileName=media.file_name,
            fileId=media.file_id,
            mimeType=media.mime_type,
            duration=str(media.duration or 0),
            width=str(media.width or 0),
            height=str(media.height or 0),
            title=media.title or "",
            performer=media.performer or "",
            isVoice=str(media.is_voice).lower(),
            isAnimation=str(media.is_animation).lower(),
        )
