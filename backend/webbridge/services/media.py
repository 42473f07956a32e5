"""
Media descriptor extraction

Builds MediaDescriptor objects from python-telegram-bot Message objects, and
degenerate descriptors from plain links when a message carries no
attachment.
"""
import datetime as dt
import mimetypes
from typing import Optional
from urllib.parse import urlparse

from telegram import Message, MessageEntity

from webbridge.schemas.media import MediaDescriptor

DEFAULT_MIME = "application/octet-stream"
EXTERNAL_FILE_NAME = "external_media"

# Extensions mimetypes does not know everywhere
_EXTRA_TYPES = {
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
    ".m3u8": "application/vnd.apple.mpegurl",
    ".flac": "audio/flac",
    ".opus": "audio/ogg",
    ".oga": "audio/ogg",
}


def _seconds(value) -> Optional[int]:
    # Newer python-telegram-bot releases report durations as timedelta
    if value is None:
        return None
    if isinstance(value, dt.timedelta):
        return int(value.total_seconds())
    return int(value)


def detect_mime_from_url(url: str) -> str:
    """Guess a MIME type from the URL path's extension."""
    path = urlparse(url).path.lower()
    for ext, mime in _EXTRA_TYPES.items():
        if path.endswith(ext):
            return mime
    guessed, _ = mimetypes.guess_type(path)
    return guessed or DEFAULT_MIME


def descriptor_from_message(msg: Message) -> Optional[MediaDescriptor]:
    """
    Extract the descriptor of the media attached to msg.

    Returns:
    - MediaDescriptor, or None when the message has no supported attachment

    Note:
    - Animations are checked before documents: Telegram sets both for GIFs
    - file_unique_id is used as file_id; it is the same for every bot and
      never changes, which keeps capability tokens stable
    """
    if msg.voice:
        v = msg.voice
        return MediaDescriptor(
            file_name="voice.ogg",
            mime_type=v.mime_type or "audio/ogg",
            file_size=v.file_size or 0,
            file_id=v.file_unique_id,
            duration=_seconds(v.duration),
            is_voice=True,
        )
    if msg.audio:
        a = msg.audio
        return MediaDescriptor(
            file_name=a.file_name or "audio.mp3",
            mime_type=a.mime_type or "audio/mpeg",
            file_size=a.file_size or 0,
            file_id=a.file_unique_id,
            duration=_seconds(a.duration),
            title=a.title,
            performer=a.performer,
        )
    if msg.animation:
        an = msg.animation
        return MediaDescriptor(
            file_name=an.file_name or "animation.mp4",
            mime_type=an.mime_type or "video/mp4",
            file_size=an.file_size or 0,
            file_id=an.file_unique_id,
            duration=_seconds(an.duration),
            width=an.width,
            height=an.height,
            is_animation=True,
        )
    if msg.video:
        vd = msg.video
        return MediaDescriptor(
            file_name=vd.file_name or "video.mp4",
            mime_type=vd.mime_type or "video/mp4",
            file_size=vd.file_size or 0,
            file_id=vd.file_unique_id,
            duration=_seconds(vd.duration),
            width=vd.width,
            height=vd.height,
        )
    if msg.video_note:
        vn = msg.video_note
        return MediaDescriptor(
            file_name="video_note.mp4",
            mime_type="video/mp4",
            file_size=vn.file_size or 0,
            file_id=vn.file_unique_id,
            duration=_seconds(vn.duration),
            width=vn.length,
            height=vn.length,
        )
    if msg.document:
        d = msg.document
        return MediaDescriptor(
            file_name=d.file_name or "document",
            mime_type=d.mime_type or DEFAULT_MIME,
            file_size=d.file_size or 0,
            file_id=d.file_unique_id,
        )
    if msg.photo:
        largest = max(msg.photo, key=lambda p: (p.width * p.height, p.file_size or 0))
        return MediaDescriptor(
            file_name="photo.jpg",
            mime_type="image/jpeg",
            file_size=largest.file_size or 0,
            file_id=largest.file_unique_id,
            width=largest.width,
            height=largest.height,
        )
    return None


def extract_link(msg: Message) -> Optional[str]:
    """
    First http(s) link embedded in the message text or caption, either as a
    bare URL or as a text link.
    """
    kinds = [MessageEntity.URL, MessageEntity.TEXT_LINK]
    found = {**msg.parse_entities(kinds), **msg.parse_caption_entities(kinds)}
    for entity in sorted(found, key=lambda e: e.offset):
        url = entity.url if entity.type == MessageEntity.TEXT_LINK else found[entity]
        if not url:
            continue
        if "://" not in url:
            url = f"https://{url}"
        if urlparse(url).scheme in ("http", "https"):
            return url
    return None


def descriptor_from_link(url: str) -> MediaDescriptor:
    """Degenerate descriptor for external media: zero size, MIME from the path."""
    return MediaDescriptor(
        file_name=EXTERNAL_FILE_NAME,
        mime_type=detect_mime_from_url(url),
        file_size=0,
    )


def looks_like_file_hosting(url: str) -> bool:
    """Links to upload/file-hosting pages usually are HTML, not playable media."""
    lowered = url.lower()
    return "filehosting" in lowered or "upload" in lowered
