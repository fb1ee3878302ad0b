from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class MediaKind(StrEnum):
    IMAGE = "image"
    VIDEO = "video_post"
    EMBEDDED_VIDEO = "embedded_video"


@dataclass(frozen=True)
class MediaRef:
    kind: MediaKind
    locator: str

    def as_payload(self) -> dict[str, str]:
        return {"media_type": self.kind.value, "url": self.locator}


@dataclass(frozen=True)
class RawFeedItem:
    """One rendered feed item as read from the page, before validation."""

    permalink: str | None
    timestamp: str | None
    text: str | None
    has_video_player: bool = False
    quoted_permalink: str | None = None
    image_urls: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, value: dict) -> RawFeedItem:
        return cls(
            permalink=value.get("permalink") or None,
            timestamp=value.get("timestamp") or None,
            text=value.get("text"),
            has_video_player=bool(value.get("has_video_player")),
            quoted_permalink=value.get("quoted_permalink") or None,
            image_urls=tuple(url for url in value.get("image_urls") or () if url),
        )


@dataclass(frozen=True)
class ContentRecord:
    identity: str
    url: str
    text: str
    published_at: datetime
    media: tuple[MediaRef, ...] = field(default_factory=tuple)
