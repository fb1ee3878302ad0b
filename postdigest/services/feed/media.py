"""Media resolution for rendered feed items.

The primary strategies are tried in order and the first one that matches owns
the item's media. The embedded-link scan runs independently of them and its
result is always placed first.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from postdigest.services.feed.types import MediaKind, MediaRef, RawFeedItem
from postdigest.services.feed.urls import normalize_permanent_url

MediaStrategy = Callable[[RawFeedItem, str], list[MediaRef] | None]

YOUTUBE_LINK_RE = re.compile(
    r"(?:https?://)?(?:www\.|m\.)?"
    r"(?:youtube\.com/(?:watch\?(?:[^\s#]*&)?v=|shorts/|embed/|live/)|youtu\.be/)"
    r"([A-Za-z0-9_-]{11})"
)


def quoted_video_media(item: RawFeedItem, permalink: str) -> list[MediaRef] | None:
    # A reshare with a player: the playable post is the quoted one.
    if not item.has_video_player or not item.quoted_permalink:
        return None
    return [MediaRef(kind=MediaKind.VIDEO, locator=normalize_permanent_url(item.quoted_permalink))]


def direct_video_media(item: RawFeedItem, permalink: str) -> list[MediaRef] | None:
    if not item.has_video_player:
        return None
    return [MediaRef(kind=MediaKind.VIDEO, locator=permalink)]


def image_media(item: RawFeedItem, permalink: str) -> list[MediaRef] | None:
    if not item.image_urls:
        return None
    return [MediaRef(kind=MediaKind.IMAGE, locator=url) for url in item.image_urls]


PRIMARY_MEDIA_STRATEGIES: tuple[MediaStrategy, ...] = (
    quoted_video_media,
    direct_video_media,
    image_media,
)


def embedded_video_media(text: str | None) -> list[MediaRef]:
    match = YOUTUBE_LINK_RE.search(text or "")
    if match is None:
        return []
    return [MediaRef(kind=MediaKind.EMBEDDED_VIDEO, locator=match.group(1))]


def resolve_media(
    item: RawFeedItem,
    permalink: str,
    *,
    strategies: Sequence[MediaStrategy] = PRIMARY_MEDIA_STRATEGIES,
) -> tuple[MediaRef, ...]:
    primary: list[MediaRef] = []
    for strategy in strategies:
        resolved = strategy(item, permalink)
        if resolved is not None:
            primary = resolved
            break
    return tuple(embedded_video_media(item.text) + primary)
