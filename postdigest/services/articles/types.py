from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from postdigest.db.models import ArticleOrigin
from postdigest.services.feed.types import MediaRef


@dataclass(frozen=True)
class NewArticle:
    title: str
    summary: str
    body: str
    url: str
    source: str
    created_by: ArticleOrigin
    published_at: datetime
    media: tuple[MediaRef, ...] = field(default_factory=tuple)

    def as_row(self) -> dict:
        return {
            "title": self.title,
            "summary": self.summary,
            "body": self.body,
            "url": self.url,
            "source": self.source,
            "created_by": self.created_by,
            "published_at": self.published_at,
            "media": [item.as_payload() for item in self.media],
        }


class ArticleStore(Protocol):
    async def existing_urls(self, urls: Iterable[str]) -> set[str]: ...

    async def insert_if_absent(self, article: NewArticle) -> bool: ...
