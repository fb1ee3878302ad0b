from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from postdigest.services.articles.types import NewArticle


class ApiMeta(BaseModel):
    request_id: str | None = None

    model_config = ConfigDict(extra="forbid")


class MediaData(BaseModel):
    media_type: str
    url: str

    model_config = ConfigDict(extra="forbid")


class ArticleData(BaseModel):
    title: str
    summary: str
    body: str
    url: str
    source: str
    created_by: str
    published_at: datetime
    media: list[MediaData]

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_article(cls, article: NewArticle) -> ArticleData:
        return cls(
            title=article.title,
            summary=article.summary,
            body=article.body,
            url=article.url,
            source=article.source,
            created_by=article.created_by.value,
            published_at=article.published_at,
            media=[MediaData(**item.as_payload()) for item in article.media],
        )


class ScrapeResultData(BaseModel):
    message: str
    identity: str
    scraped_count: int
    new_count: int
    saved_count: int
    skipped_count: int
    articles: list[ArticleData]

    model_config = ConfigDict(extra="forbid")


class ScrapeResultEnvelope(BaseModel):
    data: ScrapeResultData
    meta: ApiMeta

    model_config = ConfigDict(extra="forbid")


class RunTriggerData(BaseModel):
    status: str
    identities: list[str]

    model_config = ConfigDict(extra="forbid")


class RunTriggerEnvelope(BaseModel):
    data: RunTriggerData
    meta: ApiMeta

    model_config = ConfigDict(extra="forbid")
