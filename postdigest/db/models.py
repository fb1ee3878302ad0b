from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Enum, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from postdigest.db.base import Base, TimestampMixin


class ArticleOrigin(StrEnum):
    TWITTER = "twitter"
    RSS = "rss"
    MANUAL = "manual"


ARTICLE_ORIGIN_DB_ENUM = Enum(
    ArticleOrigin,
    name="article_origin",
    values_callable=lambda members: [member.value for member in members],
)


class Article(TimestampMixin, Base):
    __tablename__ = "articles"
    __table_args__ = (
        Index("ix_articles_source", "source"),
        Index("ix_articles_published_at", "published_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text)
    body: Mapped[str | None] = mapped_column(Text)
    url: Mapped[str] = mapped_column(String(2048), nullable=False, unique=True)
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[ArticleOrigin] = mapped_column(ARTICLE_ORIGIN_DB_ENUM, nullable=False)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    media: Mapped[list[dict]] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'[]'::jsonb"),
    )