from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from postdigest.db.models import Article
from postdigest.db.session import get_session_factory
from postdigest.logging_utils import structured_log
from postdigest.services.articles.types import NewArticle

logger = logging.getLogger(__name__)


async def find_existing_urls(
    db_session: AsyncSession,
    *,
    urls: Iterable[str],
) -> set[str]:
    candidate_urls = [url for url in dict.fromkeys(urls) if url]
    if not candidate_urls:
        return set()
    result = await db_session.execute(select(Article.url).where(Article.url.in_(candidate_urls)))
    return {str(url) for url in result.scalars().all()}


async def insert_article_if_absent(
    db_session: AsyncSession,
    *,
    article: NewArticle,
) -> bool:
    statement = (
        insert(Article)
        .values(**article.as_row())
        .on_conflict_do_nothing(index_elements=[Article.url])
        .returning(Article.id)
    )
    try:
        result = await db_session.execute(statement)
        inserted_id = result.scalar_one_or_none()
        await db_session.commit()
    except IntegrityError:
        # A concurrent writer stored the same URL first.
        await db_session.rollback()
        structured_log(logger, "info", "articles.insert_conflict", url=article.url)
        return False
    except SQLAlchemyError:
        await db_session.rollback()
        raise
    return inserted_id is not None


class SqlArticleStore:
    def __init__(self, db_session: AsyncSession) -> None:
        self._db_session = db_session

    async def existing_urls(self, urls: Iterable[str]) -> set[str]:
        known_urls = await find_existing_urls(self._db_session, urls=urls)
        # No transaction stays open while candidates are summarized.
        await self._db_session.commit()
        return known_urls

    async def insert_if_absent(self, article: NewArticle) -> bool:
        return await insert_article_if_absent(self._db_session, article=article)


@asynccontextmanager
async def open_article_store() -> AsyncIterator[SqlArticleStore]:
    session_factory = get_session_factory()
    async with session_factory() as db_session:
        yield SqlArticleStore(db_session)
