from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence

from postdigest.services.feed.types import ContentRecord

UrlLookup = Callable[[list[str]], Awaitable[Iterable[str]]]


async def filter_new(
    records: Sequence[ContentRecord],
    lookup: UrlLookup,
) -> list[ContentRecord]:
    """Return the records whose permanent URL is not stored yet, in input order.

    All candidate URLs go to ``lookup`` in one call. Nothing is written.
    """
    if not records:
        return []
    candidate_urls = list(dict.fromkeys(record.url for record in records))
    known_urls = set(await lookup(candidate_urls))
    return [record for record in records if record.url not in known_urls]
