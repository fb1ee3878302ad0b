from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from postdigest.services.articles.types import NewArticle


class RunAlreadyInProgressError(RuntimeError):
    """A run was requested while another one holds the run guard."""


@dataclass(frozen=True)
class IdentityIngestResult:
    identity: str
    scraped_count: int = 0
    new_count: int = 0
    saved_count: int = 0
    skipped_count: int = 0
    saved_articles: tuple[NewArticle, ...] = ()
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class RunSummary:
    run_id: str
    started_at: datetime
    finished_at: datetime
    identities: tuple[IdentityIngestResult, ...] = field(default_factory=tuple)

    @property
    def saved_count(self) -> int:
        return sum(result.saved_count for result in self.identities)

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.identities if result.failed)
