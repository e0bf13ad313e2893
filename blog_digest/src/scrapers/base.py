import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta
from typing import Any, ClassVar, TypeVar

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from ..constants import DetectedPattern
from ..errors import FetchError
from ..extractors import load_json_payload, make_soup
from ..http_client import HttpClient, RobotsPolicy
from ..logger import logger
from ..models import FetchOptions, FetchResult, PaginationState, Post, Source
from ..utils import chunked, utc_now

T = TypeVar("T")
R = TypeVar("R")


class ScraperSettings(BaseModel):
    snapshot_ttl_minutes: float = Field(default=60.0, gt=0)
    detail_batch_size: int = Field(default=5, ge=1)
    politeness_delay_seconds: float = Field(default=0.3, ge=0.0)
    max_feed_items: int = Field(default=70, ge=1)


class SnapshotStore:
    """Whole-dataset snapshots kept for a fixed TTL so that paging only slices."""

    def __init__(self, ttl_minutes: float = 60.0):
        self.ttl = timedelta(minutes=ttl_minutes)
        self._entries: dict[str, tuple[datetime, Any]] = {}

    def get(self, key: str) -> Any | None:
        if (entry := self._entries.get(key)) is None:
            return None
        stored_at, value = entry
        if utc_now() - stored_at > self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (utc_now(), value)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


class ScraperState:
    """Cross-call memory shared by adapters, owned by one aggregator."""

    def __init__(
        self, snapshot_ttl_minutes: float = 60.0, robots: RobotsPolicy | None = None
    ):
        self.snapshots = SnapshotStore(snapshot_ttl_minutes)
        self.robots = robots or RobotsPolicy()
        self._pagination: dict[str, PaginationState] = {}

    def pagination(self, source_id: str) -> PaginationState:
        return self._pagination.setdefault(source_id, PaginationState())

    def clear(self) -> None:
        self.snapshots.clear()
        self.robots.clear()
        self._pagination.clear()


class PartialResults(BaseModel):
    values: list[Any] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


class BaseScraper(ABC):
    detected_pattern: ClassVar[DetectedPattern | None] = None
    requires_rss: ClassVar[bool] = False

    def __init__(
        self,
        source: Source,
        client: HttpClient,
        state: ScraperState,
        settings: ScraperSettings | None = None,
    ):
        self.source = source
        self.client = client
        self.state = state
        self.settings = settings or ScraperSettings()

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def fetch(self, options: FetchOptions) -> FetchResult:
        ...

    def _log_page(self, page: int, url: str) -> None:
        logger.info("[%s] Fetching page %d: '%s'", self.source.id, page, url)

    async def _fetch_soup(self, url: str) -> BeautifulSoup:
        return make_soup(await self.client.fetch_text(url))

    async def _fetch_json(self, url: str) -> Any:
        return load_json_payload(await self.client.fetch_text(url), f"JSON from '{url}'")

    async def _fetch_in_batches(
        self,
        items: Sequence[T],
        fetch_one: Callable[[T], Awaitable[R | None]],
        batch_size: int | None = None,
    ) -> list[R]:
        """Bounded-concurrency detail fetches; one failed item never fails the batch."""
        results: list[R] = []
        batches = chunked(items, batch_size or self.settings.detail_batch_size)
        for index, batch in enumerate(batches):
            if index:
                await asyncio.sleep(self.settings.politeness_delay_seconds)
            outcomes = await asyncio.gather(
                *(fetch_one(item) for item in batch), return_exceptions=True
            )
            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning(
                        "[%s] Skipping '%s': %s", self.source.id, item, outcome
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome
                elif outcome is not None:
                    results.append(outcome)
        return results

    async def _gather_partial(
        self, labelled: dict[str, Awaitable[Any]]
    ) -> PartialResults:
        """Run sub-fetches concurrently; raise only when every one of them failed."""
        outcomes = await asyncio.gather(*labelled.values(), return_exceptions=True)
        partial = PartialResults()
        for label, outcome in zip(labelled, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("[%s] %s failed: %s", self.source.id, label, outcome)
                partial.failures.append(f"{label}: {outcome}")
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                partial.values.append(outcome)
        if labelled and not partial.values:
            logger.error("[%s] Every sub-fetch failed", self.source.id)
            raise FetchError(
                self.source.homepage, "; ".join(partial.failures), self.source.id
            )
        return partial

    async def _snapshot(
        self, key: str, loader: Callable[[], Awaitable[PartialResults]]
    ) -> tuple[list[Any], bool]:
        """Cached item list for ``key``; incomplete loads are served but not kept."""
        if (cached := self.state.snapshots.get(key)) is not None:
            logger.info("[%s] Using cached snapshot '%s'", self.source.id, key)
            return cached, True
        partial = await loader()
        items = [item for value in partial.values for item in value]
        if partial.complete:
            self.state.snapshots.set(key, items)
        return items, partial.complete

    def _slice(
        self, posts: list[Post], options: FetchOptions, complete: bool = True, **extra
    ) -> FetchResult:
        start, end = options.slice_bounds
        has_more = complete and end < len(posts)
        return FetchResult(
            posts=posts[start:end],
            has_more=has_more,
            next_page_url=f"?page={options.page + 1}" if has_more else None,
            detected_pattern=self.detected_pattern,
            **extra,
        )
