import asyncio
from collections import defaultdict

from tqdm.asyncio import tqdm

from .cache import PostCache, make_cache_key
from .errors import BlogDigestError, FetchError, FetchTimeoutError, UnknownSourceError
from .http_client import HttpClient
from .logger import logger
from .models import FetchOptions, FetchResult, Post, PostsPage, Source
from .registry import ScraperRegistry
from .scrapers import ScraperSettings, ScraperState
from .utils import measure_execution_time


class PostAggregator:
    """Fetches pages through the registry and merges them into the post cache.

    Page 1 is served from the cache while it is fresh and non-empty; any other
    page is always fetched. Fetched posts are merged by URL into the
    accumulated set for the cache key, and a failed fetch falls back to that
    set when it has anything in it.
    """

    def __init__(
        self,
        sources: list[Source],
        cache: PostCache,
        client: HttpClient | None = None,
        registry: ScraperRegistry | None = None,
        settings: ScraperSettings | None = None,
        state: ScraperState | None = None,
        refresh_interval_hours: float = 6.0,
        fetch_timeout_seconds: float | None = None,
        max_posts: int = 70,
        posts_per_page: int = 10,
    ):
        self.sources = {source.id: source for source in sources}
        self.cache = cache
        self.client = client or HttpClient()
        self.registry = registry or ScraperRegistry()
        self.settings = settings or ScraperSettings()
        self.state = state or ScraperState(self.settings.snapshot_ttl_minutes)
        self.refresh_interval_hours = refresh_interval_hours
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.max_posts = max_posts
        self.posts_per_page = posts_per_page
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get_source(self, source_id: str) -> Source:
        if (source := self.sources.get(source_id)) is None:
            raise UnknownSourceError(source_id)
        return source

    def default_options(self, **fields) -> FetchOptions:
        return FetchOptions(
            **{
                "max_posts": self.max_posts,
                "posts_per_page": self.posts_per_page,
                **fields,
            }
        )

    async def _run_scraper(
        self, source: Source, options: FetchOptions, timeout: float | None
    ) -> FetchResult:
        scraper = self.registry.create(source, self.client, self.state, self.settings)
        logger.debug("[%s] Using %s", source.id, scraper.name)
        if timeout is None:
            return await scraper.fetch(options)
        try:
            return await asyncio.wait_for(scraper.fetch(options), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("[%s] Fetch timed out after %.1fs", source.id, timeout)
            raise FetchTimeoutError(source.id, timeout) from None

    async def fetch_posts(
        self,
        source_id: str,
        options: FetchOptions | None = None,
        *,
        refresh_interval_hours: float | None = None,
        force_overwrite: bool = False,
        timeout: float | None = None,
    ) -> PostsPage:
        source = self.get_source(source_id)
        options = options or self.default_options()
        key = make_cache_key(source_id, options.category, options.research_area)
        interval = refresh_interval_hours or self.refresh_interval_hours
        timeout = timeout or self.fetch_timeout_seconds

        cached_posts = self.cache.get(key)
        should_fetch = (
            force_overwrite
            or options.page > 1
            or not cached_posts
            or self.cache.should_refresh(key, interval)
        )
        logger.info(
            "[%s] page=%d, key='%s', cached=%d, should_fetch=%s",
            source_id,
            options.page,
            key,
            len(cached_posts),
            should_fetch,
        )
        if not should_fetch:
            return PostsPage(
                posts=cached_posts,
                has_more=True,
                source_id=source_id,
                page=1,
                cached=True,
            )

        try:
            result = await self._run_scraper(source, options, timeout)
        except FetchError as e:
            e.source_id = e.source_id or source_id
            if not cached_posts:
                raise
            logger.warning(
                "[%s] Falling back to %d cached posts: %s",
                source_id,
                len(cached_posts),
                e,
            )
            return PostsPage(posts=cached_posts, source_id=source_id, page=options.page)

        posts = await self._merge(key, result.posts, options.page, force_overwrite)
        return PostsPage(
            posts=posts,
            has_more=result.has_more,
            next_page_url=result.next_page_url,
            detected_pattern=result.detected_pattern,
            categories=result.categories,
            source_id=source_id,
            page=options.page,
        )

    async def _merge(
        self, key: str, fetched: list[Post], page: int, force_overwrite: bool
    ) -> list[Post]:
        async with self._locks[key]:
            if force_overwrite:
                self.cache.set(key, fetched)
                added = len(fetched)
            elif fetched:
                added = self.cache.append(key, fetched)
            else:
                existing = self.cache.get(key)
                logger.warning(
                    "[%s] Fetched 0 posts, keeping %d cached", key, len(existing)
                )
                return existing if page == 1 else []
            if page == 1 and fetched:
                self.cache.set_last_fetch_time(key)
            logger.info("[%s] Merged %d new posts", key, added)
            return fetched

    @measure_execution_time
    async def fetch_many(
        self, source_ids: list[str] | None = None, concurrency: int = 4, **kwargs
    ) -> dict[str, PostsPage | BlogDigestError]:
        """Page 1 of several sources at once; a failing source never fails the rest."""
        source_ids = source_ids or list(self.sources)
        semaphore = asyncio.Semaphore(concurrency)

        async def fetch_one(source_id: str) -> PostsPage | BlogDigestError:
            async with semaphore:
                try:
                    return await self.fetch_posts(source_id, **kwargs)
                except BlogDigestError as e:
                    logger.error("[%s] %s", source_id, e)
                    return e

        results = await tqdm.gather(
            *(fetch_one(source_id) for source_id in source_ids), desc="Fetching sources"
        )
        return dict(zip(source_ids, results))

    def clear(self) -> None:
        self.cache.clear()
        self.state.clear()
