import asyncio

from ..constants import AppConstants
from ..errors import ParseError, RobotsDisallowedError
from ..extractors import ExtractionStrategy, extract_listing_posts, extract_page_details
from ..feed_parser import parse_feed
from ..logger import logger
from ..models import FetchOptions, FetchResult, Post
from ..pagination import (
    construct_page_url,
    detect_pagination_pattern,
    find_pagination_links,
)
from .base import BaseScraper

GENERIC_PAGE_HORIZON = 10


class RssScraper(BaseScraper):
    """Whatever the feed currently exposes; feeds carry no pagination."""

    async def fetch(self, options: FetchOptions) -> FetchResult:
        self._log_page(options.page, self.source.rss)
        xml = await self.client.fetch_text(self.source.rss)
        try:
            posts = parse_feed(
                xml,
                self.source.id,
                max_items=min(options.max_posts, self.settings.max_feed_items),
            )
        except ParseError as e:
            logger.warning("[%s] %s", self.source.id, e)
            posts = []
        return FetchResult(posts=posts, has_more=False)


class GenericHtmlScraper(BaseScraper):
    async def fetch(self, options: FetchOptions) -> FetchResult:
        blog_list_url = self.source.blog_list_url
        if not await self.state.robots.is_allowed(self.client, blog_list_url):
            raise RobotsDisallowedError(blog_list_url)

        pagination = self.state.pagination(self.source.id)
        pattern_url = options.detected_pattern or pagination.current_pattern_url
        url = (
            blog_list_url
            if options.page == 1
            else construct_page_url(blog_list_url, options.page, pattern_url)
        )
        self._log_page(options.page, url)
        html = await self.client.fetch_text(url)

        if options.page == 1:
            pattern_url = detect_pagination_pattern(html, url)
            pagination.current_pattern_url = pattern_url
            pagination.seen_urls.clear()
            if pattern_url:
                logger.info(
                    "[%s] Detected pagination pattern: '%s'", self.source.id, pattern_url
                )
        pagination.pages_fetched = max(pagination.pages_fetched, options.page)

        listing = extract_listing_posts(html, url, self.source.id)
        logger.info(
            "[%s] Found %d posts via %s on page %d",
            self.source.id,
            len(listing.posts),
            listing.strategy.value,
            options.page,
        )
        unseen = [p for p in listing.posts if p.url not in pagination.seen_urls]
        if listing.posts and not unseen:
            logger.info(
                "[%s] Page %d repeats earlier posts, stopping", self.source.id, options.page
            )
        pagination.seen_urls.update(p.url for p in unseen)
        posts = listing.posts[: options.max_posts]
        if listing.strategy != ExtractionStrategy.JSON_LD:
            posts = await self._fetch_details_sequentially(posts)

        pagination_links = find_pagination_links(html, url)
        next_page_url = pagination_links[0] if pagination_links else None
        has_more = (
            bool(posts)
            and bool(unseen)
            and len(posts) < options.max_posts
            and options.page < AppConstants.MAX_LISTING_PAGES
            and (next_page_url is not None or options.page < GENERIC_PAGE_HORIZON)
        )
        logger.info(
            "[%s] Page %d complete: %d posts, has_more=%s",
            self.source.id,
            options.page,
            len(posts),
            has_more,
        )
        return FetchResult(
            posts=posts,
            has_more=has_more,
            next_page_url=next_page_url,
            detected_pattern=pattern_url,
        )

    async def _fetch_details_sequentially(self, links: list[Post]) -> list[Post]:
        posts = []
        for i, link in enumerate(links):
            try:
                posts.append(await self._fetch_detail(link))
            except Exception as e:
                logger.warning(
                    "[%s] Error fetching post %d ('%s'): %s",
                    self.source.id,
                    i + 1,
                    link.url,
                    e,
                )
                continue
            await asyncio.sleep(self.settings.politeness_delay_seconds)
        return posts

    async def _fetch_detail(self, link: Post) -> Post:
        html = await self.client.fetch_text(link.url)
        details = extract_page_details(html, link.url, fallback_title=link.title)
        return link.with_updates(
            title=details.title or link.title,
            raw_html=details.text or None,
            image_url=details.image_url,
            published_at=details.published_at,
            author=details.author,
            summary=details.description,
        )
