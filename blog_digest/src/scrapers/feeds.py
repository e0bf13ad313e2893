"""Adapters built on a source's RSS feed, optionally enriched from HTML pages."""

import re
from typing import ClassVar
from urllib.parse import urljoin

from ..constants import AppConstants, DetectedPattern, PostCategory
from ..errors import FetchError, ParseError
from ..extractors import clean_text, element_text, meta_content
from ..feed_parser import parse_feed
from ..logger import logger
from ..models import FetchOptions, FetchResult, Post, sort_posts_by_date
from ..utils import to_https, unique_by
from .base import BaseScraper, PartialResults


class FeedSnapshotScraper(BaseScraper):
    """Whole feed fetched once per TTL, then paged by slicing."""

    detected_pattern = DetectedPattern.CLIENT_SIDE
    requires_rss = True
    sort_snapshot: ClassVar[bool] = True

    async def _feed_posts(self) -> list[Post]:
        xml = await self.client.fetch_text(self.source.rss)
        return parse_feed(xml, self.source.id, max_items=self.settings.max_feed_items)

    async def _load(self) -> PartialResults:
        try:
            posts = await self._feed_posts()
        except ParseError as e:
            logger.warning("[%s] %s", self.source.id, e)
            return PartialResults(values=[[]], failures=[str(e)])
        return PartialResults(
            values=[sort_posts_by_date(posts) if self.sort_snapshot else posts]
        )

    async def fetch(self, options: FetchOptions) -> FetchResult:
        self._log_page(options.page, self.source.rss)
        posts, complete = await self._snapshot(self.source.id, self._load)
        return self._slice(posts, options, complete)


class AmazonScienceScraper(FeedSnapshotScraper):
    pass


class NvidiaDeveloperScraper(FeedSnapshotScraper):
    """Feed items get their og:image from the article page, one page at a time."""

    detected_pattern = DetectedPattern.RSS_WITH_ENRICHMENT
    sort_snapshot = False

    async def fetch(self, options: FetchOptions) -> FetchResult:
        self._log_page(options.page, self.source.rss)
        posts, complete = await self._snapshot(self.source.id, self._load)
        result = self._slice(posts, options, complete)
        enriched = await self._fetch_in_batches(result.posts, self._with_image)
        result.posts = sort_posts_by_date(enriched)
        return result

    async def _with_image(self, post: Post) -> Post:
        try:
            soup = await self._fetch_soup(post.url)
        except FetchError as e:
            logger.warning(
                "[%s] Failed to fetch image for '%s': %s", self.source.id, post.url, e
            )
            return post
        image_url = meta_content(
            soup, 'meta[property="og:image"]', 'meta[name="twitter:image"]'
        )
        return post.with_updates(
            image_url=to_https(image_url) or post.image_url,
            author=post.author or "NVIDIA",
        )


class DeepMindScraper(BaseScraper):
    detected_pattern = DetectedPattern.CUSTOM_DEEPMIND
    requires_rss = True

    PUBLICATION_PATTERN: ClassVar[re.Pattern] = re.compile(r"/research/publications/(\d+)")
    SCIENCE_SUB_CATEGORIES: ClassVar[tuple[str, ...]] = (
        "Biology",
        "Climate & Sustainability",
        "Mathematics & Computer Science",
        "Physics & Chemistry",
    )
    DEFAULT_SUB_CATEGORY: ClassVar[str] = "General Science"
    DEFAULT_IMAGE_URL: ClassVar[str] = (
        "https://storage.googleapis.com/gdm-deepmind-com-prod-public/icons/"
        "google_deepmind_2x_96dp.png"
    )
    GENERIC_LINK_TEXT: ClassVar[tuple[str, ...]] = ("learn more", "read more")
    LEARN_MORE_SUFFIX: ClassVar[re.Pattern] = re.compile(r"\s*-\s*Learn more$", re.I)
    MAX_POSTS: ClassVar[int] = 100

    @property
    def publications_url(self) -> str:
        return f"{AppConstants.External.DEEPMIND.value}/research/publications/"

    @property
    def science_url(self) -> str:
        return f"{AppConstants.External.DEEPMIND.value}/science/"

    async def fetch(self, options: FetchOptions) -> FetchResult:
        logger.info(
            "[%s] Fetching page %d (category: %s)",
            self.source.id,
            options.page,
            options.category or AppConstants.ALL_CATEGORY,
        )
        posts, complete = await self._snapshot(self.source.id, self._load)
        categories = unique_by((p.category for p in posts if p.category), key=str)
        if category := options.category_filter:
            posts = [
                p for p in posts if category in (p.category, p.sub_category)
            ]
        return self._slice(posts, options, complete, categories=categories)

    async def _load(self) -> PartialResults:
        partial = await self._gather_partial(
            {
                "blog feed": self._fetch_blog(),
                "publications": self._fetch_publications(),
                "science": self._fetch_science(),
            }
        )
        posts = [post for group in partial.values for post in group]
        logger.info("[%s] Collected %d posts", self.source.id, len(posts))
        science = [p for p in posts if p.category == PostCategory.SCIENCE.value]
        others = [p for p in posts if p.category != PostCategory.SCIENCE.value]
        combined = (science + sort_posts_by_date(others))[: self.MAX_POSTS]
        return PartialResults(values=[combined], failures=partial.failures)

    async def _fetch_blog(self) -> list[Post]:
        xml = await self.client.fetch_text(self.source.rss)
        return [
            post.with_updates(category=PostCategory.BLOG.value)
            for post in parse_feed(
                xml, self.source.id, max_items=self.settings.max_feed_items
            )
        ]

    async def _fetch_publications(self) -> list[Post]:
        soup = await self._fetch_soup(self.publications_url)
        publications = []
        seen_ids: set[str] = set()
        for link in soup.select('a[href*="/research/publications/"]'):
            if not (match := self.PUBLICATION_PATTERN.search(link.get("href", ""))):
                continue
            if (publication_id := match.group(1)) in seen_ids:
                continue
            seen_ids.add(publication_id)
            publications.append(
                Post.create(
                    self.source.id,
                    f"{self.publications_url}{publication_id}/",
                    f"Research Publication #{publication_id}",
                    category=PostCategory.PUBLICATION.value,
                    image_url=self.DEFAULT_IMAGE_URL,
                )
            )
        logger.info(
            "[%s] Found %d publications, fetching titles", self.source.id, len(publications)
        )
        return await self._fetch_in_batches(publications, self._with_title)

    async def _with_title(self, publication: Post) -> Post:
        try:
            soup = await self._fetch_soup(publication.url)
        except FetchError as e:
            logger.warning("[%s] No title for '%s': %s", self.source.id, publication.url, e)
            return publication
        for selector in ("h1.section-title__title", "h1.heading-1", "h1"):
            title = element_text(soup.select_one(selector))
            if len(title) > AppConstants.MIN_TITLE_LENGTH:
                return publication.with_updates(title=title)
        return publication

    async def _fetch_science(self) -> list[Post]:
        soup = await self._fetch_soup(self.science_url)
        posts = []
        seen_urls: set[str] = set()
        for index, panel in enumerate(soup.select('div[role="tabpanel"]')):
            sub_category = (
                self.SCIENCE_SUB_CATEGORIES[index]
                if index < len(self.SCIENCE_SUB_CATEGORIES)
                else self.DEFAULT_SUB_CATEGORY
            )
            for link in panel.find_all("a"):
                href = link.get("href")
                if not href or ("/science/" not in href and "/blog/" not in href):
                    continue
                url = urljoin(AppConstants.External.DEEPMIND.value, href)
                if url in seen_urls:
                    continue
                seen_urls.add(url)
                if not (title := self._science_title(link)):
                    continue
                image = link.find("img", src=True)
                posts.append(
                    Post.create(
                        self.source.id,
                        url,
                        title,
                        category=PostCategory.SCIENCE.value,
                        sub_category=sub_category,
                        summary=element_text(link.select_one("p, .description")),
                        image_url=urljoin(AppConstants.External.DEEPMIND.value, image["src"])
                        if image
                        else None,
                    )
                )
        logger.info("[%s] Found %d science posts", self.source.id, len(posts))
        return posts

    def _science_title(self, link) -> str | None:
        title = self.LEARN_MORE_SUFFIX.sub("", link.get("data-event-content-name") or "")
        title = clean_text(title) or element_text(link.select_one("h3, h4, h5, .heading"))
        if not title:
            text = element_text(link)
            if not any(generic in text.lower() for generic in self.GENERIC_LINK_TEXT):
                title = text
        if (
            len(title) < AppConstants.MIN_TITLE_LENGTH
            or title.lower() in self.GENERIC_LINK_TEXT
        ):
            return None
        return title
