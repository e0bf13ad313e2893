"""Adapters that page through dated archives rather than numbered listings."""

from typing import ClassVar
from urllib.parse import quote, urljoin

from bs4 import Tag

from ..constants import AppConstants, DetectedPattern, PostCategory
from ..extractors import attr_text, element_text, make_soup
from ..logger import logger
from ..models import FetchOptions, FetchResult, Post, sort_posts_by_date
from ..utils import parse_published_date, truncate, unique_by, utc_now
from .base import BaseScraper, PartialResults


class GoogleResearchScraper(BaseScraper):
    """Page N is the blog archive of year (now - N + 1) plus publications page N."""

    detected_pattern = DetectedPattern.CUSTOM_GOOGLE

    BASE_URL: ClassVar[str] = AppConstants.External.GOOGLE_RESEARCH.value
    PUBLICATION_IMAGE_URL: ClassVar[str] = (
        f"{AppConstants.External.GOOGLE_RESEARCH.value}/static/images/social-share.png"
    )
    PUBLICATION_LINK_LABELS: ClassVar[set[str]] = {"View details", "Download PDF"}
    CATEGORIES: ClassVar[list[str]] = [
        PostCategory.BLOG.value,
        PostCategory.PUBLICATION.value,
    ]

    def blog_year(self, page: int) -> int:
        return utc_now().year - (page - 1)

    def blog_url(self, year: int) -> str:
        return f"{self.BASE_URL}/blog/{year}/"

    def publications_url(self, page: int, research_area: str | None = None) -> str:
        url = f"{self.BASE_URL}/pubs/?page={page}"
        if research_area and research_area != AppConstants.ALL_CATEGORY:
            url += f"&area={quote(research_area)}"
        return url

    def parse_blog(self, html: str, year: int) -> list[Post]:
        soup = make_soup(html)
        posts = []
        for card in soup.select(".glue-card, .blog-posts-grid__cards .glue-card"):
            title = element_text(
                card.select_one(
                    '.headline-5, h3, h4, .glue-card__title, span[class*="headline"]'
                )
            )
            href = attr_text(card, "href") or attr_text(card.find("a"), "href")
            if not title or not href:
                continue
            published_at = next(
                (
                    date
                    for el in card.select(".glue-label, time, .glue-card__date")
                    if (date := parse_published_date(element_text(el)))
                ),
                None,
            )
            image_src = attr_text(card.find("img"), "src")
            posts.append(
                Post.create(
                    self.source.id,
                    href,
                    title,
                    base_url=self.BASE_URL,
                    published_at=published_at or parse_published_date(f"{year}-01-01"),
                    image_url=urljoin(self.BASE_URL, image_src) if image_src else None,
                    category=PostCategory.BLOG.value,
                )
            )
        return unique_by(posts, key=lambda p: p.url)

    def parse_publications(self, html: str) -> list[Post]:
        soup = make_soup(html)
        posts: list[Post] = []
        for link in soup.select('a[href*="/pubs/"]'):
            url = urljoin(self.BASE_URL, attr_text(link, "href"))
            title = element_text(link)
            if url.rstrip("/") == f"{self.BASE_URL}/pubs":
                continue
            if title in self.PUBLICATION_LINK_LABELS:
                continue
            if len(title) < AppConstants.MIN_TITLE_LENGTH or any(p.url == url for p in posts):
                continue
            summary = element_text(link.parent).replace(title, "", 1)
            summary = summary.replace("View details", "").strip()
            posts.append(
                Post.create(
                    self.source.id,
                    url,
                    title,
                    summary=truncate(summary, AppConstants.MAX_SUMMARY_LENGTH),
                    category=PostCategory.PUBLICATION.value,
                    image_url=self.PUBLICATION_IMAGE_URL,
                )
            )
        return posts

    async def _fetch_blog(self, page: int) -> tuple[list[Post], bool]:
        year = self.blog_year(page)
        if year < AppConstants.FIRST_BLOG_YEAR:
            return [], False
        url = self.blog_url(year)
        self._log_page(page, url)
        posts = self.parse_blog(await self.client.fetch_text(url), year)
        return posts, year > AppConstants.FIRST_BLOG_YEAR

    async def _fetch_publications(
        self, page: int, research_area: str | None
    ) -> tuple[list[Post], bool]:
        url = self.publications_url(page, research_area)
        self._log_page(page, url)
        posts = self.parse_publications(await self.client.fetch_text(url))
        return posts, bool(posts) and page < AppConstants.MAX_LISTING_PAGES

    async def fetch(self, options: FetchOptions) -> FetchResult:
        category = options.category_filter
        sub_fetches = {}
        if category in (None, PostCategory.BLOG.value):
            sub_fetches["blog archive"] = self._fetch_blog(options.page)
        if category in (None, PostCategory.PUBLICATION.value):
            sub_fetches["publications"] = self._fetch_publications(
                options.page, options.research_area
            )
        partial = await self._gather_partial(sub_fetches)
        posts = sort_posts_by_date([post for posts, _ in partial.values for post in posts])
        has_more = partial.complete and any(more for _, more in partial.values)
        return FetchResult(
            posts=posts,
            has_more=has_more,
            next_page_url=f"?page={options.page + 1}" if has_more else None,
            detected_pattern=self.detected_pattern,
            categories=self.CATEGORIES,
        )


class SpotifyEngineeringScraper(BaseScraper):
    """No working pagination upstream: homepage plus recent yearly archives, merged."""

    detected_pattern = DetectedPattern.ARCHIVE_AGGREGATION

    BASE_URL: ClassVar[str] = AppConstants.External.SPOTIFY_ENGINEERING.value
    ARCHIVE_YEARS: ClassVar[int] = 3
    AUTHOR: ClassVar[str] = "Spotify Engineering"

    def archive_urls(self) -> list[str]:
        current_year = utc_now().year
        return [f"{self.BASE_URL}/"] + [
            f"{self.BASE_URL}/{current_year - offset}/"
            for offset in range(self.ARCHIVE_YEARS)
        ]

    def _image_url(self, card: Tag) -> str | None:
        image = card.find("img")
        src = attr_text(image, "src") or attr_text(image, "srcset").split(" ")[0]
        return urljoin(self.BASE_URL, src) if src else None

    def parse_archive(self, html: str) -> list[Post]:
        soup = make_soup(html)
        posts = []
        for card in soup.select(".sticky-post, .post-card, article"):
            href = attr_text(card.find("a"), "href")
            title = element_text(
                card.select_one("h1, h2, h3, .post-card__title, .sticky-post__title")
            )
            if not href or not title:
                continue
            time_element = card.find("time")
            posts.append(
                Post.create(
                    self.source.id,
                    href,
                    title,
                    base_url=self.BASE_URL,
                    image_url=self._image_url(card),
                    published_at=parse_published_date(
                        attr_text(time_element, "datetime") or element_text(time_element)
                    ),
                    author=self.AUTHOR,
                )
            )
        return posts

    async def _fetch_archive(self, url: str) -> list[Post]:
        return self.parse_archive(await self.client.fetch_text(url))

    async def _load(self) -> PartialResults:
        partial = await self._gather_partial(
            {url: self._fetch_archive(url) for url in self.archive_urls()}
        )
        posts = unique_by(
            (post for posts in partial.values for post in posts), key=lambda p: p.url
        )
        logger.info("[%s] Aggregated %d unique posts", self.source.id, len(posts))
        return PartialResults(values=[sort_posts_by_date(posts)], failures=partial.failures)

    async def fetch(self, options: FetchOptions) -> FetchResult:
        self._log_page(options.page, self.BASE_URL)
        posts, complete = await self._snapshot(self.source.id, self._load)
        return self._slice(posts, options, complete)
