"""Adapters for listings the server pages itself, usually WordPress ``/page/N/``."""

import re
from abc import abstractmethod
from typing import ClassVar
from urllib.parse import urljoin

from bs4 import Tag

from ..constants import AppConstants, DetectedPattern, PostCategory
from ..extractors import (
    attr_text,
    element_text,
    extract_published_date,
    make_soup,
    meta_content,
)
from ..logger import logger
from ..models import FetchOptions, FetchResult, Post, sort_posts_by_date
from ..utils import parse_published_date, truncate
from .base import BaseScraper

SKIPPED_PATH_MARKERS: tuple[str, ...] = ("/page/", "/category/", "/tag/", "/author/")


def _is_listing_link(href: str) -> bool:
    return not any(marker in href for marker in SKIPPED_PATH_MARKERS)


def _card_date(card: Tag, selector: str):
    element = card.select_one(selector)
    return parse_published_date(
        attr_text(element, "datetime", "content") or element_text(element)
    )


class PagedListingScraper(BaseScraper):
    detected_pattern = DetectedPattern.PAGE_PATH

    base_url: ClassVar[str] = ""
    requires_full_page: ClassVar[bool] = False

    def page_url(self, page: int) -> str:
        return self.base_url if page == 1 else f"{self.base_url}page/{page}/"

    @abstractmethod
    def parse_listing(self, html: str) -> list[Post]:
        ...

    def has_more(self, posts: list[Post], options: FetchOptions) -> bool:
        if not posts or options.page >= AppConstants.MAX_LISTING_PAGES:
            return False
        return not self.requires_full_page or len(posts) >= options.posts_per_page

    async def fetch(self, options: FetchOptions) -> FetchResult:
        url = self.page_url(options.page)
        self._log_page(options.page, url)
        posts = self.parse_listing(await self.client.fetch_text(url))
        posts = posts[: options.posts_per_page]
        has_more = self.has_more(posts, options)
        logger.info(
            "[%s] Page %d: %d posts, has_more=%s",
            self.source.id,
            options.page,
            len(posts),
            has_more,
        )
        return FetchResult(
            posts=posts,
            has_more=has_more,
            next_page_url=self.page_url(options.page + 1) if has_more else None,
            detected_pattern=self.detected_pattern,
        )


class AwsArchitectureScraper(PagedListingScraper):
    base_url = AppConstants.External.AWS_ARCHITECTURE.value
    requires_full_page = True

    def parse_listing(self, html: str) -> list[Post]:
        soup = make_soup(html)
        posts = []
        for article in soup.select(
            'article.blog-post, .blog-post-item, article[class*="post"]'
        ):
            link = article.select_one(
                "h2 a, .blog-post-title a, h3 a"
            ) or article.select_one('a[href*="/blogs/architecture/"]')
            href = attr_text(link, "href")
            title = element_text(link)
            if not href or len(title) < AppConstants.MIN_TITLE_LENGTH:
                continue
            if not _is_listing_link(href) or href.rstrip("/") == self.base_url.rstrip("/"):
                continue
            image = article.select_one(
                'img[src*="cloudfront"], img.featured-image, img[class*="post-image"], img'
            )
            image_url = attr_text(image, "src", "data-src")
            posts.append(
                Post.create(
                    self.source.id,
                    href,
                    title,
                    base_url=self.base_url,
                    published_at=_card_date(
                        article, 'time, [class*="date"], [class*="Date"]'
                    ),
                    image_url=image_url if "cloudfront" in image_url else None,
                )
            )
        return posts


class CloudflareScraper(PagedListingScraper):
    base_url = AppConstants.External.CLOUDFLARE.value
    detected_pattern = DetectedPattern.HTML_LOCALIZED_CRAWL

    LOCALE_SEGMENT: ClassVar[re.Pattern] = re.compile(r"/[a-z]{2}-[a-z]{2}/")
    SLUG_PATH: ClassVar[re.Pattern] = re.compile(r"^/[a-z0-9-]+/?$")

    def _title_link(self, article: Tag) -> Tag | None:
        if link := article.select_one("h2 a, h3 a"):
            return link
        return next(
            (
                a
                for a in article.select('a[href^="/"]')
                if self.SLUG_PATH.match(a.get("href", "")) and _is_listing_link(a["href"])
            ),
            None,
        )

    def parse_listing(self, html: str) -> list[Post]:
        soup = make_soup(html)
        posts = []
        seen_urls: set[str] = set()
        for article in soup.select("article"):
            link = self._title_link(article)
            href = attr_text(link, "href")
            title = element_text(link) or element_text(article.select_one("h2, h3"))
            if not href or len(title) < AppConstants.MIN_TITLE_LENGTH:
                continue
            url = urljoin(self.base_url, href)
            if url in seen_urls or not _is_listing_link(url):
                continue
            if self.LOCALE_SEGMENT.search(url):
                continue
            seen_urls.add(url)
            image = article.select_one(
                'img[src*="cloudflare"], img[src*="cf-"], picture img, img'
            )
            posts.append(
                Post.create(
                    self.source.id,
                    url,
                    title,
                    published_at=_card_date(article, "time"),
                    image_url=attr_text(image, "src", "data-src") or None,
                )
            )
        return posts


class MicrosoftResearchScraper(PagedListingScraper):
    base_url = AppConstants.External.MICROSOFT_RESEARCH.value
    detected_pattern = DetectedPattern.HTML_SCRAPE

    def parse_listing(self, html: str) -> list[Post]:
        soup = make_soup(html)
        posts = []
        for card in soup.select(".card.material-card"):
            title = element_text(card.select_one("h3, h2, .c-heading"))
            href = attr_text(card.find("a"), "href")
            if not title or not href:
                continue
            image_url = attr_text(card.find("img"), "src", "data-src")
            time_element = card.find("time")
            date_str = (
                attr_text(time_element, "datetime")
                or element_text(time_element)
                or element_text(card.select_one(".date"))
            )
            posts.append(
                Post.create(
                    self.source.id,
                    href,
                    title,
                    base_url=self.base_url,
                    image_url=urljoin(self.base_url, image_url) if image_url else None,
                    published_at=parse_published_date(date_str),
                    author=element_text(card.select_one(".author")) or None,
                )
            )
        return posts


class MetaEngineeringScraper(PagedListingScraper):
    """Engineering blog page N merged with research publications page N."""

    base_url = AppConstants.External.META_ENGINEERING.value
    detected_pattern = DetectedPattern.CUSTOM_META

    PUBLICATIONS_URL: ClassVar[str] = (
        f"{AppConstants.External.META_RESEARCH.value}/publications/"
    )
    PUBLICATION_IMAGE_URL: ClassVar[str] = (
        f"{AppConstants.External.META_RESEARCH.value}/img/meta_research_og_image.jpeg"
    )
    PUBLICATION_SKIPPED_PATHS: ClassVar[tuple[str, ...]] = (
        "/page/",
        "/research-area/",
        "/people/",
        "/blog/",
        "/tag/",
    )
    PUBLICATION_LABELS: ClassVar[set[str]] = {"Paper", "Load More"}
    MIN_PUBLICATION_TITLE_LENGTH: ClassVar[int] = 10
    MIN_PUBLICATION_URL_PARTS: ClassVar[int] = 5
    CATEGORIES: ClassVar[list[str]] = [
        PostCategory.BLOG.value,
        PostCategory.PUBLICATION.value,
    ]

    def publications_page_url(self, page: int) -> str:
        if page == 1:
            return self.PUBLICATIONS_URL
        return f"{self.PUBLICATIONS_URL}page/{page}/?s"

    def parse_listing(self, html: str) -> list[Post]:
        soup = make_soup(html)
        posts = []
        seen_urls: set[str] = set()
        for article in soup.select("article, .post, .entry"):
            link = article.select_one(
                "h2 a, h3 a, .entry-title a, .post-title a"
            ) or article.select_one('a[href*="engineering.fb.com"]')
            href = attr_text(link, "href")
            title = element_text(link) or element_text(
                article.select_one("h2, h3, .entry-title, .post-title")
            )
            if not href or len(title) < AppConstants.MIN_TITLE_LENGTH:
                continue
            if href in seen_urls or not _is_listing_link(href):
                continue
            seen_urls.add(href)
            image = article.select_one("img[src], .featured-image img, .post-thumbnail img")
            posts.append(
                Post.create(
                    self.source.id,
                    href,
                    title,
                    base_url=self.base_url,
                    category=PostCategory.BLOG.value,
                    published_at=_card_date(
                        article, 'time, .entry-date, .post-date, [class*="date"]'
                    ),
                    image_url=attr_text(image, "src", "data-src") or None,
                )
            )
        return posts

    def parse_publications(self, html: str) -> list[Post]:
        soup = make_soup(html)
        posts: list[Post] = []
        for link in soup.select('a[href*="/publications/"]'):
            url = urljoin(AppConstants.External.META_RESEARCH.value, attr_text(link, "href"))
            if url.rstrip("/") == self.PUBLICATIONS_URL.rstrip("/"):
                continue
            if any(marker in url for marker in self.PUBLICATION_SKIPPED_PATHS):
                continue
            if len(url.split("/")) < self.MIN_PUBLICATION_URL_PARTS:
                continue
            title = element_text(link)
            if (
                len(title) < self.MIN_PUBLICATION_TITLE_LENGTH
                or title in self.PUBLICATION_LABELS
            ):
                continue
            if any(post.url == url for post in posts):
                continue
            summary = element_text(link.parent).replace(title, "", 1).strip()
            summary = summary.removeprefix("Paper").strip()
            posts.append(
                Post.create(
                    self.source.id,
                    url,
                    title,
                    category=PostCategory.PUBLICATION.value,
                    summary=truncate(summary, AppConstants.MAX_SUMMARY_LENGTH),
                    image_url=self.PUBLICATION_IMAGE_URL,
                )
            )
        return posts

    async def _fetch_blog(self, page: int) -> list[Post]:
        url = self.page_url(page)
        self._log_page(page, url)
        return self.parse_listing(await self.client.fetch_text(url))

    async def _fetch_publications(self, page: int) -> list[Post]:
        url = self.publications_page_url(page)
        self._log_page(page, url)
        return self.parse_publications(await self.client.fetch_text(url))

    async def fetch(self, options: FetchOptions) -> FetchResult:
        partial = await self._gather_partial(
            {
                "engineering blog": self._fetch_blog(options.page),
                "publications": self._fetch_publications(options.page),
            }
        )
        posts = sort_posts_by_date([post for group in partial.values for post in group])
        if category := options.category_filter:
            posts = [post for post in posts if post.category == category]
        has_more = partial.complete and self.has_more(posts, options)
        return FetchResult(
            posts=posts,
            has_more=has_more,
            next_page_url=self.page_url(options.page + 1) if has_more else None,
            detected_pattern=self.detected_pattern,
            categories=self.CATEGORIES,
        )


class MetaResearchScraper(PagedListingScraper):
    """ai.meta.com: listing pages only carry links, metadata comes from each post."""

    base_url = f"{AppConstants.External.META_AI.value}/blog/"
    detected_pattern = DetectedPattern.HTML_LIST_CRAWL

    MIN_HREF_LENGTH: ClassVar[int] = 25
    TITLE_SUFFIX: ClassVar[str] = " | Meta AI"
    AUTHOR: ClassVar[str] = "Meta AI"

    def parse_listing(self, html: str) -> list[Post]:
        soup = make_soup(html)
        urls: list[str] = []
        for link in soup.find_all("a", href=True):
            href = link["href"]
            if "/blog/" not in href or len(href) <= self.MIN_HREF_LENGTH:
                continue
            url = urljoin(AppConstants.External.META_AI.value, href)
            if url.rstrip("/") != self.base_url.rstrip("/") and url not in urls:
                urls.append(url)
        return [
            Post.create(self.source.id, url, url.rstrip("/").rsplit("/", 1)[-1])
            for url in urls
        ]

    def parse_post(self, html: str, post: Post) -> Post | None:
        soup = make_soup(html)
        title = meta_content(soup, 'meta[property="og:title"]') or element_text(
            soup.title
        ).replace(self.TITLE_SUFFIX, "")
        if not title.strip():
            return None
        time_element = soup.find("time")
        return post.with_updates(
            title=title,
            image_url=meta_content(
                soup, 'meta[property="og:image"]', 'meta[name="twitter:image"]'
            ),
            published_at=parse_published_date(
                meta_content(soup, 'meta[property="article:published_time"]')
                or attr_text(time_element, "datetime")
                or element_text(time_element)
            )
            or extract_published_date(soup),
            author=self.AUTHOR,
        )

    async def _fetch_post(self, post: Post) -> Post | None:
        return self.parse_post(await self.client.fetch_text(post.url), post)

    async def fetch(self, options: FetchOptions) -> FetchResult:
        url = self.page_url(options.page)
        self._log_page(options.page, url)
        links = self.parse_listing(await self.client.fetch_text(url))
        logger.info("[%s] Found %d post links", self.source.id, len(links))
        posts = sort_posts_by_date(await self._fetch_in_batches(links, self._fetch_post))
        has_more = self.has_more(links, options)
        return FetchResult(
            posts=posts,
            has_more=has_more,
            next_page_url=self.page_url(options.page + 1) if has_more else None,
            detected_pattern=self.detected_pattern,
        )
