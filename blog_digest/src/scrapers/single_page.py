"""Adapters for sources that list everything on one page (or one sitemap).

The upstream listing is loaded once per snapshot TTL and paged by slicing.
Where the listing only carries links, post details are fetched for the
requested slice alone.
"""

import re
from abc import abstractmethod
from typing import ClassVar
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from ..constants import AppConstants, DetectedPattern
from ..extractors import attr_text, element_text, make_soup, meta_content
from ..logger import logger
from ..models import FetchOptions, FetchResult, Post, sort_posts_by_date
from ..utils import parse_published_date, unique_by, utc_now
from .base import BaseScraper, PartialResults

MONTH_DAY_PATTERN = re.compile(
    r"\b(?:\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*"
    r"|(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2}\b)"
    r"(?:,?\s+\d{4})?"
)
YEAR_PATTERN = re.compile(r"\d{4}")


def _text_date(text: str):
    """First month/day token in ``text``; the current year is assumed when absent."""
    if not (match := MONTH_DAY_PATTERN.search(text)):
        return None
    date_str = match.group(0)
    if not YEAR_PATTERN.search(date_str):
        date_str = f"{date_str} {utc_now().year}"
    return parse_published_date(date_str)


def _last_segment(url: str) -> str:
    return next((s for s in reversed(urlparse(url).path.split("/")) if s), "")


class AnthropicScraper(BaseScraper):
    """Research index plus team pages, merged and returned in one go."""

    BASE_URL: ClassVar[str] = AppConstants.External.ANTHROPIC.value
    RESEARCH_PATHS: ClassVar[tuple[str, ...]] = (
        "/research",
        "/research/team/alignment",
        "/research/team/interpretability",
    )
    LIST_ITEM_SELECTOR: ClassVar[str] = ", ".join(
        f'ul[class*="PublicationList"] li {link}'
        for link in (
            'a[class*="listItem"]',
            'a[href*="/research/"]',
            'a[href*="/news/"]',
        )
    )
    SUBJECTS: ClassVar[tuple[str, ...]] = (
        "Alignment",
        "Interpretability",
        "Societal Impacts",
        "Economic Research",
        "Policy",
        "Product",
        "Announcements",
        "Evaluations",
    )
    FULL_DATE_PATTERN: ClassVar[re.Pattern] = re.compile(
        r"[A-Z][a-z]{2,8}\s+\d{1,2},?\s+\d{4}"
    )
    MIN_LINK_TEXT_LENGTH: ClassVar[int] = 10

    @property
    def subject_pattern(self) -> re.Pattern:
        return re.compile("|".join(re.escape(s) for s in self.SUBJECTS))

    def _clean_title(self, text: str) -> str:
        text = self.FULL_DATE_PATTERN.sub("", text)
        return " ".join(self.subject_pattern.sub("", text).split())

    def _list_item_post(self, link: Tag) -> Post | None:
        href = attr_text(link, "href")
        if not href:
            return None
        time_element = link.find("time")
        subject = element_text(
            link.select_one('span[class*="subject"], span[class*="category"]')
        )
        title = element_text(link.select_one('span[class*="title"]'))
        title = title or self._clean_title(element_text(link))
        if len(title) <= AppConstants.MIN_TITLE_LENGTH:
            return None
        return Post.create(
            self.source.id,
            href,
            title,
            base_url=self.BASE_URL,
            published_at=parse_published_date(
                element_text(time_element) or attr_text(time_element, "datetime")
            ),
            sub_category=subject or None,
        )

    def _fallback_post(self, element: Tag) -> Post | None:
        text = element_text(element)
        date_match = self.FULL_DATE_PATTERN.search(text)
        subject_match = self.subject_pattern.search(text)
        if not date_match or not subject_match:
            return None
        host = urlparse(self.BASE_URL).netloc
        for link in element.find_all("a", href=True):
            url = urljoin(self.BASE_URL, link["href"])
            title = element_text(link)
            if urlparse(url).netloc != host or len(title) <= self.MIN_LINK_TEXT_LENGTH:
                continue
            title = self._clean_title(title)
            if len(title) <= AppConstants.MIN_TITLE_LENGTH:
                continue
            return Post.create(
                self.source.id,
                url,
                title,
                published_at=parse_published_date(date_match.group(0)),
                sub_category=subject_match.group(0),
            )
        return None

    def parse_research_page(self, html: str) -> list[Post]:
        soup = make_soup(html)
        if links := soup.select(self.LIST_ITEM_SELECTOR):
            candidates = [self._list_item_post(link) for link in links]
        else:
            logger.debug("[%s] No publication list, scanning dated items", self.source.id)
            candidates = [
                self._fallback_post(element)
                for element in soup.select("tr, li, article, div")
            ]
        return unique_by((p for p in candidates if p), key=lambda p: p.url)

    async def _fetch_research_page(self, url: str) -> list[Post]:
        return self.parse_research_page(await self.client.fetch_text(url))

    async def fetch(self, options: FetchOptions) -> FetchResult:
        if options.page > 1:
            return FetchResult(detected_pattern=self.detected_pattern)
        urls = [f"{self.BASE_URL}{path}" for path in self.RESEARCH_PATHS]
        self._log_page(options.page, urls[0])
        partial = await self._gather_partial(
            {url: self._fetch_research_page(url) for url in urls}
        )
        posts = unique_by(
            (post for posts in partial.values for post in posts), key=lambda p: p.url
        )
        posts = sorted(posts, key=lambda p: p.sort_date, reverse=True)
        return FetchResult(
            posts=posts[: options.max_posts],
            has_more=False,
            detected_pattern=self.detected_pattern,
        )


class SinglePageListingScraper(BaseScraper):
    """Every post card is on one listing page."""

    listing_url: ClassVar[str] = ""

    @abstractmethod
    def parse_listing(self, html: str) -> list[Post]:
        ...

    async def _load(self) -> PartialResults:
        posts = self.parse_listing(await self.client.fetch_text(self.listing_url))
        logger.info("[%s] Found %d posts on listing", self.source.id, len(posts))
        return PartialResults(values=[posts])

    async def fetch(self, options: FetchOptions) -> FetchResult:
        self._log_page(options.page, self.listing_url)
        posts, complete = await self._snapshot(self.source.id, self._load)
        return self._slice(posts, options, complete)


class StripeEngineeringScraper(SinglePageListingScraper):
    detected_pattern = DetectedPattern.SINGLE_PAGE_LIST

    BASE_URL: ClassVar[str] = AppConstants.External.STRIPE.value
    listing_url = f"{AppConstants.External.STRIPE.value}/blog/engineering"
    AUTHOR: ClassVar[str] = "Stripe Engineering"

    def parse_listing(self, html: str) -> list[Post]:
        soup = make_soup(html)
        posts = []
        for card in soup.select(".BlogIndexPost"):
            title_link = card.select_one(".BlogIndexPost__titleLink")
            title = element_text(title_link)
            href = attr_text(title_link, "href")
            if not title or not href:
                continue
            date_text = element_text(card.find("time")) or element_text(
                card.select_one(".BlogIndexPost__date")
            )
            image_src = attr_text(card.find("img"), "src")
            posts.append(
                Post.create(
                    self.source.id,
                    href,
                    title,
                    base_url=self.BASE_URL,
                    published_at=parse_published_date(date_text),
                    author=element_text(card.select_one(".BlogIndexPost__author"))
                    or self.AUTHOR,
                    image_url=urljoin(self.BASE_URL, image_src) if image_src else None,
                )
            )
        return posts


class UberEngineeringScraper(SinglePageListingScraper):
    """The localized listing carries more posts than the feed, but no markup to key on."""

    detected_pattern = DetectedPattern.HTML_LOCALIZED_CRAWL

    BASE_URL: ClassVar[str] = AppConstants.External.UBER.value
    listing_url = f"{AppConstants.External.UBER.value}/en-US/blog/engineering/"
    AUTHOR: ClassVar[str] = "Uber Engineering"
    MIN_LINK_TEXT_LENGTH: ClassVar[int] = 15
    NON_POST_SLUGS: ClassVar[set[str]] = {"blog", "engineering"}
    SECTION_PREFIX: ClassVar[re.Pattern] = re.compile(r"^Engineering,?\s*", re.I)

    def _link_post(self, link: Tag) -> Post | None:
        href = attr_text(link, "href")
        text = element_text(link)
        if not href or len(text) < self.MIN_LINK_TEXT_LENGTH:
            return None
        if _last_segment(href) in self.NON_POST_SLUGS | {""}:
            return None
        title = element_text(link.select_one("h3, h4, h5, h6")) or text
        title = self.SECTION_PREFIX.sub("", title).strip()
        card = link.find_parent("div") or link
        # Date-less anchors are navigation.
        if not title or not (published_at := _text_date(element_text(card))):
            return None
        image_src = attr_text(card.find("img"), "src") or attr_text(
            link.find("img"), "src"
        )
        return Post.create(
            self.source.id,
            href,
            title,
            base_url=self.BASE_URL,
            published_at=published_at,
            image_url=urljoin(self.BASE_URL, image_src) if image_src else None,
            author=self.AUTHOR,
        )

    def parse_listing(self, html: str) -> list[Post]:
        soup = make_soup(html)
        candidates = (self._link_post(link) for link in soup.select('a[href*="/blog/"]'))
        return unique_by((p for p in candidates if p), key=lambda p: p.url)


class LinkSliceScraper(BaseScraper):
    """Post URLs are listed once; only the requested slice is fetched in detail."""

    @abstractmethod
    async def load_links(self) -> list[str]:
        ...

    @abstractmethod
    def parse_post(self, html: str, url: str) -> Post | None:
        ...

    def filter_links(self, links: list[str], options: FetchOptions) -> list[str]:
        return links

    async def _load(self) -> PartialResults:
        links = await self.load_links()
        logger.info("[%s] Found %d post links", self.source.id, len(links))
        return PartialResults(values=[links])

    async def _fetch_post(self, url: str) -> Post | None:
        return self.parse_post(await self.client.fetch_text(url), url)

    async def fetch(self, options: FetchOptions) -> FetchResult:
        links, complete = await self._snapshot(f"{self.source.id}:links", self._load)
        links = self.filter_links(links, options)
        start, end = options.slice_bounds
        page_links = links[start:end]
        logger.info(
            "[%s] Page %d: fetching %d of %d posts",
            self.source.id,
            options.page,
            len(page_links),
            len(links),
        )
        posts = await self._fetch_in_batches(page_links, self._fetch_post)
        has_more = complete and end < len(links)
        return FetchResult(
            posts=sort_posts_by_date(posts),
            has_more=has_more,
            next_page_url=f"?page={options.page + 1}" if has_more else None,
            detected_pattern=self.detected_pattern,
        )


class OpenAIScraper(LinkSliceScraper):
    detected_pattern = DetectedPattern.HTML_LIST_CRAWL

    BASE_URL: ClassVar[str] = AppConstants.External.OPENAI.value
    POST_PATH_PREFIXES: ClassVar[tuple[str, ...]] = ("/index/", "/research/")
    MIN_HREF_LENGTH: ClassVar[int] = 15
    TITLE_SUFFIX: ClassVar[str] = " | OpenAI"
    AUTHOR: ClassVar[str] = "OpenAI"

    @property
    def news_url(self) -> str:
        return f"{self.BASE_URL}/news/"

    def parse_links(self, html: str) -> list[str]:
        links = []
        for link in make_soup(html).select("main a[href]"):
            href = link["href"]
            if href.startswith(self.POST_PATH_PREFIXES) and len(href) > self.MIN_HREF_LENGTH:
                links.append(urljoin(self.BASE_URL, href))
        return unique_by(links, key=str)

    async def load_links(self) -> list[str]:
        self._log_page(1, self.news_url)
        return self.parse_links(await self.client.fetch_text(self.news_url))

    def parse_post(self, html: str, url: str) -> Post | None:
        soup = make_soup(html)
        title = meta_content(soup, 'meta[property="og:title"]') or element_text(
            soup.title
        ).replace(self.TITLE_SUFFIX, "")
        if not title.strip():
            return None
        time_element = soup.find("time")
        return Post.create(
            self.source.id,
            url,
            title,
            image_url=meta_content(
                soup, 'meta[property="og:image"]', 'meta[name="twitter:image"]'
            ),
            published_at=parse_published_date(
                meta_content(soup, 'meta[property="article:published_time"]')
                or attr_text(time_element, "datetime")
                or element_text(time_element)
            ),
            summary=meta_content(soup, 'meta[property="og:description"]'),
            author=self.AUTHOR,
        )


class LinkedInEngineeringScraper(LinkSliceScraper):
    detected_pattern = DetectedPattern.SITEMAP_SCRAPE

    SITEMAP_URL: ClassVar[str] = AppConstants.External.LINKEDIN_ENGINEERING_SITEMAP.value
    POST_PATH_MARKER: ClassVar[str] = "/blog/engineering/"
    CATEGORY_PATH_PATTERNS: ClassVar[dict[str, tuple[str, ...]]] = {
        "ai": ("/ai/", "/artificial-intelligence/", "/machine-learning/", "/generative-ai/"),
        "generative-ai": ("/generative-ai/",),
        "data": ("/data/", "/data-management/", "/data-science/"),
        "trust-and-safety": ("/trust-and-safety/", "/security/", "/privacy/"),
        "product-design": ("/product-design/", "/design/"),
        "infrastructure": ("/infrastructure/", "/scalability/", "/performance/"),
    }
    AUTHOR_PREFIX: ClassVar[str] = "Authored by"

    def parse_sitemap(self, xml: str) -> list[str]:
        locations = (element_text(loc) for loc in make_soup(xml).find_all("loc"))
        return [url for url in locations if self.POST_PATH_MARKER in url]

    async def load_links(self) -> list[str]:
        self._log_page(1, self.SITEMAP_URL)
        return self.parse_sitemap(await self.client.fetch_text(self.SITEMAP_URL))

    def filter_links(self, links: list[str], options: FetchOptions) -> list[str]:
        if not (category := options.category_filter):
            return links
        patterns = self.CATEGORY_PATH_PATTERNS.get(category, (f"/{category}/",))
        return [url for url in links if any(p in url for p in patterns)]

    def _author(self, soup: BeautifulSoup) -> str | None:
        author = element_text(
            soup.select_one(".author-profile__author-text-container a")
        ).removeprefix(self.AUTHOR_PREFIX).strip()
        return (
            author
            or element_text(soup.select_one(".author-name"))
            or meta_content(soup, 'meta[name="author"]')
        )

    def parse_post(self, html: str, url: str) -> Post | None:
        soup = make_soup(html)
        title = (
            element_text(soup.select_one("h1.title"))
            or meta_content(soup, 'meta[property="og:title"]')
            or element_text(soup.title)
        )
        if not title:
            return None
        image_url = meta_content(soup, 'meta[property="og:image"]') or attr_text(
            soup.select_one(".featured-image img, .post-hero-image img"), "src"
        )
        date_text = (
            attr_text(soup.select_one("[data-published-date]"), "data-published-date")
            or element_text(soup.select_one(".publish-date"))
            or attr_text(soup.find("time"), "datetime")
            or meta_content(soup, 'meta[property="article:published_time"]')
        )
        return Post.create(
            self.source.id,
            url,
            title,
            image_url=image_url,
            author=self._author(soup),
            published_at=parse_published_date(date_text),
        )

    async def fetch(self, options: FetchOptions) -> FetchResult:
        result = await super().fetch(options)
        category = options.category or AppConstants.ALL_CATEGORY
        result.posts = [post.with_updates(category=category) for post in result.posts]
        result.categories = [c.id for c in self.source.categories] or None
        return result
