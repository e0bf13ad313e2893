"""Adapters reading serialized framework state or JSON APIs instead of markup."""

from typing import Any, ClassVar
from urllib.parse import urljoin

from ..constants import AppConstants, DetectedPattern, PostCategory
from ..errors import ParseError
from ..extractors import dig, load_json_payload, load_next_data
from ..logger import logger
from ..models import FetchOptions, FetchResult, Post, sort_posts_by_date
from ..utils import parse_published_date, truncate
from .base import BaseScraper, PartialResults


class AppleMLScraper(BaseScraper):
    """machinelearning.apple.com ships every post in ``__NEXT_DATA__``."""

    detected_pattern = DetectedPattern.CLIENT_SIDE

    BASE_URL: ClassVar[str] = AppConstants.External.APPLE_ML.value
    DEFAULT_IMAGE_URL: ClassVar[str] = (
        "https://mlr.cdn-apple.com/media/Home_1200x630_48225d82e9.png"
    )
    MAX_BODY_LENGTH: ClassVar[int] = 1000

    @property
    def research_url(self) -> str:
        return f"{self.BASE_URL}/research"

    def parse_posts(self, html: str) -> list[Post]:
        next_data = load_next_data(html)
        posts = []
        for item in dig(next_data, "props", "pageProps", "posts", default=[]):
            slug = item.get("slug") or item.get("documentId") or "unknown"
            author = item.get("authorsOrdered") or ", ".join(item.get("authors") or [])
            posts.append(
                Post.create(
                    self.source.id,
                    f"{self.BASE_URL}/research/{slug}",
                    item.get("title") or "Untitled",
                    author=author,
                    published_at=parse_published_date(item.get("published")),
                    raw_html=truncate(item.get("body"), self.MAX_BODY_LENGTH),
                    image_url=self.DEFAULT_IMAGE_URL,
                )
            )
        return sort_posts_by_date(posts)

    async def _load(self) -> PartialResults:
        html = await self.client.fetch_text(self.research_url)
        try:
            return PartialResults(values=[self.parse_posts(html)])
        except ParseError as e:
            logger.warning("[%s] %s", self.source.id, e)
            return PartialResults(values=[[]], failures=[str(e)])

    async def fetch(self, options: FetchOptions) -> FetchResult:
        self._log_page(options.page, self.research_url)
        posts, complete = await self._snapshot(self.source.id, self._load)
        return self._slice(posts, options, complete)


class NetflixResearchScraper(BaseScraper):
    """research.netflix.com archive, read from its Apollo cache."""

    detected_pattern = DetectedPattern.APOLLO_CACHE

    COLLECTION_PREFIX: ClassVar[str] = "$ROOT_QUERY.articleCollection"
    PREFERRED_COLLECTION_PREFIX: ClassVar[str] = (
        '$ROOT_QUERY.articleCollection({"limit":500'
    )
    BLOG_HOSTS: ClassVar[tuple[str, ...]] = ("netflixtechblog.com", "medium.com")

    @property
    def archive_url(self) -> str:
        return f"{AppConstants.External.NETFLIX_RESEARCH.value}/archive"

    @staticmethod
    def _resolve(apollo: dict[str, Any], ref: Any) -> Any:
        if isinstance(ref, dict):
            if "__ref" in ref:
                return apollo.get(ref["__ref"])
            if ref.get("type") == "id" and ref.get("id"):
                return apollo.get(ref["id"])
        return ref

    def _find_collection(self, apollo: dict[str, Any]) -> dict[str, Any]:
        for prefix in (self.PREFERRED_COLLECTION_PREFIX, self.COLLECTION_PREFIX):
            for key, value in apollo.items():
                if key.startswith(prefix) and isinstance(value, dict) and value.get("items"):
                    return value
        raise ParseError("Apollo cache", "no articleCollection entry")

    def _author(self, apollo: dict[str, Any], item: dict[str, Any]) -> str | None:
        authors = self._resolve(apollo, item.get("authorCollection"))
        if not isinstance(authors, dict) or not authors.get("items"):
            return None
        first_author = self._resolve(apollo, authors["items"][0])
        if not isinstance(first_author, dict):
            return None
        name = " ".join(
            part
            for part in (first_author.get("firstName"), first_author.get("lastName"))
            if part
        )
        return name or None

    def parse_posts(self, html: str) -> list[Post]:
        apollo = dig(
            load_next_data(html), "props", "pageProps", "serverState", "apollo", "data"
        )
        if not isinstance(apollo, dict):
            raise ParseError("Apollo cache", "serverState.apollo.data missing")
        posts = []
        for ref in self._find_collection(apollo)["items"]:
            item = self._resolve(apollo, ref)
            if not isinstance(item, dict) or not item.get("title") or not item.get("link"):
                continue
            image = self._resolve(apollo, item.get("image"))
            link = item["link"]
            category = (
                PostCategory.BLOG
                if any(host in link for host in self.BLOG_HOSTS)
                else PostCategory.PUBLICATION
            )
            posts.append(
                Post.create(
                    self.source.id,
                    link,
                    item["title"],
                    image_url=image.get("url") if isinstance(image, dict) else None,
                    published_at=parse_published_date(item.get("date")),
                    author=self._author(apollo, item),
                    category=category.value,
                )
            )
        return posts

    async def _load(self) -> PartialResults:
        html = await self.client.fetch_text(self.archive_url)
        try:
            return PartialResults(values=[self.parse_posts(html)])
        except ParseError as e:
            logger.warning("[%s] %s", self.source.id, e)
            return PartialResults(values=[[]], failures=[str(e)])

    async def fetch(self, options: FetchOptions) -> FetchResult:
        self._log_page(options.page, self.archive_url)
        posts, complete = await self._snapshot(self.source.id, self._load)
        if category := options.category_filter:
            posts = [post for post in posts if post.category == category]
        return self._slice(posts, options, complete)


class HuggingFaceScraper(BaseScraper):
    """Featured posts on page 1, then the paged community feed."""

    detected_pattern = DetectedPattern.JSON_API

    BASE_URL: ClassVar[str] = AppConstants.External.HUGGINGFACE.value
    DEFAULT_AUTHOR: ClassVar[str] = "Hugging Face"
    DEFAULT_ITEMS_PER_PAGE: ClassVar[int] = 20

    def api_url(self, page: int) -> str:
        if page == 1:
            return f"{self.BASE_URL}/api/blog"
        return f"{self.BASE_URL}/api/blog/community?p={page}"

    def _absolute(self, url: str | None) -> str | None:
        if not url:
            return None
        return urljoin(f"{self.BASE_URL}/", url)

    def parse_posts(self, items: list[dict[str, Any]]) -> list[Post]:
        posts = []
        for blog in items:
            if not blog.get("title") or not (url := self._absolute(blog.get("url"))):
                continue
            authors = blog.get("authorsData") or [{}]
            posts.append(
                Post.create(
                    self.source.id,
                    url,
                    blog["title"],
                    summary=blog.get("description"),
                    published_at=parse_published_date(blog.get("publishedAt")),
                    image_url=self._absolute(blog.get("thumbnail") or blog.get("poster")),
                    author=authors[0].get("fullname")
                    or authors[0].get("name")
                    or self.DEFAULT_AUTHOR,
                )
            )
        return sort_posts_by_date(posts)

    async def fetch(self, options: FetchOptions) -> FetchResult:
        url = self.api_url(options.page)
        self._log_page(options.page, url)
        text = await self.client.fetch_text(url)
        try:
            data = self._parse_json(text, url)
        except ParseError as e:
            logger.warning("[%s] %s", self.source.id, e)
            return FetchResult(detected_pattern=self.detected_pattern)

        if options.page == 1:
            posts = self.parse_posts(data.get("allBlogs") or [])
            has_more = True
        else:
            posts = self.parse_posts(data.get("posts") or [])
            per_page = data.get("numItemsPerPage") or self.DEFAULT_ITEMS_PER_PAGE
            has_more = options.page * per_page < (data.get("numTotalItems") or 0)
        return FetchResult(
            posts=posts,
            has_more=has_more,
            next_page_url=self.api_url(options.page + 1) if has_more else None,
            detected_pattern=self.detected_pattern,
        )

    @staticmethod
    def _parse_json(text: str, url: str) -> dict[str, Any]:
        data = load_json_payload(text, f"JSON from '{url}'")
        if not isinstance(data, dict):
            raise ParseError(f"JSON from '{url}'", "payload is not an object")
        return data
