from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .constants import AppConstants
from .utils import make_post_id, normalize_url, parse_published_date, utc_now


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Post(CamelModel):
    id: str = Field(min_length=1)
    source_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    author: str | None = None
    published_at: datetime | None = None
    summary: str | None = None
    image_url: str | None = None
    category: str | None = None
    sub_category: str | None = None
    venue: str | None = None
    raw_html: str | None = None
    fetched_at: datetime = Field(default_factory=utc_now)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: Any) -> Any:
        return " ".join(v.split()) if isinstance(v, str) else v

    @field_validator("raw_html")
    @classmethod
    def truncate_raw_html(cls, v: str | None) -> str | None:
        return v[: AppConstants.MAX_RAW_HTML_LENGTH] if v else v

    @field_validator("published_at", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_published_date(v)
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("author", "summary", "image_url", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def create(
        cls, source_id: str, url: str, title: str, base_url: str | None = None, **fields
    ) -> "Post":
        absolute_url = normalize_url(url, base_url)
        return cls(
            id=make_post_id(source_id, absolute_url),
            source_id=source_id,
            title=title,
            url=absolute_url,
            **fields,
        )

    def with_updates(self, **fields) -> "Post":
        """Copy with ``fields`` replaced, re-running validation."""
        return type(self).model_validate({**self.model_dump(), **fields})

    @property
    def sort_date(self) -> datetime:
        return self.published_at or self.fetched_at


class SourceCategory(CamelModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)


class Source(CamelModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    homepage: str = Field(min_length=1)
    rss: str | None = None
    blog_list_url: str | None = None
    allow_scrape: bool = True
    categories: list[SourceCategory] = Field(default_factory=list)

    def find_category(self, category_id: str | None) -> SourceCategory | None:
        return next((c for c in self.categories if c.id == category_id), None)


class PaginationState(CamelModel):
    current_pattern_url: str | None = None
    pages_fetched: int = Field(default=0, ge=0)
    seen_urls: set[str] = Field(default_factory=set)


class FetchOptions(CamelModel):
    page: int = Field(default=1, ge=1)
    max_posts: int = Field(default=70, ge=1)
    posts_per_page: int = Field(default=10, ge=1)
    category: str | None = None
    research_area: str | None = None
    detected_pattern: str | None = None

    @property
    def category_filter(self) -> str | None:
        if self.category and self.category != AppConstants.ALL_CATEGORY:
            return self.category
        return None

    @property
    def slice_bounds(self) -> tuple[int, int]:
        start = (self.page - 1) * self.posts_per_page
        return start, start + self.posts_per_page


class FetchResult(CamelModel):
    posts: list[Post] = Field(default_factory=list)
    has_more: bool = False
    next_page_url: str | None = None
    detected_pattern: str | None = None
    categories: list[str] | None = None


class PostsPage(FetchResult):
    source_id: str
    page: int = Field(ge=1)
    cached: bool = False
    fetched_at: datetime = Field(default_factory=utc_now)


class PostQueryResult(CamelModel):
    posts: list[Post] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    limit: int = Field(ge=1)
    offset: int = Field(ge=0)
    has_more: bool = False


def sort_posts_by_date(posts: list[Post]) -> list[Post]:
    """Newest first; undated posts keep their relative order at the end."""
    dated = [p for p in posts if p.published_at]
    undated = [p for p in posts if not p.published_at]
    return sorted(dated, key=lambda p: p.published_at, reverse=True) + undated


def merge_unique_posts(existing: list[Post], incoming: list[Post]) -> list[Post]:
    seen_urls = {post.url for post in existing}
    merged = list(existing)
    for post in incoming:
        if post.url not in seen_urls:
            seen_urls.add(post.url)
            merged.append(post)
    return merged
