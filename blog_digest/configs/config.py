import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from blog_digest.src import (
    EnvVars,
    FileSystemPostCache,
    HttpClient,
    InMemoryPostCache,
    LocalPaths,
    PostAggregator,
    PostCache,
    ScraperSettings,
    Source,
    StorageBackend,
)


class BaseModelWithDefaults(BaseModel):
    @model_validator(mode="before")
    def set_defaults_for_none_fields(cls, values: dict[str, Any]) -> dict[str, Any]:
        for field_name, field in cls.model_fields.items():
            if values.get(field_name) is None and field.default is not None:
                values[field_name] = field.default
        return values


class Resources(BaseModelWithDefaults):
    project_name: str = Field(min_length=1)
    stage: Literal["dev", "prod"] = Field(default="dev")


class Scraping(BaseModelWithDefaults):
    refresh_interval_hours: float = Field(default=6.0, gt=0)
    max_posts: int = Field(default=70, ge=1)
    posts_per_page: int = Field(default=10, ge=1)
    snapshot_ttl_minutes: float = Field(default=60.0, gt=0)
    detail_batch_size: int = Field(default=5, ge=1)
    politeness_delay_seconds: float = Field(default=0.3, ge=0.0)
    request_timeout: int = Field(default=30, ge=1)
    max_retries: int = Field(default=3, ge=1)
    retry_multiplier: float = Field(default=1.0, ge=0.0)
    retry_max_wait: float = Field(default=10.0, ge=0.0)
    fetch_timeout_seconds: float | None = Field(default=None, gt=0)
    max_feed_items: int = Field(default=70, ge=1)


class Storage(BaseModelWithDefaults):
    backend: StorageBackend = Field(default=StorageBackend.FILESYSTEM)
    cache_dir: str = Field(default=LocalPaths.CACHE_DIR.value, min_length=1)


class Config(BaseModelWithDefaults):
    resources: Resources = Field(
        default_factory=lambda: Resources(project_name="blog-digest")
    )
    scraping: Scraping = Field(default_factory=Scraping)
    storage: Storage = Field(default_factory=Storage)
    sources: list[Source] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_source_ids(self) -> "Config":
        source_ids = [source.id for source in self.sources]
        if duplicates := {i for i in source_ids if source_ids.count(i) > 1}:
            raise ValueError(f"Duplicate source ids: {sorted(duplicates)}")
        return self

    def get_source(self, source_id: str) -> Source | None:
        return next((s for s in self.sources if s.id == source_id), None)

    def build_http_client(self) -> HttpClient:
        return HttpClient(
            max_retries=self.scraping.max_retries,
            retry_multiplier=self.scraping.retry_multiplier,
            retry_max_wait=self.scraping.retry_max_wait,
            request_timeout=self.scraping.request_timeout,
        )

    def build_scraper_settings(self) -> ScraperSettings:
        return ScraperSettings(
            snapshot_ttl_minutes=self.scraping.snapshot_ttl_minutes,
            detail_batch_size=self.scraping.detail_batch_size,
            politeness_delay_seconds=self.scraping.politeness_delay_seconds,
            max_feed_items=self.scraping.max_feed_items,
        )

    def build_post_cache(self) -> PostCache:
        if self.storage.backend == StorageBackend.MEMORY:
            return InMemoryPostCache()
        return FileSystemPostCache(self.storage.cache_dir)

    def build_aggregator(self, cache: PostCache | None = None) -> PostAggregator:
        return PostAggregator(
            self.sources,
            cache or self.build_post_cache(),
            client=self.build_http_client(),
            settings=self.build_scraper_settings(),
            refresh_interval_hours=self.scraping.refresh_interval_hours,
            fetch_timeout_seconds=self.scraping.fetch_timeout_seconds,
            max_posts=self.scraping.max_posts,
            posts_per_page=self.scraping.posts_per_page,
        )

    @classmethod
    def from_yaml(cls, file_path: str) -> "Config":
        with open(file_path, encoding="utf-8") as file:
            config_data = yaml.safe_load(file) or {}
        return cls(**config_data)

    @classmethod
    def load(cls) -> "Config":
        load_dotenv()
        config_suffix = os.environ.get(EnvVars.CONFIG_FILE_SUFFIX.value, "dev")
        filename, extension = "config", "yaml"
        suffix = f"-{config_suffix}" if config_suffix else ""
        config_file = (
            Path(filename).with_name(f"{filename}{suffix}").with_suffix(f".{extension}")
        )
        config_path = Path(__file__).parent / config_file
        return cls.from_yaml(str(config_path))
