import json
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path

from .constants import AppConstants, LocalPaths
from .logger import logger
from .models import Post, merge_unique_posts
from .utils import parse_published_date, utc_now

_UNSAFE_KEY_CHARS = re.compile(r"[^\w.-]")


def make_cache_key(
    source_id: str, category: str | None = None, research_area: str | None = None
) -> str:
    """``source_id[_category][_research_area]``; the ``all`` category adds nothing."""
    parts = [source_id]
    if category and category != AppConstants.ALL_CATEGORY:
        parts.append(category)
    if research_area:
        parts.append(research_area)
    return "_".join(parts)


class PostCache(ABC):
    """Accumulated posts per cache key plus the time of the last page-1 fetch."""

    @abstractmethod
    def get(self, key: str) -> list[Post]:
        ...

    @abstractmethod
    def set(self, key: str, posts: list[Post]) -> None:
        ...

    @abstractmethod
    def get_last_fetch_time(self, key: str) -> datetime | None:
        ...

    @abstractmethod
    def set_last_fetch_time(self, key: str, fetched_at: datetime | None = None) -> None:
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    def append(self, key: str, posts: list[Post]) -> int:
        """Merge ``posts`` into ``key`` by URL and return how many were new."""
        existing = self.get(key)
        merged = merge_unique_posts(existing, posts)
        self.set(key, merged)
        return len(merged) - len(existing)

    def should_refresh(self, key: str, interval_hours: float) -> bool:
        if (last_fetch := self.get_last_fetch_time(key)) is None:
            return True
        return utc_now() - last_fetch > timedelta(hours=interval_hours)

    def all_posts(self) -> list[Post]:
        posts: list[Post] = []
        for key in self.keys():
            posts = merge_unique_posts(posts, self.get(key))
        return posts


class InMemoryPostCache(PostCache):
    def __init__(self):
        self._posts: dict[str, list[Post]] = {}
        self._fetch_times: dict[str, datetime] = {}

    def get(self, key: str) -> list[Post]:
        return list(self._posts.get(key, []))

    def set(self, key: str, posts: list[Post]) -> None:
        self._posts[key] = list(posts)

    def get_last_fetch_time(self, key: str) -> datetime | None:
        return self._fetch_times.get(key)

    def set_last_fetch_time(self, key: str, fetched_at: datetime | None = None) -> None:
        self._fetch_times[key] = fetched_at or utc_now()

    def keys(self) -> list[str]:
        return sorted(self._posts)

    def clear(self) -> None:
        self._posts.clear()
        self._fetch_times.clear()


class FileSystemPostCache(PostCache):
    """JSON files under ``cache_dir``: one per key plus a shared timestamp index."""

    def __init__(self, cache_dir: Path | str):
        self.cache_dir = Path(cache_dir)
        self.posts_dir = self.cache_dir / LocalPaths.POSTS_DIR.value
        self.timestamps_path = self.cache_dir / LocalPaths.FETCH_TIMESTAMPS_FILE.value
        self.posts_dir.mkdir(parents=True, exist_ok=True)

    def _posts_path(self, key: str) -> Path:
        return self.posts_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    @staticmethod
    def _write_json(path: Path, data) -> None:
        json_str = json.dumps(data, ensure_ascii=False, indent=2, default=str)
        path.write_text(json_str, encoding="utf-8")

    def get(self, key: str) -> list[Post]:
        path = self._posts_path(key)
        if not path.is_file():
            return []
        try:
            data = json.loads(path.read_text("utf-8"))
            return [Post.model_validate(item) for item in data.get("posts", [])]
        except (ValueError, AttributeError) as e:
            logger.warning("Ignoring unreadable cache file '%s': %s", path, e)
            return []

    def set(self, key: str, posts: list[Post]) -> None:
        self._write_json(
            self._posts_path(key),
            {
                "key": key,
                "posts": [p.model_dump(mode="json", by_alias=True) for p in posts],
            },
        )

    def _read_timestamps(self) -> dict[str, str]:
        if not self.timestamps_path.is_file():
            return {}
        try:
            data = json.loads(self.timestamps_path.read_text("utf-8"))
        except ValueError as e:
            logger.warning("Ignoring unreadable '%s': %s", self.timestamps_path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get_last_fetch_time(self, key: str) -> datetime | None:
        return parse_published_date(self._read_timestamps().get(key))

    def set_last_fetch_time(self, key: str, fetched_at: datetime | None = None) -> None:
        timestamps = self._read_timestamps()
        timestamps[key] = (fetched_at or utc_now()).isoformat()
        self._write_json(self.timestamps_path, timestamps)

    def keys(self) -> list[str]:
        keys = []
        for path in sorted(self.posts_dir.glob("*.json")):
            try:
                keys.append(json.loads(path.read_text("utf-8")).get("key") or path.stem)
            except (ValueError, AttributeError):
                keys.append(path.stem)
        return keys

    def clear(self) -> None:
        for path in self.posts_dir.glob("*.json"):
            path.unlink()
        self.timestamps_path.unlink(missing_ok=True)
        logger.info("Cleared post cache at '%s'", self.cache_dir)
