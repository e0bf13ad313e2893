import asyncio
import functools
import re
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar
from urllib.parse import urldefrag, urljoin, urlparse

import tenacity

from .logger import logger

T = TypeVar("T")

DATE_FORMATS: tuple[str, ...] = (
    "%a, %d %b %Y %H:%M:%S GMT",
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%Y",
)
_COMMA_WITHOUT_SPACE = re.compile(r",(?=\S)")
_WHITESPACE = re.compile(r"\s+")


def parse_published_date(date_str: str | None) -> datetime | None:
    if not isinstance(date_str, str) or not (date_str := date_str.strip()):
        return None
    try:
        parsed = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        return (
            parsed.astimezone(timezone.utc)
            if parsed.tzinfo
            else parsed.replace(tzinfo=timezone.utc)
        )
    except (ValueError, TypeError):
        pass
    cleaned = _WHITESPACE.sub(" ", _COMMA_WITHOUT_SPACE.sub(", ", date_str))
    for fmt in DATE_FORMATS:
        try:
            dt = datetime.strptime(cleaned, fmt)
            return (
                dt.astimezone(timezone.utc)
                if dt.tzinfo
                else dt.replace(tzinfo=timezone.utc)
            )
        except (ValueError, TypeError):
            continue
    logger.debug("Failed to parse date '%s' with any known format", date_str)
    return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_url(href: str, base_url: str | None = None) -> str:
    absolute = urljoin(base_url, href.strip()) if base_url else href.strip()
    return urldefrag(absolute).url


def make_post_id(source_id: str, url: str) -> str:
    path = urlparse(url).path or url
    slug = "-".join(segment for segment in path.split("/") if segment)
    return f"{source_id}-{slug or 'post'}"


def to_https(url: str | None) -> str | None:
    if url and url.startswith("http://"):
        return "https://" + url.removeprefix("http://")
    return url


def truncate(text: str | None, limit: int) -> str | None:
    if text is None:
        return None
    return text[:limit]


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def unique_by(items: Iterable[T], key: Callable[[T], Any]) -> list[T]:
    seen: set[Any] = set()
    unique_items = []
    for item in items:
        if (item_key := key(item)) in seen:
            continue
        seen.add(item_key)
        unique_items.append(item)
    return unique_items


def create_retry_decorator(
    operation_name: str,
    max_retries: int,
    multiplier: float,
    max_wait: float,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> Callable:
    return tenacity.retry(
        retry=tenacity.retry_if_exception_type(retry_on),
        wait=tenacity.wait_exponential(multiplier=multiplier, max=max_wait),
        stop=tenacity.stop_after_attempt(max_retries),
        before_sleep=_create_retry_log_callback(operation_name),
        reraise=True,
    )


def _create_retry_log_callback(operation_name: str) -> Callable:
    def log_retry(retry_state):
        wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "Retrying '%s' (attempt %d failed). Waiting %.1fs",
            operation_name,
            retry_state.attempt_number,
            wait_time,
        )

    return log_retry


def measure_execution_time(func: Callable) -> Callable:
    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.time()
        result = await func(*args, **kwargs)
        logger.info("'%s' execution time: %.2fs", func.__name__, time.time() - start_time)
        return result

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        logger.info("'%s' execution time: %.2fs", func.__name__, time.time() - start_time)
        return result

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper
