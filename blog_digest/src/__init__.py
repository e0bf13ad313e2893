from .aggregator import PostAggregator
from .cache import FileSystemPostCache, InMemoryPostCache, PostCache, make_cache_key
from .constants import (
    AppConstants,
    DetectedPattern,
    EnvVars,
    LocalPaths,
    PostCategory,
    StorageBackend,
)
from .errors import (
    BlogDigestError,
    FetchError,
    FetchTimeoutError,
    NoFetchStrategyError,
    ParseError,
    RobotsDisallowedError,
    UnknownSourceError,
)
from .feed_parser import parse_feed
from .http_client import HttpClient, RobotsPolicy
from .logger import logger, set_log_level
from .models import (
    FetchOptions,
    FetchResult,
    PaginationState,
    Post,
    PostQueryResult,
    PostsPage,
    Source,
    SourceCategory,
)
from .query import query_posts
from .registry import ScraperRegistry
from .scrapers import ScraperSettings, ScraperState
from .utils import parse_published_date

__all__ = [
    "AppConstants",
    "BlogDigestError",
    "DetectedPattern",
    "EnvVars",
    "FetchError",
    "FetchOptions",
    "FetchResult",
    "FetchTimeoutError",
    "FileSystemPostCache",
    "HttpClient",
    "InMemoryPostCache",
    "LocalPaths",
    "NoFetchStrategyError",
    "PaginationState",
    "ParseError",
    "Post",
    "PostAggregator",
    "PostCache",
    "PostCategory",
    "PostQueryResult",
    "PostsPage",
    "RobotsDisallowedError",
    "RobotsPolicy",
    "ScraperRegistry",
    "ScraperSettings",
    "ScraperState",
    "Source",
    "SourceCategory",
    "StorageBackend",
    "UnknownSourceError",
    "logger",
    "make_cache_key",
    "parse_feed",
    "parse_published_date",
    "set_log_level",
    "query_posts",
]
