from enum import Enum, auto


class AutoNamedEnum(str, Enum):
    @staticmethod
    def _generate_next_value_(
        name: str, start: int, count: int, last_values: list[str]
    ) -> str:
        return name.lower()


class EnvVars(str, Enum):
    CONFIG_FILE_SUFFIX = "CONFIG_FILE_SUFFIX"
    LOG_DIR = "LOG_DIR"
    LOG_LEVEL = "LOG_LEVEL"
    LOG_TO_FILE = "LOG_TO_FILE"


class PostCategory(AutoNamedEnum):
    ALL = auto()
    BLOG = auto()
    PUBLICATION = auto()
    SCIENCE = auto()


class DetectedPattern(str, Enum):
    APOLLO_CACHE = "apollo-cache"
    ARCHIVE_AGGREGATION = "archive-aggregation"
    CLIENT_SIDE = "client-side-pagination"
    CUSTOM_DEEPMIND = "custom-deepmind"
    CUSTOM_GOOGLE = "custom-google"
    CUSTOM_META = "custom-meta"
    HTML_LIST_CRAWL = "html-list-crawl"
    HTML_LOCALIZED_CRAWL = "html-localized-crawl"
    HTML_SCRAPE = "html-scrape"
    JSON_API = "json-api"
    PAGE_PATH = "/page/"
    RSS_WITH_ENRICHMENT = "rss-with-html-enrichment"
    SINGLE_PAGE_LIST = "single-page-list"
    SITEMAP_SCRAPE = "sitemap-scrape"


class LocalPaths(str, Enum):
    CACHE_DIR = ".cache"
    LOGS_DIR = "logs"
    POSTS_DIR = "posts"
    FETCH_TIMESTAMPS_FILE = "fetch-timestamps.json"
    LOGS_FILE = "logs.txt"


class StorageBackend(AutoNamedEnum):
    FILESYSTEM = auto()
    MEMORY = auto()


class AppConstants:
    ALL_CATEGORY: str = "all"
    FIRST_BLOG_YEAR: int = 2006
    MAX_FEED_ITEMS: int = 70
    MAX_LISTING_PAGES: int = 50
    MAX_RAW_HTML_LENGTH: int = 5000
    MAX_SUMMARY_LENGTH: int = 200
    MIN_TITLE_LENGTH: int = 5

    class External(str, Enum):
        ANTHROPIC = "https://www.anthropic.com"
        APPLE_ML = "https://machinelearning.apple.com"
        AWS_ARCHITECTURE = "https://aws.amazon.com/blogs/architecture/"
        CLOUDFLARE = "https://blog.cloudflare.com/"
        DEEPMIND = "https://deepmind.google"
        GOOGLE_RESEARCH = "https://research.google"
        HUGGINGFACE = "https://huggingface.co"
        LINKEDIN_ENGINEERING_SITEMAP = (
            "https://www.linkedin.com/blog/engineering/sitemap.xml"
        )
        META_AI = "https://ai.meta.com"
        META_ENGINEERING = "https://engineering.fb.com/"
        META_RESEARCH = "https://research.facebook.com"
        MICROSOFT_RESEARCH = "https://www.microsoft.com/en-us/research/blog/"
        NETFLIX_RESEARCH = "https://research.netflix.com"
        OPENAI = "https://openai.com"
        SPOTIFY_ENGINEERING = "https://engineering.atspotify.com"
        STRIPE = "https://stripe.com"
        UBER = "https://www.uber.com"
