"""Pure extraction helpers: HTML text in, posts or page metadata out.

Nothing in this module performs I/O, so every heuristic can be exercised
against static fixtures.
"""

import json
import re
from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .constants import AppConstants
from .errors import ParseError
from .logger import logger
from .models import Post
from .utils import parse_published_date, truncate, unique_by

CONTAINER_SELECTORS: tuple[str, ...] = (
    "article",
    '[role="article"]',
    ".post",
    ".blog-post",
    ".entry",
    '[class*="post"]',
    '[class*="article"]',
    '[class*="blog"]',
    ".card",
    ".item",
)
TITLE_SELECTORS: tuple[str, ...] = (
    "h1",
    "h2",
    "h3",
    "h4",
    ".title",
    ".post-title",
    ".entry-title",
    ".article-title",
    '[class*="title"]',
    '[itemprop="headline"]',
)
FALLBACK_LINK_SELECTORS: tuple[str, ...] = (
    "article a",
    ".post a",
    ".entry-title a",
    'a[href*="/blog/"]',
    'a[href*="/post/"]',
    'a[href*="/article/"]',
    ".article-link",
    "h2 a",
    "h3 a",
    '[class*="post"] a',
)
PREFERRED_LINK_SELECTOR = 'a[href*="/blog/"], a[href*="/post/"], a[href*="/article/"]'
INVALID_HREF_PREFIXES: tuple[str, ...] = ("javascript:", "mailto:", "tel:", "data:", "#")
INVALID_HREF_MARKERS: tuple[str, ...] = ("javascript(", "void(")
POST_PATH_MARKERS: tuple[str, ...] = ("/blog/", "/post/", "/article/", "/research/")
DATE_PATH_PATTERN = re.compile(r"\d{4}/\d{2}")
YEAR_SEGMENT_PATTERN = re.compile(r"/\d{4}/")

NOISE_SELECTORS = (
    "script, style, nav, footer, header, aside, "
    ".sidebar, .navigation, .menu, .header, .footer"
)
CONTENT_SELECTORS: tuple[str, ...] = (
    "article",
    ".post-content",
    ".entry-content",
    "#main",
    ".article-body",
    ".content",
    "main",
    '[role="main"]',
    ".post-body",
    ".article-content",
)
PAGE_TITLE_SELECTORS: tuple[str, ...] = (
    "h1",
    ".post-title",
    ".entry-title",
    ".article-title",
    'meta[property="og:title"]',
    'meta[name="twitter:title"]',
    '[itemprop="headline"]',
    "title",
)
IMAGE_SELECTORS: tuple[str, ...] = (
    'meta[property="og:image"]',
    'meta[name="twitter:image"]',
    'meta[property="og:image:secure_url"]',
    "article img",
    ".featured-image img",
    ".post-image img",
    ".header-image img",
    'img[class*="hero"]',
    'img[class*="featured"]',
    'img[class*="header"]',
    "main img",
)
IMAGE_URL_BLOCKLIST: tuple[str, ...] = ("icon", "logo", "avatar")
DATE_SELECTORS: tuple[str, ...] = (
    "time[datetime]",
    'meta[property="article:published_time"]',
    'meta[name="publish_date"]',
    ".published-date",
    '[class*="date"]',
    '[itemprop="datePublished"]',
    "time",
)
AUTHOR_SELECTORS: tuple[str, ...] = (
    'meta[name="author"]',
    'meta[property="article:author"]',
    '[itemprop="author"]',
    '[rel="author"]',
    ".author-name",
)
MIN_CONTENT_LENGTH = 100
POSTING_TYPES = frozenset({"BlogPosting", "Article"})


class ExtractionStrategy(str, Enum):
    JSON_LD = "json-ld"
    HTML_CONTAINERS = "html-containers"
    HTML_ANCHORS = "html-anchors"
    NONE = "none"


class PostLink(NamedTuple):
    url: str
    title: str


class ListingExtraction(NamedTuple):
    posts: list[Post]
    strategy: ExtractionStrategy


class PageDetails(NamedTuple):
    title: str
    text: str
    image_url: str | None
    published_at: datetime | None
    author: str | None
    description: str | None


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def clean_text(text: str | None) -> str:
    return " ".join(text.split()) if text else ""


def element_text(element: Tag | None) -> str:
    return clean_text(element.get_text(" ", strip=True)) if element else ""


def attr_text(element: Tag | None, *names: str) -> str:
    if element is None:
        return ""
    for name in names:
        if (value := element.get(name)) and isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def meta_content(soup: BeautifulSoup | Tag, *selectors: str) -> str | None:
    for selector in selectors:
        if content := attr_text(soup.select_one(selector), "content"):
            return content
    return None


# JSON-LD


def extract_json_ld(soup: BeautifulSoup) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Skipping malformed JSON-LD block: %s", e)
            continue
        blocks.extend(_flatten_json_ld(data))
    return blocks


def _flatten_json_ld(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return [node for item in data for node in _flatten_json_ld(item)]
    if not isinstance(data, dict):
        return []
    if isinstance(graph := data.get("@graph"), list):
        return [data, *_flatten_json_ld(graph)]
    return [data]


def _has_type(node: Any, types: frozenset[str] | set[str]) -> bool:
    if not isinstance(node, dict):
        return False
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return any(t in types for t in node_type)
    return node_type in types


def _node_id(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("@id") or value.get("url")
    return value if isinstance(value, str) else None


def _node_name(value: Any) -> str | None:
    if isinstance(value, list):
        names = [name for item in value if (name := _node_name(item))]
        return ", ".join(names) or None
    if isinstance(value, dict):
        value = value.get("name")
    return value if isinstance(value, str) else None


def _node_url(value: Any) -> str | None:
    if isinstance(value, list):
        return next((url for item in value if (url := _node_url(item))), None)
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl")
    return value if isinstance(value, str) else None


def _posting_to_post(
    node: dict[str, Any],
    base_url: str,
    source_id: str,
    fallback_url: str | None = None,
    fallback_title: str | None = None,
) -> Post | None:
    url = _node_id(node.get("url")) or _node_id(node.get("mainEntityOfPage"))
    url = url or fallback_url
    title = node.get("headline") or node.get("name") or fallback_title
    if not url or not isinstance(title, str) or not title.strip():
        return None
    published = node.get("datePublished") or node.get("dateCreated")
    description = node.get("description")
    return Post.create(
        source_id,
        url,
        title,
        base_url=base_url,
        author=_node_name(node.get("author")),
        published_at=parse_published_date(published) if isinstance(published, str) else None,
        image_url=_node_url(node.get("image")),
        summary=truncate(description, AppConstants.MAX_SUMMARY_LENGTH)
        if isinstance(description, str)
        else None,
    )


def posts_from_json_ld(
    blocks: list[dict[str, Any]], base_url: str, source_id: str
) -> list[Post]:
    posts: list[Post | None] = []
    for block in blocks:
        if _has_type(block, POSTING_TYPES):
            posts.append(_posting_to_post(block, base_url, source_id))
        if _has_type(block, {"Blog"}) and isinstance(block.get("blogPost"), list):
            posts.extend(
                _posting_to_post(item, base_url, source_id)
                for item in block["blogPost"]
                if _has_type(item, POSTING_TYPES)
            )
        if _has_type(block, {"ItemList"}) and isinstance(
            block.get("itemListElement"), list
        ):
            for element in block["itemListElement"]:
                if not isinstance(element, dict):
                    continue
                if _has_type(item := element.get("item"), POSTING_TYPES):
                    posts.append(
                        _posting_to_post(
                            item,
                            base_url,
                            source_id,
                            fallback_url=_node_id(element.get("url")),
                            fallback_title=element.get("name"),
                        )
                    )
    return unique_by((post for post in posts if post), key=lambda p: p.url)


# Embedded framework state


def load_next_data(html: str) -> dict[str, Any]:
    script = make_soup(html).find("script", id="__NEXT_DATA__")
    if script is None or not (raw := script.string or script.get_text()):
        raise ParseError("__NEXT_DATA__", "script block not found")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError("__NEXT_DATA__", str(e)) from e
    if not isinstance(data, dict):
        raise ParseError("__NEXT_DATA__", "payload is not an object")
    return data


def dig(data: Any, *path: str, default: Any = None) -> Any:
    current = data
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current if current is not None else default


def load_json_payload(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(what, str(e)) from e


# Generic semantic HTML


def is_valid_href(href: str | None) -> bool:
    if not href:
        return False
    lowered = href.strip().lower()
    if not lowered or lowered.startswith(INVALID_HREF_PREFIXES):
        return False
    return not any(marker in lowered for marker in INVALID_HREF_MARKERS)


def is_post_url(url: str) -> bool:
    if url.endswith("/") or "#" in url:
        return False
    return (
        any(marker in url for marker in POST_PATH_MARKERS)
        or bool(DATE_PATH_PATTERN.search(url))
        or bool(YEAR_SEGMENT_PATTERN.search(url))
    )


def resolve_post_url(href: str | None, base_url: str) -> str | None:
    if not is_valid_href(href):
        return None
    absolute_url = urljoin(base_url, href.strip())
    if not absolute_url.startswith(("http://", "https://")):
        return None
    return absolute_url if is_post_url(absolute_url) else None


def _is_long_enough(title: str) -> bool:
    return len(title) >= AppConstants.MIN_TITLE_LENGTH


def _container_title(container: Tag, link: Tag) -> str:
    for selector in TITLE_SELECTORS:
        if (title := element_text(container.select_one(selector))) and _is_long_enough(
            title
        ):
            return title
    candidates = (
        element_text(link),
        attr_text(link, "aria-label"),
        attr_text(link, "title"),
        attr_text(container, "aria-label"),
    )
    return next((c for c in candidates if _is_long_enough(c)), "")


def _links_from_containers(soup: BeautifulSoup, base_url: str) -> list[PostLink]:
    links: list[PostLink] = []
    seen_urls: set[str] = set()
    for selector in CONTAINER_SELECTORS:
        for container in soup.select(selector):
            link = container.select_one(PREFERRED_LINK_SELECTOR) or container.find("a")
            if not isinstance(link, Tag) or not link.get("href"):
                continue
            if not (title := _container_title(container, link)):
                continue
            url = resolve_post_url(link.get("href"), base_url)
            if url and url not in seen_urls:
                seen_urls.add(url)
                links.append(PostLink(url=url, title=title))
    return links


def _closest_card(link: Tag) -> Tag | None:
    for parent in link.parents:
        if parent.name == "article" or {"post", "entry", "card"} & set(
            parent.get("class") or []
        ):
            return parent
    return None


def _links_from_anchors(soup: BeautifulSoup, base_url: str) -> list[PostLink]:
    links: list[PostLink] = []
    seen_urls: set[str] = set()
    for selector in FALLBACK_LINK_SELECTORS:
        for link in soup.select(selector):
            title = element_text(link)
            if not _is_long_enough(title) and (card := _closest_card(link)):
                title = element_text(card.find(["h1", "h2", "h3", "h4"])) or title
            if not _is_long_enough(title):
                continue
            url = resolve_post_url(link.get("href"), base_url)
            if url and url not in seen_urls:
                seen_urls.add(url)
                links.append(PostLink(url=url, title=title))
    return links


def extract_post_links(
    soup: BeautifulSoup, base_url: str
) -> tuple[list[PostLink], ExtractionStrategy]:
    if links := _links_from_containers(soup, base_url):
        return links, ExtractionStrategy.HTML_CONTAINERS
    if links := _links_from_anchors(soup, base_url):
        return links, ExtractionStrategy.HTML_ANCHORS
    return [], ExtractionStrategy.NONE


def extract_listing_posts(html: str, page_url: str, source_id: str) -> ListingExtraction:
    """Structured data wins outright; heuristics only run when it yields nothing."""
    soup = make_soup(html)
    if posts := posts_from_json_ld(extract_json_ld(soup), page_url, source_id):
        return ListingExtraction(posts, ExtractionStrategy.JSON_LD)
    links, strategy = extract_post_links(soup, page_url)
    return ListingExtraction(
        [Post.create(source_id, link.url, link.title) for link in links], strategy
    )


# Detail pages


def extract_page_title(soup: BeautifulSoup, fallback_title: str = "") -> str:
    for selector in PAGE_TITLE_SELECTORS:
        element = soup.select_one(selector)
        title = attr_text(element, "content") or element_text(element)
        if len(title) > AppConstants.MIN_TITLE_LENGTH:
            return title
    return fallback_title


def extract_image_url(soup: BeautifulSoup, base_url: str) -> str | None:
    for selector in IMAGE_SELECTORS:
        element = soup.select_one(selector)
        if not (image_url := attr_text(element, "content", "src", "data-src")):
            continue
        absolute_url = urljoin(base_url, image_url)
        if not any(word in absolute_url.lower() for word in IMAGE_URL_BLOCKLIST):
            return absolute_url
    return None


def extract_published_date(soup: BeautifulSoup | Tag) -> datetime | None:
    for selector in DATE_SELECTORS:
        element = soup.select_one(selector)
        date_str = attr_text(element, "datetime", "content") or element_text(element)
        if published_at := parse_published_date(date_str):
            return published_at
    return None


def extract_author(soup: BeautifulSoup) -> str | None:
    for selector in AUTHOR_SELECTORS:
        element = soup.select_one(selector)
        if author := attr_text(element, "content") or element_text(element):
            return author
    return None


def extract_text_content(soup: BeautifulSoup) -> str:
    """Destructive: strips navigation and script noise from ``soup``."""
    for element in soup.select(NOISE_SELECTORS):
        element.decompose()
    content = ""
    for selector in CONTENT_SELECTORS:
        if element := soup.select_one(selector):
            content = element_text(element)
            if len(content) > MIN_CONTENT_LENGTH:
                break
    if len(content) < MIN_CONTENT_LENGTH:
        content = element_text(soup.body or soup)
    return content


def extract_page_details(html: str, url: str, fallback_title: str = "") -> PageDetails:
    soup = make_soup(html)
    details = PageDetails(
        title=extract_page_title(soup, fallback_title),
        text="",
        image_url=extract_image_url(soup, url),
        published_at=extract_published_date(soup),
        author=extract_author(soup),
        description=meta_content(
            soup, 'meta[property="og:description"]', 'meta[name="description"]'
        ),
    )
    return details._replace(text=extract_text_content(soup))
