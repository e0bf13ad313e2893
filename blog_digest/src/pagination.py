"""Listing pagination: spot the "page 2" link once, then replay its URL scheme."""

import re
from typing import ClassVar
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .logger import logger


class PaginationSelectors:
    DETECTION: ClassVar[tuple[str, ...]] = (
        'a[rel="next"]',
        ".pagination a",
        ".pagination-next",
        ".next-page",
        'a:-soup-contains("Next")',
        'a:-soup-contains("2")',
        '[class*="pagination"] a',
    )
    NEXT_LINK: ClassVar[tuple[str, ...]] = (
        'a[rel="next"]',
        '.pagination a[href*="page"]',
        '.pagination a[href*="p="]',
        ".pagination-next",
        ".next-page",
        'a:-soup-contains("Next")',
        'a:-soup-contains("Older")',
        'a:-soup-contains("More")',
        '[class*="pagination"] a',
        '[class*="next"] a',
        '[aria-label*="next" i]',
    )
    NUMBERED: ClassVar[tuple[str, ...]] = (
        'a[href*="/page/"]',
        'a[href*="?page="]',
        'a[href*="&page="]',
        'a[href*="/p/"]',
        'a[href*="?p="]',
        'a[href*="&p="]',
    )
    PAGE_TWO_MARKERS: ClassVar[tuple[str, ...]] = ("page=2", "p=2", "/page/2", "/p/2")


PAGE_QUERY = re.compile(r"([?&])page=\d+")
P_QUERY = re.compile(r"([?&])p=\d+")
PAGE_PATH = re.compile(r"/page/\d+")
P_PATH = re.compile(r"/p/\d+")
PAGE_NUMBER_IN_HREF = re.compile(r"[?&]p=\d+|[?&]page=\d+|/page/\d+|/p/\d+")
MAX_NUMBERED_PAGE_LINK = 10


def _is_page_two_link(href: str, text: str) -> bool:
    return text == "2" or any(m in href for m in PaginationSelectors.PAGE_TWO_MARKERS)


def detect_pagination_pattern(html: str, current_url: str) -> str | None:
    """Absolute URL of the first link that looks like page 2, or None."""
    soup = BeautifulSoup(html, "html.parser")
    for selector in PaginationSelectors.DETECTION:
        for link in soup.select(selector):
            href = link.get("href")
            if href and _is_page_two_link(href, link.get_text(strip=True)):
                return urljoin(current_url, href)
    return None


def construct_page_url(
    blog_list_url: str, page: int, detected_pattern_url: str | None = None
) -> str:
    if page == 1:
        return blog_list_url

    if detected_pattern_url:
        for pattern, replacement in (
            (PAGE_QUERY, rf"\g<1>page={page}"),
            (P_QUERY, rf"\g<1>p={page}"),
            (PAGE_PATH, f"/page/{page}"),
            (P_PATH, f"/p/{page}"),
        ):
            if pattern.search(detected_pattern_url):
                return pattern.sub(replacement, detected_pattern_url, 1)
        logger.debug(
            "Pattern '%s' has no page number to substitute, using default",
            detected_pattern_url,
        )

    parsed_url = urlparse(blog_list_url)
    base = f"{parsed_url.scheme}://{parsed_url.netloc}{parsed_url.path}"
    if not parsed_url.query:
        return f"{base}?page={page}&"
    query = f"?{parsed_url.query}"
    if "page=" in query:
        return base + PAGE_QUERY.sub(rf"\g<1>page={page}&", query, 1)
    return f"{base}{query}&page={page}&"


def find_pagination_links(html: str, current_url: str) -> list[str]:
    """Candidate next-page URLs, most explicit first."""
    soup = BeautifulSoup(html, "html.parser")
    pagination_urls: list[str] = []

    def add(href: str | None) -> None:
        if not href:
            return
        absolute_url = urljoin(current_url, href)
        if absolute_url != current_url and absolute_url not in pagination_urls:
            pagination_urls.append(absolute_url)

    for selector in PaginationSelectors.NEXT_LINK:
        if link := soup.select_one(selector):
            add(link.get("href"))

    for selector in PaginationSelectors.NUMBERED:
        for link in soup.select(selector):
            href = link.get("href")
            text = link.get_text(strip=True)
            is_page_number = text.isdigit() and int(text) <= MAX_NUMBERED_PAGE_LINK
            if href and (is_page_number or PAGE_NUMBER_IN_HREF.search(href)):
                add(href)

    return pagination_urls
