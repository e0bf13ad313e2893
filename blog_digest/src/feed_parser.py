import time
from datetime import datetime, timezone

import feedparser
from bs4 import BeautifulSoup
from feedparser.exceptions import CharacterEncodingOverride

from .constants import AppConstants
from .errors import ParseError
from .logger import logger
from .models import Post
from .utils import parse_published_date, truncate


def _struct_to_datetime(value: time.struct_time | None) -> datetime | None:
    if not value:
        return None
    return datetime(*value[:6], tzinfo=timezone.utc)


def _entry_published_at(entry: feedparser.FeedParserDict) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        if published_at := _struct_to_datetime(entry.get(key)):
            return published_at
    return parse_published_date(entry.get("published") or entry.get("updated"))


def _entry_html(entry: feedparser.FeedParserDict) -> str:
    content_items = entry.get("content") or []
    if content_items and (value := content_items[0].get("value")):
        return value
    return entry.get("summary") or entry.get("description") or ""


def _html_to_text(html: str) -> str:
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ", strip=True)
    return " ".join(text.replace(" ", " ").split())


def _is_image_type(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.startswith("image/")


def extract_entry_image(entry: feedparser.FeedParserDict) -> str | None:
    """Thumbnail, then image media content, then image enclosure, then inline <img>."""
    for thumbnail in entry.get("media_thumbnail") or []:
        if url := thumbnail.get("url"):
            return url
    for media in entry.get("media_content") or []:
        if (url := media.get("url")) and (
            media.get("medium") == "image" or _is_image_type(media.get("type"))
        ):
            return url
    for enclosure in entry.get("enclosures") or []:
        if (url := enclosure.get("href") or enclosure.get("url")) and _is_image_type(
            enclosure.get("type")
        ):
            return url
    if html := _entry_html(entry):
        img = BeautifulSoup(html, "html.parser").find("img", src=True)
        if img and isinstance(img["src"], str):
            return img["src"]
    return None


def _entry_to_post(entry: feedparser.FeedParserDict, source_id: str) -> Post | None:
    title = (entry.get("title") or "").strip()
    link = (entry.get("link") or "").strip()
    if not title or not link:
        logger.debug("Skipping feed entry without title or link for '%s'", source_id)
        return None
    html = _entry_html(entry)
    return Post.create(
        source_id,
        link,
        title,
        author=entry.get("author"),
        published_at=_entry_published_at(entry),
        summary=truncate(_html_to_text(html), AppConstants.MAX_SUMMARY_LENGTH),
        image_url=extract_entry_image(entry),
        raw_html=html or None,
    )


def parse_feed(
    xml: str, source_id: str, max_items: int = AppConstants.MAX_FEED_ITEMS
) -> list[Post]:
    """Normalise an RSS or Atom document into posts, at most ``max_items`` of them."""
    feed = feedparser.parse(xml)
    if feed.bozo:
        bozo_exc = feed.get("bozo_exception")
        if not feed.entries:
            raise ParseError(f"feed for '{source_id}'", str(bozo_exc))
        (
            logger.debug
            if isinstance(bozo_exc, CharacterEncodingOverride)
            else logger.warning
        )("Feed for '%s' parsed with problems: %s", source_id, bozo_exc)

    posts = []
    for entry in feed.entries:
        if len(posts) >= max_items:
            break
        if post := _entry_to_post(entry, source_id):
            posts.append(post)
    logger.info("Parsed %d posts from feed for '%s'", len(posts), source_id)
    return posts
