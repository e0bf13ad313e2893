from datetime import datetime, timezone

from .models import Post, PostQueryResult


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def query_posts(
    posts: list[Post],
    source_id: str | None = None,
    keyword: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = 20,
    offset: int = 0,
) -> PostQueryResult:
    """Filter, sort newest first and page posts already in the cache.

    Undated posts never match ``date_from`` but always match ``date_to``.
    """
    date_from, date_to = _as_utc(date_from), _as_utc(date_to)
    if source_id:
        posts = [p for p in posts if p.source_id == source_id]
    if keyword:
        keyword = keyword.lower()
        posts = [
            p
            for p in posts
            if keyword in " ".join(filter(None, (p.title, p.summary))).lower()
        ]
    if date_from:
        posts = [p for p in posts if p.published_at and p.published_at >= date_from]
    if date_to:
        posts = [p for p in posts if not p.published_at or p.published_at <= date_to]

    posts = sorted(posts, key=lambda p: p.sort_date, reverse=True)
    return PostQueryResult(
        posts=posts[offset : offset + limit],
        total=len(posts),
        limit=limit,
        offset=offset,
        has_more=offset + limit < len(posts),
    )
