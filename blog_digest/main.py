import argparse
import asyncio
import json
import sys
from typing import Any

from blog_digest.configs import Config
from blog_digest.src import (
    BlogDigestError,
    PostsPage,
    ScraperRegistry,
    logger,
    parse_published_date,
    query_posts,
    set_log_level,
)


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _list_sources(config: Config, args: argparse.Namespace) -> int:
    registry = ScraperRegistry()
    for source in config.sources:
        print(f"{source.id:<24} {registry.describe(source):<28} {source.homepage}")
    return 0


def _fetch(config: Config, args: argparse.Namespace) -> int:
    aggregator = config.build_aggregator()
    options = aggregator.default_options(
        page=args.page,
        category=args.category,
        research_area=args.research_area,
        **({"max_posts": args.max_posts} if args.max_posts else {}),
    )
    page = asyncio.run(
        aggregator.fetch_posts(
            args.source_id,
            options,
            force_overwrite=args.force,
            timeout=args.timeout,
        )
    )
    _print_json(page.model_dump(mode="json", by_alias=True, exclude_none=True))
    return 0


def _warm(config: Config, args: argparse.Namespace) -> int:
    aggregator = config.build_aggregator()
    results = asyncio.run(
        aggregator.fetch_many(args.source_ids or None, concurrency=args.concurrency)
    )
    failed = 0
    for source_id, result in results.items():
        if isinstance(result, PostsPage):
            status = f"{len(result.posts)} posts{' (cached)' if result.cached else ''}"
        else:
            failed += 1
            status = f"failed: {result}"
        print(f"{source_id:<24} {status}")
    logger.info("Warmed %d/%d sources", len(results) - failed, len(results))
    return 1 if failed == len(results) and results else 0


def _query(config: Config, args: argparse.Namespace) -> int:
    cache = config.build_post_cache()
    result = query_posts(
        cache.all_posts(),
        source_id=args.source_id,
        keyword=args.keyword,
        date_from=parse_published_date(args.date_from),
        date_to=parse_published_date(args.date_to),
        limit=args.limit,
        offset=args.offset,
    )
    _print_json(result.model_dump(mode="json", by_alias=True, exclude_none=True))
    return 0


def _clear_cache(config: Config, args: argparse.Namespace) -> int:
    config.build_post_cache().clear()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Blog Digest: fetch and paginate posts from engineering blogs"
    )
    parser.add_argument(
        "--log-level", type=str, default=None, help="Override LOG_LEVEL, e.g. DEBUG"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sources_parser = subparsers.add_parser("sources", help="List configured sources")
    sources_parser.set_defaults(handler=_list_sources)

    fetch_parser = subparsers.add_parser("fetch", help="Fetch one page of a source")
    fetch_parser.add_argument("source_id", type=str)
    fetch_parser.add_argument("--page", type=int, default=1)
    fetch_parser.add_argument("--category", type=str, default=None)
    fetch_parser.add_argument("--research-area", type=str, default=None)
    fetch_parser.add_argument("--max-posts", type=int, default=None)
    fetch_parser.add_argument(
        "--force", action="store_true", help="Replace the cached posts for this key"
    )
    fetch_parser.add_argument(
        "--timeout", type=float, default=None, help="Overall timeout in seconds"
    )
    fetch_parser.set_defaults(handler=_fetch)

    warm_parser = subparsers.add_parser("warm", help="Fetch page 1 of every source")
    warm_parser.add_argument("source_ids", nargs="*", default=None)
    warm_parser.add_argument("--concurrency", type=int, default=4)
    warm_parser.set_defaults(handler=_warm)

    posts_parser = subparsers.add_parser("posts", help="Query cached posts")
    posts_parser.add_argument("--source-id", type=str, default=None)
    posts_parser.add_argument("--keyword", type=str, default=None)
    posts_parser.add_argument("--date-from", type=str, default=None)
    posts_parser.add_argument("--date-to", type=str, default=None)
    posts_parser.add_argument("--limit", type=int, default=20)
    posts_parser.add_argument("--offset", type=int, default=0)
    posts_parser.set_defaults(handler=_query)

    clear_parser = subparsers.add_parser("clear-cache", help="Empty the post cache")
    clear_parser.set_defaults(handler=_clear_cache)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)
    config = Config.load()
    try:
        return args.handler(config, args)
    except BlogDigestError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
