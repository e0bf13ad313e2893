import json
from datetime import datetime, timezone

import pytest

from blog_digest.src import ParseError, Post
from blog_digest.src.extractors import (
    ExtractionStrategy,
    dig,
    extract_listing_posts,
    extract_page_details,
    is_post_url,
    is_valid_href,
    load_next_data,
)

PAGE_URL = "https://example.com/blog"


def _json_ld(data) -> str:
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'


def test_json_ld_takes_priority_over_html_heuristics():
    html = (
        "<html><head>"
        + _json_ld(
            {
                "@context": "https://schema.org",
                "@type": "BlogPosting",
                "headline": "Structured headline",
                "url": "https://example.com/blog/structured",
                "datePublished": "2024-02-01",
                "author": {"@type": "Person", "name": "Grace"},
            }
        )
        + "</head><body><article><h2>Heuristic article title</h2>"
        '<a href="/blog/heuristic">Read more</a></article></body></html>'
    )

    listing = extract_listing_posts(html, PAGE_URL, "example")

    assert listing.strategy == ExtractionStrategy.JSON_LD
    assert [(p.title, p.url) for p in listing.posts] == [
        ("Structured headline", "https://example.com/blog/structured")
    ]
    assert listing.posts[0].author == "Grace"
    assert listing.posts[0].published_at == datetime(2024, 2, 1, tzinfo=timezone.utc)


def test_malformed_json_ld_block_does_not_abort_other_blocks():
    html = (
        '<script type="application/ld+json">{"@type": "BlogPosting", broken</script>'
        + _json_ld(
            {"@type": "Article", "headline": "Valid one", "url": "/blog/valid-one"}
        )
    )

    listing = extract_listing_posts(html, PAGE_URL, "example")

    assert [p.url for p in listing.posts] == ["https://example.com/blog/valid-one"]


def test_json_ld_wrappers_and_graph_are_flattened():
    html = _json_ld(
        {
            "@graph": [
                {
                    "@type": "Blog",
                    "blogPost": [
                        {"@type": "BlogPosting", "headline": "First", "url": "/blog/first"},
                        {"@type": "BlogPosting", "headline": "First", "url": "/blog/first"},
                    ],
                },
                {
                    "@type": "ItemList",
                    "itemListElement": [
                        {
                            "@type": "ListItem",
                            "url": "https://example.com/blog/second",
                            "item": {"@type": "Article", "name": "Second"},
                        }
                    ],
                },
            ]
        }
    )

    posts = extract_listing_posts(html, PAGE_URL, "example").posts

    assert [p.url for p in posts] == [
        "https://example.com/blog/first",
        "https://example.com/blog/second",
    ]


def test_container_heuristics_take_heading_title_and_absolute_url():
    html = (
        "<main><article><h2>Scaling the search index</h2>"
        '<a href="/blog/scaling-search">Read</a></article>'
        '<article><h2>Pseudo link only</h2><a href="javascript:void(0)">x</a></article>'
        "</main>"
    )

    listing = extract_listing_posts(html, PAGE_URL, "example")

    assert listing.strategy == ExtractionStrategy.HTML_CONTAINERS
    assert [(p.title, p.url) for p in listing.posts] == [
        ("Scaling the search index", "https://example.com/blog/scaling-search")
    ]


def test_anchor_fallback_when_no_container_matches():
    html = '<div><h3><a href="/post/fallback-link">A fallback title</a></h3></div>'

    listing = extract_listing_posts(html, PAGE_URL, "example")

    assert listing.strategy == ExtractionStrategy.HTML_ANCHORS
    assert [p.url for p in listing.posts] == ["https://example.com/post/fallback-link"]


def test_short_titles_are_rejected():
    html = '<div><h3><a href="/post/tiny">Tiny</a></h3></div>'

    listing = extract_listing_posts(html, PAGE_URL, "example")

    assert listing.posts == []
    assert listing.strategy == ExtractionStrategy.NONE


@pytest.mark.parametrize(
    "href", ["javascript:alert(1)", "mailto:a@b.c", "tel:123", "data:text/plain,x", "#top", ""]
)
def test_pseudo_links_are_invalid(href):
    assert not is_valid_href(href)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://example.com/blog/some-post", True),
        ("https://example.com/2024/05/some-post", True),
        ("https://example.com/research/paper", True),
        ("https://example.com/about", False),
        ("https://example.com/blog/", False),
        ("https://example.com/blog/post#comments", False),
    ],
)
def test_post_url_heuristics(url, expected):
    assert is_post_url(url) is expected


def test_post_id_is_stable_across_extractions():
    first = Post.create("example", "/blog/stable-post#intro", "Stable", base_url=PAGE_URL)
    second = Post.create("example", "https://example.com/blog/stable-post", "Stable")

    assert first.id == second.id == "example-blog-stable-post"
    assert first.url == second.url
    assert first.fetched_at <= second.fetched_at


def test_page_details():
    html = (
        "<html><head>"
        '<meta property="og:image" content="/images/hero.jpg">'
        '<meta name="author" content="Linus">'
        '<meta property="og:description" content="Short description">'
        "<script>var tracking = 1;</script></head><body><nav>Menu items</nav>"
        "<article><h1>Detailed post title</h1>"
        '<time datetime="2024-04-02T08:00:00Z">April 2</time>'
        f"<p>{'Body text. ' * 20}</p></article></body></html>"
    )

    details = extract_page_details(html, "https://example.com/blog/detail", "Fallback")

    assert details.title == "Detailed post title"
    assert details.image_url == "https://example.com/images/hero.jpg"
    assert details.author == "Linus"
    assert details.description == "Short description"
    assert details.published_at == datetime(2024, 4, 2, 8, tzinfo=timezone.utc)
    assert "Body text." in details.text
    assert "Menu items" not in details.text
    assert "tracking" not in details.text


def test_page_details_fall_back_to_link_title():
    details = extract_page_details("<p>nothing</p>", "https://example.com/x", "Link title")

    assert details.title == "Link title"
    assert details.image_url is None


def test_next_data_parsing():
    html = (
        '<script id="__NEXT_DATA__" type="application/json">'
        '{"props": {"pageProps": {"posts": [{"slug": "a"}]}}}</script>'
    )

    data = load_next_data(html)

    assert dig(data, "props", "pageProps", "posts") == [{"slug": "a"}]
    assert dig(data, "props", "missing", default=[]) == []


@pytest.mark.parametrize(
    "html",
    [
        "<html><body>no state</body></html>",
        '<script id="__NEXT_DATA__">{not json</script>',
        '<script id="__NEXT_DATA__">[1, 2]</script>',
    ],
)
def test_next_data_errors_raise_parse_error(html):
    with pytest.raises(ParseError):
        load_next_data(html)
