import asyncio
import json
from datetime import datetime, timezone

import pytest

from blog_digest.src import (
    AppConstants,
    FetchError,
    FetchOptions,
    RobotsDisallowedError,
    ScraperSettings,
)
from blog_digest.src.scrapers import (
    AnthropicScraper,
    AppleMLScraper,
    AwsArchitectureScraper,
    CloudflareScraper,
    DeepMindScraper,
    GenericHtmlScraper,
    GoogleResearchScraper,
    HuggingFaceScraper,
    LinkedInEngineeringScraper,
    NetflixResearchScraper,
    NvidiaDeveloperScraper,
    OpenAIScraper,
    RssScraper,
    SpotifyEngineeringScraper,
    StripeEngineeringScraper,
    UberEngineeringScraper,
    archives,
)

FROZEN_NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _fetch(scraper, **options):
    return asyncio.run(scraper.fetch(FetchOptions(**options)))


def _next_data(data: dict) -> str:
    return (
        '<html><body><script id="__NEXT_DATA__" type="application/json">'
        f"{json.dumps(data)}</script></body></html>"
    )


@pytest.fixture
def build(make_source, state, settings):
    def factory(scraper_cls, client, source_id="example", **source_fields):
        return scraper_cls(make_source(source_id, **source_fields), client, state, settings)

    return factory


@pytest.fixture
def frozen_clock(monkeypatch):
    monkeypatch.setattr(archives, "utc_now", lambda: FROZEN_NOW)


class TestAppleML:
    URL = "https://machinelearning.apple.com/research"

    def _page(self) -> str:
        posts = [
            {
                "slug": f"post-{i}",
                "title": f"Apple research post {i}",
                "published": f"2024-01-{i + 1:02d}",
                "authors": ["Alice", "Bob"],
                "body": "x" * 2000,
            }
            for i in range(12)
        ]
        return _next_data({"props": {"pageProps": {"posts": posts}}})

    def test_pages_are_sliced_from_one_snapshot(self, build, fake_client):
        client = fake_client({self.URL: self._page()})
        scraper = build(AppleMLScraper, client, "apple-ml")

        first = _fetch(scraper, page=1, posts_per_page=5)
        last = _fetch(scraper, page=3, posts_per_page=5)

        assert client.count(self.URL) == 1
        assert [p.title for p in first.posts][:2] == [
            "Apple research post 11",
            "Apple research post 10",
        ]
        assert first.has_more is True
        assert first.next_page_url == "?page=2"
        assert first.posts[0].author == "Alice, Bob"
        assert len(first.posts[0].raw_html) == 1000
        assert len(last.posts) == 2
        assert last.has_more is False
        assert last.next_page_url is None

    def test_missing_state_blob_gives_empty_uncached_result(self, build, fake_client):
        client = fake_client({self.URL: "<html><body>redesigned</body></html>"})
        scraper = build(AppleMLScraper, client, "apple-ml")

        result = _fetch(scraper)
        _fetch(scraper)

        assert result.posts == []
        assert result.has_more is False
        assert client.count(self.URL) == 2


class TestNetflixResearch:
    URL = "https://research.netflix.com/archive"

    def _page(self) -> str:
        apollo = {
            '$ROOT_QUERY.articleCollection({"limit":500})': {
                "items": [
                    {"__ref": "Article:1"},
                    {"type": "id", "id": "Article:2"},
                    {"__ref": "Article:3"},
                ]
            },
            "Article:1": {
                "title": "Streaming at scale",
                "link": "https://netflixtechblog.com/streaming-at-scale",
                "date": "2024-05-01",
                "image": {"__ref": "Asset:1"},
                "authorCollection": {"__ref": "Authors:1"},
            },
            "Asset:1": {"url": "https://images.example.com/streaming.png"},
            "Authors:1": {"items": [{"__ref": "Person:1"}]},
            "Person:1": {"firstName": "Ada", "lastName": "Lovelace"},
            "Article:2": {
                "title": "A paper on recommendations",
                "link": "https://research.netflix.com/publication/recommendations",
                "date": "2024-04-01",
            },
            "Article:3": {"title": "", "link": "https://research.netflix.com/empty"},
        }
        return _next_data(
            {"props": {"pageProps": {"serverState": {"apollo": {"data": apollo}}}}}
        )

    def test_references_are_resolved(self, build, fake_client):
        client = fake_client({self.URL: self._page()})

        result = _fetch(build(NetflixResearchScraper, client, "netflix-research"))

        blog, paper = result.posts
        assert blog.title == "Streaming at scale"
        assert blog.author == "Ada Lovelace"
        assert blog.image_url == "https://images.example.com/streaming.png"
        assert blog.category == "blog"
        assert paper.category == "publication"
        assert paper.author is None

    def test_category_filter(self, build, fake_client):
        client = fake_client({self.URL: self._page()})
        scraper = build(NetflixResearchScraper, client, "netflix-research")

        result = _fetch(scraper, category="publication")

        assert [p.title for p in result.posts] == ["A paper on recommendations"]
        assert _fetch(scraper, category="all").posts[0].category == "blog"


class TestHuggingFace:
    def test_featured_then_community_pages(self, build, fake_client):
        client = fake_client(
            {
                "https://huggingface.co/api/blog": json.dumps(
                    {
                        "allBlogs": [
                            {
                                "title": "Featured post",
                                "url": "/blog/featured",
                                "publishedAt": "2024-03-01T00:00:00.000Z",
                                "thumbnail": "/blog/assets/featured.png",
                                "authorsData": [{"fullname": "Jane Doe"}],
                            }
                        ]
                    }
                ),
                "https://huggingface.co/api/blog/community?p=2": json.dumps(
                    {
                        "posts": [{"title": "Community post", "url": "/blog/community-1"}],
                        "numItemsPerPage": 20,
                        "numTotalItems": 45,
                    }
                ),
                "https://huggingface.co/api/blog/community?p=3": json.dumps(
                    {"posts": [], "numItemsPerPage": 20, "numTotalItems": 45}
                ),
            }
        )
        scraper = build(HuggingFaceScraper, client, "huggingface")

        featured = _fetch(scraper, page=1)
        community = _fetch(scraper, page=2)
        last = _fetch(scraper, page=3)

        post = featured.posts[0]
        assert post.url == "https://huggingface.co/blog/featured"
        assert post.image_url == "https://huggingface.co/blog/assets/featured.png"
        assert post.author == "Jane Doe"
        assert featured.has_more is True
        assert community.posts[0].author == "Hugging Face"
        assert community.has_more is True
        assert community.next_page_url == "https://huggingface.co/api/blog/community?p=3"
        assert last.has_more is False

    def test_malformed_json_gives_empty_result(self, build, fake_client):
        client = fake_client({"https://huggingface.co/api/blog": "<html>oops</html>"})

        result = _fetch(build(HuggingFaceScraper, client, "huggingface"))

        assert result.posts == []
        assert result.has_more is False


class TestGoogleResearch:
    BLOG_2024 = "https://research.google/blog/2024/"
    PUBS_1 = "https://research.google/pubs/?page=1"

    def test_blog_archive_by_year(self, build, fake_client, frozen_clock):
        client = fake_client(
            {
                self.BLOG_2024: (
                    '<a class="glue-card" href="/blog/a-research-post/">'
                    '<span class="headline-5">A research post</span>'
                    '<span class="glue-label">March 5, 2024</span></a>'
                )
            },
            default="<html></html>",
        )
        scraper = build(GoogleResearchScraper, client, "google-research")

        result = _fetch(scraper, page=1, category="blog")

        assert client.requested == [self.BLOG_2024]
        post = result.posts[0]
        assert post.url == "https://research.google/blog/a-research-post/"
        assert post.published_at == datetime(2024, 3, 5, tzinfo=timezone.utc)
        assert post.category == "blog"
        assert result.has_more is True
        assert result.categories == ["blog", "publication"]

    def test_blog_archive_stops_at_first_year(self, build, fake_client, frozen_clock):
        client = fake_client(default="<html></html>")
        scraper = build(GoogleResearchScraper, client, "google-research")

        oldest = _fetch(scraper, page=19, category="blog")
        beyond = _fetch(scraper, page=20, category="blog")

        assert client.requested == ["https://research.google/blog/2006/"]
        assert oldest.has_more is False
        assert beyond.posts == []
        assert beyond.has_more is False

    def test_failed_blog_year_yields_partial_publications(
        self, build, fake_client, frozen_clock
    ):
        client = fake_client(
            {
                self.PUBS_1: (
                    '<div><a href="/pubs/retrieval-paper/">A paper about retrieval</a>'
                    ' Short abstract <a href="/pubs/retrieval-paper/">View details</a></div>'
                )
            }
        )

        result = _fetch(build(GoogleResearchScraper, client, "google-research"))

        assert [p.title for p in result.posts] == ["A paper about retrieval"]
        assert result.posts[0].summary == "Short abstract"
        assert result.has_more is False


class TestGenericHtml:
    LIST_URL = "https://example.com/blog"
    PAGE_ONE = (
        "<main><article><h2>First generic article</h2>"
        '<a href="/blog/first-generic">Read</a></article>'
        "<article><h2>Second generic article</h2>"
        '<a href="/blog/second-generic">Read</a></article></main>'
        '<div class="pagination"><a href="/blog?page=2">2</a></div>'
    )
    PAGE_TWO = (
        "<main><article><h2>Third generic article</h2>"
        '<a href="/blog/third-generic">Read</a></article></main>'
    )

    def test_paging_terminates_on_empty_page(self, build, fake_client):
        client = fake_client(
            {
                self.LIST_URL: self.PAGE_ONE,
                f"{self.LIST_URL}?page=2": self.PAGE_TWO,
                f"{self.LIST_URL}?page=3": "<main></main>",
            },
            default="<html><body><p>Nothing structured here</p></body></html>",
        )
        scraper = build(GenericHtmlScraper, client, blog_list_url=self.LIST_URL)

        first = _fetch(scraper, page=1)
        second = _fetch(scraper, page=2)
        third = _fetch(scraper, page=3)

        assert [p.title for p in first.posts] == [
            "First generic article",
            "Second generic article",
        ]
        assert first.has_more is True
        assert first.detected_pattern == f"{self.LIST_URL}?page=2"
        assert first.next_page_url == f"{self.LIST_URL}?page=2"
        assert [p.url for p in second.posts] == ["https://example.com/blog/third-generic"]
        assert second.has_more is True
        assert third.posts == []
        assert third.has_more is False
        assert scraper.state.pagination("example").pages_fetched == 3

    @staticmethod
    def _listing(*numbers: int, next_href: str | None = None) -> str:
        articles = "".join(
            f"<article><h2>Generic article number {n}</h2>"
            f'<a href="/blog/generic-post-{n}">Read More</a></article>'
            for n in numbers
        )
        pagination = (
            f'<div class="pagination"><a href="{next_href}">Next</a></div>'
            if next_href
            else ""
        )
        return f"<main>{articles}</main>{pagination}"

    def test_repeated_listing_stops_paging(self, build, fake_client):
        client = fake_client(default=self._listing(1, 2))
        scraper = build(GenericHtmlScraper, client, blog_list_url=self.LIST_URL)

        first = _fetch(scraper, page=1)
        second = _fetch(scraper, page=2)

        assert first.has_more is True
        assert second.has_more is False
        assert {p.url for p in second.posts} == {p.url for p in first.posts}
        assert scraper.state.pagination("example").seen_urls == {
            "https://example.com/blog/generic-post-1",
            "https://example.com/blog/generic-post-2",
        }

    def test_paging_stops_at_listing_page_cap(self, build, fake_client):
        last = AppConstants.MAX_LISTING_PAGES
        client = fake_client(
            {
                f"{self.LIST_URL}?page={last - 1}&": self._listing(
                    1, next_href=f"/blog?page={last}"
                ),
                f"{self.LIST_URL}?page={last}&": self._listing(
                    2, next_href=f"/blog?page={last + 1}"
                ),
            },
            default="<html><body><p>Article body</p></body></html>",
        )
        scraper = build(GenericHtmlScraper, client, blog_list_url=self.LIST_URL)

        before_cap = _fetch(scraper, page=last - 1)
        at_cap = _fetch(scraper, page=last)

        assert before_cap.has_more is True
        assert [p.url for p in at_cap.posts] == ["https://example.com/blog/generic-post-2"]
        assert at_cap.has_more is False

    def test_robots_disallow(self, build, fake_client):
        client = fake_client(
            {"https://example.com/robots.txt": "User-agent: *\nDisallow: /blog\n"}
        )
        scraper = build(GenericHtmlScraper, client, blog_list_url=self.LIST_URL)

        with pytest.raises(RobotsDisallowedError):
            _fetch(scraper)
        assert self.LIST_URL not in client.requested


class TestPagedListings:
    AWS_URL = "https://aws.amazon.com/blogs/architecture/"

    @staticmethod
    def _aws_page(*numbers: int) -> str:
        return "".join(
            '<article class="blog-post"><h2>'
            f'<a href="https://aws.amazon.com/blogs/architecture/post-{n}/">'
            f"Architecture post number {n}</a></h2>"
            f'<time datetime="2024-01-{n:02d}">Jan {n}</time></article>'
            for n in numbers
        )

    def test_short_page_ends_paging(self, build, fake_client):
        client = fake_client(
            {
                self.AWS_URL: self._aws_page(1, 2),
                f"{self.AWS_URL}page/2/": self._aws_page(3, 4),
                f"{self.AWS_URL}page/3/": self._aws_page(5),
            }
        )
        scraper = build(AwsArchitectureScraper, client, "aws-architecture")

        pages = [_fetch(scraper, page=page, posts_per_page=2) for page in (1, 2, 3)]

        assert [len(page.posts) for page in pages] == [2, 2, 1]
        assert [page.has_more for page in pages] == [True, True, False]
        assert pages[1].next_page_url == f"{self.AWS_URL}page/3/"
        assert pages[2].next_page_url is None
        assert pages[0].detected_pattern == "/page/"

    def test_localized_duplicates_are_skipped(self, build, fake_client):
        client = fake_client(
            {
                "https://blog.cloudflare.com/": (
                    '<article><h2><a href="/post-one/">Cloudflare post one</a></h2>'
                    '<time datetime="2024-01-01">Jan 1</time></article>'
                    '<article><h2><a href="/de-de/post-one/">Lokalisierter Beitrag</a>'
                    "</h2></article>"
                )
            }
        )

        result = _fetch(build(CloudflareScraper, client, "cloudflare"))

        assert [p.url for p in result.posts] == ["https://blog.cloudflare.com/post-one/"]
        assert result.next_page_url == "https://blog.cloudflare.com/page/2/"


class TestSpotifyEngineering:
    HOME = "https://engineering.atspotify.com/"
    YEAR_2024 = "https://engineering.atspotify.com/2024/"

    @staticmethod
    def _card(slug: str, title: str, date: str) -> str:
        return (
            f'<article><a href="/{slug}/"><h2>{title}</h2></a>'
            f'<time datetime="{date}">{date}</time></article>'
        )

    def test_partial_archives_are_served_but_not_cached(
        self, build, fake_client, frozen_clock
    ):
        client = fake_client(
            {
                self.HOME: self._card("a", "Post A title", "2024-03-01")
                + self._card("b", "Post B title", "2024-02-01"),
                self.YEAR_2024: self._card("b", "Post B title", "2024-02-01")
                + self._card("c", "Post C title", "2024-04-01"),
            }
        )
        scraper = build(SpotifyEngineeringScraper, client, "spotify-engineering")

        result = _fetch(scraper, posts_per_page=2)
        _fetch(scraper, posts_per_page=2)

        assert [p.title for p in result.posts] == ["Post C title", "Post A title"]
        assert result.posts[0].author == "Spotify Engineering"
        assert result.has_more is False
        assert client.count(self.HOME) == 2

    def test_every_archive_failing_raises(self, build, fake_client, frozen_clock):
        scraper = build(SpotifyEngineeringScraper, fake_client(), "spotify-engineering")

        with pytest.raises(FetchError, match=r"^\[spotify-engineering\] Failed to fetch"):
            _fetch(scraper)


class TestAnthropic:
    RESEARCH = "https://www.anthropic.com/research"
    ALIGNMENT = "https://www.anthropic.com/research/team/alignment"

    def test_list_and_fallback_pages_are_merged(self, build, fake_client):
        client = fake_client(
            {
                self.RESEARCH: (
                    '<ul class="PublicationList_list"><li>'
                    '<a class="PublicationList_listItem" href="/research/constitutional-ai">'
                    "<time>Dec 15, 2022</time>"
                    '<span class="PublicationList_subject">Alignment</span>'
                    '<span class="PublicationList_title">Constitutional AI harmlessness</span>'
                    "</a></li></ul>"
                ),
                self.ALIGNMENT: (
                    "<table><tr><td>Mar 4, 2024</td><td>Interpretability</td>"
                    '<td><a href="/research/mapping-mind">Mapping the mind of a model</a>'
                    "</td></tr></table>"
                ),
            }
        )
        scraper = build(AnthropicScraper, client, "anthropic")

        result = _fetch(scraper)

        assert [p.url for p in result.posts] == [
            "https://www.anthropic.com/research/mapping-mind",
            "https://www.anthropic.com/research/constitutional-ai",
        ]
        assert result.posts[0].sub_category == "Interpretability"
        assert result.posts[1].sub_category == "Alignment"
        assert result.posts[1].published_at == datetime(2022, 12, 15, tzinfo=timezone.utc)
        assert result.has_more is False

    def test_later_pages_are_empty(self, build, fake_client):
        client = fake_client()

        result = _fetch(build(AnthropicScraper, client, "anthropic"), page=2)

        assert result.posts == []
        assert result.has_more is False
        assert client.requested == []


class TestSinglePageListings:
    STRIPE_URL = "https://stripe.com/blog/engineering"
    UBER_URL = "https://www.uber.com/en-US/blog/engineering/"

    def test_stripe_pages_are_sliced(self, build, fake_client):
        cards = "".join(
            '<article class="BlogIndexPost"><h1>'
            f'<a class="BlogIndexPost__titleLink" href="/blog/post-{i}">Stripe post {i}</a>'
            f"</h1><time>January {i}, 2024</time>"
            f'<img src="/img/{i}.png"></article>'
            for i in (1, 2, 3)
        )
        client = fake_client({self.STRIPE_URL: cards})
        scraper = build(StripeEngineeringScraper, client, "stripe-engineering")

        first = _fetch(scraper, page=1, posts_per_page=2)
        second = _fetch(scraper, page=2, posts_per_page=2)

        assert [p.url for p in first.posts] == [
            "https://stripe.com/blog/post-1",
            "https://stripe.com/blog/post-2",
        ]
        assert first.posts[0].author == "Stripe Engineering"
        assert first.posts[0].image_url == "https://stripe.com/img/1.png"
        assert first.has_more is True
        assert first.next_page_url == "?page=2"
        assert len(second.posts) == 1
        assert second.has_more is False
        assert client.count(self.STRIPE_URL) == 1

    def test_uber_skips_navigation_links(self, build, fake_client):
        client = fake_client(
            {
                self.UBER_URL: (
                    '<nav><a href="/en-US/blog/engineering/">Engineering blog home</a>'
                    '<a href="/en-US/blog/careers-at-uber/">Careers at Uber and more</a></nav>'
                    '<div class="card"><a href="/en-US/blog/scaling-kafka/">'
                    "<h5>Engineering, Scaling Kafka at Uber</h5></a>"
                    '<p>March 3, 2024</p><img src="/img/kafka.png"></div>'
                    '<div class="card"><a href="/en-US/blog/undated/">'
                    "<h5>A card without any date</h5></a></div>"
                )
            }
        )

        result = _fetch(build(UberEngineeringScraper, client, "uber-engineering"))

        assert len(result.posts) == 1
        post = result.posts[0]
        assert post.title == "Scaling Kafka at Uber"
        assert post.url == "https://www.uber.com/en-US/blog/scaling-kafka/"
        assert post.published_at == datetime(2024, 3, 3, tzinfo=timezone.utc)
        assert post.image_url == "https://www.uber.com/img/kafka.png"
        assert post.author == "Uber Engineering"


class TestLinkCrawls:
    NEWS_URL = "https://openai.com/news/"
    SITEMAP_URL = "https://www.linkedin.com/blog/engineering/sitemap.xml"

    def _openai_client(self, fake_client):
        return fake_client(
            {
                self.NEWS_URL: (
                    '<main><a href="/index/introducing-something/">x</a>'
                    '<a href="/index/another-release-post/">y</a>'
                    '<a href="/about/">About</a><a href="/index/">Index</a></main>'
                ),
                "https://openai.com/index/introducing-something/": (
                    '<head><meta property="og:title" content="Introducing something">'
                    '<meta property="article:published_time" content="2024-05-01T00:00:00Z">'
                    '<meta property="og:description" content="What it does"></head>'
                ),
                "https://openai.com/index/another-release-post/": (
                    "<head><title>Another release | OpenAI</title></head>"
                    '<body><time datetime="2024-06-01">June 1</time></body>'
                ),
            }
        )

    def test_openai_details_fetched_for_slice_only(self, build, fake_client):
        client = self._openai_client(fake_client)

        result = _fetch(build(OpenAIScraper, client, "openai"), posts_per_page=1)

        assert [p.title for p in result.posts] == ["Introducing something"]
        assert result.posts[0].summary == "What it does"
        assert "https://openai.com/index/another-release-post/" not in client.requested
        assert result.has_more is True

    def test_openai_posts_sorted_newest_first(self, build, fake_client):
        client = self._openai_client(fake_client)

        result = _fetch(build(OpenAIScraper, client, "openai"))

        assert [p.title for p in result.posts] == ["Another release", "Introducing something"]
        assert all(p.author == "OpenAI" for p in result.posts)
        assert result.has_more is False

    def test_linkedin_sitemap_category_filter(self, build, fake_client):
        client = fake_client(
            {
                self.SITEMAP_URL: (
                    '<?xml version="1.0"?><urlset>'
                    "<url><loc>https://www.linkedin.com/blog/engineering/ai/llm-apps</loc></url>"
                    "<url><loc>https://www.linkedin.com/blog/engineering/data/data-lake</loc></url>"
                    "<url><loc>https://www.linkedin.com/blog/member/other</loc></url>"
                    "</urlset>"
                ),
                "https://www.linkedin.com/blog/engineering/ai/llm-apps": (
                    '<h1 class="title">Building LLM apps</h1>'
                    '<div class="author-profile__author-text-container">'
                    "<a>Authored by Jane Doe</a></div>"
                    '<time datetime="2024-02-02">Feb 2</time>'
                ),
            }
        )
        scraper = build(
            LinkedInEngineeringScraper,
            client,
            "linkedin-engineering",
            categories=[
                {"id": "all", "name": "All", "url": "https://www.linkedin.com/blog/engineering/"},
                {"id": "ai", "name": "AI", "url": "https://www.linkedin.com/blog/engineering/ai/"},
            ],
        )

        result = _fetch(scraper, category="ai")

        assert [p.title for p in result.posts] == ["Building LLM apps"]
        post = result.posts[0]
        assert post.author == "Jane Doe"
        assert post.category == "ai"
        assert post.published_at == datetime(2024, 2, 2, tzinfo=timezone.utc)
        assert result.categories == ["all", "ai"]
        assert result.has_more is False


class TestFeedAdapters:
    NVIDIA_FEED = "https://developer.nvidia.com/blog/feed/"

    def test_nvidia_images_come_from_article_pages(self, build, fake_client):
        client = fake_client(
            {
                self.NVIDIA_FEED: (
                    "<rss><channel>"
                    "<item><title>Older GPU post</title>"
                    "<link>https://developer.nvidia.com/blog/older/</link>"
                    "<pubDate>Mon, 01 Jan 2024 00:00:00 GMT</pubDate></item>"
                    "<item><title>Newer GPU post</title>"
                    "<link>https://developer.nvidia.com/blog/newer/</link>"
                    "<pubDate>Tue, 02 Jan 2024 00:00:00 GMT</pubDate></item>"
                    "</channel></rss>"
                ),
                "https://developer.nvidia.com/blog/newer/": (
                    '<meta property="og:image" content="http://cdn.nvidia.com/newer.png">'
                ),
            }
        )
        scraper = build(
            NvidiaDeveloperScraper, client, "nvidia-developer", rss=self.NVIDIA_FEED
        )

        result = _fetch(scraper)

        newer, older = result.posts
        assert newer.image_url == "https://cdn.nvidia.com/newer.png"
        assert newer.author == "NVIDIA"
        assert older.title == "Older GPU post"
        assert older.image_url is None
        assert result.detected_pattern == "rss-with-html-enrichment"

    def test_deepmind_keeps_blog_posts_when_other_sections_fail(self, build, fake_client):
        feed = "https://deepmind.google/blog/rss.xml"
        client = fake_client(
            {
                feed: (
                    "<rss><channel><item><title>DeepMind blog post</title>"
                    "<link>https://deepmind.google/discover/blog/post/</link>"
                    "</item></channel></rss>"
                )
            }
        )
        scraper = build(DeepMindScraper, client, "deepmind", rss=feed)

        result = _fetch(scraper)

        assert [p.category for p in result.posts] == ["blog"]
        assert result.categories == ["blog"]
        assert result.has_more is False


class TrackingClient:
    """Counts how many fetches are in flight at once."""

    def __init__(self):
        self.in_flight = 0
        self.peak = 0
        self.requested: list[str] = []

    async def fetch_text(self, url: str, retries: int | None = None) -> str:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        self.requested.append(url)
        await asyncio.sleep(0)
        self.in_flight -= 1
        return url


class TestDetailBatches:
    URLS = [f"https://example.com/blog/post-{n}" for n in range(12)]

    def test_at_most_one_batch_in_flight(self, make_source, state, settings):
        client = TrackingClient()
        scraper = RssScraper(make_source(), client, state, settings)

        fetched = asyncio.run(scraper._fetch_in_batches(self.URLS, client.fetch_text))

        assert fetched == self.URLS
        assert client.peak == settings.detail_batch_size == 5

    def test_politeness_delay_between_batches(self, make_source, state, monkeypatch):
        delays: list[float] = []
        real_sleep = asyncio.sleep

        async def recording_sleep(delay, *args, **kwargs):
            delays.append(delay)
            await real_sleep(0)

        monkeypatch.setattr(asyncio, "sleep", recording_sleep)
        scraper = RssScraper(
            make_source(),
            TrackingClient(),
            state,
            ScraperSettings(politeness_delay_seconds=0.25),
        )

        async def fetch_one(url: str) -> str:
            return url

        asyncio.run(scraper._fetch_in_batches(self.URLS, fetch_one))

        assert delays == [0.25, 0.25]
