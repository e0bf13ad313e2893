from typing import Type

from .errors import NoFetchStrategyError
from .http_client import HttpClient
from .models import Source
from .scrapers import (
    AmazonScienceScraper,
    AnthropicScraper,
    AppleMLScraper,
    AwsArchitectureScraper,
    BaseScraper,
    CloudflareScraper,
    DeepMindScraper,
    GenericHtmlScraper,
    GoogleResearchScraper,
    HuggingFaceScraper,
    LinkedInEngineeringScraper,
    MetaEngineeringScraper,
    MetaResearchScraper,
    MicrosoftResearchScraper,
    NetflixResearchScraper,
    NvidiaDeveloperScraper,
    OpenAIScraper,
    RssScraper,
    ScraperSettings,
    ScraperState,
    SpotifyEngineeringScraper,
    StripeEngineeringScraper,
    UberEngineeringScraper,
)


class ScraperRegistry:
    """Resolves a source to the adapter that fetches it.

    Custom adapters are looked up by source id first; feed-backed ones also
    need the source to carry an RSS URL. Otherwise a source falls back to its
    RSS feed, then to generic HTML extraction when scraping is
    allowed and a listing URL is configured.
    """

    _SCRAPER_MAPPING: dict[str, Type[BaseScraper]] = {
        "amazon-science": AmazonScienceScraper,
        "anthropic": AnthropicScraper,
        "apple-ml": AppleMLScraper,
        "aws-architecture": AwsArchitectureScraper,
        "cloudflare": CloudflareScraper,
        "deepmind": DeepMindScraper,
        "google-research": GoogleResearchScraper,
        "huggingface": HuggingFaceScraper,
        "linkedin-engineering": LinkedInEngineeringScraper,
        "meta-engineering": MetaEngineeringScraper,
        "meta-research": MetaResearchScraper,
        "microsoft-research": MicrosoftResearchScraper,
        "netflix-research": NetflixResearchScraper,
        "nvidia-developer": NvidiaDeveloperScraper,
        "openai": OpenAIScraper,
        "spotify-engineering": SpotifyEngineeringScraper,
        "stripe-engineering": StripeEngineeringScraper,
        "uber-engineering": UberEngineeringScraper,
    }

    def __init__(self, mapping: dict[str, Type[BaseScraper]] | None = None):
        self._mapping = dict(self._SCRAPER_MAPPING if mapping is None else mapping)

    def register(self, source_id: str, scraper_class: Type[BaseScraper]) -> None:
        self._mapping[source_id] = scraper_class

    def custom_source_ids(self) -> list[str]:
        return sorted(self._mapping)

    def resolve(self, source: Source) -> Type[BaseScraper]:
        scraper_class = self._mapping.get(source.id)
        if scraper_class and (source.rss or not scraper_class.requires_rss):
            return scraper_class
        if source.rss:
            return RssScraper
        if source.allow_scrape and source.blog_list_url:
            return GenericHtmlScraper
        raise NoFetchStrategyError(source.id)

    def create(
        self,
        source: Source,
        client: HttpClient,
        state: ScraperState,
        settings: ScraperSettings | None = None,
    ) -> BaseScraper:
        return self.resolve(source)(source, client, state, settings)

    def describe(self, source: Source) -> str:
        """Name of the adapter a source resolves to, or ``"unavailable"``."""
        try:
            return self.resolve(source).__name__
        except NoFetchStrategyError:
            return "unavailable"
