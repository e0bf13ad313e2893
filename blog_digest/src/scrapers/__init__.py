from .archives import GoogleResearchScraper, SpotifyEngineeringScraper
from .base import BaseScraper, PartialResults, ScraperSettings, ScraperState, SnapshotStore
from .embedded import AppleMLScraper, HuggingFaceScraper, NetflixResearchScraper
from .feeds import AmazonScienceScraper, DeepMindScraper, NvidiaDeveloperScraper
from .generic import GenericHtmlScraper, RssScraper
from .listings import (
    AwsArchitectureScraper,
    CloudflareScraper,
    MetaEngineeringScraper,
    MetaResearchScraper,
    MicrosoftResearchScraper,
)
from .single_page import (
    AnthropicScraper,
    LinkedInEngineeringScraper,
    OpenAIScraper,
    StripeEngineeringScraper,
    UberEngineeringScraper,
)

__all__ = [
    "AmazonScienceScraper",
    "AnthropicScraper",
    "AppleMLScraper",
    "AwsArchitectureScraper",
    "BaseScraper",
    "CloudflareScraper",
    "DeepMindScraper",
    "GenericHtmlScraper",
    "GoogleResearchScraper",
    "HuggingFaceScraper",
    "LinkedInEngineeringScraper",
    "MetaEngineeringScraper",
    "MetaResearchScraper",
    "MicrosoftResearchScraper",
    "NetflixResearchScraper",
    "NvidiaDeveloperScraper",
    "OpenAIScraper",
    "PartialResults",
    "RssScraper",
    "ScraperSettings",
    "ScraperState",
    "SnapshotStore",
    "SpotifyEngineeringScraper",
    "StripeEngineeringScraper",
    "UberEngineeringScraper",
]
