from .config import Config, Resources, Scraping, Storage

__all__ = ["Config", "Resources", "Scraping", "Storage"]
