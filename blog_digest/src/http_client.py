import asyncio
from typing import ClassVar
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import requests
from pydantic import BaseModel, Field
from requests.exceptions import RequestException, SSLError

from .errors import FetchError
from .logger import logger
from .utils import create_retry_decorator


class RequestHeaders:
    USER_AGENT: ClassVar[str] = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    BROWSER: ClassVar[dict[str, str]] = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Cache-Control": "max-age=0",
    }
    MINIMAL: ClassVar[dict[str, str]] = {"User-Agent": USER_AGENT}


class HttpClient(BaseModel):
    max_retries: int = Field(default=3, ge=1)
    retry_multiplier: float = Field(default=1.0, ge=0.0)
    retry_max_wait: float = Field(default=10.0, ge=0.0)
    request_timeout: int = Field(default=30, ge=1)

    async def fetch_text(self, url: str, retries: int | None = None) -> str:
        return await asyncio.to_thread(self.fetch_text_sync, url, retries)

    def fetch_text_sync(self, url: str, retries: int | None = None) -> str:
        attempts = retries or self.max_retries
        retrying_get = create_retry_decorator(
            f"GET {url}",
            max_retries=attempts,
            multiplier=self.retry_multiplier,
            max_wait=self.retry_max_wait,
            retry_on=(RequestException,),
        )(self._get)
        try:
            return retrying_get(url)
        except RequestException as e:
            logger.error("All %d attempts failed for '%s': %s", attempts, url, e)
            raise FetchError(url, str(e)) from e

    def _get(self, url: str) -> str:
        with requests.Session() as session:
            try:
                response = session.get(
                    url,
                    headers=RequestHeaders.BROWSER,
                    timeout=self.request_timeout,
                    allow_redirects=True,
                )
            except SSLError as e:
                logger.warning(
                    "SSL issue detected for '%s', retrying with minimal headers: %s",
                    url,
                    e,
                )
                response = session.get(
                    url,
                    headers=RequestHeaders.MINIMAL,
                    timeout=self.request_timeout,
                    allow_redirects=True,
                )
            response.raise_for_status()
            return response.text


class RobotsPolicy:
    """Best-effort robots.txt check, memoised per host."""

    def __init__(self, user_agent: str = RequestHeaders.USER_AGENT):
        self.user_agent = user_agent
        self._parsers: dict[str, RobotFileParser | None] = {}

    async def is_allowed(self, client: HttpClient, url: str) -> bool:
        parsed_url = urlparse(url)
        host = f"{parsed_url.scheme}://{parsed_url.netloc}"
        if host not in self._parsers:
            self._parsers[host] = await self._load(client, host)
        parser = self._parsers[host]
        return parser is None or parser.can_fetch(self.user_agent, url)

    @staticmethod
    async def _load(client: HttpClient, host: str) -> RobotFileParser | None:
        try:
            robots_txt = await client.fetch_text(f"{host}/robots.txt", retries=1)
        except FetchError:
            logger.info("robots.txt unreachable for '%s', treating as allowed", host)
            return None
        parser = RobotFileParser()
        parser.parse(robots_txt.splitlines())
        parser.modified()
        return parser

    def clear(self) -> None:
        self._parsers.clear()
