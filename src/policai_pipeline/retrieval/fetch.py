"""HTTP fetching with retry logic.

Fetches web content asynchronously with a fixed-wait retry on transport errors
and the crawler's user-agent header.
"""

from typing import Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type
from ..config import get_settings
from ..log import get_logger

logger = get_logger("fetch")

class Fetcher:
    def __init__(self, client: Optional[httpx.AsyncClient] = None, user_agent: Optional[str] = None,
                 timeout: Optional[float] = None):
        settings = get_settings()
        self.client = client
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.headers = {
            "User-Agent": user_agent or settings.USER_AGENT
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def fetch_url(self, url: str) -> str:
        """
        Fetches the content of a URL. Returns text/html content.
        Raises on non-2xx responses, and on transport failure after retries.
        """
        if self.client is not None:
            resp = await self.client.get(url, headers=self.headers, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, headers=self.headers) as client:
                resp = await client.get(url)
        resp.raise_for_status()
        logger.debug(f"Fetched {url} ({len(resp.text)} chars)")
        return resp.text
