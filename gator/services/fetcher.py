from __future__ import annotations

from typing import Optional
import httpx
from bs4.dammit import EncodingDetector

from gator.core.errors import NetworkError

class Fetcher:
    def __init__(self, user_agent: str, timeout_s: float, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._headers = {"User-Agent": user_agent}
        self._timeout = httpx.Timeout(timeout_s)
        self._transport = transport

    async def fetch_text(self, url: str) -> str:
        """GET ``url`` once and return the decoded body. No retries."""
        try:
            async with httpx.AsyncClient(
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkError(f"GET {url} failed: {type(e).__name__}: {e}") from e

        # header charset, then the XML prolog, then UTF-8
        encoding = (
            resp.charset_encoding
            or EncodingDetector.find_declared_encoding(resp.content, is_html=False)
            or "utf-8"
        )
        try:
            return resp.content.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            raise NetworkError(f"GET {url}: body is not valid {encoding}") from e
