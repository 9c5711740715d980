"""normtrack – Stooq HTTP client.

This module provides a minimal client for the Stooq daily history CSV
endpoint (``https://stooq.com/q/d/l/?s=<symbol>&i=d``). Stooq serves the
full history for a symbol as ``Date,Open,High,Low,Close,Volume`` CSV with
no authentication, but rejects requests that do not look like they come
from a regular client, so every request carries a ``User-Agent`` header.

The client returns raw text; parsing lives in
:mod:`normtrack.data_ingestion.csv_parser` so that tests can exercise
each stage without the network.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable

import requests

from normtrack.core.config import DEFAULT_SOURCE_URL, DEFAULT_USER_AGENT
from normtrack.core.errors import FetchError
from normtrack.core.logging import get_logger

logger = get_logger(__name__)


class StooqClient:
    """Thin HTTP client for Stooq daily CSV history.

    Parameters
    ----------
    url_template:
        URL with a ``{symbol}`` placeholder.
    user_agent:
        Value of the ``User-Agent`` header sent with every request.
    timeout_seconds:
        Request timeout in seconds.
    """

    def __init__(
        self,
        url_template: str = DEFAULT_SOURCE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._url_template = url_template
        self._timeout_seconds = timeout_seconds
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": user_agent})

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def url_for(self, symbol: str) -> str:
        return self._url_template.format(symbol=symbol)

    def fetch_csv(self, symbol: str) -> str:
        """Fetch the full daily history CSV for ``symbol``.

        Raises
        ------
        FetchError:
            If the request fails or the response status is not 2xx.
        """

        url = self.url_for(symbol)
        logger.info("StooqClient.fetch_csv: GET %s", url)

        try:
            response = self._session.get(url, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            logger.error("Stooq request failed for symbol %s: %s", symbol, exc)
            raise FetchError(None, url) from exc

        if not 200 <= response.status_code < 300:
            body_preview = response.text[:500]
            logger.error(
                "Stooq request failed: status=%s symbol=%s body=%s",
                response.status_code,
                symbol,
                body_preview,
            )
            raise FetchError(response.status_code, url)

        text = response.text
        logger.info("StooqClient.fetch_csv: received %d bytes for %s", len(text), symbol)
        return text

    def fetch_many(self, symbols: Iterable[str]) -> Dict[str, str]:
        """Fetch several symbols concurrently.

        All requests are submitted before any result is awaited. The
        first failure (in submission order) is re-raised once every
        request has finished.
        """

        symbols = list(dict.fromkeys(symbols))
        if not symbols:
            return {}

        # The workers share one Session. Only its connection pool (which
        # urllib3 locks) is touched concurrently; headers and cookies are
        # set once in __init__ and never mutated here.
        with ThreadPoolExecutor(max_workers=len(symbols)) as executor:
            futures = {symbol: executor.submit(self.fetch_csv, symbol) for symbol in symbols}

        return {symbol: future.result() for symbol, future in futures.items()}

    def close(self) -> None:
        """Close the underlying HTTP session."""

        self._session.close()

    def __enter__(self) -> "StooqClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["StooqClient"]
