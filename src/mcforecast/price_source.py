r"""
Reference-price sources.

:class:`FeedPriceSource` reconciles several HTTP feeds into one price: every feed
is queried, failures are logged and skipped, and the mean of the remaining quotes
is returned. When no feed answers, :class:`~mcforecast.errors.SourceUnavailableError`
is raised and the engine aborts the run.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional, Protocol, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import SourceUnavailableError
from .models import require_positive_number

logger = logging.getLogger(__name__)

__all__ = [
    "PriceSource",
    "StaticPriceSource",
    "JsonPriceFeed",
    "FeedPriceSource",
    "make_session",
    "default_feeds",
]

COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price?ids=bitcoin&vs_currencies=usd"
COINBASE_URL = "https://api.coinbase.com/v2/prices/BTC-USD/spot"


class PriceSource(Protocol):
    """Anything that can quote the current reference price."""

    def get_current_price(self) -> float: ...


class StaticPriceSource:
    """Always returns the same price. Useful offline and in tests."""

    def __init__(self, price: float):
        self.price = require_positive_number("price", price)

    def get_current_price(self) -> float:
        return self.price


def make_session(total_retries: int = 3) -> requests.Session:
    """Session with retry/backoff on transient HTTP errors."""
    session = requests.Session()
    retries = Retry(
        total=total_retries,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET",),
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class JsonPriceFeed:
    r"""
    One HTTP endpoint returning a JSON document that contains the price.

    Parameters
    ----------
    name : str
        Label used in log messages.
    url : str
        Endpoint to GET.
    path : str
        Dotted path to the price inside the JSON body, e.g. ``"bitcoin.usd"``.
    session : requests.Session, optional
        Shared session; defaults to :func:`make_session`.
    timeout : tuple of float, default ``(3.0, 10.0)``
        Connect and read timeouts in seconds.
    """

    def __init__(
        self,
        name: str,
        url: str,
        path: str,
        session: Optional[requests.Session] = None,
        timeout: Tuple[float, float] = (3.0, 10.0),
    ):
        self.name = name
        self.url = url
        self.path = tuple(path.split("."))
        self.session = session or make_session()
        self.timeout = timeout

    def fetch(self) -> float:
        """GET the endpoint and extract the price. Raises on HTTP or format errors."""
        response = self.session.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        node: Any = response.json()
        for key in self.path:
            node = node[key]
        return float(node)


def default_feeds(session: Optional[requests.Session] = None) -> list[JsonPriceFeed]:
    """CoinGecko and Coinbase BTC/USD quotes sharing one session."""
    session = session or make_session()
    return [
        JsonPriceFeed("CoinGecko", COINGECKO_URL, "bitcoin.usd", session=session),
        JsonPriceFeed("Coinbase", COINBASE_URL, "data.amount", session=session),
    ]


class FeedPriceSource:
    r"""
    Mean of all feeds that answered with a usable price.

    Parameters
    ----------
    feeds : sequence of JsonPriceFeed
        Feeds to query, in order. Defaults to :func:`default_feeds`.
    """

    def __init__(self, feeds: Optional[Sequence[JsonPriceFeed]] = None):
        self.feeds = list(feeds) if feeds is not None else default_feeds()
        if not self.feeds:
            raise ValueError("at least one price feed is required")

    def get_current_price(self) -> float:
        quotes: list[float] = []
        for feed in self.feeds:
            try:
                price = feed.fetch()
            except (requests.RequestException, KeyError, IndexError, TypeError, ValueError) as exc:
                logger.warning("Failed to fetch price from %s: %s", feed.name, exc)
                continue
            if not math.isfinite(price) or price <= 0.0:
                logger.warning("Ignoring non-positive price %r from %s", price, feed.name)
                continue
            quotes.append(price)
        if not quotes:
            raise SourceUnavailableError("Failed to fetch price from all sources")
        return sum(quotes) / len(quotes)
