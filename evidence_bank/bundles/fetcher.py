"""
HTTP fetcher for evidence payloads.

Reads the bytes behind an evidence item's source link. Every transport
error or non-success response is raised as a single FetchError so the
exporter can record it against the item and move on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from evidence_bank import __version__


DEFAULT_USER_AGENT = f"evidence-bank/{__version__}"


class FetchError(Exception):
    """A link could not be retrieved; the message is recorded verbatim."""


@dataclass
class FetcherConfig:
    """Configuration for payload downloads."""

    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    follow_redirects: bool = True


@dataclass
class FetchedPayload:
    url: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class EvidenceFetcher:
    """
    Download evidence payloads by URL.

    Usage:
        with EvidenceFetcher() as fetcher:
            payload = fetcher.fetch("https://example.org/report.pdf")
    """

    def __init__(
        self,
        config: Optional[FetcherConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config or FetcherConfig()
        self._client = httpx.Client(
            headers={"User-Agent": self.config.user_agent},
            timeout=self.config.timeout,
            follow_redirects=self.config.follow_redirects,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def fetch(self, url: str) -> FetchedPayload:
        try:
            resp = self._client.get(url)
        except httpx.TimeoutException as e:
            raise FetchError(f"timed out ({e.__class__.__name__})") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(str(e) or e.__class__.__name__) from e
        if not resp.is_success:
            raise FetchError(f"HTTP {resp.status_code}")
        return FetchedPayload(
            url=url,
            content=resp.content,
            content_type=resp.headers.get("content-type"),
        )
