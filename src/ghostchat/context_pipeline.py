# Copyright 2024-2025 Amiable Development
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Context pipeline for GhostChat.

Fetches a source page and turns it into the context corpus fed to the
provider. Three modes:
- faq: question/answer pairs from the page
- summarize: headings and paragraphs from the page
- full_scrape: the page plus up to 5 same-host pages it links to

States:
    IDLE -> FETCHING -> EXTRACTING | CRAWLING -> READY
    FETCHING | EXTRACTING | CRAWLING -> FAILED (fetch error or interruption)

The crawl fans out one GET per linked page concurrently and publishes the
corpus only after every request has settled. Linked pages are appended in
the order their responses arrive, so the corpus order can differ between
runs. Nothing is retried.

Version: 1.0.0
"""

from enum import Enum, auto
from typing import List, Optional
from urllib.parse import urljoin, urlparse, urlsplit, urlunsplit
import asyncio
import logging

import httpx
from bs4 import BeautifulSoup

from ghostchat.config import DEFAULT_REQUEST_TIMEOUT
from ghostchat.errors import GhostChatError
from ghostchat.extraction import (
    content_from_tree,
    extract_content,
    extract_faq,
    parse_markup,
)
from ghostchat.http import TRANSPORT_ERRORS, client_session
from ghostchat.tiers import ContextMode

logger = logging.getLogger(__name__)

MAX_CRAWL_PAGES = 5
PAGE_DELIMITER = "\n\n--- Page: {url} ---\n\n"
DEFAULT_PORTS = {"http": 80, "https": 443}


class ContextState(Enum):
    """Lifecycle of a context load."""

    IDLE = auto()
    FETCHING = auto()
    EXTRACTING = auto()
    CRAWLING = auto()
    READY = auto()
    FAILED = auto()


class ContextFetchError(GhostChatError):
    """A context page could not be fetched."""


def normalize_link(link: str) -> str:
    """
    Canonical form of an absolute URL, used for deduplication.

    Scheme and host are lowercased, a default port is dropped and an
    empty path becomes ``/``, so ``HTTPS://Example.com`` and
    ``https://example.com/`` compare equal.

    Raises:
        ValueError: If the URL cannot be split (e.g. a malformed IPv6 host)
    """
    parts = urlsplit(link)
    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    port = parts.port
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    userinfo, at, _ = parts.netloc.rpartition("@")
    if at:
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))


def discover_links(
    soup: Optional[BeautifulSoup],
    base_url: str,
    limit: int = MAX_CRAWL_PAGES,
) -> List[str]:
    """
    Find same-host links on a page.

    Every ``a[href]`` is resolved against `base_url`; links whose host
    differs from the base host are dropped. Duplicates are removed and the
    first `limit` distinct links in document order are returned.

    Args:
        soup: Parsed page
        base_url: URL the page was fetched from
        limit: Maximum number of links

    Returns:
        Absolute URLs in document order
    """
    if soup is None or limit <= 0:
        return []

    try:
        base_host = urlparse(base_url).hostname
    except ValueError:
        return []

    links: List[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor.get("href")
        if not href:
            continue
        try:
            link = normalize_link(urljoin(base_url, href.strip()))
            host = urlparse(link).hostname
        except ValueError:
            # Unresolvable href
            continue
        if host is None or host != base_host or link in links:
            continue
        links.append(link)
        if len(links) >= limit:
            break

    return links


class ContextPipeline:
    """
    Builds the context corpus for a session.

    The corpus is only exposed once a load reaches READY; while a load is
    in flight, `corpus` keeps returning the previously published value
    (None for the first load).

    Example:
        pipeline = ContextPipeline()
        await pipeline.load(ContextMode.FAQ, "https://example.com/faq")
        if pipeline.state is ContextState.READY:
            print(pipeline.corpus)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        max_pages: int = MAX_CRAWL_PAGES,
    ):
        """
        Initialize the pipeline.

        Args:
            timeout: Per-request timeout in seconds
            client: Optional shared httpx client
            max_pages: Cap on linked pages fetched in full_scrape mode
        """
        self.timeout = timeout
        self.max_pages = max_pages
        self._client = client
        self._corpus: Optional[str] = None
        self._settled = asyncio.Event()
        self.state = ContextState.IDLE
        self.source_url: Optional[str] = None

    @property
    def corpus(self) -> Optional[str]:
        """The published context corpus, or None."""
        return self._corpus

    @property
    def in_flight(self) -> bool:
        return self.state in (
            ContextState.FETCHING,
            ContextState.EXTRACTING,
            ContextState.CRAWLING,
        )

    async def wait_ready(self) -> ContextState:
        """
        Wait until the current load is READY or FAILED.

        Returns the current state at once when no load is in flight.
        """
        if self.in_flight:
            await self._settled.wait()
        return self.state

    async def load(self, mode: ContextMode, url: str) -> Optional[str]:
        """
        Fetch `url` and build the corpus for `mode`.

        Args:
            mode: Context mode (already allowed by the tier)
            url: Source page

        Returns:
            The published corpus, or None if the fetch failed
        """
        if self.in_flight:
            logger.warning("Context load already in progress, ignoring")
            return self._corpus

        self._settled.clear()
        self.source_url = url
        self.state = ContextState.FETCHING
        logger.info(f"Loading context: {mode.value} from {url}")

        try:
            corpus = await self._build(mode, url)
            self._corpus = corpus
            self.state = ContextState.READY
        except ContextFetchError as e:
            logger.error(f"Failed to load context from {url}: {e}")
            self.state = ContextState.FAILED
            return None
        except (Exception, asyncio.CancelledError):
            # Interrupted loads must not stay in flight
            self.state = ContextState.FAILED
            raise
        finally:
            self._settled.set()

        logger.info("Context loaded successfully")
        return corpus

    async def _build(self, mode: ContextMode, url: str) -> str:
        async with client_session(self._client, self.timeout) as client:
            markup = await self._fetch(client, url)

            if mode is ContextMode.FULL_SCRAPE:
                self.state = ContextState.CRAWLING
                return await self._crawl(client, url, markup)

            self.state = ContextState.EXTRACTING
            if mode is ContextMode.FAQ:
                return extract_faq(markup)
            return extract_content(markup)

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> str:
        """GET a page body; raise ContextFetchError on any failure."""
        try:
            response = await client.get(url)
        except TRANSPORT_ERRORS as e:
            raise ContextFetchError(f"{type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise ContextFetchError(f"status {response.status_code}")
        return response.text

    async def _crawl(self, client: httpx.AsyncClient, url: str, markup: str) -> str:
        """Build a corpus from the origin page and its same-host links."""
        soup = parse_markup(markup)
        segments = [content_from_tree(soup)]
        candidates = discover_links(soup, url, self.max_pages)

        if not candidates:
            return segments[0]

        logger.info(f"Scraping {len(candidates)} internal pages...")

        async def fetch_page(link: str) -> None:
            body = await self._fetch(client, link)
            segments.append(PAGE_DELIMITER.format(url=link) + extract_content(body))

        # Barrier: every request settles before the corpus is assembled
        results = await asyncio.gather(
            *(fetch_page(link) for link in candidates),
            return_exceptions=True,
        )

        for link, result in zip(candidates, results):
            if isinstance(result, ContextFetchError):
                logger.warning(f"Skipping {link}: {result}")
            elif isinstance(result, BaseException):
                raise result

        logger.info("Full scrape completed")
        return "".join(segments)
