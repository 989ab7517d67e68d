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
Tests for the context pipeline: single-page modes, crawl discovery,
and the crawl fan-out/fan-in barrier.
"""

import asyncio
from unittest.mock import patch

import httpx
import pytest

from ghostchat.context_pipeline import (
    MAX_CRAWL_PAGES,
    ContextPipeline,
    ContextState,
    discover_links,
    normalize_link,
)
from ghostchat.extraction import extract_content, extract_faq, parse_markup
from ghostchat.tiers import ContextMode

ORIGIN = "https://example.com/"

FAQ_HTML = "<h2>Open on Sundays?</h2><p>No.</p>"


def origin_page(*hrefs):
    anchors = "".join(f'<a href="{href}">link</a>' for href in hrefs)
    return f"<h1>Home</h1><p>Welcome</p><nav>{anchors}</nav>"


async def settle(rounds=50):
    """Let pending callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestDiscoverLinks:
    """Tests for discover_links()."""

    def test_same_host_resolved_and_deduplicated(self):
        soup = parse_markup(
            origin_page(
                "/about",
                "contact",
                "https://example.com/about",
                "https://other.com/x",
                "//cdn.example.com/y",
                "mailto:hi@example.com",
                "#top",
            )
        )

        assert discover_links(soup, ORIGIN) == [
            "https://example.com/about",
            "https://example.com/contact",
            "https://example.com/#top",
        ]

    def test_capped_in_document_order(self):
        soup = parse_markup(origin_page(*[f"/p{i}" for i in range(1, 13)]))

        links = discover_links(soup, ORIGIN)

        assert links == [f"https://example.com/p{i}" for i in range(1, MAX_CRAWL_PAGES + 1)]

    def test_equivalent_urls_counted_once(self):
        soup = parse_markup(
            origin_page(
                "https://example.com",
                "https://example.com/",
                "HTTPS://EXAMPLE.COM/x",
                "/x",
                "https://example.com:443/x",
            )
        )

        assert discover_links(soup, "https://example.com") == [
            "https://example.com/",
            "https://example.com/x",
        ]

    def test_duplicates_do_not_use_up_the_cap(self):
        hrefs = ["/p1", "https://example.com/p1", "HTTPS://example.com/p1"]
        hrefs += [f"/p{i}" for i in range(2, 8)]
        soup = parse_markup(origin_page(*hrefs))

        links = discover_links(soup, ORIGIN)

        assert links == [f"https://example.com/p{i}" for i in range(1, 6)]

    def test_normalize_link(self):
        assert normalize_link("HTTP://Example.COM:80") == "http://example.com/"
        assert normalize_link("https://example.com:8443/a?b=1#c") == (
            "https://example.com:8443/a?b=1#c"
        )

    def test_no_document(self):
        assert discover_links(None, ORIGIN) == []

    def test_unresolvable_href_skipped(self):
        soup = parse_markup(origin_page("http://[broken/", "/ok"))

        assert discover_links(soup, ORIGIN) == ["https://example.com/ok"]


class TestSinglePageModes:
    """faq and summarize modes."""

    @pytest.mark.asyncio
    async def test_faq_mode(self, mock_client):
        client, transport = mock_client(lambda r: httpx.Response(200, text=FAQ_HTML))
        pipeline = ContextPipeline(client=client)

        corpus = await pipeline.load(ContextMode.FAQ, "https://example.com/faq")

        assert corpus == extract_faq(FAQ_HTML)
        assert pipeline.corpus == corpus
        assert pipeline.state is ContextState.READY
        assert [r.method for r in transport.requests] == ["GET"]

    @pytest.mark.asyncio
    async def test_summarize_mode(self, mock_client):
        html = origin_page("/about")
        client, transport = mock_client(lambda r: httpx.Response(200, text=html))
        pipeline = ContextPipeline(client=client)

        corpus = await pipeline.load(ContextMode.SUMMARIZE, ORIGIN)

        assert corpus == "Home\n\nWelcome\n\n"
        # summarize never follows links
        assert len(transport.requests) == 1

    def test_starts_idle_without_corpus(self):
        pipeline = ContextPipeline()

        assert pipeline.state is ContextState.IDLE
        assert pipeline.corpus is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500])
    async def test_bad_status_fails(self, mock_client, status):
        client, transport = mock_client(lambda r: httpx.Response(status, text="nope"))
        pipeline = ContextPipeline(client=client)

        corpus = await pipeline.load(ContextMode.FAQ, ORIGIN)

        assert corpus is None
        assert pipeline.corpus is None
        assert pipeline.state is ContextState.FAILED
        # no retry
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [httpx.ConnectError("down"), httpx.ReadTimeout("slow")])
    async def test_transport_error_fails(self, mock_client, error):
        def handler(request):
            raise error

        client, _ = mock_client(handler)
        pipeline = ContextPipeline(client=client)

        await pipeline.load(ContextMode.SUMMARIZE, ORIGIN)

        assert pipeline.state is ContextState.FAILED
        assert pipeline.corpus is None

    @pytest.mark.asyncio
    async def test_wait_ready_after_failure(self, mock_client):
        client, _ = mock_client(lambda r: httpx.Response(503))
        pipeline = ContextPipeline(client=client)

        task = asyncio.create_task(pipeline.load(ContextMode.FAQ, ORIGIN))
        await asyncio.sleep(0)
        state = await asyncio.wait_for(pipeline.wait_ready(), timeout=1)
        await task

        assert state is ContextState.FAILED

    @pytest.mark.asyncio
    async def test_wait_ready_without_load_returns_at_once(self):
        pipeline = ContextPipeline()

        state = await asyncio.wait_for(pipeline.wait_ready(), timeout=1)

        assert state is ContextState.IDLE

    @pytest.mark.asyncio
    async def test_cancelled_load_can_be_retried(self, mock_client):
        stall = asyncio.Event()
        calls = []

        async def handler(request):
            calls.append(request.url.path)
            if len(calls) == 1:
                await stall.wait()
            return httpx.Response(200, text=FAQ_HTML)

        client, _ = mock_client(handler)
        pipeline = ContextPipeline(client=client)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(pipeline.load(ContextMode.FAQ, ORIGIN), timeout=0.05)

        assert pipeline.state is ContextState.FAILED
        assert pipeline.in_flight is False
        assert await pipeline.wait_ready() is ContextState.FAILED

        corpus = await pipeline.load(ContextMode.FAQ, ORIGIN)

        assert corpus == extract_faq(FAQ_HTML)
        assert pipeline.state is ContextState.READY
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_leaves_pipeline_failed(self, mock_client):
        client, _ = mock_client(lambda r: httpx.Response(200, text=FAQ_HTML))
        pipeline = ContextPipeline(client=client)

        with patch(
            "ghostchat.context_pipeline.extract_faq", side_effect=RuntimeError("boom")
        ):
            with pytest.raises(RuntimeError):
                await pipeline.load(ContextMode.FAQ, ORIGIN)

        assert pipeline.state is ContextState.FAILED
        assert pipeline.corpus is None


class TestFullScrape:
    """full_scrape crawling."""

    @pytest.mark.asyncio
    async def test_no_candidates_uses_origin_content(self, mock_client):
        html = origin_page("https://elsewhere.org/", "mailto:x@example.com")
        client, transport = mock_client(lambda r: httpx.Response(200, text=html))
        pipeline = ContextPipeline(client=client)

        corpus = await pipeline.load(ContextMode.FULL_SCRAPE, ORIGIN)

        assert corpus == extract_content(html)
        assert pipeline.state is ContextState.READY
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_only_first_five_links_fetched(self, mock_client):
        html = origin_page(*[f"/p{i}" for i in range(1, 13)], "/p1", "https://other.com/")

        def handler(request):
            if request.url.path == "/":
                return httpx.Response(200, text=html)
            return httpx.Response(200, text=f"<p>{request.url.path}</p>")

        client, transport = mock_client(handler)
        pipeline = ContextPipeline(client=client)

        corpus = await pipeline.load(ContextMode.FULL_SCRAPE, ORIGIN)

        crawled = [p for p in transport.paths() if p != "/"]
        assert sorted(crawled) == ["/p1", "/p2", "/p3", "/p4", "/p5"]
        assert corpus.count("--- Page: ") == 5
        assert corpus.startswith("Home\n\nWelcome\n\n")

    @pytest.mark.asyncio
    @pytest.mark.concurrency
    async def test_barrier_publishes_after_all_settle(self, mock_client):
        """Three successes, two failures, completing out of document order."""
        html = origin_page(*[f"/p{i}" for i in range(1, 6)])
        releases = {f"/p{i}": asyncio.Event() for i in range(1, 6)}
        arrived = []
        all_arrived = asyncio.Event()

        async def handler(request):
            path = request.url.path
            if path == "/":
                return httpx.Response(200, text=html)
            arrived.append(path)
            if len(arrived) == len(releases):
                all_arrived.set()
            await releases[path].wait()
            if path == "/p2":
                return httpx.Response(500, text="error")
            if path == "/p4":
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(200, text=f"<p>Body of {path}</p>")

        client, _ = mock_client(handler)
        pipeline = ContextPipeline(client=client)
        task = asyncio.create_task(pipeline.load(ContextMode.FULL_SCRAPE, ORIGIN))

        await asyncio.wait_for(all_arrived.wait(), timeout=1)
        assert pipeline.state is ContextState.CRAWLING

        for path in ["/p3", "/p2", "/p5", "/p4"]:
            releases[path].set()
            await settle()
            assert pipeline.corpus is None
            assert pipeline.state is ContextState.CRAWLING
            assert not task.done()

        # The first link in document order completes last
        releases["/p1"].set()
        corpus = await asyncio.wait_for(task, timeout=1)

        assert pipeline.state is ContextState.READY
        assert pipeline.corpus == corpus
        assert corpus.startswith("Home\n\nWelcome\n\n")
        assert corpus.count("--- Page: ") == 3
        assert "/p2" not in corpus
        assert "/p4" not in corpus

        # Segments follow completion order, not document order
        p3 = corpus.index("--- Page: https://example.com/p3 ---")
        p5 = corpus.index("--- Page: https://example.com/p5 ---")
        p1 = corpus.index("--- Page: https://example.com/p1 ---")
        assert p3 < p5 < p1
        assert "\n\n--- Page: https://example.com/p1 ---\n\nBody of /p1\n\n" in corpus

    @pytest.mark.asyncio
    async def test_all_candidates_failing_still_ready(self, mock_client):
        html = origin_page("/a", "/b")

        def handler(request):
            if request.url.path == "/":
                return httpx.Response(200, text=html)
            raise httpx.ConnectError("down", request=request)

        client, transport = mock_client(handler)
        pipeline = ContextPipeline(client=client)

        corpus = await pipeline.load(ContextMode.FULL_SCRAPE, ORIGIN)

        assert pipeline.state is ContextState.READY
        assert corpus == "Home\n\nWelcome\n\n"
        # one attempt each, no retries
        assert len(transport.requests) == 3
