"""Tests for guidelint.links.checker with a mocked HTTP transport."""

from __future__ import annotations

import asyncio
import textwrap

import httpx
import pytest

from guidelint.core.settings import GuidelintSettings
from guidelint.document.parser import parse_document
from guidelint.links.checker import (
    LinkStatus,
    Verdict,
    check_links,
    check_links_async,
    document_urls,
    link_diagnostics,
)
from guidelint.lint.linter import Severity


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


async def _check(urls, handler, **settings_kwargs) -> list[LinkStatus]:
    settings = GuidelintSettings(**settings_kwargs)
    async with _client(handler) as client:
        return await check_links_async(urls, settings=settings, client=client, backoff=0)


class TestVerdicts:
    @pytest.mark.asyncio
    async def test_ok(self):
        statuses = await _check(["https://rubyonrails.org/"], lambda r: httpx.Response(200))
        assert statuses[0].verdict is Verdict.OK
        assert statuses[0].status_code == 200
        assert statuses[0].attempts == 1

    @pytest.mark.asyncio
    async def test_head_refused_falls_back_to_get(self):
        methods = []

        def handler(request):
            methods.append(request.method)
            return httpx.Response(405 if request.method == "HEAD" else 200)

        statuses = await _check(["https://example.com/a"], handler)
        assert methods == ["HEAD", "GET"]
        assert statuses[0].verdict is Verdict.OK

    @pytest.mark.asyncio
    async def test_not_found_is_broken_without_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        statuses = await _check(["https://example.com/gone"], handler, link_retries=3)
        assert statuses[0].verdict is Verdict.BROKEN
        assert statuses[0].status_code == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_redirect_is_followed(self):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://example.com/new"})
            return httpx.Response(200)

        statuses = await _check(["https://example.com/old"], handler)
        assert statuses[0].verdict is Verdict.OK
        assert statuses[0].final_url == "https://example.com/new"

    @pytest.mark.asyncio
    async def test_server_error_retried_then_ok(self):
        responses = iter([503, 200])

        statuses = await _check(
            ["https://example.com/flaky"],
            lambda r: httpx.Response(next(responses)),
            link_retries=2,
        )
        assert statuses[0].verdict is Verdict.OK
        assert statuses[0].attempts == 2

    @pytest.mark.asyncio
    async def test_persistent_server_error_is_transient(self):
        statuses = await _check(
            ["https://example.com/down"], lambda r: httpx.Response(503), link_retries=2
        )
        assert statuses[0].verdict is Verdict.TRANSIENT
        assert statuses[0].status_code == 503
        assert statuses[0].attempts == 3

    @pytest.mark.asyncio
    async def test_rate_limited_is_transient(self):
        statuses = await _check(
            ["https://example.com/busy"], lambda r: httpx.Response(429), link_retries=0
        )
        assert statuses[0].verdict is Verdict.TRANSIENT

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        statuses = await _check(["https://example.com/slow"], handler, link_retries=1)
        assert statuses[0].verdict is Verdict.TRANSIENT
        assert statuses[0].status_code is None
        assert statuses[0].error == "timeout: ConnectTimeout"
        assert statuses[0].attempts == 2

    @pytest.mark.asyncio
    async def test_unreachable_host_is_broken_after_retries(self):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        statuses = await _check(["https://no-such-host.invalid/"], handler, link_retries=1)
        assert statuses[0].verdict is Verdict.BROKEN
        assert statuses[0].attempts == 2
        assert "Name or service not known" in statuses[0].error

    @pytest.mark.asyncio
    async def test_unsupported_protocol_is_not_retried(self):
        def handler(request):
            raise httpx.UnsupportedProtocol("Request URL has an unsupported protocol")

        statuses = await _check(["https://example.com/"], handler, link_retries=3)
        assert statuses[0].verdict is Verdict.BROKEN
        assert statuses[0].attempts == 1

    @pytest.mark.asyncio
    async def test_redirect_loop_is_broken(self):
        def handler(request):
            if request.url.path == "/loop":
                return httpx.Response(301, headers={"Location": "https://example.com/loop"})
            return httpx.Response(200)

        statuses = await _check(
            ["https://example.com/loop", "https://example.com/fine"], handler, link_retries=2
        )
        loop, fine = statuses
        assert loop.verdict is Verdict.BROKEN
        assert loop.attempts == 1
        assert loop.error.startswith("redirect loop")
        # the rest of the batch still gets a verdict
        assert fine.url == "https://example.com/fine"
        assert fine.verdict is Verdict.OK

    @pytest.mark.asyncio
    async def test_undecodable_response_is_broken(self):
        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(405)
            raise httpx.DecodingError("Error -3 while decompressing data", request=request)

        statuses = await _check(["https://example.com/gz"], handler, link_retries=2)
        assert statuses[0].verdict is Verdict.BROKEN
        assert statuses[0].attempts == 1
        assert statuses[0].error.startswith("DecodingError")


class TestBatching:
    @pytest.mark.asyncio
    async def test_duplicates_checked_once_in_order(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200)

        urls = ["https://a.example/", "https://b.example/", "https://a.example/"]
        statuses = await _check(urls, handler)
        assert [s.url for s in statuses] == ["https://a.example/", "https://b.example/"]
        assert sorted(seen) == ["https://a.example/", "https://b.example/"]

    @pytest.mark.asyncio
    async def test_ignored_urls_are_skipped(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200)

        statuses = await _check(
            ["https://localhost:3000/", "https://rubyonrails.org/"],
            handler,
            ignore_urls=[r"^https?://localhost"],
        )
        assert [s.verdict for s in statuses] == [Verdict.SKIPPED, Verdict.OK]
        assert seen == ["https://rubyonrails.org/"]
        assert statuses[0].ok

    @pytest.mark.asyncio
    async def test_protocol_relative_url(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200)

        statuses = await _check(["//cdn.example.com/app.js"], handler)
        assert seen == ["https://cdn.example.com/app.js"]
        assert statuses[0].url == "//cdn.example.com/app.js"

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        active = 0
        peak = 0

        async def handler(request):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return httpx.Response(200)

        urls = [f"https://example.com/{i}" for i in range(10)]
        statuses = await _check(urls, handler, link_concurrency=3)
        assert all(s.verdict is Verdict.OK for s in statuses)
        assert peak <= 3

    def test_sync_wrapper_with_only_ignored_urls(self):
        settings = GuidelintSettings(ignore_urls=[r"example\.com"])
        statuses = check_links(["https://example.com/"], settings=settings)
        assert [s.verdict for s in statuses] == [Verdict.SKIPPED]


class TestLinkDiagnostics:
    def _doc(self):
        return parse_document(textwrap.dedent("""\
            # Links

            [ok](https://ok.example/)
            [gone](https://gone.example/)
            [down](https://down.example/) and [gone again](https://gone.example/)
        """))

    def test_document_urls(self):
        assert document_urls(self._doc()) == [
            "https://ok.example/",
            "https://gone.example/",
            "https://down.example/",
        ]

    def test_statuses_become_diagnostics(self):
        statuses = [
            LinkStatus(url="https://ok.example/", verdict=Verdict.OK, status_code=200),
            LinkStatus(url="https://gone.example/", verdict=Verdict.BROKEN, status_code=404),
            LinkStatus(url="https://down.example/", verdict=Verdict.TRANSIENT, error="timeout: ReadTimeout"),
        ]
        diagnostics = link_diagnostics(statuses, self._doc())
        assert [(d.code, d.line) for d in diagnostics] == [("L001", 4), ("L002", 5), ("L001", 5)]
        assert diagnostics[0].severity is Severity.ERROR
        assert "HTTP 404" in diagnostics[0].message
        assert diagnostics[1].severity is Severity.WARNING
        assert "timeout: ReadTimeout" in diagnostics[1].message

    def test_to_dict(self):
        status = LinkStatus(url="https://x.example/", verdict=Verdict.BROKEN, status_code=410, attempts=1)
        assert status.to_dict()["verdict"] == "broken"
        assert not status.ok
