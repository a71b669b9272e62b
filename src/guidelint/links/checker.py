"""External link checker.

Probes every external URL of one or more documents over HTTP and sorts
the outcome into a verdict:

    ok         2xx/3xx after redirects
    broken     terminal failure: 4xx (except 429), invalid URL, redirect loop,
               connection/DNS failure that survived every retry
    transient  5xx, 429 or timeout that survived every retry
    skipped    matched ``ignore_urls``

Requests are bounded by an ``asyncio.Semaphore`` and share one
``httpx.AsyncClient``. Each URL is tried with ``HEAD`` first; servers that
refuse ``HEAD`` (405, 501, 403) get a ``GET``.

Example::

    statuses = check_links(["https://rubyonrails.org"], settings=settings)
    for status in statuses:
        print(status.url, status.verdict.value, status.status_code)
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from guidelint.core.errors import LinkCheckError, is_retryable
from guidelint.core.logging import get_logger
from guidelint.core.settings import GuidelintSettings
from guidelint.document.model import Document
from guidelint.lint.linter import LintDiagnostic, Severity

logger = get_logger(__name__)

_HEAD_REFUSED = frozenset({403, 405, 501})


class Verdict(str, Enum):
    """Outcome of checking one URL."""

    OK = "ok"
    BROKEN = "broken"
    TRANSIENT = "transient"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class LinkStatus:
    """Result of checking a single URL.

    Attributes:
        url: URL as written in the document.
        verdict: Classified outcome.
        status_code: Final HTTP status, None when no response was received.
        final_url: URL after redirects.
        error: Transport error description, if any.
        attempts: Number of requests made (``HEAD`` + ``GET`` fallback count once).
    """

    url: str
    verdict: Verdict
    status_code: int | None = None
    final_url: str | None = None
    error: str | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.verdict in (Verdict.OK, Verdict.SKIPPED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "verdict": self.verdict.value,
            "status_code": self.status_code,
            "final_url": self.final_url,
            "error": self.error,
            "attempts": self.attempts,
        }


def _request_url(url: str) -> str:
    # protocol-relative links resolve against https
    return f"https:{url}" if url.startswith("//") else url


def _is_transient_status(code: int) -> bool:
    return code == 429 or code >= 500


async def _probe(client: httpx.AsyncClient, url: str) -> httpx.Response:
    """HEAD (falling back to GET) one URL.

    Raises:
        LinkCheckError: retryable for timeouts, connection failures, 429
            and 5xx; not retryable for malformed URLs, redirect loops and
            undecodable responses
    """
    try:
        response = await client.head(url)
        if response.status_code in _HEAD_REFUSED:
            response = await client.get(url)
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
        raise LinkCheckError(
            f"invalid URL: {exc}", url=url, retryable=False, cause=exc
        ) from exc
    except httpx.TimeoutException as exc:
        raise LinkCheckError(f"timeout: {type(exc).__name__}", url=url, cause=exc) from exc
    except httpx.TooManyRedirects as exc:
        raise LinkCheckError(
            f"redirect loop: {exc}", url=url, retryable=False, cause=exc
        ) from exc
    except httpx.TransportError as exc:
        raise LinkCheckError(
            str(exc) or type(exc).__name__, url=url, cause=exc, unreachable=True
        ) from exc
    except httpx.RequestError as exc:
        # undecodable bodies and other protocol-level failures
        raise LinkCheckError(
            f"{type(exc).__name__}: {exc}", url=url, retryable=False, cause=exc
        ) from exc

    if _is_transient_status(response.status_code):
        raise LinkCheckError(
            f"HTTP {response.status_code}",
            url=url,
            http_status=response.status_code,
            final_url=str(response.url),
        )
    return response


def _status_from_error(url: str, error: LinkCheckError, attempts: int) -> LinkStatus:
    # unreachable hosts and malformed URLs are terminal once retries are spent
    terminal = not error.retryable or error.context.metadata.get("unreachable", False)
    return LinkStatus(
        url=url,
        verdict=Verdict.BROKEN if terminal else Verdict.TRANSIENT,
        status_code=error.context.http_status,
        final_url=error.context.metadata.get("final_url"),
        error=None if error.context.http_status else error.message,
        attempts=attempts,
    )


async def _check_one(
    client: httpx.AsyncClient,
    url: str,
    *,
    semaphore: asyncio.Semaphore,
    retries: int,
    backoff: float,
) -> LinkStatus:
    target = _request_url(url)
    attempts = 0

    while True:
        attempts += 1
        try:
            async with semaphore:
                response = await _probe(client, target)
        except LinkCheckError as exc:
            if is_retryable(exc) and attempts <= retries:
                logger.debug("link_check_retry", url=url, attempt=attempts, error=exc.message)
                await asyncio.sleep(backoff * attempts)
                continue
            return _status_from_error(url, exc, attempts)

        code = response.status_code
        return LinkStatus(
            url=url,
            verdict=Verdict.OK if code < 400 else Verdict.BROKEN,
            status_code=code,
            final_url=str(response.url),
            attempts=attempts,
        )


async def check_links_async(
    urls: Iterable[str],
    *,
    settings: GuidelintSettings | None = None,
    client: httpx.AsyncClient | None = None,
    backoff: float = 0.5,
) -> list[LinkStatus]:
    """Check *urls* concurrently. Returns one status per distinct URL, in first-seen order.

    Args:
        urls: URLs to check; duplicates are checked once.
        settings: Timeout, concurrency, retries, user agent and ignore list.
        client: Pre-built client (tests inject one with a mock transport).
        backoff: Seconds multiplied by the attempt number between retries.
    """
    settings = settings or GuidelintSettings()
    unique = list(dict.fromkeys(urls))
    semaphore = asyncio.Semaphore(settings.link_concurrency)

    skipped = {url for url in unique if settings.is_ignored_url(url)}
    to_check = [url for url in unique if url not in skipped]
    logger.info("link_check_started", urls=len(unique), skipped=len(skipped))

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            timeout=settings.link_timeout,
            follow_redirects=True,
            headers={"User-Agent": settings.link_user_agent},
        )
    try:
        checked = await asyncio.gather(
            *(
                _check_one(
                    client,
                    url,
                    semaphore=semaphore,
                    retries=settings.link_retries,
                    backoff=backoff,
                )
                for url in to_check
            )
        )
    finally:
        if owns_client:
            await client.aclose()

    by_url = {status.url: status for status in checked}
    results = [
        by_url[url] if url in by_url else LinkStatus(url=url, verdict=Verdict.SKIPPED)
        for url in unique
    ]
    for status in results:
        if status.verdict in (Verdict.BROKEN, Verdict.TRANSIENT):
            logger.warning(
                "link_check_failed",
                url=status.url,
                verdict=status.verdict.value,
                status_code=status.status_code,
                error=status.error,
            )
    logger.info(
        "link_check_finished",
        ok=sum(1 for s in results if s.verdict is Verdict.OK),
        broken=sum(1 for s in results if s.verdict is Verdict.BROKEN),
        transient=sum(1 for s in results if s.verdict is Verdict.TRANSIENT),
    )
    return results


def check_links(
    urls: Iterable[str],
    *,
    settings: GuidelintSettings | None = None,
    backoff: float = 0.5,
) -> list[LinkStatus]:
    """Synchronous wrapper around ``check_links_async``."""
    return asyncio.run(check_links_async(urls, settings=settings, backoff=backoff))


def document_urls(document: Document) -> list[str]:
    """Distinct external URLs of *document* in order of appearance."""
    return list(dict.fromkeys(link.target for link in document.external_links()))


def link_diagnostics(statuses: Iterable[LinkStatus], document: Document) -> list[LintDiagnostic]:
    """Turn link statuses into diagnostics located at each occurrence in *document*.

    ``L001`` (error) for broken links, ``L002`` (warning) for transient ones.
    URLs that do not occur in the document are ignored.
    """
    by_url = {status.url: status for status in statuses}
    diagnostics: list[LintDiagnostic] = []
    for link in document.external_links():
        status = by_url.get(link.target)
        if status is None:
            continue
        detail = f"HTTP {status.status_code}" if status.status_code else (status.error or "no response")
        if status.verdict is Verdict.BROKEN:
            diagnostics.append(
                LintDiagnostic(
                    code="L001",
                    severity=Severity.ERROR,
                    message=f"Broken link {link.target} ({detail}).",
                    line=link.line,
                    suggestion="Update or remove the link.",
                )
            )
        elif status.verdict is Verdict.TRANSIENT:
            diagnostics.append(
                LintDiagnostic(
                    code="L002",
                    severity=Severity.WARNING,
                    message=f"Link {link.target} could not be verified ({detail}).",
                    line=link.line,
                )
            )
    return diagnostics


__all__ = [
    "Verdict",
    "LinkStatus",
    "check_links_async",
    "check_links",
    "document_urls",
    "link_diagnostics",
]
