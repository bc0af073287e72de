# ABOUTME: Network fetch stage streaming one GET per link through httpx
# ABOUTME: Sets the fetch gate on 2xx, records filtered headers and keeps html/pdf/text bodies

import httpx

from linkdump.config import Config, get_config
from linkdump.core.errors import FetchError
from linkdump.core.models import ContentClass, Link, utcnow
from linkdump.pipeline.base import Stage, StageKind
from linkdump.utils.logging import get_logger, log_stage

HEADER_DENYLIST = frozenset(
    {
        "set-cookie",
        "x-xss-protection",
        "strict-transport-security",
        "content-security-policy",
        "x-content-security-policy",
        "vary",
        "referrer-policy",
        "x-referrer-policy",
        "x-frame-options",
        "x-content-type-options",
        "origin-trial",
        "content-security-policy-report-only",
        "p3p",
        "permissions-policy",
        "report-to",
    }
)

KEPT_CLASSES = (ContentClass.HTML, ContentClass.PDF, ContentClass.PLAINTEXT)


def build_http_client(config: Config | None = None) -> httpx.AsyncClient:
    """Create the shared client used by the fetch stage."""
    config = config or get_config()
    return httpx.AsyncClient(
        headers={"User-Agent": config.user_agent},
        follow_redirects=True,
        max_redirects=config.max_redirects,
        timeout=config.request_timeout_seconds,
    )


def filter_headers(headers: httpx.Headers) -> dict[str, list[str]]:
    """Lowercase, group multi-valued headers and drop the denylist."""
    result: dict[str, list[str]] = {}
    for key, value in headers.multi_items():
        key = key.lower()
        if key in HEADER_DENYLIST:
            continue
        result.setdefault(key, []).append(value)
    return result


class FetchStage(Stage):
    """Fetch ``link.url`` once; skipped entirely when ``last_fetched`` is set.

    Connection failures and timeouts leave the link unfetched. Non-2xx
    responses leave the gate unset so a later run may retry. A body that
    breaks off mid-stream is dropped but the gate is still set. Any other
    transport error surfaces as ``FetchError``.
    """

    kind = StageKind.FETCH
    name = "fetch"

    def __init__(self, client: httpx.AsyncClient, max_body_bytes: int | None = None):
        self.client = client
        self.max_body_bytes = max_body_bytes
        self.logger = get_logger(__name__)

    async def _read_body(self, response: httpx.Response, url: str) -> bytes | None:
        declared = response.headers.get("content-length")
        if self.max_body_bytes is not None and declared and declared.isdigit():
            if int(declared) > self.max_body_bytes:
                self.logger.warning("Dropping oversized body", url=url, content_length=int(declared))
                return None

        chunks: list[bytes] = []
        size = 0
        try:
            async for chunk in response.aiter_bytes():
                size += len(chunk)
                if self.max_body_bytes is not None and size > self.max_body_bytes:
                    self.logger.warning("Dropping oversized body", url=url, limit=self.max_body_bytes)
                    return None
                chunks.append(chunk)
        except httpx.HTTPError as e:
            # Status and headers already arrived, so the link still counts as fetched.
            self.logger.warning(
                "Body read failed, keeping headers only", url=url, error=str(e), error_type=type(e).__name__
            )
            return None
        return b"".join(chunks)

    @log_stage("fetch")
    async def process(self, link: Link) -> Link:
        if link.last_fetched is not None:
            self.logger.debug("Not fetching, already fetched", url=link.url, last_fetched=str(link.last_fetched))
            return link

        try:
            async with self.client.stream("GET", link.url) as response:
                if not response.is_success:
                    self.logger.info("Fetch returned non-success status", url=link.url, status=response.status_code)
                    return link

                fetched_at = utcnow()
                headers = filter_headers(response.headers)
                content_class = ContentClass.from_content_type(headers.get("content-type", [None])[-1])

                body = None
                if content_class in KEPT_CLASSES:
                    body = await self._read_body(response, link.url)
                else:
                    self.logger.info("Not keeping body", url=link.url, content_type=headers.get("content-type"))

        except (httpx.ConnectError, httpx.TimeoutException) as e:
            self.logger.warning("Could not reach link", url=link.url, error=str(e), error_type=type(e).__name__)
            return link
        except httpx.HTTPError as e:
            raise FetchError(link.url, f"{type(e).__name__}: {e}") from e

        link.last_fetched = fetched_at
        link.http_headers = headers
        link.src = body
        return link
