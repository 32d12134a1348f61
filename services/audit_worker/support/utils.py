import re
import time
from urllib.parse import urlparse

import httpx

from services.audit_worker.config import settings
from services.audit_worker.errors import RedirectLoopError

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def prepend_schema(url: str) -> str:
    if _SCHEME_RE.match(url):
        return url
    return f"https://{url}"


def strip_scheme(url: str) -> str:
    return _SCHEME_RE.sub("", url)


def strip_trailing_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


def get_url_without_path(url: str) -> str:
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}"


def get_host(url: str) -> str:
    return urlparse(prepend_schema(url)).hostname or ""


def elapsed_seconds(start: float) -> str:
    return f"{time.perf_counter() - start:.2f}"


async def follow_redirects(url: str, client: httpx.AsyncClient, max_redirects: int | None = None) -> httpx.Response:
    """GET ``url`` and chase ``Location`` headers one hop at a time.

    ``client`` must be created with ``follow_redirects=False``. Relative
    locations are resolved by httpx when it builds ``next_request``.
    """
    limit = settings.max_redirects if max_redirects is None else max_redirects

    response = await client.get(url)
    seen = {str(response.request.url)}
    hops = 0

    while response.next_request is not None:
        request = response.next_request
        next_url = str(request.url)
        if next_url in seen:
            raise RedirectLoopError(next_url)

        hops += 1
        if hops > limit:
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

        seen.add(next_url)
        response = await client.send(request)

    return response


async def compose_audit_url(base_url: str) -> str:
    """Final URL of ``base_url`` after redirects, without scheme or trailing slash."""
    headers = {"User-Agent": settings.user_agent}
    async with httpx.AsyncClient(follow_redirects=False, headers=headers, timeout=settings.default_timeout_s) as client:
        response = await follow_redirects(prepend_schema(base_url), client)
    return strip_trailing_slash(strip_scheme(str(response.url)))
