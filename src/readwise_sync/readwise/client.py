"""
Async wrapper around the Readwise v2 export API.

requests is synchronous; we run it in a thread pool executor so it
doesn't block the asyncio event loop.

The export endpoint returns books with their highlights nested inside:

    GET /api/v2/export/?updatedAfter=<iso8601>&pageCursor=<cursor>
    {"count": 2, "nextPageCursor": "abc", "results": [{...book...}, ...]}

Pages are followed until nextPageCursor is null. Failures are raised as
ReadwiseAuthError (key rejected) or ReadwiseAPIError (anything else), so
callers only have to tell those two apart.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

DEFAULT_BASE_URL = "https://readwise.io"
EXPORT_PATH = "/api/v2/export/"


# ── Exceptions ────────────────────────────────────────────────────────────────

class ReadwiseError(RuntimeError):
    """Base class for failures talking to Readwise."""


class ReadwiseAuthError(ReadwiseError):
    """Raised when Readwise rejects the API key (HTTP 401/403)."""


class ReadwiseAPIError(ReadwiseError):
    """Raised for network errors, rate limiting, and malformed responses."""


# ── Helpers ───────────────────────────────────────────────────────────────────

def format_since(since: datetime) -> str:
    """Render a cursor timestamp the way the export API expects (UTC ISO-8601)."""
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# ── Main class ────────────────────────────────────────────────────────────────

class ReadwiseClient:
    """
    Thin async client for the export endpoint.

    The API key is passed per call rather than stored, so a key changed in
    settings takes effect on the next sync cycle.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Readwise host, overridable for testing.
            timeout: Per-request timeout in seconds.
            session: requests.Session to reuse (or a MagicMock in tests).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    async def _run(self, fn, *args, **kwargs):
        """Run a blocking call in the thread pool."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: fn(*args, **kwargs))

    async def fetch_exports(
        self, api_key: str, since: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch every book (with highlights) changed after `since`.

        Args:
            api_key: Readwise access token.
            since: Only return records updated after this time. None fetches
                the full history.

        Returns:
            List of book dicts, possibly empty.

        Raises:
            ReadwiseAuthError: if the key is rejected.
            ReadwiseAPIError: on any other failure.
        """
        return await self._run(self._fetch_exports_sync, api_key, since)

    def _fetch_exports_sync(
        self, api_key: str, since: Optional[datetime]
    ) -> List[Dict[str, Any]]:
        base_params: Dict[str, str] = {}
        if since is not None:
            base_params["updatedAfter"] = format_since(since)

        results: List[Dict[str, Any]] = []
        params = dict(base_params)
        while True:
            page = self._get_page(api_key, params)
            results.extend(page["results"])
            next_cursor = page.get("nextPageCursor")
            if not next_cursor:
                break
            params = {**base_params, "pageCursor": str(next_cursor)}
        return results

    def _get_page(self, api_key: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            resp = self._session.get(
                self._base_url + EXPORT_PATH,
                headers={"Authorization": f"Token {api_key}"},
                params=params,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ReadwiseAPIError(f"Could not reach Readwise: {exc}") from exc

        status = resp.status_code
        if status in (401, 403):
            raise ReadwiseAuthError(f"Readwise rejected the API key (HTTP {status})")
        if status == 429:
            retry_after = resp.headers.get("Retry-After", "?")
            raise ReadwiseAPIError(f"Rate limited by Readwise (retry after {retry_after}s)")
        if not 200 <= status < 300:
            raise ReadwiseAPIError(f"Readwise returned HTTP {status}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise ReadwiseAPIError("Readwise returned a response that is not JSON") from exc

        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise ReadwiseAPIError("Readwise export response has no results list")
        return data
