"""Quest API client — fetches the current quest list for one locale."""

from __future__ import annotations

import logging

import httpx

from qwesty.errors import TransientError, UpstreamAuthError, UpstreamError
from qwesty.ingestion.quest import QuestRecord, parse_upstream_quest

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) discord/1.0.9175 Chrome/128.0.6613.186 "
    "Electron/32.2.7 Safari/537.36"
)


class QuestClient:
    """Fetcher for ``GET {base_url}/quests/@me``.

    Holds no state between calls and never retries; the driver's next tick
    is the retry.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://discord.com/api/v10",
        super_properties: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._super_properties = super_properties
        self._timeout = timeout

    def _headers(self, region: str) -> dict[str, str]:
        headers = {
            "Authorization": self._token,
            "User-Agent": USER_AGENT,
            "X-Discord-Locale": region,
        }
        if self._super_properties:
            headers["X-Super-Properties"] = self._super_properties
        return headers

    def fetch(self, region: str) -> list[QuestRecord]:
        """Return the quests currently offered in ``region``.

        Raises UpstreamAuthError on 401/403, TransientError on transport
        failures, 429 and 5xx, and UpstreamError on any other bad response.
        """
        url = f"{self._base_url}/quests/@me"
        logger.debug("Fetching quests for locale %s", region)

        try:
            resp = httpx.get(url, headers=self._headers(region), timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise TransientError(f"Quest request failed for {region}: {exc}") from exc

        status = resp.status_code
        if status in (401, 403):
            raise UpstreamAuthError(f"Quest API rejected the token (HTTP {status})")
        if status == 429 or status >= 500:
            raise TransientError(f"Quest API returned HTTP {status} for {region}")
        if not 200 <= status < 300:
            raise UpstreamError(f"Quest API returned HTTP {status} for {region}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(f"Quest API returned invalid JSON for {region}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("quests"), list):
            raise UpstreamError(f"Quest API response for {region} has no quests list")

        try:
            quests = [parse_upstream_quest(q, region) for q in data["quests"]]
        except ValueError as exc:
            raise UpstreamError(f"Malformed quest in {region} response: {exc}") from exc

        logger.info("Fetched %d quests from API (locale: %s)", len(quests), region)
        return quests
