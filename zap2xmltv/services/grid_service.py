"""
Grid listings fetcher

Retrieves one time window of raw listings JSON per call.
"""
import logging
from datetime import datetime, timezone

import httpx

from zap2xmltv.errors import FetchError
from zap2xmltv.models import LineupConfig, Session, TimeWindow


logger = logging.getLogger(__name__)

GRID_URL = "https://tvlistings.zap2it.com/api/grid"


class GridFetcher:
    """Issues one GET per TimeWindow against the grid endpoint."""

    def __init__(self, client: httpx.AsyncClient, grid_url: str = GRID_URL) -> None:
        self._client = client
        self._grid_url = grid_url

    def build_params(
        self,
        session: Session,
        lineup: LineupConfig,
        window: TimeWindow,
    ) -> dict[str, str]:
        return {
            "Activity_ID": "1",
            "FromPage": "TV Guide",
            "AffiliateId": "gapzap",
            "token": session.token,
            "aid": "gapzap",
            "lineupId": lineup.lineup_id,
            "timespan": str(window.hours),
            "headendId": lineup.headend_id or session.region_hint or "",
            "country": lineup.country,
            "device": lineup.device,
            "postalCode": lineup.zip_code,
            "isOverride": "true",
            "time": str(window.start),
            "pref": "m,p",
            "userId": "-",
            "languagecode": lineup.language,
        }

    async def fetch_window(
        self,
        session: Session,
        lineup: LineupConfig,
        window: TimeWindow,
    ) -> dict:
        """
        Fetch the raw listings page for one window

        Args:
            session: Authenticated session
            lineup: Lineup selection
            window: Window whose start time is requested

        Returns:
            Decoded JSON object

        Raises:
            FetchError: On transport failure, HTTP error status or a body that
                is not a JSON object
        """
        window_label = datetime.fromtimestamp(window.start, timezone.utc).isoformat()
        logger.debug("Requesting grid window starting %s", window_label)

        try:
            response = await self._client.get(
                self._grid_url,
                params=self.build_params(session, lineup, window),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"Grid request for {window_label} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Grid request for {window_label} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(f"Failed to parse grid data for {window_label}") from exc

        if not isinstance(payload, dict):
            raise FetchError(f"Grid data for {window_label} is not a JSON object")

        return payload
