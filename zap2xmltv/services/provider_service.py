"""
Provider Lookup Service

Lists the lineups available for a postal code so the user can fill in
lineupId, headendId and device before the first guide build.
"""
import logging

import httpx
from pydantic import ValidationError

from zap2xmltv.errors import FetchError
from zap2xmltv.schemas import Provider
from zap2xmltv.utils.json_fields import get_list


logger = logging.getLogger(__name__)

PROVIDERS_URL = "https://tvlistings.zap2it.com/gapzap_webapi/api/Providers/getPostalCodeProviders"

TABLE_COLUMNS: tuple[tuple[str, int], ...] = (
    ("type", 15),
    ("name", 40),
    ("location", 15),
    ("headendID", 15),
    ("lineupId", 25),
    ("device", 15),
)


async def lookup_providers(
    client: httpx.AsyncClient,
    country: str,
    zip_code: str,
    language: str,
    *,
    base_url: str = PROVIDERS_URL,
) -> list[Provider]:
    """
    Query the providers available for a postal code

    Args:
        client: HTTP client to use
        country: Country code (e.g. 'USA')
        zip_code: Postal code
        language: Language tag (e.g. 'en-us')

    Returns:
        Providers in upstream order; malformed rows are skipped

    Raises:
        FetchError: If the request fails or the body is not usable JSON
    """
    url = f"{base_url}/{country}/{zip_code}/gapzap/{language}"
    logger.info("Looking up providers for %s %s", country, zip_code)

    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise FetchError(f"Error loading provider IDs: {exc}") from exc

    try:
        payload = response.json()
    except ValueError as exc:
        raise FetchError("Error parsing provider lookup response") from exc

    rows = get_list(payload, "Providers")
    if rows is None:
        raise FetchError("Provider lookup response has no 'Providers' list")

    providers: list[Provider] = []
    for row in rows:
        if not isinstance(row, dict):
            logger.debug("Skipping non-object provider row")
            continue
        try:
            providers.append(Provider.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping malformed provider row: %s", exc)

    logger.info("Found %s providers", len(providers))
    return providers


def _format_row(values: list[str]) -> str:
    return "|".join(f"{value:<{width}}" for value, (_, width) in zip(values, TABLE_COLUMNS))


def format_provider_table(providers: list[Provider]) -> str:
    """Render providers as a fixed-width, pipe-separated table with a header row."""
    lines = [_format_row([name for name, _ in TABLE_COLUMNS])]
    for provider in providers:
        lines.append(_format_row([
            provider.type,
            provider.name,
            provider.location,
            provider.headend_id,
            provider.lineup_id,
            provider.device,
        ]))
    return "\n".join(lines)
