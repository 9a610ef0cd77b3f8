"""Geographic data fetching: Overpass road data and place geocoding."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp
from geopy.exc import GeocoderTimedOut, GeocoderUnavailable, GeopyError
from geopy.geocoders import Nominatim

from .geometry import OverlayError


if TYPE_CHECKING:
    from .projection import BoundingBox


class GeoError(OverlayError):
    """Base exception for geo module errors."""


class GeocodingError(GeoError):
    """Raised when geocoding fails."""


class OSMFetchError(GeoError):
    """Raised when OSM data fetching fails."""


__all__ = [
    "OVERPASS_URL",
    "GeoError",
    "GeocodingError",
    "OSMFetchError",
    "build_overpass_query",
    "fetch_road_data",
    "get_coordinates",
]

logger = logging.getLogger(__name__)

OVERPASS_URL = "https://overpass-api.de/api/interpreter"
USER_AGENT = "roadoverlay"
HTTP_TOO_MANY_REQUESTS = 429
HTTP_BAD_REQUEST = 400


def build_overpass_query(bbox: BoundingBox) -> str:
    """Overpass QL for every highway way in ``bbox`` plus all of their nodes."""
    return (
        f'[out:json][timeout:60];(way["highway"]({bbox.to_overpass()}););'
        "out body;>;out skel qt;"
    )


async def _post_query(
    session: aiohttp.ClientSession,
    url: str,
    query: str,
    timeout: float,
) -> Any:
    async with session.post(
        url,
        data={"data": query},
        headers={"User-Agent": USER_AGENT},
        timeout=aiohttp.ClientTimeout(total=timeout),
    ) as resp:
        if resp.status == HTTP_TOO_MANY_REQUESTS:
            logger.error("Rate limited by Overpass API")
            raise OSMFetchError("Rate limited by Overpass API")
        if resp.status >= HTTP_BAD_REQUEST:
            logger.error("HTTP error from Overpass API: %s", resp.status)
            raise OSMFetchError(f"HTTP error from Overpass API: {resp.status}")
        return await resp.json(content_type=None)


async def fetch_road_data(
    bbox: BoundingBox,
    *,
    url: str = OVERPASS_URL,
    timeout: float = 90.0,
    session: aiohttp.ClientSession | None = None,
) -> list[dict[str, Any]]:
    """Fetch highway ways and their nodes inside a bounding box.

    Args:
        bbox: The area to query.
        url: Overpass API interpreter endpoint.
        timeout: Total request timeout in seconds.
        session: Optional shared HTTP session; a private one is used otherwise.

    Returns:
        The raw Overpass ``elements`` list.

    Raises:
        OSMFetchError: On network errors, HTTP errors or an unusable response.
    """
    query = build_overpass_query(bbox)
    logger.debug("Querying Overpass for %s", bbox.to_overpass())
    try:
        if session is None:
            async with aiohttp.ClientSession() as own_session:
                payload = await _post_query(own_session, url, query, timeout)
        else:
            payload = await _post_query(session, url, query, timeout)
    except OSMFetchError:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("Network error fetching road data: %s", e)
        raise OSMFetchError(f"Network error fetching road data: {e}") from e
    except ValueError as e:
        logger.error("Unparseable response from Overpass API: %s", e)
        raise OSMFetchError(f"Unparseable response from Overpass API: {e}") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("elements"), list):
        logger.error("Overpass response has no element list")
        raise OSMFetchError("Overpass response has no element list")
    if remark := payload.get("remark"):
        logger.warning("Overpass remark: %s", remark)
    return payload["elements"]


def get_coordinates(place: str) -> tuple[float, float]:
    """Fetch coordinates for a free-text place name using geopy.

    Args:
        place: Place name, e.g. ``"Karlsruhe, Germany"``.

    Returns:
        A tuple of (latitude, longitude).

    Raises:
        GeocodingError: If the place cannot be found or a network error occurs.
    """
    logger.info("Looking up coordinates for %s...", place)
    geolocator = Nominatim(user_agent=USER_AGENT)
    geolocator.timeout = 10

    try:
        location = geolocator.geocode(place)
    except (GeocoderTimedOut, GeocoderUnavailable) as e:
        logger.error("Network error during geocoding: %s", e)
        raise GeocodingError(f"Network error during geocoding for {place}.") from e
    except GeopyError as e:
        logger.error("Geocoding failed: %s", e)
        raise GeocodingError(f"Geocoding failed for {place}.") from e

    if location is None:
        raise GeocodingError(f"Could not find coordinates for {place}")

    if addr := getattr(location, "address", None):
        logger.info("Found: %s", addr)
    logger.info("Coordinates: %s, %s", location.latitude, location.longitude)
    return float(location.latitude), float(location.longitude)
