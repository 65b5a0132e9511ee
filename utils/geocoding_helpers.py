"""
Geocoding helper for resolving a stop's location name to coordinates
using Nominatim (OpenStreetMap).
"""
import logging
from typing import Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"


def geocode_place_to_coords(
    place_query: str,
    timeout: float = 10.0
) -> Optional[Tuple[float, float, str]]:
    """
    Convert a place name/address to coordinates.

    Returns:
        (lat, lon, display_name) or None if geocoding fails
    """
    try:
        with httpx.Client(timeout=timeout) as client:
            resp = client.get(
                NOMINATIM_SEARCH_URL,
                params={
                    "q": place_query,
                    "format": "json",
                    "limit": 1,
                },
                headers={"User-Agent": "ItineraryPlanner/1.0"}
            )
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Geocoding failed for %r: %s", place_query, e)
        return None

    if not data:
        return None
    result = data[0]
    return float(result["lat"]), float(result["lon"]), result["display_name"]
