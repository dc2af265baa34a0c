"""
Google Maps integration: geocoding, distances and static map URLs.

Geocoding goes to Google when GOOGLE_MAPS_API_KEY is set and falls back to
Nominatim for Irish addresses. Results are cached in Redis.
"""

import logging
import math
from typing import Optional
from urllib.parse import urlencode

import httpx

from ..cache import GEOCODE_TTL, cache, geocode_key
from ..config import GOOGLE_MAPS_API_KEY
from .irish_geocoder import extract_county, geocode_with_nominatim

logger = logging.getLogger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
GOOGLE_STATIC_MAP_URL = "https://maps.googleapis.com/maps/api/staticmap"
EARTH_RADIUS_KM = 6371.0
MAX_BATCH_GEOCODE = 25


class MapsError(Exception):
    """Raised when the maps provider returns an error"""


def is_google_configured() -> bool:
    return bool(GOOGLE_MAPS_API_KEY)


def parse_google_result(result: dict) -> dict:
    """Flatten a Google Geocoding result"""
    county = country = postal_code = None
    for component in result.get("address_components", []):
        types = component.get("types", [])
        if "administrative_area_level_1" in types:
            county = component.get("long_name")
        if "country" in types:
            country = component.get("long_name")
        if "postal_code" in types:
            postal_code = component.get("long_name")

    formatted = result.get("formatted_address", "")
    if county and county.lower().startswith("county "):
        county = county[len("county "):]

    location = result["geometry"]["location"]
    return {
        "lat": location["lat"],
        "lng": location["lng"],
        "formattedAddress": formatted,
        "county": county or extract_county(formatted),
        "country": country,
        "postalCode": postal_code,
        "placeId": result.get("place_id"),
        "source": "google",
    }


async def geocode_with_google(address: str) -> Optional[dict]:
    params = {"address": address, "key": GOOGLE_MAPS_API_KEY, "region": "ie"}
    async with httpx.AsyncClient(timeout=10.0) as client:
        resp = await client.get(GOOGLE_GEOCODE_URL, params=params)

    if resp.status_code >= 400:
        raise MapsError(f"Google Geocoding HTTP {resp.status_code}")

    data = resp.json()
    status = data.get("status")
    if status == "ZERO_RESULTS":
        return None
    if status != "OK":
        raise MapsError(f"Google Geocoding status {status}: {data.get('error_message', '')}")

    return parse_google_result(data["results"][0])


async def geocode_address(address: str) -> Optional[dict]:
    """
    Geocode an address: Google first (when configured), then Nominatim.

    Returns:
        {lat, lng, formattedAddress, county, country, postalCode, placeId, source}
        or None when nothing matched.
    """
    if not address or not address.strip():
        return None

    provider = "google" if is_google_configured() else "nominatim"
    key = geocode_key(provider, address)
    cached = cache.get(key)
    if cached is not None:
        return cached

    result = None
    if is_google_configured():
        try:
            result = await geocode_with_google(address)
        except (httpx.HTTPError, MapsError) as e:
            logger.warning(f"⚠️ Google geocoding failed for '{address}': {e}")

    if result is None:
        result = await geocode_with_nominatim(address)

    if result is not None:
        cache.set(key, result, GEOCODE_TTL)
    return result


async def batch_geocode(addresses: list[str]) -> list[dict]:
    """Geocode sequentially so provider rate limits are respected"""
    if len(addresses) > MAX_BATCH_GEOCODE:
        raise ValueError(f"At most {MAX_BATCH_GEOCODE} addresses per batch")

    results = []
    for address in addresses:
        try:
            result = await geocode_address(address)
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Batch geocode failed for '{address}': {e}")
            result = None
        results.append({"address": address, "result": result})
    return results


def calculate_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance rounded to one decimal"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 1)


def generate_static_map_url(
    center_lat: float,
    center_lng: float,
    zoom: int = 15,
    width: int = 600,
    height: int = 400,
    markers: Optional[list[dict]] = None,
    map_type: str = "roadmap",
) -> str:
    """
    Google Static Maps URL. Each marker is {lat, lng, color?, label?}; labels
    default to the marker's 1-based position.
    """
    params = [
        ("center", f"{center_lat},{center_lng}"),
        ("zoom", str(zoom)),
        ("size", f"{width}x{height}"),
        ("maptype", map_type),
    ]
    for index, marker in enumerate(markers or [], start=1):
        color = marker.get("color") or "red"
        label = marker.get("label") or str(index)
        params.append(("markers", f"color:{color}|label:{label}|{marker['lat']},{marker['lng']}"))
    params.append(("key", GOOGLE_MAPS_API_KEY or ""))
    return f"{GOOGLE_STATIC_MAP_URL}?{urlencode(params)}"


def booking_map_url(
    customer_lat: float,
    customer_lng: float,
    installer_lat: Optional[float] = None,
    installer_lng: Optional[float] = None,
) -> str:
    """Customer marker (blue C) and optional installer marker (green I)"""
    markers = [{"lat": customer_lat, "lng": customer_lng, "color": "blue", "label": "C"}]
    has_installer = installer_lat is not None and installer_lng is not None
    if has_installer:
        markers.append({"lat": installer_lat, "lng": installer_lng, "color": "green", "label": "I"})
    return generate_static_map_url(
        customer_lat,
        customer_lng,
        zoom=12 if has_installer else 15,
        width=600,
        height=300,
        markers=markers,
    )


def find_nearby(
    lat: float, lng: float, locations: list[dict], radius_km: float = 50
) -> list[dict]:
    """
    Filter {id, lat, lng, ...} dicts to those within radius_km, nearest first.
    Entries without coordinates are skipped.
    """
    nearby = []
    for location in locations:
        if location.get("lat") is None or location.get("lng") is None:
            continue
        distance = calculate_distance_km(lat, lng, location["lat"], location["lng"])
        if distance <= radius_km:
            nearby.append({**location, "distance": distance})
    nearby.sort(key=lambda item: item["distance"])
    return nearby


def is_irish_result(result: Optional[dict]) -> bool:
    if not result:
        return False
    return result.get("country") == "Ireland" or "ireland" in (result.get("formattedAddress") or "").lower()


async def validate_irish_address(address: str) -> dict:
    result = await geocode_address(address)
    return {"valid": is_irish_result(result), "result": result}
