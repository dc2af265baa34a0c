"""
Nominatim (OpenStreetMap) geocoding for Irish addresses.

Used when no Google Maps key is configured or Google returns nothing. Tries
several query strategies in order and finally falls back to a town/county
centroid so bookings can still be matched to nearby installers.
"""

import asyncio
import logging
import re
from typing import Optional

import httpx

from ..config import NOMINATIM_BASE_URL, NOMINATIM_USER_AGENT
from ..shared.validators import extract_eircode

logger = logging.getLogger(__name__)

# Be respectful of the public Nominatim instance between strategies
QUERY_DELAY_SECONDS = 0.1

IRISH_COUNTIES = [
    "Dublin", "Cork", "Galway", "Kerry", "Mayo", "Donegal", "Tipperary",
    "Antrim", "Limerick", "Derry", "Wexford", "Kilkenny", "Waterford",
    "Clare", "Tyrone", "Down", "Westmeath", "Meath", "Kildare", "Wicklow",
    "Offaly", "Cavan", "Laois", "Sligo", "Fermanagh", "Armagh", "Monaghan",
    "Roscommon", "Louth", "Carlow", "Longford", "Leitrim",
]

# (lat, lng, county) for towns; longer names are matched first
IRISH_TOWNS: dict[str, tuple[float, float, str]] = {
    "dublin": (53.3441, -6.2675, "Dublin"),
    "blanchardstown": (53.3928, -6.3764, "Dublin"),
    "tallaght": (53.2859, -6.3733, "Dublin"),
    "swords": (53.4597, -6.2178, "Dublin"),
    "dun laoghaire": (53.2936, -6.1347, "Dublin"),
    "rathmines": (53.3258, -6.2594, "Dublin"),
    "ballymun": (53.3956, -6.2642, "Dublin"),
    "rathfarnham": (53.2925, -6.2794, "Dublin"),
    "carrickmines": (53.2769, -6.1522, "Dublin"),
    "cork": (51.8985, -8.4756, "Cork"),
    "carrigaline": (51.8139, -8.3989, "Cork"),
    "little island": (51.9028, -8.3467, "Cork"),
    "galway": (53.2707, -9.0568, "Galway"),
    "tuam": (53.5147, -8.8564, "Galway"),
    "athenry": (53.2983, -8.7439, "Galway"),
    "limerick": (52.6638, -8.6267, "Limerick"),
    "waterford": (52.2593, -7.1101, "Waterford"),
    "kilkenny": (52.6541, -7.2448, "Kilkenny"),
    "wexford": (52.3369, -6.4633, "Wexford"),
    "sligo": (54.2766, -8.4761, "Sligo"),
    "drogheda": (53.7178, -6.3478, "Louth"),
    "dundalk": (54.0019, -6.4058, "Louth"),
    "bray": (53.2028, -6.0989, "Wicklow"),
    "naas": (53.2167, -6.6667, "Kildare"),
    "navan": (53.6548, -6.6978, "Meath"),
    "athlone": (53.4239, -7.9406, "Westmeath"),
    "tullamore": (53.2738, -7.4901, "Offaly"),
    "portlaoise": (53.0344, -7.3016, "Laois"),
    "carlow": (52.8417, -6.9264, "Carlow"),
    "ennis": (52.8454, -8.9831, "Clare"),
    "tralee": (52.2706, -9.7002, "Kerry"),
    "killarney": (52.0599, -9.5040, "Kerry"),
    "clonmel": (52.3558, -7.7003, "Tipperary"),
    "castlebar": (53.8547, -9.2977, "Mayo"),
    "letterkenny": (54.9539, -7.7338, "Donegal"),
}

# County-level centroids used when no town matches
COUNTY_CENTROIDS: dict[str, tuple[float, float]] = {
    "Dublin": (53.3441, -6.2675),
    "Cork": (51.8985, -8.4756),
    "Galway": (53.2707, -9.0568),
    "Limerick": (52.6638, -8.6267),
    "Waterford": (52.2593, -7.1101),
    "Kilkenny": (52.6541, -7.2448),
    "Wexford": (52.3369, -6.4633),
    "Carlow": (52.8417, -6.9264),
    "Laois": (53.0344, -7.3016),
    "Kildare": (53.1639, -6.9113),
    "Meath": (53.6548, -6.6978),
    "Louth": (53.8578, -6.3981),
    "Monaghan": (54.2489, -6.9683),
    "Cavan": (53.9909, -7.3609),
    "Longford": (53.7236, -7.7929),
    "Westmeath": (53.5232, -7.3430),
    "Offaly": (53.2738, -7.4901),
    "Clare": (52.8454, -8.9831),
    "Kerry": (52.1602, -9.5238),
    "Tipperary": (52.4731, -8.1600),
    "Roscommon": (53.6279, -8.1951),
    "Sligo": (54.2766, -8.4761),
    "Leitrim": (54.0667, -7.8833),
    "Mayo": (53.8547, -9.2977),
    "Donegal": (54.6572, -8.1104),
    "Wicklow": (52.9804, -6.0437),
}

PREFERRED_RESULT_TYPES = {"house", "building", "residential"}
PREFERRED_RESULT_CLASSES = {"building", "place"}


def extract_county(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lowered = text.lower()
    for county in IRISH_COUNTIES:
        if re.search(rf"\b{county.lower()}\b", lowered):
            return county
    return None


def _with_country(text: str) -> str:
    return text if "ireland" in text.lower() else f"{text}, Ireland"


def build_search_queries(address: str) -> list[str]:
    """Ordered Nominatim queries: full address, address + Ireland, Eircode, town + county"""
    queries = [address, _with_country(address)]

    eircode = extract_eircode(address)
    if eircode:
        queries.append(f"{eircode}, Ireland")

    parts = [p.strip() for p in address.split(",") if p.strip()]
    county = extract_county(address)
    if len(parts) >= 2:
        town = parts[-2] if county and county.lower() in parts[-1].lower() else parts[-1]
        queries.append(f"{town}, {county}, Ireland" if county else _with_country(town))

    # Keep order, drop repeats
    return list(dict.fromkeys(queries))


def find_town_match(address: str) -> Optional[dict]:
    """Centroid of the most specific town, then county, named in the address"""
    lowered = address.lower()
    matches = [name for name in IRISH_TOWNS if name in lowered]
    if matches:
        name = max(matches, key=len)
        lat, lng, county = IRISH_TOWNS[name]
        return {
            "lat": lat,
            "lng": lng,
            "formattedAddress": f"{name.title()}, {county}, Ireland",
            "county": county,
            "country": "Ireland",
            "postalCode": extract_eircode(address),
            "placeId": None,
            "source": "centroid",
        }

    county = extract_county(address)
    if county and county in COUNTY_CENTROIDS:
        lat, lng = COUNTY_CENTROIDS[county]
        return {
            "lat": lat,
            "lng": lng,
            "formattedAddress": f"Co. {county}, Ireland",
            "county": county,
            "country": "Ireland",
            "postalCode": extract_eircode(address),
            "placeId": None,
            "source": "centroid",
        }
    return None


def _pick_result(results: list[dict]) -> dict:
    for item in results:
        if item.get("type") in PREFERRED_RESULT_TYPES or item.get("class") in PREFERRED_RESULT_CLASSES:
            return item
    return results[0]


def parse_nominatim_result(item: dict) -> dict:
    details = item.get("address", {})
    display_name = item.get("display_name", "")
    county = details.get("county") or details.get("state") or extract_county(display_name)
    if county and county.lower().startswith("county "):
        county = county[len("county "):]
    return {
        "lat": float(item["lat"]),
        "lng": float(item["lon"]),
        "formattedAddress": display_name,
        "county": county,
        "country": details.get("country"),
        "postalCode": details.get("postcode"),
        "placeId": str(item["place_id"]) if item.get("place_id") is not None else None,
        "source": "nominatim",
    }


async def geocode_with_nominatim(address: str, client: Optional[httpx.AsyncClient] = None) -> Optional[dict]:
    """
    Geocode an Irish address through Nominatim, falling back to town/county
    centroids. Returns None only when nothing in the address is recognisable.
    """
    if not address or not address.strip():
        return None

    headers = {"User-Agent": NOMINATIM_USER_AGENT}
    own_client = client is None
    client = client or httpx.AsyncClient(timeout=10.0)

    try:
        for index, query in enumerate(build_search_queries(address.strip())):
            if index:
                await asyncio.sleep(QUERY_DELAY_SECONDS)
            params = {
                "q": query,
                "format": "json",
                "addressdetails": "1",
                "limit": "5",
                "countrycodes": "ie",
            }
            try:
                resp = await client.get(f"{NOMINATIM_BASE_URL}/search", params=params, headers=headers)
            except httpx.HTTPError as e:
                logger.warning(f"⚠️ Nominatim request failed for '{query}': {e}")
                continue

            if resp.status_code >= 400:
                logger.warning(f"⚠️ Nominatim API error {resp.status_code} for '{query}'")
                continue

            results = resp.json()
            if results:
                logger.info(f"✅ Geocoded via Nominatim: {address} (query: '{query}')")
                return parse_nominatim_result(_pick_result(results))
    finally:
        if own_client:
            await client.aclose()

    match = find_town_match(address)
    if match:
        logger.info(f"⚠️ Nominatim found nothing, using centroid for: {address}")
    else:
        logger.warning(f"❌ Could not geocode address: {address}")
    return match
