"""
Maps endpoints: geocoding, distances, static map URLs and nearby installers.
"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..config import NEARBY_INSTALLER_RADIUS_KM
from ..database import get_db
from ..models import Installer
from ..rate_limiter import create_rate_limiter
from ..services.maps_service import (
    MAX_BATCH_GEOCODE,
    MapsError,
    batch_geocode,
    booking_map_url,
    calculate_distance_km,
    find_nearby,
    generate_static_map_url,
    geocode_address,
    is_google_configured,
    validate_irish_address,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/maps", tags=["Maps"])

rate_limit_geocode = create_rate_limiter(limit=60, window_seconds=60, key_prefix="maps_geocode")


class Point(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class AddressRequest(BaseModel):
    address: str = Field(..., min_length=3, max_length=500)


class DistanceRequest(BaseModel):
    point1: Point
    point2: Point


class MapMarker(BaseModel):
    lat: float
    lng: float
    color: Optional[str] = None
    label: Optional[str] = Field(None, max_length=1)


class StaticMapRequest(BaseModel):
    center: Point
    zoom: int = Field(15, ge=1, le=21)
    width: int = Field(600, ge=50, le=640)
    height: int = Field(400, ge=50, le=640)
    markers: list[MapMarker] = []
    mapType: str = "roadmap"


class BatchGeocodeRequest(BaseModel):
    addresses: list[str] = Field(..., min_length=1)


class InstallerLocation(BaseModel):
    id: int
    lat: Optional[float] = None
    lng: Optional[float] = None
    name: Optional[str] = None


class NearbyInstallersRequest(BaseModel):
    customerLocation: Point
    installerLocations: Optional[list[InstallerLocation]] = None
    radiusKm: float = Field(NEARBY_INSTALLER_RADIUS_KM, gt=0, le=500)


class BookingMapRequest(BaseModel):
    customerAddress: str = Field(..., min_length=3, max_length=500)
    installerLocation: Optional[Point] = None


def _require_google():
    if not is_google_configured():
        raise HTTPException(status_code=503, detail="Google Maps is not configured")


@router.post("/geocode")
async def geocode(data: AddressRequest, _: None = Depends(rate_limit_geocode)):
    try:
        result = await geocode_address(data.address)
    except (httpx.HTTPError, MapsError) as e:
        logger.error(f"❌ Geocoding failed for '{data.address}': {e}")
        raise HTTPException(status_code=502, detail="Geocoding provider error") from e
    if not result:
        raise HTTPException(status_code=404, detail="Address not found")
    return result


@router.post("/distance")
async def distance(data: DistanceRequest):
    km = calculate_distance_km(data.point1.lat, data.point1.lng, data.point2.lat, data.point2.lng)
    return {"distance": km, "unit": "km"}


@router.post("/static-map")
async def static_map(data: StaticMapRequest):
    _require_google()
    url = generate_static_map_url(
        data.center.lat,
        data.center.lng,
        zoom=data.zoom,
        width=data.width,
        height=data.height,
        markers=[m.model_dump() for m in data.markers],
        map_type=data.mapType,
    )
    return {"mapUrl": url}


@router.post("/batch-geocode")
async def batch_geocode_addresses(data: BatchGeocodeRequest, _: None = Depends(rate_limit_geocode)):
    if len(data.addresses) > MAX_BATCH_GEOCODE:
        raise HTTPException(status_code=400, detail=f"At most {MAX_BATCH_GEOCODE} addresses per batch")
    return {"results": await batch_geocode(data.addresses)}


@router.post("/find-nearby-installers")
async def find_nearby_installers(data: NearbyInstallersRequest, db: Session = Depends(get_db)):
    """Installers within the radius, nearest first. Defaults to approved installers on file."""
    if data.installerLocations is not None:
        locations = [loc.model_dump() for loc in data.installerLocations]
    else:
        installers = db.query(Installer).filter(Installer.approval_status == "approved").all()
        locations = [
            {
                "id": i.id,
                "lat": i.latitude,
                "lng": i.longitude,
                "name": i.business_name,
                "serviceArea": i.service_area,
            }
            for i in installers
        ]

    nearby = find_nearby(data.customerLocation.lat, data.customerLocation.lng, locations, data.radiusKm)
    return {"nearbyInstallers": nearby}


@router.post("/booking-map")
async def booking_map(data: BookingMapRequest):
    _require_google()
    try:
        location = await geocode_address(data.customerAddress)
    except (httpx.HTTPError, MapsError) as e:
        raise HTTPException(status_code=502, detail="Geocoding provider error") from e
    if not location:
        raise HTTPException(status_code=404, detail="Unable to generate map for the provided address")

    installer = data.installerLocation
    url = booking_map_url(
        location["lat"],
        location["lng"],
        installer.lat if installer else None,
        installer.lng if installer else None,
    )
    return {"mapUrl": url}


@router.post("/validate-irish-address")
async def validate_address(data: AddressRequest, _: None = Depends(rate_limit_geocode)):
    try:
        result = await validate_irish_address(data.address)
    except (httpx.HTTPError, MapsError) as e:
        raise HTTPException(status_code=502, detail="Geocoding provider error") from e
    return {"isValid": result["valid"], "result": result["result"]}
