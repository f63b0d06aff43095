"""
Geocoding clients (Google Maps and a mock), distance helpers and the
address-list diagnostic used by the `/test-geocoding` endpoint.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
REQUEST_TIMEOUT = 10  # seconds
EARTH_RADIUS_KM = 6371

# Fallback value; coordinates equal to it are treated as mock data.
HELSINKI_CENTER = (60.1699, 24.9384)

# Tokens that already pin an address to the service area.
REGION_TOKENS = ("helsinki", "espoo", "vantaa", "finland", "suomi")

TEST_ADDRESSES = (
    "Mannerheimintie 1, Helsinki",
    "Kamppi, Helsinki",
    "Pasila, Helsinki",
    "Tikkurila, Vantaa",
    "Espoo Center, Espoo",
    "Kallio, Helsinki",
    "Hakaniemi, Helsinki",
    "IsoRoobertinkatu 6, Helsinki",
)


@dataclass
class Coordinates:
    lat: float
    lng: float
    formatted_address: Optional[str] = None


class Geocoder(Protocol):
    api_key_configured: bool

    def geocode_address(self, address: str) -> Optional[Coordinates]:
        ...


def to_rad(degrees: float) -> float:
    return degrees * (math.pi / 180)


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres (haversine), rounded to 2 decimals."""
    d_lat = to_rad(lat2 - lat1)
    d_lng = to_rad(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(to_rad(lat1)) * math.cos(to_rad(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def is_mock_coordinates(coords: Coordinates) -> bool:
    return (coords.lat, coords.lng) == HELSINKI_CENTER


def validate_coordinates(coords: Coordinates) -> bool:
    if is_mock_coordinates(coords):
        logger.error("Coordinates validation failed: using mock/default values")
        return False

    if (
        not coords.lat
        or not coords.lng
        or math.isnan(coords.lat)
        or math.isnan(coords.lng)
    ):
        logger.error("Coordinates validation failed: invalid values")
        return False

    in_finland = 59.0 <= coords.lat <= 70.5 and 19.0 <= coords.lng <= 32.0
    if not in_finland:
        logger.warning("Coordinates appear to be outside Finland: %s", coords)
    return True


def with_region_bias(address: str) -> str:
    lowered = address.lower()
    if any(token in lowered for token in REGION_TOKENS):
        return address
    return f"{address}, Helsinki, Finland"


@dataclass
class GoogleGeocodingClient:
    api_key: Optional[str]
    timeout: float = REQUEST_TIMEOUT

    @property
    def api_key_configured(self) -> bool:
        return bool(self.api_key)

    def geocode_address(self, address: str) -> Optional[Coordinates]:
        if not self.api_key:
            logger.error("Google Maps API key not configured")
            return None

        search_address = with_region_bias(address)
        logger.info("Geocoding %r", search_address)
        try:
            response = requests.get(
                GEOCODE_URL,
                params={
                    "address": search_address,
                    "key": self.api_key,
                    "region": "fi",
                    "language": "fi",
                },
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError):
            logger.exception("Geocoding request failed for %r", search_address)
            return None

        status = data.get("status")
        results = data.get("results") or []
        if status == "OK" and results:
            first = results[0]
            location = first["geometry"]["location"]
            return Coordinates(
                lat=location["lat"],
                lng=location["lng"],
                formatted_address=first.get("formatted_address"),
            )
        if status == "ZERO_RESULTS":
            logger.error("Address not found: %s", search_address)
            return None
        if status == "REQUEST_DENIED":
            logger.error("Google API error: %s", data.get("error_message"))
            return None
        logger.warning("Geocoding failed with status: %s", status)
        return None


class MockGeocodingClient:
    """Resolves every address to the Helsinki-center fallback."""

    api_key_configured = False

    def geocode_address(self, address: str) -> Optional[Coordinates]:
        lat, lng = HELSINKI_CENTER
        return Coordinates(lat=lat, lng=lng, formatted_address=address)


def run_geocoding_validation(
    geocoder: Geocoder,
    addresses: tuple[str, ...] = TEST_ADDRESSES,
    *,
    delay_seconds: float = 0.2,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """
    Geocode each address in turn (pausing between calls to stay under rate
    limits) and summarize the outcome.
    """
    results: list[dict] = []
    mock_count = 0

    for address in addresses:
        try:
            coords = geocoder.geocode_address(address)
        except Exception as exc:
            logger.exception("Geocoding raised for %r", address)
            results.append({"address": address, "success": False, "error": str(exc)})
        else:
            if coords:
                if is_mock_coordinates(coords):
                    mock_count += 1
                results.append(
                    {
                        "address": address,
                        "success": True,
                        "coordinates": {"lat": coords.lat, "lng": coords.lng},
                        "formatted_address": coords.formatted_address or address,
                    }
                )
            else:
                results.append(
                    {
                        "address": address,
                        "success": False,
                        "error": "No coordinates returned (Address not found or API error)",
                    }
                )
        if delay_seconds:
            sleep(delay_seconds)

    distance_test = None
    if len(results) > 3 and results[0]["success"] and results[3]["success"]:
        start, end = results[0], results[3]
        distance = calculate_distance(
            start["coordinates"]["lat"],
            start["coordinates"]["lng"],
            end["coordinates"]["lat"],
            end["coordinates"]["lng"],
        )
        distance_test = {
            "from": start["address"],
            "to": end["address"],
            "distance": f"{distance:.2f} km",
            "expected": "~15-18 km",
        }

    successful = sum(1 for r in results if r["success"])
    total = len(addresses)
    logger.info(
        "Geocoding validation: %d/%d successful (%d mock)", successful, total, mock_count
    )
    if successful - mock_count > 0:
        message = "Google Maps API is working correctly!"
    elif successful:
        message = "Geocoding returned mock coordinates only"
    else:
        message = "Geocoding failed"
    return {
        "apiKeyConfigured": bool(geocoder.api_key_configured),
        "summary": {
            "total": total,
            "successful": successful,
            "failed": total - successful,
            "mock": mock_count,
            "real": successful - mock_count,
        },
        "results": results,
        "distanceTest": distance_test,
        "message": message,
    }
