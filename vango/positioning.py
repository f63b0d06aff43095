"""
Sources of the transporter device's current position.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import requests


@dataclass
class Position:
    latitude: float
    longitude: float

    def as_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


class PositionSource(Protocol):
    """Returns a fresh fix. Implementations must not serve cached positions."""

    def get_position(self, timeout: float) -> Optional[Position]:
        ...


@dataclass
class FixedPositionSource:
    """Always reports the same position; used for tests and demos."""

    latitude: float
    longitude: float

    def get_position(self, timeout: float) -> Optional[Position]:
        return Position(latitude=self.latitude, longitude=self.longitude)


@dataclass
class HttpPositionSource:
    """
    Reads the position from a device-local HTTP endpoint (e.g. a GPS bridge app)
    returning JSON with `latitude`/`longitude` (or `lat`/`lng`) keys.
    """

    url: str

    def get_position(self, timeout: float) -> Optional[Position]:
        response = requests.get(
            self.url, timeout=timeout, headers={"Cache-Control": "no-cache"}
        )
        response.raise_for_status()
        payload = response.json()
        lat = payload.get("latitude", payload.get("lat"))
        lng = payload.get("longitude", payload.get("lng"))
        if lat is None or lng is None:
            return None
        return Position(latitude=float(lat), longitude=float(lng))
