# core/state.py — swarm data model (pure stdlib)
from __future__ import annotations
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class GeoPoint:
    longitude: float
    latitude: float

    @classmethod
    def from_latlon(cls, lat: float, lon: float) -> "GeoPoint":
        return cls(longitude=float(lon), latitude=float(lat))

    def is_valid(self) -> bool:
        """True when both coordinates are finite and inside the WGS84 ranges."""
        lon, lat = self.longitude, self.latitude
        if not (math.isfinite(lon) and math.isfinite(lat)):
            return False
        return -180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0

    def as_lonlat(self) -> tuple[float, float]:
        return self.longitude, self.latitude

    def offset(self, lat_delta: float, lon_delta: float) -> "GeoPoint":
        return GeoPoint(self.longitude + lon_delta, self.latitude + lat_delta)


@dataclass
class FormationConfig:
    drone_count: int = 8
    spacing_ft: float = 100.0   # chord between adjacent drones


@dataclass
class MotionConfig:
    speed_mph: float = 5.0
    direction: str = "N"        # N | NE | E | SE | S | SW | W | NW
    moving: bool = False


@dataclass
class DroneState:
    index: int                  # 1-based, stable for the life of the formation
    position: GeoPoint
