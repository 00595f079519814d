# geoio/geocoder.py — address → GeoPoint via Nominatim, with a fixed fallback
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from config import (NOMINATIM_URL, USER_AGENT, GEOCODE_TIMEOUT,
                    FALLBACK_LAT, FALLBACK_LON)
from core.state import GeoPoint

logger = logging.getLogger(__name__)

FALLBACK_POINT = GeoPoint.from_latlon(FALLBACK_LAT, FALLBACK_LON)


@dataclass(frozen=True)
class GeocodeResult:
    point: GeoPoint
    source: str                 # 'nominatim' | 'fallback'
    error: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.source == 'fallback'


class Geocoder:
    """
    Free-text address resolution against the OpenStreetMap Nominatim search API.

    `geocode()` always returns a usable point: when the service is unreachable,
    answers with an error, returns nothing, or returns garbage, the result
    carries FALLBACK_POINT and a short error string instead.
    """

    def __init__(self, url: str = NOMINATIM_URL, timeout: float = GEOCODE_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 fallback: GeoPoint = FALLBACK_POINT):
        self.url = url
        self.timeout = timeout
        self.fallback = fallback
        self.session = session or requests.Session()
        self.session.headers.setdefault('User-Agent', USER_AGENT)

    def _fallback(self, error: Optional[str]) -> GeocodeResult:
        return GeocodeResult(self.fallback, 'fallback', error)

    def geocode(self, address: str) -> GeocodeResult:
        address = (address or "").strip()
        if not address:
            logger.warning("Empty address, using default coordinates")
            return self._fallback("empty address")

        params = {'format': 'json', 'q': address, 'limit': 1}
        try:
            resp = self.session.get(self.url, params=params, timeout=self.timeout,
                                    headers={'User-Agent': USER_AGENT})
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            logger.error("Geocoding error for %r: %s", address, e)
            return self._fallback("Geocoding failed")
        except ValueError as e:
            logger.error("Geocoding returned invalid JSON for %r: %s", address, e)
            return self._fallback("Geocoding failed")

        if not isinstance(data, list) or not data:
            logger.info("Geocoding returned no results for %r, using default coordinates", address)
            return self._fallback(None)

        first = data[0]
        try:
            point = GeoPoint.from_latlon(float(first['lat']), float(first['lon']))
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Geocoding result unusable for %r: %s", address, e)
            return self._fallback("Geocoding failed")
        if not point.is_valid():
            logger.error("Geocoding result out of range for %r: %s", address, point)
            return self._fallback("Geocoding failed")

        logger.info("Geocoded %r -> lat=%.6f lon=%.6f", address, point.latitude, point.longitude)
        return GeocodeResult(point, 'nominatim')

    def close(self) -> None:
        self.session.close()
