# core/formation.py — circular swarm layout around a reference point
#
# Drones sit on the vertices of a regular polygon whose side (chord) is the
# requested spacing. Index 0 is due north of the centre and indices run
# clockwise. Feet are converted to degrees with a flat-earth scale that is
# recomputed for each centre latitude; near the poles the longitude scale
# diverges and the ring is stretched east-west. That distortion is accepted.
from __future__ import annotations
import logging
import math

from config import METERS_PER_DEG_LAT, FEET_PER_METER, FormationDefault
from .state import GeoPoint, FormationConfig, DroneState

logger = logging.getLogger(__name__)


# ---- helpers ----------------------------------------------------------------
def _coerce_count(n) -> int:
    try:
        n = int(n)
    except (TypeError, ValueError, OverflowError):
        return 1
    return n if n >= 1 else 1

def _coerce_spacing(ft) -> float:
    try:
        ft = float(ft)
    except (TypeError, ValueError):
        return FormationDefault.spacing_ft
    if not math.isfinite(ft) or ft <= 0.0:
        return FormationDefault.spacing_ft
    return ft

def meters_per_degree_lon(latitude: float) -> float:
    """Length of one degree of longitude at `latitude` (flat-earth approximation)."""
    return METERS_PER_DEG_LAT * math.cos(math.radians(latitude))

def chord_radius_ft(drone_count, spacing_ft) -> float:
    """
    Radius of the circle on which `drone_count` drones are `spacing_ft` apart
    along the chord:  R = s / (2 sin(π/n)).  One drone (or fewer) sits on the
    centre, so the radius is 0.
    """
    n = _coerce_count(drone_count)
    if n <= 1:
        return 0.0
    step = 2.0 * math.pi / n
    return _coerce_spacing(spacing_ft) / (2.0 * math.sin(step / 2.0))

def formation_offsets(center: GeoPoint, config: FormationConfig) -> tuple[float, float]:
    """Ring radius in degrees as (radius_lat, radius_lon) for this centre."""
    radius_m = chord_radius_ft(config.drone_count, config.spacing_ft) / FEET_PER_METER
    radius_lat = radius_m / METERS_PER_DEG_LAT
    m_per_deg_lon = meters_per_degree_lon(center.latitude)
    if radius_m == 0.0:
        return 0.0, 0.0
    if m_per_deg_lon == 0.0:
        return radius_lat, math.inf
    return radius_lat, radius_m / m_per_deg_lon


# ---- layout -----------------------------------------------------------------
def _ring(center: GeoPoint, config: FormationConfig) -> list[GeoPoint | None]:
    """Slot i holds the i-th vertex, or None when it falls outside valid coordinates."""
    if not center.is_valid():
        logger.warning("No formation: invalid centre %s", center)
        return []

    n = _coerce_count(config.drone_count)
    if n == 1:
        return [center]

    radius_lat, radius_lon = formation_offsets(center, config)
    step = 2.0 * math.pi / n
    logger.debug(
        "Formation: centre=(%.6f, %.6f) n=%d spacing=%.1fft radius=%.2fft step=%.1fdeg",
        center.latitude, center.longitude, n, _coerce_spacing(config.spacing_ft),
        chord_radius_ft(n, config.spacing_ft), math.degrees(step),
    )

    ring: list[GeoPoint | None] = []
    for i in range(n):
        angle = i * step                                   # clockwise from north
        p = GeoPoint(
            center.longitude + radius_lon * math.sin(angle) if math.isfinite(radius_lon) else math.nan,
            center.latitude + radius_lat * math.cos(angle),
        )
        if p.is_valid():
            ring.append(p)
        else:
            logger.warning("Drone %d dropped: position %s is out of range", i + 1, p)
            ring.append(None)
    return ring

def formation_positions(center: GeoPoint, config: FormationConfig) -> list[GeoPoint]:
    """
    Ordered vertex positions of the formation.

    Drones whose computed position is not a valid coordinate are left out;
    the remaining drones are unaffected. An invalid centre yields no drones.
    """
    return [p for p in _ring(center, config) if p is not None]

def build_formation(center: GeoPoint, config: FormationConfig) -> list[DroneState]:
    """Fresh DroneState records (1-based index) for the formation around `center`."""
    return [DroneState(index=i + 1, position=p)
            for i, p in enumerate(_ring(center, config)) if p is not None]
