# core/motion.py — rigid swarm translation along a compass direction
from __future__ import annotations
import logging
import math
from dataclasses import replace

from config import METERS_PER_DEG_LAT, MPS_PER_MPH, DIAGONAL_FACTOR
from .state import DroneState, MotionConfig

logger = logging.getLogger(__name__)

# ---- direction table ----------------------------------------------------------
# (lat_factor, lon_factor). Diagonals use the same per-axis factor on both
# axes, so they are not normalised to unit ground speed.
D = DIAGONAL_FACTOR
DIRECTION_VECTORS = {
    'N':  ( 1.0,  0.0),
    'NE': ( D,    D),
    'E':  ( 0.0,  1.0),
    'SE': (-D,    D),
    'S':  (-1.0,  0.0),
    'SW': (-D,   -D),
    'W':  ( 0.0, -1.0),
    'NW': ( D,   -D),
}
DIRECTIONS = tuple(DIRECTION_VECTORS)


# ---- helpers ----------------------------------------------------------------
def _finite_nonneg(x) -> float:
    try:
        x = float(x)
    except (TypeError, ValueError):
        return 0.0
    return x if math.isfinite(x) and x > 0.0 else 0.0

def normalize_direction(direction) -> str:
    """Upper-cased compass code, or 'N' for anything unrecognised."""
    if isinstance(direction, str):
        d = direction.strip().upper()
        if d in DIRECTION_VECTORS:
            return d
    return 'N'

def direction_vector(direction) -> tuple[float, float]:
    return DIRECTION_VECTORS[normalize_direction(direction)]

def degrees_per_ms(speed_mph) -> float:
    """Ground speed [mph] as degrees of latitude per millisecond."""
    meters_per_second = _finite_nonneg(speed_mph) * MPS_PER_MPH
    degrees_per_second = meters_per_second / METERS_PER_DEG_LAT
    return degrees_per_second / 1000.0

def displacement(speed_mph, direction, elapsed_ms) -> tuple[float, float]:
    """(lat_delta, lon_delta) in degrees for one tick."""
    move = degrees_per_ms(speed_mph) * _finite_nonneg(elapsed_ms)
    lat_f, lon_f = direction_vector(direction)
    return move * lat_f, move * lon_f

def translate(drones: list[DroneState], lat_delta: float, lon_delta: float) -> list[DroneState]:
    """
    Shift every drone by the same (lat, lon) delta, in place.

    A drone whose new position leaves the valid coordinate range is removed
    from the list; the others still move.
    """
    if lat_delta == 0.0 and lon_delta == 0.0:
        return drones
    kept = []
    for d in drones:
        p = d.position.offset(lat_delta, lon_delta)
        if p.is_valid():
            d.position = p
            kept.append(d)
        else:
            logger.warning("Drone %d dropped: moved out of range to %s", d.index, p)
    drones[:] = kept
    return drones


# ---- integrator ---------------------------------------------------------------
class MotionIntegrator:
    """
    Two-state (Idle / Running) integrator advanced by an external frame clock.

      • start(): Idle → Running, forgets the last tick timestamp, so the first
        tick afterwards only records the time and moves nothing.
      • stop():  Running → Idle. Ticks while idle are ignored.
      • update(): speed / direction change; applies from the next tick and
        keeps the timestamp.
    """

    def __init__(self, config: MotionConfig | None = None):
        # private copy; the caller's config is never written to
        self.config = replace(config) if config is not None else MotionConfig()
        self.config.direction = normalize_direction(self.config.direction)
        self._last_ms: float | None = None

    @property
    def moving(self) -> bool:
        return bool(self.config.moving)

    def start(self) -> None:
        if not self.config.moving:
            logger.info("Motion start: %.1f mph %s", self.config.speed_mph, self.config.direction)
        self.config.moving = True
        self._last_ms = None

    def stop(self) -> None:
        if self.config.moving:
            logger.info("Motion stop")
        self.config.moving = False
        self._last_ms = None

    def update(self, speed_mph=None, direction=None) -> None:
        if speed_mph is not None:
            self.config.speed_mph = _finite_nonneg(speed_mph)
        if direction is not None:
            self.config.direction = normalize_direction(direction)

    def advance(self, drones: list[DroneState], elapsed_ms) -> list[DroneState]:
        """Translate `drones` by the motion covered in `elapsed_ms`."""
        if not self.config.moving:
            return drones
        lat_d, lon_d = displacement(self.config.speed_mph, self.config.direction, elapsed_ms)
        return translate(drones, lat_d, lon_d)

    def tick(self, drones: list[DroneState], now_ms) -> float:
        """
        Frame-clock tick. `now_ms` is a clock reading, not a delta: the elapsed
        time is derived from the previous tick and returned (0.0 on the first
        tick after start, while idle, or when the clock went backwards).
        Schedulers that already know the frame delta call `advance` instead.
        """
        if not self.config.moving:
            return 0.0
        try:
            now = float(now_ms)
        except (TypeError, ValueError):
            now = math.nan
        if self._last_ms is None or not math.isfinite(now):
            self._last_ms = now if math.isfinite(now) else None
            return 0.0
        elapsed = _finite_nonneg(now - self._last_ms)
        self._last_ms = now
        self.advance(drones, elapsed)
        return elapsed
