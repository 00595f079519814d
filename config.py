# config.py — runtime settings
import os
from dataclasses import dataclass

# GUI
APP_TITLE = "Drone Swarm Map Simulator"
WINDOW_W  = 1280
WINDOW_H  = 800
FPS       = 60             # animation frames requested per second

# Reference point
DEFAULT_ADDRESS = os.environ.get("SWARM_ADDRESS", "811 main street kansas city MO 64105")
FALLBACK_LAT    = 39.0997  # Kansas City, MO
FALLBACK_LON    = -94.5786
OFFLINE         = os.environ.get("SWARM_OFFLINE", "").strip().lower() in ("1", "true", "yes")

# Units
METERS_PER_DEG_LAT = 111320.0
FEET_PER_METER     = 3.28084
MPS_PER_MPH        = 0.44704
DIAGONAL_FACTOR    = 0.707

# Geocoding (Nominatim / OpenStreetMap)
NOMINATIM_URL   = "https://nominatim.openstreetmap.org/search"
USER_AGENT      = "SimulationApp/1.0"
GEOCODE_TIMEOUT = 10.0     # s

# Basemap tiles
TILE_URL         = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
TILE_SIZE        = 256     # px
TILE_TIMEOUT     = 10.0    # s
TILE_CACHE_SIZE  = 256     # tiles kept in memory
MIN_ZOOM         = 0
MAX_TILE_ZOOM    = 19
INITIAL_ZOOM     = 15
FIT_MAX_ZOOM     = 17
FIT_PADDING_PX   = 200
ATTRIBUTION      = "© OpenStreetMap contributors"

# Control panel ranges
DRONE_COUNT_CHOICES = (1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 12, 16, 20)
SPACING_RANGE_FT    = (10, 1000, 10)   # min, max, step
SPEED_RANGE_MPH     = (1, 100, 1)
DIRECTION_PAD       = ("NW", "N", "NE", "W", "", "E", "SW", "S", "SE")

# Logging
LOG_LEVEL = os.environ.get("SWARM_LOG_LEVEL", "INFO").upper()
LOG_DIR   = "logs"


@dataclass
class FormationDefault:
    drone_count: int   = 8
    spacing_ft: float  = 100.0


@dataclass
class MotionDefault:
    speed_mph: float = 5.0
    direction: str   = "N"
    moving: bool     = True
