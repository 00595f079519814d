# geoio/tiles.py — Web-Mercator viewport math + OSM raster basemap compositing
from __future__ import annotations
import io
import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Optional

import requests
from PIL import Image, ImageDraw

from config import (TILE_URL, TILE_SIZE, TILE_TIMEOUT, TILE_CACHE_SIZE, USER_AGENT,
                    MIN_ZOOM, MAX_TILE_ZOOM, FIT_MAX_ZOOM, FIT_PADDING_PX)
from core.state import GeoPoint

logger = logging.getLogger(__name__)

MAX_MERCATOR_LAT = 85.05112878

GRID_BG   = (42, 42, 42)
GRID_LINE = (60, 60, 60)


# ---- projection ---------------------------------------------------------------
def world_size(zoom: int) -> float:
    return TILE_SIZE * float(1 << int(zoom))

def lonlat_to_world(lon: float, lat: float, zoom: int) -> tuple[float, float]:
    """Global pixel coordinates at `zoom` (origin top-left at 180°W, 85°N)."""
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    s = world_size(zoom)
    x = (lon + 180.0) / 360.0 * s
    r = math.radians(lat)
    y = (1.0 - math.log(math.tan(r) + 1.0 / math.cos(r)) / math.pi) / 2.0 * s
    return x, y

def world_to_lonlat(x: float, y: float, zoom: int) -> tuple[float, float]:
    s = world_size(zoom)
    lon = x / s * 360.0 - 180.0
    n = math.pi * (1.0 - 2.0 * y / s)
    lat = math.degrees(math.atan(math.sinh(n)))
    return lon, lat


@dataclass
class Viewport:
    center: GeoPoint
    zoom: int
    width: int
    height: int

    def origin(self) -> tuple[float, float]:
        cx, cy = lonlat_to_world(self.center.longitude, self.center.latitude, self.zoom)
        return cx - self.width / 2.0, cy - self.height / 2.0

    def to_px(self, point: GeoPoint) -> tuple[float, float]:
        ox, oy = self.origin()
        x, y = lonlat_to_world(point.longitude, point.latitude, self.zoom)
        return x - ox, y - oy

    def to_geo(self, px: float, py: float) -> GeoPoint:
        ox, oy = self.origin()
        lon, lat = world_to_lonlat(ox + px, oy + py, self.zoom)
        return GeoPoint(lon, lat)


def fit_zoom(points: Iterable[GeoPoint], width: int, height: int,
             padding: int = FIT_PADDING_PX, max_zoom: int = FIT_MAX_ZOOM) -> tuple[GeoPoint, int]:
    """
    Centre and integer zoom that show every point inside the viewport with
    `padding` px on each side. Padding shrinks when the viewport is too small
    for it; a single point (or identical points) gets `max_zoom`.
    """
    pts = [p for p in points if p.is_valid()]
    if not pts:
        raise ValueError("fit_zoom needs at least one valid point")

    lon0 = min(p.longitude for p in pts); lon1 = max(p.longitude for p in pts)
    lat0 = min(p.latitude for p in pts);  lat1 = max(p.latitude for p in pts)
    x0, y1 = lonlat_to_world(lon0, lat0, 0)
    x1, y0 = lonlat_to_world(lon1, lat1, 0)
    cx, cy = (x0 + x1) / 2.0, (y0 + y1) / 2.0
    clon, clat = world_to_lonlat(cx, cy, 0)
    center = GeoPoint(clon, clat)

    pad = min(padding, width // 4, height // 4)
    avail_w = max(1, width - 2 * pad)
    avail_h = max(1, height - 2 * pad)
    span_x, span_y = x1 - x0, y1 - y0

    zoom = max_zoom
    if span_x > 0.0 or span_y > 0.0:
        scale = min(avail_w / span_x if span_x > 0 else math.inf,
                    avail_h / span_y if span_y > 0 else math.inf)
        zoom = int(math.floor(math.log2(scale)))
    return center, max(MIN_ZOOM, min(max_zoom, zoom))


# ---- tiles -------------------------------------------------------------------
def grid_tile(step: int = 32) -> Image.Image:
    img = Image.new('RGB', (TILE_SIZE, TILE_SIZE), GRID_BG)
    draw = ImageDraw.Draw(img)
    for v in range(0, TILE_SIZE, step):
        draw.line([(v, 0), (v, TILE_SIZE)], fill=GRID_LINE)
        draw.line([(0, v), (TILE_SIZE, v)], fill=GRID_LINE)
    return img


class TileSource:
    """OSM raster tiles over HTTP with a small in-memory LRU cache."""

    def __init__(self, url: str = TILE_URL, timeout: float = TILE_TIMEOUT,
                 cache_size: int = TILE_CACHE_SIZE, offline: bool = False,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.offline = offline
        self.cache_size = cache_size
        self._cache: "OrderedDict[tuple[int, int, int], Image.Image]" = OrderedDict()
        self.session = session or requests.Session()
        self.session.headers.setdefault('User-Agent', USER_AGENT)
        self.failures = 0

    def _fetch(self, z: int, x: int, y: int) -> Optional[Image.Image]:
        if self.offline:
            return None
        url = self.url.format(z=z, x=x, y=y)
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
            img = Image.open(io.BytesIO(resp.content))
            img.load()
            return img.convert('RGB')
        except requests.RequestException as e:
            logger.warning("Tile %d/%d/%d failed: %s", z, x, y, e)
        except OSError as e:
            logger.warning("Tile %d/%d/%d unreadable: %s", z, x, y, e)
        self.failures += 1
        return None

    def tile(self, z: int, x: int, y: int) -> Image.Image:
        """Tile image; x wraps around the antimeridian, rows off the map are grid."""
        n = 1 << z
        if y < 0 or y >= n:
            return grid_tile()
        x %= n
        key = (z, x, y)
        img = self._cache.get(key)
        if img is not None:
            self._cache.move_to_end(key)
            return img
        img = self._fetch(z, x, y)
        if img is None:
            return grid_tile()     # failures are not cached so they are retried
        self._cache[key] = img
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return img

    def render(self, view: Viewport) -> Image.Image:
        """Composite the tiles covering `view` into one RGB image."""
        z = max(MIN_ZOOM, min(MAX_TILE_ZOOM, int(view.zoom)))
        if z != view.zoom:
            view = Viewport(view.center, z, view.width, view.height)
        ox, oy = view.origin()
        out = Image.new('RGB', (max(1, view.width), max(1, view.height)), GRID_BG)
        tx0, ty0 = int(math.floor(ox / TILE_SIZE)), int(math.floor(oy / TILE_SIZE))
        tx1 = int(math.floor((ox + view.width - 1) / TILE_SIZE))
        ty1 = int(math.floor((oy + view.height - 1) / TILE_SIZE))
        for ty in range(ty0, ty1 + 1):
            for tx in range(tx0, tx1 + 1):
                px = int(round(tx * TILE_SIZE - ox))
                py = int(round(ty * TILE_SIZE - oy))
                out.paste(self.tile(z, tx, ty), (px, py))
        return out

    def close(self) -> None:
        self.session.close()
