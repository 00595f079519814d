# core/swarm.py — formation + motion driver on a cooperative frame scheduler
#
# The scheduler is anything with Tk's after(ms, fn) -> job / after_cancel(job)
# pair (a tk.Tk in the app, a fake in tests). One frame callback is pending at
# most; stop() and close() cancel it.
from __future__ import annotations
import logging
import time
from typing import Callable, List, Optional

from config import FPS, FormationDefault, MotionDefault
from .state import GeoPoint, FormationConfig, MotionConfig, DroneState
from .formation import build_formation, chord_radius_ft
from .motion import MotionIntegrator

logger = logging.getLogger(__name__)

Listener = Callable[[List[DroneState]], None]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SwarmSimulation:
    def __init__(self, scheduler, *, clock: Callable[[], float] = monotonic_ms,
                 formation: FormationConfig | None = None,
                 motion: MotionConfig | None = None,
                 frame_ms: int | None = None):
        self.scheduler = scheduler
        self.clock = clock
        self.frame_ms = frame_ms if frame_ms is not None else max(1, int(1000 / FPS))

        fd, md = FormationDefault(), MotionDefault()
        self.formation = formation or FormationConfig(fd.drone_count, fd.spacing_ft)
        self.integrator = MotionIntegrator(motion or MotionConfig(md.speed_mph, md.direction, False))

        self.center: Optional[GeoPoint] = None
        self.drones: List[DroneState] = []
        self._listeners: List[Listener] = []
        self._job = None
        self._frame_gen = 0        # bumps on every cancel; stale frames compare against it
        self.frames = 0

    # ---- read-only views -------------------------------------------------------
    @property
    def motion(self) -> MotionConfig:
        return self.integrator.config

    @property
    def running(self) -> bool:
        return self.integrator.moving

    @property
    def radius_ft(self) -> float:
        return chord_radius_ft(self.formation.drone_count, self.formation.spacing_ft)

    def centroid(self) -> Optional[GeoPoint]:
        if not self.drones:
            return None
        n = len(self.drones)
        lon = sum(d.position.longitude for d in self.drones) / n
        lat = sum(d.position.latitude for d in self.drones) / n
        return GeoPoint(lon, lat)

    # ---- listeners -------------------------------------------------------------
    def add_listener(self, fn: Listener) -> None:
        self._listeners.append(fn)

    def _notify(self) -> None:
        for fn in list(self._listeners):
            try:
                fn(self.drones)
            except Exception:
                # a failing view or log must not stall the frame loop
                logger.exception("Swarm listener %r failed", fn)

    # ---- inputs ----------------------------------------------------------------
    def set_center(self, point: GeoPoint) -> bool:
        """Install the reference point and lay out the formation around it."""
        if point is None or not point.is_valid():
            logger.warning("Rejected reference point %s", point)
            return False
        self.center = point
        logger.info("Reference point: lat=%.6f lon=%.6f", point.latitude, point.longitude)
        self._rebuild()
        return True

    def set_formation(self, drone_count=None, spacing_ft=None) -> None:
        """Recompute the formation wholesale; existing DroneStates are discarded."""
        if drone_count is not None:
            self.formation.drone_count = drone_count
        if spacing_ft is not None:
            self.formation.spacing_ft = spacing_ft
        self._rebuild()

    def set_motion(self, speed_mph=None, direction=None) -> None:
        self.integrator.update(speed_mph=speed_mph, direction=direction)

    def _rebuild(self) -> None:
        if self.center is None:
            self.drones = []
            return
        self.drones = build_formation(self.center, self.formation)
        logger.info("Formation: %d drones, radius %.2f ft", len(self.drones), self.radius_ft)
        self._notify()

    # ---- state machine ---------------------------------------------------------
    def start(self) -> None:
        """Idle → Running. The first frame after this only stamps the clock."""
        if self.running and self._job is not None:
            return
        self.integrator.start()
        self._schedule()

    def stop(self) -> None:
        """Running → Idle, cancelling the pending frame."""
        self.integrator.stop()
        self._cancel()

    def toggle(self) -> bool:
        if self.running:
            self.stop()
        else:
            self.start()
        return self.running

    def close(self) -> None:
        self.stop()
        self.center = None
        self.drones = []
        self._listeners.clear()

    # ---- frame loop ------------------------------------------------------------
    def _schedule(self) -> None:
        gen = self._frame_gen
        self._job = self.scheduler.after(self.frame_ms, lambda: self._on_frame(gen))

    def _cancel(self) -> None:
        self._frame_gen += 1
        if self._job is not None:
            try:
                self.scheduler.after_cancel(self._job)
            except Exception:
                logger.debug("after_cancel failed for job %r", self._job)
            self._job = None

    def _on_frame(self, gen: int) -> None:
        if gen != self._frame_gen or not self.running:
            return                 # stale
        self._job = None
        before = len(self.drones)
        try:
            elapsed = self.integrator.tick(self.drones, self.clock())
            self.frames += 1
            # an emptied list is still reported so views drop the last marker
            if elapsed > 0.0 and (self.drones or before):
                self._notify()
        finally:
            self._schedule()
