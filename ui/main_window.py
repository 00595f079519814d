# ui/main_window.py — map + controls, background geocoding/tiles, HUD, CSV run log
from __future__ import annotations
import tkinter as tk
import csv, os, logging, datetime as dt
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Callable, List, Optional, Tuple

from config import (APP_TITLE, WINDOW_W, WINDOW_H, DEFAULT_ADDRESS, OFFLINE, LOG_DIR,
                    INITIAL_ZOOM, MotionDefault)
from core.state import DroneState
from core.swarm import SwarmSimulation
from geoio.geocoder import Geocoder, GeocodeResult, FALLBACK_POINT
from geoio.tiles import TileSource, Viewport
from ui.map_view import MapView
from ui.controls import ControlsPanel

logger = logging.getLogger(__name__)

JOB_POLL_MS = 50


class MainWindow(tk.Tk):
    def __init__(self, address: str = DEFAULT_ADDRESS, offline: bool = OFFLINE):
        super().__init__()
        self.title(APP_TITLE)
        self.geometry(f"{WINDOW_W}x{WINDOW_H}")
        self.configure(bg='#1b1b1b')

        # ---- Services ----------------------------------------------------------
        self.offline  = offline
        self.geocoder = Geocoder()
        self.tiles    = TileSource(offline=offline)
        self.pool     = ThreadPoolExecutor(max_workers=1, thread_name_prefix="geoio")
        self._jobs: List[Tuple[Future, Callable]] = []
        self._basemap_busy = False
        self._basemap_next: Optional[Viewport] = None

        # ---- State -------------------------------------------------------------
        self.sim = SwarmSimulation(self)
        self.sim.add_listener(self._on_drones)
        self._formation_list = None      # identity of the drone list last drawn
        self._autostart = MotionDefault().moving
        self.address = address

        # Logging
        self.log_file = None
        self.log_writer = None
        self._log_t0 = 0.0

        # ---- Layout ------------------------------------------------------------
        # 60:40 split (Map : Controls)
        self.columnconfigure(0, weight=3, uniform="cols")
        self.columnconfigure(1, weight=2, uniform="cols")
        self.rowconfigure(0, weight=1)

        self.map = MapView(self, on_view_change=self._on_view_change)
        self.map.grid(row=0, column=0, sticky='nsew')

        self.controls = ControlsPanel(self, address, self._on_toggle, self._on_address,
                                      self._on_params_change)
        self.controls.grid(row=0, column=1, sticky='nsew')
        self._apply_params(self.controls.params(), rebuild=False)

        # HUD (top-left over the map)
        self.hud = tk.Label(self.map.canvas, text="", fg='#ffffff', bg='#000000',
                            padx=6, pady=3, justify='left')
        self.hud.place(x=10, y=10)

        # Keys
        self.bind_all("<space>", lambda e: self._on_toggle() if e.widget is self.map.canvas else None)
        self.bind_all("<Control-q>", lambda e: self._on_close())
        self.bind_all("<Command-q>", lambda e: self._on_close())
        self.protocol("WM_DELETE_WINDOW", self._on_close)

        self.after(JOB_POLL_MS, self._poll_jobs)
        self.after(100, lambda: self._on_address(address))

    # ---- background jobs -------------------------------------------------------
    def _submit(self, fn, callback, *args):
        self._jobs.append((self.pool.submit(fn, *args), callback))

    def _poll_jobs(self):
        done = [(f, cb) for f, cb in self._jobs if f.done()]
        self._jobs = [(f, cb) for f, cb in self._jobs if not f.done()]
        for f, cb in done:
            exc = f.exception()
            if exc is not None:
                logger.error("Background job failed: %s", exc)
                cb(None)
            else:
                cb(f.result())
        self.after(JOB_POLL_MS, self._poll_jobs)

    # ---- address / geocoding ---------------------------------------------------
    def _on_address(self, address: str):
        self.address = address
        self.controls.set_status("locating address…")
        if self.offline:
            self._on_geocoded(GeocodeResult(FALLBACK_POINT, 'fallback', 'offline'))
            return
        self._submit(self.geocoder.geocode, self._on_geocoded, address)

    def _on_geocoded(self, result: Optional[GeocodeResult]):
        if result is None:
            result = GeocodeResult(FALLBACK_POINT, 'fallback', 'Geocoding failed')
        point = result.point
        self._formation_list = None
        self.map.set_address(point)
        if self.map.view is None:
            self.map.set_view(point, INITIAL_ZOOM)
        self.sim.set_center(point)
        if result.error:
            self.controls.set_status(f"{result.error}; using default location")
        elif result.used_fallback:
            self.controls.set_status("address not found; using default location")
        else:
            self.controls.set_status(f"{point.latitude:.5f}, {point.longitude:.5f}")
        if self._autostart:
            self._autostart = False
            self._start()

    # ---- basemap ---------------------------------------------------------------
    def _on_view_change(self, view: Viewport):
        if self._basemap_busy:
            self._basemap_next = view
            return
        self._basemap_busy = True
        self._submit(self.tiles.render, lambda img, v=view: self._on_basemap(img, v), view)

    def _on_basemap(self, image, view: Viewport):
        self._basemap_busy = False
        if image is not None:
            self.map.set_basemap(image, view)
        nxt, self._basemap_next = self._basemap_next, None
        if nxt is not None:
            self._on_view_change(nxt)

    # ---- params from panel -----------------------------------------------------
    def _apply_params(self, p, rebuild=True):
        f = self.sim.formation
        if rebuild and (p['COUNT'] != f.drone_count or p['SPACING'] != f.spacing_ft):
            self.sim.set_formation(p['COUNT'], p['SPACING'])
        else:
            f.drone_count, f.spacing_ft = p['COUNT'], p['SPACING']
        self.sim.set_motion(speed_mph=p['SPEED'], direction=p['DIRECTION'])
        self._update_hud()

    def _on_params_change(self, p):
        self._apply_params(p)

    # ---- run / stop ------------------------------------------------------------
    def _start(self):
        self.sim.start()
        self._open_log()
        self.controls.set_running(True)
        self.map.canvas.focus_set()

    def _stop(self):
        self.sim.stop()
        self._close_log()
        self.controls.set_running(False)

    def _on_toggle(self):
        if self.sim.running:
            self._stop()
        else:
            self._start()
        self._update_hud()

    # ---- drones ----------------------------------------------------------------
    def _on_drones(self, drones: List[DroneState]):
        if drones is not self._formation_list:
            # new formation: fit the view to the address plus every drone
            self._formation_list = drones
            self.map.clear_drones()
            self.map.drones = drones
            pts = [d.position for d in drones]
            if self.sim.center is not None:
                pts.append(self.sim.center)
            self.map.fit_bounds(pts)
        else:
            self.map.draw_drones(drones)
        self._log_step(drones)
        self._update_hud()

    def _update_hud(self):
        m = self.sim.motion
        lines = [f"Drones {len(self.sim.drones)}   radius {self.sim.radius_ft:.1f} ft",
                 f"{m.speed_mph:.0f} mph {m.direction}   {'moving' if self.sim.running else 'stopped'}"]
        c = self.sim.centroid()
        if c is not None:
            lines.append(f"centroid {c.latitude:.6f}, {c.longitude:.6f}")
        self.hud.config(text="\n".join(lines))

    # ---- CSV run log -----------------------------------------------------------
    def _open_log(self):
        if self.log_file:
            return
        try:
            os.makedirs(LOG_DIR, exist_ok=True)
            ts = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
            path = os.path.join(LOG_DIR, f"swarm_{ts}.csv")
            self.log_file = open(path, "w", newline="")
        except OSError as e:
            logger.warning("Run log disabled: %s", e)
            self.log_file = None
            return
        self.log_writer = csv.writer(self.log_file)
        self.log_writer.writerow(["t_ms", "drone", "lat", "lon"])
        self._log_t0 = self.sim.clock()
        logger.info("Run log: %s", path)

    def _close_log(self):
        if self.log_file:
            try:
                self.log_file.flush(); self.log_file.close()
            except OSError as e:
                logger.warning("Closing run log failed: %s", e)
        self.log_file = None
        self.log_writer = None

    def _log_step(self, drones: List[DroneState]):
        if self.log_writer:
            t = self.sim.clock() - self._log_t0
            for d in drones:
                self.log_writer.writerow([f"{t:.1f}", d.index,
                                          f"{d.position.latitude:.7f}", f"{d.position.longitude:.7f}"])

    # ---- teardown --------------------------------------------------------------
    def _on_close(self):
        self.sim.close()
        self._close_log()
        self.pool.shutdown(wait=False, cancel_futures=True)
        self.geocoder.close()
        self.tiles.close()
        self.destroy()
