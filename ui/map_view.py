# ui/map_view.py — Tkinter Canvas map: OSM basemap, address pin, numbered drone markers
from __future__ import annotations
import tkinter as tk
from typing import Callable, Dict, Iterable, List, Optional

from PIL import Image, ImageTk

from config import INITIAL_ZOOM, MIN_ZOOM, MAX_TILE_ZOOM, ATTRIBUTION, FIT_PADDING_PX, FIT_MAX_ZOOM
from core.state import GeoPoint, DroneState
from geoio.tiles import Viewport, fit_zoom

DRONE_R     = 12            # marker radius (24 px circle)
DRONE_FILL  = '#3b82f6'
PIN_FILL    = '#ef4444'


class MapView(tk.Frame):
    """
    Slippy-map canvas. The basemap is supplied from outside (`set_basemap`),
    because fetching tiles blocks; whenever the view changes `on_view_change`
    is called with the new Viewport so the owner can render one.
    """

    def __init__(self, master, on_view_change: Optional[Callable[[Viewport], None]] = None):
        super().__init__(master, bg='#202020')
        self.canvas = tk.Canvas(self, bg='#1e1e1e', highlightthickness=0)
        self.canvas.pack(fill=tk.BOTH, expand=True)
        self.bind('<Configure>', self._on_resize)

        self.on_view_change = on_view_change
        self.view: Optional[Viewport] = None
        self._basemap = None           # ImageTk.PhotoImage for the current view
        self._basemap_view = None      # (lon, lat, zoom, w, h) it was rendered for
        self._pan_anchor = None

        # draw item buckets
        self._pin_items: List[int] = []
        self._drone_items: Dict[int, tuple] = {}   # index -> (oval, text)
        self._hud_items = {'attrib': None}
        self.address: Optional[GeoPoint] = None
        self.drones: List[DroneState] = []

        # zoom buttons (top-right, like a navigation control)
        nav = tk.Frame(self.canvas, bg='#ffffff')
        tk.Button(nav, text='+', width=2, command=lambda: self.zoom_by(+1)).pack(side=tk.TOP)
        tk.Button(nav, text='−', width=2, command=lambda: self.zoom_by(-1)).pack(side=tk.TOP)
        nav.place(relx=1.0, x=-10, y=10, anchor='ne')

        self.canvas.bind('<MouseWheel>', self._on_wheel)             # Windows / macOS
        self.canvas.bind('<Button-4>', lambda e: self.zoom_by(+1))   # X11
        self.canvas.bind('<Button-5>', lambda e: self.zoom_by(-1))
        self.canvas.bind('<ButtonPress-1>', self._on_press)
        self.canvas.bind('<B1-Motion>', self._on_drag)
        self.canvas.bind('<ButtonRelease-1>', self._on_release)

    # ---------- view ----------
    def size(self) -> tuple[int, int]:
        return max(1, self.winfo_width()), max(1, self.winfo_height())

    def set_view(self, center: GeoPoint, zoom: int = INITIAL_ZOOM):
        w, h = self.size()
        zoom = max(MIN_ZOOM, min(MAX_TILE_ZOOM, int(zoom)))
        self.view = Viewport(center, zoom, w, h)
        self.redraw()
        if self.on_view_change:
            self.on_view_change(self.view)

    def fit_bounds(self, points: Iterable[GeoPoint],
                   padding: int = FIT_PADDING_PX, max_zoom: int = FIT_MAX_ZOOM):
        pts = [p for p in points if p is not None and p.is_valid()]
        if not pts:
            return
        w, h = self.size()
        center, zoom = fit_zoom(pts, w, h, padding=padding, max_zoom=max_zoom)
        self.set_view(center, zoom)

    def zoom_by(self, dz: int):
        if self.view is not None:
            self.set_view(self.view.center, self.view.zoom + dz)

    def _on_wheel(self, ev):
        self.zoom_by(+1 if ev.delta > 0 else -1)

    def _on_press(self, ev):
        self.canvas.focus_set()
        self._pan_anchor = (ev.x, ev.y)

    def _on_drag(self, ev):
        if self.view is None or self._pan_anchor is None:
            return
        ax, ay = self._pan_anchor
        dx, dy = ev.x - ax, ev.y - ay
        self.canvas.move('map', dx, dy)
        self._pan_anchor = (ev.x, ev.y)
        w, h = self.size()
        self.view = Viewport(self.view.to_geo(w / 2.0 - dx, h / 2.0 - dy), self.view.zoom, w, h)

    def _on_release(self, _ev):
        if self._pan_anchor is not None and self.view is not None:
            self._pan_anchor = None
            self.set_view(self.view.center, self.view.zoom)

    def _on_resize(self, _evt=None):
        w, h = self.winfo_width(), self.winfo_height()
        if w <= 2 or h <= 2 or self.view is None:
            return
        if (w, h) != (self.view.width, self.view.height):
            self.set_view(self.view.center, self.view.zoom)

    @staticmethod
    def _view_key(view: Viewport):
        return (round(view.center.longitude, 9), round(view.center.latitude, 9),
                view.zoom, view.width, view.height)

    # ---------- basemap ----------
    def set_basemap(self, image: Image.Image, view: Viewport) -> bool:
        """Install a rendered basemap; ignored when the view has moved on since."""
        if self.view is None or self._view_key(view) != self._view_key(self.view):
            return False
        self._basemap = ImageTk.PhotoImage(image)
        self._basemap_view = self._view_key(view)
        self.redraw()
        return True

    def _draw_grid(self, w, h, step=50):
        self.canvas.create_rectangle(0, 0, w, h, fill='#2a2a2a', outline='', tags=('bg', 'map'))
        for x in range(0, w, step):
            self.canvas.create_line(x, 0, x, h, fill='#3c3c3c', tags=('bg', 'map'))
        for y in range(0, h, step):
            self.canvas.create_line(0, y, w, y, fill='#3c3c3c', tags=('bg', 'map'))

    def _draw_background(self):
        self.canvas.delete('bg')
        w, h = self.size()
        if self._basemap is not None and self.view is not None \
                and self._basemap_view == self._view_key(self.view):
            self.canvas.create_image(0, 0, image=self._basemap, anchor='nw', tags=('bg', 'map'))
        else:
            self._draw_grid(w, h)
        self.canvas.tag_lower('bg')

    def _draw_attribution(self):
        w, h = self.size()
        it = self._hud_items['attrib']
        if it is None:
            it = self.canvas.create_text(w - 6, h - 4, anchor='se', text=ATTRIBUTION,
                                         fill='#333333', font=('Segoe UI', 8))
            self._hud_items['attrib'] = it
        else:
            self.canvas.coords(it, w - 6, h - 4)
        self.canvas.tag_raise(it)

    # ---------- markers ----------
    def set_address(self, point: Optional[GeoPoint]):
        self.address = point
        self._draw_pin()

    def _draw_pin(self):
        for it in self._pin_items:
            self.canvas.delete(it)
        self._pin_items = []
        if self.address is None or self.view is None:
            return
        x, y = self.view.to_px(self.address)
        # teardrop pin with its tip on the address
        self._pin_items = [
            self.canvas.create_polygon(x, y, x - 9, y - 18, x + 9, y - 18,
                                       fill=PIN_FILL, outline=PIN_FILL, tags='map'),
            self.canvas.create_oval(x - 10, y - 31, x + 10, y - 11,
                                    fill=PIN_FILL, outline=PIN_FILL, tags='map'),
            self.canvas.create_oval(x - 4, y - 25, x + 4, y - 17,
                                    fill='#ffffff', outline='', tags='map'),
        ]

    def draw_drones(self, drones: List[DroneState]):
        """Place or move one numbered circle per drone; markers of gone drones are removed."""
        self.drones = drones
        if self.view is None:
            return
        alive = set()
        r = DRONE_R
        for d in drones:
            alive.add(d.index)
            x, y = self.view.to_px(d.position)
            items = self._drone_items.get(d.index)
            if items is None:
                oval = self.canvas.create_oval(x - r, y - r, x + r, y + r, fill=DRONE_FILL,
                                               outline='#ffffff', width=2, tags=('drone', 'map'))
                text = self.canvas.create_text(x, y, text=str(d.index), fill='#ffffff',
                                               font=('Segoe UI', 9, 'bold'), tags=('drone', 'map'))
                self._drone_items[d.index] = (oval, text)
            else:
                oval, text = items
                self.canvas.coords(oval, x - r, y - r, x + r, y + r)
                self.canvas.coords(text, x, y)
        for idx in [i for i in self._drone_items if i not in alive]:
            for it in self._drone_items.pop(idx):
                self.canvas.delete(it)
        self.canvas.tag_raise('drone')

    def clear_drones(self):
        for items in self._drone_items.values():
            for it in items:
                self.canvas.delete(it)
        self._drone_items = {}
        self.drones = []

    # ---------- main draw ----------
    def redraw(self):
        self._draw_background()
        self._draw_pin()
        self.draw_drones(self.drones)
        self._draw_attribution()
