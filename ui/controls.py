# ui/controls.py — swarm controls: address, drone count, spacing, speed,
# start/stop, direction pad, and per-control clickable help popups.
import tkinter as tk
from tkinter import ttk, messagebox

from config import (DRONE_COUNT_CHOICES, SPACING_RANGE_FT, SPEED_RANGE_MPH, DIRECTION_PAD,
                    FormationDefault, MotionDefault)

BG = '#232323'

HELP = {
    "ADDRESS": (
        "Starting address\n"
        "Free-text street address, resolved with OpenStreetMap Nominatim.\n"
        "If the lookup fails the map falls back to Kansas City, MO."
    ),
    "COUNT": (
        "Number of drones\n"
        "Drones are placed evenly on a circle around the address.\n"
        "Drone 1 is due north of the address; numbering runs clockwise."
    ),
    "SPACING": (
        "Feet apart\n"
        "Straight-line distance between neighbouring drones.\n"
        "The circle radius follows: R = spacing / (2·sin(180°/N))."
    ),
    "SPEED": (
        "Speed [mph]\n"
        "Ground speed of the whole formation. The formation moves as one\n"
        "rigid shape; spacing between drones never changes."
    ),
    "DIRECTION": (
        "Direction\n"
        "Compass heading of the formation. Diagonals move at the same rate\n"
        "on each axis as the cardinal directions (0.707 per axis)."
    ),
}


class ControlsPanel(tk.Frame):
    def __init__(self, master, address, on_toggle, on_address, on_params_change):
        super().__init__(master, bg=BG, padx=8, pady=8)
        self.on_params_change = on_params_change
        self.on_address = on_address
        fd, md = FormationDefault(), MotionDefault()

        # ── Address ───────────────────────────────────────────────────────────
        arow = tk.Frame(self, bg=BG); arow.pack(fill=tk.X, pady=(0, 8))
        self._link_label(arow, "Starting address", "ADDRESS").pack(side=tk.TOP, anchor='w')
        self.address_var = tk.StringVar(value=address)
        entry = tk.Entry(arow, textvariable=self.address_var)
        entry.pack(side=tk.LEFT, fill=tk.X, expand=True)
        entry.bind('<Return>', lambda _e: self._submit_address())
        tk.Button(arow, text='Go', command=self._submit_address).pack(side=tk.RIGHT, padx=(4, 0))

        # ── Formation ─────────────────────────────────────────────────────────
        crow = tk.Frame(self, bg=BG); crow.pack(fill=tk.X, pady=(0, 6))
        self._link_label(crow, "Number of drones", "COUNT").pack(side=tk.LEFT)
        self.count_var = tk.StringVar(value=str(fd.drone_count))
        ccb = ttk.Combobox(crow, state='readonly', width=8,
                           values=[str(n) for n in DRONE_COUNT_CHOICES],
                           textvariable=self.count_var)
        ccb.pack(side=tk.RIGHT)
        ccb.bind('<<ComboboxSelected>>', lambda e: self._notify())

        self.spacing_var = self._spinbox("SPACING", "Feet apart", SPACING_RANGE_FT, fd.spacing_ft)
        self.speed_var   = self._spinbox("SPEED", "Speed [mph]", SPEED_RANGE_MPH, md.speed_mph)

        # ── Run button ────────────────────────────────────────────────────────
        rrow = tk.Frame(self, bg=BG); rrow.pack(fill=tk.X, pady=(6, 8))
        self.run_btn = tk.Button(rrow, text='Start', width=10, fg='#ffffff', command=on_toggle)
        self.run_btn.pack(side=tk.LEFT)
        self.set_running(md.moving)

        # ── Direction pad (3x3, centre is a marker) ───────────────────────────
        drow = tk.Frame(self, bg=BG); drow.pack(fill=tk.X, pady=(0, 6))
        self._link_label(drow, "Direction", "DIRECTION").pack(side=tk.TOP, anchor='w')
        pad = tk.Frame(drow, bg=BG); pad.pack(side=tk.TOP, anchor='w', pady=4)
        self.direction_var = tk.StringVar(value=md.direction)
        self._dir_buttons = {}
        for k, d in enumerate(DIRECTION_PAD):
            r, c = divmod(k, 3)
            if not d:
                tk.Label(pad, text='◯', fg='#6b7280', bg=BG, width=4).grid(row=r, column=c, padx=2, pady=2)
                continue
            b = tk.Button(pad, text=d, width=4, command=lambda d=d: self.set_direction(d))
            b.grid(row=r, column=c, padx=2, pady=2)
            self._dir_buttons[d] = b
        self._paint_direction()

        # ── Status ────────────────────────────────────────────────────────────
        self.status = tk.Label(self, text='Status: locating address…', anchor='w',
                               justify='left', fg='#cfcfcf', bg=BG)
        self.status.pack(fill=tk.X, pady=(8, 0))

    # public helpers --------------------------------------------------------------
    def set_running(self, running: bool):
        self.run_btn.config(text='Stop' if running else 'Start',
                            bg='#ef4444' if running else '#22c55e')

    def set_direction(self, d: str):
        self.direction_var.set(d)
        self._paint_direction()
        self._notify()

    def set_status(self, text: str):
        self.status.config(text=f"Status: {text}")

    def params(self) -> dict:
        return {
            'COUNT':     self._int_safe(self.count_var, FormationDefault.drone_count),
            'SPACING':   self._float_safe(self.spacing_var, FormationDefault.spacing_ft),
            'SPEED':     self._float_safe(self.speed_var, MotionDefault.speed_mph),
            'DIRECTION': self.direction_var.get(),
        }

    # internals -------------------------------------------------------------------
    @staticmethod
    def _float_safe(var, default):
        # empty / zero / garbage falls back to the default, like `value || default`
        try:
            v = float(var.get())
        except (tk.TclError, ValueError):
            return float(default)
        return v if v > 0 else float(default)

    @staticmethod
    def _int_safe(var, default):
        try:
            return int(var.get())
        except (tk.TclError, ValueError):
            return int(default)

    def _submit_address(self):
        self.on_address(self.address_var.get())

    def _paint_direction(self):
        cur = self.direction_var.get()
        for d, b in self._dir_buttons.items():
            if d == cur:
                b.config(bg='#3b82f6', fg='#ffffff', font=(None, 9, 'bold'))
            else:
                b.config(bg='#ffffff', fg='#374151', font=(None, 9))

    def _link_label(self, parent, text, key):
        """Create a blue, underlined clickable label that opens help(key)."""
        lbl = tk.Label(parent, text=text, fg='#7faaff', bg=BG, cursor='hand2')
        lbl.configure(font=(None, 10, 'underline'))
        lbl.bind("<Button-1>", lambda _e: self._show_help(key))
        return lbl

    def _spinbox(self, key, label, rng, init):
        lo, hi, step = rng
        row = tk.Frame(self, bg=BG); row.pack(fill=tk.X, pady=2)
        self._link_label(row, label, key).pack(side=tk.LEFT)
        var = tk.StringVar(value=f"{init:g}")
        sb = tk.Spinbox(row, from_=lo, to=hi, increment=step, width=8, textvariable=var,
                        command=self._notify)
        sb.pack(side=tk.RIGHT)
        sb.bind('<Return>', lambda _e: self._notify())
        sb.bind('<FocusOut>', lambda _e: self._notify())
        return var

    def _show_help(self, key):
        text = HELP.get(key, "No help available for this control.")
        messagebox.showinfo("Help", text, parent=self)

    def _notify(self):
        self.on_params_change(self.params())
