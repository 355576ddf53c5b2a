#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════╗
║        MAGNAFLUX  —  Vector Field Visualiser         ║
║  Field Sliders · Anomalies · Interventions · Drift   ║
╚══════════════════════════════════════════════════════╝

Controls:
  Space          Pause / resume the frame loop
  D              Toggle the streaming drift feed
  1-4            Intervention: trace / scan / void / glow
  0              Clear intervention
  R              Load a diagnostic report (JSON)
  Ctrl+S         Save parameter preset
  Ctrl+O         Load parameter preset
  F4             Debug overlay

Environment:
  FLUXFIELD_SEED    seed the random source (reproducible runs)
  FLUXFIELD_FPS     frame cap (default 60)
  FLUXFIELD_DEBUG   print lifecycle messages and show the debug box
  FLUXFIELD_PRESET  default preset path
  FLUXFIELD_REPORT  default diagnostic report path
"""

import json
import os
import sys

import numpy as np
import pygame

from fieldstate import (
    ANOMALIES, DEFAULT_STATE, DiagnosticReport, Intervention, clamp, drift,
    load_state, save_state,
)
from particles import PALETTE
from engine import EngineConfig, FluxEngine, FrameScheduler, ResizeNotifier

pygame.init()
pygame.font.init()

# ── Window ─────────────────────────────────────────────────────────────────────
WIN_W, WIN_H  = 1280, 800
PANEL_W       = 330
SIM_W         = WIN_W - PANEL_W

DRIFT_MS      = 100
PRESET_PATH   = os.getenv("FLUXFIELD_PRESET", "fluxfield_preset.json")
REPORT_PATH   = os.getenv("FLUXFIELD_REPORT", "fluxfield_report.json")

# ── Colour palette ─────────────────────────────────────────────────────────────
BG       = (  2,   6,  23)
PNL      = (  9,  14,  32)
PNL_DK   = (  4,   8,  20)
BDR      = ( 22,  78,  99)
TXT      = (226, 232, 240)
DIM      = (100, 116, 139)
ACC      = ( 34, 211, 238)
BTN_N    = ( 15,  23,  42)
BTN_H    = ( 30,  41,  59)
BTN_A    = ( 14, 116, 144)
DNG      = (239,  68,  68)
WRN      = (251, 146,  60)
SUC      = ( 74, 222, 128)
PUR      = (192, 132, 252)
SLB      = ( 30,  41,  59)
SLF      = ( 8, 145, 178)

# ── Fonts ──────────────────────────────────────────────────────────────────────
FSM = pygame.font.SysFont("Consolas, Menlo, monospace", 11)
FMD = pygame.font.SysFont("Consolas, Menlo, monospace", 13)
FLG = pygame.font.SysFont("Consolas, Menlo, monospace", 15, bold=True)
FXL = pygame.font.SysFont("Consolas, Menlo, monospace", 30, bold=True)

PAD = 10
CR  = 5

INTERVENTION_KEYS = {
    pygame.K_1: Intervention.VECTOR_TRACE,
    pygame.K_2: Intervention.RESONANCE_SCAN,
    pygame.K_3: Intervention.VOID_ANALYSIS,
    pygame.K_4: Intervention.FLUX_GLOW,
}


# ═══════════════════════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def rrect(surf, col, rect, r=CR, bw=0, bc=None):
    pygame.draw.rect(surf, col, rect, border_radius=r)
    if bw:
        pygame.draw.rect(surf, bc or BDR, rect, bw, border_radius=r)


def txt(surf, s, x, y, font=FMD, col=TXT, anchor="topleft"):
    img = font.render(str(s), True, col)
    rct = img.get_rect(**{anchor: (x, y)})
    surf.blit(img, rct)
    return rct


# ═══════════════════════════════════════════════════════════════════════════════
#  UI COMPONENTS
# ═══════════════════════════════════════════════════════════════════════════════

class UIButton:
    def __init__(self, label, rect, nc=None, hc=None, font=FSM):
        self.label  = label
        self.rect   = pygame.Rect(rect)
        self.nc     = nc or BTN_N
        self.hc     = hc or BTN_H
        self.font   = font
        self.active = False
        self._hov   = False

    def draw(self, surf):
        c = BTN_A if self.active else (self.hc if self._hov else self.nc)
        rrect(surf, c, self.rect, bw=1)
        s = self.font.render(self.label, True, TXT)
        surf.blit(s, s.get_rect(center=self.rect.center))

    def update(self, mpos):
        self._hov = self.rect.collidepoint(mpos)

    def clicked(self, mpos):
        return self.rect.collidepoint(mpos)


class UISlider:
    """Horizontal slider bound to one field-state attribute."""

    def __init__(self, label, attr, lo, hi, val, fmt="{:.1f}"):
        self.label = label
        self.attr  = attr
        self.x, self.y, self.w = 0, 0, 100
        self.lo, self.hi = lo, hi
        self.val   = val
        self.fmt   = fmt
        self._drag = False
        self.H     = 8

    @property
    def track(self):
        return pygame.Rect(self.x, self.y + 16, self.w, self.H)

    def draw(self, surf):
        txt(surf, self.label, self.x, self.y, FSM, DIM)
        txt(surf, self.fmt.format(self.val), self.x + self.w, self.y, FSM, ACC, "topright")
        tr = self.track
        rrect(surf, SLB, tr, 4)
        t  = (self.val - self.lo) / (self.hi - self.lo)
        fw = max(self.H, int(t * self.w))
        rrect(surf, SLF, pygame.Rect(tr.x, tr.y, fw, tr.h), 4)
        cx = tr.x + int(t * self.w)
        pygame.draw.circle(surf, TXT, (cx, tr.centery), 7)
        pygame.draw.circle(surf, ACC, (cx, tr.centery), 5)

    def handle(self, ev):
        """Returns True on release after a drag, i.e. when the edit is committed."""
        if ev.type == pygame.MOUSEBUTTONDOWN and ev.button == 1:
            if self.track.inflate(20, 16).collidepoint(ev.pos):
                self._drag = True
                self._move(ev.pos[0])
        if ev.type == pygame.MOUSEMOTION and self._drag:
            self._move(ev.pos[0])
        if ev.type == pygame.MOUSEBUTTONUP and ev.button == 1 and self._drag:
            self._drag = False
            return True
        return False

    def _move(self, mx):
        t = clamp((mx - self.x) / self.w, 0.0, 1.0)
        self.val = self.lo + t * (self.hi - self.lo)

    @property
    def height(self):
        return 16 + self.H + 14


# ═══════════════════════════════════════════════════════════════════════════════
#  MAIN APPLICATION
# ═══════════════════════════════════════════════════════════════════════════════

class App:
    def __init__(self, config=None):
        self.config  = config or EngineConfig.from_env()
        self.win_w, self.win_h = WIN_W, WIN_H
        self.screen  = pygame.display.set_mode((WIN_W, WIN_H), pygame.RESIZABLE)
        pygame.display.set_caption("Magnaflux Visualiser")
        self.clock   = pygame.time.Clock()

        self.state   = DEFAULT_STATE
        self.report: DiagnosticReport | None = None
        self.intervention: Intervention | None = None
        self.paused  = False
        self.streaming  = False
        self.show_debug = self.config.debug
        self._last_drift = 0
        self._feed_rng = np.random.default_rng(self.config.seed)

        # offscreen canvas keeps the trails free of HUD text
        self.canvas    = pygame.Surface((self.sim_w, self.win_h))
        self.canvas.fill(BG)
        self.scheduler = FrameScheduler()
        self.resizer   = ResizeNotifier()
        self.engine    = FluxEngine(self.canvas, self.scheduler, self.resizer,
                                    state=self.state, config=self.config)

        # ── Controls ──────────────────────────────────────────────────────────
        s = self.state
        self.sliders = [
            UISlider("Field Intensity", "intensity",     10, 100, s.intensity),
            UISlider("Energy Level",    "energy_level",   0, 200, s.energy_level),
            UISlider("Particle Spin",   "particle_spin", -10, 10, s.particle_spin, "{:+.1f}"),
            UISlider("Fluctuation",     "fluctuation",    0, 100, s.fluctuation),
            UISlider("Entanglement",    "entanglement",   0, 100, s.entanglement),
            UISlider("Resonance Freq",  "frequency",      0,  20, s.frequency, "{:.2f}"),
        ]
        self.anomaly_btns = {a: UIButton(a, (0, 0, 10, 26)) for a in ANOMALIES}
        self.mode_btns = {m: UIButton(m.value.replace("_", " "), (0, 0, 10, 24)) for m in Intervention}
        self.btn_clear = UIButton("NONE", (0, 0, 10, 24))
        self.btn_feed  = UIButton("REMOTE FEED", (0, 0, 10, 28))

        self.engine.start()

    @property
    def sim_w(self):
        return self.win_w - PANEL_W

    # ── State plumbing ─────────────────────────────────────────────────────────
    def set_state(self, state):
        self.state = state
        self.engine.reconfigure(state, self.intervention)

    def set_intervention(self, tag):
        self.intervention = tag
        self.engine.reconfigure(self.state, tag)

    def _sync_sliders(self):
        for sl in self.sliders:
            sl.val = clamp(getattr(self.state, sl.attr), sl.lo, sl.hi)

    def _commit_sliders(self):
        changes = {sl.attr: sl.val for sl in self.sliders
                   if sl.val != getattr(self.state, sl.attr)}
        if changes:
            self.set_state(self.state.replace(**changes))

    # file dialog wrappers ------------------------------------------------
    def _ask_path(self, save, default):
        try:
            import tkinter as tk
            from tkinter import filedialog
        except ImportError:
            return default
        root = tk.Tk()
        root.withdraw()
        kw = dict(defaultextension='.json', initialfile=os.path.basename(default),
                  filetypes=[('JSON', '*.json')])
        path = filedialog.asksaveasfilename(**kw) if save else filedialog.askopenfilename(**kw)
        root.destroy()
        return path

    def save_preset(self, path=None):
        path = path or self._ask_path(True, PRESET_PATH)
        if not path:
            return
        try:
            save_state(self.state, path)
        except OSError as e:
            print('save failed', e)

    def load_preset(self, path=None):
        path = path or self._ask_path(False, PRESET_PATH)
        if not path:
            return
        try:
            state = load_state(path)
        except (OSError, ValueError) as e:
            print('load failed', e)
            return
        self.set_state(state)
        self._sync_sliders()

    def load_report(self, path=None):
        path = path or self._ask_path(False, REPORT_PATH)
        if not path:
            return
        try:
            with open(path) as f:
                data = json.load(f)
            report = DiagnosticReport.from_dict(data)
        except (OSError, ValueError) as e:
            print('report load failed', e)
            return
        self.report = report
        self.set_intervention(self.report.visual_intervention)

    # ──────────────────────────────────────────────────────────────────────────
    #  DRAW: HUD over the field
    # ──────────────────────────────────────────────────────────────────────────

    def _draw_hud(self):
        surf = self.screen
        s    = self.state
        txt(surf, "VECTOR FIELD DYNAMICS", 16, 14, FLG, ACC)
        pygame.draw.line(surf, ACC, (16, 34), (150, 34))
        txt(surf, f"RESONANCE: {s.frequency:.2f} GHz", 16, 40, FSM, DIM)

        if self.intervention:
            r = txt(surf, f"INTERVENTION: {self.intervention.value}",
                    self.sim_w - 16, 14, FSM, PUR, "topright")
            pygame.draw.rect(surf, PUR, r.inflate(10, 6), 1, border_radius=3)

        y = self.win_h - 20
        for a in reversed(s.active_anomalies()):
            txt(surf, f"● CRITICAL DETECTION: {a.upper()}", 16, y, FSM, DNG, "bottomleft")
            y -= 16

        txt(surf, f"{s.intensity:.1f} uT", self.sim_w - 16, self.win_h - 36, FXL, TXT, "bottomright")
        txt(surf, "LOCALIZED FIELD STRENGTH", self.sim_w - 16, self.win_h - 18, FSM, DIM, "bottomright")
        if self.paused:
            txt(surf, "⏸ PAUSED", self.sim_w // 2, 14, FMD, WRN, "midtop")

    # ──────────────────────────────────────────────────────────────────────────
    #  DRAW: PANEL
    # ──────────────────────────────────────────────────────────────────────────

    def _draw_panel(self):
        surf = self.screen
        px   = self.sim_w
        pw   = PANEL_W
        mpos = pygame.mouse.get_pos()

        surf.fill(PNL, pygame.Rect(px, 0, pw, self.win_h))
        pygame.draw.line(surf, BDR, (px, 0), (px, self.win_h), 2)
        rrect(surf, PNL_DK, pygame.Rect(px, 0, pw, 44), r=0)
        txt(surf, "MAGNAFLUX", px + PAD, 12, FLG, TXT)
        txt(surf, "v3.4", px + pw - PAD, 14, FSM, DIM, "topright")

        y = 56
        for sl in self.sliders:
            sl.x, sl.y, sl.w = px + PAD, y, pw - PAD * 2
            sl.draw(surf)
            y += sl.height

        txt(surf, "ANOMALY SIMULATION", px + PAD, y, FSM, DIM)
        y += 16
        bw = (pw - PAD * 3) // 2
        for i, (name, btn) in enumerate(self.anomaly_btns.items()):
            btn.rect = pygame.Rect(px + PAD + (i % 2) * (bw + PAD), y + (i // 2) * 30, bw, 26)
            btn.active = self.state.has(name)
            btn.update(mpos)
            btn.draw(surf)
        y += 66

        txt(surf, "VISUAL INTERVENTION", px + PAD, y, FSM, DIM)
        y += 16
        for i, (tag, btn) in enumerate(self.mode_btns.items()):
            btn.rect = pygame.Rect(px + PAD + (i % 2) * (bw + PAD), y + (i // 2) * 28, bw, 24)
            btn.active = self.intervention is tag
            btn.update(mpos)
            btn.draw(surf)
        y += 56
        self.btn_clear.rect = pygame.Rect(px + PAD, y, pw - PAD * 2, 24)
        self.btn_clear.active = self.intervention is None
        self.btn_clear.update(mpos)
        self.btn_clear.draw(surf)
        y += 36

        self.btn_feed.rect = pygame.Rect(px + PAD, y, pw - PAD * 2, 28)
        self.btn_feed.label = "REMOTE FEED ACTIVE" if self.streaming else "START REMOTE FEED"
        self.btn_feed.active = self.streaming
        self.btn_feed.update(mpos)
        self.btn_feed.draw(surf)
        y += 42

        # ── Sub-system status ─────────────────────────────────────────────────
        txt(surf, "SUB-SYSTEM STATUS", px + PAD, y, FSM, DIM)
        y += 18
        for label, status, col in self._status_lines():
            txt(surf, label, px + PAD, y, FSM, DIM)
            txt(surf, status, px + pw - PAD, y, FSM, col, "topright")
            y += 16

        if self.report:
            y += 8
            txt(surf, f"RISK: {self.report.risk_level}", px + PAD, y, FSM,
                DNG if self.report.risk_level != "Low" else SUC)

    def _status_lines(self):
        s = self.state
        return [
            ("Cooling Array", "Optimal", SUC),
            ("Energy Modulator", "OVR-LOAD" if s.energy_level > 180 else "Stable",
             DNG if s.energy_level > 180 else SUC),
            ("Spin Harmonizer", "High Varia" if abs(s.particle_spin) > 8 else "Active", ACC),
            ("Chronal Shielding", "Warning" if s.intensity > 80 else "Nominal",
             WRN if s.intensity > 80 else DIM),
        ]

    # debug drawing ------------------------------------------------------
    def _draw_debug(self):
        """Render a small info box with the engine's live state."""
        eng = self.engine
        lines = [
            f"Renderer: pygame {pygame.version.ver}",
            f"Particles: {len(eng.store) if eng.store is not None else 0}"
            f"  respawned: {eng.last_respawned}",
            f"t: {eng.t:.3f}  frame: {eng.frame}  restarts: {eng.restarts}",
            f"FPS: {self.clock.get_fps():.1f}  fade: {eng.last_fade:.3f}",
            f"Intervention: {eng.intervention.value if eng.intervention else '-'}",
            "Palette: " + " ".join(f"{eng.store.count_for(i)}" for i in range(len(PALETTE)))
            if eng.store is not None else "Palette: -",
            f"Python: {sys.executable}",
        ]
        h = len(lines) * 16 + 8
        rect = pygame.Rect(self.sim_w + 4, self.win_h - h - 4, PANEL_W - 8, h)
        s = pygame.Surface((rect.w, rect.h), pygame.SRCALPHA)
        s.fill((0, 0, 0, 180))
        self.screen.blit(s, rect.topleft)
        y = rect.y + 4
        for line in lines:
            txt(self.screen, line, rect.x + 6, y, FSM, TXT)
            y += 16

    # ──────────────────────────────────────────────────────────────────────────
    #  EVENTS
    # ──────────────────────────────────────────────────────────────────────────

    def _resize(self, w, h):
        self.win_w, self.win_h = max(w, PANEL_W + 1), max(h, 1)
        self.screen = pygame.display.set_mode((self.win_w, self.win_h), pygame.RESIZABLE)
        old = self.canvas
        self.canvas = pygame.Surface((self.sim_w, self.win_h))
        self.canvas.fill(BG)
        self.canvas.blit(old, (0, 0))
        self.engine.attach_surface(self.canvas)
        self.resizer.notify(self.sim_w, self.win_h)

    def _handle_events(self):
        for ev in pygame.event.get():
            if ev.type == pygame.QUIT:
                self.engine.dispose()
                pygame.quit()
                sys.exit()

            if ev.type == pygame.VIDEORESIZE:
                self._resize(ev.w, ev.h)

            # ── Keyboard shortcuts ─────────────────────────────────────────
            if ev.type == pygame.KEYDOWN:
                ctrl = ev.mod & pygame.KMOD_CTRL
                if ev.key == pygame.K_SPACE:
                    self.paused = not self.paused
                elif ev.key == pygame.K_d:
                    self.streaming = not self.streaming
                elif ev.key in INTERVENTION_KEYS:
                    self.set_intervention(INTERVENTION_KEYS[ev.key])
                elif ev.key == pygame.K_0:
                    self.set_intervention(None)
                elif ev.key == pygame.K_s and ctrl:
                    self.save_preset()
                elif ev.key == pygame.K_o and ctrl:
                    self.load_preset()
                elif ev.key == pygame.K_r:
                    self.load_report()
                elif ev.key == pygame.K_F4:
                    self.show_debug = not self.show_debug

            # ── Buttons ────────────────────────────────────────────────────
            if ev.type == pygame.MOUSEBUTTONDOWN and ev.button == 1:
                for name, btn in self.anomaly_btns.items():
                    if btn.clicked(ev.pos):
                        self.set_state(self.state.toggled(name))
                for tag, btn in self.mode_btns.items():
                    if btn.clicked(ev.pos):
                        self.set_intervention(None if self.intervention is tag else tag)
                if self.btn_clear.clicked(ev.pos):
                    self.set_intervention(None)
                if self.btn_feed.clicked(ev.pos):
                    self.streaming = not self.streaming

            # Delegate drag events to sliders
            committed = False
            for sl in self.sliders:
                committed |= sl.handle(ev)
            if committed:
                self._commit_sliders()

    def _feed(self):
        now = pygame.time.get_ticks()
        if not self.streaming or now - self._last_drift < DRIFT_MS:
            return
        self._last_drift = now
        self.set_state(drift(self.state, self._feed_rng))
        if not any(sl._drag for sl in self.sliders):
            self._sync_sliders()

    # ──────────────────────────────────────────────────────────────────────────
    #  MAIN LOOP
    # ──────────────────────────────────────────────────────────────────────────

    def run(self):
        while True:
            self._handle_events()
            self._feed()

            # one engine frame per presented frame
            if not self.paused:
                self.scheduler.tick()

            self.screen.blit(self.canvas, (0, 0))
            self._draw_hud()
            self._draw_panel()
            if self.show_debug:
                self._draw_debug()

            pygame.display.flip()
            self.clock.tick(self.config.fps)


def main():
    App().run()


# ═══════════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    main()
