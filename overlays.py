"""Background wipe, lensed grid and the per-anomaly decorations.

None of this reads particle state.  Each anomaly is a small class with a
``render(layer, state, t, rng)`` method drawing onto a transparent layer
that the engine then composites over the frame.  The active set is walked
in vocabulary order so the stacking never depends on toggle order.
"""

import math

import pygame

from fieldstate import ANOMALIES, TACHYON_LEAK, FLUX_PINCH, PHASE_DRIFT, EVENT_HORIZON
from integrator import HORIZON_RADIUS
from render_modes import BG_RGB, GRID_RGB, dither_alpha

GRID_STEP     = 40
GRID_SAMPLE   = 10
LENS_REACH    = 300.0

WHITE         = (255, 255, 255)
PINCH_RGB     = (236, 72, 153)
BOLT_RGB      = (244, 114, 182)
DISK_RGB      = (251, 191, 36)


# ═══════════════════════════════════════════════════════════════════════════════
#  BACKGROUND
# ═══════════════════════════════════════════════════════════════════════════════

class BackgroundVeil:
    """Translucent full-surface wipe; painting it instead of clearing leaves trails."""

    def __init__(self):
        self._surf = None

    def paint(self, surf, alpha, rng):
        size = surf.get_size()
        if self._surf is None or self._surf.get_size() != size:
            self._surf = pygame.Surface(size)
            self._surf.fill(BG_RGB)
        a = dither_alpha(alpha, rng)
        self._surf.set_alpha(a)
        surf.blit(self._surf, (0, 0))
        return a


def lens_point(x, y, cx, cy, horizon=True):
    """Grid vertex as bent by the event horizon's gravitational lensing."""
    if not horizon:
        return x, y
    dx = x - cx
    dy = y - cy
    d = math.hypot(dx, dy)
    if HORIZON_RADIUS < d < LENS_REACH:
        lens = (HORIZON_RADIUS * HORIZON_RADIUS * 2) / d
        return x - (dx / d) * lens, y - (dy / d) * lens
    return x, y


def draw_grid(layer, width, height, alpha, horizon):
    """Vertical grid lines, sampled finely enough to show the lensing bend."""
    col = (*GRID_RGB, int(round(alpha * 255)))
    cx, cy = width / 2, height / 2
    lines = 0
    for x in range(0, int(width) + GRID_STEP, GRID_STEP):
        pts = [lens_point(x, y, cx, cy, horizon)
               for y in range(0, int(height) + GRID_STEP, GRID_SAMPLE)]
        if len(pts) > 1:
            pygame.draw.lines(layer, col, False, pts)
            lines += 1
    return lines


# ═══════════════════════════════════════════════════════════════════════════════
#  ANOMALY OVERLAYS
# ═══════════════════════════════════════════════════════════════════════════════

class AnomalyOverlay:
    name = ""

    def render(self, layer, state, t, rng):
        raise NotImplementedError


class TachyonLeak(AnomalyOverlay):
    name = TACHYON_LEAK
    streaks = 8

    def streak_positions(self, t, width, height):
        """Head position and fade phase of each streak at time ``t``."""
        out = []
        for j in range(self.streaks):
            seed = (t + j * 0.5) % 1
            sx = (math.sin(j * 1.5) * 0.5 + 0.5) * width
            out.append((sx, seed * height, seed))
        return out

    def render(self, layer, state, t, rng):
        w, h = layer.get_size()
        for sx, sy, seed in self.streak_positions(t, w, h):
            length = 40 + rng.random() * 60
            a = int(255 * 0.8 * (1 - seed))
            pygame.draw.line(layer, (*WHITE, a), (sx, sy), (sx, sy + length), 2)
            layer.fill(WHITE, pygame.Rect(int(sx) - 1, int(sy + length) - 1, 3, 3))


class FluxPinch(AnomalyOverlay):
    name = FLUX_PINCH
    bolts = 4
    bolt_steps = 5

    @staticmethod
    def ring_radius(t):
        return 60 + math.sin(t * 20) * 15

    def render(self, layer, state, t, rng):
        w, h = layer.get_size()
        cx, cy = w / 2, h / 2
        a = int(255 * (0.4 + rng.random() * 0.4))
        pygame.draw.circle(layer, (*PINCH_RGB, a), (int(cx), int(cy)),
                           int(self.ring_radius(t)), 3)
        for k in range(self.bolts):
            angle = (k / self.bolts) * math.pi * 2 + t * 5
            lx, ly = cx, cy
            pts = [(lx, ly)]
            for _ in range(self.bolt_steps):
                lx += math.cos(angle) * 20 + (rng.random() - 0.5) * 30
                ly += math.sin(angle) * 20 + (rng.random() - 0.5) * 30
                pts.append((lx, ly))
            pygame.draw.lines(layer, (*BOLT_RGB, 255), False, pts)


class PhaseDrift(AnomalyOverlay):
    # acts on the field sampler only
    name = PHASE_DRIFT

    def render(self, layer, state, t, rng):
        pass


class EventHorizon(AnomalyOverlay):
    name = EVENT_HORIZON
    rim = 15
    disks = 3

    def __init__(self):
        self._disc = None

    def disc(self):
        """Black core, opaque to 90% of its radius, fading out at the rim."""
        if self._disc is None:
            outer = HORIZON_RADIUS + self.rim
            size = int(outer) * 2 + 2
            surf = pygame.Surface((size, size), pygame.SRCALPHA)
            c = size // 2
            for r in range(int(outer), 0, -1):
                f = r / outer
                a = 255 if f <= 0.9 else int(255 * (1 - f) / 0.1)
                pygame.draw.circle(surf, (0, 0, 0, a), (c, c), r)
            self._disc = surf
        return self._disc

    @staticmethod
    def ellipse_points(cx, cy, rx, ry, rot, segments=48):
        cr, sr = math.cos(rot), math.sin(rot)
        pts = []
        for i in range(segments):
            th = 2 * math.pi * i / segments
            ex = rx * math.cos(th)
            ey = ry * math.sin(th)
            pts.append((cx + ex * cr - ey * sr, cy + ex * sr + ey * cr))
        return pts

    def render(self, layer, state, t, rng):
        w, h = layer.get_size()
        cx, cy = w / 2, h / 2
        disc = self.disc()
        layer.blit(disc, disc.get_rect(center=(int(cx), int(cy))))
        for d in range(self.disks):
            disk_w = HORIZON_RADIUS * (2 + d * 0.5) + math.sin(t * 3 + d) * 10
            disk_h = disk_w * 0.3
            a = int(255 * (0.6 - d * 0.2))
            pts = self.ellipse_points(cx, cy, disk_w, disk_h, t * 1.5 + d)
            pygame.draw.lines(layer, (*DISK_RGB, a), True, pts, 2)


OVERLAYS = {o.name: o for o in (TachyonLeak(), FluxPinch(), PhaseDrift(), EventHorizon())}


def active_overlays(state):
    """Overlays for the state's anomalies in fixed vocabulary order."""
    return [OVERLAYS[name] for name in ANOMALIES if state.has(name)]
