"""How particles and the background are drawn for each intervention tag.

The diagnostic service may hand back a ``visualIntervention`` tag; it never
changes the simulation, only how a frame is painted.  ``RenderMode`` bundles
those choices so the engine asks once per frame instead of testing the tag
in every draw call.
"""

import math
from dataclasses import dataclass
from functools import lru_cache

import pygame

from fieldstate import Intervention, clamp

BG_RGB          = (2, 6, 23)
SCAN_RGBA       = (168, 85, 247, 51)     # rgba(168, 85, 247, 0.2)
GRID_RGB        = (34, 211, 238)

BASE_FADE       = 0.08
VOID_FADE       = 0.4
GLOW_AT         = 80.0
GLOW_BLUR       = 10
TRACE_LENGTH    = 10.0
SCAN_SPEED      = 500.0


@dataclass(frozen=True)
class RenderMode:
    tag:        Intervention | None
    base_alpha: float
    trace:      bool
    glow:       bool
    scan:       bool
    grid_alpha: float


def base_alpha(tag):
    return VOID_FADE if tag is Intervention.VOID_ANALYSIS else BASE_FADE


def fade_alpha(state, tag):
    """Opacity of the translucent wipe painted over the previous frame.

    Never below the tag's base alpha; higher energy leaves longer trails.
    """
    base = base_alpha(tag)
    a = 0.2 - state.energy_level / 1000.0
    if not math.isfinite(a):
        return base
    return clamp(max(base, a), 0.0, 1.0)


def glow_enabled(state, tag):
    return state.entanglement > GLOW_AT or tag is Intervention.FLUX_GLOW


def particle_radius(state):
    r = 1.2 + state.energy_level / 200.0
    if not math.isfinite(r):
        return 1.2
    return clamp(r, 0.5, 10.0)


def resolve(state, tag):
    return RenderMode(
        tag=tag,
        base_alpha=base_alpha(tag),
        trace=tag is Intervention.VECTOR_TRACE,
        glow=glow_enabled(state, tag),
        scan=tag is Intervention.RESONANCE_SCAN,
        grid_alpha=0.15 if tag is Intervention.VOID_ANALYSIS else 0.05,
    )


def scan_radius(t, width):
    """Radius of the resonance sweep; restarts every time it passes the width."""
    if width <= 0:
        return 0.0
    return (t * SCAN_SPEED) % width


def dither_alpha(alpha, rng):
    """Map a [0, 1] alpha to 0..255, dithering the fractional step.

    Small alphas such as 0.08 fall between 8-bit levels; randomising the
    rounding keeps the long-run fade rate right.
    """
    v = alpha * 255.0
    lo = math.floor(v)
    if rng.random() < v - lo:
        lo += 1
    return int(clamp(lo, 0, 255))


# ═══════════════════════════════════════════════════════════════════════════════
#  PARTICLE DRAWING
# ═══════════════════════════════════════════════════════════════════════════════

@lru_cache(maxsize=64)
def halo_sprite(color, radius):
    """Pre-rendered soft halo standing in for a canvas shadow blur."""
    size = int(math.ceil(radius + GLOW_BLUR)) * 2 + 2
    surf = pygame.Surface((size, size), pygame.SRCALPHA)
    c = size // 2
    steps = GLOW_BLUR
    for k in range(steps, 0, -1):
        a = int(90 * (1 - k / (steps + 1)) ** 2)
        pygame.draw.circle(surf, (*color, a), (c, c), int(radius + k))
    return surf


def draw_particles(surf, store, state, mode):
    """Draw the whole pool in the style the render mode asks for; returns halo count."""
    r = particle_radius(state)
    ir = max(1, int(round(r)))
    halos = 0
    xs, ys, vxs, vys = store.x, store.y, store.vx, store.vy
    for i in range(len(store)):
        col = store.color_of(i)
        x = float(xs[i]); y = float(ys[i])
        if mode.glow:
            halo = halo_sprite(col, ir)
            hw = halo.get_width() // 2
            surf.blit(halo, (int(x) - hw, int(y) - hw))
            halos += 1
        if mode.trace:
            tx = x - float(vxs[i]) * TRACE_LENGTH
            ty = y - float(vys[i]) * TRACE_LENGTH
            pygame.draw.line(surf, col, (int(tx), int(ty)), (int(x), int(y)), ir)
        else:
            pygame.draw.circle(surf, col, (int(x), int(y)), ir)
    return halos


def draw_scan(layer, t, width, height):
    r = scan_radius(t, width)
    if r < 1:
        return
    pygame.draw.circle(layer, SCAN_RGBA, (int(width / 2), int(height / 2)), int(r), 1)
