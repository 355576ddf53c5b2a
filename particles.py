"""Fixed-size particle pool.

Particles live in parallel numpy arrays so the integrator kernel can walk
them without touching Python objects.  A particle's identity is its index:
when it dies the slot is refilled in place, nothing is ever appended or
removed between engine restarts.
"""

import math

import numpy as np

# ── Palette ────────────────────────────────────────────────────────────────────
PALETTE = (
    (244, 114, 182),   # A  #f472b6  entangled
    (251, 191,  36),   # B  #fbbf24  high energy
    ( 34, 211, 238),   # C  #22d3ee  default
)
PALETTE_A, PALETTE_B, PALETTE_C = 0, 1, 2

ENTANGLED_COLOR_AT = 70.0
AMBER_COLOR_AT     = 150.0

BASE_POOL      = 250
LIFE_MIN       = 50.0
LIFE_MAX       = 150.0
MAX_START_SPEED = 1.0


def pool_size(intensity):
    """Number of particles for a (re)start at the given intensity."""
    if not math.isfinite(intensity):
        return 0
    intensity = max(0.0, min(100.0, intensity))
    return int(math.floor(BASE_POOL * intensity / 50.0))


def palette_index(state):
    """Colour a particle born now would get; frozen for its whole life."""
    if state.entanglement > ENTANGLED_COLOR_AT:
        return PALETTE_A
    if state.energy_level > AMBER_COLOR_AT:
        return PALETTE_B
    return PALETTE_C


class ParticleStore:
    """Struct-of-arrays pool: ``x, y, vx, vy, life, color``."""

    def __init__(self, width, height, size, rng):
        self.w = float(width)
        self.h = float(height)
        self.rng = rng
        n = max(0, int(size))
        self.x     = np.zeros(n, dtype=np.float64)
        self.y     = np.zeros(n, dtype=np.float64)
        self.vx    = np.zeros(n, dtype=np.float64)
        self.vy    = np.zeros(n, dtype=np.float64)
        self.life  = np.zeros(n, dtype=np.float64)
        self.color = np.zeros(n, dtype=np.int8)

    def __len__(self):
        return self.x.shape[0]

    def resize_bounds(self, width, height):
        # positions are left alone; the next wrap pulls them back in
        self.w = float(width)
        self.h = float(height)

    # ── Spawning ───────────────────────────────────────────────────────────────
    def create(self, i, state):
        """Overwrite slot ``i`` with a fresh particle born under ``state``."""
        self.respawn(np.asarray([i]), state)

    def populate(self, state):
        self.respawn(np.arange(len(self)), state)

    def respawn(self, idx, state):
        """Refill the given slots (index array or boolean mask) from ``state``."""
        idx = np.asarray(idx)
        if idx.dtype == bool:
            idx = np.flatnonzero(idx)
        k = idx.shape[0]
        if k == 0:
            return 0
        rng = self.rng
        self.x[idx]    = rng.random(k) * self.w
        self.y[idx]    = rng.random(k) * self.h
        self.vx[idx]   = rng.uniform(-MAX_START_SPEED, MAX_START_SPEED, k)
        self.vy[idx]   = rng.uniform(-MAX_START_SPEED, MAX_START_SPEED, k)
        self.life[idx] = rng.uniform(LIFE_MIN, LIFE_MAX, k)
        self.color[idx] = palette_index(state)
        return k

    # ── Convenience ────────────────────────────────────────────────────────────
    def color_of(self, i):
        return PALETTE[int(self.color[i])]

    def count_for(self, pidx):
        return int(np.count_nonzero(self.color == pidx))
