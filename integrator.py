"""Per-frame particle update.

Each particle gathers the field force plus the anomaly forces, has its
velocity damped once, moves, ages and wraps around the edges.  Particles
that die (old age, swallowed by the event horizon, or corrupted by a
non-finite value) are refilled in place from the current field state.
"""

import math

import numpy as np
from numba import njit

from fieldstate import EVENT_HORIZON, FLUX_PINCH, PHASE_DRIFT
from sampler import field_vector

# ── Physics constants ──────────────────────────────────────────────────────────
ACCEL_BASE      = 0.1
DAMPING         = 0.95
LIFE_DECAY      = 0.5

HORIZON_RADIUS  = 40.0
HORIZON_REACH   = 250.0
HORIZON_FALLOFF = 400.0

PINCH_REACH     = 150.0
PINCH_PULL_DIV  = 100.0
PINCH_SWIRL_DIV = 50.0


@njit
def _wrap(v, size):
    if size <= 0.0:
        return 0.0
    v = v - math.floor(v / size) * size
    # floor rounding can land exactly on the far edge
    if v >= size or v < 0.0:
        v = 0.0
    return v


@njit
def _advance_kernel(xs, ys, vxs, vys, life, dead, t, W, H,
                    intensity, energy, frequency, spin,
                    phase_drift, event_horizon, flux_pinch):
    n = xs.shape[0]
    cx = W / 2.0
    cy = H / 2.0
    accel = ACCEL_BASE * (1.0 + energy / 100.0)
    for i in range(n):
        x = xs[i]; y = ys[i]
        vx = vxs[i]; vy = vys[i]

        fx, fy = field_vector(x, y, t, intensity, energy, frequency, spin, phase_drift)
        vx += fx * accel
        vy += fy * accel

        dx = cx - x
        dy = cy - y
        d = math.sqrt(dx * dx + dy * dy)

        absorbed = False
        if event_horizon:
            if d < HORIZON_REACH:
                pull = (HORIZON_REACH - d) / HORIZON_FALLOFF
                vx += dx * pull
                vy += dy * pull
            if d < HORIZON_RADIUS:
                absorbed = True

        if flux_pinch and d < PINCH_REACH:
            pull = (PINCH_REACH - d) / PINCH_PULL_DIV
            swirl = (PINCH_REACH - d) / PINCH_SWIRL_DIV
            vx += dx * pull + dy * swirl
            vy += dy * pull - dx * swirl

        vx *= DAMPING
        vy *= DAMPING
        x += vx
        y += vy
        lf = life[i] - LIFE_DECAY

        x = _wrap(x, W)
        y = _wrap(y, H)

        if absorbed:
            lf = 0.0
        if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(vx)
                and math.isfinite(vy) and math.isfinite(lf)):
            x = 0.0; y = 0.0; vx = 0.0; vy = 0.0
            lf = 0.0

        xs[i] = x; ys[i] = y
        vxs[i] = vx; vys[i] = vy
        life[i] = lf
        dead[i] = lf <= 0.0


def advance(store, state, t):
    """Move every particle one frame; return the mask of slots that died.

    Dead slots keep their final values (an absorbed particle reads
    ``life == 0``) until :func:`step_particles` refills them.
    """
    s = state.sanitized()
    dead = np.zeros(len(store), dtype=np.bool_)
    if len(store) == 0:
        return dead
    _advance_kernel(store.x, store.y, store.vx, store.vy, store.life, dead,
                    float(t), store.w, store.h,
                    s.intensity, s.energy_level, s.frequency, s.particle_spin,
                    s.has(PHASE_DRIFT), s.has(EVENT_HORIZON), s.has(FLUX_PINCH))
    return dead


def step_particles(store, state, t):
    """Advance the pool and respawn dead slots; returns how many were replaced."""
    dead = advance(store, state, t)
    return store.respawn(dead, state)
