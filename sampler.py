"""Vector field sampled by every particle each frame.

The field is an aesthetic flow pattern, not a physical model: a product
of sines gives a swirling direction, the spin slider rotates it, and the
intensity/energy sliders set its strength.  ``Phase Drift`` is the only
anomaly that reaches in here; the other anomalies add their own forces in
the integrator.
"""

import math

from numba import njit

from fieldstate import PHASE_DRIFT

BASE_SCALE  = 0.005
DRIFT_SCALE = 0.002
TWO_PI      = math.pi * 2


@njit
def field_vector(x, y, t, intensity, energy, frequency, spin, phase_drift):
    """Compiled core of :func:`sample`; all arguments are plain floats/bools."""
    scale = BASE_SCALE
    if phase_drift:
        scale = BASE_SCALE + math.sin(t * 0.5) * DRIFT_SCALE

    spin_offset = (spin / 10.0) * math.pi
    angle = (math.sin(x * scale + t) * math.cos(y * scale + t)
             * TWO_PI * (frequency / 10.0) + spin_offset)
    if phase_drift:
        angle += math.sin(t * 2.0) * 0.5

    mag = field_magnitude(intensity, energy)
    return math.cos(angle) * mag, math.sin(angle) * mag


@njit
def field_magnitude(intensity, energy):
    return (intensity / 20.0) * (1.0 + energy / 200.0)


def sample(x, y, t, state):
    """Force vector ``(fx, fy)`` at ``(x, y)`` and time ``t`` for ``state``.

    Pure: the same four inputs always give the same output.  ``state`` is
    sanitized first so out-of-range sliders never leak NaN into motion.
    """
    s = state.sanitized()
    return field_vector(float(x), float(y), float(t),
                        s.intensity, s.energy_level, s.frequency,
                        s.particle_spin, s.has(PHASE_DRIFT))
