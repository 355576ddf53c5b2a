"""Frame loop controller for the flux visualiser.

``FluxEngine`` owns everything that changes from frame to frame: the
particle pool, the accumulated time ``t`` and the pending frame callback.
It never loops by itself; each frame it asks a ``FrameScheduler`` to call
it back once more.  The host ticks the scheduler once per presented frame
and tests tick it by hand, so a run is just "tick N times".

Replacing the field state (or the intervention tag) restarts the engine:
time, particle count and every particle position start over.  That jump
is the expected behaviour of ``reconfigure``, not a glitch.
"""

import os
from dataclasses import dataclass

import numpy as np
import pygame

from fieldstate import DEFAULT_STATE, EVENT_HORIZON, parse_intervention
from particles import ParticleStore, pool_size
from integrator import step_particles
from render_modes import resolve, fade_alpha, draw_particles, draw_scan
from overlays import BackgroundVeil, draw_grid, active_overlays

TIME_STEP  = 0.01
_UNCHANGED = object()


# ═══════════════════════════════════════════════════════════════════════════════
#  HOST SEAMS
# ═══════════════════════════════════════════════════════════════════════════════

class FrameScheduler:
    """Next-frame callback queue.

    ``tick`` runs only the callbacks queued before it was called; anything
    requested while ticking waits for the following tick, so a callback
    that reschedules itself runs at most once per frame.
    """

    def __init__(self):
        self._next_id = 0
        self._pending: dict[int, object] = {}
        self._batch:   dict[int, object] = {}

    def request_frame(self, callback):
        self._next_id += 1
        self._pending[self._next_id] = callback
        return self._next_id

    def cancel_frame(self, handle):
        if handle is None:
            return
        self._pending.pop(handle, None)
        self._batch.pop(handle, None)

    def tick(self):
        self._batch, self._pending = self._pending, {}
        ran = 0
        while self._batch:
            handle = next(iter(self._batch))
            callback = self._batch.pop(handle)
            callback()
            ran += 1
        return ran

    @property
    def pending(self):
        return len(self._pending)


class ResizeNotifier:
    """Host-side resize broadcast (the window's VIDEORESIZE, in the app)."""

    def __init__(self):
        self._listeners = []

    def add_listener(self, cb):
        if cb not in self._listeners:
            self._listeners.append(cb)

    def remove_listener(self, cb):
        if cb in self._listeners:
            self._listeners.remove(cb)

    def notify(self, width, height):
        for cb in list(self._listeners):
            cb(width, height)

    @property
    def listener_count(self):
        return len(self._listeners)


@dataclass
class EngineConfig:
    seed:  int | None = None
    fps:   int = 60
    debug: bool = False

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        fps = env.get("FLUXFIELD_FPS")
        return cls(
            seed=_env_seed(env.get("FLUXFIELD_SEED")),
            fps=int(fps) if fps and fps.strip().isdigit() and int(fps) > 0 else 60,
            debug=bool(env.get("FLUXFIELD_DEBUG")),
        )


def _env_seed(raw):
    """Non-negative integer seed from an env string, else None."""
    if not raw:
        return None
    try:
        seed = int(raw.strip())
    except ValueError:
        return None
    return seed if seed >= 0 else None


# ═══════════════════════════════════════════════════════════════════════════════
#  ENGINE
# ═══════════════════════════════════════════════════════════════════════════════

class FluxEngine:
    def __init__(self, surface, scheduler, resizer=None, state=DEFAULT_STATE,
                 intervention=None, rng=None, config=None):
        self.config       = config or EngineConfig()
        self.rng          = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.surface      = surface
        self.scheduler    = scheduler
        self.resizer      = resizer or ResizeNotifier()
        self.state        = state
        self.intervention = parse_intervention(intervention)

        self.store: ParticleStore | None = None
        self.t            = 0.0
        self.frame        = 0
        self.width        = 0
        self.height       = 0
        self.running      = False
        self.restarts     = 0
        self.last_fade    = 0.0
        self.last_respawned = 0

        self._handle      = None
        self._listening   = False
        self._wants_start = False
        self._resized     = False
        self._veil        = BackgroundVeil()
        self._layer: pygame.Surface | None = None

    # ── Lifecycle ──────────────────────────────────────────────────────────────
    def _surface_size(self):
        if self.surface is None:
            return 0, 0
        w, h = self.surface.get_size()
        return int(w), int(h)

    def _listen(self):
        if not self._listening:
            self.resizer.add_listener(self._on_resize)
            self._listening = True

    def start(self):
        """Build a fresh pool and schedule the first frame.

        Returns False without starting when there is no surface or it has
        no area yet; a later ``attach_surface`` or resize retries.
        """
        self._wants_start = True
        self._listen()
        if self.running:
            return True
        w, h = self._surface_size()
        if w <= 0 or h <= 0:
            return False

        s = self.state.sanitized()
        self.width, self.height = w, h
        self.store = ParticleStore(w, h, pool_size(s.intensity), self.rng)
        self.store.populate(s)
        self.t = 0.0
        self.frame = 0
        self._layer = None
        self._resized = False
        self.running = True
        self.restarts += 1
        self._handle = self.scheduler.request_frame(self._on_frame)
        if self.config.debug:
            print(f"engine started: {len(self.store)} particles, {w}x{h}")
        return True

    def dispose(self):
        """Cancel the pending frame, detach from resizes and drop the pool."""
        self.scheduler.cancel_frame(self._handle)
        self._handle = None
        if self._listening:
            self.resizer.remove_listener(self._on_resize)
            self._listening = False
        self.store = None
        self.t = 0.0
        self.frame = 0
        self.running = False
        self._wants_start = False

    def reconfigure(self, state, intervention=_UNCHANGED):
        """Swap in a new state/tag: same as ``dispose()`` then ``start()``.

        Time and particles reset.  Passing the very same objects is a no-op.
        """
        tag = self.intervention if intervention is _UNCHANGED else parse_intervention(intervention)
        if state is self.state and tag is self.intervention and self.running:
            return False
        self.dispose()
        self.state = state
        self.intervention = tag
        return self.start()

    def attach_surface(self, surface):
        self.surface = surface
        self._resized = True
        if self._wants_start and not self.running:
            self.start()

    def _on_resize(self, width, height):
        self._resized = True
        if self._wants_start and not self.running:
            self.start()

    def _sync_size(self):
        if not self._resized:
            return
        self._resized = False
        self.width, self.height = self._surface_size()
        if self.store is not None:
            self.store.resize_bounds(self.width, self.height)
        self._layer = None

    # ── Frame ──────────────────────────────────────────────────────────────────
    def _on_frame(self):
        self._handle = None
        self.step()
        if self.running:
            self._handle = self.scheduler.request_frame(self._on_frame)

    def _overlay_layer(self):
        size = (self.width, self.height)
        if self._layer is None or self._layer.get_size() != size:
            self._layer = pygame.Surface(size, pygame.SRCALPHA)
        self._layer.fill((0, 0, 0, 0))
        return self._layer

    def _composite(self, layer):
        self.surface.blit(layer, (0, 0))

    def step(self, dt=1.0):
        """Advance one frame (``dt`` in frames scales the time advance) and draw it."""
        if not self.running:
            return
        self._sync_size()
        s = self.state.sanitized()
        tag = self.intervention
        mode = resolve(s, tag)
        self.t += TIME_STEP * (s.fluctuation / 50.0) * max(0.0, dt)
        self.frame += 1
        if self.width <= 0 or self.height <= 0:
            return

        surf = self.surface
        self.last_fade = fade_alpha(s, tag)
        self._veil.paint(surf, self.last_fade, self.rng)

        self.last_respawned = step_particles(self.store, s, self.t)
        draw_particles(surf, self.store, s, mode)

        if mode.scan:
            layer = self._overlay_layer()
            draw_scan(layer, self.t, self.width, self.height)
            self._composite(layer)

        layer = self._overlay_layer()
        draw_grid(layer, self.width, self.height, mode.grid_alpha, s.has(EVENT_HORIZON))
        self._composite(layer)

        for overlay in active_overlays(s):
            layer = self._overlay_layer()
            overlay.render(layer, s, self.t, self.rng)
            self._composite(layer)
