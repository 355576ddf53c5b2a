import numpy as np
import pytest

from fieldstate import FieldState, EVENT_HORIZON, FLUX_PINCH
from integrator import DAMPING, LIFE_DECAY, advance, step_particles
from particles import LIFE_MIN, LIFE_MAX, ParticleStore


def _store(rng, n=1, w=800, h=600):
    store = ParticleStore(w, h, n, rng)
    store.life[:] = 100.0
    return store


def test_damping_and_ageing_without_forces(rng, calm_state):
    store = _store(rng)
    store.x[0], store.y[0] = 100.0, 100.0
    store.vx[0], store.vy[0] = 1.0, -2.0
    dead = advance(store, calm_state, 0.0)
    assert not dead[0]
    assert store.vx[0] == pytest.approx(DAMPING)
    assert store.vy[0] == pytest.approx(-2 * DAMPING)
    assert store.x[0] == pytest.approx(100 + DAMPING)
    assert store.life[0] == pytest.approx(100 - LIFE_DECAY)


def test_particle_inside_horizon_is_absorbed(rng, calm_state):
    store = _store(rng)
    store.x[0], store.y[0] = 410.0, 300.0       # 10px from centre
    state = calm_state.replace(anomalies={EVENT_HORIZON})
    dead = advance(store, state, 0.0)
    assert dead[0]
    assert store.life[0] == 0.0


def test_absorbed_particle_is_replaced_in_the_same_step(rng, calm_state):
    store = _store(rng, n=5)
    store.x[:] = 400.0
    store.y[:] = 300.0
    state = calm_state.replace(anomalies={EVENT_HORIZON})
    assert step_particles(store, state, 0.0) == 5
    assert len(store) == 5
    assert np.all((store.life >= LIFE_MIN) & (store.life <= LIFE_MAX))


def test_horizon_pulls_towards_centre(rng, calm_state):
    store = _store(rng)
    store.x[0], store.y[0] = 600.0, 300.0       # 200px right of centre
    advance(store, calm_state.replace(anomalies={EVENT_HORIZON}), 0.0)
    assert store.vx[0] < 0
    assert store.vy[0] == pytest.approx(0.0)


def test_flux_pinch_swirls(rng, calm_state):
    store = _store(rng)
    store.x[0], store.y[0] = 500.0, 300.0       # 100px right of centre
    advance(store, calm_state.replace(anomalies={FLUX_PINCH}), 0.0)
    # inward pull on x, tangential swirl on y
    assert store.vx[0] < 0
    assert store.vy[0] > 0


def test_pinch_has_no_effect_out_of_reach(rng, calm_state):
    store = _store(rng)
    store.x[0], store.y[0] = 10.0, 10.0
    advance(store, calm_state.replace(anomalies={FLUX_PINCH}), 0.0)
    assert store.vx[0] == 0.0 and store.vy[0] == 0.0


def test_positions_wrap_into_bounds(rng):
    store = _store(rng, n=200, w=640, h=480)
    store.x[:] = rng.uniform(-5000, 5000, 200)
    store.y[:] = rng.uniform(-5000, 5000, 200)
    store.vx[:] = rng.uniform(-900, 900, 200)
    store.vy[:] = rng.uniform(-900, 900, 200)
    state = FieldState(intensity=100, energy_level=200, frequency=20,
                       anomalies={EVENT_HORIZON, FLUX_PINCH})
    for frame in range(20):
        step_particles(store, state, frame * 0.01)
        assert np.all((store.x >= 0) & (store.x < 640))
        assert np.all((store.y >= 0) & (store.y < 480))


def test_negative_edge_wraps_to_far_side(rng, calm_state):
    store = _store(rng)
    store.x[0], store.y[0] = 0.5, 300.0
    store.vx[0] = -1.0
    advance(store, calm_state, 0.0)
    assert store.x[0] == pytest.approx(800 + 0.5 - DAMPING)


def test_non_finite_particle_is_replaced(rng):
    store = _store(rng, n=3)
    store.x[:] = 100.0
    store.y[:] = 100.0
    store.vx[1] = np.nan
    store.vy[2] = np.inf
    step_particles(store, FieldState(), 0.3)
    for arr in (store.x, store.y, store.vx, store.vy, store.life):
        assert np.all(np.isfinite(arr))
    assert np.all(store.life > 0)


def test_every_live_particle_has_positive_life_after_step(rng):
    store = ParticleStore(300, 300, 100, rng)
    store.populate(FieldState())
    store.life[:50] = 0.2
    for frame in range(10):
        step_particles(store, FieldState(), frame * 0.003)
        assert np.all(store.life > 0)


def test_empty_pool_is_fine(rng):
    store = ParticleStore(300, 300, 0, rng)
    assert step_particles(store, FieldState(), 0.0) == 0
