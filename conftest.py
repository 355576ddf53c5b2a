import os

import numpy as np
import pygame
import pytest

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

from fieldstate import FieldState
from engine import FrameScheduler, ResizeNotifier


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def surface():
    return pygame.Surface((800, 600))


@pytest.fixture
def scheduler():
    return FrameScheduler()


@pytest.fixture
def resizer():
    return ResizeNotifier()


@pytest.fixture
def calm_state():
    """No field force at all, so only damping and anomalies move particles."""
    return FieldState(intensity=0, fluctuation=50, entanglement=0,
                      frequency=0, energy_level=0, particle_spin=0)
