"""Field-state value objects shared by the renderer and the host.

``FieldState`` is the small bundle of sliders and anomaly toggles the
visualiser reads every frame.  It is immutable: the host builds a new
object whenever a parameter changes, and the engine restarts when the
object it holds is replaced.  ``DiagnosticReport`` is the read-only shape
of the external diagnostic service's answer; the engine only ever looks
at its ``visual_intervention``.
"""

import json
import math
import dataclasses
from dataclasses import dataclass, field
from enum import Enum

# ── Anomaly vocabulary ─────────────────────────────────────────────────────────
TACHYON_LEAK  = "Tachyon Leak"
FLUX_PINCH    = "Flux Pinch"
PHASE_DRIFT   = "Phase Drift"
EVENT_HORIZON = "Event Horizon"

# fixed order, also the overlay stacking order
ANOMALIES = (TACHYON_LEAK, FLUX_PINCH, PHASE_DRIFT, EVENT_HORIZON)

# ── Parameter ranges ───────────────────────────────────────────────────────────
RANGES = {
    "intensity":     (0.0, 100.0),
    "fluctuation":   (0.0, 100.0),
    "entanglement":  (0.0, 100.0),
    "frequency":     (0.0, 20.0),
    "energy_level":  (0.0, 200.0),
    "particle_spin": (-10.0, 10.0),
}

# value used when a parameter arrives as NaN/inf
FALLBACK = {
    "intensity":     0.0,
    "fluctuation":   0.0,
    "entanglement":  0.0,
    "frequency":     0.0,
    "energy_level":  0.0,
    "particle_spin": 0.0,
}

# JSON / service key names
_JSON_KEYS = {
    "intensity":     "intensity",
    "fluctuation":   "fluctuation",
    "entanglement":  "entanglement",
    "frequency":     "frequency",
    "energy_level":  "energyLevel",
    "particle_spin": "particleSpin",
}

RISK_LEVELS = ("Low", "Moderate", "Critical", "Quantum Collapse")


def clamp(x, lo, hi):
    return max(lo, min(hi, x))


def finite_clamp(x, lo, hi, fallback):
    """Clamp ``x`` into ``[lo, hi]``; NaN, inf or non-numbers become ``fallback``."""
    try:
        x = float(x)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(x):
        return fallback
    return clamp(x, lo, hi)


# ═══════════════════════════════════════════════════════════════════════════════
#  INTERVENTION TAG
# ═══════════════════════════════════════════════════════════════════════════════

class Intervention(str, Enum):
    VECTOR_TRACE   = "VECTOR_TRACE"
    RESONANCE_SCAN = "RESONANCE_SCAN"
    VOID_ANALYSIS  = "VOID_ANALYSIS"
    FLUX_GLOW      = "FLUX_GLOW"


def parse_intervention(value):
    """Return the matching ``Intervention`` or ``None`` for anything unknown."""
    if isinstance(value, Intervention):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return Intervention(value.strip().upper())
    except ValueError:
        return None


# ═══════════════════════════════════════════════════════════════════════════════
#  FIELD STATE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class FieldState:
    intensity:     float = 42.0
    fluctuation:   float = 15.0
    entanglement:  float = 10.0
    frequency:     float = 4.8
    energy_level:  float = 80.0
    particle_spin: float = 1.5
    anomalies:     frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        # accept any iterable of names
        if not isinstance(self.anomalies, frozenset):
            object.__setattr__(self, "anomalies", frozenset(self.anomalies))

    def has(self, anomaly):
        return anomaly in self.anomalies

    def active_anomalies(self):
        """Known anomalies that are switched on, in vocabulary order."""
        return [a for a in ANOMALIES if a in self.anomalies]

    def replace(self, **changes):
        return dataclasses.replace(self, **changes)

    def toggled(self, anomaly):
        return self.replace(anomalies=self.anomalies ^ {anomaly})

    def sanitized(self):
        """Copy with every value clamped into range and unknown anomalies dropped."""
        values = {
            name: finite_clamp(getattr(self, name), lo, hi, FALLBACK[name])
            for name, (lo, hi) in RANGES.items()
        }
        return FieldState(anomalies=frozenset(self.active_anomalies()), **values)

    # ── Serialisation ──────────────────────────────────────────────────────────
    def to_dict(self):
        data = {key: getattr(self, name) for name, key in _JSON_KEYS.items()}
        data["anomalies"] = self.active_anomalies()
        return data

    @classmethod
    def from_dict(cls, data, base=None):
        """Build a sanitized state from a camelCase dict; missing keys come from ``base``.

        Raises ``ValueError`` when ``data`` is not an object or ``anomalies``
        is neither a name nor a list of names.
        """
        if not isinstance(data, dict):
            raise ValueError("preset must be a JSON object")
        base = base or DEFAULT_STATE
        values = {}
        for name, key in _JSON_KEYS.items():
            values[name] = data.get(key, getattr(base, name))
        anomalies = data.get("anomalies", base.anomalies)
        if isinstance(anomalies, str):
            anomalies = [anomalies]
        elif not isinstance(anomalies, (list, tuple, set, frozenset)):
            raise ValueError(f"anomalies must be a list of names, got {type(anomalies).__name__}")
        if not all(isinstance(a, str) for a in anomalies):
            raise ValueError("anomalies must be a list of names")
        return cls(anomalies=frozenset(anomalies), **values).sanitized()


DEFAULT_STATE = FieldState()


def save_state(state, path):
    """Write the parameter preset (not the visual state) to a JSON file."""
    with open(path, "w") as f:
        json.dump(state.to_dict(), f, indent=2)


def load_state(path):
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"preset {path!r} is not a JSON object")
    return FieldState.from_dict(data)


# ── Remote feed ────────────────────────────────────────────────────────────────
def _walk(rng, val, hi, factor, lo=0.0):
    delta = (rng.random() - 0.5) * factor
    return clamp(val + delta, lo, hi)


def drift(state, rng):
    """One tick of the streaming feed: a bounded random walk of every slider."""
    if rng.random() > 0.95:
        entanglement = min(100.0, state.entanglement + 20)
    else:
        entanglement = _walk(rng, state.entanglement, 100, 0.5)
    return state.replace(
        intensity=_walk(rng, state.intensity, 100, 2),
        energy_level=_walk(rng, state.energy_level, 200, 5),
        particle_spin=_walk(rng, state.particle_spin, 10, 0.5, lo=-10.0),
        fluctuation=_walk(rng, state.fluctuation, 100, 1),
        frequency=_walk(rng, state.frequency, 20, 0.1),
        entanglement=entanglement,
    )


# ═══════════════════════════════════════════════════════════════════════════════
#  DIAGNOSTIC REPORT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class SuggestedAdjustment:
    parameter: str
    value:     str
    direction: str  # increase | decrease | stabilize


@dataclass(frozen=True, eq=False)
class DiagnosticReport:
    timestamp:      str = ""
    summary:        str = ""
    recommendation: str = ""
    risk_level:     str = "Low"
    suggested_adjustments: tuple = ()
    visual_intervention: Intervention | None = None

    @classmethod
    def from_dict(cls, data):
        """Parse the diagnostic service's JSON, tolerating missing or odd fields.

        A body that is not an object, or a ``suggestedAdjustments`` that is
        not a list, raises ``ValueError``.
        """
        if not isinstance(data, dict):
            raise ValueError("report must be a JSON object")
        risk = data.get("riskLevel", "Low")
        if risk not in RISK_LEVELS:
            risk = "Low"
        raw = data.get("suggestedAdjustments")
        if raw is None:
            raw = []
        elif not isinstance(raw, list):
            raise ValueError("suggestedAdjustments must be a list")
        adjustments = []
        for adj in raw:
            if not isinstance(adj, dict):
                continue
            adjustments.append(SuggestedAdjustment(
                str(adj.get("parameter", "")),
                str(adj.get("value", "")),
                str(adj.get("direction", "stabilize")),
            ))
        return cls(
            timestamp=str(data.get("timestamp", "")),
            summary=str(data.get("summary", "")),
            recommendation=str(data.get("recommendation", "")),
            risk_level=risk,
            suggested_adjustments=tuple(adjustments),
            visual_intervention=parse_intervention(data.get("visualIntervention")),
        )
