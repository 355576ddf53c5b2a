import math

import numpy as np
import pytest

from fieldstate import (
    ANOMALIES, DEFAULT_STATE, EVENT_HORIZON, FLUX_PINCH, PHASE_DRIFT, TACHYON_LEAK,
    DiagnosticReport, FieldState, Intervention, drift, load_state,
    parse_intervention, save_state,
)


def test_default_state_matches_host_start_values():
    s = DEFAULT_STATE
    assert (s.intensity, s.fluctuation, s.entanglement) == (42, 15, 10)
    assert (s.frequency, s.energy_level, s.particle_spin) == (4.8, 80, 1.5)
    assert s.anomalies == frozenset()


def test_sanitized_clamps_and_replaces_non_finite():
    s = FieldState(intensity=250, fluctuation=-5, entanglement=float("nan"),
                   frequency=float("inf"), energy_level=-float("inf"),
                   particle_spin=99).sanitized()
    assert s.intensity == 100
    assert s.fluctuation == 0
    assert s.entanglement == 0
    assert s.frequency == 0
    assert s.energy_level == 0
    assert s.particle_spin == 10


def test_sanitized_nan_spin_falls_back_to_zero():
    assert FieldState(particle_spin=float("nan")).sanitized().particle_spin == 0


def test_sanitized_infinite_values_fall_back_not_clamp():
    s = FieldState(intensity=float("inf"), energy_level=float("inf"),
                   particle_spin=-float("inf")).sanitized()
    assert s.intensity == 0
    assert s.energy_level == 0
    assert s.particle_spin == 0


def test_unknown_anomalies_are_dropped_and_order_is_fixed():
    s = FieldState(anomalies=["Event Horizon", "Wormhole", "Tachyon Leak"])
    assert s.active_anomalies() == [TACHYON_LEAK, EVENT_HORIZON]
    assert s.sanitized().anomalies == frozenset({TACHYON_LEAK, EVENT_HORIZON})


def test_replace_builds_a_new_object():
    s = DEFAULT_STATE.replace(intensity=10)
    assert s is not DEFAULT_STATE
    assert s.intensity == 10
    assert DEFAULT_STATE.intensity == 42


def test_toggled_flips_membership():
    s = DEFAULT_STATE.toggled(FLUX_PINCH)
    assert s.has(FLUX_PINCH)
    assert not s.toggled(FLUX_PINCH).has(FLUX_PINCH)


@pytest.mark.parametrize("raw, expected", [
    ("VECTOR_TRACE", Intervention.VECTOR_TRACE),
    ("resonance_scan", Intervention.RESONANCE_SCAN),
    (Intervention.FLUX_GLOW, Intervention.FLUX_GLOW),
    ("HYPER_MODE", None),
    ("", None),
    (None, None),
    (3, None),
])
def test_parse_intervention(raw, expected):
    assert parse_intervention(raw) is expected


def test_report_from_service_json():
    report = DiagnosticReport.from_dict({
        "timestamp": "12:00:01",
        "summary": "Flux lattice unstable",
        "recommendation": "Reduce energy",
        "riskLevel": "Critical",
        "suggestedAdjustments": [
            {"parameter": "energyLevel", "value": "120", "direction": "decrease"},
            "garbage",
        ],
        "visualIntervention": "VOID_ANALYSIS",
    })
    assert report.risk_level == "Critical"
    assert report.visual_intervention is Intervention.VOID_ANALYSIS
    assert len(report.suggested_adjustments) == 1
    assert report.suggested_adjustments[0].direction == "decrease"


def test_report_tolerates_unknown_values():
    report = DiagnosticReport.from_dict({"riskLevel": "Apocalypse", "visualIntervention": "NOPE"})
    assert report.risk_level == "Low"
    assert report.visual_intervention is None


def test_preset_save_and_load(tmp_path):
    path = tmp_path / "preset.json"
    state = FieldState(intensity=77, energy_level=160, particle_spin=-3,
                       anomalies={PHASE_DRIFT, EVENT_HORIZON})
    save_state(state, path)
    loaded = load_state(path)
    assert loaded.intensity == 77
    assert loaded.energy_level == 160
    assert loaded.particle_spin == -3
    assert loaded.active_anomalies() == [PHASE_DRIFT, EVENT_HORIZON]


def test_load_fills_missing_keys_and_clamps(tmp_path):
    path = tmp_path / "partial.json"
    path.write_text('{"intensity": 500, "anomalies": "Flux Pinch"}')
    loaded = load_state(path)
    assert loaded.intensity == 100
    assert loaded.frequency == DEFAULT_STATE.frequency
    assert loaded.has(FLUX_PINCH)


def test_load_rejects_non_object(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(ValueError):
        load_state(path)


def test_drift_stays_in_range():
    rng = np.random.default_rng(5)
    s = FieldState(intensity=99.5, energy_level=1, particle_spin=-9.9,
                   fluctuation=0, frequency=19.99, entanglement=95)
    for _ in range(500):
        s = drift(s, rng)
        assert 0 <= s.intensity <= 100
        assert 0 <= s.energy_level <= 200
        assert -10 <= s.particle_spin <= 10
        assert 0 <= s.fluctuation <= 100
        assert 0 <= s.frequency <= 20
        assert 0 <= s.entanglement <= 100
        assert all(math.isfinite(v) for v in (s.intensity, s.energy_level))


def test_drift_keeps_anomalies():
    s = FieldState(anomalies=set(ANOMALIES))
    assert drift(s, np.random.default_rng(0)).anomalies == s.anomalies


@pytest.mark.parametrize("anomalies", [5, None, [["x"]], {"Flux Pinch": True}, [3]])
def test_from_dict_rejects_malformed_anomalies(anomalies):
    with pytest.raises(ValueError):
        FieldState.from_dict({"anomalies": anomalies})


def test_load_rejects_malformed_anomalies(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"intensity": 20, "anomalies": 5}')
    with pytest.raises(ValueError):
        load_state(path)


@pytest.mark.parametrize("adjustments", [5, "energyLevel", {"parameter": "x"}])
def test_report_rejects_non_list_adjustments(adjustments):
    with pytest.raises(ValueError):
        DiagnosticReport.from_dict({"suggestedAdjustments": adjustments})


def test_report_null_adjustments_are_empty():
    assert DiagnosticReport.from_dict({"suggestedAdjustments": None}).suggested_adjustments == ()


def test_report_rejects_non_object():
    with pytest.raises(ValueError):
        DiagnosticReport.from_dict([1, 2])
