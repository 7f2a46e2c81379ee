"""Tests for withinhost.types — enums, trajectories and metric bundles."""

import numpy as np
import pytest

from withinhost.types import (
    Compartment,
    MetricBundle,
    Sample,
    Trajectory,
    TransmissionClass,
)


def _traj(clearance_index=None):
    t = np.linspace(0.0, 0.4, 5)
    return Trajectory(
        time=t,
        pathogen=np.array([10.0, 20.0, 5.0, -1.0, -3.0]),
        immune=np.array([0.0, 1.0, 2.0, 3.0, 4.0]),
        r=30.0,
        model="kill",
        clearance_index=clearance_index,
    )


def _bundle(onset, end, delay):
    return MetricBundle(
        r=30.0, threshold=1e6, compartment=Compartment.PATHOGEN,
        peak_pathogen_time=1.0, peak_immune_time=1.5,
        symptom_onset=onset, symptom_end=end, delay=delay,
    )


# ── Enum tests ────────────────────────────────────────────────────────

class TestCompartment:
    def test_values(self):
        assert Compartment.PATHOGEN == 0
        assert Compartment.IMMUNE == 1

    def test_state_vector_index(self):
        state = np.array([7.0, 2.0])
        assert state[Compartment.IMMUNE] == 2.0

    def test_from_name(self):
        assert Compartment.from_name("pathogen") is Compartment.PATHOGEN
        assert Compartment.from_name("Immune") is Compartment.IMMUNE

    def test_from_name_unknown(self):
        with pytest.raises(ValueError, match="Unknown compartment"):
            Compartment.from_name("virus")


class TestTransmissionClass:
    def test_labels(self):
        assert TransmissionClass.PRE_SYMPTOMATIC.value == "Pre-symptomatic"
        assert TransmissionClass.ASYMPTOMATIC.value == "Asymptomatic"

    def test_from_delay(self):
        assert TransmissionClass.from_delay(None) is TransmissionClass.ASYMPTOMATIC
        assert TransmissionClass.from_delay(-0.2) is TransmissionClass.PRE_SYMPTOMATIC
        assert TransmissionClass.from_delay(0.0) is TransmissionClass.POST_SYMPTOMATIC
        assert TransmissionClass.from_delay(1.3) is TransmissionClass.POST_SYMPTOMATIC


# ── Trajectory tests ──────────────────────────────────────────────────

class TestTrajectory:
    def test_uncleared_all_valid(self):
        traj = _traj()
        assert not traj.cleared
        assert traj.n_valid == 5
        assert all(s is not None for s in traj.samples())

    def test_clearance_masks_tail(self):
        traj = _traj(clearance_index=3)
        records = traj.as_records()
        assert len(records) == 5
        assert records[2] == Sample(time=0.2, pathogen=5.0, immune=2.0)
        assert records[3] is None
        assert records[4] is None

    def test_valid_views(self):
        traj = _traj(clearance_index=3)
        np.testing.assert_array_equal(traj.valid_pathogen, [10.0, 20.0, 5.0])
        np.testing.assert_array_equal(traj.valid(Compartment.IMMUNE), [0.0, 1.0, 2.0])
        assert traj.valid_time.size == 3

    def test_clearance_at_start(self):
        traj = _traj(clearance_index=0)
        assert traj.n_valid == 0
        assert traj.sample(0) is None

    def test_negative_index(self):
        traj = _traj()
        assert traj.sample(-1).immune == 4.0

    def test_out_of_range(self):
        with pytest.raises(IndexError):
            _traj().sample(5)


# ── MetricBundle tests ────────────────────────────────────────────────

class TestMetricBundle:
    def test_symptom_duration(self):
        m = _bundle(onset=0.5, end=2.0, delay=0.5)
        assert m.symptom_duration == pytest.approx(1.5)
        assert m.symptomatic

    def test_undefined_propagates(self):
        m = _bundle(onset=None, end=None, delay=None)
        assert m.symptom_duration is None
        assert m.presymptomatic is None
        assert not m.symptomatic
        assert m.transmission_class is TransmissionClass.ASYMPTOMATIC

    def test_presymptomatic(self):
        m = _bundle(onset=1.4, end=3.0, delay=-0.4)
        assert m.presymptomatic is True
        assert m.transmission_class is TransmissionClass.PRE_SYMPTOMATIC

    def test_frozen(self):
        m = _bundle(onset=0.5, end=2.0, delay=0.5)
        with pytest.raises(AttributeError):
            m.delay = 0.0
