"""Tests for withinhost.models — right-hand sides and parameter sets."""

import dataclasses

import numpy as np
import pytest

from withinhost.config import default_config
from withinhost.models import (
    MODELS,
    CapacityParams,
    KillParams,
    SaturatingParams,
    build_params,
    capacity_model,
    get_model,
    kill_model,
    saturating_model,
)


# ═══════════════════════════════════════════════════════════════════════
# RIGHT-HAND SIDES
# ═══════════════════════════════════════════════════════════════════════

class TestKillModel:
    def test_hand_computed(self):
        p = KillParams(r=10.0, k=1.0, a=1.0, d=0.5, y=0.1)
        dP, dX = kill_model(0.0, np.array([2.0, 3.0]), p)
        # kill = 6; dP = 20 − 6; dX = 1 − 1.5 + 0.6
        assert dP == pytest.approx(14.0)
        assert dX == pytest.approx(0.1)

    def test_no_pathogen(self):
        p = KillParams(r=30.0)
        dP, dX = kill_model(0.0, np.array([0.0, 0.0]), p)
        assert dP == 0.0
        assert dX == pytest.approx(p.a)

    def test_peak_condition(self):
        """dP/dt = 0 exactly when X = r/k."""
        p = KillParams(r=30.0, k=3.5)
        dP, _ = kill_model(0.0, np.array([1e6, 30.0 / 3.5]), p)
        assert dP == pytest.approx(0.0, abs=1e-6)

    def test_does_not_mutate_state(self):
        state = np.array([2.0, 3.0])
        kill_model(0.0, state, KillParams(r=10.0))
        np.testing.assert_array_equal(state, [2.0, 3.0])


class TestCapacityModel:
    def test_hand_computed(self):
        p = CapacityParams(r=10.0, k=1.0, a=1.0, d=0.5, y=0.1, C=4.0)
        dP, dX = capacity_model(0.0, np.array([2.0, 3.0]), p)
        # logistic term 10·2·(1 − 0.5) = 10; minus kill 6
        assert dP == pytest.approx(4.0)
        assert dX == pytest.approx(0.1)

    def test_no_growth_at_capacity(self):
        p = CapacityParams(r=50.0, C=1e6)
        dP, _ = capacity_model(0.0, np.array([1e6, 0.0]), p)
        assert dP == pytest.approx(0.0)

    def test_matches_kill_model_far_below_capacity(self):
        state = np.array([10.0, 2.0])
        a = kill_model(0.0, state, KillParams(r=30.0))
        b = capacity_model(0.0, state, CapacityParams(r=30.0, C=1e15))
        np.testing.assert_allclose(a, b, rtol=1e-10)


class TestSaturatingModel:
    def test_hand_computed(self):
        p = SaturatingParams(r=10.0, b=1.0, dp=1.0, alpha=0.1, d=0.5,
                             gx=2.0, xmax=10.0, hp=2.0)
        dP, dX = saturating_model(0.0, np.array([2.0, 3.0]), p)
        # dP = 20/4 − 2 ; dX = 0.1 − 1.5 + 2·2·7/4
        assert dP == pytest.approx(3.0)
        assert dX == pytest.approx(5.6)

    def test_zero_state_finite(self):
        p = SaturatingParams(r=30.0)
        out = saturating_model(0.0, np.array([0.0, 0.0]), p)
        assert np.all(np.isfinite(out))
        assert out[0] == 0.0
        assert out[1] == pytest.approx(p.alpha)

    def test_activation_saturates(self):
        """At X = xmax the activation term vanishes regardless of P."""
        p = SaturatingParams(r=30.0)
        _, dX = saturating_model(0.0, np.array([1e12, p.xmax]), p)
        assert dX == pytest.approx(p.alpha - p.d * p.xmax)


# ═══════════════════════════════════════════════════════════════════════
# REGISTRY & PARAMETER SETS
# ═══════════════════════════════════════════════════════════════════════

class TestRegistry:
    def test_three_variants(self):
        assert set(MODELS) == {'kill', 'capacity', 'saturating'}

    def test_get_model(self):
        spec = get_model('capacity')
        assert spec.rhs is capacity_model
        assert spec.params_cls is CapacityParams

    def test_unknown_model(self):
        with pytest.raises(KeyError, match="Unknown model"):
            get_model('sir')

    def test_uniform_interface(self):
        config = default_config()
        state = np.array([1e4, 0.0])
        for name, spec in MODELS.items():
            out = spec.rhs(0.0, state, build_params(name, 30.0, config))
            assert out.shape == (2,)


class TestBuildParams:
    def test_from_config(self):
        config = default_config()
        config.kill.k = 2.0
        p = build_params('kill', 30, config)
        assert isinstance(p, KillParams)
        assert p.r == 30.0
        assert p.k == 2.0
        assert p.a == config.kill.a

    def test_saturating_fields(self):
        p = build_params('saturating', 50.0, default_config())
        assert isinstance(p, SaturatingParams)
        assert p.hp == 1.0e5

    def test_immutable(self):
        p = build_params('capacity', 30.0, default_config())
        with pytest.raises(dataclasses.FrozenInstanceError):
            p.r = 40.0

    def test_independent_of_later_config_changes(self):
        config = default_config()
        p = build_params('kill', 30.0, config)
        config.kill.k = 99.0
        assert p.k == 3.5
