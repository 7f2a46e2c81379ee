"""Within-host model definitions — three pathogen/immune ODE variants.

Implements:
  - Variant A, "kill": unmodified mass-action killing
        dP/dt = r·P − k·X·P
        dX/dt = a − d·X + y·k·X·P
  - Variant B, "capacity": logistic pathogen growth to carrying capacity C
        dP/dt = r·P·(1 − P/C) − k·X·P
        dX/dt = a − d·X + y·k·X·P
  - Variant C, "saturating": immune inhibition of replication, saturating
    pathogen-driven immune activation
        dP/dt = r·P/(1 + b·X) − dp·P
        dX/dt = α − d·X + gx·P·(Xmax − X)/(P + hp)

All right-hand sides share the signature rhs(t, state, params) → ndarray(2,)
with state = [P, X] (see types.Compartment). They are pure: no globals, no
mutation of state or params. Parameter sets are frozen dataclasses built per
run from the configuration sections.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Type

import numpy as np

from withinhost.config import StudyConfig


# ═══════════════════════════════════════════════════════════════════════
# PARAMETER SETS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class KillParams:
    r: float
    k: float = 3.5
    a: float = 1.0
    d: float = 0.5
    y: float = 1.0e-7


@dataclass(frozen=True)
class CapacityParams:
    r: float
    k: float = 3.5
    a: float = 1.0
    d: float = 0.5
    y: float = 1.0e-7
    C: float = 1.0e9


@dataclass(frozen=True)
class SaturatingParams:
    r: float
    b: float = 5.0
    dp: float = 1.0
    alpha: float = 0.1
    d: float = 0.5
    gx: float = 2.0
    xmax: float = 100.0
    hp: float = 1.0e5


# ═══════════════════════════════════════════════════════════════════════
# RIGHT-HAND SIDES
# ═══════════════════════════════════════════════════════════════════════

def kill_model(t: float, state: np.ndarray, p: KillParams) -> np.ndarray:
    """Variant A derivative."""
    P, X = state[0], state[1]
    kill = p.k * X * P
    dP = p.r * P - kill
    dX = p.a - p.d * X + p.y * kill
    return np.array([dP, dX])


def capacity_model(t: float, state: np.ndarray, p: CapacityParams) -> np.ndarray:
    """Variant B derivative: logistic replication capped at C."""
    P, X = state[0], state[1]
    kill = p.k * X * P
    dP = p.r * P * (1.0 - P / p.C) - kill
    dX = p.a - p.d * X + p.y * kill
    return np.array([dP, dX])


def saturating_model(t: float, state: np.ndarray, p: SaturatingParams) -> np.ndarray:
    """Variant C derivative.

    The activation term P/(P + hp) is bounded by 1 and defined at P = 0
    because hp > 0.
    """
    P, X = state[0], state[1]
    dP = p.r * P / (1.0 + p.b * X) - p.dp * P
    dX = p.alpha - p.d * X + p.gx * P * (p.xmax - X) / (P + p.hp)
    return np.array([dP, dX])


# ═══════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════

RHS = Callable[[float, np.ndarray, object], np.ndarray]


class ModelSpec(NamedTuple):
    """Uniform handle on one model variant."""
    name: str
    rhs: RHS
    params_cls: Type
    description: str


MODELS: Dict[str, ModelSpec] = {
    'kill': ModelSpec(
        'kill', kill_model, KillParams,
        "Unmodified kill model",
    ),
    'capacity': ModelSpec(
        'capacity', capacity_model, CapacityParams,
        "Pathogen carrying capacity",
    ),
    'saturating': ModelSpec(
        'saturating', saturating_model, SaturatingParams,
        "Saturating immune inhibition of replication",
    ),
}


def get_model(name: str) -> ModelSpec:
    """Look up a model variant by name.

    Raises:
        KeyError: If the variant is unknown.
    """
    if name not in MODELS:
        raise KeyError(
            f"Unknown model '{name}'. Available: {sorted(MODELS)}"
        )
    return MODELS[name]


def build_params(model: str, r: float, config: StudyConfig):
    """Build the immutable parameter set for one run.

    Args:
        model: Variant name ('kill', 'capacity', 'saturating').
        r: Pathogen replication rate.
        config: Study configuration supplying the fixed model constants.

    Returns:
        Frozen parameter dataclass for the variant.
    """
    spec = get_model(model)
    section = config.model_section(model)
    return spec.params_cls(r=float(r), **vars(section))
