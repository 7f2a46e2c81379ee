"""Simulation driver — integrate one model variant and truncate at clearance.

One driver serves every variant through the uniform rhs(t, state, params)
interface (see withinhost.models). Integration uses scipy's solve_ivp with
LSODA by default, which switches between stiff and non-stiff schemes: the
pathogen crash after the immune response catches up is near-discontinuous
and needs robust step-size control.

Clearance: the first grid index where P ≤ clearance_threshold (default 0)
and every later index are treated as missing. The model assumes no rebound,
so integration stops at clearance through a terminal solve_ivp event; grid
points past the event are never integrated and hold NaN.

Integrator failure is fatal for the run: SimulationError is raised instead of
returning partial output.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.integrate import solve_ivp

from withinhost.config import SimulationSection, StudyConfig
from withinhost.models import RHS, build_params, get_model
from withinhost.types import Trajectory


class SimulationError(RuntimeError):
    """The integrator could not complete the requested time grid."""

    def __init__(self, message: str, model: str = "", r: Optional[float] = None):
        self.detail = message
        self.model = model
        self.r = r
        prefix = f"[{model} r={r}] " if model else ""
        super().__init__(prefix + message)


def time_grid(t_end: float, dt: float) -> np.ndarray:
    """Dense evaluation grid 0, dt, …, t_end (t_end included)."""
    n_steps = int(round(t_end / dt))
    return np.linspace(0.0, n_steps * dt, n_steps + 1)


def find_clearance_index(
    pathogen: np.ndarray,
    threshold: float = 0.0,
) -> Optional[int]:
    """First index where pathogen ≤ threshold, or None if never reached."""
    hits = np.flatnonzero(pathogen <= threshold)
    if hits.size == 0:
        return None
    return int(hits[0])


def clearance_event(threshold: float = 0.0):
    """Terminal solve_ivp event firing when P falls through threshold."""
    def event(t, state, params):
        return state[0] - threshold
    event.terminal = True
    event.direction = -1
    return event


def simulate(
    rhs: RHS,
    params,
    dose: float,
    sim: Optional[SimulationSection] = None,
    immune_init: Optional[float] = None,
    model: str = "",
) -> Trajectory:
    """Integrate one model from [dose, immune_init] over the dense grid.

    Args:
        rhs: Model right-hand side rhs(t, state, params).
        params: Frozen parameter set for rhs; must expose .r.
        dose: Initial pathogen load P(0).
        sim: Grid and solver settings (defaults if None).
        immune_init: X(0); falls back to sim.immune_init.
        model: Variant name used to tag the trajectory and errors.

    Returns:
        Trajectory tagged with params.r, truncated at clearance.

    Raises:
        SimulationError: Solver failure or an incomplete grid before
            clearance, or non-finite values before clearance.
    """
    if sim is None:
        sim = SimulationSection()
    x0 = sim.immune_init if immune_init is None else immune_init
    r = float(params.r)

    t_eval = time_grid(sim.t_end, sim.dt)
    sol = solve_ivp(
        rhs,
        (t_eval[0], t_eval[-1]),
        [float(dose), float(x0)],
        method=sim.method,
        t_eval=t_eval,
        args=(params,),
        events=clearance_event(sim.clearance_threshold),
        rtol=sim.rtol,
        atol=sim.atol,
    )
    n_out = sol.y.shape[1]
    clearance_index = find_clearance_index(sol.y[0], sim.clearance_threshold)

    if sol.status == -1 and clearance_index is None:
        raise SimulationError(f"integration failed: {sol.message}", model, r)
    if sol.status == 1 and clearance_index is None and n_out < t_eval.size:
        # Event fell between grid points: first point at or after it
        clearance_index = n_out
    if clearance_index is None and n_out != t_eval.size:
        raise SimulationError(
            f"integrator returned {n_out} of {t_eval.size} grid points",
            model, r,
        )

    pathogen = np.full(t_eval.size, np.nan)
    immune = np.full(t_eval.size, np.nan)
    pathogen[:n_out] = sol.y[0]
    immune[:n_out] = sol.y[1]

    n_valid = t_eval.size if clearance_index is None else clearance_index
    if not (np.all(np.isfinite(pathogen[:n_valid]))
            and np.all(np.isfinite(immune[:n_valid]))):
        raise SimulationError("non-finite state before clearance", model, r)

    return Trajectory(
        time=t_eval,
        pathogen=pathogen,
        immune=immune,
        r=r,
        model=model,
        clearance_index=clearance_index,
    )


def simulate_variant(
    model: str,
    r: float,
    config: StudyConfig,
) -> Trajectory:
    """Build the parameter set for (model, r) from config and integrate it."""
    spec = get_model(model)
    params = build_params(model, r, config)
    return simulate(
        spec.rhs,
        params,
        dose=config.simulation.dose,
        sim=config.simulation,
        model=model,
    )
