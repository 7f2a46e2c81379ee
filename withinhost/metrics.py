"""Metric extraction — peak times, symptom window and peak–onset delay.

All functions read only the pre-clearance part of a trajectory. Undefined
results (threshold never reached, nothing left before clearance) are None and
propagate through symptom_delay(); they are never coerced to 0 or NaN.
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

from withinhost.types import Compartment, MetricBundle, TransmissionClass, Trajectory


CompartmentLike = Union[Compartment, str, int]


def _as_compartment(compartment: CompartmentLike) -> Compartment:
    if isinstance(compartment, str):
        return Compartment.from_name(compartment)
    return Compartment(compartment)


def peak_index(traj: Trajectory, compartment: CompartmentLike) -> Optional[int]:
    """Index of the first maximum over valid samples, or None if none are valid."""
    values = traj.valid(_as_compartment(compartment))
    if values.size == 0:
        return None
    # argmax returns the first occurrence, so ties go to the earliest time
    return int(np.argmax(values))


def peak_time(traj: Trajectory, compartment: CompartmentLike) -> Optional[float]:
    """Earliest time at which the compartment reaches its trajectory maximum."""
    i = peak_index(traj, compartment)
    if i is None:
        return None
    return float(traj.time[i])


def peak_value(traj: Trajectory, compartment: CompartmentLike) -> Optional[float]:
    i = peak_index(traj, compartment)
    if i is None:
        return None
    return float(traj.valid(_as_compartment(compartment))[i])


def _crossings(
    traj: Trajectory,
    threshold: float,
    compartment: CompartmentLike,
) -> np.ndarray:
    values = traj.valid(_as_compartment(compartment))
    return np.flatnonzero(values >= threshold)


def symptom_onset(
    traj: Trajectory,
    threshold: float,
    compartment: CompartmentLike = Compartment.PATHOGEN,
) -> Optional[float]:
    """First time the compartment is ≥ threshold; None if never reached."""
    idx = _crossings(traj, threshold, compartment)
    if idx.size == 0:
        return None
    return float(traj.time[idx[0]])


def symptom_end(
    traj: Trajectory,
    threshold: float,
    compartment: CompartmentLike = Compartment.PATHOGEN,
) -> Optional[float]:
    """Last time the compartment is ≥ threshold; None if never reached.

    Scans every valid sample up to clearance. A run whose pathogen dips
    close to zero without reaching clearance_threshold can regrow in a later
    wave, and the end then falls in that wave. A positive
    simulation.clearance_threshold (e.g. 1.0, less than one pathogen unit;
    see configs/scenarios/first_wave.yaml) confines it to the first wave.
    """
    idx = _crossings(traj, threshold, compartment)
    if idx.size == 0:
        return None
    return float(traj.time[idx[-1]])


def symptom_delay(
    peak_pathogen_time: Optional[float],
    onset: Optional[float],
) -> Optional[float]:
    """peak − onset. Negative ⇒ pre-symptomatic transmission window."""
    if peak_pathogen_time is None or onset is None:
        return None
    return peak_pathogen_time - onset


def clearance_time(traj: Trajectory) -> Optional[float]:
    """Time of the first missing sample, or None if never cleared."""
    if traj.clearance_index is None:
        return None
    return float(traj.time[traj.clearance_index])


def classify_transmission(delay: Optional[float]) -> TransmissionClass:
    """Figure label for a delay: asymptomatic if undefined, else by sign."""
    return TransmissionClass.from_delay(delay)


def compute_metrics(
    traj: Trajectory,
    threshold: float,
    compartment: CompartmentLike = Compartment.PATHOGEN,
) -> MetricBundle:
    """Full metric bundle for one trajectory at one symptom threshold.

    Args:
        traj: Simulated trajectory (post-clearance samples are ignored).
        threshold: Symptom threshold applied to `compartment`.
        compartment: Compartment whose crossing defines symptoms.

    Returns:
        MetricBundle; undefined entries are None.
    """
    comp = _as_compartment(compartment)
    t_peak_p = peak_time(traj, Compartment.PATHOGEN)
    onset = symptom_onset(traj, threshold, comp)
    return MetricBundle(
        r=traj.r,
        threshold=float(threshold),
        compartment=comp,
        peak_pathogen_time=t_peak_p,
        peak_immune_time=peak_time(traj, Compartment.IMMUNE),
        symptom_onset=onset,
        symptom_end=symptom_end(traj, threshold, comp),
        delay=symptom_delay(t_peak_p, onset),
        peak_pathogen_load=peak_value(traj, Compartment.PATHOGEN),
        peak_immune_level=peak_value(traj, Compartment.IMMUNE),
        clearance_time=clearance_time(traj),
    )
