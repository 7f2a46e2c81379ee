"""Core data types for withinhost-timing.

This module is the SINGLE SOURCE OF TRUTH for:
  - Compartment: index of each state variable in the ODE state vector
  - TransmissionClass: pre-/post-symptomatic labels used in the figures
  - Sample, Trajectory: integrated time courses with clearance truncation
  - MetricBundle: derived timing metrics for one trajectory + threshold

Undefined metrics are represented as None everywhere. Post-clearance samples
are never stored as zeros or NaN sentinels; a Trajectory carries the index at
which the pathogen was cleared and exposes later samples as None.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, List, Optional

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Compartment(IntEnum):
    """State vector layout shared by every model variant."""
    PATHOGEN = 0   # P — pathogen load
    IMMUNE   = 1   # X — immune effector abundance

    @classmethod
    def from_name(cls, name: str) -> "Compartment":
        """Parse 'pathogen' / 'immune' (case-insensitive)."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(
                f"Unknown compartment '{name}', expected one of "
                f"{[c.name.lower() for c in cls]}"
            ) from None


class TransmissionClass(str, Enum):
    """Figure labels derived from the sign of the peak–onset delay."""
    ASYMPTOMATIC     = "Asymptomatic"       # threshold never reached
    PRE_SYMPTOMATIC  = "Pre-symptomatic"    # delay < 0
    POST_SYMPTOMATIC = "Post-symptomatic"   # delay >= 0

    @classmethod
    def from_delay(cls, delay: Optional[float]) -> "TransmissionClass":
        if delay is None:
            return cls.ASYMPTOMATIC
        if delay < 0:
            return cls.PRE_SYMPTOMATIC
        return cls.POST_SYMPTOMATIC


# ═══════════════════════════════════════════════════════════════════════
# TRAJECTORY
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Sample:
    """One valid (pre-clearance) point of a trajectory."""
    time: float
    pathogen: float
    immune: float


@dataclass
class Trajectory:
    """Integrated time course of one model run.

    Attributes:
        time: (n,) evaluation grid, starting at 0.
        pathogen: (n,) integrator output for P; NaN past clearance when
            integration stopped there.
        immune: (n,) integrator output for X; NaN past clearance likewise.
        r: Replication rate the run was made with (grouping tag).
        model: Model variant name.
        clearance_index: First index at which P fell to the clearance
            threshold. That sample and all later ones are missing.
            None means the pathogen was never cleared within the horizon.
    """
    time: np.ndarray
    pathogen: np.ndarray
    immune: np.ndarray
    r: float
    model: str = ""
    clearance_index: Optional[int] = None

    def __len__(self) -> int:
        return len(self.time)

    @property
    def n_valid(self) -> int:
        """Number of samples before clearance."""
        if self.clearance_index is None:
            return len(self.time)
        return self.clearance_index

    @property
    def cleared(self) -> bool:
        return self.clearance_index is not None

    @property
    def valid_time(self) -> np.ndarray:
        return self.time[:self.n_valid]

    @property
    def valid_pathogen(self) -> np.ndarray:
        return self.pathogen[:self.n_valid]

    @property
    def valid_immune(self) -> np.ndarray:
        return self.immune[:self.n_valid]

    def valid(self, compartment: Compartment) -> np.ndarray:
        """Pre-clearance values of one compartment."""
        if compartment == Compartment.PATHOGEN:
            return self.valid_pathogen
        return self.valid_immune

    def sample(self, i: int) -> Optional[Sample]:
        """Sample i, or None if it lies at or after clearance."""
        if i < 0:
            i += len(self.time)
        if i < 0 or i >= len(self.time):
            raise IndexError(f"sample index {i} out of range for {len(self)} samples")
        if i >= self.n_valid:
            return None
        return Sample(
            time=float(self.time[i]),
            pathogen=float(self.pathogen[i]),
            immune=float(self.immune[i]),
        )

    def samples(self) -> Iterator[Optional[Sample]]:
        """Iterate over every grid point; post-clearance points yield None."""
        for i in range(len(self.time)):
            yield self.sample(i)

    def as_records(self) -> List[Optional[Sample]]:
        return list(self.samples())


# ═══════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MetricBundle:
    """Timing metrics for one trajectory at one symptom threshold.

    delay = peak_pathogen_time − symptom_onset. A negative delay means the
    pathogen peaked before symptoms began (pre-symptomatic transmission).
    Every Optional field is None when undefined.
    """
    r: float
    threshold: float
    compartment: Compartment
    peak_pathogen_time: Optional[float]
    peak_immune_time: Optional[float]
    symptom_onset: Optional[float]
    symptom_end: Optional[float]
    delay: Optional[float]
    peak_pathogen_load: Optional[float] = None
    peak_immune_level: Optional[float] = None
    clearance_time: Optional[float] = None

    @property
    def symptomatic(self) -> bool:
        return self.symptom_onset is not None

    @property
    def symptom_duration(self) -> Optional[float]:
        if self.symptom_onset is None or self.symptom_end is None:
            return None
        return self.symptom_end - self.symptom_onset

    @property
    def presymptomatic(self) -> Optional[bool]:
        """True if peak load precedes onset; None when delay is undefined."""
        if self.delay is None:
            return None
        return self.delay < 0

    @property
    def transmission_class(self) -> TransmissionClass:
        return TransmissionClass.from_delay(self.delay)
