"""Sweep orchestration — replication rate × symptom threshold.

For each replication rate r the model is integrated once; metrics are then
extracted for every threshold from that single trajectory. Runs share no
state, so r values can be distributed over a multiprocessing Pool
(sweep.workers > 1). Results are always ordered by the configured r order,
then threshold order.

Failure policy (sweep.fail_fast):
  True  — the first SimulationError aborts the sweep.
  False — the failing r becomes one error row per threshold (metrics None)
          and a RuntimeWarning is emitted.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from multiprocessing import Pool
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from withinhost.config import StudyConfig
from withinhost.metrics import compute_metrics
from withinhost.simulate import SimulationError, simulate_variant
from withinhost.types import Compartment, MetricBundle, TransmissionClass


# ═══════════════════════════════════════════════════════════════════════
# TABLE
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SweepRecord:
    """One (model, r, threshold) cell of a sweep."""
    model: str
    r: float
    threshold: float
    metrics: Optional[MetricBundle] = None
    error: Optional[str] = None

    @property
    def delay(self) -> Optional[float]:
        return None if self.metrics is None else self.metrics.delay

    @property
    def failed(self) -> bool:
        return self.error is not None


METRIC_COLUMNS = (
    'peak_pathogen_time',
    'peak_immune_time',
    'symptom_onset',
    'symptom_end',
    'delay',
    'peak_pathogen_load',
    'peak_immune_level',
    'clearance_time',
)


@dataclass
class SweepTable:
    """Ordered sweep results for one model variant."""
    model: str
    compartment: Compartment
    records: List[SweepRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    @property
    def r_values(self) -> List[float]:
        return sorted({rec.r for rec in self.records})

    @property
    def thresholds(self) -> List[float]:
        return sorted({rec.threshold for rec in self.records})

    @property
    def errors(self) -> List[SweepRecord]:
        return [rec for rec in self.records if rec.failed]

    def for_threshold(self, threshold: float) -> List[SweepRecord]:
        return [rec for rec in self.records if rec.threshold == threshold]

    def delays(self, threshold: float) -> List[Tuple[float, Optional[float]]]:
        """(r, delay) pairs for one threshold, delay None when undefined."""
        return [(rec.r, rec.delay) for rec in self.for_threshold(threshold)]

    def triples(self) -> List[Tuple[float, Optional[float], float]]:
        """(r, delay, threshold) for every record."""
        return [(rec.r, rec.delay, rec.threshold) for rec in self.records]

    def to_dataframe(self) -> pd.DataFrame:
        """One row per record; undefined metrics are <NA> (nullable Float64)."""
        rows = []
        for rec in self.records:
            row = {
                'model': rec.model,
                'r': rec.r,
                'threshold': rec.threshold,
                'compartment': self.compartment.name.lower(),
            }
            m = rec.metrics
            for col in METRIC_COLUMNS:
                row[col] = None if m is None else getattr(m, col)
            row['transmission'] = (
                TransmissionClass.from_delay(rec.delay).value
                if m is not None else None
            )
            row['error'] = rec.error
            rows.append(row)

        df = pd.DataFrame(rows, columns=[
            'model', 'r', 'threshold', 'compartment',
            *METRIC_COLUMNS, 'transmission', 'error',
        ])
        for col in METRIC_COLUMNS:
            df[col] = pd.array(df[col].tolist(), dtype="Float64")
        return df


# ═══════════════════════════════════════════════════════════════════════
# WORKER
# ═══════════════════════════════════════════════════════════════════════

def _run_single(
    task: Tuple[str, float, Tuple[float, ...], int, StudyConfig],
) -> Tuple[float, List[MetricBundle], Optional[str]]:
    """Simulate one r and extract metrics for every threshold.

    Module-level so it can be pickled into Pool workers. SimulationError is
    returned as a message rather than raised so the parent applies the
    failure policy in one place.
    """
    model, r, thresholds, compartment, config = task
    try:
        traj = simulate_variant(model, r, config)
    except SimulationError as e:
        return r, [], e.detail
    bundles = [compute_metrics(traj, th, Compartment(compartment))
               for th in thresholds]
    return r, bundles, None


def run_delay_sweep(
    config: StudyConfig,
    model: Optional[str] = None,
    r_values: Optional[Iterable[float]] = None,
    thresholds: Optional[Iterable[float]] = None,
    compartment: Optional[str] = None,
    workers: Optional[int] = None,
    fail_fast: Optional[bool] = None,
) -> SweepTable:
    """Run simulation + metric extraction across r values and thresholds.

    Every argument defaults to the matching field of config.sweep.

    Returns:
        SweepTable ordered by r (configured order), then threshold.

    Raises:
        SimulationError: If a run fails and fail_fast is True.
    """
    sw = config.sweep
    model = sw.model if model is None else model
    r_list = [float(r) for r in (sw.r_values if r_values is None else r_values)]
    th_list = tuple(float(th) for th in
                    (sw.thresholds if thresholds is None else thresholds))
    comp = Compartment.from_name(sw.compartment if compartment is None else compartment)
    workers = sw.workers if workers is None else workers
    fail_fast = sw.fail_fast if fail_fast is None else fail_fast

    tasks = [(model, r, th_list, int(comp), config) for r in r_list]
    if workers > 1 and len(tasks) > 1:
        with Pool(processes=min(workers, len(tasks))) as pool:
            outcomes = pool.map(_run_single, tasks)
    else:
        outcomes = [_run_single(task) for task in tasks]

    table = SweepTable(model=model, compartment=comp)
    for r, bundles, error in outcomes:
        if error is not None:
            if fail_fast:
                raise SimulationError(error, model, r)
            warnings.warn(f"sweep run failed [{model} r={r}]: {error}",
                          RuntimeWarning, stacklevel=2)
            for th in th_list:
                table.records.append(SweepRecord(model, r, th, error=error))
            continue
        for th, bundle in zip(th_list, bundles):
            table.records.append(SweepRecord(model, r, th, metrics=bundle))
    return table


def run_model_comparison(
    config: StudyConfig,
    models: Sequence[str] = ("kill", "capacity", "saturating"),
    **kwargs,
) -> Dict[str, SweepTable]:
    """Run the same sweep for several model variants.

    Extra keyword arguments are forwarded to run_delay_sweep().
    """
    return {m: run_delay_sweep(config, model=m, **kwargs) for m in models}


def peak_time_series(table: SweepTable) -> Tuple[np.ndarray, np.ndarray]:
    """(r, peak pathogen time) arrays, one entry per successful r.

    Peak time does not depend on the threshold, so the first threshold's
    record is used for each r.
    """
    seen = set()
    rs, peaks = [], []
    for rec in table.records:
        if rec.r in seen or rec.metrics is None:
            continue
        if rec.metrics.peak_pathogen_time is None:
            continue
        seen.add(rec.r)
        rs.append(rec.r)
        peaks.append(rec.metrics.peak_pathogen_time)
    return np.asarray(rs, dtype=float), np.asarray(peaks, dtype=float)
