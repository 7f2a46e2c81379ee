"""Saving and loading sweep results.

Layout of a result directory:
  sweep_table.npz   — parallel arrays, one entry per sweep record
  metadata.json     — model, compartment, provenance and the full config

Undefined metrics are stored as a value array plus an explicit boolean
`<name>_defined` mask, so a missing delay is never confused with a number.

Usage:
    table = run_delay_sweep(config)
    save_sweep(table, "results/kill/", config)
    table = load_sweep("results/kill/")
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import numpy as np

from withinhost import __version__
from withinhost.config import StudyConfig
from withinhost.sweep import METRIC_COLUMNS, SweepRecord, SweepTable
from withinhost.types import Compartment, MetricBundle
from withinhost.utils import config_hash, get_git_hash

TABLE_FILE = "sweep_table.npz"
METADATA_FILE = "metadata.json"


def save_sweep(
    table: SweepTable,
    directory: Union[str, Path],
    config: Optional[StudyConfig] = None,
) -> Path:
    """Write a sweep table (and optional config) to a directory.

    Returns:
        The directory path.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    arrays = {
        'r': np.array([rec.r for rec in table.records], dtype=np.float64),
        'threshold': np.array([rec.threshold for rec in table.records],
                              dtype=np.float64),
        'error': np.array([rec.error or "" for rec in table.records], dtype=str),
    }
    for col in METRIC_COLUMNS:
        values = [None if rec.metrics is None else getattr(rec.metrics, col)
                  for rec in table.records]
        defined = np.array([v is not None for v in values], dtype=bool)
        arrays[col] = np.array([0.0 if v is None else v for v in values],
                               dtype=np.float64)
        arrays[f'{col}_defined'] = defined
    np.savez_compressed(directory / TABLE_FILE, **arrays)

    meta = {
        'model': table.model,
        'compartment': table.compartment.name.lower(),
        'n_records': len(table),
        'n_errors': len(table.errors),
        'version': __version__,
        'git_hash': get_git_hash(),
        'created': datetime.now(timezone.utc).isoformat(),
    }
    if config is not None:
        meta['config_hash'] = config_hash(config)
        meta['config'] = config.to_dict()
    with open(directory / METADATA_FILE, 'w') as f:
        json.dump(meta, f, indent=2)
    return directory


def load_sweep(directory: Union[str, Path]) -> SweepTable:
    """Rebuild a SweepTable written by save_sweep().

    Raises:
        FileNotFoundError: If either result file is missing.
    """
    directory = Path(directory)
    for name in (TABLE_FILE, METADATA_FILE):
        if not (directory / name).exists():
            raise FileNotFoundError(f"Missing {name} in {directory}")

    with open(directory / METADATA_FILE) as f:
        meta = json.load(f)
    model = meta['model']
    compartment = Compartment.from_name(meta['compartment'])

    with np.load(directory / TABLE_FILE) as d:
        data = {k: d[k] for k in d.files}

    table = SweepTable(model=model, compartment=compartment)
    for i in range(len(data['r'])):
        r = float(data['r'][i])
        th = float(data['threshold'][i])
        error = str(data['error'][i]) or None
        if error is not None:
            table.records.append(SweepRecord(model, r, th, error=error))
            continue
        values = {
            col: (float(data[col][i]) if data[f'{col}_defined'][i] else None)
            for col in METRIC_COLUMNS
        }
        bundle = MetricBundle(r=r, threshold=th, compartment=compartment, **values)
        table.records.append(SweepRecord(model, r, th, metrics=bundle))
    return table
