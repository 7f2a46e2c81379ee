"""Configuration system for withinhost-timing.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → override file → override dict (e.g. from the command line)

Each model variant has its own parameter section. Sections are plain
dataclasses; the immutable per-run parameter sets are built from them in
withinhost.models.build_params(), never read from a shared global.
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

VALID_MODELS = ("kill", "capacity", "saturating")
VALID_COMPARTMENTS = ("pathogen", "immune")
VALID_METHODS = ("LSODA", "BDF", "Radau", "RK45", "RK23", "DOP853")


@dataclass
class SimulationSection:
    """Integration grid, initial condition and solver control."""
    t_end: float = 20.0             # Horizon (days)
    dt: float = 0.001               # Output grid spacing (days)
    dose: float = 1.0e4             # Initial pathogen load P(0)
    immune_init: float = 0.0        # Initial immune effector X(0)
    method: str = "LSODA"           # solve_ivp method; LSODA switches stiff/non-stiff
    rtol: float = 1.0e-6
    atol: float = 1.0e-6
    clearance_threshold: float = 0.0  # P <= this marks clearance


@dataclass
class KillModelSection:
    """Variant A — unmodified kill model.

    dP/dt = r·P − k·X·P
    dX/dt = a − d·X + y·k·X·P
    """
    a: float = 1.0        # Baseline immune production (d⁻¹)
    d: float = 0.5        # Immune decay (d⁻¹)
    k: float = 3.5        # Kill rate per unit effector
    y: float = 1.0e-7     # Immune activation yield per kill


@dataclass
class CapacityModelSection:
    """Variant B — kill model with a pathogen carrying capacity C."""
    a: float = 1.0
    d: float = 0.5
    k: float = 3.5
    y: float = 1.0e-7
    C: float = 1.0e9      # Pathogen carrying capacity


@dataclass
class SaturatingModelSection:
    """Variant C — immune inhibition of replication with saturating activation.

    dP/dt = r·P/(1 + b·X) − dp·P
    dX/dt = α − d·X + gx·P·(Xmax − X)/(P + hp)
    """
    b: float = 5.0          # Replication inhibition per unit effector
    dp: float = 1.0         # Pathogen clearance (d⁻¹)
    alpha: float = 0.1      # Baseline immune production (d⁻¹)
    d: float = 0.5          # Immune decay (d⁻¹)
    gx: float = 2.0         # Maximum activation rate (d⁻¹)
    xmax: float = 100.0     # Immune saturation level
    hp: float = 1.0e5       # Half-saturation pathogen load


@dataclass
class SweepSection:
    """Replication-rate × threshold sweep."""
    model: str = "kill"
    r_values: List[float] = field(
        default_factory=lambda: [float(r) for r in range(10, 251, 10)]
    )
    thresholds: List[float] = field(default_factory=lambda: [1.0e5, 1.0e6, 1.0e7])
    compartment: str = "pathogen"   # Compartment whose threshold defines symptoms
    workers: int = 1                # >1 distributes r values over a process pool
    fail_fast: bool = True          # False records failed runs as error rows


@dataclass
class OutputSection:
    """Output control."""
    directory: str = "results/"


@dataclass
class StudyConfig:
    """Complete configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    kill: KillModelSection = field(default_factory=KillModelSection)
    capacity: CapacityModelSection = field(default_factory=CapacityModelSection)
    saturating: SaturatingModelSection = field(default_factory=SaturatingModelSection)
    sweep: SweepSection = field(default_factory=SweepSection)
    output: OutputSection = field(default_factory=OutputSection)

    def model_section(self, model: str) -> Any:
        """Parameter section for a model variant name."""
        if model not in VALID_MODELS:
            raise ValueError(f"model must be one of {VALID_MODELS}, got '{model}'")
        return getattr(self, model)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


_SECTION_MAP = {
    'simulation': SimulationSection,
    'kill': KillModelSection,
    'capacity': CapacityModelSection,
    'saturating': SaturatingModelSection,
    'sweep': SweepSection,
    'output': OutputSection,
}


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def config_from_dict(data: Dict) -> StudyConfig:
    """Convert a merged YAML dict to a StudyConfig (no validation)."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    sweep = sections['sweep']
    sweep.r_values = [float(r) for r in sweep.r_values]
    sweep.thresholds = [float(th) for th in sweep.thresholds]
    return StudyConfig(**sections)


def _require_positive(value: float, name: str) -> None:
    if not value > 0:
        raise ValueError(f"{name} must be positive, got {value}")


def validate_config(config: StudyConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Checks:
      - Integration grid and solver settings
      - Initial condition (positive dose, non-negative immune start)
      - Strictly positive model constants where they appear as divisors
      - Sweep selections (model, compartment, non-empty r / threshold sets)
    """
    sim = config.simulation
    _require_positive(sim.t_end, "simulation.t_end")
    _require_positive(sim.dt, "simulation.dt")
    if sim.dt > sim.t_end:
        raise ValueError(
            f"simulation.dt ({sim.dt}) must not exceed t_end ({sim.t_end})"
        )
    if sim.t_end / sim.dt < 100:
        warnings.warn(
            f"simulation grid has only {int(sim.t_end / sim.dt)} steps; "
            f"peak and onset times will be coarse",
            UserWarning,
            stacklevel=2,
        )
    _require_positive(sim.dose, "simulation.dose")
    if sim.immune_init < 0:
        raise ValueError(
            f"simulation.immune_init must be >= 0, got {sim.immune_init}"
        )
    if sim.method not in VALID_METHODS:
        raise ValueError(
            f"simulation.method must be one of {VALID_METHODS}, "
            f"got '{sim.method}'"
        )
    _require_positive(sim.rtol, "simulation.rtol")
    _require_positive(sim.atol, "simulation.atol")
    if sim.clearance_threshold < 0:
        raise ValueError(
            f"simulation.clearance_threshold must be >= 0, "
            f"got {sim.clearance_threshold}"
        )
    if sim.clearance_threshold >= sim.dose:
        raise ValueError(
            f"simulation.clearance_threshold ({sim.clearance_threshold}) "
            f"must be below the dose ({sim.dose})"
        )

    # Model constants: rates non-negative, divisors strictly positive
    for name in ("kill", "capacity"):
        sec = getattr(config, name)
        for fname in ("a", "d", "k", "y"):
            if getattr(sec, fname) < 0:
                raise ValueError(f"{name}.{fname} must be >= 0")
    _require_positive(config.capacity.C, "capacity.C")

    sat = config.saturating
    for fname in ("b", "dp", "alpha", "d", "gx"):
        if getattr(sat, fname) < 0:
            raise ValueError(f"saturating.{fname} must be >= 0")
    _require_positive(sat.xmax, "saturating.xmax")
    _require_positive(sat.hp, "saturating.hp")

    sw = config.sweep
    if sw.model not in VALID_MODELS:
        raise ValueError(
            f"sweep.model must be one of {VALID_MODELS}, got '{sw.model}'"
        )
    if sw.compartment not in VALID_COMPARTMENTS:
        raise ValueError(
            f"sweep.compartment must be one of {VALID_COMPARTMENTS}, "
            f"got '{sw.compartment}'"
        )
    if len(sw.r_values) == 0:
        raise ValueError("sweep.r_values must not be empty")
    if len(sw.thresholds) == 0:
        raise ValueError("sweep.thresholds must not be empty")
    if any(r < 0 for r in sw.r_values):
        raise ValueError("sweep.r_values must be non-negative")
    if any(th <= 0 for th in sw.thresholds):
        raise ValueError("sweep.thresholds must be positive")
    if sw.workers < 1:
        raise ValueError(f"sweep.workers must be >= 1, got {sw.workers}")


def _read_yaml(path: Path) -> Dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(
    base_path: Union[str, Path],
    override_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> StudyConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → override file → override dict.
    Each layer overrides only the fields it specifies.

    Raises:
        FileNotFoundError: If base_path or override_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")
    config_dict = _read_yaml(base_path)

    if override_path is not None:
        override_path = Path(override_path)
        if not override_path.exists():
            raise FileNotFoundError(f"Override file not found: {override_path}")
        deep_merge(config_dict, _read_yaml(override_path))

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = config_from_dict(config_dict)
    validate_config(config)
    return config


def default_config() -> StudyConfig:
    """Return a StudyConfig with all default values."""
    config = StudyConfig()
    validate_config(config)
    return config
