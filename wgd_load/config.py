"""Configuration system for WGD-Load.

Hierarchical YAML configuration with deep-merge support:
  default.yaml → scenario override → command-line overrides

All constants are fixed at initialization; nothing reads the YAML again
once a run has started.

Design decisions:
  - Dominance source chosen once per run: "formula" (h–s relationship,
    Huber et al. 2018) or "fixed" (explicit per-dosage vectors)
  - Default DFE: gamma, mean −0.01314833, shape 0.186 (Kim et al. 2017)
  - Default h–s constants: intercept 0.978, rate 50328 (Huber et al. 2018)
"""

from __future__ import annotations

import dataclasses
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run timing and control."""
    seed: int = 42
    n_generations: int = 2000     # Simulation horizon (last tick, inclusive)
    switch_generation: int = 1000 # Whole-genome duplication tick


@dataclass
class PopulationSection:
    """Demography of the primary population."""
    carrying_capacity: int = 500      # K
    offspring_per_parent: int = 2     # Matings per focal individual per tick
    discrete_generations: bool = True # Parents die after reproducing
    exclude_self_mating: bool = True  # Mate sampler skips the focal individual


@dataclass
class GenomeSection:
    """Single-chromosome genome layout and per-site rates."""
    sequence_length: int = 1_000_000
    mutation_rate: float = 1.0e-8     # per site per gamete
    recombination_rate: float = 1.0e-8  # per site per gamete
    neutral_fraction: float = 0.3     # share of new mutations that are neutral
    deleterious_fraction: float = 0.7 # share of new mutations that are deleterious


@dataclass
class SelectionSection:
    """Distribution of selection coefficients for deleterious mutations.

    dfe: "gamma" — s = −Gamma(shape, |mean_s| / shape)
         "fixed" — every deleterious mutation has s = fixed_s
    """
    dfe: str = "gamma"
    mean_s: float = -0.01314833
    shape: float = 0.186
    fixed_s: float = -0.01


@dataclass
class DominanceSection:
    """Dominance source.

    model: "formula" — h = 1 / (1/h_intercept − h_rate·s), dosage-weighted in tetraploids
           "fixed"   — diploid_vector / tetraploid_vector indexed by copy count
    """
    model: str = "formula"
    h_intercept: float = 0.978
    h_rate: float = 50328.0
    diploid_vector: List[float] = field(default_factory=lambda: [0.0, 1.0, 1.0])
    tetraploid_vector: List[float] = field(
        default_factory=lambda: [0.0, 1.0, 1.0, 1.0, 1.0]
    )


@dataclass
class PloidySection:
    """Primary/shadow link maintenance.

    relink_mode: "remap" — deferred cumulative-count remap, verified by tag
                 "tag"   — relink every primary by tag lookup after mortality
    """
    relink_mode: str = "remap"


@dataclass
class OutputSection:
    """Statistics output control."""
    directory: str = "results/"
    filename: str = "load_stats.txt"
    sample_interval: int = 100
    milestones: List[int] = field(default_factory=list)
    gen_offset: int = 0           # subtracted from the tick in the 'gen' column


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    population: PopulationSection = field(default_factory=PopulationSection)
    genome: GenomeSection = field(default_factory=GenomeSection)
    selection: SelectionSection = field(default_factory=SelectionSection)
    dominance: DominanceSection = field(default_factory=DominanceSection)
    ploidy: PloidySection = field(default_factory=PloidySection)
    output: OutputSection = field(default_factory=OutputSection)

    @property
    def all_neutral(self) -> bool:
        """True when no deleterious mutations can ever arise."""
        return self.genome.deleterious_fraction == 0.0


_SECTION_MAP = {
    'simulation': SimulationSection,
    'population': PopulationSection,
    'genome': GenomeSection,
    'selection': SelectionSection,
    'dominance': DominanceSection,
    'ploidy': PloidySection,
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


def _yaml_to_config(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


def config_to_dict(config: SimulationConfig) -> Dict[str, Any]:
    """Plain-dict view of a config (for YAML dumps next to results)."""
    return dataclasses.asdict(config)


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Checks:
      - Timing is consistent (switch tick, horizon, sampling cadence)
      - Genome fractions are probabilities summing to 1
      - DFE and dominance choices are known and well-formed
      - Deleterious coefficients are negative
    """
    sim = config.simulation
    if sim.seed < 0:
        raise ValueError("simulation.seed must be non-negative")
    if sim.n_generations < 1:
        raise ValueError(
            f"simulation.n_generations must be >= 1, got {sim.n_generations}"
        )
    if sim.switch_generation < 1:
        raise ValueError(
            f"simulation.switch_generation must be >= 1, got {sim.switch_generation}"
        )

    pop = config.population
    if pop.carrying_capacity < 2:
        raise ValueError(
            f"population.carrying_capacity must be >= 2, got {pop.carrying_capacity}"
        )
    if pop.offspring_per_parent < 1:
        raise ValueError(
            f"population.offspring_per_parent must be >= 1, "
            f"got {pop.offspring_per_parent}"
        )

    g = config.genome
    if g.sequence_length < 1:
        raise ValueError("genome.sequence_length must be positive")
    if g.mutation_rate < 0 or g.recombination_rate < 0:
        raise ValueError("genome.mutation_rate and recombination_rate must be >= 0")
    for name in ('neutral_fraction', 'deleterious_fraction'):
        value = getattr(g, name)
        if not (0.0 <= value <= 1.0):
            raise ValueError(f"genome.{name} must be in [0, 1], got {value}")
    if abs(g.neutral_fraction + g.deleterious_fraction - 1.0) > 1e-9:
        raise ValueError(
            f"genome fractions must sum to 1, got "
            f"{g.neutral_fraction}+{g.deleterious_fraction}"
        )

    sel = config.selection
    valid_dfes = {"gamma", "fixed"}
    if sel.dfe not in valid_dfes:
        raise ValueError(
            f"selection.dfe must be one of {valid_dfes}, got '{sel.dfe}'"
        )
    if sel.dfe == "gamma":
        if sel.mean_s >= 0:
            raise ValueError(f"selection.mean_s must be < 0, got {sel.mean_s}")
        if sel.shape <= 0:
            raise ValueError(f"selection.shape must be > 0, got {sel.shape}")
    elif sel.fixed_s >= 0:
        raise ValueError(f"selection.fixed_s must be < 0, got {sel.fixed_s}")

    dom = config.dominance
    valid_models = {"formula", "fixed"}
    if dom.model not in valid_models:
        raise ValueError(
            f"dominance.model must be one of {valid_models}, got '{dom.model}'"
        )
    if dom.model == "formula":
        if not (0.0 < dom.h_intercept <= 1.0):
            raise ValueError(
                f"dominance.h_intercept must be in (0, 1], got {dom.h_intercept}"
            )
        if dom.h_rate < 0:
            raise ValueError(f"dominance.h_rate must be >= 0, got {dom.h_rate}")
    else:
        if len(dom.diploid_vector) != 3:
            raise ValueError(
                f"dominance.diploid_vector must have 3 elements (dosage 0..2), "
                f"got {len(dom.diploid_vector)}"
            )
        if len(dom.tetraploid_vector) != 5:
            raise ValueError(
                f"dominance.tetraploid_vector must have 5 elements (dosage 0..4), "
                f"got {len(dom.tetraploid_vector)}"
            )

    valid_relink = {"remap", "tag"}
    if config.ploidy.relink_mode not in valid_relink:
        raise ValueError(
            f"ploidy.relink_mode must be one of {valid_relink}, "
            f"got '{config.ploidy.relink_mode}'"
        )

    out = config.output
    if out.sample_interval < 1:
        raise ValueError(
            f"output.sample_interval must be >= 1, got {out.sample_interval}"
        )
    if out.directory and not os.path.isdir(out.directory):
        warnings.warn(
            f"output.directory '{out.directory}' does not exist; "
            f"it will be created when the run starts.",
            UserWarning,
            stacklevel=2,
        )


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        overrides: Optional dict of overrides (e.g. from the command line).

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path (or a given scenario_path) doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")
        with open(scenario_path) as f:
            scenario = yaml.safe_load(f) or {}
        deep_merge(config_dict, scenario)

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        validate_config(config)
    return config
