"""Core data types for WGD-Load.

This module is the SINGLE SOURCE OF TRUTH for:
  - AGENT_DTYPE: NumPy structured array dtype for individuals (primary
    and shadow records share it)
  - MutationClass and Regime enumerations
  - The immutable per-mutation record (Mutation) and Substitution
  - Fixed constants of the statistics layer (DFE breakpoints)

All modules import these types from here. No other module defines
individual fields.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class MutationClass(IntEnum):
    """Mutation types carried by the genome."""
    NEUTRAL     = 0   # s = 0; never enters fitness
    DELETERIOUS = 1   # s < 0; dominance-weighted


class Regime(IntEnum):
    """Ploidy regime of the current tick.

    DIPLOID     → ticks before the switch
    SWITCH      → the single whole-genome-duplication tick
    TETRAPLOID  → every tick after the switch (primary + shadow pairs)
    """
    DIPLOID    = 2
    SWITCH     = 3
    TETRAPLOID = 4


def regime_for_tick(tick: int, switch_tick: int) -> Regime:
    """Classify a tick against the ploidy-switch threshold."""
    if tick < switch_tick:
        return Regime.DIPLOID
    if tick == switch_tick:
        return Regime.SWITCH
    return Regime.TETRAPLOID


# ═══════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

COPIES_PER_RECORD = 2      # every record (primary or shadow) is diploid
DIPLOID_PLOIDY = 2
TETRAPLOID_PLOIDY = 4

NO_LINK = -1               # link_index of an unlinked record

# |s| breakpoints of the 5-bin DFE histogram
DFE_BREAKS = (0.0001, 0.001, 0.01, 0.1)
N_DFE_BINS = len(DFE_BREAKS) + 1


# ═══════════════════════════════════════════════════════════════════════
# AGENT_DTYPE — Canonical structured array for individuals
# ═══════════════════════════════════════════════════════════════════════

AGENT_DTYPE = np.dtype([
    ('pedigree_id',     np.int64),     # ordinal identity, unique per run
    ('age',             np.int32),     # ticks survived; 0 = born this tick
    ('link_index',      np.int64),     # row of the paired shadow record (NO_LINK if none)
    ('link_tag',        np.float64),   # pairing tag shared with the paired record (NaN if none)
    ('pending_link',    np.int64),     # deferred remapped link_index, committed after mortality
    ('fitness_scaling', np.float64),   # host culling sink; 0 = remove at next mortality
    ('fitness',         np.float64),   # last evaluated fitness (stale after mortality)
])


def allocate_agents(n: int) -> np.ndarray:
    """Allocate an agent array with neutral bookkeeping defaults.

    Args:
        n: Number of records.

    Returns:
        Structured array of shape (n,) with AGENT_DTYPE; unlinked,
        untagged, fitness and scaling 1.0.
    """
    agents = np.zeros(n, dtype=AGENT_DTYPE)
    agents['link_index'] = NO_LINK
    agents['pending_link'] = NO_LINK
    agents['link_tag'] = np.nan
    agents['fitness_scaling'] = 1.0
    agents['fitness'] = 1.0
    return agents


def allocate_genotypes(n: int, n_mutations: int) -> np.ndarray:
    """Allocate a zeroed genotype matrix.

    Returns:
        (n, 2, n_mutations) uint8. Axis 0: records, axis 1: genome copy,
        axis 2: mutation catalog column (1 = copy carries the mutation).
    """
    return np.zeros((n, COPIES_PER_RECORD, n_mutations), dtype=np.uint8)


# ═══════════════════════════════════════════════════════════════════════
# MUTATION RECORDS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Mutation:
    """Immutable record of one mutation, fixed at creation time."""
    mutation_id: int
    mutation_class: MutationClass
    position: int
    s: float
    origin_tick: int
    dominance_2: Tuple[float, float, float]               # weight by diploid dosage 0..2
    dominance_4: Tuple[float, float, float, float, float]  # weight by tetraploid dosage 0..4

    @property
    def is_deleterious(self) -> bool:
        return self.mutation_class == MutationClass.DELETERIOUS


@dataclass(frozen=True)
class Substitution:
    """A mutation that reached fixation and left the segregating catalog."""
    mutation: Mutation
    fixation_tick: int
