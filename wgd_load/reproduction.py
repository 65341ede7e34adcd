"""Reproduction module for WGD-Load.

Host-side machinery the core drives each tick:
  - Uniform mate sampling (one mate per mating event)
  - Gamete formation: two parental copies recombined at Poisson
    crossover breakpoints, random starting copy
  - New mutations: Poisson(μ·L) per gamete, appended to the catalog
  - Diploid offspring: maternal gamete × paternal gamete
  - Tetraploid offspring: each parent's 4 copies (primary + shadow) are
    permuted and split into two pairs; pair 0 × pair 0 forms the primary
    offspring record, pair 1 × pair 1 the shadow offspring record

Genotype convention: (n, 2, n_mutations) uint8, column j ↔ catalog row j.
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np

from wgd_load.mutations import MutationCatalog
from wgd_load.population import Subpopulation


# ═══════════════════════════════════════════════════════════════════════
# MATE CHOICE
# ═══════════════════════════════════════════════════════════════════════


def sample_mates(
    focal: np.ndarray,
    n_population: int,
    rng: np.random.Generator,
    exclude_self: bool = True,
) -> np.ndarray:
    """Draw one uniformly random mate per focal individual.

    Args:
        focal: (n_events,) focal row indices.
        n_population: Number of primary records to sample from.
        rng: Random generator.
        exclude_self: Skip the focal individual itself (if n_population > 1).

    Returns:
        (n_events,) int64 mate row indices.
    """
    focal = np.asarray(focal, dtype=np.int64)
    if exclude_self and n_population > 1:
        mates = rng.integers(0, n_population - 1, size=focal.shape[0])
        mates = mates + (mates >= focal)
        return mates.astype(np.int64)
    return rng.integers(0, n_population, size=focal.shape[0]).astype(np.int64)


# ═══════════════════════════════════════════════════════════════════════
# RECOMBINATION
# ═══════════════════════════════════════════════════════════════════════


def draw_breakpoints(
    rng: np.random.Generator,
    sequence_length: int,
    recombination_rate: float,
) -> np.ndarray:
    """Sorted crossover positions for one gamete (Poisson count, uniform sites).

    A breakpoint at b means sites ≥ b come from the other copy.
    """
    n_breaks = rng.poisson(recombination_rate * sequence_length)
    if n_breaks == 0 or sequence_length < 2:
        return np.zeros(0, dtype=np.int64)
    return np.sort(rng.integers(1, sequence_length, size=n_breaks))


def recombine(
    copy_a: np.ndarray,
    copy_b: np.ndarray,
    positions: np.ndarray,
    breakpoints: np.ndarray,
) -> np.ndarray:
    """Single gamete from two parental copies, starting on copy_a.

    Args:
        copy_a, copy_b: (m,) uint8 parental copies.
        positions: (m,) catalog positions of the columns.
        breakpoints: Sorted crossover positions.

    Returns:
        (m,) uint8 recombinant copy.
    """
    if breakpoints.shape[0] == 0:
        return copy_a.copy()
    switched = np.searchsorted(breakpoints, positions, side='right') % 2 == 1
    return np.where(switched, copy_b, copy_a)


def make_gametes(
    copies_a: np.ndarray,
    copies_b: np.ndarray,
    positions: np.ndarray,
    genome_cfg,
    rng: np.random.Generator,
) -> np.ndarray:
    """Batch of gametes, one per row of the two parental copy matrices.

    Each gamete starts on a random parental copy and switches at
    independently drawn breakpoints.

    Args:
        copies_a, copies_b: (G, m) uint8 — the two parental copies per gamete.
        positions: (m,) catalog positions.
        genome_cfg: GenomeSection (sequence_length, recombination_rate).
        rng: Random generator.

    Returns:
        (G, m) uint8 gametes.
    """
    n_gametes = copies_a.shape[0]
    swap = rng.random(n_gametes) < 0.5
    first = np.where(swap[:, None], copies_b, copies_a)
    second = np.where(swap[:, None], copies_a, copies_b)
    gametes = first.copy()

    for g in range(n_gametes):
        breaks = draw_breakpoints(
            rng, genome_cfg.sequence_length, genome_cfg.recombination_rate
        )
        if breaks.shape[0]:
            gametes[g] = recombine(first[g], second[g], positions, breaks)
    return gametes


# ═══════════════════════════════════════════════════════════════════════
# NEW MUTATIONS
# ═══════════════════════════════════════════════════════════════════════


def apply_new_mutations(
    offspring: List[np.ndarray],
    residents: List[Subpopulation],
    catalog: MutationCatalog,
    genome_cfg,
    selection_cfg,
    tick: int,
    rng: np.random.Generator,
) -> Tuple[List[np.ndarray], int]:
    """Add Poisson(μ·L) new mutations to every offspring gamete.

    New catalog columns are appended to every resident population (as
    zeros) and to every offspring matrix; each new mutation is set on
    exactly one offspring copy.

    Args:
        offspring: Offspring genotype matrices, each (n_k, 2, m).
        residents: Populations sharing the catalog columns.
        catalog: Mutation catalog (extended in place).
        genome_cfg: GenomeSection.
        selection_cfg: SelectionSection.
        tick: Current tick (origin tick of the new mutations).
        rng: Random generator.

    Returns:
        (offspring matrices with the new columns, number of new mutations).
    """
    lam = genome_cfg.mutation_rate * genome_cfg.sequence_length
    per_copy = [rng.poisson(lam, size=geno.shape[:2]) for geno in offspring]
    n_new = int(sum(int(c.sum()) for c in per_copy))
    if n_new == 0:
        return offspring, 0

    catalog.draw_new(n_new, genome_cfg, selection_cfg, tick, rng)
    for pop in residents:
        pop.extend_columns(n_new)

    out = []
    cursor = 0
    for geno, counts in zip(offspring, per_copy):
        pad = np.zeros(geno.shape[:2] + (n_new,), dtype=np.uint8)
        flat = counts.ravel()
        rows, copies = np.unravel_index(
            np.repeat(np.arange(flat.shape[0]), flat), counts.shape
        )
        k = rows.shape[0]
        pad[rows, copies, np.arange(cursor, cursor + k)] = 1
        cursor += k
        out.append(np.concatenate([geno, pad], axis=2))
    return out, n_new


# ═══════════════════════════════════════════════════════════════════════
# OFFSPRING
# ═══════════════════════════════════════════════════════════════════════


def diploid_offspring(
    primary: Subpopulation,
    mothers: np.ndarray,
    fathers: np.ndarray,
    positions: np.ndarray,
    genome_cfg,
    rng: np.random.Generator,
) -> np.ndarray:
    """Two-parent, one-offspring diploid crosses.

    Returns:
        (n_events, 2, m) uint8 offspring genotypes.
    """
    g = primary.genotypes
    maternal = make_gametes(g[mothers, 0], g[mothers, 1], positions, genome_cfg, rng)
    paternal = make_gametes(g[fathers, 0], g[fathers, 1], positions, genome_cfg, rng)
    return np.stack([maternal, paternal], axis=1)


def _permuted_quartets(
    primary: Subpopulation,
    shadow: Subpopulation,
    parents: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    """(n, 4, m) each parent's four copies in an independent random order."""
    links = primary.agents['link_index'][parents]
    quartet = np.concatenate(
        [primary.genotypes[parents], shadow.genotypes[links]], axis=1
    )
    order = np.argsort(rng.random((parents.shape[0], 4)), axis=1)
    return np.take_along_axis(quartet, order[:, :, None], axis=1)


def tetraploid_offspring(
    primary: Subpopulation,
    shadow: Subpopulation,
    mothers: np.ndarray,
    fathers: np.ndarray,
    positions: np.ndarray,
    genome_cfg,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """Tetraploid crosses producing one primary and one shadow record each.

    Returns:
        (primary_offspring, shadow_offspring), each (n_events, 2, m) uint8.
    """
    maternal = _permuted_quartets(primary, shadow, mothers, rng)
    paternal = _permuted_quartets(primary, shadow, fathers, rng)

    def _gamete(quartet, i, j):
        return make_gametes(quartet[:, i], quartet[:, j], positions, genome_cfg, rng)

    first = np.stack([_gamete(maternal, 0, 1), _gamete(paternal, 0, 1)], axis=1)
    second = np.stack([_gamete(maternal, 2, 3), _gamete(paternal, 2, 3)], axis=1)
    return first, second
