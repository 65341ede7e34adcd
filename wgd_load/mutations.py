"""Mutation catalog for WGD-Load.

Struct-of-arrays catalog of every mutation currently segregating in the
primary + shadow populations. Column j of every genotype matrix refers to
row j of the catalog.

Core responsibilities:
  - Drawing new mutations (class by genomic fraction, uniform position,
    s from the DFE) and stamping their immutable dominance records
  - Loss/fixation bookkeeping: lost columns are dropped, fixed columns
    become Substitutions
  - Per-class queries used by fitness and statistics

The catalog's per-mutation rows are never edited after creation; the only
mutation of the catalog is appending and removing whole rows.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from wgd_load.dominance import DominanceModel
from wgd_load.types import Mutation, MutationClass, Substitution


# ═══════════════════════════════════════════════════════════════════════
# SELECTION COEFFICIENTS
# ═══════════════════════════════════════════════════════════════════════


def draw_selection_coefficients(
    n: int,
    selection_cfg,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw s for n new deleterious mutations.

    "gamma": s = −Gamma(shape, scale = |mean_s| / shape), so E[s] = mean_s.
    "fixed": s = fixed_s for every mutation.

    Returns:
        (n,) float64, all ≤ 0.
    """
    if selection_cfg.dfe == "fixed":
        return np.full(n, float(selection_cfg.fixed_s), dtype=np.float64)
    scale = abs(selection_cfg.mean_s) / selection_cfg.shape
    return -rng.gamma(selection_cfg.shape, scale, size=n)


# ═══════════════════════════════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════════════════════════════


class MutationCatalog:
    """Segregating mutations plus the substitution record."""

    def __init__(self, dominance: DominanceModel):
        self.dominance = dominance
        self.mutation_id = np.zeros(0, dtype=np.int64)
        self.mutation_class = np.zeros(0, dtype=np.int8)
        self.position = np.zeros(0, dtype=np.int64)
        self.s = np.zeros(0, dtype=np.float64)
        self.origin_tick = np.zeros(0, dtype=np.int64)
        self.dominance_2 = np.zeros((0, 3), dtype=np.float64)
        self.dominance_4 = np.zeros((0, 5), dtype=np.float64)
        self.substitutions: List[Substitution] = []
        self._next_id = 0

    def __len__(self) -> int:
        return int(self.mutation_id.shape[0])

    # ── queries ──────────────────────────────────────────────────────

    def columns_of_class(self, mutation_class: MutationClass) -> np.ndarray:
        """Catalog columns of one mutation class, ascending."""
        return np.flatnonzero(self.mutation_class == int(mutation_class))

    def deleterious_columns(self) -> np.ndarray:
        return self.columns_of_class(MutationClass.DELETERIOUS)

    def neutral_columns(self) -> np.ndarray:
        return self.columns_of_class(MutationClass.NEUTRAL)

    def n_substituted(self, mutation_class: Optional[MutationClass] = None) -> int:
        if mutation_class is None:
            return len(self.substitutions)
        return sum(
            1 for sub in self.substitutions
            if sub.mutation.mutation_class == mutation_class
        )

    def record(self, column: int) -> Mutation:
        """Immutable record view of one catalog row."""
        return Mutation(
            mutation_id=int(self.mutation_id[column]),
            mutation_class=MutationClass(int(self.mutation_class[column])),
            position=int(self.position[column]),
            s=float(self.s[column]),
            origin_tick=int(self.origin_tick[column]),
            dominance_2=tuple(float(v) for v in self.dominance_2[column]),
            dominance_4=tuple(float(v) for v in self.dominance_4[column]),
        )

    # ── creation ─────────────────────────────────────────────────────

    def add(
        self,
        mutation_class: np.ndarray,
        position: np.ndarray,
        s: np.ndarray,
        tick: int,
    ) -> np.ndarray:
        """Append new mutations; return their catalog columns.

        Dominance records are stamped here, once, by the run's
        dominance source.
        """
        mutation_class = np.asarray(mutation_class, dtype=np.int8)
        position = np.asarray(position, dtype=np.int64)
        s = np.asarray(s, dtype=np.float64)
        n_new = mutation_class.shape[0]
        if not (position.shape[0] == n_new and s.shape[0] == n_new):
            raise ValueError("mutation_class, position and s must have equal length")

        start = len(self)
        ids = np.arange(self._next_id, self._next_id + n_new, dtype=np.int64)
        self._next_id += n_new
        dom2, dom4 = self.dominance.stamp(s)

        self.mutation_id = np.concatenate([self.mutation_id, ids])
        self.mutation_class = np.concatenate([self.mutation_class, mutation_class])
        self.position = np.concatenate([self.position, position])
        self.s = np.concatenate([self.s, s])
        self.origin_tick = np.concatenate(
            [self.origin_tick, np.full(n_new, tick, dtype=np.int64)]
        )
        self.dominance_2 = np.concatenate([self.dominance_2, dom2])
        self.dominance_4 = np.concatenate([self.dominance_4, dom4])
        return np.arange(start, start + n_new)

    def draw_new(
        self,
        n: int,
        genome_cfg,
        selection_cfg,
        tick: int,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """Draw n brand-new mutations and append them. Returns their columns."""
        if n == 0:
            return np.zeros(0, dtype=np.intp)
        is_del = rng.random(n) < genome_cfg.deleterious_fraction
        mclass = np.where(
            is_del, int(MutationClass.DELETERIOUS), int(MutationClass.NEUTRAL)
        ).astype(np.int8)
        position = rng.integers(0, genome_cfg.sequence_length, size=n)
        s = np.zeros(n, dtype=np.float64)
        n_del = int(is_del.sum())
        if n_del:
            s[is_del] = draw_selection_coefficients(n_del, selection_cfg, rng)
        return self.add(mclass, position, s, tick)

    # ── loss / fixation ──────────────────────────────────────────────

    def retire(self, lost: np.ndarray, fixed: np.ndarray, tick: int) -> np.ndarray:
        """Drop lost and fixed columns; record fixed ones as substitutions.

        Args:
            lost: (m,) bool — column no longer carried by any copy.
            fixed: (m,) bool — column carried by every copy.
            tick: Current tick (fixation time).

        Returns:
            (m,) bool keep-mask to apply to every genotype matrix.
        """
        for column in np.flatnonzero(fixed):
            self.substitutions.append(Substitution(self.record(int(column)), tick))
        keep = ~(lost | fixed)
        self.mutation_id = self.mutation_id[keep]
        self.mutation_class = self.mutation_class[keep]
        self.position = self.position[keep]
        self.s = self.s[keep]
        self.origin_tick = self.origin_tick[keep]
        self.dominance_2 = self.dominance_2[keep]
        self.dominance_4 = self.dominance_4[keep]
        return keep
