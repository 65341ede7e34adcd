"""Population container for WGD-Load.

A Subpopulation is an ordered collection of diploid records: one
AGENT_DTYPE row plus one (2, n_mutations) genotype slab per record. The
primary population and the shadow population are two independent
Subpopulations sharing the same mutation catalog columns.

Row order is meaningful: link indices point at shadow rows, so every
operation that removes rows (compact) preserves the relative order of the
survivors.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from wgd_load.types import (
    COPIES_PER_RECORD,
    allocate_agents,
    allocate_genotypes,
)


class Subpopulation:
    """Ordered diploid records with their genotypes."""

    def __init__(self, name: str, agents: np.ndarray, genotypes: np.ndarray):
        if agents.shape[0] != genotypes.shape[0]:
            raise ValueError(
                f"{name}: {agents.shape[0]} agent rows but {genotypes.shape[0]} genotype rows"
            )
        if genotypes.ndim != 3 or genotypes.shape[1] != COPIES_PER_RECORD:
            raise ValueError(f"{name}: genotypes must have shape (n, 2, n_mutations)")
        self.name = name
        self.agents = agents
        self.genotypes = genotypes

    # ── construction ─────────────────────────────────────────────────

    @classmethod
    def founders(
        cls,
        name: str,
        n: int,
        n_mutations: int = 0,
        first_pedigree_id: int = 0,
    ) -> "Subpopulation":
        """n mutation-free founders with consecutive pedigree ids."""
        agents = allocate_agents(n)
        agents['pedigree_id'] = np.arange(first_pedigree_id, first_pedigree_id + n)
        return cls(name, agents, allocate_genotypes(n, n_mutations))

    def clone(self, name: Optional[str] = None) -> "Subpopulation":
        """Verbatim deep copy (rows, order and genotypes)."""
        return Subpopulation(
            name or self.name, self.agents.copy(), self.genotypes.copy()
        )

    # ── basic views ──────────────────────────────────────────────────

    def __len__(self) -> int:
        return int(self.agents.shape[0])

    @property
    def n_mutations(self) -> int:
        return int(self.genotypes.shape[2])

    def newborn_mask(self) -> np.ndarray:
        """Records produced by this tick's reproduction."""
        return self.agents['age'] == 0

    def copy_counts(self, columns: Optional[np.ndarray] = None) -> np.ndarray:
        """(n, k) number of copies (0..2) carrying each catalog column."""
        g = self.genotypes if columns is None else self.genotypes[:, :, columns]
        return g.sum(axis=1, dtype=np.int16)

    # ── mutation columns ─────────────────────────────────────────────

    def extend_columns(self, n_new: int) -> None:
        """Append n_new all-zero mutation columns."""
        if n_new <= 0:
            return
        pad = np.zeros((len(self), COPIES_PER_RECORD, n_new), dtype=np.uint8)
        self.genotypes = np.concatenate([self.genotypes, pad], axis=2)

    def keep_columns(self, keep: np.ndarray) -> None:
        """Drop catalog columns where keep is False."""
        self.genotypes = self.genotypes[:, :, keep]

    # ── rows ─────────────────────────────────────────────────────────

    def append(self, agents: np.ndarray, genotypes: np.ndarray) -> np.ndarray:
        """Append records at the end; return their new row indices."""
        if genotypes.shape[2] != self.n_mutations:
            raise ValueError(
                f"{self.name}: offspring carry {genotypes.shape[2]} columns, "
                f"population carries {self.n_mutations}"
            )
        start = len(self)
        self.agents = np.concatenate([self.agents, agents])
        self.genotypes = np.concatenate([self.genotypes, genotypes], axis=0)
        return np.arange(start, start + agents.shape[0])

    def compact(self, keep: np.ndarray) -> None:
        """Remove records where keep is False, preserving survivor order."""
        keep = np.asarray(keep, dtype=bool)
        self.agents = self.agents[keep]
        self.genotypes = self.genotypes[keep]

    def age_survivors(self) -> None:
        self.agents['age'] += 1
