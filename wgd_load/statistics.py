"""Statistics aggregator for WGD-Load.

At every sampling tick, over the effective individual set (primary records
alone while diploid, primary + linked shadow once tetraploid):

  del_freq  mean frequency of deleterious mutations present (0.0 if none)
  del_fix   deleterious mutations at frequency 1 + deleterious substitutions
  piN, piS  2·Σ f(1−f) over deleterious / neutral mutations, per site of
            sequence assigned to that class (L × class fraction)
  dfe1..5   counts of present deleterious mutations by |s| with
            breakpoints 1e-4, 1e-3, 1e-2, 1e-1
  fitness   mean fitness, recomputed (never read from the cached field,
            which predates the latest mortality pass)

Computation is read-only: calling it twice on an unchanged snapshot gives
the same record. StatsWriter appends one space-delimited line per record
and writes the header once per run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd
from scipy.stats import gamma as gamma_dist

from wgd_load.dominance import DominanceModel
from wgd_load.fitness import population_fitness
from wgd_load.mutations import MutationCatalog
from wgd_load.ploidy import PloidyManager
from wgd_load.population import Subpopulation
from wgd_load.types import DFE_BREAKS, N_DFE_BINS, MutationClass

logger = logging.getLogger(__name__)

FULL_HEADER = (
    "gen", "n", "ploidy", "del_freq", "del_fix", "piN", "piS",
    "dfe1", "dfe2", "dfe3", "dfe4", "dfe5", "fitness",
)
NEUTRAL_HEADER = ("gen", "n", "ploidy", "pi")


# ═══════════════════════════════════════════════════════════════════════
# PURE HELPERS
# ═══════════════════════════════════════════════════════════════════════


def allele_frequencies(counts: np.ndarray, ploidy: int) -> np.ndarray:
    """Per-column frequency from an (n, k) copy-count matrix."""
    n = counts.shape[0]
    if n == 0:
        return np.zeros(counts.shape[1], dtype=np.float64)
    return counts.sum(axis=0, dtype=np.int64) / float(n * ploidy)


def nucleotide_diversity(
    freqs: np.ndarray,
    sequence_length: int,
    class_fraction: float,
) -> float:
    """π = 2·Σ f(1−f) / (L × fraction); 0.0 for an empty class."""
    if freqs.shape[0] == 0 or class_fraction <= 0.0:
        return 0.0
    return float(2.0 * np.sum(freqs * (1.0 - freqs)) / (sequence_length * class_fraction))


def dfe_bins(s: np.ndarray) -> np.ndarray:
    """Counts of selection coefficients in the 5 |s| bins.

    bin 1: s > −1e-4     bin 2: −1e-4 ≥ s > −1e-3    bin 3: −1e-3 ≥ s > −1e-2
    bin 4: −1e-2 ≥ s > −1e-1                           bin 5: s ≤ −1e-1
    """
    if s.shape[0] == 0:
        return np.zeros(N_DFE_BINS, dtype=np.int64)
    idx = np.digitize(-np.asarray(s, dtype=np.float64), DFE_BREAKS, right=False)
    return np.bincount(idx, minlength=N_DFE_BINS).astype(np.int64)


# ═══════════════════════════════════════════════════════════════════════
# RECORD
# ═══════════════════════════════════════════════════════════════════════


@dataclass
class LoadStatistics:
    """Summary record of one sampling tick."""
    tick: int
    gen: int
    n: int
    ploidy: int
    del_freq: float = 0.0
    del_fix: int = 0
    pi_n: float = 0.0
    pi_s: float = 0.0
    dfe: np.ndarray = field(
        default_factory=lambda: np.zeros(N_DFE_BINS, dtype=np.int64)
    )
    mean_fitness: float = 1.0

    def fields(self, neutral_only: bool = False) -> List[str]:
        """Formatted values in header order."""
        if neutral_only:
            return [str(self.gen), str(self.n), str(self.ploidy), _fmt(self.pi_s)]
        return (
            [str(self.gen), str(self.n), str(self.ploidy),
             _fmt(self.del_freq), str(self.del_fix),
             _fmt(self.pi_n), _fmt(self.pi_s)]
            + [str(int(c)) for c in self.dfe]
            + [_fmt(self.mean_fitness)]
        )

    def format_line(self, neutral_only: bool = False) -> str:
        return " ".join(self.fields(neutral_only))


def _fmt(value: float) -> str:
    return format(float(value), '.8g')


# ═══════════════════════════════════════════════════════════════════════
# AGGREGATION
# ═══════════════════════════════════════════════════════════════════════


def compute_statistics(
    tick: int,
    primary: Subpopulation,
    manager: PloidyManager,
    catalog: MutationCatalog,
    dominance: DominanceModel,
    genome_cfg,
    gen_offset: int = 0,
) -> LoadStatistics:
    """Summary statistics of the current population snapshot.

    Args:
        tick: Current tick.
        primary: Primary population (post-mortality, links committed).
        manager: Ploidy manager (supplies the shadow half once tetraploid).
        catalog: Mutation catalog.
        dominance: The run's dominance source.
        genome_cfg: GenomeSection (sequence length, class fractions).
        gen_offset: Subtracted from tick for the 'gen' column.

    Returns:
        LoadStatistics record.
    """
    ploidy = manager.ploidy
    stats = LoadStatistics(tick=tick, gen=tick - gen_offset, n=len(primary), ploidy=ploidy)
    if len(primary) == 0:
        stats.mean_fitness = 0.0
        return stats

    del_cols = catalog.deleterious_columns()
    neu_cols = catalog.neutral_columns()

    del_counts, _ = manager.effective_copy_counts(primary, del_cols)
    neu_counts, _ = manager.effective_copy_counts(primary, neu_cols)
    del_freq = allele_frequencies(del_counts, ploidy)
    neu_freq = allele_frequencies(neu_counts, ploidy)

    present = del_freq > 0.0
    if np.any(present):
        stats.del_freq = float(np.mean(del_freq[present]))
    stats.del_fix = int(np.sum(del_freq >= 1.0)) + catalog.n_substituted(MutationClass.DELETERIOUS)
    stats.pi_n = nucleotide_diversity(
        del_freq[present], genome_cfg.sequence_length, genome_cfg.deleterious_fraction
    )
    stats.pi_s = nucleotide_diversity(
        neu_freq[neu_freq > 0.0], genome_cfg.sequence_length, genome_cfg.neutral_fraction
    )
    stats.dfe = dfe_bins(catalog.s[del_cols[present]])

    fitness = population_fitness(primary, manager, catalog, dominance)
    stats.mean_fitness = float(np.mean(fitness))
    return stats


# ═══════════════════════════════════════════════════════════════════════
# OUTPUT
# ═══════════════════════════════════════════════════════════════════════


class StatsWriter:
    """Appends records to a space-delimited file; header once per run.

    When path is None, records only go to the log.
    """

    def __init__(self, path: Optional[Union[str, Path]], neutral_only: bool = False):
        self.path = Path(path) if path is not None else None
        self.neutral_only = neutral_only
        self._header_written = False

    @property
    def header(self) -> str:
        return " ".join(NEUTRAL_HEADER if self.neutral_only else FULL_HEADER)

    def write(self, stats: LoadStatistics) -> str:
        """Log and append one record; returns the formatted line."""
        line = stats.format_line(self.neutral_only)
        logger.info("%s | %s", self.header, line)
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a') as f:
                if not self._header_written:
                    f.write(self.header + "\n")
                f.write(line + "\n")
            self._header_written = True
        return line


# ═══════════════════════════════════════════════════════════════════════
# REFERENCE DFE & FILE READING
# ═══════════════════════════════════════════════════════════════════════


def expected_dfe_fractions(selection_cfg) -> np.ndarray:
    """Share of new deleterious mutations expected in each |s| bin.

    The yardstick for the segregating DFE: purifying selection depletes
    the strong bins relative to these input fractions.

    Returns:
        (5,) float64 summing to 1.
    """
    if selection_cfg.dfe == "fixed":
        out = np.zeros(N_DFE_BINS, dtype=np.float64)
        out[dfe_bins(np.array([selection_cfg.fixed_s])).argmax()] = 1.0
        return out
    scale = abs(selection_cfg.mean_s) / selection_cfg.shape
    cdf = gamma_dist.cdf(np.asarray(DFE_BREAKS), a=selection_cfg.shape, scale=scale)
    edges = np.concatenate([[0.0], cdf, [1.0]])
    return np.diff(edges)


def read_stats_table(path: Union[str, Path]) -> pd.DataFrame:
    """Load a statistics file written by StatsWriter.

    Repeated header lines (one per run appended to the same file) start
    a new run; the returned frame carries a 0-based 'run' column.
    """
    rows = []
    header = None
    run = -1
    with open(path) as f:
        for line in f:
            parts = line.split()
            if not parts:
                continue
            if parts[0] == "gen":
                header = parts
                run += 1
                continue
            if header is None:
                raise ValueError(f"{path}: data line before any header")
            rows.append([run] + parts)
    if header is None:
        return pd.DataFrame(columns=["run"] + list(FULL_HEADER))
    frame = pd.DataFrame(rows, columns=["run"] + header)
    return frame.apply(pd.to_numeric)
