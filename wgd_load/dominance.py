"""Dominance model for WGD-Load.

Maps a deleterious mutation's selection coefficient (and, in tetraploids,
its allele dosage) to the weight with which s is expressed:

  fitness factor = 1 + w · s

Two dominance sources, chosen once per run by make_dominance_model():

  FormulaDominance      h(s) = 1 / (1/h0 − c·s)                 (Huber et al. 2018)
                        diploid:     w = h(s) for 1 copy, 1 for 2 copies
                        tetraploid:  w = h_x(h(s), n/4), 1 for 4 copies
                                                                 (Layman & Busch 2018)
  FixedVectorDominance  w = vector[n], explicit per-dosage vectors stamped
                        on each mutation at creation (fully dominant variants)

Neutral mutations (s = 0) never reach these formulas; their stamped
vectors are all-zero so that 1 + w·s = 1 whatever the dosage.

References:
  - Huber, Durvasula, Hancock & Lohmueller 2018 (h–s relationship)
  - Layman & Busch 2018 (ploidy-independent dominance weight)
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from wgd_load.types import DIPLOID_PLOIDY, TETRAPLOID_PLOIDY


# ═══════════════════════════════════════════════════════════════════════
# PURE FORMULAS
# ═══════════════════════════════════════════════════════════════════════


def huber_dominance(s, h_intercept: float, h_rate: float):
    """Dominance coefficient of a deleterious mutation.

    h = 1 / (1/h0 − c·s)

    Strongly deleterious mutations come out nearly recessive, weakly
    deleterious ones close to h0.

    Args:
        s: Selection coefficient(s), must be < 0. Scalar or array.
        h_intercept: h0, the dominance of a mutation with s → 0.
        h_rate: c, how fast dominance falls with |s|.

    Returns:
        h with the shape of s (float for scalar input).
    """
    s_arr = np.asarray(s, dtype=np.float64)
    h = 1.0 / (1.0 / h_intercept - h_rate * s_arr)
    if h.ndim == 0:
        return float(h)
    return h


def dosage_dominance(h, x):
    """Dominance weight at intermediate allele dosage in a tetraploid.

    With k = 2h and y = ln(1/h − 1) / ln(1/k):

        h_x = 1 / (1 + (1/k)^y · (1 − x)/x)

    The curve passes through h at x = 0.5. x = 0 and x = 1 return 0 and
    1; there the weight is irrelevant because the copy count already
    gives the boundary fitness. h = 0.5 (ln(1/k) = 0) returns the
    additive limit x, and h ≥ 1 returns 1.

    Args:
        h: Diploid dominance coefficient(s) in (0, 1].
        x: Dosage fraction(s) (mutant copies / 4). Broadcasts with h.

    Returns:
        h_x, broadcast shape of h and x (float for scalar inputs).
    """
    h_arr, x_arr = np.broadcast_arrays(
        np.asarray(h, dtype=np.float64), np.asarray(x, dtype=np.float64)
    )
    out = np.empty(h_arr.shape, dtype=np.float64)

    at_zero = x_arr <= 0.0
    at_one = x_arr >= 1.0
    at_half = x_arr == 0.5
    additive = h_arr == 0.5
    dominant = h_arr >= 1.0
    general = ~(at_zero | at_one | at_half | additive | dominant)

    out[additive] = x_arr[additive]
    out[dominant] = 1.0
    out[at_half] = h_arr[at_half]
    out[at_zero] = 0.0
    out[at_one] = 1.0

    if np.any(general):
        hg = h_arr[general]
        xg = x_arr[general]
        k = 2.0 * hg
        y = np.log(1.0 / hg - 1.0) / np.log(1.0 / k)
        out[general] = 1.0 / (1.0 + (1.0 / k) ** y * (1.0 - xg) / xg)

    if out.ndim == 0:
        return float(out)
    return out


# ═══════════════════════════════════════════════════════════════════════
# DOMINANCE SOURCES
# ═══════════════════════════════════════════════════════════════════════


class DominanceModel:
    """Strategy interface for the dominance source of a run.

    stamp():   creation-time per-mutation record (dominance_2, dominance_4)
    weights(): evaluation-time weight w for each (individual, mutation)
    """

    name = "base"

    def stamp(self, s: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        raise NotImplementedError

    def weights(
        self,
        catalog,
        columns: np.ndarray,
        copies: np.ndarray,
        ploidy: int,
    ) -> np.ndarray:
        """Weight of every (individual, mutation) cell.

        Args:
            catalog: MutationCatalog holding s and the stamped vectors.
            columns: (k,) catalog columns of the mutations considered.
            copies: (n, k) copy counts (0..ploidy).
            ploidy: 2 or 4.

        Returns:
            (n, k) float64 weights; cells with 0 copies are undefined
            and must be masked by the caller.
        """
        raise NotImplementedError


class FormulaDominance(DominanceModel):
    """h computed on the fly from s (partially recessive model)."""

    name = "formula"

    def __init__(self, h_intercept: float, h_rate: float):
        self.h_intercept = h_intercept
        self.h_rate = h_rate

    def h(self, s):
        return huber_dominance(s, self.h_intercept, self.h_rate)

    def stamp(self, s: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        s = np.asarray(s, dtype=np.float64)
        m = s.shape[0]
        dom2 = np.zeros((m, 3), dtype=np.float64)
        dom4 = np.zeros((m, 5), dtype=np.float64)
        deleterious = s < 0
        if np.any(deleterious):
            h = self.h(s[deleterious])
            dom2[deleterious] = np.column_stack(
                [np.zeros_like(h), h, np.ones_like(h)]
            )
            dosages = np.arange(5) / TETRAPLOID_PLOIDY
            dom4[deleterious] = dosage_dominance(h[:, None], dosages[None, :])
        return dom2, dom4

    def weights(self, catalog, columns, copies, ploidy):
        h = self.h(catalog.s[columns])[None, :]            # (1, k)
        copies = np.asarray(copies)
        if ploidy == DIPLOID_PLOIDY:
            return np.where(copies >= DIPLOID_PLOIDY, 1.0, h)
        x = copies / float(ploidy)
        return np.where(copies >= ploidy, 1.0, dosage_dominance(h, x))


class FixedVectorDominance(DominanceModel):
    """Explicit per-dosage vectors stamped at creation (dominant model)."""

    name = "fixed"

    def __init__(self, diploid_vector: Sequence[float], tetraploid_vector: Sequence[float]):
        self.diploid_vector = np.asarray(diploid_vector, dtype=np.float64)
        self.tetraploid_vector = np.asarray(tetraploid_vector, dtype=np.float64)
        if self.diploid_vector.shape != (3,):
            raise ValueError("diploid_vector needs one weight per dosage 0..2")
        if self.tetraploid_vector.shape != (5,):
            raise ValueError("tetraploid_vector needs one weight per dosage 0..4")

    def stamp(self, s: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        s = np.asarray(s, dtype=np.float64)
        m = s.shape[0]
        deleterious = (s < 0)[:, None]
        dom2 = np.where(deleterious, self.diploid_vector[None, :], 0.0)
        dom4 = np.where(deleterious, self.tetraploid_vector[None, :], 0.0)
        return dom2.reshape(m, 3), dom4.reshape(m, 5)

    def weights(self, catalog, columns, copies, ploidy):
        table = catalog.dominance_2 if ploidy == DIPLOID_PLOIDY else catalog.dominance_4
        vectors = table[columns]                            # (k, ploidy+1)
        col_idx = np.arange(len(columns))[None, :]
        return vectors[col_idx, np.asarray(copies, dtype=np.intp)]


def make_dominance_model(dominance_cfg) -> DominanceModel:
    """Build the run's dominance source from a DominanceSection."""
    if dominance_cfg.model == "formula":
        return FormulaDominance(dominance_cfg.h_intercept, dominance_cfg.h_rate)
    if dominance_cfg.model == "fixed":
        return FixedVectorDominance(
            dominance_cfg.diploid_vector, dominance_cfg.tetraploid_vector
        )
    raise ValueError(f"Unknown dominance model '{dominance_cfg.model}'")
