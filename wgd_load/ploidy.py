"""Ploidy transition manager for WGD-Load.

A tetraploid individual is emulated as a pair of diploid records: its
primary record (in the primary population, subject to selection) and its
shadow record (in the shadow population, carrying the other two genome
copies). Every primary row holds a link table entry:

  link_index  row of its shadow record
  link_tag    pairing tag, shared by both records and never reused

State machine:
  DIPLOID     tick < switch   single population, no shadow
  SWITCH      tick == switch  every primary is cloned into a new shadow
                              population; pairs get fresh tags (runs once)
  TETRAPLOID  tick > switch   paired reproduction; per-tick bookkeeping

Per-tick bookkeeping in the tetraploid regime, in this order:
  a. resolve_new_links         newborn primaries ↔ newborn shadows by tag
  b. mark_unreferenced_shadows orphaned shadows get fitness_scaling = 0
  c. stage_remap               pending_link = surviving shadow slots below link
     (host mortality runs here)
  d. commit_links              link_index ← pending_link, then verified

check_links() enforces the tag invariant and is called by every fitness
evaluation.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from wgd_load.errors import BijectionError, ConsistencyError
from wgd_load.population import Subpopulation
from wgd_load.types import (
    DIPLOID_PLOIDY,
    NO_LINK,
    TETRAPLOID_PLOIDY,
    Regime,
    regime_for_tick,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# PAIRING TAGS
# ═══════════════════════════════════════════════════════════════════════


class PairingTagCounter:
    """Monotonic source of pairing tags; one instance per run.

    Tags are stored as floats on the records but minted from an integer
    counter, so they are exact and never repeat within a run.
    """

    def __init__(self, start: int = 1):
        self._next = int(start)

    @property
    def issued(self) -> int:
        """Next tag value to be issued."""
        return self._next

    def next_tag(self) -> float:
        tag = float(self._next)
        self._next += 1
        return tag

    def next_tags(self, n: int) -> np.ndarray:
        """n consecutive fresh tags as float64."""
        tags = np.arange(self._next, self._next + n, dtype=np.float64)
        self._next += n
        return tags


def match_tags(query: np.ndarray, pool: np.ndarray) -> np.ndarray:
    """Position in pool of each query tag, or NO_LINK where absent.

    First occurrence wins when the pool holds duplicates; callers that
    need a bijection must check for NO_LINK and for repeated results.
    """
    query = np.asarray(query, dtype=np.float64)
    pool = np.asarray(pool, dtype=np.float64)
    if pool.shape[0] == 0:
        return np.full(query.shape[0], NO_LINK, dtype=np.int64)
    order = np.argsort(pool, kind='stable')
    sorted_pool = pool[order]
    pos = np.searchsorted(sorted_pool, query, side='left')
    pos_c = np.minimum(pos, sorted_pool.shape[0] - 1)
    found = sorted_pool[pos_c] == query
    return np.where(found, order[pos_c], NO_LINK).astype(np.int64)


# ═══════════════════════════════════════════════════════════════════════
# MANAGER
# ═══════════════════════════════════════════════════════════════════════


class PloidyManager:
    """Owns the shadow population, the tag counter and the link table."""

    def __init__(
        self,
        switch_tick: int,
        tags: Optional[PairingTagCounter] = None,
        relink_mode: str = "remap",
    ):
        if relink_mode not in ("remap", "tag"):
            raise ValueError(f"Unknown relink_mode '{relink_mode}'")
        self.switch_tick = switch_tick
        self.tags = tags if tags is not None else PairingTagCounter()
        self.relink_mode = relink_mode
        self.shadow: Optional[Subpopulation] = None

    # ── state ────────────────────────────────────────────────────────

    @property
    def duplicated(self) -> bool:
        return self.shadow is not None

    @property
    def ploidy(self) -> int:
        return TETRAPLOID_PLOIDY if self.duplicated else DIPLOID_PLOIDY

    def regime(self, tick: int) -> Regime:
        return regime_for_tick(tick, self.switch_tick)

    def reproduces_as_tetraploid(self, tick: int) -> bool:
        return self.duplicated and self.regime(tick) == Regime.TETRAPLOID

    # ── switch ───────────────────────────────────────────────────────

    def duplicate(self, primary: Subpopulation) -> Subpopulation:
        """Whole-genome duplication: clone every primary into the shadow.

        Each (primary, clone) pair receives a fresh tag; primary k links
        to shadow k.

        Raises:
            RuntimeError: If the duplication already happened.
        """
        if self.duplicated:
            raise RuntimeError("Whole-genome duplication already performed")
        n = len(primary)
        tags = self.tags.next_tags(n)
        primary.agents['link_tag'] = tags
        primary.agents['link_index'] = np.arange(n)
        primary.agents['pending_link'] = NO_LINK

        shadow = primary.clone(name="shadow")
        shadow.agents['link_index'] = NO_LINK
        shadow.agents['fitness_scaling'] = 1.0
        shadow.agents['fitness'] = 1.0
        self.shadow = shadow
        logger.info("Whole-genome duplication: %d primary records cloned into shadow", n)
        return shadow

    def maybe_duplicate(self, tick: int, primary: Subpopulation) -> bool:
        """Run the duplication at the switch tick, once. Returns True if it ran."""
        if tick == self.switch_tick and not self.duplicated:
            self.duplicate(primary)
            return True
        return False

    # ── (a) link resolution ──────────────────────────────────────────

    def resolve_new_links(self, primary: Subpopulation) -> int:
        """Link every newborn primary to the newborn shadow carrying its tag.

        Returns:
            Number of links resolved.

        Raises:
            BijectionError: If any newborn primary has no newborn shadow
                with its tag, if two share a shadow, or if newborn shadows
                are left over.
        """
        shadow = self._require_shadow()
        new_primary = np.flatnonzero(primary.newborn_mask())
        new_shadow = np.flatnonzero(shadow.newborn_mask())
        primary_tags = primary.agents['link_tag'][new_primary]
        shadow_tags = shadow.agents['link_tag'][new_shadow]

        hits = match_tags(primary_tags, shadow_tags)
        missing = hits == NO_LINK
        if np.any(missing):
            raise BijectionError(primary_tags[missing])
        if np.unique(hits).shape[0] != hits.shape[0]:
            values, counts = np.unique(hits, return_counts=True)
            raise BijectionError(
                shadow_tags[values[counts > 1]],
                reason="shadow record claimed by more than one primary",
            )
        if hits.shape[0] != new_shadow.shape[0]:
            orphaned = np.setdiff1d(np.arange(new_shadow.shape[0]), hits)
            raise BijectionError(
                shadow_tags[orphaned], reason="newborn shadow record has no primary"
            )

        primary.agents['link_index'][new_primary] = new_shadow[hits]
        return int(new_primary.shape[0])

    # ── (b) orphan marking ───────────────────────────────────────────

    def mark_unreferenced_shadows(self, primary: Subpopulation) -> int:
        """Zero the fitness scaling of shadows no live primary links to.

        Returns:
            Number of shadow records marked for removal.
        """
        shadow = self._require_shadow()
        self.check_links(primary)
        referenced = np.zeros(len(shadow), dtype=bool)
        referenced[primary.agents['link_index']] = True
        shadow.agents['fitness_scaling'] = np.where(referenced, 1.0, 0.0)
        return int((~referenced).sum())

    # ── (c) deferred remap ───────────────────────────────────────────

    def stage_remap(self, primary: Subpopulation) -> None:
        """Stage each primary's post-culling shadow index in pending_link.

        A linked shadow always survives (it is referenced), so its new
        index is the number of surviving shadow slots below it.
        """
        shadow = self._require_shadow()
        surviving = shadow.agents['fitness_scaling'] > 0.0
        new_slot = np.cumsum(surviving) - 1
        primary.agents['pending_link'] = new_slot[primary.agents['link_index']]

    # ── (d) commit ───────────────────────────────────────────────────

    def commit_links(self, primary: Subpopulation) -> None:
        """Make the staged links canonical after mortality, then verify them."""
        if self.relink_mode == "tag":
            self.relink_by_tag(primary)
        else:
            primary.agents['link_index'] = primary.agents['pending_link']
        primary.agents['pending_link'] = NO_LINK
        self.check_links(primary)

    def relink_by_tag(self, primary: Subpopulation) -> None:
        """Recompute every primary's link from tags alone."""
        shadow = self._require_shadow()
        hits = match_tags(primary.agents['link_tag'], shadow.agents['link_tag'])
        missing = hits == NO_LINK
        if np.any(missing):
            raise BijectionError(primary.agents['link_tag'][missing])
        primary.agents['link_index'] = hits

    # ── invariant ────────────────────────────────────────────────────

    def check_links(self, primary: Subpopulation) -> None:
        """Every primary's tag must equal its linked shadow's tag.

        Raises:
            ConsistencyError: On the first broken pair (both tags reported).
        """
        if not self.duplicated:
            return
        shadow = self.shadow
        links = primary.agents['link_index']
        tags = primary.agents['link_tag']
        out_of_range = (links < 0) | (links >= len(shadow))
        if np.any(out_of_range):
            i = int(np.flatnonzero(out_of_range)[0])
            raise ConsistencyError(i, float(tags[i]), int(links[i]), float('nan'))
        shadow_tags = shadow.agents['link_tag'][links]
        broken = shadow_tags != tags
        if np.any(broken):
            i = int(np.flatnonzero(broken)[0])
            raise ConsistencyError(i, float(tags[i]), int(links[i]), float(shadow_tags[i]))

    # ── genome views ─────────────────────────────────────────────────

    def effective_copy_counts(
        self,
        primary: Subpopulation,
        columns: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, int]:
        """(n, k) copy counts over all of an individual's copies, and the ploidy."""
        counts = primary.copy_counts(columns)
        if self.duplicated:
            linked = self.shadow.genotypes[primary.agents['link_index']]
            if columns is not None:
                linked = linked[:, :, columns]
            counts = counts + linked.sum(axis=1, dtype=np.int16)
        return counts, self.ploidy

    def _require_shadow(self) -> Subpopulation:
        if self.shadow is None:
            raise RuntimeError("No shadow population before the whole-genome duplication")
        return self.shadow
