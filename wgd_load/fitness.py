"""Fitness evaluator for WGD-Load.

Multiplicative, dominance-weighted fitness over the distinct deleterious
mutations an individual carries:

  w_i = Π_j (1 + w(n_ij) · s_j)      over mutations j with n_ij > 0 copies

  diploid     n ∈ {1, 2}:     w(1) = h(s),  w(2) = 1
  tetraploid  n ∈ {1..4}:     w(n) = h_x(h(s), n/4),  w(4) = 1
  fixed       w(n) = stamped per-mutation vector[n]

Neutral mutations never enter the product. Shadow records always report
1.0; only the primary evaluation (which reads the combined pair) drives
selection. No clamping is applied; a fitness ≤ 0 is returned as computed
and the host's survival step floors it.
"""

from __future__ import annotations

import numpy as np

from wgd_load.dominance import DominanceModel
from wgd_load.errors import ConsistencyError
from wgd_load.mutations import MutationCatalog
from wgd_load.ploidy import PloidyManager
from wgd_load.population import Subpopulation


def fitness_from_counts(
    counts: np.ndarray,
    columns: np.ndarray,
    catalog: MutationCatalog,
    dominance: DominanceModel,
    ploidy: int,
) -> np.ndarray:
    """Fitness of each row of a copy-count matrix.

    Args:
        counts: (n, k) copies of each considered mutation per individual.
        columns: (k,) catalog columns the counts refer to.
        catalog: Mutation catalog (s and stamped dominance).
        dominance: The run's dominance source.
        ploidy: 2 or 4.

    Returns:
        (n,) float64 fitness; 1.0 for rows carrying none of the mutations.
    """
    n = counts.shape[0]
    if columns.shape[0] == 0 or n == 0:
        return np.ones(n, dtype=np.float64)
    s = catalog.s[columns][None, :]
    carried = counts > 0
    w = dominance.weights(catalog, columns, counts, ploidy)
    factors = np.where(carried, 1.0 + w * s, 1.0)
    return np.prod(factors, axis=1)


def population_fitness(
    primary: Subpopulation,
    manager: PloidyManager,
    catalog: MutationCatalog,
    dominance: DominanceModel,
) -> np.ndarray:
    """Fitness of every primary individual under the current ploidy.

    Raises:
        ConsistencyError: If any primary/shadow pair disagrees on its tag.
    """
    manager.check_links(primary)
    columns = catalog.deleterious_columns()
    counts, ploidy = manager.effective_copy_counts(primary, columns)
    return fitness_from_counts(counts, columns, catalog, dominance, ploidy)


def individual_fitness(
    index: int,
    primary: Subpopulation,
    manager: PloidyManager,
    catalog: MutationCatalog,
    dominance: DominanceModel,
) -> float:
    """Fitness of one primary individual (pair-checked in tetraploids)."""
    columns = catalog.deleterious_columns()
    row = primary.genotypes[index:index + 1, :, columns]
    counts = row.sum(axis=1, dtype=np.int16)
    if manager.duplicated:
        shadow = manager.shadow
        link = int(primary.agents['link_index'][index])
        tag = float(primary.agents['link_tag'][index])
        shadow_tag = float(shadow.agents['link_tag'][link]) if 0 <= link < len(shadow) else float('nan')
        if shadow_tag != tag:
            raise ConsistencyError(index, tag, link, shadow_tag)
        linked = shadow.genotypes[link:link + 1, :, columns]
        counts = counts + linked.sum(axis=1, dtype=np.int16)
    return float(fitness_from_counts(counts, columns, catalog, dominance, manager.ploidy)[0])


def evaluate_fitness(
    primary: Subpopulation,
    manager: PloidyManager,
    catalog: MutationCatalog,
    dominance: DominanceModel,
) -> np.ndarray:
    """Evaluate and cache fitness for this tick's selection step.

    Writes agents['fitness'] of the primary population and sets every
    shadow record to 1.0.

    Returns:
        (n_primary,) fitness.
    """
    w = population_fitness(primary, manager, catalog, dominance)
    primary.agents['fitness'] = w
    if manager.duplicated:
        manager.shadow.agents['fitness'] = 1.0
    return w
