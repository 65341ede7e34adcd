"""Simulation driver for WGD-Load.

Single-deme, non-Wright–Fisher model of a population that doubles its
genome at the switch tick and reproduces as an autotetraploid afterwards.

Tick loop:
  1. Reproduction      every primary mates offspring_per_parent times with a
                       uniformly drawn mate; diploid crosses before the
                       switch, paired (primary + shadow) crosses after it
  2. Link bookkeeping  (tetraploid) resolve newborn links → mark orphaned
                       shadows → stage the deferred remap
  3. Fitness           dominance-weighted multiplicative fitness
  4. Mortality         survival = clip(fitness × scaling × K/N, 0, 1);
                       parents die under discrete generations; shadows
                       die iff their scaling is 0
  5. Commit links      (tetraploid) staged links become canonical
  6. Aging, loss/fixation bookkeeping
  7. Switch tick only: whole-genome duplication (once)
  8. Statistics        every sample_interval ticks, milestones, switch, end

References:
  - Huber et al. 2018 (h–s relationship)
  - Layman & Busch 2018 (dosage-dependent dominance in autopolyploids)
  - Kim, Huber & Lohmueller 2017 (gamma DFE)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from wgd_load.config import SimulationConfig, default_config
from wgd_load.dominance import DominanceModel, make_dominance_model
from wgd_load.fitness import evaluate_fitness
from wgd_load.mutations import MutationCatalog
from wgd_load.ploidy import PairingTagCounter, PloidyManager
from wgd_load.population import Subpopulation
from wgd_load.reproduction import (
    apply_new_mutations,
    diploid_offspring,
    sample_mates,
    tetraploid_offspring,
)
from wgd_load.rng import create_rng_streams
from wgd_load.statistics import LoadStatistics, StatsWriter, compute_statistics
from wgd_load.types import allocate_agents

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# RESULT
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationResult:
    """Sampled statistics and end-of-run summary."""
    records: List[LoadStatistics] = field(default_factory=list)
    n_generations_run: int = 0
    switch_tick: int = 0
    duplicated: bool = False
    extinct_tick: Optional[int] = None
    final_n: int = 0
    final_shadow_n: int = 0
    n_segregating: int = 0
    n_substitutions: int = 0
    n_tags_issued: int = 0

    def series(self, name: str) -> np.ndarray:
        """Time series of one LoadStatistics attribute over the sampled ticks."""
        return np.array([getattr(r, name) for r in self.records])

    @property
    def ticks(self) -> np.ndarray:
        return self.series('tick')


# ═══════════════════════════════════════════════════════════════════════
# SIMULATION
# ═══════════════════════════════════════════════════════════════════════

def survival_probability(
    fitness: np.ndarray,
    scaling: np.ndarray,
    density: float,
) -> np.ndarray:
    """Host survival floor/ceiling: clip(fitness × scaling × density, 0, 1)."""
    return np.clip(fitness * scaling * density, 0.0, 1.0)


class WgdSimulation:
    """Mutable state of one run plus the per-tick phases."""

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        rngs: Optional[Dict[str, np.random.Generator]] = None,
        writer: Optional[StatsWriter] = None,
    ):
        self.config = config if config is not None else default_config()
        self.rngs = rngs if rngs is not None else create_rng_streams(self.config.simulation.seed)
        self.writer = writer
        self.dominance: DominanceModel = make_dominance_model(self.config.dominance)
        self.catalog = MutationCatalog(self.dominance)
        self.manager = PloidyManager(
            switch_tick=self.config.simulation.switch_generation,
            tags=PairingTagCounter(),
            relink_mode=self.config.ploidy.relink_mode,
        )
        k = self.config.population.carrying_capacity
        self.primary = Subpopulation.founders("primary", k)
        self.primary.age_survivors()
        self._next_pedigree_id = k
        self.tick = 0
        self.horizon = self.config.simulation.n_generations
        self.records: List[LoadStatistics] = []

    # ── convenience ──────────────────────────────────────────────────

    @property
    def shadow(self) -> Optional[Subpopulation]:
        return self.manager.shadow

    def _residents(self) -> List[Subpopulation]:
        return [self.primary] if self.shadow is None else [self.primary, self.shadow]

    def _new_agents(self, n: int) -> np.ndarray:
        agents = allocate_agents(n)
        agents['pedigree_id'] = np.arange(self._next_pedigree_id, self._next_pedigree_id + n)
        self._next_pedigree_id += n
        return agents

    # ── 1. reproduction ──────────────────────────────────────────────

    def reproduce(self, tick: int) -> int:
        """Produce this tick's offspring. Returns the number of matings."""
        pop_cfg = self.config.population
        genome_cfg = self.config.genome
        n = len(self.primary)
        if n == 0:
            return 0
        focal = np.repeat(np.arange(n), pop_cfg.offspring_per_parent)
        mates = sample_mates(
            focal, n, self.rngs['mating'], exclude_self=pop_cfg.exclude_self_mating
        )
        positions = self.catalog.position
        rng_rec = self.rngs['recombination']

        if self.manager.reproduces_as_tetraploid(tick):
            first, second = tetraploid_offspring(
                self.primary, self.shadow, focal, mates, positions, genome_cfg, rng_rec
            )
            (first, second), n_new = apply_new_mutations(
                [first, second], self._residents(), self.catalog,
                genome_cfg, self.config.selection, tick, self.rngs['mutation'],
            )
            agents = self._new_agents(focal.shape[0])
            agents['link_tag'] = self.manager.tags.next_tags(focal.shape[0])
            shadow_agents = agents.copy()
            self.primary.append(agents, first)
            self.shadow.append(shadow_agents, second)
        else:
            offspring = diploid_offspring(
                self.primary, focal, mates, positions, genome_cfg, rng_rec
            )
            (offspring,), n_new = apply_new_mutations(
                [offspring], self._residents(), self.catalog,
                genome_cfg, self.config.selection, tick, self.rngs['mutation'],
            )
            self.primary.append(self._new_agents(focal.shape[0]), offspring)

        logger.debug("tick %d: %d matings, %d new mutations", tick, focal.shape[0], n_new)
        return int(focal.shape[0])

    # ── 2. link bookkeeping ──────────────────────────────────────────

    def link_bookkeeping(self) -> None:
        """Steps a–c, tetraploid regime only."""
        if not self.manager.duplicated:
            return
        resolved = self.manager.resolve_new_links(self.primary)
        orphaned = self.manager.mark_unreferenced_shadows(self.primary)
        self.manager.stage_remap(self.primary)
        logger.debug("links: %d resolved, %d shadow records orphaned", resolved, orphaned)

    # ── 4. mortality ─────────────────────────────────────────────────

    def mortality(self, fitness: np.ndarray) -> int:
        """Host culling step. Returns the number of primary deaths."""
        pop_cfg = self.config.population
        agents = self.primary.agents
        scaling = agents['fitness_scaling'].copy()
        newborn = self.primary.newborn_mask()
        if pop_cfg.discrete_generations:
            scaling[~newborn] = 0.0
            n_competing = int(newborn.sum())
        else:
            n_competing = len(self.primary)
        density = pop_cfg.carrying_capacity / n_competing if n_competing > 0 else 0.0

        p = survival_probability(fitness, scaling, density)
        survive = self.rngs['mortality'].random(len(self.primary)) < p
        self.primary.compact(survive)
        self.primary.agents['fitness_scaling'] = 1.0

        if self.shadow is not None:
            shadow_p = survival_probability(
                self.shadow.agents['fitness'], self.shadow.agents['fitness_scaling'], 1.0
            )
            self.shadow.compact(shadow_p >= 1.0)
            self.shadow.agents['fitness_scaling'] = 1.0
        return int((~survive).sum())

    # ── 6. loss / fixation ───────────────────────────────────────────

    def retire_mutations(self, tick: int) -> None:
        residents = self._residents()
        total_copies = sum(2 * len(pop) for pop in residents)
        if len(self.catalog) == 0 or total_copies == 0:
            return
        carried = sum(pop.genotypes.sum(axis=(0, 1), dtype=np.int64) for pop in residents)
        lost = carried == 0
        fixed = carried == total_copies
        if not (np.any(lost) or np.any(fixed)):
            return
        keep = self.catalog.retire(lost, fixed, tick)
        for pop in residents:
            pop.keep_columns(keep)

    # ── 8. statistics ────────────────────────────────────────────────

    def should_sample(self, tick: int) -> bool:
        out = self.config.output
        return (
            tick % out.sample_interval == 0
            or tick in out.milestones
            or tick == self.config.simulation.switch_generation
            or tick == self.horizon
        )

    def sample(self, tick: int) -> LoadStatistics:
        stats = compute_statistics(
            tick, self.primary, self.manager, self.catalog, self.dominance,
            self.config.genome, gen_offset=self.config.output.gen_offset,
        )
        self.records.append(stats)
        if self.writer is not None:
            self.writer.write(stats)
        return stats

    # ── tick ─────────────────────────────────────────────────────────

    def step(self) -> None:
        """Advance one tick through every phase in order."""
        self.tick += 1
        tick = self.tick
        self.reproduce(tick)
        self.link_bookkeeping()
        fitness = evaluate_fitness(self.primary, self.manager, self.catalog, self.dominance)
        self.mortality(fitness)
        if self.manager.duplicated:
            self.manager.commit_links(self.primary)
        self.primary.age_survivors()
        if self.shadow is not None:
            self.shadow.age_survivors()
        self.retire_mutations(tick)
        self.manager.maybe_duplicate(tick, self.primary)
        if self.should_sample(tick):
            self.sample(tick)

    def run(self, n_generations: Optional[int] = None) -> SimulationResult:
        """Run to the horizon (or until the primary population dies out)."""
        if n_generations is not None:
            self.horizon = n_generations
        horizon = self.horizon
        extinct_tick = None
        logger.info(
            "Starting run: K=%d, horizon=%d, switch=%d, dominance=%s, seed=%d",
            self.config.population.carrying_capacity, horizon,
            self.manager.switch_tick, self.dominance.name, self.config.simulation.seed,
        )
        while self.tick < horizon:
            self.step()
            if len(self.primary) == 0:
                extinct_tick = self.tick
                logger.warning("Population extinct at tick %d", self.tick)
                break
        return self.result(extinct_tick)

    def result(self, extinct_tick: Optional[int] = None) -> SimulationResult:
        return SimulationResult(
            records=list(self.records),
            n_generations_run=self.tick,
            switch_tick=self.manager.switch_tick,
            duplicated=self.manager.duplicated,
            extinct_tick=extinct_tick,
            final_n=len(self.primary),
            final_shadow_n=len(self.shadow) if self.shadow is not None else 0,
            n_segregating=len(self.catalog),
            n_substitutions=self.catalog.n_substituted(),
            n_tags_issued=self.manager.tags.issued - 1,
        )


def run_simulation(
    config: Optional[SimulationConfig] = None,
    output_path: Optional[Path] = None,
) -> SimulationResult:
    """Run one simulation from a config.

    Args:
        config: SimulationConfig; defaults if None.
        output_path: Statistics file; defaults to output.directory/output.filename.
            Pass a path explicitly to override.

    Returns:
        SimulationResult.
    """
    if config is None:
        config = default_config()
    if output_path is None:
        output_path = Path(config.output.directory) / config.output.filename
    writer = StatsWriter(output_path, neutral_only=config.all_neutral)
    sim = WgdSimulation(config, writer=writer)
    return sim.run()
