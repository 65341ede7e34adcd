"""Tests for wgd_load.fitness — multiplicative dominance-weighted fitness."""

import numpy as np
import pytest

from wgd_load.dominance import FixedVectorDominance, FormulaDominance, dosage_dominance
from wgd_load.errors import ConsistencyError
from wgd_load.fitness import (
    evaluate_fitness,
    fitness_from_counts,
    individual_fitness,
    population_fitness,
)
from wgd_load.mutations import MutationCatalog
from wgd_load.ploidy import PloidyManager
from wgd_load.population import Subpopulation
from wgd_load.types import MutationClass

H0 = 0.978
C = 50328.0


def _setup(n, s_values, dominance=None, classes=None):
    dominance = dominance or FormulaDominance(H0, C)
    catalog = MutationCatalog(dominance)
    if classes is None:
        classes = [MutationClass.DELETERIOUS] * len(s_values)
    catalog.add(classes, np.arange(len(s_values)), s_values, tick=0)
    primary = Subpopulation.founders("primary", n, len(s_values))
    primary.age_survivors()
    return dominance, catalog, primary


class TestDiploidFitness:
    def test_mutation_free_is_one(self):
        dominance, catalog, primary = _setup(4, [-0.01, -0.2])
        w = population_fitness(primary, PloidyManager(10), catalog, dominance)
        np.testing.assert_array_equal(w, np.ones(4))

    def test_heterozygote_uses_h(self):
        dominance, catalog, primary = _setup(2, [-0.01])
        primary.genotypes[0, 0, 0] = 1
        w = population_fitness(primary, PloidyManager(10), catalog, dominance)
        h = dominance.h(-0.01)
        assert w[0] == pytest.approx(1.0 - 0.01 * h)
        assert w[1] == 1.0

    def test_homozygote_is_one_plus_s(self):
        dominance, catalog, primary = _setup(1, [-0.03])
        primary.genotypes[0, :, 0] = 1
        w = population_fitness(primary, PloidyManager(10), catalog, dominance)
        assert w[0] == pytest.approx(0.97)

    def test_multiplicative_across_mutations(self):
        dominance, catalog, primary = _setup(1, [-0.1, -0.2])
        primary.genotypes[0, :, :] = 1
        w = population_fitness(primary, PloidyManager(10), catalog, dominance)
        assert w[0] == pytest.approx(0.9 * 0.8)

    def test_neutral_mutations_ignored(self):
        dominance, catalog, primary = _setup(
            2, [0.0, 0.0], classes=[MutationClass.NEUTRAL] * 2
        )
        primary.genotypes[:, :, :] = 1
        w = population_fitness(primary, PloidyManager(10), catalog, dominance)
        np.testing.assert_array_equal(w, [1.0, 1.0])

    def test_no_clamping(self):
        dominance, catalog, primary = _setup(1, [-1.5])
        primary.genotypes[0, :, 0] = 1
        w = population_fitness(primary, PloidyManager(10), catalog, dominance)
        assert w[0] == pytest.approx(-0.5)


class TestTetraploidFitness:
    def _duplicated(self, s_values, dominance=None):
        dominance, catalog, primary = _setup(1, s_values, dominance)
        manager = PloidyManager(switch_tick=1)
        manager.duplicate(primary)
        return dominance, catalog, primary, manager

    def test_full_dosage_is_exactly_one_plus_s(self):
        dominance, catalog, primary, manager = self._duplicated([-0.05])
        primary.genotypes[0, :, 0] = 1
        manager.shadow.genotypes[0, :, 0] = 1
        w = population_fitness(primary, manager, catalog, dominance)
        assert w[0] == 0.95

    @pytest.mark.parametrize("copies", [1, 2, 3])
    def test_partial_dosage_uses_hx(self, copies):
        dominance, catalog, primary, manager = self._duplicated([-0.05])
        combined = np.zeros(4, dtype=np.uint8)
        combined[:copies] = 1
        primary.genotypes[0, :, 0] = combined[:2]
        manager.shadow.genotypes[0, :, 0] = combined[2:]
        w = population_fitness(primary, manager, catalog, dominance)
        hx = dosage_dominance(dominance.h(-0.05), copies / 4.0)
        assert w[0] == pytest.approx(1.0 - 0.05 * hx)

    def test_fitness_increases_with_fewer_copies(self):
        dominance, catalog, primary, manager = self._duplicated([-0.05])
        results = []
        for copies in range(5):
            combined = np.zeros(4, dtype=np.uint8)
            combined[:copies] = 1
            primary.genotypes[0, :, 0] = combined[:2]
            manager.shadow.genotypes[0, :, 0] = combined[2:]
            results.append(population_fitness(primary, manager, catalog, dominance)[0])
        assert results[0] == 1.0
        assert np.all(np.diff(results) < 0)

    def test_fixed_vector_dominant(self):
        dominance = FixedVectorDominance([0, 1, 1], [0, 1, 1, 1, 1])
        dominance, catalog, primary, manager = self._duplicated([-0.01], dominance)
        manager.shadow.genotypes[0, 0, 0] = 1
        w = population_fitness(primary, manager, catalog, dominance)
        assert w[0] == pytest.approx(0.99)

    def test_tag_mismatch_aborts(self):
        dominance, catalog, primary, manager = self._duplicated([-0.05])
        manager.shadow.agents['link_tag'][0] = -1.0
        with pytest.raises(ConsistencyError):
            population_fitness(primary, manager, catalog, dominance)
        with pytest.raises(ConsistencyError):
            individual_fitness(0, primary, manager, catalog, dominance)


class TestEvaluateFitness:
    def test_writes_primary_and_resets_shadow(self):
        dominance, catalog, primary = _setup(3, [-0.2])
        manager = PloidyManager(switch_tick=1)
        manager.duplicate(primary)
        primary.genotypes[1, :, 0] = 1
        manager.shadow.genotypes[1, :, 0] = 1
        manager.shadow.agents['fitness'] = 0.3

        w = evaluate_fitness(primary, manager, catalog, dominance)
        np.testing.assert_allclose(w, [1.0, 0.8, 1.0])
        np.testing.assert_allclose(primary.agents['fitness'], w)
        np.testing.assert_array_equal(manager.shadow.agents['fitness'], 1.0)

    def test_individual_matches_population(self):
        dominance, catalog, primary = _setup(4, [-0.01, -0.001, -0.3])
        rng = np.random.default_rng(3)
        primary.genotypes[:] = rng.integers(0, 2, size=primary.genotypes.shape)
        manager = PloidyManager(switch_tick=1)
        manager.duplicate(primary)
        manager.shadow.genotypes[:] = rng.integers(0, 2, size=primary.genotypes.shape)
        w = population_fitness(primary, manager, catalog, dominance)
        for i in range(4):
            assert individual_fitness(i, primary, manager, catalog, dominance) == pytest.approx(w[i])

    def test_empty_inputs(self):
        dominance = FormulaDominance(H0, C)
        catalog = MutationCatalog(dominance)
        w = fitness_from_counts(np.zeros((3, 0)), np.zeros(0, dtype=np.intp), catalog, dominance, 2)
        np.testing.assert_array_equal(w, np.ones(3))
