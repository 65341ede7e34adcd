"""Tests for wgd_load.reproduction — mating, recombination, new mutations."""

import numpy as np
import pytest

from wgd_load.config import GenomeSection, SelectionSection
from wgd_load.dominance import FormulaDominance
from wgd_load.mutations import MutationCatalog
from wgd_load.ploidy import PloidyManager
from wgd_load.population import Subpopulation
from wgd_load.reproduction import (
    apply_new_mutations,
    diploid_offspring,
    draw_breakpoints,
    make_gametes,
    recombine,
    sample_mates,
    tetraploid_offspring,
)

NO_RECOMB = GenomeSection(sequence_length=1000, recombination_rate=0.0)


class TestSampleMates:
    def test_never_self(self):
        rng = np.random.default_rng(0)
        focal = np.repeat(np.arange(20), 50)
        mates = sample_mates(focal, 20, rng)
        assert np.all(mates != focal)
        assert mates.min() >= 0
        assert mates.max() < 20

    def test_covers_everyone_else(self):
        rng = np.random.default_rng(0)
        mates = sample_mates(np.zeros(2000, dtype=np.int64), 5, rng)
        assert set(np.unique(mates)) == {1, 2, 3, 4}

    def test_selfing_allowed(self):
        rng = np.random.default_rng(0)
        focal = np.zeros(500, dtype=np.int64)
        mates = sample_mates(focal, 3, rng, exclude_self=False)
        assert 0 in set(mates)


class TestRecombination:
    def test_no_breakpoints_copies_first(self):
        a = np.array([1, 1, 1], dtype=np.uint8)
        b = np.zeros(3, dtype=np.uint8)
        np.testing.assert_array_equal(recombine(a, b, np.array([1, 5, 9]), np.zeros(0)), a)

    def test_single_crossover(self):
        a = np.array([1, 1, 1, 1], dtype=np.uint8)
        b = np.zeros(4, dtype=np.uint8)
        out = recombine(a, b, np.array([10, 20, 30, 40]), np.array([25]))
        np.testing.assert_array_equal(out, [1, 1, 0, 0])

    def test_breakpoint_at_position_switches_that_site(self):
        a = np.array([1, 1], dtype=np.uint8)
        b = np.zeros(2, dtype=np.uint8)
        out = recombine(a, b, np.array([10, 20]), np.array([20]))
        np.testing.assert_array_equal(out, [1, 0])

    def test_double_crossover(self):
        a = np.ones(3, dtype=np.uint8)
        b = np.zeros(3, dtype=np.uint8)
        out = recombine(a, b, np.array([10, 20, 30]), np.array([15, 25]))
        np.testing.assert_array_equal(out, [1, 0, 1])

    def test_draw_breakpoints_sorted(self):
        rng = np.random.default_rng(2)
        breaks = draw_breakpoints(rng, 10_000, 1e-3)
        assert np.all(np.diff(breaks) >= 0)
        assert np.all((breaks >= 1) & (breaks < 10_000))

    def test_gametes_without_recombination_are_parental(self):
        rng = np.random.default_rng(5)
        a = np.tile(np.array([1, 0, 1], dtype=np.uint8), (100, 1))
        b = np.tile(np.array([0, 1, 0], dtype=np.uint8), (100, 1))
        gametes = make_gametes(a, b, np.array([1, 2, 3]), NO_RECOMB, rng)
        from_a = np.all(gametes == a, axis=1)
        from_b = np.all(gametes == b, axis=1)
        assert np.all(from_a | from_b)
        assert from_a.any() and from_b.any()

    def test_gametes_switch_at_drawn_breakpoints(self):
        genome = GenomeSection(sequence_length=1000, recombination_rate=2e-3)
        positions = np.arange(0, 1000, 10)
        n = 200
        a = np.ones((n, positions.shape[0]), dtype=np.uint8)
        b = np.zeros((n, positions.shape[0]), dtype=np.uint8)
        gametes = make_gametes(a, b, positions, genome, np.random.default_rng(21))

        # Same seed, same draw order: start-copy coin flips, then one
        # breakpoint set per gamete
        replay = np.random.default_rng(21)
        swap = replay.random(n) < 0.5
        n_mosaic = 0
        for g in range(n):
            first, second = (b[g], a[g]) if swap[g] else (a[g], b[g])
            breaks = draw_breakpoints(replay, 1000, 2e-3)
            np.testing.assert_array_equal(
                gametes[g], recombine(first, second, positions, breaks)
            )
            before_first_break = positions < (breaks[0] if breaks.shape[0] else 1000)
            np.testing.assert_array_equal(gametes[g][before_first_break], first[before_first_break])
            n_switches = int(np.count_nonzero(np.diff(gametes[g].astype(np.int8))))
            assert n_switches <= breaks.shape[0]
            if 0 < gametes[g].sum() < positions.shape[0]:
                n_mosaic += 1
        assert n_mosaic > n // 2


class TestNewMutations:
    def test_columns_extended_everywhere(self):
        rng = np.random.default_rng(9)
        catalog = MutationCatalog(FormulaDominance(0.978, 50328.0))
        resident = Subpopulation.founders("primary", 4)
        offspring = [np.zeros((6, 2, 0), dtype=np.uint8)]
        genome = GenomeSection(sequence_length=1000, mutation_rate=1e-3)
        (out,), n_new = apply_new_mutations(
            offspring, [resident], catalog, genome, SelectionSection(), 1, rng
        )
        assert n_new > 0
        assert len(catalog) == n_new
        assert resident.n_mutations == n_new
        assert resident.genotypes.sum() == 0
        assert out.shape == (6, 2, n_new)
        # each new mutation sits on exactly one offspring copy
        np.testing.assert_array_equal(out.sum(axis=(0, 1)), np.ones(n_new))

    def test_zero_rate(self):
        rng = np.random.default_rng(9)
        catalog = MutationCatalog(FormulaDominance(0.978, 50328.0))
        offspring = [np.zeros((3, 2, 0), dtype=np.uint8)]
        genome = GenomeSection(mutation_rate=0.0)
        out, n_new = apply_new_mutations(offspring, [], catalog, genome, SelectionSection(), 1, rng)
        assert n_new == 0
        assert out[0].shape == (3, 2, 0)


class TestOffspring:
    def test_diploid_inherits_one_copy_from_each_parent(self):
        rng = np.random.default_rng(1)
        primary = Subpopulation.founders("primary", 2, n_mutations=2)
        primary.genotypes[0, :, 0] = 1   # mother homozygous for column 0
        primary.genotypes[1, :, 1] = 1   # father homozygous for column 1
        kids = diploid_offspring(
            primary, np.zeros(10, dtype=np.int64), np.ones(10, dtype=np.int64),
            np.array([100, 200]), NO_RECOMB, rng,
        )
        assert kids.shape == (10, 2, 2)
        np.testing.assert_array_equal(kids[:, 0, 0], 1)
        np.testing.assert_array_equal(kids[:, 1, 1], 1)
        np.testing.assert_array_equal(kids[:, 0, 1], 0)

    def test_tetraploid_offspring_draw_from_all_four_copies(self):
        rng = np.random.default_rng(1)
        primary = Subpopulation.founders("primary", 2, n_mutations=1)
        manager = PloidyManager(switch_tick=1)
        manager.duplicate(primary)
        manager.shadow.genotypes[0, 0, 0] = 1   # mutation on one shadow copy of parent 0

        n = 400
        first, second = tetraploid_offspring(
            primary, manager.shadow, np.zeros(n, dtype=np.int64), np.ones(n, dtype=np.int64),
            np.array([500]), NO_RECOMB, rng,
        )
        assert first.shape == second.shape == (n, 2, 1)
        # maternal copy carries it with probability 1/4 in each record
        carried_first = first[:, 0, 0].mean()
        carried_second = second[:, 0, 0].mean()
        assert 0.15 < carried_first < 0.35
        assert 0.15 < carried_second < 0.35
        # one copy of the parent can reach at most one of the two records
        assert not np.any((first[:, 0, 0] == 1) & (second[:, 0, 0] == 1))
        np.testing.assert_array_equal(first[:, 1, 0], 0)
