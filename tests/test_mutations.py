"""Tests for wgd_load.mutations — catalog, DFE draws, loss/fixation."""

import numpy as np
import pytest

from wgd_load.config import GenomeSection, SelectionSection
from wgd_load.dominance import FixedVectorDominance, FormulaDominance
from wgd_load.mutations import MutationCatalog, draw_selection_coefficients
from wgd_load.types import MutationClass


@pytest.fixture
def catalog():
    return MutationCatalog(FormulaDominance(0.978, 50328.0))


class TestSelectionCoefficients:
    def test_gamma_mean(self):
        rng = np.random.default_rng(1)
        s = draw_selection_coefficients(200_000, SelectionSection(), rng)
        assert np.all(s <= 0)
        assert s.mean() == pytest.approx(-0.01314833, rel=0.05)

    def test_fixed(self):
        rng = np.random.default_rng(1)
        s = draw_selection_coefficients(5, SelectionSection(dfe="fixed", fixed_s=-0.02), rng)
        np.testing.assert_array_equal(s, np.full(5, -0.02))


class TestCatalog:
    def test_add_assigns_columns_and_ids(self, catalog):
        cols = catalog.add([1, 0], [10, 20], [-0.1, 0.0], tick=3)
        np.testing.assert_array_equal(cols, [0, 1])
        more = catalog.add([1], [30], [-0.2], tick=4)
        np.testing.assert_array_equal(more, [2])
        np.testing.assert_array_equal(catalog.mutation_id, [0, 1, 2])
        assert len(catalog) == 3

    def test_add_rejects_ragged_input(self, catalog):
        with pytest.raises(ValueError):
            catalog.add([1, 1], [10], [-0.1, -0.2], tick=0)

    def test_class_queries(self, catalog):
        catalog.add([1, 0, 1, 0], [1, 2, 3, 4], [-0.1, 0.0, -0.2, 0.0], tick=0)
        np.testing.assert_array_equal(catalog.deleterious_columns(), [0, 2])
        np.testing.assert_array_equal(catalog.neutral_columns(), [1, 3])

    def test_record_is_immutable_view(self, catalog):
        catalog.add([MutationClass.DELETERIOUS], [55], [-0.01], tick=9)
        rec = catalog.record(0)
        assert rec.is_deleterious
        assert rec.position == 55
        assert rec.origin_tick == 9
        assert len(rec.dominance_2) == 3
        assert len(rec.dominance_4) == 5
        with pytest.raises(AttributeError):
            rec.s = -0.5

    def test_draw_new_respects_fractions(self, catalog):
        rng = np.random.default_rng(4)
        genome = GenomeSection(sequence_length=100, neutral_fraction=1.0, deleterious_fraction=0.0)
        cols = catalog.draw_new(50, genome, SelectionSection(), tick=1, rng=rng)
        assert cols.shape == (50,)
        assert len(catalog.deleterious_columns()) == 0
        np.testing.assert_array_equal(catalog.s, 0.0)
        assert np.all((catalog.position >= 0) & (catalog.position < 100))

    def test_draw_new_zero(self, catalog):
        rng = np.random.default_rng(4)
        assert catalog.draw_new(0, GenomeSection(), SelectionSection(), 1, rng).shape == (0,)
        assert len(catalog) == 0

    def test_retire(self, catalog):
        catalog.add([1, 1, 0, 1], [1, 2, 3, 4], [-0.1, -0.2, 0.0, -0.3], tick=0)
        keep = catalog.retire(
            lost=np.array([True, False, False, False]),
            fixed=np.array([False, False, True, True]),
            tick=12,
        )
        np.testing.assert_array_equal(keep, [False, True, False, False])
        np.testing.assert_array_equal(catalog.mutation_id, [1])
        assert catalog.n_substituted() == 2
        assert catalog.n_substituted(MutationClass.DELETERIOUS) == 1
        assert catalog.substitutions[0].fixation_tick == 12

    def test_fixed_vector_stamp(self):
        catalog = MutationCatalog(FixedVectorDominance([0, 1, 1], [0, 1, 1, 1, 1]))
        catalog.add([1, 0], [1, 2], [-0.01, 0.0], tick=0)
        np.testing.assert_array_equal(catalog.dominance_4, [[0, 1, 1, 1, 1], [0, 0, 0, 0, 0]])
