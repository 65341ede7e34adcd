"""Tests for wgd_load.rng — seeded per-process streams and checkpointing."""

import numpy as np
import pytest

from wgd_load.rng import (
    STREAM_NAMES,
    create_rng_streams,
    restore_rng_state,
    rng_state_snapshot,
)


class TestCreateRngStreams:
    def test_one_stream_per_process(self):
        rngs = create_rng_streams(42)
        assert set(rngs) == set(STREAM_NAMES)

    def test_streams_are_independent(self):
        rngs = create_rng_streams(42)
        vals = {name: rng.random() for name, rng in rngs.items()}
        assert len(set(vals.values())) == len(vals)

    def test_reproducibility(self):
        a = create_rng_streams(42)
        b = create_rng_streams(42)
        for name in STREAM_NAMES:
            np.testing.assert_array_equal(a[name].random(100), b[name].random(100))

    def test_draws_do_not_leak_across_streams(self):
        a = create_rng_streams(5)
        b = create_rng_streams(5)
        a['mutation'].random(1000)
        np.testing.assert_array_equal(a['mating'].random(10), b['mating'].random(10))

    def test_negative_seed(self):
        with pytest.raises(ValueError):
            create_rng_streams(-1)


class TestCheckpointing:
    def test_snapshot_restore(self):
        rngs = create_rng_streams(3)
        snap = rng_state_snapshot(rngs)
        first = rngs['mortality'].random(5)
        restore_rng_state(rngs, snap)
        np.testing.assert_array_equal(rngs['mortality'].random(5), first)

    def test_unknown_stream(self):
        rngs = create_rng_streams(3)
        with pytest.raises(KeyError):
            restore_rng_state(rngs, {'spawning': rngs['mating'].bit_generator.state})
