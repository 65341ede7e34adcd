"""Tests for wgd_load.viz — figures render and save without a display."""

import matplotlib.pyplot as plt
import pytest

from wgd_load.config import default_config
from wgd_load.model import WgdSimulation
from wgd_load.viz import (
    plot_dfe_composition,
    plot_diversity,
    plot_dominance_curves,
    plot_load_dashboard,
    plot_mean_fitness,
)


@pytest.fixture(scope="module")
def result():
    config = default_config()
    config.simulation.n_generations = 20
    config.simulation.switch_generation = 10
    config.population.carrying_capacity = 30
    config.genome.sequence_length = 10_000
    config.genome.mutation_rate = 5e-5
    config.output.sample_interval = 2
    return WgdSimulation(config).run()


@pytest.mark.parametrize("plot", [
    plot_mean_fitness, plot_diversity, plot_dfe_composition, plot_load_dashboard,
])
def test_result_plots_save(plot, result, tmp_path):
    path = tmp_path / f"{plot.__name__}.png"
    fig = plot(result, save_path=str(path))
    assert isinstance(fig, plt.Figure)
    assert path.exists()
    plt.close(fig)


def test_dominance_curves(tmp_path):
    path = tmp_path / "dominance.png"
    fig = plot_dominance_curves(save_path=str(path))
    assert path.exists()
    assert len(fig.axes) == 1
    plt.close(fig)
