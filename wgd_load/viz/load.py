"""Mutation-load visualizations for WGD-Load.

Every function:
  - Accepts a SimulationResult (or plain arrays) as input
  - Returns a matplotlib Figure
  - Has an optional ``save_path`` parameter (saves PNG when given)
  - Uses the shared dark theme from ``wgd_load.viz.style``

matplotlib backend is forced to Agg (no display) on import.
"""

from __future__ import annotations

import matplotlib
matplotlib.use('Agg')

from typing import Optional, Sequence, TYPE_CHECKING

import matplotlib.pyplot as plt
import numpy as np

from wgd_load.dominance import dosage_dominance, huber_dominance
from wgd_load.types import DFE_BREAKS
from wgd_load.viz.style import (
    CLASS_COLORS,
    DARK_PANEL,
    DFE_COLORS,
    GRID_COLOR,
    PLOIDY_COLORS,
    TEXT_COLOR,
    dark_figure,
    mark_switch,
    save_figure,
)

if TYPE_CHECKING:
    from wgd_load.model import SimulationResult


def _legend(ax, **kwargs):
    ax.legend(facecolor=DARK_PANEL, edgecolor=GRID_COLOR,
              labelcolor=TEXT_COLOR, fontsize=9, **kwargs)


def _dfe_labels():
    edges = ['0'] + [f'{b:g}' for b in DFE_BREAKS] + ['∞']
    return [f'|s| ∈ [{lo}, {hi})' for lo, hi in zip(edges[:-1], edges[1:])]


def plot_mean_fitness(
    result: 'SimulationResult',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Mean population fitness at every sampled tick, coloured by ploidy."""
    ticks = result.ticks
    fitness = result.series('mean_fitness')
    ploidy = result.series('ploidy')
    fig, ax = dark_figure()

    for level in (2, 4):
        mask = ploidy == level
        if np.any(mask):
            ax.plot(ticks[mask], fitness[mask], 'o-', color=PLOIDY_COLORS[level],
                    markersize=3, linewidth=1.5, label=f'{level}x')
    if result.duplicated:
        mark_switch(ax, result.switch_tick)

    ax.set_xlabel('Generation', fontsize=12)
    ax.set_ylabel('Mean fitness', fontsize=12)
    ax.set_title('Mean Population Fitness', fontsize=14, fontweight='bold')
    _legend(ax, loc='lower left')

    if save_path:
        save_figure(fig, save_path)
    return fig


def plot_diversity(
    result: 'SimulationResult',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """πN and πS over time (left) and πN/πS (right)."""
    ticks = result.ticks
    pi_n = result.series('pi_n')
    pi_s = result.series('pi_s')
    fig, (ax1, ax2) = dark_figure(1, 2, figsize=(14, 5))

    ax1.plot(ticks, pi_n, color=CLASS_COLORS['deleterious'], linewidth=1.5, label='πN')
    ax1.plot(ticks, pi_s, color=CLASS_COLORS['neutral'], linewidth=1.5, label='πS')
    ax1.set_xlabel('Generation', fontsize=12)
    ax1.set_ylabel('Nucleotide diversity per site', fontsize=12)
    ax1.set_title('Diversity by Mutation Class', fontsize=14, fontweight='bold')

    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = np.where(pi_s > 0, pi_n / pi_s, np.nan)
    ax2.plot(ticks, ratio, color=TEXT_COLOR, linewidth=1.5)
    ax2.set_xlabel('Generation', fontsize=12)
    ax2.set_ylabel('πN / πS', fontsize=12)
    ax2.set_title('Efficacy of Purifying Selection', fontsize=14, fontweight='bold')

    if result.duplicated:
        mark_switch(ax1, result.switch_tick)
        mark_switch(ax2, result.switch_tick)
    _legend(ax1, loc='upper left')

    if save_path:
        save_figure(fig, save_path)
    return fig


def plot_dfe_composition(
    result: 'SimulationResult',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Stacked counts of segregating deleterious mutations per |s| bin."""
    ticks = result.ticks
    dfe = np.array([r.dfe for r in result.records])
    fig, ax = dark_figure()

    if len(result.records) > 0:
        ax.stackplot(ticks, dfe.T, colors=DFE_COLORS, labels=_dfe_labels(), alpha=0.85)
    if result.duplicated:
        mark_switch(ax, result.switch_tick)

    ax.set_xlabel('Generation', fontsize=12)
    ax.set_ylabel('Segregating deleterious mutations', fontsize=12)
    ax.set_title('Segregating DFE Composition', fontsize=14, fontweight='bold')
    _legend(ax, loc='upper left')

    if save_path:
        save_figure(fig, save_path)
    return fig


def plot_dominance_curves(
    s_values: Sequence[float] = (-0.0001, -0.001, -0.01, -0.1),
    h_intercept: float = 0.978,
    h_rate: float = 50328.0,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Dosage-dependent dominance h_x against dosage for several s.

    Markers show the three intermediate tetraploid dosages (1/4, 2/4, 3/4).
    """
    x = np.linspace(0.0, 1.0, 201)
    fig, ax = dark_figure()

    for color, s in zip(DFE_COLORS[1:] + DFE_COLORS[:1], s_values):
        h = huber_dominance(s, h_intercept, h_rate)
        ax.plot(x, dosage_dominance(h, x), color=color, linewidth=1.8,
                label=f's = {s:g} (h = {h:.3g})')
        dosages = np.array([0.25, 0.5, 0.75])
        ax.plot(dosages, dosage_dominance(h, dosages), 'o', color=color, markersize=5)

    ax.plot([0, 1], [0, 1], '--', color=GRID_COLOR, linewidth=1.0)
    ax.set_xlabel('Mutant dosage (copies / ploidy)', fontsize=12)
    ax.set_ylabel('Dominance weight $h_x$', fontsize=12)
    ax.set_title('Dosage-Dependent Dominance', fontsize=14, fontweight='bold')
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    _legend(ax, loc='upper left')

    if save_path:
        save_figure(fig, save_path)
    return fig


def plot_load_dashboard(
    result: 'SimulationResult',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """2×2 summary: fitness, deleterious frequency, fixations, population size."""
    ticks = result.ticks
    fig, axes = dark_figure(2, 2, figsize=(14, 10))
    panels = [
        ('mean_fitness', 'Mean fitness', CLASS_COLORS['deleterious']),
        ('del_freq', 'Mean deleterious allele frequency', '#f39c12'),
        ('del_fix', 'Fixed deleterious mutations', '#533483'),
        ('n', 'Population size', CLASS_COLORS['neutral']),
    ]
    for ax, (name, label, color) in zip(axes.flat, panels):
        ax.plot(ticks, result.series(name), color=color, linewidth=1.5)
        ax.set_xlabel('Generation', fontsize=11)
        ax.set_ylabel(label, fontsize=11)
        if result.duplicated:
            mark_switch(ax, result.switch_tick)
    fig.suptitle('Mutation Load Across the Ploidy Switch', color=TEXT_COLOR,
                 fontsize=15, fontweight='bold')

    if save_path:
        save_figure(fig, save_path)
    return fig
