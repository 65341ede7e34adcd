"""WGD-Load visualization library.

Modules:
  - style: Dark theme colours and helpers
  - load: Fitness, diversity, DFE and dominance plots
"""

from wgd_load.viz.style import (  # noqa: F401
    CLASS_COLORS,
    DARK_BG,
    DARK_PANEL,
    DFE_COLORS,
    GRID_COLOR,
    PLOIDY_COLORS,
    TEXT_COLOR,
    apply_dark_theme,
    dark_figure,
    save_figure,
)

from wgd_load.viz.load import (  # noqa: F401
    plot_diversity,
    plot_dfe_composition,
    plot_dominance_curves,
    plot_load_dashboard,
    plot_mean_fitness,
)
