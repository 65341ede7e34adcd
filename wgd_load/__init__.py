"""WGD-Load: mutation load across a diploid → autotetraploid transition.

An individual-based forward simulation core:
  - Dominance model (h–s relationship; dosage-dependent dominance in tetraploids)
  - Ploidy transition manager (tetraploids as linked primary + shadow records)
  - Fitness evaluator (multiplicative, dominance-weighted)
  - Statistics aggregator (del. allele frequency, fixations, πN/πS, DFE, mean fitness)
"""

__version__ = "0.1.0"
