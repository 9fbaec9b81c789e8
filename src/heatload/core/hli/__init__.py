"""
Heat Load Index module for Heatload.

This module turns terrain derivatives into heat load products:
- HLI transform (McCune & Keon 2002)
- Block-mean aggregation to coarser resolutions
- Quartile classification per resolution
- Zonal median summaries onto management-unit polygons
"""

from heatload.core.hli.index import (
    MCCUNE_KEON_2002,
    HeatLoadCalculator,
    HLICoefficients,
    calculate_hli,
    fold_aspect,
    hli_from_medians,
)
from heatload.core.hli.aggregation import (
    MultiResolutionAggregator,
    aggregation_factor,
    block_mean,
)
from heatload.core.hli.classification import (
    QUARTILE_PROBABILITIES,
    QuartileClassifier,
    class_distribution,
    classify,
    compute_quartile_breaks,
)
from heatload.core.hli.zonal import ZonalSummarizer

__all__ = [
    "MCCUNE_KEON_2002",
    "HeatLoadCalculator",
    "HLICoefficients",
    "calculate_hli",
    "fold_aspect",
    "hli_from_medians",
    "MultiResolutionAggregator",
    "aggregation_factor",
    "block_mean",
    "QUARTILE_PROBABILITIES",
    "QuartileClassifier",
    "class_distribution",
    "classify",
    "compute_quartile_breaks",
    "ZonalSummarizer",
]
