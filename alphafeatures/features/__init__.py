"""Isotope envelope clustering.

This module provides:
- Poisson isotope abundance model and KL divergence scores
- Envelope scoring for a candidate m/z and charge
- Spatial peak index and peak ownership table
- Greedy clustering of peaks into charge-resolved features
- Post-hoc feature selection
"""

from .isotope_model import (
    POISSON_TABLE,
    build_poisson_table,
    convert_mz_to_mass,
    kl_divergence,
    kl_divergence_symmetric,
    kl_poisson_distance,
    poisson_distribution,
    poisson_row,
)

from .scoring import (
    FeatureScorer,
    closest_peak,
)

from .clustering import (
    IsotopeClusterer,
    PeakIndex,
    PeakOwnership,
    cluster_peaks,
    determine_best_feature,
    distance_nearest_fraction,
)

from ..models import FeatureSelector

__all__ = [
    # Isotope model
    'POISSON_TABLE',
    'build_poisson_table',
    'convert_mz_to_mass',
    'kl_divergence',
    'kl_divergence_symmetric',
    'kl_poisson_distance',
    'poisson_distribution',
    'poisson_row',

    # Scoring
    'FeatureScorer',
    'closest_peak',

    # Clustering
    'IsotopeClusterer',
    'PeakIndex',
    'PeakOwnership',
    'cluster_peaks',
    'determine_best_feature',
    'distance_nearest_fraction',

    # Selection
    'FeatureSelector',
]
