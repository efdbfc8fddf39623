"""Clustering, matrix and growth-sampling engine."""

from pangene.core.clustering import Cluster, ClusterBuilder, ClusterTable
from pangene.core.homology import HomologyRecord
from pangene.core.homology_filter import FilterThresholds, accept_homology
from pangene.core.sampling import CompositionResult, CompositionSampler

__all__ = [
    "Cluster",
    "ClusterBuilder",
    "ClusterTable",
    "CompositionResult",
    "CompositionSampler",
    "FilterThresholds",
    "HomologyRecord",
    "accept_homology",
]
