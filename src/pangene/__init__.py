"""Pan-genome clustering and growth analysis from pairwise ortholog calls."""

__version__ = "0.1.0"
