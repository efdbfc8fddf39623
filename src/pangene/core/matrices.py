from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from pangene.core.clustering import ClusterTable

ABSENT_GENES = "-"


@dataclass(frozen=True, slots=True)
class PangenomeMatrices:
    """Cluster membership laid out as species (rows) x clusters (columns)."""

    species: tuple[str, ...]
    cluster_ids: tuple[str, ...]
    counts: np.ndarray
    genes: tuple[tuple[str, ...], ...]

    @property
    def presence(self) -> np.ndarray:
        return self.counts > 0

    def binary_strings(self) -> dict[str, str]:
        """One '1'/'0' flag per cluster for each species, in cluster order."""

        return {
            species: "".join("1" if present else "0" for present in row)
            for species, row in zip(self.species, self.presence)
        }


@dataclass(frozen=True, slots=True)
class POCPMatrix:
    """Percent of conserved proteins between every pair of genomes."""

    species: tuple[str, ...]
    shared: np.ndarray
    total_genes: np.ndarray

    def value(self, left: int, right: int) -> float | None:
        if left == right:
            return 100.0
        shared = self.shared[left, right]
        denominator = self.total_genes[left] + self.total_genes[right]
        if not shared or not denominator:
            return None
        return 100.0 * float(shared) / float(denominator)

    def percentages(self) -> list[list[float | None]]:
        size = len(self.species)
        return [[self.value(i, j) for j in range(size)] for i in range(size)]


def count_matrix(table: ClusterTable, species: Sequence[str]) -> np.ndarray:
    """Genes contributed by each species (rows) to each cluster (columns)."""

    counts = np.zeros((len(species), len(table)), dtype=np.int64)
    for col, cluster in enumerate(table):
        for row, species_id in enumerate(species):
            counts[row, col] = cluster.count(species_id)
    return counts


def count_core_clusters(table: ClusterTable, species: Sequence[str]) -> int:
    """Clusters holding genes from every selected species."""

    return sum(1 for cluster in table if all(cluster.count(species_id) for species_id in species))


def build_pangenome_matrices(table: ClusterTable, species: Sequence[str]) -> PangenomeMatrices:
    genes = tuple(
        tuple(",".join(cluster.genes(species_id)) or ABSENT_GENES for cluster in table)
        for species_id in species
    )
    return PangenomeMatrices(
        species=tuple(species),
        cluster_ids=table.cluster_ids,
        counts=count_matrix(table, species),
        genes=genes,
    )


def pocp_matrix(
    matrices: PangenomeMatrices,
    total_genes: Mapping[str, int],
) -> POCPMatrix:
    """Accumulate, for each pair of species, the genes both put in shared clusters.

    Every cluster holding species i and j adds count_i + count_j to cell (i, j)
    and to cell (j, i), so the percentage is taken over the sum of both genome
    sizes rather than their union.
    """

    counts = matrices.counts
    presence = matrices.presence.astype(np.int64)
    # sum over clusters of (c_i + c_j) * p_i * p_j; counts are zero where absent
    shared = counts @ presence.T + presence @ counts.T
    np.fill_diagonal(shared, 0)
    totals = np.array([total_genes.get(species_id, 0) for species_id in matrices.species], dtype=np.int64)
    return POCPMatrix(species=matrices.species, shared=shared, total_genes=totals)
