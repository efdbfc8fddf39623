"""Single-pass ortholog clustering.

Records are consumed in order and each gene is placed at most once:

* an unplaced query gene joins the cluster of its partner when the partner is
  already placed, otherwise it opens a new cluster named after itself;
* an unplaced partner joins the query gene's cluster;
* a relation between two genes already placed in different clusters is
  dropped. Clusters are never merged, so the final partition depends on the
  order in which records arrive.

Genes never reached by an accepted record become singleton clusters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Container, Iterable, Iterator, Mapping, Sequence

from pangene.core.homology import HomologyRecord
from pangene.core.homology_filter import REJECT_LOW_CONFIDENCE, FilterThresholds, rejection_reason
from pangene.exceptions import ClusterInvariantError
from pangene.logging import get_logger

REJECT_FOREIGN_SPECIES = "species column does not match table species"


@dataclass(slots=True)
class Cluster:
    """Genes of one orthogroup, grouped by species in arrival order."""

    cluster_id: str
    members: dict[str, list[str]] = field(default_factory=dict)

    def add(self, species: str, gene: str) -> None:
        self.members.setdefault(species, []).append(gene)

    @property
    def size(self) -> int:
        return sum(len(genes) for genes in self.members.values())

    @property
    def n_species(self) -> int:
        return len(self.members)

    def genes(self, species: str) -> tuple[str, ...]:
        return tuple(self.members.get(species, ()))

    def count(self, species: str) -> int:
        return len(self.members.get(species, ()))

    def inparalogues(self, species: str) -> int:
        """Extra copies a species contributes beyond the first."""

        return max(self.count(species) - 1, 0)


class ClusterIndex:
    """Gene id -> cluster id; a gene can be assigned only once."""

    def __init__(self) -> None:
        self._owner: dict[str, str] = {}

    def __contains__(self, gene: object) -> bool:
        return gene in self._owner

    def __len__(self) -> int:
        return len(self._owner)

    def get(self, gene: str) -> str | None:
        return self._owner.get(gene)

    def assign(self, gene: str, cluster_id: str) -> None:
        current = self._owner.get(gene)
        if current is not None:
            raise ClusterInvariantError(
                f"Gene {gene} already belongs to cluster {current}; refusing to add it to {cluster_id}"
            )
        self._owner[gene] = cluster_id

    def as_dict(self) -> dict[str, str]:
        return dict(self._owner)


@dataclass(frozen=True, slots=True)
class ClusterTable:
    """Read-only result of a clustering pass, in cluster creation order."""

    clusters: tuple[Cluster, ...]
    owner: Mapping[str, str]

    def __iter__(self) -> Iterator[Cluster]:
        return iter(self.clusters)

    def __len__(self) -> int:
        return len(self.clusters)

    @property
    def cluster_ids(self) -> tuple[str, ...]:
        return tuple(cluster.cluster_id for cluster in self.clusters)

    def cluster_of(self, gene: str) -> str | None:
        return self.owner.get(gene)


@dataclass(slots=True)
class ClusteringStats:
    accepted: int = 0
    new_clusters: int = 0
    dropped_relations: int = 0
    singletons: dict[str, int] = field(default_factory=dict)


class ClusterBuilder:
    """Owns the ClusterIndex for the duration of one clustering pass."""

    def __init__(self) -> None:
        self.index = ClusterIndex()
        self.stats = ClusteringStats()
        self._clusters: dict[str, Cluster] = {}
        self._frozen = False
        self._logger = get_logger("pangene.clustering")

    def _open_cluster(self, cluster_id: str) -> Cluster:
        if cluster_id in self._clusters:
            raise ClusterInvariantError(f"Cluster id {cluster_id} is already in use")
        cluster = Cluster(cluster_id=cluster_id)
        self._clusters[cluster_id] = cluster
        self.stats.new_clusters += 1
        return cluster

    def _place(self, gene: str, species: str, cluster_id: str) -> None:
        self.index.assign(gene, cluster_id)
        self._clusters[cluster_id].add(species, gene)

    def _check_open(self) -> None:
        if self._frozen:
            raise RuntimeError("ClusterBuilder is frozen; start a new pass instead")

    def add_homology(self, record: HomologyRecord) -> str:
        """Place both genes of an accepted record; returns the cluster id used."""

        self._check_open()
        self.stats.accepted += 1
        gene, partner = record.protein, record.hom_protein

        cluster_id = self.index.get(gene)
        if cluster_id is None:
            cluster_id = self.index.get(partner)
            if cluster_id is None:
                cluster_id = self._open_cluster(gene).cluster_id
            self._place(gene, record.species, cluster_id)

        partner_cluster = self.index.get(partner)
        if partner_cluster is None:
            self._place(partner, record.hom_species, cluster_id)
        elif partner_cluster != cluster_id:
            self.stats.dropped_relations += 1
            self._logger.debug(
                "Dropping %s-%s: genes already in clusters %s and %s",
                gene,
                partner,
                cluster_id,
                partner_cluster,
            )

        return cluster_id

    def consume(
        self,
        species_id: str,
        records: Iterable[HomologyRecord],
        selected_species: Container[str],
        thresholds: FilterThresholds,
        *,
        source: Path | None = None,
    ) -> dict[str, int]:
        """Filter and place the records of one species' homology table.

        Records whose species column is not `species_id` are skipped and
        reported. Returns rejection counts keyed by reason.
        """

        self._check_open()
        rejected: dict[str, int] = {}
        foreign: set[str] = set()
        for record in records:
            if record.species != species_id:
                reason: str | None = REJECT_FOREIGN_SPECIES
                foreign.add(record.species)
            else:
                reason = rejection_reason(record, selected_species, thresholds)
            if reason is None:
                self.add_homology(record)
                continue
            rejected[reason] = rejected.get(reason, 0) + 1
            if reason == REJECT_LOW_CONFIDENCE:
                self._logger.debug("skip %s,%s due to low-confidence", record.protein, record.hom_protein)

        if foreign:
            self._logger.warning(
                "%s: skipped %d records whose species column names %s instead of %s (%s)",
                species_id,
                rejected[REJECT_FOREIGN_SPECIES],
                ", ".join(sorted(foreign)),
                species_id,
                source if source is not None else "in-memory records",
                extra={
                    "stage": "clustering",
                    "species": species_id,
                    "path": str(source) if source is not None else None,
                },
            )
        return rejected

    def add_singletons(self, species: str, genes: Iterable[str]) -> int:
        """Open one cluster per gene of `species` not placed yet, in sorted order."""

        self._check_open()
        added = 0
        for gene in sorted(set(genes)):
            if gene in self.index:
                continue
            self._open_cluster(gene)
            self._place(gene, species, gene)
            added += 1
        self.stats.singletons[species] = self.stats.singletons.get(species, 0) + added
        return added

    def freeze(self) -> ClusterTable:
        """End the pass, verify the partition and hand out a read-only table."""

        self._frozen = True
        owner = self.index.as_dict()
        placed = 0
        for cluster in self._clusters.values():
            for genes in cluster.members.values():
                for gene in genes:
                    placed += 1
                    if owner.get(gene) != cluster.cluster_id:
                        raise ClusterInvariantError(
                            f"Gene {gene} listed in cluster {cluster.cluster_id} "
                            f"but indexed under {owner.get(gene)}"
                        )
        if placed != len(owner):
            raise ClusterInvariantError(
                f"{placed} gene placements recorded for {len(owner)} indexed genes"
            )
        return ClusterTable(clusters=tuple(self._clusters.values()), owner=owner)


def build_cluster_table(
    records_by_species: Mapping[str, Iterable[HomologyRecord]],
    genes_by_species: Mapping[str, Iterable[str]],
    species: Sequence[str],
    thresholds: FilterThresholds,
) -> ClusterTable:
    """Run a full clustering pass over in-memory inputs.

    Species are processed in the given order, records within a species in
    iteration order; unplaced genes are then added as singletons.
    """

    selected = set(species)
    builder = ClusterBuilder()
    for species_id in species:
        builder.consume(species_id, records_by_species.get(species_id, ()), selected, thresholds)
    for species_id in species:
        builder.add_singletons(species_id, genes_by_species.get(species_id, ()))
    return builder.freeze()
