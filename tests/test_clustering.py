from __future__ import annotations

import logging

import pytest

from pangene.core.clustering import (
    REJECT_FOREIGN_SPECIES,
    ClusterBuilder,
    ClusterIndex,
    ClusterTable,
    build_cluster_table,
)
from pangene.core.homology_filter import REJECT_PARTNER_SPECIES, FilterThresholds
from pangene.core.matrices import count_core_clusters
from pangene.exceptions import ClusterInvariantError


def _membership(table: ClusterTable) -> dict[str, dict[str, list[str]]]:
    return {cluster.cluster_id: dict(cluster.members) for cluster in table}


def test_three_species_scenario(three_species_table: ClusterTable) -> None:
    assert _membership(three_species_table) == {
        "A1": {"A": ["A1"], "B": ["B1"], "C": ["C1"]},
        "A2": {"A": ["A2"], "B": ["B2"]},
        "A3": {"A": ["A3"]},
        "A4": {"A": ["A4"]},
        "B3": {"B": ["B3"]},
        "C2": {"C": ["C2"]},
    }
    assert three_species_table.cluster_ids == ("A1", "A2", "A3", "A4", "B3", "C2")


def test_every_gene_lands_in_exactly_one_cluster(three_species_table: ClusterTable) -> None:
    placed = [gene for cluster in three_species_table for genes in cluster.members.values() for gene in genes]
    expected = {"A1", "A2", "A3", "A4", "B1", "B2", "B3", "C1", "C2"}

    assert len(placed) == len(set(placed))
    assert set(placed) == expected
    for cluster in three_species_table:
        for genes in cluster.members.values():
            for gene in genes:
                assert three_species_table.cluster_of(gene) == cluster.cluster_id


def test_unlinked_gene_becomes_singleton_named_after_itself(three_species_table: ClusterTable) -> None:
    cluster = next(cluster for cluster in three_species_table if cluster.cluster_id == "B3")
    assert cluster.size == 1
    assert cluster.genes("B") == ("B3",)


def test_query_gene_adopts_partner_cluster(ortholog) -> None:
    builder = ClusterBuilder()
    builder.add_homology(ortholog("A1", "A", "B1", "B"))
    cluster_id = builder.add_homology(ortholog("C1", "C", "B1", "B"))

    table = builder.freeze()
    assert cluster_id == "A1"
    assert _membership(table) == {"A1": {"A": ["A1"], "B": ["B1"], "C": ["C1"]}}


def test_relation_between_formed_clusters_is_dropped(ortholog) -> None:
    builder = ClusterBuilder()
    builder.add_homology(ortholog("A1", "A", "B1", "B"))
    builder.add_homology(ortholog("C1", "C", "D1", "D"))
    builder.add_homology(ortholog("A1", "A", "D1", "D"))

    table = builder.freeze()
    assert _membership(table) == {
        "A1": {"A": ["A1"], "B": ["B1"]},
        "C1": {"C": ["C1"], "D": ["D1"]},
    }
    assert builder.stats.dropped_relations == 1


def test_placed_query_pulls_in_unplaced_partner(ortholog) -> None:
    builder = ClusterBuilder()
    builder.add_homology(ortholog("A1", "A", "B1", "B"))
    builder.add_homology(ortholog("A1", "A", "B2", "B"))

    table = builder.freeze()
    assert _membership(table) == {"A1": {"A": ["A1"], "B": ["B1", "B2"]}}
    assert table.clusters[0].inparalogues("B") == 1
    assert table.clusters[0].inparalogues("A") == 0


def test_record_order_decides_partition(ortholog) -> None:
    records = [ortholog("A1", "A", "B1", "B"), ortholog("A2", "A", "B2", "B"), ortholog("A1", "A", "B2", "B")]

    forward = build_cluster_table({"A": records}, {}, ["A", "B", "C"], FilterThresholds())
    backward = build_cluster_table({"A": list(reversed(records))}, {}, ["A", "B", "C"], FilterThresholds())

    assert len(forward) == 2
    assert len(backward) == 1


def test_rejected_records_do_not_cluster(ortholog) -> None:
    record = ortholog("A1", "A", "Z1", "Z")
    table = build_cluster_table({"A": [record]}, {"A": ["A1"]}, ["A"], FilterThresholds())

    assert _membership(table) == {"A1": {"A": ["A1"]}}


def test_singletons_added_in_sorted_order() -> None:
    builder = ClusterBuilder()
    assert builder.add_singletons("A", ["A3", "A1", "A2", "A1"]) == 3
    assert builder.freeze().cluster_ids == ("A1", "A2", "A3")


def test_index_refuses_second_assignment() -> None:
    index = ClusterIndex()
    index.assign("A1", "A1")
    with pytest.raises(ClusterInvariantError):
        index.assign("A1", "B7")


def test_frozen_builder_rejects_more_input(ortholog) -> None:
    builder = ClusterBuilder()
    builder.freeze()
    with pytest.raises(RuntimeError):
        builder.add_homology(ortholog("A1", "A", "B1", "B"))


def test_records_naming_another_species_are_skipped(ortholog, caplog: pytest.LogCaptureFixture) -> None:
    records = [ortholog("A1", "arabidopsis_thaliana", "B1", "B"), ortholog("A1", "arabidopsis_thaliana", "C1", "C")]

    with caplog.at_level(logging.WARNING, logger="pangene.clustering"):
        table = build_cluster_table(
            {"A": records},
            {"A": ["A1", "A2"], "B": ["B1"], "C": ["C1"]},
            ["A", "B", "C"],
            FilterThresholds(),
        )

    assert _membership(table) == {
        "A1": {"A": ["A1"]},
        "A2": {"A": ["A2"]},
        "B1": {"B": ["B1"]},
        "C1": {"C": ["C1"]},
    }
    assert count_core_clusters(table, ["A", "B", "C"]) == 0
    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "arabidopsis_thaliana" in warnings[0].getMessage()
    assert warnings[0].stage == "clustering"
    assert warnings[0].species == "A"


def test_consume_reports_rejections_by_reason(ortholog, tmp_path) -> None:
    builder = ClusterBuilder()
    source = tmp_path / "A.tsv"
    rejected = builder.consume(
        "A",
        [ortholog("A1", "A", "B1", "B"), ortholog("A2", "A", "Z1", "Z"), ortholog("A3", "spA", "B2", "B")],
        {"A", "B"},
        FilterThresholds(),
        source=source,
    )

    assert rejected == {REJECT_PARTNER_SPECIES: 1, REJECT_FOREIGN_SPECIES: 1}
    assert builder.stats.accepted == 1
    assert builder.index.get("B1") == "A1"
    assert "A3" not in builder.index
