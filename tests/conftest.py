from __future__ import annotations

from typing import Callable

import pytest

from pangene.core.clustering import ClusterTable, build_cluster_table
from pangene.core.homology import HomologyRecord
from pangene.core.homology_filter import FilterThresholds


def _ortholog(protein: str, species: str, partner: str, partner_species: str) -> HomologyRecord:
    return HomologyRecord(
        gene=protein,
        protein=protein,
        species=species,
        identity=90.0,
        homology_type="ortholog_one2one",
        hom_gene=partner,
        hom_protein=partner,
        hom_species=partner_species,
        hom_identity=90.0,
        dn=None,
        ds=None,
        goc_score=None,
        wga_coverage=None,
        high_confidence=True,
        homology_id=f"{protein}-{partner}",
    )


@pytest.fixture
def ortholog() -> Callable[[str, str, str, str], HomologyRecord]:
    return _ortholog


@pytest.fixture
def three_species_table() -> ClusterTable:
    """A(4 genes), B(3), C(2) linked by A1-B1, B1-C1 and A2-B2."""

    records = {
        "A": [_ortholog("A1", "A", "B1", "B"), _ortholog("A2", "A", "B2", "B")],
        "B": [_ortholog("B1", "B", "A1", "A"), _ortholog("B1", "B", "C1", "C"), _ortholog("B2", "B", "A2", "A")],
        "C": [_ortholog("C1", "C", "B1", "B")],
    }
    genes = {
        "A": ["A1", "A2", "A3", "A4"],
        "B": ["B1", "B2", "B3"],
        "C": ["C1", "C2"],
    }
    return build_cluster_table(records, genes, ["A", "B", "C"], FilterThresholds())
