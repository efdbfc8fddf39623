from __future__ import annotations

from dataclasses import replace

from pangene.core.homology import HomologyRecord
from pangene.core.homology_filter import (
    REJECT_GOC,
    REJECT_LOW_CONFIDENCE,
    REJECT_NOT_ORTHOLOG,
    REJECT_PARTNER_SPECIES,
    REJECT_WGA,
    FilterThresholds,
    accept_homology,
    rejection_reason,
)

SELECTED = {"spA", "spB"}


def _record(**overrides) -> HomologyRecord:
    base = HomologyRecord(
        gene="A1",
        protein="A1.p",
        species="spA",
        identity=80.0,
        homology_type="ortholog_one2one",
        hom_gene="B1",
        hom_protein="B1.p",
        hom_species="spB",
        hom_identity=80.0,
        dn=None,
        ds=None,
        goc_score=50.0,
        wga_coverage=60.0,
        high_confidence=True,
        homology_id="1",
    )
    return replace(base, **overrides)


def test_accepts_high_confidence_ortholog() -> None:
    assert accept_homology(_record(), SELECTED, FilterThresholds())


def test_rejects_partner_outside_selection() -> None:
    record = _record(hom_species="spZ")
    assert rejection_reason(record, SELECTED, FilterThresholds()) == REJECT_PARTNER_SPECIES


def test_low_confidence_flag_handling() -> None:
    for flag in (False, None):
        record = _record(high_confidence=flag)
        assert rejection_reason(record, SELECTED, FilterThresholds()) == REJECT_LOW_CONFIDENCE
        assert accept_homology(record, SELECTED, FilterThresholds(allow_low_confidence=True))


def test_wga_and_goc_thresholds_treat_missing_as_failing() -> None:
    assert rejection_reason(_record(wga_coverage=None), SELECTED, FilterThresholds(min_wga=50)) == REJECT_WGA
    assert rejection_reason(_record(wga_coverage=40.0), SELECTED, FilterThresholds(min_wga=50)) == REJECT_WGA
    assert rejection_reason(_record(goc_score=None), SELECTED, FilterThresholds(min_goc=25)) == REJECT_GOC
    assert rejection_reason(_record(goc_score=50.0), SELECTED, FilterThresholds(min_goc=75)) == REJECT_GOC

    # zero thresholds disable the checks entirely
    assert accept_homology(_record(wga_coverage=None, goc_score=None), SELECTED, FilterThresholds())


def test_checks_apply_in_order() -> None:
    record = _record(high_confidence=False, wga_coverage=None, homology_type="within_species_paralog")
    assert rejection_reason(record, SELECTED, FilterThresholds(min_wga=50)) == REJECT_LOW_CONFIDENCE
    assert (
        rejection_reason(record, SELECTED, FilterThresholds(min_wga=50, allow_low_confidence=True))
        == REJECT_WGA
    )
    assert rejection_reason(record, SELECTED, FilterThresholds(allow_low_confidence=True)) == REJECT_NOT_ORTHOLOG


def test_paralogs_are_never_accepted() -> None:
    for homology_type in ("within_species_paralog", "other_paralog", "gene_split"):
        assert not accept_homology(_record(homology_type=homology_type), SELECTED, FilterThresholds())
    assert accept_homology(_record(homology_type="ortholog_many2many"), SELECTED, FilterThresholds())


def test_raising_thresholds_never_accepts_more() -> None:
    records = [
        _record(goc_score=goc, wga_coverage=wga)
        for goc in (None, 0.0, 25.0, 50.0, 75.0, 100.0)
        for wga in (None, 0.0, 30.0, 60.0, 90.0)
    ]

    previous = len(records) + 1
    for threshold in (0, 25, 50, 75, 100):
        accepted = sum(
            accept_homology(record, SELECTED, FilterThresholds(min_goc=threshold, min_wga=threshold))
            for record in records
        )
        assert accepted <= previous
        previous = accepted
