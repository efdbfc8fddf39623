from __future__ import annotations

from dataclasses import dataclass
from typing import Container

from pangene.core.homology import HomologyRecord

REJECT_PARTNER_SPECIES = "partner species not selected"
REJECT_LOW_CONFIDENCE = "low-confidence"
REJECT_WGA = "WGA coverage below threshold"
REJECT_GOC = "GOC score below threshold"
REJECT_NOT_ORTHOLOG = "not an ortholog"


@dataclass(frozen=True, slots=True)
class FilterThresholds:
    min_goc: float = 0
    min_wga: float = 0
    allow_low_confidence: bool = False


def is_ortholog(homology_type: str) -> bool:
    """True for ortholog subtypes such as ortholog_one2one or ortholog_one2many."""

    return "ortholog" in homology_type


def rejection_reason(
    record: HomologyRecord,
    selected_species: Container[str],
    thresholds: FilterThresholds,
) -> str | None:
    """Return why a record cannot be clustered, or None when it qualifies.

    Checks run in a fixed order and the first failing one is reported.
    """

    if record.hom_species not in selected_species:
        return REJECT_PARTNER_SPECIES

    if not thresholds.allow_low_confidence and not record.high_confidence:
        return REJECT_LOW_CONFIDENCE

    if thresholds.min_wga > 0 and (record.wga_coverage is None or record.wga_coverage < thresholds.min_wga):
        return REJECT_WGA

    if thresholds.min_goc > 0 and (record.goc_score is None or record.goc_score < thresholds.min_goc):
        return REJECT_GOC

    if not is_ortholog(record.homology_type):
        return REJECT_NOT_ORTHOLOG

    return None


def accept_homology(
    record: HomologyRecord,
    selected_species: Container[str],
    thresholds: FilterThresholds,
) -> bool:
    return rejection_reason(record, selected_species, thresholds) is None
