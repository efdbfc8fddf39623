from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from pangene.exceptions import PangeneUsageError


@dataclass(frozen=True, slots=True)
class Species:
    species_id: str
    total_genes: int
    position: int


def select_species(
    available: Sequence[str],
    *,
    reference: str,
    outgroup: str | None = None,
    ignore: Iterable[str] = (),
) -> list[str]:
    """Order the analysed species: reference first, outgroup last.

    Remaining species keep their input order; ignored ones are dropped.
    """

    ignored = set(ignore)
    known = set(available)

    if reference not in known:
        raise PangeneUsageError(f"Reference species not found among input species: {reference}")
    if reference in ignored:
        raise PangeneUsageError(f"Reference species cannot be ignored: {reference}")
    if outgroup is not None:
        if outgroup not in known:
            raise PangeneUsageError(f"Outgroup species not found among input species: {outgroup}")
        if outgroup in ignored:
            raise PangeneUsageError(f"Outgroup species cannot be ignored: {outgroup}")

    unknown_ignored = sorted(ignored - known)
    if unknown_ignored:
        raise PangeneUsageError(f"Ignored species not found among input species: {', '.join(unknown_ignored)}")

    middle = [
        species_id
        for species_id in available
        if species_id not in ignored and species_id not in (reference, outgroup)
    ]
    selected = [reference, *middle]
    if outgroup is not None:
        selected.append(outgroup)
    return selected


def resolve_inclusion_order(selected: Sequence[str], include_order: Sequence[str]) -> list[str] | None:
    """Validate a user-fixed inclusion order against the selected species."""

    if not include_order:
        return None

    order = list(include_order)
    duplicated = sorted({species_id for species_id in order if order.count(species_id) > 1})
    if duplicated:
        raise PangeneUsageError(f"Inclusion order repeats species: {', '.join(duplicated)}")

    unknown = sorted(set(order) - set(selected))
    if unknown:
        raise PangeneUsageError(f"Inclusion order names unselected species: {', '.join(unknown)}")

    missing = [species_id for species_id in selected if species_id not in set(order)]
    if missing:
        raise PangeneUsageError(f"Inclusion order is missing species: {', '.join(missing)}")

    return order


def build_species(selected: Sequence[str], total_genes: Mapping[str, int]) -> list[Species]:
    return [
        Species(species_id=species_id, total_genes=total_genes.get(species_id, 0), position=idx)
        for idx, species_id in enumerate(selected)
    ]
