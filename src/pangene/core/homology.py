"""Decoding of Compara-style pairwise homology tables.

Each line carries 15 tab-separated columns::

    gene_stable_id  protein_stable_id  species  identity  homology_type
    homology_gene_stable_id  homology_protein_stable_id  homology_species
    homology_identity  dn  ds  goc_score  wga_coverage  is_high_confidence
    homology_id

Missing values are written as ``NULL``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from pangene.core.fasta import open_text
from pangene.exceptions import MalformedRecordError
from pangene.logging import get_logger

N_COLUMNS = 15
NULL_VALUES = frozenset({"", "NULL", "NA", "\\N"})
HEADER_TOKENS = frozenset({"gene_stable_id", "gene"})
MAX_REPORTED_MALFORMED = 10


@dataclass(frozen=True, slots=True)
class HomologyRecord:
    gene: str
    protein: str
    species: str
    identity: float | None
    homology_type: str
    hom_gene: str
    hom_protein: str
    hom_species: str
    hom_identity: float | None
    dn: float | None
    ds: float | None
    goc_score: float | None
    wga_coverage: float | None
    high_confidence: bool | None
    homology_id: str


@dataclass(slots=True)
class ReadStats:
    lines: int = 0
    records: int = 0
    malformed: int = 0


def _optional_float(raw: str, field_name: str) -> float | None:
    value = raw.strip()
    if value in NULL_VALUES:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise MalformedRecordError(f"non-numeric {field_name}: {raw!r}") from exc


def _optional_flag(raw: str) -> bool | None:
    flag = _optional_float(raw, "high_confidence")
    if flag is None:
        return None
    return flag != 0


def _required(raw: str, field_name: str) -> str:
    value = raw.strip()
    if value in NULL_VALUES:
        raise MalformedRecordError(f"missing {field_name}")
    return value


def parse_homology_line(line: str) -> HomologyRecord:
    """Decode one table line into a HomologyRecord."""

    fields = line.rstrip("\r\n").split("\t")
    if len(fields) < N_COLUMNS:
        raise MalformedRecordError(f"expected {N_COLUMNS} columns, found {len(fields)}")

    return HomologyRecord(
        gene=_required(fields[0], "gene_stable_id"),
        protein=_required(fields[1], "protein_stable_id"),
        species=_required(fields[2], "species"),
        identity=_optional_float(fields[3], "identity"),
        homology_type=_required(fields[4], "homology_type"),
        hom_gene=_required(fields[5], "homology_gene_stable_id"),
        hom_protein=_required(fields[6], "homology_protein_stable_id"),
        hom_species=_required(fields[7], "homology_species"),
        hom_identity=_optional_float(fields[8], "homology_identity"),
        dn=_optional_float(fields[9], "dn"),
        ds=_optional_float(fields[10], "ds"),
        goc_score=_optional_float(fields[11], "goc_score"),
        wga_coverage=_optional_float(fields[12], "wga_coverage"),
        high_confidence=_optional_flag(fields[13]),
        homology_id=fields[14].strip(),
    )


def read_homology_records(path: Path, *, stats: ReadStats | None = None) -> Iterator[HomologyRecord]:
    """Stream records from a (optionally gzipped) homology table.

    Malformed lines are skipped and counted in ``stats``; the first few are
    reported as warnings with their line number.
    """

    logger = get_logger("pangene.homology")
    stats = stats if stats is not None else ReadStats()

    with open_text(path) as handle:
        for line_no, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            if line_no == 1 and line.split("\t", 1)[0].strip() in HEADER_TOKENS:
                continue
            stats.lines += 1
            try:
                record = parse_homology_line(line)
            except MalformedRecordError as exc:
                stats.malformed += 1
                if stats.malformed <= MAX_REPORTED_MALFORMED:
                    logger.warning(
                        "Skipping malformed homology record at %s:%d (%s)",
                        path.name,
                        line_no,
                        exc,
                        extra={"stage": "homology", "path": path, "line": line_no},
                    )
                continue
            stats.records += 1
            yield record

    if stats.malformed > MAX_REPORTED_MALFORMED:
        logger.warning(
            "%d malformed homology records skipped in %s",
            stats.malformed,
            path.name,
            extra={"stage": "homology", "path": path},
        )
