from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from pangene.exceptions import PangeneUsageError

FASTA_SUFFIXES = (".fa", ".faa", ".fasta", ".fna", ".fa.gz", ".faa.gz", ".fasta.gz", ".fna.gz")
HOMOLOGY_SUFFIXES = (".tsv", ".tab", ".txt", ".tsv.gz", ".tab.gz", ".txt.gz")


@dataclass(frozen=True, slots=True)
class SpeciesInput:
    species_id: str
    homologies: Path
    sequences: Path


def _matches_suffix(path: Path, suffixes: Iterable[str]) -> bool:
    lowered = path.name.lower()
    return any(lowered.endswith(suffix) for suffix in suffixes)


def _resolve_manifest_path(base_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return path


def validate_existing_file(path: Path, label: str) -> None:
    if not path.exists():
        raise PangeneUsageError(f"{label} does not exist: {path}")
    if not path.is_file():
        raise PangeneUsageError(f"{label} is not a file: {path}")


def _read_manifest(path: Path) -> tuple[list[str], list[dict[str, str]]]:
    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle, delimiter="\t")
        if reader.fieldnames is None:
            raise PangeneUsageError(f"Manifest TSV has no header row: {path}")

        header = [name.strip() for name in reader.fieldnames]
        rows: list[dict[str, str]] = []
        for row in reader:
            normalized = {str(key).strip(): (value or "").strip() for key, value in row.items()}
            rows.append(normalized)

    return header, rows


def _require_columns(path: Path, header: list[str], required: set[str]) -> None:
    missing = required.difference(header)
    if missing:
        missing_cols = ", ".join(sorted(missing))
        raise PangeneUsageError(f"Missing required columns in {path}: {missing_cols}")


def validate_species_manifest(manifest_path: Path) -> list[SpeciesInput]:
    """Read species.tsv, keeping row order, and check every referenced file."""

    validate_existing_file(manifest_path, "species.tsv")
    header, rows = _read_manifest(manifest_path)
    _require_columns(manifest_path, header, {"species_id", "homologies", "sequences"})

    if not rows:
        raise PangeneUsageError(f"species.tsv has no data rows: {manifest_path}")

    observed: set[str] = set()
    records: list[SpeciesInput] = []
    for idx, row in enumerate(rows):
        species_id = row.get("species_id", "")
        homologies_raw = row.get("homologies", "")
        sequences_raw = row.get("sequences", "")

        if species_id == "":
            raise PangeneUsageError(f"Missing species_id at row {idx + 2} in {manifest_path}")
        if species_id in observed:
            raise PangeneUsageError(f"Duplicated species_id in species.tsv: {species_id}")
        observed.add(species_id)

        if homologies_raw == "":
            raise PangeneUsageError(f"Missing homologies at row {idx + 2} in {manifest_path}")
        if sequences_raw == "":
            raise PangeneUsageError(f"Missing sequences at row {idx + 2} in {manifest_path}")

        homologies = _resolve_manifest_path(manifest_path.parent, homologies_raw)
        validate_existing_file(homologies, f"Homology table for species `{species_id}`")
        if not _matches_suffix(homologies, HOMOLOGY_SUFFIXES):
            raise PangeneUsageError(
                f"Unsupported homology table extension for species `{species_id}`: {homologies}"
            )

        sequences = _resolve_manifest_path(manifest_path.parent, sequences_raw)
        validate_existing_file(sequences, f"FASTA for species `{species_id}`")
        if not _matches_suffix(sequences, FASTA_SUFFIXES):
            raise PangeneUsageError(f"Unsupported FASTA extension for species `{species_id}`: {sequences}")

        records.append(SpeciesInput(species_id=species_id, homologies=homologies, sequences=sequences))

    return records
