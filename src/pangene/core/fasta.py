from __future__ import annotations

import gzip
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from pangene.utils.io import check_overwrite, ensure_dir


@dataclass(frozen=True, slots=True)
class FastaRecord:
    """Simple FASTA record; `header` is the first token after `>`."""

    header: str
    sequence: str
    description: str = ""


def open_text(path: Path):
    if path.suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8")
    return path.open("r", encoding="utf-8")


def read_fasta_records(path: Path) -> list[FastaRecord]:
    """Read FASTA records, preserving order."""

    records: list[FastaRecord] = []
    header: str | None = None
    description = ""
    seq_chunks: list[str] = []

    with open_text(path) as handle:
        for raw_line in handle:
            line = raw_line.strip()
            if not line:
                continue
            if line.startswith(">"):
                if header is not None:
                    records.append(FastaRecord(header, "".join(seq_chunks), description))
                fields = line[1:].split(maxsplit=1)
                header = fields[0] if fields else ""
                description = fields[1] if len(fields) > 1 else ""
                seq_chunks = []
            else:
                seq_chunks.append(line)

    if header is not None:
        records.append(FastaRecord(header, "".join(seq_chunks), description))

    return records


def sequences_by_id(records: Iterable[FastaRecord]) -> dict[str, str]:
    """Map record ids to sequences; a repeated id keeps its first sequence."""

    sequences: dict[str, str] = {}
    for record in records:
        sequences.setdefault(record.header, record.sequence)
    return sequences


def write_fasta_records(
    path: Path,
    records: Iterable[FastaRecord],
    *,
    force: bool = False,
) -> Path:
    """Write FASTA records, one unwrapped sequence line each."""

    ensure_dir(path.parent)
    check_overwrite(path, force)
    with path.open("w", encoding="utf-8") as handle:
        for record in records:
            title = f"{record.header} {record.description}" if record.description else record.header
            handle.write(f">{title}\n")
            handle.write(f"{record.sequence}\n")

    return path
