from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterable, Sequence

from pangene.exceptions import PangeneUsageError


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def check_overwrite(path: Path, force: bool) -> None:
    if path.exists() and not force:
        raise PangeneUsageError(f"Refusing to overwrite existing file without --force: {path}")


def write_text(path: Path, content: str, *, force: bool = False) -> Path:
    ensure_dir(path.parent)
    check_overwrite(path, force)
    path.write_text(content, encoding="utf-8")
    return path


def write_tsv(
    path: Path,
    header: Sequence[Any],
    rows: Iterable[Sequence[Any]],
    *,
    force: bool = False,
) -> Path:
    ensure_dir(path.parent)
    check_overwrite(path, force)

    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle, delimiter="\t", lineterminator="\n")
        writer.writerow(header)
        for row in rows:
            writer.writerow(list(row))

    return path


def transpose_rows(rows: Sequence[Sequence[Any]]) -> list[list[Any]]:
    """Swap rows and columns of a rectangular table (header row included)."""

    if not rows:
        return []
    width = len(rows[0])
    for idx, row in enumerate(rows):
        if len(row) != width:
            raise ValueError(f"Cannot transpose ragged table: row {idx} has {len(row)} cells, expected {width}")
    return [list(column) for column in zip(*rows)]
