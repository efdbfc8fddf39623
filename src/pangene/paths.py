from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class OutputLayout:
    root: Path
    cluster_dir: Path
    params: str

    @property
    def cluster_list(self) -> Path:
        return self.root / f"{self.cluster_dir.name}.cluster_list"

    def table(self, stem: str, suffix: str = ".tab") -> Path:
        return self.root / f"{stem}{self.params}{suffix}"


def sanitize_identifier(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", value.strip())
    return cleaned.strip("_") or "unknown"


def parameter_suffix(*, min_goc: int, min_wga: int, allow_low_confidence: bool) -> str:
    """Filename tag recording which ortholog filters were applied."""

    suffix = ""
    if min_goc:
        suffix += f"_GOC{min_goc}"
    if min_wga:
        suffix += f"_WGA{min_wga}"
    if allow_low_confidence:
        suffix += "_LC"
    return suffix


def cluster_dir_name(
    *,
    reference: str,
    clade: str,
    params: str,
    outgroup: str | None = None,
) -> str:
    name = reference.replace("_", "")
    if outgroup:
        name += f"_plus_{outgroup}"
    name += f"_{sanitize_identifier(clade)}_algEnsemblCompara"
    return name + params


def create_output_layout(outdir: Path, *, cluster_dir: str, params: str) -> OutputLayout:
    root = outdir
    clusters = root / cluster_dir

    for path in (root, clusters):
        path.mkdir(parents=True, exist_ok=True)

    return OutputLayout(root=root, cluster_dir=clusters, params=params)
