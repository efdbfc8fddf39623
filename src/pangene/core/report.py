"""Flat-file rendering of clusters, matrices and growth curves."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence

from pangene.core.clustering import ClusterTable
from pangene.core.fasta import FastaRecord, write_fasta_records
from pangene.core.matrices import PangenomeMatrices, POCPMatrix
from pangene.core.sampling import CompositionResult
from pangene.paths import OutputLayout
from pangene.utils.io import transpose_rows, write_text, write_tsv

VOID = "void"
NA = "NA"
SEQUENCE_EXTENSIONS = {"protein": ".faa", "cdna": ".fna"}


def _nonempty(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0


def _format_percent(value: float | None) -> str:
    if value is None:
        return NA
    if value == 100.0:
        return "100"
    return f"{value:.2f}"


def write_cluster_fastas(
    table: ClusterTable,
    sequences: Mapping[str, Mapping[str, str]],
    cluster_dir: Path,
    *,
    extension: str,
    force: bool = False,
) -> list[Path]:
    """One FASTA per cluster with members that have a known sequence."""

    written: list[Path] = []
    for cluster in table:
        records = [
            FastaRecord(header=gene, sequence=sequences[species][gene], description=f"[{species}]")
            for species, genes in cluster.members.items()
            for gene in genes
            if gene in sequences.get(species, {})
        ]
        if not records:
            continue
        written.append(
            write_fasta_records(cluster_dir / f"{cluster.cluster_id}{extension}", records, force=force)
        )
    return written


def render_cluster_list(table: ClusterTable, cluster_dir: Path) -> str:
    lines: list[str] = []
    for cluster in table:
        dnafile = f"{cluster.cluster_id}.fna"
        pepfile = f"{cluster.cluster_id}.faa"
        if not _nonempty(cluster_dir / dnafile):
            dnafile = VOID
        if not _nonempty(cluster_dir / pepfile):
            pepfile = VOID
        lines.append(
            f"cluster {cluster.cluster_id} size={cluster.size} taxa={cluster.n_species} "
            f"file: {dnafile} aminofile: {pepfile}"
        )
        for species, genes in cluster.members.items():
            lines.extend(f": {species}" for _ in genes)
    return "\n".join(lines) + "\n" if lines else ""


def write_cluster_list(table: ClusterTable, layout: OutputLayout, *, force: bool = False) -> Path:
    return write_text(layout.cluster_list, render_cluster_list(table, layout.cluster_dir), force=force)


def write_pocp_matrix(pocp: POCPMatrix, path: Path, *, force: bool = False) -> Path:
    rows = [
        [species, *(_format_percent(value) for value in values)]
        for species, values in zip(pocp.species, pocp.percentages())
    ]
    return write_tsv(path, ["genomes", *pocp.species], rows, force=force)


def _write_with_transpose(
    path: Path,
    transposed_path: Path,
    header: Sequence[str],
    rows: Sequence[Sequence[object]],
    *,
    force: bool,
) -> list[Path]:
    table = [list(header), *(list(row) for row in rows)]
    flipped = transpose_rows(table)
    return [
        write_tsv(path, table[0], table[1:], force=force),
        write_tsv(transposed_path, flipped[0], flipped[1:], force=force),
    ]


def write_pangenome_matrices(
    matrices: PangenomeMatrices,
    layout: OutputLayout,
    *,
    extension: str,
    force: bool = False,
) -> list[Path]:
    """Count matrix, gene matrix (each with a transpose) and the binary FASTA."""

    header = [f"source:{layout.cluster_dir}", *(f"{cluster_id}{extension}" for cluster_id in matrices.cluster_ids)]

    count_rows = [
        [species, *(int(value) for value in row)]
        for species, row in zip(matrices.species, matrices.counts)
    ]
    gene_rows = [[species, *row] for species, row in zip(matrices.species, matrices.genes)]

    paths = _write_with_transpose(
        layout.table("pangenome_matrix"),
        layout.table("pangenome_matrix", ".tr.tab"),
        header,
        count_rows,
        force=force,
    )
    paths += _write_with_transpose(
        layout.table("pangenome_matrix_genes"),
        layout.table("pangenome_matrix_genes", ".tr.tab"),
        header,
        gene_rows,
        force=force,
    )

    binary_records = [
        FastaRecord(header=species, sequence=bits) for species, bits in matrices.binary_strings().items()
    ]
    paths.append(write_fasta_records(layout.table("pangenome_matrix", ".fasta"), binary_records, force=force))
    return paths


def _boxplot_rows(trajectories: Sequence[Sequence[int]]) -> list[list[int]]:
    return [list(trajectory) for trajectory in trajectories]


def write_growth_tables(result: CompositionResult, layout: OutputLayout, *, force: bool = False) -> list[Path]:
    """Boxplot inputs (one row per sample) plus the per-step mean/sd table."""

    labels = [f"g{step + 1}" for step in range(len(result.species))]
    paths = [
        write_tsv(
            layout.table("pan_genome"),
            labels,
            _boxplot_rows([sample.pan for sample in result.samples]),
            force=force,
        ),
        write_tsv(
            layout.table("core_genome"),
            labels,
            _boxplot_rows([sample.core for sample in result.samples]),
            force=force,
        ),
    ]
    with_soft = result.soft_core_fraction is not None
    if with_soft:
        paths.append(
            write_tsv(
                layout.table("soft_core"),
                labels,
                _boxplot_rows([sample.soft_core or () for sample in result.samples]),
                force=force,
            )
        )

    header = ["genomes", "pan_mean", "pan_stddev", "core_mean", "core_stddev"]
    if with_soft:
        header += ["soft_core_mean", "soft_core_stddev"]

    rows: list[list[str]] = []
    for step in result.summary():
        row = [
            str(step.genomes),
            f"{step.pan_mean:.0f}",
            f"{step.pan_sd:.0f}",
            f"{step.core_mean:.0f}",
            f"{step.core_sd:.0f}",
        ]
        if with_soft:
            row += [f"{step.soft_core_mean:.0f}", f"{step.soft_core_sd:.0f}"]
        rows.append(row)
    paths.append(write_tsv(layout.table("pangenome_growth", ".tsv"), header, rows, force=force))
    return paths
