from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich import box
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from pangene.config import AnalyzeConfig, merge_command_config
from pangene.core.clustering import ClusterBuilder, ClusterTable
from pangene.core.fasta import read_fasta_records, sequences_by_id
from pangene.core.homology import ReadStats, read_homology_records
from pangene.core.homology_filter import FilterThresholds
from pangene.core.matrices import build_pangenome_matrices, count_core_clusters, pocp_matrix
from pangene.core.report import (
    SEQUENCE_EXTENSIONS,
    write_cluster_fastas,
    write_cluster_list,
    write_growth_tables,
    write_pangenome_matrices,
    write_pocp_matrix,
)
from pangene.core.sampling import CompositionResult, CompositionSampler, max_permutations
from pangene.core.species import Species, build_species, resolve_inclusion_order, select_species
from pangene.exceptions import PangeneError, PangeneUsageError
from pangene.logging import configure_logging, get_logger
from pangene.manifest import create_run_manifest, finalize_manifest, write_manifest
from pangene.paths import OutputLayout, cluster_dir_name, create_output_layout, parameter_suffix
from pangene.utils.validation import SpeciesInput, validate_species_manifest

app = typer.Typer(help="Cluster orthologs, write pan-genome matrices and simulate pan/core-genome growth.")
console = Console()


def _print_plan(step_plan: list[str]) -> None:
    console.print("[bold]Analysis step plan[/bold]")
    for idx, step in enumerate(step_plan, start=1):
        console.print(f"  {idx}. {step}")


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def _load_sequences(
    inputs: dict[str, SpeciesInput],
    selected: list[str],
) -> tuple[dict[str, dict[str, str]], dict[str, int]]:
    sequences: dict[str, dict[str, str]] = {}
    total_genes: dict[str, int] = {}
    for species_id in selected:
        sequences[species_id] = sequences_by_id(read_fasta_records(inputs[species_id].sequences))
        total_genes[species_id] = len(sequences[species_id])
    return sequences, total_genes


def cluster_species(
    inputs: dict[str, SpeciesInput],
    selected: list[str],
    sequences: dict[str, dict[str, str]],
    thresholds: FilterThresholds,
) -> tuple[ClusterTable, ClusterBuilder]:
    """Stream each species' homology table in order, then add singletons."""

    logger = get_logger("pangene.clustering")
    builder = ClusterBuilder()
    selected_set = set(selected)

    with _progress() as progress:
        task = progress.add_task("Clustering orthologs", total=len(selected))
        for species_id in selected:
            stats = ReadStats()
            source = inputs[species_id].homologies
            rejected = builder.consume(
                species_id,
                read_homology_records(source, stats=stats),
                selected_set,
                thresholds,
                source=source,
            )
            logger.info(
                "%s: %d records read, %d malformed, %d rejected",
                species_id,
                stats.records,
                stats.malformed,
                sum(rejected.values()),
                extra={"stage": "clustering", "species": species_id},
            )
            for reason, count in sorted(rejected.items()):
                logger.debug("%s: %d records rejected (%s)", species_id, count, reason)
            progress.advance(task)

    for species_id in selected:
        singletons = builder.add_singletons(species_id, sequences[species_id])
        logger.info(
            "%s : sequences = %d singletons = %d",
            species_id,
            len(sequences[species_id]),
            singletons,
        )

    if builder.stats.dropped_relations:
        logger.info(
            "%d ortholog relations linked genes already placed in different clusters and were dropped",
            builder.stats.dropped_relations,
        )

    return builder.freeze(), builder


def _print_summary(
    species: list[Species],
    table: ClusterTable,
    builder: ClusterBuilder,
    n_core: int,
    result: CompositionResult,
) -> None:
    summary = Table(title="[bold]Pan-genome Summary[/bold]", box=box.SIMPLE_HEAVY, expand=False)
    summary.add_column("Species", style="bold cyan")
    summary.add_column("Genes", justify="right")
    summary.add_column("Singletons", justify="right")
    for entry in species:
        summary.add_row(
            entry.species_id,
            str(entry.total_genes),
            str(builder.stats.singletons.get(entry.species_id, 0)),
        )
    console.print(summary)
    console.print(f"Clusters: {len(table)} (core = {n_core})")

    final = result.summary()[-1]
    console.print(
        f"Samples: {len(result.samples)}  pan-genome: {final.pan_mean:.0f} ± {final.pan_sd:.0f}  "
        f"core-genome: {final.core_mean:.0f} ± {final.core_sd:.0f}"
    )


def _format_count(value: int) -> str:
    digits = str(value)
    if len(digits) <= 12:
        return digits
    return f"~1e{len(digits) - 1}"


def _check_outputs_free(layout: OutputLayout, force: bool) -> None:
    if force:
        return
    existing = [path for path in (layout.cluster_list, layout.table("pangenome_matrix")) if path.exists()]
    if existing:
        raise PangeneUsageError(
            f"Output files already exist: {', '.join(str(path) for path in existing)}. Use --force to overwrite."
        )


def run_analyze(
    *,
    config_path: Path | None,
    species_tsv: Path | None,
    reference: str | None,
    outgroup: str | None,
    ignore: list[str] | None,
    clade: str | None,
    seqtype: str | None,
    min_goc: int | None,
    min_wga: int | None,
    allow_low_confidence: bool | None,
    samples: int | None,
    seed: int | None,
    soft_core_fraction: float | None,
    include_order: list[str] | None,
    outdir: Path | None,
    dry_run: bool | None,
    force: bool | None,
    log_file: Path | None,
    verbose: bool | None,
    quiet: bool | None,
) -> int:
    try:
        cfg = merge_command_config(
            config_path=config_path,
            section="analyze",
            model_cls=AnalyzeConfig,
            cli_overrides={
                "species_tsv": species_tsv,
                "reference": reference,
                "outgroup": outgroup,
                "ignore": ignore,
                "clade": clade,
                "seqtype": seqtype,
                "min_goc": min_goc,
                "min_wga": min_wga,
                "allow_low_confidence": allow_low_confidence,
                "samples": samples,
                "seed": seed,
                "soft_core_fraction": soft_core_fraction,
                "include_order": include_order,
                "outdir": outdir,
                "dry_run": dry_run,
                "force": force,
                "log_file": log_file,
                "verbose": verbose,
                "quiet": quiet,
            },
        )

        configure_logging(verbose=cfg.verbose, quiet=cfg.quiet, log_file=cfg.log_file)
        logger = get_logger("pangene.analyze")

        if cfg.species_tsv is None:
            raise PangeneUsageError(
                "Missing species manifest. Provide --species-tsv or set analyze.species_tsv in config."
            )
        if cfg.reference is None:
            raise PangeneUsageError(
                "Missing reference species. Provide --reference or set analyze.reference in config."
            )

        inputs = {record.species_id: record for record in validate_species_manifest(cfg.species_tsv)}
        selected = select_species(
            list(inputs),
            reference=cfg.reference,
            outgroup=cfg.outgroup,
            ignore=cfg.ignore,
        )
        fixed_order = resolve_inclusion_order(selected, cfg.include_order)
        logger.info("Total selected species: %d", len(selected))
        for species_id in selected:
            logger.debug("selected species: %s", species_id)

        params = parameter_suffix(
            min_goc=cfg.min_goc,
            min_wga=cfg.min_wga,
            allow_low_confidence=cfg.allow_low_confidence,
        )
        layout = create_output_layout(
            cfg.outdir,
            cluster_dir=cluster_dir_name(
                reference=cfg.reference,
                clade=cfg.clade,
                params=params,
                outgroup=cfg.outgroup,
            ),
            params=params,
        )

        step_plan = [
            "Validate species manifest and order selected species",
            "Read representative sequences and count genes per species",
            "Stream homology tables, filter orthologs and build clusters",
            "Add unclustered genes as singleton clusters",
            "Write cluster FASTA files and cluster list",
            "Write POCP, pan-genome count/gene matrices and binary FASTA",
            "Sample genome inclusion orders and write pan/core-genome growth tables",
        ]

        manifest = create_run_manifest(
            command="analyze",
            argv=sys.argv,
            outdir=layout.root,
            dry_run=cfg.dry_run,
            config_path=config_path,
            input_paths=[cfg.species_tsv, *(inputs[sp].homologies for sp in selected)],
            planned_steps=step_plan,
            parameters=cfg.model_dump(mode="json"),
        )
        write_manifest(layout.root, manifest)

        _print_plan(step_plan)

        if cfg.dry_run:
            logger.info("Dry-run requested; stopping before analysis outputs are written.")
            finalize_manifest(manifest, status="dry-run", output_paths=[])
            write_manifest(layout.root, manifest)
            return 0

        _check_outputs_free(layout, cfg.force)

        output_paths: list[Path] = []
        thresholds = FilterThresholds(
            min_goc=cfg.min_goc,
            min_wga=cfg.min_wga,
            allow_low_confidence=cfg.allow_low_confidence,
        )

        sequences, total_genes = _load_sequences(inputs, selected)
        table, builder = cluster_species(inputs, selected, sequences, thresholds)

        n_core = count_core_clusters(table, selected)
        logger.info("number_of_clusters = %d (core = %d)", len(table), n_core)

        extension = SEQUENCE_EXTENSIONS[cfg.seqtype]
        output_paths += write_cluster_fastas(
            table,
            sequences,
            layout.cluster_dir,
            extension=extension,
            force=cfg.force,
        )
        output_paths.append(write_cluster_list(table, layout, force=cfg.force))

        matrices = build_pangenome_matrices(table, selected)
        output_paths.append(
            write_pocp_matrix(pocp_matrix(matrices, total_genes), layout.table("POCP.matrix"), force=cfg.force)
        )
        output_paths += write_pangenome_matrices(matrices, layout, extension=extension, force=cfg.force)

        sampler = CompositionSampler(
            table,
            selected,
            total_genes,
            soft_core_fraction=cfg.soft_core_fraction,
        )
        if fixed_order is None:
            logger.info(
                "genome composition report (samples=%d, permutations=%s, seed=%d)",
                min(cfg.samples, max_permutations(len(selected))),
                _format_count(max_permutations(len(selected))),
                cfg.seed,
            )
        else:
            logger.info("genome composition report (samples=1, using fixed inclusion order)")
        with _progress() as progress:
            task = progress.add_task("Sampling genome orders", total=None)
            result = sampler.run(cfg.samples, seed=cfg.seed, fixed_order=fixed_order)
            progress.update(task, total=len(result.samples), completed=len(result.samples))
        output_paths += write_growth_tables(result, layout, force=cfg.force)

        _print_summary(build_species(selected, total_genes), table, builder, n_core, result)

        finalize_manifest(manifest, status="completed", output_paths=output_paths)
        write_manifest(layout.root, manifest)

        logger.info("Analysis completed successfully.")
        return 0

    except PangeneError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return exc.exit_code
    except Exception as exc:  # pragma: no cover
        get_logger("pangene.analyze").exception("Unhandled analysis error")
        console.print(f"[red]Unexpected error:[/red] {exc}")
        return 1


def _split_csv(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


@app.callback(invoke_without_command=True)
def analyze_callback(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="YAML config file."),
    species_tsv: Path | None = typer.Option(
        None,
        "--species-tsv",
        help="Species manifest TSV with columns: species_id, homologies, sequences.",
    ),
    reference: str | None = typer.Option(None, "--reference", "-r", help="Reference species; names clusters first."),
    outgroup: str | None = typer.Option(None, "--outgroup", "-o", help="Outgroup species, added last."),
    ignore: list[str] | None = typer.Option(None, "--ignore", "-i", help="Species to leave out (repeatable)."),
    clade: str | None = typer.Option(None, "--clade", "-c", help="Clade label used in the cluster folder name."),
    seqtype: str | None = typer.Option(None, "--seqtype", "-t", help="Sequence type: protein or cdna."),
    min_goc: int | None = typer.Option(None, "--goc", "-G", min=0, max=100, help="Minimum Gene Order Conservation score."),
    min_wga: int | None = typer.Option(None, "--wga", "-W", min=0, max=100, help="Minimum Whole Genome Alignment coverage."),
    allow_low_confidence: bool | None = typer.Option(
        None,
        "--low-confidence/--high-confidence-only",
        help="Allow low-confidence orthologues.",
    ),
    samples: int | None = typer.Option(None, "--samples", min=1, help="Number of genome inclusion orders to sample."),
    seed: int | None = typer.Option(None, "--seed", help="Random seed for order sampling."),
    soft_core_fraction: float | None = typer.Option(
        None,
        "--soft-core",
        min=0.0,
        max=1.0,
        help="Also track soft-core clusters present in at least this fraction of genomes.",
    ),
    include_order: str | None = typer.Option(
        None,
        "--include-order",
        help="Comma-separated fixed genome inclusion order (single sample).",
    ),
    outdir: Path | None = typer.Option(None, "--outdir", "-f", help="Output folder."),
    dry_run: bool | None = typer.Option(None, "--dry-run", help="Plan only, do not write outputs."),
    force: bool | None = typer.Option(None, "--force", help="Overwrite existing output files."),
    log_file: Path | None = typer.Option(None, "--log-file", help="Write JSON logs to this file."),
    verbose: bool | None = typer.Option(None, "--verbose", "-v", help="Enable verbose logging."),
    quiet: bool | None = typer.Option(None, "--quiet", help="Only show errors."),
) -> None:
    if ctx.invoked_subcommand is not None:
        return

    exit_code = run_analyze(
        config_path=config,
        species_tsv=species_tsv,
        reference=reference,
        outgroup=outgroup,
        ignore=ignore,
        clade=clade,
        seqtype=seqtype,
        min_goc=min_goc,
        min_wga=min_wga,
        allow_low_confidence=allow_low_confidence,
        samples=samples,
        seed=seed,
        soft_core_fraction=soft_core_fraction,
        include_order=_split_csv(include_order),
        outdir=outdir,
        dry_run=dry_run,
        force=force,
        log_file=log_file,
        verbose=verbose,
        quiet=quiet,
    )
    raise typer.Exit(exit_code)
