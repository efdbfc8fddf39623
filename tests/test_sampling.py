from __future__ import annotations

import numpy as np
import pytest

from pangene.core.clustering import ClusterBuilder, ClusterTable
from pangene.core.sampling import CompositionSampler, soft_core_threshold
from pangene.exceptions import PangeneUsageError

SPECIES = ["A", "B", "C"]
TOTALS = {"A": 4, "B": 3, "C": 2}


def test_replay_three_species(three_species_table: ClusterTable) -> None:
    sampler = CompositionSampler(three_species_table, SPECIES, TOTALS)

    trajectory = sampler.replay(["A", "B", "C"])
    assert trajectory.core == (4, 2, 1)
    assert trajectory.pan == (4, 5, 6)
    assert trajectory.soft_core is None

    trajectory = sampler.replay(["C", "A", "B"])
    assert trajectory.core == (2, 1, 1)
    assert trajectory.pan == (2, 5, 6)


def test_inparalogues_are_counted_once(ortholog) -> None:
    builder = ClusterBuilder()
    builder.add_homology(ortholog("A1", "A", "B1", "B"))
    builder.add_homology(ortholog("A1b", "A", "B1", "B"))
    builder.add_singletons("A", ["A1", "A1b", "A2"])
    builder.add_singletons("B", ["B1", "B2"])
    sampler = CompositionSampler(builder.freeze(), ["A", "B"], {"A": 3, "B": 2})

    assert sampler.inparalogues("A") == 1
    assert sampler.replay(["A", "B"]).pan == (2, 3)
    assert sampler.replay(["B", "A"]).pan == (2, 3)
    assert sampler.replay(["A", "B"]).core == (2, 1)


def test_soft_core_threshold_rounds_up() -> None:
    assert soft_core_threshold(2, 0.5) == 1
    assert soft_core_threshold(3, 0.5) == 2
    assert soft_core_threshold(10, 0.7) == 7
    assert soft_core_threshold(3, 1.0) == 3


def test_soft_core_counts_clusters_above_fraction(ortholog) -> None:
    builder = ClusterBuilder()
    builder.add_homology(ortholog("x1", "S1", "x2", "S2"))
    builder.add_homology(ortholog("y2", "S2", "y3", "S3"))
    builder.add_singletons("S0", ["r0"])
    table = builder.freeze()
    totals = {"S0": 1, "S1": 1, "S2": 2, "S3": 1}

    sampler = CompositionSampler(table, ["S0", "S1", "S2", "S3"], totals, soft_core_fraction=0.5)
    trajectory = sampler.replay(["S0", "S1", "S2", "S3"])

    # x is in S1 and S2: counted from step 2 (2 of 3 genomes);
    # y is in S2 and S3: only 1 of 3 at step 2, counted at step 3
    assert trajectory.soft_core == (1, 2, 1, 2)
    assert trajectory.core == (1, 0, 0, 0)
    assert trajectory.pan == (1, 2, 3, 3)


def test_orders_are_distinct_and_start_with_input_order(three_species_table: ClusterTable) -> None:
    sampler = CompositionSampler(three_species_table, SPECIES, TOTALS)
    result = sampler.run(6, seed=7)

    orders = [sample.order for sample in result.samples]
    assert orders[0] == ("A", "B", "C")
    assert len(orders) == 6
    assert len(set(orders)) == 6


def test_sample_count_capped_at_available_orders(three_species_table: ClusterTable) -> None:
    sampler = CompositionSampler(three_species_table, SPECIES, TOTALS)
    result = sampler.run(50, seed=1)

    assert len(result.samples) == 6


def test_seed_makes_sampling_reproducible() -> None:
    builder = ClusterBuilder()
    species = [f"sp{idx}" for idx in range(6)]
    for species_id in species:
        builder.add_singletons(species_id, [f"{species_id}_g{n}" for n in range(3)])
    table = builder.freeze()
    totals = {species_id: 3 for species_id in species}

    first = CompositionSampler(table, species, totals).run(10, seed=42)
    second = CompositionSampler(table, species, totals).run(10, seed=42)

    assert [s.order for s in first.samples] == [s.order for s in second.samples]
    assert len({s.order for s in first.samples}) == 10


def test_fixed_order_forces_single_sample(three_species_table: ClusterTable) -> None:
    sampler = CompositionSampler(three_species_table, SPECIES, TOTALS)
    result = sampler.run(10, seed=3, fixed_order=["C", "B", "A"])

    assert [sample.order for sample in result.samples] == [("C", "B", "A")]


def test_fixed_order_must_cover_selected_species(three_species_table: ClusterTable) -> None:
    sampler = CompositionSampler(three_species_table, SPECIES, TOTALS)
    with pytest.raises(PangeneUsageError):
        sampler.run(1, fixed_order=["C", "A"])


def test_pan_genome_never_shrinks(three_species_table: ClusterTable) -> None:
    result = CompositionSampler(three_species_table, SPECIES, TOTALS, soft_core_fraction=0.5).run(6, seed=11)

    assert np.all(np.diff(result.pan, axis=1) >= 0)
    assert result.soft_core is not None
    assert result.soft_core.shape == (6, 3)


def test_summary_uses_population_standard_deviation(three_species_table: ClusterTable) -> None:
    sampler = CompositionSampler(three_species_table, SPECIES, TOTALS)
    result = sampler.run(6, seed=5)
    summary = result.summary()

    pan_first_step = [sample.pan[0] for sample in result.samples]
    assert [step.genomes for step in summary] == [0, 1, 2]
    assert summary[0].pan_mean == pytest.approx(np.mean(pan_first_step))
    assert summary[0].pan_sd == pytest.approx(np.std(pan_first_step, ddof=0))
    # the full pan-genome does not depend on order
    assert summary[-1].pan_mean == 6
    assert summary[-1].pan_sd == 0


def test_invalid_soft_core_fraction(three_species_table: ClusterTable) -> None:
    with pytest.raises(PangeneUsageError):
        CompositionSampler(three_species_table, SPECIES, TOTALS, soft_core_fraction=0.0)
