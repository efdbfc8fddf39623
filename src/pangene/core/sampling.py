"""Pan/core-genome growth estimated over random genome inclusion orders.

For a given order (s0, s1, ..., sN-1) the trajectory is:

* step 0: core = pan = genes of s0 minus its in-paralogues;
* step t: core counts clusters shared by s0..st; pan grows by the genes of st
  that have no ortholog in s0..st-1, with in-paralogues of st counted once;
* soft-core (optional) counts clusters present in at least
  ceil((t + 1) * fraction) of s0..st.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from pangene.core.clustering import ClusterTable
from pangene.core.matrices import count_matrix
from pangene.exceptions import PangeneUsageError
from pangene.logging import get_logger

DEFAULT_SAMPLES = 10
DEFAULT_SEED = 12345


@dataclass(frozen=True, slots=True)
class SampleTrajectory:
    order: tuple[str, ...]
    core: tuple[int, ...]
    pan: tuple[int, ...]
    soft_core: tuple[int, ...] | None = None


@dataclass(frozen=True, slots=True)
class StepSummary:
    genomes: int
    pan_mean: float
    pan_sd: float
    core_mean: float
    core_sd: float
    soft_core_mean: float | None = None
    soft_core_sd: float | None = None


@dataclass(frozen=True, slots=True)
class CompositionResult:
    species: tuple[str, ...]
    samples: tuple[SampleTrajectory, ...]
    soft_core_fraction: float | None
    seed: int | None

    def _matrix(self, attribute: str) -> np.ndarray:
        return np.array([getattr(sample, attribute) for sample in self.samples], dtype=np.int64)

    @property
    def pan(self) -> np.ndarray:
        return self._matrix("pan")

    @property
    def core(self) -> np.ndarray:
        return self._matrix("core")

    @property
    def soft_core(self) -> np.ndarray | None:
        if self.soft_core_fraction is None:
            return None
        return self._matrix("soft_core")

    def summary(self) -> list[StepSummary]:
        """Mean and population standard deviation across samples, per step."""

        pan, core, soft = self.pan, self.core, self.soft_core
        rows: list[StepSummary] = []
        for step in range(len(self.species)):
            rows.append(
                StepSummary(
                    genomes=step,
                    pan_mean=float(pan[:, step].mean()),
                    pan_sd=float(pan[:, step].std()),
                    core_mean=float(core[:, step].mean()),
                    core_sd=float(core[:, step].std()),
                    soft_core_mean=None if soft is None else float(soft[:, step].mean()),
                    soft_core_sd=None if soft is None else float(soft[:, step].std()),
                )
            )
        return rows


def max_permutations(n_species: int) -> int:
    return math.factorial(n_species)


def soft_core_threshold(n_genomes: int, fraction: float) -> int:
    # round first so that e.g. 3 * 0.7 = 2.0999999999999996 still maps to 3
    return math.ceil(round(n_genomes * fraction, 9))


class CompositionSampler:
    """Replays genome additions over distinct inclusion orders.

    The sampler owns the set of orders drawn so far; a sampler instance is
    meant for a single sampling run.
    """

    def __init__(
        self,
        table: ClusterTable,
        species: Sequence[str],
        total_genes: Mapping[str, int],
        *,
        soft_core_fraction: float | None = None,
    ) -> None:
        if not species:
            raise PangeneUsageError("Composition sampling needs at least one species")
        if soft_core_fraction is not None and not 0.0 < soft_core_fraction <= 1.0:
            raise PangeneUsageError(f"Soft-core fraction must be in (0, 1], got {soft_core_fraction}")

        self.species = tuple(species)
        self.soft_core_fraction = soft_core_fraction
        self._row = {species_id: idx for idx, species_id in enumerate(self.species)}
        self._counts = count_matrix(table, self.species)
        self._present = self._counts > 0
        self._inparalogues = np.maximum(self._counts - 1, 0).sum(axis=1)
        self._total_genes = np.array([total_genes.get(sp, 0) for sp in self.species], dtype=np.int64)
        self._previous_orders: set[tuple[str, ...]] = set()
        self._logger = get_logger("pangene.sampling")

    def inparalogues(self, species_id: str) -> int:
        return int(self._inparalogues[self._row[species_id]])

    def draw_orders(
        self,
        n_samples: int,
        rng: np.random.Generator,
        *,
        fixed_order: Sequence[str] | None = None,
    ) -> list[tuple[str, ...]]:
        """Draw up to `n_samples` distinct inclusion orders.

        The first order is always the species order given to the sampler, or
        `fixed_order` when supplied (which also limits the run to one sample).
        """

        if fixed_order:
            order = tuple(fixed_order)
            if sorted(order) != sorted(self.species):
                raise PangeneUsageError(
                    "Fixed inclusion order must list every selected species exactly once"
                )
            if n_samples > 1:
                self._logger.info("Fixed inclusion order supplied; using a single sample.")
            self._previous_orders.add(order)
            return [order]

        available = max_permutations(len(self.species))
        if n_samples > available:
            self._logger.warning(
                "Requested %d samples but only %d distinct orders of %d genomes exist; using %d.",
                n_samples,
                available,
                len(self.species),
                available,
                extra={"stage": "sampling"},
            )
            n_samples = available

        orders = [self.species]
        self._previous_orders.add(self.species)
        while len(orders) < n_samples:
            candidate = tuple(self.species[idx] for idx in rng.permutation(len(self.species)))
            if candidate in self._previous_orders:
                continue
            self._previous_orders.add(candidate)
            orders.append(candidate)
        return orders

    def replay(self, order: Sequence[str]) -> SampleTrajectory:
        """Core/pan (and soft-core) sizes after adding each genome of `order`."""

        rows = [self._row[species_id] for species_id in order]
        reference = rows[0]

        seed_size = int(self._total_genes[reference] - self._inparalogues[reference])
        core = [seed_size]
        pan = [seed_size]
        soft = [seed_size] if self.soft_core_fraction is not None else None

        in_all = self._present[reference].copy()
        seen = self._present[reference].copy()
        n_present = self._present[reference].astype(np.int64)

        for step in range(1, len(rows)):
            added = self._present[rows[step]]
            novel = added & ~seen

            in_all &= added
            n_present += added
            seen |= added

            core.append(int(in_all.sum()))
            pan.append(pan[-1] + int(novel.sum()))
            if soft is not None:
                threshold = soft_core_threshold(step + 1, self.soft_core_fraction)
                soft.append(int((n_present >= threshold).sum()))

        return SampleTrajectory(
            order=tuple(order),
            core=tuple(core),
            pan=tuple(pan),
            soft_core=tuple(soft) if soft is not None else None,
        )

    def run(
        self,
        n_samples: int = DEFAULT_SAMPLES,
        *,
        seed: int | None = DEFAULT_SEED,
        fixed_order: Sequence[str] | None = None,
    ) -> CompositionResult:
        rng = np.random.default_rng(seed)
        orders = self.draw_orders(n_samples, rng, fixed_order=fixed_order)
        samples: list[SampleTrajectory] = []
        for sample_idx, order in enumerate(orders):
            positions = ",".join(str(self._row[species_id]) for species_id in order)
            self._logger.debug("sample %d (%s | %s)", sample_idx, order[0], positions)
            samples.append(self.replay(order))
        return CompositionResult(
            species=self.species,
            samples=tuple(samples),
            soft_core_fraction=self.soft_core_fraction,
            seed=seed,
        )
