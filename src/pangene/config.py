from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Mapping, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError, model_validator

from pangene.exceptions import PangeneUsageError


class CommonConfig(BaseModel):
    """Shared command options across pangene subcommands."""

    model_config = ConfigDict(extra="forbid")

    outdir: Path = Field(default_factory=Path.cwd)
    dry_run: bool = False
    force: bool = False
    log_file: Path | None = None
    verbose: bool = False
    quiet: bool = False

    @model_validator(mode="after")
    def _validate_verbosity(self) -> "CommonConfig":
        if self.verbose and self.quiet:
            raise ValueError("`verbose` and `quiet` cannot both be true.")
        return self


class AnalyzeConfig(CommonConfig):
    species_tsv: Path | None = None
    reference: str | None = None
    outgroup: str | None = None
    ignore: list[str] = Field(default_factory=list)
    clade: str = "custom"
    seqtype: Literal["protein", "cdna"] = "protein"

    min_goc: int = Field(default=0, ge=0, le=100)
    min_wga: int = Field(default=0, ge=0, le=100)
    allow_low_confidence: bool = False

    samples: PositiveInt = 10
    seed: int = 12345
    soft_core_fraction: float | None = Field(default=None, gt=0.0, le=1.0)
    include_order: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_species_roles(self) -> "AnalyzeConfig":
        if self.outgroup is not None and self.outgroup == self.reference:
            raise ValueError("`outgroup` must differ from `reference`.")
        if self.reference is not None and self.reference in self.ignore:
            raise ValueError(f"Reference species cannot be ignored: {self.reference}")
        return self


class PangeneConfig(BaseModel):
    """Top-level YAML config model."""

    model_config = ConfigDict(extra="forbid")

    analyze: AnalyzeConfig | None = None


def load_config(config_path: Path | None) -> PangeneConfig:
    """Load and validate a YAML config file."""

    if config_path is None:
        return PangeneConfig()

    if not config_path.exists():
        raise PangeneUsageError(f"Config file does not exist: {config_path}")

    if not config_path.is_file():
        raise PangeneUsageError(f"Config path is not a file: {config_path}")

    payload_raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if payload_raw is None:
        payload_raw = {}

    if not isinstance(payload_raw, dict):
        raise PangeneUsageError("Config YAML must be a key/value mapping at the top level.")

    try:
        return PangeneConfig.model_validate(payload_raw)
    except ValidationError as exc:
        raise PangeneUsageError(f"Invalid config file: {config_path}\n{exc}") from exc


T = TypeVar("T", bound=CommonConfig)


def merge_command_config(
    *,
    config_path: Path | None,
    section: str,
    model_cls: type[T],
    cli_overrides: Mapping[str, Any],
) -> T:
    """Merge YAML config values with explicit CLI overrides and validate."""

    root = load_config(config_path)
    section_model = getattr(root, section)

    merged: dict[str, Any] = {}
    if section_model is not None:
        merged.update(section_model.model_dump(exclude_none=True))

    for key, value in cli_overrides.items():
        if value is None:
            continue
        # empty lists from repeatable CLI options mean "not given"
        if isinstance(value, (list, tuple)) and not value:
            continue
        merged[key] = value

    try:
        return model_cls.model_validate(merged)
    except ValidationError as exc:
        raise PangeneUsageError(f"Invalid merged config for `{section}`:\n{exc}") from exc
