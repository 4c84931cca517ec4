"""Configuration management for molingest.

This module defines the parse options recognized by every format parser
and the tunable constants of the bond, secondary structure and assembly
engines.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from molingest.constants.elements import DEFAULT_BOND_RADIUS, MAX_BOND_LENGTH
from molingest.utils import setup_logging


class ParseOptions(BaseModel):
    """Options honored by the format parsers where they apply.

    The camelCase option names (``keepH``, ``doAssembly``, ...)
    are accepted as aliases.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    multimodel: bool = Field(
        default=False,
        description="Parse past the first frame/record of the file"
    )
    onemol: bool = Field(
        default=False,
        description="Merge all frames/records into a single model"
    )
    keep_h: Optional[bool] = Field(
        default=None,
        alias="keepH",
        description="Keep hydrogens; None uses the per-format default"
    )
    do_assembly: bool = Field(
        default=False,
        alias="doAssembly",
        description="Apply symmetry/assembly operators"
    )
    duplicate_assembly_atoms: bool = Field(
        default=True,
        alias="duplicateAssemblyAtoms",
        description="Duplicate atoms per operator; False stores symmetry mates per atom"
    )
    no_secondary_structure: bool = Field(
        default=False,
        alias="noSecondaryStructure",
        description="Skip the secondary structure heuristic"
    )
    parse_style: Optional[bool] = Field(
        default=None,
        alias="parseStyle",
        description="Attach per-atom styles (compact JSON); None means 'if present'"
    )

    @property
    def read_all_frames(self) -> bool:
        """Whether frames after the first are parsed at all."""
        return self.multimodel or self.onemol

    def strip_hydrogens(self, default: bool) -> bool:
        """Whether hydrogens are dropped, given the format's default."""
        if self.keep_h is None:
            return default
        return not self.keep_h


class BondingConfig(BaseModel):
    """Configuration for distance-based bond inference."""

    fudge_factor: float = Field(
        default=0.25, description="Added to the radius sum before squaring (Å)"
    )
    min_distance_sq: float = Field(
        default=0.5, description="Squared distances below this are duplicate positions"
    )
    default_radius: float = Field(
        default=DEFAULT_BOND_RADIUS, description="Radius for elements missing from the table"
    )
    cell_size: float = Field(
        default=MAX_BOND_LENGTH, description="Spatial hash cell edge (Å)"
    )


class SecondaryStructureConfig(BaseModel):
    """Configuration for the backbone hydrogen bond heuristic."""

    hbond_cutoff: float = Field(default=3.2, description="Max N-O distance (Å)")
    min_residue_separation: int = Field(
        default=4, description="Same-chain pairs closer in sequence are ignored"
    )
    helix_spacing: int = Field(
        default=4, description="Sequence spacing of helical i,i+n hydrogen bonds"
    )

    @property
    def hbond_cutoff_sq(self) -> float:
        return self.hbond_cutoff * self.hbond_cutoff


class AssemblyConfig(BaseModel):
    """Configuration for symmetry expansion."""

    max_operations: int = Field(
        default=1000, description="Skip expansion above this many operators"
    )
    rotation_tolerance: float = Field(default=1e-6)
    translation_tolerance: float = Field(default=1e-4)


class Config(BaseSettings):
    """Main configuration for molingest."""

    parsing: ParseOptions = Field(default_factory=ParseOptions)
    bonding: BondingConfig = Field(default_factory=BondingConfig)
    secondary_structure: SecondaryStructureConfig = Field(
        default_factory=SecondaryStructureConfig
    )
    assembly: AssemblyConfig = Field(default_factory=AssemblyConfig)

    log_level: str = Field(default="WARNING", description="Level used by setup_logging")

    model_config = {"env_prefix": "MOLINGEST_", "env_nested_delimiter": "__"}

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build configuration from a (possibly partial) dictionary."""
        return cls(**data)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return self.model_dump()

    def configure_logging(self, log_file: Optional[str | Path] = None) -> logging.Logger:
        """Set up the package logger at ``log_level``."""
        return setup_logging(self.log_level, log_file=log_file)
