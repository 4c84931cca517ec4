"""Shared machinery for the text format parsers.

Every parser turns an in-memory string into a list of Models. Record-level
problems never abort a parse: unparsable numbers become NaN (or None for
integers) and broken records are skipped with a debug message.
"""

from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Union

from molingest.config import Config, ParseOptions
from molingest.data.structure import Model, merge_models
from molingest.processing.bioassembly import AssemblyExpander
from molingest.processing.connectivity import BondDetector
from molingest.processing.secondary_structure import SecondaryStructureAssigner
from molingest.utils import Timer


logger = logging.getLogger(__name__)


OptionsLike = Union[ParseOptions, Mapping[str, Any], None]

_LINE_BREAK = re.compile(r"\r?\n|\r")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


# =============================================================================
# Field helpers
# =============================================================================

def split_lines(text: str) -> List[str]:
    """Split on any of CRLF, LF or CR."""
    return _LINE_BREAK.split(text)


def parse_float(value: Optional[str]) -> float:
    """Parse a leading float; NaN when there is none."""
    if value is None:
        return math.nan
    try:
        return float(value)
    except ValueError:
        match = _LEADING_FLOAT.match(value)
        if match is None:
            return math.nan
        return float(match.group(1))


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse a leading integer; None when there is none."""
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if match is None:
        return None
    return int(match.group(1))


def resolve_options(options: OptionsLike, default: Optional[ParseOptions] = None) -> ParseOptions:
    """Accept ParseOptions, a plain mapping (camelCase or snake_case) or None."""
    if options is None:
        return default if default is not None else ParseOptions()
    if isinstance(options, ParseOptions):
        return options
    return ParseOptions.model_validate(dict(options))


# =============================================================================
# Base parser
# =============================================================================

class StructureParser(ABC):
    """Base class of all format parsers.

    Subclasses implement :meth:`_parse`; the base class resolves options,
    drops empty models and owns the bond, secondary structure and assembly
    passes shared by the formats.

    Attributes:
        format_name: Short name used in log messages
        strip_hydrogens_by_default: Whether hydrogens are dropped when
            ``keep_h`` is not given
    """

    format_name: str = "structure"
    strip_hydrogens_by_default: bool = False

    def __init__(self, config: Optional[Config] = None):
        """Initialize the parser.

        Args:
            config: Engine thresholds and default parse options
        """
        self.config = config or Config()
        self.bond_detector = BondDetector(self.config.bonding)
        self.ss_assigner = SecondaryStructureAssigner(self.config.secondary_structure)
        self.expander = AssemblyExpander(self.config.assembly)

    def parse(self, text: str, options: OptionsLike = None) -> List[Model]:
        """Parse text into models.

        Args:
            text: Full file contents
            options: Parse options (defaults from the config)

        Returns:
            Non-empty models in file order
        """
        opts = resolve_options(options, self.config.parsing)
        with Timer(f"parse {self.format_name}", logger=logger):
            models = self._parse(text, opts)
        models = [model for model in models if len(model) > 0]
        logger.debug(
            f"{self.format_name}: {len(models)} model(s), "
            f"{sum(len(m) for m in models)} atoms"
        )
        return models

    @abstractmethod
    def _parse(self, text: str, options: ParseOptions) -> List[Model]:
        """Format-specific parsing."""

    def strip_hydrogens(self, options: ParseOptions) -> bool:
        return options.strip_hydrogens(self.strip_hydrogens_by_default)

    # -------------------------------------------------------------------------
    # Shared passes
    # -------------------------------------------------------------------------

    def assign_bonds(self, model: Model, polymer: bool = False) -> None:
        with Timer(f"{self.format_name} bonds", logger=logger):
            if polymer:
                self.bond_detector.assign_polymer_bonds(model.atoms)
            else:
                self.bond_detector.assign_bonds(model.atoms)

    def assign_secondary_structure(self, model: Model) -> None:
        with Timer(f"{self.format_name} secondary structure", logger=logger):
            self.ss_assigner.assign(model.atoms)

    def expand_assembly(self, model: Model, options: ParseOptions) -> None:
        """Apply the model's symmetry operators when requested."""
        if not options.do_assembly or not model.metadata.symmetries:
            return
        self.expander.expand(
            model.atoms,
            model.metadata.symmetries,
            duplicate=options.duplicate_assembly_atoms,
        )

    @staticmethod
    def merge_if_onemol(models: List[Model], options: ParseOptions) -> List[Model]:
        """Concatenate all models into one when ``onemol`` is set."""
        if options.onemol and len(models) > 1:
            return merge_models(models)
        return models
