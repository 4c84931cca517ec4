"""ChemDoodle JSON molecule parser.

Only the first molecule of the ``m`` array is read:

    {"m": [{"a": [{"x": 0, "y": 0, "l": "O", "s": 0}, ...],
            "b": [{"b": 0, "e": 1, "o": 2}, ...],
            "s": [{...style...}, ...]}]}

Atom ``z`` defaults to 0 (2D drawings), element ``l`` to carbon and bond
order ``o`` to 1. Shapes and other molecules are ignored.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np

from molingest.config import ParseOptions
from molingest.constants.elements import normalize_element
from molingest.data.parsers.base import OptionsLike, StructureParser
from molingest.data.structure import Atom, Model, ModelBuilder, normalize_bond_order


logger = logging.getLogger(__name__)


def _coordinate(value: Any, default: float = float("nan")) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")


class ChemDoodleJSONParser(StructureParser):
    """Parser for ChemDoodle JSON documents (text or already decoded)."""

    format_name = "cdjson"

    def parse(
        self,
        text: Union[str, Mapping[str, Any]],
        options: OptionsLike = None,
    ) -> List[Model]:
        return super().parse(text, options)

    def _parse(self, text: Union[str, Mapping[str, Any]], options: ParseOptions) -> List[Model]:
        if isinstance(text, str):
            try:
                document = json.loads(text)
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid ChemDoodle JSON: {e}")
                return []
        else:
            document = text

        try:
            molecule = document["m"][0]
            atom_records = molecule.get("a") or []
        except (KeyError, IndexError, TypeError, AttributeError):
            logger.warning("ChemDoodle JSON without a molecule ('m') entry")
            return []

        if not isinstance(atom_records, list):
            logger.warning(f"ChemDoodle atoms must be a list, got {type(atom_records).__name__}")
            return []
        bond_records = molecule.get("b") or []
        if not isinstance(bond_records, list):
            logger.warning(f"Ignoring ChemDoodle bonds of type {type(bond_records).__name__}")
            bond_records = []

        styles: Optional[List[Dict[str, Any]]] = molecule.get("s")
        if styles is not None and not isinstance(styles, list):
            logger.warning(f"Ignoring ChemDoodle styles of type {type(styles).__name__}")
            styles = None
        parse_style = options.parse_style if options.parse_style is not None else styles is not None

        builder = ModelBuilder()

        for serial, record in enumerate(atom_records):
            if not isinstance(record, Mapping):
                logger.debug(f"Skipping ChemDoodle atom {record!r}")
                continue
            atom = Atom(
                element=normalize_element(str(record.get("l") or "C")),
                coords=np.array([
                    _coordinate(record.get("x")),
                    _coordinate(record.get("y")),
                    _coordinate(record.get("z"), default=0.0),
                ], dtype=np.float64),
                serial=serial,
                is_hetero=True,
            )
            atom.name = atom.element
            if "i" in record:
                atom.properties["id"] = record["i"]
            if parse_style and styles:
                style_index = record.get("s") or 0
                if isinstance(style_index, int) and 0 <= style_index < len(styles):
                    atom.style = styles[style_index]
            builder.add_atom(atom)

        for record in bond_records:
            try:
                begin, end = int(record["b"]), int(record["e"])
            except (KeyError, TypeError, ValueError, AttributeError):
                begin = end = -1
            if not (0 <= begin < len(builder) and 0 <= end < len(builder)):
                logger.debug(f"Skipping ChemDoodle bond {record!r}")
                continue
            first, second = builder.atoms[begin], builder.atoms[end]
            order = record.get("o") or 1
            first.add_bond(second, normalize_bond_order(order if isinstance(order, int) else 1))

        return [builder.build()]


def parse_cdjson(text: Union[str, Mapping[str, Any]], options: OptionsLike = None) -> List[Model]:
    """Parse a ChemDoodle JSON document with the default configuration."""
    return ChemDoodleJSONParser().parse(text, options)
