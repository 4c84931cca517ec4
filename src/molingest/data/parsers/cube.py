"""Gaussian cube file parser (atoms only).

Layout of the header:
    line 1-2   comments
    line 3     natoms, origin x y z
    line 4-6   voxel count and axis vector for each grid direction
    line 7...  atomic number, charge, x, y, z (one line per atom)

A positive voxel count on line 4 means the file is in bohr. The volumetric
data after the atom block is not read.
"""

from __future__ import annotations

import logging
from typing import List

import numpy as np

from molingest.config import ParseOptions
from molingest.constants.elements import BOHR_TO_ANGSTROM, element_from_atomic_number
from molingest.data.parsers.base import (
    OptionsLike,
    StructureParser,
    parse_float,
    parse_int,
    split_lines,
)
from molingest.data.structure import Atom, Model, ModelBuilder


logger = logging.getLogger(__name__)

HEADER_LINES = 6


class CubeParser(StructureParser):
    """Parser for the atom block of Gaussian cube files."""

    format_name = "cube"

    def _parse(self, text: str, options: ParseOptions) -> List[Model]:
        lines = split_lines(text.lstrip())
        if len(lines) < HEADER_LINES:
            logger.debug(f"Cube file too short ({len(lines)} lines)")
            return []

        count_tokens = lines[2].split()
        natoms = parse_int(count_tokens[0]) if count_tokens else None
        if natoms is None:
            logger.warning("Cube file without an atom count")
            return []
        natoms = abs(natoms)

        axis_tokens = lines[3].split()
        in_bohr = bool(axis_tokens) and parse_float(axis_tokens[0]) > 0
        factor = BOHR_TO_ANGSTROM if in_bohr else 1.0

        builder = ModelBuilder()
        strip_h = self.strip_hydrogens(options)

        for i, line in enumerate(lines[HEADER_LINES:HEADER_LINES + natoms]):
            tokens = line.split()
            try:
                element = element_from_atomic_number(parse_int(tokens[0]))
                coords = np.array([parse_float(t) for t in tokens[2:5]], dtype=np.float64)
                if coords.shape != (3,):
                    raise ValueError(f"expected 3 coordinates, got {coords.shape[0]}")
            except (ValueError, IndexError) as e:
                logger.debug(f"Skipping cube atom line {HEADER_LINES + i + 1}: {e}")
                continue

            if strip_h and element == "H":
                continue

            builder.add_atom(Atom(
                element=element,
                coords=coords * factor,
                serial=i,
                name=element,
                is_hetero=True,
            ))

        model = builder.build()
        self.assign_bonds(model)
        return [model]


def parse_cube(text: str, options: OptionsLike = None) -> List[Model]:
    """Parse a cube file with the default configuration."""
    return CubeParser().parse(text, options)
