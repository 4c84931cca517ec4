"""XYZ file parser.

Each frame is an atom count line, a comment line and one line per atom:

    element x y z [dx dy dz]

The optional trailing triple (velocities or vibrational displacements) is
stored on ``Atom.displacement``. Multi-frame files repeat the same layout.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from molingest.config import ParseOptions
from molingest.constants.elements import element_from_atomic_number, normalize_element
from molingest.data.parsers.base import (
    OptionsLike,
    StructureParser,
    parse_float,
    parse_int,
    split_lines,
)
from molingest.data.structure import Atom, Model, ModelBuilder


logger = logging.getLogger(__name__)


class XYZParser(StructureParser):
    """Parser for (multi-frame) XYZ files."""

    format_name = "xyz"

    def _parse(self, text: str, options: ParseOptions) -> List[Model]:
        lines = split_lines(text)
        strip_h = self.strip_hydrogens(options)
        models: List[Model] = []

        start = 0
        while len(lines) - start >= 3:
            count_tokens = lines[start].split()
            atom_count = parse_int(count_tokens[0]) if count_tokens else None
            if atom_count is None or atom_count <= 0:
                break
            if len(lines) - start < atom_count + 2:
                logger.debug(f"Truncated XYZ frame at line {start + 1}")
                break

            frame_lines = lines[start + 2:start + 2 + atom_count]
            models.append(self._parse_frame(frame_lines, start + 3, strip_h))
            start += atom_count + 2

            if not options.read_all_frames:
                break

        for model in models:
            self.assign_bonds(model)

        return self.merge_if_onemol(models, options)

    def _parse_frame(self, frame_lines: List[str], first_line_no: int, strip_h: bool) -> Model:
        builder = ModelBuilder()
        for i, line in enumerate(frame_lines):
            atom = self._parse_atom_line(line, i)
            if atom is None:
                logger.debug(f"Skipping XYZ atom line {first_line_no + i}")
                continue
            if strip_h and atom.is_hydrogen:
                continue
            builder.add_atom(atom)
        return builder.build()

    @staticmethod
    def _parse_atom_line(line: str, serial: int) -> Optional[Atom]:
        tokens = line.split()
        if len(tokens) < 4:
            return None

        symbol = tokens[0]
        if symbol.isdigit():
            element = element_from_atomic_number(int(symbol))
        else:
            element = normalize_element(symbol)

        atom = Atom(
            element=element,
            coords=np.array([parse_float(t) for t in tokens[1:4]], dtype=np.float64),
            serial=serial,
            name=element,
            is_hetero=True,
        )
        if len(tokens) >= 7:
            atom.displacement = np.array(
                [parse_float(t) for t in tokens[4:7]], dtype=np.float64
            )
        return atom


def parse_xyz(text: str, options: OptionsLike = None) -> List[Model]:
    """Parse an XYZ file with the default configuration."""
    return XYZParser().parse(text, options)
