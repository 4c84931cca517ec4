"""MDL SDF / MOL (V2000) parser.

Each record is a 3-line header, a counts line, a fixed-column atom block, a
fixed-column bond block and optional property lines, terminated by a
``$$$$`` line. Bonds come from the file; nothing is inferred.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from molingest.config import ParseOptions
from molingest.constants.elements import normalize_element
from molingest.data.parsers.base import (
    OptionsLike,
    StructureParser,
    parse_float,
    parse_int,
    split_lines,
)
from molingest.data.structure import Atom, Model, ModelBuilder, normalize_bond_order


logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "$$$$"
COUNTS_LINE = 3


class SDFParser(StructureParser):
    """Parser for V2000 SDF/MOL records."""

    format_name = "sdf"

    def _parse(self, text: str, options: ParseOptions) -> List[Model]:
        lines = split_lines(text)
        strip_h = self.strip_hydrogens(options)
        builders: List[ModelBuilder] = []

        start = 0
        while len(lines) - start > COUNTS_LINE:
            counts = self._read_counts(lines[start + COUNTS_LINE])
            if counts is None:
                break
            atom_count, bond_count = counts
            if len(lines) - start < COUNTS_LINE + 1 + atom_count + bond_count:
                logger.debug(f"Truncated SDF record at line {start + 1}")
                break

            if not builders or not options.onemol:
                builders.append(ModelBuilder())
            builder = builders[-1]
            builder.begin_record()

            offset = start + COUNTS_LINE + 1
            self._read_atoms(builder, lines[offset:offset + atom_count], strip_h)
            offset += atom_count
            self._read_bonds(builder, lines[offset:offset + bond_count])
            offset += bond_count
            self._read_properties(builder, lines, offset)

            if not options.read_all_frames:
                break

            separator = self._find_separator(lines, offset)
            if separator is None:
                break
            start = separator + 1

        return [builder.build() for builder in builders]

    @staticmethod
    def _read_counts(line: str) -> Optional[Tuple[int, int]]:
        atom_count = parse_int(line[0:3])
        if atom_count is None or atom_count <= 0:
            return None
        bond_count = parse_int(line[3:6]) or 0
        return atom_count, max(bond_count, 0)

    @staticmethod
    def _read_atoms(builder: ModelBuilder, atom_lines: List[str], strip_h: bool) -> None:
        for number, line in enumerate(atom_lines, start=1):
            element = normalize_element(line[31:34].replace(" ", ""))
            if not element:
                logger.debug(f"Skipping SDF atom {number}: no element symbol")
                continue
            if strip_h and element == "H":
                continue
            builder.add_atom(Atom(
                element=element,
                coords=np.array(
                    [parse_float(line[0:10]), parse_float(line[10:20]), parse_float(line[20:30])],
                    dtype=np.float64,
                ),
                serial=number,
                name=element,
                is_hetero=True,
            ))

    @staticmethod
    def _read_bonds(builder: ModelBuilder, bond_lines: List[str]) -> None:
        for line in bond_lines:
            first = builder.atom_by_serial(parse_int(line[0:3]))
            second = builder.atom_by_serial(parse_int(line[3:6]))
            if first is None or second is None:
                continue
            first.add_bond(second, normalize_bond_order(parse_int(line[6:9])))

    @staticmethod
    def _read_properties(builder: ModelBuilder, lines: List[str], offset: int) -> None:
        """Read ``M  CHG`` formal charges up to ``M  END``."""
        for i in range(offset, len(lines)):
            line = lines[i]
            if line.startswith("M  END") or line.startswith(RECORD_SEPARATOR):
                return
            if not line.startswith("M  CHG"):
                continue
            tokens = line[6:].split()
            pairs = tokens[1:]
            for serial, charge in zip(pairs[0::2], pairs[1::2]):
                atom = builder.atom_by_serial(parse_int(serial))
                value = parse_int(charge)
                if atom is not None and value is not None:
                    atom.properties["charge"] = value

    @staticmethod
    def _find_separator(lines: List[str], offset: int) -> Optional[int]:
        for i in range(offset, len(lines)):
            if lines[i].strip() == RECORD_SEPARATOR:
                return i
        return None


def parse_sdf(text: str, options: OptionsLike = None) -> List[Model]:
    """Parse an SDF file with the default configuration."""
    return SDFParser().parse(text, options)
