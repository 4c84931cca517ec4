"""TRIPOS MOL2 parser.

Each molecule starts at an ``@<TRIPOS>MOLECULE`` section; the line after the
molecule name gives the atom and bond counts. Atoms come from the
``@<TRIPOS>ATOM`` section:

    atom_id atom_name x y z atom_type [subst_id subst_name [charge ...]]

with the element taken from the dotted SYBYL type (``C.ar`` -> C). Bonds
come from ``@<TRIPOS>BOND``; non-numeric orders (``ar``, ``am``, ``du``)
are stored as single bonds.
"""

from __future__ import annotations

import logging
from typing import List, Optional

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

MOLECULE_TAG = "@<TRIPOS>MOLECULE"
ATOM_TAG = "@<TRIPOS>ATOM"
BOND_TAG = "@<TRIPOS>BOND"
SECTION_PREFIX = "@<TRIPOS>"


class MOL2Parser(StructureParser):
    """Parser for (multi-molecule) MOL2 files."""

    format_name = "mol2"

    def _parse(self, text: str, options: ParseOptions) -> List[Model]:
        lines = [line.strip() for line in split_lines(text)]
        starts = [i for i, line in enumerate(lines) if line == MOLECULE_TAG]
        if not starts:
            logger.debug("No @<TRIPOS>MOLECULE section")
            return []

        strip_h = self.strip_hydrogens(options)
        builders: List[ModelBuilder] = []

        for k, start in enumerate(starts):
            end = starts[k + 1] if k + 1 < len(starts) else len(lines)
            record = lines[start:end]

            if not builders or not options.onemol:
                builders.append(ModelBuilder())
            builder = builders[-1]
            builder.begin_record()

            if not self._parse_molecule(record, builder, strip_h):
                logger.debug(f"Skipping MOL2 molecule at line {start + 1}")

            if not options.read_all_frames:
                break

        return [builder.build() for builder in builders]

    def _parse_molecule(self, record: List[str], builder: ModelBuilder, strip_h: bool) -> bool:
        """Parse one molecule record into the builder; False if unusable."""
        if len(record) < 3:
            return False
        counts = record[2].split()
        natoms = parse_int(counts[0]) if counts else None
        if natoms is None:
            return False
        nbonds = parse_int(counts[1]) if len(counts) > 1 else 0

        atom_start = _section_start(record, ATOM_TAG)
        if atom_start is None:
            return False

        for line in record[atom_start:atom_start + natoms]:
            if line.startswith(SECTION_PREFIX):
                break
            atom = self._parse_atom_line(line)
            if atom is None:
                logger.debug(f"Skipping MOL2 atom line {line!r}")
                continue
            if strip_h and atom.is_hydrogen:
                continue
            builder.add_atom(atom)

        bond_start = _section_start(record, BOND_TAG)
        if bond_start is not None and nbonds:
            for line in record[bond_start:bond_start + nbonds]:
                if line.startswith(SECTION_PREFIX):
                    break
                tokens = line.split()
                if len(tokens) < 3:
                    continue
                first = builder.atom_by_serial(parse_int(tokens[1]))
                second = builder.atom_by_serial(parse_int(tokens[2]))
                if first is None or second is None:
                    continue
                order = parse_int(tokens[3]) if len(tokens) > 3 else None
                first.add_bond(second, normalize_bond_order(order))

        return True

    @staticmethod
    def _parse_atom_line(line: str) -> Optional[Atom]:
        tokens = line.split()
        if len(tokens) < 6:
            return None

        atom_type = tokens[5]
        element = normalize_element(atom_type.split(".")[0])
        if not element:
            return None

        atom = Atom(
            element=element,
            coords=np.array([parse_float(t) for t in tokens[2:5]], dtype=np.float64),
            serial=parse_int(tokens[0]),
            name=tokens[1],
            is_hetero=True,
        )
        atom.properties["atom_type"] = atom_type
        if len(tokens) > 6:
            atom.resi = parse_int(tokens[6])
        if len(tokens) > 7:
            atom.resn = tokens[7]
        if len(tokens) > 8:
            charge = parse_float(tokens[8])
            atom.properties["charge"] = charge
            atom.properties["partial_charge"] = charge
        return atom


def _section_start(record: List[str], tag: str) -> Optional[int]:
    """Index of the first line after a section tag."""
    for i, line in enumerate(record):
        if line == tag:
            return i + 1
    return None


def parse_mol2(text: str, options: OptionsLike = None) -> List[Model]:
    """Parse a MOL2 file with the default configuration."""
    return MOL2Parser().parse(text, options)
