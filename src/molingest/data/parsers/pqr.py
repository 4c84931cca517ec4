"""PQR file parser.

PQR is PDB with occupancy and B-factor replaced by charge and radius. The
identity columns (serial, name, residue, chain, residue number) follow the
PDB layout, but everything after column 30 is split on whitespace:

    x y z charge radius

since programs writing PQR often widen these fields.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from molingest.config import ParseOptions
from molingest.constants.elements import UNKNOWN_ELEMENT
from molingest.data.parsers.base import OptionsLike, parse_float, parse_int
from molingest.data.parsers.pdb import PDBParser, SecondaryStructureRange
from molingest.data.structure import Atom, Model


class PQRParser(PDBParser):
    """Parser for PQR files; frames, CONECT and bonding work as in PDB."""

    format_name = "pqr"
    strip_hydrogens_by_default = False

    def _should_assign_secondary_structure(
        self,
        options: ParseOptions,
        ranges: List[SecondaryStructureRange],
    ) -> bool:
        return not options.no_secondary_structure

    def _parse_atom_record(self, line: str) -> Optional[Atom]:
        values = line[30:].split()
        name = line[12:16].replace(" ", "")
        if not name:
            raise ValueError("missing atom name")
        coords = [parse_float(v) for v in values[:3]]
        coords += [np.nan] * (3 - len(coords))

        atom = Atom(
            element=self._element_from_name(name),
            coords=np.array(coords, dtype=np.float64),
            serial=parse_int(line[6:11]),
            name=name,
            is_hetero=line.startswith("H"),
            chain=line[21:22],
            resi=parse_int(line[22:26]),
            resn=line[17:20].strip(),
            raw_line=line,
        )
        charge = parse_float(values[3]) if len(values) > 3 else np.nan
        atom.properties["charge"] = charge
        atom.properties["partial_charge"] = charge
        atom.properties["radius"] = parse_float(values[4]) if len(values) > 4 else np.nan
        return atom

    @staticmethod
    def _element_from_name(name: str) -> str:
        """First letter of the name, or two when the second is lower case ('Fe')."""
        name = name.lstrip("0123456789") or UNKNOWN_ELEMENT
        if len(name) > 1 and name[1].islower():
            return name[:2]
        return name[0].upper()


def parse_pqr(text: str, options: OptionsLike = None) -> List[Model]:
    """Parse a PQR file with the default configuration."""
    return PQRParser().parse(text, options)
