"""PDB and PDBQT file parsers.

Records read from the fixed-column layout:
- ATOM/HETATM: atoms (alternate locations other than blank or 'A' dropped)
- CONECT: explicit bonds; a pair listed n times gets bond order n, and
  n >= 4 collapses to a single bond
- HELIX/SHEET: secondary structure ranges
- REMARK 350 BIOMT: biological assembly matrices
- CRYST1: unit cell
- END*: frame boundaries

Polymer bonds are inferred residue by residue, hetero bonds with the
spatial hash. PDBQT adds AutoDock atom types and partial charges.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from molingest.config import ParseOptions
from molingest.constants.elements import (
    AUTODOCK_TYPES,
    UNKNOWN_ELEMENT,
    is_known_element,
    normalize_element,
)
from molingest.data.parsers.base import (
    OptionsLike,
    StructureParser,
    parse_float,
    parse_int,
    split_lines,
)
from molingest.data.structure import (
    Atom,
    Model,
    ModelBuilder,
    ModelMetadata,
    SecondaryStructure,
    UnitCell,
)
from molingest.processing.bioassembly import SymmetryOperation


logger = logging.getLogger(__name__)


ATOM_RECORDS = ("ATOM  ", "HETATM")
KEPT_ALT_LOCS = ("", " ", "A")
CONECT_PARTNER_COLUMNS = (11, 16, 21, 26)

# A CONECT pair repeated this many times (or more) is aromatic: single bond
AROMATIC_CONECT_COUNT = 4

_DIGITS = re.compile(r"\d")


@dataclass
class SecondaryStructureRange:
    """A HELIX or SHEET record: residues start..end of one chain."""
    kind: SecondaryStructure
    start_chain: str
    start_resi: int
    end_chain: str
    end_resi: int

    def contains(self, atom: Atom) -> bool:
        return (
            atom.resi is not None
            and atom.chain == self.start_chain
            and self.start_resi <= atom.resi <= self.end_resi
        )


class PDBParser(StructureParser):
    """Parser for PDB files.

    Hydrogens are dropped unless ``keep_h`` is set. The heuristic secondary
    structure runs unless disabled, and always when the file has no
    HELIX/SHEET records; file ranges are applied on top of it.
    """

    format_name = "pdb"
    strip_hydrogens_by_default = True

    def _parse(self, text: str, options: ParseOptions) -> List[Model]:
        lines = split_lines(text)
        strip_h = self.strip_hydrogens(options)

        # Header records (CRYST1, BIOMT) apply to every frame
        metadata = ModelMetadata()
        builders = [ModelBuilder(metadata)]
        ranges: List[SecondaryStructureRange] = []
        conect_counts: Dict[Tuple[int, int], int] = {}

        i = 0
        while i < len(lines):
            line = lines[i].lstrip()
            record = line[:6]

            if self._is_frame_end(record):
                if not options.read_all_frames:
                    break
                if not options.onemol:
                    builders.append(ModelBuilder(metadata))
                    conect_counts = {}
                i += 1
                continue

            builder = builders[-1]
            try:
                if record in ATOM_RECORDS:
                    atom = self._parse_atom_record(line)
                    if atom is not None and not (strip_h and atom.is_hydrogen):
                        builder.add_atom(atom)
                elif record == "CONECT":
                    self._parse_conect(line, builder, conect_counts)
                elif record == "HELIX ":
                    ranges.append(SecondaryStructureRange(
                        SecondaryStructure.HELIX,
                        line[19:20], _required_int(line[21:25]),
                        line[31:32], _required_int(line[33:37]),
                    ))
                elif record == "SHEET ":
                    ranges.append(SecondaryStructureRange(
                        SecondaryStructure.SHEET,
                        line[21:22], _required_int(line[22:26]),
                        line[32:33], _required_int(line[33:37]),
                    ))
                elif record == "REMARK" and line[13:18] == "BIOMT":
                    i = self._parse_biomt(lines, i, metadata)
                    continue
                elif record == "CRYST1":
                    metadata.cell = self._parse_cryst1(line)
            except (ValueError, IndexError) as e:
                logger.debug(f"Skipping {record.strip()} record on line {i + 1}: {e}")
            i += 1

        models = [builder.build() for builder in builders]
        for model in models:
            self.assign_bonds(model, polymer=True)
            if self._should_assign_secondary_structure(options, ranges):
                self.assign_secondary_structure(model)
            self._apply_ranges(model, ranges)
            self.expand_assembly(model, options)

        return models

    def _should_assign_secondary_structure(
        self,
        options: ParseOptions,
        ranges: List[SecondaryStructureRange],
    ) -> bool:
        """Run the heuristic unless disabled and HELIX/SHEET records are present."""
        return not options.no_secondary_structure or not ranges

    def _is_frame_end(self, record: str) -> bool:
        return record.startswith("END")

    # -------------------------------------------------------------------------
    # Atoms
    # -------------------------------------------------------------------------

    def _parse_atom_record(self, line: str) -> Optional[Atom]:
        """Parse an ATOM/HETATM line; None for dropped alternate locations."""
        if line[16:17] not in KEPT_ALT_LOCS:
            return None

        atom = Atom(
            element=self._element(line),
            coords=np.array(
                [parse_float(line[30:38]), parse_float(line[38:46]), parse_float(line[46:54])],
                dtype=np.float64,
            ),
            serial=parse_int(line[6:11]),
            name=line[12:16].replace(" ", ""),
            is_hetero=line.startswith("H"),
            chain=line[21:22],
            resi=parse_int(line[22:26]),
            icode=line[26:27],
            resn=line[17:20].replace(" ", ""),
            raw_line=line,
        )
        atom.properties["b"] = parse_float(line[60:68])
        return atom

    @staticmethod
    def _element(line: str) -> str:
        """Element from columns 77-78, else guessed from the atom name.

        Name-based fallback: names starting with H are hydrogens (mercury
        must be written 'Hg'); unknown two-letter names use their first
        letter; 'CA' in an ATOM record is an alpha carbon, not calcium.
        """
        element = normalize_element(line[76:78].replace(" ", ""))
        if element and is_known_element(element):
            return element

        guess = _DIGITS.sub("", line[12:14].replace(" ", ""))
        if not guess:
            guess = _DIGITS.sub("", line[12:16].replace(" ", ""))[:1]
        if not guess:
            return UNKNOWN_ELEMENT
        if guess[0] == "H" and guess != "Hg":
            return "H"
        if len(guess) > 1:
            guess = normalize_element(guess)
            if not is_known_element(guess):
                guess = guess[0]
            elif line.startswith("A") and guess == "Ca":
                guess = "C"
        return normalize_element(guess)

    # -------------------------------------------------------------------------
    # Bonds
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_conect(
        line: str,
        builder: ModelBuilder,
        counts: Dict[Tuple[int, int], int],
    ) -> None:
        """Add CONECT bonds; repeated pairs raise the bond order."""
        source = builder.atom_by_serial(parse_int(line[6:11]))
        if source is None:
            return
        for column in CONECT_PARTNER_COLUMNS:
            target = builder.atom_by_serial(parse_int(line[column:column + 5]))
            if target is None:
                continue
            key = (source.index, target.index)
            count = counts.get(key, 0) + 1
            counts[key] = count
            if count == 1:
                source.add_bond(target)
            else:
                source.set_bond_order(target, 1 if count >= AROMATIC_CONECT_COUNT else count)

    # -------------------------------------------------------------------------
    # Header records
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_biomt(lines: List[str], i: int, metadata: ModelMetadata) -> int:
        """Read three consecutive BIOMT rows starting at line i.

        Returns:
            Index of the first line after the BIOMT group
        """
        matrix = np.eye(4, dtype=np.float64)
        operator_id = lines[i].lstrip()[19:23].strip() or str(len(metadata.symmetries) + 1)

        for row in range(3):
            line = lines[i].lstrip() if i < len(lines) else ""
            if line[13:18] != "BIOMT" or parse_int(line[18:19]) != row + 1:
                logger.debug(f"Incomplete BIOMT operator {operator_id!r} at line {i + 1}")
                while i < len(lines) and lines[i].lstrip()[13:18] == "BIOMT":
                    i += 1
                return i
            matrix[row, 0] = parse_float(line[23:33])
            matrix[row, 1] = parse_float(line[33:43])
            matrix[row, 2] = parse_float(line[43:53])
            matrix[row, 3] = parse_float(line[53:])
            i += 1

        if np.isnan(matrix).any():
            logger.debug(f"Unparsable BIOMT operator {operator_id!r}")
        else:
            metadata.symmetries.append(SymmetryOperation(matrix=matrix, operator_id=operator_id))
        return i

    @staticmethod
    def _parse_cryst1(line: str) -> UnitCell:
        return UnitCell(
            a=parse_float(line[6:15]),
            b=parse_float(line[15:24]),
            c=parse_float(line[24:33]),
            alpha=parse_float(line[33:40]),
            beta=parse_float(line[40:47]),
            gamma=parse_float(line[47:54]),
        )

    # -------------------------------------------------------------------------
    # Secondary structure
    # -------------------------------------------------------------------------

    @staticmethod
    def _apply_ranges(model: Model, ranges: List[SecondaryStructureRange]) -> None:
        """Apply HELIX/SHEET ranges; helices win over sheets."""
        if not ranges:
            return
        ordered = sorted(ranges, key=lambda r: r.kind is SecondaryStructure.HELIX)
        for atom in model.atoms:
            for ss_range in ordered:
                if not ss_range.contains(atom):
                    continue
                atom.ss = ss_range.kind
                if atom.resi == ss_range.start_resi:
                    atom.ss_begin = True
                if atom.resi == ss_range.end_resi:
                    atom.ss_end = True


class PDBQTParser(PDBParser):
    """Parser for AutoDock PDBQT files.

    Columns 71-76 hold the partial charge and 78-79 the AutoDock atom type,
    which replaces the element column of plain PDB.
    """

    format_name = "pdbqt"

    # Torsion tree records, not frame boundaries
    TORSION_TREE_RECORDS = ("ENDROO", "ENDBRA")

    def _is_frame_end(self, record: str) -> bool:
        return record.startswith("END") and record not in self.TORSION_TREE_RECORDS

    def _parse_atom_record(self, line: str) -> Optional[Atom]:
        atom = super()._parse_atom_record(line)
        if atom is None:
            return None

        charge = parse_float(line[70:76])
        if not np.isnan(charge):
            atom.properties["charge"] = charge
            atom.properties["partial_charge"] = charge

        ad_type = line[76:79].strip()
        if ad_type:
            atom.properties["autodock_type"] = ad_type
            element = AUTODOCK_TYPES.get(ad_type.upper()) or normalize_element(ad_type)
            if is_known_element(element):
                atom.element = element
        return atom


def _required_int(value: str) -> int:
    number = parse_int(value)
    if number is None:
        raise ValueError(f"expected an integer, got {value!r}")
    return number


def parse_pdb(text: str, options: OptionsLike = None) -> List[Model]:
    """Parse a PDB file with the default configuration."""
    return PDBParser().parse(text, options)


def parse_pdbqt(text: str, options: OptionsLike = None) -> List[Model]:
    """Parse a PDBQT file with the default configuration."""
    return PDBQTParser().parse(text, options)
