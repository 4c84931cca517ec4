"""CIF / mmCIF file parser.

This module reads both macromolecular (mmCIF) and small-molecule CIF files:
- Parse the _atom_site table for coordinates (Cartesian, or fractional
  converted with the unit cell)
- Extract the unit cell from _cell
- Extract symmetry operators from _pdbx_struct_oper_list matrices and from
  _symmetry_equiv_pos_as_xyz / _space_group_symop_operation_xyz strings
- Infer bonds and secondary structure, then optionally expand the assembly

Every data block (except data_global) becomes one model.
"""

from __future__ import annotations

import logging
import math
import re
from typing import List, Optional

import numpy as np

from molingest.config import ParseOptions
from molingest.constants.elements import normalize_element
from molingest.data.parsers.base import (
    OptionsLike,
    StructureParser,
    parse_float,
    parse_int,
)
from molingest.data.parsers.cif_lexer import CifBlock, read_cif_blocks
from molingest.data.structure import (
    Atom,
    Model,
    ModelBuilder,
    ModelMetadata,
    UnitCell,
)
from molingest.processing.bioassembly import SymmetryOperation


logger = logging.getLogger(__name__)


HETERO_GROUPS = frozenset({"HETA", "HETATM"})

SYMMETRY_STRING_TAGS = (
    "_symmetry_equiv_pos_as_xyz",
    "_space_group_symop_operation_xyz",
)

_LABEL_ELEMENT = re.compile(r"^([A-Za-z]{1,2})")


class _Column:
    """Lookup of one looped _atom_site item, tolerant of short or absent columns."""

    def __init__(self, block: CifBlock, *tags: str):
        self.values: Optional[List[str]] = None
        for tag in tags:
            values = block.get(tag)
            if values is not None:
                self.values = values
                break

    def __bool__(self) -> bool:
        return self.values is not None

    def __getitem__(self, i: int) -> Optional[str]:
        if self.values is None or i >= len(self.values):
            return None
        return self.values[i]


class MMCIFParser(StructureParser):
    """Parser for CIF and mmCIF text.

    Bond inference and secondary structure assignment always run; symmetry
    operators are always collected into the model metadata and applied
    when ``do_assembly`` is set.
    """

    format_name = "cif"

    def _parse(self, text: str, options: ParseOptions) -> List[Model]:
        blocks = read_cif_blocks(text)
        if not blocks:
            logger.debug("No data blocks found")
            return []

        models: List[Model] = []
        for block in blocks:
            model = self._parse_block(block, options)
            if model is None:
                continue
            self.assign_bonds(model)
            self.assign_secondary_structure(model)
            self.expand_assembly(model, options)
            models.append(model)

        return self.merge_if_onemol(models, options)

    def _parse_block(self, block: CifBlock, options: ParseOptions) -> Optional[Model]:
        """Build the model of one data block."""
        ids = _Column(block, "_atom_site_id", "_atom_site_label")
        if not ids:
            logger.debug(f"Block {block.name!r} has no _atom_site table")
            return None

        cell = self._extract_cell(block)
        metadata = ModelMetadata(cell=cell)
        builder = ModelBuilder(metadata)
        self._parse_atom_site(block, builder, len(ids.values), options)

        metadata.symmetries.extend(self._extract_struct_oper_list(block))
        metadata.symmetries.extend(self._extract_symmetry_strings(block, cell))
        if metadata.symmetries:
            logger.debug(f"Block {block.name!r}: {len(metadata.symmetries)} symmetry operators")

        return builder.build()

    # -------------------------------------------------------------------------
    # Unit cell
    # -------------------------------------------------------------------------

    @staticmethod
    def _extract_cell(block: CifBlock) -> Optional[UnitCell]:
        if "_cell_length_a" not in block:
            return None

        def angle(tag: str) -> float:
            value = parse_float(block.first(tag))
            # Missing or zero angles default to 90
            return value if not math.isnan(value) and value != 0 else 90.0

        return UnitCell(
            a=parse_float(block.first("_cell_length_a")),
            b=parse_float(block.first("_cell_length_b")),
            c=parse_float(block.first("_cell_length_c")),
            alpha=angle("_cell_angle_alpha"),
            beta=angle("_cell_angle_beta"),
            gamma=angle("_cell_angle_gamma"),
        )

    # -------------------------------------------------------------------------
    # Atoms
    # -------------------------------------------------------------------------

    def _parse_atom_site(
        self,
        block: CifBlock,
        builder: ModelBuilder,
        atom_count: int,
        options: ParseOptions,
    ) -> None:
        """Parse _atom_site rows into atoms."""
        group = _Column(block, "_atom_site_group_pdb")
        serials = _Column(block, "_atom_site_id")
        labels = _Column(block, "_atom_site_label")
        cartn = [_Column(block, f"_atom_site_cartn_{axis}") for axis in "xyz"]
        fract = [_Column(block, f"_atom_site_fract_{axis}") for axis in "xyz"]
        chain = _Column(block, "_atom_site_auth_asym_id", "_atom_site_label_asym_id")
        resi = _Column(block, "_atom_site_auth_seq_id", "_atom_site_label_seq_id")
        resn = _Column(block, "_atom_site_auth_comp_id", "_atom_site_label_comp_id")
        name = _Column(block, "_atom_site_auth_atom_id", "_atom_site_label_atom_id")
        icode = _Column(block, "_atom_site_pdbx_pdb_ins_code")
        type_symbol = _Column(block, "_atom_site_type_symbol")
        b_factor = _Column(block, "_atom_site_b_iso_or_equiv")

        use_cartesian = all(cartn)
        conversion = None
        if not use_cartesian and all(fract):
            if builder.metadata.cell is not None:
                conversion = builder.metadata.cell.conversion_matrix()
            else:
                logger.warning("Fractional coordinates without a unit cell; keeping raw values")

        strip_h = self.strip_hydrogens(options)

        for i in range(atom_count):
            record = group[i]
            if record == "TER":
                continue

            try:
                if use_cartesian:
                    coords = np.array([parse_float(c[i]) for c in cartn], dtype=np.float64)
                else:
                    coords = np.array([parse_float(c[i]) for c in fract], dtype=np.float64)
                    if conversion is not None:
                        coords = conversion @ coords

                element = self._element(type_symbol[i], name[i] or labels[i])
                if strip_h and element == "H":
                    continue

                atom = Atom(
                    element=element,
                    coords=coords,
                    serial=parse_int(serials[i]) if serials else i,
                    name=(name[i] or labels[i] or element).replace('"', ""),
                    is_hetero=not group or record in HETERO_GROUPS,
                    chain=chain[i] or "",
                    resi=parse_int(resi[i]),
                    icode=_optional(icode[i]),
                    resn=(resn[i] or "").strip(),
                )
            except (ValueError, IndexError) as e:
                logger.debug(f"Skipping _atom_site row {i}: {e}")
                continue

            if b_factor:
                atom.properties["b"] = parse_float(b_factor[i])
            builder.add_atom(atom)

    @staticmethod
    def _element(type_symbol: Optional[str], label: Optional[str]) -> str:
        """Element from type_symbol, else from the leading letters of the label."""
        symbol = _optional(type_symbol)
        if symbol:
            # Oxidation states such as 'Fe3+' or 'O2-'
            match = _LABEL_ELEMENT.match(symbol)
            return normalize_element(match.group(1) if match else symbol)
        match = _LABEL_ELEMENT.match(label or "")
        if match is None:
            raise ValueError(f"Cannot determine element for {label!r}")
        return normalize_element(match.group(1))

    # -------------------------------------------------------------------------
    # Symmetry
    # -------------------------------------------------------------------------

    @staticmethod
    def _extract_struct_oper_list(block: CifBlock) -> List[SymmetryOperation]:
        """Parse _pdbx_struct_oper_list matrices (already Cartesian)."""
        ids = block.get("_pdbx_struct_oper_list_id")
        if not ids:
            return []

        operations = []
        for i, oper_id in enumerate(ids):
            matrix = np.eye(4, dtype=np.float64)
            try:
                for row in range(3):
                    for col in range(3):
                        values = block.get(f"_pdbx_struct_oper_list_matrix[{row + 1}][{col + 1}]")
                        matrix[row, col] = parse_float(values[i])
                    values = block.get(f"_pdbx_struct_oper_list_vector[{row + 1}]")
                    matrix[row, 3] = parse_float(values[i])
            except (TypeError, IndexError):
                logger.debug(f"Incomplete _pdbx_struct_oper_list entry {oper_id!r}")
                continue
            if np.isnan(matrix).any():
                logger.debug(f"Unparsable _pdbx_struct_oper_list entry {oper_id!r}")
                continue
            operations.append(SymmetryOperation(matrix=matrix, operator_id=oper_id))

        return operations

    @staticmethod
    def _extract_symmetry_strings(
        block: CifBlock,
        cell: Optional[UnitCell],
    ) -> List[SymmetryOperation]:
        """Parse algebraic operators, converted to Cartesian space with the cell.

        Files often repeat the same operators under both tags; only the first
        tag that yields operators is read.
        """
        operations: List[SymmetryOperation] = []
        for tag in SYMMETRY_STRING_TAGS:
            if operations:
                break
            for k, expr in enumerate(block.get(tag) or []):
                try:
                    operations.append(
                        SymmetryOperation.from_xyz_string(expr, cell, operator_id=str(k + 1))
                    )
                except ValueError as e:
                    logger.debug(f"Skipping symmetry operator {expr!r}: {e}")
        if operations and cell is None:
            logger.warning("Symmetry operators without a unit cell are left in fractional space")
        return operations


def _optional(value: Optional[str]) -> str:
    """CIF '.' and '?' mean absent."""
    if value is None or value in (".", "?"):
        return ""
    return value


def parse_cif(text: str, options: OptionsLike = None) -> List[Model]:
    """Parse a CIF/mmCIF document with the default configuration."""
    return MMCIFParser().parse(text, options)
