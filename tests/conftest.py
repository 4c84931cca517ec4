"""Pytest configuration and fixtures for molingest tests."""

from __future__ import annotations

import json
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import pytest


# =============================================================================
# Line Builders
# =============================================================================


def pdb_atom_line(
    serial: int,
    name: str,
    resn: str,
    chain: str,
    resi: int,
    xyz: Sequence[float],
    element: str,
    record: str = "ATOM",
    alt_loc: str = " ",
    b_factor: float = 10.0,
) -> str:
    """Format an ATOM/HETATM record in fixed PDB columns."""
    # One-letter elements start their name in column 14
    padded = name if len(name) == 4 else f" {name:<3}"
    x, y, z = xyz
    return (
        f"{record:<6}{serial:5d} {padded}{alt_loc}{resn:>3} {chain}{resi:4d}    "
        f"{x:8.3f}{y:8.3f}{z:8.3f}{1.0:6.2f}{b_factor:6.2f}          {element:>2}"
    )


def conect_line(source: int, *partners: int) -> str:
    return "CONECT" + "".join(f"{serial:5d}" for serial in (source,) + partners)


def biomt_lines(operator: int, rotation: np.ndarray, translation: Sequence[float]) -> List[str]:
    return [
        f"REMARK 350   BIOMT{row + 1}{operator:4d}"
        f"{rotation[row][0]:10.6f}{rotation[row][1]:10.6f}{rotation[row][2]:10.6f}"
        f"{translation[row]:15.5f}"
        for row in range(3)
    ]


def sdf_record(
    atoms: Sequence[Tuple[str, float, float, float]],
    bonds: Sequence[Tuple[int, int, int]],
    properties: Sequence[str] = (),
    title: str = "molecule",
) -> List[str]:
    """Format one V2000 record, including the $$$$ terminator."""
    lines = [title, "  molingest", ""]
    lines.append(f"{len(atoms):3d}{len(bonds):3d}  0  0  0  0  0  0  0  0999 V2000")
    for element, x, y, z in atoms:
        lines.append(f"{x:10.4f}{y:10.4f}{z:10.4f} {element:<3} 0  0  0  0  0  0  0  0  0  0  0  0")
    for first, second, order in bonds:
        lines.append(f"{first:3d}{second:3d}{order:3d}  0  0  0  0")
    lines.extend(properties)
    lines.append("M  END")
    lines.append("$$$$")
    return lines


# =============================================================================
# Format Samples
# =============================================================================


WATER_XYZ = """3
water
O 0.000 0.000 0.117
H 0.000 0.757 -0.469
H 0.000 -0.757 -0.469"""


@pytest.fixture
def water_xyz() -> str:
    """A single water molecule."""
    return WATER_XYZ


@pytest.fixture
def two_frame_xyz() -> str:
    """Two water frames, the second shifted by 10 Å along x."""
    second = """3
water shifted
O 10.000 0.000 0.117
H 10.000 0.757 -0.469 0.1 0.2 0.3
H 10.000 -0.757 -0.469 0.1 0.2 0.3"""
    return WATER_XYZ + "\n" + second + "\n"


@pytest.fixture
def sample_sdf() -> str:
    """Two SDF records: an amide fragment with a charge, then methanol oxygen-carbon."""
    first = sdf_record(
        atoms=[("C", 0.0, 0.0, 0.0), ("O", 1.23, 0.0, 0.0), ("N", -0.7, 1.2, 0.0)],
        bonds=[(1, 2, 2), (1, 3, 1)],
        properties=["M  CHG  1   3   1"],
        title="amide",
    )
    second = sdf_record(
        atoms=[("C", 0.0, 0.0, 0.0), ("O", 1.43, 0.0, 0.0)],
        bonds=[(1, 2, 1)],
        title="methanol",
    )
    return "\n".join(first + second) + "\n"


@pytest.fixture
def sample_cube() -> str:
    """Cube header with an OH fragment in bohr (negative atom count)."""
    return "\n".join([
        " Cube generated for tests",
        " OUTER LOOP: X, MIDDLE LOOP: Y, INNER LOOP: Z",
        "   -2    0.000000    0.000000    0.000000",
        "    2    0.200000    0.000000    0.000000",
        "    2    0.000000    0.200000    0.000000",
        "    2    0.000000    0.000000    0.200000",
        "    8    0.000000    0.000000    0.000000    0.000000",
        "    1    0.000000    0.000000    0.000000    1.800000",
        "    1    1",
        " 1.0 2.0 3.0 4.0",
    ])


@pytest.fixture
def sample_cdjson() -> str:
    """ChemDoodle JSON formaldehyde-like drawing with one style."""
    return json.dumps({
        "m": [{
            "a": [
                {"x": 0.0, "y": 0.0, "l": "O", "i": "a0", "s": 0},
                {"x": 1.2, "y": 0.0},
                {"x": 1.8, "y": 1.0, "z": 0.5, "l": "H"},
            ],
            "b": [
                {"b": 0, "e": 1, "o": 2},
                {"b": 1, "e": 2},
                {"b": 1, "e": 7},
            ],
            "s": [{"color": "red"}],
        }],
    })


@pytest.fixture
def sample_mol2() -> str:
    """Two MOL2 molecules: water with charges, then an aromatic pair."""
    return """@<TRIPOS>MOLECULE
water
 3 2 1 0 0
SMALL
USER_CHARGES

@<TRIPOS>ATOM
      1 OW          0.0000    0.0000    0.1170 O.3     1  HOH1       -0.8340
      2 HW1         0.0000    0.7570   -0.4690 H       1  HOH1        0.4170
      3 HW2         0.0000   -0.7570   -0.4690 H       1  HOH1        0.4170
@<TRIPOS>BOND
     1     1     2    1
     2     1     3    1
@<TRIPOS>MOLECULE
pair
 2 1 1 0 0
SMALL
NO_CHARGES

@<TRIPOS>ATOM
      1 C1          0.0000    0.0000    0.0000 C.ar    1  BNZ1
      2 C2          1.3900    0.0000    0.0000 C.ar    1  BNZ1
@<TRIPOS>BOND
     1     1     2   ar
"""


@pytest.fixture
def small_molecule_cif() -> str:
    """Small-molecule CIF: fractional coordinates, 10 Å cubic cell, two operators."""
    return """data_global
_journal_year 2001

data_co
_cell_length_a    10.000
_cell_length_b    10.000
_cell_length_c    10.000
_cell_angle_alpha 90
_cell_angle_beta  90
_cell_angle_gamma 90
loop_
_symmetry_equiv_pos_as_xyz
'x, y, z'
'x, y, z+1/2'
loop_
_atom_site_label
_atom_site_type_symbol
_atom_site_fract_x
_atom_site_fract_y
_atom_site_fract_z
O1 O 0.1000 0.2000 0.1000
C1 C 0.2000 0.2000 0.1000
"""


@pytest.fixture
def sample_mmcif() -> str:
    """mmCIF with a glycine, a TER row, a water and two assembly operators."""
    return """data_TEST
#
_cell.length_a          50.000
_cell.length_b          60.000
_cell.length_c          70.000
_cell.angle_alpha       90.00
_cell.angle_beta        90.00
_cell.angle_gamma       90.00
#
loop_
_atom_site.group_PDB
_atom_site.id
_atom_site.type_symbol
_atom_site.label_atom_id
_atom_site.label_comp_id
_atom_site.label_asym_id
_atom_site.label_seq_id
_atom_site.pdbx_PDB_ins_code
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
_atom_site.B_iso_or_equiv
_atom_site.auth_seq_id
_atom_site.auth_asym_id
ATOM   1 N N   GLY A 1 ? 0.000 0.000 0.000 12.5 5 B
ATOM   2 C CA  GLY A 1 ? 1.458 0.000 0.000 13.0 5 B
ATOM   3 C C   GLY A 1 ? 2.009 1.420 0.000 14.0 5 B
ATOM   4 O O   GLY A 1 ? 1.251 2.390 0.000 15.0 5 B
TER    5 . .   .   . . ? .     .     .     .    . .
HETATM 6 O O   HOH C . ? 20.000 20.000 20.000 30.0 101 C
#
loop_
_pdbx_struct_oper_list.id
_pdbx_struct_oper_list.type
_pdbx_struct_oper_list.matrix[1][1]
_pdbx_struct_oper_list.matrix[1][2]
_pdbx_struct_oper_list.matrix[1][3]
_pdbx_struct_oper_list.vector[1]
_pdbx_struct_oper_list.matrix[2][1]
_pdbx_struct_oper_list.matrix[2][2]
_pdbx_struct_oper_list.matrix[2][3]
_pdbx_struct_oper_list.vector[2]
_pdbx_struct_oper_list.matrix[3][1]
_pdbx_struct_oper_list.matrix[3][2]
_pdbx_struct_oper_list.matrix[3][3]
_pdbx_struct_oper_list.vector[3]
1 'identity operation'         1 0 0 0  0 1 0 0  0 0 1 0
2 'crystal symmetry operation' -1 0 0 0  0 -1 0 0  0 0 1 0
#
"""


# Backbone of three residues; residue 3 is far from residue 2
DIPEPTIDE_ATOMS = [
    (1, "N", "ALA", "A", 1, (0.000, 0.000, 0.000), "N"),
    (2, "CA", "ALA", "A", 1, (1.460, 0.000, 0.000), "C"),
    (3, "C", "ALA", "A", 1, (2.000, 1.400, 0.000), "C"),
    (4, "O", "ALA", "A", 1, (1.300, 2.400, 0.000), "O"),
    (5, "N", "GLY", "A", 2, (3.330, 1.500, 0.000), "N"),
    (6, "CA", "GLY", "A", 2, (4.000, 2.800, 0.000), "C"),
    (7, "N", "GLY", "A", 3, (50.000, 0.000, 0.000), "N"),
    (8, "CA", "GLY", "A", 3, (51.460, 0.000, 0.000), "C"),
]


@pytest.fixture
def peptide_pdb() -> str:
    """Peptide backbone, a hydrogen, an alternate location, a ligand with CONECT."""
    lines = ["CRYST1   50.000   60.000   70.000  90.00  90.00  90.00 P 1           1"]
    lines += [pdb_atom_line(*atom) for atom in DIPEPTIDE_ATOMS]
    lines += [
        pdb_atom_line(9, "H", "GLY", "A", 3, (49.500, 0.800, 0.000), "H"),
        pdb_atom_line(10, "CB", "GLY", "A", 3, (52.000, 1.400, 0.000), "C", alt_loc="B"),
        pdb_atom_line(11, "C1", "LIG", "L", 1, (20.000, 0.000, 0.000), "C", record="HETATM"),
        pdb_atom_line(12, "C2", "LIG", "L", 1, (21.340, 0.000, 0.000), "C", record="HETATM"),
        pdb_atom_line(13, "C3", "LIG", "L", 1, (22.740, 0.000, 0.000), "C", record="HETATM"),
        conect_line(11, 12),
        conect_line(11, 12),
        conect_line(12, 13, 13),
        conect_line(12, 13, 13),
        "END",
    ]
    return "\n".join(lines) + "\n"


@pytest.fixture
def helix_record_pdb() -> str:
    """The peptide backbone with a HELIX record over residues 1-2 of chain A."""
    lines = [f"HELIX  {1:3d} {'H1':>3} ALA A {1:4d}  GLY A {2:4d}  1"]
    lines += [pdb_atom_line(*atom) for atom in DIPEPTIDE_ATOMS]
    return "\n".join(lines) + "\n"


@pytest.fixture
def two_model_pdb() -> str:
    """Two MODEL/ENDMDL frames of the same two-atom ligand."""
    lines = []
    for model, shift in ((1, 0.0), (2, 5.0)):
        lines.append(f"MODEL     {model:4d}")
        lines.append(pdb_atom_line(1, "C1", "LIG", "L", 1, (shift, 0.0, 0.0), "C", record="HETATM"))
        lines.append(pdb_atom_line(2, "O1", "LIG", "L", 1, (shift + 1.2, 0.0, 0.0), "O", record="HETATM"))
        lines.append("ENDMDL")
    lines.append("END")
    return "\n".join(lines) + "\n"


@pytest.fixture
def biomt_pdb() -> str:
    """Two-atom ligand with an identity and a +20 Å x translation BIOMT operator."""
    eye = np.eye(3)
    lines = biomt_lines(1, eye, (0.0, 0.0, 0.0)) + biomt_lines(2, eye, (20.0, 0.0, 0.0))
    lines.append(pdb_atom_line(1, "C1", "LIG", "L", 1, (0.0, 0.0, 0.0), "C", record="HETATM"))
    lines.append(pdb_atom_line(2, "O1", "LIG", "L", 1, (1.2, 0.0, 0.0), "O", record="HETATM"))
    return "\n".join(lines) + "\n"


@pytest.fixture
def sample_pdbqt() -> str:
    """Ligand with AutoDock types and a torsion tree."""
    def line(serial, name, xyz, charge, ad_type):
        base = pdb_atom_line(serial, name, "LIG", " ", 1, xyz, "", record="ATOM")[:66]
        return f"{base}    {charge:6.3f} {ad_type:<2}"

    return "\n".join([
        "REMARK  1 active torsions:",
        "ROOT",
        line(1, "C1", (0.000, 0.000, 0.000), 0.123, "A"),
        line(2, "O1", (1.400, 0.000, 0.000), -0.391, "OA"),
        line(3, "H1", (1.700, 0.900, 0.000), 0.210, "HD"),
        "ENDROOT",
        "BRANCH   1   4",
        line(4, "N1", (-1.450, 0.000, 0.000), -0.300, "NA"),
        "ENDBRANCH   1   4",
        "TORSDOF 1",
    ]) + "\n"


@pytest.fixture
def sample_pqr() -> str:
    """PQR atoms with widened coordinate fields, charges and radii."""
    def line(serial, name, resn, resi, values):
        base = pdb_atom_line(serial, name, resn, "A", resi, (0.0, 0.0, 0.0), "")[:30]
        return base + " " + " ".join(values)

    return "\n".join([
        line(1, "N", "ALA", 1, ["-1.000", "2.000", "3.000", "-0.3000", "1.8500"]),
        line(2, "HA", "ALA", 1, ["-1.500", "2.700", "3.000", "0.1000", "1.0000"]),
        line(3, "CA", "ALA", 1, ["0.460", "2.000", "3.000", "0.0500", "1.7000"]),
        line(4, "Fe", "HEM", 2, ["12345.678", "-2345.678", "3.000", "2.0000", "1.4000"]),
        "END",
    ]) + "\n"


# =============================================================================
# Structure Fixtures
# =============================================================================


@pytest.fixture
def make_atoms() -> Callable[..., list]:
    """Build indexed atoms from (element, x, y, z) tuples."""
    from molingest.data.structure import Atom, ModelBuilder

    def _make_atoms(specs: Sequence[Tuple[str, float, float, float]], hetero: bool = True) -> list:
        builder = ModelBuilder()
        for serial, (element, x, y, z) in enumerate(specs, start=1):
            builder.add_atom(Atom(
                element=element,
                coords=np.array([x, y, z]),
                serial=serial,
                name=element,
                is_hetero=hetero,
            ))
        return builder.atoms

    return _make_atoms


@pytest.fixture
def ideal_helix_atoms() -> list:
    """Backbone N/O atoms of residues 1-10 with i -> i+4 hydrogen bonds.

    The O of residue i sits 2.9 Å from the N of residue i+4 (i = 1..6);
    the remaining N and O atoms are placed far from everything else.
    """
    from molingest.data.structure import Atom, ModelBuilder

    positions = {}
    for i in range(1, 7):
        positions[("O", i)] = (10.0 * i, 0.0, 0.0)
        positions[("N", i + 4)] = (10.0 * i, 0.0, 2.9)
    for resi in range(1, 11):
        positions.setdefault(("N", resi), (10.0 * resi, 100.0, 0.0))
        positions.setdefault(("O", resi), (10.0 * resi, 200.0, 0.0))

    builder = ModelBuilder()
    for resi in range(1, 11):
        for name in ("N", "O"):
            builder.add_atom(Atom(
                element=name,
                coords=np.array(positions[(name, resi)]),
                name=name,
                is_hetero=False,
                chain="A",
                resi=resi,
                resn="ALA",
            ))
    return builder.atoms


@pytest.fixture
def helix_backbone_pdb(ideal_helix_atoms) -> str:
    """The ideal helix backbone written as PDB ATOM records."""
    lines = [
        pdb_atom_line(atom.index + 1, atom.name, atom.resn, atom.chain, atom.resi,
                      atom.coords, atom.element)
        for atom in ideal_helix_atoms
    ]
    return "\n".join(lines) + "\nEND\n"


@pytest.fixture
def helix_backbone_pqr(ideal_helix_atoms) -> str:
    """The ideal helix backbone written as PQR records (charge 0, radius 1.5)."""
    lines = []
    for atom in ideal_helix_atoms:
        base = pdb_atom_line(atom.index + 1, atom.name, atom.resn, atom.chain, atom.resi,
                             (0.0, 0.0, 0.0), "")[:30]
        lines.append(base + " {:.3f} {:.3f} {:.3f} 0.0000 1.5000".format(*atom.coords))
    return "\n".join(lines) + "\nEND\n"


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def assert_bonds_consistent():
    """Fixture checking bond list symmetry and validity for a list of atoms."""
    def _assert_bonds_consistent(atoms: Sequence, expected_bonds: Optional[int] = None):
        total = 0
        for atom in atoms:
            assert len(atom.bonds) == len(atom.bond_order)
            assert atom.index not in atom.bonds
            assert len(set(atom.bonds)) == len(atom.bonds)
            for bonded, order in zip(atom.bonds, atom.bond_order):
                assert 0 <= bonded < len(atoms)
                other = atoms[bonded]
                position = other.bonds.index(atom.index)
                assert other.bond_order[position] == order
            total += len(atom.bonds)
        assert total % 2 == 0
        if expected_bonds is not None:
            assert total // 2 == expected_bonds
    return _assert_bonds_consistent


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
