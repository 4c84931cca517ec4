"""Core structure data classes for representing parsed molecular models.

This module provides dataclasses for atoms, models and per-model metadata.
A parse produces a list of Models; each Model is an ordered list of Atoms
whose positions form the index space used by bond lists.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence

import numpy as np

if TYPE_CHECKING:
    from molingest.processing.bioassembly import SymmetryOperation


class SecondaryStructure(str, Enum):
    """Per-atom secondary structure code."""
    COIL = "c"
    HELIX = "h"
    SHEET = "s"


def normalize_bond_order(order: Optional[int]) -> int:
    """Map a file bond order onto 1, 2 or 3.

    Aromatic, query and unknown orders collapse to a single bond.
    """
    if order in (1, 2, 3):
        return order
    return 1


@dataclass
class Atom:
    """Represents a single atom in a model.

    Attributes:
        element: Element symbol with normalized capitalization
        coords: Cartesian coordinates in Angstroms (NaN if unparsable)
        serial: Serial number as written in the source file
        index: Zero-based position of the atom within its model
        name: Atom name (e.g., 'CA', 'N'); the element for formats without names
        is_hetero: Whether this atom is outside the main polymer (HETATM)
        chain: Chain identifier
        resi: Residue sequence number
        icode: Insertion code
        resn: Residue name
        raw_line: Source line the atom was read from
        ss: Secondary structure assignment
        ss_begin: First residue of a secondary structure run
        ss_end: Last residue of a secondary structure run
        properties: Extra per-atom values (charge, radius, b-factor, ...)
        bonds: Indices of bonded atoms
        bond_order: Bond orders, parallel to ``bonds``
        displacement: Optional per-atom vector (vibrations, velocities)
        symmetries: Symmetry mate positions (compact assembly mode)
        chain_segment: Id of the contiguous polymer stretch this atom is in
        style: Per-atom style record (compact JSON molecules)
    """
    element: str
    coords: np.ndarray  # Shape (3,)
    serial: Optional[int] = None
    index: int = 0
    name: str = ""
    is_hetero: bool = True
    chain: str = ""
    resi: Optional[int] = None
    icode: str = ""
    resn: str = ""
    raw_line: Optional[str] = None
    ss: SecondaryStructure = SecondaryStructure.COIL
    ss_begin: bool = False
    ss_end: bool = False
    properties: Dict[str, Any] = field(default_factory=dict)
    bonds: List[int] = field(default_factory=list)
    bond_order: List[int] = field(default_factory=list)
    displacement: Optional[np.ndarray] = None
    symmetries: Optional[List[np.ndarray]] = None
    chain_segment: Optional[int] = None
    style: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not isinstance(self.coords, np.ndarray) or self.coords.dtype != np.float64:
            self.coords = np.array(self.coords, dtype=np.float64)
        if self.coords.shape != (3,):
            raise ValueError(f"Coords must be shape (3,), got {self.coords.shape}")

    @property
    def x(self) -> float:
        return float(self.coords[0])

    @property
    def y(self) -> float:
        return float(self.coords[1])

    @property
    def z(self) -> float:
        return float(self.coords[2])

    @property
    def rescode(self) -> str:
        """Residue number combined with the insertion code, e.g. '52^A'."""
        code = "" if self.resi is None else str(self.resi)
        if self.icode.strip():
            code += f"^{self.icode}"
        return code

    @property
    def is_hydrogen(self) -> bool:
        """Check if this is a hydrogen atom."""
        return self.element == "H"

    @property
    def has_finite_coords(self) -> bool:
        return bool(np.isfinite(self.coords).all())

    def add_bond(self, other: "Atom", order: int = 1) -> bool:
        """Bond this atom to ``other`` on both ends.

        Returns False (and changes nothing) for self-bonds or when the
        edge already exists.
        """
        if other is self or other.index == self.index:
            return False
        if other.index in self.bonds:
            return False
        self.bonds.append(other.index)
        self.bond_order.append(order)
        other.bonds.append(self.index)
        other.bond_order.append(order)
        return True

    def set_bond_order(self, other: "Atom", order: int) -> None:
        """Update the order of an existing bond on both ends."""
        for atom, target in ((self, other.index), (other, self.index)):
            for i, bonded in enumerate(atom.bonds):
                if bonded == target:
                    atom.bond_order[i] = order

    def copy(self) -> "Atom":
        """Copy with independent bond lists, properties and coordinates."""
        clone = copy.copy(self)
        clone.coords = self.coords.copy()
        clone.bonds = list(self.bonds)
        clone.bond_order = list(self.bond_order)
        clone.properties = dict(self.properties)
        if self.displacement is not None:
            clone.displacement = self.displacement.copy()
        if self.symmetries is not None:
            clone.symmetries = [p.copy() for p in self.symmetries]
        return clone


@dataclass
class UnitCell:
    """Crystallographic unit cell.

    Attributes:
        a, b, c: Cell edge lengths in Angstroms
        alpha, beta, gamma: Cell angles in degrees
    """
    a: float
    b: float
    c: float
    alpha: float = 90.0
    beta: float = 90.0
    gamma: float = 90.0

    def conversion_matrix(self) -> np.ndarray:
        """3x3 matrix converting fractional to Cartesian coordinates."""
        alpha, beta, gamma = np.radians([self.alpha, self.beta, self.gamma])
        cos_alpha, cos_beta, cos_gamma = np.cos(alpha), np.cos(beta), np.cos(gamma)
        sin_gamma = np.sin(gamma)
        volume_term = np.sqrt(
            1 - cos_alpha**2 - cos_beta**2 - cos_gamma**2
            + 2 * cos_alpha * cos_beta * cos_gamma
        )
        return np.array([
            [self.a, self.b * cos_gamma, self.c * cos_beta],
            [0.0, self.b * sin_gamma, self.c * (cos_alpha - cos_beta * cos_gamma) / sin_gamma],
            [0.0, 0.0, self.c * volume_term / sin_gamma],
        ], dtype=np.float64)

    def fractional_to_cartesian(self, points: np.ndarray) -> np.ndarray:
        """Convert fractional coordinates (shape (3,) or (N, 3)) to Cartesian."""
        points = np.asarray(points, dtype=np.float64)
        return points @ self.conversion_matrix().T

    def to_dict(self) -> Dict[str, float]:
        return {
            "a": self.a, "b": self.b, "c": self.c,
            "alpha": self.alpha, "beta": self.beta, "gamma": self.gamma,
        }


@dataclass
class ModelMetadata:
    """Per-model metadata: unit cell and symmetry operators."""
    cell: Optional[UnitCell] = None
    symmetries: List["SymmetryOperation"] = field(default_factory=list)


@dataclass
class Model:
    """An ordered sequence of atoms plus metadata.

    The atom order is significant: it is the index space referenced by
    every atom's bond list.
    """
    atoms: List[Atom] = field(default_factory=list)
    metadata: ModelMetadata = field(default_factory=ModelMetadata)

    def __len__(self) -> int:
        return len(self.atoms)

    def __iter__(self) -> Iterator[Atom]:
        return iter(self.atoms)

    def __getitem__(self, index: int) -> Atom:
        return self.atoms[index]

    @property
    def num_atoms(self) -> int:
        """Number of atoms in this model."""
        return len(self.atoms)

    @property
    def num_bonds(self) -> int:
        """Number of distinct bonds."""
        return sum(len(atom.bonds) for atom in self.atoms) // 2

    def reindex(self) -> None:
        """Set every atom's index to its position."""
        for i, atom in enumerate(self.atoms):
            atom.index = i

    def coordinates(self) -> np.ndarray:
        """Get all coordinates as Nx3 array."""
        if not self.atoms:
            return np.zeros((0, 3), dtype=np.float64)
        return np.stack([atom.coords for atom in self.atoms])


class ModelBuilder:
    """The model under construction during a parse.

    Parsers own one builder at a time, add atoms to it, and call
    :meth:`build` only at a frame or record boundary.
    """

    def __init__(self, metadata: Optional[ModelMetadata] = None):
        self.atoms: List[Atom] = []
        self.metadata = metadata if metadata is not None else ModelMetadata()
        self._serial_to_index: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self.atoms)

    @property
    def is_empty(self) -> bool:
        return not self.atoms

    def add_atom(self, atom: Atom) -> Atom:
        """Append an atom, assigning its index and registering its serial."""
        atom.index = len(self.atoms)
        self.atoms.append(atom)
        if atom.serial is not None:
            self._serial_to_index[atom.serial] = atom.index
        return atom

    def atom_by_serial(self, serial: Optional[int]) -> Optional[Atom]:
        """Look up an atom of the current record by its file serial."""
        if serial is None:
            return None
        index = self._serial_to_index.get(serial)
        if index is None:
            return None
        return self.atoms[index]

    def begin_record(self) -> None:
        """Forget serials of previous records (records merged into one model)."""
        self._serial_to_index.clear()

    def build(self) -> Model:
        """Finalize the model."""
        return Model(atoms=self.atoms, metadata=self.metadata)


def merge_models(models: Sequence[Model]) -> List[Model]:
    """Merge models into a single model, keeping bond indices consistent.

    Atoms of later models are appended in order; their bond indices are
    offset by the number of atoms already merged, and index and serial are
    renumbered to the merged position. The first model's metadata is kept.
    """
    if not models:
        return []
    merged = Model(atoms=[], metadata=models[0].metadata)
    for model in models:
        offset = len(merged.atoms)
        for atom in model.atoms:
            atom.bonds = [b + offset for b in atom.bonds]
            atom.index = len(merged.atoms)
            atom.serial = atom.index
            merged.atoms.append(atom)
    return [merged]
