"""Symmetry operators and assembly expansion.

Crystallographic and biological assemblies are described by a list of
symmetry operators applied to the atoms of one model:

- PDB files give them as BIOMT matrices.
- mmCIF files give them as ``_pdbx_struct_oper_list`` matrices.
- Small-molecule CIF files give them as ``x,y+1/2,-z`` strings in
  fractional space, converted to Cartesian space with the unit cell.

Expansion either duplicates the atoms once per non-identity operator
(duplicate mode) or records the transformed positions on each atom
(compact mode).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import List, Optional, Sequence, Tuple

import numpy as np

from molingest.config import AssemblyConfig
from molingest.data.structure import Atom, UnitCell


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Tolerance for floating point comparisons
ROTATION_TOLERANCE = 1e-6
TRANSLATION_TOLERANCE = 1e-4

_AXES = {"x": 0, "y": 1, "z": 2}


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class SymmetryOperation:
    """A single symmetry operation stored as a 4x4 affine matrix.

    The transformation is applied as: x' = R @ x + t
    where R is the upper-left 3x3 block and t the last column.

    Attributes:
        matrix: 4x4 homogeneous transformation matrix
        operator_id: Identifier for this operation (e.g. BIOMT serial)
        name: Optional human-readable name (e.g. the source xyz string)
    """
    matrix: np.ndarray  # Shape (4, 4)
    operator_id: str = "1"
    name: Optional[str] = None

    def __post_init__(self):
        """Validate and convert arrays."""
        if not isinstance(self.matrix, np.ndarray) or self.matrix.dtype != np.float64:
            self.matrix = np.array(self.matrix, dtype=np.float64)

        if self.matrix.shape != (4, 4):
            raise ValueError(f"Matrix must be (4, 4), got {self.matrix.shape}")

    @property
    def rotation(self) -> np.ndarray:
        """3x3 rotation (or general linear) part."""
        return self.matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        """Translation vector."""
        return self.matrix[:3, 3]

    def is_identity(
        self,
        rotation_tolerance: float = ROTATION_TOLERANCE,
        translation_tolerance: float = TRANSLATION_TOLERANCE,
    ) -> bool:
        """Check if this is an identity operation."""
        return (
            np.allclose(self.rotation, np.eye(3), atol=rotation_tolerance) and
            np.allclose(self.translation, np.zeros(3), atol=translation_tolerance)
        )

    def transform_point(self, point: np.ndarray) -> np.ndarray:
        """Apply transformation to a single 3D point."""
        return self.rotation @ point + self.translation

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Apply transformation to multiple 3D points.

        Args:
            points: Array of shape (N, 3)

        Returns:
            Transformed points of shape (N, 3)
        """
        return (self.rotation @ points.T).T + self.translation

    def compose(self, other: "SymmetryOperation") -> "SymmetryOperation":
        """Compose this operation with another (self after other)."""
        return SymmetryOperation(
            matrix=self.matrix @ other.matrix,
            operator_id=f"{self.operator_id}_{other.operator_id}",
        )

    def inverse(self) -> "SymmetryOperation":
        """Compute the inverse transformation.

        Operators in Cartesian space are rotations, but fractional-space
        operators of non-orthogonal cells are not, so the general inverse
        is used.
        """
        return SymmetryOperation(
            matrix=np.linalg.inv(self.matrix),
            operator_id=f"{self.operator_id}_inv",
        )

    def to_matrix_4x4(self) -> np.ndarray:
        """Convert to 4x4 homogeneous transformation matrix."""
        return self.matrix.copy()

    @classmethod
    def from_matrix_4x4(cls, matrix: np.ndarray, operator_id: str = "1") -> "SymmetryOperation":
        """Create from 4x4 homogeneous transformation matrix."""
        return cls(matrix=np.array(matrix, dtype=np.float64), operator_id=operator_id)

    @classmethod
    def from_rotation_translation(
        cls,
        rotation: np.ndarray,
        translation: np.ndarray,
        operator_id: str = "1",
        name: Optional[str] = None,
    ) -> "SymmetryOperation":
        """Create from a 3x3 rotation and a translation vector."""
        matrix = np.eye(4, dtype=np.float64)
        matrix[:3, :3] = rotation
        matrix[:3, 3] = translation
        return cls(matrix=matrix, operator_id=operator_id, name=name)

    @classmethod
    def identity(cls) -> "SymmetryOperation":
        """Create identity operation."""
        return cls(matrix=np.eye(4, dtype=np.float64), operator_id="1", name="identity")

    @classmethod
    def from_xyz_string(
        cls,
        expr: str,
        cell: Optional[UnitCell] = None,
        operator_id: str = "1",
    ) -> "SymmetryOperation":
        """Parse a symmetry string such as ``-x,y+1/2,z``.

        The string describes the operator in fractional space. When a
        unit cell is given the operator is converted to Cartesian space
        as ``C @ M @ inv(C)``, with C the cell's conversion matrix.

        Raises:
            ValueError: If the expression is malformed
        """
        op = parse_symmetry_string(expr)
        op.operator_id = operator_id
        if cell is not None:
            conversion = np.eye(4, dtype=np.float64)
            conversion[:3, :3] = cell.conversion_matrix()
            op.matrix = conversion @ op.matrix @ np.linalg.inv(conversion)
        return op


# =============================================================================
# Symmetry strings
# =============================================================================

def _parse_term(term: str) -> Tuple[Optional[int], Fraction]:
    """Split a term like ``-1/2`` or ``-x`` into (axis, coefficient)."""
    axis = None
    sign = 1
    if term.startswith("-"):
        sign = -1
        term = term[1:]

    for name, column in _AXES.items():
        if name in term:
            if axis is not None or term.count(name) > 1:
                raise ValueError(f"More than one variable in term {term!r}")
            axis = column
            term = term.replace(name, "").rstrip("*")

    if term == "":
        if axis is None:
            raise ValueError("Empty term")
        return axis, Fraction(sign)

    try:
        value = Fraction(term)
    except (ValueError, ZeroDivisionError) as e:
        raise ValueError(f"Invalid coefficient {term!r}") from e
    return axis, sign * value


def parse_symmetry_string(expr: str) -> SymmetryOperation:
    """Parse a fractional-space symmetry string into an operator.

    Each of the three comma-separated components is a sum of terms; a term
    is an optional sign, an optional rational coefficient and an optional
    variable (x, y or z). Terms without a variable form the translation.

    Args:
        expr: Expression such as ``-x,y+1/2,z``

    Returns:
        Operator in fractional space

    Raises:
        ValueError: If the expression is malformed
    """
    cleaned = expr.lower()
    for ch in ("'", '"', " ", "\t"):
        cleaned = cleaned.replace(ch, "")

    components = cleaned.split(",")
    if len(components) != 3:
        raise ValueError(f"Expected 3 components in symmetry operator {expr!r}")

    matrix = np.zeros((4, 4), dtype=np.float64)
    matrix[3, 3] = 1.0
    for row, component in enumerate(components):
        terms = [t for t in component.replace("-", "+-").split("+") if t]
        if not terms:
            raise ValueError(f"Empty component in symmetry operator {expr!r}")
        for term in terms:
            axis, coefficient = _parse_term(term)
            column = 3 if axis is None else axis
            matrix[row, column] += float(coefficient)

    return SymmetryOperation(matrix=matrix, name=expr.strip())


# =============================================================================
# Assembly Expansion
# =============================================================================

class AssemblyExpander:
    """Expands a model using its symmetry operations.

    Example usage:
        >>> expander = AssemblyExpander()
        >>> expander.expand(model.atoms, model.metadata.symmetries)
    """

    def __init__(self, config: Optional[AssemblyConfig] = None):
        """Initialize expander with configuration.

        Args:
            config: Expansion configuration (uses defaults if None)
        """
        self.config = config or AssemblyConfig()

    def _is_identity(self, op: SymmetryOperation) -> bool:
        return op.is_identity(
            self.config.rotation_tolerance, self.config.translation_tolerance
        )

    def expand(
        self,
        atoms: List[Atom],
        operations: Sequence[SymmetryOperation],
        duplicate: bool = True,
    ) -> int:
        """Expand atoms in place.

        In duplicate mode every non-identity operator appends one
        transformed copy of the original atoms; copies keep their bonds,
        shifted to the copy's own index range. In compact mode (only when
        there is more than one operator) each atom instead receives the
        list of its transformed positions in ``symmetries``.

        Args:
            atoms: Atoms of one model, indexed by position
            operations: Symmetry operations
            duplicate: Duplicate atoms rather than recording positions

        Returns:
            Number of atoms added
        """
        if not operations or not atoms:
            return 0

        if len(operations) > self.config.max_operations:
            logger.warning(
                f"Assembly has {len(operations)} operations, "
                f"exceeding limit of {self.config.max_operations}"
            )
            return 0

        active = [op for op in operations if not self._is_identity(op)]
        if not active:
            logger.debug("Assembly has only identity operations, nothing to expand")
            return 0

        end = len(atoms)
        coords = np.stack([atom.coords for atom in atoms[:end]])

        if duplicate:
            for op in active:
                offset = len(atoms)
                transformed = op.transform_points(coords)
                for n in range(end):
                    clone = atoms[n].copy()
                    clone.coords = transformed[n]
                    clone.bonds = [b + offset for b in atoms[n].bonds]
                    clone.index = offset + n
                    clone.symmetries = None
                    atoms.append(clone)
            logger.debug(f"Duplicated {end} atoms for {len(active)} operators")
            return len(atoms) - end

        if len(operations) > 1:
            mates = [op.transform_points(coords) for op in active]
            for n in range(end):
                atoms[n].symmetries = [positions[n] for positions in mates]
            logger.debug(f"Recorded {len(active)} symmetry mates on {end} atoms")
        return 0


def expand_assembly(
    atoms: List[Atom],
    operations: Sequence[SymmetryOperation],
    duplicate: bool = True,
    config: Optional[AssemblyConfig] = None,
) -> int:
    """Convenience wrapper around :meth:`AssemblyExpander.expand`."""
    return AssemblyExpander(config).expand(atoms, operations, duplicate=duplicate)
