"""
Element properties and constants.

Contains the empirical bonding radii used for distance-based bond
inference, the atomic number lookup used by volumetric formats, and the
AutoDock atom type aliases found in PDBQT files.
"""

from __future__ import annotations

from typing import Final, Optional

# =============================================================================
# Bonding Radii (Å)
# =============================================================================

# Empirical radii used to decide whether two atoms are covalently bonded.
# No values are listed for Cr, As, Po, At, the lanthanides or the last row;
# those fall back to DEFAULT_BOND_RADIUS.
BOND_RADII: Final[dict[str, float]] = {
    # Period 1
    "H": 0.37, "He": 0.32,

    # Period 2
    "Li": 1.34, "Be": 0.90, "B": 0.82, "C": 0.77, "N": 0.75, "O": 0.73,
    "F": 0.71, "Ne": 0.69,

    # Period 3
    "Na": 1.54, "Mg": 1.30, "Al": 1.18, "Si": 1.11, "P": 1.06, "S": 1.02,
    "Cl": 0.99, "Ar": 0.97,

    # Period 4
    "K": 1.96, "Ca": 1.74, "Sc": 1.44, "Ti": 1.56, "V": 1.25, "Mn": 1.39,
    "Fe": 1.25, "Co": 1.26, "Ni": 1.21, "Cu": 1.38, "Zn": 1.31, "Ga": 1.26,
    "Ge": 1.22, "Se": 1.16, "Br": 1.14, "Kr": 1.10,

    # Period 5
    "Rb": 2.11, "Sr": 1.92, "Y": 1.62, "Zr": 1.48, "Nb": 1.37, "Mo": 1.45,
    "Tc": 1.56, "Ru": 1.26, "Rh": 1.35, "Pd": 1.31, "Ag": 1.53, "Cd": 1.48,
    "In": 1.44, "Sn": 1.41, "Sb": 1.38, "Te": 1.35, "I": 1.33, "Xe": 1.30,

    # Period 6
    "Cs": 2.25, "Ba": 1.98, "Lu": 1.60, "Hf": 1.50, "Ta": 1.38, "W": 1.46,
    "Re": 1.59, "Os": 1.44, "Ir": 1.37, "Pt": 1.28, "Au": 1.44, "Hg": 1.49,
    "Tl": 1.48, "Pb": 1.47, "Bi": 1.46, "Rn": 1.45,
}

DEFAULT_BOND_RADIUS: Final[float] = 1.6

# Largest possible bond (Cs-Cs) with a 10% fudge factor. Used as the
# spatial hash cell size so that bonded atoms are always in the same or
# adjacent cells.
MAX_BOND_LENGTH: Final[float] = round(2 * max(BOND_RADII.values()) * 1.1, 4)

# =============================================================================
# Atomic Numbers
# =============================================================================

ATOMIC_NUMBERS: Final[dict[int, str]] = {
    1: "H", 2: "He", 3: "Li", 4: "Be", 5: "B", 6: "C", 7: "N", 8: "O",
    9: "F", 10: "Ne", 11: "Na", 12: "Mg", 13: "Al", 14: "Si", 15: "P",
    16: "S", 17: "Cl", 18: "Ar", 19: "K", 20: "Ca", 21: "Sc", 22: "Ti",
    23: "V", 24: "Cr", 25: "Mn", 26: "Fe", 27: "Co", 28: "Ni", 29: "Cu",
    30: "Zn", 31: "Ga", 32: "Ge", 33: "As", 34: "Se", 35: "Br", 36: "Kr",
    37: "Rb", 38: "Sr", 39: "Y", 40: "Zr", 41: "Nb", 42: "Mo", 43: "Tc",
    44: "Ru", 45: "Rh", 46: "Pd", 47: "Ag", 48: "Cd", 49: "In", 50: "Sn",
    51: "Sb", 52: "Te", 53: "I", 54: "Xe", 55: "Cs", 56: "Ba", 78: "Pt",
    79: "Au", 80: "Hg", 82: "Pb", 83: "Bi",
}

UNKNOWN_ELEMENT: Final[str] = "X"

# Every symbol with a tabulated radius or atomic number
KNOWN_ELEMENTS: Final[frozenset[str]] = frozenset(BOND_RADII) | frozenset(ATOMIC_NUMBERS.values())

# =============================================================================
# Units
# =============================================================================

BOHR_TO_ANGSTROM: Final[float] = 0.529177

# =============================================================================
# AutoDock (PDBQT) Atom Types
# =============================================================================

# AutoDock types that do not spell out an element symbol. Anything else in
# the PDBQT type column is treated as a plain element.
AUTODOCK_TYPES: Final[dict[str, str]] = {
    "A": "C",    # aromatic carbon
    "HD": "H",   # donor hydrogen
    "HS": "H",
    "NA": "N",   # acceptor nitrogen
    "NS": "N",
    "OA": "O",   # acceptor oxygen
    "OS": "O",
    "SA": "S",   # acceptor sulfur
    "G0": "C", "G1": "C", "G2": "C", "G3": "C",  # macrocycle glue carbons
    "CG0": "C", "CG1": "C", "CG2": "C", "CG3": "C",
}


def normalize_element(symbol: str) -> str:
    """Normalize capitalization of an element symbol ("CL" -> "Cl")."""
    symbol = symbol.strip()
    if not symbol:
        return symbol
    return symbol[0].upper() + symbol[1:].lower()


def bond_radius(element: str, default: float = DEFAULT_BOND_RADIUS) -> float:
    """Bonding radius of an element, or the default for unlisted elements."""
    return BOND_RADII.get(element, default)


def element_from_atomic_number(number: Optional[int]) -> str:
    """Element symbol for an atomic number, "X" when unknown."""
    if number is None:
        return UNKNOWN_ELEMENT
    return ATOMIC_NUMBERS.get(number, UNKNOWN_ELEMENT)


def is_known_element(symbol: str) -> bool:
    """Whether the (normalized) symbol is a tabulated element."""
    return symbol in KNOWN_ELEMENTS
