"""molingest: molecular structure text parsing.

This package provides tools for:
- Parsing cube, XYZ, SDF, ChemDoodle JSON, CIF/mmCIF, MOL2, PDB/PDBQT and
  PQR text into atom/bond models
- Distance-based bond inference (generic and polymer-aware)
- Heuristic helix/sheet assignment from backbone hydrogen bonds
- Crystallographic and biological assembly expansion
"""

from molingest.config import Config, ParseOptions
from molingest.data.formats import StructureFormat, get_parser, parse_structure
from molingest.data.structure import Atom, Model, SecondaryStructure, UnitCell

__version__ = "0.1.0"
__all__ = [
    "Config",
    "ParseOptions",
    "StructureFormat",
    "get_parser",
    "parse_structure",
    "Atom",
    "Model",
    "SecondaryStructure",
    "UnitCell",
    "__version__",
]
