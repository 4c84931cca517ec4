"""Processing passes run on parsed models.

- connectivity: distance-based bond inference (spatial hash and polymer-aware)
- secondary_structure: helix/sheet heuristic from backbone hydrogen bonds
- bioassembly: symmetry operators and assembly expansion
"""

# Connectivity
from molingest.processing.connectivity import (
    BondDetector,
    assign_bonds,
    assign_polymer_bonds,
)

# Secondary structure
from molingest.processing.secondary_structure import (
    HBond,
    SecondaryStructureAssigner,
    assign_secondary_structure,
)

# Symmetry
from molingest.processing.bioassembly import (
    AssemblyExpander,
    SymmetryOperation,
    expand_assembly,
    parse_symmetry_string,
)

__all__ = [
    "BondDetector",
    "assign_bonds",
    "assign_polymer_bonds",
    "HBond",
    "SecondaryStructureAssigner",
    "assign_secondary_structure",
    "AssemblyExpander",
    "SymmetryOperation",
    "expand_assembly",
    "parse_symmetry_string",
]
