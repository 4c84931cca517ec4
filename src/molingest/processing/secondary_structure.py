"""Secondary structure assignment from backbone hydrogen bonds.

This is a fast heuristic, not DSSP. Backbone N and O atoms are paired with
their single closest partner within 3.2 Å, and residue labels are derived
from the sequence spacing of those pairs:

- A hydrogen bond between residues i and i+4 of one chain marks a helix.
- Residues bonded to a residue that is itself bonded (and not helical) are
  sheet.
- Single-residue gaps are filled and single-residue runs removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from molingest.config import SecondaryStructureConfig
from molingest.data.structure import Atom, SecondaryStructure


logger = logging.getLogger(__name__)


BACKBONE_HBOND_NAMES = frozenset({"N", "O"})

# Residue label for H-bonded residues not yet confirmed as sheet
MAYBE_SHEET = "maybesheet"

HELIX = SecondaryStructure.HELIX.value
SHEET = SecondaryStructure.SHEET.value

ResidueLabels = Dict[str, Dict[int, str]]


@dataclass
class HBond:
    """Closest backbone hydrogen-bond partner of an atom."""
    partner: Atom
    distance_sq: float


class SecondaryStructureAssigner:
    """Assign helix/sheet labels to protein atoms in place.

    Example usage:
        >>> assigner = SecondaryStructureAssigner()
        >>> assigner.assign(model.atoms)
    """

    def __init__(self, config: Optional[SecondaryStructureConfig] = None):
        """Initialize assigner.

        Args:
            config: H-bond thresholds (uses defaults if None)
        """
        self.config = config or SecondaryStructureConfig()

    def find_backbone_hbonds(self, atoms: Sequence[Atom]) -> Dict[int, HBond]:
        """Find the closest backbone N/O partner of each N/O atom.

        Only non-hetero atoms named N or O with finite coordinates take
        part. Pairs of the same atom name, and same-chain pairs fewer than
        ``min_residue_separation`` residues apart, are ignored.

        Args:
            atoms: Atoms of one model

        Returns:
            Mapping from ``Atom.index`` to the closest partner
        """
        cutoff = self.config.hbond_cutoff
        cutoff_sq = self.config.hbond_cutoff_sq
        min_separation = self.config.min_residue_separation

        candidates = [
            atom for atom in atoms
            if not atom.is_hetero
            and atom.name in BACKBONE_HBOND_NAMES
            and atom.has_finite_coords
        ]
        candidates.sort(key=lambda atom: atom.z)

        hbonds: Dict[int, HBond] = {}
        n = len(candidates)
        for i, ai in enumerate(candidates):
            for j in range(i + 1, n):
                aj = candidates[j]
                dz = aj.z - ai.z
                if dz > cutoff:
                    break
                if aj.name == ai.name:
                    continue
                dy = abs(aj.y - ai.y)
                if dy > cutoff:
                    continue
                dx = abs(aj.x - ai.x)
                if dx > cutoff:
                    continue
                dist_sq = dx * dx + dy * dy + dz * dz
                if dist_sq > cutoff_sq:
                    continue
                if (
                    aj.chain == ai.chain
                    and ai.resi is not None
                    and aj.resi is not None
                    and abs(aj.resi - ai.resi) < min_separation
                ):
                    continue

                for atom, partner in ((ai, aj), (aj, ai)):
                    current = hbonds.get(atom.index)
                    if current is None or dist_sq < current.distance_sq:
                        hbonds[atom.index] = HBond(partner=partner, distance_sq=dist_sq)

        logger.debug(f"Found {len(hbonds)} backbone H-bond partners among {len(candidates)} atoms")
        return hbonds

    def assign(self, atoms: Sequence[Atom]) -> None:
        """Label atoms with helix/sheet codes and run boundaries.

        Atoms outside any helix or sheet keep their current label.

        Args:
            atoms: Atoms of one model
        """
        hbonds = self.find_backbone_hbonds(atoms)
        labels: ResidueLabels = {}
        residue_atoms = [atom for atom in atoms if atom.resi is not None]

        for atom in residue_atoms:
            labels.setdefault(atom.chain, {})

        # Helices first
        for atom in residue_atoms:
            hbond = hbonds.get(atom.index)
            if hbond is None or hbond.partner.resi is None:
                continue
            other = hbond.partner
            if other.chain == atom.chain and abs(other.resi - atom.resi) == self.config.helix_spacing:
                labels[atom.chain][atom.resi] = HELIX
                labels[other.chain][other.resi] = HELIX

        self._fill_gaps(labels, HELIX)

        # Potential sheets, only where the residue is not helical
        for atom in residue_atoms:
            if atom.index not in hbonds:
                continue
            if labels[atom.chain].get(atom.resi) != HELIX and atom.ss != SecondaryStructure.HELIX:
                labels[atom.chain][atom.resi] = MAYBE_SHEET

        # Sheets must bond to other sheets
        for atom in residue_atoms:
            hbond = hbonds.get(atom.index)
            if hbond is None or labels[atom.chain].get(atom.resi) != MAYBE_SHEET:
                continue
            other = hbond.partner
            if other.resi is None:
                continue
            other_labels = labels.setdefault(other.chain, {})
            if other_labels.get(other.resi) in (MAYBE_SHEET, SHEET):
                labels[atom.chain][atom.resi] = SHEET
                other_labels[other.resi] = SHEET

        self._fill_gaps(labels, SHEET)
        self._remove_singletons(labels)

        self._apply_labels(residue_atoms, labels)

    @staticmethod
    def _fill_gaps(labels: ResidueLabels, value: str) -> None:
        """Fill single-residue gaps between two residues carrying ``value``.

        Residues are visited in sequence order and updated in place.
        """
        for chain_labels in labels.values():
            if not chain_labels:
                continue
            first, last = min(chain_labels), max(chain_labels)
            for resi in range(first + 1, last):
                before = chain_labels.get(resi - 1)
                if before == value and chain_labels.get(resi + 1) == value:
                    chain_labels[resi] = value

    @staticmethod
    def _remove_singletons(labels: ResidueLabels) -> None:
        for chain_labels in labels.values():
            for resi in sorted(chain_labels):
                value = chain_labels.get(resi)
                if value not in (HELIX, SHEET):
                    continue
                if chain_labels.get(resi - 1) != value and chain_labels.get(resi + 1) != value:
                    del chain_labels[resi]

    @staticmethod
    def _apply_labels(atoms: List[Atom], labels: ResidueLabels) -> None:
        counts: Dict[Tuple[str, str], int] = {}
        for atom in atoms:
            chain_labels = labels[atom.chain]
            value = chain_labels.get(atom.resi)
            if value not in (HELIX, SHEET):
                continue
            atom.ss = SecondaryStructure(value)
            if chain_labels.get(atom.resi - 1) != value:
                atom.ss_begin = True
            if chain_labels.get(atom.resi + 1) != value:
                atom.ss_end = True
            key = (atom.chain, value)
            counts[key] = counts.get(key, 0) + 1

        for (chain, value), n in sorted(counts.items()):
            logger.debug(f"Chain {chain!r}: {n} atoms labelled {value!r}")


def assign_secondary_structure(
    atoms: Sequence[Atom],
    config: Optional[SecondaryStructureConfig] = None,
) -> None:
    """Convenience wrapper around :meth:`SecondaryStructureAssigner.assign`."""
    SecondaryStructureAssigner(config).assign(atoms)
