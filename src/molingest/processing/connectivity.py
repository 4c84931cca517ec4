"""Distance-based covalent bond inference.

Two engines are provided:
- A generic spatial hash: atoms are bucketed into cubic cells whose edge is
  the longest possible bond, so every bonded pair lies in the same cell or
  in one of the 13 forward neighbours of a cell.
- A polymer-aware variant for PDB-like input: hetero atoms use the spatial
  hash, polymer atoms are only tested against atoms of the same or the
  next residue of their chain.

Both only ever add order-1 bonds and never duplicate an existing edge, so
running them again on a bonded model is a no-op.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from molingest.config import BondingConfig
from molingest.constants.elements import bond_radius
from molingest.data.structure import Atom


logger = logging.getLogger(__name__)


CellKey = Tuple[int, int, int]

# Half of the 26 neighbouring cells; the other half is covered when the
# neighbour itself is visited.
NEIGHBOR_OFFSETS: Tuple[CellKey, ...] = (
    (0, 0, 1),
    (0, 1, -1),
    (0, 1, 0),
    (0, 1, 1),
    (1, -1, -1),
    (1, -1, 0),
    (1, -1, 1),
    (1, 0, -1),
    (1, 0, 0),
    (1, 0, 1),
    (1, 1, -1),
    (1, 1, 0),
    (1, 1, 1),
)


class BondDetector:
    """Infer covalent bonds from interatomic distances.

    Two atoms are bonded when their squared distance lies in
    ``[min_distance_sq, (r1 + r2 + fudge_factor) ** 2]``, with r1 and r2
    taken from the bonding radius table.
    """

    def __init__(self, config: Optional[BondingConfig] = None):
        """Initialize bond detector.

        Args:
            config: Bonding thresholds (uses defaults if None)
        """
        self.config = config or BondingConfig()

    def radius(self, element: str) -> float:
        return bond_radius(element, self.config.default_radius)

    def max_distance_sq(self, atom1: Atom, atom2: Atom) -> float:
        limit = self.radius(atom1.element) + self.radius(atom2.element) + self.config.fudge_factor
        return limit * limit

    def are_connected(self, atom1: Atom, atom2: Atom) -> bool:
        """Return True if two atoms are probably bonded, by distance alone."""
        diff = atom1.coords - atom2.coords
        dist_sq = float(np.dot(diff, diff))
        if np.isnan(dist_sq):
            return False
        if dist_sq < self.config.min_distance_sq:
            # Duplicate position
            return False
        return dist_sq <= self.max_distance_sq(atom1, atom2)

    # -------------------------------------------------------------------------
    # Generic spatial hash
    # -------------------------------------------------------------------------

    def assign_bonds(self, atoms: Sequence[Atom]) -> int:
        """Add order-1 bonds between all atoms close enough to be bonded.

        Bond lists reference ``Atom.index``, so ``atoms`` may be a subset
        of a model.

        Args:
            atoms: Atoms to connect

        Returns:
            Number of new bonds
        """
        if len(atoms) < 2:
            return 0

        coords = np.stack([atom.coords for atom in atoms])
        radii = np.array([self.radius(atom.element) for atom in atoms], dtype=np.float64)
        grid = self._build_grid(coords)

        added = 0
        for (x, y, z), members in grid.items():
            added += self._connect_cells(atoms, coords, radii, members, members, same_cell=True)
            for dx, dy, dz in NEIGHBOR_OFFSETS:
                others = grid.get((x + dx, y + dy, z + dz))
                if others is None:
                    continue
                added += self._connect_cells(atoms, coords, radii, members, others, same_cell=False)

        logger.debug(f"Spatial hash: {len(grid)} cells, {added} bonds for {len(atoms)} atoms")
        return added

    def _build_grid(self, coords: np.ndarray) -> Dict[CellKey, np.ndarray]:
        """Bucket atom positions by cell; atoms with NaN coordinates are left out."""
        finite = np.flatnonzero(np.isfinite(coords).all(axis=1))
        cells = np.floor(coords[finite] / self.config.cell_size).astype(np.int64)

        buckets: Dict[CellKey, List[int]] = defaultdict(list)
        for position, cell in zip(finite.tolist(), cells.tolist()):
            buckets[tuple(cell)].append(position)

        return {
            cell: np.array(members, dtype=np.intp)
            for cell, members in buckets.items()
        }

    def _connect_cells(
        self,
        atoms: Sequence[Atom],
        coords: np.ndarray,
        radii: np.ndarray,
        first: np.ndarray,
        second: np.ndarray,
        same_cell: bool,
    ) -> int:
        """Test every pair between two cells (or within one cell)."""
        diff = coords[first][:, np.newaxis, :] - coords[second][np.newaxis, :, :]
        dist_sq = np.einsum("ijk,ijk->ij", diff, diff)
        limit = radii[first][:, np.newaxis] + radii[second][np.newaxis, :] + self.config.fudge_factor
        connected = (dist_sq >= self.config.min_distance_sq) & (dist_sq <= limit * limit)
        if same_cell:
            connected = np.triu(connected, k=1)

        added = 0
        for i, j in zip(*np.nonzero(connected)):
            if atoms[first[i]].add_bond(atoms[second[j]]):
                added += 1
        return added

    # -------------------------------------------------------------------------
    # Polymer-aware variant
    # -------------------------------------------------------------------------

    def assign_polymer_bonds(self, atoms: Sequence[Atom]) -> int:
        """Assign bonds assuming polymer residues are contiguous and local.

        Hetero atoms, and polymer atoms without a residue number, go
        through the spatial hash. Polymer atoms are sorted by (chain,
        residue number) and only tested against atoms of the same or the
        following residue. Each polymer atom also receives a
        ``chain_segment`` id that increments whenever a residue does not
        bond to the residue after it.

        Args:
            atoms: All atoms of a model

        Returns:
            Number of new bonds
        """
        hetero = [atom for atom in atoms if atom.is_hetero or atom.resi is None]
        polymer = [atom for atom in atoms if not (atom.is_hetero or atom.resi is None)]

        added = self.assign_bonds(hetero)
        if not polymer:
            return added

        polymer.sort(key=lambda atom: (atom.chain, atom.resi))
        window_ends = self._residue_windows(polymer)

        coords = np.stack([atom.coords for atom in polymer])
        radii = np.array([self.radius(atom.element) for atom in polymer], dtype=np.float64)

        segment = -1
        current_residue = None
        last_residue_connected = False

        for i, ai in enumerate(polymer):
            residue = (ai.chain, ai.resi)
            if residue != current_residue:
                current_residue = residue
                if not last_residue_connected:
                    segment += 1
                last_residue_connected = False
            ai.chain_segment = segment

            end = window_ends[i]
            if end <= i + 1:
                continue

            diff = coords[i + 1:end] - coords[i]
            dist_sq = np.einsum("ij,ij->i", diff, diff)
            limit = radii[i] + radii[i + 1:end] + self.config.fudge_factor
            connected = (dist_sq >= self.config.min_distance_sq) & (dist_sq <= limit * limit)

            for offset in np.flatnonzero(connected):
                aj = polymer[i + 1 + offset]
                if ai.add_bond(aj):
                    added += 1
                if aj.resi != ai.resi:
                    last_residue_connected = True

        logger.debug(
            f"Polymer bonds: {len(polymer)} polymer atoms, {len(hetero)} hetero atoms, "
            f"{segment + 1} chain segments"
        )
        return added

    @staticmethod
    def _residue_windows(polymer: Sequence[Atom]) -> List[int]:
        """For each sorted polymer atom, the end (exclusive) of its candidate range.

        The range covers the rest of the atom's residue plus the next
        residue when that residue is in the same chain and numbered at
        most one higher.
        """
        # Start offsets of each (chain, resi) group
        starts: List[int] = []
        previous = None
        for position, atom in enumerate(polymer):
            key = (atom.chain, atom.resi)
            if key != previous:
                starts.append(position)
                previous = key
        starts.append(len(polymer))

        window_ends: List[int] = []
        for g in range(len(starts) - 1):
            group_end = starts[g + 1]
            end = group_end
            if g + 2 < len(starts):
                this_atom = polymer[starts[g]]
                next_atom = polymer[starts[g + 1]]
                if next_atom.chain == this_atom.chain and next_atom.resi - this_atom.resi <= 1:
                    end = starts[g + 2]
            window_ends.extend([end] * (group_end - starts[g]))
        return window_ends


def assign_bonds(atoms: Sequence[Atom], config: Optional[BondingConfig] = None) -> int:
    """Convenience wrapper around :meth:`BondDetector.assign_bonds`."""
    return BondDetector(config).assign_bonds(atoms)


def assign_polymer_bonds(atoms: Sequence[Atom], config: Optional[BondingConfig] = None) -> int:
    """Convenience wrapper around :meth:`BondDetector.assign_polymer_bonds`."""
    return BondDetector(config).assign_polymer_bonds(atoms)
