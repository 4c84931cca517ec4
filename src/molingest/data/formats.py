"""Format registry and the single parsing entry point.

Example usage:
    >>> from molingest import parse_structure
    >>> models = parse_structure(text, "pdb", {"multimodel": True})
    >>> models[0].num_atoms
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Type, Union

from molingest.config import Config
from molingest.data.parsers.base import OptionsLike, StructureParser
from molingest.data.parsers.cdjson import ChemDoodleJSONParser
from molingest.data.parsers.cube import CubeParser
from molingest.data.parsers.mmcif_parser import MMCIFParser
from molingest.data.parsers.mol2 import MOL2Parser
from molingest.data.parsers.pdb import PDBParser, PDBQTParser
from molingest.data.parsers.pqr import PQRParser
from molingest.data.parsers.sdf import SDFParser
from molingest.data.parsers.xyz import XYZParser
from molingest.data.structure import Model
from molingest.utils import timed


logger = logging.getLogger(__name__)


class StructureFormat(str, Enum):
    """Supported input formats."""
    CUBE = "cube"
    XYZ = "xyz"
    SDF = "sdf"
    CDJSON = "cdjson"
    CIF = "cif"
    MOL2 = "mol2"
    PDB = "pdb"
    PDBQT = "pdbqt"
    PQR = "pqr"

    @classmethod
    def from_name(cls, name: Union[str, "StructureFormat"]) -> "StructureFormat":
        """Resolve a format name or file extension, case-insensitively.

        Raises:
            ValueError: If the name is not a known format or alias
        """
        if isinstance(name, StructureFormat):
            return name
        key = name.strip().lower().lstrip(".")
        try:
            return _ALIASES[key]
        except KeyError:
            raise ValueError(f"Unknown structure format: {name!r}") from None

    @property
    def parser_class(self) -> Type[StructureParser]:
        return _PARSERS[self]


_ALIASES: Dict[str, StructureFormat] = {fmt.value: fmt for fmt in StructureFormat}
_ALIASES.update({
    "mcif": StructureFormat.CIF,
    "mmcif": StructureFormat.CIF,
    "json": StructureFormat.CDJSON,
    "mol": StructureFormat.SDF,
    "ent": StructureFormat.PDB,
})

_PARSERS: Dict[StructureFormat, Type[StructureParser]] = {
    StructureFormat.CUBE: CubeParser,
    StructureFormat.XYZ: XYZParser,
    StructureFormat.SDF: SDFParser,
    StructureFormat.CDJSON: ChemDoodleJSONParser,
    StructureFormat.CIF: MMCIFParser,
    StructureFormat.MOL2: MOL2Parser,
    StructureFormat.PDB: PDBParser,
    StructureFormat.PDBQT: PDBQTParser,
    StructureFormat.PQR: PQRParser,
}


def get_parser(
    fmt: Union[str, StructureFormat],
    config: Optional[Config] = None,
) -> StructureParser:
    """Instantiate the parser for a format."""
    return StructureFormat.from_name(fmt).parser_class(config)


@timed("parse_structure", logger=logger)
def parse_structure(
    text: str,
    fmt: Union[str, StructureFormat],
    options: OptionsLike = None,
    config: Optional[Config] = None,
) -> List[Model]:
    """Parse structure text of the given format into models.

    Args:
        text: Full file contents
        fmt: Format name, alias or StructureFormat
        options: ParseOptions or a mapping of option names (camelCase
            aliases such as ``keepH`` are accepted)
        config: Engine configuration; defaults to Config()

    Returns:
        List of non-empty models; empty when nothing could be parsed

    Raises:
        ValueError: If the format is unknown
    """
    parser = get_parser(fmt, config)
    return parser.parse(text, options)
