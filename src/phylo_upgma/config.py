"""
Settings for loading, printing and exporting trees.

Values can be overridden through the environment (or a ``.env`` file):

    PHYLO_PRINTING_DEPTH    dots used to indent the deepest node
    PHYLO_NAME_FIELD        '|'-separated FASTA header field holding the name
    PHYLO_NEWICK_PRECISION  decimals written for Newick branch lengths
"""

import logging
import os
from dataclasses import dataclass

import dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeConfig:
    printing_depth: int = 100
    name_field: int = 6
    newick_precision: int = 5

    def __post_init__(self):
        for field_name in ("printing_depth", "name_field", "newick_precision"):
            if getattr(self, field_name) < 0:
                raise ValueError(f"{field_name} must be non-negative")

    @classmethod
    def from_env(cls) -> "TreeConfig":
        """Create config from PHYLO_* environment variables."""
        dotenv.load_dotenv()
        defaults = cls()
        config = cls(
            printing_depth=int(os.getenv("PHYLO_PRINTING_DEPTH", defaults.printing_depth)),
            name_field=int(os.getenv("PHYLO_NAME_FIELD", defaults.name_field)),
            newick_precision=int(os.getenv("PHYLO_NEWICK_PRECISION", defaults.newick_precision)),
        )
        logger.debug(f"Loaded {config}")
        return config
