"""
Species records and the FASTA loader that produces them.

A species is a name plus a sequence of symbols. Trees hold references to
species at their leaves only and never modify them.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import numpy as np
from Bio import SeqIO

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# 1. Species record
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class Species:
    name: str
    sequence: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.name:
            raise ValueError("species name must be non-empty")
        # accept plain strings and lists, store an immutable tuple
        object.__setattr__(self, "sequence", tuple(self.sequence))

    def __len__(self) -> int:
        return len(self.sequence)

    def distance(self, other: "Species") -> float:
        return sequence_distance(self.sequence, other.sequence)


def sequence_distance(a: Sequence[str], b: Sequence[str]) -> float:
    """
    Hamming distance between two symbol sequences.

    Positions are compared up to the shorter length; every trailing symbol
    of the longer sequence counts as one more mismatch.
    """
    n = min(len(a), len(b))
    if n:
        left = np.asarray(list(a[:n]), dtype=object)
        right = np.asarray(list(b[:n]), dtype=object)
        mismatches = int(np.count_nonzero(left != right))
    else:
        mismatches = 0
    return float(mismatches + abs(len(a) - len(b)))


# ----------------------------------------------------------------------
# 2. FASTA loader
# ----------------------------------------------------------------------

def _species_name(header: str, name_field: int) -> str:
    """Name from an NCBI style ``gi|...|ref|...|`` header, or '' if absent."""
    if "ref" not in header:
        return ""
    fields = header.split("|")
    if len(fields) <= name_field:
        return ""
    return fields[name_field].strip()


def load_species_file(path: Union[str, Path], name_field: int = 6) -> List[Species]:
    """
    Read all named species from a FASTA file.

    Parameters
    ----------
    path : str or Path
        FASTA file.
    name_field : int
        Index of the '|'-separated header field holding the species name.

    Returns
    -------
    species : list[Species]
        Species in file order. Records without a resolvable name, with an
        empty sequence, or repeating an earlier name are skipped, as is any
        text before the first record. A missing file yields an empty list.
    """
    path = Path(path)
    species: List[Species] = []
    seen = set()

    try:
        records = list(SeqIO.parse(str(path), "fasta-pearson"))
    except FileNotFoundError:
        logger.warning(f"Species file not found: {path}")
        return species

    for record in records:
        name = _species_name(record.description, name_field)
        if not name:
            logger.debug(f"Skipping record without species name: {record.id}")
            continue
        seq = str(record.seq)
        if not seq:
            logger.debug(f"Skipping {name}: empty sequence")
            continue
        if name in seen:
            logger.debug(f"Skipping repeated species {name}")
            continue
        seen.add(name)
        species.append(Species(name=name, sequence=tuple(seq)))

    logger.info(f"Loaded {len(species)} species from {path}")
    return species
