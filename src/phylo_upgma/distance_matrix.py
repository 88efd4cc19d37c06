"""
Symmetric sparse distance matrix over active cluster ids.

Entries are keyed by the canonical pair ``(min(a, b), max(a, b))`` so that
``(a, b)`` and ``(b, a)`` can never disagree. A per-id neighbour index keeps
retirement of a cluster proportional to the number of its entries.
"""

import math
from typing import Dict, Hashable, Iterator, List, Sequence, Set, Tuple

import numpy as np


def _key(a: Hashable, b: Hashable) -> Tuple[Hashable, Hashable]:
    return (a, b) if a <= b else (b, a)


class DistanceMatrix:

    def __init__(self):
        self._dist: Dict[Tuple[Hashable, Hashable], float] = {}
        self._neighbours: Dict[Hashable, Set[Hashable]] = {}

    def __len__(self) -> int:
        return len(self._dist)

    def __contains__(self, pair) -> bool:
        a, b = pair
        return a != b and _key(a, b) in self._dist

    def get(self, a: Hashable, b: Hashable) -> float:
        """Distance between a and b; KeyError if the pair was never put."""
        try:
            return self._dist[_key(a, b)]
        except KeyError:
            raise KeyError(f"no distance for pair ({a!r}, {b!r})") from None

    def put(self, a: Hashable, b: Hashable, d: float) -> None:
        if a == b:
            raise ValueError(f"cannot store a distance from {a!r} to itself")
        d = float(d)
        if not math.isfinite(d) or d < 0:
            raise ValueError(f"distance must be finite and non-negative, got {d}")
        self._dist[_key(a, b)] = d
        self._neighbours.setdefault(a, set()).add(b)
        self._neighbours.setdefault(b, set()).add(a)

    def remove_all_involving(self, x: Hashable) -> None:
        for other in self._neighbours.pop(x, set()):
            del self._dist[_key(x, other)]
            peers = self._neighbours[other]
            peers.discard(x)
            if not peers:
                del self._neighbours[other]

    def ids(self) -> List[Hashable]:
        """Ids that still have at least one entry."""
        return list(self._neighbours)

    def items(self) -> Iterator[Tuple[Hashable, Hashable, float]]:
        """Each stored pair once, as (a, b, d) with a < b."""
        for (a, b), d in self._dist.items():
            yield a, b, d

    # ------------------------------------------------------------------
    # numpy conversion
    # ------------------------------------------------------------------

    @classmethod
    def from_array(cls, D: np.ndarray, ids: Sequence[Hashable]) -> "DistanceMatrix":
        """
        Build from a dense matrix.

        Parameters
        ----------
        D : np.ndarray (n x n)
            Symmetric distance matrix; the diagonal is ignored.
        ids : sequence
            Row/column ids of length n.
        """
        D = np.array(D, dtype=float)
        n = D.shape[0]
        if D.ndim != 2 or D.shape[1] != n:
            raise ValueError("D must be a square matrix")
        if len(ids) != n:
            raise ValueError("len(ids) must match matrix size")
        if not np.allclose(D, D.T):
            raise ValueError("D must be symmetric")

        matrix = cls()
        for i in range(n):
            for j in range(i + 1, n):
                matrix.put(ids[i], ids[j], D[i, j])
        return matrix

    def to_array(self, ids: Sequence[Hashable]) -> np.ndarray:
        """Dense matrix for the given ids with zeros on the diagonal."""
        n = len(ids)
        D = np.zeros((n, n), dtype=float)
        for i in range(n):
            for j in range(i + 1, n):
                D[i, j] = D[j, i] = self.get(ids[i], ids[j])
        return D
