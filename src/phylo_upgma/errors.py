"""
Exceptions raised while building a UPGMA tree.
"""


class PhyloTreeError(Exception):
    """Base class for tree construction errors."""


class EmptyInputError(PhyloTreeError, ValueError):
    """No usable species were supplied, so the tree has no root."""


class DuplicateLabelError(PhyloTreeError, ValueError):
    """Two tree nodes would share a label, either two species or a merged
    label equal to an existing one."""

    def __init__(self, label: str):
        super().__init__(f"duplicate node label: {label!r}")
        self.label = label
