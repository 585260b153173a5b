#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Signature Module for Tree Ensembles
Canonical path identifiers of tree nodes, interned across all trees of an ensemble
"""

import logging
import threading
from typing import Dict, Tuple

logger = logging.getLogger(__name__)

# Child indices are encoded in a signed byte
MAX_CHILD_INDEX = 127


class StructuralOverflowError(RuntimeError):
    """Raised when a node has more children than a signature can address"""
    pass


class TreeNodeSignature:
    """
    Position of a node as the child indices on the path from the root.

    Equality and hashing use the path, so signatures of structurally
    equivalent nodes of different trees compare equal.
    """

    __slots__ = ('path',)

    def __init__(self, path: Tuple[int, ...] = ()):
        self.path = tuple(path)

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def is_root(self) -> bool:
        return not self.path

    @property
    def child_index(self) -> int:
        """Index of this node in its parent, -1 for the root"""
        return self.path[-1] if self.path else -1

    def __eq__(self, other) -> bool:
        return isinstance(other, TreeNodeSignature) and self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __str__(self) -> str:
        return '/' + '/'.join(str(i) for i in self.path)

    def __repr__(self) -> str:
        return f"TreeNodeSignature({str(self)})"


ROOT_SIGNATURE = TreeNodeSignature(())


class TreeNodeSignatureFactory:
    """
    Returns one shared signature instance per (parent, child index).

    One factory is created per ensemble build and passed to every tree
    learner. Only the lookup-or-create step is synchronized.
    """

    def __init__(self):
        self._signatures: Dict[Tuple[int, ...], TreeNodeSignature] = {(): ROOT_SIGNATURE}
        self._lock = threading.Lock()

    def get_root_signature(self) -> TreeNodeSignature:
        return ROOT_SIGNATURE

    def get_child_signature(self, parent: TreeNodeSignature, child_index: int) -> TreeNodeSignature:
        """
        Canonical signature of a child node

        Args:
            parent: Signature of the parent node
            child_index: Index of the child in the parent

        Returns:
            The same instance for every call with an equal (parent, child_index)

        Raises:
            StructuralOverflowError: If child_index exceeds the encodable range
        """
        if child_index < 0 or child_index > MAX_CHILD_INDEX:
            raise StructuralOverflowError(
                f"Child index {child_index} of node {parent} exceeds the maximum of {MAX_CHILD_INDEX}")

        path = parent.path + (child_index,)
        with self._lock:
            signature = self._signatures.get(path)
            if signature is None:
                signature = TreeNodeSignature(path)
                self._signatures[path] = signature
        return signature

    def __len__(self) -> int:
        with self._lock:
            return len(self._signatures)
