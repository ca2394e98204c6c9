"""
Sparse merkle map over field elements.

The map is a binary merkle tree of height `depth` where the key is the leaf
index. Leaves hold the value itself (0 when unset) and internal nodes hash
their two children. Only non-empty nodes are stored; empty subtrees are
represented by precomputed roots.

A witness is the authentication path of a single key: the sibling at every
height together with the side our node sits on. Replaying a witness with an
assumed value yields the root the map would have if the key held that value,
which is all the registry needs to verify reads and compute writes without
ever seeing the map itself.
"""

import functools
from dataclasses import dataclass
from typing import Iterator

from .crypto import field_hash, is_field_element

DEFAULT_DEPTH = 256

_NODE_DST = b"SPYMASTER_MERKLE_NODE"


def node_hash(left: int, right: int) -> int:
    return field_hash(_NODE_DST, left, right)


@functools.cache
def empty_subtree_roots(depth: int) -> tuple[int, ...]:
    """
    roots[h] is the root of an empty subtree of height h.
    """
    roots = [0]
    for _ in range(depth):
        roots.append(node_hash(roots[-1], roots[-1]))
    return tuple(roots)


def empty_root(depth: int = DEFAULT_DEPTH) -> int:
    return empty_subtree_roots(depth)[depth]


@dataclass(frozen=True)
class MerkleMapWitness:
    # is_lefts[h] is True when the path node at height h is a left child
    is_lefts: tuple[bool, ...]
    siblings: tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, "is_lefts", tuple(bool(b) for b in self.is_lefts))
        object.__setattr__(self, "siblings", tuple(self.siblings))
        if len(self.is_lefts) != len(self.siblings):
            raise ValueError(
                f"Length mismatch: {len(self.siblings)} siblings but {len(self.is_lefts)} positions"
            )
        if not all(is_field_element(s) for s in self.siblings):
            raise ValueError("witness siblings must be field elements")

    @property
    def depth(self) -> int:
        return len(self.siblings)

    @property
    def key(self) -> int:
        return sum(1 << h for h, is_left in enumerate(self.is_lefts) if not is_left)

    def compute_root_and_key(self, value: int) -> tuple[int, int]:
        """
        Walk from the leaf up to the root assuming the key holds `value`.

        Returns the resulting root and the key reconstructed from the path.
        """
        if not is_field_element(value):
            raise ValueError(f"value is not a field element: {value}")

        node = value
        key = 0
        for h, (is_left, sibling) in enumerate(zip(self.is_lefts, self.siblings)):
            if is_left:
                node = node_hash(node, sibling)
            else:
                node = node_hash(sibling, node)
                key |= 1 << h
        return node, key

    def compute_root(self, value: int) -> int:
        root, _ = self.compute_root_and_key(value)
        return root

    def check_and_set(self, root: int, expected: int, new: int) -> int:
        """
        Prove the key currently holds `expected` under `root` and return the
        root after writing `new` at the same key.
        """
        if self.compute_root(expected) != root:
            raise RootMismatch
        return self.compute_root(new)


class MerkleMap:
    def __init__(self, depth: int = DEFAULT_DEPTH):
        assert depth > 0
        self.depth = depth
        self._empty = empty_subtree_roots(depth)
        # (height, index) -> node, height 0 being the leaves
        self.nodes: dict[tuple[int, int], int] = {}

    def _check_key(self, key: int):
        if not is_field_element(key) or key >= 2**self.depth:
            raise KeyError(f"key out of range for a depth {self.depth} map: {key}")

    def _node(self, height: int, index: int) -> int:
        return self.nodes.get((height, index), self._empty[height])

    def _store(self, height: int, index: int, node: int):
        if node == self._empty[height]:
            self.nodes.pop((height, index), None)
        else:
            self.nodes[(height, index)] = node

    def get_root(self) -> int:
        return self._node(self.depth, 0)

    def get(self, key: int) -> int:
        self._check_key(key)
        return self._node(0, key)

    def set(self, key: int, value: int):
        self._check_key(key)
        if not is_field_element(value):
            raise ValueError(f"value is not a field element: {value}")

        index = key
        node = value
        self._store(0, index, node)
        for height in range(self.depth):
            sibling = self._node(height, index ^ 1)
            if index % 2 == 0:
                node = node_hash(node, sibling)
            else:
                node = node_hash(sibling, node)
            index //= 2
            self._store(height + 1, index, node)

    def get_witness(self, key: int) -> MerkleMapWitness:
        self._check_key(key)
        is_lefts: list[bool] = []
        siblings: list[int] = []
        index = key
        for height in range(self.depth):
            is_lefts.append(index % 2 == 0)
            siblings.append(self._node(height, index ^ 1))
            index //= 2
        return MerkleMapWitness(is_lefts, siblings)

    def check_and_set(self, key: int, expected: int, new: int) -> int:
        current = self.get(key)
        if current != expected:
            raise ValueMismatch(key, expected, current)
        self.set(key, new)
        return self.get_root()

    def items(self) -> Iterator[tuple[int, int]]:
        for (height, index), node in self.nodes.items():
            if height == 0:
                yield index, node

    def __len__(self) -> int:
        return sum(1 for _ in self.items())

    def copy(self) -> "MerkleMap":
        m = MerkleMap(self.depth)
        m.nodes = dict(self.nodes)
        return m


def map_of(entries: dict[int, int], depth: int = DEFAULT_DEPTH) -> MerkleMap:
    m = MerkleMap(depth)
    for key, value in entries.items():
        m.set(key, value)
    return m


class RootMismatch(Exception):
    def __str__(self):
        return "witness does not reconstruct the expected root"


class ValueMismatch(Exception):
    def __init__(self, key: int, expected: int, actual: int):
        super().__init__(key, expected, actual)
        self.key = key
        self.expected = expected
        self.actual = actual

    def __str__(self):
        return f"key {self.key} holds {self.actual}, expected {self.expected}"
