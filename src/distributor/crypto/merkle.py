"""Merkle tree and proof verification over keccak-256 with sorted pairs.

Parents are keccak(min(a, b) || max(a, b)), comparing the two 32-byte
nodes as big-endian integers. Because the pair is sorted, a proof is just
the list of siblings from leaf to root; no left/right position bits are
carried. An odd node at the end of a level is promoted to the next level
unchanged and contributes no proof element.

verify_proof is pure and lock-free. MerkleTree is the offline side and is
only used to build commitments and proofs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence, Union

from eth_utils import keccak

from distributor.crypto.leaf import NODE_SIZE

EMPTY_COMMITMENT = b"\x00" * NODE_SIZE

NodeLike = Union[str, bytes, bytearray]


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single leaf."""
    leaf: bytes
    path: list[bytes] = field(default_factory=list)
    root: bytes = EMPTY_COMMITMENT


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Combine two nodes into their parent, order-independently."""
    if b < a:
        a, b = b, a
    return keccak(a + b)


def verify_proof(
    proof: Sequence[bytes],
    commitment: bytes,
    leaf: bytes,
) -> bool:
    """Return True iff leaf folded with proof reduces to commitment.

    Never raises. Any value that is not exactly 32 bytes yields False.
    """
    if not _is_node(leaf) or not _is_node(commitment):
        return False
    computed = bytes(leaf)
    for sibling in proof:
        if not _is_node(sibling):
            return False
        computed = hash_pair(computed, bytes(sibling))
    return computed == bytes(commitment)


def to_node(value: NodeLike) -> bytes:
    """Coerce a 0x-hex string or raw bytes into a 32-byte node.

    Used at input boundaries (JSON files, CLI arguments). Raises ValueError.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise ValueError(f"Invalid hex node: {value!r}") from e
    else:
        raise ValueError(f"Invalid node type: {type(value).__name__}")
    if len(raw) != NODE_SIZE:
        raise ValueError(f"Node must be {NODE_SIZE} bytes, got {len(raw)}")
    return raw


def _is_node(value: object) -> bool:
    return isinstance(value, (bytes, bytearray)) and len(value) == NODE_SIZE


class MerkleTree:
    """A keccak-256 Merkle tree with sorted-pair hashing.

    Usage:
        tree = MerkleTree()
        tree.add_leaf(encode_leaf(alice, 100))
        tree.add_leaf(encode_leaf(bob, 50))
        root = tree.compute_root()
        proof = tree.inclusion_proof(encode_leaf(alice, 100))
    """

    def __init__(self, sort_leaves: bool = True) -> None:
        self._sort_leaves = sort_leaves
        self._leaves: list[bytes] = []
        self._tree: list[list[bytes]] = []
        self._computed = False

    def add_leaf(self, leaf: bytes) -> None:
        """Add a 32-byte leaf. Must be called before compute_root."""
        if self._computed:
            raise RuntimeError("Tree already computed. Create a new tree.")
        if not _is_node(leaf):
            raise ValueError(f"Leaf must be {NODE_SIZE} bytes")
        self._leaves.append(bytes(leaf))

    def add_leaves(self, leaves: Iterable[bytes]) -> None:
        for leaf in leaves:
            self.add_leaf(leaf)

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    def compute_root(self) -> bytes:
        """Compute the Merkle root.

        With no leaves the root is the empty sentinel, which the ledger
        treats as "no commitment published".
        """
        if not self._leaves:
            self._tree = []
            self._computed = True
            return EMPTY_COMMITMENT

        level = sorted(self._leaves) if self._sort_leaves else list(self._leaves)
        self._tree = [level]
        while len(level) > 1:
            next_level: list[bytes] = []
            for i in range(0, len(level), 2):
                if i + 1 < len(level):
                    next_level.append(hash_pair(level[i], level[i + 1]))
                else:
                    next_level.append(level[i])
            self._tree.append(next_level)
            level = next_level

        self._computed = True
        return level[0]

    def inclusion_proof(self, leaf: bytes) -> MerkleProof | None:
        """Generate an inclusion proof for a leaf.

        Returns None if the leaf is not in the tree.
        Must call compute_root first.
        """
        if not self._computed:
            raise RuntimeError("Must call compute_root before generating proofs")
        if not self._tree or leaf not in self._tree[0]:
            return None

        idx = self._tree[0].index(leaf)
        path: list[bytes] = []
        for level in self._tree[:-1]:
            sibling_idx = idx ^ 1
            if sibling_idx < len(level):
                path.append(level[sibling_idx])
            idx //= 2

        return MerkleProof(leaf=bytes(leaf), path=path, root=self._tree[-1][0])
