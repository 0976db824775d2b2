"""Tests for the sorted-pair Merkle tree and proof verification."""

import pytest
from eth_utils import keccak

from distributor.crypto.leaf import encode_leaf
from distributor.crypto.merkle import (
    EMPTY_COMMITMENT,
    MerkleTree,
    hash_pair,
    to_node,
    verify_proof,
)


def _leaf(n: int) -> bytes:
    """Generate a deterministic test leaf."""
    return keccak(n.to_bytes(32, "big"))


def _tree(count: int, sort_leaves: bool = True) -> tuple[MerkleTree, list[bytes], bytes]:
    tree = MerkleTree(sort_leaves=sort_leaves)
    leaves = [_leaf(i) for i in range(count)]
    tree.add_leaves(leaves)
    return tree, leaves, tree.compute_root()


def _flip(node: bytes, position: int) -> bytes:
    mutated = bytearray(node)
    mutated[position] ^= 0x01
    return bytes(mutated)


class TestHashPair:
    def test_order_independent(self) -> None:
        a, b = _leaf(1), _leaf(2)
        assert hash_pair(a, b) == hash_pair(b, a)

    def test_smaller_value_first(self) -> None:
        a, b = sorted([_leaf(1), _leaf(2)])
        assert hash_pair(b, a) == keccak(a + b)


class TestMerkleTree:
    def test_empty_tree(self) -> None:
        tree = MerkleTree()
        assert tree.compute_root() == EMPTY_COMMITMENT

    def test_single_leaf_root_is_leaf(self) -> None:
        tree = MerkleTree()
        tree.add_leaf(_leaf(1))
        assert tree.compute_root() == _leaf(1)
        proof = tree.inclusion_proof(_leaf(1))
        assert proof is not None
        assert proof.path == []

    def test_two_leaf_root(self) -> None:
        _, leaves, root = _tree(2)
        low, high = sorted(leaves)
        assert root == keccak(low + high)

    def test_deterministic(self) -> None:
        """Same leaves produce same root regardless of insertion order."""
        tree1 = MerkleTree()
        tree1.add_leaf(_leaf(1))
        tree1.add_leaf(_leaf(2))
        tree1.add_leaf(_leaf(3))

        tree2 = MerkleTree()
        tree2.add_leaf(_leaf(3))
        tree2.add_leaf(_leaf(1))
        tree2.add_leaf(_leaf(2))

        assert tree1.compute_root() == tree2.compute_root()

    def test_different_leaves_different_roots(self) -> None:
        _, _, root1 = _tree(3)
        tree = MerkleTree()
        tree.add_leaves([_leaf(0), _leaf(1), _leaf(99)])
        assert tree.compute_root() != root1

    @pytest.mark.parametrize("count", [1, 2, 3, 4, 5, 7, 8, 9, 16, 17])
    def test_every_proof_verifies(self, count: int) -> None:
        tree, leaves, root = _tree(count)
        for leaf in leaves:
            proof = tree.inclusion_proof(leaf)
            assert proof is not None
            assert proof.root == root
            assert verify_proof(proof.path, root, leaf)

    @pytest.mark.parametrize("count", [3, 5, 6])
    def test_unsorted_tree_proofs_verify(self, count: int) -> None:
        tree, leaves, root = _tree(count, sort_leaves=False)
        for leaf in leaves:
            proof = tree.inclusion_proof(leaf)
            assert verify_proof(proof.path, root, leaf)

    def test_odd_node_promoted_without_sibling(self) -> None:
        """With three leaves the last sorted leaf pairs only at the top."""
        tree, leaves, root = _tree(3)
        last = sorted(leaves)[-1]
        proof = tree.inclusion_proof(last)
        assert len(proof.path) == 1
        low, mid = sorted(leaves)[:2]
        assert proof.path[0] == hash_pair(low, mid)

    def test_missing_leaf_no_proof(self) -> None:
        tree, _, _ = _tree(2)
        assert tree.inclusion_proof(_leaf(42)) is None

    def test_cannot_add_after_compute(self) -> None:
        tree, _, _ = _tree(1)
        with pytest.raises(RuntimeError):
            tree.add_leaf(_leaf(5))

    def test_proof_before_compute(self) -> None:
        tree = MerkleTree()
        tree.add_leaf(_leaf(1))
        with pytest.raises(RuntimeError, match="compute_root"):
            tree.inclusion_proof(_leaf(1))

    def test_rejects_short_leaf(self) -> None:
        with pytest.raises(ValueError):
            MerkleTree().add_leaf(b"\x01" * 31)

    def test_leaf_count(self) -> None:
        tree, _, _ = _tree(6)
        assert tree.leaf_count == 6


class TestVerifyProof:
    def test_empty_proof_requires_leaf_equal_commitment(self) -> None:
        assert verify_proof([], _leaf(1), _leaf(1))
        assert not verify_proof([], _leaf(2), _leaf(1))

    def test_every_single_byte_mutation_fails(self) -> None:
        tree, leaves, root = _tree(9)
        leaf = leaves[4]
        path = tree.inclusion_proof(leaf).path
        assert verify_proof(path, root, leaf)
        for i, element in enumerate(path):
            for position in range(32):
                mutated = list(path)
                mutated[i] = _flip(element, position)
                assert not verify_proof(mutated, root, leaf)

    def test_mutated_leaf_fails(self) -> None:
        tree, leaves, root = _tree(4)
        path = tree.inclusion_proof(leaves[0]).path
        assert not verify_proof(path, root, _flip(leaves[0], 31))

    def test_wrong_commitment_fails(self) -> None:
        tree, leaves, root = _tree(4)
        path = tree.inclusion_proof(leaves[0]).path
        assert not verify_proof(path, _flip(root, 0), leaves[0])

    def test_extra_or_duplicate_sibling_fails(self) -> None:
        tree, leaves, root = _tree(4)
        path = tree.inclusion_proof(leaves[1]).path
        assert not verify_proof(path + [path[-1]], root, leaves[1])
        assert not verify_proof(path[:-1], root, leaves[1])

    def test_malformed_input_is_false_not_error(self) -> None:
        tree, leaves, root = _tree(2)
        path = tree.inclusion_proof(leaves[0]).path
        assert not verify_proof([path[0][:31]], root, leaves[0])
        assert not verify_proof(["0x" + path[0].hex()], root, leaves[0])  # type: ignore[list-item]
        assert not verify_proof(path, root[:16], leaves[0])
        assert not verify_proof(path, root, None)  # type: ignore[arg-type]

    def test_allowlist_leaf_round(self) -> None:
        """A real (account, amount) leaf verifies only for its own amount."""
        alice = "0x00000000000000000000000000000000000000a1"
        bob = "0x00000000000000000000000000000000000000b2"
        tree = MerkleTree()
        tree.add_leaves([encode_leaf(alice, 100), encode_leaf(bob, 50)])
        root = tree.compute_root()
        path = tree.inclusion_proof(encode_leaf(bob, 50)).path
        assert verify_proof(path, root, encode_leaf(bob, 50))
        assert not verify_proof(path, root, encode_leaf(bob, 999))


class TestToNode:
    def test_hex_and_bytes(self) -> None:
        node = _leaf(3)
        assert to_node("0x" + node.hex()) == node
        assert to_node(node.hex()) == node
        assert to_node(bytearray(node)) == node

    @pytest.mark.parametrize("value", ["0x1234", "0xzz" + "00" * 31, b"\x00" * 33, 12])
    def test_rejects_malformed(self, value: object) -> None:
        with pytest.raises(ValueError):
            to_node(value)  # type: ignore[arg-type]
