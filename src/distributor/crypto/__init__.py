"""Cryptographic primitives — leaf encoding, Merkle proofs, commitment building."""

from distributor.crypto.leaf import encode_leaf
from distributor.crypto.merkle import EMPTY_COMMITMENT, MerkleTree, verify_proof
from distributor.crypto.commitment_builder import CommitmentBuilder

__all__ = [
    "encode_leaf",
    "EMPTY_COMMITMENT",
    "MerkleTree",
    "verify_proof",
    "CommitmentBuilder",
]
