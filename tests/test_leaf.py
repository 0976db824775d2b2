"""Tests for leaf encoding — proves the packed (address, uint256) layout."""

import pytest
from eth_utils import keccak, to_checksum_address
from web3 import Web3

from distributor.crypto.leaf import NODE_SIZE, encode_leaf
from distributor.models.account import MAX_UINT256


ALICE = "0x00000000000000000000000000000000000000a1"
BOB = "0x00000000000000000000000000000000000000b2"


def _manual_leaf(address: str, amount: int) -> bytes:
    return keccak(bytes.fromhex(address[2:]) + amount.to_bytes(32, "big"))


class TestEncoding:
    def test_matches_packed_concatenation(self) -> None:
        assert encode_leaf(ALICE, 100) == _manual_leaf(ALICE, 100)

    def test_matches_solidity_keccak(self) -> None:
        """Same bytes as keccak256(abi.encodePacked(address, uint256))."""
        amount = 100 * 10**18
        expected = Web3.solidity_keccak(
            ["address", "uint256"], [to_checksum_address(ALICE), amount]
        )
        assert encode_leaf(ALICE, amount) == bytes(expected)

    def test_leaf_is_32_bytes(self) -> None:
        assert len(encode_leaf(ALICE, 1)) == NODE_SIZE

    def test_case_insensitive_account(self) -> None:
        mixed = to_checksum_address("0x" + "ab" * 20)
        assert encode_leaf(mixed, 5) == encode_leaf(mixed.lower(), 5)

    def test_raw_bytes_account(self) -> None:
        raw = bytes.fromhex(ALICE[2:])
        assert encode_leaf(raw, 7) == encode_leaf(ALICE, 7)

    def test_amount_changes_leaf(self) -> None:
        assert encode_leaf(ALICE, 100) != encode_leaf(ALICE, 101)

    def test_account_changes_leaf(self) -> None:
        assert encode_leaf(ALICE, 100) != encode_leaf(BOB, 100)

    def test_boundary_amounts(self) -> None:
        assert encode_leaf(ALICE, 0) == _manual_leaf(ALICE, 0)
        assert encode_leaf(ALICE, MAX_UINT256) == _manual_leaf(ALICE, MAX_UINT256)


class TestRejection:
    @pytest.mark.parametrize("amount", [-1, 2**256, True, 1.5, "100"])
    def test_rejects_non_uint256_amount(self, amount: object) -> None:
        with pytest.raises(ValueError):
            encode_leaf(ALICE, amount)  # type: ignore[arg-type]

    @pytest.mark.parametrize("account", [
        "0x1234",
        "not-an-address",
        b"\x01" * 19,
        b"\x01" * 32,
    ])
    def test_rejects_malformed_account(self, account: object) -> None:
        with pytest.raises(ValueError):
            encode_leaf(account, 1)  # type: ignore[arg-type]

    def test_rejects_bad_checksum(self) -> None:
        good = to_checksum_address("0x" + "ab" * 20)
        # Flip the case of the first letter to break the EIP-55 checksum
        idx = next(i for i, c in enumerate(good) if i > 1 and c.isalpha())
        bad = good[:idx] + good[idx].swapcase() + good[idx + 1:]
        with pytest.raises(ValueError):
            encode_leaf(bad, 1)
