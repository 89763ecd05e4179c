"""
Tests for the error taxonomy
"""

import pytest

from core_savings.assets import AssetClass
from core_savings.errors import (
    VaultError, AlreadyRegistered, NotRegistered, NotAdmin, NotOwner,
    DuplicateLockPeriod, InvalidLockDuration, InvalidToken, InvalidBank,
    InvalidAmount, InvalidDestination, InsufficientBalance, TransferFailed
)


class TestVaultErrors:
    """Every error carries a stable code and its identifiers"""

    @pytest.mark.parametrize("error,code", [
        (AlreadyRegistered("alice"), "already_registered"),
        (NotRegistered(identity="alice"), "not_registered"),
        (NotAdmin("alice"), "not_admin"),
        (NotOwner("bob", "vault-1"), "not_owner"),
        (DuplicateLockPeriod("vault-1", AssetClass.BASE, 60), "duplicate_lock_period"),
        (InvalidLockDuration("vault-1", AssetClass.BASE, 0), "invalid_lock_duration"),
        (InvalidToken("vault-1", AssetClass.TOKEN), "invalid_token"),
        (InvalidBank("vault-1", AssetClass.BASE, 3), "invalid_bank"),
        (InvalidAmount(0), "invalid_amount"),
        (InvalidDestination("vault-1", AssetClass.BASE, 0, "vault-1"), "invalid_destination"),
        (InsufficientBalance("vault-1", AssetClass.BASE, 0, 5, 10), "insufficient_balance"),
        (TransferFailed("refused", "base", "a", "b", 1), "transfer_failed"),
    ])
    def test_codes(self, error, code):
        assert isinstance(error, VaultError)
        assert isinstance(error, ValueError)
        assert error.code == code
        assert error.to_dict()["error"] == code

    def test_identifiers_are_attributes(self):
        error = NotOwner("bob", "vault-1")
        assert error.identity == "bob"
        assert error.vault_id == "vault-1"

    def test_to_dict_serializes_enums(self):
        error = InsufficientBalance("vault-1", AssetClass.TOKEN, 2, 5, 10)

        assert error.asset_class is AssetClass.TOKEN
        assert error.to_dict() == {
            "error": "insufficient_balance",
            "detail": str(error),
            "vault_id": "vault-1",
            "asset_class": "token",
            "bank_index": 2,
            "balance": 5,
            "requested": 10
        }

    def test_missing_identifiers_are_omitted(self):
        error = NotRegistered(vault_id="vault-9")

        assert error.identity is None
        assert error.to_dict() == {
            "error": "not_registered",
            "detail": "Vault vault-9 is not registered",
            "vault_id": "vault-9"
        }
