"""
Error Taxonomy Module

Every rejected operation raises a VaultError subclass carrying a stable
error code plus the offending identifiers, so callers can branch on cause.
VaultError derives from ValueError, matching how precondition failures are
raised throughout the system.
"""

from enum import Enum
from typing import Any, Dict, Optional


class VaultError(ValueError):
    """Base class for all vault and registry errors"""

    code = "vault_error"

    def __init__(self, message: str, **identifiers: Any):
        super().__init__(message)
        self.message = message
        self.identifiers = {
            key: (value.value if isinstance(value, Enum) else value)
            for key, value in identifiers.items()
            if value is not None
        }
        for key, value in identifiers.items():
            setattr(self, key, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and logs"""
        result: Dict[str, Any] = {"error": self.code, "detail": self.message}
        result.update(self.identifiers)
        return result


class AlreadyRegistered(VaultError):
    """Identity already owns a vault"""
    code = "already_registered"

    def __init__(self, identity: str):
        super().__init__(f"Identity {identity} already has a vault", identity=identity)


class NotRegistered(VaultError):
    """Identity (or vault id) has no vault"""
    code = "not_registered"

    def __init__(self, identity: Optional[str] = None, vault_id: Optional[str] = None):
        subject = f"Identity {identity}" if identity is not None else f"Vault {vault_id}"
        super().__init__(f"{subject} is not registered", identity=identity, vault_id=vault_id)


class NotAdmin(VaultError):
    """Caller is not the admin identity"""
    code = "not_admin"

    def __init__(self, identity: str):
        super().__init__(f"Identity {identity} is not the admin", identity=identity)


class NotOwner(VaultError):
    """Caller does not own the vault"""
    code = "not_owner"

    def __init__(self, identity: str, vault_id: str):
        super().__init__(
            f"Identity {identity} is not the owner of vault {vault_id}",
            identity=identity, vault_id=vault_id
        )


class DuplicateLockPeriod(VaultError):
    """A bank of the same asset class already uses this lock duration"""
    code = "duplicate_lock_period"

    def __init__(self, vault_id: str, asset_class, lock_duration_seconds: int):
        super().__init__(
            f"Vault {vault_id} already has a {getattr(asset_class, 'value', asset_class)} bank "
            f"locked for {lock_duration_seconds}s",
            vault_id=vault_id, asset_class=asset_class,
            lock_duration_seconds=lock_duration_seconds
        )


class InvalidLockDuration(VaultError):
    """Lock duration is not a positive whole number of seconds"""
    code = "invalid_lock_duration"

    def __init__(self, vault_id: str, asset_class, lock_duration_seconds: Any):
        super().__init__(
            f"Lock duration must be a positive number of seconds, got {lock_duration_seconds!r}",
            vault_id=vault_id, asset_class=asset_class,
            lock_duration_seconds=lock_duration_seconds
        )


class InvalidToken(VaultError):
    """Token bank created without a token identity"""
    code = "invalid_token"

    def __init__(self, vault_id: str, asset_class):
        super().__init__(
            "Token banks require a token identity",
            vault_id=vault_id, asset_class=asset_class
        )


class InvalidBank(VaultError):
    """Bank index out of range for the asset class"""
    code = "invalid_bank"

    def __init__(self, vault_id: str, asset_class, bank_index: Any):
        super().__init__(
            f"Vault {vault_id} has no {getattr(asset_class, 'value', asset_class)} bank {bank_index}",
            vault_id=vault_id, asset_class=asset_class, bank_index=bank_index
        )


class InvalidAmount(VaultError):
    """Amount is not a positive integer"""
    code = "invalid_amount"

    def __init__(self, amount: Any, vault_id: Optional[str] = None,
                 asset_class=None, bank_index: Optional[int] = None):
        super().__init__(
            f"Amount must be a positive integer, got {amount!r}",
            amount=amount, vault_id=vault_id, asset_class=asset_class,
            bank_index=bank_index
        )


class InvalidDestination(VaultError):
    """Withdrawal destination is the vault's own custody account"""
    code = "invalid_destination"

    def __init__(self, vault_id: str, asset_class, bank_index: int, destination: str):
        super().__init__(
            f"Cannot withdraw from {getattr(asset_class, 'value', asset_class)} bank "
            f"{bank_index} into vault {vault_id} itself",
            vault_id=vault_id, asset_class=asset_class, bank_index=bank_index,
            destination=destination
        )


class InsufficientBalance(VaultError):
    """Withdrawal exceeds the bank balance"""
    code = "insufficient_balance"

    def __init__(self, vault_id: str, asset_class, bank_index: int,
                 balance: int, requested: int):
        super().__init__(
            f"Insufficient balance in {getattr(asset_class, 'value', asset_class)} bank "
            f"{bank_index}: available {balance}, requested {requested}",
            vault_id=vault_id, asset_class=asset_class, bank_index=bank_index,
            balance=balance, requested=requested
        )


class TransferFailed(VaultError):
    """A value transfer was rejected"""
    code = "transfer_failed"

    def __init__(self, reason: str, asset: str, sender: str, recipient: str, amount: int):
        super().__init__(
            f"Transfer of {amount} {asset} from {sender} to {recipient} failed: {reason}",
            reason=reason, asset=asset, sender=sender, recipient=recipient,
            amount=amount
        )
