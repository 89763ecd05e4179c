"""
Vault Module

Per-identity savings vault holding time-locked banks. Each bank holds
either the base currency or one fungible token and carries a lock duration;
withdrawing before the lock expires costs a breaking fee paid to the admin.

Amounts are integers in the asset's smallest unit. Value moves through the
AssetLedger; every deposit and withdrawal stages its balance deltas, runs
the external transfers and saves the updated bank records inside one
atomic ledger scope, and only then commits the deltas, so a failed
transfer leaves no trace. Bank records live in the ledger's storage so a
vault can be rebuilt after a restart.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple
from contextlib import contextmanager
import math
import threading
import uuid
import logging

from .assets import AssetClass, AssetLedger, BASE_ASSET
from .audit import AuditTrail, AuditEventType
from .clock import Clock, SystemClock
from .errors import (
    VaultError, NotOwner, DuplicateLockPeriod, InvalidLockDuration,
    InvalidToken, InvalidBank, InvalidAmount, InvalidDestination,
    InsufficientBalance
)
from .events import EventDispatcher, DomainEvent, create_bank_event
from .logging_config import log_action


# Breaking fee on early withdrawal, truncated toward zero
BREAKING_FEE_PERCENT = 3


class LockStatus(Enum):
    """Lock state of a bank, derived from the clock on every read"""
    LOCKED = "locked"
    UNLOCKED = "unlocked"


@dataclass(frozen=True)
class Bank:
    """
    One locked sub-account within a vault

    Banks are immutable values; a balance change replaces the bank in its
    vault with an updated copy, so snapshots handed to callers never move.
    """
    vault_id: str
    asset_class: AssetClass
    index: int
    label: str
    token_identity: Optional[str]
    lock_duration_seconds: int
    created_at: datetime
    balance: int = 0

    @property
    def reference(self) -> str:
        """Stable identifier used in audit records and events"""
        return f"{self.vault_id}/{self.asset_class.value}/{self.index}"

    @property
    def asset(self) -> str:
        """Asset ledger key for the value this bank holds"""
        return AssetLedger.asset_key(self.asset_class, self.token_identity)

    @property
    def unlocks_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.lock_duration_seconds)

    def is_locked(self, now: datetime) -> bool:
        return now < self.unlocks_at

    def lock_status(self, now: datetime) -> LockStatus:
        return LockStatus.LOCKED if self.is_locked(now) else LockStatus.UNLOCKED

    def remaining_lock_seconds(self, now: datetime) -> int:
        """Whole seconds until unlock, rounded up; 0 once unlocked"""
        remaining = (self.unlocks_at - now).total_seconds()
        return max(0, math.ceil(remaining))

    def to_dict(self, now: Optional[datetime] = None) -> Dict:
        """Convert to dictionary for API responses"""
        result = {
            "vault_id": self.vault_id,
            "asset_class": self.asset_class.value,
            "index": self.index,
            "label": self.label,
            "token_identity": self.token_identity,
            "lock_duration_seconds": self.lock_duration_seconds,
            "balance": self.balance,
            "created_at": self.created_at.isoformat(),
            "unlocks_at": self.unlocks_at.isoformat()
        }
        if now is not None:
            result["lock_status"] = self.lock_status(now).value
            result["remaining_lock_seconds"] = self.remaining_lock_seconds(now)
        return result

    def to_record(self) -> Dict:
        """Convert to dictionary for storage"""
        return {
            "id": self.reference,
            "vault_id": self.vault_id,
            "asset_class": self.asset_class.value,
            "index": self.index,
            "label": self.label,
            "token_identity": self.token_identity,
            "lock_duration_seconds": self.lock_duration_seconds,
            "balance": str(self.balance),
            "created_at": self.created_at.isoformat()
        }

    @classmethod
    def from_record(cls, data: Dict) -> 'Bank':
        """Create Bank from a stored record"""
        return cls(
            vault_id=data['vault_id'],
            asset_class=AssetClass(data['asset_class']),
            index=int(data['index']),
            label=data['label'],
            token_identity=data.get('token_identity'),
            lock_duration_seconds=int(data['lock_duration_seconds']),
            created_at=datetime.fromisoformat(data['created_at']),
            balance=int(data['balance'])
        )


def calculate_breaking_fee(amount: int, locked: bool) -> Tuple[int, int]:
    """
    Split a withdrawal into (fee, net)

    Locked banks pay BREAKING_FEE_PERCENT of the amount, truncated toward
    zero; unlocked banks pay nothing.
    """
    if not locked:
        return 0, amount
    fee = amount * BREAKING_FEE_PERCENT // 100
    return fee, amount - fee


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class StagedBalances:
    """
    Balance deltas held back until every external transfer has succeeded.

    Deltas are checked against the staged running balance, so a stage can
    never drive a bank negative. Nothing touches the vault until commit().
    """

    def __init__(self, banks: Dict[AssetClass, List[Bank]]):
        self._banks = banks
        self._deltas: Dict[Tuple[AssetClass, int], int] = {}

    def staged_balance(self, bank: Bank) -> int:
        return bank.balance + self._deltas.get((bank.asset_class, bank.index), 0)

    def credit(self, bank: Bank, amount: int) -> None:
        key = (bank.asset_class, bank.index)
        self._deltas[key] = self._deltas.get(key, 0) + amount

    def debit(self, bank: Bank, amount: int) -> None:
        if amount > self.staged_balance(bank):
            raise InsufficientBalance(
                bank.vault_id, bank.asset_class, bank.index,
                self.staged_balance(bank), amount
            )
        key = (bank.asset_class, bank.index)
        self._deltas[key] = self._deltas.get(key, 0) - amount

    def pending(self) -> List[Bank]:
        """Banks as they will look once the staged deltas apply"""
        updated = []
        for (asset_class, index), delta in self._deltas.items():
            bank = self._banks[asset_class][index]
            updated.append(replace(bank, balance=bank.balance + delta))
        return updated

    def commit(self) -> List[Bank]:
        """Apply all staged deltas; returns the updated banks"""
        updated = self.pending()
        for bank in updated:
            self._banks[bank.asset_class][bank.index] = bank
        self._deltas.clear()
        return updated

    def discard(self) -> None:
        self._deltas.clear()


class Vault:
    """
    Savings vault owned by a single identity

    Owner and admin are fixed at construction. Mutations are serialized by
    a per-vault lock and either complete or leave the vault untouched.
    """

    def __init__(
        self,
        owner_identity: str,
        admin_identity: str,
        asset_ledger: AssetLedger,
        clock: Optional[Clock] = None,
        audit_trail: Optional[AuditTrail] = None,
        event_dispatcher: Optional[EventDispatcher] = None,
        vault_id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ):
        self._owner_identity = owner_identity
        self._admin_identity = admin_identity
        self._vault_id = vault_id or f"vault-{uuid.uuid4()}"
        self.assets = asset_ledger
        self.clock = clock or SystemClock()
        self.audit_trail = audit_trail
        self._event_dispatcher = event_dispatcher
        self._created_at = created_at or self.clock.now()
        self._banks: Dict[AssetClass, List[Bank]] = {
            AssetClass.BASE: [],
            AssetClass.TOKEN: []
        }
        self._lock = threading.RLock()
        self.banks_table = "vault_banks"
        self.logger = logging.getLogger("savings.vault")

    @classmethod
    def from_record(
        cls,
        data: Dict,
        asset_ledger: AssetLedger,
        clock: Optional[Clock] = None,
        audit_trail: Optional[AuditTrail] = None,
        event_dispatcher: Optional[EventDispatcher] = None
    ) -> 'Vault':
        """Rebuild a vault and its banks from storage"""
        vault = cls(
            owner_identity=data['owner_identity'],
            admin_identity=data['admin_identity'],
            asset_ledger=asset_ledger,
            clock=clock,
            audit_trail=audit_trail,
            event_dispatcher=event_dispatcher,
            vault_id=data['vault_id'],
            created_at=datetime.fromisoformat(data['created_at'])
        )
        records = asset_ledger.storage.find(vault.banks_table, {"vault_id": vault.vault_id})
        for bank in sorted((Bank.from_record(r) for r in records), key=lambda b: b.index):
            vault._banks[bank.asset_class].append(bank)
        return vault

    def to_record(self) -> Dict:
        """Convert to dictionary for storage"""
        return {
            "vault_id": self._vault_id,
            "owner_identity": self._owner_identity,
            "admin_identity": self._admin_identity,
            "created_at": self._created_at.isoformat()
        }

    @property
    def owner_identity(self) -> str:
        return self._owner_identity

    @property
    def admin_identity(self) -> str:
        return self._admin_identity

    @property
    def vault_id(self) -> str:
        """Vault identifier, also its custody account in the asset ledger"""
        return self._vault_id

    @property
    def created_at(self) -> datetime:
        return self._created_at

    def __repr__(self) -> str:
        return f"Vault({self._vault_id!r}, owner={self._owner_identity!r})"

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_bank(
        self,
        caller: str,
        asset_class: AssetClass,
        label: str,
        token_identity: Optional[str],
        lock_duration_seconds: int
    ) -> int:
        """
        Open a new bank

        Args:
            caller: Identity making the call; must be the owner
            asset_class: BASE or TOKEN
            label: Free-text name
            token_identity: Token held by a TOKEN bank; ignored for BASE
            lock_duration_seconds: Seconds before penalty-free withdrawal

        Returns:
            Index of the new bank within its asset class
        """
        with self._lock:
            try:
                self._require_owner(caller)
                asset_class = self._require_asset_class(asset_class)
                if not _is_positive_int(lock_duration_seconds):
                    raise InvalidLockDuration(self._vault_id, asset_class, lock_duration_seconds)
                if asset_class == AssetClass.TOKEN:
                    if not token_identity or token_identity == BASE_ASSET:
                        raise InvalidToken(self._vault_id, asset_class)
                else:
                    token_identity = None
                if any(b.lock_duration_seconds == lock_duration_seconds for b in self._banks[asset_class]):
                    raise DuplicateLockPeriod(self._vault_id, asset_class, lock_duration_seconds)
            except VaultError as e:
                self._log_rejection(e, caller, "create_bank")
                raise

            bank = Bank(
                vault_id=self._vault_id,
                asset_class=asset_class,
                index=len(self._banks[asset_class]),
                label=label,
                token_identity=token_identity,
                lock_duration_seconds=lock_duration_seconds,
                created_at=self.clock.now()
            )
            self._save_bank(bank)
            self._banks[asset_class].append(bank)

        log_action(
            self.logger, "info",
            f"Created {asset_class.value} bank {bank.index} locked for {lock_duration_seconds}s",
            identity=caller, action="create_bank", resource=bank.reference
        )
        self._record(
            AuditEventType.BANK_CREATED, DomainEvent.BANK_CREATED, bank, caller,
            label=label,
            token_identity=token_identity,
            lock_duration_seconds=lock_duration_seconds
        )
        return bank.index

    def deposit(self, caller: str, asset_class: AssetClass, bank_index: int, amount: int) -> int:
        """
        Move amount from the caller into the vault and credit the bank

        Base deposits are pulled straight from the caller's balance. Token
        deposits are pulled with transfer_from, so the caller must first
        approve the vault (vault_id) as spender.

        Returns:
            The bank's new balance
        """
        with self._lock:
            try:
                self._require_owner(caller)
                bank = self._get_bank(asset_class, bank_index)
                if not _is_positive_int(amount):
                    raise InvalidAmount(amount, self._vault_id, bank.asset_class, bank.index)

                with self._staged_commit() as stage:
                    if bank.asset_class == AssetClass.TOKEN:
                        self.assets.transfer_from(bank.asset, self._vault_id, caller, self._vault_id, amount)
                    else:
                        self.assets.transfer(bank.asset, caller, self._vault_id, amount)
                    stage.credit(bank, amount)
            except VaultError as e:
                self._log_rejection(e, caller, "deposit")
                raise

            bank = self._banks[bank.asset_class][bank.index]

        log_action(
            self.logger, "info",
            f"Deposited {amount} into {bank.asset_class.value} bank {bank.index}",
            identity=caller, action="deposit", resource=bank.reference,
            extra={"amount": amount, "balance": bank.balance}
        )
        self._record(
            AuditEventType.DEPOSIT_POSTED, DomainEvent.BANK_DEPOSITED, bank, caller,
            amount=amount
        )
        return bank.balance

    def withdraw(
        self,
        caller: str,
        asset_class: AssetClass,
        bank_index: int,
        destination: str,
        amount: int
    ) -> Tuple[int, int]:
        """
        Pay amount out of a bank

        While the bank is locked a breaking fee is split off and paid to the
        admin; the rest goes to destination. The fee payment, the net
        payment and the balance decrement succeed together or not at all.
        Each withdrawal is judged against the bank's original creation time.

        Returns:
            (fee, net) actually paid
        """
        with self._lock:
            try:
                self._require_owner(caller)
                bank = self._get_bank(asset_class, bank_index)
                if not _is_positive_int(amount):
                    raise InvalidAmount(amount, self._vault_id, bank.asset_class, bank.index)
                if destination == self._vault_id:
                    raise InvalidDestination(self._vault_id, bank.asset_class, bank.index, destination)
                if amount > bank.balance:
                    raise InsufficientBalance(self._vault_id, bank.asset_class, bank.index, bank.balance, amount)

                locked = bank.is_locked(self.clock.now())
                fee, net = calculate_breaking_fee(amount, locked)

                with self._staged_commit() as stage:
                    stage.debit(bank, amount)
                    if fee:
                        self.assets.transfer(bank.asset, self._vault_id, self._admin_identity, fee)
                    self.assets.transfer(bank.asset, self._vault_id, destination, net)
            except VaultError as e:
                self._log_rejection(e, caller, "withdraw")
                raise

            bank = self._banks[bank.asset_class][bank.index]

        log_action(
            self.logger, "info",
            f"Withdrew {amount} from {bank.asset_class.value} bank {bank.index} "
            f"({'locked' if locked else 'unlocked'}, fee {fee})",
            identity=caller, action="withdraw", resource=bank.reference,
            extra={"amount": amount, "fee": fee, "net": net, "destination": destination}
        )
        self._record(
            AuditEventType.WITHDRAWAL_POSTED, DomainEvent.BANK_WITHDRAWN, bank, caller,
            amount=amount, fee=fee, net=net, destination=destination
        )
        return fee, net

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def bank(self, asset_class: AssetClass, bank_index: int) -> Bank:
        """Snapshot of one bank"""
        with self._lock:
            return self._get_bank(asset_class, bank_index)

    def banks(self, asset_class: AssetClass) -> List[Bank]:
        """Snapshots of every bank of an asset class, in index order"""
        with self._lock:
            return list(self._banks[self._require_asset_class(asset_class)])

    def bank_counts(self) -> Tuple[int, int]:
        """(base_count, token_count)"""
        with self._lock:
            return len(self._banks[AssetClass.BASE]), len(self._banks[AssetClass.TOKEN])

    def bank_balance(self, asset_class: AssetClass, bank_index: int) -> int:
        return self.bank(asset_class, bank_index).balance

    def total_balance(self, asset_class: AssetClass, token_filter: Optional[str] = None) -> int:
        """
        Sum of balances across banks of an asset class

        For TOKEN only banks holding token_filter are counted; the filter is
        ignored for BASE.
        """
        with self._lock:
            asset_class = self._require_asset_class(asset_class)
            banks = self._banks[asset_class]
            if asset_class == AssetClass.TOKEN:
                banks = [b for b in banks if b.token_identity == token_filter]
            return sum(b.balance for b in banks)

    def remaining_lock_time(self, asset_class: AssetClass, bank_index: int) -> int:
        """Seconds until the bank unlocks, 0 once unlocked"""
        return self.bank(asset_class, bank_index).remaining_lock_seconds(self.clock.now())

    def lock_status(self, asset_class: AssetClass, bank_index: int) -> LockStatus:
        return self.bank(asset_class, bank_index).lock_status(self.clock.now())

    def preview_withdrawal(self, asset_class: AssetClass, bank_index: int, amount: int) -> Tuple[int, int]:
        """(fee, net) a withdrawal of amount would pay right now, without moving anything"""
        bank = self.bank(asset_class, bank_index)
        if not _is_positive_int(amount):
            raise InvalidAmount(amount, self._vault_id, bank.asset_class, bank.index)
        if amount > bank.balance:
            raise InsufficientBalance(self._vault_id, bank.asset_class, bank.index, bank.balance, amount)
        return calculate_breaking_fee(amount, bank.is_locked(self.clock.now()))

    def to_dict(self) -> Dict:
        """Convert to dictionary for API responses"""
        base_count, token_count = self.bank_counts()
        return {
            "vault_id": self._vault_id,
            "owner_identity": self._owner_identity,
            "admin_identity": self._admin_identity,
            "created_at": self._created_at.isoformat(),
            "bank_counts": {"base": base_count, "token": token_count},
            "total_base_balance": self.total_balance(AssetClass.BASE)
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _staged_commit(self):
        """
        Stage balance deltas around a block of ledger transfers.

        Updated bank records are saved in the same ledger scope as the
        transfers. In-memory deltas commit only after that scope commits;
        any exception rolls the ledger back and drops the deltas.
        """
        stage = StagedBalances(self._banks)
        try:
            with self.assets.atomic():
                yield stage
                for bank in stage.pending():
                    self._save_bank(bank)
        except BaseException:
            stage.discard()
            raise
        stage.commit()

    def _save_bank(self, bank: Bank) -> None:
        self.assets.storage.save(self.banks_table, bank.reference, bank.to_record())

    def _require_owner(self, caller: str) -> None:
        if caller != self._owner_identity:
            raise NotOwner(caller, self._vault_id)

    def _require_asset_class(self, asset_class) -> AssetClass:
        if isinstance(asset_class, AssetClass):
            return asset_class
        try:
            return AssetClass(asset_class)
        except ValueError:
            raise InvalidBank(self._vault_id, asset_class, None) from None

    def _get_bank(self, asset_class: AssetClass, bank_index: int) -> Bank:
        asset_class = self._require_asset_class(asset_class)
        banks = self._banks[asset_class]
        if not isinstance(bank_index, int) or isinstance(bank_index, bool) \
                or not 0 <= bank_index < len(banks):
            raise InvalidBank(self._vault_id, asset_class, bank_index)
        return banks[bank_index]

    def _log_rejection(self, error: VaultError, caller: str, action: str) -> None:
        log_action(
            self.logger, "warning",
            f"Rejected {action}: {error.message}",
            identity=caller, action=action, resource=self._vault_id,
            extra=error.to_dict()
        )

    def _record(self, audit_type: AuditEventType, event_type: DomainEvent,
                bank: Bank, caller: str, **data) -> None:
        """
        Audit and publish a committed bank mutation

        The mutation has already committed, so an audit failure is logged
        and never reported to the caller as a failed operation.
        """
        if self.audit_trail:
            metadata = {
                "vault_id": self._vault_id,
                "asset_class": bank.asset_class.value,
                "bank_index": bank.index,
                "balance": bank.balance
            }
            metadata.update(data)
            try:
                self.audit_trail.log_event(
                    event_type=audit_type,
                    entity_type="bank",
                    entity_id=bank.reference,
                    metadata=metadata,
                    identity=caller
                )
            except Exception as e:
                log_action(
                    self.logger, "error",
                    f"Failed to audit {audit_type.value} for {bank.reference}: {e}",
                    identity=caller, action=audit_type.value, resource=bank.reference,
                    extra=metadata
                )
        if self._event_dispatcher:
            self._event_dispatcher.publish(create_bank_event(event_type, self, bank, **data))
