"""
Vault Registry Module

Directory mapping each identity to exactly one vault. Identities register
themselves or are provisioned by the admin; vaults are never reassigned or
removed. Aggregate queries delegate to the identity's vault.

Vault records are saved in the asset ledger's storage and the registry
rebuilds its directory from them when constructed.
"""

from typing import Dict, List, Optional, Tuple
import threading
import logging

from .assets import AssetClass, AssetLedger
from .audit import AuditTrail, AuditEventType
from .clock import Clock, SystemClock
from .errors import VaultError, AlreadyRegistered, NotRegistered, NotAdmin
from .events import EventDispatcher, DomainEvent, create_registration_event
from .logging_config import log_action
from .vault import Vault


class VaultRegistry:
    """
    Provisions one Vault per identity and answers aggregate queries
    """

    def __init__(
        self,
        admin_identity: str,
        asset_ledger: AssetLedger,
        clock: Optional[Clock] = None,
        audit_trail: Optional[AuditTrail] = None,
        event_dispatcher: Optional[EventDispatcher] = None
    ):
        if not admin_identity:
            raise ValueError("Registry requires an admin identity")
        self._admin_identity = admin_identity
        self.assets = asset_ledger
        self.clock = clock or SystemClock()
        self.audit_trail = audit_trail
        self._event_dispatcher = event_dispatcher
        # Vault records share the ledger's storage with bank records and balances
        self.storage = asset_ledger.storage
        self.vaults_table = "vaults"

        self._vaults_by_identity: Dict[str, Vault] = {}
        self._vaults_by_id: Dict[str, Vault] = {}
        self._directory: List[Vault] = []
        self._lock = threading.RLock()
        self.logger = logging.getLogger("savings.registry")

        self._load_vaults()

    @property
    def admin_identity(self) -> str:
        return self._admin_identity

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register(self, caller: str) -> Vault:
        """Create the caller's own vault"""
        vault = self._create_vault(caller, caller, "register")
        self._record(AuditEventType.VAULT_REGISTERED, DomainEvent.VAULT_REGISTERED, caller, caller, vault)
        return vault

    def provision(self, caller: str, target: str) -> Vault:
        """Admin-only: create a vault owned by target"""
        if caller != self._admin_identity:
            error = NotAdmin(caller)
            self._log_rejection(error, caller, "provision")
            raise error
        vault = self._create_vault(caller, target, "provision")
        self._record(AuditEventType.VAULT_PROVISIONED, DomainEvent.VAULT_PROVISIONED, caller, target, vault)
        return vault

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def is_registered(self, identity: str) -> bool:
        with self._lock:
            return identity in self._vaults_by_identity

    def total_registered(self) -> int:
        with self._lock:
            return len(self._directory)

    def vault_of(self, identity: str) -> Vault:
        with self._lock:
            vault = self._vaults_by_identity.get(identity)
        if vault is None:
            raise NotRegistered(identity=identity)
        return vault

    def find_vault(self, vault_id: str) -> Vault:
        """Look a vault up by its id"""
        with self._lock:
            vault = self._vaults_by_id.get(vault_id)
        if vault is None:
            raise NotRegistered(vault_id=vault_id)
        return vault

    def all_vaults(self) -> List[Vault]:
        """Snapshot of the directory in creation order"""
        with self._lock:
            return list(self._directory)

    def bank_counts_of(self, identity: str) -> Tuple[int, int]:
        """(base_count, token_count) for the identity's vault"""
        return self.vault_of(identity).bank_counts()

    def total_balance_of(self, identity: str, token: Optional[str] = None) -> Tuple[int, int]:
        """(base_total, token_total) for the identity's vault, token_total for the given token"""
        vault = self.vault_of(identity)
        return (
            vault.total_balance(AssetClass.BASE),
            vault.total_balance(AssetClass.TOKEN, token)
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _create_vault(self, caller: str, owner: str, action: str) -> Vault:
        with self._lock:
            if owner in self._vaults_by_identity:
                error = AlreadyRegistered(owner)
                self._log_rejection(error, caller, action)
                raise error

            vault = Vault(
                owner_identity=owner,
                admin_identity=self._admin_identity,
                asset_ledger=self.assets,
                clock=self.clock,
                audit_trail=self.audit_trail,
                event_dispatcher=self._event_dispatcher
            )
            record = vault.to_record()
            record['position'] = len(self._directory)
            self.storage.save(self.vaults_table, vault.vault_id, record)
            self._index(vault)

        log_action(
            self.logger, "info",
            f"Created vault {vault.vault_id} for {owner}",
            identity=caller, action=action, resource=vault.vault_id
        )
        return vault

    def _index(self, vault: Vault) -> None:
        # Mapping, id index and directory change together under the lock
        self._vaults_by_identity[vault.owner_identity] = vault
        self._vaults_by_id[vault.vault_id] = vault
        self._directory.append(vault)

    def _load_vaults(self) -> None:
        """Rebuild the mapping and directory from stored vault records"""
        records = sorted(self.storage.load_all(self.vaults_table), key=lambda r: r['position'])
        with self._lock:
            for record in records:
                self._index(Vault.from_record(
                    record,
                    self.assets,
                    clock=self.clock,
                    audit_trail=self.audit_trail,
                    event_dispatcher=self._event_dispatcher
                ))
        if records:
            self.logger.info(f"Loaded {len(records)} vaults from storage")

    def _log_rejection(self, error: VaultError, caller: str, action: str) -> None:
        log_action(
            self.logger, "warning",
            f"Rejected {action}: {error.message}",
            identity=caller, action=action, extra=error.to_dict()
        )

    def _record(self, audit_type: AuditEventType, event_type: DomainEvent,
                caller: str, owner: str, vault: Vault) -> None:
        """Audit and publish a committed registration; audit failures are logged"""
        if self.audit_trail:
            try:
                self.audit_trail.log_event(
                    event_type=audit_type,
                    entity_type="vault",
                    entity_id=vault.vault_id,
                    metadata={
                        "owner_identity": owner,
                        "admin_identity": self._admin_identity
                    },
                    identity=caller
                )
            except Exception as e:
                log_action(
                    self.logger, "error",
                    f"Failed to audit {audit_type.value} for {vault.vault_id}: {e}",
                    identity=caller, action=audit_type.value, resource=vault.vault_id
                )
        if self._event_dispatcher:
            self._event_dispatcher.publish(create_registration_event(event_type, owner, vault))
