"""
System wiring and request dependencies
"""

from typing import Optional
from fastapi import Header

from ..assets import AssetLedger
from ..audit import AuditTrail
from ..clock import Clock
from ..config import SavingsConfig, get_config
from ..events import EventDispatcher
from ..registry import VaultRegistry
from ..storage import StorageInterface, create_storage


class SavingsSystem:
    """Savings vault system with all components initialized"""

    def __init__(
        self,
        config: Optional[SavingsConfig] = None,
        storage: Optional[StorageInterface] = None,
        clock: Optional[Clock] = None
    ):
        self.config = config or get_config()

        self.storage = storage or create_storage(self.config.storage_backend, self.config.sqlite_path)
        self.audit_trail = AuditTrail(self.storage) if self.config.enable_audit_logging else None
        self.event_dispatcher = EventDispatcher() if self.config.enable_events else None
        self.asset_ledger = AssetLedger(self.storage)
        self.registry = VaultRegistry(
            admin_identity=self.config.admin_identity,
            asset_ledger=self.asset_ledger,
            clock=clock,
            audit_trail=self.audit_trail,
            event_dispatcher=self.event_dispatcher
        )


_system: Optional[SavingsSystem] = None


def get_savings_system() -> SavingsSystem:
    """Dependency returning the process-wide system, built on first use"""
    global _system
    if _system is None:
        _system = SavingsSystem()
    return _system


def get_caller(x_identity: str = Header(..., description="Authenticated caller identity")) -> str:
    """Caller identity, authenticated upstream and passed in X-Identity"""
    return x_identity
