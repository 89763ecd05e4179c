"""
Test suite for audit module

Tests hash-chained audit trail, tamper detection and integrity verification.
"""

import pytest
from datetime import datetime, timezone

from core_savings.storage import InMemoryStorage
from core_savings.audit import AuditTrail, AuditEvent, AuditEventType
from core_savings.assets import AssetClass


class TestAuditEvent:
    """Test AuditEvent functionality"""

    def test_metadata_serialization(self):
        """Enums and datetimes in metadata become JSON-friendly values"""
        now = datetime.now(timezone.utc)

        event = AuditEvent(
            id="AUDIT001",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.BANK_CREATED,
            entity_type="bank",
            entity_id="vault-1/base/0",
            sequence=1,
            previous_hash="",
            current_hash="",
            metadata={
                "asset_class": AssetClass.BASE,
                "created_at": now,
                "nested": {"asset_class": AssetClass.TOKEN},
                "durations": (60, 120)
            }
        )

        assert event.metadata["asset_class"] == "base"
        assert event.metadata["created_at"] == now.isoformat()
        assert event.metadata["nested"] == {"asset_class": "token"}
        assert event.metadata["durations"] == [60, 120]

    def test_hash_round_trip(self):
        now = datetime.now(timezone.utc)
        event = AuditEvent(
            id="AUDIT002",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.DEPOSIT_POSTED,
            entity_type="bank",
            entity_id="vault-1/base/0",
            sequence=1,
            previous_hash="",
            current_hash="",
            metadata={"amount": 100},
            identity="alice"
        )
        event.current_hash = event.calculate_hash()

        restored = AuditEvent.from_dict(event.to_dict())
        assert restored.verify_hash()
        assert restored.event_type == AuditEventType.DEPOSIT_POSTED
        assert restored.identity == "alice"


class TestAuditTrail:
    """Test AuditTrail functionality"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)

    def _log_some(self):
        self.audit_trail.log_event(AuditEventType.VAULT_REGISTERED, "vault", "vault-1",
                                   {"owner_identity": "alice"}, identity="alice")
        self.audit_trail.log_event(AuditEventType.BANK_CREATED, "bank", "vault-1/base/0",
                                   {"lock_duration_seconds": 86400}, identity="alice")
        self.audit_trail.log_event(AuditEventType.DEPOSIT_POSTED, "bank", "vault-1/base/0",
                                   {"amount": 100}, identity="alice")

    def test_events_are_chained(self):
        self._log_some()
        events = self.audit_trail.get_all_events()

        assert [e.sequence for e in events] == [1, 2, 3]
        assert events[0].previous_hash == ""
        assert events[1].previous_hash == events[0].current_hash
        assert events[2].previous_hash == events[1].current_hash

    def test_get_events_for_entity(self):
        self._log_some()
        events = self.audit_trail.get_events_for_entity("bank", "vault-1/base/0")
        assert [e.event_type for e in events] == [
            AuditEventType.BANK_CREATED, AuditEventType.DEPOSIT_POSTED
        ]
        assert len(self.audit_trail.get_events_for_entity("bank", "vault-1/base/0", limit=1)) == 1

    def test_filter_by_type(self):
        self._log_some()
        events = self.audit_trail.get_all_events(event_type=AuditEventType.DEPOSIT_POSTED)
        assert len(events) == 1
        assert events[0].metadata["amount"] == 100

    def test_integrity_of_untouched_chain(self):
        self._log_some()
        result = self.audit_trail.verify_integrity()

        assert result["valid"]
        assert result["total_events"] == 3
        assert result["hash_errors"] == []
        assert result["chain_breaks"] == []

    def test_tampering_is_detected(self):
        self._log_some()
        victim = self.audit_trail.get_all_events(event_type=AuditEventType.DEPOSIT_POSTED)[0]
        record = self.storage.load("audit_events", victim.id)
        record["metadata"]["amount"] = 1_000_000
        self.storage.save("audit_events", victim.id, record)

        result = self.audit_trail.verify_integrity()

        assert not result["valid"]
        assert result["hash_errors"][0]["event_id"] == victim.id

    def test_deleted_event_breaks_chain(self):
        self._log_some()
        middle = self.audit_trail.get_all_events()[1]
        self.storage.delete("audit_events", middle.id)

        result = self.audit_trail.verify_integrity()

        assert not result["valid"]
        assert len(result["chain_breaks"]) == 1

    def test_count_events(self):
        assert self.audit_trail.count_events() == 0
        self._log_some()
        assert self.audit_trail.count_events() == 3
