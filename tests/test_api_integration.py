"""
Integration tests for the Savings Vault API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from core_savings.api import app, error_status
from core_savings.api.system import SavingsSystem, get_savings_system
from core_savings.clock import ManualClock
from core_savings.config import SavingsConfig
from core_savings.errors import InsufficientBalance, NotOwner, TransferFailed
from core_savings.assets import AssetClass


DAY = 86400
ADMIN = {"X-Identity": "admin"}
ALICE = {"X-Identity": "alice"}
BOB = {"X-Identity": "bob"}


@pytest.fixture
def system():
    """Fresh in-memory system with a manual clock"""
    return SavingsSystem(
        config=SavingsConfig(storage_backend="memory", admin_identity="admin", _env_file=None),
        clock=ManualClock()
    )


@pytest.fixture
def client(system):
    """Test client wired to the fresh system"""
    app.dependency_overrides[get_savings_system] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()


def _vault_with_base_bank(client, amount=100):
    """Register alice, fund her and open a one-day base bank"""
    vault_id = client.post("/registry/register", headers=ALICE).json()["vault_id"]
    client.post("/assets/mint", headers=ADMIN, json={
        "asset": "base", "identity": "alice", "amount": amount
    })
    client.post(f"/vaults/{vault_id}/banks", headers=ALICE, json={
        "asset_class": "base", "label": "Savings", "lock_duration_seconds": DAY
    })
    return vault_id


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        data = r.json()
        assert data["name"] == "Savings Vault API"
        assert "endpoints" in data


class TestRegistryFlow:
    """Registration and provisioning over HTTP"""

    def test_register(self, client):
        r = client.post("/registry/register", headers=ALICE)
        assert r.status_code == 201
        data = r.json()
        assert data["owner_identity"] == "alice"
        assert data["admin_identity"] == "admin"
        assert data["bank_counts"] == {"base": 0, "token": 0}

        r = client.get("/registry/identities/alice")
        assert r.json() == {"identity": "alice", "registered": True, "vault_id": data["vault_id"]}

    def test_register_twice_conflicts(self, client):
        client.post("/registry/register", headers=ALICE)
        r = client.post("/registry/register", headers=ALICE)

        assert r.status_code == 409
        assert r.json()["error"] == "already_registered"
        assert r.json()["identity"] == "alice"

    def test_missing_identity_header(self, client):
        r = client.post("/registry/register")
        assert r.status_code == 422

    def test_provision(self, client):
        r = client.post("/registry/provision", headers=ADMIN, json={"target": "bob"})
        assert r.status_code == 201
        assert r.json()["owner_identity"] == "bob"

    def test_provision_by_non_admin(self, client):
        r = client.post("/registry/provision", headers=ALICE, json={"target": "bob"})

        assert r.status_code == 403
        assert r.json()["error"] == "not_admin"
        assert client.get("/registry/identities/bob").json()["registered"] is False

    def test_unregistered_identity(self, client):
        r = client.get("/registry/identities/nobody/bank-counts")
        assert r.status_code == 404
        assert r.json()["error"] == "not_registered"

    def test_directory_and_stats(self, client):
        client.post("/registry/register", headers=ALICE)
        client.post("/registry/provision", headers=ADMIN, json={"target": "bob"})

        vaults = client.get("/registry/vaults").json()
        assert [v["owner_identity"] for v in vaults] == ["alice", "bob"]
        assert client.get("/registry/stats").json()["total_registered"] == 2


class TestBankFlow:
    """Bank creation, deposits and withdrawals over HTTP"""

    def test_create_bank(self, client):
        vault_id = _vault_with_base_bank(client)

        r = client.get(f"/vaults/{vault_id}/banks/base/0")
        assert r.status_code == 200
        bank = r.json()
        assert bank["label"] == "Savings"
        assert bank["lock_status"] == "locked"
        assert bank["remaining_lock_seconds"] == DAY
        assert bank["token_identity"] is None

    def test_duplicate_lock_period(self, client):
        vault_id = _vault_with_base_bank(client)

        r = client.post(f"/vaults/{vault_id}/banks", headers=ALICE, json={
            "asset_class": "base", "label": "Again", "lock_duration_seconds": DAY
        })

        assert r.status_code == 409
        assert r.json()["error"] == "duplicate_lock_period"

    def test_non_owner_cannot_create_bank(self, client):
        vault_id = _vault_with_base_bank(client)

        r = client.post(f"/vaults/{vault_id}/banks", headers=BOB, json={
            "asset_class": "base", "label": "Mine", "lock_duration_seconds": 60
        })

        assert r.status_code == 403
        assert r.json()["error"] == "not_owner"

    def test_unknown_bank(self, client):
        vault_id = _vault_with_base_bank(client)
        r = client.get(f"/vaults/{vault_id}/banks/base/5")
        assert r.status_code == 404
        assert r.json()["error"] == "invalid_bank"

    def test_unknown_vault(self, client):
        r = client.get("/vaults/vault-missing")
        assert r.status_code == 404

    def test_deposit_and_early_withdrawal(self, client):
        vault_id = _vault_with_base_bank(client)

        r = client.post(f"/vaults/{vault_id}/banks/base/0/deposit", headers=ALICE, json={"amount": 100})
        assert r.status_code == 200
        assert r.json()["balance"] == 100

        r = client.post(f"/vaults/{vault_id}/banks/base/0/withdraw", headers=ALICE, json={
            "destination": "carol", "amount": 100
        })
        assert r.status_code == 200
        assert r.json() == {"fee": 3, "net": 97, "balance": 0}

        assert client.get("/assets/base/balances/admin").json()["balance"] == 3
        assert client.get("/assets/base/balances/carol").json()["balance"] == 97

    def test_withdrawal_after_unlock_is_free(self, client, system):
        vault_id = _vault_with_base_bank(client)
        client.post(f"/vaults/{vault_id}/banks/base/0/deposit", headers=ALICE, json={"amount": 100})
        system.registry.clock.advance(DAY)

        r = client.post(f"/vaults/{vault_id}/banks/base/0/withdraw", headers=ALICE, json={
            "destination": "alice", "amount": 40
        })

        assert r.json() == {"fee": 0, "net": 40, "balance": 60}
        assert client.get(f"/vaults/{vault_id}/banks/base/0").json()["lock_status"] == "unlocked"

    def test_overdraw(self, client):
        vault_id = _vault_with_base_bank(client)
        client.post(f"/vaults/{vault_id}/banks/base/0/deposit", headers=ALICE, json={"amount": 10})

        r = client.post(f"/vaults/{vault_id}/banks/base/0/withdraw", headers=ALICE, json={
            "destination": "alice", "amount": 11
        })

        assert r.status_code == 422
        assert r.json()["error"] == "insufficient_balance"

    def test_withdraw_into_vault_itself(self, client):
        vault_id = _vault_with_base_bank(client)
        client.post(f"/vaults/{vault_id}/banks/base/0/deposit", headers=ALICE, json={"amount": 100})

        r = client.post(f"/vaults/{vault_id}/banks/base/0/withdraw", headers=ALICE, json={
            "destination": vault_id, "amount": 100
        })

        assert r.status_code == 422
        assert r.json()["error"] == "invalid_destination"
        assert client.get(f"/vaults/{vault_id}/banks/base/0").json()["balance"] == 100

    def test_deposit_without_funds(self, client):
        vault_id = _vault_with_base_bank(client, amount=5)

        r = client.post(f"/vaults/{vault_id}/banks/base/0/deposit", headers=ALICE, json={"amount": 10})

        assert r.status_code == 402
        assert client.get(f"/vaults/{vault_id}/banks/base/0").json()["balance"] == 0

    def test_token_bank_flow(self, client):
        vault_id = client.post("/registry/register", headers=ALICE).json()["vault_id"]
        client.post("/assets/mint", headers=ADMIN, json={"asset": "USDT", "identity": "alice", "amount": 500})
        r = client.post(f"/vaults/{vault_id}/banks", headers=ALICE, json={
            "asset_class": "token", "label": "Dollars", "token_identity": "USDT",
            "lock_duration_seconds": 60
        })
        assert r.status_code == 201

        r = client.post("/assets/approve", headers=ALICE, json={
            "token": "USDT", "spender": vault_id, "amount": 200
        })
        assert r.json()["allowance"] == 200

        r = client.post(f"/vaults/{vault_id}/banks/token/0/deposit", headers=ALICE, json={"amount": 200})
        assert r.json()["balance"] == 200

        totals = client.get("/registry/identities/alice/balances", params={"token": "USDT"}).json()
        assert totals == {"base": 0, "token": 200, "token_identity": "USDT"}
        assert client.get(f"/vaults/{vault_id}/totals/token", params={"token": "DAI"}).json()["total"] == 0


class TestSQLiteSystemRestart:
    """A system rebuilt on the same database file keeps vaults, banks and funds"""

    def _system(self, path):
        return SavingsSystem(
            config=SavingsConfig(storage_backend="sqlite", sqlite_path=str(path),
                                 admin_identity="admin", _env_file=None),
            clock=ManualClock()
        )

    def test_restart(self, tmp_path):
        path = tmp_path / "savings.db"
        system = self._system(path)
        app.dependency_overrides[get_savings_system] = lambda: system
        try:
            client = TestClient(app)
            vault_id = _vault_with_base_bank(client)
            client.post(f"/vaults/{vault_id}/banks/base/0/deposit", headers=ALICE, json={"amount": 100})
            system.storage.close()

            system = self._system(path)
            app.dependency_overrides[get_savings_system] = lambda: system

            r = client.get("/registry/identities/alice")
            assert r.json() == {"identity": "alice", "registered": True, "vault_id": vault_id}
            assert client.post("/registry/register", headers=ALICE).status_code == 409
            assert client.get(f"/vaults/{vault_id}/banks/base/0").json()["balance"] == 100
            assert client.get(f"/assets/base/balances/{vault_id}").json()["balance"] == 100

            r = client.post(f"/vaults/{vault_id}/banks/base/0/withdraw", headers=ALICE, json={
                "destination": "alice", "amount": 100
            })
            assert r.json() == {"fee": 3, "net": 97, "balance": 0}
        finally:
            system.storage.close()
            app.dependency_overrides.clear()


class TestAssetEndpoints:

    def test_mint_requires_admin(self, client):
        r = client.post("/assets/mint", headers=ALICE, json={
            "asset": "base", "identity": "alice", "amount": 10
        })
        assert r.status_code == 403

    def test_mint_rejects_non_positive(self, client):
        r = client.post("/assets/mint", headers=ADMIN, json={
            "asset": "base", "identity": "alice", "amount": 0
        })
        assert r.status_code == 422
        assert r.json()["error"] == "invalid_amount"


class TestErrorStatus:

    def test_mapping(self):
        assert error_status(NotOwner("bob", "vault-1")) == 403
        assert error_status(TransferFailed("refused", "base", "a", "b", 1)) == 402
        assert error_status(InsufficientBalance("vault-1", AssetClass.BASE, 0, 1, 2)) == 422
