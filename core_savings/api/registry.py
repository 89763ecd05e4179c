"""
Registry endpoints
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, status

from .schemas import (
    ProvisionRequest, VaultModel, RegistrationStatus, BankCountsModel, TotalBalancesModel
)
from .system import SavingsSystem, get_savings_system, get_caller


router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=VaultModel)
async def register(
    caller: str = Depends(get_caller),
    system: SavingsSystem = Depends(get_savings_system)
):
    """Create the caller's vault"""
    vault = system.registry.register(caller)
    return vault.to_dict()


@router.post("/provision", status_code=status.HTTP_201_CREATED, response_model=VaultModel)
async def provision(
    request: ProvisionRequest,
    caller: str = Depends(get_caller),
    system: SavingsSystem = Depends(get_savings_system)
):
    """Admin-only: create a vault for another identity"""
    vault = system.registry.provision(caller, request.target)
    return vault.to_dict()


@router.get("/identities/{identity}", response_model=RegistrationStatus)
async def get_registration(
    identity: str,
    system: SavingsSystem = Depends(get_savings_system)
):
    """Whether an identity has a vault, and which"""
    if not system.registry.is_registered(identity):
        return RegistrationStatus(identity=identity, registered=False)
    vault = system.registry.vault_of(identity)
    return RegistrationStatus(identity=identity, registered=True, vault_id=vault.vault_id)


@router.get("/identities/{identity}/bank-counts", response_model=BankCountsModel)
async def get_bank_counts(
    identity: str,
    system: SavingsSystem = Depends(get_savings_system)
):
    base, token = system.registry.bank_counts_of(identity)
    return BankCountsModel(base=base, token=token)


@router.get("/identities/{identity}/balances", response_model=TotalBalancesModel)
async def get_total_balances(
    identity: str,
    token: Optional[str] = None,
    system: SavingsSystem = Depends(get_savings_system)
):
    """Base total and the total held in token banks for one token"""
    base, token_total = system.registry.total_balance_of(identity, token)
    return TotalBalancesModel(base=base, token=token_total, token_identity=token)


@router.get("/vaults", response_model=List[VaultModel])
async def list_vaults(system: SavingsSystem = Depends(get_savings_system)):
    """Every vault in creation order"""
    return [vault.to_dict() for vault in system.registry.all_vaults()]


@router.get("/stats")
async def get_stats(system: SavingsSystem = Depends(get_savings_system)):
    return {
        "admin_identity": system.registry.admin_identity,
        "total_registered": system.registry.total_registered()
    }
