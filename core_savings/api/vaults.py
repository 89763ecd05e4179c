"""
Vault and bank endpoints
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, status

from .schemas import (
    CreateBankRequest, BankModel, DepositRequest, WithdrawRequest, WithdrawalResult, VaultModel
)
from .system import SavingsSystem, get_savings_system, get_caller


router = APIRouter()


@router.get("/{vault_id}", response_model=VaultModel)
async def get_vault(
    vault_id: str,
    system: SavingsSystem = Depends(get_savings_system)
):
    return system.registry.find_vault(vault_id).to_dict()


@router.post("/{vault_id}/banks", status_code=status.HTTP_201_CREATED, response_model=BankModel)
async def create_bank(
    vault_id: str,
    request: CreateBankRequest,
    caller: str = Depends(get_caller),
    system: SavingsSystem = Depends(get_savings_system)
):
    """Open a new bank in the vault"""
    vault = system.registry.find_vault(vault_id)
    index = vault.create_bank(
        caller,
        request.asset_class,
        request.label,
        request.token_identity,
        request.lock_duration_seconds
    )
    return vault.bank(request.asset_class, index).to_dict(vault.clock.now())


@router.get("/{vault_id}/banks/{asset_class}", response_model=List[BankModel])
async def list_banks(
    vault_id: str,
    asset_class: str,
    system: SavingsSystem = Depends(get_savings_system)
):
    vault = system.registry.find_vault(vault_id)
    now = vault.clock.now()
    return [bank.to_dict(now) for bank in vault.banks(asset_class)]


@router.get("/{vault_id}/banks/{asset_class}/{bank_index}", response_model=BankModel)
async def get_bank(
    vault_id: str,
    asset_class: str,
    bank_index: int,
    system: SavingsSystem = Depends(get_savings_system)
):
    vault = system.registry.find_vault(vault_id)
    return vault.bank(asset_class, bank_index).to_dict(vault.clock.now())


@router.post("/{vault_id}/banks/{asset_class}/{bank_index}/deposit", response_model=BankModel)
async def deposit(
    vault_id: str,
    asset_class: str,
    bank_index: int,
    request: DepositRequest,
    caller: str = Depends(get_caller),
    system: SavingsSystem = Depends(get_savings_system)
):
    """Move funds from the caller into the bank"""
    vault = system.registry.find_vault(vault_id)
    vault.deposit(caller, asset_class, bank_index, request.amount)
    return vault.bank(asset_class, bank_index).to_dict(vault.clock.now())


@router.post("/{vault_id}/banks/{asset_class}/{bank_index}/withdraw", response_model=WithdrawalResult)
async def withdraw(
    vault_id: str,
    asset_class: str,
    bank_index: int,
    request: WithdrawRequest,
    caller: str = Depends(get_caller),
    system: SavingsSystem = Depends(get_savings_system)
):
    """Pay out of the bank, charging the breaking fee while locked"""
    vault = system.registry.find_vault(vault_id)
    fee, net = vault.withdraw(caller, asset_class, bank_index, request.destination, request.amount)
    return WithdrawalResult(fee=fee, net=net, balance=vault.bank_balance(asset_class, bank_index))


@router.get("/{vault_id}/totals/{asset_class}")
async def get_total(
    vault_id: str,
    asset_class: str,
    token: Optional[str] = None,
    system: SavingsSystem = Depends(get_savings_system)
):
    vault = system.registry.find_vault(vault_id)
    return {
        "asset_class": asset_class,
        "token_identity": token,
        "total": vault.total_balance(asset_class, token)
    }
