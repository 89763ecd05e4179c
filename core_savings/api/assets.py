"""
Asset ledger endpoints
"""

from fastapi import APIRouter, Depends, status

from .schemas import MintRequest, ApproveRequest
from .system import SavingsSystem, get_savings_system, get_caller
from ..errors import NotAdmin


router = APIRouter()


@router.post("/mint", status_code=status.HTTP_201_CREATED)
async def mint(
    request: MintRequest,
    caller: str = Depends(get_caller),
    system: SavingsSystem = Depends(get_savings_system)
):
    """Admin-only: fund an identity from outside the system"""
    if caller != system.registry.admin_identity:
        raise NotAdmin(caller)
    balance = system.asset_ledger.mint(request.asset, request.identity, request.amount)
    return {"asset": request.asset, "identity": request.identity, "balance": balance}


@router.post("/approve")
async def approve(
    request: ApproveRequest,
    caller: str = Depends(get_caller),
    system: SavingsSystem = Depends(get_savings_system)
):
    """Let a spender (usually a vault) pull the caller's token"""
    system.asset_ledger.approve(request.token, caller, request.spender, request.amount)
    return {
        "token": request.token,
        "owner": caller,
        "spender": request.spender,
        "allowance": system.asset_ledger.allowance(request.token, caller, request.spender)
    }


@router.get("/{asset}/balances/{identity}")
async def get_balance(
    asset: str,
    identity: str,
    system: SavingsSystem = Depends(get_savings_system)
):
    return {
        "asset": asset,
        "identity": identity,
        "balance": system.asset_ledger.balance_of(asset, identity)
    }
