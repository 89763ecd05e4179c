"""
Pydantic schemas for API requests and responses
"""

from typing import Dict, Optional
from pydantic import BaseModel, Field


# Registry schemas
class ProvisionRequest(BaseModel):
    target: str = Field(..., description="Identity that will own the new vault")


class VaultModel(BaseModel):
    vault_id: str
    owner_identity: str
    admin_identity: str
    created_at: str
    bank_counts: Dict[str, int]
    total_base_balance: int


class RegistrationStatus(BaseModel):
    identity: str
    registered: bool
    vault_id: Optional[str] = None


class BankCountsModel(BaseModel):
    base: int
    token: int


class TotalBalancesModel(BaseModel):
    base: int
    token: int
    token_identity: Optional[str] = None


# Bank schemas
class CreateBankRequest(BaseModel):
    asset_class: str = Field(..., description="Asset class (base, token)")
    label: str = ""
    token_identity: Optional[str] = Field(None, description="Token held by a token bank")
    lock_duration_seconds: int = Field(..., description="Seconds before penalty-free withdrawal")


class BankModel(BaseModel):
    vault_id: str
    asset_class: str
    index: int
    label: str
    token_identity: Optional[str] = None
    lock_duration_seconds: int
    balance: int
    created_at: str
    unlocks_at: str
    lock_status: str
    remaining_lock_seconds: int


class DepositRequest(BaseModel):
    amount: int = Field(..., description="Amount in the asset's smallest unit")


class WithdrawRequest(BaseModel):
    destination: str = Field(..., description="Identity receiving the net amount")
    amount: int = Field(..., description="Amount in the asset's smallest unit")


class WithdrawalResult(BaseModel):
    fee: int
    net: int
    balance: int


# Asset schemas
class MintRequest(BaseModel):
    asset: str = Field(..., description="Asset key: 'base' or a token identity")
    identity: str
    amount: int


class ApproveRequest(BaseModel):
    token: str
    spender: str = Field(..., description="Spender identity, usually a vault id")
    amount: int
