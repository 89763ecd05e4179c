"""
Asset Ledger Module

Custody substrate for value held by identities and vaults: base-currency
balances, fungible token balances, and token allowances. Vaults pull
deposits from and pay withdrawals out through this ledger. Every transfer
either fully applies or raises TransferFailed; multi-transfer sequences run
inside ``atomic()`` so a later failure rolls back earlier legs.
"""

from enum import Enum
from typing import Dict, List, Optional
import logging

from .errors import InvalidAmount, TransferFailed
from .storage import StorageInterface


class AssetClass(Enum):
    """Value type held by a bank"""
    BASE = "base"    # Native base currency
    TOKEN = "token"  # Configurable fungible token


# Asset key under which base-currency balances are kept
BASE_ASSET = "base"


class AssetLedger:
    """
    Balances and allowances per (asset, identity), persisted in storage
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.balances_table = "asset_balances"
        self.allowances_table = "asset_allowances"
        self.refusals_table = "refusing_recipients"
        self.logger = logging.getLogger("savings.assets")

    @staticmethod
    def asset_key(asset_class: AssetClass, token_identity: Optional[str] = None) -> str:
        """Ledger key for a bank's asset"""
        if asset_class == AssetClass.BASE:
            return BASE_ASSET
        return token_identity

    def atomic(self):
        """Scope in which every transfer commits together or not at all"""
        return self.storage.atomic()

    def balance_of(self, asset: str, identity: str) -> int:
        """Current balance of an identity in an asset"""
        record = self.storage.load(self.balances_table, self._balance_id(asset, identity))
        return int(record['balance']) if record else 0

    def balances_of(self, identity: str) -> Dict[str, int]:
        """All non-zero balances held by an identity, keyed by asset"""
        records = self.storage.find(self.balances_table, {"identity": identity})
        return {r['asset']: int(r['balance']) for r in records if int(r['balance'])}

    def holders(self, asset: str) -> List[str]:
        """Identities holding a non-zero balance of an asset"""
        records = self.storage.find(self.balances_table, {"asset": asset})
        return [r['identity'] for r in records if int(r['balance'])]

    def mint(self, asset: str, identity: str, amount: int) -> int:
        """
        Credit new units to an identity (funding from outside the system)

        Returns:
            The identity's new balance
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidAmount(amount)
        new_balance = self.balance_of(asset, identity) + amount
        self._set_balance(asset, identity, new_balance)
        self.logger.info(f"Minted {amount} {asset} to {identity}")
        return new_balance

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """
        Move units between identities

        Raises:
            TransferFailed: non-positive amount, insufficient funds, or the
                recipient refuses incoming transfers
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise TransferFailed("amount must be a positive integer", asset, sender, recipient, amount)
        if self.is_refusing(recipient):
            raise TransferFailed("recipient refuses incoming transfers", asset, sender, recipient, amount)

        with self.atomic():
            sender_balance = self.balance_of(asset, sender)
            if sender_balance < amount:
                raise TransferFailed(
                    f"insufficient funds ({sender_balance} available)",
                    asset, sender, recipient, amount
                )
            self._set_balance(asset, sender, sender_balance - amount)
            self._set_balance(asset, recipient, self.balance_of(asset, recipient) + amount)

        self.logger.debug(f"Transferred {amount} {asset} from {sender} to {recipient}")

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        """Allow spender to move up to amount of owner's token (replaces any prior allowance)"""
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidAmount(amount)
        self.storage.save(self.allowances_table, self._allowance_id(token, owner, spender), {
            "token": token,
            "owner": owner,
            "spender": spender,
            "amount": str(amount)
        })
        self.logger.debug(f"{owner} approved {spender} for {amount} {token}")

    def allowance(self, token: str, owner: str, spender: str) -> int:
        """Remaining amount spender may move on owner's behalf"""
        record = self.storage.load(self.allowances_table, self._allowance_id(token, owner, spender))
        return int(record['amount']) if record else 0

    def transfer_from(self, token: str, spender: str, owner: str, recipient: str, amount: int) -> None:
        """
        Move owner's token to recipient, consuming spender's allowance

        Raises:
            TransferFailed: allowance too small or the underlying transfer fails
        """
        with self.atomic():
            remaining = self.allowance(token, owner, spender)
            if remaining < amount:
                raise TransferFailed(
                    f"allowance of {spender} is {remaining}",
                    token, owner, recipient, amount
                )
            self.transfer(token, owner, recipient, amount)
            self.approve(token, owner, spender, remaining - amount)

    def refuse_incoming(self, identity: str) -> None:
        """Make every transfer to identity fail"""
        self.storage.save(self.refusals_table, identity, {"identity": identity})

    def accept_incoming(self, identity: str) -> None:
        """Undo refuse_incoming"""
        self.storage.delete(self.refusals_table, identity)

    def is_refusing(self, identity: str) -> bool:
        return self.storage.exists(self.refusals_table, identity)

    def _set_balance(self, asset: str, identity: str, balance: int) -> None:
        self.storage.save(self.balances_table, self._balance_id(asset, identity), {
            "asset": asset,
            "identity": identity,
            "balance": str(balance)
        })

    @staticmethod
    def _balance_id(asset: str, identity: str) -> str:
        return f"{asset}:{identity}"

    @staticmethod
    def _allowance_id(token: str, owner: str, spender: str) -> str:
        return f"{token}:{owner}:{spender}"
