"""
Ledger State Store

Typed access to the ledger's tables on top of a StorageInterface. Amounts
are persisted as decimal strings; an absent balance or allowance reads as 0.
"""

from typing import Dict, Optional, Any

from .address import Address
from .storage import StorageInterface


BALANCES_TABLE = "balances"
ALLOWANCES_TABLE = "allowances"
BLACKLIST_TABLE = "blacklist"
META_TABLE = "ledger_meta"

META_RECORD_ID = "ledger"


class LedgerStore:
    """
    Key-value view of ledger state

    Holds no state of its own: every read goes to the backend, so the
    backend's transaction boundaries apply to every write made through it.
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    @staticmethod
    def allowance_key(owner: Address, spender: Address) -> str:
        return f"{owner.value}:{spender.value}"

    # Metadata record: supply, pause flag, admin, token details

    def is_initialized(self) -> bool:
        return self.storage.exists(META_TABLE, META_RECORD_ID)

    def load_meta(self) -> Optional[Dict[str, Any]]:
        return self.storage.load(META_TABLE, META_RECORD_ID)

    def save_meta(self, meta: Dict[str, Any]) -> None:
        self.storage.save(META_TABLE, META_RECORD_ID, meta)

    def _require_meta(self) -> Dict[str, Any]:
        meta = self.load_meta()
        if meta is None:
            raise RuntimeError("Ledger store has not been initialized")
        return meta

    def get_total_supply(self) -> int:
        return int(self._require_meta()['total_supply'])

    def set_total_supply(self, value: int) -> None:
        meta = self._require_meta()
        meta['total_supply'] = str(value)
        self.save_meta(meta)

    def get_paused(self) -> bool:
        return bool(self._require_meta()['paused'])

    def set_paused(self, paused: bool) -> None:
        meta = self._require_meta()
        meta['paused'] = paused
        self.save_meta(meta)

    def get_admin(self) -> Address:
        return Address(self._require_meta()['admin'])

    # Balances

    def get_balance(self, account: Address) -> int:
        record = self.storage.load(BALANCES_TABLE, account.value)
        if record is None:
            return 0
        return int(record['amount'])

    def set_balance(self, account: Address, amount: int) -> None:
        self.storage.save(BALANCES_TABLE, account.value, {
            'account': account.value,
            'amount': str(amount)
        })

    def all_balances(self) -> Dict[Address, int]:
        return {
            Address(record['account']): int(record['amount'])
            for record in self.storage.load_all(BALANCES_TABLE)
        }

    # Allowances

    def get_allowance(self, owner: Address, spender: Address) -> int:
        record = self.storage.load(ALLOWANCES_TABLE, self.allowance_key(owner, spender))
        if record is None:
            return 0
        return int(record['amount'])

    def set_allowance(self, owner: Address, spender: Address, amount: int) -> None:
        self.storage.save(ALLOWANCES_TABLE, self.allowance_key(owner, spender), {
            'owner': owner.value,
            'spender': spender.value,
            'amount': str(amount)
        })

    # Blacklist

    def is_blacklisted(self, account: Address) -> bool:
        return self.storage.exists(BLACKLIST_TABLE, account.value)

    def set_blacklisted(self, account: Address, blocked: bool) -> None:
        if blocked:
            self.storage.save(BLACKLIST_TABLE, account.value, {'account': account.value})
        else:
            self.storage.delete(BLACKLIST_TABLE, account.value)

    def blacklisted_accounts(self) -> list:
        return [Address(record['account']) for record in self.storage.load_all(BLACKLIST_TABLE)]
