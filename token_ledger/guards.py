"""
Guard Pipeline

Each guard is an independent predicate over the ledger state and the
operation's arguments. Operations declare the guards that apply to them,
in order; the pipeline runs them before any state is touched and the first
failure aborts the operation.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .address import Address
from .errors import (
    ZeroAddressError, ZeroAmountError, UnauthorizedError,
    LedgerPausedError, BlacklistedError
)
from .state import LedgerStore


@dataclass
class GuardContext:
    """Arguments of one operation as seen by its guards"""
    operation: str
    store: LedgerStore
    caller: Optional[Address] = None
    accounts: Dict[str, Address] = field(default_factory=dict)
    amount: Optional[int] = None


Guard = Callable[[GuardContext], None]


def _account(ctx: GuardContext, role: str) -> Address:
    try:
        return ctx.accounts[role]
    except KeyError:
        raise KeyError(f"{ctx.operation}: no '{role}' account to guard") from None


def non_zero_address(role: str) -> Guard:
    """Reject the null sentinel in the given role"""
    def guard(ctx: GuardContext) -> None:
        if _account(ctx, role).is_zero():
            raise ZeroAddressError(f"{role} must not be the zero address", ctx.operation)
    guard.__name__ = f"non_zero_address[{role}]"
    return guard


def only_admin() -> Guard:
    """Reject callers other than the administrator"""
    def guard(ctx: GuardContext) -> None:
        admin = ctx.store.get_admin()
        if ctx.caller != admin:
            raise UnauthorizedError(
                f"{ctx.caller} is not the ledger administrator", ctx.operation
            )
    guard.__name__ = "only_admin"
    return guard


def not_blacklisted(role: str) -> Guard:
    """Reject a blacklisted account in the given role"""
    def guard(ctx: GuardContext) -> None:
        account = _account(ctx, role)
        if ctx.store.is_blacklisted(account):
            raise BlacklistedError(f"{role} {account} is blacklisted", ctx.operation)
    guard.__name__ = f"not_blacklisted[{role}]"
    return guard


def not_paused() -> Guard:
    """Reject while the pause flag is set"""
    def guard(ctx: GuardContext) -> None:
        if ctx.store.get_paused():
            raise LedgerPausedError("Ledger is paused", ctx.operation)
    guard.__name__ = "not_paused"
    return guard


def non_zero_amount() -> Guard:
    """Reject a zero quantity"""
    def guard(ctx: GuardContext) -> None:
        if ctx.amount == 0:
            raise ZeroAmountError("Amount must be greater than zero", ctx.operation)
    guard.__name__ = "non_zero_amount"
    return guard


def run_guards(ctx: GuardContext, guards: List[Guard]) -> None:
    """Run guards in order; the first failure propagates"""
    for guard in guards:
        guard(ctx)


# Per-operation guard order

MINT_GUARDS = [
    only_admin(),
    not_blacklisted("target"),
    non_zero_address("target"),
    non_zero_amount(),
]

BURN_GUARDS = [
    only_admin(),
    non_zero_address("source"),
]

ADMIN_GUARDS = [
    only_admin(),
]

BALANCE_OF_GUARDS = [
    non_zero_address("account"),
]

ALLOWANCE_OF_GUARDS = [
    non_zero_address("owner"),
    non_zero_address("spender"),
]

TRANSFER_GUARDS = [
    not_blacklisted("sender"),
    not_blacklisted("receiver"),
    not_paused(),
    non_zero_amount(),
    non_zero_address("receiver"),
]

APPROVE_GUARDS = [
    not_blacklisted("owner"),
    not_blacklisted("spender"),
    not_paused(),
    non_zero_address("spender"),
]

ADJUST_ALLOWANCE_GUARDS = APPROVE_GUARDS + [
    non_zero_amount(),
]

TRANSFER_FROM_GUARDS = [
    not_blacklisted("spender"),
    not_blacklisted("owner"),
    not_blacklisted("receiver"),
    not_paused(),
    non_zero_address("owner"),
    non_zero_address("receiver"),
    non_zero_amount(),
]
