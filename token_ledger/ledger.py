"""
Token Ledger Engine

Single owned aggregate holding total supply, balances, allowances, the
blacklist, the pause flag and the administrator identity. Every operation
runs its guard pipeline, then mutates state inside one storage transaction,
then publishes exactly one notification. Failures abort with a specific
LedgerError and leave state untouched.
"""

from contextlib import contextmanager
from typing import Dict, Optional, Union, Any
import threading

from .address import Address, ZERO_ADDRESS
from .audit import AuditTrail, AuditEventType
from .config import LedgerConfig, get_config
from .errors import (
    LedgerError, ZeroAddressError, InsufficientBalanceError,
    InsufficientApprovalError, AllowanceUnderflowError, ArithmeticOverflowError
)
from .events import (
    EventDispatcher, EventPayload, transfer_event, approval_event,
    blacklist_event, pause_event
)
from .guards import (
    GuardContext, run_guards, MINT_GUARDS, BURN_GUARDS, ADMIN_GUARDS,
    BALANCE_OF_GUARDS, ALLOWANCE_OF_GUARDS, TRANSFER_GUARDS, APPROVE_GUARDS,
    ADJUST_ALLOWANCE_GUARDS, TRANSFER_FROM_GUARDS
)
from .logging_config import get_logger, log_action, setup_logging
from .state import LedgerStore
from .storage import StorageInterface, create_storage


MAX_UINT256 = (1 << 256) - 1

AddressLike = Union[Address, str]


class TokenLedger:
    """
    Centrally administered fungible-unit ledger

    Operations are serialized by a re-entrant lock held for their whole
    duration, reads included, so no caller observes a half-applied transfer.
    Notifications are published under the same lock, in commit order.
    """

    def __init__(
        self,
        storage: StorageInterface,
        admin: AddressLike,
        initial_supply: int = 0,
        name: str = "MiniUSDT",
        symbol: str = "mUSDT",
        decimals: int = 6,
        audit_trail: Optional[AuditTrail] = None,
        event_dispatcher: Optional[EventDispatcher] = None,
        max_value: int = MAX_UINT256
    ):
        """
        Open a ledger over ``storage``, issuing ``initial_supply`` to
        ``admin`` if the store is empty.

        Reopening a store that already holds a ledger resumes its state.
        ``initial_supply``, ``name``, ``symbol`` and ``decimals`` are then
        ignored; a warning names any that differ from the stored values.

        Raises:
            ZeroAddressError: If admin is the zero address
            ArithmeticOverflowError: If initial_supply is out of range
            ValueError: If the store already belongs to another administrator
        """
        self.storage = storage
        self.audit_trail = audit_trail
        self.max_value = max_value
        self.logger = get_logger("token_ledger.ledger")
        self._store = LedgerStore(storage)
        self._event_dispatcher = event_dispatcher
        self._lock = threading.RLock()

        admin = Address.coerce(admin)
        with self._lock:
            if self._store.is_initialized():
                stored_admin = self._store.get_admin()
                if stored_admin != admin:
                    raise ValueError(
                        f"Ledger store is administered by {stored_admin}, not {admin}"
                    )
                self._warn_ignored_arguments(initial_supply, name, symbol, decimals)
                self.logger.info(f"Reopened ledger administered by {admin.short()}")
            else:
                self._initialize(admin, initial_supply, name, symbol, decimals)

    @classmethod
    def from_config(
        cls,
        admin: AddressLike,
        initial_supply: int = 0,
        config: Optional[LedgerConfig] = None
    ) -> 'TokenLedger':
        """Build storage, audit trail and dispatcher from configuration"""
        config = config or get_config()
        setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

        storage = create_storage(config.database_url)
        audit_trail = AuditTrail(storage) if config.enable_audit_logging else None
        dispatcher = EventDispatcher() if config.enable_events else None

        return cls(
            storage,
            admin,
            initial_supply,
            name=config.token_name,
            symbol=config.token_symbol,
            decimals=config.token_decimals,
            audit_trail=audit_trail,
            event_dispatcher=dispatcher,
            max_value=config.max_value
        )

    def _warn_ignored_arguments(self, initial_supply: int, name: str,
                                symbol: str, decimals: int) -> None:
        meta = self._store.load_meta()
        ignored = {}
        if initial_supply:
            ignored["initial_supply"] = str(initial_supply)
        for key, value in (("name", name), ("symbol", symbol), ("decimals", decimals)):
            if meta.get(key) != value:
                ignored[key] = value
        if ignored:
            log_action(
                self.logger, "warning",
                "Ignoring creation arguments for existing ledger: " + ", ".join(sorted(ignored)),
                user_id=meta["admin"], action="reopen", resource="ledger", extra=ignored
            )

    def _initialize(self, admin: Address, initial_supply: int, name: str,
                    symbol: str, decimals: int) -> None:
        if admin.is_zero():
            raise ZeroAddressError("Administrator must not be the zero address", "initialize")
        initial_supply = self._check_amount(initial_supply, "initialize")

        with self.storage.atomic():
            self._store.save_meta({
                'admin': admin.value,
                'total_supply': str(initial_supply),
                'paused': False,
                'name': name,
                'symbol': symbol,
                'decimals': decimals
            })
            self._store.set_balance(admin, initial_supply)
            self._audit(
                AuditEventType.LEDGER_CREATED, "ledger", "ledger", admin,
                {"name": name, "symbol": symbol, "decimals": decimals,
                 "initial_supply": str(initial_supply)}
            )

        self._publish(transfer_event(ZERO_ADDRESS, admin, initial_supply))
        log_action(
            self.logger, "info", f"Ledger created with supply {initial_supply}",
            user_id=admin.value, action="initialize", resource="ledger",
            extra={"name": name, "symbol": symbol, "decimals": decimals}
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _check_amount(self, amount: int, operation: str) -> int:
        """Amounts are unsigned integers within the configured width"""
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TypeError(f"{operation}: amount must be an int, got {type(amount).__name__}")
        if amount < 0 or amount > self.max_value:
            raise ArithmeticOverflowError(
                f"Amount {amount} is outside the representable range", operation
            )
        return amount

    def _checked_add(self, current: int, delta: int, operation: str) -> int:
        result = current + delta
        if result > self.max_value:
            raise ArithmeticOverflowError(f"{current} + {delta} overflows", operation)
        return result

    @contextmanager
    def _operation(self, name: str, caller: Address):
        """Serialize the operation and log any rejection"""
        with self._lock:
            try:
                yield
            except LedgerError as e:
                log_action(
                    self.logger, "warning", f"{name} rejected: {e.message}",
                    user_id=caller.value, action=name,
                    extra={"code": e.code}
                )
                raise

    def _guard(self, operation: str, guards, caller: Optional[Address] = None,
               amount: Optional[int] = None, **accounts: Address) -> None:
        ctx = GuardContext(
            operation=operation,
            store=self._store,
            caller=caller,
            accounts=accounts,
            amount=amount
        )
        run_guards(ctx, guards)

    def _audit(self, event_type: AuditEventType, entity_type: str, entity_id: str,
               caller: Address, metadata: Dict[str, Any]) -> None:
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata,
                user_id=caller.value
            )

    def _publish(self, event: EventPayload) -> None:
        """Publish a notification if an event dispatcher is attached"""
        if self._event_dispatcher:
            try:
                self._event_dispatcher.publish(event)
            except Exception as e:
                self.logger.error(f"Error publishing event {event.event_type.value}: {e}")

    def _debit(self, account: Address, amount: int, operation: str) -> None:
        balance = self._store.get_balance(account)
        if balance < amount:
            raise InsufficientBalanceError(
                f"Balance {balance} of {account} is less than {amount}", operation
            )
        self._store.set_balance(account, balance - amount)

    def _credit(self, account: Address, amount: int, operation: str) -> None:
        balance = self._store.get_balance(account)
        self._store.set_balance(account, self._checked_add(balance, amount, operation))

    # ------------------------------------------------------------------
    # Administrative operations
    # ------------------------------------------------------------------

    def mint(self, caller: AddressLike, target: AddressLike, amount: int) -> int:
        """
        Create ``amount`` new units and credit them to ``target``.

        Returns:
            New total supply

        Raises:
            UnauthorizedError, BlacklistedError, ZeroAddressError,
            ZeroAmountError, ArithmeticOverflowError
        """
        caller, target = Address.coerce(caller), Address.coerce(target)
        with self._operation("mint", caller):
            amount = self._check_amount(amount, "mint")
            self._guard("mint", MINT_GUARDS, caller=caller, amount=amount, target=target)

            with self.storage.atomic():
                new_supply = self._checked_add(self._store.get_total_supply(), amount, "mint")
                self._credit(target, amount, "mint")
                self._store.set_total_supply(new_supply)
                self._audit(
                    AuditEventType.TOKENS_MINTED, "account", target.value, caller,
                    {"amount": str(amount), "total_supply": str(new_supply)}
                )

            self._publish(transfer_event(ZERO_ADDRESS, target, amount))
            log_action(
                self.logger, "info", f"Minted {amount} to {target.short()}",
                user_id=caller.value, action="mint", resource=f"account:{target.value}",
                extra={"amount": str(amount), "total_supply": str(new_supply)}
            )
            return new_supply

    def burn_from(self, caller: AddressLike, source: AddressLike, amount: int) -> int:
        """
        Destroy ``amount`` units held by ``source``.

        Unlike mint, neither a blacklisted source nor a zero amount is
        rejected here.

        Returns:
            New total supply
        """
        caller, source = Address.coerce(caller), Address.coerce(source)
        with self._operation("burn_from", caller):
            amount = self._check_amount(amount, "burn_from")
            self._guard("burn_from", BURN_GUARDS, caller=caller, amount=amount, source=source)

            with self.storage.atomic():
                self._debit(source, amount, "burn_from")
                new_supply = self._store.get_total_supply() - amount
                self._store.set_total_supply(new_supply)
                self._audit(
                    AuditEventType.TOKENS_BURNED, "account", source.value, caller,
                    {"amount": str(amount), "total_supply": str(new_supply)}
                )

            self._publish(transfer_event(source, ZERO_ADDRESS, amount))
            log_action(
                self.logger, "info", f"Burned {amount} from {source.short()}",
                user_id=caller.value, action="burn_from", resource=f"account:{source.value}",
                extra={"amount": str(amount), "total_supply": str(new_supply)}
            )
            return new_supply

    def pause(self, caller: AddressLike) -> None:
        """Reject transfers and approvals until unpaused"""
        self._set_paused(Address.coerce(caller), True)

    def unpause(self, caller: AddressLike) -> None:
        self._set_paused(Address.coerce(caller), False)

    def _set_paused(self, caller: Address, paused: bool) -> None:
        action = "pause" if paused else "unpause"
        with self._operation(action, caller):
            self._guard(action, ADMIN_GUARDS, caller=caller)

            with self.storage.atomic():
                self._store.set_paused(paused)
                self._audit(
                    AuditEventType.LEDGER_PAUSED if paused else AuditEventType.LEDGER_UNPAUSED,
                    "ledger", "ledger", caller, {"paused": paused}
                )

            self._publish(pause_event(paused))
            log_action(self.logger, "info", f"Ledger {action}d",
                       user_id=caller.value, action=action, resource="ledger")

    def blacklist(self, caller: AddressLike, account: AddressLike) -> None:
        """Block ``account`` from sending, receiving and spending"""
        self._set_blacklisted(Address.coerce(caller), Address.coerce(account), True)

    def unblacklist(self, caller: AddressLike, account: AddressLike) -> None:
        self._set_blacklisted(Address.coerce(caller), Address.coerce(account), False)

    def _set_blacklisted(self, caller: Address, account: Address, blocked: bool) -> None:
        action = "blacklist" if blocked else "unblacklist"
        with self._operation(action, caller):
            self._guard(action, ADMIN_GUARDS, caller=caller, account=account)

            with self.storage.atomic():
                self._store.set_blacklisted(account, blocked)
                self._audit(
                    AuditEventType.ACCOUNT_BLACKLISTED if blocked else AuditEventType.ACCOUNT_UNBLACKLISTED,
                    "account", account.value, caller, {"blacklisted": blocked}
                )

            self._publish(blacklist_event(account, blocked))
            log_action(self.logger, "info", f"{action} {account.short()}",
                       user_id=caller.value, action=action, resource=f"account:{account.value}")

    # ------------------------------------------------------------------
    # Transfers and allowances
    # ------------------------------------------------------------------

    def transfer(self, sender: AddressLike, receiver: AddressLike, amount: int) -> bool:
        """
        Move ``amount`` from ``sender`` to ``receiver``.

        A self-transfer is allowed and leaves the balance unchanged, but the
        sender must still hold ``amount``.
        """
        sender, receiver = Address.coerce(sender), Address.coerce(receiver)
        with self._operation("transfer", sender):
            amount = self._check_amount(amount, "transfer")
            self._guard("transfer", TRANSFER_GUARDS, amount=amount,
                        sender=sender, receiver=receiver)

            with self.storage.atomic():
                self._debit(sender, amount, "transfer")
                self._credit(receiver, amount, "transfer")
                self._audit(
                    AuditEventType.TRANSFER_EXECUTED, "account", sender.value, sender,
                    {"to": receiver.value, "amount": str(amount)}
                )

            self._publish(transfer_event(sender, receiver, amount))
            log_action(
                self.logger, "info", f"Transferred {amount} to {receiver.short()}",
                user_id=sender.value, action="transfer", resource=f"account:{receiver.value}",
                extra={"amount": str(amount)}
            )
            return True

    def approve(self, owner: AddressLike, spender: AddressLike, amount: int) -> bool:
        """
        Set (not add to) the allowance of ``spender`` over ``owner``'s balance.
        Zero revokes.
        """
        owner, spender = Address.coerce(owner), Address.coerce(spender)
        with self._operation("approve", owner):
            amount = self._check_amount(amount, "approve")
            self._guard("approve", APPROVE_GUARDS, amount=amount,
                        owner=owner, spender=spender)
            self._write_allowance(owner, spender, amount, "approve")
            return True

    def increase_allowance(self, owner: AddressLike, spender: AddressLike, delta: int) -> bool:
        owner, spender = Address.coerce(owner), Address.coerce(spender)
        with self._operation("increase_allowance", owner):
            delta = self._check_amount(delta, "increase_allowance")
            self._guard("increase_allowance", ADJUST_ALLOWANCE_GUARDS, amount=delta,
                        owner=owner, spender=spender)

            current = self._store.get_allowance(owner, spender)
            new_amount = self._checked_add(current, delta, "increase_allowance")
            self._write_allowance(owner, spender, new_amount, "increase_allowance")
            return True

    def decrease_allowance(self, owner: AddressLike, spender: AddressLike, delta: int) -> bool:
        """
        Lower an allowance by ``delta``.

        Raises:
            AllowanceUnderflowError: If delta exceeds the current allowance
        """
        owner, spender = Address.coerce(owner), Address.coerce(spender)
        with self._operation("decrease_allowance", owner):
            delta = self._check_amount(delta, "decrease_allowance")
            self._guard("decrease_allowance", ADJUST_ALLOWANCE_GUARDS, amount=delta,
                        owner=owner, spender=spender)

            current = self._store.get_allowance(owner, spender)
            if delta > current:
                raise AllowanceUnderflowError(
                    f"Cannot decrease allowance {current} by {delta}", "decrease_allowance"
                )
            self._write_allowance(owner, spender, current - delta, "decrease_allowance")
            return True

    def _write_allowance(self, owner: Address, spender: Address, amount: int,
                         operation: str) -> None:
        with self.storage.atomic():
            self._store.set_allowance(owner, spender, amount)
            self._audit(
                AuditEventType.ALLOWANCE_SET, "allowance",
                LedgerStore.allowance_key(owner, spender), owner,
                {"spender": spender.value, "amount": str(amount), "operation": operation}
            )

        self._publish(approval_event(owner, spender, amount))
        log_action(
            self.logger, "info", f"Allowance for {spender.short()} set to {amount}",
            user_id=owner.value, action=operation, resource=f"allowance:{spender.value}",
            extra={"amount": str(amount)}
        )

    def transfer_from(self, spender: AddressLike, owner: AddressLike,
                      receiver: AddressLike, amount: int) -> bool:
        """
        Move ``amount`` from ``owner`` to ``receiver`` on ``spender``'s allowance.

        Allowance sufficiency is checked before balance sufficiency. The
        allowance debit, owner debit and receiver credit commit together.
        """
        spender = Address.coerce(spender)
        owner, receiver = Address.coerce(owner), Address.coerce(receiver)
        with self._operation("transfer_from", spender):
            amount = self._check_amount(amount, "transfer_from")
            self._guard("transfer_from", TRANSFER_FROM_GUARDS, amount=amount,
                        spender=spender, owner=owner, receiver=receiver)

            with self.storage.atomic():
                allowance = self._store.get_allowance(owner, spender)
                if allowance < amount:
                    raise InsufficientApprovalError(
                        f"Allowance {allowance} is less than {amount}", "transfer_from"
                    )
                self._store.set_allowance(owner, spender, allowance - amount)
                self._debit(owner, amount, "transfer_from")
                self._credit(receiver, amount, "transfer_from")
                self._audit(
                    AuditEventType.DELEGATED_TRANSFER_EXECUTED, "account", owner.value, spender,
                    {"to": receiver.value, "amount": str(amount),
                     "remaining_allowance": str(allowance - amount)}
                )

            self._publish(transfer_event(owner, receiver, amount))
            log_action(
                self.logger, "info", f"Delegated transfer of {amount} to {receiver.short()}",
                user_id=spender.value, action="transfer_from",
                resource=f"account:{owner.value}",
                extra={"amount": str(amount), "receiver": receiver.value}
            )
            return True

    # ------------------------------------------------------------------
    # Read-only operations
    # ------------------------------------------------------------------

    def balance_of(self, account: AddressLike) -> int:
        account = Address.coerce(account)
        with self._lock:
            self._guard("balance_of", BALANCE_OF_GUARDS, account=account)
            return self._store.get_balance(account)

    def allowance_of(self, owner: AddressLike, spender: AddressLike) -> int:
        owner, spender = Address.coerce(owner), Address.coerce(spender)
        with self._lock:
            self._guard("allowance_of", ALLOWANCE_OF_GUARDS, owner=owner, spender=spender)
            return self._store.get_allowance(owner, spender)

    def is_blacklisted(self, account: AddressLike) -> bool:
        with self._lock:
            return self._store.is_blacklisted(Address.coerce(account))

    @property
    def total_supply(self) -> int:
        with self._lock:
            return self._store.get_total_supply()

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._store.get_paused()

    @property
    def admin(self) -> Address:
        with self._lock:
            return self._store.get_admin()

    def _metadata(self, key: str):
        with self._lock:
            return self._store.load_meta()[key]

    @property
    def name(self) -> str:
        return self._metadata('name')

    @property
    def symbol(self) -> str:
        return self._metadata('symbol')

    @property
    def decimals(self) -> int:
        return self._metadata('decimals')

    def verify_supply(self) -> Dict[str, Any]:
        """
        Recompute the sum of all balances and compare it with total supply

        Returns:
            Dictionary with the check result, both totals and holder count
        """
        with self._lock:
            balances = self._store.all_balances()
            total_supply = self._store.get_total_supply()
            balance_sum = sum(balances.values())
            return {
                'valid': balance_sum == total_supply,
                'total_supply': total_supply,
                'sum_of_balances': balance_sum,
                'holders': sum(1 for amount in balances.values() if amount > 0)
            }
