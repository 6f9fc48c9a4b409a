"""
Ledger Error Taxonomy

Every guard and precondition failure raises exactly one of these kinds.
Each carries a stable ``code`` so adapters can map failures without
matching on messages.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger operation failures"""
    code = "LEDGER_ERROR"

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'message': self.message,
            'operation': self.operation
        }


class ZeroAddressError(LedgerError, ValueError):
    """A required address argument is the null sentinel"""
    code = "ZERO_ADDRESS"


class ZeroAmountError(LedgerError, ValueError):
    """A required positive quantity is zero"""
    code = "ZERO_AMOUNT"


class InsufficientBalanceError(LedgerError, ValueError):
    """A debit exceeds the source account's balance"""
    code = "INSUFFICIENT_BALANCE"


class InsufficientApprovalError(LedgerError, ValueError):
    """A delegated transfer exceeds the recorded allowance"""
    code = "INSUFFICIENT_APPROVAL"


class AllowanceUnderflowError(LedgerError, ValueError):
    """A decrease-allowance delta exceeds the current allowance"""
    code = "ALLOWANCE_UNDERFLOW"


class UnauthorizedError(LedgerError, PermissionError):
    """Caller is not the administrator"""
    code = "UNAUTHORIZED"


class LedgerPausedError(LedgerError):
    """Operation attempted while the ledger is paused"""
    code = "PAUSED"


class BlacklistedError(LedgerError, PermissionError):
    """A participating account is blacklisted"""
    code = "BLACKLISTED"


class ArithmeticOverflowError(LedgerError, OverflowError):
    """A value falls outside the representable unsigned range"""
    code = "ARITHMETIC_OVERFLOW"
