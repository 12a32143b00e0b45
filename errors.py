from decimal import Decimal


class SettleUpError(Exception):
    """Base class for ledger engine errors"""


class InvalidAmount(SettleUpError, ValueError):
    """A negative or non-numeric monetary amount"""


class ShareMismatch(SettleUpError, ValueError):
    """Participant shares do not add up to the expense total"""

    def __init__(self, allocated: Decimal, expected: Decimal):
        self.allocated = allocated
        self.expected = expected
        self.difference = allocated - expected
        super().__init__(
            f"allocated {allocated} / {expected}, off by {abs(self.difference)}"
        )

    def to_dict(self):
        return {
            "message": str(self),
            "allocated": str(self.allocated),
            "expected": str(self.expected),
            "difference": str(self.difference),
        }


class UnbalancedLedger(SettleUpError):
    """Balances handed to the optimizer do not cancel out"""

    def __init__(self, total: Decimal, tolerance: Decimal):
        self.total = total
        self.tolerance = tolerance
        super().__init__(
            f"balances sum to {total}, expected 0 within {tolerance}"
        )
