class LedgerError(Exception):
    """Base class for ledger operation failures."""


class ValidationFailed(LedgerError, ValueError):
    """Raised when input is rejected before any state is changed."""


class PaymentRejectedError(ValidationFailed):
    """Raised when a payment is not positive or exceeds the remaining balance."""


class CustomerNotFoundError(LedgerError):
    """Raised when a customer cannot be found."""


class SaleNotFoundError(LedgerError):
    """Raised when a sale cannot be found."""


class BackupNotFoundError(LedgerError):
    """Raised when a stored backup cannot be found."""
