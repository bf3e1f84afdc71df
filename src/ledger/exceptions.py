"""Ledger gateway exceptions."""


class LedgerError(Exception):
    """Base ledger gateway error."""


class LedgerUnavailableError(LedgerError):
    """The ledger engine could not be reached or failed unexpectedly."""


class LedgerRejectedError(LedgerError):
    """The ledger engine refused the operation.

    The message comes from the engine (not found, already realized, ...) and
    is safe to show to the user as is.
    """
