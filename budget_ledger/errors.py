"""Root of the ledger's exception hierarchy."""


class LedgerError(Exception):
    """Base exception for everything the ledger raises on purpose."""
    pass
