"""Typed errors raised by the index store."""


class StoreError(RuntimeError):
    """Base class for index store failures."""


class StoreUnavailable(StoreError):
    """The backing database could not be opened or initialized."""


class TransactionFailed(StoreError):
    """A single read or write transaction failed and was rolled back."""


class IdentifierRace(TransactionFailed):
    """Two identifiers were about to be allocated for the same text."""
