"""
Exceptions raised by the phageome_tools pipeline.

All of them derive from PhageomeError so that a batch run can stop on any
data problem with a single handler.
"""


class PhageomeError(Exception):
    """Base class for all pipeline errors."""


class SchemaError(PhageomeError):
    """An input table is missing expected columns or holds invalid values."""

    def __init__(self, message, columns=None):
        super().__init__(message)
        self.columns = list(columns) if columns is not None else []


class KeyMismatchError(PhageomeError):
    """Identifiers referenced in one table are absent from another."""

    def __init__(self, message, identifiers=None):
        super().__init__(message)
        self.identifiers = list(identifiers) if identifiers is not None else []


class EmptySampleError(PhageomeError):
    """One or more samples have a zero total and cannot be normalized."""

    def __init__(self, message, samples=None):
        super().__init__(message)
        self.samples = list(samples) if samples is not None else []
