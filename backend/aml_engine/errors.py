"""
errors.py – Exception taxonomy for the detection engine.

Only invalid input is ever surfaced to callers. History access failures are
caught inside the scorer and turned into the default score; empty batches and
empty histories are not errors at all.
"""
from __future__ import annotations


class AMLEngineError(Exception):
    """Base class for all engine errors."""


class InvalidTransactionError(AMLEngineError, ValueError):
    """A single transaction is malformed (negative amount, missing ids, ...)."""


class InvalidBatchError(AMLEngineError, ValueError):
    """A batch handed to pattern detection contains a malformed entry."""


class HistoryAccessError(AMLEngineError):
    """The history provider failed or did not answer before the deadline."""
