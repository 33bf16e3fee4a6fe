from __future__ import annotations


class SignalError(ValueError):
    """Base class for recoverable analysis failures."""


class ParseError(SignalError):
    """Input text has no `time` column or no usable rows."""


class InsufficientDataError(SignalError):
    """Too few samples/values for the requested stage."""


class UndeterminedRateError(SignalError):
    """No positive time delta exists, so no sampling rate can be estimated."""
