"""
Exceptions and warnings raised by the escalation package.
"""


class EscalationError(Exception):
    """Base class for errors raised by this package."""


class ParseError(EscalationError, ValueError):
    """
    Malformed outcome notation.

    Attributes
    ----------
    token : str
        The offending cohort token (or the whole string when the problem
        is not confined to one token).
    """

    def __init__(self, message: str, token: str = ""):
        super().__init__(message)
        self.token = token


class ConfigurationError(EscalationError, ValueError):
    """Invalid dose-path or crystallisation parameters."""


class ModelInvocationError(EscalationError, RuntimeError):
    """
    A dose selector failed while being fitted or queried.

    Attributes
    ----------
    history : str
        Outcome string that was passed to the selector.
    """

    def __init__(self, message: str, history: str = ""):
        super().__init__(message)
        self.history = history


class NumericToleranceWarning(UserWarning):
    """Crystallised path probabilities do not sum to one."""
