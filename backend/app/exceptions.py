"""
Error taxonomy for the recurring expense engine.

Only ``InvalidInput`` ever reaches a caller: it is raised at the boundary,
before any computation starts. ``InsufficientData`` is raised and caught
inside the detector, and ``InconsistentCorrection`` is only logged.
"""


class RecurringEngineError(Exception):
    """Base class for engine errors."""


class InsufficientData(RecurringEngineError):
    """A merchant group has too little evidence to be called recurring."""


class InvalidInput(RecurringEngineError, ValueError):
    """A boundary argument (balance, horizon, filter value) is malformed."""


class InconsistentCorrection(RecurringEngineError):
    """A correction references a merchant key with no matching pattern."""

    def __init__(self, merchant_key: str):
        self.merchant_key = merchant_key
        super().__init__(
            f"No recurring pattern for merchant '{merchant_key}' yet; "
            "correction will apply on the next detection pass"
        )
