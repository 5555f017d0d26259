"""Error taxonomy for the forecast engine.

Recovery policy:
- MalformedResponse: raised to the caller when a live prediction has no
  usable structure (caller may retry). Backtests downgrade it to a placeholder.
- InvalidProbabilities: always recovered with the neutral fallback, only logged.
- PersistenceUnavailable: raised by stores, swallowed by the ledger (logged).
- UpstreamUnavailable: model or lookup failure, timeout or missing API key.
"""

from typing import Optional


class ForecastEngineError(Exception):
    """Base error for the engine."""

    pass


class MalformedResponse(ForecastEngineError):
    """No usable structured payload anywhere in the model text."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class InvalidProbabilities(ForecastEngineError):
    """Probability inputs with a zero or negative clamped sum."""

    pass


class PersistenceUnavailable(ForecastEngineError):
    """Backing store could not be read or written."""

    pass


class UpstreamUnavailable(ForecastEngineError):
    """Model query or lookup collaborator failed."""

    def __init__(self, message: str, status: str = "ERROR"):
        super().__init__(message)
        self.status = status  # ERROR, TIMEOUT, NOT_CONFIGURED
