"""Error taxonomy for smart search providers.

A provider that is merely unavailable (missing configuration, soft negative
response) signals it by returning ``None``; only the conditions below are
exceptions.
"""

from pathlib import Path


class SmartSearchError(Exception):
    """Base error for the retrieval stack."""


class DimensionMismatch(SmartSearchError, ValueError):
    """Strict similarity comparison on vectors of different length."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vectors must be of same length (got {left} and {right})")
        self.left = left
        self.right = right


class ProviderPermanentFailure(SmartSearchError):
    """Auth or not-found response; retrying will not help."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderTransientFailure(SmartSearchError):
    """Server error, timeout or transport failure that outlived its retries."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 1,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.status_code = status_code


class EmbedTimeout(SmartSearchError, TimeoutError):
    """Embedding backend exceeded its latency budget."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Embedding timeout after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class MalformedRecord(SmartSearchError, ValueError):
    """A vector store file (or one entry in it) could not be used."""

    def __init__(self, path: Path | str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason
