"""Exception hierarchy for the EVE memory and chat engine."""


class EVEError(RuntimeError):
    """Base error for all evemind failures."""


class ConnectivityError(EVEError):
    """Raised when the memory store or the completion API cannot be reached."""


class StoreError(EVEError):
    """Raised when the memory store rejects a read or write."""


class ExtractionError(EVEError):
    """Raised when insight extraction fails or returns malformed data."""


class StreamingError(EVEError):
    """Raised when a streamed completion breaks before finishing."""


class CompletionError(EVEError):
    """Raised when the completion API answers with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
