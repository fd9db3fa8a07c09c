"""Error kinds raised while generating recommendations."""


class RecommendationError(Exception):
    """Base class for recommendation pipeline errors."""

    pass


class InvalidRequestError(RecommendationError):
    """Raised when a required request field is missing. Never retried."""

    pass


class UpstreamDataError(RecommendationError):
    """Raised when the row store fails a read or write."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message


class CandidateSourceTransientFailure(RecommendationError):
    """
    A candidate source could not produce candidates for a recoverable reason.

    Timeouts, rate limits and malformed model output land here. The pipeline
    answers this with a fallback to the next configured source.
    """

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class CandidateSourceFatalFailure(RecommendationError):
    """A candidate source failed for a reason a fallback will not fix (e.g. auth)."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason
