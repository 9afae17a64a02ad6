from typing import Optional


class DigestError(Exception):
    """Base class for errors raised by the digest pipeline."""


class ValidationError(DigestError):
    """Caller input is malformed."""


class ExtractionError(DigestError):
    """No extraction strategy produced enough text."""


class SummarizationError(DigestError):
    """The completion service failed or returned unusable output."""


class NotFoundError(DigestError):
    """Unknown job identifier."""


class InvalidTransitionError(DigestError):
    """A job was asked to move to a state it cannot reach."""


class UpstreamError(DigestError):
    def __init__(
        self, status_code: int, detail: str, retry_after: Optional[float] = None
    ) -> None:
        super().__init__(f"upstream error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.retry_after = retry_after


class RateLimitedError(DigestError):
    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
