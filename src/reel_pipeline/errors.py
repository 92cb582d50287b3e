"""Exception taxonomy shared by the queue, the orchestrator and the stage adapters."""

from typing import Optional


class ReelPipelineError(Exception):
    """Base class for pipeline failures.

    ``retryable`` tells the stage adapters whether an in-adapter retry makes
    sense. Job-level retries are decided by the scheduler for every attempt
    failure regardless of this flag.
    """

    retryable = False


class ValidationError(ReelPipelineError):
    """Raised when a submission is rejected before it is enqueued."""


class NotFoundError(ReelPipelineError):
    """Raised when a job or celebrity id is unknown."""


class ProviderError(ReelPipelineError):
    """Raised when an external provider call fails.

    Transient failures (timeouts, connection errors, 429 and 5xx responses)
    are retried by the stage adapter; permanent ones (auth, malformed
    request) propagate immediately.
    """

    def __init__(
        self,
        message: str,
        provider: str = "",
        transient: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.transient = transient
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.transient


class ScriptLengthError(ReelPipelineError):
    """Raised when narration falls outside the speaking-rate budget."""

    def __init__(self, message: str, word_count: int, target_words: int):
        super().__init__(message)
        self.word_count = word_count
        self.target_words = target_words


class ScriptTooShortError(ScriptLengthError):
    """Narration is shorter than the budget allows."""


class ScriptTooLongError(ScriptLengthError):
    """Narration is longer than the budget allows."""


class MediaInputError(ReelPipelineError):
    """Raised when composition inputs are missing or empty."""


class EncodingError(ReelPipelineError):
    """Raised when the media encoder exits non-zero or times out."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class StorageError(ReelPipelineError):
    """Raised when publishing to object storage fails."""


class JobCancelledError(ReelPipelineError):
    """Raised at a stage boundary once cancellation was requested for the job."""

    def __init__(self, job_id: str, stage: Optional[str] = None):
        where = f" before {stage}" if stage else ""
        super().__init__(f"Job {job_id} cancelled{where}")
        self.job_id = job_id
        self.stage = stage
