"""Custom generation exceptions."""


class GenerationError(Exception):
    """Base exception for trackforge generation errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class ServiceAuthError(GenerationError):
    """Exception raised for authentication failures.

    This typically occurs when:
    - API key environment variable is not set
    - API key is rejected (401/403)
    """

    pass


class ServiceAPIError(GenerationError):
    """Exception raised for collaborator communication errors.

    This typically occurs when:
    - Service is unavailable (5xx errors)
    - Rate limits are exceeded (429 error)
    - Request is rejected (4xx errors)
    - Network connectivity issues
    - Response body is not in the expected shape
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code


class SynthesisFailedError(GenerationError):
    """The audio-synthesis service reported the job as FAILED."""

    def __init__(self, job_id: str, reason: str | None = None) -> None:
        message = f"Audio synthesis failed for job {job_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.job_id = job_id
        self.reason = reason


class SynthesisTimeoutError(GenerationError):
    """Polling exhausted its attempt budget without a terminal status."""

    def __init__(self, job_id: str, attempts: int) -> None:
        super().__init__(
            f"Audio synthesis timed out for job {job_id} after {attempts} status checks"
        )
        self.job_id = job_id
        self.attempts = attempts


class GenerationCancelled(GenerationError):
    """Cooperative cancellation was observed at a suspension point."""

    def __init__(self) -> None:
        super().__init__("Generation cancelled")


class InvalidTransitionError(GenerationError):
    """A phase transition not permitted by the phase machine was requested."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid phase transition: {current} -> {target}")
        self.current = current
        self.target = target


class ScheduleNotFoundError(GenerationError):
    """No schedule exists with the requested id."""

    def __init__(self, schedule_id: str) -> None:
        super().__init__(f"Schedule not found: {schedule_id}")
        self.schedule_id = schedule_id
