from typing import Optional


class ApiTransportError(Exception):
    """Base exception for failed requests against the job backend.

    Covers network errors, timeouts, unexpected HTTP status codes and bodies
    that cannot be interpreted. The engine never lets these escape: a failed
    corrective fetch keeps the prior job status and a failed probe only
    updates the HealthState.

    Attributes:
        message: Human-readable error description
        url: Requested URL
        status: Upstream HTTP status code (if a response was received)
    """
    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.message = message
        self.url = url
        self.status = status
        super().__init__(message)


class UpstreamTimeoutError(ApiTransportError):
    """Raised when the backend did not answer within the request timeout."""
    def __init__(self, url: str, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        message = f"Request to {url} timed out"
        if timeout_seconds is not None:
            message += f" after {timeout_seconds}s"
        super().__init__(message=message, url=url, status=None)


class UpstreamHTTPError(ApiTransportError):
    """Raised when the backend answered with a non-success status code."""
    def __init__(self, url: str, status: int, body: Optional[str] = None):
        self.body = body
        super().__init__(
            message=f"Backend returned HTTP {status} for {url}",
            url=url,
            status=status,
        )


class InvalidJobPayloadError(ApiTransportError):
    """Raised when a job status body is not JSON or misses required fields."""
    def __init__(self, url: str, detail: str, status: Optional[int] = None):
        self.detail = detail
        super().__init__(
            message=f"Invalid job payload from {url}: {detail}",
            url=url,
            status=status,
        )


class JobNotTrackedError(KeyError):
    """Raised by read accessors when a job id is not (or no longer) tracked."""
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(job_id)

    def __str__(self) -> str:
        return f"Job {self.job_id} is not tracked"
