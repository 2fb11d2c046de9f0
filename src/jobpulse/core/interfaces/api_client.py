# jobpulse/core/interfaces/api_client.py
from abc import ABC, abstractmethod

from jobpulse.core.models.job import JobSnapshot


class ApiClientPort(ABC):
    """Single-shot requests against the job backend.

    Implementations perform exactly one HTTP request per call and never retry;
    the HealthMonitor and PollingReconciler decide when to try again.
    Failures raise ApiTransportError (or a subclass).
    """

    @abstractmethod
    async def __aenter__(self) -> "ApiClientPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def fetch_job(self, job_id: str, timeout: float | None = None) -> JobSnapshot:
        """GET /jobs/{job_id} and return the parsed status snapshot.

        The timeout is optional; adapters may use an internal default
        when timeout is None.
        """
        pass

    @abstractmethod
    async def check_health(self, timeout: float | None = None) -> bool:
        """GET /health. True on HTTP 200, False on any other status.

        Network errors and timeouts raise ApiTransportError.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client session"""
        pass
