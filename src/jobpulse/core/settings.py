# Logging adapter for application-wide logging
from jobpulse.adapters.logging_adapter import LoggingAdapter

from pydantic import HttpUrl
from pydantic_settings import BaseSettings
from rich import print

from jobpulse.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place.
# Only the composition root (main) reads these; core managers receive
# explicit config objects.
class JobPulseSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    JOBPULSE_LOG_LEVEL: str = "INFO"
    JOBPULSE_BACKEND_URL: HttpUrl = HttpUrl("http://localhost:3001")
    JOBPULSE_SERVER_HOST: str = "0.0.0.0"
    JOBPULSE_SERVER_PORT: int = 8000
    # Reconciler
    JOBPULSE_POLLING_INTERVAL: float = 10.0  # seconds
    JOBPULSE_STALE_THRESHOLD: float = 30.0  # seconds
    JOBPULSE_MAX_CONCURRENT_POLLS: int = 5
    JOBPULSE_POLLING_ENABLED: bool = True
    JOBPULSE_FETCH_TIMEOUT: float = 10.0  # seconds
    # Health monitor
    JOBPULSE_HEALTH_BASE_DELAY: float = 30.0  # seconds
    JOBPULSE_HEALTH_MAX_DELAY: float = 240.0  # seconds
    JOBPULSE_HEALTH_PROBE_TIMEOUT: float = 10.0  # seconds

    @property
    def backend_base_url(self) -> str:
        """Backend URL without trailing slash, ready for path joins."""
        return str(self.JOBPULSE_BACKEND_URL).rstrip("/")

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("JobPulse Settings:")
        print(self)


app_settings = JobPulseSettings()

logger = LoggingAdapter("jobpulse", app_settings.JOBPULSE_LOG_LEVEL)
