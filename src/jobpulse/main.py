# main.py
import uvicorn
from jobpulse.adapters.aiohttp_api_client import AioHttpApiClientAdapter
from jobpulse.adapters.backoff_tenacity import TenacityBackoffAdapter
from jobpulse.adapters.push_channel_inmemory import InMemoryPushChannel
from jobpulse.adapters.web.fastapi import create_app
from jobpulse.core.config import HealthMonitorConfig, ReconcilerConfig
from jobpulse.core.logging_config import configure_logging
from jobpulse.core.managers.engine import ReconciliationEngine
from jobpulse.core.managers.observers import HealthBannerObserver, JobEventLogObserver
from jobpulse.core.settings import app_settings, logger


# main lives at the outermost layer (not in core)
# Instantiates all the concrete adapters
# Wires dependencies together
# Starts the application

def main():
    # Central logging configuration BEFORE anything logs so uvicorn adopts level/format
    configure_logging(app_settings.JOBPULSE_LOG_LEVEL)
    app_settings.print_settings(logger)

    # Instantiate infrastructure adapters
    api_client = AioHttpApiClientAdapter(app_settings.backend_base_url)
    push_channel = InMemoryPushChannel()
    event_log = JobEventLogObserver()
    banner = HealthBannerObserver()

    reconciler_config = ReconcilerConfig.from_app_settings(app_settings)
    health_config = HealthMonitorConfig.from_app_settings(app_settings)

    # Factory passed to web adapter keeps composition here; the client is the
    # session-bound instance opened by the app lifespan
    def engine_factory(client):
        return ReconciliationEngine(
            client,
            reconciler_config=reconciler_config,
            health_config=health_config,
            backoff=TenacityBackoffAdapter(
                base_delay=health_config.base_delay, max_delay=health_config.max_delay
            ),
            job_observers=[event_log],
            health_observers=[banner],
        )

    app = create_app(
        engine_factory=engine_factory,
        api_client=api_client,
        push_channel=push_channel,
        event_log=event_log,
    )

    # Let uvicorn inherit existing logging (separate sinks & correlation ids)
    uvicorn.run(
        app,
        host=app_settings.JOBPULSE_SERVER_HOST,
        port=app_settings.JOBPULSE_SERVER_PORT,
        log_config=None,
        log_level=str(app_settings.JOBPULSE_LOG_LEVEL).lower(),
    )


if __name__ == "__main__":
    main()
