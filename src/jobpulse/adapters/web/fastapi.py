# jobpulse/adapters/web/fastapi.py
from contextlib import asynccontextmanager
from typing import Callable, List, Optional, Union

import uuid

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from jobpulse.adapters.push_channel_inmemory import InMemoryPushChannel
from jobpulse.core.exceptions import JobNotTrackedError
from jobpulse.core.interfaces.api_client import ApiClientPort
from jobpulse.core.logging_config import correlation_id_var, correlation_scope
from jobpulse.core.managers.engine import ReconciliationEngine
from jobpulse.core.models.events import ConnectionHealthChangedEvent, ProgressUpdateEvent
from jobpulse.core.models.health import HealthState
from jobpulse.core.models.job import JobRecord, JobStatus
from jobpulse.core.models.problem import ProblemDetails
from jobpulse.core.settings import logger


class TrackRequest(BaseModel):
    status: JobStatus = JobStatus.processing
    progress: float = Field(default=0.0, ge=0)


class ProgressRequest(BaseModel):
    progress: float = Field(ge=0)


# Note: this is a driver adapter, so it depends on the core engine but the
# core does not depend on this adapter
def create_app(
    engine_factory: Callable[[ApiClientPort], ReconciliationEngine],
    api_client: ApiClientPort,
    push_channel: Optional[InMemoryPushChannel] = None,
    event_log=None,
):
    """Create the FastAPI app.

    Adapters and concrete infrastructure (api client, push channel, observers)
    are assembled outside and passed in. This keeps the web adapter focused
    purely on HTTP concerns and lifecycle orchestration.
    """
    channel = push_channel or InMemoryPushChannel()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with api_client as client:
            engine = engine_factory(client)
            engine.attach_push_channel(channel)
            app.state.engine = engine
            app.state.push_channel = channel
            engine.start()
            try:
                yield
            finally:
                await engine.shutdown()

    app = FastAPI(title="JobPulse", lifespan=lifespan)

    def render_problem(problem: ProblemDetails) -> JSONResponse:
        # Surface the correlation id so clients can quote it when reporting issues
        problem = problem.with_request_id(correlation_id_var.get())
        payload = jsonable_encoder(problem.model_dump(exclude_none=True))
        return JSONResponse(status_code=problem.status, content=payload)

    # Per-request correlation id; a client-supplied X-Request-ID is reused
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        with correlation_scope(request.headers.get("x-request-id") or uuid.uuid4().hex[:12]) as cid:
            response = await call_next(request)
        response.headers["X-Request-ID"] = cid
        return response

    @app.exception_handler(JobNotTrackedError)
    async def job_not_tracked_handler(request: Request, exc: JobNotTrackedError):
        return render_problem(
            ProblemDetails(
                title="Job Not Tracked",
                status=404,
                detail=str(exc),
                instance=str(request.url.path),
            )
        )

    def engine_of(request: Request) -> ReconciliationEngine:
        return request.app.state.engine

    @app.get("/health")
    async def liveness():
        return {"status": "ok"}

    @app.get("/status/health", response_model=HealthState)
    async def backend_health(request: Request):
        return engine_of(request).health

    @app.post("/status/health/retry", response_model=HealthState)
    async def retry_backend_health(request: Request):
        return await engine_of(request).retry_health_check()

    @app.get("/jobs", response_model=List[JobRecord])
    async def list_jobs(request: Request):
        return engine_of(request).jobs()

    @app.get("/jobs/{job_id}", response_model=JobRecord)
    async def get_job(request: Request, job_id: str):
        return engine_of(request).get_job(job_id)

    @app.put("/jobs/{job_id}", response_model=JobRecord)
    async def track_job(request: Request, job_id: str, body: TrackRequest):
        record = engine_of(request).track(job_id, status=body.status, progress=body.progress)
        if record is None:
            return render_problem(
                ProblemDetails(
                    title="Terminal Job",
                    status=409,
                    detail=f"Job {job_id} is already {body.status}; nothing to track",
                    instance=str(request.url.path),
                )
            )
        return record

    @app.delete("/jobs/{job_id}", status_code=204)
    async def untrack_job(request: Request, job_id: str):
        if engine_of(request).untrack(job_id) is None:
            raise JobNotTrackedError(job_id)
        return Response(status_code=204)

    @app.post("/jobs/{job_id}/progress", response_model=JobRecord)
    async def notify_progress(request: Request, job_id: str, body: ProgressRequest):
        record = engine_of(request).notify_progress(job_id, body.progress)
        if record is None:
            raise JobNotTrackedError(job_id)
        return record

    @app.post("/events", status_code=202)
    async def publish_event(
        request: Request,
        event: Union[ProgressUpdateEvent, ConnectionHealthChangedEvent],
    ):
        await request.app.state.push_channel.publish(event)
        logger.debug("[web:events] published type=%s", event.type)
        return {"accepted": True, "type": event.type}

    @app.get("/diagnostics")
    async def diagnostics(request: Request):
        payload = engine_of(request).diagnostics()
        if event_log is not None:
            payload["recent_events"] = event_log.entries()
        return payload

    return app
