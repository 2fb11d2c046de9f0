"""Normalized push-channel events.

The push transport (websocket framing, reconnects, auth) lives outside this
package; whatever feeds the PushChannelPort hands over one of these shapes,
either as a model or as the raw JSON mapping.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from jobpulse.core.models.job import JobStatus


class ProgressUpdateEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["progress_update"] = "progress_update"
    job_id: str = Field(alias="jobId")
    progress: float = Field(ge=0)
    status: JobStatus = JobStatus.processing
    message: Optional[str] = None
    # Producer clock; only orders push events against each other
    timestamp: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> JobStatus:
        return JobStatus.parse(value)


class ConnectionHealthChangedEvent(BaseModel):
    type: Literal["connection_health_changed"] = "connection_health_changed"
    healthy: bool
    connected: bool

    @property
    def is_degraded(self) -> bool:
        return not self.healthy or not self.connected


PushEvent = Annotated[
    Union[ProgressUpdateEvent, ConnectionHealthChangedEvent],
    Field(discriminator="type"),
]

_push_event_adapter: TypeAdapter[PushEvent] = TypeAdapter(PushEvent)


def parse_push_event(payload: Mapping[str, Any] | BaseModel) -> PushEvent:
    """Validate a raw event mapping; models pass through untouched.

    Raises pydantic.ValidationError for unknown types or malformed payloads.
    """
    if isinstance(payload, (ProgressUpdateEvent, ConnectionHealthChangedEvent)):
        return payload
    return _push_event_adapter.validate_python(payload)
