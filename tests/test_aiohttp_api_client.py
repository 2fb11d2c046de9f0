import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses

from jobpulse.adapters.aiohttp_api_client import AioHttpApiClientAdapter
from jobpulse.core.exceptions import (
    ApiTransportError,
    InvalidJobPayloadError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)
from jobpulse.core.models.job import JobStatus

"""
Tests for AioHttpApiClientAdapter behavior.

Each test verifies how the adapter maps backend responses and errors into
snapshots or domain-level exceptions:
- A valid job document is parsed into a JobSnapshot; status aliases and
  casing are normalized.
- HTTP error status codes raise UpstreamHTTPError carrying the status.
- Non-JSON bodies or documents without a usable status raise
  InvalidJobPayloadError.
- Timeouts raise UpstreamTimeoutError; connection failures ApiTransportError.
- The health probe only reports True for a 200 response.
"""

BASE = "http://backend.test"


@pytest.mark.asyncio
async def test_fetch_job_parses_snapshot():
    with aioresponses() as m:
        m.get(f"{BASE}/jobs/j1", payload={"id": "j1", "status": "processing", "progress": 0.4})

        async with AioHttpApiClientAdapter(BASE) as client:
            snapshot = await client.fetch_job("j1", timeout=5)

    assert snapshot.id == "j1"
    assert snapshot.status == JobStatus.processing
    assert snapshot.progress == 0.4


@pytest.mark.asyncio
async def test_fetch_job_normalizes_status_alias_and_injects_id():
    # Backends that omit the id in the body still yield a keyed snapshot
    with aioresponses() as m:
        m.get(f"{BASE}/jobs/j2", payload={"status": "PENDING", "result": {"rows": 3}})

        async with AioHttpApiClientAdapter(BASE + "/") as client:
            snapshot = await client.fetch_job("j2")

    assert snapshot.id == "j2"
    assert snapshot.status == JobStatus.queued
    assert snapshot.progress is None


@pytest.mark.asyncio
async def test_fetch_job_http_error_raises():
    # The upstream status is kept so callers can tell 404 from 500
    with aioresponses() as m:
        m.get(f"{BASE}/jobs/j1", status=500, body="Server Error")

        async with AioHttpApiClientAdapter(BASE) as client:
            with pytest.raises(UpstreamHTTPError) as excinfo:
                await client.fetch_job("j1")

    assert excinfo.value.status == 500


@pytest.mark.asyncio
async def test_fetch_job_non_json_raises_invalid_payload():
    with aioresponses() as m:
        m.get(
            f"{BASE}/jobs/j1",
            body="<html>maintenance</html>",
            status=200,
            headers={"Content-Type": "text/html"},
        )

        async with AioHttpApiClientAdapter(BASE) as client:
            with pytest.raises(InvalidJobPayloadError):
                await client.fetch_job("j1")


@pytest.mark.asyncio
async def test_fetch_job_unknown_status_raises_invalid_payload():
    with aioresponses() as m:
        m.get(f"{BASE}/jobs/j1", payload={"id": "j1", "status": "exploded"})

        async with AioHttpApiClientAdapter(BASE) as client:
            with pytest.raises(InvalidJobPayloadError):
                await client.fetch_job("j1")


@pytest.mark.asyncio
async def test_fetch_job_timeout_raises():
    with aioresponses() as m:
        m.get(f"{BASE}/jobs/slow", exception=asyncio.TimeoutError())

        async with AioHttpApiClientAdapter(BASE) as client:
            with pytest.raises(UpstreamTimeoutError) as excinfo:
                await client.fetch_job("slow", timeout=2)

    assert excinfo.value.timeout_seconds == 2


@pytest.mark.asyncio
async def test_fetch_job_connection_error_raises_transport_error():
    with aioresponses() as m:
        m.get(f"{BASE}/jobs/j1", exception=aiohttp.ClientConnectionError("refused"))

        async with AioHttpApiClientAdapter(BASE) as client:
            with pytest.raises(ApiTransportError):
                await client.fetch_job("j1")


@pytest.mark.asyncio
@pytest.mark.parametrize("status,expected", [(200, True), (204, False), (503, False)])
async def test_check_health_status(status, expected):
    with aioresponses() as m:
        m.get(f"{BASE}/health", status=status)

        async with AioHttpApiClientAdapter(BASE) as client:
            assert await client.check_health(timeout=1) is expected


@pytest.mark.asyncio
async def test_check_health_connection_error_raises():
    with aioresponses() as m:
        m.get(f"{BASE}/health", exception=aiohttp.ClientConnectionError("refused"))

        async with AioHttpApiClientAdapter(BASE) as client:
            with pytest.raises(ApiTransportError):
                await client.check_health()


@pytest.mark.asyncio
async def test_requires_context_manager():
    client = AioHttpApiClientAdapter(BASE)
    with pytest.raises(RuntimeError):
        await client.fetch_job("j1")


@pytest.mark.asyncio
async def test_invalid_payload_is_not_logged_as_error(caplog):
    # The reconciler reports the failed correction; the adapter only traces it
    with aioresponses() as m:
        m.get(f"{BASE}/jobs/j1", payload={"id": "j1", "status": "exploded"})

        async with AioHttpApiClientAdapter(BASE) as client:
            with caplog.at_level("DEBUG", logger="jobpulse"):
                with pytest.raises(InvalidJobPayloadError):
                    await client.fetch_job("j1")

    assert not [r for r in caplog.records if r.levelname == "ERROR"]
