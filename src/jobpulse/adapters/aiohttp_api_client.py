# jobpulse/adapters/aiohttp_api_client.py
import asyncio
import aiohttp
from typing import Any, Dict, Optional
from urllib.parse import quote

from pydantic import ValidationError

from jobpulse.core.interfaces.api_client import ApiClientPort
from jobpulse.core.exceptions import (
    ApiTransportError,
    InvalidJobPayloadError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)
from jobpulse.core.models.job import JobSnapshot
from jobpulse.core.settings import logger


class AioHttpApiClientAdapter(ApiClientPort):
    def __init__(self, base_url: str, headers: Optional[Dict[str, str]] = None):
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._session: Optional[aiohttp.ClientSession] = None
        # Default client timeout configuration for individual requests.
        # Callers normally pass an explicit total timeout per request.
        self._default_total: float = 10.0
        self._default_sock_read: float = 10.0
        self._default_sock_connect: float = 5.0
        self._default_client_timeout = aiohttp.ClientTimeout(
            total=self._default_total,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession(headers=self._headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    def _client_timeout(self, timeout: float | None) -> aiohttp.ClientTimeout:
        if timeout is None:
            return self._default_client_timeout
        # Keep adapter-level sock_read/sock_connect values but apply provided total
        return aiohttp.ClientTimeout(
            total=timeout,
            sock_read=min(self._default_sock_read, timeout),
            sock_connect=min(self._default_sock_connect, timeout),
        )

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")
        return self._session

    async def fetch_job(self, job_id: str, timeout: float | None = None) -> JobSnapshot:
        url = f"{self._base_url}/jobs/{quote(job_id, safe='')}"
        body = await self._fetch_json(url, timeout=self._client_timeout(timeout))
        if isinstance(body, dict) and "id" not in body:
            body = {**body, "id": job_id}
        try:
            return JobSnapshot.model_validate(body)
        except ValidationError as exc:
            logger.debug("Invalid job payload from backend. URL: %s, Errors: %s", url, exc.error_count())
            raise InvalidJobPayloadError(url, detail=f"{exc.error_count()} validation error(s)")

    async def check_health(self, timeout: float | None = None) -> bool:
        session = self._require_session()
        url = f"{self._base_url}/health"
        try:
            async with session.get(url, timeout=self._client_timeout(timeout)) as response:
                # Body is irrelevant; only reachability and status count
                await response.read()
                return response.status == 200
        except asyncio.TimeoutError:
            raise UpstreamTimeoutError(url, timeout)
        except aiohttp.ClientError as client_error:
            raise ApiTransportError(
                f"Connection error when probing backend health: {client_error}", url=url
            )

    async def _fetch_json(self, url: str, **kwargs) -> Any:
        """
        Fetch JSON from URL with job-backend specific error handling.

        Translates HTTP/network errors into ApiTransportError subclasses.
        """
        session = self._require_session()

        try:
            async with session.get(url, **kwargs) as response:
                if response.status >= 400:
                    text = await response.text()
                    logger.debug(
                        "HTTP error when requesting backend. URL: %s, Status: %s", url, response.status
                    )
                    raise UpstreamHTTPError(url, response.status, body=text[:500])
                try:
                    return await response.json()
                except aiohttp.ContentTypeError:
                    # Response isn't JSON; log a snippet and raise domain error
                    response_text = await response.text()
                    logger.debug(
                        "Invalid JSON response from backend. URL: %s, Content: %s",
                        url,
                        response_text[:500],
                    )
                    raise InvalidJobPayloadError(
                        url,
                        detail=f"response was not valid JSON: '{response_text[:100]}'",
                        status=response.status,
                    )

        except asyncio.TimeoutError:
            logger.debug("Timeout when requesting backend. URL: %s", url)
            timeout = kwargs.get("timeout")
            raise UpstreamTimeoutError(url, getattr(timeout, "total", None))

        except aiohttp.ClientError as client_error:
            logger.debug("Connection error when requesting backend. URL: %s, Error: %s", url, str(client_error))
            raise ApiTransportError(f"Connection error: {client_error}", url=url)

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
