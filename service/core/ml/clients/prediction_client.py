import asyncio
import time
from typing import Any

import httpx

from service.config import PredictionConfig
from service.core.exceptions import NetworkError, RejectedError, ServiceUnavailableError
from service.core.ml.utils.metrics_recorder import MetricsRecorder
from service.core.ml.utils.types import JobHandle, JobRequest, JobStatus
from service.log import get_logger

logger = get_logger(__name__)


class PredictionClient:
    """
    Client for an asynchronous remote prediction service.

    Jobs are submitted with POST /predictions and observed with
    GET /predictions/{id} until they reach a terminal state or the polling
    budget runs out. Only the remote service mutates job status.

    Use as an async context manager unless an http_client is injected:

        async with PredictionClient.from_config(settings.prediction) as client:
            handle = await client.run(JobRequest(version, {"image": url}))
    """

    def __init__(
        self,
        api_token: str | None,
        base_url: str = "https://api.replicate.com/v1",
        poll_interval: float = 1.0,
        max_attempts: int = 30,
        request_timeout: float = 30.0,
        submit_retries: int = 3,
        retry_backoff: float = 0.5,
        max_concurrent_jobs: int = 16,
        job_limiter: asyncio.Semaphore | None = None,
        http_client: httpx.AsyncClient | None = None,
        metrics_recorder: MetricsRecorder | None = None,
    ):
        """
        Args:
            api_token: Bearer credential; when missing every submit fails with ServiceUnavailableError
            base_url: Prediction API root
            poll_interval: Seconds slept between polls
            max_attempts: Default number of polls before giving up as inconclusive
            request_timeout: Per-request HTTP timeout in seconds
            submit_retries: Attempts for a submit hitting transport errors or 5xx
            retry_backoff: Base delay of the exponential submit backoff
            max_concurrent_jobs: Size of the job limiter when none is shared in
            job_limiter: Semaphore shared by all clients of a process to cap outbound jobs
            http_client: Optional pre-built HTTP client (not closed by this client)
            metrics_recorder: Optional metrics recorder
        """
        if submit_retries < 1:
            raise ValueError(f"submit_retries must be at least 1, got {submit_retries}")
        if job_limiter is None and max_concurrent_jobs < 1:
            raise ValueError(f"max_concurrent_jobs must be at least 1, got {max_concurrent_jobs}")

        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.request_timeout = request_timeout
        self.submit_retries = submit_retries
        self.retry_backoff = retry_backoff
        self.metrics_recorder = metrics_recorder or MetricsRecorder()

        self._job_limiter = job_limiter or asyncio.Semaphore(max_concurrent_jobs)
        self._http_client = http_client
        self._own_client = http_client is None

    @classmethod
    def from_config(cls, config: PredictionConfig, **kwargs: Any) -> "PredictionClient":
        """Create a client from the prediction settings"""
        return cls(
            api_token=config.api_token,
            base_url=config.base_url,
            poll_interval=config.poll_interval,
            max_attempts=config.max_poll_attempts,
            request_timeout=config.request_timeout,
            submit_retries=config.submit_retries,
            max_concurrent_jobs=config.max_concurrent_jobs,
            **kwargs,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    async def __aenter__(self):
        if self._own_client:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.request_timeout),
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._own_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}", "Content-Type": "application/json"}

    def _ensure_ready(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise ServiceUnavailableError("Prediction API token is not configured")
        if self._http_client is None:
            raise ServiceUnavailableError("HTTP client not initialized. Use async context manager.")
        return self._http_client

    async def submit(self, request: JobRequest) -> JobHandle:
        """
        Submit a prediction job.

        Transport errors and 5xx responses are retried with exponential
        backoff; 4xx responses are not.

        Raises:
            ServiceUnavailableError: Credential or HTTP client missing (no call is made)
            RejectedError: Non-2xx response or malformed body
            NetworkError: Transport failure on every attempt
        """
        http_client = self._ensure_ready()
        last_error: Exception | None = None

        for attempt in range(self.submit_retries):
            try:
                response = await http_client.post(
                    f"{self.base_url}/predictions", json=request.to_payload(), headers=self._headers()
                )
            except httpx.RequestError as e:
                last_error = NetworkError(f"Prediction submit failed: {e}")
            else:
                if response.status_code < 500:
                    handle = self._parse_response(response, "submit")
                    logger.debug(f"Submitted prediction {handle.id} ({handle.status.value})")
                    return handle
                last_error = RejectedError(f"Prediction submit failed: HTTP {response.status_code}")

            if attempt < self.submit_retries - 1:
                await asyncio.sleep(self.retry_backoff * (2**attempt))

        raise last_error

    async def poll(self, handle: JobHandle) -> JobHandle:
        """
        Fetch the current state of a job.

        Raises:
            NetworkError: Transport failure
            RejectedError: Non-2xx response or malformed body
        """
        http_client = self._ensure_ready()
        try:
            response = await http_client.get(f"{self.base_url}/predictions/{handle.id}", headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(f"Prediction poll failed for {handle.id}: {e}") from e

        return self._parse_response(response, "poll")

    async def wait_until_terminal(
        self, handle: JobHandle, poll_interval: float | None = None, max_attempts: int | None = None
    ) -> JobHandle:
        """
        Poll until the job succeeds or fails, sleeping between polls.

        Returns the last observed snapshot. If the attempt budget runs out
        first, that snapshot is still pending or running and the outcome is
        inconclusive.
        """
        interval = self.poll_interval if poll_interval is None else poll_interval
        budget = self.max_attempts if max_attempts is None else max_attempts

        current = handle
        attempts = 0
        while not current.status.is_terminal and attempts < budget:
            await asyncio.sleep(interval)
            current = await self.poll(current)
            attempts += 1

        current.attempts = attempts
        if not current.status.is_terminal:
            logger.warning(f"Prediction {current.id} still {current.status.value} after {attempts} polls")
        return current

    async def run(self, request: JobRequest, max_attempts: int | None = None, capability: str = "unknown") -> JobHandle:
        """
        Submit a job and wait for it, holding one slot of the process job limiter.

        Args:
            request: Job to run
            max_attempts: Poll budget override for this job
            capability: Capability name used to label metrics

        Returns:
            Final observed job snapshot
        """
        async with self._job_limiter:
            start_time = time.time()
            outcome = "error"
            try:
                handle = await self.submit(request)
                handle = await self.wait_until_terminal(handle, max_attempts=max_attempts)
                outcome = handle.status.value
                return handle
            finally:
                self.metrics_recorder.record_prediction(capability, outcome, (time.time() - start_time) * 1000)

    @staticmethod
    def _parse_response(response: httpx.Response, operation: str) -> JobHandle:
        if response.status_code >= 400:
            raise RejectedError(f"Prediction {operation} rejected: HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise RejectedError(f"Prediction {operation} returned invalid JSON") from e

        if not isinstance(body, dict) or not body.get("id"):
            raise RejectedError(f"Prediction {operation} response has no job id")

        return JobHandle(
            id=str(body["id"]),
            status=JobStatus.from_remote(body.get("status")),
            output=body.get("output"),
            error=body.get("error"),
        )
