"""HTTP batch runner.

Posts code to the backend's ``/run`` endpoint and returns the complete
output in one reply. No stdin is forwarded, so programs that read input
see end-of-file.
"""

from __future__ import annotations

import logging

import httpx

from execterm.domain.models import Language

logger = logging.getLogger(__name__)


class BatchRunError(Exception):
    """Raised when a batch run cannot be completed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HttpBatchRunner:
    """Runs code to completion via ``POST /run``.

    Example usage::

        async with HttpBatchRunner(base_url="http://127.0.0.1:5000") as runner:
            output = await runner.run('print("hi")', "python")
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:5000",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def run(self, code: str, language: Language | str) -> str:
        """Execute ``code`` and return its combined output."""
        if self._client is None:
            raise BatchRunError("Runner is not connected")
        language = Language(language)
        try:
            resp = await self._client.post("/run", json={"code": code, "language": language.value})
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BatchRunError(
                f"Run request failed: {e}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise BatchRunError(f"Run request failed: {e}") from e

        try:
            output = resp.json()["output"]
        except (ValueError, KeyError, TypeError) as e:
            raise BatchRunError("Backend reply has no output field", status_code=resp.status_code) from e
        if not isinstance(output, str):
            output = str(output)
        logger.debug("Batch run of %d chars of %s returned %d chars", len(code), language.value, len(output))
        return output

    async def __aenter__(self) -> HttpBatchRunner:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.disconnect()
