"""
Readiness Poller - wait for an HTTP endpoint to come up within a deadline

Transport failures (refused, DNS, timeout) mean the server is not listening
yet and are retried after a fixed backoff. A non-2xx response means the
server is listening but broken and is reported at once.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import aiohttp
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    wait_fixed,
)

from ..errors import HTTPError, ServerUnavailableError, TransportError

logger = structlog.get_logger(__name__)


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, TransportError) and error.transient


class ReadinessPoller:
    """
    Polls an endpoint with plain GET requests until it answers 2xx.

    The retry loop runs as one background task; wait_ready blocks on that
    task and cancels it when the deadline elapses.
    """

    def __init__(
        self,
        interval: float = 1.0,
        request_timeout: float = 10.0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.interval = interval
        self.request_timeout = request_timeout
        self._sleep = sleep or asyncio.sleep

    async def wait_ready(self, url: str, timeout: float) -> None:
        """
        Block until url answers 2xx.

        Raises:
            HTTPError: the server answered with a non-2xx status
            TransportError: a client-side failure that retrying cannot fix
            ServerUnavailableError: no terminal outcome before the deadline
        """
        task = asyncio.create_task(self._poll(url), name=f"readiness-{url}")
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Server did not become ready", url=url, timeout=timeout)
            raise ServerUnavailableError(url, timeout) from None

        logger.info("Server is ready", url=url)

    async def _poll(self, url: str) -> None:
        client_timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with aiohttp.ClientSession(timeout=client_timeout) as http:
            retrying = AsyncRetrying(
                retry=retry_if_exception(_is_transient),
                wait=wait_fixed(self.interval),
                sleep=self._sleep,
                before_sleep=self._log_retry,
                reraise=True,
            )
            async for attempt in retrying:
                with attempt:
                    await self._probe(http, url)

    async def _probe(self, http: aiohttp.ClientSession, url: str) -> None:
        try:
            async with http.get(url) as response:
                if not 200 <= response.status < 300:
                    raise HTTPError(url, response.status)
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise TransportError(url, str(e) or type(e).__name__) from e
        except aiohttp.ClientError as e:
            raise TransportError(url, str(e) or type(e).__name__, transient=False) from e

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.debug(
            "Server not reachable yet",
            attempt=retry_state.attempt_number,
            error=str(error),
        )
