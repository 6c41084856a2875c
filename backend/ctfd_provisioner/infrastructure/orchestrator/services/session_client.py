"""
Session Client - cookie-persistent HTTP session with anti-forgery nonces

Each page the platform renders embeds its own nonce (``csrf_nonce = "..."``).
A nonce is valid for one submission only, so every form post is preceded by
a fresh fetch of the same page.
"""

import asyncio
import re
from enum import Enum
from typing import Mapping, Optional

import aiohttp
import structlog

from ..errors import HTTPError, NonceNotFoundError, TransportError

logger = structlog.get_logger(__name__)

NONCE_PATTERN = re.compile(r'csrf_nonce\s*=\s*"(.+)"')


class FormEncoding(str, Enum):
    """Body encodings accepted by submit_form."""
    URLENCODED = "application/x-www-form-urlencoded"
    MULTIPART = "multipart/form-data"


def extract_nonce(body: str) -> Optional[str]:
    """Return the first nonce assigned in body, or None."""
    match = NONCE_PATTERN.search(body)
    if match is None:
        return None
    return match.group(1)


class SessionClient:
    """
    HTTP client bound to a single cookie store.

    Owned by one instance for its whole lifetime and never called
    concurrently. The cookie issued on the first response authenticates all
    later requests.
    """

    def __init__(self, request_timeout: float = 10.0):
        self.request_timeout = request_timeout
        self._http: Optional[aiohttp.ClientSession] = None

    def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None:
            # unsafe: the setup container is addressed by IP, which the
            # default jar refuses to store cookies for
            self._http = aiohttp.ClientSession(
                cookie_jar=aiohttp.CookieJar(unsafe=True),
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.close()
            self._http = None

    async def fetch_nonce(self, url: str) -> str:
        """
        GET url and return the nonce embedded in the page.

        Raises:
            NonceNotFoundError: the page carries no nonce
            HTTPError: non-2xx response
            TransportError: network-level failure
        """
        http = self._get_http()
        try:
            async with http.get(url) as response:
                self._raise_for_status(url, response)
                body = await response.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, str(e) or type(e).__name__) from e

        nonce = extract_nonce(body)
        if nonce is None:
            raise NonceNotFoundError(url)
        return nonce

    async def submit_form(
        self,
        url: str,
        fields: Mapping[str, str],
        encoding: FormEncoding = FormEncoding.URLENCODED,
    ) -> None:
        """
        POST fields to url. fields must carry the nonce fetched from url.

        Raises:
            HTTPError: non-2xx response
            TransportError: network-level failure
        """
        if "nonce" not in fields:
            raise ValueError("form submissions must include a 'nonce' field")

        if encoding is FormEncoding.MULTIPART:
            data = self._multipart(fields)
        else:
            data = dict(fields)

        http = self._get_http()
        try:
            async with http.post(url, data=data) as response:
                self._raise_for_status(url, response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, str(e) or type(e).__name__) from e

        logger.debug("Form submitted", url=url, encoding=encoding.name.lower())

    @staticmethod
    def _multipart(fields: Mapping[str, str]) -> aiohttp.MultipartWriter:
        writer = aiohttp.MultipartWriter("form-data")
        for name, value in fields.items():
            part = writer.append(value)
            part.set_content_disposition("form-data", name=name)
        return writer

    @staticmethod
    def _raise_for_status(url: str, response: aiohttp.ClientResponse) -> None:
        if not 200 <= response.status < 300:
            raise HTTPError(url, response.status)
