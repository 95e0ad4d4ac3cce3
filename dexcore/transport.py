"""
HTTP transport for the upstream catalog.

The rest of the layer only needs "GET this path and tell me the status,
headers and JSON body". ``AiohttpTransport`` provides that over a single
pooled ``aiohttp.ClientSession``; anything else exposing the same ``get``
coroutine (an in-memory fake in the tests, for instance) can stand in for it.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from config.settings import (
    API_REQUEST_TIMEOUT,
    CONNECTION_KEEPALIVE_TIMEOUT,
    CONNECTION_POOL_LIMIT,
    CONNECTION_POOL_LIMIT_PER_HOST,
    DNS_CACHE_TTL,
    POKEAPI_URL,
    USER_AGENT,
)

logger = logging.getLogger("dexcore.transport")


@dataclass(frozen=True)
class UpstreamResponse:
    """
    Immutable snapshot of one upstream response.

    Attributes:
        status: HTTP status code.
        payload: Decoded JSON body, or None if the body was empty, not JSON,
            or the status was not successful.
        headers: Response headers with lower-cased names.
    """

    status: int
    payload: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


class AiohttpTransport:
    """
    Pooled aiohttp client for the catalog API.

    The session is created lazily on first use so the transport can be built
    outside a running event loop.
    """

    def __init__(
        self,
        base_url: str = POKEAPI_URL,
        timeout: float = API_REQUEST_TIMEOUT,
        user_agent: str = USER_AGENT,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self.session: Optional[aiohttp.ClientSession] = None

        # Session creation lock to prevent race conditions during lazy loading
        self._session_lock = asyncio.Lock()

    async def get_session(self) -> aiohttp.ClientSession:
        """
        Get or create the aiohttp session with connection pooling configuration.

        Returns:
            Active aiohttp ClientSession.
        """
        async with self._session_lock:
            if self.session is None or self.session.closed:
                connector = aiohttp.TCPConnector(
                    limit=CONNECTION_POOL_LIMIT,
                    limit_per_host=CONNECTION_POOL_LIMIT_PER_HOST,
                    ttl_dns_cache=DNS_CACHE_TTL,
                    keepalive_timeout=CONNECTION_KEEPALIVE_TIMEOUT,
                    enable_cleanup_closed=True,
                )

                self.session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    connector=connector,
                    headers={
                        "User-Agent": self.user_agent,
                        "Accept": "application/json",
                    },
                )

                logger.info(
                    "Created aiohttp session with connection pooling",
                    extra={
                        "base_url": self.base_url,
                        "total_limit": CONNECTION_POOL_LIMIT,
                        "per_host_limit": CONNECTION_POOL_LIMIT_PER_HOST,
                    },
                )

        return self.session

    async def get(self, path: str) -> UpstreamResponse:
        """
        Issue one GET for ``path`` relative to the base URL.

        Transport failures (connection errors, timeouts) propagate to the
        caller; every HTTP status, including errors, comes back as a response.
        """
        session = await self.get_session()
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug(f"GET {url}")

        async with session.get(url) as resp:
            headers = {name.lower(): value for name, value in resp.headers.items()}
            payload = None

            if 200 <= resp.status < 300:
                body = await resp.text()
                if body:
                    try:
                        payload = json.loads(body)
                    except ValueError:
                        logger.warning(
                            "Upstream returned a non-JSON body",
                            extra={"url": url, "status_code": resp.status},
                        )

            return UpstreamResponse(status=resp.status, payload=payload, headers=headers)

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()
            logger.info("Upstream transport session closed")
