import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# HTTP/2'nin mevcut olup olmadığını belirle ('h2' paketi gerektirir)
try:
    import h2  # type: ignore  # noqa: F401
    _HTTP2_AVAILABLE = True
except ImportError:
    _HTTP2_AVAILABLE = False
    logger.debug("HTTP/2 devre dışı: 'h2' paketi yüklü değil.")


class OptimizedHTTPClient:
    """Bağlantı havuzu ile asenkron HTTP istemcisi."""

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        limits = httpx.Limits(
            max_keepalive_connections=20,
            max_connections=100,
            keepalive_expiry=30.0
        )
        timeouts = httpx.Timeout(timeout=timeout, connect=5.0)

        self._client = httpx.AsyncClient(
            limits=limits,
            timeout=timeouts,
            follow_redirects=True,
            http2=_HTTP2_AVAILABLE and transport is None,
            transport=transport,
        )

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Bağlantı havuzu ile asenkron istek"""
        return await self._client.request(method, url, **kwargs)

    async def close(self):
        """HTTP istemcisini kapat"""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
