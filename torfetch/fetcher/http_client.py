"""Async HTTP client that only ever dials through the Tor SOCKS proxy."""

import asyncio
import json
from typing import Any, Dict, Optional

import httpx

from torfetch.errors import TransportError
from torfetch.models.config import split_address
from torfetch.models.data_models import VerificationResult
from torfetch.monitoring.logger import ScrapeLogger


class TorHTTPClient:
    """
    Async HTTP client wrapper around httpx.AsyncClient bound to a SOCKS5 proxy.

    Provides:
    - Every connection routed through the proxy (no direct path is configured)
    - Request, idle-connection and handshake timeouts
    - Tor routing verification against an introspection endpoint
    - Context manager for proper lifecycle management
    """

    def __init__(
        self,
        proxy_address: str,
        logger: ScrapeLogger,
        request_timeout: float = 120.0,
        max_idle_connections: int = 10,
        idle_connection_timeout: float = 30.0,
        tls_handshake_timeout: float = 60.0,
        verification_url: str = "https://check.torproject.org/api/ip",
        verification_marker: str = '"IsTor":true',
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            proxy_address: Tor SOCKS proxy as host:port
            logger: Run logger
            request_timeout: Per-phase httpx timeout, and the cap on the whole Tor check
            max_idle_connections: Cap on idle keep-alive connections
            idle_connection_timeout: Idle keep-alive expiry in seconds
            tls_handshake_timeout: Connect timeout, which includes the TLS handshake
            verification_url: Endpoint reporting whether the caller uses Tor
            verification_marker: Body substring that confirms Tor routing
            transport: Replacement transport, used by tests

        Raises:
            TransportError: If the proxy address is malformed
        """
        try:
            split_address(proxy_address)
        except ValueError as e:
            raise TransportError(f"SOCKS5 proxy error: {e}") from e

        self.proxy_url = f"socks5://{proxy_address}"
        self.logger = logger
        self.request_timeout = request_timeout
        self.max_idle_connections = max_idle_connections
        self.idle_connection_timeout = idle_connection_timeout
        self.tls_handshake_timeout = tls_handshake_timeout
        self.verification_url = verification_url
        self.verification_marker = verification_marker
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config, logger: ScrapeLogger) -> "TorHTTPClient":
        return cls(
            config.proxy_address,
            logger,
            request_timeout=config.request_timeout,
            max_idle_connections=config.max_idle_connections,
            idle_connection_timeout=config.idle_connection_timeout,
            tls_handshake_timeout=config.tls_handshake_timeout,
            verification_url=config.verification_url,
            verification_marker=config.verification_marker,
        )

    async def __aenter__(self):
        """Enter async context manager."""
        timeout = httpx.Timeout(self.request_timeout, connect=self.tls_handshake_timeout)
        limits = httpx.Limits(
            max_keepalive_connections=self.max_idle_connections,
            keepalive_expiry=self.idle_connection_timeout,
        )
        if self._transport is not None:
            self._client = httpx.AsyncClient(transport=self._transport, timeout=timeout)
        else:
            try:
                self._client = httpx.AsyncClient(proxy=self.proxy_url, timeout=timeout, limits=limits)
            except (ImportError, ValueError) as e:
                raise TransportError(f"cannot build proxied client: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """
        Perform GET request through the proxy.

        Args:
            url: URL to request
            **kwargs: Additional arguments for httpx

        Returns:
            HTTP response
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        return await self._client.get(url, **kwargs)

    async def verify_tor(self) -> VerificationResult:
        """
        Confirm that traffic leaves through Tor.

        Returns:
            VerificationResult with is_tor set

        Raises:
            TransportError: If the check cannot be made or routing is not confirmed
        """
        # httpx timeouts are per phase; cap the whole check as well
        try:
            response = await asyncio.wait_for(
                self.get(self.verification_url), timeout=self.request_timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"connection could not be verified: no answer within {self.request_timeout:g}s"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"connection could not be verified: {e}") from e

        body = response.text
        self.logger.info(f"Tor IP check: {body}")

        if self.verification_marker not in body:
            raise TransportError("Tor connection failed!")

        self.logger.success("Tor connection verified!")
        return VerificationResult(is_tor=True, ip=_exit_ip(body), body=body)


def _exit_ip(body: str) -> Optional[str]:
    try:
        payload: Dict[str, Any] = json.loads(body)
    except ValueError:
        return None
    if isinstance(payload, dict):
        ip = payload.get("IP")
        return str(ip) if ip is not None else None
    return None
