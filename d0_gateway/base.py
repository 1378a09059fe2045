"""
Base API client with common functionality for all external API providers
"""

import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from core.config import get_settings
from core.exceptions import ExternalAPIError, RateLimitError
from core.logging import get_logger

from .metrics import GatewayMetrics


def build_http_client(
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """HTTP client for fetching audited sites: redirects followed, audit user agent"""
    settings = get_settings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout or settings.fetch_timeout),
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent, **(headers or {})},
        transport=transport,
    )


@asynccontextmanager
async def http_session(client: httpx.AsyncClient | None = None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the given client untouched, or a fresh one that is closed on exit"""
    if client is not None:
        yield client
        return
    async with build_http_client() as owned:
        yield owned


class BaseAPIClient(ABC):
    """Abstract base class for all external API clients"""

    def __init__(
        self,
        provider: str,
        api_key: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.provider = provider
        self.settings = get_settings()
        self.logger = get_logger(f"gateway.{provider}", domain="d0")
        self.api_key = api_key
        self.base_url = base_url or self._get_base_url()
        self.metrics = GatewayMetrics()

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout), headers=self._get_headers())

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @abstractmethod
    def _get_base_url(self) -> str:
        """Get the base URL for this provider"""

    @abstractmethod
    def _get_headers(self) -> dict[str, str]:
        """Get authentication headers for this provider"""

    def is_available(self) -> bool:
        """Check if this provider can be called (API key present, feature enabled)"""
        return True

    async def make_request(self, method: str, endpoint: str, **kwargs) -> dict[str, Any]:
        """
        Make an API request and return the decoded JSON body

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Dict containing the API response

        Raises:
            RateLimitError: When the provider answers 429
            ExternalAPIError: When the API returns an error or the call fails
        """
        start_time = time.time()
        response = None

        try:
            url = f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
            response = await self.client.request(method, url, **kwargs)

            if response.status_code == 429:
                retry_after = response.headers.get("retry-after")
                raise RateLimitError(
                    provider=self.provider,
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                )

            if response.status_code >= 400:
                error_msg = f"HTTP {response.status_code}"
                try:
                    error_data = response.json()
                    error = error_data.get("error", {})
                    if isinstance(error, dict):
                        error_msg = error.get("message", error_msg)
                    elif error:
                        error_msg = str(error)
                except ValueError:
                    error_msg = response.text[:200] or error_msg

                raise ExternalAPIError(
                    provider=self.provider,
                    message=error_msg,
                    status_code=response.status_code,
                    response_body=response.text[:1000],
                )

            return response.json()

        except ExternalAPIError:
            raise
        except httpx.TimeoutException as e:
            raise ExternalAPIError(provider=self.provider, message=f"timeout: {e}", status_code=504) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalAPIError(provider=self.provider, message=str(e)) from e

        finally:
            duration = time.time() - start_time
            status_code = response.status_code if response is not None else 0
            self.metrics.record_api_call(
                provider=self.provider,
                endpoint=endpoint,
                status_code=status_code,
                duration=duration,
            )
