from __future__ import annotations

from typing import Sequence

import httpx
import structlog

logger = structlog.get_logger()

QueryParams = Sequence[tuple[str, str | int | float]]


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried."""


class PermanentHTTPError(Exception):
    """HTTP errors that should not be retried."""


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


class BaseHTTPClient:
    """Base HTTP client classifying failures as retryable or permanent.

    Retrying is left to the caller: dashboard metadata and panel images have
    different retry policies.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        verify: bool = True,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._verify = verify

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: QueryParams | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute HTTP request, raising RetryableHTTPError or PermanentHTTPError."""
        url = f"{self._base_url}{path}"
        req_headers = self._headers()
        if headers:
            req_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, verify=self._verify) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    headers=req_headers,
                )

                if is_retryable_status(response.status_code):
                    logger.warning(
                        "http_retryable_error",
                        status=response.status_code,
                        method=method,
                        url=url,
                    )
                    raise RetryableHTTPError(f"HTTP {response.status_code}: {response.text}")

                response.raise_for_status()
                return response

        except httpx.HTTPStatusError as exc:
            logger.error(
                "http_permanent_error",
                status=exc.response.status_code,
                method=method,
                url=url,
                error=str(exc),
            )
            raise PermanentHTTPError(str(exc)) from exc
        except httpx.TransportError as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise RetryableHTTPError(str(exc)) from exc
        except RetryableHTTPError:
            raise
        except Exception as exc:
            logger.error("http_unexpected_error", method=method, url=url, error=str(exc))
            raise

    async def get(
        self,
        path: str,
        *,
        params: QueryParams | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute GET request."""
        return await self._request("GET", path, params=params, headers=headers)
