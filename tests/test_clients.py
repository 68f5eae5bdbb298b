import httpx
import pytest
import respx
from httpx import Response

from dashreport.clients.base import (
    BaseHTTPClient,
    PermanentHTTPError,
    RetryableHTTPError,
    is_retryable_status,
)


class TokenClient(BaseHTTPClient):
    def _headers(self) -> dict[str, str]:
        return {"Authorization": "Bearer test-token", "Accept": "application/json"}


@pytest.mark.asyncio
async def test_get_success():
    client = TokenClient("https://grafana.example.com/")

    with respx.mock:
        route = respx.get("https://grafana.example.com/api/health").mock(
            return_value=Response(200, json={"database": "ok"})
        )

        response = await client.get("/api/health", headers={"Accept": "image/png"})

    assert response.json() == {"database": "ok"}
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer test-token"
    assert request.headers["Accept"] == "image/png"


@pytest.mark.asyncio
async def test_repeated_query_params_are_preserved():
    client = BaseHTTPClient("https://grafana.example.com")

    with respx.mock:
        route = respx.get("https://grafana.example.com/render").mock(return_value=Response(200))
        await client.get("/render", params=[("var-host", "a"), ("var-host", "b"), ("width", 300)])

    params = route.calls.last.request.url.params
    assert params.get_list("var-host") == ["a", "b"]
    assert params["width"] == "300"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
async def test_server_faults_are_retryable(status):
    client = BaseHTTPClient("https://grafana.example.com")

    with respx.mock:
        respx.get("https://grafana.example.com/render").mock(return_value=Response(status))
        with pytest.raises(RetryableHTTPError):
            await client.get("/render")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 403, 404])
async def test_client_errors_are_permanent(status):
    client = BaseHTTPClient("https://grafana.example.com")

    with respx.mock:
        route = respx.get("https://grafana.example.com/render").mock(return_value=Response(status))
        with pytest.raises(PermanentHTTPError):
            await client.get("/render")

    assert route.call_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        httpx.RemoteProtocolError("peer closed"),
        httpx.WriteError("broken pipe"),
        httpx.ProxyError("proxy refused"),
        httpx.UnsupportedProtocol("bad scheme"),
    ],
)
async def test_every_transport_error_is_retryable(error):
    client = BaseHTTPClient("https://grafana.example.com")

    with respx.mock:
        respx.get("https://grafana.example.com/render").mock(side_effect=error)
        with pytest.raises(RetryableHTTPError):
            await client.get("/render")


@pytest.mark.asyncio
async def test_network_errors_are_retryable():
    client = BaseHTTPClient("https://grafana.example.com")

    with respx.mock:
        respx.get("https://grafana.example.com/render").mock(side_effect=httpx.ReadTimeout)
        with pytest.raises(RetryableHTTPError):
            await client.get("/render")


def test_is_retryable_status():
    assert is_retryable_status(503)
    assert not is_retryable_status(404)
    assert not is_retryable_status(200)
