import asyncio

import httpx
import pytest

from ro_subtitles.errors import NetworkError
from ro_subtitles.settings import Settings
from ro_subtitles.sources.titrari import TitrariClient, build_http_client


def _client(handler):
    settings = Settings(source_base_url="https://titrari.test", request_timeout=5)
    return TitrariClient(build_http_client(settings, transport=httpx.MockTransport(handler)))


def test_search_page_sends_browser_headers_and_imdb_number():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["headers"] = request.headers
        return httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"})

    page = asyncio.run(_client(handler).search_page("1234567"))

    assert page.body == "<html></html>"
    assert not page.is_json
    assert seen["url"].path == "/index.php"
    assert seen["url"].params["z5"] == "1234567"
    assert seen["url"].params["page"] == "numaicautamcaneiesepenas"
    assert "Mozilla" in seen["headers"]["user-agent"]
    assert seen["headers"]["referer"] == "https://titrari.test/"


def test_download_returns_raw_bytes():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/get.php"
        assert request.url.params["id"] == "42"
        return httpx.Response(200, content=b"PK\x03\x04data")

    assert asyncio.run(_client(handler).download("42")) == b"PK\x03\x04data"


@pytest.mark.parametrize("status", [403, 404, 500])
def test_error_status_maps_to_network_error(status):
    client = _client(lambda request: httpx.Response(status))
    with pytest.raises(NetworkError):
        asyncio.run(client.download("42"))


def test_transport_error_maps_to_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(_client(handler).search_page("1"))


def test_empty_download_is_an_error():
    with pytest.raises(NetworkError):
        asyncio.run(_client(lambda request: httpx.Response(200, content=b"")).download("42"))
