import base64
import hashlib
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from hsportal.errors import TransportError
from hsportal.services.auth import (
    StoredTokenAuth,
    build_authorization_url,
    exchange_code,
    generate_pkce_pair,
)
from hsportal.services.session import MemoryStore
from hsportal.settings import Settings


def test_pkce_challenge_matches_verifier() -> None:
    pair = generate_pkce_pair()
    digest = hashlib.sha256(pair.verifier.encode()).digest()
    assert pair.challenge == base64.urlsafe_b64encode(digest).rstrip(b"=").decode()
    assert 43 <= len(pair.verifier) <= 128


def test_authorization_url_carries_pkce_parameters(tmp_path) -> None:
    settings = Settings(data_dir=tmp_path, hs_client_id="client-1")
    url = build_authorization_url(settings, "challenge", "state-1")
    parsed = urlparse(url)
    query = parse_qs(parsed.query)

    assert url.startswith("https://www.hydroshare.org/o/authorize/?")
    assert query["client_id"] == ["client-1"]
    assert query["code_challenge_method"] == ["S256"]
    assert query["scope"] == ["read write"]


@pytest.mark.asyncio
async def test_login_round_trip_stores_token(tmp_path) -> None:
    settings = Settings(data_dir=tmp_path)
    store = MemoryStore()
    urls: list[str] = []
    auth = StoredTokenAuth(store, settings, on_login=urls.append)

    auth.log_in()
    assert auth.login_in_progress
    assert auth.token is None

    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["code"] == ["code-1"]
        assert form["code_verifier"][0]
        return httpx.Response(200, json={"access_token": "tok"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        token = await auth.complete_login(client, "code-1")

    assert token == "tok"
    assert auth.token == "tok"
    assert not auth.login_in_progress
    assert len(urls) == 1

    auth.log_out()
    assert auth.token is None


@pytest.mark.asyncio
async def test_exchange_code_rejects_error_status(tmp_path) -> None:
    settings = Settings(data_dir=tmp_path)
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(TransportError) as excinfo:
            await exchange_code(client, settings, "bad", "verifier")
    assert excinfo.value.status == 400


@pytest.mark.asyncio
async def test_exchange_code_rejects_non_json_body(tmp_path) -> None:
    settings = Settings(data_dir=tmp_path)
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>login</html>"))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(TransportError) as excinfo:
            await exchange_code(client, settings, "code", "verifier")
    assert excinfo.value.operation == "token"
