"""Tests for the authorization flow and token storage."""

from urllib.parse import parse_qs, urlparse

import pytest

from build_monitor.auth.credentials import AuthorizationFlow, get_access_token, parse_redirect_fragment, store_access_token
from build_monitor.db.models import UserInfoKey
from build_monitor.db.repository import set_setting
from build_monitor.errors import CredentialError

from conftest import TOKEN

REDIRECT_URI = "http://localhost:5173/callback"


@pytest.mark.asyncio
async def test_start_forgets_token_and_builds_authorize_url(store):
    await set_setting(store, UserInfoKey.ACCESS_TOKEN, TOKEN)
    flow = AuthorizationFlow(store)

    url, state = await flow.start(REDIRECT_URI)

    assert await get_access_token(store) is None
    params = parse_qs(urlparse(url).query)
    assert url.startswith("https://app.netlify.com/authorize?")
    assert params["response_type"] == ["token"]
    assert params["redirect_uri"] == [REDIRECT_URI]
    assert params["state"] == [state]


@pytest.mark.asyncio
async def test_complete_stores_token(store):
    flow = AuthorizationFlow(store)
    _, state = await flow.start(REDIRECT_URI)

    assert await flow.complete(TOKEN, state) == TOKEN
    assert await get_access_token(store) == TOKEN


@pytest.mark.asyncio
async def test_state_must_be_issued_and_is_single_use(store):
    flow = AuthorizationFlow(store)
    _, state = await flow.start(REDIRECT_URI)

    with pytest.raises(CredentialError):
        await flow.complete(TOKEN, "forged")
    with pytest.raises(CredentialError):
        await flow.complete(TOKEN, None)

    await flow.complete(TOKEN, state)
    with pytest.raises(CredentialError):
        await flow.complete(TOKEN, state)


@pytest.mark.asyncio
async def test_short_or_missing_token_is_rejected(store):
    with pytest.raises(CredentialError):
        await store_access_token(store, "too-short")
    with pytest.raises(CredentialError):
        await store_access_token(store, None)
    assert await get_access_token(store) is None


@pytest.mark.asyncio
async def test_complete_from_redirect(store):
    flow = AuthorizationFlow(store)
    _, state = await flow.start(REDIRECT_URI)

    await flow.complete_from_redirect(f"{REDIRECT_URI}#access_token={TOKEN}&token_type=Bearer&state={state}")

    assert await get_access_token(store) == TOKEN


def test_parse_redirect_fragment():
    assert parse_redirect_fragment("http://localhost/cb#access_token=abc&state=xyz") == {"access_token": "abc", "state": "xyz"}
    assert parse_redirect_fragment("http://localhost/cb?access_token=abc") == {}


@pytest.mark.asyncio
async def test_new_authorization_replaces_pending_state(store):
    flow = AuthorizationFlow(store)
    _, first = await flow.start(REDIRECT_URI)
    _, second = await flow.start(REDIRECT_URI)

    with pytest.raises(CredentialError):
        await flow.complete(TOKEN, first)
    assert await get_access_token(store) is None

    await flow.complete(TOKEN, second)
    assert await get_access_token(store) == TOKEN
