"""Access token handling for the implicit-grant authorization flow."""

import logging
import secrets
from urllib.parse import parse_qs, urlencode, urlparse

from build_monitor.config.settings import get_settings
from build_monitor.db.models import UserInfoKey
from build_monitor.db.repository import get_setting, set_setting
from build_monitor.db.store import LocalStore
from build_monitor.errors import CredentialError

logger = logging.getLogger(__name__)


def parse_redirect_fragment(redirect_url: str) -> dict[str, str]:
    """Extract the parameters the authorization server put in the redirect url's fragment."""
    fragment = urlparse(redirect_url).fragment
    return {key: values[0] for key, values in parse_qs(fragment).items() if values}


class AuthorizationFlow:
    """Issues a single-use ``state`` and accepts the token that comes back with it.

    Only the latest authorization attempt is honoured; starting a new one
    invalidates the previous state.
    """

    def __init__(self, store: LocalStore):
        self.store = store
        self._pending_state: str | None = None

    async def start(self, redirect_uri: str) -> tuple[str, str]:
        """Forget the current token and return (authorize url, state)."""
        settings = get_settings()
        await set_setting(self.store, UserInfoKey.ACCESS_TOKEN, None)

        state = secrets.token_urlsafe(16)
        self._pending_state = state
        params = urlencode({
            "client_id": settings.NETLIFY_CLIENT_ID,
            "response_type": "token",
            "redirect_uri": redirect_uri,
            "state": state,
        })
        return f"{settings.NETLIFY_AUTHORIZE_URL}?{params}", state

    async def complete(self, access_token: str | None, state: str | None) -> str:
        """Check ``state`` against the pending one, validate the token and store it."""
        if not state or state != self._pending_state:
            raise CredentialError("The state returned by the authorization server does not match")
        self._pending_state = None
        return await store_access_token(self.store, access_token)

    async def complete_from_redirect(self, redirect_url: str) -> str:
        params = parse_redirect_fragment(redirect_url)
        return await self.complete(params.get("access_token"), params.get("state"))


async def store_access_token(store: LocalStore, access_token: str | None) -> str:
    settings = get_settings()
    # Tokens are base64 SHA digests, so anything shorter is truncated or bogus
    if not access_token or len(access_token) < settings.ACCESS_TOKEN_MIN_LENGTH:
        raise CredentialError("No usable access token was returned")
    await set_setting(store, UserInfoKey.ACCESS_TOKEN, access_token)
    logger.info("Stored a new access token")
    return access_token


async def get_access_token(store: LocalStore) -> str | None:
    return await get_setting(store, UserInfoKey.ACCESS_TOKEN)
