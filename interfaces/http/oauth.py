from __future__ import annotations

from typing import Any, Dict

from authlib.integrations.starlette_client import OAuth
from starlette.requests import Request
from starlette.responses import Response

from application.services import ExternalProfile

DISCORD_API_BASE_URL = "https://discord.com/api/"
DISCORD_AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
DISCORD_TOKEN_URL = "https://discord.com/api/oauth2/token"
DISCORD_SCOPE = "identify"


class DiscordOAuthClient:
    """
    Discord login through Authlib's Starlette integration.

    Authlib keeps the OAuth `state` in `request.session`, so the app must
    run behind `SessionMiddleware`.
    """

    provider = "discord"

    def __init__(self, client_id: str, client_secret: str, callback_url: str) -> None:
        self._callback_url = callback_url
        self._oauth = OAuth()
        self._oauth.register(
            name=self.provider,
            client_id=client_id,
            client_secret=client_secret,
            authorize_url=DISCORD_AUTHORIZE_URL,
            access_token_url=DISCORD_TOKEN_URL,
            api_base_url=DISCORD_API_BASE_URL,
            client_kwargs={
                "scope": DISCORD_SCOPE,
                "token_endpoint_auth_method": "client_secret_post",
            },
        )
        self._client = self._oauth.create_client(self.provider)

    async def authorize_redirect(self, request: Request) -> Response:
        return await self._client.authorize_redirect(request, self._callback_url)

    async def exchange_grant(self, grant: Request) -> Dict[str, Any]:
        # `grant` is the callback request; Authlib reads `code` and `state`
        # from its query string and checks `state` against the session.
        return await self._client.authorize_access_token(grant)

    async def fetch_profile(self, token: Dict[str, Any]) -> ExternalProfile:
        resp = await self._client.get("users/@me", token=token)
        resp.raise_for_status()
        data = resp.json()
        return ExternalProfile(
            provider=self.provider,
            provider_user_id=str(data["id"]),
            username=data.get("username") or "",
        )
