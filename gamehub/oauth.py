"""
OAuth2 authorization-code login for Google, Facebook and Discord.

Each provider maps to its endpoints and a function that normalizes the
provider's user info into ``{provider, provider_id, email, name, avatar_url}``.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict
from urllib.parse import urlencode

import requests
from flask import current_app

from .errors import NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


def _google_profile(data: dict) -> dict:
    return {
        'provider': 'google',
        'provider_id': data.get('sub') or data.get('id'),
        'email': data.get('email'),
        'name': data.get('name'),
        'avatar_url': data.get('picture'),
    }


def _facebook_profile(data: dict) -> dict:
    picture = (data.get('picture') or {}).get('data') or {}
    return {
        'provider': 'facebook',
        'provider_id': data.get('id'),
        'email': data.get('email'),
        'name': data.get('name'),
        'avatar_url': picture.get('url'),
    }


def _discord_profile(data: dict) -> dict:
    avatar = data.get('avatar')
    avatar_url = f"https://cdn.discordapp.com/avatars/{data.get('id')}/{avatar}.png" if avatar else None
    return {
        'provider': 'discord',
        'provider_id': data.get('id'),
        'email': data.get('email'),
        'name': data.get('global_name') or data.get('username'),
        'avatar_url': avatar_url,
    }


@dataclass(frozen=True)
class OAuthProvider:
    name: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scope: str
    to_profile: Callable[[dict], dict]

    def client_id(self) -> str:
        return current_app.config.get(f'{self.name.upper()}_CLIENT_ID', '')

    def client_secret(self) -> str:
        return current_app.config.get(f'{self.name.upper()}_CLIENT_SECRET', '')

    def callback_url(self) -> str:
        return current_app.config.get(f'{self.name.upper()}_CALLBACK_URL', '')


PROVIDERS: Dict[str, OAuthProvider] = {
    'google': OAuthProvider(
        name='google',
        authorize_url='https://accounts.google.com/o/oauth2/v2/auth',
        token_url='https://oauth2.googleapis.com/token',
        userinfo_url='https://openidconnect.googleapis.com/v1/userinfo',
        scope='openid email profile',
        to_profile=_google_profile,
    ),
    'facebook': OAuthProvider(
        name='facebook',
        authorize_url='https://www.facebook.com/v18.0/dialog/oauth',
        token_url='https://graph.facebook.com/v18.0/oauth/access_token',
        userinfo_url='https://graph.facebook.com/me?fields=id,name,email,picture',
        scope='email public_profile',
        to_profile=_facebook_profile,
    ),
    'discord': OAuthProvider(
        name='discord',
        authorize_url='https://discord.com/oauth2/authorize',
        token_url='https://discord.com/api/oauth2/token',
        userinfo_url='https://discord.com/api/users/@me',
        scope='identify email',
        to_profile=_discord_profile,
    ),
}


def get_provider(name: str) -> OAuthProvider:
    provider = PROVIDERS.get(name)
    if provider is None:
        raise NotFoundError('auth.OAUTH_PROVIDER_UNKNOWN', provider=name)
    return provider


def authorization_url(name: str, state: str) -> str:
    provider = get_provider(name)
    params = {
        'client_id': provider.client_id(),
        'redirect_uri': provider.callback_url(),
        'response_type': 'code',
        'scope': provider.scope,
        'state': state,
    }
    return f"{provider.authorize_url}?{urlencode(params)}"


def fetch_profile(name: str, code: str) -> dict:
    """Exchange an authorization code for a token and return the normalized profile."""
    provider = get_provider(name)
    try:
        token_resp = requests.post(
            provider.token_url,
            data={
                'client_id': provider.client_id(),
                'client_secret': provider.client_secret(),
                'redirect_uri': provider.callback_url(),
                'grant_type': 'authorization_code',
                'code': code,
            },
            headers={'Accept': 'application/json'},
            timeout=REQUEST_TIMEOUT
        )
        token_resp.raise_for_status()
        access_token = token_resp.json().get('access_token')
        if not access_token:
            raise UnauthorizedError('auth.OAUTH_FAILED', provider=name)

        info_resp = requests.get(
            provider.userinfo_url,
            headers={'Authorization': f'Bearer {access_token}'},
            timeout=REQUEST_TIMEOUT
        )
        info_resp.raise_for_status()
        return provider.to_profile(info_resp.json())

    except requests.exceptions.RequestException as e:
        logger.warning(f"OAuth exchange with {name} failed: {e}")
        raise UnauthorizedError('auth.OAUTH_FAILED', provider=name)
