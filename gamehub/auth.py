"""
Token issuance and verification.

Access and refresh tokens are HS256 JWTs. The Flask-Login request loader in
``app.py`` calls :meth:`AuthService.load_user_from_token` for every request
carrying ``Authorization: Bearer <token>``.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from flask import current_app

from .errors import UnauthorizedError
from .models import db, User
from .user_manager import UserManager

logger = logging.getLogger(__name__)

ACCESS_TOKEN = 'access'
REFRESH_TOKEN = 'refresh'


class AuthService:

    def __init__(self, users: UserManager):
        self.users = users

    def _secret(self, token_type: str) -> str:
        if token_type == REFRESH_TOKEN:
            return current_app.config['JWT_REFRESH_SECRET']
        return current_app.config['JWT_SECRET']

    def _encode(self, user: User, token_type: str, expires_in: int) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            'sub': user.id,
            'email': user.email,
            'role': user.role,
            'plan': user.plan,
            'type': token_type,
            'iat': now,
            'exp': now + timedelta(seconds=expires_in),
        }
        return jwt.encode(payload, self._secret(token_type), algorithm=current_app.config['JWT_ALGORITHM'])

    def decode(self, token: str, token_type: str = ACCESS_TOKEN) -> Optional[dict]:
        try:
            payload = jwt.decode(
                token,
                self._secret(token_type),
                algorithms=[current_app.config['JWT_ALGORITHM']]
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Expired token")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Invalid token: {e}")
            return None

        if payload.get('type') != token_type:
            return None
        return payload

    def generate_tokens(self, user: User) -> dict:
        return {
            'access_token': self._encode(user, ACCESS_TOKEN, current_app.config['JWT_EXPIRES_IN']),
            'refresh_token': self._encode(user, REFRESH_TOKEN, current_app.config['JWT_REFRESH_EXPIRES_IN']),
        }

    def _session(self, user: User) -> dict:
        tokens = self.generate_tokens(user)
        tokens['user'] = user.to_dict()
        return tokens

    def register(self, name: str, email: str, password: str) -> dict:
        user = self.users.create_user(name=name, email=email, password=password)
        logger.info(f"User {user.id} registered")
        return self._session(user)

    def validate_user(self, email: str, password: str) -> Optional[User]:
        user = self.users.find_by_email(email)
        if user is None or user.deleted_at is not None or not user.is_active:
            return None
        if not user.check_password(password or ''):
            return None
        return user

    def login(self, email: str, password: str) -> dict:
        user = self.validate_user(email, password)
        if user is None:
            raise UnauthorizedError('auth.INVALID_CREDENTIALS')
        return self._session(user)

    def refresh(self, refresh_token: str) -> dict:
        payload = self.decode(refresh_token or '', REFRESH_TOKEN)
        if payload is None:
            raise UnauthorizedError('auth.INVALID_TOKEN')

        user = db.session.get(User, payload.get('sub'))
        if user is None or user.deleted_at is not None or not user.is_active:
            raise UnauthorizedError('auth.INVALID_TOKEN')
        return self.generate_tokens(user)

    def load_user_from_token(self, token: str) -> Optional[User]:
        payload = self.decode(token, ACCESS_TOKEN)
        if payload is None:
            return None

        user = db.session.get(User, payload.get('sub'))
        if user is None or user.deleted_at is not None or not user.is_active:
            return None
        return user

    def validate_oauth_login(self, profile: dict) -> dict:
        """
        Log in (or sign up) a user from a normalized provider profile:
        ``{provider, provider_id, email, name, avatar_url}``.
        """
        email = profile.get('email')
        if not email:
            raise UnauthorizedError('auth.OAUTH_EMAIL_MISSING')

        provider = profile.get('provider')
        user = self.users.find_by_email(email)
        if user is not None and (user.deleted_at is not None or not user.is_active):
            raise UnauthorizedError('auth.UNAUTHORIZED')

        if user is None:
            user = self.users.create_user(
                name=profile.get('name') or 'Usuário',
                email=email,
                provider=provider,
                provider_id=profile.get('provider_id'),
                avatar_url=profile.get('avatar_url'),
                email_verified=True
            )
        elif user.provider != provider or user.provider_id != profile.get('provider_id'):
            user.provider = provider
            user.provider_id = profile.get('provider_id')
            if profile.get('avatar_url'):
                user.avatar_url = profile['avatar_url']
            user.email_verified = True
            db.session.commit()
            logger.info(f"User {user.id} linked to {provider}")

        return self._session(user)
