import logging
import secrets
from urllib.parse import urlencode

from flask import Blueprint, jsonify, redirect, request, session, current_app
from flask_login import login_required, current_user

from . import json_body, require_string
from .. import oauth
from ..errors import AppError, UnauthorizedError
from ..i18n import translate, resolve_language

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')


@bp.route('/register', methods=['POST'])
def register():
    data = json_body()
    result = current_app.auth_service.register(
        name=require_string(data, 'name'),
        email=require_string(data, 'email'),
        password=require_string(data, 'password')
    )
    return jsonify(result), 201


@bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    result = current_app.auth_service.login(
        require_string(data, 'email'),
        require_string(data, 'password')
    )
    return jsonify(result)


@bp.route('/refresh', methods=['POST'])
def refresh():
    tokens = current_app.auth_service.refresh(require_string(json_body(), 'refresh_token'))
    return jsonify(tokens)


@bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify(current_user.to_dict())


# ==================== OAuth ====================

@bp.route('/<provider>', methods=['GET'])
def oauth_start(provider):
    """Redirect the browser to the provider's consent page."""
    state = secrets.token_urlsafe(16)
    url = oauth.authorization_url(provider, state)
    session['oauth_state'] = state
    return redirect(url)


@bp.route('/<provider>/callback', methods=['GET'])
def oauth_callback(provider):
    """
    Finish the authorization-code flow and hand the tokens to the frontend.
    Failures redirect to the frontend error page with a localized message.
    """
    frontend_url = current_app.config['FRONTEND_URL'].rstrip('/')
    try:
        expected_state = session.pop('oauth_state', None)
        if not expected_state or request.args.get('state') != expected_state:
            raise UnauthorizedError('auth.OAUTH_FAILED', provider=provider)

        code = request.args.get('code')
        if not code:
            raise UnauthorizedError('auth.OAUTH_FAILED', provider=provider)

        profile = oauth.fetch_profile(provider, code)
        result = current_app.auth_service.validate_oauth_login(profile)

    except AppError as e:
        logger.warning(f"OAuth login via {provider} failed: {e.key}")
        message = translate(e.key, resolve_language(), **e.args_map)
        return redirect(f"{frontend_url}/auth/error?{urlencode({'message': message})}")

    params = urlencode({
        'access_token': result['access_token'],
        'refresh_token': result['refresh_token'],
    })
    return redirect(f"{frontend_url}/auth/callback?{params}")
