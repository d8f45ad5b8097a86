from flask import request
from flask_login import current_user

from ..errors import ValidationError, ForbiddenError


def json_body() -> dict:
    """Request JSON object, or an empty dict when the body is missing."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('validation.INVALID_FIELD', field='body')
    return data


def require_string(data: dict, field: str) -> str:
    value = data.get(field)
    if value is None or value == '':
        raise ValidationError('validation.REQUIRED_FIELD', field=field)
    if not isinstance(value, str):
        raise ValidationError('validation.INVALID_FIELD', field=field)
    return value


def optional_string(data: dict, field: str):
    value = data.get(field)
    if value is not None and not isinstance(value, str):
        raise ValidationError('validation.INVALID_FIELD', field=field)
    return value


def query_int(name: str, default: int, minimum: int = 0, maximum: int = None) -> int:
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError('validation.INVALID_FIELD', field=name)
    if value < minimum:
        raise ValidationError('validation.INVALID_FIELD', field=name)
    if maximum is not None:
        value = min(value, maximum)
    return value


def require_self_or_admin(user_id: str):
    if current_user.id != user_id and not current_user.is_admin:
        raise ForbiddenError('users.ADMIN_REQUIRED')


def require_admin():
    if not current_user.is_admin:
        raise ForbiddenError('users.ADMIN_REQUIRED')
