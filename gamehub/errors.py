"""
Error taxonomy.

Errors are raised where they are detected and carry a message catalog key plus
structured arguments. The Flask error handler in ``app.py`` renders them in the
caller's language.
"""
from typing import Optional


class AppError(Exception):
    kind = 'INTERNAL_ERROR'
    status_code = 500

    def __init__(self, key: str, **args):
        self.key = key
        self.args_map = args
        super().__init__(f"{self.kind}: {key} {args}" if args else f"{self.kind}: {key}")

    def to_dict(self, message: Optional[str] = None) -> dict:
        return {
            'error': message or self.key,
            'code': self.kind,
            'key': self.key,
            'args': self.args_map,
        }


class NotFoundError(AppError):
    kind = 'NOT_FOUND'
    status_code = 404


class ValidationError(AppError):
    kind = 'VALIDATION_ERROR'
    status_code = 400


class InvalidStateError(AppError):
    kind = 'INVALID_STATE'
    status_code = 400


class UnauthorizedError(AppError):
    kind = 'UNAUTHORIZED'
    status_code = 401


class ForbiddenError(AppError):
    kind = 'FORBIDDEN'
    status_code = 403


class ConflictError(AppError):
    kind = 'CONFLICT'
    status_code = 409
