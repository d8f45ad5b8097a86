import logging
import re
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from .errors import NotFoundError, ConflictError, ValidationError, InvalidStateError, ForbiddenError
from .models import db, User
from .plan_catalog import PlanId
from .plan_manager import PlanManager
from shared.events import plan_changed_event
from shared.pubsub import EventPublisher

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6
PROVIDERS = ('local', 'google', 'facebook', 'discord')
ROLES = ('user', 'admin')
UPDATABLE_FIELDS = ('name', 'email', 'avatar_url')


def validate_password(password: str):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError('validation.PASSWORD_TOO_SHORT', min=MIN_PASSWORD_LENGTH)


class UserManager:
    """User accounts: creation, lookup, profile updates, soft delete, passwords and plan changes."""

    def __init__(self, plans: PlanManager, publisher: EventPublisher = None):
        self.plans = plans
        self.publisher = publisher or EventPublisher()

    def create_user(
        self,
        name: str,
        email: str,
        password: str = None,
        provider: str = 'local',
        provider_id: str = None,
        avatar_url: str = None,
        email_verified: bool = False,
        role: str = 'user',
        plan: str = PlanId.FREE.value
    ) -> User:
        if not name or not isinstance(name, str):
            raise ValidationError('validation.REQUIRED_FIELD', field='name')
        if not isinstance(email, str) or not EMAIL_RE.match(email):
            raise ValidationError('validation.INVALID_EMAIL')
        if provider not in PROVIDERS:
            raise ValidationError('validation.INVALID_FIELD', field='provider')
        if role not in ROLES:
            raise ValidationError('validation.INVALID_FIELD', field='role')
        if plan not in self.plans.catalog:
            raise ValidationError('users.INVALID_PLAN', plan=plan)
        if password is not None:
            validate_password(password)

        email = email.strip().lower()
        if self.find_by_email(email) is not None:
            raise ConflictError('users.EMAIL_IN_USE')

        user = User(
            name=name,
            email=email,
            provider=provider,
            provider_id=provider_id,
            avatar_url=avatar_url,
            email_verified=email_verified,
            role=role,
            plan=plan
        )
        if password is not None:
            user.set_password(password)

        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('users.EMAIL_IN_USE')

        logger.info(f"User {user.id} created via {provider}")
        return user

    def find_all(self) -> List[User]:
        return User.query.filter(
            User.is_active.is_(True),
            User.deleted_at.is_(None)
        ).order_by(User.created_at.desc()).all()

    def find_one(self, user_id: str) -> User:
        user = db.session.get(User, user_id)
        if user is None or user.deleted_at is not None:
            raise NotFoundError('users.USER_NOT_FOUND', id=user_id)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        return User.query.filter_by(email=email.strip().lower()).first()

    def update_user(self, user_id: str, **fields) -> User:
        user = self.find_one(user_id)

        if 'name' in fields and fields['name'] is not None and not fields['name'].strip():
            raise ValidationError('validation.REQUIRED_FIELD', field='name')

        if 'email' in fields and fields['email'] is not None:
            email = fields['email']
            if not isinstance(email, str) or not EMAIL_RE.match(email):
                raise ValidationError('validation.INVALID_EMAIL')
            email = email.strip().lower()
            if user.provider != 'local' and email != user.email:
                raise ValidationError('users.CANNOT_CHANGE_OAUTH_EMAIL')
            other = self.find_by_email(email)
            if other is not None and other.id != user.id:
                raise ConflictError('users.EMAIL_IN_USE')
            fields['email'] = email

        for field_name in UPDATABLE_FIELDS:
            if field_name in fields and fields[field_name] is not None:
                setattr(user, field_name, fields[field_name])

        db.session.commit()
        return user

    def remove_user(self, user_id: str):
        """Soft delete: the row stays, the account stops resolving."""
        user = self.find_one(user_id)
        user.deleted_at = datetime.utcnow()
        user.is_active = False
        db.session.commit()
        self.plans.invalidate_user(user_id)
        logger.info(f"User {user_id} soft-deleted")

    def change_password(self, user_id: str, old_password: str, new_password: str):
        user = self.find_one(user_id)

        if not user.password_hash:
            raise ValidationError('users.OAUTH_CANNOT_CHANGE_PASSWORD')

        if not user.check_password(old_password or ''):
            raise ValidationError('users.WRONG_CURRENT_PASSWORD')

        validate_password(new_password)
        user.set_password(new_password)
        db.session.commit()
        logger.info(f"Password changed for user {user_id}")

    def change_plan(self, user_id: str, new_plan: str, acting_user: Optional[User] = None) -> User:
        """
        Move a user to another plan. Only administrators may assign the
        enterprise plan. The cached plan entry is dropped so entitlement
        checks see the new plan immediately.
        """
        try:
            plan_id = PlanId(new_plan)
        except ValueError:
            raise ValidationError('users.INVALID_PLAN', plan=new_plan)

        user = self.find_one(user_id)

        if user.plan == plan_id.value:
            raise InvalidStateError('users.ALREADY_ON_PLAN', plan=plan_id.value)

        if plan_id == PlanId.ENTERPRISE and (acting_user is None or not acting_user.is_admin):
            raise ForbiddenError('users.ENTERPRISE_REQUIRES_ADMIN')

        old_plan = user.plan
        user.plan = plan_id.value
        db.session.commit()
        self.plans.invalidate_user(user.id)

        logger.info(f"User {user.id} moved from {old_plan} to {plan_id.value}")
        self.publisher.publish_user_notification(user.id, plan_changed_event(user.id, old_plan, plan_id.value))
        return user

    def upgrade_to_pro(self, user_id: str, acting_user: Optional[User] = None) -> User:
        return self.change_plan(user_id, PlanId.PRO.value, acting_user)

    def downgrade_to_free(self, user_id: str, acting_user: Optional[User] = None) -> User:
        return self.change_plan(user_id, PlanId.FREE.value, acting_user)
