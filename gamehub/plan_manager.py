from typing import List, Optional
import logging

from .errors import NotFoundError
from .models import db, User
from .plan_cache import PlanCache
from .plan_catalog import PlanCatalog, PlanId, PlanInfo

logger = logging.getLogger(__name__)


class PlanManager:
    """
    Resolves users to their current plan.
    Plan records come from the in-process catalog; the user -> plan id lookup
    goes through the Redis-backed PlanCache before hitting PostgreSQL.
    """

    RECOMMENDED_PLAN = PlanId.PRO

    def __init__(self, catalog: PlanCatalog, cache: Optional[PlanCache] = None):
        self.catalog = catalog
        self.cache = cache or PlanCache()

    def find_all(self) -> List[PlanInfo]:
        """Active plans ordered FREE < BASIC < PRO < ENTERPRISE."""
        return self.catalog.active()

    def find_one(self, plan_id: str) -> PlanInfo:
        plan = self.catalog.get(plan_id)
        if plan is None or not plan.is_active:
            raise NotFoundError('plans.PLAN_NOT_FOUND', id=plan_id)
        return plan

    def get_user_plan_id(self, user_id: str) -> str:
        cached = self.cache.get(user_id)
        if cached:
            return cached

        user = db.session.get(User, user_id)
        if user is None or user.deleted_at is not None:
            raise NotFoundError('users.USER_NOT_FOUND', id=user_id)

        self.cache.set(user_id, user.plan)
        return user.plan

    def get_user_plan(self, user_id: str) -> PlanInfo:
        return self.find_one(self.get_user_plan_id(user_id))

    def invalidate_user(self, user_id: str):
        self.cache.invalidate(user_id)

    def get_plan_limits(
        self,
        user_id: str,
        matches_this_month: int = 0,
        tournaments_this_month: int = 0
    ) -> dict:
        plan = self.get_user_plan(user_id)
        return {
            'plan': plan.name,
            'plan_id': plan.id.value,
            'price': plan.price,
            'currency': plan.currency,
            'features': plan.features.to_dict(),
            'usage': {
                'matches_this_month': matches_this_month,
                'tournaments_this_month': tournaments_this_month,
            },
        }

    def compare_plans(self) -> List[dict]:
        return [
            {
                'id': plan.id.value,
                'name': plan.name,
                'price': plan.price,
                'currency': plan.currency,
                'features': plan.features.to_dict(),
                'recommended': plan.id == self.RECOMMENDED_PLAN,
            }
            for plan in self.find_all()
        ]

    def get_upgrade_options(self, user_id: str) -> List[PlanInfo]:
        """Active plans ranked strictly above the user's current plan."""
        current = self.get_user_plan(user_id)
        return [plan for plan in self.find_all() if plan.rank > current.rank]
