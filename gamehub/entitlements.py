from typing import Optional, Union

from .errors import ForbiddenError
from .plan_catalog import Feature
from .plan_manager import PlanManager


def _within_limit(limit: Optional[int], current: int) -> bool:
    # None means unlimited
    if limit is None:
        return True
    return current < limit


def _parse_feature(feature: Union[Feature, str]) -> Optional[Feature]:
    if isinstance(feature, Feature):
        return feature
    try:
        return Feature(feature)
    except ValueError:
        return None


class EntitlementChecker:
    """
    Decides whether a user's plan permits an action.
    Usage counters are supplied by the caller; nothing here counts usage.
    The ``validate_*`` variants raise ForbiddenError for enforcement points.
    """

    def __init__(self, plans: PlanManager):
        self.plans = plans

    def can_create_match(self, user_id: str, current_matches_this_month: int) -> bool:
        plan = self.plans.get_user_plan(user_id)
        return _within_limit(plan.features.max_matches_per_month, current_matches_this_month)

    def can_create_tournament(self, user_id: str, current_tournaments_this_month: int) -> bool:
        plan = self.plans.get_user_plan(user_id)
        return _within_limit(plan.features.max_tournaments_per_month, current_tournaments_this_month)

    def has_feature(self, user_id: str, feature: Union[Feature, str]) -> bool:
        """Unknown feature names are never granted."""
        parsed = _parse_feature(feature)
        if parsed is None:
            return False
        plan = self.plans.get_user_plan(user_id)
        return plan.features.allows(parsed)

    def validate_match_creation(self, user_id: str, current_matches_this_month: int):
        plan = self.plans.get_user_plan(user_id)
        if not _within_limit(plan.features.max_matches_per_month, current_matches_this_month):
            raise ForbiddenError(
                'plans.MATCH_LIMIT_REACHED',
                limit=plan.features.max_matches_per_month,
                plan=plan.name
            )

    def validate_tournament_creation(self, user_id: str, current_tournaments_this_month: int):
        plan = self.plans.get_user_plan(user_id)
        if not _within_limit(plan.features.max_tournaments_per_month, current_tournaments_this_month):
            raise ForbiddenError(
                'plans.TOURNAMENT_LIMIT_REACHED',
                limit=plan.features.max_tournaments_per_month,
                plan=plan.name
            )

    def validate_feature_access(self, user_id: str, feature: Union[Feature, str]):
        if not self.has_feature(user_id, feature):
            plan = self.plans.get_user_plan(user_id)
            raise ForbiddenError(
                'plans.FEATURE_NOT_AVAILABLE',
                feature=feature.value if isinstance(feature, Feature) else feature,
                plan=plan.name
            )
