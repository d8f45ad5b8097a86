"""
Plan catalog - read-only reference data for subscription tiers.

The catalog is built once at application start from the ``plans`` table and
exposed through :class:`PlanCatalog`, whose entries are frozen dataclasses held
in a read-only mapping. ``DEFAULT_PLANS`` is what deployments seed.
"""
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional

from .models import db, Plan

logger = logging.getLogger(__name__)


class PlanId(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @property
    def rank(self) -> int:
        return PLAN_ORDER.index(self)


PLAN_ORDER = [PlanId.FREE, PlanId.BASIC, PlanId.PRO, PlanId.ENTERPRISE]


class Feature(str, Enum):
    ADVANCED_STATS = "advanced_stats"
    KNOCKOUT_MODE = "knockout_mode"
    TEAM_MANAGEMENT = "team_management"
    PRIORITY_SUPPORT = "priority_support"


@dataclass(frozen=True)
class PlanFeatures:
    max_matches_per_month: Optional[int]  # None means unlimited
    max_tournaments_per_month: Optional[int]
    advanced_stats: bool = False
    knockout_mode: bool = False
    team_management: bool = False
    priority_support: bool = False

    def allows(self, feature: Feature) -> bool:
        if feature is Feature.ADVANCED_STATS:
            return self.advanced_stats
        if feature is Feature.KNOCKOUT_MODE:
            return self.knockout_mode
        if feature is Feature.TEAM_MANAGEMENT:
            return self.team_management
        if feature is Feature.PRIORITY_SUPPORT:
            return self.priority_support
        return False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PlanFeatures":
        return cls(
            max_matches_per_month=data.get('max_matches_per_month'),
            max_tournaments_per_month=data.get('max_tournaments_per_month'),
            advanced_stats=bool(data.get('advanced_stats', False)),
            knockout_mode=bool(data.get('knockout_mode', False)),
            team_management=bool(data.get('team_management', False)),
            priority_support=bool(data.get('priority_support', False)),
        )


@dataclass(frozen=True)
class PlanInfo:
    id: PlanId
    name: str
    price: int
    currency: str
    features: PlanFeatures
    is_enterprise: bool = False
    is_active: bool = True

    @property
    def rank(self) -> int:
        return self.id.rank

    def to_dict(self) -> dict:
        return {
            'id': self.id.value,
            'name': self.name,
            'price': self.price,
            'currency': self.currency,
            'features': self.features.to_dict(),
            'is_enterprise': self.is_enterprise,
            'is_active': self.is_active,
        }


DEFAULT_PLANS = (
    PlanInfo(PlanId.FREE, 'Free', 0, 'BRL', PlanFeatures(
        max_matches_per_month=10, max_tournaments_per_month=1)),
    PlanInfo(PlanId.BASIC, 'Basic', 1990, 'BRL', PlanFeatures(
        max_matches_per_month=50, max_tournaments_per_month=5, knockout_mode=True)),
    PlanInfo(PlanId.PRO, 'Pro', 3990, 'BRL', PlanFeatures(
        max_matches_per_month=None, max_tournaments_per_month=None,
        advanced_stats=True, knockout_mode=True, team_management=True)),
    PlanInfo(PlanId.ENTERPRISE, 'Enterprise', 0, 'BRL', PlanFeatures(
        max_matches_per_month=None, max_tournaments_per_month=None,
        advanced_stats=True, knockout_mode=True, team_management=True,
        priority_support=True), is_enterprise=True),
)


class PlanCatalog:
    """Read-only lookup of plans by id."""

    def __init__(self, plans: Iterable[PlanInfo]):
        self._plans = MappingProxyType({p.id: p for p in plans})

    def get(self, plan_id) -> Optional[PlanInfo]:
        try:
            return self._plans.get(PlanId(plan_id))
        except ValueError:
            return None

    def active(self) -> List[PlanInfo]:
        """Active plans in rank order."""
        return sorted((p for p in self._plans.values() if p.is_active), key=lambda p: p.rank)

    def __contains__(self, plan_id) -> bool:
        return self.get(plan_id) is not None

    def __len__(self) -> int:
        return len(self._plans)

    @classmethod
    def load(cls) -> "PlanCatalog":
        """Build the catalog from the plans table; fall back to the defaults when it is empty."""
        rows = Plan.query.all()
        plans = []
        for row in rows:
            try:
                plan_id = PlanId(row.id)
            except ValueError:
                logger.warning(f"Ignoring unknown plan id in plans table: {row.id}")
                continue
            plans.append(PlanInfo(
                id=plan_id,
                name=row.name,
                price=row.price,
                currency=row.currency,
                features=PlanFeatures.from_dict(row.features or {}),
                is_enterprise=bool(row.is_enterprise),
                is_active=bool(row.is_active),
            ))
        if not plans:
            logger.info("Plans table is empty, using default catalog")
            plans = list(DEFAULT_PLANS)
        return cls(plans)


def seed_plans(plans: Iterable[PlanInfo] = DEFAULT_PLANS) -> int:
    """Insert missing plans. Existing rows are left untouched. Returns the number inserted."""
    inserted = 0
    for info in plans:
        if db.session.get(Plan, info.id.value) is not None:
            continue
        db.session.add(Plan(
            id=info.id.value,
            name=info.name,
            price=info.price,
            currency=info.currency,
            features=info.features.to_dict(),
            is_enterprise=info.is_enterprise,
            is_active=info.is_active,
        ))
        inserted += 1
    db.session.commit()
    if inserted:
        logger.info(f"Seeded {inserted} plans")
    return inserted
