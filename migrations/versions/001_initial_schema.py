"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-01-12 10:00:00.000000

Initial schema: users, plans, matches, match_players, teams, team_players.
Also seeds the default plan catalog.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables; tables already created by the app are skipped."""
    from gamehub.models import db
    from gamehub.plan_catalog import DEFAULT_PLANS

    bind = op.get_bind()
    db.metadata.create_all(bind=bind, checkfirst=True)

    plans = sa.table(
        'plans',
        sa.column('id', sa.String),
        sa.column('name', sa.String),
        sa.column('price', sa.Integer),
        sa.column('currency', sa.String),
        sa.column('features', sa.JSON),
        sa.column('is_enterprise', sa.Boolean),
        sa.column('is_active', sa.Boolean),
    )
    existing = {row[0] for row in bind.execute(sa.select(plans.c.id))}
    rows = [
        {
            'id': info.id.value,
            'name': info.name,
            'price': info.price,
            'currency': info.currency,
            'features': info.features.to_dict(),
            'is_enterprise': info.is_enterprise,
            'is_active': info.is_active,
        }
        for info in DEFAULT_PLANS
        if info.id.value not in existing
    ]
    if rows:
        op.bulk_insert(plans, rows)


def downgrade() -> None:
    """Drop all tables."""
    from gamehub.models import db

    bind = op.get_bind()
    db.metadata.drop_all(bind=bind, checkfirst=True)
