#!/usr/bin/env python3
"""
Database management script for deployment.
Run this during the build/deployment pipeline to apply migrations and seed plans.
"""
import os
import sys

# Add current directory to path so we can import gamehub
sys.path.append(os.getcwd())

from flask_migrate import upgrade
from sqlalchemy.exc import SQLAlchemyError

from gamehub.app import create_app
from gamehub.plan_catalog import seed_plans


def deploy():
    """Run deployment tasks."""
    print("Starting database migration...")
    app = create_app()
    with app.app_context():
        try:
            upgrade()
            print("✓ Database migrations applied.")
            inserted = seed_plans()
            print(f"✓ Plan catalog seeded ({inserted} new).")
        except SQLAlchemyError as e:
            print(f"Error applying migrations: {e}")
            sys.exit(1)


if __name__ == '__main__':
    deploy()
