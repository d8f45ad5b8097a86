"""
Gamehub API - Match and Subscription Backend

Responsibilities:
- User accounts (local + OAuth login, JWT sessions)
- Plan catalog and entitlement checks
- Match registry (CRUD)
- Team formation (manual and random)
- Localized error responses
"""
