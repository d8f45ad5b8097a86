import uuid
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from shared.state_machine import MatchState, TeamFormationMode

db = SQLAlchemy()


def generate_uuid() -> str:
    return str(uuid.uuid4())


match_players = db.Table(
    'match_players',
    db.Column('match_id', db.String(36), db.ForeignKey('matches.id', ondelete='CASCADE'), primary_key=True),
    db.Column('user_id', db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
)

team_players = db.Table(
    'team_players',
    db.Column('team_id', db.String(36), db.ForeignKey('teams.id', ondelete='CASCADE'), primary_key=True),
    db.Column('user_id', db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
)


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=True)  # None for OAuth accounts
    provider = db.Column(db.String(20), nullable=False, default='local')
    provider_id = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    email_verified = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True, index=True)
    role = db.Column(db.String(20), nullable=False, default='user')
    plan = db.Column(db.String(20), nullable=False, default='free', index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.Index('ix_users_provider_provider_id', 'provider', 'provider_id'),
    )

    def get_id(self):
        """Return the user ID for Flask-Login."""
        return str(self.id)

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'provider': self.provider,
            'avatar_url': self.avatar_url,
            'email_verified': self.email_verified,
            'is_active': self.is_active,
            'role': self.role,
            'plan': self.plan,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def to_player_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'avatar_url': self.avatar_url,
        }


class Plan(db.Model):
    __tablename__ = 'plans'

    id = db.Column(db.String(20), primary_key=True)  # free | basic | pro | enterprise
    name = db.Column(db.String(50), nullable=False)
    price = db.Column(db.Integer, nullable=False, default=0)  # minor currency units
    currency = db.Column(db.String(3), nullable=False, default='BRL')
    features = db.Column(db.JSON, nullable=False)
    is_enterprise = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Match(db.Model):
    __tablename__ = 'matches'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    game_id = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=MatchState.WAITING_TEAMS.value)
    team_formation_mode = db.Column(db.String(20), nullable=False, default=TeamFormationMode.MANUAL.value)
    team_count = db.Column(db.Integer, nullable=False, default=2)
    created_by_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)  # deleted matches still count toward monthly usage

    created_by = db.relationship('User', foreign_keys=[created_by_id])
    players = db.relationship('User', secondary=match_players, order_by='User.created_at')
    teams = db.relationship('Team', back_populates='match', cascade='all, delete-orphan',
                            order_by='Team.slot')

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'status': self.status,
            'team_formation_mode': self.team_formation_mode,
            'team_count': self.team_count,
            'created_by': self.created_by.to_player_dict() if self.created_by else None,
            'players': [p.to_player_dict() for p in self.players],
            'teams': [t.to_dict() for t in self.teams],
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Team(db.Model):
    __tablename__ = 'teams'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    name = db.Column(db.String(100), nullable=False)
    match_id = db.Column(db.String(36), db.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False)
    slot = db.Column(db.Integer, nullable=False)  # 1-based position within the match's team set
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    match = db.relationship('Match', back_populates='teams')
    players = db.relationship('User', secondary=team_players)

    __table_args__ = (
        db.UniqueConstraint('match_id', 'slot', name='unique_team_slot_per_match'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'match_id': self.match_id,
            'players': [p.to_player_dict() for p in self.players],
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
