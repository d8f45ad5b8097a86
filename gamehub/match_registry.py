import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError

from .errors import NotFoundError, ValidationError, InvalidStateError
from .models import db, Match, Team, User
from .team_formation import TeamAssignment, validate_manual_teams, random_teams
from shared.events import match_created_event, state_changed_event, teams_formed_event, Event, EventType
from shared.pubsub import EventPublisher
from shared.state_machine import MatchStateMachine, MatchState, TeamFormationMode, TransitionError

logger = logging.getLogger(__name__)


def start_of_month(now: datetime = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class MatchRegistry:
    """
    Manages match lifecycle:
    - Create/update/delete match records
    - Form teams (manual or random) exactly once per match
    - Publish lifecycle events
    """

    MIN_TEAM_COUNT = 2

    def __init__(self, publisher: EventPublisher = None):
        self.publisher = publisher or EventPublisher()

    def create_match(
        self,
        created_by_id: str,
        game_id: str,
        team_formation_mode: str = TeamFormationMode.MANUAL.value,
        team_count: int = 2,
        player_ids: Sequence[str] = ()
    ) -> Match:
        """Create a new match waiting for teams."""
        try:
            mode = TeamFormationMode(team_formation_mode)
        except ValueError:
            raise ValidationError('validation.INVALID_FIELD', field='team_formation_mode')

        if not isinstance(team_count, int) or isinstance(team_count, bool) or team_count < self.MIN_TEAM_COUNT:
            raise ValidationError('validation.INVALID_FIELD', field='team_count')

        player_ids = list(player_ids)
        players = User.query.filter(
            User.id.in_(player_ids),
            User.deleted_at.is_(None)
        ).all() if player_ids else []

        # duplicates in the request also land here
        if len(player_ids) < 2 or len(players) != len(player_ids):
            raise ValidationError('matches.INVALID_PLAYERS')

        if team_count > len(players):
            raise ValidationError(
                'matches.TEAM_COUNT_EXCEEDS_PLAYERS',
                team_count=team_count,
                player_count=len(players)
            )

        match = Match(
            game_id=game_id,
            team_formation_mode=mode.value,
            team_count=team_count,
            created_by_id=created_by_id,
            status=MatchState.WAITING_TEAMS.value,
            players=players
        )
        db.session.add(match)
        db.session.commit()

        logger.info(f"Match {match.id} created by {created_by_id} with {len(players)} players")
        self.publisher.publish_match_event(match.id, match_created_event(match.id, created_by_id, team_count))
        return match

    def get_match(self, match_id: str) -> Match:
        match = db.session.get(Match, match_id)
        if match is None or match.deleted_at is not None:
            raise NotFoundError('matches.MATCH_NOT_FOUND', id=match_id)
        return match

    def list_matches(
        self,
        status: str = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Match]:
        """List matches newest first."""
        query = Match.query.filter(Match.deleted_at.is_(None))

        if status:
            query = query.filter_by(status=status)

        query = query.order_by(Match.created_at.desc())
        return query.offset(offset).limit(limit).all()

    def count_matches_created_since(self, user_id: str, since: datetime) -> int:
        """Deleted matches are included: deleting a match does not undo its creation."""
        return Match.query.filter(
            Match.created_by_id == user_id,
            Match.created_at >= since
        ).count()

    def count_matches_this_month(self, user_id: str, now: datetime = None) -> int:
        return self.count_matches_created_since(user_id, start_of_month(now))

    def update_match(self, match_id: str, status: Optional[str] = None) -> Match:
        """Apply a status change through the match state machine."""
        match = self.get_match(match_id)
        if status is None or status == match.status:
            return match

        try:
            target = MatchState(status)
        except ValueError:
            raise ValidationError('validation.INVALID_FIELD', field='status')

        try:
            sm = MatchStateMachine.from_state_string(match.status)
            action = sm.action_for(target)
            # team formation is the only way into in_progress
            if action is None or action == 'form_teams':
                raise TransitionError(match.status, target.value)
            old_state = sm.state.value
            new_state = sm.transition(action)
        except TransitionError:
            raise InvalidStateError(
                'matches.INVALID_STATUS_TRANSITION',
                from_state=match.status,
                to_state=target.value
            )

        match.status = new_state.value
        db.session.commit()

        logger.info(f"Match {match.id} moved from {old_state} to {new_state.value}")
        self.publisher.publish_match_event(match.id, state_changed_event(match.id, old_state, new_state.value))
        return match

    def delete_match(self, match_id: str):
        """Soft delete: the match disappears from reads but keeps counting toward monthly usage."""
        match = self.get_match(match_id)
        match.deleted_at = datetime.utcnow()
        db.session.commit()

        logger.info(f"Match {match_id} deleted")
        self.publisher.publish_match_event(match_id, Event(type=EventType.MATCH_DELETED, subject_id=match_id))

    # ==================== Team Formation ====================

    def _check_can_form_teams(self, match_id: str) -> Match:
        match = self.get_match(match_id)

        existing = Team.query.filter_by(match_id=match.id).count()
        if existing > 0:
            raise InvalidStateError('matches.TEAMS_ALREADY_CREATED')

        if match.status != MatchState.WAITING_TEAMS.value:
            raise InvalidStateError('matches.MATCH_ALREADY_STARTED')

        return match

    def create_teams_manual(self, match_id: str, teams: Sequence[TeamAssignment]) -> List[Team]:
        """Create teams from an explicit partition of the match's players."""
        match = self._check_can_form_teams(match_id)
        validate_manual_teams(teams, [p.id for p in match.players], match.team_count)
        return self._persist_teams(match, teams, TeamFormationMode.MANUAL)

    def create_teams_random(self, match_id: str, seed: Optional[str] = None) -> List[Team]:
        """Shuffle the match's players into ``team_count`` teams; a seed makes it reproducible."""
        match = self._check_can_form_teams(match_id)
        player_ids = sorted(p.id for p in match.players)
        assignments = random_teams(player_ids, match.team_count, seed=seed)
        return self._persist_teams(match, assignments, TeamFormationMode.RANDOM)

    def _persist_teams(
        self,
        match: Match,
        assignments: Sequence[TeamAssignment],
        mode: TeamFormationMode
    ) -> List[Team]:
        players_by_id = {p.id: p for p in match.players}

        try:
            sm = MatchStateMachine.from_state_string(match.status)
            old_state = sm.state.value
            new_state = sm.transition('form_teams')
        except TransitionError:
            raise InvalidStateError('matches.MATCH_ALREADY_STARTED')

        teams = []
        for slot, assignment in enumerate(assignments, start=1):
            team = Team(
                name=assignment.name,
                match_id=match.id,
                slot=slot,
                players=[players_by_id[player_id] for player_id in assignment.players]
            )
            db.session.add(team)
            teams.append(team)

        match.status = new_state.value

        try:
            db.session.commit()
        except IntegrityError:
            # another request formed this match's teams first
            db.session.rollback()
            logger.info(f"Concurrent team formation rejected for match {match.id}")
            raise InvalidStateError('matches.TEAMS_ALREADY_CREATED')

        logger.info(f"Formed {len(teams)} teams ({mode.value}) for match {match.id}")
        self.publisher.publish_match_event(
            match.id,
            teams_formed_event(match.id, mode.value, [t.id for t in teams])
        )
        self.publisher.publish_match_event(match.id, state_changed_event(match.id, old_state, new_state.value))
        return teams
