"""
Team formation rules.

Pure functions over player ids; persistence and lifecycle checks live in
``match_registry``.
"""
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TypeVar

from .errors import ValidationError

T = TypeVar('T')


@dataclass
class TeamAssignment:
    name: str
    players: List[str] = field(default_factory=list)


def validate_manual_teams(
    teams: Sequence[TeamAssignment],
    match_player_ids: Sequence[str],
    team_count: int
):
    """
    Check a manual partition against the match. Checks run in order and the
    first failure is raised:
    team count, foreign players, duplicated players, missing players.
    """
    if len(teams) != team_count:
        raise ValidationError('matches.INVALID_TEAM_COUNT', expected=team_count, received=len(teams))

    match_players = set(match_player_ids)
    assigned = [player_id for team in teams for player_id in team.players]

    invalid = [player_id for player_id in assigned if player_id not in match_players]
    if invalid:
        raise ValidationError('matches.PLAYERS_NOT_IN_MATCH', players=sorted(set(invalid)))

    unique = set(assigned)
    if len(unique) != len(assigned):
        seen = set()
        duplicates = set()
        for player_id in assigned:
            if player_id in seen:
                duplicates.add(player_id)
            seen.add(player_id)
        raise ValidationError('matches.DUPLICATE_PLAYERS', players=sorted(duplicates))

    if len(unique) != len(match_players):
        raise ValidationError('matches.MISSING_PLAYERS', players=sorted(match_players - unique))


def shuffle_players(players: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Fisher-Yates shuffle into a new list."""
    rng = rng or random.SystemRandom()
    shuffled = list(players)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def split_into_teams(players: Sequence[T], team_count: int) -> List[List[T]]:
    """
    Contiguous slices of ``len(players) // team_count`` players; the last
    slice takes whatever remains.
    """
    if team_count < 1:
        raise ValueError("team_count must be positive")
    base = len(players) // team_count
    slices = []
    for i in range(team_count):
        start = i * base
        end = len(players) if i == team_count - 1 else start + base
        slices.append(list(players[start:end]))
    return slices


def random_teams(
    player_ids: Sequence[str],
    team_count: int,
    seed: Optional[str] = None
) -> List[TeamAssignment]:
    """Shuffle and split players into teams named "Team 1".."Team N"."""
    rng = random.Random(seed) if seed is not None else None
    shuffled = shuffle_players(player_ids, rng)
    return [
        TeamAssignment(name=f"Team {i + 1}", players=members)
        for i, members in enumerate(split_into_teams(shuffled, team_count))
    ]
