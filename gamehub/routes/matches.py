from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from . import json_body, require_string, optional_string, query_int
from ..errors import ValidationError
from ..team_formation import TeamAssignment

bp = Blueprint('matches', __name__, url_prefix='/matches')


def parse_team_assignments(data: dict):
    """Shape check for ``{"teams": [{"name": str, "players": [str, ...]}, ...]}``."""
    teams = data.get('teams')
    if not isinstance(teams, list) or len(teams) < 2:
        raise ValidationError('validation.INVALID_FIELD', field='teams')

    assignments = []
    for team in teams:
        if not isinstance(team, dict):
            raise ValidationError('validation.INVALID_FIELD', field='teams')
        name = team.get('name')
        if not isinstance(name, str) or not name.strip():
            raise ValidationError('validation.REQUIRED_FIELD', field='name')
        players = team.get('players')
        if not isinstance(players, list) or not players or not all(isinstance(p, str) for p in players):
            raise ValidationError('validation.INVALID_FIELD', field='players')
        assignments.append(TeamAssignment(name=name.strip(), players=players))
    return assignments


@bp.route('', methods=['POST'])
@login_required
def create_match():
    """Create a match; counts against the caller's monthly plan limit."""
    data = json_body()
    game_id = require_string(data, 'game_id')
    mode = data.get('team_formation_mode', 'manual')
    team_count = data.get('team_count', 2)
    players = data.get('players')
    if not isinstance(players, list) or not all(isinstance(p, str) for p in players):
        raise ValidationError('matches.INVALID_PLAYERS')

    registry = current_app.registry
    current_app.entitlements.validate_match_creation(
        current_user.id,
        registry.count_matches_this_month(current_user.id)
    )

    match = registry.create_match(
        created_by_id=current_user.id,
        game_id=game_id,
        team_formation_mode=mode,
        team_count=team_count,
        player_ids=players
    )
    return jsonify(match.to_dict()), 201


@bp.route('', methods=['GET'])
@login_required
def list_matches():
    status = request.args.get('status')
    limit = query_int('limit', 50, minimum=1, maximum=100)
    offset = query_int('offset', 0)

    matches = current_app.registry.list_matches(status=status, limit=limit, offset=offset)
    return jsonify({
        'matches': [m.to_dict() for m in matches],
        'count': len(matches),
        'limit': limit,
        'offset': offset
    })


@bp.route('/<match_id>', methods=['GET'])
@login_required
def get_match(match_id):
    return jsonify(current_app.registry.get_match(match_id).to_dict())


@bp.route('/<match_id>', methods=['PATCH'])
@login_required
def update_match(match_id):
    data = json_body()
    status = optional_string(data, 'status')
    match = current_app.registry.update_match(match_id, status=status)
    return jsonify(match.to_dict())


@bp.route('/<match_id>', methods=['DELETE'])
@login_required
def delete_match(match_id):
    current_app.registry.delete_match(match_id)
    return '', 204


@bp.route('/<match_id>/teams', methods=['POST'])
@login_required
def create_teams_manual(match_id):
    """Form teams from an explicit partition of the match's players."""
    assignments = parse_team_assignments(json_body())
    teams = current_app.registry.create_teams_manual(match_id, assignments)
    return jsonify({'teams': [t.to_dict() for t in teams]}), 201


@bp.route('/<match_id>/teams/random', methods=['POST'])
@login_required
def create_teams_random(match_id):
    """Shuffle the match's players into teams; an optional seed makes the draw reproducible."""
    seed = optional_string(json_body(), 'seed')
    teams = current_app.registry.create_teams_random(match_id, seed=seed)
    return jsonify({'teams': [t.to_dict() for t in teams]}), 201
