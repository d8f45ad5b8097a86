from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

from . import json_body, require_string, optional_string, require_admin, require_self_or_admin
from ..user_manager import UPDATABLE_FIELDS

bp = Blueprint('users', __name__, url_prefix='/users')


def profile_fields(data: dict) -> dict:
    return {field: optional_string(data, field) for field in UPDATABLE_FIELDS if field in data}


@bp.route('', methods=['POST'])
def create_user():
    """Public sign-up without tokens; role and plan always start at their defaults."""
    data = json_body()
    user = current_app.users.create_user(
        name=require_string(data, 'name'),
        email=require_string(data, 'email'),
        password=require_string(data, 'password'),
        avatar_url=optional_string(data, 'avatar_url')
    )
    return jsonify(user.to_dict()), 201


@bp.route('', methods=['GET'])
@login_required
def list_users():
    require_admin()
    users = current_app.users.find_all()
    return jsonify({'users': [u.to_dict() for u in users], 'count': len(users)})


@bp.route('/me', methods=['GET'])
@login_required
def get_me():
    return jsonify(current_user.to_dict())


@bp.route('/me', methods=['PATCH'])
@login_required
def update_me():
    user = current_app.users.update_user(current_user.id, **profile_fields(json_body()))
    return jsonify(user.to_dict())


@bp.route('/me/change-password', methods=['POST'])
@login_required
def change_password():
    data = json_body()
    current_app.users.change_password(
        current_user.id,
        require_string(data, 'current_password'),
        require_string(data, 'new_password')
    )
    return jsonify({'success': True})


@bp.route('/<user_id>', methods=['GET'])
@login_required
def get_user(user_id):
    return jsonify(current_app.users.find_one(user_id).to_dict())


@bp.route('/<user_id>', methods=['PATCH'])
@login_required
def update_user(user_id):
    require_self_or_admin(user_id)
    user = current_app.users.update_user(user_id, **profile_fields(json_body()))
    return jsonify(user.to_dict())


@bp.route('/<user_id>', methods=['DELETE'])
@login_required
def delete_user(user_id):
    require_self_or_admin(user_id)
    current_app.users.remove_user(user_id)
    return '', 204


# ==================== Plan changes ====================

@bp.route('/<user_id>/plan', methods=['POST'])
@login_required
def change_plan(user_id):
    require_self_or_admin(user_id)
    plan = require_string(json_body(), 'plan')
    user = current_app.users.change_plan(user_id, plan, acting_user=current_user)
    return jsonify(user.to_dict())


@bp.route('/<user_id>/upgrade', methods=['POST'])
@login_required
def upgrade(user_id):
    require_self_or_admin(user_id)
    user = current_app.users.upgrade_to_pro(user_id, acting_user=current_user)
    return jsonify(user.to_dict())


@bp.route('/<user_id>/downgrade', methods=['POST'])
@login_required
def downgrade(user_id):
    require_self_or_admin(user_id)
    user = current_app.users.downgrade_to_free(user_id, acting_user=current_user)
    return jsonify(user.to_dict())
