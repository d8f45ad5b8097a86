from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

bp = Blueprint('plans', __name__, url_prefix='/plans')


@bp.route('', methods=['GET'])
def list_plans():
    plans = current_app.plans.find_all()
    return jsonify({'plans': [p.to_dict() for p in plans], 'count': len(plans)})


@bp.route('/compare', methods=['GET'])
def compare_plans():
    return jsonify({'plans': current_app.plans.compare_plans()})


@bp.route('/my-plan', methods=['GET'])
@login_required
def my_plan():
    """Caller's plan, limits and usage for the current month."""
    matches_this_month = current_app.registry.count_matches_this_month(current_user.id)
    return jsonify(current_app.plans.get_plan_limits(
        current_user.id,
        matches_this_month=matches_this_month
    ))


@bp.route('/upgrade-options', methods=['GET'])
@login_required
def upgrade_options():
    plans = current_app.plans.get_upgrade_options(current_user.id)
    return jsonify({'plans': [p.to_dict() for p in plans]})


@bp.route('/<plan_id>', methods=['GET'])
def get_plan(plan_id):
    return jsonify(current_app.plans.find_one(plan_id).to_dict())
