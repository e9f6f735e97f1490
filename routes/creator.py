"""
Creator account routes: gateway configuration and plans
"""
import json
from decimal import Decimal, InvalidOperation
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from models import db
from models.plan import Plan

creator_bp = Blueprint('creator', __name__, url_prefix='/api/creator')


@creator_bp.route('/me')
@login_required
def me():
    return jsonify(current_user.to_dict())


@creator_bp.route('/gateway', methods=['PUT'])
@login_required
def update_gateway():
    """Store the creator's own provider credentials (BYOK) and preferred gateway"""
    data = request.get_json(silent=True) or {}
    registry = current_app.extensions['payment_registry']

    gateway = (data.get('gateway') or '').strip().lower()
    if gateway not in registry:
        return jsonify({'error': f"Gateway '{gateway}' not supported", 'code': 'UNSUPPORTED_GATEWAY'}), 400

    credentials = data.get('credentials')
    if isinstance(credentials, dict):
        credentials = json.dumps(credentials)
    if not credentials or not str(credentials).strip():
        return jsonify({'error': 'credentials are required', 'code': 'INVALID_REQUEST'}), 400

    current_user.gateway_preference = gateway
    current_user.gateway_credentials = str(credentials).strip()
    if 'walletId' in data:
        current_user.wallet_id = (data.get('walletId') or '').strip() or None

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving gateway for creator #{current_user.id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Could not save gateway configuration', 'code': 'INTERNAL_ERROR'}), 500

    current_app.logger.info(f"Creator #{current_user.id} configured gateway {gateway}")
    return jsonify(current_user.to_dict())


@creator_bp.route('/plans')
@login_required
def list_plans():
    plans = Plan.query.filter_by(creator_id=current_user.id).order_by(Plan.created_at.desc()).all()
    return jsonify({'plans': [plan.to_dict() for plan in plans]})


@creator_bp.route('/plans', methods=['POST'])
@login_required
def create_plan():
    """Create a paid-access plan (durationDays 0 = lifetime)"""
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    try:
        price = Decimal(str(data.get('price')))
        duration_days = int(data.get('durationDays', 30))
    except (InvalidOperation, ValueError, TypeError):
        return jsonify({'error': 'price and durationDays must be numeric', 'code': 'INVALID_REQUEST'}), 400
    if not name or not price.is_finite() or price <= 0 or duration_days < 0:
        return jsonify({'error': 'name, a positive price and a non-negative durationDays are required',
                        'code': 'INVALID_REQUEST'}), 400

    plan = Plan(
        creator_id=current_user.id,
        name=name,
        description=(data.get('description') or '').strip() or None,
        price=price,
        duration_days=duration_days,
        is_recurring=bool(data.get('isRecurring')) and duration_days > 0,
        is_active=True,
    )
    try:
        db.session.add(plan)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating plan: {str(e)}", exc_info=True)
        return jsonify({'error': 'Could not create plan', 'code': 'INTERNAL_ERROR'}), 500
    return jsonify(plan.to_dict()), 201
