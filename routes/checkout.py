"""
Checkout routes: payment link generation and status polling
"""
from decimal import Decimal, InvalidOperation
from flask import Blueprint, request, jsonify, current_app
from errors import PaymentError
from gateways.base import Payer
from models import db
from models.creator import Creator
from models.plan import Plan
from models.subscription import Subscription
from utils.payment_gateway import CheckoutRequest
from utils.payment_status_helper import get_subscription_status

checkout_bp = Blueprint('checkout', __name__, url_prefix='/api/checkout')


def _bad_request(message, code='INVALID_REQUEST'):
    return jsonify({'error': message, 'code': code, 'details': None}), 400


def _parse_amount(value):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() and amount > 0 else None


def _text(value):
    """Stripped string, '' when missing; None when the field is not text."""
    if value is None:
        return ''
    return value.strip() if isinstance(value, str) else None


def _build_checkout(data):
    """Resolve (creator, CheckoutRequest) from a plan or an ad-hoc offer; returns an error response on bad input."""
    user_id = data.get('userId') or data.get('telegramId')
    if not user_id:
        return None, None, _bad_request('userId is required')
    payer = Payer(
        external_id=str(user_id),
        name=data.get('name'),
        email=data.get('email'),
        username=data.get('username') or data.get('telegramUsername'),
    )
    frontend_url = current_app.config['FRONTEND_URL']

    plan_id = data.get('planId')
    if plan_id:
        plan = db.session.get(Plan, int(plan_id)) if str(plan_id).isdigit() else None
        if not plan or not plan.is_active:
            return None, None, (jsonify({'error': 'Plan not found', 'code': 'PLAN_NOT_FOUND', 'details': None}), 404)
        creator = plan.creator
        checkout = CheckoutRequest(
            amount=plan.price,
            title=plan.name,
            description=plan.description or f"Subscription {plan.name}",
            payer=payer,
            plan_id=plan.id,
            duration_days=plan.duration_days,
            recurring=bool(plan.is_recurring) and not plan.is_lifetime,
        )
    else:
        creator_id = data.get('creatorId')
        amount = _parse_amount(data.get('amount'))
        description = _text(data.get('description'))
        if not creator_id or amount is None or not description:
            return None, None, _bad_request('planId or creatorId, a positive amount and description are required')
        creator = db.session.get(Creator, int(creator_id)) if str(creator_id).isdigit() else None
        duration = data.get('durationDays')
        checkout = CheckoutRequest(
            amount=amount,
            title=description[:120],
            description=description,
            payer=payer,
            duration_days=int(duration) if duration not in (None, '') else None,
        )

    if not creator or not creator.is_active:
        return None, None, (jsonify({'error': 'Creator not found', 'code': 'CREATOR_NOT_FOUND', 'details': None}), 404)

    checkout.success_url = f"{frontend_url}/success"
    checkout.cancel_url = f"{frontend_url}/cancel"
    return creator, checkout, None


@checkout_bp.route('/link', methods=['POST'])
@checkout_bp.route('/create', methods=['POST'])
def create_link():
    """Generate a payment link with the creator's own gateway credentials"""
    data = request.get_json(silent=True) or {}
    try:
        creator, checkout, error = _build_checkout(data)
    except ValueError:
        return _bad_request('durationDays must be an integer')
    if error:
        return error

    gateway = _text(data.get('gateway'))
    if gateway is None:
        return _bad_request('gateway must be a string')
    gateway = (gateway or creator.gateway_preference or 'pushinpay').strip().lower()
    orchestrator = current_app.extensions['payment_orchestrator']
    try:
        result = orchestrator.create_payment_link(gateway, checkout, creator)
    except PaymentError as e:
        current_app.logger.warning(f"Checkout failed on {gateway} for creator #{creator.id}: {e.code} {e.message}")
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        return _bad_request(str(e))
    except Exception as e:
        current_app.logger.error(f"Error creating payment link: {str(e)}", exc_info=True)
        return jsonify({'error': 'Could not create payment link', 'code': 'INTERNAL_ERROR', 'details': None}), 500

    payload = result.to_dict()
    payload['creatorName'] = creator.name
    return jsonify(payload), 201


@checkout_bp.route('/status/<int:subscription_id>')
def status(subscription_id):
    """Poll subscription and latest payment status"""
    subscription = db.session.get(Subscription, subscription_id)
    if not subscription:
        return jsonify({'error': 'Subscription not found', 'code': 'SUBSCRIPTION_NOT_FOUND', 'details': None}), 404
    payload = get_subscription_status(subscription)
    payload['plan'] = {'id': subscription.plan.id, 'name': subscription.plan.name} if subscription.plan else None
    return jsonify(payload)
