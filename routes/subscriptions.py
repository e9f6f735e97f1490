"""
Creator subscription routes
"""
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from errors import PaymentError
from models.subscription import Subscription, SUBSCRIPTION_STATUSES
from utils.payment_status_helper import cancel_subscription, get_subscription_status

subscriptions_bp = Blueprint('subscriptions', __name__, url_prefix='/api/subscriptions')


def _owned_subscription(subscription_id):
    return Subscription.query.filter_by(id=subscription_id, creator_id=current_user.id).first()


@subscriptions_bp.route('')
@login_required
def list_subscriptions():
    """Subscriptions of the authenticated creator, newest first"""
    query = Subscription.query.filter_by(creator_id=current_user.id)
    status = request.args.get('status')
    if status:
        if status not in SUBSCRIPTION_STATUSES:
            return jsonify({'error': f"Unknown status '{status}'", 'code': 'INVALID_REQUEST'}), 400
        query = query.filter_by(status=status)
    subscriptions = query.order_by(Subscription.created_at.desc()).limit(200).all()
    return jsonify({'subscriptions': [s.to_dict() for s in subscriptions]})


@subscriptions_bp.route('/<int:subscription_id>')
@login_required
def get_subscription(subscription_id):
    subscription = _owned_subscription(subscription_id)
    if not subscription:
        return jsonify({'error': 'Subscription not found', 'code': 'SUBSCRIPTION_NOT_FOUND'}), 404
    return jsonify(get_subscription_status(subscription))


@subscriptions_bp.route('/<int:subscription_id>/cancel', methods=['POST'])
@login_required
def cancel(subscription_id):
    """Cancel a pending or active subscription (and its provider agreement, if any)"""
    subscription = _owned_subscription(subscription_id)
    if not subscription:
        return jsonify({'error': 'Subscription not found', 'code': 'SUBSCRIPTION_NOT_FOUND'}), 404

    registry = current_app.extensions['payment_registry']
    try:
        cancel_subscription(subscription, registry)
    except PaymentError as e:
        current_app.logger.warning(f"Cancel of subscription #{subscription_id} refused: {e.code} {e.message}")
        return jsonify(e.to_dict()), e.http_status
    except Exception as e:
        current_app.logger.error(f"Error cancelling subscription #{subscription_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Could not cancel subscription', 'code': 'INTERNAL_ERROR'}), 500
    return jsonify(subscription.to_dict())
