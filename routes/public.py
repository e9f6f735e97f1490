"""
Public routes: supported gateways, public platform settings, health
"""
from flask import Blueprint, jsonify, current_app
from utils.settings_helper import get_setting

public_bp = Blueprint('public', __name__)


@public_bp.route('/api/gateways')
def gateways():
    """Gateways a creator can connect"""
    registry = current_app.extensions['payment_registry']
    return jsonify({'gateways': registry.describe()})


@public_bp.route('/api/public/settings')
def public_settings():
    """Platform fee and branding shown on checkout pages"""
    fee_policy = current_app.extensions['fee_policy']
    return jsonify({
        'fixedFeeAmount': float(fee_policy.current_fee()),
        'platformName': get_setting('platform_name', 'SubPay'),
        'supportEmail': get_setting('support_email', ''),
    })


@public_bp.route('/health')
def health():
    return jsonify({'status': 'ok'})
