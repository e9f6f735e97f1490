"""
Routes package for the subscription payments API
"""
# Export blueprints for registration in app.py
from routes.public import public_bp
from routes.checkout import checkout_bp
from routes.webhooks import webhooks_bp
from routes.subscriptions import subscriptions_bp
from routes.creator import creator_bp

__all__ = [
    'public_bp',
    'checkout_bp',
    'webhooks_bp',
    'subscriptions_bp',
    'creator_bp',
]
