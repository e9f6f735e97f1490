"""
Creator model definition
"""
from models import db
from datetime import datetime
from flask_login import UserMixin

class Creator(UserMixin, db.Model):
    """Creator account: owns plans and the payment gateway credentials (BYOK)"""
    __tablename__ = 'creators'
    
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    gateway_preference = db.Column(db.String(20), default='pushinpay')
    gateway_credentials = db.Column(db.Text, nullable=True)  # opaque token or JSON blob, provider-specific
    wallet_id = db.Column(db.String(100), nullable=True)  # creator-side wallet/recipient/account for split routing
    api_token_hash = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    plans = db.relationship('Plan', backref='creator', lazy=True)
    subscriptions = db.relationship('Subscription', backref='creator', lazy=True)

    @property
    def has_gateway_configured(self):
        return bool(self.gateway_credentials and self.gateway_credentials.strip())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'gateway_preference': self.gateway_preference,
            'gateway_configured': self.has_gateway_configured,
            'wallet_id': self.wallet_id,
        }
    
    def __repr__(self):
        return f'<Creator {self.name}>'
