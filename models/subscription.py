"""
Subscription model definition
"""
from models import db
from datetime import datetime

SUBSCRIPTION_STATUSES = ('pending', 'active', 'expired', 'cancelled', 'failed')

class Subscription(db.Model):
    """Grant of timed or lifetime access for one end user to one plan (or ad-hoc offer)"""
    __tablename__ = 'subscriptions'
    
    id = db.Column(db.Integer, primary_key=True)
    plan_id = db.Column(db.Integer, db.ForeignKey('plans.id'), nullable=True)  # null for ad-hoc offers
    creator_id = db.Column(db.Integer, db.ForeignKey('creators.id'), nullable=False)
    user_external_id = db.Column(db.String(64), nullable=False, index=True)  # messaging user id
    user_username = db.Column(db.String(100), nullable=True)
    user_name = db.Column(db.String(255), nullable=True)
    user_email = db.Column(db.String(255), nullable=True)
    gateway = db.Column(db.String(20), nullable=False)
    gateway_subscription_id = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), default='pending', index=True)  # pending, active, expired, cancelled, failed
    duration_days = db.Column(db.Integer, nullable=True)  # snapshot at checkout; null/0 = lifetime
    starts_at = db.Column(db.DateTime, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True, index=True)  # null = lifetime
    cancelled_at = db.Column(db.DateTime, nullable=True)
    expiry_reminder_sent_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    transactions = db.relationship('Transaction', backref='subscription', lazy=True,
                                   order_by='Transaction.id')

    @property
    def is_lifetime(self):
        return not self.duration_days or self.duration_days <= 0

    def is_active(self, now=None):
        """Active and not lapsed (a lapsed active row waits for the sweeper)."""
        if self.status != 'active':
            return False
        if self.expires_at is None:
            return True
        return (now or datetime.utcnow()) < self.expires_at

    def to_dict(self):
        return {
            'id': self.id,
            'plan_id': self.plan_id,
            'creator_id': self.creator_id,
            'user_external_id': self.user_external_id,
            'gateway': self.gateway,
            'status': self.status,
            'starts_at': self.starts_at.isoformat() if self.starts_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
    
    def __repr__(self):
        return f'<Subscription {self.id} {self.status}>'
