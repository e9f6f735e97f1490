"""
Plan model definition
"""
from models import db
from datetime import datetime

class Plan(db.Model):
    """Paid-access plan offered by a creator"""
    __tablename__ = 'plans'

    id = db.Column(db.Integer, primary_key=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('creators.id'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    duration_days = db.Column(db.Integer, default=30)  # 0 = lifetime access
    is_recurring = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    subscriptions = db.relationship('Subscription', backref='plan', lazy=True)

    @property
    def is_lifetime(self):
        return not self.duration_days or self.duration_days <= 0

    def to_dict(self):
        return {
            'id': self.id,
            'creator_id': self.creator_id,
            'name': self.name,
            'description': self.description,
            'price': float(self.price) if self.price is not None else None,
            'duration_days': self.duration_days,
            'is_recurring': self.is_recurring,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Plan {self.name}>'
