"""
Transaction model definition
"""
from models import db
from datetime import datetime

TRANSACTION_STATUSES = ('pending', 'confirmed', 'failed', 'refunded')

class Transaction(db.Model):
    """One attempted payment; rows are never deleted (audit trail)"""
    __tablename__ = 'transactions'
    
    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey('subscriptions.id'), nullable=False, index=True)
    gateway = db.Column(db.String(20), nullable=False)
    gateway_payment_id = db.Column(db.String(255), nullable=True, index=True)
    correlation_id = db.Column(db.String(64), unique=True, nullable=False)  # opaque external reference echoed by the provider
    gateway_status = db.Column(db.String(50), nullable=True)  # raw provider status
    status = db.Column(db.String(20), default='pending')  # pending, confirmed, failed, refunded
    amount_gross = db.Column(db.Numeric(10, 2), nullable=False)
    amount_platform_fee = db.Column(db.Numeric(10, 2), nullable=False)
    amount_creator_net = db.Column(db.Numeric(10, 2), nullable=False)
    payment_url = db.Column(db.Text, nullable=True)
    qr_code = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def split_dict(self):
        return {
            'gross': float(self.amount_gross),
            'platformFee': float(self.amount_platform_fee),
            'creatorNet': float(self.amount_creator_net),
        }
    
    def __repr__(self):
        return f'<Transaction {self.id} {self.status}>'
