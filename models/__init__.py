"""
Models package for the subscription payments application
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models here to ensure they're registered
from models.creator import Creator
from models.plan import Plan
from models.subscription import Subscription
from models.transaction import Transaction
from models.settings import Settings

__all__ = [
    'db',
    'Creator',
    'Plan',
    'Subscription',
    'Transaction',
    'Settings',
]
