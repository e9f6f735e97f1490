"""
Settings helper: read/write platform settings and resolve the fixed platform fee.
"""
import logging
import threading
import time
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.settings import Settings
from utils.split import to_money

logger = logging.getLogger(__name__)

FEE_SETTING_KEY = 'fixed_fee_amount'
DEFAULT_FEE = Decimal('0.55')


def get_setting(key, default=''):
    """Get setting value by key. Falls back to default when the store is unreachable."""
    try:
        setting = Settings.query.filter_by(key=key).first()
    except SQLAlchemyError as e:
        logger.warning("Settings lookup for %s failed, using default: %s", key, e)
        return default
    return setting.value if setting and setting.value is not None else default


def set_setting(key, value, description=''):
    """Set or update setting value. Caller commits."""
    setting = Settings.query.filter_by(key=key).first()
    if setting:
        setting.value = value
        if description:
            setting.description = description
    else:
        setting = Settings(key=key, value=value, description=description)
        db.session.add(setting)
    return setting


class FeePolicy:
    """
    Current fixed platform fee.

    Reads the 'fixed_fee_amount' setting and falls back to the configured
    default when it is missing or unparsable. Values are cached for
    `cache_seconds` (0 disables caching), so a fee change is visible to new
    splits after at most that long.
    """

    def __init__(self, default=DEFAULT_FEE, cache_seconds=60, clock=time.monotonic):
        self.default = to_money(_to_decimal(default, DEFAULT_FEE))
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached = None
        self._cached_at = None

    def current_fee(self) -> Decimal:
        with self._lock:
            if self._is_fresh():
                return self._cached
        fee = self._load()
        with self._lock:
            self._cached = fee
            self._cached_at = self._clock()
        return fee

    def invalidate(self):
        with self._lock:
            self._cached = None
            self._cached_at = None

    def _is_fresh(self):
        if self._cached is None or self.cache_seconds <= 0:
            return False
        return self._clock() - self._cached_at < self.cache_seconds

    def _load(self):
        raw = get_setting(FEE_SETTING_KEY, None)
        if raw is None or str(raw).strip() == '':
            return self.default
        fee = _to_decimal(raw, None)
        if fee is None or not fee.is_finite() or fee < 0:
            logger.error("Invalid %s setting %r, using default %s", FEE_SETTING_KEY, raw, self.default)
            return self.default
        # Fees are charged in whole cents
        return to_money(fee)


def _to_decimal(value, fallback):
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return fallback
