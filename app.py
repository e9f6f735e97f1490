"""
Main Flask application entry point for the subscription payments API
"""
import logging
import os
from decimal import Decimal, InvalidOperation
import click
from flask import Flask, jsonify, request
from flask_login import LoginManager
from config import Config
from gateways.registry import build_registry
from models import db
from models.creator import Creator
from utils.auth_utils import load_creator_from_request
from utils.mail import mail
from utils.notifications import build_notifier
from utils.payment_gateway import PaymentOrchestrator
from utils.reconciler import WebhookReconciler
from utils.settings_helper import FEE_SETTING_KEY, FeePolicy, get_setting, set_setting
from utils.sweeper import ExpirationSweeper

logger = logging.getLogger(__name__)

# Initialize login manager (no DB access at import time)
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    """Load creator for Flask-Login (runs in request context)."""
    return db.session.get(Creator, int(user_id))


@login_manager.request_loader
def load_user_from_request(req):
    """API clients authenticate with 'Authorization: Bearer <creator_id>:<token>'."""
    return load_creator_from_request(req)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Authentication required', 'code': 'UNAUTHORIZED'}), 401


def init_payments(app):
    """Build the payment services once per app and expose them through app.extensions."""
    fee_policy = FeePolicy(
        default=app.config['DEFAULT_PLATFORM_FEE'],
        cache_seconds=app.config['FEE_CACHE_SECONDS'],
    )
    registry = build_registry(app.config)
    notifier = build_notifier(app.config)

    app.extensions['fee_policy'] = fee_policy
    app.extensions['payment_registry'] = registry
    app.extensions['notifier'] = notifier
    app.extensions['payment_orchestrator'] = PaymentOrchestrator(registry, fee_policy, app.config['API_BASE_URL'])
    app.extensions['payment_reconciler'] = WebhookReconciler(notifier)
    app.extensions['expiration_sweeper'] = ExpirationSweeper(notifier)


def create_app(config_class=Config):
    """Application factory pattern. DB init runs inside app_context; non-fatal on failure."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)
    init_payments(app)

    @app.errorhandler(404)
    def handle_404_error(e):
        return jsonify({'error': 'Not found', 'code': 'NOT_FOUND'}), 404

    @app.errorhandler(405)
    def handle_405_error(e):
        return jsonify({'error': 'Method not allowed', 'code': 'METHOD_NOT_ALLOWED'}), 405

    @app.errorhandler(500)
    def handle_500_error(e):
        return jsonify({'error': 'Internal server error. Please try again later.', 'code': 'INTERNAL_ERROR'}), 500

    # Create tables and seed only inside app context; do not crash if DB temporarily unavailable
    with app.app_context():
        try:
            db.create_all()
            seed_settings(app)
        except Exception as e:
            db.session.rollback()
            logger.warning("Database init/seed skipped (non-fatal): %s", e)

        if app.config.get('SWEEP_ON_STARTUP'):
            try:
                app.extensions['expiration_sweeper'].sweep()
            except Exception as e:
                db.session.rollback()
                logger.warning("Startup expiration sweep skipped (non-fatal): %s", e)

    # Register blueprints
    from routes import public_bp, checkout_bp, webhooks_bp, subscriptions_bp, creator_bp

    app.register_blueprint(public_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(subscriptions_bp)
    app.register_blueprint(creator_bp)

    register_commands(app)

    @app.before_request
    def log_webhook():
        if request.path.startswith('/api/webhooks/'):
            app.logger.info(f"Webhook received: {request.path}")

    return app


def seed_settings(app):
    """Ensure the fixed platform fee setting exists so admins can see and edit it."""
    if get_setting(FEE_SETTING_KEY, None) is not None:
        return
    set_setting(FEE_SETTING_KEY, str(app.config['DEFAULT_PLATFORM_FEE']),
                'Fixed platform fee charged per transaction (BRL)')
    try:
        db.session.commit()
        logger.info("Seeded %s = %s", FEE_SETTING_KEY, app.config['DEFAULT_PLATFORM_FEE'])
    except Exception as e:
        db.session.rollback()
        logger.warning("Error seeding settings: %s", e)


def register_commands(app):
    """Flask CLI entry points for cron hosts without a Celery beat."""

    @app.cli.command('sweep-expired')
    def sweep_expired_command():
        """Expire active subscriptions whose access window has passed."""
        count = app.extensions['expiration_sweeper'].sweep()
        click.echo(f"Expired {count} subscription(s)")

    @app.cli.command('send-reminders')
    @click.option('--days', default=None, type=int, help='Remind subscriptions expiring within this many days.')
    def send_reminders_command(days):
        """Send expiry reminders to subscribers about to lapse."""
        days = days if days is not None else app.config['REMINDER_DAYS_AHEAD']
        count = app.extensions['expiration_sweeper'].send_reminders(days_ahead=days)
        click.echo(f"Sent {count} reminder(s)")

    @app.cli.command('set-fee')
    @click.argument('amount')
    def set_fee_command(amount):
        """Change the fixed platform fee for new transactions."""
        try:
            fee = Decimal(amount.strip())
        except InvalidOperation:
            raise click.BadParameter(f"{amount!r} is not a number", param_hint="AMOUNT")
        if not fee.is_finite() or fee < 0:
            raise click.BadParameter("fee must be a non-negative amount", param_hint="AMOUNT")
        if fee != fee.quantize(Decimal("0.01")):
            raise click.BadParameter("fee must be in whole cents (at most 2 decimals)", param_hint="AMOUNT")
        set_setting(FEE_SETTING_KEY, str(fee))
        db.session.commit()
        app.extensions['fee_policy'].invalidate()
        click.echo(f"{FEE_SETTING_KEY} = {app.extensions['fee_policy'].current_fee()}")


# WSGI entry point (Railway/Render): gunicorn app:app
app = create_app()
application = app

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG", "false").lower() in ("true", "1"))
