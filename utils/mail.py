"""
Email utility functions
"""
from flask_mail import Mail, Message
from flask import current_app

mail = Mail()

def send_email(subject, recipients, body, html=None):
    """
    Send an email

    Args:
        subject: Email subject
        recipients: List of recipient email addresses
        body: Plain text body
        html: HTML body (optional)
    """
    msg = Message(
        subject=subject,
        recipients=recipients,
        body=body,
        html=html
    )
    mail.send(msg)

def mail_configured():
    """True when Flask-Mail is bound and a server is set (or sending is suppressed in tests)."""
    if 'mail' not in current_app.extensions:
        return False
    return bool(current_app.config.get('MAIL_SERVER') or current_app.config.get('MAIL_SUPPRESS_SEND'))

def _plan_label(subscription):
    if subscription.plan is not None:
        return subscription.plan.name
    return 'your access'

def _subscriber_name(subscription):
    return subscription.user_name or subscription.user_username or 'subscriber'

def send_subscription_activated_email(subscription):
    """Tell the subscriber the payment went through and access is open."""
    expires = subscription.expires_at.strftime('%Y-%m-%d') if subscription.expires_at else 'never (lifetime access)'
    subject = f"Payment confirmed - {_plan_label(subscription)}"
    body = f"""
Hello {_subscriber_name(subscription)},

Your payment was confirmed and {_plan_label(subscription)} is now active.

Expires: {expires}

Thank you!
"""
    html = _subscription_email_html(
        "Payment Confirmed",
        _subscriber_name(subscription),
        f"Your payment was confirmed and <strong>{_plan_label(subscription)}</strong> is now active.",
        [('Expires', expires)],
    )
    send_email(subject, [subscription.user_email], body, html)

def send_subscription_expired_email(subscription):
    """Tell the subscriber their access ended."""
    subject = f"Subscription expired - {_plan_label(subscription)}"
    body = f"""
Hello {_subscriber_name(subscription)},

Your access to {_plan_label(subscription)} has expired.
Renew at any time to get access back.
"""
    html = _subscription_email_html(
        "Subscription Expired",
        _subscriber_name(subscription),
        f"Your access to <strong>{_plan_label(subscription)}</strong> has expired. Renew at any time to get access back.",
        [('Expired on', subscription.expires_at.strftime('%Y-%m-%d') if subscription.expires_at else 'N/A')],
    )
    send_email(subject, [subscription.user_email], body, html)

def send_expiry_reminder_email(subscription, days_left):
    """Warn the subscriber that access is about to end."""
    subject = f"Your subscription expires in {days_left} day(s)"
    body = f"""
Hello {_subscriber_name(subscription)},

Your access to {_plan_label(subscription)} expires in {days_left} day(s), on {subscription.expires_at.strftime('%Y-%m-%d')}.
Renew now to keep your access.
"""
    html = _subscription_email_html(
        "Subscription Expiring Soon",
        _subscriber_name(subscription),
        f"Your access to <strong>{_plan_label(subscription)}</strong> expires in {days_left} day(s). Renew now to keep your access.",
        [('Expires', subscription.expires_at.strftime('%Y-%m-%d'))],
    )
    send_email(subject, [subscription.user_email], body, html)


def _subscription_email_html(title: str, name: str, message: str, rows) -> str:
    """HTML template shared by subscriber lifecycle emails."""
    table_rows = "".join(
        f'<tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>{label}:</strong></td>'
        f'<td style="padding: 8px; border-bottom: 1px solid #eee;">{value}</td></tr>'
        for label, value in rows
    )
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>{title}</title></head>
    <body style="font-family: system-ui, sans-serif; max-width: 600px; margin: 0 auto; padding: 24px;">
        <h2 style="color: #1a1a2e;">{title}</h2>
        <p>Hello {name},</p>
        <p>{message}</p>
        <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
            {table_rows}
        </table>
        <hr style="border: none; border-top: 1px solid #eee; margin: 24px 0;">
        <p style="font-size: 12px; color: #999;">You received this email because you subscribed with this address.</p>
    </body>
    </html>
    """
