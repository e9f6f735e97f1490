"""
Authentication utility functions
"""
import secrets
from werkzeug.security import generate_password_hash, check_password_hash

def hash_token(token):
    """Generate token hash"""
    return generate_password_hash(token)

def verify_token(token_hash, token):
    """Verify token against hash"""
    if not token_hash or not token:
        return False
    return check_password_hash(token_hash, token)

def issue_api_token(creator):
    """
    Generate a new API token for a creator and store its hash.
    Returns the bearer value '<creator_id>:<token>'; it is shown once and never stored in clear.
    Caller commits.
    """
    token = secrets.token_urlsafe(32)
    creator.api_token_hash = hash_token(token)
    return f"{creator.id}:{token}"

def parse_bearer(header_value):
    """'Bearer 12:abc' -> (12, 'abc'); anything else -> None"""
    if not header_value:
        return None
    scheme, _, credentials = header_value.partition(' ')
    if scheme.lower() != 'bearer' or not credentials:
        return None
    creator_id, sep, token = credentials.strip().partition(':')
    if not sep or not token or not creator_id.isdigit():
        return None
    return int(creator_id), token

def load_creator_from_request(request):
    """Flask-Login request loader: resolve the creator from the Authorization header."""
    from models import db
    from models.creator import Creator

    parsed = parse_bearer(request.headers.get('Authorization'))
    if parsed is None:
        return None
    creator_id, token = parsed
    creator = db.session.get(Creator, creator_id)
    if not creator or not creator.is_active:
        return None
    if not verify_token(creator.api_token_hash, token):
        return None
    return creator
