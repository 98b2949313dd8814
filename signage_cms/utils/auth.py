"""
Signage CMS Authentication Utilities.

Provides authentication decorators and session validation for the admin API.

Features:
- @login_required decorator for protecting dashboard routes
- Session token validation from Authorization header
- Current user retrieval via Flask's g object
- Automatic session activity tracking

Usage:
    from signage_cms.utils.auth import login_required, get_current_user

    @blueprint.route('/protected')
    @login_required
    def protected_route():
        user = get_current_user()
        return jsonify({'user': user.to_dict()})
"""

from functools import wraps

from flask import request, jsonify, g, current_app
from flask_login import current_user as flask_login_user

from signage_cms.models import db, User, UserSession, utcnow


def get_current_user():
    """
    Get the currently authenticated user.

    Returns:
        User object if authenticated, None otherwise
    """
    return getattr(g, 'current_user', None)


def get_current_session():
    """
    Get the current session object.

    Returns:
        UserSession object if authenticated by token, None otherwise
    """
    return getattr(g, 'current_session', None)


def _extract_token_from_header():
    """
    Extract the bearer token from the Authorization header.

    Supports the format: "Bearer <token>"

    Returns:
        Token string if present and valid format, None otherwise
    """
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        return None

    return parts[1]


def _validate_session(token):
    """
    Validate a session token and return the associated user and session.

    Expired bearer tokens are rejected but the row is kept, since its
    refresh token may still be exchanged.

    Args:
        token: The session token to validate

    Returns:
        Tuple of (User, UserSession) if valid, (None, None) otherwise
    """
    if not token:
        return None, None

    session = UserSession.query.filter_by(token=token).first()
    if not session or session.is_expired():
        return None, None

    user = db.session.get(User, session.user_id)
    if not user:
        return None, None

    try:
        session.update_activity()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.warning(f"Failed to record session activity: {e}")

    return user, session


def authenticate_token():
    """
    Resolve the bearer token of the current request, if any.

    Returns:
        User object for a valid token, None otherwise
    """
    user, _ = _validate_session(_extract_token_from_header())
    return user


def authenticate_request():
    """
    Resolve the admin behind the current request.

    Returns:
        User from the bearer token, else the Flask-Login session user,
        else None
    """
    user = authenticate_token()
    if user is None and flask_login_user.is_authenticated:
        user = flask_login_user._get_current_object()
    return user


def login_required(f):
    """
    Decorator to require an authenticated admin for a route.

    Accepts a bearer token from the Authorization header or, when no
    token is sent, a Flask-Login session cookie. On failure, returns 401
    with an error code of ``missing_token`` or ``invalid_session``.

    Args:
        f: The route function to wrap

    Returns:
        Decorated function that enforces authentication
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _extract_token_from_header()
        if not token:
            if flask_login_user.is_authenticated:
                g.current_user = flask_login_user._get_current_object()
                g.current_session = None
                return f(*args, **kwargs)

            return jsonify({
                'error': 'Authentication required',
                'code': 'missing_token'
            }), 401

        user, session = _validate_session(token)
        if not user:
            return jsonify({
                'error': 'Invalid or expired session',
                'code': 'invalid_session'
            }), 401

        g.current_user = user
        g.current_session = session

        return f(*args, **kwargs)

    return decorated_function


def get_client_ip():
    """
    Get the client's IP address from the request.

    Handles X-Forwarded-For header for proxied requests.

    Returns:
        Client IP address string
    """
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        # Take the first IP in the list (client's original IP)
        return forwarded_for.split(',')[0].strip()

    return request.remote_addr or '127.0.0.1'


def get_user_agent():
    """
    Get the client's user agent string from the request.

    Returns:
        User agent string, truncated to 500 characters
    """
    user_agent = request.headers.get('User-Agent', '')
    return user_agent[:500] if user_agent else None


def cleanup_expired_sessions(user_id=None):
    """
    Remove sessions whose refresh token has expired.

    Args:
        user_id: If provided, only clean up sessions for this user.

    Returns:
        Number of sessions deleted
    """
    query = UserSession.query.filter(UserSession.refresh_expires_at < utcnow())
    if user_id:
        query = query.filter_by(user_id=user_id)

    try:
        count = query.delete(synchronize_session=False)
        db.session.commit()
        return count
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to clean up expired sessions: {e}")
        return 0
