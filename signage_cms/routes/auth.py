"""
Signage CMS Authentication Routes

Blueprint for admin authentication endpoints:
- POST /create-admin-user: Create an admin account
- POST /login: Login with email/password, returns access and refresh tokens
- POST /refresh-token: Exchange a refresh token for a new token pair
- POST /logout: Revoke the current session and clear the login cookie
- GET /me: Current admin

All endpoints are prefixed with /api/v1/auth when registered with the app.
"""

import re

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user

from signage_cms.models import db, User, UserSession, utcnow
from signage_cms.utils.auth import (
    login_required,
    get_current_user,
    get_current_session,
    get_client_ip,
    get_user_agent,
    cleanup_expired_sessions,
    authenticate_request,
)


# Create auth blueprint
auth_bp = Blueprint('auth', __name__)


EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def validate_password(password):
    """
    Validate password length.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        return False, f'Password must be at least {PASSWORD_MIN_LENGTH} characters'
    if len(password) > PASSWORD_MAX_LENGTH:
        return False, f'Password must be at most {PASSWORD_MAX_LENGTH} characters'
    return True, None


def _session_lifetimes():
    return {
        'session_hours': current_app.config.get('SESSION_HOURS', 8),
        'refresh_days': current_app.config.get('REFRESH_DAYS', 7),
    }


@auth_bp.route('/create-admin-user', methods=['POST'])
def create_admin_user():
    """
    Create an admin account.

    The first admin can be created without authentication; once any admin
    exists, the caller must be an authenticated admin.

    Request Body:
        {
            "email": "admin@example.com" (required),
            "name": "Jane Doe" (required, 3-50 characters),
            "password": "secret123" (required, at least 8 characters)
        }

    Returns:
        201: { "message": "Admin User created successfully", "user": {...} }
        400: Validation error or email already registered
        401: Admins exist and the caller is not authenticated
    """
    if User.query.first() is not None:
        if authenticate_request() is None:
            return jsonify({
                'error': 'Authentication required',
                'code': 'missing_token'
            }), 401

    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body is required'}), 400

    email = data.get('email')
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email.strip()):
        return jsonify({'error': 'A valid email is required'}), 400
    email = email.strip().lower()

    name = data.get('name')
    if not isinstance(name, str) or not (NAME_MIN_LENGTH <= len(name.strip()) <= NAME_MAX_LENGTH):
        return jsonify({
            'error': f'name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters'
        }), 400

    is_valid, error = validate_password(data.get('password'))
    if not is_valid:
        return jsonify({'error': error}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered'}), 400

    user = User(email=email, name=name.strip())
    user.set_password(data['password'])

    try:
        db.session.add(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create admin user {email}: {e}")
        return jsonify({'error': 'Failed to create admin user'}), 500

    current_app.logger.info(f"Created admin user {email}")
    return jsonify({
        'message': 'Admin User created successfully',
        'user': user.to_dict(),
    }), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Login with email and password.

    Request Body:
        {
            "email": "admin@example.com" (required),
            "password": "secret123" (required)
        }

    Returns:
        200: {
                "message": "Admin User logged in successfully",
                "accessToken": "...",
                "refreshToken": "...",
                "user": { user data }
             }
        400: Missing field or invalid credentials
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body is required'}), 400

    email = data.get('email')
    if not email or not isinstance(email, str):
        return jsonify({'error': 'email is required'}), 400

    password = data.get('password')
    if not password or not isinstance(password, str):
        return jsonify({'error': 'password is required'}), 400

    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user or not user.check_password(password):
        current_app.logger.warning(f"Failed login for {email} from {get_client_ip()}")
        return jsonify({'error': 'Invalid email or password'}), 400

    cleanup_expired_sessions(user.id)

    session = UserSession.create_session(
        user_id=user.id,
        ip_address=get_client_ip(),
        user_agent=get_user_agent(),
        **_session_lifetimes(),
    )
    user.last_login = utcnow()

    try:
        db.session.add(session)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create session for {user.email}: {e}")
        return jsonify({'error': 'Failed to create session'}), 500

    # Browser clients also get a session cookie
    login_user(user)

    return jsonify({
        'message': 'Admin User logged in successfully',
        'accessToken': session.token,
        'refreshToken': session.refresh_token,
        'expiresAt': session.to_dict()['expiresAt'],
        'user': user.to_dict(),
    }), 200


@auth_bp.route('/refresh-token', methods=['POST'])
def refresh_token():
    """
    Exchange a refresh token for a new access/refresh token pair.

    Request Body:
        { "refreshToken": "..." (required) }

    Returns:
        200: { "accessToken": "...", "refreshToken": "..." }
        400: Missing refreshToken
        401: Unknown or expired refresh token
    """
    data = request.get_json(silent=True) or {}
    token = data.get('refreshToken')
    if not token or not isinstance(token, str):
        return jsonify({'error': 'refreshToken is required'}), 400

    session = UserSession.query.filter_by(refresh_token=token).first()
    if not session or session.is_refresh_expired():
        return jsonify({
            'error': 'Invalid or expired refresh token',
            'code': 'invalid_refresh_token'
        }), 401

    session.rotate(**_session_lifetimes())

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to rotate session {session.id}: {e}")
        return jsonify({'error': 'Failed to refresh token'}), 500

    return jsonify({
        'message': 'Token refreshed successfully',
        'accessToken': session.token,
        'refreshToken': session.refresh_token,
        'expiresAt': session.to_dict()['expiresAt'],
    }), 200


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Revoke the session whose token authenticated this request and end the login cookie."""
    session = get_current_session()
    if session is not None:
        try:
            db.session.delete(session)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to revoke session {session.id}: {e}")
            return jsonify({'error': 'Failed to logout'}), 500

    logout_user()

    return jsonify({'message': 'Logged out successfully'}), 200


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': get_current_user().to_dict()}), 200
